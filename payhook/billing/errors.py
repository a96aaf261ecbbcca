class WebhookError(Exception):
    """Base for webhook processing errors that map to an HTTP status."""
    status_code = 500
    code = "processing_failed"


class MalformedEventError(WebhookError):
    """Permanent: the gateway resending the same body will not fix it."""
    status_code = 400
    code = "malformed_event"
