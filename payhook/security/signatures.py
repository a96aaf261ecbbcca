import hmac
import hashlib


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA512 of the exact request bytes, as Paystack signs them."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str) -> bool:
    """
    Constant-time check of a webhook signature header against the raw body.
    Never re-serialize the JSON before calling this; key order and whitespace matter.
    """
    if not secret or not signature:
        return False
    expected = compute_signature(raw_body, secret)
    try:
        return hmac.compare_digest(expected, signature)
    except TypeError:
        # non-ASCII header value
        return False
