from .headers import init_security
from .signatures import compute_signature, verify_signature

__all__ = ["init_security", "compute_signature", "verify_signature"]
