import base64
import hashlib
import hmac
from typing import Optional


def compute_signature(raw_body: bytes, channel_secret: str) -> str:
    """Base64 HMAC-SHA256 of the raw request body."""
    digest = hmac.new(channel_secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(raw_body: bytes, signature: Optional[str], channel_secret: str) -> bool:
    """Check a webhook signature against the exact bytes that were received.

    The body must not be re-serialized before calling this: any change in
    whitespace or key order changes the digest.
    """
    if not signature or not channel_secret:
        return False
    expected = compute_signature(raw_body, channel_secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))
