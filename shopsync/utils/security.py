"""
Webhook signature verification

Shopify signs every webhook with base64(HMAC-SHA256(secret, raw_body)) and
sends it in the X-Shopify-Hmac-Sha256 header.
"""
import base64
import hashlib
import hmac
from typing import Optional, Union

from shopsync.utils.logger import log


def compute_webhook_signature(body: Union[bytes, str], secret: str) -> str:
    """Return the base64 HMAC-SHA256 of ``body`` keyed with ``secret``."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def _constant_time_equals(a: str, b: str) -> bool:
    """Compare two strings without short-circuiting on the first mismatch."""
    if len(a) != len(b):
        return False
    result = 0
    for x, y in zip(a, b):
        result |= ord(x) ^ ord(y)
    return result == 0


def verify_webhook_signature(
    body: Union[bytes, str, None],
    provided_signature: Optional[str],
    secret: Optional[str],
) -> bool:
    """
    Verify that a webhook body was signed with the shared secret.

    Args:
        body: Raw request body exactly as received
        provided_signature: Value of the X-Shopify-Hmac-Sha256 header
        secret: Shared webhook secret

    Returns:
        True only if the signature matches; False for a missing secret,
        a missing signature, or any failure while computing the digest
    """
    if not secret:
        log.warning("Webhook secret not configured, rejecting webhook")
        return False

    if not provided_signature:
        log.warning("Webhook received without signature header")
        return False

    try:
        computed = compute_webhook_signature(body if body is not None else b"", secret)
        return _constant_time_equals(computed, provided_signature)
    except Exception as e:
        log.warning(f"Webhook signature verification error: {str(e)}")
        return False
