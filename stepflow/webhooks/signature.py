"""HMAC signatures for webhook payloads."""

import hashlib
import hmac
from typing import Optional, Union

SIGNATURE_PREFIX = "sha256="


def _as_bytes(payload: Union[bytes, str]) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else payload


def compute_signature(payload: Union[bytes, str], secret: str) -> str:
    """``sha256=<hex>`` HMAC of ``payload`` keyed with ``secret``."""
    digest = hmac.new(secret.encode("utf-8"), _as_bytes(payload), hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: Union[bytes, str], signature: Optional[str], secret: Optional[str]) -> bool:
    """Constant-time check of ``signature``, with or without the ``sha256=`` prefix."""
    if not signature or not secret:
        return False
    expected = compute_signature(payload, secret)
    if not signature.startswith(SIGNATURE_PREFIX):
        signature = f"{SIGNATURE_PREFIX}{signature}"
    return hmac.compare_digest(signature.lower(), expected)
