"""Webhook secrets and signatures

Signature header: `t=<unix_seconds>,v1=<hex hmac_sha256(secret, "{t}.{body}")>`
"""

import hashlib
import hmac
import secrets
import time
from typing import Optional, Tuple

SECRET_PREFIX = "whsec_"
SIGNATURE_HEADER = "X-Webhook-Signature"
DEFAULT_TOLERANCE_SECONDS = 300


def generate_secret() -> str:
    """`whsec_` followed by 32 random bytes, hex-encoded"""
    return f"{SECRET_PREFIX}{secrets.token_hex(32)}"


def compute_signature(secret: str, timestamp: int, body: str) -> str:
    signed_content = f"{timestamp}.{body}"
    return hmac.new(
        secret.encode("utf-8"),
        signed_content.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def sign_payload(body: str, secret: str, timestamp: Optional[int] = None) -> str:
    """Build the X-Webhook-Signature header value"""
    if timestamp is None:
        timestamp = int(time.time())
    return f"t={timestamp},v1={compute_signature(secret, timestamp, body)}"


def parse_signature_header(header: str) -> Tuple[int, str]:
    """Split a signature header into (timestamp, v1 digest)"""
    parts = {}
    for item in header.split(","):
        name, sep, value = item.strip().partition("=")
        if sep:
            parts[name] = value

    if "t" not in parts or "v1" not in parts:
        raise ValueError("Signature header must contain t= and v1=")
    try:
        timestamp = int(parts["t"])
    except ValueError as e:
        raise ValueError(f"Invalid signature timestamp: {parts['t']!r}") from e
    return timestamp, parts["v1"]


def verify_signature(
    body: str,
    header: str,
    secret: str,
    tolerance_seconds: Optional[int] = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> bool:
    """
    Receiver-side verification

    Recomputes the HMAC over the transmitted timestamp and raw body and
    compares in constant time. Timestamps older than `tolerance_seconds` are
    rejected; pass None to skip the age check.
    """
    try:
        timestamp, digest = parse_signature_header(header)
    except ValueError:
        return False

    if tolerance_seconds is not None:
        current = time.time() if now is None else now
        if abs(current - timestamp) > tolerance_seconds:
            return False

    expected = compute_signature(secret, timestamp, body)
    return hmac.compare_digest(expected, digest)
