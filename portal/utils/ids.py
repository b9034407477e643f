"""
Identifiers: request ids for log correlation, opaque tokens for cookies.
"""
import os
import secrets
import time
from typing import Optional

CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def encode_crockford(value: int, width: int) -> str:
    """Fixed-width Crockford base32, most significant digit first."""
    digits = []
    for _ in range(width):
        value, remainder = divmod(value, 32)
        digits.append(CROCKFORD[remainder])
    return "".join(reversed(digits))


def ulid() -> str:
    """26 chars: millisecond timestamp (10) then 80 random bits (16); sorts by time."""
    millis = int(time.time() * 1000)
    entropy = int.from_bytes(os.urandom(10), "big")
    return encode_crockford(millis, 10) + encode_crockford(entropy, 16)


def request_id(header_value: Optional[str] = None) -> str:
    """The caller's X-Request-ID when it sent one, else a new ULID."""
    if header_value and header_value.strip():
        return header_value.strip()
    return ulid()


def session_token() -> str:
    """Unguessable token for session cookies and OAuth state."""
    return secrets.token_urlsafe(32)
