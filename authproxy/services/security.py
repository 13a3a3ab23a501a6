"""
Security service - bearer token validation.
"""
import hmac
from typing import Optional

BEARER_SCHEME = "Bearer"


def is_authorized(auth_header: Optional[str], token: str) -> bool:
    """
    Check an Authorization header value against the configured token.

    The header is split on the first space into at most two parts. It is
    accepted only as exactly "Bearer <token>"; a missing header, a header
    without a space, another scheme or any other token is rejected.
    Uses timing-safe comparison for the token.
    """
    if not auth_header or not token:
        return False

    parts = auth_header.split(" ", 1)
    if len(parts) < 2:
        return False

    scheme, credential = parts
    if scheme != BEARER_SCHEME:
        return False

    return hmac.compare_digest(credential.encode("utf-8"), token.encode("utf-8"))
