"""Bearer access tokens for API callers.

Tokens are Fernet tokens (AES-128-CBC + HMAC-SHA256) whose payload is the
caller's user id. Fernet embeds the issue timestamp, so expiry is checked
on decrypt against ``auth_token_ttl_seconds``.

Usage:
    from simtrader.common.tokens import issue_access_token, verify_access_token

    token = issue_access_token("user-123")
    user_id = verify_access_token(token)  # raises UnauthenticatedError if bad
"""

from __future__ import annotations

from cryptography.fernet import Fernet, InvalidToken

from simtrader.common.config import get_settings
from simtrader.common.exceptions import UnauthenticatedError


def _get_fernet() -> Fernet:
    """Create a Fernet instance from the app token key."""
    settings = get_settings()
    return Fernet(settings.auth_token_key.encode())


def issue_access_token(user_id: str) -> str:
    """Issue an access token identifying ``user_id``.

    Args:
        user_id: Identity the token is issued to. Must be non-empty.

    Returns:
        URL-safe base64 token string for the ``Authorization: Bearer`` header.
    """
    if not user_id:
        msg = "Cannot issue a token for an empty user id"
        raise ValueError(msg)
    return _get_fernet().encrypt(user_id.encode()).decode()


def verify_access_token(token: str, ttl_seconds: int | None = None) -> str:
    """Verify an access token and return the identity it was issued to.

    Args:
        token: The raw token string (without the ``Bearer`` prefix).
        ttl_seconds: Maximum token age. Defaults to the configured TTL.

    Returns:
        The user id embedded in the token.

    Raises:
        UnauthenticatedError: If the token is empty, tampered with,
            signed with another key, or older than the TTL.
    """
    if not token:
        raise UnauthenticatedError("Missing access token")

    ttl = ttl_seconds if ttl_seconds is not None else get_settings().auth_token_ttl_seconds
    try:
        user_id = _get_fernet().decrypt(token.encode(), ttl=ttl).decode()
    except InvalidToken as exc:
        raise UnauthenticatedError("Invalid or expired access token") from exc

    if not user_id:
        raise UnauthenticatedError("Access token carries no identity")
    return user_id
