"""Bearer access tokens (HS256 JWT) identifying the calling user."""

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from src.authz.errors import AuthenticationRequired
from src.core.config import settings

TOKEN_TYPE = "access"


def create_access_token(
    user_id: str,
    expires_delta: timedelta | None = None,
    **extra_claims: Any,
) -> str:
    """Issue a signed access token whose subject is ``user_id``.

    The role is deliberately not embedded: it is read from the user row on
    every request so role changes apply immediately.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_ttl_minutes)

    issued_at = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        **extra_claims,
        "sub": user_id,
        "iat": issued_at,
        "exp": issued_at + expires_delta,
        "type": TOKEN_TYPE,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    """Validate a token and return its subject user id.

    Raises:
        AuthenticationRequired: If the token is expired, malformed, or not
            an access token.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationRequired("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationRequired("Invalid token") from exc

    subject = payload.get("sub")
    if payload.get("type") != TOKEN_TYPE or not subject:
        raise AuthenticationRequired("Invalid token")
    return str(subject)
