"""Bearer token utilities.

Learner identity is owned by an external auth service; CoursePath only
validates the access tokens it signs. ``create_access_token`` exists for
tooling (seeding a tracker session) and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from coursepath.config.settings import get_settings


TOKEN_TYPE = "access"


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Sign ``data`` (``sub``, ``name``, ``role``...) as an access token.

    ``exp`` defaults to ``auth_access_token_expire_minutes`` from now.
    """
    settings = get_settings()
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(
        minutes=settings.auth_access_token_expire_minutes
    )
    claims = {
        **data,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "type": TOKEN_TYPE,
    }
    return jwt.encode(
        claims, settings.auth_secret_key, algorithm=settings.auth_algorithm
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry, then require an access token with a subject.

    Raises:
        JWTError: Bad signature, expired, wrong type or no ``sub``
    """
    settings = get_settings()
    claims = jwt.decode(
        token, settings.auth_secret_key, algorithms=[settings.auth_algorithm]
    )

    if claims.get("type") != TOKEN_TYPE:
        raise JWTError(f"Invalid token type: expected '{TOKEN_TYPE}'")
    if not claims.get("sub"):
        raise JWTError("Access token missing sub claim")
    return claims
