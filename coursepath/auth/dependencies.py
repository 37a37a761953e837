"""FastAPI dependencies for bearer authentication.

Every progress, quiz and certificate route is scoped to the caller, so the
learner id always comes from the verified token and never from the path.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from coursepath.auth.permissions import UserRole, has_permission
from coursepath.auth.schemas import UserResponse
from coursepath.auth.security import decode_access_token
from coursepath.core.context import set_user_id


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token_from_header(request: Request) -> str | None:
    """Token of an ``Authorization: Bearer <token>`` header, if well formed."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip() or " " in token.strip():
        return None
    return token.strip()


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> UserResponse:
    """Learner identified by the access token.

    Raises:
        HTTPException(401): Token missing, invalid or expired
    """
    if not token:
        raise _unauthorized("Access token not provided")

    try:
        claims = decode_access_token(token)
        user = UserResponse(
            id=claims["sub"],
            email=claims.get("email", ""),
            name=claims.get("name", ""),
            role=claims.get("role", UserRole.LEARNER.value),
        )
    except (JWTError, KeyError, ValueError) as e:
        raise _unauthorized("Invalid or expired token") from e

    set_user_id(user.id)
    return user


def require_permission(required_role: UserRole):
    """Dependency admitting ``required_role`` or any role above it."""

    async def permission_checker(
        user: Annotated[UserResponse, Depends(get_current_user)],
    ) -> UserResponse:
        if not has_permission(user.role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return permission_checker


CurrentUser = Annotated[UserResponse, Depends(get_current_user)]
AdminUser = Annotated[UserResponse, Depends(require_permission(UserRole.ADMIN))]
