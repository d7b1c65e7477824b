# vidtube/api/v1/deps.py
import logging

import jwt
from fastapi import Header, Request, status
from vidtube.core.errors import ApiError
from vidtube.core.security import decode_access_token
from vidtube.models.user import User

logger = logging.getLogger("uvicorn.error")


async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
) -> User:
    """
    FastAPI dependency to get the current authenticated user.

    This dependency extracts and validates the JWT access token from either:
    1. HttpOnly cookie (accessToken) - set by /users/login
    2. Authorization header (Bearer token) - for non-browser clients

    Args:
        request: FastAPI Request object (for accessing cookies)
        authorization: Optional Authorization header value

    Returns:
        User: The authenticated user. Responses built from it go through
        UserOut, which never exposes password_hash or refresh_token.

    Raises:
        ApiError (401): If no token is provided
        ApiError (401): If token is invalid, expired or not an access token
        ApiError (401): If the token's user no longer exists

    Usage:
        @router.get("/protected")
        async def protected_route(user: User = Depends(get_current_user)):
            return {"user_id": str(user.id)}
    """
    token = request.cookies.get("accessToken")
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()

    if not token:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Unauthorized request")

    try:
        payload = decode_access_token(token)
        user_id = payload.get("sub")
    except jwt.InvalidTokenError:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid access token")

    user = await User.get_or_none(id=user_id) if user_id else None
    if not user:
        logger.warning("[auth] access token for unknown user id=%s", user_id)
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid access token")
    return user
