from fastapi import Depends, HTTPException, status, Request, Response
from fastapi.security import APIKeyHeader
from fastapi_limiter.depends import RateLimiter
from jose import jwt, JWTError
from typing import Annotated

from .config import settings

api_key_header = APIKeyHeader(name="Authorization")


async def get_key_by_user_id_or_ip(request: Request) -> str:
    """
    Tries to get the user ID from the JWT token.
    If it fails (no token, invalid token), it falls back to the client's IP.
    """
    try:
        token = request.headers.get("Authorization")
        scheme, jwt_token = token.split()
        if scheme.lower() != "bearer":
            return request.client.host

        payload = jwt.decode(jwt_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = payload.get("sub")
        if user_id:
            return str(user_id)
    except (JWTError, ValueError, AttributeError, TypeError):
        # Invalid, missing or malformed token: limit by IP
        pass
    return request.client.host


async def get_current_user_id_from_token(
        token: Annotated[str, Depends(api_key_header)]
) -> int:
    """
    Decodes the JWT from the 'Authorization: Bearer ...' header to get the user ID.
    The token is issued by the auth service; this service only verifies it.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        scheme, jwt_token = token.split()
        if scheme.lower() != "bearer":
            raise credentials_exception
        payload = jwt.decode(jwt_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return int(payload.get("sub"))
    except (JWTError, ValueError, AttributeError, TypeError):
        raise credentials_exception


_booking_write_limiter = RateLimiter(times=30, minutes=1, identifier=get_key_by_user_id_or_ip)


async def booking_write_rate_limit(request: Request, response: Response) -> None:
    """30 booking writes per minute per user (or IP), when rate limiting is enabled."""
    if settings.RATE_LIMIT_ENABLED:
        await _booking_write_limiter(request, response)
