"""
Authentication dependency for the generate-quiz API

Callers present a Supabase access token as a bearer credential; the
token's `sub` claim is the caller id.

Usage:
    @router.post("/generate-quiz")
    async def generate(caller_id: str = Depends(get_current_user_id)):
        ...
"""
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from quizgen.config import settings
from quizgen.exceptions import Unauthorized

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for extracting tokens
security = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict:
    """
    Verify a bearer token and return its claims

    Raises:
        Unauthorized: token missing, malformed, expired or wrongly signed
    """
    if not settings.SUPABASE_JWT_SECRET:
        logger.error("SUPABASE_JWT_SECRET is not set; rejecting all tokens")
        raise Unauthorized("Invalid or expired token")

    options = {"verify_aud": bool(settings.JWT_AUDIENCE)}
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except JWTError as e:
        logger.warning(f"Token verification failed: {str(e)}")
        raise Unauthorized("Invalid or expired token")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """FastAPI dependency returning the authenticated caller id"""
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Missing authorization header")

    claims = decode_access_token(credentials.credentials)
    user_id = claims.get("sub")
    if not user_id:
        raise Unauthorized("Invalid token claims")
    return str(user_id)
