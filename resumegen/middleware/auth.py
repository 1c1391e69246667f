"""
API key authentication for candidate-facing routes.

Clients send `X-API-Key`. The plaintext prefix narrows the lookup to a
handful of rows, then bcrypt decides.
"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resumegen.database import get_db
from resumegen.errors import AuthError, ForbiddenError
from resumegen.models.user import User
from resumegen.utils.logger import logger


async def find_user_by_api_key(db: AsyncSession, api_key: str) -> Optional[User]:
    result = await db.execute(
        select(User).where(User.api_key_prefix == User.key_prefix(api_key))
    )
    for candidate in result.scalars():
        if candidate.check_api_key(api_key):
            return candidate
    return None


async def get_current_user(
    x_api_key: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the calling candidate, or fail with 401 (no/bad key) / 403 (disabled)"""
    if not x_api_key:
        raise AuthError("API key required. Provide X-API-Key header.")

    user = await find_user_by_api_key(db, x_api_key)
    if user is None:
        logger.warning("auth.invalid_key", extra={"error_type": "invalid_api_key"})
        raise AuthError("Invalid API key")

    if not user.is_active:
        logger.warning("auth.user_disabled", extra={"user_id": user.id})
        raise ForbiddenError("User account is disabled")

    return user
