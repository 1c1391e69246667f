from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from resumegen.models.application import Application


async def count_applications(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(Application.id)).where(Application.user_id == user_id)
    )
    return result.scalar_one()


async def is_eligible(db: AsyncSession, user_id: int, minimum: int = 2) -> bool:
    """A user may generate a resume once they have submitted `minimum` applications"""
    return await count_applications(db, user_id) >= minimum
