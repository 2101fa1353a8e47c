from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from startronics.domain.lifecycle.statuses import Role
from startronics.domain.profiles.db_models import UserProfile


async def resolve_role(session: AsyncSession, user_id: uuid.UUID) -> Role:
    """Role stored on the profile; subjects without a profile row are customers."""
    result = await session.execute(select(UserProfile.role).where(UserProfile.id == user_id).limit(1))
    stored = result.scalar_one_or_none()
    if stored is None:
        return Role.customer
    try:
        return Role(stored)
    except ValueError:
        return Role.customer


async def list_technicians(session: AsyncSession) -> list[UserProfile]:
    result = await session.execute(
        select(UserProfile)
        .where(UserProfile.role == Role.technician.value)
        .order_by(UserProfile.display_name.asc(), UserProfile.id.asc())
    )
    return list(result.scalars().all())
