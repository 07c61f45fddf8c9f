"""Hotspot user repository for database operations."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hotspot_billing.models.models import HotspotUser


class UserRepository:
    """Repository for hotspot user (entitlement) database operations."""

    @staticmethod
    async def get_by_phone(
        db: AsyncSession, phone_number: str, for_update: bool = False
    ) -> Optional[HotspotUser]:
        """
        Fetch a user by phone number.

        Args:
            db: Database session
            phone_number: Phone number the entitlement belongs to
            for_update: Lock the row until the current transaction ends

        Returns:
            HotspotUser object or None if not found
        """
        stmt = select(HotspotUser).where(HotspotUser.phone_number == phone_number)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def save(db: AsyncSession, user: HotspotUser) -> HotspotUser:
        """
        Insert or update a user and commit.

        Args:
            db: Database session
            user: HotspotUser to persist

        Returns:
            The persisted HotspotUser
        """
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user


user_repository = UserRepository()
