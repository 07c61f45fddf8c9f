"""Plan repository for database operations.

Plans are maintained by an administrator; nothing here writes to the table.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hotspot_billing.models.models import Plan


class PlanRepository:
    """Repository for plan database operations."""

    @staticmethod
    async def list_active_plans(db: AsyncSession, order_by_price: bool = True) -> list[Plan]:
        """
        Fetch all active plans.

        Args:
            db: Database session
            order_by_price: Order by ascending price (portal listing) instead of id

        Returns:
            List of active Plan objects
        """
        order = Plan.price.asc() if order_by_price else Plan.id.asc()
        result = await db.execute(select(Plan).where(Plan.active.is_(True)).order_by(order, Plan.id.asc()))
        return list(result.scalars().all())

    @staticmethod
    async def get_active_plan(db: AsyncSession, plan_id: int) -> Optional[Plan]:
        """
        Fetch an active plan by ID.

        Args:
            db: Database session
            plan_id: ID of the plan

        Returns:
            Plan object, or None if missing or inactive
        """
        result = await db.execute(select(Plan).where(Plan.id == plan_id, Plan.active.is_(True)))
        return result.scalar_one_or_none()

    @staticmethod
    async def find_active_plan_by_price(db: AsyncSession, price: int) -> Optional[Plan]:
        """
        Fetch the active plan whose price matches a paid amount.

        When several active plans share a price, the one with the lowest id wins.

        Args:
            db: Database session
            price: Amount paid

        Returns:
            Plan object or None if no active plan has that price
        """
        result = await db.execute(
            select(Plan)
            .where(Plan.price == price, Plan.active.is_(True))
            .order_by(Plan.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()


plan_repository = PlanRepository()
