"""Seed database with the default access plans."""

import asyncio
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hotspot_billing.core.db import dispose_engine, get_sessionmaker
from hotspot_billing.models.models import Plan


async def seed_plans(session: AsyncSession) -> None:
    """Create or update the standard plans, keyed by profile name."""
    plans_data = [
        {"price": 10, "duration": timedelta(hours=1), "profile_name": "1hour", "rate_limit": "2M/2M"},
        {"price": 50, "duration": timedelta(days=1), "profile_name": "1day", "rate_limit": "3M/3M"},
        {"price": 250, "duration": timedelta(days=7), "profile_name": "1week", "rate_limit": "4M/4M"},
        {"price": 800, "duration": timedelta(days=30), "profile_name": "1month", "rate_limit": "5M/5M"},
    ]

    for plan_data in plans_data:
        result = await session.execute(select(Plan).where(Plan.profile_name == plan_data["profile_name"]))
        existing_plan = result.scalar_one_or_none()

        if existing_plan:
            existing_plan.price = plan_data["price"]
            existing_plan.duration = plan_data["duration"]
            existing_plan.rate_limit = plan_data["rate_limit"]
            existing_plan.active = True
            print(f"✓ Updated plan: {plan_data['profile_name']}")
        else:
            session.add(Plan(active=True, **plan_data))
            print(f"✓ Created plan: {plan_data['profile_name']}")

    await session.commit()


async def main() -> None:
    async with get_sessionmaker()() as session:
        await seed_plans(session)
    await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
