"""Provisioning outbox repository for database operations."""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hotspot_billing.models.enums import ProvisioningJobStatus
from hotspot_billing.models.models import ProvisioningJob


class ProvisioningJobRepository:
    """Repository for provisioning retry jobs."""

    @staticmethod
    async def get_open_job(db: AsyncSession, phone_number: str) -> Optional[ProvisioningJob]:
        """
        Fetch the pending job for a phone number, if any.

        Args:
            db: Database session
            phone_number: Phone number of the hotspot user

        Returns:
            ProvisioningJob object or None
        """
        result = await db.execute(
            select(ProvisioningJob)
            .where(
                ProvisioningJob.phone_number == phone_number,
                ProvisioningJob.status == ProvisioningJobStatus.PENDING,
            )
            .order_by(ProvisioningJob.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_due_jobs(db: AsyncSession, now: datetime, limit: int) -> list[ProvisioningJob]:
        """
        Fetch pending jobs whose next attempt time has passed, oldest first.

        Args:
            db: Database session
            now: Current time
            limit: Maximum number of jobs to return

        Returns:
            List of ProvisioningJob objects
        """
        result = await db.execute(
            select(ProvisioningJob)
            .where(
                ProvisioningJob.status == ProvisioningJobStatus.PENDING,
                ProvisioningJob.next_attempt_at <= now,
            )
            .order_by(ProvisioningJob.next_attempt_at.asc(), ProvisioningJob.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def save(db: AsyncSession, job: ProvisioningJob) -> ProvisioningJob:
        """
        Insert or update a job and commit.

        Args:
            db: Database session
            job: ProvisioningJob to persist

        Returns:
            The persisted ProvisioningJob
        """
        db.add(job)
        await db.commit()
        await db.refresh(job)
        return job


provisioning_job_repository = ProvisioningJobRepository()
