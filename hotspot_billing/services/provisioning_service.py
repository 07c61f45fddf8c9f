"""Hotspot user provisioning on the router, with a retry outbox.

Provisioning always removes the hotspot user and adds it again instead of
editing it in place. When the add fails after a payment has been recorded, the
work is parked in ``provisioning_jobs`` and retried with exponential backoff.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hotspot_billing.core.config import settings
from hotspot_billing.database.provisioning_repo import provisioning_job_repository
from hotspot_billing.database.user_repo import user_repository
from hotspot_billing.integrations.routeros_executor import RouterOSCommandExecutor
from hotspot_billing.integrations.routeros_session import RouterOSSessionManager
from hotspot_billing.models.enums import ProvisioningJobStatus
from hotspot_billing.models.models import ProvisioningJob
from hotspot_billing.utils.clock import utc_now
from hotspot_billing.utils.exceptions import ControllerUnavailableError

logger = logging.getLogger(__name__)

USER_REMOVE = "/ip/hotspot/user/remove"
USER_ADD = "/ip/hotspot/user/add"


def compute_backoff(attempts: int) -> timedelta:
    """Exponential backoff with floor 30s and cap 1 hour."""
    seconds = min(max(30, 2 ** attempts), 3600)
    return timedelta(seconds=seconds)


class ProvisioningService:
    """Creates hotspot users on the router and retries failed creations."""

    @staticmethod
    async def provision(
        manager: RouterOSSessionManager,
        executor: RouterOSCommandExecutor,
        phone: str,
        profile_name: Optional[str] = None,
    ) -> None:
        """
        Replace the hotspot user named after a phone number.

        The remove step is allowed to fail (the user usually does not exist on a
        first purchase). Failure to connect or to add the user propagates.

        Args:
            manager: RouterOS session manager
            executor: RouterOS command executor
            phone: Phone number, used as both login name and password
            profile_name: Hotspot user profile to bind, if any

        Raises:
            ControllerUnavailableError: If the router cannot be reached
            ControllerCommandError: If the add command fails
        """
        session = await manager.ensure_connected()

        try:
            await executor.write(session, USER_REMOVE, [f"?name={phone}"])
        except Exception as exc:
            logger.debug("Ignoring remove failure for hotspot user %s: %s", phone, exc)
            # a transport error during remove leaves us with a new session to use
            session = await manager.ensure_connected()

        args = [f"=name={phone}", f"=password={phone}"]
        if profile_name:
            args.append(f"=profile={profile_name}")

        await executor.write(session, USER_ADD, args)
        logger.info("Added hotspot user %s with profile %s", phone, profile_name or "(none)")

    @staticmethod
    async def enqueue_retry(
        db: AsyncSession,
        phone: str,
        profile_name: Optional[str],
        transaction_id: Optional[int],
        error: str,
        now: Optional[datetime] = None,
    ) -> ProvisioningJob:
        """
        Record a failed provisioning so it is retried later.

        A phone number has at most one pending job; a newer failure refreshes it
        with the latest profile and error.

        Args:
            db: Database session
            phone: Phone number of the hotspot user
            profile_name: Profile the user should be bound to
            transaction_id: Transaction that paid for the access
            error: Description of the failure
            now: Current time (defaults to UTC now)

        Returns:
            The pending ProvisioningJob
        """
        ts = now or utc_now()
        job = await provisioning_job_repository.get_open_job(db, phone)
        if job is None:
            job = ProvisioningJob(
                phone_number=phone,
                status=ProvisioningJobStatus.PENDING,
                attempts=0,
            )
        job.profile_name = profile_name
        job.transaction_id = transaction_id
        job.last_error = error
        job.next_attempt_at = ts + compute_backoff(job.attempts or 0)
        job = await provisioning_job_repository.save(db, job)
        logger.warning(
            "Queued provisioning retry for %s (job %s, next attempt %s)",
            phone,
            job.id,
            job.next_attempt_at.isoformat(),
        )
        return job

    @staticmethod
    async def resolve_open_job(db: AsyncSession, phone: str) -> Optional[ProvisioningJob]:
        """Mark the pending job for a phone done after it was provisioned another way."""
        job = await provisioning_job_repository.get_open_job(db, phone)
        if job is None:
            return None
        job.status = ProvisioningJobStatus.DONE
        job.last_error = None
        logger.info("Provisioning retry job %s for %s superseded", job.id, phone)
        return await provisioning_job_repository.save(db, job)

    @staticmethod
    async def process_due_jobs(
        db: AsyncSession,
        manager: RouterOSSessionManager,
        executor: RouterOSCommandExecutor,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ) -> dict[str, int]:
        """
        Retry due provisioning jobs. Never raises.

        If the router is unreachable the batch stops without consuming attempts.

        Args:
            db: Database session
            manager: RouterOS session manager
            executor: RouterOS command executor
            now: Current time (defaults to UTC now)
            limit: Maximum jobs to process (defaults to PROVISIONING_RETRY_BATCH)
            max_attempts: Attempts before a job is marked dead

        Returns:
            Counts of jobs that succeeded, were rescheduled, or were given up
        """
        ts = now or utc_now()
        batch = limit or settings.PROVISIONING_RETRY_BATCH
        ceiling = max_attempts or settings.PROVISIONING_MAX_ATTEMPTS
        counts = {"done": 0, "rescheduled": 0, "dead": 0}

        try:
            jobs = await provisioning_job_repository.list_due_jobs(db, ts, batch)
        except Exception:
            logger.exception("Could not load provisioning jobs")
            return counts

        for job in jobs:
            # the users row is authoritative; a later purchase may have changed the profile
            try:
                user = await user_repository.get_by_phone(db, job.phone_number)
            except Exception:
                logger.exception("Could not load hotspot user %s", job.phone_number)
                break
            profile_name = user.profile_name if user is not None else job.profile_name

            try:
                await ProvisioningService.provision(manager, executor, job.phone_number, profile_name)
            except ControllerUnavailableError as exc:
                logger.warning("Router unreachable, postponing provisioning retries: %s", exc)
                break
            except Exception as exc:
                job.attempts = (job.attempts or 0) + 1
                job.last_error = str(exc)
                if job.attempts >= ceiling:
                    job.status = ProvisioningJobStatus.DEAD
                    counts["dead"] += 1
                    logger.error(
                        "Giving up provisioning %s after %s attempts: %s",
                        job.phone_number,
                        job.attempts,
                        exc,
                    )
                else:
                    job.next_attempt_at = ts + compute_backoff(job.attempts)
                    counts["rescheduled"] += 1
            else:
                job.status = ProvisioningJobStatus.DONE
                job.last_error = None
                counts["done"] += 1

            try:
                await provisioning_job_repository.save(db, job)
            except Exception:
                logger.exception("Could not update provisioning job %s", job.id)
                await db.rollback()

        return counts


provisioning_service = ProvisioningService()
