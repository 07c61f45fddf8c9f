"""Keeps the router's hotspot user profiles in line with the active plans.

The plans table is the source of truth. Profiles missing on the router are
created; profiles that already exist are left alone, even if their attributes
have drifted.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from hotspot_billing.database.plan_repo import plan_repository
from hotspot_billing.integrations.routeros_executor import RouterOSCommandExecutor
from hotspot_billing.integrations.routeros_session import RouterOSSessionManager
from hotspot_billing.models.models import Plan
from hotspot_billing.utils.durations import to_routeros_duration

logger = logging.getLogger(__name__)

PROFILE_PRINT = "/ip/hotspot/user/profile/print"
PROFILE_ADD = "/ip/hotspot/user/profile/add"


@dataclass
class PlanSyncReport:
    """Outcome of one sync pass."""

    aborted: bool = False
    created: list[str] = field(default_factory=list)
    existing: list[str] = field(default_factory=list)
    skipped_plan_ids: list[int] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def build_profile_args(plan: Plan) -> list[str]:
    """API words for creating the profile that backs a plan."""
    args = [f"=name={plan.profile_name}"]
    if plan.rate_limit:
        args.append(f"=rate-limit={plan.rate_limit}")
    session_timeout = to_routeros_duration(plan.duration)
    if session_timeout:
        args.append(f"=session-timeout={session_timeout}")
    return args


class PlanSyncService:
    """Reconciles plans with hotspot user profiles on the router."""

    @staticmethod
    async def _profile_exists(executor: RouterOSCommandExecutor, session: Any, name: str) -> bool:
        items = await executor.execute(session, PROFILE_PRINT, [f"?name={name}"])
        return len(items) > 0

    @staticmethod
    async def sync_plans(
        db: AsyncSession,
        manager: RouterOSSessionManager,
        executor: RouterOSCommandExecutor,
    ) -> PlanSyncReport:
        """
        Ensure every active plan has a matching profile on the router.

        A failure on one plan is logged and the batch continues. Failing to reach the
        router at all aborts the pass; the scheduler retries on its next tick.
        This method never raises.

        Args:
            db: Database session
            manager: RouterOS session manager
            executor: RouterOS command executor

        Returns:
            PlanSyncReport describing what was created, skipped or failed
        """
        report = PlanSyncReport()
        try:
            await manager.ensure_connected()
            plans = await plan_repository.list_active_plans(db, order_by_price=False)
        except Exception as exc:
            logger.warning("Plan sync aborted: %s", exc)
            report.aborted = True
            return report

        for plan in plans:
            if not plan.profile_name:
                logger.info("Skipping plan id=%s because profile_name is empty", plan.id)
                report.skipped_plan_ids.append(plan.id)
                continue

            try:
                # the session may have been replaced after a transport error
                session = await manager.ensure_connected()
            except Exception as exc:
                logger.warning("Plan sync aborted at profile %s: %s", plan.profile_name, exc)
                report.aborted = True
                return report

            if await PlanSyncService._profile_exists(executor, session, plan.profile_name):
                logger.debug("Profile exists: %s", plan.profile_name)
                report.existing.append(plan.profile_name)
                continue

            args = build_profile_args(plan)
            try:
                await executor.write(session, PROFILE_ADD, args)
            except Exception as exc:
                logger.error("Error creating profile %s: %s", plan.profile_name, exc)
                report.failed.append(plan.profile_name)
                continue

            logger.info(
                "Created profile %s (%s, %s)",
                plan.profile_name,
                plan.rate_limit or "no rate-limit",
                to_routeros_duration(plan.duration) or "no session-timeout",
            )
            report.created.append(plan.profile_name)

        return report


plan_sync_service = PlanSyncService()
