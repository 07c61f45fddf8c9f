"""In-process background loops: plan sync and provisioning retries."""

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hotspot_billing.core.config import Settings, settings as default_settings
from hotspot_billing.integrations.routeros_executor import RouterOSCommandExecutor
from hotspot_billing.integrations.routeros_session import RouterOSSessionManager
from hotspot_billing.services.plan_sync_service import PlanSyncReport, plan_sync_service
from hotspot_billing.services.provisioning_service import provisioning_service

logger = logging.getLogger(__name__)


class BackgroundScheduler:
    """Runs the periodic jobs as asyncio tasks next to the web app."""

    def __init__(
        self,
        manager: RouterOSSessionManager,
        executor: RouterOSCommandExecutor,
        session_factory: async_sessionmaker[AsyncSession],
        config: Settings = default_settings,
    ) -> None:
        self._manager = manager
        self._executor = executor
        self._session_factory = session_factory
        self._config = config
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def run_plan_sync_once(self) -> Optional[PlanSyncReport]:
        try:
            async with self._session_factory() as db:
                report = await plan_sync_service.sync_plans(db, self._manager, self._executor)
        except Exception:
            logger.exception("Plan sync run failed")
            return None
        if not report.aborted:
            logger.info(
                "Plan sync finished: %s created, %s existing, %s failed",
                len(report.created),
                len(report.existing),
                len(report.failed),
            )
        return report

    async def run_provisioning_retries_once(self) -> Optional[dict[str, int]]:
        try:
            async with self._session_factory() as db:
                counts = await provisioning_service.process_due_jobs(db, self._manager, self._executor)
        except Exception:
            logger.exception("Provisioning retry run failed")
            return None
        if any(counts.values()):
            logger.info("Provisioning retries: %s", counts)
        return counts

    async def _loop(self, name: str, interval: int, job: Callable[[], Awaitable[object]]) -> None:
        logger.info("Starting %s loop (every %ss)", name, interval)
        while True:
            await job()
            await asyncio.sleep(interval)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(
                self._loop("plan-sync", self._config.PLAN_SYNC_INTERVAL_SECONDS, self.run_plan_sync_once),
                name="plan-sync",
            ),
            asyncio.create_task(
                self._loop(
                    "provisioning-retry",
                    self._config.PROVISIONING_RETRY_INTERVAL_SECONDS,
                    self.run_provisioning_retries_once,
                ),
                name="provisioning-retry",
            ),
        ]

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
