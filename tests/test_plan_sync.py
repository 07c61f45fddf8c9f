from datetime import timedelta

from librouteros.exceptions import ConnectionClosed, TrapError

from hotspot_billing.integrations.routeros_executor import RouterOSCommandExecutor
from hotspot_billing.integrations.routeros_session import RouterOSSessionManager
from hotspot_billing.services.plan_sync_service import PROFILE_ADD, build_profile_args, plan_sync_service
from hotspot_billing.models import Plan
from tests.conftest import FakeRouterOSApi, add_plan


class FlakyRouterOSApi(FakeRouterOSApi):
    """Fails the profile add for selected names, once per name."""

    def __init__(self, failures_by_name):
        super().__init__()
        self.failures_by_name = dict(failures_by_name)

    def rawCmd(self, command, *words):
        if command == PROFILE_ADD:
            for word in words:
                if word.startswith("=name="):
                    exc = self.failures_by_name.pop(word[len("=name="):], None)
                    if exc is not None:
                        self.calls.append((command, words))
                        raise exc
        return super().rawCmd(command, *words)


def test_build_profile_args():
    plan = Plan(price=50, duration=timedelta(days=1), profile_name="1day", rate_limit="2M/2M")
    assert build_profile_args(plan) == ["=name=1day", "=rate-limit=2M/2M", "=session-timeout=1d"]

    bare = Plan(price=10, duration=timedelta(hours=1), profile_name="1hour", rate_limit=None)
    assert build_profile_args(bare) == ["=name=1hour", "=session-timeout=1h"]


async def test_sync_creates_missing_profiles_once(db, manager, executor, fake_api):
    await add_plan(db, 50, timedelta(days=1), "1day", rate_limit="2M/2M")
    await add_plan(db, 10, timedelta(hours=1), "1hour")

    first = await plan_sync_service.sync_plans(db, manager, executor)
    second = await plan_sync_service.sync_plans(db, manager, executor)

    assert not first.aborted
    assert sorted(first.created) == ["1day", "1hour"]
    assert second.created == []
    assert sorted(second.existing) == ["1day", "1hour"]
    assert len(fake_api.commands(PROFILE_ADD)) == 2
    assert fake_api.profiles["1day"] == {"name": "1day", "rate-limit": "2M/2M", "session-timeout": "1d"}
    assert fake_api.profiles["1hour"] == {"name": "1hour", "session-timeout": "1h"}


async def test_sync_skips_plans_without_profile_and_inactive_plans(db, manager, executor, fake_api):
    blank = await add_plan(db, 5, timedelta(minutes=30), None)
    await add_plan(db, 20, timedelta(hours=2), "retired", active=False)
    await add_plan(db, 10, timedelta(hours=1), "1hour")

    report = await plan_sync_service.sync_plans(db, manager, executor)

    assert report.skipped_plan_ids == [blank.id]
    assert report.created == ["1hour"]
    assert set(fake_api.profiles) == {"1hour"}


async def test_sync_leaves_existing_profile_untouched(db, manager, executor, fake_api):
    fake_api.profiles["1hour"] = {"name": "1hour", "rate-limit": "1M/1M"}
    await add_plan(db, 10, timedelta(hours=1), "1hour", rate_limit="5M/5M")

    report = await plan_sync_service.sync_plans(db, manager, executor)

    assert report.existing == ["1hour"]
    assert fake_api.profiles["1hour"]["rate-limit"] == "1M/1M"


async def test_one_failing_profile_does_not_stop_the_batch(db):
    api = FlakyRouterOSApi({"1day": TrapError("invalid value for argument rate-limit")})
    manager = RouterOSSessionManager(connector=lambda: api)
    executor = RouterOSCommandExecutor(manager)
    await add_plan(db, 50, timedelta(days=1), "1day", rate_limit="bogus")
    await add_plan(db, 10, timedelta(hours=1), "1hour")

    report = await plan_sync_service.sync_plans(db, manager, executor)

    assert report.failed == ["1day"]
    assert report.created == ["1hour"]
    assert set(api.profiles) == {"1hour"}


async def test_sync_reconnects_after_transport_error(db):
    api = FlakyRouterOSApi({"1day": ConnectionClosed("socket closed")})
    connects = []

    def connector():
        connects.append(1)
        return api

    manager = RouterOSSessionManager(connector=connector)
    executor = RouterOSCommandExecutor(manager)
    await add_plan(db, 50, timedelta(days=1), "1day")
    await add_plan(db, 10, timedelta(hours=1), "1hour")

    report = await plan_sync_service.sync_plans(db, manager, executor)

    assert report.failed == ["1day"]
    assert report.created == ["1hour"]
    assert len(connects) == 2


async def test_sync_aborts_when_router_unreachable(db):
    def connector():
        raise OSError("no route to host")

    manager = RouterOSSessionManager(connector=connector)
    executor = RouterOSCommandExecutor(manager)
    await add_plan(db, 10, timedelta(hours=1), "1hour")

    report = await plan_sync_service.sync_plans(db, manager, executor)

    assert report.aborted
    assert report.created == []
