from types import SimpleNamespace

from hotspot_billing.api.deps import get_routeros_executor, get_routeros_manager
from hotspot_billing.integrations.routeros_executor import RouterOSCommandExecutor
from hotspot_billing.integrations.routeros_session import RouterOSSessionManager


def _request(**state):
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(**state)))


def test_executor_from_app_state_is_reused(manager):
    executor = RouterOSCommandExecutor(manager)
    request = _request(routeros_manager=manager, routeros_executor=executor)

    assert get_routeros_manager(request) is manager
    assert get_routeros_executor(request, manager) is executor
    assert get_routeros_executor(request, manager) is executor


def test_executor_is_created_once_when_missing(manager):
    request = _request(routeros_manager=manager)

    first = get_routeros_executor(request, manager)

    assert first.manager is manager
    assert request.app.state.routeros_executor is first
    assert get_routeros_executor(request, manager) is first


def test_executor_follows_replaced_manager(manager):
    request = _request(routeros_manager=manager, routeros_executor=RouterOSCommandExecutor(manager))
    other = RouterOSSessionManager(connector=lambda: None)

    executor = get_routeros_executor(request, other)

    assert executor.manager is other
