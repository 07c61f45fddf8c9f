"""FastAPI dependencies for database sessions, the router and the payment gateway."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hotspot_billing.core.db import get_db
from hotspot_billing.integrations.mpesa_client import MpesaClient, get_mpesa_client
from hotspot_billing.integrations.routeros_executor import RouterOSCommandExecutor
from hotspot_billing.integrations.routeros_session import RouterOSSessionManager


def get_routeros_manager(request: Request) -> RouterOSSessionManager:
    """The app-wide RouterOS session manager created at startup."""
    manager = getattr(request.app.state, "routeros_manager", None)
    if manager is None:
        manager = RouterOSSessionManager()
        request.app.state.routeros_manager = manager
    return manager


def get_routeros_executor(
    request: Request,
    manager: Annotated[RouterOSSessionManager, Depends(get_routeros_manager)],
) -> RouterOSCommandExecutor:
    """The app-wide executor, rebuilt if it is bound to another manager."""
    executor = getattr(request.app.state, "routeros_executor", None)
    if executor is None or executor.manager is not manager:
        executor = RouterOSCommandExecutor(manager)
        request.app.state.routeros_executor = executor
    return executor


# Convenience type aliases
DB = Annotated[AsyncSession, Depends(get_db)]
RouterManager = Annotated[RouterOSSessionManager, Depends(get_routeros_manager)]
RouterExecutor = Annotated[RouterOSCommandExecutor, Depends(get_routeros_executor)]
PaymentGateway = Annotated[MpesaClient, Depends(get_mpesa_client)]
