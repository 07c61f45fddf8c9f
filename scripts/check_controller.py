"""Check that the configured MikroTik router accepts an API login."""

import asyncio
import sys

from hotspot_billing.core.config import settings
from hotspot_billing.integrations.routeros_executor import RouterOSCommandExecutor
from hotspot_billing.integrations.routeros_session import RouterOSSessionManager
from hotspot_billing.utils.exceptions import ControllerUnavailableError


async def main() -> int:
    manager = RouterOSSessionManager()
    try:
        session = await manager.ensure_connected()
    except ControllerUnavailableError as exc:
        print(f"❌ Connection to {settings.MIKROTIK_HOST}:{settings.MIKROTIK_PORT} failed: {exc.details}")
        return 1

    identity = await RouterOSCommandExecutor(manager).execute(session, "/system/identity/print")
    name = identity[0].get("name") if identity else "unknown"
    print(f"✅ Connected to {settings.MIKROTIK_HOST} (identity: {name})")
    await manager.close()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
