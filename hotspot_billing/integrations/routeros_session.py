"""Process-wide session to the MikroTik RouterOS API.

librouteros is blocking and emits no error events, so a broken socket is only
noticed when a call on it fails. The command executor reports such failures
through ``invalidate``; ``!trap`` replies do not count. After that the next
``ensure_connected`` opens a fresh connection.
"""

import asyncio
import enum
import logging
import ssl
from functools import partial
from typing import Any, Callable, Optional, TypeVar

from librouteros import connect

from hotspot_billing.core.config import Settings, settings as default_settings
from hotspot_billing.utils.exceptions import ControllerUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def open_routeros_api(config: Settings) -> Any:
    """Open a blocking librouteros API connection using the configured parameters."""
    kwargs: dict[str, Any] = {
        "host": config.MIKROTIK_HOST,
        "username": config.MIKROTIK_USER,
        "password": config.MIKROTIK_PASS,
        "port": config.MIKROTIK_PORT,
        "timeout": config.MIKROTIK_TIMEOUT,
    }
    if config.MIKROTIK_SSL:
        # api-ssl on RouterOS normally runs with a self-signed certificate
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        kwargs["ssl_wrapper"] = context.wrap_socket
    return connect(**kwargs)


class RouterOSSessionManager:
    """Owns the single lazily established RouterOS API handle."""

    def __init__(
        self,
        config: Settings = default_settings,
        connector: Optional[Callable[[], Any]] = None,
    ) -> None:
        self._host = config.MIKROTIK_HOST
        self._connector = connector or partial(open_routeros_api, config)
        self._api: Optional[Any] = None
        self._state = SessionState.DISCONNECTED
        self._connect_lock = asyncio.Lock()
        self._io_lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._api is not None

    async def ensure_connected(self) -> Any:
        """Return the live API handle, connecting first if none is held.

        Concurrent callers wait on the same connection attempt.

        Raises:
            ControllerUnavailableError: If the connection could not be established
        """
        if self._api is not None:
            return self._api

        async with self._connect_lock:
            if self._api is not None:
                return self._api

            self._state = SessionState.CONNECTING
            try:
                api = await asyncio.to_thread(self._connector)
            except Exception as exc:
                logger.error("RouterOS connect to %s failed: %s", self._host, exc)
                raise ControllerUnavailableError(
                    f"Could not connect to router {self._host}", details=str(exc)
                ) from exc
            finally:
                if self._api is None and self._state is SessionState.CONNECTING:
                    self._state = SessionState.DISCONNECTED

            self._api = api
            self._state = SessionState.CONNECTED
            logger.info("Connected to RouterOS %s", self._host)
            return api

    def invalidate(self, api: Optional[Any] = None, reason: Optional[str] = None) -> None:
        """Drop the held handle so the next caller reconnects.

        When ``api`` is given and a newer handle has already replaced it, nothing happens.
        """
        if self._api is None:
            return
        if api is not None and api is not self._api:
            return
        stale = self._api
        self._api = None
        self._state = SessionState.DISCONNECTED
        logger.warning("RouterOS session invalidated: %s", reason or "transport error")
        self._close_quietly(stale)

    async def run(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a blocking call in a worker thread, one router call at a time."""
        async with self._io_lock:
            return await asyncio.to_thread(fn, *args)

    async def close(self) -> None:
        """Best-effort teardown. Never raises."""
        stale = self._api
        self._api = None
        self._state = SessionState.DISCONNECTED
        if stale is not None:
            self._close_quietly(stale)
            logger.info("RouterOS connection closed")

    @staticmethod
    def _close_quietly(api: Any) -> None:
        try:
            api.close()
        except Exception as exc:
            logger.debug("Ignoring error while closing RouterOS connection: %s", exc)
