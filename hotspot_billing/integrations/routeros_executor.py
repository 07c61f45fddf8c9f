"""Raw command execution against the RouterOS API.

Depending on the client, a reply arrives as a lazy generator of sentences, a
list of records, or a single record. ``normalize_reply`` is the one place that
turns any of those into a plain list of dicts.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Sequence

from librouteros.exceptions import ConnectionClosed, FatalError, MultiTrapError, ProtocolError, TrapError

from hotspot_billing.integrations.routeros_session import RouterOSSessionManager
from hotspot_billing.utils.exceptions import ControllerCommandError

logger = logging.getLogger(__name__)

Record = dict[str, Any]

# !trap replies. librouteros derives these from ProtocolError, yet the socket stays usable.
TRAP_ERRORS = (TrapError, MultiTrapError)

# Errors that mean the socket itself is unusable.
TRANSPORT_ERRORS = (ConnectionClosed, FatalError, ProtocolError, OSError)


def normalize_reply(reply: Any) -> list[Record]:
    """Flatten any supported reply shape into an ordered list of records."""
    if reply is None:
        return []
    if isinstance(reply, Mapping):
        return [dict(reply)]
    if isinstance(reply, (str, bytes)):
        raise TypeError(f"Unexpected RouterOS reply of type {type(reply).__name__}")
    if isinstance(reply, Iterable):
        records: list[Record] = []
        for item in reply:
            if item is None:
                continue
            if not isinstance(item, Mapping):
                raise TypeError(f"Unexpected RouterOS record of type {type(item).__name__}")
            records.append(dict(item))
        return records
    raise TypeError(f"Unexpected RouterOS reply of type {type(reply).__name__}")


class RouterOSCommandExecutor:
    """Issues print/add/remove commands through the session manager."""

    def __init__(self, manager: RouterOSSessionManager) -> None:
        self._manager = manager

    @property
    def manager(self) -> RouterOSSessionManager:
        return self._manager

    async def _call(self, session: Any, command: str, args: Sequence[str]) -> list[Record]:
        def _send() -> list[Record]:
            # rawCmd is lazy; the reply must be consumed inside the worker thread
            return normalize_reply(session.rawCmd(command, *args))

        try:
            return await self._manager.run(_send)
        except TRAP_ERRORS:
            raise
        except TRANSPORT_ERRORS as exc:
            self._manager.invalidate(session, reason=f"{command}: {exc}")
            raise

    async def execute(self, session: Any, command: str, args: Sequence[str] = ()) -> list[Record]:
        """Run a read command.

        Failures are logged and reported as an empty result, so an empty list does
        not prove that nothing matched.
        """
        try:
            return await self._call(session, command, args)
        except Exception as exc:
            logger.warning("RouterOS command %s failed: %s", command, exc)
            return []

    async def write(self, session: Any, command: str, args: Sequence[str] = ()) -> list[Record]:
        """Run a command whose failure the caller must see.

        Raises:
            ControllerCommandError: If the router rejected the command or the session broke
        """
        try:
            return await self._call(session, command, args)
        except Exception as exc:
            raise ControllerCommandError(f"RouterOS command {command} failed", details=str(exc)) from exc
