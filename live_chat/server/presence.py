"""Presence registry: which users hold a live push connection right now."""
from __future__ import annotations

import asyncio
import enum
import threading
from typing import Any, Dict, List, Optional

from .logging_config import configure_logging

logger = configure_logging()

ONLINE_USERS_EVENT = "online_users"


class ConnectionState(str, enum.Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class Connection:
    """A user's push channel with a one-way CONNECTED -> DISCONNECTED lifecycle.

    ``socket`` is anything with an awaitable ``send_json`` (a Starlette
    ``WebSocket`` in production).
    """

    def __init__(self, user_id: int, socket: Any):
        self.user_id = user_id
        self.socket = socket
        self.state = ConnectionState.CONNECTED

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def mark_disconnected(self) -> None:
        self.state = ConnectionState.DISCONNECTED

    async def push(self, event: str, data: Any) -> bool:
        """Send one event frame; failures are logged and swallowed."""
        if not self.is_connected:
            return False
        try:
            await self.socket.send_json({"event": event, "data": data})
        except Exception as exc:  # noqa: BLE001
            self.mark_disconnected()
            logger.warning("PUSH_FAILED user_id=%s event=%s error=%s", self.user_id, event, exc)
            return False
        return True

    def __repr__(self) -> str:
        return f"Connection(user_id={self.user_id!r}, state={self.state.value})"


class PresenceRegistry:
    """Maps user ids to their single live connection (last write wins).

    The lock only guards the dict itself and is never held across an await:
    sync route handlers read snapshots from the threadpool while the event
    loop registers and unregisters sockets.
    """

    def __init__(self) -> None:
        self._connections: Dict[int, Connection] = {}
        self._lock = threading.Lock()

    def lookup(self, user_id: int) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(user_id)

    def online_user_ids(self) -> List[int]:
        with self._lock:
            return list(self._connections)

    def is_online(self, user_id: int) -> bool:
        return self.lookup(user_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    async def register(self, user_id: int, connection: Connection) -> Optional[Connection]:
        """Install ``connection`` for ``user_id``, returning the one it replaced."""
        with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = connection
        if previous is not None and previous is not connection:
            logger.info("PRESENCE_REPLACED user_id=%s", user_id)
        else:
            logger.info("PRESENCE_REGISTER user_id=%s", user_id)
        await self.broadcast_online_users()
        return previous

    async def unregister(self, user_id: int, connection: Connection) -> bool:
        """Drop the entry only if ``connection`` is still the one on record."""
        with self._lock:
            current = self._connections.get(user_id)
            if current is not connection:
                removed = False
            else:
                del self._connections[user_id]
                removed = True
        if not removed:
            logger.info("PRESENCE_STALE_DISCONNECT user_id=%s", user_id)
            return False
        logger.info("PRESENCE_UNREGISTER user_id=%s", user_id)
        await self.broadcast_online_users()
        return True

    async def broadcast(self, event: str, data: Any) -> int:
        with self._lock:
            connections = list(self._connections.values())
        if not connections:
            return 0
        results = await asyncio.gather(*(connection.push(event, data) for connection in connections))
        return sum(1 for delivered in results if delivered)

    async def broadcast_online_users(self) -> int:
        return await self.broadcast(ONLINE_USERS_EVENT, self.online_user_ids())
