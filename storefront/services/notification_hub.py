"""Live notification fan-out to connected clients.

The hub is a process-wide registry of live connections, indexed by
connection ID, user ID and role. Producers publish events with an audience
selector and never learn who, if anyone, received them. Delivery is
best-effort: there is no queue for missed events and no retry; clients
reconcile by re-fetching.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID

from pydantic import BaseModel

from storefront.schemas.events import serialize_event

logger = logging.getLogger(__name__)


class ConnectionClosedError(Exception):
    """Raised by a transport whose remote end is gone."""


class PushTransport(Protocol):
    """Per-connection write channel."""

    async def send(self, data: str) -> None:
        """Deliver one serialized event; raise if the connection is dead."""

    async def close(self) -> None:
        """Stop the connection; subsequent sends must fail."""


class QueueTransport:
    """Transport backed by a bounded queue drained by a streaming response.

    A full queue means the consumer stopped reading, which is treated the
    same as a disconnect.
    """

    def __init__(self, max_pending: int = 100) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=max_pending)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, data: str) -> None:
        if self._closed:
            raise ConnectionClosedError("Connection closed")
        try:
            self._queue.put_nowait(data)
        except asyncio.QueueFull as e:
            self._closed = True
            raise ConnectionClosedError("Consumer is not keeping up") from e

    async def close(self) -> None:
        self._closed = True
        # The reader must always see the end marker, even behind a full queue
        while True:
            try:
                self._queue.put_nowait(None)
                return
            except asyncio.QueueFull:
                self._queue.get_nowait()

    async def receive(self, timeout: float | None = None) -> str | None:
        """Wait for the next event.

        Returns:
            The serialized event, or None once the transport is closed.

        Raises:
            asyncio.TimeoutError: If nothing arrives within ``timeout``.
        """
        return await asyncio.wait_for(self._queue.get(), timeout)


@dataclass
class Connection:
    """One open live channel. Never persisted or reused."""

    transport: PushTransport
    user_id: UUID | None = None
    role: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationHub:
    """Registry of live connections with audience-based publishing."""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._by_user: dict[UUID, set[str]] = {}
        self._by_role: dict[str, set[str]] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def subscribe(self, connection: Connection) -> Connection:
        """Register a connection."""
        self._connections[connection.id] = connection
        if connection.user_id is not None:
            self._by_user.setdefault(connection.user_id, set()).add(connection.id)
        if connection.role:
            self._by_role.setdefault(connection.role, set()).add(connection.id)
        logger.info(
            "Live connection opened: %s (user: %s, role: %s)",
            connection.id,
            connection.user_id or "anonymous",
            connection.role,
        )
        return connection

    def unsubscribe(self, connection_id: str) -> bool:
        """Deregister a connection.

        Returns:
            True if the connection was registered.
        """
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return False

        if connection.user_id is not None:
            ids = self._by_user.get(connection.user_id)
            if ids is not None:
                ids.discard(connection_id)
                if not ids:
                    del self._by_user[connection.user_id]
        if connection.role:
            ids = self._by_role.get(connection.role)
            if ids is not None:
                ids.discard(connection_id)
                if not ids:
                    del self._by_role[connection.role]

        logger.info("Live connection closed: %s", connection_id)
        return True

    def _audience(
        self,
        to_users: Iterable[UUID | None],
        to_roles: Iterable[str],
        broadcast: bool,
    ) -> list[Connection]:
        if broadcast:
            return list(self._connections.values())

        matched: set[str] = set()
        for user_id in to_users:
            if user_id is not None:
                matched.update(self._by_user.get(user_id, ()))
        for role in to_roles:
            matched.update(self._by_role.get(role, ()))
        # Dict order is registration order
        return [conn for conn_id, conn in self._connections.items() if conn_id in matched]

    async def publish(
        self,
        event: BaseModel,
        *,
        to_users: Iterable[UUID | None] = (),
        to_roles: Iterable[str] = (),
        broadcast: bool = False,
    ) -> int:
        """Deliver an event to every matching connection.

        A connection matching several selectors receives the event once.
        Connections whose send fails are dropped from the registry.

        Args:
            event: One of the HubEvent models.
            to_users: User IDs to deliver to.
            to_roles: Roles to deliver to.
            broadcast: Deliver to every connection.

        Returns:
            int: Number of connections the event reached.
        """
        targets = self._audience(to_users, to_roles, broadcast)
        if not targets:
            return 0

        data = serialize_event(event)
        delivered = 0
        for connection in targets:
            if await self._deliver(connection, data):
                delivered += 1
        return delivered

    async def send_to(self, connection_id: str, event: BaseModel) -> bool:
        """Deliver an event to a single connection."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        return await self._deliver(connection, serialize_event(event))

    async def _deliver(self, connection: Connection, data: str) -> bool:
        try:
            await connection.transport.send(data)
            return True
        except Exception as e:
            logger.debug("Dropping live connection %s after failed send: %s", connection.id, e)
            self.unsubscribe(connection.id)
            return False

    async def shutdown(self) -> None:
        """Close every connection and empty the registry."""
        connections = list(self._connections.values())
        for connection in connections:
            try:
                await connection.transport.close()
            except Exception as e:
                logger.debug("Error closing live connection %s: %s", connection.id, e)
        self._connections.clear()
        self._by_user.clear()
        self._by_role.clear()
        logger.info("Notification hub closed %d live connections", len(connections))
