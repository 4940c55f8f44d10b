"""Server-sent event stream of live order and driver events."""

import asyncio
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from storefront.api.deps import HubDep, OptionalUser
from storefront.core.config import get_settings
from storefront.schemas.auth import UserContext
from storefront.schemas.events import ConnectedEvent, ConnectedPayload
from storefront.services.notification_hub import Connection, NotificationHub, QueueTransport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

HEARTBEAT_FRAME = ":heartbeat\n\n"


async def event_stream(
    request: Request,
    hub: NotificationHub,
    user: UserContext | None,
    heartbeat_seconds: float,
    queue_size: int = 100,
) -> AsyncIterator[str]:
    """Register a live connection and yield SSE frames until it ends.

    The stream ends when the client disconnects or the hub closes the
    transport at shutdown. The connection is always deregistered.
    """
    transport = QueueTransport(queue_size)
    connection = hub.subscribe(
        Connection(
            transport=transport,
            user_id=user.user_id if user else None,
            role=user.role if user else None,
        )
    )
    try:
        await hub.send_to(connection.id, ConnectedEvent(payload=ConnectedPayload(connection_id=connection.id)))
        while True:
            if await request.is_disconnected():
                break
            try:
                data = await transport.receive(timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                yield HEARTBEAT_FRAME
                continue
            if data is None:
                break
            yield f"data: {data}\n\n"
    finally:
        hub.unsubscribe(connection.id)
        await transport.close()


@router.get(
    "",
    summary="Live event stream",
    description=(
        "Server-sent events for order and driver updates. Authenticate with a bearer "
        "header or a token query parameter; anonymous clients only receive broadcasts."
    ),
    response_class=StreamingResponse,
)
async def stream_events(request: Request, user: OptionalUser, hub: HubDep) -> StreamingResponse:
    settings = get_settings()
    return StreamingResponse(
        event_stream(request, hub, user, settings.sse_heartbeat_seconds, settings.sse_queue_size),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
