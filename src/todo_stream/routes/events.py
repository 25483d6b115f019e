"""SSE streaming endpoint for live todo mutations."""

from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter, HTTPException, Request, status
from sse_starlette.sse import EventSourceResponse
from starlette.background import BackgroundTask

from todo_stream.events.bus import BusClosedError
from todo_stream.events.session import StreamSession
from todo_stream.rendering import render_todo

if TYPE_CHECKING:
    from todo_stream.config import Settings
    from todo_stream.events.bus import MutationBus
    from todo_stream.lifecycle import GracefulShutdown

logger = structlog.get_logger()

router = APIRouter(prefix="/todos", tags=["events"])


@router.get("/stream")
async def todos_stream(request: Request) -> EventSourceResponse:
    """Stream todo mutations via Server-Sent Events.

    Each connection gets its own stream session: a ``ping`` on connect,
    then ``create``, ``update-<id>`` and ``delete`` events for every write
    made after the connection opened, plus a ``ping`` event every
    keep-alive period.

    Args:
        request: FastAPI request object.

    Returns:
        SSE response stream with mutation events and pings.

    Raises:
        HTTPException: 503 if the service is shutting down.
    """
    settings: Settings = request.app.state.settings
    bus: MutationBus = request.app.state.mutation_bus
    shutdown: GracefulShutdown = request.app.state.shutdown

    try:
        session = StreamSession(
            bus,
            render=render_todo,
            shutdown=shutdown,
            keepalive_period=settings.keepalive_period,
        )
    except BusClosedError as e:
        logger.warning("stream_rejected", reason="bus_closed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is shutting down",
        ) from e

    return EventSourceResponse(
        session.events(),
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
        background=BackgroundTask(session.aclose),
    )
