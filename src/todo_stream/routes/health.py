"""Health check endpoints for liveness and readiness probes."""
import asyncio
from typing import Literal

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from todo_stream.events.bus import MutationBus
from todo_stream.store import StoreError, TodoStore

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    """Response model for liveness probe.

    Attributes:
        status: Always 'alive' when process is running.
    """

    status: Literal["alive"]


class ReadinessCheck(BaseModel):
    """Individual dependency check result.

    Attributes:
        name: Identifier for the dependency being checked.
        status: Result of the check ('ok' or 'failed').
        message: Error details when status is 'failed'.
    """

    name: str
    status: Literal["ok", "failed"]
    message: str | None = None


class ReadinessResponse(BaseModel):
    """Response model for readiness probe.

    Attributes:
        status: Overall readiness ('ready' or 'not_ready').
        checks: List of individual dependency check results.
        subscribers: Live stream subscriptions on the mutation bus.
    """

    status: Literal["ready", "not_ready"]
    checks: list[ReadinessCheck]
    subscribers: int


async def _check_store(store: TodoStore) -> ReadinessCheck:
    """Verify the todo database answers a trivial query."""
    try:
        await asyncio.to_thread(store.ping)
        return ReadinessCheck(name="store", status="ok")
    except StoreError as e:
        return ReadinessCheck(name="store", status="failed", message=str(e))


def _check_bus(bus: MutationBus) -> ReadinessCheck:
    """Verify the mutation bus still accepts mutations."""
    if bus.is_closed:
        return ReadinessCheck(name="mutation_bus", status="failed", message="closed")
    return ReadinessCheck(name="mutation_bus", status="ok")


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe endpoint.

    Returns immediate success if the process is running.
    """
    return LivenessResponse(status="alive")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    """Readiness probe endpoint.

    Returns 200 if the store and mutation bus are usable, 503 otherwise.
    """
    bus: MutationBus = request.app.state.mutation_bus
    checks = [
        await _check_store(request.app.state.store),
        _check_bus(bus),
    ]
    all_ok = all(c.status == "ok" for c in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        checks=checks,
        subscribers=bus.subscriber_count,
    )
    code = status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=code)
