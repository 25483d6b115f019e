"""Per-connection live update stream."""

import asyncio
import contextlib
import json
import weakref
from collections.abc import AsyncIterator, Callable
from enum import Enum

import structlog
from sse_starlette import ServerSentEvent

from todo_stream.events.bus import (
    BusClosedError,
    MutationBus,
    Subscription,
    SubscriptionLagged,
)
from todo_stream.events.types import (
    CreateMutation,
    DeleteMutation,
    TodoMutation,
    UpdateMutation,
)
from todo_stream.lifecycle import GracefulShutdown
from todo_stream.store.schemas import Todo

logger = structlog.get_logger()

PING_DATA = json.dumps("ping")


class SessionState(str, Enum):
    """Lifecycle states of a stream session."""

    IDLE = "idle"
    EMITTING = "emitting"
    CLOSED = "closed"


def format_mutation(
    mutation: TodoMutation,
    render: Callable[[Todo], str],
) -> ServerSentEvent:
    """Convert a mutation into its wire event.

    Args:
        mutation: Mutation received from the bus.
        render: Renders a todo into its HTML fragment.

    Returns:
        Server-sent event tagged with the mutation kind and todo id.
    """
    match mutation:
        case CreateMutation(todo=todo):
            return ServerSentEvent(data=render(todo), id=str(todo.id), event="create")
        case UpdateMutation(todo=todo):
            return ServerSentEvent(
                data=render(todo), id=str(todo.id), event=f"update-{todo.id}"
            )
        case DeleteMutation(todo_id=todo_id):
            return ServerSentEvent(data=str(todo_id), id=str(todo_id), event="delete")
    raise TypeError(f"unknown mutation: {mutation!r}")


def ping_event() -> ServerSentEvent:
    """Keep-alive event sent when the timer fires."""
    return ServerSentEvent(data=PING_DATA, event="ping")


class StreamSession:
    """Live update feed for one connected client.

    Subscribes to the mutation bus on construction, so mutations published
    between construction and the first iteration are not missed. The
    subscription is released when the event generator finishes, when
    :meth:`close` is called, or when the session is garbage collected,
    whichever comes first. The event
    generator waits on the subscription, the keep-alive timer and the
    shutdown signal at once and resumes on whichever is ready first.

    Attributes:
        state: Current lifecycle state.
        lagged_events: Mutations this session missed because it fell behind.
    """

    def __init__(
        self,
        bus: MutationBus,
        render: Callable[[Todo], str],
        shutdown: GracefulShutdown,
        keepalive_period: float = 5.0,
    ) -> None:
        """Initialize stream session.

        Args:
            bus: Mutation bus to subscribe to.
            render: Renders a todo into its HTML fragment.
            shutdown: Process shutdown signal.
            keepalive_period: Seconds between ping events.

        Raises:
            BusClosedError: If the bus is already closed.
        """
        if keepalive_period <= 0:
            raise ValueError("keepalive_period must be positive")
        self._subscription: Subscription = bus.subscribe()
        # Releases the subscription even if events() is never iterated.
        self._finalizer = weakref.finalize(self, self._subscription.close)
        self._render = render
        self._shutdown = shutdown
        self._keepalive_period = keepalive_period
        self.state = SessionState.IDLE
        self.lagged_events = 0

    @property
    def subscriber_id(self) -> str:
        return self._subscription.id

    def close(self) -> None:
        """Release the subscription. Idempotent."""
        self.state = SessionState.CLOSED
        self._finalizer()

    async def aclose(self) -> None:
        """Release the subscription from the event loop thread.

        Coroutine form of :meth:`close` for response background tasks, which
        would otherwise run a plain callable in a worker thread.
        """
        self.close()

    async def events(self) -> AsyncIterator[ServerSentEvent]:
        """Yield wire events until shutdown or client disconnect.

        Yields:
            A ping on connect, then mutation events in bus order
            interleaved with pings.
        """
        loop = asyncio.get_running_loop()
        period = self._keepalive_period

        stop_task = asyncio.ensure_future(self._shutdown.wait_for_trigger())
        recv_task: asyncio.Future[TodoMutation] | None = None
        receiving = True

        logger.info("stream_session_started", subscriber_id=self.subscriber_id)

        try:
            if not self._shutdown.is_triggered:
                # First tick fires on connect, which also flushes headers
                # through buffering proxies.
                yield ping_event()
            next_tick = loop.time() + period

            while not self._shutdown.is_triggered:
                waiters: set[asyncio.Future[object]] = {stop_task}
                if receiving:
                    if recv_task is None:
                        recv_task = asyncio.ensure_future(self._subscription.recv())
                    waiters.add(recv_task)

                timeout = max(0.0, next_tick - loop.time())
                done, _ = await asyncio.wait(
                    waiters,
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if self._shutdown.is_triggered:
                    break

                if recv_task is not None and recv_task in done:
                    finished, recv_task = recv_task, None
                    try:
                        mutation = finished.result()
                    except SubscriptionLagged as e:
                        self.lagged_events += e.missed
                        logger.warning(
                            "stream_lagged",
                            subscriber_id=self.subscriber_id,
                            missed=e.missed,
                            total_missed=self.lagged_events,
                        )
                    except BusClosedError:
                        receiving = False
                        logger.info(
                            "stream_bus_closed",
                            subscriber_id=self.subscriber_id,
                        )
                    else:
                        self.state = SessionState.EMITTING
                        yield format_mutation(mutation, self._render)
                        self.state = SessionState.IDLE

                if self._shutdown.is_triggered:
                    break
                now = loop.time()
                if now >= next_tick:
                    next_tick += period
                    if next_tick <= now:
                        # Missed ticks collapse into a single ping.
                        next_tick = now + period
                    yield ping_event()
        except asyncio.CancelledError:
            pass
        finally:
            for task in (recv_task, stop_task):
                if task is not None and not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
            self.close()
            logger.info(
                "stream_session_closed",
                subscriber_id=self.subscriber_id,
                lagged_events=self.lagged_events,
            )
