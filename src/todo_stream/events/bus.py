"""In-memory broadcast bus for todo mutations."""
import asyncio
import uuid
from collections import deque
from types import TracebackType

import structlog

from todo_stream.events.types import TodoMutation

logger = structlog.get_logger()


class BusClosedError(Exception):
    """Raised when publishing to, or receiving from, a closed bus."""


class SubscriptionLagged(Exception):
    """Raised by a subscription that fell behind the backlog capacity.

    Attributes:
        missed: Number of events dropped for this subscription since the
            last time lag was reported.
    """

    def __init__(self, missed: int) -> None:
        super().__init__(f"subscription lagged by {missed} events")
        self.missed = missed


class Subscription:
    """Receive handle for one bus subscriber.

    Holds up to ``capacity`` pending mutations. When a publish would exceed
    the capacity the oldest pending mutation is dropped and counted; the
    next receive reports the count via :class:`SubscriptionLagged` before
    resuming with the oldest retained mutation.
    """

    def __init__(self, bus: "MutationBus", subscriber_id: str, capacity: int) -> None:
        self.id = subscriber_id
        self._bus = bus
        self._buffer: deque[TodoMutation] = deque()
        self._capacity = capacity
        self._missed = 0
        self._waiter = asyncio.Event()
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of mutations waiting to be received."""
        return len(self._buffer)

    def _push(self, mutation: TodoMutation) -> bool:
        """Queue a mutation, dropping the oldest on overflow.

        Returns:
            True if an older mutation was dropped to make room.
        """
        dropped = False
        if len(self._buffer) >= self._capacity:
            self._buffer.popleft()
            self._missed += 1
            dropped = True
        self._buffer.append(mutation)
        self._waiter.set()
        return dropped

    def _wake(self) -> None:
        self._waiter.set()

    def try_recv(self) -> TodoMutation | None:
        """Receive the next mutation without waiting.

        Returns:
            The oldest pending mutation, or None if nothing is pending.

        Raises:
            SubscriptionLagged: If mutations were dropped since the last call.
            BusClosedError: If the bus is closed and the backlog is drained.
        """
        if self._missed:
            missed, self._missed = self._missed, 0
            raise SubscriptionLagged(missed)
        if self._buffer:
            return self._buffer.popleft()
        if self._bus.is_closed or self._closed:
            raise BusClosedError("mutation bus is closed")
        self._waiter.clear()
        return None

    async def recv(self) -> TodoMutation:
        """Wait for the next mutation.

        Raises:
            SubscriptionLagged: If mutations were dropped since the last call.
            BusClosedError: If the bus is closed and the backlog is drained.
        """
        while True:
            mutation = self.try_recv()
            if mutation is not None:
                return mutation
            await self._waiter.wait()

    def close(self) -> None:
        """Unsubscribe from the bus. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        self._waiter.set()
        self._bus._unsubscribe(self.id)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class MutationBus:
    """Broadcast channel fanning todo mutations out to every subscriber.

    Every subscriber observes every mutation published after it subscribed,
    in publish order. All methods are meant to be called from the event
    loop thread; none of them await while touching shared state, so no lock
    is needed.

    Attributes:
        backlog_capacity: Maximum pending mutations per subscriber.
    """

    def __init__(self, backlog_capacity: int = 100) -> None:
        """Initialize mutation bus.

        Args:
            backlog_capacity: Maximum pending mutations per subscriber.
        """
        if backlog_capacity < 1:
            raise ValueError("backlog_capacity must be at least 1")
        self._subscribers: dict[str, Subscription] = {}
        self._backlog_capacity = backlog_capacity
        self._dropped_count = 0
        self._closed = False

    @property
    def backlog_capacity(self) -> int:
        return self._backlog_capacity

    @property
    def subscriber_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscribers)

    @property
    def dropped_events(self) -> int:
        """Total number of events dropped due to subscriber lag."""
        return self._dropped_count

    @property
    def is_closed(self) -> bool:
        return self._closed

    def publish(self, mutation: TodoMutation) -> int:
        """Queue a mutation for every current subscriber.

        Never waits. With no subscribers the mutation is simply dropped.

        Args:
            mutation: Mutation to broadcast.

        Returns:
            Number of subscribers the mutation was queued for.

        Raises:
            BusClosedError: If the bus has been closed.
        """
        if self._closed:
            raise BusClosedError("mutation bus is closed")

        delivered = 0
        for subscription in list(self._subscribers.values()):
            if subscription._push(mutation):
                self._dropped_count += 1
            delivered += 1
        return delivered

    def subscribe(self) -> Subscription:
        """Create a subscription for mutations published from now on.

        Raises:
            BusClosedError: If the bus has been closed.
        """
        if self._closed:
            raise BusClosedError("mutation bus is closed")

        subscription = Subscription(self, str(uuid.uuid4()), self._backlog_capacity)
        self._subscribers[subscription.id] = subscription
        logger.debug(
            "subscriber_added",
            subscriber_id=subscription.id,
            subscriber_count=self.subscriber_count,
        )
        return subscription

    def _unsubscribe(self, subscriber_id: str) -> None:
        if self._subscribers.pop(subscriber_id, None) is not None:
            logger.debug(
                "subscriber_removed",
                subscriber_id=subscriber_id,
                subscriber_count=self.subscriber_count,
            )

    def close(self) -> None:
        """Stop accepting mutations and wake every waiting subscriber.

        Subscribers still receive what they already hold before
        :class:`BusClosedError` is raised to them.
        """
        if self._closed:
            return
        self._closed = True
        for subscription in list(self._subscribers.values()):
            subscription._wake()
        logger.info(
            "mutation_bus_closed",
            subscriber_count=self.subscriber_count,
            dropped_events=self._dropped_count,
        )
