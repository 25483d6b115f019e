"""Publishes store mutations to the mutation bus."""
import structlog

from todo_stream.events.bus import BusClosedError, MutationBus
from todo_stream.events.types import (
    CreateMutation,
    DeleteMutation,
    TodoMutation,
    UpdateMutation,
    mutation_todo_id,
)
from todo_stream.store.schemas import Todo

logger = structlog.get_logger()


class MutationPublisher:
    """Turns successful store writes into bus mutations.

    Call each method once per committed write, after the store returned.
    Publishing is best-effort: a closed bus is logged and ignored so the
    originating request still succeeds.
    """

    def __init__(self, bus: MutationBus) -> None:
        self._bus = bus

    def publish_create(self, todo: Todo) -> int:
        return self._publish(CreateMutation(todo=todo))

    def publish_update(self, todo: Todo) -> int:
        return self._publish(UpdateMutation(todo=todo))

    def publish_delete(self, todo_id: int) -> int:
        return self._publish(DeleteMutation(todo_id=todo_id))

    def _publish(self, mutation: TodoMutation) -> int:
        """Broadcast a mutation, swallowing bus shutdown.

        Returns:
            Number of subscribers the mutation was queued for.
        """
        todo_id = mutation_todo_id(mutation)
        try:
            delivered = self._bus.publish(mutation)
        except BusClosedError:
            logger.warning(
                "mutation_publish_failed",
                kind=mutation.kind.value,
                todo_id=todo_id,
                reason="bus_closed",
            )
            return 0

        logger.debug(
            "mutation_published",
            kind=mutation.kind.value,
            todo_id=todo_id,
            delivered_to=delivered,
        )
        return delivered
