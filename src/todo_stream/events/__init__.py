"""Mutation broadcast and live update streaming."""
from todo_stream.events.bus import (
    BusClosedError,
    MutationBus,
    Subscription,
    SubscriptionLagged,
)
from todo_stream.events.publisher import MutationPublisher
from todo_stream.events.session import SessionState, StreamSession
from todo_stream.events.types import (
    CreateMutation,
    DeleteMutation,
    MutationKind,
    TodoMutation,
    UpdateMutation,
)

__all__ = [
    "BusClosedError",
    "CreateMutation",
    "DeleteMutation",
    "MutationBus",
    "MutationKind",
    "MutationPublisher",
    "SessionState",
    "StreamSession",
    "Subscription",
    "SubscriptionLagged",
    "TodoMutation",
    "UpdateMutation",
]
