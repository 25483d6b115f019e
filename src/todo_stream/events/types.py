"""Mutation events carried by the mutation bus."""
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from todo_stream.store.schemas import Todo


class MutationKind(str, Enum):
    """Discriminator values for todo mutations."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class CreateMutation(BaseModel):
    """A todo row was inserted.

    Attributes:
        kind: Always ``create``.
        todo: The inserted row, including its assigned id.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal[MutationKind.CREATE] = MutationKind.CREATE
    todo: Todo


class UpdateMutation(BaseModel):
    """A todo row changed.

    Attributes:
        kind: Always ``update``.
        todo: The row as re-read after the update.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal[MutationKind.UPDATE] = MutationKind.UPDATE
    todo: Todo


class DeleteMutation(BaseModel):
    """A todo row was removed; only its id survives.

    Attributes:
        kind: Always ``delete``.
        todo_id: Id of the deleted row.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal[MutationKind.DELETE] = MutationKind.DELETE
    todo_id: int


TodoMutation = Annotated[
    CreateMutation | UpdateMutation | DeleteMutation,
    Field(discriminator="kind"),
]


def mutation_todo_id(mutation: TodoMutation) -> int:
    """Return the id of the todo a mutation refers to."""
    match mutation:
        case CreateMutation(todo=todo) | UpdateMutation(todo=todo):
            return todo.id
        case DeleteMutation(todo_id=todo_id):
            return todo_id
    raise TypeError(f"unknown mutation: {mutation!r}")
