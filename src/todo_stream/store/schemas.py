"""Todo row and request payload models."""
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Todo(BaseModel):
    """A single row of the todos table.

    Frozen so that the same instance can be handed to the mutation bus,
    to rendering and to the HTTP response without being shared mutably.

    Attributes:
        id: Store-assigned identifier, immutable after creation.
        description: Free-form text of the item.
        completed: Whether the item has been checked off.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(description="Store-assigned todo identifier")
    description: str = Field(description="Todo text")
    completed: bool = Field(default=False, description="Completion flag")


class TodoInput(BaseModel):
    """Payload for creating a todo."""

    description: str = Field(..., min_length=1)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        """Trim surrounding whitespace and reject blank descriptions."""
        v = v.strip()
        if not v:
            raise ValueError("description must not be blank")
        return v


class TodoUpdate(BaseModel):
    """Payload for toggling a todo's completion flag."""

    completed: bool
