"""Persistence of todo rows."""
from todo_stream.store.repository import StoreError, TodoNotFoundError, TodoStore
from todo_stream.store.schemas import Todo, TodoInput, TodoUpdate

__all__ = [
    "StoreError",
    "Todo",
    "TodoInput",
    "TodoNotFoundError",
    "TodoStore",
    "TodoUpdate",
]
