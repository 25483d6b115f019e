"""SQLite-backed todo store."""

import asyncio
import sqlite3
import threading
from pathlib import Path

import structlog

from todo_stream.store.schemas import Todo

logger = structlog.get_logger()

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS todos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        description TEXT NOT NULL,
        completed BOOLEAN NOT NULL DEFAULT 0
    )
"""


class StoreError(Exception):
    """Raised when a store operation cannot be completed."""


class TodoNotFoundError(StoreError):
    """Raised when the requested todo row does not exist."""

    def __init__(self, todo_id: int) -> None:
        super().__init__(f"todo {todo_id} not found")
        self.todo_id = todo_id


def _row_to_todo(row: sqlite3.Row) -> Todo:
    return Todo(
        id=row["id"],
        description=row["description"],
        completed=bool(row["completed"]),
    )


class TodoStore:
    """Todo table on a single SQLite connection.

    Thread-safe via a lock so the blocking methods can be dispatched to
    worker threads with asyncio.to_thread. Every write commits before it
    returns, so callers may publish the result as durable.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize store (call initialize() before use).

        Args:
            path: Database file path, or ":memory:".
        """
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Open the database and create the todos table if missing."""
        try:
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute(_SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"unable to open database: {e}") from e
        logger.info("todo_store_initialized", path=self._path)

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
        logger.info("todo_store_closed", path=self._path)

    def ping(self) -> None:
        """Run a trivial query to prove the connection is usable."""
        with self._lock:
            self._execute("SELECT 1")

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("store is not initialized")
        return self._conn

    def _execute(self, sql: str, params: tuple[object, ...] = ()) -> sqlite3.Cursor:
        try:
            return self._connection().execute(sql, params)
        except sqlite3.Error as e:
            raise StoreError(f"query failed: {e}") from e

    def _commit(self) -> None:
        try:
            self._connection().commit()
        except sqlite3.Error as e:
            raise StoreError(f"commit failed: {e}") from e

    def _fetch(self, todo_id: int) -> Todo:
        row = self._execute("SELECT * FROM todos WHERE id = ?", (todo_id,)).fetchone()
        if row is None:
            raise TodoNotFoundError(todo_id)
        return _row_to_todo(row)

    def insert(self, description: str) -> Todo:
        """Insert a new todo and return the stored row.

        Args:
            description: Text of the new item.

        Returns:
            The inserted row including its assigned id.
        """
        with self._lock:
            cursor = self._execute(
                "INSERT INTO todos (description) VALUES (?)", (description,)
            )
            self._commit()
            todo_id = cursor.lastrowid
            assert todo_id is not None
            return self._fetch(todo_id)

    def select_all(self) -> list[Todo]:
        """Return every todo ordered by id."""
        with self._lock:
            rows = self._execute("SELECT * FROM todos ORDER BY id").fetchall()
            return [_row_to_todo(row) for row in rows]

    def select_by_id(self, todo_id: int) -> Todo:
        """Return a single todo.

        Raises:
            TodoNotFoundError: If no row has this id.
        """
        with self._lock:
            return self._fetch(todo_id)

    def update_completed(self, todo_id: int, completed: bool) -> Todo:
        """Set the completion flag and return the re-read row.

        Args:
            todo_id: Row to update.
            completed: New completion flag.

        Returns:
            The row as stored after the update.

        Raises:
            TodoNotFoundError: If no row has this id.
        """
        with self._lock:
            cursor = self._execute(
                "UPDATE todos SET completed = ? WHERE id = ?", (completed, todo_id)
            )
            self._commit()
            if cursor.rowcount == 0:
                raise TodoNotFoundError(todo_id)
            return self._fetch(todo_id)

    def delete(self, todo_id: int) -> None:
        """Delete a todo.

        Raises:
            TodoNotFoundError: If no row has this id.
        """
        with self._lock:
            cursor = self._execute("DELETE FROM todos WHERE id = ?", (todo_id,))
            self._commit()
            if cursor.rowcount == 0:
                raise TodoNotFoundError(todo_id)

    async def ainsert(self, description: str) -> Todo:
        return await asyncio.to_thread(self.insert, description)

    async def aselect_all(self) -> list[Todo]:
        return await asyncio.to_thread(self.select_all)

    async def aselect_by_id(self, todo_id: int) -> Todo:
        return await asyncio.to_thread(self.select_by_id, todo_id)

    async def aupdate_completed(self, todo_id: int, completed: bool) -> Todo:
        return await asyncio.to_thread(self.update_completed, todo_id, completed)

    async def adelete(self, todo_id: int) -> None:
        await asyncio.to_thread(self.delete, todo_id)
