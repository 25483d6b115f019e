"""Pytest configuration and fixtures."""

import sys
from collections.abc import Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient
from sse_starlette.sse import AppStatus

from todo_stream.app import create_app
from todo_stream.config import Settings
from todo_stream.store import Todo, TodoStore


@pytest.fixture(autouse=True)
def reset_sse_app_status(monkeypatch: pytest.MonkeyPatch) -> None:
    """sse-starlette keeps its exit flag on a class; start every test clean."""
    monkeypatch.setattr(AppStatus, "should_exit", False)
    monkeypatch.setattr(AppStatus, "should_exit_event", None, raising=False)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Create test settings backed by a throwaway database."""
    return Settings(
        host="127.0.0.1",
        port=8000,
        debug=True,
        database_path=str(tmp_path / "todos.db"),
        keepalive_period=0.05,
        backlog_capacity=10,
    )


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    """Create test client with the lifespan (store, bus) running."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def store(tmp_path: Path) -> Iterator[TodoStore]:
    """Initialized store on a temporary database file."""
    todo_store = TodoStore(tmp_path / "store.db")
    todo_store.initialize()
    yield todo_store
    todo_store.close()


@pytest.fixture
def todo() -> Todo:
    return Todo(id=1, description="buy milk", completed=False)
