"""Entry point tests."""

import asyncio
import signal

import pytest
import uvicorn

from todo_stream.__main__ import TodoServer
from todo_stream.app import create_app
from todo_stream.config import Settings
from todo_stream.lifecycle import GracefulShutdown


@pytest.mark.asyncio
async def test_exit_signal_triggers_stream_shutdown(settings: Settings) -> None:
    """uvicorn's signal path reaches the shutdown every stream waits on."""
    app = create_app(settings)
    shutdown: GracefulShutdown = app.state.shutdown
    server = TodoServer(uvicorn.Config(app), shutdown, asyncio.get_running_loop())

    server.handle_exit(signal.SIGTERM, None)
    await asyncio.wait_for(shutdown.wait_for_trigger(), timeout=1.0)

    assert shutdown.is_triggered
    assert server.should_exit


@pytest.mark.asyncio
async def test_second_exit_signal_forces_exit(settings: Settings) -> None:
    app = create_app(settings)
    server = TodoServer(
        uvicorn.Config(app), app.state.shutdown, asyncio.get_running_loop()
    )

    server.handle_exit(signal.SIGINT, None)
    server.handle_exit(signal.SIGINT, None)
    await asyncio.sleep(0)

    assert server.force_exit
