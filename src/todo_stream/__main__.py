"""Entry point for the todo server."""

import asyncio
import contextlib
import sys
from types import FrameType

import structlog
import uvicorn

from todo_stream.app import create_app
from todo_stream.config import Settings
from todo_stream.lifecycle import GracefulShutdown
from todo_stream.logging import configure_logging

logger = structlog.get_logger()


class TodoServer(uvicorn.Server):
    """uvicorn server that ends live streams as soon as exit is requested.

    uvicorn installs its own SIGTERM/SIGINT handlers while serving, and they
    all funnel into ``handle_exit``. Hooking it triggers the shutdown signal
    every stream session waits on, so open SSE connections close before
    uvicorn starts waiting for connections to drain.
    """

    def __init__(
        self,
        config: uvicorn.Config,
        shutdown: GracefulShutdown,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        """Initialize server.

        Args:
            config: uvicorn configuration.
            shutdown: Shutdown signal shared with stream sessions.
            loop: Event loop the sessions run on.
        """
        super().__init__(config)
        self._shutdown = shutdown
        self._loop = loop

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        """Trigger stream shutdown, then let uvicorn begin exiting."""
        # Signal handlers may interrupt the loop mid-callback.
        self._loop.call_soon_threadsafe(self._shutdown.trigger)
        super().handle_exit(sig, frame)


async def serve(settings: Settings) -> None:
    """Run uvicorn with graceful shutdown support.

    Args:
        settings: Server configuration.
    """
    app = create_app(settings)

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="warning",
        access_log=False,
        timeout_graceful_shutdown=int(settings.shutdown_timeout),
    )
    server = TodoServer(config, app.state.shutdown, asyncio.get_running_loop())
    await server.serve()


def main() -> None:
    """Entry point for python -m todo_stream."""
    settings = Settings()
    configure_logging(debug=settings.debug)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve(settings))

    sys.exit(0)


if __name__ == "__main__":
    main()
