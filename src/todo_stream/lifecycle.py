"""Shutdown signal shared by the server loop and every live stream."""
import asyncio

import structlog

logger = structlog.get_logger()


class GracefulShutdown:
    """Broadcasts a one-shot shutdown signal to live stream sessions.

    Each stream session waits on :meth:`wait_for_trigger` alongside its
    mutation subscription and keep-alive timer, so triggering shutdown ends
    every session within one wait cycle.

    Attributes:
        is_triggered: Whether shutdown has been triggered.
    """

    def __init__(self) -> None:
        """Initialize shutdown coordinator."""
        self._triggered = False
        self._event = asyncio.Event()

    @property
    def is_triggered(self) -> bool:
        """Check if shutdown has been triggered."""
        return self._triggered

    def trigger(self) -> None:
        """Signal all waiting sessions to stop.

        Idempotent - calling multiple times has no additional effect.
        """
        if self._triggered:
            return
        logger.info("shutdown_triggered")
        self._triggered = True
        self._event.set()

    async def wait_for_trigger(self) -> None:
        """Wait indefinitely for the shutdown signal.

        Blocks until trigger() is called from another task or signal handler.
        """
        await self._event.wait()
