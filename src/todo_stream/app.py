"""FastAPI application factory and lifespan management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from todo_stream.config import Settings
from todo_stream.events import MutationBus, MutationPublisher
from todo_stream.lifecycle import GracefulShutdown
from todo_stream.middleware.cors import configure_cors
from todo_stream.middleware.logging import RequestLoggingMiddleware
from todo_stream.routes import events, health, pages, todos
from todo_stream.store import StoreError, TodoNotFoundError, TodoStore

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Opens the todo store and builds the mutation bus and publisher on
    startup. On shutdown, signals every live stream to stop before closing
    the bus and the store.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    logger.info("api_startup", host=settings.host, port=settings.port)

    store = TodoStore(settings.database_path)
    store.initialize()

    mutation_bus = MutationBus(backlog_capacity=settings.backlog_capacity)
    publisher = MutationPublisher(mutation_bus)

    app.state.store = store
    app.state.mutation_bus = mutation_bus
    app.state.publisher = publisher

    try:
        yield
    finally:
        app.state.shutdown.trigger()
        mutation_bus.close()
        store.close()
        logger.info("api_shutdown")


async def store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Surface store failures as 500 responses.

    Args:
        request: Request whose handler failed.
        exc: The StoreError raised by the store.

    Returns:
        JSON error response.
    """
    logger.error(
        "store_error",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        not_found=isinstance(exc, TodoNotFoundError),
    )
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Todo Stream",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    # Created eagerly so the server entry point can trigger it on signals.
    app.state.shutdown = GracefulShutdown()

    configure_cors(app, settings.cors_origins)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(StoreError, store_error_handler)

    app.include_router(health.router)
    app.include_router(pages.router)
    app.include_router(events.router)
    app.include_router(todos.router)

    if Path(settings.static_dir).is_dir():
        app.mount("/static", StaticFiles(directory=settings.static_dir), name="static")
    else:
        logger.warning("static_dir_missing", path=settings.static_dir)

    return app
