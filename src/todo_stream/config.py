"""Service configuration loaded from environment variables."""
from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).parent


class Settings(BaseSettings):
    """Service configuration loaded from environment variables.

    Attributes:
        host: Bind address for the HTTP server.
        port: Port number for the HTTP server.
        debug: Enable debug logging and API documentation.
        cors_origins_raw: Raw comma-separated CORS origins string.
        shutdown_timeout: Seconds to wait for live streams to drain.
        database_path: SQLite database file holding the todos table.
        static_dir: Directory served under /static.
        keepalive_period: Seconds between ping events on a live stream.
        backlog_capacity: Events buffered per subscriber before lag is reported.
    """

    model_config = SettingsConfigDict(
        env_prefix="TODO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    cors_origins_raw: str = "http://localhost:8000"
    shutdown_timeout: float = 30.0

    database_path: str = "todos.db"
    static_dir: str = str(PACKAGE_DIR / "static")

    keepalive_period: float = 5.0
    backlog_capacity: int = 100

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string.

        Returns:
            List of allowed origin URLs.
        """
        return [
            origin.strip()
            for origin in self.cors_origins_raw.split(",")
            if origin.strip()
        ]
