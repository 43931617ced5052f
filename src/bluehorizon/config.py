"""
Blue Horizon Configuration

Centralized settings for the sync core, read from the environment
(and a local .env file when present).
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _default_data_dir() -> Path:
    base = os.getenv("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(base) / "blue-horizon"


class Settings:
    """Configuration for the Blue Horizon sync core."""

    def __init__(self):
        # Filesystem paths
        self.data_dir: Path = Path(os.getenv("BLUEHORIZON_DATA_DIR", str(_default_data_dir())))
        self._db_path: Optional[str] = os.getenv("BLUEHORIZON_DB_PATH")

        # Remote service
        self.service_url: str = os.getenv("BLUEHORIZON_SERVICE_URL", "https://bsky.social")
        self.http_timeout: float = float(os.getenv("BLUEHORIZON_HTTP_TIMEOUT", "30"))

        # Outbox
        self.outbox_enabled: bool = _env_bool("OUTBOX_ENABLED", "true")
        self.outbox_sweep_interval: float = float(os.getenv("OUTBOX_SWEEP_INTERVAL", "20"))
        self.outbox_batch_size: int = int(os.getenv("OUTBOX_BATCH_SIZE", "10"))
        self.outbox_max_attempts: int = int(os.getenv("OUTBOX_MAX_ATTEMPTS", "8"))

        # Push-style counter polling
        self.unread_poll_interval: float = float(os.getenv("UNREAD_POLL_INTERVAL", "180"))

        # Observability
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.log_structured: bool = _env_bool("LOG_STRUCTURED", "true")
        self.otlp_endpoint: Optional[str] = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or None
        self.otel_console_export: bool = _env_bool("OTEL_CONSOLE_EXPORT", "false")

    @property
    def db_path(self) -> Path:
        if self._db_path:
            return Path(self._db_path)
        return self.data_dir / "blue-horizon.db"

    def ensure_directories(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if self.outbox_batch_size < 1:
            issues.append(f"ERROR: OUTBOX_BATCH_SIZE must be positive (got {self.outbox_batch_size})")

        if self.outbox_max_attempts < 1:
            issues.append(f"ERROR: OUTBOX_MAX_ATTEMPTS must be positive (got {self.outbox_max_attempts})")

        if self.outbox_sweep_interval <= 0:
            issues.append("ERROR: OUTBOX_SWEEP_INTERVAL must be greater than zero")

        if self.unread_poll_interval <= 0:
            issues.append("ERROR: UNREAD_POLL_INTERVAL must be greater than zero")

        if not self.service_url.startswith(("http://", "https://")):
            issues.append(f"WARNING: Service URL does not look like an HTTP URL: {self.service_url}")

        return issues

    def __repr__(self) -> str:
        return (
            f"Settings(db_path={self.db_path}, service_url={self.service_url}, "
            f"outbox_enabled={self.outbox_enabled})"
        )


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings()
