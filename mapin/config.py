"""Editor settings and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class EditorSettings(BaseSettings):
    """Settings read from MAPIN_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="MAPIN_", env_file=".env", extra="ignore")

    autosave_delay: float = 0.8  # Seconds of quiet before an autosave
    max_history: Optional[int] = None  # Unbounded when unset

    store_dir: Path = Path("~/process-maps")
    store_url: Optional[str] = None  # Remote REST store; overrides store_dir
    store_token: Optional[str] = None

    user_id: str = "local"  # Empty disables autosave and document creation

    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8765
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]


def configure_logging(level: str | int = "INFO"):
    """Send mapin's log records to stderr at the given level."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("mapin").setLevel(level)
