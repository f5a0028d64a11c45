"""Configuration load/save for taskbook."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

# Override with TASKBOOK_HOME (tests point this at a temp dir)
HOME_ENV = "TASKBOOK_HOME"


def data_dir() -> Path:
    """Directory holding config.json and the default database."""
    override = os.environ.get(HOME_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".taskbook"


def config_path() -> Path:
    return data_dir() / "config.json"


class AppConfig(BaseModel):
    """Persisted application configuration."""

    user_timezone: str = Field(default="UTC", description="IANA timezone for relative dates (e.g. America/New_York). Used for 'today'/'tomorrow'.")
    database_path: str = Field(default="", description="Path to SQLite database file; empty = data dir / taskbook.db")
    horizon_days: int = Field(default=14, ge=1, le=366, description="Default number of days generated ahead from recurring templates")
    web_ui_port: int = Field(default=8082, ge=1, le=65535, description="Port for the JSON API / web UI")
    debug: bool = Field(default=False, description="Log every API request")

    @field_validator("user_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        name = (value or "").strip() or "UTC"
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {name}") from e
        return name

    def to_save_dict(self) -> dict[str, Any]:
        return self.model_dump()

    @classmethod
    def load(cls) -> "AppConfig":
        path = config_path()
        if not path.exists():
            return cls()
        raw = json.loads(path.read_text())
        return cls.model_validate(raw)

    def save(self) -> None:
        path = config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_save_dict(), indent=2))


def config_exists() -> bool:
    return config_path().exists()


def load() -> AppConfig:
    """Load config from disk. Convenience alias for AppConfig.load()."""
    return AppConfig.load()
