# tests/conftest.py

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from config import AppConfig
from date_utils import DateContext

# A Sunday
TODAY = date(2026, 2, 15)


@pytest.fixture(autouse=True)
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point config and the default database at a per-test directory."""
    monkeypatch.setenv("TASKBOOK_HOME", str(tmp_path))
    AppConfig(user_timezone="UTC").save()
    return tmp_path


@pytest.fixture()
def ctx() -> DateContext:
    return DateContext(tz_name="UTC", fixed_today=TODAY)
