"""Test configuration and fixtures."""

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest

from automation_engine.engine.config import EngineSettings
from automation_engine.engine.service import AutomationService

_ENV_VARS = [
    "AUTOMATION_MAX_EXECUTION_TIME",
    "AUTOMATION_LOG_RETENTION_DAYS",
    "AUTOMATION_DATA_DIR",
    "AUTOMATION_LOGS_DIR",
    "AUTOMATION_ALLOWED_DIRS",
    "AUTOMATION_ENABLE_SYSTEM_COMMANDS",
    "AUTOMATION_MAX_EXECUTION_HISTORY",
    "AUTOMATION_MAX_CONCURRENT_WORKFLOWS",
    "AUTOMATION_CORS_ORIGINS",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate settings from the developer's environment and `.env` file."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture
def sandbox(tmp_path: Path) -> Path:
    """Provide the only allow-listed directory for a test."""
    root = tmp_path / "sandbox"
    root.mkdir()
    return root


@pytest.fixture
def settings(tmp_path: Path, sandbox: Path, clean_env: None) -> EngineSettings:
    """Provide engine settings rooted in the test's temporary directory."""
    return EngineSettings(
        data_dir=tmp_path / "data",
        logs_dir=tmp_path / "logs",
        allowed_dirs=str(sandbox),
        enable_system_commands=True,
        max_execution_time_seconds=5,
    )


@pytest.fixture
async def service(settings: EngineSettings) -> AsyncIterator[AutomationService]:
    """Provide a started service; shut down after the test."""
    svc = AutomationService(settings)
    await svc.start(sweep_history=False)
    yield svc
    await svc.shutdown()
