"""Configuration for the automation engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Every variable uses the `AUTOMATION_` prefix except `LOG_LEVEL`, which is shared
with the rest of the local tooling.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from automation_engine.engine.path_guard import expand_path

DEFAULT_ALLOWED_DIRS = "~/Desktop,~/Documents,~/Downloads"


class EngineSettings(BaseSettings):
    """Settings for the local automation engine.

    Environment variables:
    - AUTOMATION_MAX_EXECUTION_TIME        (seconds, optional)
    - AUTOMATION_LOG_RETENTION_DAYS        (optional)
    - AUTOMATION_DATA_DIR                  (optional)
    - AUTOMATION_LOGS_DIR                  (optional)
    - AUTOMATION_ALLOWED_DIRS              (comma-separated, optional)
    - AUTOMATION_ENABLE_SYSTEM_COMMANDS    (optional)
    - AUTOMATION_MAX_EXECUTION_HISTORY     (optional)
    - AUTOMATION_MAX_CONCURRENT_WORKFLOWS  (optional)
    - LOG_LEVEL                            (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `EngineSettings(_env_file=path_to_env)`.
    """

    max_execution_time_seconds: float = Field(
        default=300.0,
        gt=0,
        validation_alias="AUTOMATION_MAX_EXECUTION_TIME",
        description="Default timeout for a single command step",
    )
    log_retention_days: int = Field(
        default=30,
        ge=1,
        validation_alias="AUTOMATION_LOG_RETENTION_DAYS",
        description="Execution records older than this are swept from history",
    )

    data_dir: Path = Field(
        default=Path("data"),
        validation_alias="AUTOMATION_DATA_DIR",
        description="Directory holding the workflow snapshot",
    )
    logs_dir: Path = Field(
        default=Path("logs"),
        validation_alias="AUTOMATION_LOGS_DIR",
        description="Directory holding the daily execution logs",
    )

    # Kept as a raw string; pydantic-settings would otherwise try to JSON-decode a list.
    allowed_dirs: str = Field(
        default=DEFAULT_ALLOWED_DIRS,
        validation_alias="AUTOMATION_ALLOWED_DIRS",
        description="Comma-separated roots under which file steps may operate (~ and $HOME expand)",
    )

    enable_system_commands: bool = Field(
        default=False,
        validation_alias="AUTOMATION_ENABLE_SYSTEM_COMMANDS",
        description="If false, every command step fails without spawning a process",
    )

    max_execution_history: int = Field(
        default=1000,
        ge=1,
        validation_alias="AUTOMATION_MAX_EXECUTION_HISTORY",
        description="Maximum number of execution records kept in memory",
    )
    max_concurrent_workflows: int = Field(
        default=10,
        ge=1,
        validation_alias="AUTOMATION_MAX_CONCURRENT_WORKFLOWS",
        description="Ceiling on simultaneously running executions",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def allowed_directories(self) -> list[str]:
        """Allow-listed roots with `~`/`$HOME` expanded."""

        return [expand_path(d.strip()) for d in self.allowed_dirs.split(",") if d.strip()]

    @property
    def workflows_file(self) -> Path:
        """Path of the workflow snapshot."""

        return Path(expand_path(str(self.data_dir))) / "workflows.json"

    @property
    def resolved_logs_dir(self) -> Path:
        return Path(expand_path(str(self.logs_dir)))

    def with_allowed_directories(self, directories: list[str]) -> EngineSettings:
        """Return a copy whose allow-list is replaced (CLI positional arguments win)."""

        cleaned = [d.strip() for d in directories if d and d.strip()]
        if not cleaned:
            return self
        return self.model_copy(update={"allowed_dirs": ",".join(cleaned)})
