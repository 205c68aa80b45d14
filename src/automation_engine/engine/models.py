"""Pydantic records for workflows and executions.

Attributes are snake_case in Python. The JSON form (snapshot file, REST
payloads, execution log) uses camelCase, and both spellings are accepted on
input.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC."""

    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- triggers -------------------------------------------------------------------

FileEvent = Literal["add", "change", "unlink"]


class ScheduleTrigger(Record):
    type: Literal["schedule"] = "schedule"
    id: str = Field(default_factory=new_id)
    cron: str
    description: str | None = None


class FileEventTrigger(Record):
    type: Literal["file_event"] = "file_event"
    id: str = Field(default_factory=new_id)
    path: str | None = None
    event: FileEvent = "add"
    ignore_pattern: str | None = None
    use_polling: bool = False


class TimeBasedTrigger(Record):
    type: Literal["time_based"] = "time_based"
    id: str = Field(default_factory=new_id)
    run_at: str = Field(alias="datetime")
    description: str | None = None

    def deadline(self) -> datetime:
        """The trigger time as an aware datetime; naive values are local time."""

        parsed = datetime.fromisoformat(self.run_at.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.astimezone()
        return parsed


Trigger = Annotated[
    ScheduleTrigger | FileEventTrigger | TimeBasedTrigger,
    Field(discriminator="type"),
]


# --- steps ----------------------------------------------------------------------

OnError = Literal["continue", "halt"]
FileOperation = Literal["move", "copy", "delete", "create_directory", "archive"]


class FileOperationStep(Record):
    type: Literal["file_operation"] = "file_operation"
    id: str = Field(default_factory=new_id)
    description: str | None = None
    on_error: OnError = "halt"

    operation: FileOperation
    source: str | None = None
    destination: str | None = None
    pattern: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)


class CommandStep(Record):
    type: Literal["command"] = "command"
    id: str = Field(default_factory=new_id)
    description: str | None = None
    on_error: OnError = "halt"

    command: str
    args: list[str] = Field(default_factory=list)
    working_directory: str | None = None
    timeout: int | None = Field(default=None, gt=0, description="Milliseconds")


class ConditionStep(Record):
    type: Literal["condition"] = "condition"
    id: str = Field(default_factory=new_id)
    description: str | None = None
    on_error: OnError = "halt"

    condition: str = ""
    on_false: Literal["stop", "continue"] = "continue"


class LoopStep(Record):
    # Loop bodies are not executed yet; unknown keys are kept so they round-trip.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    type: Literal["loop"] = "loop"
    id: str = Field(default_factory=new_id)
    description: str | None = None
    on_error: OnError = "halt"


Step = Annotated[
    FileOperationStep | CommandStep | ConditionStep | LoopStep,
    Field(discriminator="type"),
]


# --- workflows ------------------------------------------------------------------


class Workflow(Record):
    id: str = Field(default_factory=new_id)
    name: str = ""
    description: str | None = None
    triggers: list[Trigger] = Field(default_factory=list)
    steps: list[Step] = Field(default_factory=list)
    enabled: bool = False
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    def touch(self) -> None:
        self.updated_at = utc_now_iso()


class WorkflowSummary(Record):
    id: str
    name: str
    enabled: bool
    triggers: int
    steps: int
    created_at: str

    @classmethod
    def from_workflow(cls, workflow: Workflow) -> WorkflowSummary:
        return cls(
            id=workflow.id,
            name=workflow.name,
            enabled=workflow.enabled,
            triggers=len(workflow.triggers),
            steps=len(workflow.steps),
            created_at=workflow.created_at,
        )


# --- executions -----------------------------------------------------------------


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


def _elapsed_ms(start_iso: str, end_iso: str) -> int:
    delta = parse_iso(end_iso) - parse_iso(start_iso)
    return int(delta.total_seconds() * 1000)


class StepExecution(Record):
    step_id: str
    step_type: str
    start_time: str = Field(default_factory=utc_now_iso)
    status: StepStatus = StepStatus.RUNNING
    error: str | None = None
    end_time: str | None = None
    duration: int | None = None

    def finish(self) -> None:
        self.end_time = utc_now_iso()
        self.duration = _elapsed_ms(self.start_time, self.end_time)


class Execution(Record):
    id: str = Field(default_factory=new_id)
    workflow_id: str
    workflow_name: str
    start_time: str = Field(default_factory=utc_now_iso)
    context: dict[str, Any] = Field(default_factory=dict)
    steps: list[StepExecution] = Field(default_factory=list)
    status: ExecutionStatus = ExecutionStatus.RUNNING
    error: str | None = None
    end_time: str | None = None
    duration: int | None = None

    def finish(self) -> None:
        self.end_time = utc_now_iso()
        self.duration = _elapsed_ms(self.start_time, self.end_time)

    @property
    def started(self) -> datetime:
        return parse_iso(self.start_time)


class ExecutionSummary(Record):
    id: str
    workflow_id: str
    workflow_name: str
    status: ExecutionStatus
    start_time: str
    duration: int | None = None
    steps_completed: int
    total_steps: int
    error: str | None = None

    @classmethod
    def from_execution(cls, execution: Execution) -> ExecutionSummary:
        return cls(
            id=execution.id,
            workflow_id=execution.workflow_id,
            workflow_name=execution.workflow_name,
            status=execution.status,
            start_time=execution.start_time,
            duration=execution.duration,
            steps_completed=sum(1 for s in execution.steps if s.status == StepStatus.COMPLETED),
            total_steps=len(execution.steps),
            error=execution.error,
        )
