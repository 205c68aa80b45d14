"""Workflow validation.

All problems are collected before anything is rejected, so callers get the full
list in a single :class:`WorkflowValidationError`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from croniter import croniter
from pydantic import BaseModel, ValidationError

from automation_engine.engine.errors import WorkflowValidationError
from automation_engine.engine.models import Workflow

_NEEDS_DESTINATION = {"move", "copy"}


def is_valid_cron(expression: str) -> bool:
    try:
        return bool(croniter.is_valid(expression))
    except Exception:
        return False


def _as_mapping(item: Any) -> Mapping[str, Any] | None:
    if isinstance(item, BaseModel):
        return item.model_dump(by_alias=True)
    if isinstance(item, Mapping):
        return item
    return None


def _trigger_errors(trigger: Mapping[str, Any] | None) -> list[str]:
    if trigger is None or not trigger.get("type"):
        return ["Trigger type is required"]
    if trigger["type"] == "schedule":
        cron = trigger.get("cron")
        if not isinstance(cron, str) or not is_valid_cron(cron):
            return [f"Invalid cron expression: {cron}"]
    if trigger["type"] == "file_event" and not trigger.get("path"):
        return ["File event trigger requires a path"]
    return []


def _step_errors(step: Mapping[str, Any] | None) -> list[str]:
    if step is None or not step.get("type"):
        return ["Step type is required"]
    if step["type"] != "file_operation":
        return []

    operation = step.get("operation")
    if not operation:
        return ["File operation type is required"]

    errors: list[str] = []
    if not step.get("source") and operation != "create_directory":
        errors.append("File operation source is required")
    if not step.get("destination") and operation in _NEEDS_DESTINATION:
        errors.append("File operation destination is required")
    return errors


def collect_errors(payload: Mapping[str, Any]) -> list[str]:
    """Return every problem with a raw (camelCase or snake_case) workflow payload."""

    errors: list[str] = []

    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("Workflow name is required")

    for trigger in payload.get("triggers") or []:
        errors.extend(_trigger_errors(_as_mapping(trigger)))
    for step in payload.get("steps") or []:
        errors.extend(_step_errors(_as_mapping(step)))

    return errors


def _format_pydantic_errors(exc: ValidationError) -> list[str]:
    messages: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return messages


def parse_workflow(payload: Mapping[str, Any]) -> Workflow:
    """Build a workflow from raw input, raising on any validation problem."""

    errors = collect_errors(payload)
    if errors:
        raise WorkflowValidationError(errors)

    try:
        return Workflow.model_validate(dict(payload))
    except ValidationError as e:
        raise WorkflowValidationError(_format_pydantic_errors(e)) from e
