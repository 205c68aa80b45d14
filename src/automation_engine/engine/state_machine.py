"""Explicit status transitions for executions and steps.

Executions and steps are created `running` and may only move to a terminal
status. Terminal records are immutable; illegal transitions fail loudly.
"""

from __future__ import annotations

from automation_engine.engine.models import (
    Execution,
    ExecutionStatus,
    StepExecution,
    StepStatus,
)

ALLOWED_EXECUTION_TRANSITIONS: dict[ExecutionStatus, set[ExecutionStatus]] = {
    ExecutionStatus.RUNNING: {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED},
    ExecutionStatus.COMPLETED: set(),
    ExecutionStatus.FAILED: set(),
}

ALLOWED_STEP_TRANSITIONS: dict[StepStatus, set[StepStatus]] = {
    StepStatus.RUNNING: {StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED},
    StepStatus.COMPLETED: set(),
    StepStatus.FAILED: set(),
    StepStatus.SKIPPED: set(),
}


class IllegalTransitionError(ValueError):
    pass


def finish_execution(
    execution: Execution, to: ExecutionStatus, *, error: str | None = None
) -> Execution:
    allowed = ALLOWED_EXECUTION_TRANSITIONS.get(execution.status, set())
    if to not in allowed:
        raise IllegalTransitionError(
            f"Illegal execution transition: {execution.status.value} -> {to.value}"
        )
    execution.status = to
    if error is not None:
        execution.error = error
    execution.finish()
    return execution


def finish_step(step: StepExecution, to: StepStatus, *, error: str | None = None) -> StepExecution:
    allowed = ALLOWED_STEP_TRANSITIONS.get(step.status, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal step transition: {step.status.value} -> {to.value}")
    step.status = to
    if error is not None:
        step.error = error
    step.finish()
    return step
