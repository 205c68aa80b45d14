"""Sequential workflow execution.

Steps run strictly in array order. Each step ends `completed`, `failed` or
`skipped`; a failed step halts the workflow unless its `onError` is
`continue`. Step definitions do not read the execution context yet.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from automation_engine.engine import file_ops
from automation_engine.engine.commands import CommandRunner
from automation_engine.engine.errors import (
    ARCHIVE_NOT_IMPLEMENTED,
    LOOP_NOT_IMPLEMENTED,
    AccessDeniedError,
    NotImplementedFeatureError,
)
from automation_engine.engine.execution_log import ExecutionLog
from automation_engine.engine.history import HistoryLedger
from automation_engine.engine.models import (
    CommandStep,
    ConditionStep,
    Execution,
    ExecutionStatus,
    FileOperationStep,
    LoopStep,
    Step,
    StepExecution,
    StepStatus,
)
from automation_engine.engine.path_guard import PathGuard
from automation_engine.engine.state_machine import finish_execution, finish_step
from automation_engine.engine.store import WorkflowStore

logger = logging.getLogger(__name__)


class StopWorkflow(Exception):
    """Raised by a handler to skip the remaining steps without failing."""


StepHandler = Callable[[Any, dict[str, Any], str], Awaitable[None]]


class WorkflowRunner:
    def __init__(
        self,
        *,
        workflows: WorkflowStore,
        history: HistoryLedger,
        path_guard: PathGuard,
        commands: CommandRunner,
        execution_log: ExecutionLog,
    ) -> None:
        self.workflows = workflows
        self.history = history
        self.path_guard = path_guard
        self.commands = commands
        self.execution_log = execution_log

        self._handlers: dict[type, StepHandler] = {
            FileOperationStep: self._run_file_operation,
            CommandStep: self._run_command,
            ConditionStep: self._run_condition,
            LoopStep: self._run_loop,
        }

    async def run(self, workflow_id: str, context: dict[str, Any] | None = None) -> Execution | None:
        workflow = self.workflows.get(workflow_id)
        if workflow is None or not workflow.enabled:
            logger.debug("Skipping missing or disabled workflow", extra={"workflow_id": workflow_id})
            return None

        context = dict(context or {})
        execution = Execution(workflow_id=workflow.id, workflow_name=workflow.name, context=context)
        self.history.append(execution)
        await self.execution_log.write(execution, "Workflow execution started")
        logger.info(
            "Workflow execution started",
            extra={"workflow_id": workflow.id, "execution_id": execution.id},
        )

        status = ExecutionStatus.COMPLETED
        error: str | None = None
        try:
            for step in list(workflow.steps):
                result, stop = await self._run_step(step, context, execution.id)
                execution.steps.append(result)
                if result.status == StepStatus.FAILED and step.on_error != "continue":
                    status = ExecutionStatus.FAILED
                    error = result.error
                    break
                if stop:
                    break
        except Exception as e:
            logger.exception("Workflow execution crashed", extra={"execution_id": execution.id})
            status = ExecutionStatus.FAILED
            error = str(e)

        finish_execution(execution, status, error=error)
        await self.execution_log.write(execution, f"Workflow execution {execution.status.value}")
        logger.info(
            f"Workflow execution {execution.status.value}",
            extra={
                "workflow_id": workflow.id,
                "execution_id": execution.id,
                "duration_ms": execution.duration,
            },
        )
        return execution

    async def _run_step(
        self, step: Step, context: dict[str, Any], execution_id: str
    ) -> tuple[StepExecution, bool]:
        record = StepExecution(step_id=step.id, step_type=step.type)
        handler = self._handlers[type(step)]
        try:
            await handler(step, context, execution_id)
        except StopWorkflow:
            return finish_step(record, StepStatus.SKIPPED), True
        except Exception as e:
            logger.warning(
                "Step failed",
                extra={"execution_id": execution_id, "step_id": step.id, "error": str(e)},
            )
            return finish_step(record, StepStatus.FAILED, error=str(e) or type(e).__name__), False
        return finish_step(record, StepStatus.COMPLETED), False

    async def _run_file_operation(
        self, step: FileOperationStep, _context: dict[str, Any], _execution_id: str
    ) -> None:
        for path in (step.source, step.destination):
            if path and not self.path_guard.is_allowed(path):
                raise AccessDeniedError(path)

        source = step.source or ""
        match step.operation:
            case "move":
                await file_ops.move_files(source, _require_destination(step), step.pattern)
            case "copy":
                await file_ops.copy_files(source, _require_destination(step), step.pattern)
            case "delete":
                await file_ops.delete_files(source, step.pattern)
            case "create_directory":
                await file_ops.create_directory(source or step.destination or "")
            case "archive":
                raise NotImplementedFeatureError(ARCHIVE_NOT_IMPLEMENTED)

    async def _run_command(self, step: CommandStep, _context: dict[str, Any], execution_id: str) -> None:
        await self.commands.run(
            step.command,
            step.args,
            execution_id=execution_id,
            working_directory=step.working_directory,
            timeout_ms=step.timeout,
        )

    async def _run_condition(
        self, step: ConditionStep, context: dict[str, Any], _execution_id: str
    ) -> None:
        if not evaluate_condition(step.condition, context) and step.on_false == "stop":
            raise StopWorkflow()

    async def _run_loop(self, _step: LoopStep, _context: dict[str, Any], _execution_id: str) -> None:
        raise NotImplementedFeatureError(LOOP_NOT_IMPLEMENTED)


def _require_destination(step: FileOperationStep) -> str:
    # An empty destination would resolve against the working directory.
    if not step.destination:
        raise ValueError("File operation destination is required")
    return step.destination


def evaluate_condition(_expression: str, _context: dict[str, Any]) -> bool:
    """Expression evaluation is not implemented; every condition holds."""

    return True
