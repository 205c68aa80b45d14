"""The automation service: one instance owns every engine component.

Business operations (workflow CRUD, manual execution, history queries) live
here and return pydantic records, so any transport (CLI, REST) stays a thin
wrapper. All methods must be called from the event loop thread.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Sequence
from typing import Any, Literal

from automation_engine.engine.commands import CommandRunner
from automation_engine.engine.config import EngineSettings
from automation_engine.engine.errors import NoStepsError, WorkflowNotFoundError
from automation_engine.engine.execution_log import ExecutionLog
from automation_engine.engine.execution_queue import ExecutionQueue
from automation_engine.engine.history import HistoryLedger
from automation_engine.engine.models import Execution, ExecutionSummary, Workflow, utc_now_iso
from automation_engine.engine.natural_language import NaturalLanguageParser
from automation_engine.engine.path_guard import PathGuard
from automation_engine.engine.runner import WorkflowRunner
from automation_engine.engine.store import WorkflowStore
from automation_engine.engine.triggers import TriggerManager
from automation_engine.engine.validation import parse_workflow

logger = logging.getLogger(__name__)

StatusFilter = Literal["all", "enabled", "disabled"]


class AutomationService:
    def __init__(
        self,
        settings: EngineSettings | None = None,
        *,
        parser: NaturalLanguageParser | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()

        self.store = WorkflowStore(self.settings.workflows_file)
        self.history = HistoryLedger(
            retention_days=self.settings.log_retention_days,
            max_records=self.settings.max_execution_history,
        )
        self.path_guard = PathGuard(self.settings.allowed_directories)
        self.commands = CommandRunner(
            enabled=self.settings.enable_system_commands,
            default_timeout_seconds=self.settings.max_execution_time_seconds,
        )
        self.execution_log = ExecutionLog(self.settings.resolved_logs_dir)
        self.runner = WorkflowRunner(
            workflows=self.store,
            history=self.history,
            path_guard=self.path_guard,
            commands=self.commands,
            execution_log=self.execution_log,
        )
        self.queue = ExecutionQueue(
            runner=self.runner,
            history=self.history,
            max_concurrent=self.settings.max_concurrent_workflows,
        )
        self.triggers = TriggerManager(self.queue.enqueue)
        self.parser = parser or NaturalLanguageParser()
        self._started = False

    # --- lifecycle --------------------------------------------------------------

    async def start(self, *, arm_triggers: bool = True, sweep_history: bool = True) -> None:
        """Load the snapshot and arm every enabled workflow.

        One-shot callers (CLI management commands) pass ``arm_triggers=False`` so
        no timers or watches are opened for the lifetime of a single command.
        """

        if self._started:
            return

        for directory in (self.store.path.parent, self.execution_log.logs_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(
                    "Failed to create directory", extra={"path": str(directory), "error": str(e)}
                )

        for workflow in self.store.load():
            if arm_triggers and workflow.enabled and workflow.triggers:
                await self.triggers.arm(workflow)

        if sweep_history:
            self.history.start_sweeper()

        self._started = True
        logger.info(
            "Automation service started",
            extra={
                "workflows": len(self.store),
                "allowed_directories": self.path_guard.roots,
                "system_commands": self.commands.enabled,
            },
        )

    async def shutdown(self) -> None:
        logger.info("Shutting down automation service")
        await self.triggers.close()
        self.commands.terminate_all()
        await self.queue.close()
        await self.history.stop_sweeper()
        self.store.save()
        self._started = False

    async def run_forever(self) -> None:
        """Start, then block until SIGINT/SIGTERM and shut down cleanly."""

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except (NotImplementedError, RuntimeError):
                # Not available on every platform; Ctrl+C still raises KeyboardInterrupt.
                pass

        await self.start()
        try:
            await stop.wait()
        finally:
            await self.shutdown()

    async def wait_idle(self) -> None:
        await self.queue.wait_idle()

    # --- workflow CRUD ----------------------------------------------------------

    def _require(self, workflow_id: str) -> Workflow:
        workflow = self.store.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    def get_workflow(self, workflow_id: str) -> Workflow:
        return self._require(workflow_id)

    async def create_workflow(
        self,
        *,
        name: str,
        description: str | None = None,
        triggers: Sequence[Any] | None = None,
        steps: Sequence[Any] | None = None,
    ) -> Workflow:
        workflow = parse_workflow(
            {
                "name": name,
                "description": description,
                "triggers": list(triggers or []),
                "steps": list(steps or []),
                "enabled": False,
            }
        )
        self.store.put(workflow)
        self.store.save()
        logger.info(
            "Workflow created",
            extra={"workflow_id": workflow.id, "workflow_name": workflow.name},
        )
        return workflow

    async def create_workflow_from_text(self, request: str) -> Workflow:
        draft = self.parser.parse(request)
        return await self.create_workflow(
            name=draft.name,
            description=draft.description,
            triggers=draft.triggers,
            steps=draft.steps,
        )

    def list_workflows(self, status: StatusFilter = "all") -> list[Workflow]:
        workflows = self.store.list()
        if status == "enabled":
            return [w for w in workflows if w.enabled]
        if status == "disabled":
            return [w for w in workflows if not w.enabled]
        return workflows

    async def enable_workflow(self, workflow_id: str) -> Workflow:
        workflow = self._require(workflow_id)
        if workflow.enabled:
            return workflow

        workflow.enabled = True
        workflow.touch()
        await self.triggers.arm(workflow)
        self.store.save()
        logger.info("Workflow enabled", extra={"workflow_id": workflow_id})
        return workflow

    async def disable_workflow(self, workflow_id: str) -> Workflow:
        workflow = self._require(workflow_id)
        if not workflow.enabled:
            return workflow

        workflow.enabled = False
        workflow.touch()
        await self.triggers.disarm(workflow_id)
        self.store.save()
        logger.info("Workflow disabled", extra={"workflow_id": workflow_id})
        return workflow

    async def delete_workflow(self, workflow_id: str) -> Workflow:
        workflow = self._require(workflow_id)
        if workflow.enabled:
            await self.disable_workflow(workflow_id)
        self.store.remove(workflow_id)
        self.store.save()
        logger.info("Workflow deleted", extra={"workflow_id": workflow_id})
        return workflow

    async def update_workflow(
        self,
        workflow_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        triggers: Sequence[Any] | None = None,
        steps: Sequence[Any] | None = None,
    ) -> Workflow:
        """Replace fields wholesale. The candidate is validated before anything changes."""

        current = self._require(workflow_id)
        payload = current.model_dump(by_alias=True)
        if name is not None:
            payload["name"] = name
        if description is not None:
            payload["description"] = description
        if triggers is not None:
            payload["triggers"] = list(triggers)
        if steps is not None:
            payload["steps"] = list(steps)
        payload["updatedAt"] = utc_now_iso()

        updated = parse_workflow(payload)

        if triggers is not None and current.enabled:
            await self.triggers.disarm(workflow_id)
            self.store.put(updated)
            await self.triggers.arm(updated)
        else:
            self.store.put(updated)
        self.store.save()
        logger.info("Workflow updated", extra={"workflow_id": workflow_id})
        return updated

    # --- execution --------------------------------------------------------------

    def execute_workflow(self, workflow_id: str, context: dict[str, Any] | None = None) -> Workflow:
        """Queue a manual run. Disabled workflows are accepted but the runner skips them."""

        workflow = self._require(workflow_id)
        if not workflow.steps:
            raise NoStepsError(workflow.name)
        self.queue.enqueue(workflow_id, {"trigger": "manual", **(context or {})})
        return workflow

    def get_execution_history(
        self, workflow_id: str | None = None, limit: int = 50
    ) -> list[Execution]:
        return self.history.query(workflow_id=workflow_id, limit=limit)

    def get_execution_summaries(
        self, workflow_id: str | None = None, limit: int = 50
    ) -> list[ExecutionSummary]:
        return self.history.summaries(workflow_id=workflow_id, limit=limit)
