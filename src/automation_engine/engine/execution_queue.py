"""FIFO of pending executions, drained by a single task.

Before each entry runs, the drain counts `running` executions in the history
ledger. At or above the ceiling the entry goes back to the front and draining
stops until the next `enqueue` (or `kick`). This is a best-effort FIFO: a head
that keeps getting re-queued can starve the entries behind it.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from automation_engine.engine.history import HistoryLedger
from automation_engine.engine.runner import WorkflowRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QueueEntry:
    workflow_id: str
    context: dict[str, Any] = field(default_factory=dict)


class ExecutionQueue:
    def __init__(
        self, *, runner: WorkflowRunner, history: HistoryLedger, max_concurrent: int = 10
    ) -> None:
        self.runner = runner
        self.history = history
        self.max_concurrent = max_concurrent
        self._pending: deque[QueueEntry] = deque()
        self._drain_task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> list[QueueEntry]:
        return list(self._pending)

    @property
    def draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    def enqueue(self, workflow_id: str, context: dict[str, Any] | None = None) -> None:
        self._pending.append(QueueEntry(workflow_id=workflow_id, context=dict(context or {})))
        logger.debug(
            "Execution enqueued",
            extra={"workflow_id": workflow_id, "queue_length": len(self._pending)},
        )
        self.kick()

    def kick(self) -> None:
        """Start a drain if there is work and none is active."""

        if self._pending and not self.draining:
            self._drain_task = asyncio.create_task(self._drain(), name="execution-queue-drain")

    async def wait_idle(self) -> None:
        while self.draining:
            assert self._drain_task is not None
            await asyncio.shield(self._drain_task)

    async def _drain(self) -> None:
        while self._pending:
            entry = self._pending.popleft()
            running = self.history.running_count()
            if running >= self.max_concurrent:
                self._pending.appendleft(entry)
                logger.info(
                    "Concurrency ceiling reached; draining paused",
                    extra={"running": running, "ceiling": self.max_concurrent},
                )
                break
            try:
                await self.runner.run(entry.workflow_id, entry.context)
            except Exception:
                logger.exception(
                    "Unhandled error while running workflow",
                    extra={"workflow_id": entry.workflow_id},
                )

    async def close(self) -> None:
        self._pending.clear()
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
        self._drain_task = None
