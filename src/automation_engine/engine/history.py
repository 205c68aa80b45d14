"""Bounded in-memory log of executions.

Records are appended when an execution starts and mutated in place until they
reach a terminal status. The sweep only ever removes whole records: first by
age, then by count (oldest first).
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from automation_engine.engine.models import Execution, ExecutionStatus, ExecutionSummary

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 60 * 60


class HistoryLedger:
    def __init__(self, *, retention_days: int = 30, max_records: int = 1000) -> None:
        self.retention = timedelta(days=retention_days)
        self.max_records = max_records
        self._executions: list[Execution] = []
        self._sweeper: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._executions)

    def append(self, execution: Execution) -> None:
        self._executions.append(execution)

    def all(self) -> list[Execution]:
        return list(self._executions)

    def get(self, execution_id: str) -> Execution | None:
        for execution in self._executions:
            if execution.id == execution_id:
                return execution
        return None

    def running_count(self) -> int:
        return sum(1 for e in self._executions if e.status == ExecutionStatus.RUNNING)

    def sweep(self, now: datetime | None = None) -> int:
        """Apply the retention window, then the count cap. Returns how many were dropped."""

        before = len(self._executions)
        cutoff = (now or datetime.now(tz=UTC)) - self.retention
        kept = [e for e in self._executions if e.started > cutoff]
        if len(kept) > self.max_records:
            kept = kept[-self.max_records :]
        self._executions = kept

        dropped = before - len(kept)
        if dropped:
            logger.info("Execution history swept", extra={"dropped": dropped, "kept": len(kept)})
        return dropped

    def query(self, workflow_id: str | None = None, limit: int = 50) -> list[Execution]:
        """Most recent first, optionally filtered by workflow."""

        history = self._executions
        if workflow_id:
            history = [e for e in history if e.workflow_id == workflow_id]
        if limit <= 0:
            return []
        return list(reversed(history[-limit:]))

    def summaries(self, workflow_id: str | None = None, limit: int = 50) -> list[ExecutionSummary]:
        return [ExecutionSummary.from_execution(e) for e in self.query(workflow_id, limit)]

    def start_sweeper(self, interval_seconds: float = SWEEP_INTERVAL_SECONDS) -> None:
        if self._sweeper is not None and not self._sweeper.done():
            return

        async def _sweep_loop() -> None:
            while True:
                await asyncio.sleep(interval_seconds)
                self.sweep()

        self._sweeper = asyncio.create_task(_sweep_loop(), name="history-sweeper")

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
