"""Daily JSON-lines log of execution lifecycle events.

One file per UTC calendar day (`automation-YYYY-MM-DD.log`), one line per event.
Write failures are logged and swallowed; the log never fails an execution.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

import aiofiles
import aiofiles.os

from automation_engine.engine.models import Execution

logger = logging.getLogger(__name__)

LOG_FILE_PREFIX = "automation-"


class ExecutionLog:
    def __init__(self, logs_dir: Path) -> None:
        self._logs_dir = logs_dir

    @property
    def logs_dir(self) -> Path:
        return self._logs_dir

    def path_for(self, when: datetime) -> Path:
        return self._logs_dir / f"{LOG_FILE_PREFIX}{when.astimezone(UTC).date().isoformat()}.log"

    async def write(self, execution: Execution, message: str) -> None:
        now = datetime.now(tz=UTC)
        entry = {
            "timestamp": now.isoformat(),
            "executionId": execution.id,
            "workflowId": execution.workflow_id,
            "message": message,
            "execution": json.dumps(execution.to_json(), indent=2, ensure_ascii=False),
        }
        path = self.path_for(now)
        try:
            await aiofiles.os.makedirs(self._logs_dir, exist_ok=True)
            async with aiofiles.open(path, "a", encoding="utf-8") as f:
                await f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error("Failed to write execution log", extra={"path": str(path), "error": str(e)})
