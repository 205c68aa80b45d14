"""JSON-file backed workflow store.

The in-memory table is the source of truth while the engine runs. Every CRUD
mutation rewrites the whole snapshot; there is no incremental format.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError

from automation_engine.engine.models import Workflow

logger = logging.getLogger(__name__)


class WorkflowStore:
    def __init__(self, path: Path) -> None:
        self._path = path
        self._workflows: dict[str, Workflow] = {}

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        return len(self._workflows)

    def __iter__(self) -> Iterator[Workflow]:
        return iter(list(self._workflows.values()))

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._workflows

    def get(self, workflow_id: str) -> Workflow | None:
        return self._workflows.get(workflow_id)

    def list(self) -> list[Workflow]:
        return list(self._workflows.values())

    def put(self, workflow: Workflow) -> None:
        self._workflows[workflow.id] = workflow

    def remove(self, workflow_id: str) -> Workflow | None:
        return self._workflows.pop(workflow_id, None)

    def load(self) -> list[Workflow]:
        """Replace the table with the snapshot contents.

        A missing snapshot means "no workflows yet". Unreadable snapshots and
        invalid entries are logged and skipped.
        """

        self._workflows = {}
        if not self._path.exists():
            logger.info("No existing workflows found, starting fresh", extra={"path": str(self._path)})
            return []

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(
                "Failed to read workflow snapshot; starting empty",
                extra={"path": str(self._path), "error": str(e)},
            )
            return []

        if not isinstance(raw, list):
            logger.warning(
                "Workflow snapshot has unexpected shape; treating as empty",
                extra={"path": str(self._path)},
            )
            return []

        for item in raw:
            try:
                workflow = Workflow.model_validate(item)
            except ValidationError as e:
                logger.error(
                    "Skipping malformed workflow in snapshot",
                    extra={"path": str(self._path), "error": str(e)},
                )
                continue
            self._workflows[workflow.id] = workflow

        logger.info("Workflows loaded", extra={"count": len(self._workflows)})
        return self.list()

    def save(self) -> bool:
        """Write the full table to disk. Failures are logged, not raised."""

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            payload = [w.to_json() for w in self._workflows.values()]
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
            tmp.replace(self._path)
        except OSError as e:
            logger.error(
                "Failed to save workflows", extra={"path": str(self._path), "error": str(e)}
            )
            return False
        return True
