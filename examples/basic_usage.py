#!/usr/bin/env python3
"""Programmatic workflow example.

This demonstrates using the engine components directly:

* load settings from `.env`
* create a workflow that copies text files between two directories
* enable it, run it once and print the execution record

Both directories are created under the given root, which is also the only
allow-listed directory for the run.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence
from pathlib import Path

from automation_engine.engine.config import EngineSettings
from automation_engine.engine.logging import configure_logging
from automation_engine.engine.service import AutomationService


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Copy *.txt files once (programmatic example).")
    parser.add_argument("--root", required=True, help="Scratch directory to work in")
    return parser.parse_args(argv)


async def _run(root: Path) -> int:
    inbox = root / "inbox"
    outbox = root / "outbox"
    inbox.mkdir(parents=True, exist_ok=True)
    (inbox / "hello.txt").write_text("hello\n", encoding="utf-8")

    settings = EngineSettings().with_allowed_directories([str(root)])
    settings = settings.model_copy(update={"data_dir": root / "data", "logs_dir": root / "logs"})
    configure_logging(settings.log_level)

    service = AutomationService(settings)
    await service.start(arm_triggers=False)
    try:
        workflow = await service.create_workflow(
            name="Copy text files",
            steps=[
                {
                    "type": "file_operation",
                    "operation": "copy",
                    "source": str(inbox),
                    "destination": str(outbox),
                    "pattern": "*.txt",
                }
            ],
        )
        await service.enable_workflow(workflow.id)
        service.execute_workflow(workflow.id)
        await service.wait_idle()

        [execution] = service.get_execution_history(workflow.id, limit=1)
        print(json.dumps(execution.to_json(), indent=2))
        print(f"Outbox now holds: {sorted(p.name for p in outbox.iterdir())}")
        return 0 if execution.status.value == "completed" else 1
    finally:
        await service.shutdown()


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    return asyncio.run(_run(Path(args.root).resolve()))


if __name__ == "__main__":
    raise SystemExit(main())
