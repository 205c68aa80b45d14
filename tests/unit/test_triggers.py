"""Unit tests for trigger arming and teardown."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from automation_engine.engine.models import (
    FileEventTrigger,
    ScheduleTrigger,
    TimeBasedTrigger,
    Workflow,
)
from automation_engine.engine.triggers import TriggerManager, handle_key


class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, workflow_id: str, context: dict[str, Any]) -> None:
        self.calls.append((workflow_id, context))


@pytest.fixture
async def manager():
    recorder = Recorder()
    mgr = TriggerManager(recorder)
    mgr.recorder = recorder
    yield mgr
    await mgr.close()


def _local_iso(delta: timedelta) -> str:
    return (datetime.now() + delta).isoformat(timespec="milliseconds")


async def test_schedule_arm_is_idempotent_and_disarm_releases(manager: TriggerManager) -> None:
    trigger = ScheduleTrigger(cron="0 9 * * *")
    workflow = Workflow(name="w", triggers=[trigger], enabled=True)
    key = handle_key(workflow.id, trigger.id)

    assert await manager.arm(workflow) == [key]
    assert await manager.arm(workflow) == [key]
    assert manager.handle_keys() == [key]
    assert manager.get_handle(key).kind == "schedule"

    assert await manager.disarm(workflow.id) == 1
    assert await manager.disarm(workflow.id) == 0
    assert manager.handle_keys() == []


async def test_invalid_cron_is_skipped(manager: TriggerManager) -> None:
    workflow = Workflow(name="w", triggers=[ScheduleTrigger(cron="whenever")])

    assert await manager.arm(workflow) == []


async def test_disarm_only_touches_one_workflow(manager: TriggerManager) -> None:
    one = Workflow(name="one", triggers=[ScheduleTrigger(cron="* * * * *")])
    two = Workflow(name="two", triggers=[ScheduleTrigger(cron="* * * * *")])
    await manager.arm(one)
    await manager.arm(two)

    await manager.disarm(one.id)

    assert manager.handle_keys(two.id) == manager.handle_keys()
    assert len(manager.handle_keys()) == 1


async def test_past_deadline_is_not_armed(manager: TriggerManager) -> None:
    workflow = Workflow(
        name="w", triggers=[TimeBasedTrigger(datetime=_local_iso(timedelta(minutes=-1)))]
    )

    assert await manager.arm(workflow) == []


async def test_future_deadline_fires_once_and_releases_handle(manager: TriggerManager) -> None:
    run_at = _local_iso(timedelta(milliseconds=100))
    workflow = Workflow(name="w", triggers=[TimeBasedTrigger(datetime=run_at)])

    assert len(await manager.arm(workflow)) == 1
    await asyncio.sleep(0.4)

    assert manager.recorder.calls == [(workflow.id, {"trigger": "time_based", "datetime": run_at})]
    assert manager.handle_keys() == []


async def test_disarmed_deadline_never_fires(manager: TriggerManager) -> None:
    workflow = Workflow(
        name="w", triggers=[TimeBasedTrigger(datetime=_local_iso(timedelta(milliseconds=100)))]
    )
    await manager.arm(workflow)

    await manager.disarm(workflow.id)
    await asyncio.sleep(0.3)

    assert manager.recorder.calls == []


async def test_polling_file_watch_reports_new_files(
    manager: TriggerManager, tmp_path: Path
) -> None:
    watched = tmp_path / "inbox"
    watched.mkdir()
    trigger = FileEventTrigger(path=str(watched), event="add", use_polling=True)
    workflow = Workflow(name="w", triggers=[trigger])

    assert len(await manager.arm(workflow)) == 1
    await asyncio.sleep(0.5)
    (watched / ".partial").write_text("x", encoding="utf-8")
    (watched / "photo.png").write_text("x", encoding="utf-8")

    for _ in range(50):
        if manager.recorder.calls:
            break
        await asyncio.sleep(0.1)
    await asyncio.sleep(0.2)

    assert manager.recorder.calls == [
        (
            workflow.id,
            {"trigger": "file_event", "event": "add", "path": str(watched / "photo.png")},
        )
    ]


async def test_file_event_without_path_is_skipped(manager: TriggerManager) -> None:
    workflow = Workflow(name="w", triggers=[FileEventTrigger()])

    assert await manager.arm(workflow) == []
