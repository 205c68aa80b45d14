"""Unit tests for workflow lifecycle operations on the service."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from automation_engine.engine.errors import (
    NoStepsError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from automation_engine.engine.models import ExecutionStatus
from automation_engine.engine.service import AutomationService

SCHEDULE = {"type": "schedule", "cron": "0 9 * * *"}


def _mkdir_step(path: Path) -> dict[str, str]:
    return {"type": "file_operation", "operation": "create_directory", "source": str(path)}


async def test_create_persists_disabled_workflow(service: AutomationService, settings) -> None:
    workflow = await service.create_workflow(name="Nightly", triggers=[SCHEDULE])

    assert workflow.enabled is False
    assert service.triggers.handle_keys() == []

    raw = json.loads(settings.workflows_file.read_text(encoding="utf-8"))
    assert [w["id"] for w in raw] == [workflow.id]


async def test_invalid_create_persists_nothing(service: AutomationService, settings) -> None:
    with pytest.raises(WorkflowValidationError, match="Invalid cron expression: nope"):
        await service.create_workflow(name="bad", triggers=[{"type": "schedule", "cron": "nope"}])

    assert service.list_workflows() == []
    assert not settings.workflows_file.exists()


async def test_enable_arms_and_disable_disarms(service: AutomationService) -> None:
    workflow = await service.create_workflow(name="w", triggers=[SCHEDULE])

    enabled = await service.enable_workflow(workflow.id)
    assert enabled.enabled is True
    assert service.triggers.handle_keys(workflow.id) == [f"{workflow.id}_{workflow.triggers[0].id}"]

    await service.enable_workflow(workflow.id)
    assert len(service.triggers.handle_keys()) == 1

    disabled = await service.disable_workflow(workflow.id)
    assert disabled.enabled is False
    assert service.triggers.handle_keys() == []


async def test_delete_disarms_and_removes(service: AutomationService) -> None:
    workflow = await service.create_workflow(name="w", triggers=[SCHEDULE])
    await service.enable_workflow(workflow.id)

    deleted = await service.delete_workflow(workflow.id)

    assert deleted.id == workflow.id
    assert service.triggers.handle_keys() == []
    with pytest.raises(WorkflowNotFoundError):
        service.get_workflow(workflow.id)


async def test_unknown_ids_raise_not_found(service: AutomationService) -> None:
    for call in (service.enable_workflow, service.disable_workflow, service.delete_workflow):
        with pytest.raises(WorkflowNotFoundError, match="Workflow not found: nope"):
            await call("nope")
    with pytest.raises(WorkflowNotFoundError):
        service.execute_workflow("nope")


async def test_list_filters_by_status(service: AutomationService) -> None:
    on = await service.create_workflow(name="on")
    off = await service.create_workflow(name="off")
    await service.enable_workflow(on.id)

    assert [w.id for w in service.list_workflows("enabled")] == [on.id]
    assert [w.id for w in service.list_workflows("disabled")] == [off.id]
    assert len(service.list_workflows()) == 2


async def test_execute_requires_steps(service: AutomationService) -> None:
    workflow = await service.create_workflow(name="Empty")

    with pytest.raises(NoStepsError, match='Workflow "Empty" has no steps to execute'):
        service.execute_workflow(workflow.id)


async def test_manual_execution(service: AutomationService, sandbox: Path) -> None:
    workflow = await service.create_workflow(name="w", steps=[_mkdir_step(sandbox / "made")])
    await service.enable_workflow(workflow.id)

    service.execute_workflow(workflow.id, {"reason": "test"})
    await service.wait_idle()

    [execution] = service.get_execution_history(workflow.id)
    assert execution.status == ExecutionStatus.COMPLETED
    assert execution.context == {"trigger": "manual", "reason": "test"}
    assert (sandbox / "made").is_dir()
    assert service.get_execution_summaries()[0].steps_completed == 1


async def test_manual_execution_of_disabled_workflow_is_accepted_but_skipped(
    service: AutomationService, sandbox: Path
) -> None:
    workflow = await service.create_workflow(name="w", steps=[_mkdir_step(sandbox / "made")])

    service.execute_workflow(workflow.id)
    await service.wait_idle()

    assert service.get_execution_history() == []


async def test_update_validates_before_changing_anything(service: AutomationService) -> None:
    workflow = await service.create_workflow(name="w", triggers=[SCHEDULE])

    with pytest.raises(WorkflowValidationError):
        await service.update_workflow(
            workflow.id, triggers=[{"type": "schedule", "cron": "bad"}], name="renamed"
        )

    current = service.get_workflow(workflow.id)
    assert current.name == "w"
    assert current.triggers[0].cron == "0 9 * * *"


async def test_update_rearms_enabled_workflow(service: AutomationService) -> None:
    workflow = await service.create_workflow(name="w", triggers=[SCHEDULE])
    await service.enable_workflow(workflow.id)
    old_keys = service.triggers.handle_keys(workflow.id)

    updated = await service.update_workflow(
        workflow.id, name="renamed", triggers=[{"type": "schedule", "cron": "*/5 * * * *"}]
    )

    assert updated.name == "renamed"
    assert updated.enabled is True
    assert updated.created_at == workflow.created_at
    new_keys = service.triggers.handle_keys(workflow.id)
    assert len(new_keys) == 1
    assert new_keys != old_keys
    assert service.triggers.get_handle(new_keys[0]).details == {"cron": "*/5 * * * *"}


async def test_create_from_text(service: AutomationService) -> None:
    workflow = await service.create_workflow_from_text("Move screenshots daily at 6pm")

    assert workflow.name == "Daily Move Screenshots"
    assert workflow.description == "Move screenshots daily at 6pm"
    assert workflow.triggers[0].cron == "0 18 * * *"
    assert len(workflow.steps) == 3
    assert service.get_workflow(workflow.id) == workflow


async def test_restart_rearms_enabled_workflows(settings) -> None:
    first = AutomationService(settings)
    await first.start(sweep_history=False)
    on = await first.create_workflow(name="on", triggers=[SCHEDULE])
    await first.create_workflow(name="off", triggers=[SCHEDULE])
    await first.enable_workflow(on.id)
    await first.shutdown()

    second = AutomationService(settings)
    await second.start(sweep_history=False)
    try:
        assert len(second.list_workflows()) == 2
        assert second.triggers.handle_keys() == [f"{on.id}_{on.triggers[0].id}"]
    finally:
        await second.shutdown()


async def test_one_shot_start_does_not_arm(settings) -> None:
    first = AutomationService(settings)
    await first.start(sweep_history=False)
    workflow = await first.create_workflow(name="on", triggers=[SCHEDULE])
    await first.enable_workflow(workflow.id)
    await first.shutdown()

    second = AutomationService(settings)
    await second.start(arm_triggers=False, sweep_history=False)
    try:
        assert second.triggers.handle_keys() == []
    finally:
        await second.shutdown()
