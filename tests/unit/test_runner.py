"""Unit tests for sequential step execution."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from automation_engine.engine import runner as runner_module
from automation_engine.engine.models import ExecutionStatus, StepStatus, Workflow
from automation_engine.engine.service import AutomationService


async def _enabled(service: AutomationService, steps: list[dict[str, Any]]) -> Workflow:
    workflow = await service.create_workflow(name="test", steps=steps)
    return await service.enable_workflow(workflow.id)


async def test_disabled_or_missing_workflow_is_a_no_op(service: AutomationService) -> None:
    workflow = await service.create_workflow(
        name="off", steps=[{"type": "command", "command": "true"}]
    )

    assert await service.runner.run(workflow.id) is None
    assert await service.runner.run("missing") is None
    assert service.history.all() == []


async def test_failed_step_halts_by_default(service: AutomationService, sandbox: Path) -> None:
    workflow = await _enabled(
        service,
        [
            {"type": "file_operation", "operation": "delete", "source": str(sandbox / "missing")},
            {"type": "file_operation", "operation": "create_directory", "source": str(sandbox / "x")},
        ],
    )

    execution = await service.runner.run(workflow.id)

    assert execution is not None
    assert execution.status == ExecutionStatus.FAILED
    assert [s.status for s in execution.steps] == [StepStatus.FAILED]
    assert execution.error == execution.steps[0].error
    assert not (sandbox / "x").exists()


async def test_continue_on_error_runs_remaining_steps(
    service: AutomationService, sandbox: Path
) -> None:
    workflow = await _enabled(
        service,
        [
            {
                "type": "file_operation",
                "operation": "delete",
                "source": str(sandbox / "missing"),
                "onError": "continue",
            },
            {"type": "file_operation", "operation": "create_directory", "source": str(sandbox / "x")},
        ],
    )

    execution = await service.runner.run(workflow.id)

    assert execution.status == ExecutionStatus.COMPLETED
    assert [s.status for s in execution.steps] == [StepStatus.FAILED, StepStatus.COMPLETED]
    assert execution.error is None
    assert (sandbox / "x").is_dir()


async def test_paths_outside_allow_list_are_denied(
    service: AutomationService, sandbox: Path
) -> None:
    workflow = await _enabled(
        service,
        [
            {
                "type": "file_operation",
                "operation": "copy",
                "source": "/etc/hostname",
                "destination": str(sandbox / "hostname"),
            }
        ],
    )

    execution = await service.runner.run(workflow.id)

    assert execution.status == ExecutionStatus.FAILED
    assert execution.steps[0].error == "Access denied to path: /etc/hostname"
    assert not (sandbox / "hostname").exists()


async def test_destination_is_checked_too(service: AutomationService, sandbox: Path) -> None:
    (sandbox / "a.txt").write_text("a", encoding="utf-8")
    workflow = await _enabled(
        service,
        [
            {
                "type": "file_operation",
                "operation": "move",
                "source": str(sandbox / "a.txt"),
                "destination": "/tmp/outside-allow-list",
            }
        ],
    )

    execution = await service.runner.run(workflow.id)

    assert execution.steps[0].error == "Access denied to path: /tmp/outside-allow-list"
    assert (sandbox / "a.txt").exists()


async def test_missing_destination_fails_instead_of_using_cwd(
    service: AutomationService, sandbox: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (sandbox / "secret.txt").write_text("s", encoding="utf-8")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    monkeypatch.chdir(elsewhere)
    # Loaded snapshots are not re-validated, so the runner must hold the line itself.
    workflow = Workflow.model_validate(
        {
            "name": "no destination",
            "enabled": True,
            "steps": [
                {
                    "type": "file_operation",
                    "operation": "copy",
                    "source": str(sandbox),
                    "pattern": "*.txt",
                }
            ],
        }
    )
    service.store.put(workflow)

    execution = await service.runner.run(workflow.id)

    assert execution.status == ExecutionStatus.FAILED
    assert execution.steps[0].error == "File operation destination is required"
    assert list(elsewhere.iterdir()) == []


@pytest.mark.parametrize(
    ("step", "message"),
    [
        (
            {"type": "file_operation", "operation": "archive", "source": "SANDBOX"},
            "Archive functionality not yet implemented",
        ),
        ({"type": "loop", "items": [1, 2]}, "Loop functionality not yet implemented"),
    ],
)
async def test_placeholder_features_fail_the_step(
    service: AutomationService, sandbox: Path, step: dict[str, Any], message: str
) -> None:
    if step.get("source") == "SANDBOX":
        step = {**step, "source": str(sandbox)}
    workflow = await _enabled(service, [step])

    execution = await service.runner.run(workflow.id)

    assert execution.status == ExecutionStatus.FAILED
    assert execution.steps[0].error == message


async def test_command_step(service: AutomationService, sandbox: Path) -> None:
    workflow = await _enabled(
        service,
        [{"type": "command", "command": "touch", "args": ["made"], "workingDirectory": str(sandbox)}],
    )

    execution = await service.runner.run(workflow.id)

    assert execution.status == ExecutionStatus.COMPLETED
    assert (sandbox / "made").exists()


async def test_commands_disabled(settings, sandbox: Path) -> None:
    svc = AutomationService(settings.model_copy(update={"enable_system_commands": False}))
    await svc.start(sweep_history=False)
    try:
        workflow = await _enabled(svc, [{"type": "command", "command": "true"}])
        execution = await svc.runner.run(workflow.id)
    finally:
        await svc.shutdown()

    assert execution.steps[0].error == "System commands are disabled"


async def test_condition_holds_by_default(service: AutomationService, sandbox: Path) -> None:
    workflow = await _enabled(
        service,
        [
            {"type": "condition", "condition": "context.size > 10", "onFalse": "stop"},
            {"type": "file_operation", "operation": "create_directory", "source": str(sandbox / "y")},
        ],
    )

    execution = await service.runner.run(workflow.id)

    assert [s.status for s in execution.steps] == [StepStatus.COMPLETED, StepStatus.COMPLETED]


async def test_false_condition_with_stop_skips_the_rest(
    service: AutomationService, sandbox: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(runner_module, "evaluate_condition", lambda _expr, _ctx: False)
    workflow = await _enabled(
        service,
        [
            {"type": "condition", "condition": "false", "onFalse": "stop"},
            {"type": "file_operation", "operation": "create_directory", "source": str(sandbox / "y")},
        ],
    )

    execution = await service.runner.run(workflow.id)

    assert execution.status == ExecutionStatus.COMPLETED
    assert [s.status for s in execution.steps] == [StepStatus.SKIPPED]
    assert not (sandbox / "y").exists()


async def test_execution_is_logged_and_recorded(
    service: AutomationService, settings, sandbox: Path
) -> None:
    workflow = await _enabled(
        service,
        [{"type": "file_operation", "operation": "create_directory", "source": str(sandbox / "z")}],
    )

    execution = await service.runner.run(workflow.id, {"trigger": "manual"})

    assert service.history.get(execution.id) is execution
    assert execution.context == {"trigger": "manual"}
    assert execution.workflow_name == "test"
    assert execution.duration is not None

    [log_file] = list(settings.resolved_logs_dir.glob("automation-*.log"))
    lines = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert [entry["message"] for entry in lines] == [
        "Workflow execution started",
        "Workflow execution completed",
    ]
    assert lines[1]["executionId"] == execution.id
    assert json.loads(lines[1]["execution"])["status"] == "completed"
