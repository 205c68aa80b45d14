"""CLI entrypoint for the automation engine.

`serve` runs the engine until interrupted. The other commands are one-shot and
operate directly on the workflow snapshot; run them while no engine process is
serving the same data directory.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from automation_engine import __version__
from automation_engine.engine.config import EngineSettings
from automation_engine.engine.errors import (
    NoStepsError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from automation_engine.engine.logging import configure_logging
from automation_engine.engine.models import ExecutionStatus, Workflow
from automation_engine.engine.service import AutomationService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="automation-engine",
        description="Local workflow automation engine",
    )
    parser.add_argument("--version", action="version", version=f"automation-engine {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the engine until SIGINT/SIGTERM")
    serve.add_argument(
        "allowed_dirs",
        nargs="*",
        help="Allow-listed directories (overrides AUTOMATION_ALLOWED_DIRS)",
    )

    api = subparsers.add_parser("api", help="Run the engine behind the REST API")
    api.add_argument("--host", default="127.0.0.1", help="Bind address")
    api.add_argument("--port", type=int, default=8000, help="Bind port")
    api.add_argument(
        "allowed_dirs",
        nargs="*",
        help="Allow-listed directories (overrides AUTOMATION_ALLOWED_DIRS)",
    )

    list_cmd = subparsers.add_parser("list", help="List workflows")
    list_cmd.add_argument(
        "--status",
        choices=["all", "enabled", "disabled"],
        default="all",
        help="Filter by enabled state",
    )

    create = subparsers.add_parser("create", help="Create a (disabled) workflow")
    create.add_argument("--name", required=True, help="Workflow name")
    create.add_argument("--description", default=None, help="Workflow description")
    create.add_argument(
        "--definition",
        default=None,
        help="Path to a JSON file with optional 'triggers' and 'steps' arrays",
    )

    from_text = subparsers.add_parser(
        "create-from-text", help="Create a workflow from a natural-language request"
    )
    from_text.add_argument("request", help='e.g. "Move screenshots from Desktop daily at 6pm"')

    for name, help_text in (
        ("enable", "Enable a workflow and arm its triggers"),
        ("disable", "Disable a workflow and tear down its triggers"),
        ("delete", "Delete a workflow"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("workflow_id", help="Workflow ID")

    run = subparsers.add_parser("run", help="Execute a workflow once and wait for the result")
    run.add_argument("workflow_id", help="Workflow ID")
    run.add_argument(
        "allowed_dirs",
        nargs="*",
        help="Allow-listed directories (overrides AUTOMATION_ALLOWED_DIRS)",
    )

    return parser


def _load_definition(path: str | None) -> dict[str, Any]:
    if path is None:
        return {}
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise WorkflowValidationError(["Definition file must contain a JSON object"])
    return raw


def _describe(workflow: Workflow) -> str:
    state = "enabled" if workflow.enabled else "disabled"
    return (
        f"{workflow.name} ({workflow.id}) [{state}] "
        f"triggers={len(workflow.triggers)} steps={len(workflow.steps)}"
    )


async def _run_command(args: argparse.Namespace, settings: EngineSettings) -> int:
    service = AutomationService(settings)

    if args.command == "serve":
        await service.run_forever()
        return 0

    await service.start(arm_triggers=False, sweep_history=False)
    try:
        if args.command == "list":
            workflows = service.list_workflows(args.status)
            if not workflows:
                print("No workflows found.")
            for w in workflows:
                print(_describe(w))
            return 0

        if args.command == "create":
            definition = _load_definition(args.definition)
            workflow = await service.create_workflow(
                name=args.name,
                description=args.description,
                triggers=definition.get("triggers"),
                steps=definition.get("steps"),
            )
            print(f"Created workflow {_describe(workflow)}")
            return 0

        if args.command == "create-from-text":
            workflow = await service.create_workflow_from_text(args.request)
            print(f"Created workflow {_describe(workflow)}")
            for index, step in enumerate(workflow.steps, start=1):
                print(f"  {index}. {step.description or step.type}")
            return 0

        if args.command == "enable":
            workflow = await service.enable_workflow(args.workflow_id)
            print(f"Enabled workflow {_describe(workflow)}")
            return 0

        if args.command == "disable":
            workflow = await service.disable_workflow(args.workflow_id)
            print(f"Disabled workflow {_describe(workflow)}")
            return 0

        if args.command == "delete":
            workflow = await service.delete_workflow(args.workflow_id)
            print(f"Deleted workflow {workflow.name} ({workflow.id})")
            return 0

        if args.command == "run":
            service.execute_workflow(args.workflow_id)
            await service.wait_idle()
            executions = service.get_execution_history(args.workflow_id, limit=1)
            if not executions:
                print("Workflow did not run (is it enabled?)")
                return 5
            execution = executions[0]
            for step in execution.steps:
                suffix = f": {step.error}" if step.error else ""
                print(f"  {step.step_type} {step.step_id} {step.status.value}{suffix}")
            print(f"Execution {execution.id} {execution.status.value} in {execution.duration}ms")
            return 0 if execution.status == ExecutionStatus.COMPLETED else 4

        logger.error("Unknown command", extra={"command": args.command})
        return 2
    finally:
        await service.shutdown()


def _serve_api(args: argparse.Namespace, settings: EngineSettings) -> int:
    import uvicorn

    from automation_engine.server.app import create_app

    app = create_app(AutomationService(settings))
    # log_config=None keeps the JSON root handler configured above.
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = EngineSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    if getattr(args, "allowed_dirs", None):
        settings = settings.with_allowed_directories(args.allowed_dirs)

    configure_logging(settings.log_level)

    if args.command == "api":
        return _serve_api(args, settings)

    try:
        return asyncio.run(_run_command(args, settings))

    except (WorkflowValidationError, WorkflowNotFoundError, NoStepsError) as e:
        print(str(e), file=sys.stderr)
        return 3

    except KeyboardInterrupt:
        return 130

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
