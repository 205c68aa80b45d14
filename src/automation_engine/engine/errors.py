"""Exception types raised by the engine.

Step handlers raise these; the runner records `str(exc)` on the step.
"""

from __future__ import annotations


class AutomationError(Exception):
    """Base class for engine errors."""


class WorkflowValidationError(AutomationError, ValueError):
    """Raised when a workflow definition is rejected. Nothing is persisted."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Workflow validation failed: {', '.join(self.errors)}")


class WorkflowNotFoundError(AutomationError, KeyError):
    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(workflow_id)

    def __str__(self) -> str:
        return f"Workflow not found: {self.workflow_id}"


class NoStepsError(AutomationError):
    def __init__(self, workflow_name: str) -> None:
        super().__init__(f'Workflow "{workflow_name}" has no steps to execute')


class AccessDeniedError(AutomationError, PermissionError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Access denied to path: {path}")

    def __str__(self) -> str:
        return f"Access denied to path: {self.path}"


class CommandsDisabledError(AutomationError):
    def __init__(self) -> None:
        super().__init__("System commands are disabled")


class CommandFailedError(AutomationError):
    def __init__(self, exit_code: int | None, stderr: str) -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Command failed with exit code {exit_code}: {stderr}")


class CommandTimeoutError(AutomationError):
    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        super().__init__(f"Command timed out after {seconds:g}s")


class NotImplementedFeatureError(AutomationError, NotImplementedError):
    """Archive, loop and condition-expression features are placeholders."""


ARCHIVE_NOT_IMPLEMENTED = "Archive functionality not yet implemented"
LOOP_NOT_IMPLEMENTED = "Loop functionality not yet implemented"
