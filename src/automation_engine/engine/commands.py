"""External command execution for `command` steps."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from automation_engine.engine.errors import (
    CommandFailedError,
    CommandsDisabledError,
    CommandTimeoutError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int


class CommandRunner:
    """Spawns processes and tracks the live ones so shutdown can terminate them."""

    def __init__(self, *, enabled: bool, default_timeout_seconds: float) -> None:
        self.enabled = enabled
        self.default_timeout_seconds = default_timeout_seconds
        self._active: dict[str, asyncio.subprocess.Process] = {}

    @property
    def active(self) -> dict[str, asyncio.subprocess.Process]:
        return dict(self._active)

    async def run(
        self,
        command: str,
        args: list[str],
        *,
        execution_id: str,
        working_directory: str | None = None,
        timeout_ms: int | None = None,
    ) -> CommandResult:
        if not self.enabled:
            raise CommandsDisabledError()

        timeout = timeout_ms / 1000 if timeout_ms else self.default_timeout_seconds
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            cwd=working_directory,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        self._active[execution_id] = proc
        logger.info(
            "Command started",
            extra={"command": command, "pid": proc.pid, "execution_id": execution_id},
        )
        try:
            try:
                out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout)
            except TimeoutError:
                proc.terminate()
                await proc.wait()
                raise CommandTimeoutError(timeout) from None
        finally:
            self._active.pop(execution_id, None)

        stdout = out.decode(errors="replace")
        stderr = err.decode(errors="replace")
        if proc.returncode != 0:
            raise CommandFailedError(proc.returncode, stderr)
        return CommandResult(stdout=stdout, stderr=stderr, exit_code=0)

    def terminate_all(self) -> int:
        """Send SIGTERM to every live process. Returns how many were signalled."""

        count = 0
        for execution_id, proc in list(self._active.items()):
            if proc.returncode is not None:
                continue
            try:
                proc.terminate()
            except ProcessLookupError:
                continue
            logger.info(
                "Terminated command", extra={"pid": proc.pid, "execution_id": execution_id}
            )
            count += 1
        return count
