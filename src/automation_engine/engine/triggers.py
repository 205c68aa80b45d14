"""Live trigger handles for enabled workflows.

Triggers detect external facts (time, filesystem changes) and emit enqueue
events. Triggers never perform work themselves.

Handles are keyed by ``f"{workflow_id}_{trigger_id}"`` so a workflow's handles
can be torn down precisely. Every registry mutation happens on the event loop
thread; watchdog observer threads only schedule callbacks onto the loop.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from croniter import croniter
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from automation_engine.engine.models import (
    FileEventTrigger,
    ScheduleTrigger,
    TimeBasedTrigger,
    Trigger,
    Workflow,
)
from automation_engine.engine.validation import is_valid_cron

logger = logging.getLogger(__name__)

DOTFILE_PATTERN = r"(^|[/\\])\."

EnqueueCallback = Callable[[str, dict[str, Any]], None]

# watchdog event types per trigger event. Moves count as add at the new path
# and unlink at the old one.
_EVENT_TYPES: dict[str, set[str]] = {
    "add": {"created", "moved"},
    "change": {"modified"},
    "unlink": {"deleted", "moved"},
}


def handle_key(workflow_id: str, trigger_id: str) -> str:
    return f"{workflow_id}_{trigger_id}"


@dataclass
class TriggerHandle:
    """A live timer, cron task or filesystem watch."""

    key: str
    kind: str
    task: asyncio.Task[None] | None = None
    timer: asyncio.TimerHandle | None = None
    observer: BaseObserver | None = None
    details: dict[str, Any] = field(default_factory=dict)

    async def close(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
        if self.task is not None:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        if self.observer is not None:
            self.observer.stop()
            await asyncio.to_thread(self.observer.join)


class _WatchHandler(FileSystemEventHandler):
    def __init__(
        self,
        *,
        event: str,
        ignore: re.Pattern[str],
        loop: asyncio.AbstractEventLoop,
        fire: Callable[[str], None],
    ) -> None:
        self._event = event
        self._types = _EVENT_TYPES[event]
        self._ignore = ignore
        self._loop = loop
        self._fire = fire

    def _path_for(self, event: FileSystemEvent) -> str | None:
        if event.is_directory or event.event_type not in self._types:
            return None
        if event.event_type == "moved":
            raw = event.dest_path if self._event == "add" else event.src_path
        else:
            raw = event.src_path
        path = raw.decode() if isinstance(raw, bytes) else str(raw)
        if not path or self._ignore.search(path):
            return None
        return path

    def on_any_event(self, event: FileSystemEvent) -> None:
        path = self._path_for(event)
        if path is not None:
            self._loop.call_soon_threadsafe(self._fire, path)


class TriggerManager:
    def __init__(self, enqueue: EnqueueCallback) -> None:
        self._enqueue = enqueue
        self._handles: dict[str, TriggerHandle] = {}

    def handle_keys(self, workflow_id: str | None = None) -> list[str]:
        if workflow_id is None:
            return sorted(self._handles)
        prefix = f"{workflow_id}_"
        return sorted(k for k in self._handles if k.startswith(prefix))

    def get_handle(self, key: str) -> TriggerHandle | None:
        return self._handles.get(key)

    async def arm(self, workflow: Workflow) -> list[str]:
        """Install a live handle per trigger. Returns the keys that are now armed."""

        armed: list[str] = []
        for trigger in workflow.triggers:
            key = handle_key(workflow.id, trigger.id)
            existing = self._handles.pop(key, None)
            if existing is not None:
                await existing.close()
            try:
                handle = self._build(workflow.id, trigger, key)
            except Exception:
                logger.exception(
                    "Failed to set up trigger",
                    extra={"workflow_id": workflow.id, "trigger_id": trigger.id},
                )
                continue
            if handle is None:
                continue
            self._handles[key] = handle
            armed.append(key)

        if armed:
            logger.info("Triggers armed", extra={"workflow_id": workflow.id, "keys": armed})
        return armed

    async def disarm(self, workflow_id: str) -> int:
        """Release every handle belonging to the workflow. Safe to call repeatedly."""

        keys = self.handle_keys(workflow_id)
        handles = [self._handles.pop(k) for k in keys]
        for handle in handles:
            await handle.close()
        if handles:
            logger.info("Triggers disarmed", extra={"workflow_id": workflow_id, "count": len(handles)})
        return len(handles)

    async def close(self) -> None:
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            await handle.close()

    def _build(self, workflow_id: str, trigger: Trigger, key: str) -> TriggerHandle | None:
        if isinstance(trigger, ScheduleTrigger):
            return self._build_schedule(workflow_id, trigger, key)
        if isinstance(trigger, FileEventTrigger):
            return self._build_file_event(workflow_id, trigger, key)
        if isinstance(trigger, TimeBasedTrigger):
            return self._build_time_based(workflow_id, trigger, key)
        raise TypeError(f"Unsupported trigger: {type(trigger).__name__}")

    def _build_schedule(
        self, workflow_id: str, trigger: ScheduleTrigger, key: str
    ) -> TriggerHandle | None:
        if not is_valid_cron(trigger.cron):
            logger.warning(
                "Invalid cron expression; trigger skipped",
                extra={"workflow_id": workflow_id, "cron": trigger.cron},
            )
            return None

        async def _cron_loop() -> None:
            schedule = croniter(trigger.cron, datetime.now().astimezone())
            while True:
                next_fire: datetime = schedule.get_next(datetime)
                delay = (next_fire - datetime.now().astimezone()).total_seconds()
                if delay > 0:
                    await asyncio.sleep(delay)
                self._enqueue(workflow_id, {"trigger": "schedule", "cron": trigger.cron})

        task = asyncio.create_task(_cron_loop(), name=f"cron-{key}")
        return TriggerHandle(key=key, kind="schedule", task=task, details={"cron": trigger.cron})

    def _build_file_event(
        self, workflow_id: str, trigger: FileEventTrigger, key: str
    ) -> TriggerHandle:
        if not trigger.path:
            raise ValueError("File event trigger requires a path")

        ignore = re.compile(trigger.ignore_pattern or DOTFILE_PATTERN)
        event = trigger.event

        def _fire(path: str) -> None:
            # Late events from an observer that is being torn down.
            if key not in self._handles:
                return
            self._enqueue(workflow_id, {"trigger": "file_event", "event": event, "path": path})

        handler = _WatchHandler(
            event=event, ignore=ignore, loop=asyncio.get_running_loop(), fire=_fire
        )
        observer: BaseObserver = PollingObserver() if trigger.use_polling else Observer()
        observer.schedule(handler, trigger.path, recursive=True)
        observer.daemon = True
        observer.start()
        return TriggerHandle(
            key=key,
            kind="file_event",
            observer=observer,
            details={"path": trigger.path, "event": event, "polling": trigger.use_polling},
        )

    def _build_time_based(
        self, workflow_id: str, trigger: TimeBasedTrigger, key: str
    ) -> TriggerHandle | None:
        deadline = trigger.deadline()
        delay = (deadline - datetime.now().astimezone()).total_seconds()
        if delay <= 0:
            logger.debug(
                "Deadline already passed; trigger not armed",
                extra={"workflow_id": workflow_id, "datetime": trigger.run_at},
            )
            return None

        def _fire() -> None:
            self._handles.pop(key, None)
            self._enqueue(workflow_id, {"trigger": "time_based", "datetime": trigger.run_at})

        timer = asyncio.get_running_loop().call_later(delay, _fire)
        return TriggerHandle(
            key=key, kind="time_based", timer=timer, details={"datetime": trigger.run_at}
        )
