"""Turn a free-text automation request into a workflow draft.

The parser only pattern-matches a handful of schedule, operation and target
phrases; it never guesses at conditions or commands.

Anything it cannot recognise is simply left out of the draft.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from automation_engine.engine.models import FileOperationStep, ScheduleTrigger

_DAYS = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]

_SCHEDULE = {
    "daily": re.compile(r"\b(daily|every day|each day)\b", re.I),
    "hourly": re.compile(r"\b(hourly|every hour|each hour)\b", re.I),
    "weekly": re.compile(r"\b(weekly|every week|each week)\b", re.I),
    "time": re.compile(r"\b(at|@)\s*(\d{1,2}):?(\d{2})?\s*(am|pm)?\b", re.I),
    "day": re.compile(r"\b(on|every)\s+(" + "|".join(_DAYS) + r")\b", re.I),
}

_OPERATIONS = [
    ("copy", re.compile(r"\b(copy|duplicate|backup)\b", re.I)),
    ("delete", re.compile(r"\b(delete|remove|clean|clear)\b", re.I)),
    ("create_directory", re.compile(r"\b(create|make|new)\s+(folder|directory)\b", re.I)),
    ("archive", re.compile(r"\b(archive|zip|compress)\b", re.I)),
]

_TARGETS: list[tuple[re.Pattern[str], list[str]]] = [
    (
        re.compile(r"\b(screenshot|screen\s*shot|screen\s*capture)s?\b", re.I),
        ["*.png", "*.jpg", "*screenshot*.*"],
    ),
    (
        re.compile(r"\b(image|photo|picture|jpg|jpeg|png|gif)s?\b", re.I),
        ["*.jpg", "*.jpeg", "*.png", "*.gif", "*.bmp", "*.webp"],
    ),
    (
        re.compile(r"\b(document|pdf|doc|docx|txt)s?\b", re.I),
        ["*.pdf", "*.doc", "*.docx", "*.txt"],
    ),
]

_DOWNLOADS = re.compile(r"\b(download|downloaded|downloads)\b", re.I)
_DESKTOP = re.compile(r"\bdesktop\b", re.I)
_TO_FOLDER = re.compile(r"to\s+(?:a\s+)?([/\w\s]+?)\s+folder", re.I)
_INTO = re.compile(r"(?:in|into)\s+([/\w\s]+?)(?:\s+folder)?(?:\s|$)", re.I)
_DOCUMENTS_SUBFOLDER = re.compile(r"documents[/\s]+(\w+)", re.I)

_KNOWN_FOLDERS = {
    "documents": "Documents",
    "pictures": "Pictures",
    "photos": "Pictures",
    "downloads": "Downloads",
}


@dataclass
class WorkflowDraft:
    name: str
    description: str
    triggers: list[ScheduleTrigger] = field(default_factory=list)
    steps: list[FileOperationStep] = field(default_factory=list)


class NaturalLanguageParser:
    def __init__(self, home: Path | None = None) -> None:
        self.home = home or Path.home()

    def parse(self, request: str) -> WorkflowDraft:
        draft = WorkflowDraft(name=self.workflow_name(request), description=request)
        schedule = self.parse_schedule(request)
        if schedule is not None:
            draft.triggers.append(schedule)
        draft.steps.extend(self.parse_file_operations(request))
        return draft

    def parse_schedule(self, text: str) -> ScheduleTrigger | None:
        if _SCHEDULE["daily"].search(text):
            time_match = _SCHEDULE["time"].search(text)
            if time_match is None:
                return ScheduleTrigger(cron="0 9 * * *", description="Daily at 9:00 AM")
            hour = int(time_match.group(2))
            minute = int(time_match.group(3) or 0)
            is_pm = (time_match.group(4) or "").lower() == "pm"
            if is_pm and hour != 12:
                hour24 = hour + 12
            elif not is_pm and hour == 12:
                hour24 = 0
            else:
                hour24 = hour
            return ScheduleTrigger(
                cron=f"{minute} {hour24} * * *",
                description=f"Daily at {hour}:{minute:02d} {'PM' if is_pm else 'AM'}",
            )

        if _SCHEDULE["hourly"].search(text):
            return ScheduleTrigger(cron="0 * * * *", description="Every hour")

        if _SCHEDULE["weekly"].search(text):
            day_match = _SCHEDULE["day"].search(text)
            if day_match is not None:
                day = day_match.group(2)
                return ScheduleTrigger(
                    cron=f"0 9 * * {_DAYS.index(day.lower())}",
                    description=f"Weekly on {day}",
                )

        return None

    def parse_file_operations(self, text: str) -> list[FileOperationStep]:
        operation = "move"
        for name, pattern in _OPERATIONS:
            if pattern.search(text):
                operation = name
                break

        patterns: list[str] = []
        for target, globs in _TARGETS:
            if target.search(text):
                patterns.extend(globs)

        source = self.home / "Desktop"
        if not _DESKTOP.search(text) and _DOWNLOADS.search(text):
            source = self.home / "Downloads"
        destination = self._destination(text)

        if patterns:
            return [
                FileOperationStep(
                    operation=operation,
                    source=str(source),
                    destination=str(destination),
                    pattern=glob,
                    description=(
                        f"{operation} {glob} files from {source.name} to {destination.name}"
                    ),
                )
                for glob in patterns
            ]
        if operation == "create_directory":
            return [
                FileOperationStep(
                    operation=operation,
                    source=str(destination),
                    description=f"Create directory {destination.name}",
                )
            ]
        return []

    def _destination(self, text: str) -> Path:
        documents = self.home / "Documents"

        folder_match = _TO_FOLDER.search(text)
        if folder_match is not None:
            folder = folder_match.group(1).strip()
            if "/" in folder:
                parts = [p.strip() for p in folder.split("/") if p.strip()]
                if parts and parts[0].lower() == "documents":
                    return self.home.joinpath(*parts)
                return documents.joinpath(*parts)
            known = _KNOWN_FOLDERS.get(folder.lower())
            if known:
                return self.home / known
            return documents / folder

        into_match = _INTO.search(text)
        if into_match is not None and "documents" in into_match.group(1).lower():
            sub = _DOCUMENTS_SUBFOLDER.search(into_match.group(1))
            if sub is not None:
                return documents / sub.group(1)

        return documents

    @staticmethod
    def workflow_name(text: str) -> str:
        timing = [
            word
            for word, pattern in (("Daily", r"daily"), ("Hourly", r"hourly"), ("Weekly", r"weekly"))
            if re.search(pattern, text, re.I)
        ]
        actions = [
            word
            for word, pattern in (
                ("Move", r"move"),
                ("Copy", r"copy"),
                ("Delete", r"delete"),
                ("Archive", r"archive"),
            )
            if re.search(pattern, text, re.I)
        ]
        targets = [
            word
            for word, pattern in (
                ("Screenshots", r"screenshot"),
                ("Images", r"image|photo"),
                ("Documents", r"document|pdf"),
                ("Downloads", r"download"),
            )
            if re.search(pattern, text, re.I)
        ]
        parts = timing + actions + targets
        return " ".join(parts) if parts else "Custom Workflow"
