"""Allow-list check for filesystem paths touched by file steps.

The check is prefix containment on the absolute, lower-cased path. It does not
resolve symlinks: a link inside an allowed root that points elsewhere is
accepted. Paths that still contain `..` after normalisation are rejected.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


def expand_path(path: str) -> str:
    """Expand `$HOME`, `${HOME}` and `~` to the user's home directory."""

    if not path:
        return path
    home = str(Path.home())
    expanded = path.replace("${HOME}", home).replace("$HOME", home)
    return os.path.expanduser(expanded)


def _normalise(path: str) -> str:
    return os.path.abspath(expand_path(path)).lower()


class PathGuard:
    def __init__(self, allowed_directories: Iterable[str]) -> None:
        self._roots = [_normalise(d) for d in allowed_directories if d]

    @property
    def roots(self) -> list[str]:
        return list(self._roots)

    def is_allowed(self, path: str) -> bool:
        normalised = _normalise(path)
        if ".." in normalised:
            logger.debug("Rejected path with traversal segment", extra={"path": path})
            return False
        return any(normalised.startswith(root) for root in self._roots)
