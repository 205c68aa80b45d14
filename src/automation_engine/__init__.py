"""Automation Engine.

A local-first workflow automation engine:
- workflows persisted as a JSON snapshot
- schedule, filesystem and deadline triggers
- a bounded execution queue and a sequential step runner
- file operations sandboxed to an allow-list
"""

__version__ = "0.1.0"

from automation_engine.engine.config import EngineSettings

__all__ = ["__version__", "EngineSettings"]
