"""Workflow orchestration core.

- Trigger Manager: turns declarative triggers into live timers and watches
- Execution Queue: FIFO drained under a concurrency ceiling
- Workflow Runner: sequential step state machine
- Path Guard: allow-list for file steps
- History Ledger: bounded record of executions
"""

from automation_engine.engine.service import AutomationService

__all__ = ["AutomationService"]
