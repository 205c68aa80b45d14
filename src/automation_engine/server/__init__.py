"""FastAPI server adapter for automation-engine.

This module exposes a REST API over the automation service.

Design intent:
- Keep business logic in `automation_engine.engine.*`
- Keep server-specific concerns (routing, CORS, status codes) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from automation_engine.server.app import create_app
