"""Console script entrypoint.

The CLI itself is implemented in `automation_engine.engine.main`.
"""

from __future__ import annotations

from automation_engine.engine.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
