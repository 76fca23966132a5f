"""Brainstorm launcher.

Configures logging and runs preflight checks before importing GTK-related
modules, which gives clearer error messages on systems missing bindings.
"""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> int:
    """Apply BRAINSTORM_LOG_LEVEL (default WARNING) to the root logger."""
    name = (os.environ.get("BRAINSTORM_LOG_LEVEL") or "WARNING").upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    return level


def main() -> int:
    configure_logging()

    from brainstorm.preflight import run_preflight_or_die

    run_preflight_or_die(check_deps=True)

    from brainstorm.app import main as app_main

    return int(app_main())


if __name__ == "__main__":
    raise SystemExit(main())
