"""Dependency preflight checks.

Run before any GTK import so that a missing binding produces a readable
message instead of a traceback. Set BRAINSTORM_SKIP_PREFLIGHT=1 to bypass.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreflightResult:
    ok: bool
    message: str


def _check_cairo() -> Optional[str]:
    try:
        import cairo  # noqa: F401
    except ImportError as exc:
        return (
            "Missing Python dependency 'pycairo'. "
            "Install it with pip (pycairo) and ensure cairo is available. "
            f"Underlying error: {exc}"
        )
    return None


def _check_gtk() -> Optional[str]:
    try:
        import gi

        gi.require_version("Gtk", "4.0")
        gi.require_version("Gdk", "4.0")
        gi.require_version("Adw", "1")
        from gi.repository import Adw, Gdk, Gtk  # noqa: F401
    except (ImportError, ValueError) as exc:
        return (
            "Missing GTK 4/libadwaita bindings. Install PyGObject together with "
            "the gtk4 and libadwaita typelibs from your distribution. "
            f"Underlying error: {exc}"
        )
    return None


def run_preflight(*, check_deps: bool = True) -> PreflightResult:
    """Run checks and return a structured result."""
    if os.environ.get("BRAINSTORM_SKIP_PREFLIGHT") == "1":
        return PreflightResult(True, "Preflight skipped via BRAINSTORM_SKIP_PREFLIGHT=1")

    if check_deps:
        for check in (_check_cairo, _check_gtk):
            error = check()
            if error:
                return PreflightResult(False, error)

    return PreflightResult(True, "Preflight OK")


def run_preflight_or_die(*, check_deps: bool = True) -> None:
    result = run_preflight(check_deps=check_deps)
    if not result.ok:
        sys.stderr.write("\nBrainstorm cannot start:\n")
        sys.stderr.write(result.message + "\n\n")
        raise SystemExit(1)
    logger.debug(result.message)
