"""
Logging setup for NoteBridge.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger as _logger

_LOG_INITIALISED = False
LOG_DIR = Path(os.environ.get("NOTEBRIDGE_LOG_DIR", str(Path.home() / ".notebridge" / "logs")))
DEFAULT_LOG_PATH = LOG_DIR / "notebridge.log"


def env_flag_enabled(name: str) -> bool:
    value = os.getenv(name, "").strip().lower()
    return value in {"1", "true", "yes", "on"}


def configure(log_path: Optional[Path] = None, *, debug: Optional[bool] = None) -> None:
    """
    Configure loguru sinks once per process.

    Console output goes to stderr; a rotating file sink keeps the last few
    sessions. NOTEBRIDGE_DEBUG=1 lowers the console level to DEBUG.
    """
    global _LOG_INITIALISED
    if _LOG_INITIALISED:
        return
    if debug is None:
        debug = env_flag_enabled("NOTEBRIDGE_DEBUG")

    _logger.remove()
    if sys.stderr is not None:
        _logger.add(sys.stderr, level="DEBUG" if debug else "INFO", enqueue=True)

    target = log_path or DEFAULT_LOG_PATH
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        # Console logging still works without a writable data directory.
        _LOG_INITIALISED = True
        return
    _logger.add(
        target,
        level="DEBUG",
        rotation="5 MB",
        retention=5,
        encoding="utf-8",
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )
    _LOG_INITIALISED = True


def get_logger():
    """Return the shared logger instance."""
    return _logger
