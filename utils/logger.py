# utils/logger.py
"""
Minimaler Logger: eine Zeile pro Event auf stdout.

Format: [2026-01-01T12:00:00Z] [INFO] [Connector] Ready with 12 tools
"""

import sys
from datetime import datetime, timezone

from config import LOG_LEVEL

LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _threshold() -> int:
    try:
        return LEVELS.index(LOG_LEVEL)
    except ValueError:
        # Unbekanntes Level → alles loggen
        return 0


def _log(level: str, msg: str):
    if LEVELS.index(level) < _threshold():
        return
    ts = datetime.now(timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds") + "Z"
    print(f"[{ts}] [{level}] {msg}", file=sys.stdout, flush=True)


def log_debug(msg: str):
    _log("DEBUG", msg)


def log_info(msg: str):
    _log("INFO", msg)


def log_warning(msg: str):
    _log("WARNING", msg)


def log_error(msg: str):
    _log("ERROR", msg)
