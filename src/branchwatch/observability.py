"""Logging for git calls made by branchwatch.

Every git invocation produces one JSON line on the ``branchwatch`` logger:

    {"action":"git.list_branches","duration_ms":4.1,"exit_code":0,"outcome":"ok","path":"/repo",...}

Settings come from the environment and are read once, on first use:

- BRANCHWATCH_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default INFO)
- BRANCHWATCH_LOG_DIR: directory for rotating log files (default ~/.branchwatch/logs)
- BRANCHWATCH_LOG_MAX_BYTES / BRANCHWATCH_LOG_BACKUP_COUNT: rotation limits
- BRANCHWATCH_LOG_DISABLE_FILE: 1/true/yes to log to stderr only
"""

from __future__ import annotations

import json
import logging
import os
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


LOGGER_NAME = "branchwatch"

ENV_LOG_LEVEL = "BRANCHWATCH_LOG_LEVEL"
ENV_LOG_DIR = "BRANCHWATCH_LOG_DIR"
ENV_LOG_MAX_BYTES = "BRANCHWATCH_LOG_MAX_BYTES"
ENV_LOG_BACKUP_COUNT = "BRANCHWATCH_LOG_BACKUP_COUNT"
ENV_LOG_DISABLE_FILE = "BRANCHWATCH_LOG_DISABLE_FILE"

LOG_FORMAT = "[%(levelname)s %(asctime)s] %(message)s"
ROTATE_BYTES = 5 * 1024 * 1024
ROTATE_BACKUPS = 3

_configured = False


def _get_log_level() -> int:
    """Level named by BRANCHWATCH_LOG_LEVEL; unknown names mean INFO."""
    level = logging.getLevelName(os.getenv(ENV_LOG_LEVEL, "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _get_log_file_path() -> Optional[Path]:
    """Log file for this process, or None when file logging is off."""
    if os.getenv(ENV_LOG_DISABLE_FILE, "").lower() in ("1", "true", "yes"):
        return None
    log_dir = Path(os.getenv(ENV_LOG_DIR) or Path.home() / ".branchwatch" / "logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"branchwatch_{os.getpid()}.log"


def _logger() -> logging.Logger:
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    if _configured:
        return logger
    _configured = True

    level = _get_log_level()
    logger.setLevel(level)
    logger.handlers.clear()
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")

    log_file = _get_log_file_path()
    if log_file is not None:
        handler: logging.Handler = RotatingFileHandler(
            str(log_file),
            maxBytes=int(os.getenv(ENV_LOG_MAX_BYTES, ROTATE_BYTES)),
            backupCount=int(os.getenv(ENV_LOG_BACKUP_COUNT, ROTATE_BACKUPS)),
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # A library shouldn't chat on stderr: warnings and up only
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.setLevel(max(level, logging.WARNING))
    logger.addHandler(console)
    return logger


def _dumps(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str)


def log_action(
    action: str,
    *,
    outcome: str = "ok",
    duration_ms: Optional[float] = None,
    path: Optional[str] = None,
    exit_code: Optional[int] = None,
    git_error: Optional[str] = None,
    **fields: Any,
) -> None:
    """Write one JSON line describing a finished git call.

    Fields left as None are omitted.
    """
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
        "action": action,
        "outcome": outcome,
        "duration_ms": None if duration_ms is None else round(duration_ms, 2),
        "path": path,
        "exit_code": exit_code,
        "git_error": git_error,
        **fields,
    }
    _logger().info(_dumps({k: v for k, v in payload.items() if v is not None}))


def log_debug(message: str, **fields: Any) -> None:
    """Debug message, with ``fields`` appended as JSON."""
    logger = _logger()
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug(f"{message} {_dumps(fields)}" if fields else message)


@contextmanager
def timeit(action: str, *, path: Optional[str] = None) -> Iterator[Dict[str, Any]]:
    """Time a git call and log it when the block exits.

    The yielded dict collects ``exit_code`` and ``git_error`` for the log
    line. An exception is logged as outcome "error" and re-raised.
    """
    call: Dict[str, Any] = {}
    start = time.perf_counter()
    try:
        yield call
    except Exception as exc:
        log_action(
            action,
            outcome="error",
            duration_ms=(time.perf_counter() - start) * 1000.0,
            path=path,
            error=type(exc).__name__,
            **call,
        )
        raise
    log_action(
        action,
        outcome="ok",
        duration_ms=(time.perf_counter() - start) * 1000.0,
        path=path,
        **call,
    )
