"""
Logging configuration for the hostops CLI.

Called once at startup by main.py. Modules log through
``logger = logging.getLogger(__name__)`` and inherit this setup.

Level precedence:
    CLI flag  >  HOSTOPS_LOG_LEVEL env var  >  WARNING

Optional file output via HOSTOPS_LOG_FILE / HOSTOPS_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import os
import sys

# ── Format strings ──────────────────────────────────────────────

_FMT_MINIMAL = "%(message)s"

_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# Remote command traces are only legible with file:line context
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "asyncio")

ENV_LEVEL = "HOSTOPS_LOG_LEVEL"
ENV_FILE = "HOSTOPS_LOG_FILE"
ENV_FILE_LEVEL = "HOSTOPS_LOG_FILE_LEVEL"


def resolve_level(verbose: bool = False, quiet: bool = False, debug: bool = False) -> str:
    """Pick the console level from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(ENV_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure process-wide logging.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional log file path. Defaults to $HOSTOPS_LOG_FILE.
        log_file_level: Level for the file. Defaults to $HOSTOPS_LOG_FILE_LEVEL,
            then to ``level``.
        quiet_third_party: Keep noisy library loggers at WARNING unless
            running at DEBUG.
    """
    numeric_level = _parse_level(level)
    log_file = log_file or os.environ.get(ENV_FILE)
    log_file_level = log_file_level or os.environ.get(ENV_FILE_LEVEL)

    # ── Console handler (stderr) ────────────────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Level name to numeric constant; unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
