"""Logging setup shared by the trace CLI and library callers.

Provides:
    - One console handler (stderr) and an optional file handler
    - Human or JSON-lines rendering through ContextFormatter
    - Per-run context fields (app, input, ...) attached to every record
    - Python warnings routed into logging (numpy overflow, Pillow notices)
    - A sys.excepthook that logs crashes before exit

Usage:
    from epitrace.utils.logging_config import setup_logging, push_context

    setup_logging("INFO", "outputs/logs/trace.log", context={"app": "trace"})
    push_context(input="rows.csv")

Line formats:
    Human: 2025-10-28T13:45:12.345Z | INFO     | app=trace input=rows.csv | Saved canvas
    JSON:  {"t": "2025-10-28T13:45:12.345000+00:00", "lvl": "INFO", "name": "...",
            "pid": 4242, "msg": "Saved canvas", "app": "trace", "input": "rows.csv"}

setup_logging() replaces whatever it installed before, so calling it twice
never duplicates output. reset_logging() removes those handlers again.
"""

import contextvars
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

_log_context: contextvars.ContextVar = contextvars.ContextVar('epitrace_log_context', default={})

_installed_handlers: List[logging.Handler] = []

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'


class ContextFormatter(logging.Formatter):
    """Render records with the current context fields appended.

    Parameters
    ----------
    mode : str
        "human" (pipe-separated line) or "json" (one object per line)
    color : bool
        Colorize the level name; only honoured when stderr is a terminal
    utc : bool
        Timestamps in UTC (default) or local time
    """

    def __init__(self, mode: str = "human", color: bool = False, utc: bool = True):
        super().__init__()
        if mode not in ("human", "json"):
            raise ValueError(f"Unknown log format mode: {mode}")
        self.mode = mode
        self.color = color and sys.stderr.isatty()
        self.utc = utc

    def _timestamp(self, record: logging.LogRecord) -> datetime:
        return datetime.fromtimestamp(record.created, tz=timezone.utc if self.utc else None)

    def format(self, record: logging.LogRecord) -> str:
        ts = self._timestamp(record)
        context = _log_context.get()
        message = record.getMessage()
        exc_text = self.formatException(record.exc_info) if record.exc_info else None

        if self.mode == "json":
            payload = {
                't': ts.isoformat(),
                'lvl': record.levelname,
                'name': record.name,
                'pid': os.getpid(),
                'msg': message,
                **context,
            }
            if exc_text:
                payload['exc'] = exc_text
            return json.dumps(payload, default=str)

        level = f"{record.levelname:8s}"
        if self.color:
            level = f"{_LEVEL_COLORS.get(record.levelname, '')}{level}{_RESET}"

        fields = [ts.strftime('%Y-%m-%dT%H:%M:%S.') + f"{ts.microsecond // 1000:03d}Z", level]
        if context:
            fields.append(' '.join(f"{k}={v}" for k, v in context.items()))
        fields.append(message)

        line = ' | '.join(fields)
        return f"{line}\n{exc_text}" if exc_text else line


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate: Optional[Dict[str, Any]] = None,
    utc: bool = True,
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> List[logging.Handler]:
    """Install handlers on the root logger, replacing earlier ones.

    Parameters
    ----------
    log_level : str
        "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL" (case-insensitive)
    log_file : str, optional
        Also write records here; parent directories are created
    json : bool
        JSON lines in the file handler instead of the human format
    color : bool
        Colored level names on the console (terminals only)
    to_stderr : bool
        Attach the console handler, default True
    rotate : dict, optional
        File rotation, e.g. ``{"mode": "size", "max_bytes": 10_000_000,
        "backup_count": 3}`` or ``{"mode": "time", "when": "D",
        "backup_count": 7}``
    utc : bool
        UTC timestamps (default) or local time
    capture_warnings : bool
        Route ``warnings.warn`` into the ``py.warnings`` logger
    quiet_libs : list[str], optional
        Loggers held at WARNING (e.g. ``["PIL"]``)
    context : dict, optional
        Fields pushed with :func:`push_context`

    Returns
    -------
    list[logging.Handler]
        The handlers now installed

    Raises
    ------
    ValueError
        Unknown level or rotation mode
    OSError
        If the log file cannot be opened; installed handlers are left as
        they were
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    # File handler first: if it cannot be opened, the current setup stays intact
    handlers: List[logging.Handler] = []
    if log_file:
        file_handler = _file_handler(Path(log_file), rotate)
        file_handler.setFormatter(ContextFormatter("json" if json else "human", utc=utc))
        handlers.append(file_handler)

    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ContextFormatter("human", color=color, utc=utc))
        handlers.insert(0, console)

    reset_logging()
    root = logging.getLogger()
    root.setLevel(level)
    for handler in handlers:
        root.addHandler(handler)
    _installed_handlers.extend(handlers)

    for name in quiet_libs or []:
        logging.getLogger(name).setLevel(logging.WARNING)

    if capture_warnings:
        logging.captureWarnings(True)

    if context:
        push_context(**context)

    return list(_installed_handlers)


def _file_handler(path: Path, rotate: Optional[Dict[str, Any]]) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not rotate:
        return logging.FileHandler(path, encoding='utf-8')

    mode = rotate.get('mode', 'size')
    if mode == 'size':
        return logging.handlers.RotatingFileHandler(
            path,
            maxBytes=rotate.get('max_bytes', 10_000_000),
            backupCount=rotate.get('backup_count', 3),
            encoding='utf-8',
        )
    if mode == 'time':
        return logging.handlers.TimedRotatingFileHandler(
            path,
            when=rotate.get('when', 'D'),
            interval=rotate.get('interval', 1),
            backupCount=rotate.get('backup_count', 7),
            encoding='utf-8',
        )
    raise ValueError(f"Unknown rotation mode: {mode!r} (expected 'size' or 'time')")


def reset_logging() -> None:
    """Detach and close every handler installed by setup_logging()."""
    root = logging.getLogger()
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root.removeHandler(handler)
        handler.close()


def push_context(**fields: Any) -> None:
    """Merge ``fields`` into the context attached to later records."""
    _log_context.set({**_log_context.get(), **fields})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Drop the given context keys, or all of them when ``keys`` is None."""
    if keys is None:
        _log_context.set({})
        return
    _log_context.set({k: v for k, v in _log_context.get().items() if k not in keys})


def get_context() -> Dict[str, Any]:
    return dict(_log_context.get())


def install_excepthook() -> None:
    """Log uncaught exceptions at CRITICAL; Ctrl-C keeps the default hook."""
    def _hook(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logging.getLogger(__name__).critical(
            "Uncaught exception", exc_info=(exc_type, exc_value, exc_tb)
        )

    sys.excepthook = _hook
