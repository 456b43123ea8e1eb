"""
Logging for the agent process, stdlib only.

Every line carries the task run it belongs to (``job_scrape``,
``maintenance`` ...) or ``-`` outside a run. The coordinator wraps each run in
``run_context`` so adapters deep in the call stack need no extra arguments.
One log file per day the process was started on; the scheduler runs for days,
so rotation is left to the next start.
"""
from __future__ import annotations

import logging
import os
import sys
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  [%(run)s]  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"

_local = threading.local()
_handlers: list[logging.Handler] = []
_configured = False


class RunFilter(logging.Filter):
    """Stamp ``record.run`` with the run active on the emitting thread."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run = current_run() or "-"
        return True


def current_run() -> str | None:
    return getattr(_local, "run", None)


@contextmanager
def run_context(label: str) -> Iterator[None]:
    previous = current_run()
    _local.run = label
    try:
        yield
    finally:
        _local.run = previous


def get_logger(name: str) -> logging.Logger:
    global _configured
    if not _configured:
        _configured = True
        _configure(os.environ.get("LOG_LEVEL", "INFO"), Path(os.environ.get("LOG_DIR", "") or DEFAULT_LOG_DIR))
    return logging.getLogger(name)


def set_level(level_name: str) -> None:
    """Change the console verbosity after startup (``--verbose``)."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.getLogger().setLevel(min(level, logging.DEBUG) if _file_handler() else level)
    for h in _handlers:
        if not isinstance(h, logging.FileHandler):
            h.setLevel(level)


def _file_handler() -> logging.FileHandler | None:
    for h in _handlers:
        if isinstance(h, logging.FileHandler):
            return h
    return None


def _configure(level_name: str, log_dir: Path) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    root = logging.getLogger()
    # pytest and streamlit install their own handlers; leave them alone
    if root.handlers:
        root.setLevel(level)
        return

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FMT)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    console.addFilter(RunFilter())
    root.addHandler(console)
    _handlers.append(console)

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / f"agent_{datetime.now():%Y-%m-%d}.log", encoding="utf-8")
    except OSError:
        root.setLevel(level)
        console.stream.write(f"Could not open log file in {log_dir}; logging to stdout only\n")
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    fh.addFilter(RunFilter())
    root.addHandler(fh)
    _handlers.append(fh)
    # the file keeps DEBUG even when the console is quieter
    root.setLevel(logging.DEBUG)
