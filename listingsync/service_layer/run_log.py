# listingsync/service_layer/run_log.py
from __future__ import annotations

import logging
import os
import threading
from datetime import datetime

from ..config import settings
from ..domain.types import LogCallback, LogLevel
from .progress import BroadcastRegistry

log = logging.getLogger(__name__)

LOG_FILE_NAME = "sync-logs.txt"

_PY_LEVELS = {
    LogLevel.info: logging.INFO,
    LogLevel.warn: logging.WARNING,
    LogLevel.error: logging.ERROR,
}

# All runs in the process append to the same file.
_file_lock = threading.Lock()


def log_file_path(log_dir: str | None = None) -> str:
    return os.path.join(log_dir or settings.LOG_DIR, LOG_FILE_NAME)


def emit(on_log: LogCallback | None, level: LogLevel, message: str) -> None:
    """Call a run's log sink; fall back to the module logger when none is set."""
    if on_log is None:
        log.log(_PY_LEVELS[level], message)
        return
    try:
        on_log(level, message)
    except Exception:
        log.exception("log sink failed for message: %s", message)


class RunLogger:
    """
    The run's onLog sink: python logging + persisted log file + live broadcast.
    """

    def __init__(
        self,
        source: str,
        *,
        log_dir: str | None = None,
        broadcast: BroadcastRegistry | None = None,
        persist: bool = True,
    ) -> None:
        self.source = source
        self.log_dir = log_dir or settings.LOG_DIR
        self.broadcast = broadcast
        self.persist = persist
        self._log = logging.getLogger(f"listingsync.run.{source}")

    def __call__(self, level: LogLevel, message: str) -> None:
        level = LogLevel(level)
        self._log.log(_PY_LEVELS[level], message)

        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        line = f"{ts} [{self.source}] {level.value.upper()}: {message}"

        if self.persist:
            try:
                self._append(line)
            except OSError:
                log.exception("could not write to %s", log_file_path(self.log_dir))

        if self.broadcast is not None:
            try:
                self.broadcast.publish({"source": self.source, "level": level.value, "message": line})
            except Exception:
                log.exception("log broadcast failed")

    def _append(self, line: str) -> None:
        path = log_file_path(self.log_dir)
        with _file_lock:
            os.makedirs(self.log_dir, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(line + "\n")


def read_log_lines(log_dir: str | None = None, limit: int | None = None) -> list[str]:
    """Persisted log lines, de-duplicated, oldest first. Missing file -> []."""
    path = log_file_path(log_dir)
    if not os.path.exists(path):
        return []

    with _file_lock:
        with open(path, encoding="utf-8") as f:
            raw = f.read().splitlines()

    seen: set[str] = set()
    lines: list[str] = []
    for line in raw:
        line = line.strip()
        if not line or line in seen:
            continue
        seen.add(line)
        lines.append(line)

    if limit is not None and limit > 0:
        lines = lines[-limit:]
    return lines
