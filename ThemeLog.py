#!/usr/bin/env python3
# ThemeLog.py — IconThemer log sink (no UI)
#
# Library code never writes logs itself; it takes an optional `logfn` callback
# and reports absorbed failures through it. The CLI wires that callback to
# stdout and to a small rotating text log under THEMER_ROOT/Logs.

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

LogFn = Optional[Callable[[str], None]]

THEMER_ROOT = Path.home() / "IconThemer"
LOGS_DIR = THEMER_ROOT / "Logs"

LOG_FILE = LOGS_DIR / "themer.log"
LOG_MAX_BYTES = 2_000_000


def _rotate_log_if_needed(log_file: Path) -> None:
    try:
        if log_file.exists() and log_file.stat().st_size > LOG_MAX_BYTES:
            bak = log_file.with_name(log_file.name + ".1")
            try:
                bak.unlink(missing_ok=True)
            except OSError:
                pass
            log_file.rename(bak)
    except OSError:
        pass


def log(msg: str, *, log_file: Path | None = None) -> None:
    """Append one timestamped line. Never raises."""
    target = Path(log_file or LOG_FILE)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        _rotate_log_if_needed(target)
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with target.open("a", encoding="utf-8", errors="ignore") as f:
            f.write(f"[{ts}] {msg}\n")
    except OSError:
        pass


def file_logger(log_file: Path | None = None) -> Callable[[str], None]:
    def _fn(msg: str) -> None:
        log(msg, log_file=log_file)
    return _fn


def tee(*fns: LogFn) -> Callable[[str], None]:
    """Fan one message out to several callbacks (None entries are skipped)."""
    targets = [f for f in fns if f is not None]

    def _fn(msg: str) -> None:
        for f in targets:
            f(msg)
    return _fn
