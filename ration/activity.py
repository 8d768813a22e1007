"""Pipe-delimited activity log for reference loading, norm fallbacks and CLI runs."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import os
import tempfile
import uuid
from typing import Iterable

LOG_FILENAME = "activity_log.csv"
PIPE = "|"
COLUMNS = ("timestamp", "level", "scope", "op", "action", "detail", "trace")
HEADER = PIPE.join(COLUMNS) + "\n"


def _candidate_log_dirs() -> Iterable[Path]:
    env_log = os.getenv("RATION_LOG_DIR")
    if env_log:
        yield Path(env_log)

    env_data = os.getenv("RATION_DATA_DIR")
    if env_data:
        yield Path(env_data) / "logs"

    yield Path("data") / "logs"
    yield Path(tempfile.gettempdir()) / "ration-logs"


def get_log_path(ensure: bool = True) -> Path:
    """Return the first usable ``activity_log.csv``, creating it with a header row."""

    last_err: OSError | None = None
    for base in _candidate_log_dirs():
        log_path = base / LOG_FILENAME
        try:
            base.mkdir(parents=True, exist_ok=True)
            if ensure and not log_path.exists():
                log_path.write_text(HEADER, encoding="utf-8")
        except OSError as exc:
            last_err = exc
            continue
        return log_path

    raise RuntimeError(f"No writable directory for {LOG_FILENAME} (last error: {last_err})")


def _sanitize(value: str) -> str:
    return value.replace(PIPE, "/").replace("\n", " ").strip()


def _write(record: dict[str, str]) -> None:
    """Append one record; logging failures never reach the caller."""
    try:
        path = get_log_path(ensure=True)
    except RuntimeError:
        return

    record = {**record, "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")}
    line = PIPE.join(_sanitize(record.get(column) or "") for column in COLUMNS) + "\n"
    try:
        with open(path, "a", encoding="utf-8") as handle:
            handle.write(line)
    except OSError:
        return


def append_log(message: str, level: str = "INFO", scope: str = "engine") -> None:
    """Free-text line, e.g. a reference data issue or a norm fallback."""
    _write({"level": level, "scope": scope, "detail": message})


def new_trace(prefix: str = "") -> str:
    base = uuid.uuid4().hex[:8]
    return f"{prefix}{base}" if prefix else base


def log_event(
    action: str,
    detail: str = "",
    *,
    op: str = "engine",
    level: str = "INFO",
    trace_id: str | None = None,
    trace_prefix: str | None = None,
) -> str | None:
    """Write an ``activity`` record and return its trace id, if any."""

    trace = trace_id or (new_trace(trace_prefix) if trace_prefix else None)
    _write(
        {
            "level": level,
            "scope": "activity",
            "op": op,
            "action": action.strip(),
            "detail": detail,
            "trace": trace or "",
        }
    )
    return trace


__all__ = ["append_log", "get_log_path", "log_event", "new_trace"]
