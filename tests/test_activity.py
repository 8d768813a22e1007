from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ration.activity import COLUMNS, append_log, get_log_path, log_event


def _rows(path: Path) -> list[list[str]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.split("|") for line in lines]


def test_log_path_honours_env_dir_and_writes_header(isolated_activity_log):
    path = get_log_path()
    assert path.parent == isolated_activity_log
    assert _rows(path)[0] == list(COLUMNS)


def test_append_log_keeps_one_record_per_line(isolated_activity_log):
    append_log("norm lookup failed | weird\ninput", level="WARN", scope="norms")
    rows = _rows(get_log_path())
    assert len(rows) == 2
    record = dict(zip(COLUMNS, rows[1]))
    assert record["level"] == "WARN"
    assert record["scope"] == "norms"
    assert record["detail"] == "norm lookup failed / weird input"


def test_log_event_fills_activity_columns_and_returns_trace():
    trace = log_event("cli_run", "category=dry_cow | feeds=2", op="cli", trace_prefix="RAT-")
    assert trace.startswith("RAT-")
    record = dict(zip(COLUMNS, _rows(get_log_path())[-1]))
    assert record["scope"] == "activity"
    assert record["op"] == "cli"
    assert record["action"] == "cli_run"
    assert record["detail"] == "category=dry_cow / feeds=2"
    assert record["trace"] == trace


def test_log_event_without_prefix_has_no_trace():
    assert log_event("reference_loaded") is None
    record = dict(zip(COLUMNS, _rows(get_log_path())[-1]))
    assert record["op"] == "engine"
    assert record["trace"] == ""


def test_log_event_reuses_given_trace_and_flattens_detail():
    assert log_event("reference_loaded", "dir=/tmp\nfeeds=31", trace_id="REF-1", level="WARN") == "REF-1"
    record = dict(zip(COLUMNS, _rows(get_log_path())[-1]))
    assert record["level"] == "WARN"
    assert record["detail"] == "dir=/tmp feeds=31"
    assert record["trace"] == "REF-1"
    assert record["timestamp"].endswith("Z")
