from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ration.reference import default_reference_data  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_activity_log(tmp_path, monkeypatch):
    """Keep activity log lines of every test inside its own tmp directory."""
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("RATION_LOG_DIR", str(log_dir))
    monkeypatch.delenv("RATION_DATA_DIR", raising=False)
    monkeypatch.delenv("RATION_STRICT_DATA", raising=False)
    default_reference_data.cache_clear()
    yield log_dir
    default_reference_data.cache_clear()


@pytest.fixture
def data():
    return default_reference_data()
