"""Environment-driven settings for the ration engine."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

PACKAGE_DATA_DIR = Path(__file__).resolve().parent / "data"

FEEDS_FILE = "feeds.csv"
NORMS_FILE = "norms.csv"
CATEGORIES_FILE = "categories.yaml"

_FALSE_VALUES = {"0", "false", "no", "off"}


def data_dir() -> Path:
    """Return the directory holding the reference tables."""
    env_path = os.getenv("RATION_DATA_DIR")
    return Path(env_path) if env_path else PACKAGE_DATA_DIR


def strict_data() -> bool:
    """Whether reference data issues should abort loading (default: yes)."""
    raw = os.getenv("RATION_STRICT_DATA", "1")
    return raw.strip().lower() not in _FALSE_VALUES


def load_yaml(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


__all__ = [
    "CATEGORIES_FILE",
    "FEEDS_FILE",
    "NORMS_FILE",
    "PACKAGE_DATA_DIR",
    "data_dir",
    "load_yaml",
    "strict_data",
]
