"""Reference tables: feeds, category policies and norm tables.

The tables ship as CSV/YAML files under ``ration/data`` (or ``RATION_DATA_DIR``)
and are validated once when loaded. A strict load raises
:class:`ReferenceDataError` with the full :class:`ValidationReport`, so an edited
or corrupted dataset fails loudly instead of degrading the rations silently.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Iterable

import pandas as pd
import yaml

from ration import config
from ration.activity import append_log, log_event
from ration.models import (
    FEED_CLASSES,
    CategoryKey,
    CategoryPolicy,
    EnergyBasis,
    Feed,
    FeedClass,
    NormMethod,
    NormPoint,
    Ratios,
    ReferenceDataError,
    UnknownCategoryError,
    ValidationIssue,
    ValidationReport,
)
from ration.numbers import safe_num

RATIO_TOLERANCE = 0.1

FEED_COLUMNS = ["name", "energy_me", "energy_nel", "protein", "dm", "class"]
NORM_COLUMNS = ["category", "weight_kg", "energy", "protein_g"]

COLUMN_ALIASES = {
    "feed_name": "name",
    "feed": "name",
    "me": "energy_me",
    "nel": "energy_nel",
    "energy_nel_kg": "energy_nel",
    "protein_kg": "protein",
    "cp": "protein",
    "ts": "dm",
    "ts_kg": "dm",
    "cls": "class",
    "feed_class": "class",
    "cat": "category",
    "w": "weight_kg",
    "weight": "weight_kg",
    "prot_g": "protein_g",
}

_NAN = float("nan")


@dataclass(frozen=True)
class ReferenceData:
    feeds: tuple[Feed, ...]
    policies: dict[CategoryKey, CategoryPolicy]
    norm_tables: dict[CategoryKey, tuple[NormPoint, ...]] = field(default_factory=dict)

    def feed(self, name: str) -> Feed | None:
        for item in self.feeds:
            if item.name == name:
                return item
        return None

    def feeds_by_class(self, feed_class: FeedClass | str) -> list[Feed]:
        cls = FeedClass(feed_class)
        return [f for f in self.feeds if f.feed_class == cls]

    def select(self, names: Iterable[str]) -> list[Feed]:
        """Return the named feeds in reference order; unknown names are ignored."""
        wanted = set(names)
        return [f for f in self.feeds if f.name in wanted]

    def categories(self) -> list[CategoryKey]:
        return list(self.policies)

    def labels(self) -> dict[CategoryKey, str]:
        return {key: policy.label for key, policy in self.policies.items()}

    def is_category(self, key: str | CategoryKey) -> bool:
        try:
            return CategoryKey(key) in self.policies
        except ValueError:
            return False

    def policy(self, category: str | CategoryKey) -> CategoryPolicy:
        try:
            key = CategoryKey(category)
        except ValueError:
            raise UnknownCategoryError(str(category)) from None
        if key not in self.policies:
            raise UnknownCategoryError(key.value)
        return self.policies[key]

    def norm_table(self, category: str | CategoryKey) -> tuple[NormPoint, ...]:
        try:
            return self.norm_tables.get(CategoryKey(category), ())
        except ValueError:
            return ()


def _clean_header(name) -> str:
    base = str(name or "").strip().replace("\ufeff", "").lower().replace(" ", "_")
    return COLUMN_ALIASES.get(base, base)


def _read_table(path: Path, required: list[str]) -> pd.DataFrame:
    try:
        df = pd.read_csv(path, encoding="utf-8-sig")
        if df.shape[1] == 1:
            df = pd.read_csv(path, sep=";", encoding="utf-8-sig")
    except FileNotFoundError as exc:
        raise ReferenceDataError(f"Missing reference table: {path}") from exc
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise ReferenceDataError(f"Unreadable reference table {path}: {exc}") from exc

    df.columns = [_clean_header(c) for c in df.columns]
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ReferenceDataError(f"{path.name}: missing columns {', '.join(missing)}")
    return df[required].copy()


def _text(value) -> str:
    if pd.isna(value):
        return ""
    return str(value).strip()


def _load_feeds(path: Path, issues: list[ValidationIssue]) -> list[Feed]:
    df = _read_table(path, FEED_COLUMNS)
    feeds: list[Feed] = []
    for idx, row in df.iterrows():
        raw_class = _text(row["class"]).lower()
        try:
            feed_class = FeedClass(raw_class)
        except ValueError:
            issues.append(ValidationIssue("feeds", idx, f"unknown feed class {raw_class!r}"))
            continue
        feeds.append(
            Feed(
                name=_text(row["name"]),
                energy_me=safe_num(row["energy_me"], _NAN),
                energy_nel=safe_num(row["energy_nel"], _NAN),
                protein=safe_num(row["protein"], _NAN),
                dm=safe_num(row["dm"], _NAN),
                feed_class=feed_class,
            )
        )
    return feeds


def _load_policies(path: Path, issues: list[ValidationIssue]) -> dict[CategoryKey, CategoryPolicy]:
    try:
        raw = config.load_yaml(path)
    except FileNotFoundError as exc:
        raise ReferenceDataError(f"Missing reference table: {path}") from exc
    except (yaml.YAMLError, OSError) as exc:
        raise ReferenceDataError(f"Unreadable category file {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ReferenceDataError(f"{path.name}: expected a mapping of categories")

    policies: dict[CategoryKey, CategoryPolicy] = {}
    for key, entry in raw.items():
        try:
            category = CategoryKey(key)
        except ValueError:
            issues.append(ValidationIssue("categories", key, "unknown category key"))
            continue
        if not isinstance(entry, dict):
            issues.append(ValidationIssue("categories", key, "entry is not a mapping"))
            continue

        ratios_raw = entry.get("ratios") or {}
        try:
            norm_method = NormMethod(entry.get("norm_method", NormMethod.INTERPOLATE.value))
            basis = EnergyBasis(entry.get("basis", EnergyBasis.NEL.value))
        except ValueError as exc:
            issues.append(ValidationIssue("categories", key, str(exc)))
            continue

        policies[category] = CategoryPolicy(
            key=category,
            label=str(entry.get("label") or category.value),
            ratios=Ratios(
                roughage=safe_num(ratios_raw.get("roughage"), _NAN),
                energy=safe_num(ratios_raw.get("energy"), _NAN),
                protein=safe_num(ratios_raw.get("protein"), _NAN),
                note=str(entry.get("note") or ""),
            ),
            min_roughage_pct=safe_num(entry.get("min_roughage_pct"), _NAN),
            dm_intake_fraction=safe_num(entry.get("dm_intake_fraction"), _NAN),
            norm_method=norm_method,
            basis=basis,
            milk_nel_per_litre=safe_num(entry.get("milk_nel_per_litre"), 0.0),
            husbandry_note=entry.get("husbandry_note") or None,
        )
    return policies


def _load_norm_tables(
    path: Path, issues: list[ValidationIssue]
) -> dict[CategoryKey, tuple[NormPoint, ...]]:
    df = _read_table(path, NORM_COLUMNS)
    df["category"] = df["category"].map(_text)
    tables: dict[CategoryKey, tuple[NormPoint, ...]] = {}
    for key, rows in df.groupby("category", sort=False):
        try:
            category = CategoryKey(key)
        except ValueError:
            issues.append(ValidationIssue("norms", key, "unknown category key"))
            continue
        tables[category] = tuple(
            NormPoint(
                weight=safe_num(row["weight_kg"], _NAN),
                energy=safe_num(row["energy"], _NAN),
                protein_g=safe_num(row["protein_g"], _NAN),
            )
            for _, row in rows.iterrows()
        )
    return tables


def _positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


def _validate_feeds(feeds: tuple[Feed, ...]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    seen: set[str] = set()
    for idx, feed in enumerate(feeds):
        if not feed.name:
            issues.append(ValidationIssue("feeds", idx, "empty feed name"))
        elif feed.name in seen:
            issues.append(ValidationIssue("feeds", idx, f"duplicate feed name {feed.name!r}"))
        seen.add(feed.name)
        if not (feed.energy_me >= 0 and feed.energy_nel >= 0):
            issues.append(ValidationIssue("feeds", idx, "energy values must be >= 0"))
        if not 0 <= feed.protein <= 1:
            issues.append(ValidationIssue("feeds", idx, "protein fraction must be within 0..1"))
        if not 0 < feed.dm <= 1:
            issues.append(ValidationIssue("feeds", idx, "dry-matter fraction must be within (0, 1]"))
    for feed_class in FEED_CLASSES:
        if not any(f.feed_class == feed_class for f in feeds):
            issues.append(ValidationIssue("feeds", None, f"no {feed_class.value} feeds"))
    return issues


def _validate_policy(policy: CategoryPolicy) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    key = policy.key.value
    ratios = policy.ratios
    values = (ratios.roughage, ratios.energy, ratios.protein)
    if not all(math.isfinite(v) and v >= 0 for v in values):
        issues.append(ValidationIssue("categories", key, "ratios must be non-negative numbers"))
    elif abs(ratios.total - 100) > RATIO_TOLERANCE:
        issues.append(ValidationIssue("categories", key, f"ratios sum to {ratios.total:g}, not 100"))
    if not 0 <= policy.min_roughage_pct <= 100:
        issues.append(ValidationIssue("categories", key, "min_roughage_pct must be within 0..100"))
    if not 0 < policy.dm_intake_fraction < 1:
        issues.append(ValidationIssue("categories", key, "dm_intake_fraction must be within (0, 1)"))
    if policy.milk_nel_per_litre < 0:
        issues.append(ValidationIssue("categories", key, "milk_nel_per_litre must be >= 0"))
    return issues


def _validate_table(key: str, table: tuple[NormPoint, ...]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if not table:
        return [ValidationIssue("norms", key, "empty norm table")]
    for idx, point in enumerate(table):
        if not (_positive(point.weight) and _positive(point.energy) and _positive(point.protein_g)):
            issues.append(ValidationIssue("norms", f"{key}:{idx}", "values must be positive"))
        if idx and not point.weight > table[idx - 1].weight:
            issues.append(ValidationIssue("norms", f"{key}:{idx}", "weights not strictly ascending"))
    return issues


def validate_reference_data(data: ReferenceData) -> ValidationReport:
    """Check every reference table invariant and report all violations."""

    issues = _validate_feeds(data.feeds)
    for category in CategoryKey:
        policy = data.policies.get(category)
        if policy is None:
            issues.append(ValidationIssue("categories", category.value, "missing category policy"))
            continue
        issues.extend(_validate_policy(policy))
        issues.extend(_validate_table(category.value, data.norm_tables.get(category, ())))
    return ValidationReport(issues)


def load_reference_data(data_dir: str | Path | None = None, *, strict: bool | None = None) -> ReferenceData:
    """Read and validate the reference tables from ``data_dir``."""

    base = Path(data_dir) if data_dir is not None else config.data_dir()
    strict = config.strict_data() if strict is None else strict

    load_issues: list[ValidationIssue] = []
    data = ReferenceData(
        feeds=tuple(_load_feeds(base / config.FEEDS_FILE, load_issues)),
        policies=_load_policies(base / config.CATEGORIES_FILE, load_issues),
        norm_tables=_load_norm_tables(base / config.NORMS_FILE, load_issues),
    )
    report = ValidationReport(load_issues + validate_reference_data(data).issues)

    if not report.ok:
        for issue in report.issues:
            append_log(str(issue), level="WARN", scope="reference")
        if strict:
            raise ReferenceDataError(
                f"{len(report.issues)} reference data issue(s) in {base}: {report.issues[0]}",
                report,
            )

    log_event(
        "reference_loaded",
        f"dir={base} feeds={len(data.feeds)} categories={len(data.policies)} issues={len(report.issues)}",
    )
    return data


@lru_cache(maxsize=1)
def default_reference_data() -> ReferenceData:
    return load_reference_data()


__all__ = [
    "ReferenceData",
    "default_reference_data",
    "load_reference_data",
    "validate_reference_data",
]
