# ration_engine.py - daily ration engine (norms, mass balance, distribution, diagnostics)
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable

import pandas as pd

from ration.balance import average_composition, cap_dry_matter, dm_metrics, solve_mass, supply
from ration.diagnostics import diagnose
from ration.distribution import Overrides, build_distribution, normalize_overrides
from ration.models import (
    FEED_CLASSES,
    CategoryKey,
    CategoryPolicy,
    Composition,
    DensitySummary,
    Diagnostics,
    Distribution,
    DryMatterCap,
    Feed,
    MassBalance,
    Message,
    Norm,
    Ratios,
    Supply,
)
from ration.norms import resolve_norm, valid_animal
from ration.numbers import safe_num
from ration.reference import ReferenceData, default_reference_data

FRAME_COLUMNS = ["feed", "class", "kg", "dm_kg", "user_defined"]


def _finite(value: float, digits: int | None = None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return round(value, digits) if digits is not None else value


def _messages(messages: list[Message]) -> list[dict[str, str]]:
    return [{"code": m.code, "text": m.text} for m in messages]


@dataclass(frozen=True)
class RationResult:
    policy: CategoryPolicy
    weight: float
    milk: float
    feeds: list[Feed] = field(default_factory=list)
    composition: Composition = field(default_factory=Composition)
    norm: Norm = field(default_factory=Norm.zero)
    mass: MassBalance = field(default_factory=MassBalance)
    cap: DryMatterCap = field(default_factory=DryMatterCap)
    distribution: Distribution = field(default_factory=Distribution)
    supply: Supply = field(default_factory=Supply)
    density: DensitySummary = field(default_factory=DensitySummary)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    is_valid: bool = True

    @property
    def category(self) -> CategoryKey:
        return self.policy.key

    @property
    def ratios(self) -> Ratios:
        return self.policy.ratios

    @property
    def dm_max(self) -> float:
        return self.cap.dm_max

    @property
    def as_fed_max(self) -> float:
        return self.cap.as_fed_max

    @property
    def effective_total(self) -> float:
        return self.cap.effective_total

    @property
    def coverage_pct(self) -> int:
        return self.cap.coverage_pct

    @property
    def warnings(self) -> list[Message]:
        return self.diagnostics.warnings

    @property
    def tips(self) -> list[Message]:
        return self.diagnostics.tips

    def to_frame(self) -> pd.DataFrame:
        """Distribution as a table, one row per feed."""
        rows = [
            {
                "feed": item.name,
                "class": item.feed_class.value,
                "kg": item.kg,
                "dm_kg": item.dm_kg,
                "user_defined": item.user_defined,
            }
            for item in self.distribution.items
        ]
        return pd.DataFrame(rows, columns=FRAME_COLUMNS)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe summary; non-finite values become ``None`` and numbers are rounded."""
        c, n, m, cap, s = self.composition, self.norm, self.mass, self.cap, self.supply
        return {
            "category": self.category.value,
            "label": self.policy.label,
            "weight": _finite(self.weight),
            "milk": _finite(self.milk),
            "valid": self.is_valid,
            "selected": [f.name for f in self.feeds],
            "composition": {
                "me": _finite(c.me),
                "nel": _finite(c.nel),
                "protein": _finite(c.protein),
                "dm": _finite(c.dm),
            },
            "norm": {
                "basis": n.basis.value,
                "energy_mj": _finite(n.energy_mj, 2),
                "protein_g": _finite(n.protein_g, 1),
                "note": n.note,
            },
            "mass": {
                "total": _finite(m.total, 2),
                "limiting": m.limiting.value,
                "energy_mass": _finite(m.energy_mass, 2),
                "protein_mass": _finite(m.protein_mass, 2),
            },
            "dry_matter": {
                "dm_max": _finite(cap.dm_max, 2),
                "as_fed_max": _finite(cap.as_fed_max, 2),
                "effective_total": _finite(cap.effective_total, 2),
                "coverage_pct": cap.coverage_pct,
            },
            "ratios": {
                "roughage": self.ratios.roughage,
                "energy": self.ratios.energy,
                "protein": self.ratios.protein,
                "note": self.ratios.note,
            },
            "distribution": {
                "per_class_kg": {
                    cls.value: _finite(self.distribution.per_class_kg.get(cls, 0.0), 2) for cls in FEED_CLASSES
                },
                "items": [
                    {
                        "feed": item.name,
                        "class": item.feed_class.value,
                        "kg": _finite(item.kg, 2),
                        "dm_kg": _finite(item.dm_kg, 2),
                        "user_defined": item.user_defined,
                    }
                    for item in self.distribution.items
                ],
                "dm_total": _finite(self.distribution.dm_total, 2),
            },
            "supply": {
                "energy_mj": _finite(s.energy_mj, 2),
                "protein_g": _finite(s.protein_g, 1),
                "energy_deficit": _finite(s.energy_deficit, 2),
                "protein_deficit": _finite(s.protein_deficit, 1),
                "protein_deficit_pct": _finite(s.protein_deficit_pct, 1),
            },
            "density": {
                "nel_per_kg_dm": _finite(self.density.nel_per_kg_dm, 2),
                "cp_pct_dm": _finite(self.density.cp_pct_dm, 1),
            },
            "warnings": _messages(self.warnings),
            "tips": _messages(self.tips),
        }


def compute_ration(
    category: CategoryKey | str,
    weight: float,
    milk: float = 0.0,
    selected: Iterable[str] = (),
    overrides: Overrides = None,
    *,
    data: ReferenceData | None = None,
) -> RationResult:
    """Compute the daily ration for one animal.

    ``category`` must be one of the reference categories (``UnknownCategoryError``
    otherwise). Invalid weight or milk, or an empty selection, never raise: the
    result then carries zero/empty aggregates.
    """

    data = data or default_reference_data()
    policy = data.policy(category)

    if not valid_animal(weight, milk):
        return RationResult(
            policy=policy,
            weight=safe_num(weight, 0.0),
            milk=safe_num(milk, 0.0),
            norm=Norm.zero(basis=policy.basis),
            is_valid=False,
        )

    weight = float(weight)
    milk = float(milk)
    if isinstance(selected, str):
        selected = [selected]
    feeds = data.select(selected or ())

    norm = resolve_norm(policy.key, weight, milk, data)
    if not feeds:
        return RationResult(policy=policy, weight=weight, milk=milk, norm=norm)

    composition = average_composition(feeds)
    mass = solve_mass(norm, composition)

    pinned = normalize_overrides(overrides)
    names = {feed.name for feed in feeds}
    override_total = sum(kg for name, kg in pinned.items() if name in names)

    cap = cap_dry_matter(policy, weight, composition, mass, override_total)
    distribution = build_distribution(feeds, policy.ratios, norm.basis, cap.effective_total, pinned)
    supplied = supply(norm, composition, cap.effective_total)
    diagnostics = diagnose(policy, feeds, composition, norm, mass, cap, distribution, supplied, weight, data)

    return RationResult(
        policy=policy,
        weight=weight,
        milk=milk,
        feeds=feeds,
        composition=composition,
        norm=norm,
        mass=mass,
        cap=cap,
        distribution=distribution,
        supply=supplied,
        density=dm_metrics(composition),
        diagnostics=diagnostics,
    )


__all__ = ["RationResult", "compute_ration"]
