"""Mass balance: average composition, required as-fed mass and the dry-matter cap."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from ration.models import (
    CategoryPolicy,
    Composition,
    DensitySummary,
    DryMatterCap,
    Feed,
    LimitingFactor,
    MassBalance,
    Norm,
    Supply,
)
from ration.numbers import round_half_up, safe_divide

INF = float("inf")
# residual deficits below this are floating-point noise from solving for the same requirement
DEFICIT_TOLERANCE = 1e-6


def average_composition(feeds: Sequence[Feed]) -> Composition:
    """Mean per-kg as-fed profile of ``feeds``; all zeros for an empty selection."""
    if not feeds:
        return Composition()

    values = np.array([[f.energy_me, f.energy_nel, f.protein, f.dm] for f in feeds], dtype=float)
    values = np.where(np.isfinite(values), values, 0.0)
    n = len(feeds)
    me, nel, protein, dm = (safe_divide(float(total), n, 0.0) for total in values.sum(axis=0))
    return Composition(me=me, nel=nel, protein=protein, dm=dm)


def dm_metrics(composition: Composition) -> DensitySummary:
    """Energy and protein density of the average composition on a dry-matter basis."""
    nel_per_kg_dm = safe_divide(composition.nel, composition.dm, 0.0)
    cp_frac_dm = safe_divide(composition.protein, composition.dm, 0.0)
    return DensitySummary(nel_per_kg_dm=max(0.0, nel_per_kg_dm), cp_pct_dm=max(0.0, cp_frac_dm * 100))


def solve_mass(norm: Norm, composition: Composition) -> MassBalance:
    """As-fed mass meeting both energy and protein; the nutrient needing more mass binds."""
    if not norm.is_valid:
        return MassBalance()

    energy_density = composition.energy(norm.basis)
    energy_mass = safe_divide(norm.energy_mj, energy_density, INF) if energy_density > 0 else INF
    protein_mass = (
        safe_divide(norm.protein_g / 1000.0, composition.protein, INF) if composition.protein > 0 else INF
    )

    if math.isinf(energy_mass) and math.isinf(protein_mass):
        return MassBalance(total=0.0, limiting=LimitingFactor.NONE)
    if energy_mass >= protein_mass:
        return MassBalance(energy_mass, LimitingFactor.ENERGY, energy_mass, protein_mass)
    return MassBalance(protein_mass, LimitingFactor.PROTEIN, energy_mass, protein_mass)


def dm_max(policy: CategoryPolicy, weight: float) -> float:
    """Maximum daily dry-matter intake (kg DM) for the category at ``weight``."""
    if not math.isfinite(weight) or weight <= 0:
        return 0.0
    result = weight * policy.dm_intake_fraction
    return max(0.0, result) if math.isfinite(result) else 0.0


def coverage_pct(effective_total: float, solved_total: float) -> int:
    if solved_total <= 0:
        return 0
    pct = round_half_up(100 * safe_divide(effective_total, solved_total, 0.0))
    pct = min(100.0, max(0.0, pct))
    if effective_total < solved_total:
        # a shortfall never reads as full coverage
        pct = min(pct, 99.0)
    return int(pct)


def cap_dry_matter(
    policy: CategoryPolicy,
    weight: float,
    composition: Composition,
    mass: MassBalance,
    override_total: float = 0.0,
) -> DryMatterCap:
    """Clamp the solved mass to the as-fed equivalent of the dry-matter ceiling.

    Pinned amounts that add up to more than the solved mass replace it as the
    base before the ceiling is applied, so they are not discarded.
    """
    cap = dm_max(policy, weight)
    as_fed_max = safe_divide(cap, composition.dm, INF) if cap > 0 and composition.dm > 0 else INF

    solved = mass.total
    if solved <= 0:
        return DryMatterCap(dm_max=cap, as_fed_max=as_fed_max, effective_total=0.0, coverage_pct=0)

    effective = min(max(override_total, solved), as_fed_max)
    if not math.isfinite(effective):
        effective = 0.0

    return DryMatterCap(
        dm_max=cap,
        as_fed_max=as_fed_max,
        effective_total=effective,
        coverage_pct=coverage_pct(effective, solved),
    )


def supply(norm: Norm, composition: Composition, effective_total: float) -> Supply:
    """Nutrients delivered by ``effective_total`` kg of the average mix, and what is missing."""
    energy_supply = composition.energy(norm.basis) * effective_total
    protein_supply_g = composition.protein * 1000.0 * effective_total

    energy_deficit = norm.energy_mj - energy_supply
    protein_deficit = norm.protein_g - protein_supply_g
    energy_deficit = energy_deficit if energy_deficit > DEFICIT_TOLERANCE else 0.0
    protein_deficit = protein_deficit if protein_deficit > DEFICIT_TOLERANCE else 0.0
    protein_deficit_pct = safe_divide(protein_deficit, norm.protein_g, 0.0) * 100 if norm.protein_g > 0 else 0.0

    return Supply(
        energy_mj=energy_supply,
        protein_g=protein_supply_g,
        energy_deficit=energy_deficit,
        protein_deficit=protein_deficit,
        protein_deficit_pct=protein_deficit_pct,
    )


__all__ = [
    "average_composition",
    "cap_dry_matter",
    "coverage_pct",
    "dm_max",
    "dm_metrics",
    "solve_mass",
    "supply",
]
