"""Daily requirement lookup: interpolated norm tables and nearest-weight tables."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from ration.activity import append_log
from ration.models import CategoryKey, Norm, NormMethod, NormPoint, UnknownCategoryError
from ration.reference import ReferenceData, default_reference_data


def valid_animal(weight: float, milk: float) -> bool:
    """Live weight must be positive and milk yield non-negative, both finite."""
    try:
        weight = float(weight)
        milk = float(milk)
    except (TypeError, ValueError):
        return False
    return math.isfinite(weight) and weight > 0 and math.isfinite(milk) and milk >= 0


def interpolate(table: Sequence[NormPoint], weight: float) -> NormPoint:
    """Linearly interpolate energy and protein at ``weight``.

    Outside the tabulated range the first/last row is returned unchanged.
    """
    if not table:
        raise ValueError("Interpolation table is empty")

    rows = sorted(table, key=lambda p: p.weight)
    if weight <= rows[0].weight:
        return rows[0]
    if weight >= rows[-1].weight:
        return rows[-1]

    xp = np.array([p.weight for p in rows], dtype=float)
    energy = np.interp(weight, xp, [p.energy for p in rows])
    protein = np.interp(weight, xp, [p.protein_g for p in rows])
    return NormPoint(weight=float(weight), energy=float(energy), protein_g=float(protein))


def nearest_row(table: Sequence[NormPoint], weight: float) -> NormPoint:
    """Return the row closest to ``weight``; equidistant rows resolve to the lighter one."""
    if not table:
        raise ValueError("Nearest-weight table is empty")

    rows = sorted(table, key=lambda p: p.weight)
    distances = np.abs(np.array([p.weight for p in rows], dtype=float) - weight)
    # argmin keeps the first minimum, i.e. the lower weight on ties
    return rows[int(np.argmin(distances))]


def resolve_norm(
    category: CategoryKey | str,
    weight: float,
    milk: float = 0.0,
    data: ReferenceData | None = None,
) -> Norm:
    """Map (category, weight, milk) to one daily energy/protein requirement.

    Never raises: invalid input, an unknown category or a missing table give a
    zero requirement, which callers treat as "no valid computation".
    """
    if not valid_animal(weight, milk):
        return Norm.zero()
    weight, milk = float(weight), float(milk)

    data = data or default_reference_data()
    try:
        policy = data.policy(category)
    except UnknownCategoryError as exc:
        append_log(f"norm lookup failed: {exc}", level="WARN", scope="norms")
        return Norm.zero(note=str(exc))

    table = data.norm_table(policy.key)
    if not table:
        note = f"No norm table for {policy.label}"
        append_log(note, level="WARN", scope="norms")
        return Norm.zero(note=note, basis=policy.basis)

    if policy.norm_method == NormMethod.NEAREST:
        row = nearest_row(table, weight)
        energy = row.energy
    else:
        row = interpolate(table, weight)
        energy = row.energy + (policy.milk_nel_per_litre * milk if milk > 0 else 0.0)

    return Norm(
        basis=policy.basis,
        energy_mj=float(energy),
        protein_g=float(row.protein_g),
        note=policy.ratios.note,
    )


__all__ = ["interpolate", "nearest_row", "resolve_norm", "valid_animal"]
