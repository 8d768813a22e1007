"""Warnings and corrective tips derived from a computed ration."""

from __future__ import annotations

from typing import Sequence

from ration.balance import dm_metrics
from ration.models import (
    FEED_CLASSES,
    CategoryPolicy,
    Composition,
    Diagnostics,
    Distribution,
    DryMatterCap,
    Feed,
    FeedClass,
    MassBalance,
    Message,
    Norm,
    Supply,
)
from ration.numbers import round_feed, round_half_up, safe_divide
from ration.reference import ReferenceData

CONCENTRATE_MAX_PCT = 60.0
DM_TOLERANCE_KG = 0.1
ROUGHAGE_NEL_MIN = 5.0  # MJ NeL / kg as-fed
ROUGHAGE_SWAP_PCT = 30
MAX_ROUGHAGE_CANDIDATES = 3
SALT_G_PER_100KG = 35
PREMIX_G_PER_100KG = 90

CLASS_LABELS = {
    FeedClass.ROUGHAGE: "Roughage",
    FeedClass.ENERGY: "Energy",
    FeedClass.PROTEIN: "Protein",
}


def collect_warnings(
    policy: CategoryPolicy,
    feeds: Sequence[Feed],
    mass: MassBalance,
    cap: DryMatterCap,
    distribution: Distribution,
) -> list[Message]:
    ratios = policy.ratios
    warnings: list[Message] = []

    if ratios.roughage < policy.min_roughage_pct:
        warnings.append(
            Message(
                "low_roughage",
                f"Roughage share {ratios.roughage:g}% is below the recommended minimum of "
                f"{policy.min_roughage_pct:g}% (acidosis risk, too little structural fibre).",
            )
        )

    if ratios.concentrate > CONCENTRATE_MAX_PCT:
        warnings.append(
            Message(
                "high_concentrate",
                f"Concentrate share {ratios.concentrate:g}% is above {CONCENTRATE_MAX_PCT:g}% (acidosis risk).",
            )
        )

    if cap.effective_total < mass.total:
        warnings.append(
            Message(
                "dm_limited",
                "The dry-matter limit keeps the energy/protein requirement from being fully covered. "
                "Add energy-dense feeds or adjust the class shares.",
            )
        )

    if distribution.dm_total > cap.dm_max + DM_TOLERANCE_KG:
        warnings.append(
            Message(
                "dm_exceeded",
                f"Computed dry matter {distribution.dm_total:.1f} kg exceeds the dry-matter limit "
                f"of {cap.dm_max:.1f} kg.",
            )
        )

    present = {feed.feed_class for feed in feeds}
    missing = [CLASS_LABELS[cls] for cls in FEED_CLASSES if cls not in present]
    if missing:
        warnings.append(Message("missing_classes", f"No feeds selected in these classes: {', '.join(missing)}."))

    return warnings


def _roughage_tips(
    policy: CategoryPolicy, feeds: Sequence[Feed], effective_total: float, data: ReferenceData
) -> list[Message]:
    tips: list[Message] = []
    ratios = policy.ratios
    reference_roughage = data.feeds_by_class(FeedClass.ROUGHAGE)

    if ratios.roughage < policy.min_roughage_pct:
        need_kg = effective_total * (policy.min_roughage_pct - ratios.roughage) / 100.0
        tips.append(
            Message(
                "add_roughage",
                f"Raise the roughage share to at least {policy.min_roughage_pct:g}%: "
                f"add about {round_feed(need_kg):.1f} kg as-fed roughage.",
            )
        )
        better = [f.name for f in reference_roughage if f.energy_nel >= ROUGHAGE_NEL_MIN]
        if better:
            tips.append(
                Message(
                    "roughage_candidates",
                    f"Good roughage options: {', '.join(better[:MAX_ROUGHAGE_CANDIDATES])}.",
                )
            )

    selected_roughage = [f for f in feeds if f.feed_class == FeedClass.ROUGHAGE]
    if selected_roughage:
        avg_nel = safe_divide(sum(f.energy_nel for f in selected_roughage), len(selected_roughage), 0.0)
        if avg_nel < ROUGHAGE_NEL_MIN:
            chosen = {f.name for f in selected_roughage}
            pool = [f for f in reference_roughage if f.name not in chosen] or reference_roughage
            densest = max(pool, key=lambda f: f.energy_nel)
            tips.append(
                Message(
                    "roughage_quality",
                    f"Roughage quality is low (average NeL {avg_nel:.1f} MJ/kg). Replace at least "
                    f"{ROUGHAGE_SWAP_PCT}% of straw/stalks with a denser roughage such as {densest.name}.",
                )
            )
    return tips


def _deficit_tips(norm: Norm, cap: DryMatterCap, supply: Supply, data: ReferenceData) -> list[Message]:
    tips: list[Message] = []

    if supply.protein_deficit > 0:
        candidates = data.feeds_by_class(FeedClass.PROTEIN)
        if candidates:
            best = max(candidates, key=lambda f: f.protein)
            need_kg = safe_divide(supply.protein_deficit, best.protein * 1000.0, 0.0)
            tips.append(
                Message(
                    "protein_deficit",
                    f"Enrich protein: about {round_feed(need_kg):.1f} kg {best.name} "
                    "closes the crude-protein requirement.",
                )
            )

    # an energy gap caused by the dry-matter limit is already reported as a warning
    if supply.energy_deficit > 0 and cap.coverage_pct == 100:
        candidates = data.feeds_by_class(FeedClass.ENERGY)
        if candidates:
            best = max(candidates, key=lambda f: f.energy(norm.basis))
            need_kg = safe_divide(supply.energy_deficit, best.energy(norm.basis), 0.0)
            tips.append(
                Message(
                    "energy_deficit",
                    f"Energy is short: add about {round_feed(need_kg):.1f} kg {best.name} "
                    "or improve the roughage quality.",
                )
            )
    return tips


def collect_tips(
    policy: CategoryPolicy,
    feeds: Sequence[Feed],
    composition: Composition,
    norm: Norm,
    cap: DryMatterCap,
    supply: Supply,
    weight: float,
    data: ReferenceData,
) -> list[Message]:
    tips = _roughage_tips(policy, feeds, cap.effective_total, data)
    tips.extend(_deficit_tips(norm, cap, supply, data))

    if policy.husbandry_note:
        tips.append(Message("husbandry", policy.husbandry_note))

    salt_g = int(round_half_up(weight / 100.0 * SALT_G_PER_100KG))
    premix_g = int(round_half_up(weight / 100.0 * PREMIX_G_PER_100KG))
    tips.append(
        Message(
            "minerals",
            f"Minerals/vitamins: salt {salt_g} g/day, mineral premix {premix_g} g/day. "
            "Keep Ca:P near 2:1 and water free-choice.",
        )
    )

    density = dm_metrics(composition)
    tips.append(
        Message(
            "dm_density",
            f"Density on a dry-matter basis: {density.nel_per_kg_dm:.2f} MJ NeL/kg DM, "
            f"{density.cp_pct_dm:.1f}% CP.",
        )
    )
    return tips


def diagnose(
    policy: CategoryPolicy,
    feeds: Sequence[Feed],
    composition: Composition,
    norm: Norm,
    mass: MassBalance,
    cap: DryMatterCap,
    distribution: Distribution,
    supply: Supply,
    weight: float,
    data: ReferenceData,
) -> Diagnostics:
    if not feeds:
        return Diagnostics()
    warnings = collect_warnings(policy, feeds, mass, cap, distribution)
    tips: list[Message] = []
    if cap.effective_total > 0:
        tips = collect_tips(policy, feeds, composition, norm, cap, supply, weight, data)
    return Diagnostics(warnings=warnings, tips=tips)


__all__ = ["collect_tips", "collect_warnings", "diagnose"]
