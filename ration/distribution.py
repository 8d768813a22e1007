"""Split the effective as-fed total across feed classes and feeds.

Allocation runs in two phases. User-pinned amounts are placed first, verbatim.
What is left of each class quota is then shared among the class's other feeds
in proportion to the attribute that defines the class: dry matter for
roughage, energy density (in the norm's basis) for energy feeds and crude
protein for protein feeds.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Sequence, Union

import numpy as np

from ration.models import (
    FEED_CLASSES,
    Distribution,
    DistributionItem,
    EnergyBasis,
    Feed,
    FeedClass,
    Ratios,
    UserFeedAmount,
)
from ration.numbers import parse_amount

# floor for class weights so that a feed with a zero attribute still gets a share
MIN_WEIGHT = 0.1

Overrides = Union[Mapping[str, float], Iterable[Union[UserFeedAmount, tuple[str, float]]], None]


def normalize_overrides(overrides: Overrides) -> dict[str, float]:
    """Return ``{feed name: kg}`` with amounts clamped at 0; later entries win."""
    if not overrides:
        return {}
    if isinstance(overrides, Mapping):
        pairs = list(overrides.items())
    else:
        pairs = []
        for entry in overrides:
            if isinstance(entry, UserFeedAmount):
                pairs.append((entry.feed_name, entry.amount))
            else:
                name, amount = entry
                pairs.append((name, amount))
    return {str(name).strip(): max(0.0, parse_amount(amount) or 0.0) for name, amount in pairs}


def group_by_class(feeds: Sequence[Feed]) -> dict[FeedClass, list[Feed]]:
    groups: dict[FeedClass, list[Feed]] = {cls: [] for cls in FEED_CLASSES}
    for feed in feeds:
        groups[feed.feed_class].append(feed)
    return groups


def class_weight(feed: Feed, basis: EnergyBasis) -> float:
    if feed.feed_class == FeedClass.ROUGHAGE:
        value = feed.dm
    elif feed.feed_class == FeedClass.ENERGY:
        value = feed.energy(basis)
    else:
        value = feed.protein
    return max(MIN_WEIGHT, value) if math.isfinite(value) else MIN_WEIGHT


def _summarize(items: list[DistributionItem]) -> Distribution:
    per_class = {cls: 0.0 for cls in FEED_CLASSES}
    for item in items:
        per_class[item.feed_class] += item.kg
    return Distribution(
        per_class_kg=per_class,
        items=sorted(items, key=lambda item: item.name),
        dm_total=sum(item.dm_kg for item in items),
    )


def build_distribution(
    feeds: Sequence[Feed],
    ratios: Ratios,
    basis: EnergyBasis,
    effective_total: float,
    overrides: Overrides = None,
) -> Distribution:
    if not feeds or not math.isfinite(effective_total) or effective_total <= 0:
        return Distribution()

    pinned = normalize_overrides(overrides)
    selected = {feed.name: feed for feed in feeds}

    items: list[DistributionItem] = []
    pinned_by_class = {cls: 0.0 for cls in FEED_CLASSES}
    for name, amount in pinned.items():
        feed = selected.get(name)
        if feed is None:
            continue
        items.append(DistributionItem(feed=feed, kg=amount, user_defined=True))
        pinned_by_class[feed.feed_class] += amount

    if sum(pinned_by_class.values()) >= effective_total:
        return _summarize(items)

    groups = group_by_class(feeds)
    for cls in FEED_CLASSES:
        remaining = max(0.0, ratios.percent(cls) / 100.0 * effective_total - pinned_by_class[cls])
        free = [feed for feed in groups[cls] if feed.name not in pinned]
        if remaining <= 0 or not free:
            continue

        weights = np.array([class_weight(feed, basis) for feed in free], dtype=float)
        shares = weights / weights.sum() * remaining
        for feed, share in zip(free, shares):
            if share > 0:
                items.append(DistributionItem(feed=feed, kg=float(share), user_defined=False))

    return _summarize(items)


__all__ = [
    "MIN_WEIGHT",
    "build_distribution",
    "class_weight",
    "group_by_class",
    "normalize_overrides",
]
