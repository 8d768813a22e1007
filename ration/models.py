"""Domain records shared by the ration engine stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class RationError(Exception):
    """Base error for the ration engine."""


class UnknownCategoryError(RationError, ValueError):
    """Raised when a category key is not part of the reference data."""

    def __init__(self, category: str):
        super().__init__(f"Unknown animal category: {category!r}")
        self.category = category


class ReferenceDataError(RationError):
    """Raised when the reference tables cannot be loaded or fail validation."""

    def __init__(self, message: str, report: "ValidationReport | None" = None):
        super().__init__(message)
        self.report = report


class FeedClass(str, Enum):
    ROUGHAGE = "roughage"
    ENERGY = "energy"
    PROTEIN = "protein"


class EnergyBasis(str, Enum):
    ME = "ME"
    NEL = "NeL"


class LimitingFactor(str, Enum):
    ENERGY = "energy"
    PROTEIN = "protein"
    NONE = "none"


class NormMethod(str, Enum):
    INTERPOLATE = "interpolate"
    NEAREST = "nearest"


class CategoryKey(str, Enum):
    LACTATING_COW = "lactating_cow"
    DRY_COW = "dry_cow"
    MATURE_BULL = "mature_bull"
    CALF_1_6 = "calf_1_6"


FEED_CLASSES: tuple[FeedClass, ...] = (FeedClass.ROUGHAGE, FeedClass.ENERGY, FeedClass.PROTEIN)


@dataclass(frozen=True)
class Feed:
    name: str
    energy_me: float  # MJ ME / kg as-fed
    energy_nel: float  # MJ NeL / kg as-fed
    protein: float  # kg CP / kg as-fed
    dm: float  # kg DM / kg as-fed
    feed_class: FeedClass

    def energy(self, basis: EnergyBasis) -> float:
        return self.energy_me if basis == EnergyBasis.ME else self.energy_nel


@dataclass(frozen=True)
class Ratios:
    roughage: float
    energy: float
    protein: float
    note: str = ""

    @property
    def total(self) -> float:
        return self.roughage + self.energy + self.protein

    @property
    def concentrate(self) -> float:
        return self.energy + self.protein

    def percent(self, feed_class: FeedClass) -> float:
        return {
            FeedClass.ROUGHAGE: self.roughage,
            FeedClass.ENERGY: self.energy,
            FeedClass.PROTEIN: self.protein,
        }[feed_class]


@dataclass(frozen=True)
class CategoryPolicy:
    """Every category-specific constant the engine needs, in one place."""

    key: CategoryKey
    label: str
    ratios: Ratios
    min_roughage_pct: float
    dm_intake_fraction: float
    norm_method: NormMethod
    basis: EnergyBasis
    milk_nel_per_litre: float = 0.0
    husbandry_note: str | None = None


@dataclass(frozen=True)
class NormPoint:
    weight: float
    energy: float
    protein_g: float


@dataclass(frozen=True)
class UserFeedAmount:
    feed_name: str
    amount: float  # kg as-fed / day


@dataclass(frozen=True)
class Norm:
    basis: EnergyBasis
    energy_mj: float
    protein_g: float
    note: str = ""

    @classmethod
    def zero(cls, note: str = "", basis: EnergyBasis = EnergyBasis.NEL) -> "Norm":
        return cls(basis=basis, energy_mj=0.0, protein_g=0.0, note=note)

    @property
    def is_valid(self) -> bool:
        return self.energy_mj > 0


@dataclass(frozen=True)
class Composition:
    """Average per-kg as-fed profile of the selected feeds."""

    me: float = 0.0
    nel: float = 0.0
    protein: float = 0.0
    dm: float = 0.0

    def energy(self, basis: EnergyBasis) -> float:
        return self.me if basis == EnergyBasis.ME else self.nel


@dataclass(frozen=True)
class DensitySummary:
    nel_per_kg_dm: float = 0.0
    cp_pct_dm: float = 0.0


@dataclass(frozen=True)
class MassBalance:
    total: float = 0.0
    limiting: LimitingFactor = LimitingFactor.NONE
    energy_mass: float = float("inf")
    protein_mass: float = float("inf")


@dataclass(frozen=True)
class DryMatterCap:
    dm_max: float = 0.0
    as_fed_max: float = float("inf")
    effective_total: float = 0.0
    coverage_pct: int = 0


@dataclass(frozen=True)
class DistributionItem:
    feed: Feed
    kg: float
    user_defined: bool = False

    @property
    def name(self) -> str:
        return self.feed.name

    @property
    def feed_class(self) -> FeedClass:
        return self.feed.feed_class

    @property
    def dm_kg(self) -> float:
        return self.kg * self.feed.dm


@dataclass(frozen=True)
class Distribution:
    per_class_kg: dict[FeedClass, float] = field(
        default_factory=lambda: {cls: 0.0 for cls in FEED_CLASSES}
    )
    items: list[DistributionItem] = field(default_factory=list)
    dm_total: float = 0.0

    @property
    def total_kg(self) -> float:
        return sum(item.kg for item in self.items)


@dataclass(frozen=True)
class Supply:
    energy_mj: float = 0.0
    protein_g: float = 0.0
    energy_deficit: float = 0.0
    protein_deficit: float = 0.0
    protein_deficit_pct: float = 0.0


@dataclass(frozen=True)
class Message:
    code: str
    text: str


@dataclass(frozen=True)
class Diagnostics:
    warnings: list[Message] = field(default_factory=list)
    tips: list[Message] = field(default_factory=list)


@dataclass(frozen=True)
class ValidationIssue:
    table: str
    row: int | str | None
    message: str

    def __str__(self) -> str:
        where = f"{self.table}[{self.row}]" if self.row is not None else self.table
        return f"{where}: {self.message}"


@dataclass(frozen=True)
class ValidationReport:
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def tables(self) -> set[str]:
        return {issue.table for issue in self.issues}


__all__ = [
    "CategoryKey",
    "CategoryPolicy",
    "Composition",
    "DensitySummary",
    "Diagnostics",
    "Distribution",
    "DistributionItem",
    "DryMatterCap",
    "EnergyBasis",
    "FEED_CLASSES",
    "Feed",
    "FeedClass",
    "LimitingFactor",
    "MassBalance",
    "Message",
    "Norm",
    "NormMethod",
    "NormPoint",
    "RationError",
    "Ratios",
    "ReferenceDataError",
    "Supply",
    "UnknownCategoryError",
    "UserFeedAmount",
    "ValidationIssue",
    "ValidationReport",
]
