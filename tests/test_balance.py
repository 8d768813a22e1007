from pathlib import Path
import math
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ration.balance import (
    average_composition,
    cap_dry_matter,
    coverage_pct,
    dm_max,
    dm_metrics,
    solve_mass,
    supply,
)
from ration.models import Composition, EnergyBasis, Feed, FeedClass, LimitingFactor, MassBalance, Norm


@pytest.fixture
def trio(data):
    return data.select(["Beda", "Arpa doni", "Soya shroti"])


@pytest.fixture
def cow(data):
    return data.policy("lactating_cow")


def test_average_composition_is_the_plain_mean(trio):
    comp = average_composition(trio)
    assert comp.me == pytest.approx(34.9 / 3)
    assert comp.nel == pytest.approx(21.5 / 3)
    assert comp.protein == pytest.approx(0.71 / 3)
    assert comp.dm == pytest.approx(0.9)


def test_average_composition_of_nothing_is_zero():
    assert average_composition([]) == Composition()


def test_average_composition_treats_missing_values_as_zero():
    odd = Feed("Odd", float("nan"), 4.0, 0.1, 0.5, FeedClass.ROUGHAGE)
    plain = Feed("Plain", 8.0, 6.0, 0.1, 0.5, FeedClass.ROUGHAGE)
    comp = average_composition([odd, plain])
    assert comp.me == pytest.approx(4.0)
    assert comp.nel == pytest.approx(5.0)


def test_energy_limited_mass(trio):
    mass = solve_mass(Norm(EnergyBasis.NEL, 50, 1400), average_composition(trio))
    assert mass.limiting == LimitingFactor.ENERGY
    assert mass.total == pytest.approx(50 / (21.5 / 3))
    assert mass.protein_mass == pytest.approx(1.4 / (0.71 / 3))


def test_protein_limited_mass(trio):
    mass = solve_mass(Norm(EnergyBasis.NEL, 14, 600), average_composition(trio))
    assert mass.limiting == LimitingFactor.PROTEIN
    assert mass.total == pytest.approx(0.6 / (0.71 / 3))
    assert mass.total == max(mass.energy_mass, mass.protein_mass)


def test_energy_basis_selects_composition_column(trio):
    comp = average_composition(trio)
    mass = solve_mass(Norm(EnergyBasis.ME, 75, 100), comp)
    assert mass.energy_mass == pytest.approx(75 / comp.me)


def test_invalid_norm_or_empty_composition_gives_zero_mass(trio):
    assert solve_mass(Norm.zero(), average_composition(trio)) == MassBalance()
    empty = solve_mass(Norm(EnergyBasis.NEL, 50, 1400), Composition())
    assert empty.total == 0 and empty.limiting == LimitingFactor.NONE


def test_zero_protein_mix_cannot_meet_protein():
    comp = Composition(me=8, nel=5, protein=0, dm=0.9)
    mass = solve_mass(Norm(EnergyBasis.NEL, 50, 1400), comp)
    assert mass.limiting == LimitingFactor.PROTEIN
    assert math.isinf(mass.total)


def test_dm_max_scales_with_weight(cow):
    assert dm_max(cow, 500) == pytest.approx(14.0)
    assert dm_max(cow, 0) == 0
    assert dm_max(cow, float("nan")) == 0


@pytest.mark.parametrize(
    "effective, solved, expected",
    [(100, 100, 100), (120, 100, 100), (99.7, 100, 99), (50, 100, 50), (44.8, 100, 45), (0, 0, 0), (5, math.inf, 0)],
)
def test_coverage(effective, solved, expected):
    assert coverage_pct(effective, solved) == expected


def test_cap_leaves_small_mass_untouched(cow, trio):
    comp = average_composition(trio)
    mass = MassBalance(total=7.0, limiting=LimitingFactor.ENERGY)
    cap = cap_dry_matter(cow, 500, comp, mass)
    assert cap.as_fed_max == pytest.approx(14 / 0.9)
    assert cap.effective_total == pytest.approx(7.0)
    assert cap.coverage_pct == 100


def test_cap_clamps_to_dry_matter_ceiling(cow, trio):
    comp = average_composition(trio)
    mass = MassBalance(total=30.0, limiting=LimitingFactor.ENERGY)
    cap = cap_dry_matter(cow, 500, comp, mass)
    assert cap.effective_total == pytest.approx(14 / 0.9)
    assert cap.effective_total * comp.dm <= cap.dm_max + 1e-9
    assert cap.coverage_pct == 52


def test_pinned_total_above_solved_becomes_the_base(cow, trio):
    comp = average_composition(trio)
    mass = MassBalance(total=10.0, limiting=LimitingFactor.ENERGY)
    assert cap_dry_matter(cow, 500, comp, mass, override_total=12).effective_total == pytest.approx(12)
    assert cap_dry_matter(cow, 500, comp, mass, override_total=20).effective_total == pytest.approx(14 / 0.9)
    assert cap_dry_matter(cow, 500, comp, mass, override_total=4).effective_total == pytest.approx(10)


def test_cap_with_nothing_solved(cow, trio):
    cap = cap_dry_matter(cow, 500, average_composition(trio), MassBalance())
    assert cap.effective_total == 0
    assert cap.coverage_pct == 0


def test_infinite_mass_is_capped_and_reported_as_no_coverage(cow):
    comp = Composition(me=8, nel=5, protein=0, dm=0.9)
    mass = MassBalance(total=math.inf, limiting=LimitingFactor.PROTEIN)
    cap = cap_dry_matter(cow, 500, comp, mass)
    assert cap.effective_total == pytest.approx(14 / 0.9)
    assert cap.coverage_pct == 0


def test_supply_reports_deficits(trio):
    comp = average_composition(trio)
    norm = Norm(EnergyBasis.NEL, 50, 1400)
    short = supply(norm, comp, 5.0)
    assert short.energy_deficit == pytest.approx(50 - 5 * 21.5 / 3)
    assert short.protein_deficit == pytest.approx(1400 - 5000 * 0.71 / 3)
    assert short.protein_deficit_pct == pytest.approx(short.protein_deficit / 14)


def test_supply_at_solved_mass_has_no_deficit(trio):
    comp = average_composition(trio)
    norm = Norm(EnergyBasis.NEL, 14, 600)
    full = supply(norm, comp, solve_mass(norm, comp).total)
    assert full.energy_deficit == 0
    assert full.protein_deficit == 0


def test_dm_metrics(trio):
    density = dm_metrics(average_composition(trio))
    assert density.nel_per_kg_dm == pytest.approx(21.5 / 3 / 0.9)
    assert density.cp_pct_dm == pytest.approx(0.71 / 3 / 0.9 * 100)
    assert dm_metrics(Composition()).cp_pct_dm == 0
