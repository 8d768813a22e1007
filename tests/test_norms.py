from dataclasses import replace
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ration.activity import get_log_path
from ration.models import CategoryKey, EnergyBasis, NormPoint
from ration.norms import interpolate, nearest_row, resolve_norm, valid_animal


def test_bull_uses_exact_row_on_me_basis(data):
    norm = resolve_norm("mature_bull", 325, data=data)
    assert norm.basis == EnergyBasis.ME
    assert (norm.energy_mj, norm.protein_g) == (75, 980)
    assert norm.note == data.policy("mature_bull").ratios.note


def test_bull_tie_resolves_to_lighter_row(data):
    norm = resolve_norm("mature_bull", 300, data=data)
    assert (norm.energy_mj, norm.protein_g) == (68, 920)


def test_bull_outside_table_snaps_to_edge_rows(data):
    assert resolve_norm("mature_bull", 20, data=data).energy_mj == 45
    assert resolve_norm("mature_bull", 2000, data=data).energy_mj == 115


def test_interpolation_between_rows(data):
    norm = resolve_norm("lactating_cow", 500, data=data)
    assert norm.basis == EnergyBasis.NEL
    assert norm.energy_mj == pytest.approx(50)
    assert norm.protein_g == pytest.approx(1400)


def test_calf_below_table_is_clamped_to_first_row(data):
    norm = resolve_norm("calf_1_6", 10, data=data)
    assert (norm.energy_mj, norm.protein_g) == (9, 400)
    above = resolve_norm("calf_1_6", 900, data=data)
    assert (above.energy_mj, above.protein_g) == (26, 1000)


def test_milk_adds_energy_for_lactating_cows_only(data):
    base = resolve_norm("lactating_cow", 500, 0, data=data)
    milking = resolve_norm("lactating_cow", 500, 20, data=data)
    assert milking.energy_mj == pytest.approx(base.energy_mj + 64)
    assert milking.protein_g == base.protein_g
    assert resolve_norm("dry_cow", 400, 20, data=data) == resolve_norm("dry_cow", 400, 0, data=data)


@pytest.mark.parametrize("category", [k.value for k in CategoryKey])
def test_energy_never_decreases_with_weight(data, category):
    energies = [resolve_norm(category, w, data=data).energy_mj for w in range(25, 900, 5)]
    assert all(b >= a for a, b in zip(energies, energies[1:]))


@pytest.mark.parametrize("weight, milk", [(0, 0), (-5, 0), (float("nan"), 0), (500, -1), ("heavy", 0)])
def test_invalid_animal_gives_zero_norm(data, weight, milk):
    assert not valid_animal(weight, milk)
    norm = resolve_norm("lactating_cow", weight, milk, data=data)
    assert not norm.is_valid
    assert norm.protein_g == 0


def test_unknown_category_gives_zero_norm_and_log_line(data):
    norm = resolve_norm("heifer", 300, data=data)
    assert not norm.is_valid
    assert "heifer" in norm.note
    assert "norm lookup failed" in get_log_path().read_text(encoding="utf-8")


def test_missing_table_gives_zero_norm(data):
    tables = {k: v for k, v in data.norm_tables.items() if k != CategoryKey.CALF_1_6}
    stripped = replace(data, norm_tables=tables)
    norm = resolve_norm("calf_1_6", 100, data=stripped)
    assert not norm.is_valid
    assert norm.note == "No norm table for Calf (1-6 months)"


def test_table_helpers_sort_rows_and_reject_empty_tables():
    table = [NormPoint(200, 20, 200), NormPoint(100, 10, 100)]
    assert interpolate(table, 150) == NormPoint(150, 15, 150)
    assert nearest_row(table, 151).weight == 200
    with pytest.raises(ValueError):
        interpolate([], 10)
    with pytest.raises(ValueError):
        nearest_row([], 10)


def test_numeric_strings_are_accepted(data):
    assert resolve_norm("lactating_cow", "500", data=data).energy_mj == pytest.approx(50)
    assert resolve_norm("lactating_cow", "500", "10", data=data).energy_mj == pytest.approx(82)
    assert resolve_norm("mature_bull", "325", data=data).energy_mj == 75
