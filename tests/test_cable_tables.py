"""Tests for the cable reference tables and material parsing."""

from dataclasses import replace

import pytest

from cable_engine.errors import InvalidInput
from cable_engine.knowledge.cable_tables import (
    ALUMINIUM_CABLE_TABLE,
    CABLE_TABLES,
    COPPER_CABLE_TABLE,
    check_table_integrity,
    find_cable,
    get_cable_table,
    index_of,
    normalize_size,
    table_sizes,
)
from cable_engine.knowledge.sans_10142 import (
    default_voltage_drop_limit,
    grouping_factor,
    is_three_phase,
    minimum_size_for_protection,
)
from cable_engine.models import InstallationMethod, Material


def test_table_lengths():
    assert len(COPPER_CABLE_TABLE) == 16
    assert len(ALUMINIUM_CABLE_TABLE) == 9
    assert table_sizes(Material.COPPER)[0] == "1.5mm²"
    assert table_sizes(Material.COPPER)[-1] == "300mm²"
    assert table_sizes(Material.ALUMINIUM)[0] == "25mm²"


@pytest.mark.parametrize("table", [COPPER_CABLE_TABLE, ALUMINIUM_CABLE_TABLE])
def test_shipped_tables_are_consistent(table):
    assert check_table_integrity(table) == []
    sizes = [row.cross_section_mm2 for row in table]
    assert sizes == sorted(sizes)


def test_integrity_reports_the_larger_row():
    broken = list(COPPER_CABLE_TABLE)
    broken[11] = replace(broken[11], rating_air=240.0, impedance=0.30)
    violations = check_table_integrity(broken)
    indexes = {i for i, _ in violations}
    # 120mm² is now below 95mm² (air) and 150mm² is fine against 120mm²
    assert 11 in indexes
    assert any("air rating" in msg for _, msg in violations)
    assert any("impedance" in msg for _, msg in violations)


def test_tables_are_read_only():
    with pytest.raises(TypeError):
        CABLE_TABLES[Material.COPPER] = ()
    with pytest.raises(AttributeError):
        COPPER_CABLE_TABLE[0].rating_air = 1.0


@pytest.mark.parametrize("text, expected", [
    ("Cu", Material.COPPER),
    ("copper", Material.COPPER),
    ("Cu/PVC/SWA", Material.COPPER),
    ("Al", Material.ALUMINIUM),
    ("Aluminium", Material.ALUMINIUM),
    ("aluminum XLPE", Material.ALUMINIUM),
    (Material.ALUMINIUM, Material.ALUMINIUM),
])
def test_material_parse(text, expected):
    assert Material.parse(text) is expected
    assert get_cable_table(text) is CABLE_TABLES[expected]


@pytest.mark.parametrize("text", ["", None, "steel", "PVC"])
def test_material_parse_rejects_unknown(text):
    with pytest.raises(InvalidInput):
        Material.parse(text)


@pytest.mark.parametrize("text, expected", [
    ("air", InstallationMethod.AIR),
    ("Open Air", InstallationMethod.AIR),
    ("duct", InstallationMethod.DUCTS),
    ("conduit", InstallationMethod.DUCTS),
    ("buried", InstallationMethod.GROUND),
    ("ground", InstallationMethod.GROUND),
])
def test_installation_method_parse(text, expected):
    assert InstallationMethod.parse(text) is expected


def test_installation_method_rejects_unknown():
    with pytest.raises(InvalidInput):
        InstallationMethod.parse("overhead")


@pytest.mark.parametrize("size, expected", [
    ("95mm²", "95"),
    ("95 mm2", "95"),
    ("95", "95"),
    (95.0, "95"),
    ("1.5mm²", "1.5"),
    ("", ""),
    (None, ""),
])
def test_normalize_size(size, expected):
    assert normalize_size(size) == expected


def test_lookups():
    row = find_cable("Cu", "95 mm2")
    assert row.size == "95mm²"
    assert row.rating_air == 251
    assert row.rating_for("ground") == 251
    assert row.rating_for(InstallationMethod.DUCTS) == 205
    assert row.volt_drop_factor(three_phase=True) == 0.427
    assert row.volt_drop_factor(three_phase=False) == 0.492
    assert find_cable("Al", "10mm²") is None
    assert index_of(COPPER_CABLE_TABLE, "300mm²") == 15


def test_row_to_dict_is_plain():
    data = COPPER_CABLE_TABLE[0].to_dict()
    assert data["size"] == "1.5mm²"
    assert isinstance(data["supply_cost"], float)


def test_standards_helpers():
    assert is_three_phase(400)
    assert is_three_phase(380)
    assert not is_three_phase(230)
    assert default_voltage_drop_limit(400) == 5.0
    assert default_voltage_drop_limit(230) == 3.0
    assert grouping_factor(1) == 1.0
    assert grouping_factor(3) == 0.70
    assert grouping_factor(9) == 0.65
    assert minimum_size_for_protection(None) == 1.5
    assert minimum_size_for_protection(20) == 1.5
    assert minimum_size_for_protection(250) == 35.0
    assert minimum_size_for_protection(251) == 50.0
    assert minimum_size_for_protection(1000) == 185.0
