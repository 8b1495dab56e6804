"""Tests for per-project calculation settings."""

import pytest

from cable_engine.errors import InvalidInput
from cable_engine.models import InstallationMethod, Material
from cable_engine.settings import CalculationSettings


def test_defaults_come_from_standards_table():
    settings = CalculationSettings()
    assert settings.voltage_drop_limit_400v == 5.0
    assert settings.voltage_drop_limit_230v == 3.0
    assert settings.cable_safety_margin == 1.15
    assert settings.max_amps_per_cable == 400.0
    assert settings.preferred_amps_per_cable == 300.0
    assert settings.max_parallel_cables == 6
    assert settings.min_amps_per_cable == 50.0
    assert settings.default_installation_method is InstallationMethod.AIR
    assert settings.default_cable_material is Material.COPPER


def test_from_mapping_coerces_strings():
    settings = CalculationSettings.from_mapping({
        "voltage_drop_limit_400v": "4.5",
        "max_parallel_cables": "4",
        "default_installation_method": "ground",
        "default_cable_material": "Aluminium",
        "grouping_factor_2_circuits": "",
        "project_id": "ignored",
    })
    assert settings.voltage_drop_limit_400v == 4.5
    assert settings.max_parallel_cables == 4
    assert settings.default_installation_method is InstallationMethod.GROUND
    assert settings.default_cable_material is Material.ALUMINIUM
    assert settings.grouping_factor_2_circuits == 0.80


def test_from_mapping_empty():
    assert CalculationSettings.from_mapping(None) == CalculationSettings()
    assert CalculationSettings.from_mapping({}) == CalculationSettings()


@pytest.mark.parametrize("row", [
    {"cable_safety_margin": "lots"},
    {"max_parallel_cables": "0"},
    {"default_cable_material": "steel"},
])
def test_from_mapping_rejects_bad_values(row):
    with pytest.raises(InvalidInput):
        CalculationSettings.from_mapping(row)


def test_voltage_class_limits():
    settings = CalculationSettings(voltage_drop_limit_230v=2.5)
    assert settings.voltage_drop_limit_for(400) == 5.0
    assert settings.voltage_drop_limit_for(230) == 2.5


@pytest.mark.parametrize("count, expected", [(1, 1.0), (2, 0.80), (3, 0.70), (4, 0.65), (9, 0.65)])
def test_grouping_factor_for(count, expected):
    assert CalculationSettings().grouping_factor_for(count) == expected


def test_request_for_carries_settings():
    settings = CalculationSettings(cable_safety_margin=1.25, default_cable_material="Al")
    request = settings.request_for(100, 230, 40)
    assert request.safety_margin == 1.25
    assert request.voltage_drop_limit == 3.0
    assert request.material is Material.ALUMINIUM
    assert request.installation_method is InstallationMethod.AIR
    assert request.length_m == 40
