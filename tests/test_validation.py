"""Tests for the engineering validator."""

from dataclasses import replace

from cable_engine.checks.validation import (
    check_protection_coordination,
    validate_cable_calculation,
    validate_request,
    validate_user_override,
)
from cable_engine.knowledge.cable_tables import COPPER_CABLE_TABLE, find_cable
from cable_engine.models import CalculationRequest, Severity


def _fields(report, severity):
    return [w.field for w in report.warnings if w.severity == severity]


def test_request_errors_are_reported_not_raised():
    report = validate_request(CalculationRequest(load_amps=0, voltage=-1, length_m=0))
    assert report.requires_verification
    assert set(_fields(report, Severity.ERROR)) == {"load_amps", "voltage", "length_m"}


def test_missing_length_is_informational():
    report = validate_request(CalculationRequest(load_amps=100, voltage=400))
    assert not report.requires_verification
    assert _fields(report, Severity.INFO) == ["length_m"]


def test_implausible_inputs_warn():
    report = validate_request(CalculationRequest(
        load_amps=6000, voltage=1200, length_m=2500, derating_factor=1.2, safety_margin=0.9,
    ))
    assert not report.has_errors
    assert set(_fields(report, Severity.WARNING)) == {
        "load_amps", "voltage", "length_m", "derating_factor", "safety_margin",
    }


def test_undersized_cable_is_an_error():
    row = find_cable("Cu", "25mm²")
    report = validate_cable_calculation(row, CalculationRequest(load_amps=200, voltage=400, length_m=10))
    assert report.requires_verification
    assert report.errors_for("cable_size")


def test_capacity_accounts_for_parallel_cables_and_margin():
    row = find_cable("Cu", "95mm²")
    request = CalculationRequest(load_amps=450, voltage=400, length_m=50, safety_margin=1.1)
    assert not validate_cable_calculation(row, request, parallel_count=2).errors_for("cable_size")
    assert validate_cable_calculation(row, request, parallel_count=1).errors_for("cable_size")


def test_matching_volt_drop_passes():
    row = find_cable("Cu", "95mm²")
    request = CalculationRequest(load_amps=225, voltage=400, length_m=50)
    report = validate_cable_calculation(row, request, volt_drop_percentage=1.20)
    assert report.warnings == []
    assert not report.requires_verification


def test_volt_drop_mismatch_warns():
    row = find_cable("Cu", "95mm²")
    request = CalculationRequest(load_amps=225, voltage=400, length_m=50)
    report = validate_cable_calculation(row, request, volt_drop_percentage=2.5)
    assert _fields(report, Severity.WARNING) == ["voltage_drop"]
    assert not report.requires_verification


def test_volt_drop_over_limit_is_an_error():
    row = find_cable("Cu", "10mm²")
    report = validate_cable_calculation(row, CalculationRequest(load_amps=50, voltage=230, length_m=200))
    assert report.errors_for("voltage_drop")
    assert report.requires_verification


def test_volt_drop_near_limit_is_noted():
    row = find_cable("Cu", "70mm²")
    report = validate_cable_calculation(row, CalculationRequest(load_amps=50, voltage=230, length_m=200))
    assert _fields(report, Severity.INFO) == ["voltage_drop"]
    assert not report.requires_verification

    narrow = validate_cable_calculation(
        row, CalculationRequest(load_amps=50, voltage=230, length_m=200), warning_buffer=0.1,
    )
    assert narrow.warnings == []


def test_explicit_limit_overrides_default():
    row = find_cable("Cu", "70mm²")
    request = CalculationRequest(load_amps=50, voltage=230, length_m=200, voltage_drop_limit=2.5)
    assert validate_cable_calculation(row, request).errors_for("voltage_drop")


def test_impedance_mismatch_requires_verification():
    row = replace(find_cable("Cu", "95mm²"), impedance=0.3)
    report = validate_cable_calculation(row, CalculationRequest(load_amps=100, voltage=400, length_m=10))
    assert _fields(report, Severity.WARNING) == ["impedance"]
    assert report.requires_verification


def test_size_missing_from_table_requires_verification():
    row = replace(find_cable("Cu", "95mm²"), size="99mm²")
    report = validate_cable_calculation(row, CalculationRequest(load_amps=100, voltage=400, length_m=10))
    assert "impedance" in _fields(report, Severity.WARNING)
    assert report.requires_verification


def test_inconsistent_reference_table_is_flagged():
    table = list(COPPER_CABLE_TABLE)
    table[11] = replace(table[11], rating_air=240.0)  # 120mm² below 95mm²
    row = table[10]
    report = validate_cable_calculation(
        row, CalculationRequest(load_amps=100, voltage=400, length_m=10), table=table,
    )
    assert any("inconsistency" in w.message for w in report.warnings)
    assert report.requires_verification


def test_validator_does_not_mutate_inputs():
    row = find_cable("Cu", "16mm²")
    request = CalculationRequest(load_amps=200, voltage=400, length_m=10)
    before = (row, request.load_amps, request.length_m)
    validate_cable_calculation(row, request, volt_drop_percentage=9.9)
    assert before == (row, request.load_amps, request.length_m)


def test_user_override():
    request = CalculationRequest(load_amps=225, voltage=400, length_m=50)
    ok = validate_user_override("95mm²", request)
    assert not ok.has_errors

    undersized = validate_user_override("50", request)
    assert undersized.errors_for("cable_size")

    unknown = validate_user_override("96mm²", request)
    assert unknown.requires_verification
    assert unknown.errors_for("cable_size")


def test_local_protection_must_not_exceed_cable_capacity():
    row = find_cable("Cu", "95mm²")
    warnings = check_protection_coordination(row, "air", 1.0, 1, 200, 300)
    assert len(warnings) == 1
    assert "In <= Iz" in warnings[0].message

    assert check_protection_coordination(row, "air", 1.0, 2, 200, 300) == []


def test_upstream_breaker_only_checks_minimum_size():
    row = find_cable("Cu", "95mm²")
    # 800A is more than 3x the 200A design current: treated as upstream
    warnings = check_protection_coordination(row, "air", 1.0, 1, 200, 800)
    assert len(warnings) == 1
    assert "minimum" in warnings[0].message


def test_no_protection_rating_means_no_checks():
    row = find_cable("Cu", "1.5mm²")
    assert check_protection_coordination(row, "air", 1.0, 1, 200, None) == []
