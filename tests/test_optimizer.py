"""Tests for the cable optimization pipeline."""

from decimal import Decimal

from cable_engine.models import CableRate, CableScheduleEntry
from cable_engine.pipelines.optimizer import (
    analyze_cable_optimizations,
    calculate_cost_breakdown,
    summarize_optimizations,
)
from cable_engine.settings import CalculationSettings


def _entry(**overrides):
    data = dict(
        id="1",
        cable_tag="C-01",
        from_location="MSB",
        to_location="DB-1",
        voltage=400,
        load_amps=200,
        cable_size="150mm²",
        cable_type="Copper",
        total_length=50,
        parallel_total_count=1,
    )
    data.update(overrides)
    return CableScheduleEntry(**data)


def test_oversized_run_finds_cheaper_alternative():
    [result] = analyze_cable_optimizations([_entry()], [], CalculationSettings())

    # 150mm² at reference rates: (310 + 155) x 50m
    assert result.current.cost.total == Decimal("23250.00")
    assert result.current.load_amps == 200

    best = result.best_alternative
    assert (best.size, best.parallel_count) == ("95mm²", 1)
    assert best.total_cost == Decimal("16250.00")
    assert best.savings == Decimal("7000.00")
    assert best.savings_percent == Decimal("30.11")
    assert result.max_savings == Decimal("7000.00")


def test_current_configuration_is_marked_inline():
    [result] = analyze_cable_optimizations([_entry()], [], CalculationSettings())
    current = [o for o in result.alternatives if o.is_current_config]
    assert len(current) == 1
    assert (current[0].size, current[0].parallel_count) == ("150mm²", 1)
    assert current[0].savings == Decimal("0.00")


def test_alternatives_are_sorted_and_compliant():
    [result] = analyze_cable_optimizations([_entry()], [], CalculationSettings())
    totals = [o.total_cost for o in result.alternatives]
    assert totals == sorted(totals)
    # 200A x 1.15 needs 230A from a single cable; 70mm² (207A) fails
    assert ("70mm²", 1) not in [(o.size, o.parallel_count) for o in result.alternatives]
    # 200A / 5 = 40A per cable is below the practical minimum
    assert all(o.parallel_count <= 4 for o in result.alternatives)


def test_compliance_report_format():
    [result] = analyze_cable_optimizations([_entry()], [], CalculationSettings())
    assert result.best_alternative.compliance_report == (
        "Design: 200A | CB: N/A | Cable: 251A (251A × 1) | Grouping: 100% | Margin: 26%"
    )


def test_rate_table_takes_precedence():
    rates = [CableRate("95mm²", "Copper", Decimal("200"), Decimal("100"))]
    [result] = analyze_cable_optimizations([_entry()], rates, CalculationSettings())
    option = next(o for o in result.alternatives if (o.size, o.parallel_count) == ("95mm²", 1))
    assert option.total_cost == Decimal("15000.00")


def test_non_compliant_current_configuration_is_still_listed():
    [result] = analyze_cable_optimizations([_entry(cable_size="16mm²")], [], CalculationSettings())
    current = [o for o in result.alternatives if o.is_current_config]
    assert len(current) == 1
    assert current[0].compliance_report.startswith("Non-compliant")
    assert "does not meet" in result.compliance_notes


def test_local_protection_removes_undersized_options():
    [result] = analyze_cable_optimizations(
        [_entry(protection_device_rating=300)], [], CalculationSettings()
    )
    singles = {o.size for o in result.alternatives if o.parallel_count == 1 and not o.is_current_config}
    # In <= Iz: 95mm² (251A) and 120mm² (290A) cannot sit behind a 300A breaker
    assert "95mm²" not in singles
    assert "120mm²" not in singles
    assert "185mm²" in singles
    assert "CB: 300A" in result.best_alternative.compliance_report


def test_protection_rating_stands_in_for_missing_load():
    [result] = analyze_cable_optimizations(
        [_entry(load_amps=None, protection_device_rating=100)], [], CalculationSettings()
    )
    assert result.current.load_amps == 100
    assert "protection device" in result.compliance_notes


def test_parallel_group_is_analysed_once():
    entries = [
        _entry(id="1", cable_tag="C-01/1", base_cable_tag="C-01", parallel_group_id="g1", parallel_total_count=2),
        _entry(id="2", cable_tag="C-01/2", base_cable_tag="C-01", parallel_group_id="g1", parallel_total_count=2),
        _entry(id="3", cable_tag="C-02"),
    ]
    results = analyze_cable_optimizations(entries, [], CalculationSettings())
    assert [r.cable_tag for r in results] == ["C-01", "C-02"]
    assert results[0].current.parallel_count == 2


def test_incomplete_entries_are_skipped():
    entries = [
        _entry(total_length=None),
        _entry(id="2", cable_tag="C-02", voltage=None),
        _entry(id="3", cable_tag="C-03", load_amps=None, protection_device_rating=None),
    ]
    assert analyze_cable_optimizations(entries, [], CalculationSettings()) == []


def test_settings_bound_the_parallel_grid():
    settings = CalculationSettings(max_parallel_cables=2)
    [result] = analyze_cable_optimizations([_entry()], [], settings)
    assert max(o.parallel_count for o in result.alternatives) == 2


def test_grouping_comes_from_settings_by_parallel_count():
    plain = analyze_cable_optimizations([_entry()], [], CalculationSettings())[0]
    for factor in (0.5, 0):
        [result] = analyze_cable_optimizations([_entry(grouping_factor=factor)], [], CalculationSettings())
        assert [(o.size, o.parallel_count) for o in result.alternatives] == [
            (o.size, o.parallel_count) for o in plain.alternatives
        ]

    tighter = CalculationSettings(grouping_factor_2_circuits=0.5)
    [result] = analyze_cable_optimizations([_entry()], [], tighter)
    pairs = [(o.size, o.parallel_count) for o in result.alternatives]
    # 100A per cable x 1.15 needs 115A: 70mm² (207A air) fits at 0.80 grouping but not at 0.50
    assert ("70mm²", 2) in [(o.size, o.parallel_count) for o in plain.alternatives]
    assert ("70mm²", 2) not in pairs
    assert ("95mm²", 2) in pairs
    assert any("Grouping: 50%" in o.compliance_report for o in result.alternatives if o.parallel_count == 2)


def test_cost_breakdown_lookup_order():
    rates = [
        CableRate("95mm²", "Cu/PVC/SWA", Decimal("200"), Decimal("100"), Decimal("50")),
        CableRate("95mm²", "Copper XLPE", Decimal("999"), Decimal("999")),
    ]
    exact = calculate_cost_breakdown("95mm²", "Copper XLPE", 10, 1, rates)
    assert exact.total == Decimal("19980.00")

    by_material = calculate_cost_breakdown("95", "Cu", 10, 2, rates)
    assert by_material.supply == Decimal("4000.00")
    assert by_material.install == Decimal("2000.00")
    assert by_material.termination == Decimal("200.00")
    assert by_material.total == Decimal("6200.00")

    reference = calculate_cost_breakdown("50mm²", "Copper", 10, 1, rates)
    assert reference.total == Decimal("2030.00")

    missing = calculate_cost_breakdown("999mm²", "Copper", 10, 1, rates)
    assert missing.total == Decimal("0.00")


def test_summary():
    entries = [_entry(), _entry(id="2", cable_tag="C-02", cable_size="95mm²")]
    results = analyze_cable_optimizations(entries, [], CalculationSettings())
    summary = summarize_optimizations(results)
    assert summary["runs"] == 2
    assert summary["runs_with_savings"] == 1
    assert summary["total_current_cost"] == Decimal("39500.00")
    assert summary["total_potential_savings"] == Decimal("7000.00")
    assert summary["total_optimized_cost"] == Decimal("32500.00")


def test_summary_of_nothing():
    summary = summarize_optimizations([])
    assert summary["runs"] == 0
    assert summary["savings_percent"] == Decimal("0.00")
