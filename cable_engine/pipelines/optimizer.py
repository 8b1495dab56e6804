"""
Cable Optimization Pipeline.

Re-evaluates every run of a project cable schedule against the reference
tables and the project's rate table:

    entry -> current configuration cost
          -> every (size x parallel count) alternative
          -> validator capacity / voltage-drop / protection checks
          -> priced, ranked OptimizationResult

Each entry is optimised in isolation; nothing is shared between runs.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from cable_engine import money
from cable_engine.checks.validation import (
    FIELD_CAPACITY,
    FIELD_VOLT_DROP,
    check_protection_coordination,
    validate_cable_calculation,
)
from cable_engine.errors import InvalidInput
from cable_engine.knowledge.cable_tables import get_cable_table, index_of, normalize_size
from cable_engine.models import (
    CableRate,
    CableRatingRow,
    CableScheduleEntry,
    CalculationRequest,
    ConfigurationOption,
    CostBreakdown,
    CurrentConfiguration,
    InstallationMethod,
    Material,
    OptimizationResult,
    Severity,
)
from cable_engine.pipelines.sizing import voltage_drop, voltage_drop_percentage
from cable_engine.settings import CalculationSettings

logger = logging.getLogger(__name__)

RATE_SOURCE_EXACT = "rate"
RATE_SOURCE_MATERIAL = "rate (material match)"
RATE_SOURCE_REFERENCE = "reference table"
RATE_SOURCE_NONE = "none"


# -------------------------------------------------------------------
# Pricing
# -------------------------------------------------------------------
def _material_of(cable_type: Optional[str]) -> Optional[Material]:
    try:
        return Material.parse(cable_type)
    except InvalidInput:
        return None


def _find_rate(rates: Sequence[CableRate], size: str, cable_type: str) -> Tuple[Optional[CableRate], str]:
    key = normalize_size(size)
    type_key = (cable_type or "").strip().lower()
    same_size = [r for r in rates if normalize_size(r.cable_size) == key]

    for rate in same_size:
        if (rate.cable_type or "").strip().lower() == type_key:
            return rate, RATE_SOURCE_EXACT

    material = _material_of(cable_type)
    if material is not None:
        for rate in same_size:
            if _material_of(rate.cable_type) is material:
                return rate, RATE_SOURCE_MATERIAL
    return None, RATE_SOURCE_NONE


def _price(
    size: str,
    cable_type: str,
    length,
    parallel_count: int,
    rates: Sequence[CableRate],
    material: Optional[Material] = None,
) -> Tuple[CostBreakdown, str]:
    rate, source = _find_rate(rates, size, cable_type)
    if rate is not None:
        supply_rate = rate.supply_rate_per_meter
        install_rate = rate.install_rate_per_meter
        termination_per_end = rate.termination_cost_per_end or 0
    else:
        material = material or _material_of(cable_type)
        table = get_cable_table(material) if material is not None else ()
        idx = index_of(table, size) if size else None
        if idx is None:
            logger.warning("No rate or reference cost for %s %s; pricing at zero", size, cable_type)
            return CostBreakdown(), RATE_SOURCE_NONE
        supply_rate = table[idx].supply_cost
        install_rate = table[idx].install_cost
        termination_per_end = 0
        source = RATE_SOURCE_REFERENCE

    supply = money.round_to(money.precise_multiply(supply_rate, length, parallel_count))
    install = money.round_to(money.precise_multiply(install_rate, length, parallel_count))
    termination = money.round_to(money.precise_multiply(termination_per_end, 2, parallel_count))
    return CostBreakdown(
        supply=supply,
        install=install,
        termination=termination,
        total=money.add([supply, install, termination]),
    ), source


def calculate_cost_breakdown(
    size: str,
    cable_type: str,
    length,
    parallel_count: int,
    rates: Sequence[CableRate],
    material: Optional[Material] = None,
) -> CostBreakdown:
    """
    Price a configuration from the rate table.

    Lookup order: exact size and cable type, then any rate for the same size
    and conductor material, then the reference table's per-metre costs. When
    nothing matches the breakdown is zero.
    """
    return _price(size, cable_type, length, parallel_count, rates, material)[0]


# -------------------------------------------------------------------
# Per-entry analysis
# -------------------------------------------------------------------
def _target_load(entry: CableScheduleEntry) -> Optional[float]:
    if entry.load_amps and entry.load_amps > 0:
        return entry.load_amps
    if entry.protection_device_rating and entry.protection_device_rating > 0:
        return entry.protection_device_rating
    return None


def _derating(settings: CalculationSettings, parallel_count: int) -> float:
    """Grouping factor for *parallel_count* cables run together."""
    return settings.grouping_factor_for(parallel_count)


def _compliance_report(
    target: float,
    protection: Optional[float],
    row: CableRatingRow,
    method: InstallationMethod,
    derating: float,
    parallel_count: int,
) -> str:
    per_cable = money.precise_multiply(row.rating_for(method), derating)
    total = money.precise_multiply(per_cable, parallel_count)
    load_per_cable = money.precise_divide(target, parallel_count)
    margin = money.precise_percentage(money.precise_subtract(per_cable, load_per_cable), load_per_cable)
    cb = f"{protection:.0f}A" if protection else "N/A"
    return (
        f"Design: {target:.0f}A | CB: {cb} | "
        f"Cable: {money.round_to(total, 0)}A ({money.round_to(per_cable, 0)}A × {parallel_count}) | "
        f"Grouping: {money.round_to(money.precise_multiply(derating, 100), 0)}% | "
        f"Margin: {money.round_to(margin, 0)}%"
    )


def _check_configuration(
    row: CableRatingRow,
    table: Sequence[CableRatingRow],
    entry: CableScheduleEntry,
    target: float,
    material: Material,
    method: InstallationMethod,
    derating: float,
    parallel_count: int,
    settings: CalculationSettings,
) -> Tuple[List[str], Decimal]:
    """Return (failure messages, voltage drop %) for one configuration."""
    request = CalculationRequest(
        load_amps=target,
        voltage=entry.voltage,
        length_m=entry.total_length,
        material=material,
        installation_method=method,
        derating_factor=derating,
        safety_margin=settings.cable_safety_margin,
        max_amps_per_cable=settings.max_amps_per_cable,
        preferred_amps_per_cable=settings.preferred_amps_per_cable,
        voltage_drop_limit=settings.voltage_drop_limit_for(entry.voltage),
        cable_type=entry.cable_type,
    )
    current = money.precise_divide(target, parallel_count)
    pct = voltage_drop_percentage(
        voltage_drop(row, current, entry.voltage, entry.total_length), entry.voltage
    )
    report = validate_cable_calculation(
        row, request, pct, table, parallel_count, settings.voltage_drop_warning_buffer
    )
    failures = [w.message for w in report.errors_for(FIELD_CAPACITY, FIELD_VOLT_DROP)]
    failures.extend(
        w.message
        for w in check_protection_coordination(
            row, method, derating, parallel_count, target, entry.protection_device_rating
        )
        if w.severity == Severity.ERROR
    )
    return failures, pct


def _option(
    row_size: str,
    parallel_count: int,
    cost: CostBreakdown,
    current_total: Decimal,
    pct: Decimal,
    is_current: bool,
    report: Optional[str],
) -> ConfigurationOption:
    savings = money.subtract(current_total, cost.total)
    savings_percent = Decimal("0.00")
    if current_total > 0:
        savings_percent = money.percentage(savings, current_total)
    return ConfigurationOption(
        size=row_size,
        parallel_count=parallel_count,
        cost=cost,
        savings=savings,
        savings_percent=savings_percent,
        volt_drop_percentage=money.round_to(pct),
        is_current_config=is_current,
        compliance_report=report,
    )


def analyze_entry(
    entry: CableScheduleEntry,
    rates: Sequence[CableRate],
    settings: CalculationSettings,
) -> Optional[OptimizationResult]:
    """Optimise a single schedule entry. Returns None when it lacks data."""
    target = _target_load(entry)
    if not entry.voltage or entry.voltage <= 0 or not entry.total_length or entry.total_length <= 0 or target is None:
        logger.debug("Skipping %s: missing voltage, length or load", entry.cable_tag)
        return None

    material = _material_of(entry.cable_type) or settings.default_cable_material
    method = InstallationMethod.parse(entry.installation_method or settings.default_installation_method)
    table = get_cable_table(material)
    cable_type = entry.cable_type or material.value.capitalize()
    current_count = max(int(entry.parallel_total_count or 1), 1)
    current_size = entry.cable_size or ""
    current_idx = index_of(table, current_size) if current_size else None
    notes: List[str] = []

    current_cost, source = _price(current_size, cable_type, entry.total_length, current_count, rates, material)
    if source == RATE_SOURCE_NONE:
        notes.append(f"No rate found for {current_size or 'unspecified size'} {cable_type}; current cost shown as zero.")
    current_total = current_cost.total

    options: List[ConfigurationOption] = []
    current_listed = False
    for n in range(1, settings.max_parallel_cables + 1):
        per_cable = money.precise_divide(target, n)
        if n > 1 and per_cable < money.to_decimal(settings.min_amps_per_cable):
            continue
        if per_cable > money.to_decimal(settings.max_amps_per_cable):
            continue

        derating = _derating(settings, n)
        for i, row in enumerate(table):
            failures, pct = _check_configuration(
                row, table, entry, target, material, method, derating, n, settings
            )
            if failures:
                logger.debug("Rejected %s x%d for %s: %s", row.size, n, entry.cable_tag, "; ".join(failures))
                continue
            is_current = i == current_idx and n == current_count
            cost = current_cost if is_current else _price(row.size, cable_type, entry.total_length, n, rates, material)[0]
            options.append(_option(
                row.size, n, cost, current_total, pct, is_current,
                _compliance_report(target, entry.protection_device_rating, row, method, derating, n),
            ))
            current_listed = current_listed or is_current

    if not current_listed:
        derating = _derating(settings, current_count)
        pct = Decimal("0.00")
        if current_idx is not None:
            row = table[current_idx]
            failures, pct = _check_configuration(
                row, table, entry, target, material, method, derating, current_count, settings
            )
            report = "Non-compliant: " + "; ".join(failures) if failures else _compliance_report(
                target, entry.protection_device_rating, row, method, derating, current_count
            )
        else:
            report = f"Non-compliant: {current_size or 'unspecified size'} is not in the {material.value} reference table"
        options.append(_option(current_size, current_count, current_cost, current_total, pct, True, report))
        notes.append("Current configuration does not meet SANS 10142-1 checks.")

    options.sort(key=lambda o: (o.total_cost, o.parallel_count, float(normalize_size(o.size) or 0)))

    if entry.load_amps and entry.load_amps > 0:
        notes.insert(0, f"Circuit load: {target:.0f}A. Protection: {_fmt_amps(entry.protection_device_rating)}.")
    else:
        notes.insert(0, f"Design based on protection device: {_fmt_amps(target)} (load data unavailable).")

    result = OptimizationResult(
        cable_id=entry.id,
        cable_tag=entry.base_cable_tag or entry.cable_tag,
        from_location=entry.from_location,
        to_location=entry.to_location,
        total_length=entry.total_length,
        current=CurrentConfiguration(
            size=current_size,
            parallel_count=current_count,
            cost=current_cost,
            voltage=entry.voltage,
            load_amps=target,
        ),
        alternatives=options,
        compliance_notes=" ".join(notes),
    )
    logger.info(
        "Optimised %s: %d option(s), best saving %s", result.cable_tag, len(options), result.max_savings
    )
    return result


def _fmt_amps(value: Optional[float]) -> str:
    return f"{value:.0f}A" if value else "N/A"


def analyze_cable_optimizations(
    entries: Iterable[CableScheduleEntry],
    rates: Sequence[CableRate],
    settings: Optional[CalculationSettings] = None,
) -> List[OptimizationResult]:
    """
    Optimise every distinct run in a cable schedule.

    Entries belonging to the same parallel group (or sharing a base tag) are
    analysed once, using the first entry seen.
    """
    settings = settings or CalculationSettings()
    rates = list(rates or [])
    seen = set()
    results: List[OptimizationResult] = []

    for entry in entries:
        key = entry.group_key
        if key in seen:
            continue
        seen.add(key)
        result = analyze_entry(entry, rates, settings)
        if result is not None:
            results.append(result)

    logger.info("Optimization sweep: %d run(s) analysed, %d result(s)", len(seen), len(results))
    return results


def summarize_optimizations(results: Iterable[OptimizationResult]) -> Dict[str, Any]:
    """Project-level totals for an optimization sweep."""
    results = list(results)
    current_total = money.add(r.current.cost.total for r in results)
    savings = money.add(r.max_savings for r in results)
    return {
        "runs": len(results),
        "runs_with_savings": sum(1 for r in results if r.max_savings > 0),
        "total_current_cost": current_total,
        "total_optimized_cost": money.subtract(current_total, savings),
        "total_potential_savings": savings,
        "savings_percent": money.percentage(savings, current_total) if current_total > 0 else Decimal("0.00"),
    }
