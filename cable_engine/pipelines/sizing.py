"""
Cable Sizing Selector.

Selects the smallest compliant cable (and, for heavy loads, the smallest
parallel-cable count) for a CalculationRequest:

    1. effective load = load x safety margin
    2. single cable when the effective load is within max amps per cable,
       otherwise the minimum parallel count under the preferred amps
    3. first row (ascending) whose rating for the installation method,
       derated, carries the per-cable load
    4. upsize, keeping the parallel count, until the voltage drop is within
       the limit or the table is exhausted
    5. price supply, install and terminations through the decimal core
    6. attach validator warnings

The escalation loops are bounded by the table length and the parallel-count
ceiling from the standards table.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from typing import List, Optional, Sequence, Tuple

from cable_engine import money
from cable_engine.checks.validation import validate_cable_calculation
from cable_engine.errors import InvalidInput
from cable_engine.knowledge.cable_tables import get_cable_table
from cable_engine.knowledge.sans_10142 import (
    PARALLEL_RUNS,
    default_voltage_drop_limit,
    is_three_phase,
)
from cable_engine.models import (
    CableAlternative,
    CableRatingRow,
    CalculationRequest,
    CalculationResult,
    CostBreakdown,
    InstallationMethod,
    Severity,
    ValidationWarning,
)

logger = logging.getLogger(__name__)


@dataclass
class _Candidate:
    index: int
    parallel_count: int
    current_per_cable: Decimal
    volt_drop_ok: bool


# -------------------------------------------------------------------
# Building blocks
# -------------------------------------------------------------------
def check_request(request: CalculationRequest) -> None:
    """Raise InvalidInput for requests that cannot be sized at all."""
    if request.load_amps is None or request.load_amps <= 0:
        raise InvalidInput("Load current must be greater than 0A", field="load_amps")
    if request.voltage is None or request.voltage <= 0:
        raise InvalidInput("System voltage must be greater than 0V", field="voltage")
    if request.derating_factor is None or request.derating_factor <= 0:
        raise InvalidInput("Derating factor must be greater than 0", field="derating_factor")
    if request.safety_margin is not None and request.safety_margin <= 0:
        raise InvalidInput("Safety margin must be greater than 0", field="safety_margin")
    if request.max_amps_per_cable <= 0:
        raise InvalidInput("Maximum amps per cable must be greater than 0", field="max_amps_per_cable")
    if request.preferred_amps_per_cable <= 0:
        raise InvalidInput("Preferred amps per cable must be greater than 0", field="preferred_amps_per_cable")
    if request.length_m is not None and request.length_m < 0:
        raise InvalidInput("Cable length cannot be negative", field="length_m")


def voltage_drop(row: CableRatingRow, current, voltage, length) -> Decimal:
    """Volts lost along *length* metres: mV/A/m x A x m / 1000 (full precision)."""
    if not length:
        return Decimal("0")
    factor = row.volt_drop_factor(is_three_phase(voltage))
    return money.precise_divide(money.precise_multiply(factor, current, length), 1000)


def voltage_drop_percentage(drop, voltage) -> Decimal:
    return money.precise_percentage(drop, voltage)


def select_by_capacity(
    table: Sequence[CableRatingRow],
    required_amps,
    installation_method: InstallationMethod,
) -> Optional[int]:
    """Index of the first row whose rating meets *required_amps*, or None."""
    required = money.to_decimal(required_amps)
    for i, row in enumerate(table):
        if money.to_decimal(row.rating_for(installation_method)) >= required:
            return i
    return None


def escalate_for_voltage_drop(
    table: Sequence[CableRatingRow],
    start_index: int,
    current,
    voltage,
    length,
    limit,
) -> Tuple[int, bool]:
    """
    Walk up the table from *start_index* until the drop is within *limit*.

    Returns (index, compliant). When the table is exhausted the last row is
    returned with compliant=False.
    """
    limit = money.to_decimal(limit)
    for i in range(start_index, len(table)):
        pct = voltage_drop_percentage(voltage_drop(table[i], current, voltage, length), voltage)
        logger.debug("Volt drop check %s: %s%% (limit %s%%)", table[i].size, money.round_to(pct), limit)
        if pct <= limit:
            return i, True
    logger.warning(
        "No cable in the table keeps voltage drop within %s%% (%sA, %sV, %sm)",
        limit, money.round_to(current), voltage, length,
    )
    return len(table) - 1, False


def minimum_parallel_count(load_amps, preferred_amps_per_cable, max_amps_per_cable=None) -> int:
    """Smallest n with load / n <= preferred (and <= max, when given)."""
    n = money.precise_divide(load_amps, preferred_amps_per_cable).to_integral_value(rounding=ROUND_CEILING)
    if max_amps_per_cable:
        by_max = money.precise_divide(load_amps, max_amps_per_cable).to_integral_value(rounding=ROUND_CEILING)
        n = max(n, by_max)
    return max(int(n), 1)


def price_configuration(
    row: CableRatingRow,
    length,
    parallel_count: int,
    termination_cost_per_end=None,
) -> CostBreakdown:
    """Supply and install per metre x length x cables, plus two ends per cable."""
    length = length or 0
    supply = money.round_to(money.precise_multiply(row.supply_cost, length, parallel_count))
    install = money.round_to(money.precise_multiply(row.install_cost, length, parallel_count))
    termination = Decimal("0.00")
    if termination_cost_per_end is not None:
        termination = money.round_to(money.precise_multiply(termination_cost_per_end, 2, parallel_count))
    return CostBreakdown(
        supply=supply,
        install=install,
        termination=termination,
        total=money.add([supply, install, termination]),
    )


# -------------------------------------------------------------------
# Selection
# -------------------------------------------------------------------
def _size_for(
    table: Sequence[CableRatingRow],
    request: CalculationRequest,
    effective_load: Decimal,
    parallel_count: int,
    limit: Decimal,
) -> Optional[_Candidate]:
    per_cable = money.precise_divide(effective_load, parallel_count)
    required = money.precise_divide(per_cable, request.derating_factor)
    idx = select_by_capacity(table, required, request.installation_method)
    if idx is None:
        logger.debug("No %s cable carries %sA per cable", request.material.value, money.round_to(required))
        return None

    current = money.precise_divide(request.load_amps, parallel_count)
    logger.debug(
        "Capacity selection x%d: required %sA -> %s", parallel_count, money.round_to(required), table[idx].size
    )
    if not request.length_m:
        return _Candidate(idx, parallel_count, current, True)

    idx, ok = escalate_for_voltage_drop(table, idx, current, request.voltage, request.length_m, limit)
    return _Candidate(idx, parallel_count, current, ok)


def _parallel_selection(
    table: Sequence[CableRatingRow],
    request: CalculationRequest,
    effective_load: Decimal,
    limit: Decimal,
    first_count: int,
) -> Tuple[Optional[_Candidate], Optional[_Candidate], List[_Candidate]]:
    """
    Returns (recommended, fallback, viable).

    The recommendation is the smallest compliant parallel count. Viable
    configurations up to two counts beyond it are kept as alternatives.
    *fallback* is the smallest count with enough capacity but an
    unresolvable voltage drop.
    """
    ceiling = max(PARALLEL_RUNS["max_parallel_cables_sizing"], first_count)
    recommended: Optional[_Candidate] = None
    fallback: Optional[_Candidate] = None
    viable: List[_Candidate] = []
    alt_ceiling = min(first_count + 2, ceiling)

    for n in range(first_count, ceiling + 1):
        if recommended is not None and n > alt_ceiling:
            break
        cand = _size_for(table, request, effective_load, n, limit)
        if cand is None:
            continue
        if not cand.volt_drop_ok:
            fallback = fallback or cand
            continue
        viable.append(cand)
        if recommended is None:
            recommended = cand
            alt_ceiling = max(alt_ceiling, min(n + 2, ceiling))

    return recommended, fallback, viable


def _alternatives(
    table: Sequence[CableRatingRow],
    request: CalculationRequest,
    viable: List[_Candidate],
    recommended: _Candidate,
) -> List[CableAlternative]:
    alternatives: List[CableAlternative] = []
    for cand in viable:
        row = table[cand.index]
        cost = price_configuration(row, request.length_m, cand.parallel_count, request.termination_cost_per_end)
        drop = voltage_drop(row, cand.current_per_cable, request.voltage, request.length_m)
        alternatives.append(CableAlternative(
            size=row.size,
            parallel_count=cand.parallel_count,
            load_per_cable=money.round_to(cand.current_per_cable),
            volt_drop_percentage=money.round_to(voltage_drop_percentage(drop, request.voltage)),
            supply_cost=cost.supply,
            install_cost=cost.install,
            termination_cost=cost.termination,
            total_cost=cost.total,
            is_recommended=cand is recommended,
        ))

    if alternatives:
        most_expensive = max(a.total_cost for a in alternatives)
        for alt in alternatives:
            alt.savings = money.subtract(most_expensive, alt.total_cost)
    alternatives.sort(key=lambda a: (a.total_cost, a.parallel_count))
    return alternatives


def calculate_cable_size(
    request: CalculationRequest,
    table: Optional[Sequence[CableRatingRow]] = None,
) -> CalculationResult:
    """
    Size a cable run.

    Args:
        request: load, voltage, length and selection options
        table: rating rows to select from (defaults to the material's table)

    Returns:
        CalculationResult. A result that could not satisfy capacity or
        voltage drop carries ``requires_engineer_verification`` and an
        error-severity warning; it is never silently non-compliant.

    Raises:
        InvalidInput: for structurally invalid requests.
    """
    check_request(request)
    table = tuple(table) if table is not None else get_cable_table(request.material)
    if not table:
        raise InvalidInput("Cable table is empty", field="material")

    limit = money.to_decimal(
        request.voltage_drop_limit
        if request.voltage_drop_limit is not None
        else default_voltage_drop_limit(request.voltage)
    )
    effective_load = money.precise_multiply(request.load_amps, request.effective_margin)
    warnings: List[ValidationWarning] = []
    viable: List[_Candidate] = []
    capacity_exhausted = False

    logger.info(
        "Sizing %s cable: load %sA (effective %sA), %sV, %sm, %s",
        request.material.value, request.load_amps, money.round_to(effective_load),
        request.voltage, request.length_m, request.installation_method.value,
    )

    first_count: Optional[int] = None
    chosen: Optional[_Candidate] = None
    fallback: Optional[_Candidate] = None
    split_for_capacity = False

    if effective_load <= money.to_decimal(request.max_amps_per_cable):
        chosen = _size_for(table, request, effective_load, 1, limit)
        if chosen is None:
            split_for_capacity = True
            first_count = 2
    else:
        first_count = minimum_parallel_count(
            effective_load, request.preferred_amps_per_cable, request.max_amps_per_cable
        )

    if first_count is not None:
        chosen, fallback, viable = _parallel_selection(table, request, effective_load, limit, first_count)
        if chosen is not None and split_for_capacity:
            warnings.append(ValidationWarning(
                Severity.INFO,
                f"No single {request.material.value} cable carries {money.round_to(effective_load)}A; "
                f"split into {chosen.parallel_count} parallel cables",
                "cable_size",
            ))
        if chosen is None:
            chosen = fallback

    if chosen is None:
        capacity_exhausted = True
        n = first_count or 1
        chosen = _Candidate(len(table) - 1, n, money.precise_divide(request.load_amps, n), False)
        warnings.append(ValidationWarning(
            Severity.ERROR,
            f"Cable capacity insufficient: even {table[-1].size} x{n} cannot carry "
            f"{money.round_to(effective_load)}A. Consider more parallel cables or another material.",
            "cable_size",
        ))
        logger.warning("Capacity exhausted for %sA; returning %s x%d", effective_load, table[-1].size, n)

    row = table[chosen.index]
    n = chosen.parallel_count
    # one cable carries the load without splitting
    capacity_sufficient = n == 1 and not capacity_exhausted
    drop = voltage_drop(row, chosen.current_per_cable, request.voltage, request.length_m)
    pct = voltage_drop_percentage(drop, request.voltage)
    cost = price_configuration(row, request.length_m, n, request.termination_cost_per_end)

    report = validate_cable_calculation(row, request, pct, table, n)
    warnings.extend(report.warnings)
    requires_verification = report.requires_verification or any(
        w.severity == Severity.ERROR for w in warnings
    )

    alternatives: List[CableAlternative] = []
    cost_savings = Decimal("0.00")
    if viable:
        alternatives = _alternatives(table, request, viable, chosen)
        recommended = next((a for a in alternatives if a.is_recommended), None)
        if recommended is not None:
            cost_savings = recommended.savings

    logger.info(
        "Selected %s x%d: VD %s%%, total cost %s%s",
        row.size, n, money.round_to(pct), cost.total,
        " (requires engineer verification)" if requires_verification else "",
    )

    return CalculationResult(
        recommended_size=row.size,
        parallel_count=n,
        ohm_per_km=row.impedance,
        effective_impedance=money.round_to(money.precise_divide(row.impedance, n), 4),
        volt_drop=money.round_to(drop),
        volt_drop_percentage=money.round_to(pct),
        supply_cost=cost.supply,
        install_cost=cost.install,
        termination_cost=cost.termination,
        total_cost=cost.total,
        load_per_cable=money.round_to(chosen.current_per_cable),
        voltage_drop_limit=limit,
        capacity_sufficient=capacity_sufficient,
        requires_engineer_verification=requires_verification,
        warnings=warnings,
        alternatives=alternatives,
        cost_savings=cost_savings,
    )
