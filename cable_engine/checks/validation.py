"""
Engineering validation of a cable choice.

The validator is independent of the selector: it accepts any configuration,
including a manually overridden cable size, and reports problems as
ValidationWarning entries. It never changes the calculation it inspects.

Functions:
    - validate_request: input sanity only
    - validate_cable_calculation: full check of a candidate configuration
    - validate_user_override: look up a size and validate it
    - check_protection_coordination: In <= Iz and minimum size behind a device
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from cable_engine import money
from cable_engine.knowledge.cable_tables import (
    check_table_integrity,
    get_cable_table,
    index_of,
    normalize_size,
)
from cable_engine.knowledge.sans_10142 import (
    PLAUSIBLE_RANGES,
    PROTECTION,
    VOLTAGE_DROP,
    default_voltage_drop_limit,
    is_three_phase,
    minimum_size_for_protection,
)
from cable_engine.models import (
    CableRatingRow,
    CalculationRequest,
    InstallationMethod,
    Severity,
    ValidationReport,
    ValidationWarning,
)

logger = logging.getLogger(__name__)

# Largest disagreement tolerated between a supplied and a recomputed drop (%)
VOLT_DROP_MISMATCH_TOLERANCE = Decimal("0.01")

# Field identifiers attached to warnings
FIELD_LOAD = "load_amps"
FIELD_VOLTAGE = "voltage"
FIELD_LENGTH = "length_m"
FIELD_DERATING = "derating_factor"
FIELD_MARGIN = "safety_margin"
FIELD_CAPACITY = "cable_size"
FIELD_IMPEDANCE = "impedance"
FIELD_VOLT_DROP = "voltage_drop"
FIELD_PROTECTION = "protection_device_rating"


# -------------------------------------------------------------------
# Input sanity
# -------------------------------------------------------------------
def _input_warnings(request: CalculationRequest) -> List[ValidationWarning]:
    warnings: List[ValidationWarning] = []

    if request.load_amps is None or request.load_amps <= 0:
        warnings.append(ValidationWarning(Severity.ERROR, "Load current must be greater than 0A", FIELD_LOAD))
    elif request.load_amps > PLAUSIBLE_RANGES["load_amps_max"]:
        warnings.append(ValidationWarning(
            Severity.WARNING,
            f"Load of {request.load_amps:g}A is unusually high for a low-voltage run; check the units",
            FIELD_LOAD,
        ))

    if request.voltage is None or request.voltage <= 0:
        warnings.append(ValidationWarning(Severity.ERROR, "System voltage must be greater than 0V", FIELD_VOLTAGE))
    elif request.voltage > PLAUSIBLE_RANGES["voltage_max"]:
        warnings.append(ValidationWarning(
            Severity.WARNING,
            f"{request.voltage:g}V is outside the low-voltage range these tables cover",
            FIELD_VOLTAGE,
        ))

    if request.length_m is None:
        warnings.append(ValidationWarning(
            Severity.INFO, "No cable length supplied; voltage drop was not assessed", FIELD_LENGTH,
        ))
    elif request.length_m <= 0:
        warnings.append(ValidationWarning(Severity.ERROR, "Cable length must be greater than 0m", FIELD_LENGTH))
    elif request.length_m > PLAUSIBLE_RANGES["length_m_max"]:
        warnings.append(ValidationWarning(
            Severity.WARNING,
            f"Run length of {request.length_m:g}m is unusually long; check the units",
            FIELD_LENGTH,
        ))

    if request.derating_factor is None or request.derating_factor <= 0:
        warnings.append(ValidationWarning(Severity.ERROR, "Derating factor must be greater than 0", FIELD_DERATING))
    elif request.derating_factor > 1:
        warnings.append(ValidationWarning(
            Severity.WARNING,
            f"Derating factor {request.derating_factor:g} increases cable capacity; factors are normally <= 1",
            FIELD_DERATING,
        ))

    if request.safety_margin is not None and request.safety_margin < 1:
        warnings.append(ValidationWarning(
            Severity.WARNING,
            f"Safety margin {request.safety_margin:g} reduces the design load",
            FIELD_MARGIN,
        ))

    return warnings


def validate_request(request: CalculationRequest) -> ValidationReport:
    """Input checks only; errors here mean the request cannot be trusted."""
    warnings = _input_warnings(request)
    return ValidationReport(
        warnings=warnings,
        requires_verification=any(w.severity == Severity.ERROR for w in warnings),
    )


# -------------------------------------------------------------------
# Individual checks
# -------------------------------------------------------------------
def _capacity_warnings(
    cable: CableRatingRow,
    request: CalculationRequest,
    parallel_count: int,
) -> List[ValidationWarning]:
    if not request.load_amps or request.load_amps <= 0 or not request.derating_factor or request.derating_factor <= 0:
        return []

    rating = cable.rating_for(request.installation_method)
    derated = money.precise_multiply(rating, request.derating_factor)
    required = money.precise_divide(
        money.precise_multiply(request.load_amps, request.effective_margin), parallel_count
    )
    if derated >= required:
        return []

    method = InstallationMethod.parse(request.installation_method).value
    return [ValidationWarning(
        Severity.ERROR,
        f"Cable capacity insufficient: {cable.size} is rated {money.round_to(derated)}A "
        f"({method}, derating {request.derating_factor:g}) but each of {parallel_count} "
        f"cable(s) must carry {money.round_to(required)}A",
        FIELD_CAPACITY,
    )]


def _plausibility_warnings(
    cable: CableRatingRow,
    table: Sequence[CableRatingRow],
) -> List[ValidationWarning]:
    idx = index_of(table, cable.size)
    if idx is None:
        return [ValidationWarning(
            Severity.WARNING,
            f"{cable.size} is not in the reference table; ratings cannot be cross-checked",
            FIELD_IMPEDANCE,
        )]

    warnings: List[ValidationWarning] = []
    reference = table[idx]
    if reference.impedance != cable.impedance:
        warnings.append(ValidationWarning(
            Severity.WARNING,
            f"{cable.size} impedance {cable.impedance:g}Ω/km differs from the reference "
            f"value {reference.impedance:g}Ω/km",
            FIELD_IMPEDANCE,
        ))

    # Violations are reported on the larger row of a pair; the candidate is
    # involved when it is that row or the one after it.
    for row_index, message in check_table_integrity(table):
        if row_index in (idx, idx + 1):
            warnings.append(ValidationWarning(
                Severity.WARNING,
                f"Reference data inconsistency: {message}",
                FIELD_IMPEDANCE,
            ))
    return warnings


def _volt_drop_warnings(
    cable: CableRatingRow,
    request: CalculationRequest,
    volt_drop_percentage,
    parallel_count: int,
    warning_buffer: Optional[float] = None,
) -> List[ValidationWarning]:
    if request.length_m is None or request.length_m <= 0:
        return []
    if not request.voltage or request.voltage <= 0 or not request.load_amps or request.load_amps <= 0:
        return []

    warnings: List[ValidationWarning] = []
    current = money.precise_divide(request.load_amps, parallel_count)
    factor = cable.volt_drop_factor(is_three_phase(request.voltage))
    drop = money.precise_divide(money.precise_multiply(factor, current, request.length_m), 1000)
    recomputed = money.precise_percentage(drop, request.voltage)

    if volt_drop_percentage is not None:
        supplied = money.to_decimal(volt_drop_percentage)
        if abs(money.precise_subtract(supplied, recomputed)) > VOLT_DROP_MISMATCH_TOLERANCE:
            warnings.append(ValidationWarning(
                Severity.WARNING,
                f"Supplied voltage drop {money.round_to(supplied)}% does not match "
                f"the recomputed {money.round_to(recomputed)}%",
                FIELD_VOLT_DROP,
            ))

    limit = money.to_decimal(
        request.voltage_drop_limit
        if request.voltage_drop_limit is not None
        else default_voltage_drop_limit(request.voltage)
    )
    buffer = money.to_decimal(
        warning_buffer if warning_buffer is not None else VOLTAGE_DROP["warning_buffer_percent"]
    )

    if recomputed > limit:
        warnings.append(ValidationWarning(
            Severity.ERROR,
            f"Voltage drop {money.round_to(recomputed)}% exceeds the {limit}% limit "
            f"for {request.voltage:g}V",
            FIELD_VOLT_DROP,
        ))
    elif recomputed >= limit - buffer:
        warnings.append(ValidationWarning(
            Severity.INFO,
            f"Voltage drop {money.round_to(recomputed)}% is within {buffer}% of the {limit}% limit",
            FIELD_VOLT_DROP,
        ))
    return warnings


# -------------------------------------------------------------------
# Public entry points
# -------------------------------------------------------------------
def validate_cable_calculation(
    cable: CableRatingRow,
    request: CalculationRequest,
    volt_drop_percentage=None,
    table: Optional[Sequence[CableRatingRow]] = None,
    parallel_count: int = 1,
    warning_buffer: Optional[float] = None,
) -> ValidationReport:
    """
    Validate a candidate cable against the request it is meant to serve.

    Args:
        cable: the selected (or user-entered) cable row
        request: the original request parameters
        volt_drop_percentage: the drop reported alongside the choice, if any
        table: reference table for plausibility checks (defaults to the
            request material's table)
        parallel_count: number of cables sharing the load
        warning_buffer: percentage points below the limit that earn an
            info note (defaults to the standards table)

    Returns:
        ValidationReport; ``requires_verification`` is set whenever an error
        is present or the reference data looks wrong.
    """
    if parallel_count < 1:
        parallel_count = 1
    table = table if table is not None else get_cable_table(request.material)

    input_warnings = _input_warnings(request)
    capacity = _capacity_warnings(cable, request, parallel_count)
    plausibility = _plausibility_warnings(cable, table)
    volt_drop = _volt_drop_warnings(cable, request, volt_drop_percentage, parallel_count, warning_buffer)

    warnings = input_warnings + capacity + plausibility + volt_drop
    requires_verification = bool(plausibility) or any(w.severity == Severity.ERROR for w in warnings)

    if requires_verification:
        logger.info(
            "Validation of %s x%d flagged %d issue(s) requiring verification",
            cable.size, parallel_count, len(warnings),
        )
    return ValidationReport(warnings=warnings, requires_verification=requires_verification)


def validate_user_override(
    size: str,
    request: CalculationRequest,
    parallel_count: int = 1,
    table: Optional[Sequence[CableRatingRow]] = None,
) -> ValidationReport:
    """Validate a manually chosen size for a request."""
    table = table if table is not None else get_cable_table(request.material)
    idx = index_of(table, size)
    if idx is None:
        return ValidationReport(
            warnings=[ValidationWarning(
                Severity.ERROR,
                f"Cable size {size!r} is not available for {request.material.value}",
                FIELD_CAPACITY,
            )],
            requires_verification=True,
        )
    return validate_cable_calculation(table[idx], request, None, table, parallel_count)


def check_protection_coordination(
    cable: CableRatingRow,
    installation_method,
    derating_factor: float,
    parallel_count: int,
    design_current: float,
    protection_rating: Optional[float],
) -> List[ValidationWarning]:
    """
    Protective-device coordination for a cable group.

    In <= Iz is only enforced for local protection; a device rated well
    above the design current is taken to be an upstream main breaker. For
    circuit breakers I2 = 1.45 In, so I2 <= 1.45 Iz reduces to In <= Iz.
    The minimum cross-section behind the device always applies.
    """
    warnings: List[ValidationWarning] = []
    if not protection_rating:
        return warnings

    total_iz = money.precise_multiply(
        cable.rating_for(installation_method), derating_factor, parallel_count
    )
    is_local = protection_rating <= design_current * PROTECTION["local_protection_ratio"]
    if is_local and money.to_decimal(protection_rating) > total_iz:
        warnings.append(ValidationWarning(
            Severity.ERROR,
            f"Protection {protection_rating:g}A exceeds cable capacity "
            f"{money.round_to(total_iz)}A (In <= Iz)",
            FIELD_PROTECTION,
        ))

    min_size = minimum_size_for_protection(protection_rating)
    if float(normalize_size(cable.size) or 0) < min_size:
        warnings.append(ValidationWarning(
            Severity.ERROR,
            f"{cable.size} is below the {min_size:g}mm² minimum for a {protection_rating:g}A device",
            FIELD_PROTECTION,
        ))
    return warnings
