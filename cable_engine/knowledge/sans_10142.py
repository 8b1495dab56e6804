"""
SANS 10142-1 Standards Table.

Regulatory figures used by the sizing, validation and optimization
pipelines. They are data, not logic: projects override them through
CalculationSettings and requests, and nothing in the pipelines hard-codes
these numbers.

References:
    - SANS 10142-1:2020 Wiring of premises, Part 1: Low-voltage installations
    - SANS 1507-3 PVC insulated electric cables
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


SANS_10142_REQUIREMENTS: Dict[str, Any] = {
    "source": "SANS 10142-1:2020",
    "title": "The wiring of premises - Low-voltage installations",

    "voltage_drop": {
        # Systems at or above this voltage use the 3-phase volt-drop factor
        "three_phase_threshold_v": 380.0,
        "limit_percent_three_phase": 5.0,
        "limit_percent_single_phase": 3.0,
        # Percentage points below the limit that earn an advisory note
        "warning_buffer_percent": 0.5,
    },

    "grouping_factors": {
        1: 1.0,
        2: 0.80,
        3: 0.70,
        4: 0.65,  # 4 or more circuits
    },

    "protection": {
        # I2 = 1.45 x In for circuit breakers
        "tripping_factor": 1.45,
        # A device rated above 3x the design load is treated as upstream
        "local_protection_ratio": 3.0,
    },

    # (device rating above which the size applies, minimum mm²), descending
    "minimum_size_by_protection": (
        (800, 185.0),
        (630, 150.0),
        (500, 120.0),
        (400, 95.0),
        (315, 70.0),
        (250, 50.0),
        (200, 35.0),
        (160, 25.0),
        (125, 16.0),
        (100, 10.0),
        (63, 6.0),
        (32, 4.0),
        (20, 2.5),
    ),
    "minimum_size_default_mm2": 1.5,

    "parallel_runs": {
        "max_amps_per_cable": 400.0,
        "preferred_amps_per_cable": 300.0,
        # Ceiling for the sizing escalation over parallel counts
        "max_parallel_cables_sizing": 8,
        # Ceiling for the optimizer's configuration grid
        "max_parallel_cables_optimizer": 6,
        "min_practical_amps_per_cable": 50.0,
    },

    "cable_safety_margin": 1.15,

    # Values outside these ranges are plausible typos, not hard errors
    "plausible_ranges": {
        "load_amps_max": 5000.0,
        "voltage_max": 1000.0,
        "length_m_max": 2000.0,
    },
}

VOLTAGE_DROP = SANS_10142_REQUIREMENTS["voltage_drop"]
PARALLEL_RUNS = SANS_10142_REQUIREMENTS["parallel_runs"]
PROTECTION = SANS_10142_REQUIREMENTS["protection"]
PLAUSIBLE_RANGES = SANS_10142_REQUIREMENTS["plausible_ranges"]


def is_three_phase(voltage: float) -> bool:
    return voltage >= VOLTAGE_DROP["three_phase_threshold_v"]


def default_voltage_drop_limit(voltage: float) -> float:
    """Voltage-drop limit (%) for the voltage class."""
    if is_three_phase(voltage):
        return VOLTAGE_DROP["limit_percent_three_phase"]
    return VOLTAGE_DROP["limit_percent_single_phase"]


def grouping_factor(parallel_count: int, factors: Optional[Mapping[int, float]] = None) -> float:
    """Derating for *parallel_count* circuits grouped together."""
    factors = factors or SANS_10142_REQUIREMENTS["grouping_factors"]
    if parallel_count <= 1:
        return factors[1]
    capped = min(parallel_count, max(factors))
    return factors[capped]


def minimum_size_for_protection(device_rating: Optional[float]) -> float:
    """Smallest permissible cross-section (mm²) behind a protective device."""
    if not device_rating:
        return SANS_10142_REQUIREMENTS["minimum_size_default_mm2"]
    for threshold, size in SANS_10142_REQUIREMENTS["minimum_size_by_protection"]:
        if device_rating > threshold:
            return size
    return SANS_10142_REQUIREMENTS["minimum_size_default_mm2"]
