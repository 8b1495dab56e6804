"""
Cable Engine Pipelines Package.
"""
from cable_engine.pipelines.sizing import (
    calculate_cable_size,
    voltage_drop,
    voltage_drop_percentage,
    price_configuration,
)

from cable_engine.pipelines.optimizer import (
    analyze_cable_optimizations,
    analyze_entry,
    calculate_cost_breakdown,
    summarize_optimizations,
)

from cable_engine.pipelines.cost_report import (
    calculate_category_totals,
    calculate_grand_totals,
    compare_totals,
    validate_totals,
)

__all__ = [
    # Sizing
    "calculate_cable_size",
    "voltage_drop",
    "voltage_drop_percentage",
    "price_configuration",
    # Optimization
    "analyze_cable_optimizations",
    "analyze_entry",
    "calculate_cost_breakdown",
    "summarize_optimizations",
    # Cost reports
    "calculate_category_totals",
    "calculate_grand_totals",
    "compare_totals",
    "validate_totals",
]
