from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from cable_engine import money
from cable_engine.errors import InvalidInput
from cable_engine.models import CableRate, CableScheduleEntry, CategoryTotal, OptimizationResult

logger = logging.getLogger(__name__)

# Field -> accepted column headings (case-insensitive)
ENTRY_COLUMNS: Dict[str, List[str]] = {
    "id": ["id", "cable_id"],
    "cable_tag": ["cable_tag", "tag", "Cable Tag"],
    "from_location": ["from_location", "from", "From"],
    "to_location": ["to_location", "to", "To"],
    "voltage": ["voltage", "Voltage (V)", "volts"],
    "load_amps": ["load_amps", "Load (A)", "load"],
    "cable_size": ["cable_size", "size", "Cable Size"],
    "cable_type": ["cable_type", "type", "Cable Type"],
    "total_length": ["total_length", "length", "Length (m)", "length_m"],
    "base_cable_tag": ["base_cable_tag"],
    "parallel_group_id": ["parallel_group_id"],
    "parallel_total_count": ["parallel_total_count", "parallel_count", "Parallel"],
    "grouping_factor": ["grouping_factor"],
    "installation_method": ["installation_method", "installation", "Installation"],
    "protection_device_rating": ["protection_device_rating", "protection", "CB (A)"],
}

RATE_COLUMNS: Dict[str, List[str]] = {
    "cable_size": ["cable_size", "size", "Cable Size"],
    "cable_type": ["cable_type", "type", "Cable Type"],
    "supply_rate_per_meter": ["supply_rate_per_meter", "supply_rate", "Supply Rate"],
    "install_rate_per_meter": ["install_rate_per_meter", "install_rate", "Install Rate"],
    "termination_cost_per_end": ["termination_cost_per_end", "termination_cost", "Termination"],
}

_FLOAT_FIELDS = ("voltage", "load_amps", "total_length", "grouping_factor", "protection_device_rating")


def _smart_find_col(df: pd.DataFrame, candidates: List[str]) -> Optional[str]:
    """Find a column by trying multiple candidate names (case-insensitive)."""
    cols = {str(c).strip().lower(): c for c in df.columns}
    for cand in candidates:
        key = cand.lower()
        if key in cols:
            return cols[key]
    return None


def _records(df: pd.DataFrame, columns: Dict[str, List[str]]) -> List[Dict[str, Any]]:
    """Rows as dicts keyed by field name; missing columns and NaN become None."""
    found = {name: _smart_find_col(df, cands) for name, cands in columns.items()}
    clean = df.astype(object).where(df.notna(), None)

    records = []
    for _, r in clean.iterrows():
        records.append({name: (r[col] if col is not None else None) for name, col in found.items()})
    return records


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(value: Any, field: str, row: int) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"Row {row}: {field} is not a number: {value!r}", field=field) from None


def entries_from_frame(df: pd.DataFrame) -> List[CableScheduleEntry]:
    """Cable-schedule rows from a DataFrame. A cable tag column is required."""
    if _smart_find_col(df, ENTRY_COLUMNS["cable_tag"]) is None:
        raise InvalidInput("Cable schedule has no cable tag column", field="cable_tag")

    entries: List[CableScheduleEntry] = []
    for i, rec in enumerate(_records(df, ENTRY_COLUMNS)):
        tag = _text(rec["cable_tag"])
        if tag is None:
            logger.debug("Skipping schedule row %d without a cable tag", i)
            continue
        numbers = {name: _number(rec[name], name, i) for name in _FLOAT_FIELDS}
        count = _number(rec["parallel_total_count"], "parallel_total_count", i)
        entries.append(CableScheduleEntry(
            id=_text(rec["id"]) or tag,
            cable_tag=tag,
            from_location=_text(rec["from_location"]) or "",
            to_location=_text(rec["to_location"]) or "",
            cable_size=_text(rec["cable_size"]),
            cable_type=_text(rec["cable_type"]),
            base_cable_tag=_text(rec["base_cable_tag"]),
            parallel_group_id=_text(rec["parallel_group_id"]),
            parallel_total_count=int(count) if count is not None else None,
            installation_method=_text(rec["installation_method"]),
            **numbers,
        ))
    return entries


def rates_from_frame(df: pd.DataFrame) -> List[CableRate]:
    """Rate-table rows; rows without a size or supply rate are skipped."""
    rates: List[CableRate] = []
    for i, rec in enumerate(_records(df, RATE_COLUMNS)):
        size = _text(rec["cable_size"])
        if size is None or rec["supply_rate_per_meter"] is None:
            logger.debug("Skipping rate row %d: missing size or supply rate", i)
            continue
        rates.append(CableRate(
            cable_size=size,
            cable_type=_text(rec["cable_type"]) or "",
            supply_rate_per_meter=money.to_decimal(rec["supply_rate_per_meter"]),
            install_rate_per_meter=money.to_decimal(rec["install_rate_per_meter"] or 0),
            termination_cost_per_end=money.to_decimal(rec["termination_cost_per_end"] or 0),
        ))
    return rates


def optimizations_to_frame(results: Iterable[OptimizationResult]) -> pd.DataFrame:
    """One row per (run, option), best options first within each run."""
    rows = []
    for res in results:
        for rank, opt in enumerate(res.alternatives, start=1):
            rows.append({
                "cable_tag": res.cable_tag,
                "from_location": res.from_location,
                "to_location": res.to_location,
                "total_length": res.total_length,
                "rank": rank,
                "size": opt.size,
                "parallel_count": opt.parallel_count,
                "supply_cost": float(opt.cost.supply),
                "install_cost": float(opt.cost.install),
                "termination_cost": float(opt.cost.termination),
                "total_cost": float(opt.cost.total),
                "savings": float(opt.savings),
                "savings_percent": float(opt.savings_percent),
                "volt_drop_percentage": float(opt.volt_drop_percentage),
                "is_current_config": opt.is_current_config,
                "compliance_report": opt.compliance_report,
            })
    return pd.DataFrame(rows, columns=[
        "cable_tag", "from_location", "to_location", "total_length", "rank", "size",
        "parallel_count", "supply_cost", "install_cost", "termination_cost", "total_cost",
        "savings", "savings_percent", "volt_drop_percentage", "is_current_config",
        "compliance_report",
    ])


def category_totals_to_frame(totals: Iterable[CategoryTotal]) -> pd.DataFrame:
    df = pd.DataFrame([t.to_dict() for t in totals], columns=[
        "category_id", "code", "description", "original_budget", "previous_report",
        "anticipated_final", "current_variance", "original_variance", "percentage_of_total",
    ])
    return df
