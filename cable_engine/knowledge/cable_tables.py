"""
Cable Reference Tables.

PVC insulated low-voltage cables, SANS 1507-3 Table 6.2 (copper) and
Table 6.3 (aluminium). Current ratings and volt-drop factors must be
verified against SANS 10142-1 Edition 3 (2020) by a qualified engineer
before a project relies on them.

These are FIXED reference tables shipped with the application. Rows are
ordered by ascending size and are never mutated at runtime.
"""
from __future__ import annotations

import re
from decimal import Decimal
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Tuple

from cable_engine.models import CableRatingRow, InstallationMethod, Material


CableTable = Tuple[CableRatingRow, ...]


def _row(
    size: float,
    ground: float,
    ducts: float,
    air: float,
    impedance: float,
    vd_3ph: float,
    vd_1ph: float,
    dims: Tuple[float, float, float, float, float, float],
    mass: Tuple[float, float],
    supply: str,
    install: str,
) -> CableRatingRow:
    d1_3c, d1_4c, d_3c, d_4c, d2_3c, d2_4c = dims
    return CableRatingRow(
        size=f"{size:g}mm²",
        cross_section_mm2=size,
        rating_ground=ground,
        rating_ducts=ducts,
        rating_air=air,
        impedance=impedance,
        volt_drop_3ph=vd_3ph,
        volt_drop_1ph=vd_1ph,
        d1_3c=d1_3c,
        d1_4c=d1_4c,
        d_3c=d_3c,
        d_4c=d_4c,
        d2_3c=d2_3c,
        d2_4c=d2_4c,
        mass_3c=mass[0],
        mass_4c=mass[1],
        supply_cost=Decimal(supply),
        install_cost=Decimal(install),
    )


# -------------------------------------------------------------------
# Copper (SANS 1507-3 Table 6.2)
# -------------------------------------------------------------------
#        size  ground ducts air   Ω/km     3φ mV/A/m 1φ mV/A/m
COPPER_CABLE_TABLE: CableTable = (
    _row(1.5, 24, 20, 19, 14.48, 25.080, 28.956, (8.51, 9.33, 1.25, 1.25, 14.13, 14.95), (448, 501), "8.5", "15"),
    _row(2.5, 32, 26, 26, 8.87, 15.363, 17.734, (9.61, 10.56, 1.25, 1.25, 15.23, 16.18), (522, 597), "12", "18"),
    _row(4, 42, 34, 35, 5.52, 9.561, 11.034, (11.40, 12.57, 1.25, 1.25, 17.02, 18.39), (667, 762), "18", "22"),
    _row(6, 53, 43, 45, 3.69, 6.391, 7.374, (12.58, 13.90, 1.25, 1.25, 18.40, 19.72), (790, 910), "25", "28"),
    _row(10, 70, 58, 62, 2.19, 3.793, 4.384, (14.59, 16.14, 1.25, 1.25, 20.41, 21.96), (996, 1169), "38", "35"),
    _row(16, 91, 75, 83, 1.38, 2.390, 2.759, (16.55, 19.18, 1.25, 1.60, 22.37, 25.92), (1295, 1768), "52", "42"),
    _row(25, 119, 96, 110, 0.8749, 1.515, 1.749, (19.46, 21.34, 1.60, 1.60, 26.46, 28.34), (1838, 2196), "75", "55"),
    _row(35, 143, 116, 135, 0.6335, 1.097, 1.267, (20.89, 23.97, 1.60, 1.60, 27.89, 31.17), (2215, 2732), "95", "65"),
    _row(50, 169, 138, 163, 0.4718, 0.817, 0.944, (24.26, 28.14, 1.60, 2.00, 31.46, 36.54), (2871, 3893), "125", "78"),
    _row(70, 210, 171, 207, 0.3325, 0.576, 0.665, (27.07, 31.29, 2.00, 2.00, 35.47, 40.09), (3617, 4837), "165", "95"),
    _row(95, 251, 205, 251, 0.2460, 0.427, 0.492, (31.19, 35.82, 2.00, 2.00, 39.99, 44.62), (4901, 6115), "210", "115"),
    _row(120, 285, 234, 290, 0.2012, 0.348, 0.402, (33.38, 38.10, 2.00, 2.00, 42.18, 47.40), (5720, 7269), "255", "135"),
    _row(150, 320, 263, 332, 0.1698, 0.294, 0.339, (36.68, 42.05, 2.00, 2.50, 45.98, 52.65), (6908, 9250), "310", "155"),
    _row(185, 361, 298, 378, 0.1445, 0.250, 0.289, (40.82, 46.75, 2.50, 2.50, 51.12, 57.45), (8690, 11039), "375", "180"),
    _row(240, 416, 344, 445, 0.1220, 0.211, 0.244, (46.43, 53.06, 2.50, 2.50, 57.13, 64.16), (10767, 13726), "475", "215"),
    _row(300, 465, 385, 510, 0.1090, 0.189, 0.218, (51.10, 58.53, 2.50, 2.50, 62.20, 70.13), (12950, 16544), "580", "250"),
)

# -------------------------------------------------------------------
# Aluminium (SANS 1507-3 Table 6.3)
# -------------------------------------------------------------------
ALUMINIUM_CABLE_TABLE: CableTable = (
    _row(25, 90, 73, 80, 1.4446, 2.502, 2.889, (17.76, 20.65, 1.60, 1.60, 24.76, 27.65), (1301, 1554), "45", "55"),
    _row(35, 108, 87, 99, 1.0465, 1.813, 2.093, (19.33, 21.93, 1.60, 1.60, 26.33, 29.13), (1477, 1757), "58", "65"),
    _row(50, 129, 104, 119, 0.7749, 1.342, 1.549, (21.87, 25.05, 1.60, 1.60, 29.07, 32.25), (1782, 2150), "75", "78"),
    _row(70, 158, 130, 151, 0.5388, 0.933, 1.078, (24.76, 29.27, 1.60, 1.60, 31.96, 37.67), (2132, 2930), "98", "95"),
    _row(95, 192, 157, 186, 0.3934, 0.681, 0.787, (28.68, 33.73, 2.00, 2.00, 37.08, 42.53), (2908, 3647), "125", "115"),
    _row(120, 219, 179, 216, 0.3148, 0.545, 0.629, (31.09, 35.44, 2.00, 2.00, 39.89, 44.24), (3328, 4023), "152", "135"),
    _row(150, 245, 201, 250, 0.2607, 0.452, 0.521, (33.99, 39.39, 2.00, 2.50, 42.79, 49.69), (3837, 5276), "185", "155"),
    _row(185, 278, 229, 287, 0.2133, 0.369, 0.427, (37.80, 44.51, 2.00, 2.50, 47.10, 54.81), (4557, 6231), "222", "180"),
    _row(240, 324, 268, 342, 0.1708, 0.296, 0.342, (42.60, 50.04, 2.50, 2.50, 52.90, 61.14), (5977, 7550), "280", "215"),
)

CABLE_TABLES: Mapping[Material, CableTable] = MappingProxyType({
    Material.COPPER: COPPER_CABLE_TABLE,
    Material.ALUMINIUM: ALUMINIUM_CABLE_TABLE,
})


# -------------------------------------------------------------------
# Lookups
# -------------------------------------------------------------------
def get_cable_table(material) -> CableTable:
    """Ordered rows for a material (Material member or schedule text)."""
    return CABLE_TABLES[Material.parse(material)]


def normalize_size(size) -> str:
    """Reduce "95mm²", "95 mm2", "95" and 95.0 to the same key."""
    m = re.search(r"\d+(?:\.\d+)?", str(size or ""))
    if not m:
        return ""
    return f"{float(m.group(0)):g}"


def index_of(table: Sequence[CableRatingRow], size) -> Optional[int]:
    key = normalize_size(size)
    for i, row in enumerate(table):
        if normalize_size(row.size) == key:
            return i
    return None


def find_cable(material, size) -> Optional[CableRatingRow]:
    table = get_cable_table(material)
    idx = index_of(table, size)
    return table[idx] if idx is not None else None


def table_sizes(material) -> List[str]:
    return [row.size for row in get_cable_table(material)]


def check_table_integrity(table: Sequence[CableRatingRow]) -> List[Tuple[int, str]]:
    """
    Return (row index, message) for every monotonicity violation.

    Ratings must strictly increase with size for every installation method and
    impedance must strictly decrease. The index reported is the larger row of
    the offending pair.
    """
    violations: List[Tuple[int, str]] = []
    for i in range(1, len(table)):
        smaller, larger = table[i - 1], table[i]
        for method in InstallationMethod:
            if larger.rating_for(method) <= smaller.rating_for(method):
                violations.append((
                    i,
                    f"{larger.size} {method.value} rating {larger.rating_for(method):g}A "
                    f"is not above {smaller.size} ({smaller.rating_for(method):g}A)",
                ))
        if larger.impedance >= smaller.impedance:
            violations.append((
                i,
                f"{larger.size} impedance {larger.impedance:g}Ω/km "
                f"is not below {smaller.size} ({smaller.impedance:g}Ω/km)",
            ))
    return violations
