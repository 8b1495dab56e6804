"""
Cost-report aggregation.

Rolls priced line items and variation orders up into category and grand
totals. Every figure goes through the decimal core so a total shown on
screen and the same total rendered into an exported document agree to the
cent.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from cable_engine import money
from cable_engine.errors import InvalidInput
from cable_engine.models import (
    CategoryTotal,
    GrandTotals,
    TotalsComparison,
)

logger = logging.getLogger(__name__)

TOTAL_FIELDS = (
    "original_budget",
    "previous_report",
    "anticipated_final",
    "current_variance",
    "original_variance",
)

VARIATION_CATEGORY_CODES = ("VO", "VAR", "VARIATIONS")
VARIATION_CATEGORY_CODE = "VO"
VARIATION_CATEGORY_DESCRIPTION = "Variation Orders"


def _variation_amount(variation: Any) -> Decimal:
    """Signed amount as recorded; a credit always reduces the anticipated final figure."""
    amount = money.to_decimal(money.field_value(variation, "amount") or 0)
    if money.field_value(variation, "is_credit"):
        return -abs(amount)
    return amount


def _is_variation_category(category: Any) -> bool:
    code = str(money.field_value(category, "code") or "").strip().upper()
    description = str(money.field_value(category, "description") or "").lower()
    return code in VARIATION_CATEGORY_CODES or "variation" in description


def _category_total(
    category_id: Optional[str],
    code: str,
    description: str,
    items: List[Any],
    variation_amounts: List[Decimal],
) -> CategoryTotal:
    original = money.sum_field(items, "original_budget")
    previous = money.sum_field(items, "previous_report")
    anticipated = money.add([money.sum_field(items, "anticipated_final")] + variation_amounts)
    return CategoryTotal(
        category_id=category_id,
        code=code,
        description=description,
        original_budget=original,
        previous_report=previous,
        anticipated_final=anticipated,
        current_variance=money.variance(anticipated, previous),
        original_variance=money.variance(anticipated, original),
    )


def calculate_category_totals(
    categories: Iterable[Any],
    line_items: Iterable[Any],
    variations: Iterable[Any] = (),
) -> List[CategoryTotal]:
    """
    Per-category totals, in category order.

    Variations add nothing to original budget or previous report and their
    signed amount to anticipated final. A variation without a known
    category goes to the project's variations category, or to a synthetic
    "VO" total appended at the end when the project has none.
    """
    categories = list(categories)
    line_items = list(line_items)
    ids = [money.field_value(c, "id") for c in categories]
    duplicates = sorted({str(cid) for cid in ids if ids.count(cid) > 1})
    if duplicates:
        raise InvalidInput(f"Duplicate category id(s): {', '.join(duplicates)}", field="category_id")

    items_by_category: Dict[Any, List[Any]] = {cid: [] for cid in ids}
    for item in line_items:
        cid = money.field_value(item, "category_id")
        if cid not in items_by_category:
            logger.warning("Line item %r references unknown category %r", money.field_value(item, "code"), cid)
            continue
        items_by_category[cid].append(item)

    variation_home = next((money.field_value(c, "id") for c in categories if _is_variation_category(c)), None)
    variations_by_category: Dict[Any, List[Decimal]] = {cid: [] for cid in ids}
    unattributed: List[Decimal] = []
    for variation in variations:
        amount = _variation_amount(variation)
        cid = money.field_value(variation, "category_id")
        if cid in variations_by_category:
            variations_by_category[cid].append(amount)
        elif variation_home is not None:
            variations_by_category[variation_home].append(amount)
        else:
            unattributed.append(amount)

    totals = [
        _category_total(
            money.field_value(c, "id"),
            money.field_value(c, "code") or "",
            money.field_value(c, "description") or "",
            items_by_category[money.field_value(c, "id")],
            variations_by_category[money.field_value(c, "id")],
        )
        for c in categories
    ]
    if unattributed:
        totals.append(_category_total(
            None, VARIATION_CATEGORY_CODE, VARIATION_CATEGORY_DESCRIPTION, [], unattributed
        ))

    grand_anticipated = money.sum_field(totals, "anticipated_final")
    for total in totals:
        if grand_anticipated != 0:
            total.percentage_of_total = money.percentage(total.anticipated_final, grand_anticipated)
        else:
            total.percentage_of_total = Decimal("0.00")

    logger.debug("Calculated %d category total(s); anticipated final %s", len(totals), grand_anticipated)
    return totals


def calculate_grand_totals(category_totals: Iterable[CategoryTotal]) -> GrandTotals:
    category_totals = list(category_totals)
    sums = {name: money.sum_field(category_totals, name) for name in TOTAL_FIELDS}
    return GrandTotals(
        percentage_of_total=Decimal("100.00") if sums["anticipated_final"] != 0 else Decimal("0.00"),
        **sums,
    )


def compare_totals(a: Any, b: Any, tolerance="0.01") -> TotalsComparison:
    """
    Compare two independently computed GrandTotals (or equivalent dicts).

    Fields missing on either side count as zero.
    """
    mismatched: List[str] = []
    differences: Dict[str, Decimal] = {}
    for name in TOTAL_FIELDS:
        left = money.field_value(a, name) or 0
        right = money.field_value(b, name) or 0
        if not money.within_tolerance(left, right, tolerance):
            mismatched.append(name)
            differences[name] = money.subtract(left, right)

    if mismatched:
        logger.warning("Totals mismatch on %s", ", ".join(mismatched))
    return TotalsComparison(matches=not mismatched, mismatched_fields=mismatched, differences=differences)


def validate_totals(
    category_totals: Iterable[CategoryTotal],
    grand_totals: GrandTotals,
    tolerance="0.01",
) -> TotalsComparison:
    """Check that the category totals add up to the grand totals."""
    return compare_totals(calculate_grand_totals(category_totals), grand_totals, tolerance)
