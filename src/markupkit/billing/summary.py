from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from markupkit.core.money import HUNDRED, ZERO, RoundingMode, money_sum, round_money
from markupkit.models.line_item import LineCategory, LineItem, TaxCharge


@dataclass(frozen=True, slots=True)
class CategoryTotals:
    count: int = 0
    subtotal: Decimal = ZERO
    markup: Decimal = ZERO
    total: Decimal = ZERO


@dataclass(frozen=True, slots=True)
class InvoiceSummary:
    """Per-category and grand totals for one invoice.

    ``subtotal`` is base plus surcharge, ``total_amount`` is the sum of
    billed amounts. Taxes are reported separately in ``total_tax``.
    """

    by_category: Mapping[LineCategory, CategoryTotals]
    subtotal: Decimal
    total_markup: Decimal
    total_amount: Decimal
    total_tax: Decimal
    line_count: int

    @property
    def amount_due(self) -> Decimal:
        return self.total_amount + self.total_tax


def apply_tax_charges(
    line_items: Sequence[LineItem], *, rounding: RoundingMode = "half_up"
) -> list[LineItem]:
    """Charge each line's taxes on its final billed amount."""
    taxed: list[LineItem] = []
    for line in line_items:
        if not line.taxes:
            taxed.append(line)
            continue
        charges = tuple(
            TaxCharge(
                tax_type=tax.tax_type,
                tax_rate=tax.tax_rate,
                tax_amount=round_money(
                    line.billed_amount * tax.tax_rate / HUNDRED, rounding
                ),
            )
            for tax in line.taxes
        )
        taxed.append(replace(line, tax_charges=charges))
    return taxed


def generate_summary(
    line_items: Sequence[LineItem], *, rounding: RoundingMode = "half_up"
) -> InvoiceSummary:
    """Accumulate exact sums per category, rounding each total once."""
    counts: dict[LineCategory, int] = {c: 0 for c in LineCategory}
    subtotals: dict[LineCategory, list[Decimal]] = {c: [] for c in LineCategory}
    markups: dict[LineCategory, list[Decimal]] = {c: [] for c in LineCategory}
    totals: dict[LineCategory, list[Decimal]] = {c: [] for c in LineCategory}

    for line in line_items:
        category = line.line_category
        counts[category] += 1
        subtotals[category].append(line.subtotal)
        markups[category].append(line.markup_applied)
        totals[category].append(line.billed_amount)

    by_category = {
        category: CategoryTotals(
            count=counts[category],
            subtotal=round_money(money_sum(subtotals[category]), rounding),
            markup=round_money(money_sum(markups[category]), rounding),
            total=round_money(money_sum(totals[category]), rounding),
        )
        for category in LineCategory
    }

    return InvoiceSummary(
        by_category=by_category,
        subtotal=round_money(money_sum(line.subtotal for line in line_items), rounding),
        total_markup=round_money(
            money_sum(line.markup_applied for line in line_items), rounding
        ),
        total_amount=round_money(
            money_sum(line.billed_amount for line in line_items), rounding
        ),
        total_tax=round_money(
            money_sum(line.tax_amount for line in line_items), rounding
        ),
        line_count=len(line_items),
    )
