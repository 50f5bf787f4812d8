"""Rounding reconciliation against formula-on-totals.

Financial exports compute a category total as
``round(sum(raw) * (1 + m))`` while line items are rounded one by one.
This pass groups lines by category and markup rate, recomputes each
group's total the export's way and moves any difference onto the line
with the largest billed amount, so line sums match the export to the
cent.

Shipping and Additional Services lines priced by a percentage rule take
part, as do lines in those categories that matched no rule (rate 0).
Fixed-amount lines have no rate to apply to a total and are left alone.
Pick Fees and B2B Fees are never reconciled.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from markupkit.billing.logger import ReconciliationLogger
from markupkit.core.config import BillingConfig
from markupkit.core.money import ONE, RoundingMode, money_sum, round_money
from markupkit.models.line_item import LineCategory, LineItem, MarkupSource
from markupkit.models.rules import MarkupType

RECONCILED_CATEGORIES: tuple[LineCategory, ...] = (
    LineCategory.SHIPPING,
    LineCategory.ADDITIONAL_SERVICES,
)


@dataclass(frozen=True, slots=True)
class ReconciliationAdjustment:
    group: LineCategory
    markup_rate: Decimal
    line_id: str
    line_count: int
    expected_total: Decimal
    actual_total: Decimal
    diff: Decimal
    exceeds_threshold: bool


@dataclass(frozen=True, slots=True)
class ReconciliationReport:
    groups_checked: int
    adjustments: tuple[ReconciliationAdjustment, ...] = ()

    @property
    def alerts(self) -> tuple[ReconciliationAdjustment, ...]:
        """Adjustments large enough to point at a data-quality problem."""
        return tuple(a for a in self.adjustments if a.exceeds_threshold)

    @property
    def total_adjustment(self) -> Decimal:
        return money_sum(a.diff for a in self.adjustments)


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    line_items: list[LineItem]
    report: ReconciliationReport


def is_reconcilable(line: LineItem) -> bool:
    if line.line_category not in RECONCILED_CATEGORIES:
        return False
    if line.markup_source is MarkupSource.NONE:
        return True
    return (
        line.markup_source is MarkupSource.RULE
        and line.markup_type is MarkupType.PERCENTAGE
    )


def expected_group_total(
    category: LineCategory,
    rate: Decimal,
    lines: Sequence[LineItem],
    rounding: RoundingMode = "half_up",
) -> Decimal:
    """Group total computed on summed raw amounts, rounded once."""
    factor = ONE + rate
    base_total = money_sum(line.base_amount for line in lines)
    if category is LineCategory.SHIPPING:
        surcharge_total = money_sum(line.surcharge for line in lines)
        insurance_total = money_sum(line.insurance_cost for line in lines)
        raw = base_total * factor + surcharge_total + insurance_total * factor
    else:
        raw = base_total * factor
    return round_money(raw, rounding)


def _largest_line_index(indexes: Sequence[int], line_items: Sequence[LineItem]) -> int:
    # max() keeps the first of equal candidates.
    return max(indexes, key=lambda i: abs(line_items[i].billed_amount))


def reconcile_line_items(
    line_items: Sequence[LineItem],
    *,
    config: BillingConfig | None = None,
    reconciliation_logger: ReconciliationLogger | None = None,
) -> ReconciliationResult:
    """Return a reconciled copy of ``line_items`` plus a report of changes.

    The input sequence and its items are left untouched.
    """
    config = config or BillingConfig()
    log = reconciliation_logger or ReconciliationLogger()
    rounding = config.rounding_mode

    groups: dict[tuple[LineCategory, Decimal], list[int]] = {}
    for index, line in enumerate(line_items):
        if is_reconcilable(line):
            key = (line.line_category, line.markup_percentage)
            groups.setdefault(key, []).append(index)

    result = list(line_items)
    adjustments: list[ReconciliationAdjustment] = []
    for (category, rate), indexes in groups.items():
        members = [line_items[i] for i in indexes]
        expected = expected_group_total(category, rate, members, rounding)
        actual = money_sum(line.billed_amount for line in members)
        diff = expected - actual
        if abs(diff) < config.reconciliation_tolerance:
            continue

        target_index = _largest_line_index(indexes, line_items)
        target = line_items[target_index]
        markup_applied = target.markup_applied
        # Unmatched lines carry no markup; the cent is a rounding correction.
        if target.markup_source is MarkupSource.RULE:
            markup_applied = round_money(markup_applied + diff, rounding)
        result[target_index] = replace(
            target,
            billed_amount=round_money(target.billed_amount + diff, rounding),
            markup_applied=markup_applied,
        )

        adjustment = ReconciliationAdjustment(
            group=category,
            markup_rate=rate,
            line_id=target.id,
            line_count=len(members),
            expected_total=expected,
            actual_total=actual,
            diff=diff,
            exceeds_threshold=abs(diff) > config.reconciliation_alert_threshold,
        )
        adjustments.append(adjustment)
        log.adjustment(adjustment)
        if adjustment.exceeds_threshold:
            log.alert(adjustment, config.reconciliation_alert_threshold)

    log.summary(len(groups), len(adjustments))
    return ReconciliationResult(
        line_items=result,
        report=ReconciliationReport(
            groups_checked=len(groups), adjustments=tuple(adjustments)
        ),
    )
