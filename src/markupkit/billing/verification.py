"""Invoice verification.

Re-derives each line's markup with the same matcher used to price it and
reports arithmetic and rule mismatches. Verification never raises for
data problems; everything it finds is returned as an issue.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
import enum
from typing import Any

from markupkit.billing.logger import VerificationLogger
from markupkit.billing.orchestrator import line_context
from markupkit.core.config import BillingConfig
from markupkit.core.money import HUNDRED, ZERO, RoundingMode, money_sum, round_money
from markupkit.models.line_item import LineItem, SourceTable
from markupkit.models.rules import MarkupRule, MarkupType
from markupkit.rules.matcher import count_conditions, find_matching_rule

# Applied vs expected rate difference still treated as the same rule.
RATE_MATCH_TOLERANCE = Decimal("0.001")


class IssueType(enum.Enum):
    MARKUP_MATH_ERROR = "markup_math_error"
    BILLED_MATH_ERROR = "billed_math_error"
    WRONG_MARKUP_RULE = "wrong_markup_rule"
    MISSING_MARKUP = "missing_markup"
    TOTAL_MISMATCH = "total_mismatch"


class Severity(enum.Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class VerificationIssue:
    type: IssueType
    severity: Severity
    message: str
    line_id: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CategoryVerificationTotals:
    category: str
    count: int
    base_cost: Decimal
    surcharge: Decimal
    markup_applied: Decimal
    tax_amount: Decimal
    billed_amount: Decimal
    effective_markup_pct: Decimal


@dataclass(frozen=True, slots=True)
class VerificationReport:
    lines_checked: int
    issues: tuple[VerificationIssue, ...]
    category_totals: tuple[CategoryVerificationTotals, ...]
    total_base_cost: Decimal
    total_markup: Decimal
    total_tax: Decimal
    total_billed: Decimal
    calculated_total: Decimal

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.severity is Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.severity is Severity.WARNING)

    @property
    def passed(self) -> bool:
        """Warnings do not fail a report."""
        return self.error_count == 0


def _can_verify_rule(line: LineItem) -> bool:
    # Shipment rules often hinge on ship option; without it we cannot tell.
    if line.source_table is not SourceTable.SHIPMENTS:
        return True
    return line.context is not None and line.context.ship_option_id is not None


def verify_line(
    line: LineItem,
    rules: Sequence[MarkupRule],
    *,
    tolerance: Decimal = Decimal("0.02"),
    rounding: RoundingMode = "half_up",
) -> list[VerificationIssue]:
    """Check one line's markup arithmetic and rule selection.

    Credits and negative amounts pass through and are not checked.
    """
    issues: list[VerificationIssue] = []
    if line.source_table is SourceTable.CREDITS or line.base_amount <= 0:
        return issues

    rate = line.markup_percentage
    insurance = line.insurance_cost

    if rate > 0 and line.markup_type is not MarkupType.FIXED:
        markup_base = line.base_amount + insurance
        expected_markup = round_money(markup_base * rate, rounding)
        if abs(expected_markup - line.markup_applied) > tolerance:
            issues.append(
                VerificationIssue(
                    type=IssueType.MARKUP_MATH_ERROR,
                    severity=Severity.ERROR,
                    message=(
                        f"Markup calculation wrong: {markup_base:.2f} x "
                        f"{rate * HUNDRED:.1f}% = {expected_markup:.2f}, "
                        f"but got {line.markup_applied:.2f}"
                    ),
                    line_id=line.id,
                    details={
                        "markup_base": markup_base,
                        "markup_percentage": rate,
                        "expected_markup": expected_markup,
                        "actual_markup": line.markup_applied,
                    },
                )
            )

    expected_billed = round_money(
        line.base_amount + line.surcharge + insurance + line.markup_applied, rounding
    )
    if abs(expected_billed - line.billed_amount) > tolerance:
        issues.append(
            VerificationIssue(
                type=IssueType.BILLED_MATH_ERROR,
                severity=Severity.ERROR,
                message=(
                    f"Billed amount wrong: {line.base_amount:.2f} + "
                    f"{line.surcharge:.2f} + {insurance:.2f} + "
                    f"{line.markup_applied:.2f} = {expected_billed:.2f}, "
                    f"but got {line.billed_amount:.2f}"
                ),
                line_id=line.id,
                details={
                    "expected_billed": expected_billed,
                    "actual_billed": line.billed_amount,
                },
            )
        )

    if not _can_verify_rule(line):
        return issues

    expected_rule = find_matching_rule(rules, line_context(line))
    if expected_rule is None or expected_rule.markup_type is not MarkupType.PERCENTAGE:
        return issues

    expected_rate = expected_rule.markup_value / HUNDRED
    if rate > 0 and abs(rate - expected_rate) > RATE_MATCH_TOLERANCE:
        issues.append(
            VerificationIssue(
                type=IssueType.WRONG_MARKUP_RULE,
                severity=Severity.WARNING,
                message=(
                    f"Markup rule mismatch: applied {rate * HUNDRED:.1f}% but rule "
                    f'"{expected_rule.name}" ({count_conditions(expected_rule)} '
                    f"conditions) says {expected_rule.markup_value}%"
                ),
                line_id=line.id,
                details={
                    "applied_rate": rate,
                    "expected_rate": expected_rate,
                    "rule_id": expected_rule.id,
                    "condition_count": count_conditions(expected_rule),
                },
            )
        )
    if rate == 0 and expected_rule.markup_value > 0:
        issues.append(
            VerificationIssue(
                type=IssueType.MISSING_MARKUP,
                severity=Severity.ERROR,
                message=(
                    f'No markup applied but rule "{expected_rule.name}" '
                    f"({expected_rule.markup_value}%) should apply"
                ),
                line_id=line.id,
                details={"rule_id": expected_rule.id},
            )
        )
    return issues


def _category_totals(
    line_items: Sequence[LineItem], rounding: RoundingMode
) -> tuple[CategoryVerificationTotals, ...]:
    grouped: dict[str, list[LineItem]] = {}
    for line in line_items:
        grouped.setdefault(line.line_category.value, []).append(line)

    totals: list[CategoryVerificationTotals] = []
    for category in sorted(grouped):
        lines = grouped[category]
        base = money_sum(line.base_amount for line in lines)
        markup = money_sum(line.markup_applied for line in lines)
        effective = (
            (markup / base * HUNDRED).quantize(Decimal("0.1")) if base > 0 else ZERO
        )
        totals.append(
            CategoryVerificationTotals(
                category=category,
                count=len(lines),
                base_cost=round_money(base, rounding),
                surcharge=round_money(
                    money_sum(line.surcharge for line in lines), rounding
                ),
                markup_applied=round_money(markup, rounding),
                tax_amount=round_money(
                    money_sum(line.tax_amount for line in lines), rounding
                ),
                billed_amount=round_money(
                    money_sum(line.billed_amount for line in lines), rounding
                ),
                effective_markup_pct=effective,
            )
        )
    return tuple(totals)


def verify_line_items(
    line_items: Sequence[LineItem],
    rules: Sequence[MarkupRule],
    *,
    expected_total: Decimal | None = None,
    config: BillingConfig | None = None,
    verification_logger: VerificationLogger | None = None,
) -> VerificationReport:
    """Verify a computed invoice against ``rules``.

    ``rules`` must be ordered the way a rule repository returns them.
    ``expected_total``, when given, is compared with billed plus tax.
    """
    config = config or BillingConfig()
    rounding = config.rounding_mode
    tolerance = config.verification_tolerance

    issues: list[VerificationIssue] = []
    for line in line_items:
        issues.extend(
            verify_line(line, rules, tolerance=tolerance, rounding=rounding)
        )

    total_billed = round_money(
        money_sum(line.billed_amount for line in line_items), rounding
    )
    total_tax = round_money(money_sum(line.tax_amount for line in line_items), rounding)
    calculated_total = round_money(total_billed + total_tax, rounding)

    if expected_total is not None and (
        abs(calculated_total - expected_total) > tolerance
    ):
        issues.append(
            VerificationIssue(
                type=IssueType.TOTAL_MISMATCH,
                severity=Severity.ERROR,
                message=(
                    f"Invoice total ({expected_total:.2f}) doesn't match "
                    f"calculated ({calculated_total:.2f})"
                ),
                details={
                    "invoice_total": expected_total,
                    "calculated_total": calculated_total,
                    "difference": expected_total - calculated_total,
                },
            )
        )

    report = VerificationReport(
        lines_checked=len(line_items),
        issues=tuple(issues),
        category_totals=_category_totals(line_items, rounding),
        total_base_cost=round_money(
            money_sum(line.base_amount for line in line_items), rounding
        ),
        total_markup=round_money(
            money_sum(line.markup_applied for line in line_items), rounding
        ),
        total_tax=total_tax,
        total_billed=total_billed,
        calculated_total=calculated_total,
    )
    (verification_logger or VerificationLogger()).report(report)
    return report
