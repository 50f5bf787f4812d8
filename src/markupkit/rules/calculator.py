from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from markupkit.core.money import HUNDRED, ZERO, RoundingMode, round_money, round_percent
from markupkit.models.rules import MarkupRule, MarkupType


@dataclass(frozen=True, slots=True)
class AppliedRule:
    rule_id: str
    rule_name: str
    markup_type: MarkupType
    markup_value: Decimal
    markup_amount: Decimal


@dataclass(frozen=True, slots=True)
class MarkupResult:
    """Outcome of pricing one base amount against at most one rule.

    ``markup_percentage`` is the effective percent actually charged after
    rounding (e.g. ``17.99``). It is for reporting only; ``nominal_rate``
    is what downstream formulas use.
    """

    base_amount: Decimal
    markup_amount: Decimal
    billed_amount: Decimal
    rule_id: str | None
    rule_name: str | None
    markup_percentage: Decimal
    applied_rules: tuple[AppliedRule, ...] = ()

    @property
    def rule(self) -> AppliedRule | None:
        return self.applied_rules[0] if self.applied_rules else None

    @property
    def markup_type(self) -> MarkupType | None:
        applied = self.rule
        return applied.markup_type if applied is not None else None

    @property
    def nominal_rate(self) -> Decimal:
        """Configured rate as a fraction, or the effective rate for fixed rules."""
        applied = self.rule
        if applied is None:
            return ZERO
        if applied.markup_type is MarkupType.PERCENTAGE:
            return applied.markup_value / HUNDRED
        return self.markup_percentage / HUNDRED


def calculate_markup(
    base_amount: Decimal,
    rule: MarkupRule | None,
    *,
    rounding: RoundingMode = "half_up",
) -> MarkupResult:
    """Price ``base_amount`` with a single rule. No rule means no markup."""
    if rule is None:
        return MarkupResult(
            base_amount=base_amount,
            markup_amount=ZERO,
            billed_amount=base_amount,
            rule_id=None,
            rule_name=None,
            markup_percentage=ZERO,
        )

    if rule.markup_type is MarkupType.PERCENTAGE:
        raw_markup = base_amount * (rule.markup_value / HUNDRED)
    else:
        # Flat fee regardless of sign of the base amount.
        raw_markup = rule.markup_value

    markup_amount = round_money(raw_markup, rounding)
    billed_amount = round_money(base_amount + markup_amount, rounding)

    if base_amount != 0:
        effective = round_percent(markup_amount / base_amount * HUNDRED, rounding)
    else:
        effective = ZERO

    return MarkupResult(
        base_amount=base_amount,
        markup_amount=markup_amount,
        billed_amount=billed_amount,
        rule_id=rule.id,
        rule_name=rule.name,
        markup_percentage=effective,
        applied_rules=(
            AppliedRule(
                rule_id=rule.id,
                rule_name=rule.name,
                markup_type=rule.markup_type,
                markup_value=rule.markup_value,
                markup_amount=markup_amount,
            ),
        ),
    )
