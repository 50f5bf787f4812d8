"""Rule selection: "most conditions wins".

Each rule is standalone. When several rules match a transaction, the one
with the most specificity signals wins:

- client-specific rule (vs global): +1
- ship option specified: +1
- any weight bound specified: +1

Billing category, fee type and order category are filters, not signals,
since almost every rule sets them. Ties keep the caller's ordering
(priority desc, then oldest first), so the first created rule wins.

Example:
- "Standard" (0 conditions) = 14%
- "Standard + Ship 146" (1 condition) = 18%
- "Standard + Ship 146 + 5-10lbs" (2 conditions) = 25%

A shipment on ship option 146 at 112oz gets 25%.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from markupkit.models.rules import (
    STANDARD_ORDER_CATEGORY,
    WEIGHT_BRACKETS,
    MarkupConditions,
    MarkupRule,
    TransactionContext,
)


def shipment_fee_type(order_category: str | None) -> str:
    """Fee type used for shipment rule matching.

    No order category means a standard D2C shipment. Refunds use the same
    fee type as charges, so they inherit the charge's markup.
    """
    if not order_category:
        return STANDARD_ORDER_CATEGORY
    return order_category


def weight_bracket(weight_oz: Decimal) -> str:
    """Return the label of the half-open weight bracket containing ``weight_oz``."""
    for bracket in WEIGHT_BRACKETS:
        if weight_oz >= bracket.min_oz and (
            bracket.max_oz is None or weight_oz < bracket.max_oz
        ):
            return bracket.label
    return WEIGHT_BRACKETS[-1].label


def _conditions_match(
    conditions: MarkupConditions, context: TransactionContext
) -> bool:
    if context.weight_oz is not None:
        if (
            conditions.weight_min_oz is not None
            and context.weight_oz < conditions.weight_min_oz
        ):
            return False
        if (
            conditions.weight_max_oz is not None
            and context.weight_oz >= conditions.weight_max_oz
        ):
            return False

    if conditions.states:
        if not context.state or context.state not in conditions.states:
            return False

    if conditions.countries:
        if not context.country or context.country not in conditions.countries:
            return False

    if conditions.ship_option_ids:
        if (
            not context.ship_option_id
            or context.ship_option_id not in conditions.ship_option_ids
        ):
            return False

    return True


def rule_matches(rule: MarkupRule, context: TransactionContext) -> bool:
    """Check whether ``rule`` applies to ``context``."""
    if rule.client_id is not None and rule.client_id != context.client_id:
        return False

    if (
        rule.billing_category is not None
        and rule.billing_category != context.billing_category
    ):
        return False

    if rule.fee_type is not None and rule.fee_type != context.fee_type:
        return False

    if rule.order_category is not None:
        context_category = context.order_category or STANDARD_ORDER_CATEGORY
        if rule.order_category != context_category:
            return False

    if (
        rule.ship_option_id is not None
        and rule.ship_option_id != context.ship_option_id
    ):
        return False

    if rule.conditions is not None and not _conditions_match(rule.conditions, context):
        return False

    return True


def count_conditions(rule: MarkupRule) -> int:
    """Specificity score of a rule. Higher is more specific."""
    count = 0
    if rule.client_id is not None:
        count += 1
    if rule.ship_option_id is not None:
        count += 1
    if rule.conditions is not None and rule.conditions.has_weight_bound:
        count += 1
    return count


def find_matching_rule(
    rules: Sequence[MarkupRule], context: TransactionContext
) -> MarkupRule | None:
    """Return the most specific matching rule, or None if nothing matches.

    ``rules`` must already be ordered by priority desc then creation time;
    among equally specific matches the earliest in that order wins.
    """
    best: MarkupRule | None = None
    best_score = -1
    for rule in rules:
        if not rule_matches(rule, context):
            continue
        score = count_conditions(rule)
        if score > best_score:
            best = rule
            best_score = score
    return best
