from markupkit.rules.calculator import AppliedRule, MarkupResult, calculate_markup
from markupkit.rules.matcher import (
    count_conditions,
    find_matching_rule,
    rule_matches,
    shipment_fee_type,
    weight_bracket,
)
from markupkit.rules.repository import (
    InMemoryRuleRepository,
    RuleRepository,
    order_rules,
)

__all__ = [
    "AppliedRule",
    "InMemoryRuleRepository",
    "MarkupResult",
    "RuleRepository",
    "calculate_markup",
    "count_conditions",
    "find_matching_rule",
    "order_rules",
    "rule_matches",
    "shipment_fee_type",
    "weight_bracket",
]
