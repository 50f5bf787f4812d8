from markupkit.core.config import BillingConfig, load_billing_config_from_env
from markupkit.core.money import (
    ONE,
    TWOPLACES,
    ZERO,
    RoundingMode,
    coerce_amount,
    d,
    money_sum,
    round_money,
)

__all__ = [
    "ONE",
    "TWOPLACES",
    "ZERO",
    "BillingConfig",
    "RoundingMode",
    "coerce_amount",
    "d",
    "load_billing_config_from_env",
    "money_sum",
    "round_money",
]
