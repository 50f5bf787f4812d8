"""Markup rules and the transaction context they are matched against."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from markupkit.core.money import d


class MarkupType(enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class BillingCategory(enum.Enum):
    """Rule scoping category. Mirrors the source table a line item came from."""

    SHIPMENTS = "shipments"
    SHIPMENT_FEES = "shipment_fees"
    STORAGE = "storage"
    CREDITS = "credits"
    RETURNS = "returns"
    RECEIVING = "receiving"


STANDARD_ORDER_CATEGORY = "Standard"


@dataclass(frozen=True, slots=True)
class MarkupConditions:
    """Optional structured conditions on a rule. Empty tuples mean "any"."""

    weight_min_oz: Decimal | None = None
    weight_max_oz: Decimal | None = None
    states: tuple[str, ...] = ()
    countries: tuple[str, ...] = ()
    ship_option_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if (
            self.weight_min_oz is not None
            and self.weight_max_oz is not None
            and self.weight_min_oz >= self.weight_max_oz
        ):
            msg = (
                f"weight_min_oz ({self.weight_min_oz}) must be below "
                f"weight_max_oz ({self.weight_max_oz})"
            )
            raise ValueError(msg)

    @property
    def has_weight_bound(self) -> bool:
        return self.weight_min_oz is not None or self.weight_max_oz is not None


@dataclass(frozen=True, slots=True)
class MarkupRule:
    """A standalone markup rule. Rules never stack or inherit."""

    id: str
    name: str
    markup_type: MarkupType
    markup_value: Decimal
    client_id: str | None = None
    billing_category: BillingCategory | None = None
    fee_type: str | None = None
    order_category: str | None = None
    ship_option_id: str | None = None
    conditions: MarkupConditions | None = None
    priority: int = 0
    effective_from: date | None = None
    effective_to: date | None = None
    is_active: bool = True
    created_at: datetime | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        if (
            self.effective_from is not None
            and self.effective_to is not None
            and self.effective_to < self.effective_from
        ):
            msg = f"Rule {self.id}: effective_to precedes effective_from"
            raise ValueError(msg)

    @property
    def is_global(self) -> bool:
        return self.client_id is None

    def is_effective_on(self, as_of: date) -> bool:
        if self.effective_from is not None and self.effective_from > as_of:
            return False
        if self.effective_to is not None and self.effective_to < as_of:
            return False
        return True

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> MarkupRule:
        """Validate a raw rule row and build a MarkupRule from it."""
        return MarkupRuleRecord.model_validate(record).to_rule()


@dataclass(frozen=True, slots=True)
class TransactionContext:
    """Attributes of a transaction that rule matching looks at."""

    client_id: str
    transaction_date: date
    fee_type: str
    billing_category: BillingCategory
    order_category: str | None = None
    ship_option_id: str | None = None
    weight_oz: Decimal | None = None
    state: str | None = None
    country: str | None = None


class MarkupConditionsRecord(BaseModel):
    weight_min_oz: Decimal | None = None
    weight_max_oz: Decimal | None = None
    states: list[str] | None = None
    countries: list[str] | None = None
    ship_option_ids: list[str] | None = None

    @field_validator("ship_option_ids", mode="before")
    @classmethod
    def _stringify_ship_options(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(v) for v in value]
        return value


class MarkupRuleRecord(BaseModel):
    """Boundary model for rule rows coming from the rule store."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    client_id: str | None = None
    billing_category: BillingCategory | None = None
    fee_type: str | None = None
    order_category: str | None = None
    ship_option_id: str | None = None
    conditions: MarkupConditionsRecord | None = None
    markup_type: MarkupType
    markup_value: Decimal
    priority: int = 0
    effective_from: date | None = None
    effective_to: date | None = None
    is_active: bool = True
    created_at: datetime | None = None
    description: str | None = None

    @field_validator("id", "client_id", "ship_option_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator(
        "billing_category", "fee_type", "order_category", "ship_option_id",
        mode="before",
    )
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        return None if value == "" else value

    def to_rule(self) -> MarkupRule:
        conditions: MarkupConditions | None = None
        if self.conditions is not None:
            c = self.conditions
            conditions = MarkupConditions(
                weight_min_oz=None if c.weight_min_oz is None else d(c.weight_min_oz),
                weight_max_oz=None if c.weight_max_oz is None else d(c.weight_max_oz),
                states=tuple(c.states or ()),
                countries=tuple(c.countries or ()),
                ship_option_ids=tuple(c.ship_option_ids or ()),
            )
        return MarkupRule(
            id=self.id,
            name=self.name or self.id,
            markup_type=self.markup_type,
            markup_value=d(self.markup_value),
            client_id=self.client_id,
            billing_category=self.billing_category,
            fee_type=self.fee_type,
            order_category=self.order_category,
            ship_option_id=self.ship_option_id,
            conditions=conditions,
            priority=self.priority,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            is_active=self.is_active,
            created_at=self.created_at,
            description=self.description,
        )


@dataclass(frozen=True, slots=True)
class WeightBracket:
    label: str
    min_oz: Decimal
    max_oz: Decimal | None


WEIGHT_BRACKETS: tuple[WeightBracket, ...] = (
    WeightBracket("<8oz", Decimal("0"), Decimal("8")),
    WeightBracket("8-16oz", Decimal("8"), Decimal("16")),
    WeightBracket("1-5lbs", Decimal("16"), Decimal("80")),
    WeightBracket("5-10lbs", Decimal("80"), Decimal("160")),
    WeightBracket("10-15lbs", Decimal("160"), Decimal("240")),
    WeightBracket("15-20lbs", Decimal("240"), Decimal("320")),
    WeightBracket("20+lbs", Decimal("320"), None),
)

