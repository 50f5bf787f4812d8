"""Raw fee transactions as supplied by the transaction store."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from markupkit.core.money import coerce_amount, coerce_optional_amount, d


class ReferenceType(enum.Enum):
    """What a transaction's reference id points at."""

    SHIPMENT = "Shipment"
    FC = "FC"
    RETURN = "Return"
    WRO = "WRO"
    TICKET_NUMBER = "TicketNumber"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, raw: str | None) -> ReferenceType:
        if not raw:
            return cls.UNKNOWN
        for member in cls:
            if member.value == raw:
                return member
        return cls.UNKNOWN


@dataclass(frozen=True, slots=True)
class TaxEntry:
    """A tax the provider applies to a fee, as a percentage rate."""

    tax_type: str
    tax_rate: Decimal


@dataclass(frozen=True)
class Transaction:
    """A single fee record. Immutable for the duration of a computation."""

    id: str
    client_id: str
    reference_type: ReferenceType
    fee_type: str
    cost: Decimal
    charge_date: date
    reference_id: str | None = None
    transaction_type: str | None = None
    base_cost: Decimal | None = None
    surcharge: Decimal | None = None
    insurance_cost: Decimal | None = None
    fulfillment_center: str | None = None
    tracking_id: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)
    taxes: tuple[TaxEntry, ...] = ()
    invoiced: bool = False
    raw_reference_type: str | None = None

    @property
    def is_refund(self) -> bool:
        return self.transaction_type == "Refund"

    def detail(self, *keys: str) -> str | None:
        """Return the first non-empty detail value among ``keys`` as text."""
        for key in keys:
            value = self.details.get(key)
            if value is not None and value != "":
                return str(value)
        return None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Transaction:
        """Validate a raw store row and build a Transaction from it."""
        return TransactionRecord.model_validate(record).to_transaction()


class TaxEntryRecord(BaseModel):
    tax_type: str
    tax_rate: Decimal


class TransactionRecord(BaseModel):
    """Boundary model for transaction rows coming from the store.

    Monetary fields that are present but not numeric are coerced to zero
    with a logged warning instead of failing validation.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    client_id: str
    reference_type: str | None = None
    fee_type: str | None = None
    cost: Decimal = Decimal("0")
    charge_date: date
    reference_id: str | None = None
    transaction_type: str | None = None
    base_cost: Decimal | None = None
    surcharge: Decimal | None = None
    insurance_cost: Decimal | None = None
    fulfillment_center: str | None = None
    tracking_id: str | None = None
    additional_details: dict[str, Any] | None = None
    taxes: list[TaxEntryRecord] | None = None
    invoiced: bool = Field(default=False, alias="invoiced_status")

    @field_validator("id", "client_id", "reference_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("cost", mode="before")
    @classmethod
    def _coerce_cost(cls, value: Any, info: ValidationInfo) -> Decimal:
        return coerce_amount(value, field_name="cost", record_id=info.data.get("id"))

    @field_validator("base_cost", "surcharge", "insurance_cost", mode="before")
    @classmethod
    def _coerce_optional(cls, value: Any, info: ValidationInfo) -> Decimal | None:
        return coerce_optional_amount(
            value, field_name=str(info.field_name), record_id=info.data.get("id")
        )

    @field_validator("charge_date", mode="before")
    @classmethod
    def _date_only(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and len(value) > 10:
            return value[:10]
        return value

    @field_validator("invoiced", mode="before")
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    def to_transaction(self) -> Transaction:
        taxes = tuple(
            TaxEntry(tax_type=t.tax_type, tax_rate=d(t.tax_rate))
            for t in (self.taxes or [])
        )
        return Transaction(
            id=self.id,
            client_id=self.client_id,
            reference_type=ReferenceType.parse(self.reference_type),
            fee_type=self.fee_type or "",
            cost=self.cost,
            charge_date=self.charge_date,
            reference_id=self.reference_id or None,
            transaction_type=self.transaction_type,
            base_cost=self.base_cost,
            surcharge=self.surcharge,
            insurance_cost=self.insurance_cost,
            fulfillment_center=self.fulfillment_center,
            tracking_id=self.tracking_id,
            details=dict(self.additional_details or {}),
            taxes=taxes,
            invoiced=self.invoiced,
            raw_reference_type=self.reference_type,
        )
