"""Invoice line items and the per-category detail variants they carry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import enum

from markupkit.core.money import ZERO
from markupkit.models.rules import BillingCategory, MarkupType, TransactionContext
from markupkit.models.transaction import ReferenceType, TaxEntry


class LineCategory(enum.Enum):
    """The nine invoice categories, in presentation order."""

    FULFILLMENT = "Fulfillment"
    SHIPPING = "Shipping"
    PICK_FEES = "Pick Fees"
    B2B_FEES = "B2B Fees"
    STORAGE = "Storage"
    RETURNS = "Returns"
    RECEIVING = "Receiving"
    CREDITS = "Credits"
    ADDITIONAL_SERVICES = "Additional Services"


class SourceTable(enum.Enum):
    SHIPMENTS = "billing_shipments"
    SHIPMENT_FEES = "billing_shipment_fees"
    STORAGE = "billing_storage"
    CREDITS = "billing_credits"
    RETURNS = "billing_returns"
    RECEIVING = "billing_receiving"

    @property
    def billing_category(self) -> BillingCategory:
        return _TABLE_TO_CATEGORY[self]


_TABLE_TO_CATEGORY: dict[SourceTable, BillingCategory] = {
    SourceTable.SHIPMENTS: BillingCategory.SHIPMENTS,
    SourceTable.SHIPMENT_FEES: BillingCategory.SHIPMENT_FEES,
    SourceTable.STORAGE: BillingCategory.STORAGE,
    SourceTable.CREDITS: BillingCategory.CREDITS,
    SourceTable.RETURNS: BillingCategory.RETURNS,
    SourceTable.RECEIVING: BillingCategory.RECEIVING,
}


class MarkupSource(enum.Enum):
    """How a line item's markup was decided."""

    PENDING = "pending"
    RULE = "rule"
    INHERITED = "inherited"
    NONE = "none"


# Detail variants. One is built per line at classification time so that
# downstream code reads named fields instead of probing the raw detail map.


@dataclass(frozen=True, slots=True)
class ShippingDetails:
    shipment_id: str | None
    order_category: str | None
    tracking_id: str | None
    is_refund: bool


@dataclass(frozen=True, slots=True)
class FeeDetails:
    fee_type: str
    reference_id: str | None
    reference_type: ReferenceType


@dataclass(frozen=True, slots=True)
class StorageDetails:
    location_type: str | None
    fulfillment_center: str | None
    inventory_id: str | None
    period_label: str | None


@dataclass(frozen=True, slots=True)
class ReturnDetails:
    return_id: str | None
    transaction_type: str | None


@dataclass(frozen=True, slots=True)
class ReceivingDetails:
    wro_id: str | None
    fee_type: str


@dataclass(frozen=True, slots=True)
class CreditDetails:
    reason: str
    reference_id: str | None


@dataclass(frozen=True, slots=True)
class UnclassifiedDetails:
    reference_type: str | None
    fee_type: str
    reference_id: str | None


LineDetails = (
    ShippingDetails
    | FeeDetails
    | StorageDetails
    | ReturnDetails
    | ReceivingDetails
    | CreditDetails
    | UnclassifiedDetails
)


@dataclass(frozen=True, slots=True)
class TaxCharge:
    tax_type: str
    tax_rate: Decimal
    tax_amount: Decimal


@dataclass(frozen=True, slots=True)
class LineItem:
    """One invoice line. Billed fields are filled in by the markup pass.

    ``markup_percentage`` is a fraction (0.18 for 18%). Shipment lines also
    carry the display-only ``base_charge``/``total_charge``/``insurance_charge``
    breakdown, which is not required to sum to ``billed_amount``.
    """

    id: str
    client_id: str
    source_table: SourceTable
    line_category: LineCategory
    description: str
    transaction_date: date
    base_amount: Decimal
    fee_type: str
    details: LineDetails
    reference_id: str | None = None
    surcharge: Decimal = ZERO
    insurance_cost: Decimal = ZERO
    markup_applied: Decimal = ZERO
    billed_amount: Decimal = ZERO
    markup_percentage: Decimal = ZERO
    markup_rule_id: str | None = None
    markup_type: MarkupType | None = None
    markup_source: MarkupSource = MarkupSource.PENDING
    base_charge: Decimal | None = None
    total_charge: Decimal | None = None
    insurance_charge: Decimal | None = None
    context: TransactionContext | None = None
    taxes: tuple[TaxEntry, ...] = ()
    tax_charges: tuple[TaxCharge, ...] = ()

    @property
    def source_record_id(self) -> str:
        return self.id

    @property
    def billing_category(self) -> BillingCategory:
        return self.source_table.billing_category

    @property
    def is_shipment(self) -> bool:
        return self.source_table is SourceTable.SHIPMENTS

    @property
    def subtotal(self) -> Decimal:
        """Pre-markup amount shown on the invoice (base plus pass-through)."""
        return self.base_amount + self.surcharge

    @property
    def tax_amount(self) -> Decimal:
        return sum((t.tax_amount for t in self.tax_charges), ZERO)
