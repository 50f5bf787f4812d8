"""Fee taxonomy: which (reference type, fee type) pairs land in which line kind.

The decision table is ordered and the first match wins. Anything that
falls through becomes ``LineKind.UNCLASSIFIED`` so that no fee is ever
dropped from an invoice.
"""

from __future__ import annotations

import enum

from markupkit.models.line_item import LineCategory
from markupkit.models.transaction import ReferenceType

CREDIT_FEE_TYPE = "Credit"
SHIPPING_FEE_TYPE = "Shipping"
PLACEMENT_FEE_TYPE = "Inventory Placement Program Fee"

# Non-shipping fees that may appear on shipments and support tickets.
ADDITIONAL_SERVICE_FEES: frozenset[str] = frozenset(
    {
        "Per Pick Fee",
        "B2B - Each Pick Fee",
        "B2B - Label Fee",
        "B2B - Case Pick Fee",
        "B2B - Pallet Pick Fee",
        "WRO Receiving Fee",
        "Inventory Placement Program Fee",
        "Warehousing Fee",
        "Multi-Hub IQ Fee",
        "Kitting Fee",
        "VAS Fee",
        "VAS - Paid Requests",
        "Duty/Tax",
        "Insurance",
        "Signature Required",
        "Fuel Surcharge",
        "Residential Surcharge",
        "Delivery Area Surcharge",
        "Saturday Delivery",
        "Oversized Package",
        "Dimensional Weight",
    }
)


class LineKind(enum.Enum):
    CREDIT = "credit"
    SHIPMENT = "shipment"
    SHIPMENT_FEE = "shipment_fee"
    SHIPMENT_UNKNOWN_FEE = "shipment_unknown_fee"
    STORAGE = "storage"
    RETURN = "return"
    PLACEMENT_FEE = "placement_fee"
    RECEIVING = "receiving"
    TICKET_FEE = "ticket_fee"
    UNCLASSIFIED = "unclassified"


def is_additional_service_fee(fee_type: str) -> bool:
    return fee_type in ADDITIONAL_SERVICE_FEES


def additional_service_category(fee_type: str) -> LineCategory:
    """B2B fees first, then pick fees, then everything else."""
    if fee_type.startswith("B2B"):
        return LineCategory.B2B_FEES
    if "Pick" in fee_type:
        return LineCategory.PICK_FEES
    return LineCategory.ADDITIONAL_SERVICES


def resolve_line_kind(reference_type: ReferenceType, fee_type: str) -> LineKind:
    """Map a transaction's (reference type, fee type) to its line kind."""
    if fee_type == CREDIT_FEE_TYPE:
        return LineKind.CREDIT

    if reference_type is ReferenceType.SHIPMENT:
        if fee_type == SHIPPING_FEE_TYPE:
            return LineKind.SHIPMENT
        if is_additional_service_fee(fee_type):
            return LineKind.SHIPMENT_FEE
        return LineKind.SHIPMENT_UNKNOWN_FEE

    if reference_type is ReferenceType.FC:
        return LineKind.STORAGE

    if reference_type is ReferenceType.RETURN:
        return LineKind.RETURN

    # Placement fees reference a WRO but are not receiving fees.
    if reference_type is ReferenceType.WRO and fee_type == PLACEMENT_FEE_TYPE:
        return LineKind.PLACEMENT_FEE

    if reference_type is ReferenceType.WRO or "Receiving" in fee_type:
        return LineKind.RECEIVING

    if reference_type is ReferenceType.TICKET_NUMBER and is_additional_service_fee(
        fee_type
    ):
        return LineKind.TICKET_FEE

    return LineKind.UNCLASSIFIED
