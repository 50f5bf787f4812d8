"""Credit-to-shipment markup inheritance.

A shipping credit is discounted at the rate its shipment was billed at,
not at whatever rule matches a bare "Credit" fee today. A credit
inherits when the absolute credit amount equals the shipment's base
amount within a small tolerance.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from decimal import Decimal

from markupkit.billing.enrichment import InvoicedShipment
from markupkit.core.money import ZERO, RoundingMode, round_money
from markupkit.models.line_item import (
    LineItem,
    MarkupSource,
    ShippingDetails,
    SourceTable,
)
from markupkit.models.rules import MarkupType

# (client id, shipment id)
ShipmentKey = tuple[str, str]


@dataclass(frozen=True, slots=True)
class ShipmentMarkup:
    base_amount: Decimal
    markup_percentage: Decimal
    markup_rule_id: str | None
    markup_type: MarkupType | None = None


def shipment_markups_from_lines(
    line_items: Iterable[LineItem],
) -> dict[ShipmentKey, ShipmentMarkup]:
    """Collect the markup of every priced shipment charge in a batch.

    Refund lines are ignored so a shipment's charge is always the one
    credits are compared against. The first charge seen for a shipment wins.
    """
    markups: dict[ShipmentKey, ShipmentMarkup] = {}
    for line in line_items:
        if line.source_table is not SourceTable.SHIPMENTS or not line.reference_id:
            continue
        if line.markup_source is MarkupSource.PENDING:
            continue
        if isinstance(line.details, ShippingDetails) and line.details.is_refund:
            continue
        key = (line.client_id, line.reference_id)
        if key in markups:
            continue
        markups[key] = ShipmentMarkup(
            base_amount=line.base_amount,
            markup_percentage=line.markup_percentage,
            markup_rule_id=line.markup_rule_id,
            markup_type=line.markup_type,
        )
    return markups


def shipment_markups_from_invoiced(
    client_id: str, shipments: Iterable[InvoicedShipment]
) -> dict[ShipmentKey, ShipmentMarkup]:
    """Markups of shipments billed in earlier runs.

    Invoiced shipments keep the rate stored when they were billed. A
    shipment not yet invoiced contributes its base amount at 0%.
    """
    markups: dict[ShipmentKey, ShipmentMarkup] = {}
    for shipment in shipments:
        key = (client_id, shipment.shipment_id)
        if shipment.invoiced and shipment.markup_percentage is not None:
            markups[key] = ShipmentMarkup(
                base_amount=shipment.base_amount,
                markup_percentage=shipment.markup_percentage,
                markup_rule_id=shipment.markup_rule_id,
                markup_type=MarkupType.PERCENTAGE,
            )
        elif shipment.base_amount > 0:
            markups[key] = ShipmentMarkup(
                base_amount=shipment.base_amount,
                markup_percentage=ZERO,
                markup_rule_id=None,
            )
    return markups


def credit_matches_shipment(
    credit_amount: Decimal, shipment: ShipmentMarkup, tolerance: Decimal
) -> bool:
    return abs(abs(credit_amount) - shipment.base_amount) < tolerance


def find_inherited_markup(
    line: LineItem,
    markups: Mapping[ShipmentKey, ShipmentMarkup],
    tolerance: Decimal,
) -> ShipmentMarkup | None:
    """Return the shipment markup a credit line should inherit, if any."""
    if line.source_table is not SourceTable.CREDITS or not line.reference_id:
        return None
    shipment = markups.get((line.client_id, line.reference_id))
    if shipment is None:
        return None
    if not credit_matches_shipment(line.base_amount, shipment, tolerance):
        return None
    return shipment


def inherit_credit_markup(
    line: LineItem, shipment: ShipmentMarkup, *, rounding: RoundingMode = "half_up"
) -> LineItem:
    """Price a credit at its shipment's rate. Signs follow the credit."""
    markup = round_money(line.base_amount * shipment.markup_percentage, rounding)
    return replace(
        line,
        markup_applied=markup,
        billed_amount=round_money(line.base_amount + markup, rounding),
        markup_percentage=shipment.markup_percentage,
        markup_rule_id=shipment.markup_rule_id,
        markup_type=shipment.markup_type,
        markup_source=MarkupSource.INHERITED,
    )
