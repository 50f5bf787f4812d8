"""Provisional markups for transactions that have not been invoiced yet.

Previews let clients see marked-up charges before the weekly invoice
run. They are advisory only: invoice computation always recalculates.
Nothing here persists anything; results are returned to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
import enum

from markupkit.billing.enrichment import (
    ShipmentAttributes,
    ShipmentAttributeSource,
    fetch_in_chunks,
    unique_ids,
)
from markupkit.billing.logger import PreviewLogger
from markupkit.billing.orchestrator import (
    MarkupOrchestrator,
    MarkupRequest,
    compute_shipment_charges,
)
from markupkit.core.config import BillingConfig
from markupkit.core.money import HUNDRED, ZERO, round_money
from markupkit.models.line_item import TaxCharge
from markupkit.models.rules import BillingCategory, TransactionContext
from markupkit.models.transaction import ReferenceType, Transaction
from markupkit.rules.matcher import shipment_fee_type
from markupkit.rules.repository import RuleRepository

SHIPPING_FEE_TYPE = "Shipping"

FEE_TYPE_TO_CATEGORY: dict[str, BillingCategory] = {
    "Shipping": BillingCategory.SHIPMENTS,
    "Per Pick Fee": BillingCategory.SHIPMENT_FEES,
    "B2B - Label Fee": BillingCategory.SHIPMENT_FEES,
    "B2B - Each Pick Fee": BillingCategory.SHIPMENT_FEES,
    "B2B - Case Pick Fee": BillingCategory.SHIPMENT_FEES,
    "B2B - Order Fee": BillingCategory.SHIPMENT_FEES,
    "B2B - Supplies": BillingCategory.SHIPMENT_FEES,
    "B2B - Pallet Material Charge": BillingCategory.SHIPMENT_FEES,
    "B2B - Pallet Pack Fee": BillingCategory.SHIPMENT_FEES,
    "B2B - ShipBob Freight Fee": BillingCategory.SHIPMENT_FEES,
    "Address Correction": BillingCategory.SHIPMENT_FEES,
    "Inventory Placement Program Fee": BillingCategory.SHIPMENT_FEES,
    "Kitting Fee": BillingCategory.SHIPMENT_FEES,
    "Warehousing Fee": BillingCategory.STORAGE,
    "URO Storage Fee": BillingCategory.STORAGE,
    "Return to sender - Processing Fees": BillingCategory.RETURNS,
    "Return Processed by Operations Fee": BillingCategory.RETURNS,
    "Return Label": BillingCategory.RETURNS,
    "WRO Receiving Fee": BillingCategory.RECEIVING,
    "WRO Label Fee": BillingCategory.RECEIVING,
    "Credit": BillingCategory.CREDITS,
    "VAS - Paid Requests": BillingCategory.SHIPMENT_FEES,
    "Others": BillingCategory.SHIPMENT_FEES,
}

# Order types that select a dedicated shipment fee type.
_SHIPMENT_ORDER_TYPES = frozenset({"FBA", "VAS"})


def fee_type_billing_category(fee_type: str) -> BillingCategory:
    return FEE_TYPE_TO_CATEGORY.get(fee_type, BillingCategory.SHIPMENT_FEES)


class SkipReason(enum.Enum):
    AWAITING_COST_BREAKDOWN = "awaiting_cost_breakdown"
    ALREADY_INVOICED = "already_invoiced"


@dataclass(frozen=True, slots=True)
class PreviewMarkup:
    transaction_id: str
    client_id: str
    markup_applied: Decimal
    billed_amount: Decimal
    markup_percentage: Decimal
    markup_rule_id: str | None
    base_charge: Decimal | None = None
    total_charge: Decimal | None = None
    insurance_charge: Decimal | None = None
    tax_charges: tuple[TaxCharge, ...] = ()


@dataclass(frozen=True, slots=True)
class SkippedTransaction:
    transaction_id: str
    reason: SkipReason


@dataclass(frozen=True, slots=True)
class PreviewResult:
    markups: list[PreviewMarkup]
    skipped: list[SkippedTransaction]


def _skip_reason(transaction: Transaction) -> SkipReason | None:
    if transaction.invoiced:
        return SkipReason.ALREADY_INVOICED
    # Shipping is marked up on base cost, which arrives later than the charge.
    if transaction.fee_type == SHIPPING_FEE_TYPE and transaction.base_cost is None:
        return SkipReason.AWAITING_COST_BREAKDOWN
    return None


def _preview_context(
    transaction: Transaction, attributes: ShipmentAttributes | None
) -> TransactionContext:
    order_type = attributes.order_type if attributes else None
    if transaction.fee_type == SHIPPING_FEE_TYPE:
        fee_type = shipment_fee_type(
            order_type if order_type in _SHIPMENT_ORDER_TYPES else None
        )
    else:
        fee_type = transaction.fee_type
    return TransactionContext(
        client_id=transaction.client_id,
        transaction_date=transaction.charge_date,
        fee_type=fee_type,
        billing_category=fee_type_billing_category(transaction.fee_type),
        order_category=order_type,
        ship_option_id=attributes.ship_option_id if attributes else None,
        weight_oz=attributes.weight_oz if attributes else None,
        state=attributes.state if attributes else None,
        country=attributes.country if attributes else None,
    )


def _lookup_attributes(
    transactions: Sequence[Transaction],
    source: ShipmentAttributeSource | None,
    config: BillingConfig,
) -> dict[str, ShipmentAttributes]:
    if source is None:
        return {}
    shipment_ids = unique_ids(
        t.reference_id
        for t in transactions
        if t.reference_type is ReferenceType.SHIPMENT
    )
    attributes: dict[str, ShipmentAttributes] = {}
    for chunk_result in fetch_in_chunks(
        shipment_ids,
        source.fetch_shipment_attributes,
        chunk_size=config.lookup_chunk_size,
        workers=config.lookup_workers,
    ):
        attributes.update(chunk_result)
    return attributes


def compute_preview_markups(
    transactions: Iterable[Transaction],
    rule_repository: RuleRepository,
    *,
    config: BillingConfig | None = None,
    shipment_attributes: ShipmentAttributeSource | None = None,
    preview_logger: PreviewLogger | None = None,
) -> PreviewResult:
    """Compute provisional markups, skipping what cannot be priced yet."""
    config = config or BillingConfig()
    rounding = config.rounding_mode
    log = preview_logger or PreviewLogger()

    processable: list[Transaction] = []
    skipped: list[SkippedTransaction] = []
    for transaction in transactions:
        reason = _skip_reason(transaction)
        if reason is None:
            processable.append(transaction)
        else:
            skipped.append(SkippedTransaction(transaction.id, reason))

    attributes = _lookup_attributes(processable, shipment_attributes, config)

    requests: list[MarkupRequest] = []
    for transaction in processable:
        is_shipping = transaction.fee_type == SHIPPING_FEE_TYPE
        base = (transaction.base_cost or ZERO) if is_shipping else transaction.cost
        context = _preview_context(
            transaction, attributes.get(transaction.reference_id or "")
        )
        requests.append(
            MarkupRequest(id=transaction.id, base_amount=base, context=context)
        )

    orchestrator = MarkupOrchestrator(rule_repository, config=config)
    results = orchestrator.calculate_batch_markups(requests)

    markups: list[PreviewMarkup] = []
    for transaction, request in zip(processable, requests, strict=True):
        result = results[request.id]
        if transaction.fee_type == SHIPPING_FEE_TYPE:
            charges = compute_shipment_charges(
                request.base_amount,
                transaction.surcharge or ZERO,
                transaction.insurance_cost or ZERO,
                result,
                rounding=rounding,
            )
            billed = charges.billed_amount
            preview = PreviewMarkup(
                transaction_id=transaction.id,
                client_id=transaction.client_id,
                markup_applied=charges.markup_amount,
                billed_amount=billed,
                markup_percentage=result.nominal_rate,
                markup_rule_id=result.rule_id,
                base_charge=charges.base_charge,
                total_charge=charges.total_charge,
                insurance_charge=charges.insurance_charge,
            )
        else:
            billed = result.billed_amount
            preview = PreviewMarkup(
                transaction_id=transaction.id,
                client_id=transaction.client_id,
                markup_applied=result.markup_amount,
                billed_amount=billed,
                markup_percentage=result.nominal_rate,
                markup_rule_id=result.rule_id,
            )

        if transaction.taxes:
            tax_charges = tuple(
                TaxCharge(
                    tax_type=tax.tax_type,
                    tax_rate=tax.tax_rate,
                    tax_amount=round_money(billed * tax.tax_rate / HUNDRED, rounding),
                )
                for tax in transaction.taxes
            )
            preview = replace(preview, tax_charges=tax_charges)
        markups.append(preview)

    log.complete(len(markups), len(skipped))
    return PreviewResult(markups=markups, skipped=skipped)
