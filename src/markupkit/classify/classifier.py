"""Turn raw fee transactions into invoice line-item shells.

Classification decides the source table, the invoice category, the
description and the typed detail variant of each line. Billed fields are
left at their pending defaults; the markup pass fills them in.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import date

import loguru
from loguru import logger

from markupkit.classify.taxonomy import (
    CREDIT_FEE_TYPE,
    LineKind,
    additional_service_category,
    resolve_line_kind,
)
from markupkit.core.money import ZERO
from markupkit.models.line_item import (
    CreditDetails,
    FeeDetails,
    LineCategory,
    LineDetails,
    LineItem,
    ReceivingDetails,
    ReturnDetails,
    ShippingDetails,
    SourceTable,
    StorageDetails,
    UnclassifiedDetails,
)
from markupkit.models.rules import TransactionContext
from markupkit.models.transaction import Transaction
from markupkit.rules.matcher import shipment_fee_type

FBA_ORDER_CATEGORY = "FBA"


class ClassifierLogger:
    """Handles all logging for transaction classification."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def zero_cost_skipped(self, transaction: Transaction) -> None:
        self._logger.bind(transaction_id=transaction.id).debug(
            "Skipping zero-cost transaction {} ({})",
            transaction.id,
            transaction.fee_type or "no fee type",
        )

    def unknown_shipment_fee(self, transaction: Transaction) -> None:
        self._logger.bind(
            transaction_id=transaction.id,
            fee_type=transaction.fee_type,
            amount=str(transaction.cost),
        ).warning(
            "Unknown Shipment fee type, adding to Additional Services: "
            "fee_type={!r} txn={} amount={}",
            transaction.fee_type,
            transaction.id,
            transaction.cost,
        )

    def unclassified(self, transaction: Transaction) -> None:
        self._logger.bind(
            transaction_id=transaction.id,
            reference_type=transaction.raw_reference_type,
            fee_type=transaction.fee_type,
            amount=str(transaction.cost),
        ).warning(
            "Unclassified transaction, adding to Additional Services: "
            "reference_type={!r} fee_type={!r} txn={} amount={}",
            transaction.raw_reference_type,
            transaction.fee_type,
            transaction.id,
            transaction.cost,
        )

    def classification_complete(self, line_count: int, skipped_count: int) -> None:
        self._logger.bind(lines=line_count, skipped=skipped_count).info(
            "Classified {} transactions ({} zero-cost skipped)",
            line_count,
            skipped_count,
        )


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    line_items: list[LineItem]
    skipped_ids: list[str]


def format_storage_period(start: date, end: date) -> str:
    """Render a storage period as ``Nov 1, 2025 - Nov 1, 2025``."""
    return f"{_format_day(start)} - {_format_day(end)}"


def _format_day(value: date) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def _storage_location_type(transaction: Transaction) -> str | None:
    # Storage reference ids look like "{facility}-{inventory}-{locationType}".
    parts = (transaction.reference_id or "").split("-")
    if len(parts) > 2 and parts[2]:
        return parts[2]
    return transaction.detail("LocationType")


def _storage_inventory_id(transaction: Transaction) -> str | None:
    parts = (transaction.reference_id or "").split("-")
    if len(parts) > 1 and parts[1]:
        return parts[1]
    return transaction.detail("InventoryId")


def _context(
    transaction: Transaction,
    source_table: SourceTable,
    fee_type: str,
    order_category: str | None = None,
) -> TransactionContext:
    return TransactionContext(
        client_id=transaction.client_id,
        transaction_date=transaction.charge_date,
        fee_type=fee_type,
        billing_category=source_table.billing_category,
        order_category=order_category,
    )


def _line(
    transaction: Transaction,
    *,
    source_table: SourceTable,
    line_category: LineCategory,
    description: str,
    fee_type: str,
    details: LineDetails,
    order_category: str | None = None,
) -> LineItem:
    return LineItem(
        id=transaction.id,
        client_id=transaction.client_id,
        source_table=source_table,
        line_category=line_category,
        description=description,
        transaction_date=transaction.charge_date,
        base_amount=transaction.cost,
        fee_type=fee_type,
        details=details,
        reference_id=transaction.reference_id,
        context=_context(transaction, source_table, fee_type, order_category),
        taxes=transaction.taxes,
    )


def _build_credit(transaction: Transaction, _log: ClassifierLogger) -> LineItem:
    reason = transaction.detail("Comment", "CreditReason") or "Credit"
    return _line(
        transaction,
        source_table=SourceTable.CREDITS,
        line_category=LineCategory.CREDITS,
        description=reason,
        fee_type=CREDIT_FEE_TYPE,
        details=CreditDetails(reason=reason, reference_id=transaction.reference_id),
    )


def _build_shipment(transaction: Transaction, _log: ClassifierLogger) -> LineItem:
    order_category = transaction.detail("OrderCategory")
    refund_prefix = "Refund: " if transaction.is_refund else ""
    line = _line(
        transaction,
        source_table=SourceTable.SHIPMENTS,
        line_category=(
            LineCategory.FULFILLMENT
            if order_category == FBA_ORDER_CATEGORY
            else LineCategory.SHIPPING
        ),
        description=(
            f"{refund_prefix}Shipment {transaction.reference_id or 'N/A'}"
            f" - {transaction.fee_type}"
        ),
        fee_type=shipment_fee_type(order_category),
        details=ShippingDetails(
            shipment_id=transaction.reference_id,
            order_category=order_category,
            tracking_id=transaction.tracking_id,
            is_refund=transaction.is_refund,
        ),
        order_category=order_category,
    )
    # Marked-up base is the carrier base cost when the breakdown has arrived.
    return _with_shipping_breakdown(line, transaction)


def _with_shipping_breakdown(line: LineItem, transaction: Transaction) -> LineItem:
    base = transaction.base_cost if transaction.base_cost else transaction.cost
    return replace(
        line,
        base_amount=base,
        surcharge=transaction.surcharge or ZERO,
        insurance_cost=transaction.insurance_cost or ZERO,
    )


def _build_fee(transaction: Transaction, _log: ClassifierLogger) -> LineItem:
    return _line(
        transaction,
        source_table=SourceTable.SHIPMENT_FEES,
        line_category=additional_service_category(transaction.fee_type),
        description=transaction.fee_type,
        fee_type=transaction.fee_type,
        details=FeeDetails(
            fee_type=transaction.fee_type,
            reference_id=transaction.reference_id,
            reference_type=transaction.reference_type,
        ),
    )


def _build_unknown_shipment_fee(
    transaction: Transaction, log: ClassifierLogger
) -> LineItem:
    log.unknown_shipment_fee(transaction)
    return _line(
        transaction,
        source_table=SourceTable.SHIPMENT_FEES,
        line_category=LineCategory.ADDITIONAL_SERVICES,
        description=transaction.fee_type or "Unknown Shipment Fee",
        fee_type=transaction.fee_type or "Unknown",
        details=FeeDetails(
            fee_type=transaction.fee_type,
            reference_id=transaction.reference_id,
            reference_type=transaction.reference_type,
        ),
    )


def _build_placement_fee(transaction: Transaction, _log: ClassifierLogger) -> LineItem:
    return _line(
        transaction,
        source_table=SourceTable.SHIPMENT_FEES,
        line_category=LineCategory.ADDITIONAL_SERVICES,
        description=transaction.fee_type,
        fee_type=transaction.fee_type,
        details=FeeDetails(
            fee_type=transaction.fee_type,
            reference_id=transaction.reference_id,
            reference_type=transaction.reference_type,
        ),
    )


def _build_storage(transaction: Transaction, _log: ClassifierLogger) -> LineItem:
    location_type = _storage_location_type(transaction)
    return _line(
        transaction,
        source_table=SourceTable.STORAGE,
        line_category=LineCategory.STORAGE,
        description=(
            f"{location_type or 'Storage'} - {transaction.fulfillment_center or 'FC'}"
        ),
        fee_type=location_type or "Storage",
        details=StorageDetails(
            location_type=location_type,
            fulfillment_center=transaction.fulfillment_center,
            inventory_id=_storage_inventory_id(transaction),
            period_label=format_storage_period(
                transaction.charge_date, transaction.charge_date
            ),
        ),
    )


def _build_return(transaction: Transaction, _log: ClassifierLogger) -> LineItem:
    return _line(
        transaction,
        source_table=SourceTable.RETURNS,
        line_category=LineCategory.RETURNS,
        description=transaction.transaction_type or "Return",
        fee_type=transaction.transaction_type or "Return",
        details=ReturnDetails(
            return_id=transaction.reference_id,
            transaction_type=transaction.transaction_type,
        ),
    )


def _build_receiving(transaction: Transaction, _log: ClassifierLogger) -> LineItem:
    fee_type = transaction.fee_type or "Receiving"
    return _line(
        transaction,
        source_table=SourceTable.RECEIVING,
        line_category=LineCategory.RECEIVING,
        description=f"WRO {transaction.reference_id or 'N/A'} - {fee_type}",
        fee_type=fee_type,
        details=ReceivingDetails(wro_id=transaction.reference_id, fee_type=fee_type),
    )


def _build_unclassified(transaction: Transaction, log: ClassifierLogger) -> LineItem:
    log.unclassified(transaction)
    return _line(
        transaction,
        source_table=SourceTable.SHIPMENT_FEES,
        line_category=LineCategory.ADDITIONAL_SERVICES,
        description=(
            transaction.fee_type or transaction.raw_reference_type or "Unknown Fee"
        ),
        fee_type=transaction.fee_type or "Unknown",
        details=UnclassifiedDetails(
            reference_type=transaction.raw_reference_type,
            fee_type=transaction.fee_type,
            reference_id=transaction.reference_id,
        ),
    )


_LineBuilder = Callable[[Transaction, ClassifierLogger], LineItem]

_KIND_BUILDERS: dict[LineKind, _LineBuilder] = {
    LineKind.CREDIT: _build_credit,
    LineKind.SHIPMENT: _build_shipment,
    LineKind.SHIPMENT_FEE: _build_fee,
    LineKind.SHIPMENT_UNKNOWN_FEE: _build_unknown_shipment_fee,
    LineKind.STORAGE: _build_storage,
    LineKind.RETURN: _build_return,
    LineKind.PLACEMENT_FEE: _build_placement_fee,
    LineKind.RECEIVING: _build_receiving,
    LineKind.TICKET_FEE: _build_fee,
    LineKind.UNCLASSIFIED: _build_unclassified,
}


def classify_transaction(
    transaction: Transaction, *, classifier_logger: ClassifierLogger | None = None
) -> LineItem | None:
    """Classify one transaction. Returns None for zero-cost transactions."""
    log = classifier_logger or ClassifierLogger()
    if transaction.cost == 0:
        log.zero_cost_skipped(transaction)
        return None
    kind = resolve_line_kind(transaction.reference_type, transaction.fee_type)
    return _KIND_BUILDERS[kind](transaction, log)


def classify_transactions(
    transactions: Iterable[Transaction],
    *,
    classifier_logger: ClassifierLogger | None = None,
) -> ClassificationResult:
    """Classify a batch, preserving input order.

    Every transaction with a non-zero cost yields exactly one line item.
    """
    log = classifier_logger or ClassifierLogger()
    line_items: list[LineItem] = []
    skipped_ids: list[str] = []
    for transaction in transactions:
        line = classify_transaction(transaction, classifier_logger=log)
        if line is None:
            skipped_ids.append(transaction.id)
        else:
            line_items.append(line)
    log.classification_complete(len(line_items), len(skipped_ids))
    return ClassificationResult(line_items=line_items, skipped_ids=skipped_ids)
