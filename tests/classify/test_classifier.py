"""Tests for transaction classification into line items."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from markupkit.classify.classifier import (
    _KIND_BUILDERS,
    ClassifierLogger,
    classify_transaction,
    classify_transactions,
    format_storage_period,
)
from markupkit.classify.taxonomy import LineKind
from markupkit.core.money import ZERO
from markupkit.models.line_item import (
    CreditDetails,
    FeeDetails,
    LineCategory,
    MarkupSource,
    ReceivingDetails,
    ReturnDetails,
    ShippingDetails,
    SourceTable,
    StorageDetails,
    UnclassifiedDetails,
)
from markupkit.models.rules import BillingCategory
from markupkit.models.transaction import ReferenceType, TaxEntry
from tests.fixtures.billing import CLIENT_ID, INVOICE_DATE, make_transaction


@pytest.fixture
def classifier_logger() -> MagicMock:
    return MagicMock(spec=ClassifierLogger)



class TestClassifyShipments:
    """Tests for shipment charge classification."""

    def test_standard_shipment(self, classifier_logger: MagicMock) -> None:
        """A shipping charge becomes a Shipping line with its cost breakdown."""
        # input
        txn = make_transaction(
            "tx-1",
            "12.50",
            reference_id="S1",
            base_cost=Decimal("10.00"),
            surcharge=Decimal("1.50"),
            insurance_cost=Decimal("1.00"),
            tracking_id="1Z999",
        )

        # act
        line = classify_transaction(txn, classifier_logger=classifier_logger)

        # assert
        assert line is not None
        assert line.source_table is SourceTable.SHIPMENTS
        assert line.line_category is LineCategory.SHIPPING
        assert line.description == "Shipment S1 - Shipping"
        assert line.fee_type == "Standard"
        assert line.base_amount == Decimal("10.00")
        assert line.surcharge == Decimal("1.50")
        assert line.insurance_cost == Decimal("1.00")
        assert line.markup_source is MarkupSource.PENDING
        assert line.details == ShippingDetails(
            shipment_id="S1",
            order_category=None,
            tracking_id="1Z999",
            is_refund=False,
        )
        assert line.context is not None
        assert line.context.billing_category is BillingCategory.SHIPMENTS
        assert line.context.fee_type == "Standard"
        classifier_logger.unknown_shipment_fee.assert_not_called()

    def test_missing_breakdown_uses_cost(self) -> None:
        """Without a breakdown the whole cost is the base amount."""
        # input
        txn = make_transaction("tx-1", "12.50", reference_id="S1")

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.base_amount == Decimal("12.50")
        assert line.surcharge == ZERO
        assert line.insurance_cost == ZERO

    def test_fba_shipment_is_fulfillment(self) -> None:
        """FBA shipments are billed under Fulfillment."""
        # input
        txn = make_transaction(
            "tx-1", "8.00", reference_id="S2", details={"OrderCategory": "FBA"}
        )

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.line_category is LineCategory.FULFILLMENT
        assert line.fee_type == "FBA"
        assert line.context is not None
        assert line.context.order_category == "FBA"

    def test_refund_description(self) -> None:
        """Refunded shipments are labelled as refunds."""
        # input
        txn = make_transaction(
            "tx-1", "-8.00", reference_id="S3", transaction_type="Refund"
        )

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.description == "Refund: Shipment S3 - Shipping"
        assert isinstance(line.details, ShippingDetails)
        assert line.details.is_refund

    def test_known_fee_on_shipment(self) -> None:
        """A known fee on a shipment becomes a shipment-fee line."""
        # input
        txn = make_transaction(
            "tx-1", "0.25", fee_type="Per Pick Fee", reference_id="S1"
        )

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.source_table is SourceTable.SHIPMENT_FEES
        assert line.line_category is LineCategory.PICK_FEES
        assert line.details == FeeDetails(
            fee_type="Per Pick Fee",
            reference_id="S1",
            reference_type=ReferenceType.SHIPMENT,
        )

    def test_b2b_fee_on_shipment(self) -> None:
        """B2B fees on shipments are billed under B2B Fees."""
        # input
        txn = make_transaction("tx-1", "1.00", fee_type="B2B - Label Fee")

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.line_category is LineCategory.B2B_FEES

    def test_unknown_fee_on_shipment_warns(self, classifier_logger: MagicMock) -> None:
        """An unrecognised fee on a shipment is kept and logged."""
        # input
        txn = make_transaction("tx-1", "3.00", fee_type="Address Correction")

        # act
        line = classify_transaction(txn, classifier_logger=classifier_logger)

        # assert
        assert line is not None
        assert line.source_table is SourceTable.SHIPMENT_FEES
        assert line.line_category is LineCategory.ADDITIONAL_SERVICES
        assert line.description == "Address Correction"
        classifier_logger.unknown_shipment_fee.assert_called_once_with(txn)


class TestClassifyOtherKinds:
    """Tests for non-shipment rows of the decision table."""

    def test_credit_from_comment(self) -> None:
        """The credit comment becomes the line description and reason."""
        # input
        txn = make_transaction(
            "tx-1",
            "-5.00",
            fee_type="Credit",
            reference_id="S1",
            details={"Comment": "Lost package", "CreditReason": "Claim"},
        )

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.source_table is SourceTable.CREDITS
        assert line.line_category is LineCategory.CREDITS
        assert line.description == "Lost package"
        assert line.fee_type == "Credit"
        assert line.details == CreditDetails(reason="Lost package", reference_id="S1")

    def test_credit_without_reason(self) -> None:
        """A credit with no comment is described as a plain credit."""
        # input
        txn = make_transaction(
            "tx-1", "-5.00", fee_type="Credit", reference_type=ReferenceType.UNKNOWN
        )

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.description == "Credit"

    def test_storage(self) -> None:
        """Storage fees read location and inventory from the FC reference."""
        # input
        txn = make_transaction(
            "tx-1",
            "4.20",
            fee_type="Warehousing Fee",
            reference_type=ReferenceType.FC,
            reference_id="27-99123-Pallet",
            fulfillment_center="Ontario",
        )

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.source_table is SourceTable.STORAGE
        assert line.line_category is LineCategory.STORAGE
        assert line.description == "Pallet - Ontario"
        assert line.fee_type == "Pallet"
        assert line.details == StorageDetails(
            location_type="Pallet",
            fulfillment_center="Ontario",
            inventory_id="99123",
            period_label="Nov 3, 2025 - Nov 3, 2025",
        )

    def test_storage_without_reference_parts(self) -> None:
        """Storage details fall back to the detail map when the reference is short."""
        # input
        txn = make_transaction(
            "tx-1",
            "4.20",
            fee_type="Warehousing Fee",
            reference_type=ReferenceType.FC,
            reference_id="27",
            details={"LocationType": "Bin", "InventoryId": "42"},
        )

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.description == "Bin - FC"
        assert isinstance(line.details, StorageDetails)
        assert line.details.inventory_id == "42"

    def test_return(self) -> None:
        """Return fees are described by their transaction type."""
        # input
        txn = make_transaction(
            "tx-1",
            "3.00",
            fee_type="Return Processing",
            reference_type=ReferenceType.RETURN,
            reference_id="R1",
            transaction_type="Return to sender",
        )

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.source_table is SourceTable.RETURNS
        assert line.line_category is LineCategory.RETURNS
        assert line.description == "Return to sender"
        assert line.details == ReturnDetails(
            return_id="R1", transaction_type="Return to sender"
        )

    def test_placement_fee_on_wro(self) -> None:
        """The placement fee on a WRO is an Additional Services fee."""
        # input
        txn = make_transaction(
            "tx-1",
            "15.00",
            fee_type="Inventory Placement Program Fee",
            reference_type=ReferenceType.WRO,
            reference_id="W1",
        )

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.source_table is SourceTable.SHIPMENT_FEES
        assert line.line_category is LineCategory.ADDITIONAL_SERVICES

    def test_receiving(self) -> None:
        """WRO fees become Receiving lines."""
        # input
        txn = make_transaction(
            "tx-1",
            "35.00",
            fee_type="WRO Receiving Fee",
            reference_type=ReferenceType.WRO,
            reference_id="W1",
        )

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.source_table is SourceTable.RECEIVING
        assert line.line_category is LineCategory.RECEIVING
        assert line.description == "WRO W1 - WRO Receiving Fee"
        assert line.details == ReceivingDetails(
            wro_id="W1", fee_type="WRO Receiving Fee"
        )

    def test_ticket_fee(self) -> None:
        """Known fees on a ticket are Additional Services fees."""
        # input
        txn = make_transaction(
            "tx-1",
            "20.00",
            fee_type="Kitting Fee",
            reference_type=ReferenceType.TICKET_NUMBER,
            reference_id="T1",
        )

        # act
        line = classify_transaction(txn)

        # assert
        assert line is not None
        assert line.source_table is SourceTable.SHIPMENT_FEES
        assert line.line_category is LineCategory.ADDITIONAL_SERVICES

    def test_unclassified_warns_and_keeps_fee(
        self, classifier_logger: MagicMock
    ) -> None:
        """Unrecognised pairings still produce a line and a warning."""
        # input
        txn = make_transaction(
            "tx-1",
            "9.99",
            fee_type="",
            reference_type=ReferenceType.UNKNOWN,
            raw_reference_type="Default",
        )

        # act
        line = classify_transaction(txn, classifier_logger=classifier_logger)

        # assert
        assert line is not None
        assert line.line_category is LineCategory.ADDITIONAL_SERVICES
        assert line.description == "Default"
        assert line.fee_type == "Unknown"
        assert line.details == UnclassifiedDetails(
            reference_type="Default", fee_type="", reference_id=None
        )
        classifier_logger.unclassified.assert_called_once_with(txn)


class TestClassifyTransactions:
    """Tests for batch classification."""

    def test_skips_zero_cost_and_preserves_order(
        self, classifier_logger: MagicMock
    ) -> None:
        """Zero-cost rows are skipped and the rest keep their order."""
        # input
        transactions = [
            make_transaction("tx-1", "5.00", reference_id="S1"),
            make_transaction("tx-2", "0", fee_type="Per Pick Fee"),
            make_transaction("tx-3", "-2.00", fee_type="Credit"),
            make_transaction("tx-4", "0.25", fee_type="Per Pick Fee"),
        ]

        # act
        result = classify_transactions(
            transactions, classifier_logger=classifier_logger
        )

        # assert
        assert [line.id for line in result.line_items] == ["tx-1", "tx-3", "tx-4"]
        assert result.skipped_ids == ["tx-2"]
        classifier_logger.zero_cost_skipped.assert_called_once_with(transactions[1])
        classifier_logger.classification_complete.assert_called_once_with(3, 1)

    def test_is_deterministic(self) -> None:
        """Classifying the same rows twice gives equal results."""
        # input
        transactions = [
            make_transaction("tx-1", "5.00", reference_id="S1"),
            make_transaction("tx-2", "1.00", fee_type="Mystery"),
        ]

        # act
        first = classify_transactions(transactions)
        second = classify_transactions(transactions)

        # assert
        assert first == second

    def test_carries_taxes_and_identity(self) -> None:
        """Lines keep the transaction's taxes, client, date and id."""
        # input
        taxes = (TaxEntry(tax_type="GST", tax_rate=Decimal("5")),)
        txn = make_transaction(
            "tx-1", "5.00", fee_type="Kitting Fee", taxes=taxes, client_id="c-9"
        )

        # act
        result = classify_transactions([txn])

        # assert
        line = result.line_items[0]
        assert line.taxes == taxes
        assert line.client_id == "c-9"
        assert line.transaction_date == INVOICE_DATE
        assert line.source_record_id == "tx-1"

    def test_default_client(self) -> None:
        """Lines are attributed to the transaction's client."""
        # act
        result = classify_transactions([make_transaction("tx-1", "1.00")])

        # assert
        assert result.line_items[0].client_id == CLIENT_ID


class TestHelpers:
    """Tests for classifier helpers."""

    def test_every_kind_has_a_builder(self) -> None:
        """Every line kind, including the catch-all, has a line builder."""
        # act & assert
        assert set(_KIND_BUILDERS) == set(LineKind)

    def test_format_storage_period(self) -> None:
        """Storage periods are labelled with both dates."""
        # act
        label = format_storage_period(date(2025, 11, 1), date(2025, 11, 30))

        # assert
        assert label == "Nov 1, 2025 - Nov 30, 2025"
