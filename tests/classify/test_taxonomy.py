"""Tests for the fee taxonomy decision table."""

from __future__ import annotations

import pytest

from markupkit.classify.taxonomy import (
    ADDITIONAL_SERVICE_FEES,
    LineKind,
    additional_service_category,
    resolve_line_kind,
)
from markupkit.models.line_item import LineCategory
from markupkit.models.transaction import ReferenceType


class TestResolveLineKind:
    """Tests for the ordered (reference type, fee type) decision table."""

    @pytest.mark.parametrize(
        ("reference_type", "fee_type", "expected"),
        [
            (ReferenceType.SHIPMENT, "Credit", LineKind.CREDIT),
            (ReferenceType.FC, "Credit", LineKind.CREDIT),
            (ReferenceType.UNKNOWN, "Credit", LineKind.CREDIT),
            (ReferenceType.SHIPMENT, "Shipping", LineKind.SHIPMENT),
            (ReferenceType.SHIPMENT, "Per Pick Fee", LineKind.SHIPMENT_FEE),
            (
                ReferenceType.SHIPMENT,
                "Address Correction",
                LineKind.SHIPMENT_UNKNOWN_FEE,
            ),
            (ReferenceType.FC, "Warehousing Fee", LineKind.STORAGE),
            (ReferenceType.RETURN, "Return to sender", LineKind.RETURN),
            (
                ReferenceType.WRO,
                "Inventory Placement Program Fee",
                LineKind.PLACEMENT_FEE,
            ),
            (ReferenceType.WRO, "WRO Receiving Fee", LineKind.RECEIVING),
            (ReferenceType.WRO, "Anything", LineKind.RECEIVING),
            (ReferenceType.UNKNOWN, "Receiving Labor", LineKind.RECEIVING),
            (ReferenceType.TICKET_NUMBER, "Kitting Fee", LineKind.TICKET_FEE),
            (ReferenceType.TICKET_NUMBER, "Custom Work", LineKind.UNCLASSIFIED),
            (ReferenceType.UNKNOWN, "Mystery", LineKind.UNCLASSIFIED),
            (ReferenceType.UNKNOWN, "", LineKind.UNCLASSIFIED),
        ],
    )
    def test_decision_table(
        self, reference_type: ReferenceType, fee_type: str, expected: LineKind
    ) -> None:
        """Each (reference type, fee type) pairing resolves to one line kind."""
        # act
        kind = resolve_line_kind(reference_type, fee_type)

        # assert
        assert kind is expected

    def test_placement_fee_outside_wro_is_not_placement(self) -> None:
        """The placement fee only counts as placement on a WRO reference."""
        # act
        kind = resolve_line_kind(
            ReferenceType.SHIPMENT, "Inventory Placement Program Fee"
        )

        # assert
        assert kind is LineKind.SHIPMENT_FEE


class TestAdditionalServiceCategory:
    """Tests for additional_service_category()."""

    @pytest.mark.parametrize(
        ("fee_type", "expected"),
        [
            ("B2B - Each Pick Fee", LineCategory.B2B_FEES),
            ("B2B - Label Fee", LineCategory.B2B_FEES),
            ("Per Pick Fee", LineCategory.PICK_FEES),
            ("Kitting Fee", LineCategory.ADDITIONAL_SERVICES),
            ("Fuel Surcharge", LineCategory.ADDITIONAL_SERVICES),
        ],
    )
    def test_sub_category(self, fee_type: str, expected: LineCategory) -> None:
        """B2B and pick fees split out of Additional Services."""
        # act
        category = additional_service_category(fee_type)

        # assert
        assert category is expected

    def test_known_fee_list(self) -> None:
        """The known fee list holds the placement fee but not shipping."""
        # act & assert
        assert len(ADDITIONAL_SERVICE_FEES) == 21
        assert "Inventory Placement Program Fee" in ADDITIONAL_SERVICE_FEES
        assert "Shipping" not in ADDITIONAL_SERVICE_FEES
