"""End-to-end tests for invoice computation."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

from markupkit.billing.logger import PipelineLogger
from markupkit.billing.pipeline import InvoiceCalculator
from markupkit.core.config import BillingConfig
from markupkit.models.line_item import LineCategory, MarkupSource
from markupkit.models.rules import BillingCategory
from markupkit.models.transaction import TaxEntry
from markupkit.rules.repository import InMemoryRuleRepository
from tests.fixtures.billing import make_rule, make_transaction

RULES = [
    make_rule(
        "kit-18",
        "18",
        billing_category=BillingCategory.SHIPMENT_FEES,
        fee_type="Kitting Fee",
    ),
    make_rule(
        "ship-20",
        "20",
        billing_category=BillingCategory.SHIPMENTS,
        fee_type="Standard",
    ),
    make_rule(
        "credit-5",
        "5",
        billing_category=BillingCategory.CREDITS,
        fee_type="Credit",
    ),
]


def calculator(**kwargs) -> InvoiceCalculator:
    return InvoiceCalculator(InMemoryRuleRepository(RULES), **kwargs)


def boundary_transactions():
    return [
        make_transaction("k1", "10.005", fee_type="Kitting Fee"),
        make_transaction("k2", "10.005", fee_type="Kitting Fee"),
        make_transaction("k3", "10.00", fee_type="Kitting Fee"),
    ]


class TestInvoiceCalculator:
    """Tests for InvoiceCalculator.compute()."""

    def test_line_sum_matches_formula_on_totals(self) -> None:
        """Reconciled lines sum to the marked-up total of their costs."""
        # act
        computation = calculator().compute(boundary_transactions())

        # assert
        billed = [line.billed_amount for line in computation.line_items]
        assert billed == [Decimal("11.80"), Decimal("11.81"), Decimal("11.80")]
        totals = computation.summary.by_category[LineCategory.ADDITIONAL_SERVICES]
        assert totals.total == Decimal("35.41")
        assert totals.markup == Decimal("5.39")
        assert totals.count == 3
        assert computation.summary.total_amount == Decimal("35.41")
        assert len(computation.reconciliation.adjustments) == 1

    def test_every_non_zero_transaction_yields_one_line(self) -> None:
        """Each non-zero transaction becomes one line; zero-cost ones are skipped."""
        # input
        transactions = [
            *boundary_transactions(),
            make_transaction("z1", "0", fee_type="Kitting Fee"),
            make_transaction("u1", "2.00", fee_type="Mystery Fee"),
            make_transaction("s1", "50.00", reference_id="S1"),
        ]

        # act
        computation = calculator().compute(transactions)

        # assert
        assert [line.id for line in computation.line_items] == [
            "k1",
            "k2",
            "k3",
            "u1",
            "s1",
        ]
        assert computation.skipped_ids == ("z1",)
        assert computation.summary.line_count == 5

    def test_credit_inherits_shipment_markup(self) -> None:
        """A credit for a shipment in the same run cancels it exactly."""
        # input
        transactions = [
            make_transaction("s1", "50.00", reference_id="S1"),
            make_transaction("c1", "-50.00", fee_type="Credit", reference_id="S1"),
        ]

        # act
        computation = calculator().compute(transactions)

        # assert
        shipment, credit = computation.line_items
        assert shipment.billed_amount == Decimal("60.00")
        assert credit.billed_amount == Decimal("-60.00")
        assert credit.markup_source is MarkupSource.INHERITED
        assert computation.summary.total_amount == Decimal("0.00")

    def test_taxes_follow_reconciled_amount(self) -> None:
        """Taxes are charged on the final billed amount."""
        # input
        taxes = (TaxEntry(tax_type="GST", tax_rate=Decimal("5")),)
        transactions = [
            make_transaction("k1", "100.00", fee_type="Kitting Fee", taxes=taxes)
        ]

        # act
        computation = calculator().compute(transactions)

        # assert
        (line,) = computation.line_items
        assert line.billed_amount == Decimal("118.00")
        assert line.tax_amount == Decimal("5.90")
        assert computation.summary.amount_due == Decimal("123.90")

    def test_is_deterministic(self) -> None:
        """Computing the same transactions twice gives identical results."""
        # input
        transactions = [
            *boundary_transactions(),
            make_transaction("s1", "50.00", reference_id="S1"),
            make_transaction("c1", "-50.00", fee_type="Credit", reference_id="S1"),
        ]
        invoice_calculator = calculator()

        # act
        first = invoice_calculator.compute(transactions)
        second = invoice_calculator.compute(transactions)

        # assert
        assert first == second

    def test_logs_start_and_completion(self) -> None:
        """The pipeline logs the input size and the final summary."""
        # input
        pipeline_logger = MagicMock(spec=PipelineLogger)

        # act
        computation = calculator(pipeline_logger=pipeline_logger).compute(
            boundary_transactions()
        )

        # assert
        pipeline_logger.start.assert_called_once_with(3)
        pipeline_logger.complete.assert_called_once_with(computation.summary, 1)

    def test_uses_given_config(self) -> None:
        """An explicit config is used instead of the environment."""
        # input
        config = BillingConfig(rounding_mode="half_even")

        # act
        invoice_calculator = calculator(config=config)

        # assert
        assert invoice_calculator.config is config
