from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from markupkit.billing.enrichment import InvoicedShipmentSource, ShipmentAttributeSource
from markupkit.billing.logger import MarkupLogger, PipelineLogger, ReconciliationLogger
from markupkit.billing.orchestrator import MarkupOrchestrator
from markupkit.billing.reconciliation import ReconciliationReport, reconcile_line_items
from markupkit.billing.summary import (
    InvoiceSummary,
    apply_tax_charges,
    generate_summary,
)
from markupkit.classify.classifier import ClassifierLogger, classify_transactions
from markupkit.core.config import BillingConfig
from markupkit.models.line_item import LineItem
from markupkit.models.transaction import Transaction
from markupkit.rules.repository import RuleRepository


@dataclass(frozen=True, slots=True)
class InvoiceComputation:
    line_items: tuple[LineItem, ...]
    summary: InvoiceSummary
    reconciliation: ReconciliationReport
    skipped_ids: tuple[str, ...]


class InvoiceCalculator:
    """Computes invoice lines and totals from raw transactions.

    Stages run in a fixed order: classify, apply markups (with enrichment
    and credit inheritance), reconcile rounding, charge taxes, summarize.
    The calculator holds no per-run state, so the same inputs and rules
    always produce the same output.
    """

    def __init__(
        self,
        rule_repository: RuleRepository,
        *,
        config: BillingConfig | None = None,
        shipment_attributes: ShipmentAttributeSource | None = None,
        invoiced_shipments: InvoicedShipmentSource | None = None,
        classifier_logger: ClassifierLogger | None = None,
        markup_logger: MarkupLogger | None = None,
        reconciliation_logger: ReconciliationLogger | None = None,
        pipeline_logger: PipelineLogger | None = None,
    ) -> None:
        self._config = config or BillingConfig()
        self._orchestrator = MarkupOrchestrator(
            rule_repository,
            config=self._config,
            shipment_attributes=shipment_attributes,
            invoiced_shipments=invoiced_shipments,
            markup_logger=markup_logger,
        )
        self._classifier_logger = classifier_logger or ClassifierLogger()
        self._reconciliation_logger = reconciliation_logger or ReconciliationLogger()
        self._logger = pipeline_logger or PipelineLogger()

    @property
    def config(self) -> BillingConfig:
        return self._config

    def compute(self, transactions: Iterable[Transaction]) -> InvoiceComputation:
        transaction_list = list(transactions)
        self._logger.start(len(transaction_list))
        rounding = self._config.rounding_mode

        classified = classify_transactions(
            transaction_list, classifier_logger=self._classifier_logger
        )
        priced = self._orchestrator.apply_markups(classified.line_items)
        reconciled = reconcile_line_items(
            priced,
            config=self._config,
            reconciliation_logger=self._reconciliation_logger,
        )
        taxed = apply_tax_charges(reconciled.line_items, rounding=rounding)
        summary = generate_summary(taxed, rounding=rounding)

        self._logger.complete(summary, len(reconciled.report.adjustments))
        return InvoiceComputation(
            line_items=tuple(taxed),
            summary=summary,
            reconciliation=reconciled.report,
            skipped_ids=tuple(classified.skipped_ids),
        )
