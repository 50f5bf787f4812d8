"""Logging for the billing pipeline.

Keeps log formatting out of the markup, reconciliation and verification
code paths.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

import loguru
from loguru import logger

if TYPE_CHECKING:
    from markupkit.billing.reconciliation import ReconciliationAdjustment
    from markupkit.billing.summary import InvoiceSummary
    from markupkit.billing.verification import VerificationReport


class MarkupLogger:
    """Handles all logging for batch markup application."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        """Initialize logger.

        Args:
            logger_instance: Logger instance to use (defaults to loguru.logger)
        """
        self._logger = logger_instance

    def batch_start(self, transaction_count: int, client_count: int) -> None:
        self._logger.bind(transactions=transaction_count, clients=client_count).info(
            "Calculating markups for {} transactions across {} clients",
            transaction_count,
            client_count,
        )

    def rules_fetched(self, client_id: str, rule_count: int, as_of: object) -> None:
        self._logger.bind(client_id=client_id, rules=rule_count).info(
            "Fetched {} active rules for client {} as of {}",
            rule_count,
            client_id,
            as_of,
        )

    def batch_complete(self, client_id: str, matched: int, unmatched: int) -> None:
        self._logger.bind(
            client_id=client_id, matched=matched, unmatched=unmatched
        ).info(
            "Markups for client {}: {} matched a rule, {} passed through at cost",
            client_id,
            matched,
            unmatched,
        )

    def lookup_chunks(self, source: str, id_count: int, chunk_count: int) -> None:
        self._logger.bind(source=source, ids=id_count, chunks=chunk_count).debug(
            "Looking up {} ids from {} in {} chunks", id_count, source, chunk_count
        )

    def credit_inherited(
        self,
        credit_id: str,
        shipment_id: str,
        rate: Decimal,
        rule_id: str | None,
    ) -> None:
        self._logger.bind(
            credit_id=credit_id,
            shipment_id=shipment_id,
            rate=str(rate),
            rule_id=rule_id,
        ).debug(
            "Credit {} inherits markup {} from shipment {} (rule {})",
            credit_id,
            rate,
            shipment_id,
            rule_id,
        )


class ReconciliationLogger:
    """Handles all logging for the rounding reconciliation pass."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def adjustment(self, adjustment: ReconciliationAdjustment) -> None:
        self._logger.bind(
            line_id=adjustment.line_id,
            group=adjustment.group.value,
            rate=str(adjustment.markup_rate),
            diff=str(adjustment.diff),
        ).debug(
            "Adjusted line {} by {} ({} group at {})",
            adjustment.line_id,
            adjustment.diff,
            adjustment.group.value,
            adjustment.markup_rate,
        )

    def alert(self, adjustment: ReconciliationAdjustment, threshold: Decimal) -> None:
        self._logger.bind(
            line_id=adjustment.line_id,
            group=adjustment.group.value,
            diff=str(adjustment.diff),
            threshold=str(threshold),
        ).warning(
            "Reconciliation diff {} exceeds {} for {} group at {} (expected {}, "
            "line sum {})",
            adjustment.diff,
            threshold,
            adjustment.group.value,
            adjustment.markup_rate,
            adjustment.expected_total,
            adjustment.actual_total,
        )

    def summary(self, group_count: int, adjusted_count: int) -> None:
        self._logger.bind(groups=group_count, adjusted=adjusted_count).info(
            "Reconciliation checked {} groups, adjusted {}",
            group_count,
            adjusted_count,
        )


class VerificationLogger:
    """Handles all logging for invoice verification."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def report(self, report: VerificationReport) -> None:
        log = self._logger.bind(
            checked=report.lines_checked,
            errors=report.error_count,
            warnings=report.warning_count,
        )
        if report.passed:
            log.info(
                "Invoice verification passed: {} lines checked, {} warnings",
                report.lines_checked,
                report.warning_count,
            )
        else:
            log.warning(
                "Invoice verification failed: {} errors, {} warnings in {} lines",
                report.error_count,
                report.warning_count,
                report.lines_checked,
            )


class PreviewLogger:
    """Handles all logging for provisional markup previews."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def complete(self, computed: int, skipped: int) -> None:
        self._logger.bind(computed=computed, skipped=skipped).info(
            "Preview markups computed for {} transactions ({} skipped)",
            computed,
            skipped,
        )


class PipelineLogger:
    """Handles all logging for the end-to-end invoice computation."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def start(self, transaction_count: int) -> None:
        self._logger.bind(transactions=transaction_count).info(
            "Computing invoice for {} transactions", transaction_count
        )

    def complete(self, summary: InvoiceSummary, adjusted: int) -> None:
        self._logger.bind(
            lines=summary.line_count,
            total=str(summary.total_amount),
            adjusted=adjusted,
        ).info(
            "Invoice computed: {} lines, subtotal {}, markup {}, total {}",
            summary.line_count,
            summary.subtotal,
            summary.total_markup,
            summary.total_amount,
        )
