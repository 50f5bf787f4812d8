"""Batch markup application.

Rules are fetched once per client per batch, as of the earliest
transaction date in that client's group, then every line is matched and
priced against that rule set. Shipment lines get the full charge
breakdown; credits that mirror a shipment inherit its rate.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
import math

from markupkit.billing.credits import (
    ShipmentKey,
    ShipmentMarkup,
    find_inherited_markup,
    inherit_credit_markup,
    shipment_markups_from_invoiced,
    shipment_markups_from_lines,
)
from markupkit.billing.enrichment import (
    InvoicedShipment,
    InvoicedShipmentSource,
    ShipmentAttributes,
    ShipmentAttributeSource,
    enrich_context,
    fetch_in_chunks,
    unique_ids,
)
from markupkit.billing.logger import MarkupLogger
from markupkit.core.config import BillingConfig
from markupkit.core.money import ZERO, RoundingMode, round_money
from markupkit.models.line_item import LineItem, MarkupSource, SourceTable
from markupkit.models.rules import MarkupType, TransactionContext
from markupkit.rules.calculator import MarkupResult, calculate_markup
from markupkit.rules.matcher import find_matching_rule
from markupkit.rules.repository import RuleRepository


@dataclass(frozen=True, slots=True)
class MarkupRequest:
    id: str
    base_amount: Decimal
    context: TransactionContext


def line_context(line: LineItem) -> TransactionContext:
    """Context for a line, built from its own fields if classification left none."""
    if line.context is not None:
        return line.context
    return TransactionContext(
        client_id=line.client_id,
        transaction_date=line.transaction_date,
        fee_type=line.fee_type,
        billing_category=line.billing_category,
    )


@dataclass(frozen=True, slots=True)
class ShipmentCharges:
    base_charge: Decimal
    total_charge: Decimal
    insurance_charge: Decimal
    markup_amount: Decimal
    billed_amount: Decimal


def compute_shipment_charges(
    base: Decimal,
    surcharge: Decimal,
    insurance: Decimal,
    result: MarkupResult,
    *,
    rounding: RoundingMode = "half_up",
) -> ShipmentCharges:
    """Apply a shipment's markup to base cost and insurance.

    The surcharge passes through unmarked. ``billed_amount`` is rounded once
    from the exact charge; the display components are each rounded on
    their own and need not sum to it.
    """
    if result.rule is None:
        return ShipmentCharges(
            base_charge=base,
            total_charge=round_money(base + surcharge, rounding),
            insurance_charge=insurance,
            markup_amount=ZERO,
            billed_amount=round_money(base + surcharge + insurance, rounding),
        )

    rate = result.nominal_rate
    if result.markup_type is MarkupType.FIXED:
        base_markup = result.markup_amount
    else:
        base_markup = base * rate
    insurance_markup = insurance * rate

    base_charge = base + base_markup
    insurance_charge = insurance + insurance_markup
    return ShipmentCharges(
        base_charge=round_money(base_charge, rounding),
        total_charge=round_money(base_charge + surcharge, rounding),
        insurance_charge=round_money(insurance_charge, rounding),
        markup_amount=round_money(base_markup + insurance_markup, rounding),
        billed_amount=round_money(
            base_charge + surcharge + insurance_charge, rounding
        ),
    )


def price_shipment(
    line: LineItem, result: MarkupResult, *, rounding: RoundingMode = "half_up"
) -> LineItem:
    charges = compute_shipment_charges(
        line.base_amount,
        line.surcharge,
        line.insurance_cost,
        result,
        rounding=rounding,
    )
    return replace(
        line,
        base_charge=charges.base_charge,
        total_charge=charges.total_charge,
        insurance_charge=charges.insurance_charge,
        markup_applied=charges.markup_amount,
        billed_amount=charges.billed_amount,
        markup_percentage=result.nominal_rate,
        markup_rule_id=result.rule_id,
        markup_type=result.markup_type,
        markup_source=MarkupSource.RULE if result.rule else MarkupSource.NONE,
    )


def price_line(line: LineItem, result: MarkupResult) -> LineItem:
    """Apply a calculator result to a non-shipment line."""
    return replace(
        line,
        markup_applied=result.markup_amount,
        billed_amount=result.billed_amount,
        markup_percentage=result.nominal_rate,
        markup_rule_id=result.rule_id,
        markup_type=result.markup_type,
        markup_source=MarkupSource.RULE if result.rule else MarkupSource.NONE,
    )


class MarkupOrchestrator:
    """Matches and prices line items against each client's active rules."""

    def __init__(
        self,
        rule_repository: RuleRepository,
        *,
        config: BillingConfig | None = None,
        shipment_attributes: ShipmentAttributeSource | None = None,
        invoiced_shipments: InvoicedShipmentSource | None = None,
        markup_logger: MarkupLogger | None = None,
    ) -> None:
        self._rules = rule_repository
        self._config = config or BillingConfig()
        self._shipment_attributes = shipment_attributes
        self._invoiced_shipments = invoiced_shipments
        self._logger = markup_logger or MarkupLogger()

    def calculate_batch_markups(
        self, requests: Sequence[MarkupRequest]
    ) -> dict[str, MarkupResult]:
        """Price each request, keyed by request id."""
        by_client: dict[str, list[MarkupRequest]] = {}
        for request in requests:
            by_client.setdefault(request.context.client_id, []).append(request)

        self._logger.batch_start(len(requests), len(by_client))

        results: dict[str, MarkupResult] = {}
        for client_id, group in by_client.items():
            as_of = min(r.context.transaction_date for r in group)
            rules = self._rules.fetch_active_rules(client_id, as_of)
            self._logger.rules_fetched(client_id, len(rules), as_of)

            matched = 0
            for request in group:
                rule = find_matching_rule(rules, request.context)
                if rule is not None:
                    matched += 1
                results[request.id] = calculate_markup(
                    request.base_amount, rule, rounding=self._config.rounding_mode
                )
            self._logger.batch_complete(client_id, matched, len(group) - matched)
        return results

    def apply_markups(self, line_items: Sequence[LineItem]) -> list[LineItem]:
        """Return priced copies of ``line_items`` in the same order."""
        rounding = self._config.rounding_mode
        enriched = self._enrich(line_items)

        results = self.calculate_batch_markups(
            [
                MarkupRequest(
                    id=line.id,
                    base_amount=line.base_amount,
                    context=line_context(line),
                )
                for line in enriched
            ]
        )

        priced: list[LineItem] = []
        for line in enriched:
            result = results[line.id]
            if line.is_shipment:
                priced.append(price_shipment(line, result, rounding=rounding))
            else:
                priced.append(price_line(line, result))

        markups = shipment_markups_from_lines(priced)
        markups.update(self._invoiced_markups(priced, markups))

        tolerance = self._config.credit_match_tolerance
        final: list[LineItem] = []
        for line in priced:
            shipment = find_inherited_markup(line, markups, tolerance)
            if shipment is None:
                final.append(line)
                continue
            self._logger.credit_inherited(
                line.id,
                line.reference_id or "",
                shipment.markup_percentage,
                shipment.markup_rule_id,
            )
            final.append(inherit_credit_markup(line, shipment, rounding=rounding))
        return final

    def _enrich(self, line_items: Sequence[LineItem]) -> list[LineItem]:
        if self._shipment_attributes is None:
            return list(line_items)

        shipment_ids = unique_ids(
            line.reference_id for line in line_items if line.is_shipment
        )
        if not shipment_ids:
            return list(line_items)

        source = self._shipment_attributes
        chunk_size = self._config.lookup_chunk_size
        self._logger.lookup_chunks(
            "shipment attributes",
            len(shipment_ids),
            math.ceil(len(shipment_ids) / chunk_size),
        )
        attributes: dict[str, ShipmentAttributes] = {}
        for chunk_result in fetch_in_chunks(
            shipment_ids,
            source.fetch_shipment_attributes,
            chunk_size=chunk_size,
            workers=self._config.lookup_workers,
        ):
            attributes.update(chunk_result)

        enriched: list[LineItem] = []
        for line in line_items:
            if line.is_shipment and line.reference_id in attributes:
                context = enrich_context(
                    line_context(line), attributes[line.reference_id]
                )
                enriched.append(replace(line, context=context))
            else:
                enriched.append(line)
        return enriched

    def _invoiced_markups(
        self,
        line_items: Sequence[LineItem],
        known: dict[ShipmentKey, ShipmentMarkup],
    ) -> dict[ShipmentKey, ShipmentMarkup]:
        """Look up shipments referenced by credits but not billed in this batch."""
        if self._invoiced_shipments is None:
            return {}

        missing_by_client: dict[str, list[str | None]] = {}
        for line in line_items:
            if line.source_table is not SourceTable.CREDITS or not line.reference_id:
                continue
            if (line.client_id, line.reference_id) in known:
                continue
            missing_by_client.setdefault(line.client_id, []).append(line.reference_id)

        source = self._invoiced_shipments
        found: dict[ShipmentKey, ShipmentMarkup] = {}
        for client_id, refs in missing_by_client.items():
            shipment_ids = unique_ids(refs)

            def fetch(
                chunk: list[str], client_id: str = client_id
            ) -> list[InvoicedShipment]:
                return source.fetch_invoiced_shipments(client_id, chunk)

            for rows in fetch_in_chunks(
                shipment_ids,
                fetch,
                chunk_size=self._config.lookup_chunk_size,
                workers=self._config.lookup_workers,
            ):
                found.update(shipment_markups_from_invoiced(client_id, rows))
        return found
