"""Shipment lookups used to fill in rule-matching context.

Lookups are read-only and order independent, so they are issued in
fixed-size chunks and may run on a thread pool. Results are merged in
chunk order so the outcome never depends on scheduling.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
import concurrent.futures
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Protocol, TypeVar

from markupkit.models.rules import TransactionContext

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ShipmentAttributes:
    """Shipment and order attributes that rules can be conditioned on."""

    shipment_id: str
    ship_option_id: str | None = None
    weight_oz: Decimal | None = None
    state: str | None = None
    country: str | None = None
    order_type: str | None = None


@dataclass(frozen=True, slots=True)
class InvoicedShipment:
    """A shipment charge as recorded by an earlier invoicing run.

    ``markup_percentage`` is the stored fraction (0.18), or None when the
    shipment has not been invoiced with a markup yet.
    """

    shipment_id: str
    base_amount: Decimal
    markup_percentage: Decimal | None = None
    markup_rule_id: str | None = None
    invoiced: bool = False


class ShipmentAttributeSource(Protocol):
    def fetch_shipment_attributes(
        self, shipment_ids: Sequence[str]
    ) -> Mapping[str, ShipmentAttributes]: ...


class InvoicedShipmentSource(Protocol):
    def fetch_invoiced_shipments(
        self, client_id: str, shipment_ids: Sequence[str]
    ) -> list[InvoicedShipment]: ...


class InMemoryShipmentAttributeSource:
    def __init__(self, attributes: Iterable[ShipmentAttributes]) -> None:
        self._by_id = {a.shipment_id: a for a in attributes}

    def fetch_shipment_attributes(
        self, shipment_ids: Sequence[str]
    ) -> Mapping[str, ShipmentAttributes]:
        return {sid: self._by_id[sid] for sid in shipment_ids if sid in self._by_id}


class InMemoryInvoicedShipmentSource:
    def __init__(self, shipments: Mapping[str, Iterable[InvoicedShipment]]) -> None:
        """``shipments`` maps client id to that client's invoiced shipments."""
        self._by_client = {
            client_id: {s.shipment_id: s for s in rows}
            for client_id, rows in shipments.items()
        }

    def fetch_invoiced_shipments(
        self, client_id: str, shipment_ids: Sequence[str]
    ) -> list[InvoicedShipment]:
        rows = self._by_client.get(client_id, {})
        return [rows[sid] for sid in shipment_ids if sid in rows]


def chunked(ids: Sequence[str], size: int) -> list[list[str]]:
    if size <= 0:
        msg = f"Chunk size must be positive, got {size}"
        raise ValueError(msg)
    return [list(ids[i : i + size]) for i in range(0, len(ids), size)]


def fetch_in_chunks(
    ids: Sequence[str],
    fetch: Callable[[list[str]], T],
    *,
    chunk_size: int,
    workers: int = 1,
) -> list[T]:
    """Call ``fetch`` once per chunk of ``ids`` and return results in chunk order.

    Exceptions raised by ``fetch`` propagate to the caller.
    """
    chunks = chunked(ids, chunk_size)
    if workers <= 1 or len(chunks) <= 1:
        return [fetch(chunk) for chunk in chunks]
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(fetch, chunks))


def unique_ids(ids: Iterable[str | None]) -> list[str]:
    """De-duplicate ids, dropping empty ones, preserving first-seen order."""
    return list(dict.fromkeys(i for i in ids if i))


def enrich_context(
    context: TransactionContext, attributes: ShipmentAttributes | None
) -> TransactionContext:
    """Fill context fields the raw transaction does not carry.

    Values already present on the context win over looked-up ones.
    """
    if attributes is None:
        return context
    return replace(
        context,
        ship_option_id=context.ship_option_id or attributes.ship_option_id,
        weight_oz=(
            context.weight_oz if context.weight_oz is not None else attributes.weight_oz
        ),
        state=context.state or attributes.state,
        country=context.country or attributes.country,
        order_category=context.order_category or attributes.order_type,
    )
