"""Rule repository contract and an in-memory implementation."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timezone
from typing import Any, Protocol

from markupkit.models.rules import MarkupRule


class RuleRepository(Protocol):
    """Source of markup rules.

    Implementations return rules that are active, effective on ``as_of``,
    and either global or scoped to ``client_id``, ordered by priority
    (highest first) and then by creation time (oldest first).
    """

    def fetch_active_rules(self, client_id: str, as_of: date) -> list[MarkupRule]: ...


def _naive_utc(value: datetime) -> datetime:
    """Aware timestamps are compared in UTC; naive ones are taken as UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def order_rules(rules: Iterable[MarkupRule]) -> list[MarkupRule]:
    """Sort rules by priority desc, then creation time asc.

    Rules without a creation time sort after dated ones; ties keep their
    given order.
    """
    indexed = list(enumerate(rules))

    def sort_key(item: tuple[int, MarkupRule]) -> tuple[int, int, datetime, int]:
        idx, rule = item
        created = rule.created_at
        return (
            -rule.priority,
            1 if created is None else 0,
            _naive_utc(created) if created is not None else datetime.min,
            idx,
        )

    return [rule for _, rule in sorted(indexed, key=sort_key)]


class InMemoryRuleRepository:
    """Rule repository backed by a list, for tests and offline runs."""

    def __init__(self, rules: Sequence[MarkupRule]) -> None:
        self._rules = list(rules)

    @classmethod
    def from_records(
        cls, records: Iterable[Mapping[str, Any]]
    ) -> InMemoryRuleRepository:
        return cls([MarkupRule.from_record(r) for r in records])

    @property
    def rules(self) -> list[MarkupRule]:
        return list(self._rules)

    def fetch_active_rules(self, client_id: str, as_of: date) -> list[MarkupRule]:
        selected = [
            rule
            for rule in self._rules
            if rule.is_active
            and rule.is_effective_on(as_of)
            and (rule.client_id is None or rule.client_id == client_id)
        ]
        return order_rules(selected)
