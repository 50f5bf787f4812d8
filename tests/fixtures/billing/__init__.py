"""Builders for rules, transactions and line items used across tests."""

from tests.fixtures.billing.factories import (
    CLIENT_ID,
    INVOICE_DATE,
    make_context,
    make_line,
    make_rule,
    make_transaction,
)

__all__ = [
    "CLIENT_ID",
    "INVOICE_DATE",
    "make_context",
    "make_line",
    "make_rule",
    "make_transaction",
]
