from markupkit.models.line_item import (
    CreditDetails,
    FeeDetails,
    LineCategory,
    LineDetails,
    LineItem,
    MarkupSource,
    ReceivingDetails,
    ReturnDetails,
    ShippingDetails,
    SourceTable,
    StorageDetails,
    TaxCharge,
    UnclassifiedDetails,
)
from markupkit.models.rules import (
    BillingCategory,
    MarkupConditions,
    MarkupRule,
    MarkupType,
    TransactionContext,
)
from markupkit.models.transaction import ReferenceType, TaxEntry, Transaction

__all__ = [
    "BillingCategory",
    "CreditDetails",
    "FeeDetails",
    "LineCategory",
    "LineDetails",
    "LineItem",
    "MarkupConditions",
    "MarkupRule",
    "MarkupSource",
    "MarkupType",
    "ReceivingDetails",
    "ReferenceType",
    "ReturnDetails",
    "ShippingDetails",
    "SourceTable",
    "StorageDetails",
    "TaxCharge",
    "TaxEntry",
    "Transaction",
    "TransactionContext",
    "UnclassifiedDetails",
]
