from markupkit.billing.credits import (
    ShipmentMarkup,
    credit_matches_shipment,
    inherit_credit_markup,
)
from markupkit.billing.enrichment import (
    InMemoryInvoicedShipmentSource,
    InMemoryShipmentAttributeSource,
    InvoicedShipment,
    InvoicedShipmentSource,
    ShipmentAttributes,
    ShipmentAttributeSource,
)
from markupkit.billing.orchestrator import (
    MarkupOrchestrator,
    MarkupRequest,
    compute_shipment_charges,
)
from markupkit.billing.pipeline import InvoiceCalculator, InvoiceComputation
from markupkit.billing.preview import (
    PreviewMarkup,
    PreviewResult,
    SkipReason,
    compute_preview_markups,
)
from markupkit.billing.reconciliation import (
    ReconciliationAdjustment,
    ReconciliationReport,
    reconcile_line_items,
)
from markupkit.billing.summary import (
    CategoryTotals,
    InvoiceSummary,
    apply_tax_charges,
    generate_summary,
)
from markupkit.billing.verification import (
    IssueType,
    Severity,
    VerificationIssue,
    VerificationReport,
    verify_line_items,
)

__all__ = [
    "CategoryTotals",
    "InMemoryInvoicedShipmentSource",
    "InMemoryShipmentAttributeSource",
    "InvoiceCalculator",
    "InvoiceComputation",
    "InvoiceSummary",
    "InvoicedShipment",
    "InvoicedShipmentSource",
    "IssueType",
    "MarkupOrchestrator",
    "MarkupRequest",
    "PreviewMarkup",
    "PreviewResult",
    "ReconciliationAdjustment",
    "ReconciliationReport",
    "Severity",
    "ShipmentAttributeSource",
    "ShipmentAttributes",
    "ShipmentMarkup",
    "SkipReason",
    "VerificationIssue",
    "VerificationReport",
    "apply_tax_charges",
    "compute_preview_markups",
    "compute_shipment_charges",
    "credit_matches_shipment",
    "generate_summary",
    "inherit_credit_markup",
    "reconcile_line_items",
    "verify_line_items",
]
