from markupkit.classify.classifier import (
    ClassificationResult,
    ClassifierLogger,
    classify_transaction,
    classify_transactions,
    format_storage_period,
)
from markupkit.classify.taxonomy import (
    ADDITIONAL_SERVICE_FEES,
    LineKind,
    additional_service_category,
    resolve_line_kind,
)

__all__ = [
    "ADDITIONAL_SERVICE_FEES",
    "ClassificationResult",
    "ClassifierLogger",
    "LineKind",
    "additional_service_category",
    "classify_transaction",
    "classify_transactions",
    "format_storage_period",
    "resolve_line_kind",
]
