from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import os

from dotenv import load_dotenv

from markupkit.core.money import RoundingMode


@dataclass(frozen=True, slots=True)
class BillingConfig:
    """Tunable constants for markup computation, loaded once per process."""

    rounding_mode: RoundingMode = "half_up"
    credit_match_tolerance: Decimal = Decimal("0.01")
    reconciliation_tolerance: Decimal = Decimal("0.005")
    reconciliation_alert_threshold: Decimal = Decimal("0.05")
    verification_tolerance: Decimal = Decimal("0.02")
    lookup_chunk_size: int = 500
    lookup_workers: int = 1

    def __post_init__(self) -> None:
        if self.rounding_mode not in {"half_up", "half_even"}:
            msg = f"Unsupported rounding mode: {self.rounding_mode}"
            raise ValueError(msg)
        if self.lookup_chunk_size <= 0:
            msg = "lookup_chunk_size must be positive"
            raise ValueError(msg)
        if self.lookup_workers <= 0:
            msg = "lookup_workers must be positive"
            raise ValueError(msg)
        for name in (
            "credit_match_tolerance",
            "reconciliation_tolerance",
            "reconciliation_alert_threshold",
            "verification_tolerance",
        ):
            if getattr(self, name) < 0:
                msg = f"{name} must not be negative"
                raise ValueError(msg)


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be a decimal number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def load_billing_config_from_env(*, use_dotenv: bool = True) -> BillingConfig:
    """Load billing config from MARKUPKIT_* env vars and validate it."""
    if use_dotenv:
        load_dotenv(override=False)

    defaults = BillingConfig()

    rounding_mode = (
        os.environ.get("MARKUPKIT_ROUNDING_MODE", defaults.rounding_mode)
        .strip()
        .lower()
    )
    if rounding_mode not in {"half_up", "half_even"}:
        raise ValueError("MARKUPKIT_ROUNDING_MODE must be one of: half_up, half_even")

    return BillingConfig(
        rounding_mode=rounding_mode,  # type: ignore[arg-type]
        credit_match_tolerance=_env_decimal(
            "MARKUPKIT_CREDIT_MATCH_TOLERANCE", defaults.credit_match_tolerance
        ),
        reconciliation_tolerance=_env_decimal(
            "MARKUPKIT_RECONCILIATION_TOLERANCE", defaults.reconciliation_tolerance
        ),
        reconciliation_alert_threshold=_env_decimal(
            "MARKUPKIT_RECONCILIATION_ALERT_THRESHOLD",
            defaults.reconciliation_alert_threshold,
        ),
        verification_tolerance=_env_decimal(
            "MARKUPKIT_VERIFICATION_TOLERANCE", defaults.verification_tolerance
        ),
        lookup_chunk_size=_env_int(
            "MARKUPKIT_LOOKUP_CHUNK_SIZE", defaults.lookup_chunk_size
        ),
        lookup_workers=_env_int("MARKUPKIT_LOOKUP_WORKERS", defaults.lookup_workers),
    )
