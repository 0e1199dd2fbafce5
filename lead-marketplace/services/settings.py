"""
Ledger configuration.

Values come from environment variables (a .env file next to the project is
loaded first):

- LEAD_PRICE: flat price charged per lead (default 20.00)
- VENDOR_TYPE_PURCHASE_LIMIT: max purchases of one lead per vendor category (default 5)
- FEEDBACK_REWARD: credit granted for submitting feedback (default 2.00)
- PRICING_MODE: "flat" (default) or "listed" (charge the lead's own price)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

CENT = Decimal("0.01")

PRICING_MODES = ("flat", "listed")


def _parse_money(name: str, raw: str) -> Decimal:
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise ValueError(f"{name} must be a decimal amount, got {raw!r}") from None
    if not value.is_finite() or value <= 0:
        raise ValueError(f"{name} must be a positive amount, got {raw!r}")
    return value.quantize(CENT)


def _parse_limit(name: str, raw: str) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class LedgerSettings:
    lead_price: Decimal = Decimal("20.00")
    vendor_type_purchase_limit: int = 5
    feedback_reward: Decimal = Decimal("2.00")
    pricing_mode: str = "flat"

    def __post_init__(self) -> None:
        if self.pricing_mode not in PRICING_MODES:
            raise ValueError(f"PRICING_MODE must be one of {PRICING_MODES}, got {self.pricing_mode!r}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerSettings":
        """
        Build settings from the environment.

        Args:
            environ: Mapping to read instead of os.environ (tests).

        Raises:
            ValueError: If any variable is present but malformed.
        """

        if environ is None:
            load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")
            environ = os.environ

        defaults = cls()
        return cls(
            lead_price=_parse_money("LEAD_PRICE", environ["LEAD_PRICE"])
            if environ.get("LEAD_PRICE")
            else defaults.lead_price,
            vendor_type_purchase_limit=_parse_limit(
                "VENDOR_TYPE_PURCHASE_LIMIT", environ["VENDOR_TYPE_PURCHASE_LIMIT"]
            )
            if environ.get("VENDOR_TYPE_PURCHASE_LIMIT")
            else defaults.vendor_type_purchase_limit,
            feedback_reward=_parse_money("FEEDBACK_REWARD", environ["FEEDBACK_REWARD"])
            if environ.get("FEEDBACK_REWARD")
            else defaults.feedback_reward,
            pricing_mode=(environ.get("PRICING_MODE") or defaults.pricing_mode).strip().lower(),
        )


__all__ = ["LedgerSettings", "PRICING_MODES"]
