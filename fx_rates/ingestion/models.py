"""Data models shared across ingestion, refresh and persistence modules."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from fx_rates.utils.dates import as_utc, utc_now

CATALOGUE_KEY = 0
PREFS_KEY = 1

_CODE_PATTERN = re.compile(r"^[a-z0-9]{3,4}$")

ParsedRates = dict[str, float]
ParsedCatalogue = list[tuple[str, str]]


def normalise_base(base: str) -> str:
    """Canonicalise a currency code for storage and lookup (``"USD"`` -> ``"usd"``)."""

    cleaned = (base or "").strip().lower()
    if not _CODE_PATTERN.match(cleaned):
        raise ValueError(f"Invalid currency code: {base!r}")
    return cleaned


class ResourceKind(str, Enum):
    """The two files published by the currency dataset."""

    RATES = "rates"
    CATALOGUE = "catalogue"


class RefreshOutcome(str, Enum):
    """Terminal state reached by one refresh pipeline run."""

    IDLE = "idle"
    OFFLINE = "offline"
    REFRESHED = "refreshed"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class RateRecord:
    """Raw rate file for a single base currency plus the time it was fetched."""

    base: str
    payload: str
    fetched_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.base = normalise_base(self.base)
        self.fetched_at = as_utc(self.fetched_at)


@dataclass(slots=True)
class CatalogueRecord:
    """Raw currency catalogue (code -> title) plus the time it was fetched."""

    payload: str
    fetched_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.fetched_at = as_utc(self.fetched_at)


@dataclass(slots=True)
class CurrencyPrefs:
    """Last state of the two-field currency converter."""

    active_field: int = 1
    currency1: str = "USD"
    currency2: str = "EUR"
    amount1: str = ""
    amount2: str = ""

    def __post_init__(self) -> None:
        if self.active_field not in (1, 2):
            raise ValueError("active_field must be 1 or 2")


__all__ = [
    "CATALOGUE_KEY",
    "PREFS_KEY",
    "ParsedRates",
    "ParsedCatalogue",
    "normalise_base",
    "ResourceKind",
    "RefreshOutcome",
    "RateRecord",
    "CatalogueRecord",
    "CurrencyPrefs",
]
