"""Cache store interfaces for fx_rates."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass

from fx_rates.ingestion.models import CatalogueRecord, CurrencyPrefs, RateRecord


@dataclass(slots=True)
class PersistenceResult:
    """Represents how many rows were inserted or updated by a write."""

    inserted: int = 0
    updated: int = 0

    @property
    def total(self) -> int:
        """Return the total number of affected rows."""

        return self.inserted + self.updated


class CacheStore(ABC):
    """Common interface implemented by every cache backend.

    Reads may run concurrently. Writes are serialised through ``write_lock``;
    no cross-key transactions are needed. Backends raise
    :class:`fx_rates.errors.StoreError` for driver failures.
    """

    def __init__(self) -> None:
        self.write_lock = threading.RLock()

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create required tables/collections and verify connectivity."""

    @abstractmethod
    def get_rates(self, base: str) -> RateRecord | None:
        """Return the cached rate file for ``base`` if one exists."""

    @abstractmethod
    def upsert_rates(self, record: RateRecord) -> PersistenceResult:
        """Insert or replace the rate file for ``record.base``."""

    @abstractmethod
    def get_catalogue(self) -> CatalogueRecord | None:
        """Return the cached currency catalogue if one exists."""

    @abstractmethod
    def upsert_catalogue(self, record: CatalogueRecord) -> PersistenceResult:
        """Insert or replace the singleton catalogue row."""

    def get_prefs(self) -> CurrencyPrefs | None:
        """Return stored converter preferences."""

        raise NotImplementedError("Converter preferences are not supported by this backend")

    def save_prefs(self, prefs: CurrencyPrefs) -> PersistenceResult:
        """Persist converter preferences."""

        raise NotImplementedError("Converter preferences are not supported by this backend")

    def close(self) -> None:  # pragma: no cover - optional cleanup hook
        """Backends may override to release connections/resources."""

    def __enter__(self) -> "CacheStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["CacheStore", "PersistenceResult"]
