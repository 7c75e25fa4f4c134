"""SQLite cache store implementation."""

from __future__ import annotations

from pathlib import Path

from fx_rates.db import DEFAULT_SQLITE_DB_PATH
from fx_rates.db.base_backend import CacheStore, PersistenceResult
from fx_rates.db.sqlite_manager import SQLiteManager
from fx_rates.ingestion.models import CatalogueRecord, CurrencyPrefs, RateRecord


class SQLiteBackend(CacheStore):
    """Cache store that keeps payloads in the bundled SQLite database."""

    def __init__(
        self,
        db_path: str | Path = DEFAULT_SQLITE_DB_PATH,
        *,
        manager: SQLiteManager | None = None,
    ) -> None:
        super().__init__()
        self.manager = manager or SQLiteManager(db_path)
        self.db_path = Path(self.manager.db_path)

    def ensure_schema(self) -> None:
        # ``SQLiteManager`` creates the schema in its constructor, so nothing else
        # is required here.
        return None

    def get_rates(self, base: str) -> RateRecord | None:
        return self.manager.get_rates(base)

    def upsert_rates(self, record: RateRecord) -> PersistenceResult:
        with self.write_lock:
            return self.manager.upsert_rates(record)

    def get_catalogue(self) -> CatalogueRecord | None:
        return self.manager.get_catalogue()

    def upsert_catalogue(self, record: CatalogueRecord) -> PersistenceResult:
        with self.write_lock:
            return self.manager.upsert_catalogue(record)

    def get_prefs(self) -> CurrencyPrefs | None:
        return self.manager.get_prefs()

    def save_prefs(self, prefs: CurrencyPrefs) -> PersistenceResult:
        with self.write_lock:
            return self.manager.save_prefs(prefs)

    def close(self) -> None:  # pragma: no cover - trivial delegator
        self.manager.close()


__all__ = ["SQLiteBackend"]
