"""MongoDB cache store."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fx_rates.db.base_backend import CacheStore, PersistenceResult
from fx_rates.errors import StoreError
from fx_rates.ingestion.models import (
    CATALOGUE_KEY,
    PREFS_KEY,
    CatalogueRecord,
    CurrencyPrefs,
    RateRecord,
    normalise_base,
)
from fx_rates.utils.dates import as_utc
from fx_rates.utils.logger import get_logger

try:  # pragma: no cover - optional dependency
    from pymongo import MongoClient
    from pymongo.collection import Collection
    from pymongo.errors import PyMongoError
except ModuleNotFoundError:  # pragma: no cover - handled dynamically
    MongoClient = None  # type: ignore[assignment]
    Collection = Any  # type: ignore[assignment,misc]
    PyMongoError = Exception  # type: ignore[assignment,misc]

LOGGER = get_logger(__name__)


class MongoBackend(CacheStore):
    """Cache store that keeps payload documents inside MongoDB."""

    def __init__(self, url: str, *, database: str | None = None) -> None:
        if MongoClient is None:  # pragma: no cover - defensive
            raise ModuleNotFoundError("pymongo is required for MongoDB backends")
        super().__init__()
        self.url = url
        self._client = MongoClient(url)
        db = self._client.get_default_database() if database is None else self._client[database]
        if db is None:
            raise ValueError("MongoDB connection URI must include a database name")
        self._rates: Collection = db["currency_rates"]
        self._list: Collection = db["currency_list"]
        self._prefs: Collection = db["currency_prefs"]

    def ensure_schema(self) -> None:
        try:
            LOGGER.info("Ensuring MongoDB currency cache collections exist")
            self._client.admin.command("ping")
        except PyMongoError as exc:  # pragma: no cover - error path
            raise StoreError(f"Failed to reach MongoDB: {exc}") from exc

    def _find(self, collection: Collection, key: Any) -> dict[str, Any] | None:
        try:
            return collection.find_one({"_id": key})
        except PyMongoError as exc:
            raise StoreError(f"MongoDB read failed: {exc}") from exc

    def _upsert(self, collection: Collection, key: Any, doc: dict[str, Any]) -> PersistenceResult:
        result = PersistenceResult()
        with self.write_lock:
            try:
                outcome = collection.update_one({"_id": key}, {"$set": doc}, upsert=True)
            except PyMongoError as exc:
                raise StoreError(f"MongoDB write failed: {exc}") from exc
        if outcome.upserted_id is not None:
            result.inserted += 1
        else:
            result.updated += 1
        return result

    def get_rates(self, base: str) -> RateRecord | None:
        doc = self._find(self._rates, normalise_base(base))
        if doc is None:
            return None
        return RateRecord(base=doc["_id"], payload=doc["payload"], fetched_at=_as_datetime(doc["fetched_at"]))

    def upsert_rates(self, record: RateRecord) -> PersistenceResult:
        doc = {"payload": record.payload, "fetched_at": as_utc(record.fetched_at)}
        return self._upsert(self._rates, record.base, doc)

    def get_catalogue(self) -> CatalogueRecord | None:
        doc = self._find(self._list, CATALOGUE_KEY)
        if doc is None:
            return None
        return CatalogueRecord(payload=doc["payload"], fetched_at=_as_datetime(doc["fetched_at"]))

    def upsert_catalogue(self, record: CatalogueRecord) -> PersistenceResult:
        doc = {"payload": record.payload, "fetched_at": as_utc(record.fetched_at)}
        return self._upsert(self._list, CATALOGUE_KEY, doc)

    def get_prefs(self) -> CurrencyPrefs | None:
        doc = self._find(self._prefs, PREFS_KEY)
        if doc is None:
            return None
        return CurrencyPrefs(
            active_field=int(doc.get("active_field", 1)),
            currency1=doc.get("currency1", "USD"),
            currency2=doc.get("currency2", "EUR"),
            amount1=doc.get("amount1", ""),
            amount2=doc.get("amount2", ""),
        )

    def save_prefs(self, prefs: CurrencyPrefs) -> PersistenceResult:
        doc = {
            "active_field": prefs.active_field,
            "currency1": prefs.currency1,
            "currency2": prefs.currency2,
            "amount1": prefs.amount1,
            "amount2": prefs.amount2,
        }
        return self._upsert(self._prefs, PREFS_KEY, doc)

    def close(self) -> None:  # pragma: no cover - trivial cleanup
        self._client.close()


def _as_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value)))


__all__ = ["MongoBackend"]
