"""Shared logic for SQL (Postgres/MySQL) cache stores."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

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

LOGGER = get_logger(__name__)

SCHEMA_SQL_RATES = """
CREATE TABLE IF NOT EXISTS currency_rates (
    base VARCHAR(8) NOT NULL,
    payload TEXT NOT NULL,
    fetched_at TIMESTAMP NOT NULL,
    PRIMARY KEY(base)
);
"""

SCHEMA_SQL_LIST = """
CREATE TABLE IF NOT EXISTS currency_list (
    id INTEGER NOT NULL,
    payload TEXT NOT NULL,
    fetched_at TIMESTAMP NOT NULL,
    PRIMARY KEY(id)
);
"""

SCHEMA_SQL_PREFS = """
CREATE TABLE IF NOT EXISTS currency_prefs (
    id INTEGER NOT NULL,
    active_field INTEGER NOT NULL,
    currency1 VARCHAR(8) NOT NULL,
    currency2 VARCHAR(8) NOT NULL,
    amount1 VARCHAR(64) NOT NULL,
    amount2 VARCHAR(64) NOT NULL,
    PRIMARY KEY(id)
);
"""

SELECT_RATES_SQL = "SELECT base, payload, fetched_at FROM currency_rates WHERE base = :base"
DELETE_RATES_SQL = "DELETE FROM currency_rates WHERE base = :base"
INSERT_RATES_SQL = """
INSERT INTO currency_rates(base, payload, fetched_at)
VALUES(:base, :payload, :fetched_at)
"""

SELECT_LIST_SQL = "SELECT payload, fetched_at FROM currency_list WHERE id = :id"
DELETE_LIST_SQL = "DELETE FROM currency_list WHERE id = :id"
INSERT_LIST_SQL = """
INSERT INTO currency_list(id, payload, fetched_at)
VALUES(:id, :payload, :fetched_at)
"""

SELECT_PREFS_SQL = """
SELECT active_field, currency1, currency2, amount1, amount2
FROM currency_prefs WHERE id = :id
"""
DELETE_PREFS_SQL = "DELETE FROM currency_prefs WHERE id = :id"
INSERT_PREFS_SQL = """
INSERT INTO currency_prefs(id, active_field, currency1, currency2, amount1, amount2)
VALUES(:id, :active_field, :currency1, :currency2, :amount1, :amount2)
"""


class RelationalBackend(CacheStore):
    """Base class that encapsulates SQLAlchemy Core interactions."""

    def __init__(self, url: str) -> None:
        super().__init__()
        self.url = url
        self._engine_instance: Engine | None = None
        self._schema_ready = False

    def _get_engine(self) -> Engine:
        if self._engine_instance is None:
            self._engine_instance = create_engine(self.url, future=True)
        return self._engine_instance

    def _ready_engine(self) -> Engine:
        if not self._schema_ready:
            self.ensure_schema()
        return self._get_engine()

    def ensure_schema(self) -> None:
        try:
            with self._get_engine().begin() as connection:
                LOGGER.info("Ensuring currency cache schema exists")
                connection.execute(text("SELECT 1"))
                connection.execute(text(SCHEMA_SQL_RATES))
                connection.execute(text(SCHEMA_SQL_LIST))
                connection.execute(text(SCHEMA_SQL_PREFS))
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to ensure cache schema: {exc}") from exc
        self._schema_ready = True

    def _fetch_one(self, query: str, params: dict[str, Any]) -> Any:
        try:
            with self._ready_engine().connect() as connection:
                return connection.execute(text(query), params).mappings().first()
        except SQLAlchemyError as exc:
            raise StoreError(f"Cache read failed: {exc}") from exc

    def _replace(self, delete_sql: str, insert_sql: str, params: dict[str, Any]) -> PersistenceResult:
        result = PersistenceResult()
        with self.write_lock:
            try:
                with self._ready_engine().begin() as connection:
                    deleted = connection.execute(text(delete_sql), params).rowcount
                    connection.execute(text(insert_sql), params)
            except SQLAlchemyError as exc:
                raise StoreError(f"Cache write failed: {exc}") from exc
        if deleted:
            result.updated += 1
        else:
            result.inserted += 1
        return result

    def get_rates(self, base: str) -> RateRecord | None:
        row = self._fetch_one(SELECT_RATES_SQL, {"base": normalise_base(base)})
        if row is None:
            return None
        return RateRecord(
            base=row["base"],
            payload=row["payload"],
            fetched_at=_normalise_timestamp(row["fetched_at"]),
        )

    def upsert_rates(self, record: RateRecord) -> PersistenceResult:
        params = {
            "base": record.base,
            "payload": record.payload,
            "fetched_at": as_utc(record.fetched_at).replace(tzinfo=None),
        }
        return self._replace(DELETE_RATES_SQL, INSERT_RATES_SQL, params)

    def get_catalogue(self) -> CatalogueRecord | None:
        row = self._fetch_one(SELECT_LIST_SQL, {"id": CATALOGUE_KEY})
        if row is None:
            return None
        return CatalogueRecord(
            payload=row["payload"],
            fetched_at=_normalise_timestamp(row["fetched_at"]),
        )

    def upsert_catalogue(self, record: CatalogueRecord) -> PersistenceResult:
        params = {
            "id": CATALOGUE_KEY,
            "payload": record.payload,
            "fetched_at": as_utc(record.fetched_at).replace(tzinfo=None),
        }
        return self._replace(DELETE_LIST_SQL, INSERT_LIST_SQL, params)

    def get_prefs(self) -> CurrencyPrefs | None:
        row = self._fetch_one(SELECT_PREFS_SQL, {"id": PREFS_KEY})
        if row is None:
            return None
        return CurrencyPrefs(
            active_field=int(row["active_field"]),
            currency1=row["currency1"],
            currency2=row["currency2"],
            amount1=row["amount1"],
            amount2=row["amount2"],
        )

    def save_prefs(self, prefs: CurrencyPrefs) -> PersistenceResult:
        params = {
            "id": PREFS_KEY,
            "active_field": prefs.active_field,
            "currency1": prefs.currency1,
            "currency2": prefs.currency2,
            "amount1": prefs.amount1,
            "amount2": prefs.amount2,
        }
        return self._replace(DELETE_PREFS_SQL, INSERT_PREFS_SQL, params)

    def close(self) -> None:  # pragma: no cover - trivial resource cleanup
        if self._engine_instance is not None:
            self._engine_instance.dispose()


def _normalise_timestamp(value: object) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    # SQLite hands TIMESTAMP columns back as strings through Core queries.
    return as_utc(datetime.fromisoformat(str(value)))


__all__ = ["RelationalBackend"]
