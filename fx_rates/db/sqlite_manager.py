"""SQLAlchemy-backed persistence for the bundled SQLite cache."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, cast

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from fx_rates.db import DEFAULT_SQLITE_DB_PATH
from fx_rates.db.base_backend import PersistenceResult
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


class Base(DeclarativeBase):
    pass


class _CurrencyRate(Base):
    __tablename__ = "currency_rates"

    base = Column(String(8), primary_key=True)
    payload = Column(Text, nullable=False)
    fetched_at = Column(DateTime, nullable=False)


class _CurrencyList(Base):
    __tablename__ = "currency_list"

    id = Column(Integer, primary_key=True, default=CATALOGUE_KEY)
    payload = Column(Text, nullable=False)
    fetched_at = Column(DateTime, nullable=False)


class _CurrencyPrefs(Base):
    __tablename__ = "currency_prefs"

    id = Column(Integer, primary_key=True, default=PREFS_KEY)
    active_field = Column(Integer, nullable=False, default=1)
    currency1 = Column(String(8), nullable=False)
    currency2 = Column(String(8), nullable=False)
    amount1 = Column(String, nullable=False, default="")
    amount2 = Column(String, nullable=False, default="")


def _to_naive_utc(value: datetime) -> datetime:
    # SQLite has no timezone support; persist UTC wall time.
    return as_utc(value).replace(tzinfo=None)


class SQLiteManager:
    """Own the SQLite engine and translate ORM rows into fx_rates records."""

    def __init__(self, db_path: str | Path = DEFAULT_SQLITE_DB_PATH) -> None:
        self.db_path = Path(db_path).expanduser().resolve()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.engine: Engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                future=True,
                connect_args={"check_same_thread": False},
            )
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Unable to open SQLite cache at {self.db_path}: {exc}") from exc
        self._SessionFactory: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, future=True
        )
        LOGGER.debug("Opened SQLite cache at %s", self.db_path)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._SessionFactory() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(f"SQLite cache operation failed: {exc}") from exc

    def get_rates(self, base: str) -> RateRecord | None:
        key = normalise_base(base)
        with self._session() as session:
            row = session.get(_CurrencyRate, key)
            if row is None:
                return None
            return RateRecord(
                base=cast(str, row.base),
                payload=cast(str, row.payload),
                fetched_at=cast(datetime, row.fetched_at),
            )

    def upsert_rates(self, record: RateRecord) -> PersistenceResult:
        result = PersistenceResult()
        with self._session() as session:
            existing = session.get(_CurrencyRate, record.base)
            if existing is None:
                session.add(
                    _CurrencyRate(
                        base=record.base,
                        payload=record.payload,
                        fetched_at=_to_naive_utc(record.fetched_at),
                    )
                )
                result.inserted += 1
            else:
                setattr(existing, "payload", record.payload)
                setattr(existing, "fetched_at", _to_naive_utc(record.fetched_at))
                result.updated += 1
            session.commit()
        LOGGER.info(
            "Stored rates for %s (inserted=%s, updated=%s)",
            record.base,
            result.inserted,
            result.updated,
        )
        return result

    def get_catalogue(self) -> CatalogueRecord | None:
        with self._session() as session:
            row = session.get(_CurrencyList, CATALOGUE_KEY)
            if row is None:
                return None
            return CatalogueRecord(
                payload=cast(str, row.payload),
                fetched_at=cast(datetime, row.fetched_at),
            )

    def upsert_catalogue(self, record: CatalogueRecord) -> PersistenceResult:
        result = PersistenceResult()
        with self._session() as session:
            existing = session.get(_CurrencyList, CATALOGUE_KEY)
            if existing is None:
                session.add(
                    _CurrencyList(
                        id=CATALOGUE_KEY,
                        payload=record.payload,
                        fetched_at=_to_naive_utc(record.fetched_at),
                    )
                )
                result.inserted += 1
            else:
                setattr(existing, "payload", record.payload)
                setattr(existing, "fetched_at", _to_naive_utc(record.fetched_at))
                result.updated += 1
            session.commit()
        LOGGER.info("Stored currency catalogue (inserted=%s, updated=%s)", result.inserted, result.updated)
        return result

    def get_prefs(self) -> CurrencyPrefs | None:
        with self._session() as session:
            row = session.get(_CurrencyPrefs, PREFS_KEY)
            if row is None:
                return None
            return CurrencyPrefs(
                active_field=cast(int, row.active_field),
                currency1=cast(str, row.currency1),
                currency2=cast(str, row.currency2),
                amount1=cast(str, row.amount1),
                amount2=cast(str, row.amount2),
            )

    def save_prefs(self, prefs: CurrencyPrefs) -> PersistenceResult:
        result = PersistenceResult()
        values = {
            "active_field": prefs.active_field,
            "currency1": prefs.currency1,
            "currency2": prefs.currency2,
            "amount1": prefs.amount1,
            "amount2": prefs.amount2,
        }
        with self._session() as session:
            existing = session.get(_CurrencyPrefs, PREFS_KEY)
            if existing is None:
                session.add(_CurrencyPrefs(id=PREFS_KEY, **values))
                result.inserted += 1
            else:
                for key, value in values.items():
                    setattr(existing, key, value)
                result.updated += 1
            session.commit()
        return result

    def close(self) -> None:  # pragma: no cover - trivial
        self.engine.dispose()

    def __enter__(self) -> "SQLiteManager":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()


__all__ = ["SQLiteManager", "PersistenceResult"]
