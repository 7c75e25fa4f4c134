"""Shared fakes for fetcher, cache store and clock."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Callable

import pytest

from fx_rates.db.base_backend import CacheStore, PersistenceResult
from fx_rates.errors import FetchError, StoreError
from fx_rates.ingestion.models import CatalogueRecord, CurrencyPrefs, RateRecord, normalise_base


class ScriptedFetcher:
    """Answer URLs from a list of (substring, response) rules, recording calls."""

    def __init__(self) -> None:
        self.rules: list[tuple[str, str | Exception]] = []
        self.calls: list[str] = []

    def respond(self, fragment: str, response: str | Exception) -> "ScriptedFetcher":
        self.rules.append((fragment, response))
        return self

    def fetch(self, url: str) -> str:
        self.calls.append(url)
        for fragment, response in self.rules:
            if fragment in url:
                if isinstance(response, Exception):
                    raise response
                return response
        raise FetchError(url, "connection refused")


class MemoryStore(CacheStore):
    """In-memory cache store that records every write."""

    def __init__(self) -> None:
        super().__init__()
        self.rates: dict[str, RateRecord] = {}
        self.catalogue: CatalogueRecord | None = None
        self.prefs: CurrencyPrefs | None = None
        self.upserts: list[RateRecord | CatalogueRecord] = []
        self.fail_reads = False
        self.fail_writes = False

    def ensure_schema(self) -> None:
        return None

    def get_rates(self, base: str) -> RateRecord | None:
        if self.fail_reads:
            raise StoreError("disk on fire")
        return self.rates.get(normalise_base(base))

    def upsert_rates(self, record: RateRecord) -> PersistenceResult:
        if self.fail_writes:
            raise StoreError("read-only filesystem")
        with self.write_lock:
            existed = record.base in self.rates
            self.rates[record.base] = record
            self.upserts.append(record)
        return PersistenceResult(inserted=0 if existed else 1, updated=1 if existed else 0)

    def get_catalogue(self) -> CatalogueRecord | None:
        if self.fail_reads:
            raise StoreError("disk on fire")
        return self.catalogue

    def upsert_catalogue(self, record: CatalogueRecord) -> PersistenceResult:
        if self.fail_writes:
            raise StoreError("read-only filesystem")
        with self.write_lock:
            existed = self.catalogue is not None
            self.catalogue = record
            self.upserts.append(record)
        return PersistenceResult(inserted=0 if existed else 1, updated=1 if existed else 0)

    def get_prefs(self) -> CurrencyPrefs | None:
        return self.prefs

    def save_prefs(self, prefs: CurrencyPrefs) -> PersistenceResult:
        existed = self.prefs is not None
        self.prefs = prefs
        return PersistenceResult(inserted=0 if existed else 1, updated=1 if existed else 0)


class FrozenClock:
    """Callable clock whose current time tests can move around."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def rate_payload(base: str, day: str, rates: dict[str, float]) -> str:
    return json.dumps({"date": day, base.lower(): rates})


@pytest.fixture
def fetcher() -> ScriptedFetcher:
    return ScriptedFetcher()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def make_payload() -> Callable[[str, str, dict[str, float]], str]:
    return rate_payload
