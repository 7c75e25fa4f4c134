"""Cache-first refresh pipeline for rate tables and the currency catalogue.

Each request reads the cache, yields the cached result straight away, then
decides whether to walk the mirror chain. A successful fetch is persisted and,
when it changes the parsed result, yielded a second time. Network, parse and
store failures are logged and absorbed: callers only ever see a (possibly
empty or unchanged) mapping or catalogue.
"""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from typing import Callable, Iterator, TypeVar

from fx_rates.config import DEFAULT_SETTINGS, MirrorSettings
from fx_rates.db.base_backend import CacheStore
from fx_rates.errors import FetchError, InvalidResponseError, StoreError
from fx_rates.ingestion.mirrors import candidate_urls
from fx_rates.ingestion.models import (
    CatalogueRecord,
    ParsedCatalogue,
    ParsedRates,
    RateRecord,
    RefreshOutcome,
    ResourceKind,
    normalise_base,
)
from fx_rates.ingestion.parser import extract_date, parse_catalogue, parse_rates
from fx_rates.ingestion.strategy import Fetcher
from fx_rates.refresh.staleness import StalenessPolicy
from fx_rates.utils.dates import Clock, as_utc, utc_now
from fx_rates.utils.logger import ContextAdapter, bind, get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")
CachedRecord = TypeVar("CachedRecord", RateRecord, CatalogueRecord)

EMPTY_PAYLOAD = "{}"


def _is_blank(body: str | None) -> bool:
    return body is None or not body.strip() or body.strip() == EMPTY_PAYLOAD


class RefreshOrchestrator:
    """Coordinate cache reads, staleness checks and the mirror fallback chain."""

    def __init__(
        self,
        store: CacheStore,
        fetcher: Fetcher,
        *,
        policy: StalenessPolicy | None = None,
        settings: MirrorSettings = DEFAULT_SETTINGS,
        clock: Clock = utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.settings = settings
        self.policy = policy or StalenessPolicy(refresh_hour_utc=settings.refresh_hour_utc)
        self.clock = clock
        self.logger = logger or LOGGER
        self.last_outcome: RefreshOutcome | None = None

    def _now(self) -> datetime:
        return as_utc(self.clock())

    # ------------------------------------------------------------------
    # Public pipelines
    # ------------------------------------------------------------------
    def stream_rates(
        self,
        base: str,
        force_refresh: bool = False,
        is_online: bool = True,
        *,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[ParsedRates]:
        """Yield cached rates for ``base``, then refreshed rates if they differ."""

        key = normalise_base(base)

        def write(payload: str, fetched_at: datetime) -> None:
            self.store.upsert_rates(RateRecord(base=key, payload=payload, fetched_at=fetched_at))

        return self._run(
            kind=ResourceKind.RATES,
            base=key,
            read=lambda: self.store.get_rates(key),
            write=write,
            parse=lambda payload: parse_rates(payload, key),
            cached_date=lambda record: extract_date(record.payload),
            force_refresh=force_refresh,
            is_online=is_online,
            cancel_event=cancel_event,
        )

    def stream_catalogue(
        self,
        force_refresh: bool = False,
        is_online: bool = True,
        *,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[ParsedCatalogue]:
        """Yield the cached catalogue, then the refreshed one if it differs."""

        def write(payload: str, fetched_at: datetime) -> None:
            self.store.upsert_catalogue(CatalogueRecord(payload=payload, fetched_at=fetched_at))

        # The catalogue file carries no "date" field, so its age is the fetch date.
        return self._run(
            kind=ResourceKind.CATALOGUE,
            base=None,
            read=self.store.get_catalogue,
            write=write,
            parse=parse_catalogue,
            cached_date=lambda record: as_utc(record.fetched_at).date(),
            force_refresh=force_refresh,
            is_online=is_online,
            cancel_event=cancel_event,
        )

    def last_publication_date(self, base: str) -> date | None:
        """Return the ``date`` embedded in the cached rate file for ``base``."""

        record = self._read_cached(lambda: self.store.get_rates(normalise_base(base)), self.logger)
        return extract_date(record.payload) if record is not None else None

    def last_fetched_at(self, base: str) -> datetime | None:
        """Return when the rate file for ``base`` was last stored."""

        record = self._read_cached(lambda: self.store.get_rates(normalise_base(base)), self.logger)
        return record.fetched_at if record is not None else None

    # ------------------------------------------------------------------
    # Mirror chain
    # ------------------------------------------------------------------
    def fetch_first_valid(
        self,
        kind: ResourceKind,
        base: str | None = None,
        *,
        today: date | None = None,
        cancel_event: threading.Event | None = None,
        log: logging.Logger | ContextAdapter | None = None,
    ) -> str | None:
        """Walk the mirrors in order and return the first acceptable body.

        Returns ``None`` when every candidate failed or was rejected, or when
        ``cancel_event`` was set before the next attempt.
        """

        log = log or self.logger
        candidates = candidate_urls(
            kind, today or self._now().date(), base, settings=self.settings
        )
        for position, candidate in enumerate(candidates, start=1):
            if cancel_event is not None and cancel_event.is_set():
                log.info("Refresh cancelled before %s", candidate.label)
                return None
            log.debug("Attempt %s/%s via %s: %s", position, len(candidates), candidate.label, candidate.url)
            try:
                body = self.fetcher.fetch(candidate.url)
                if _is_blank(body) or not candidate.accepts(body):
                    raise InvalidResponseError(candidate.label, candidate.url)
            except FetchError as exc:
                log.warning("%s failed: %s", candidate.label, exc)
                continue
            except InvalidResponseError as exc:
                log.info("%s not usable yet: %s", candidate.label, exc)
                continue
            except Exception as exc:  # pragma: no cover - unexpected fetcher failure
                log.warning("%s raised %s: %s", candidate.label, exc.__class__.__name__, exc)
                continue
            log.info("Fetched %s bytes via %s", len(body), candidate.label)
            return body

        log.error("All %s mirrors failed; keeping cached data", len(candidates))
        return None

    # ------------------------------------------------------------------
    # Shared pipeline
    # ------------------------------------------------------------------
    def _read_cached(
        self,
        read: Callable[[], CachedRecord | None],
        log: logging.Logger | ContextAdapter,
    ) -> CachedRecord | None:
        try:
            return read()
        except StoreError as exc:
            log.error("Cache read failed, treating as empty: %s", exc)
            return None

    def _run(
        self,
        *,
        kind: ResourceKind,
        base: str | None,
        read: Callable[[], CachedRecord | None],
        write: Callable[[str, datetime], None],
        parse: Callable[[str], T],
        cached_date: Callable[[CachedRecord], date | None],
        force_refresh: bool,
        is_online: bool,
        cancel_event: threading.Event | None,
    ) -> Iterator[T]:
        log = bind(self.logger, resource=kind.value, base=base) if base else bind(
            self.logger, resource=kind.value
        )
        record = self._read_cached(read, log)
        cached = parse(record.payload if record is not None else EMPTY_PAYLOAD)
        log.debug("Emitting cached result (%s entries)", len(cached))  # type: ignore[arg-type]
        yield cached

        now = self._now()
        stale = self.policy.needs_refresh(
            cached_date(record) if record is not None else None,
            now,
            has_cache=record is not None,
            force_refresh=force_refresh,
        )
        log.debug("needs_refresh=%s (force=%s, hour=%s)", stale, force_refresh, now.hour)
        if not stale:
            self.last_outcome = RefreshOutcome.IDLE
            return
        if not is_online:
            log.warning("Offline and refresh needed; keeping cached data")
            self.last_outcome = RefreshOutcome.OFFLINE
            return

        payload = self.fetch_first_valid(
            kind, base, today=now.date(), cancel_event=cancel_event, log=log
        )
        if cancel_event is not None and cancel_event.is_set():
            log.info("Refresh cancelled; cache left untouched")
            self.last_outcome = RefreshOutcome.CANCELLED
            return
        if payload is None:
            self.last_outcome = RefreshOutcome.EXHAUSTED
            return

        try:
            write(payload, self._now())
        except StoreError as exc:
            log.error("Cache write failed; returning unpersisted data: %s", exc)
        self.last_outcome = RefreshOutcome.REFRESHED

        fresh = parse(payload)
        if fresh != cached:
            log.debug("Emitting updated result (%s entries)", len(fresh))  # type: ignore[arg-type]
            yield fresh
        else:
            log.debug("Refreshed data matches cache; nothing new to emit")


__all__ = ["RefreshOrchestrator", "EMPTY_PAYLOAD"]
