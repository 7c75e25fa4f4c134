"""Behaviour of the cache-first refresh pipeline against scripted mirrors."""

from __future__ import annotations

import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from fx_rates.errors import FetchError
from fx_rates.ingestion.models import CatalogueRecord, RateRecord, RefreshOutcome, ResourceKind
from fx_rates.refresh.orchestrator import RefreshOrchestrator

NOT_FOUND = "Couldn't find the requested release version 2024.5.2"
CATALOGUE = '{"eur":"Euro","usd":"US Dollar"}'


@pytest.fixture
def orchestrator(store, fetcher, clock) -> RefreshOrchestrator:
    return RefreshOrchestrator(store, fetcher, clock=clock)


def test_offline_without_cache_emits_empty_once(orchestrator, store, fetcher) -> None:
    emitted = list(orchestrator.stream_rates("USD", is_online=False))

    assert emitted == [{}]
    assert fetcher.calls == []
    assert store.upserts == []
    assert orchestrator.last_outcome is RefreshOutcome.OFFLINE


def test_fresh_cache_is_served_without_network(orchestrator, store, fetcher, make_payload) -> None:
    store.rates["usd"] = RateRecord("usd", make_payload("usd", "2024-05-01", {"eur": 0.92}))

    emitted = list(orchestrator.stream_rates("usd"))

    assert emitted == [{"eur": 0.92}]
    assert fetcher.calls == []
    assert orchestrator.last_outcome is RefreshOutcome.IDLE


def test_first_launch_fetches_and_emits_twice(orchestrator, store, fetcher, make_payload) -> None:
    fetcher.respond("@2024.5.2/", make_payload("usd", "2024-05-02", {"eur": 0.93, "gbp": 0.8}))

    emitted = list(orchestrator.stream_rates("USD"))

    assert emitted == [{}, {"eur": 0.93, "gbp": 0.8}]
    assert len(fetcher.calls) == 1
    assert store.rates["usd"].payload.startswith('{"date": "2024-05-02"')
    assert orchestrator.last_outcome is RefreshOutcome.REFRESHED


def test_fallback_walks_mirrors_in_order(orchestrator, store, fetcher, make_payload) -> None:
    latest = make_payload("eur", "2024-04-30", {"usd": 1.07})
    fetcher.respond("@2024.5.2/", NOT_FOUND)
    fetcher.respond("@2024.5.1/", FetchError("https://cdn", "timed out"))
    fetcher.respond("@latest/", latest)

    emitted = list(orchestrator.stream_rates("eur"))

    assert emitted == [{}, {"usd": 1.07}]
    assert [("@2024.5.2/" in u, "@2024.5.1/" in u, "@latest/" in u) for u in fetcher.calls] == [
        (True, False, False),
        (False, True, False),
        (False, False, True),
    ]
    assert not any("pages.dev" in url for url in fetcher.calls)
    assert store.rates["eur"].payload == latest


def test_pages_mirror_rejects_html_error_page(orchestrator, store, fetcher) -> None:
    fetcher.respond("2024-05-02.currency-api", "<html><h1>Not found</h1></html>")
    fetcher.respond("2024-05-01.currency-api", CATALOGUE)

    emitted = list(orchestrator.stream_catalogue())

    assert emitted == [[], [("EUR", "Euro"), ("USD", "US Dollar")]]
    assert len(fetcher.calls) == 5
    assert store.catalogue is not None
    assert store.catalogue.payload == CATALOGUE


@pytest.mark.parametrize("body", ["", "   ", "{}"])
def test_empty_bodies_are_never_persisted(orchestrator, store, fetcher, body: str) -> None:
    fetcher.respond("currency", body)

    emitted = list(orchestrator.stream_rates("usd"))

    assert emitted == [{}]
    assert len(fetcher.calls) == 5
    assert store.upserts == []
    assert orchestrator.last_outcome is RefreshOutcome.EXHAUSTED


def test_all_mirrors_failing_keeps_cache(orchestrator, store, fetcher, make_payload, clock) -> None:
    clock.now = datetime(2024, 5, 2, 3, 0, tzinfo=timezone.utc)
    original = RateRecord("usd", make_payload("usd", "2024-05-01", {"eur": 0.92}), clock.now - timedelta(days=1))
    store.rates["usd"] = original

    emitted = list(orchestrator.stream_rates("usd"))

    assert emitted == [{"eur": 0.92}]
    assert len(fetcher.calls) == 5
    assert store.rates["usd"] is original
    assert store.upserts == []


def test_refresh_waits_until_two_utc(orchestrator, store, fetcher, make_payload, clock) -> None:
    store.rates["usd"] = RateRecord("usd", make_payload("usd", "2024-04-30", {"eur": 0.92}))
    fetcher.respond("@2024.5.2/", make_payload("usd", "2024-05-01", {"eur": 0.95}))

    clock.now = datetime(2024, 5, 1, 1, 59, tzinfo=timezone.utc)
    assert list(orchestrator.stream_rates("usd")) == [{"eur": 0.92}]
    assert fetcher.calls == []

    clock.now = datetime(2024, 5, 1, 2, 0, tzinfo=timezone.utc)
    assert list(orchestrator.stream_rates("usd")) == [{"eur": 0.92}, {"eur": 0.95}]


def test_forced_refresh_is_idempotent(orchestrator, store, fetcher, make_payload, clock) -> None:
    fetcher.respond("@2024.5.2/", make_payload("usd", "2024-05-01", {"eur": 0.92}))

    first = list(orchestrator.stream_rates("usd", force_refresh=True))
    first_fetched = store.rates["usd"].fetched_at
    clock.now = clock.now + timedelta(minutes=5)
    second = list(orchestrator.stream_rates("usd", force_refresh=True))

    assert first == [{}, {"eur": 0.92}]
    assert second == [{"eur": 0.92}]
    assert len(store.upserts) == 2
    assert store.rates["usd"].fetched_at >= first_fetched


def test_store_read_failure_behaves_like_empty_cache(orchestrator, store, fetcher, make_payload) -> None:
    store.fail_reads = True
    fetcher.respond("@2024.5.2/", make_payload("usd", "2024-05-01", {"eur": 0.92}))

    emitted = list(orchestrator.stream_rates("usd"))

    assert emitted == [{}, {"eur": 0.92}]


def test_store_write_failure_still_emits_fresh_data(orchestrator, store, fetcher, make_payload) -> None:
    store.fail_writes = True
    fetcher.respond("@2024.5.2/", make_payload("usd", "2024-05-01", {"eur": 0.92}))

    emitted = list(orchestrator.stream_rates("usd"))

    assert emitted == [{}, {"eur": 0.92}]
    assert store.rates == {}
    assert orchestrator.last_outcome is RefreshOutcome.REFRESHED


def test_unparseable_fetch_is_stored_but_not_emitted(orchestrator, store, fetcher) -> None:
    fetcher.respond("@2024.5.2/", '{"date":"2024-05-01","usd":"broken"}')

    emitted = list(orchestrator.stream_rates("usd"))

    assert emitted == [{}]
    assert store.rates["usd"].payload == '{"date":"2024-05-01","usd":"broken"}'


def test_cancel_during_fetch_skips_persisting(store, clock, make_payload) -> None:
    cancel = threading.Event()

    class _CancellingFetcher:
        def __init__(self) -> None:
            self.calls: list[str] = []

        def fetch(self, url: str) -> str:
            self.calls.append(url)
            cancel.set()
            return make_payload("usd", "2024-05-01", {"eur": 0.92})

    fetcher = _CancellingFetcher()
    orchestrator = RefreshOrchestrator(store, fetcher, clock=clock)

    emitted = list(orchestrator.stream_rates("usd", cancel_event=cancel))

    assert emitted == [{}]
    assert len(fetcher.calls) == 1
    assert store.upserts == []
    assert orchestrator.last_outcome is RefreshOutcome.CANCELLED


def test_pre_cancelled_run_never_touches_network(orchestrator, fetcher) -> None:
    cancel = threading.Event()
    cancel.set()

    assert list(orchestrator.stream_rates("usd", cancel_event=cancel)) == [{}]
    assert fetcher.calls == []


def test_consumer_stopping_after_cached_value_skips_refresh(orchestrator, fetcher) -> None:
    stream = orchestrator.stream_rates("usd")

    assert next(stream) == {}
    stream.close()
    assert fetcher.calls == []


def test_invalid_base_is_rejected_before_streaming(orchestrator) -> None:
    with pytest.raises(ValueError):
        orchestrator.stream_rates("not a code")


def test_catalogue_staleness_uses_fetch_date(orchestrator, store, fetcher, clock) -> None:
    store.catalogue = CatalogueRecord(CATALOGUE, datetime(2024, 5, 1, 0, 30, tzinfo=timezone.utc))
    assert list(orchestrator.stream_catalogue()) == [[("EUR", "Euro"), ("USD", "US Dollar")]]
    assert fetcher.calls == []

    store.catalogue = CatalogueRecord(CATALOGUE, datetime(2024, 4, 30, 23, 0, tzinfo=timezone.utc))
    fetcher.respond("@2024.5.2/", '{"eur":"Euro","usd":"US Dollar","xau":"Gold"}')
    emitted = list(orchestrator.stream_catalogue())

    assert emitted[-1] == [("EUR", "Euro"), ("USD", "US Dollar"), ("XAU", "Gold")]
    assert store.catalogue.fetched_at == clock.now


def test_fetch_first_valid_returns_none_when_exhausted(orchestrator, fetcher) -> None:
    assert orchestrator.fetch_first_valid(ResourceKind.CATALOGUE, today=date(2024, 5, 1)) is None
    assert len(fetcher.calls) == 5


def test_last_publication_date_and_fetched_at(orchestrator, store, make_payload) -> None:
    fetched_at = datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)
    store.rates["usd"] = RateRecord("usd", make_payload("usd", "2024-05-01", {"eur": 0.92}), fetched_at)

    assert orchestrator.last_publication_date("USD") == date(2024, 5, 1)
    assert orchestrator.last_fetched_at("usd") == fetched_at
    assert orchestrator.last_publication_date("gbp") is None
    assert orchestrator.last_fetched_at("gbp") is None
