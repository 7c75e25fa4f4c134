from __future__ import annotations

from typing import Any

import pytest
import requests

from fx_rates.config import MirrorSettings
from fx_rates.errors import FetchError
from fx_rates.ingestion.fetcher import HttpFetcher


class _DummyResponse:
    def __init__(self, text: str, status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)  # type: ignore[arg-type]


class _DummySession:
    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        self.headers: dict[str, str] = {}
        self.requests: list[tuple[str, float]] = []
        self.closed = False

    def get(self, url: str, timeout: float) -> _DummyResponse:
        self.requests.append((url, timeout))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def close(self) -> None:
        self.closed = True


def test_fetch_returns_body_and_uses_timeout() -> None:
    session = _DummySession(_DummyResponse('{"usd": {}}'))
    fetcher = HttpFetcher(settings=MirrorSettings(timeout=1.5), session=session)  # type: ignore[arg-type]

    assert fetcher.fetch("https://mirror/usd.json") == '{"usd": {}}'
    assert session.requests == [("https://mirror/usd.json", 1.5)]
    assert session.headers["User-Agent"].startswith("fx-rates/")


@pytest.mark.parametrize(
    "outcome, reason",
    [
        (_DummyResponse("gone", status_code=404), "HTTP 404"),
        (requests.Timeout("slow"), "timed out after 3.0s"),
        (requests.ConnectionError("refused"), "refused"),
    ],
)
def test_transport_failures_become_fetch_errors(outcome: Any, reason: str) -> None:
    fetcher = HttpFetcher(session=_DummySession(outcome))  # type: ignore[arg-type]

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://mirror/usd.json")

    assert excinfo.value.url == "https://mirror/usd.json"
    assert reason in str(excinfo.value)


def test_close_leaves_borrowed_session_open() -> None:
    session = _DummySession(_DummyResponse("{}"))

    with HttpFetcher(session=session):  # type: ignore[arg-type]
        pass

    assert session.closed is False


def test_owned_session_is_closed(monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[_DummySession] = []

    def _factory() -> _DummySession:
        session = _DummySession(_DummyResponse("{}"))
        created.append(session)
        return session

    monkeypatch.setattr(requests, "Session", _factory)
    HttpFetcher(timeout=0.5).close()

    assert created[0].closed is True
