"""Abstractions for pluggable transport strategies."""

from __future__ import annotations

from typing import Protocol


class Fetcher(Protocol):
    """Contract for retrieving one mirror body.

    Implementations perform a single GET and return the body text. Transport
    problems (timeouts, DNS, refused connections, non-2xx statuses) must be
    raised as :class:`fx_rates.errors.FetchError`. No retries and no inspection
    of the body.
    """

    def fetch(self, url: str) -> str:
        ...  # pragma: no cover - protocol definition


__all__ = ["Fetcher"]
