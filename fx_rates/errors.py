"""Exception hierarchy shared across the fx_rates package."""

from __future__ import annotations


class FxRatesError(Exception):
    """Base class for every error raised inside fx_rates."""


class FetchError(FxRatesError):
    """Transport level failure: timeout, DNS, refused connection or non-2xx status."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"GET {url} failed: {reason}")
        self.url = url
        self.reason = reason


class InvalidResponseError(FxRatesError):
    """A mirror answered, but the body was rejected by its validity predicate."""

    def __init__(self, label: str, url: str) -> None:
        super().__init__(f"{label} returned an unusable body for {url}")
        self.label = label
        self.url = url


class PayloadParseError(FxRatesError):
    """Raw payload text could not be decoded into the expected shape."""


class StoreError(FxRatesError):
    """Reading from or writing to the cache store failed."""


__all__ = [
    "FxRatesError",
    "FetchError",
    "InvalidResponseError",
    "PayloadParseError",
    "StoreError",
]
