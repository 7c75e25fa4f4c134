"""Static configuration for the upstream currency dataset mirrors."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MirrorSettings:
    """Hosts, package name and timing knobs used to reach the currency dataset."""

    cdn_host: str = "cdn.jsdelivr.net"
    package: str = "@fawazahmed0/currency-api"
    pages_host: str = "currency-api.pages.dev"
    api_version: str = "v1"
    timeout: float = 3.0
    user_agent: str = "fx-rates/0.1"
    refresh_hour_utc: int = 2

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if not 0 <= self.refresh_hour_utc <= 23:
            raise ValueError("refresh_hour_utc must be between 0 and 23")

    @property
    def cdn_root(self) -> str:
        return f"https://{self.cdn_host}/npm/{self.package}"


DEFAULT_SETTINGS = MirrorSettings()

# Markers that identify a mirror's "not published yet" answer.
RELEASE_NOT_FOUND_MARKER = "Couldn't find the requested release version"
HTML_ERROR_MARKER = "<h1"


__all__ = [
    "MirrorSettings",
    "DEFAULT_SETTINGS",
    "RELEASE_NOT_FOUND_MARKER",
    "HTML_ERROR_MARKER",
]
