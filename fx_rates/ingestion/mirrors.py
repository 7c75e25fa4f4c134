"""Ordered mirror candidates for the date-versioned currency dataset.

The dataset is published as dated npm releases (served through a CDN) and as
dated pages deployments. New releases appear slightly ahead of UTC midnight, so
tomorrow's tag is tried before today's, and ``@latest`` sits between the CDN and
pages mirrors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable

from fx_rates.config import (
    DEFAULT_SETTINGS,
    HTML_ERROR_MARKER,
    RELEASE_NOT_FOUND_MARKER,
    MirrorSettings,
)
from fx_rates.ingestion.models import ResourceKind, normalise_base
from fx_rates.utils.dates import pages_tag, release_tag, tomorrow

InvalidPredicate = Callable[[str], bool]


def release_missing(body: str) -> bool:
    """True when the CDN reports that a dated release does not exist (yet)."""

    return RELEASE_NOT_FOUND_MARKER in body


def looks_like_html_error(body: str) -> bool:
    """True when the pages mirror served an HTML error page instead of JSON."""

    return HTML_ERROR_MARKER in body


@dataclass(frozen=True)
class MirrorCandidate:
    """One URL to try together with the rule that rejects its error bodies."""

    label: str
    url: str
    is_invalid: InvalidPredicate | None = None

    def accepts(self, body: str) -> bool:
        if self.is_invalid is None:
            return True
        return not self.is_invalid(body)


def resource_path(kind: ResourceKind, base: str | None = None) -> str:
    """Return the path suffix (below the API version) for ``kind``."""

    if kind is ResourceKind.RATES:
        if base is None:
            raise ValueError("A base currency is required for rate files")
        return f"currencies/{normalise_base(base)}.json"
    if kind is ResourceKind.CATALOGUE:
        return "currencies.min.json"
    raise ValueError(f"Unsupported resource kind: {kind}")


def candidate_urls(
    kind: ResourceKind,
    today_utc: date,
    base: str | None = None,
    *,
    settings: MirrorSettings = DEFAULT_SETTINGS,
) -> list[MirrorCandidate]:
    """Return the ordered fetch attempts for ``kind`` on ``today_utc``."""

    suffix = f"{settings.api_version}/{resource_path(kind, base)}"
    next_day = tomorrow(today_utc)

    def cdn(tag: str) -> str:
        return f"{settings.cdn_root}@{tag}/{suffix}"

    def pages(day: date) -> str:
        return f"https://{pages_tag(day)}.{settings.pages_host}/{suffix}"

    return [
        MirrorCandidate("cdn:tomorrow", cdn(release_tag(next_day)), release_missing),
        MirrorCandidate("cdn:today", cdn(release_tag(today_utc)), release_missing),
        MirrorCandidate("cdn:latest", cdn("latest")),
        MirrorCandidate("pages:tomorrow", pages(next_day), looks_like_html_error),
        MirrorCandidate("pages:today", pages(today_utc), looks_like_html_error),
    ]


__all__ = [
    "MirrorCandidate",
    "InvalidPredicate",
    "candidate_urls",
    "resource_path",
    "release_missing",
    "looks_like_html_error",
]
