"""Decide whether cached currency data should be refreshed."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from fx_rates.utils.dates import as_utc


@dataclass(frozen=True)
class StalenessPolicy:
    """Daily-publication staleness rule.

    The dataset is republished once a day shortly after UTC midnight. Cached
    data is refreshed when forced, when nothing is cached, or when it is at or
    past ``refresh_hour_utc`` and the cached date is not today's UTC date.
    Before that hour a cache from yesterday is still served.
    """

    refresh_hour_utc: int = 2

    def needs_refresh(
        self,
        cached_date: date | None,
        now: datetime,
        *,
        has_cache: bool,
        force_refresh: bool = False,
    ) -> bool:
        if force_refresh or not has_cache:
            return True
        now_utc = as_utc(now)
        return now_utc.hour >= self.refresh_hour_utc and cached_date != now_utc.date()


__all__ = ["StalenessPolicy"]
