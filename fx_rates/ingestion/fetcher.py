"""requests-based transport for the currency dataset mirrors."""

from __future__ import annotations

import requests

from fx_rates.config import DEFAULT_SETTINGS, MirrorSettings
from fx_rates.errors import FetchError
from fx_rates.utils.logger import get_logger

LOGGER = get_logger(__name__)


class HttpFetcher:
    """Issue one bounded GET per call and hand back the body text."""

    def __init__(
        self,
        *,
        settings: MirrorSettings = DEFAULT_SETTINGS,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.timeout
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", settings.user_agent)
        self.session.headers.setdefault("Accept", "application/json")

    def fetch(self, url: str) -> str:
        LOGGER.debug("GET %s (timeout=%ss)", url, self.timeout)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.Timeout as exc:
            raise FetchError(url, f"timed out after {self.timeout}s") from exc
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "?"
            raise FetchError(url, f"HTTP {status}") from exc
        except requests.RequestException as exc:
            raise FetchError(url, str(exc) or exc.__class__.__name__) from exc
        return response.text

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "HttpFetcher":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = ["HttpFetcher"]
