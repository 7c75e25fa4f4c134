"""Turn raw currency-api payloads into rate mappings, catalogues and dates.

Every public helper here is total: malformed input is logged and mapped to an
empty mapping, an empty list or ``None``. Callers never need to guard them.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any

from fx_rates.errors import PayloadParseError
from fx_rates.ingestion.models import ParsedCatalogue, ParsedRates
from fx_rates.utils.logger import get_logger

LOGGER = get_logger(__name__)


def _load_object(raw: str | None) -> dict[str, Any]:
    if raw is None:
        raise PayloadParseError("payload is missing")
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise PayloadParseError(f"payload is not valid JSON: {exc}") from exc
    if not isinstance(decoded, dict):
        raise PayloadParseError(f"expected a JSON object, got {type(decoded).__name__}")
    return decoded


def _coerce_rate(code: str, value: Any) -> float:
    # ``bool`` is an ``int`` subclass but never a valid rate.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PayloadParseError(f"rate for {code!r} is not numeric: {value!r}")
    return float(value)


def parse_rates(raw: str | None, base: str) -> ParsedRates:
    """Return ``{code: rate}`` for the object keyed by ``base`` (case-insensitive)."""

    key = (base or "").lower()
    try:
        root = _load_object(raw)
        rates_obj = root.get(key)
        if not isinstance(rates_obj, dict):
            LOGGER.warning("No '%s' object in rate payload; returning empty mapping", key)
            return {}
        return {code: _coerce_rate(code, value) for code, value in rates_obj.items()}
    except PayloadParseError as exc:
        LOGGER.warning("Failed to parse rates for %s: %s", key, exc)
        return {}


def parse_catalogue(raw: str | None) -> ParsedCatalogue:
    """Return ``[(CODE, title), ...]`` sorted by code."""

    try:
        root = _load_object(raw)
        pairs: ParsedCatalogue = []
        for code, title in root.items():
            if not isinstance(title, str):
                raise PayloadParseError(f"title for {code!r} is not a string: {title!r}")
            pairs.append((code.upper(), title))
    except PayloadParseError as exc:
        LOGGER.warning("Failed to parse currency catalogue: %s", exc)
        return []
    return sorted(pairs, key=lambda pair: pair[0])


def extract_date(raw: str | None) -> date | None:
    """Return the payload's top-level ``date`` field as a calendar date."""

    try:
        value = _load_object(raw).get("date")
        if not isinstance(value, str):
            raise PayloadParseError(f"'date' field missing or not a string: {value!r}")
        return date.fromisoformat(value)
    except (PayloadParseError, ValueError) as exc:
        LOGGER.debug("Could not extract publication date: %s", exc)
        return None


__all__ = ["parse_rates", "parse_catalogue", "extract_date"]
