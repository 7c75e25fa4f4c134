"""Refresh cached exchange rates or the currency catalogue from the command line."""

from __future__ import annotations

import argparse
import json
from typing import Sequence

from fx_rates.config import DEFAULT_SETTINGS, MirrorSettings
from fx_rates.utils.logger import get_logger

LOGGER = get_logger(__name__)

__all__ = ["parse_args", "main"]


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    target = parser.add_mutually_exclusive_group()
    target.add_argument(
        "--base",
        default="USD",
        help="Base currency whose rate table should be loaded (default: USD)",
    )
    target.add_argument(
        "--catalogue",
        action="store_true",
        help="Load the currency code/title catalogue instead of a rate table",
    )
    parser.add_argument(
        "--db",
        dest="db_url",
        default=None,
        help="Cache DSN (sqlite:///path.db, postgres://..., mongodb://...); defaults to the bundled SQLite file",
    )
    parser.add_argument(
        "--force",
        dest="force_refresh",
        action="store_true",
        help="Refresh even when the cached data is current",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Never touch the network; only report what is cached",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_SETTINGS.timeout,
        help="Per-mirror request timeout in seconds",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    from fx_rates import FxRates

    args = parse_args(argv)
    settings = MirrorSettings(timeout=args.timeout)
    with FxRates(args.db_url, settings=settings) as fx:
        if args.catalogue:
            stream = fx.catalogue_stream(args.force_refresh, not args.offline)
            for phase, listing in enumerate(stream):
                print(json.dumps({"phase": "cached" if phase == 0 else "updated", "currencies": dict(listing)}))
        else:
            stream = fx.rates_stream(args.base, args.force_refresh, not args.offline)
            for phase, rates in enumerate(stream):
                print(json.dumps({"phase": "cached" if phase == 0 else "updated", "base": args.base.upper(), "rates": rates}))
            published = fx.get_last_publication_date(args.base)
            LOGGER.info("Last publication date for %s: %s", args.base.upper(), published)
        LOGGER.info("Refresh outcome: %s", fx.orchestrator.last_outcome)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
