"""CLI entry point for refreshing cached exchange rates."""

from __future__ import annotations

from fx_rates.refresh.cli import main

if __name__ == "__main__":  # pragma: no cover - thin wrapper
    raise SystemExit(main())
