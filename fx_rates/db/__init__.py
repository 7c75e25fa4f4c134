"""Helpers for locating the bundled SQLite cache database."""

from __future__ import annotations

from pathlib import Path
from typing import Final

__all__ = ["DEFAULT_SQLITE_DB_PATH"]

# ``Path(__file__)`` points at ``fx_rates/db/__init__.py`` so replacing the
# filename gives the location of ``fx_rates.db`` irrespective of the working
# directory. SQLite needs the absolute path once installed in site-packages.
DEFAULT_SQLITE_DB_PATH: Final[Path] = Path(__file__).resolve().with_name("fx_rates.db")
