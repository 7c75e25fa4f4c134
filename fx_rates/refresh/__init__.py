"""Refresh pipeline for cached currency data."""

from __future__ import annotations

from fx_rates.refresh.orchestrator import RefreshOrchestrator
from fx_rates.refresh.staleness import StalenessPolicy

__all__ = ["RefreshOrchestrator", "StalenessPolicy"]
