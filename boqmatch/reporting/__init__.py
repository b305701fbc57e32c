"""Reporting module for BOQMatch.

Per-run rate aggregation for materials matched to the master catalog.
"""

from boqmatch.reporting.rate_tracker import RateAggregator, RateTracker

__all__ = ["RateAggregator", "RateTracker"]
