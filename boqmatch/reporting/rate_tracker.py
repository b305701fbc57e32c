"""Per-run rate aggregation for matched master materials.

Reporting only: trackers live for one processing run and never touch the
catalog themselves.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from boqmatch.models import ExtractedItem

logger = logging.getLogger(__name__)


@dataclass
class RateTracker:
    """Observations of one master material within a run."""

    material_id: UUID
    observations: list[tuple[float, float]] = field(default_factory=list)  # (rate, qty)
    min_rate: float = float("inf")
    max_rate: float = 0.0

    def add(self, rate: float, quantity: float | None) -> None:
        qty = quantity if quantity and quantity > 0 else 1.0
        self.observations.append((rate, qty))
        self.min_rate = min(self.min_rate, rate)
        self.max_rate = max(self.max_rate, rate)

    @property
    def count(self) -> int:
        return len(self.observations)

    @property
    def total_quantity(self) -> float:
        return sum(qty for _, qty in self.observations)

    @property
    def avg_rate(self) -> float:
        """Quantity-weighted average rate."""
        total_qty = self.total_quantity
        if total_qty == 0:
            return 0.0
        return sum(rate * qty for rate, qty in self.observations) / total_qty

    @property
    def variation_pct(self) -> float:
        avg = self.avg_rate
        if self.count < 2 or avg == 0:
            return 0.0
        return (self.max_rate - self.min_rate) / avg * 100


class RateAggregator:
    """Collect rate observations per matched material."""

    def __init__(self) -> None:
        self.trackers: dict[UUID, RateTracker] = {}

    def add(self, item: ExtractedItem) -> None:
        """Record an item if it is matched and carries a positive total rate."""
        if item.matched_material_id is None or not item.total_rate or item.total_rate <= 0:
            return
        tracker = self.trackers.get(item.matched_material_id)
        if tracker is None:
            tracker = RateTracker(material_id=item.matched_material_id)
            self.trackers[item.matched_material_id] = tracker
        tracker.add(item.total_rate, item.quantity)

    def add_all(self, items: Iterable[ExtractedItem]) -> RateAggregator:
        for item in items:
            self.add(item)
        return self

    def get(self, material_id: UUID) -> RateTracker | None:
        return self.trackers.get(material_id)

    def log_summary(self) -> None:
        """Log materials observed more than once with their rate spread."""
        for tracker in self.trackers.values():
            if tracker.count > 1:
                logger.info(
                    f"Material {tracker.material_id}: {tracker.count} rates, "
                    f"avg {tracker.avg_rate:.2f}, range {tracker.min_rate:.2f}-"
                    f"{tracker.max_rate:.2f} ({tracker.variation_pct:.1f}% variation)"
                )
        logger.info(f"Tracked rates for {len(self.trackers)} unique materials")

    def summary(self) -> list[dict]:
        """Plain-dict view for CLI tables and API responses."""
        return [
            {
                "material_id": str(t.material_id),
                "count": t.count,
                "avg_rate": round(t.avg_rate, 2),
                "min_rate": t.min_rate,
                "max_rate": t.max_rate,
                "variation_pct": round(t.variation_pct, 1),
            }
            for t in self.trackers.values()
        ]
