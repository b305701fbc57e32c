"""Unit tests for per-run rate aggregation."""

from __future__ import annotations

from uuid import uuid4

import pytest

from boqmatch.models import ExtractedItem
from boqmatch.reporting.rate_tracker import RateAggregator, RateTracker


class TestRateTracker:
    def test_quantity_weighted_average(self):
        tracker = RateTracker(material_id=uuid4())
        tracker.add(100.0, 10)
        tracker.add(200.0, 30)
        assert tracker.count == 2
        assert tracker.total_quantity == 40
        assert tracker.avg_rate == pytest.approx(175.0)
        assert tracker.variation_pct == pytest.approx(100 / 175 * 100)

    def test_missing_quantity_counts_as_one(self):
        tracker = RateTracker(material_id=uuid4())
        tracker.add(100.0, None)
        tracker.add(300.0, 0)
        assert tracker.avg_rate == pytest.approx(200.0)
        assert (tracker.min_rate, tracker.max_rate) == (100.0, 300.0)

    def test_single_observation_has_no_variation(self):
        tracker = RateTracker(material_id=uuid4())
        tracker.add(100.0, 5)
        assert tracker.variation_pct == 0.0


class TestRateAggregator:
    def test_only_matched_items_with_rates(self):
        material_id = uuid4()
        items = [
            ExtractedItem(
                row_number=1,
                item_description="4C 16mm XLPE cable",
                quantity=50,
                total_rate=120,
                matched_material_id=material_id,
                match_confidence=0.95,
            ),
            ExtractedItem(
                row_number=2,
                item_description="4C 16mm XLPE cable",
                quantity=50,
                total_rate=140,
                matched_material_id=material_id,
                match_confidence=0.95,
            ),
            ExtractedItem(
                row_number=3,
                item_description="4C 16mm XLPE cable",
                quantity=5,
                matched_material_id=material_id,
                match_confidence=0.95,
            ),
            ExtractedItem(row_number=4, item_description="Unmatched item", total_rate=99),
        ]
        aggregator = RateAggregator().add_all(items)

        assert list(aggregator.trackers) == [material_id]
        tracker = aggregator.get(material_id)
        assert tracker.count == 2
        assert tracker.avg_rate == pytest.approx(130.0)

        summary = aggregator.summary()
        assert summary == [
            {
                "material_id": str(material_id),
                "count": 2,
                "avg_rate": 130.0,
                "min_rate": 120.0,
                "max_rate": 140.0,
                "variation_pct": 15.4,
            }
        ]
        aggregator.log_summary()

    def test_unknown_material(self):
        assert RateAggregator().get(uuid4()) is None
