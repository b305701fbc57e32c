"""Guarded master-rate learning.

Fills empty standard supply/install costs (and unit) on master materials from
confidently matched BOQ items. Existing non-zero values are never changed:
this is a one-directional fill, not a correction mechanism.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from uuid import UUID

from boqmatch.core.exceptions import CatalogUpdateError
from boqmatch.db.repository import BOQRepository
from boqmatch.models import ExtractedItem, MasterMaterial

logger = logging.getLogger(__name__)


@dataclass
class MasterRateUpdate:
    """Combined fill for one master material."""

    material_id: UUID
    supply_cost: float | None = None
    install_cost: float | None = None
    unit: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.supply_cost is None and self.install_cost is None and self.unit is None


def plan_master_updates(
    items: Iterable[ExtractedItem],
    materials: Mapping[UUID, MasterMaterial],
    min_confidence: float = 0.7,
    supply_share: float = 0.7,
) -> list[MasterRateUpdate]:
    """Build at most one update per material from the first qualifying item.

    Args:
        items: Extracted items in row order
        materials: Catalog snapshot keyed by material id
        min_confidence: Minimum match confidence for learning
        supply_share: Supply portion of a total-only rate

    Returns:
        Updates with only the currently-empty fields populated
    """
    planned: dict[UUID, MasterRateUpdate] = {}

    for item in items:
        material_id = item.matched_material_id
        if material_id is None or item.match_confidence < min_confidence:
            continue
        if material_id in planned:
            continue
        master = materials.get(material_id)
        if master is None:
            continue

        total = item.total_rate or 0.0
        supply = item.supply_rate or total * supply_share
        install = item.install_rate or total * (1 - supply_share)

        update = MasterRateUpdate(material_id=material_id)
        if not master.standard_supply_cost and supply > 0:
            update.supply_cost = round(supply, 2)
        if not master.standard_install_cost and install > 0:
            update.install_cost = round(install, 2)
        if not master.unit and item.unit:
            update.unit = item.unit

        if not update.is_empty:
            planned[material_id] = update

    return list(planned.values())


class MasterRateLearner:
    """Apply planned master updates, skipping individual failures."""

    def __init__(self, repository: BOQRepository):
        """Initialize learner.

        Args:
            repository: Repository performing the guarded UPDATE
        """
        self.repository = repository
        self.stats = {
            "updated": 0,
            "unchanged": 0,
            "failed": 0,
        }

    async def apply(self, updates: Iterable[MasterRateUpdate]) -> int:
        """Apply updates one material at a time.

        Returns:
            Number of materials actually changed
        """
        for update in updates:
            try:
                changed = await self.repository.fill_master_rates(
                    update.material_id,
                    supply_cost=update.supply_cost,
                    install_cost=update.install_cost,
                    unit=update.unit,
                )
            except CatalogUpdateError as e:
                logger.warning(f"Skipping master update: {e}")
                self.stats["failed"] += 1
                continue

            if changed:
                self.stats["updated"] += 1
                logger.info(
                    f"Learned rates for material {update.material_id}: "
                    f"supply={update.supply_cost}, install={update.install_cost}, unit={update.unit}"
                )
            else:
                self.stats["unchanged"] += 1

        return self.stats["updated"]
