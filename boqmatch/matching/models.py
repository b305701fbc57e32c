"""Data models for the matching engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class ItemDomain(str, Enum):
    """Structured domains recognised in BOQ descriptions."""

    CABLE = "cable"
    LIGHT = "light"
    DB = "db"


@dataclass
class CableSpec:
    """Cable attributes parsed from a description."""

    cores: int | None = None
    size_mm2: float | None = None
    insulation: str | None = None  # XLPE, PVC, SWA


@dataclass
class LightSpec:
    """Light fitting attributes parsed from a description."""

    dimensions: str | None = None  # "600x600"
    fitting_type: str | None = None  # Panel, Downlight, Bulkhead


@dataclass
class DBSpec:
    """Distribution board attributes parsed from a description."""

    ways: int | None = None
    phase: str | None = None  # TPN, SPN


@dataclass
class ExtractedSpecs:
    """Result of specification extraction for one description."""

    domain: ItemDomain | None = None
    cable: CableSpec | None = None
    light: LightSpec | None = None
    db: DBSpec | None = None
    keywords: list[str] = field(default_factory=list)

    @property
    def is_cable(self) -> bool:
        return self.domain == ItemDomain.CABLE

    @property
    def is_light(self) -> bool:
        return self.domain == ItemDomain.LIGHT

    @property
    def is_db(self) -> bool:
        return self.domain == ItemDomain.DB


@dataclass(frozen=True)
class MatchOutcome:
    """Best catalog match for one description.

    material_id is only populated when confidence reached the threshold;
    category fields are only populated when it did not.
    """

    material_id: UUID | None
    confidence: float
    method: str
    material_code: str | None = None
    category_id: UUID | None = None
    category_name: str | None = None

    @property
    def matched(self) -> bool:
        return self.material_id is not None
