"""BOQMatch Pydantic models for type-safe data validation.

Confidence scores are floats in the 0.0-1.0 range. A master-material match is
only ever recorded at or above MATCH_THRESHOLD.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import (
    BaseModel,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

MATCH_THRESHOLD = 0.6


class UploadStatus(str, Enum):
    """Lifecycle of a BOQ upload."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ReviewStatus(str, Enum):
    """Review state of an extracted line item."""

    PENDING = "pending"
    FLAGGED = "flagged"
    APPROVED = "approved"
    REJECTED = "rejected"


class MaterialCategory(BaseModel):
    """Category in the master catalog hierarchy (read-only here)."""

    id: UUID
    code: str
    name: str
    parent_id: UUID | None = None


class MasterMaterial(BaseModel):
    """Canonical catalog entry with standard supply/install costs."""

    id: UUID
    code: str
    name: str
    category_id: UUID | None = None
    unit: str | None = None
    standard_supply_cost: float | None = None
    standard_install_cost: float | None = None

    @property
    def standard_total(self) -> float:
        return (self.standard_supply_cost or 0.0) + (self.standard_install_cost or 0.0)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "7c1e7c1e-0000-4000-8000-000000000001",
                "code": "CB-4C95-XLPE",
                "name": "4 Core 95mm XLPE SWA Cable",
                "unit": "M",
                "standard_supply_cost": 450.0,
                "standard_install_cost": 120.0,
            }
        }


class ColumnMapping(BaseModel):
    """Zero-based column indices for one sheet (None = column absent).

    Accepts the camelCase keys produced by the column-mapping wizard.
    """

    item_code: int | None = Field(default=None, alias="itemCode")
    description: int | None = None
    quantity: int | None = None
    unit: int | None = None
    supply_rate: int | None = Field(default=None, alias="supplyRate")
    install_rate: int | None = Field(default=None, alias="installRate")
    total_rate: int | None = Field(default=None, alias="totalRate")
    amount: int | None = None

    class Config:
        populate_by_name = True

    @field_validator("*", mode="before")
    @classmethod
    def negative_means_absent(cls, v: Any) -> Any:
        """Wizards encode an unmapped column as -1 or an empty string."""
        if v == "" or (isinstance(v, int) and v < 0):
            return None
        return v

    @property
    def is_parsable(self) -> bool:
        return self.description is not None


class ExtractedItem(BaseModel):
    """One BOQ line item with its match and anomaly annotations."""

    row_number: int = Field(..., ge=1)
    bill_number: int = 1
    bill_name: str | None = None
    section_code: str | None = None
    section_name: str | None = None
    item_code: str | None = None
    item_description: str = Field(..., min_length=3)
    unit: str | None = None
    quantity: float | None = None
    supply_rate: float | None = None
    install_rate: float | None = None
    total_rate: float | None = None
    amount: float | None = None
    calculated_total: float = 0.0

    matched_material_id: UUID | None = None
    match_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    suggested_category_id: UUID | None = None
    suggested_category_name: str | None = None

    is_rate_only: bool = False
    is_outlier: bool = False
    outlier_reason: str | None = None
    math_validated: bool = True

    extraction_notes: str | None = None
    raw_data: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def clear_low_confidence_match(self) -> ExtractedItem:
        """A material id is never kept below the matching threshold."""
        if self.matched_material_id is not None and self.match_confidence < MATCH_THRESHOLD:
            self.matched_material_id = None
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_new_item(self) -> bool:
        return self.match_confidence < MATCH_THRESHOLD

    @computed_field  # type: ignore[prop-decorator]
    @property
    def review_status(self) -> ReviewStatus:
        return ReviewStatus.FLAGGED if self.is_outlier else ReviewStatus.PENDING

    def apply_match(
        self,
        material_id: UUID | None,
        confidence: float,
        category_id: UUID | None = None,
        category_name: str | None = None,
        threshold: float = MATCH_THRESHOLD,
    ) -> None:
        """Record a matcher outcome, enforcing the confidence threshold.

        Args:
            material_id: Best candidate (may be None)
            confidence: Score of the best candidate (0.0-1.0)
            category_id: Suggested category when unmatched
            category_name: Suggested category name when unmatched
            threshold: Minimum confidence to keep a material id
        """
        threshold = max(threshold, MATCH_THRESHOLD)
        self.match_confidence = max(0.0, min(1.0, confidence))
        if material_id is not None and self.match_confidence >= threshold:
            self.matched_material_id = material_id
            self.suggested_category_id = None
            self.suggested_category_name = None
        else:
            self.matched_material_id = None
            self.suggested_category_id = category_id
            self.suggested_category_name = category_name

    def add_note(self, note: str) -> None:
        self.extraction_notes = f"{self.extraction_notes}; {note}" if self.extraction_notes else note


class UploadRecord(BaseModel):
    """Upload status record as exposed to callers polling for completion."""

    id: UUID
    file_name: str
    status: UploadStatus
    extraction_started_at: datetime | None = None
    extraction_completed_at: datetime | None = None
    error_message: str | None = None
    total_items_extracted: int = 0
    items_matched_to_master: int = 0
    items_added_to_master: int = 0
