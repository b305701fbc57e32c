"""Type definitions for BOQ processing runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class ProcessingStatus(str, Enum):
    """Status of a processing run."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class ExtractionPath(str, Enum):
    """How a sheet's rows were extracted."""

    MAPPED = "mapped"
    LLM = "llm"
    HEURISTIC = "heuristic"


@dataclass
class ProcessingResult:
    """Result of processing one upload."""

    upload_id: UUID
    status: ProcessingStatus
    total_items: int = 0
    matched_items: int = 0
    new_items: int = 0
    outlier_items: int = 0
    master_updates: int = 0
    sheet_paths: dict[str, str] = field(default_factory=dict)
    message: str = ""
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """Check if processing was successful."""
        return self.status == ProcessingStatus.SUCCESS

    def as_dict(self) -> dict:
        return {
            "upload_id": str(self.upload_id),
            "status": self.status.value,
            "total_items": self.total_items,
            "matched_items": self.matched_items,
            "new_items": self.new_items,
            "outlier_items": self.outlier_items,
            "master_updates": self.master_updates,
            "sheet_paths": self.sheet_paths,
            "message": self.message,
            "duration_seconds": round(self.duration_seconds, 3),
        }
