"""Exception hierarchy for BOQ processing.

Parse errors never raise (they default to 0.0). The classes here mark the
failure modes the orchestrator treats differently:

- ExtractionSourceError: fall back one level in the extraction chain
- ReferenceDataError / PersistenceError: fatal for the run
- CatalogUpdateError: logged and skipped
"""

from __future__ import annotations


class BOQMatchError(Exception):
    """Base class for all BOQMatch errors."""

    pass


class ExtractionSourceError(BOQMatchError):
    """Raised when the alternate extractor is unavailable or returns garbage."""

    pass


class ReferenceDataError(BOQMatchError):
    """Raised when the master catalog or categories cannot be fetched."""

    pass


class PersistenceError(BOQMatchError):
    """Raised when extracted items cannot be stored."""

    def __init__(self, message: str, failed_chunks: list[int] | None = None) -> None:
        super().__init__(message)
        self.failed_chunks = failed_chunks or []


class CatalogUpdateError(BOQMatchError):
    """Raised when a guarded master-rate update fails."""

    pass


class UploadNotFoundError(BOQMatchError):
    """Raised when an upload id does not exist."""

    pass
