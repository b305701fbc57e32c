"""BOQ processing orchestrator.

Runs one upload end to end:

1. Mark the upload processing
2. Fetch the active master catalog and categories
3. Extract items sheet by sheet (column mapping > LLM extractor > heuristic)
4. Match every item and run outlier detection
5. Aggregate rates per matched material (logging)
6. Replace the upload's stored items (chunked)
7. Apply guarded master-rate learning
8. Mark the upload completed with counters

Any failure marks the upload failed with the error message. A run never
leaves a "completed" status behind for partially written items.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boqmatch.canonical.units import UnitStandardizer
from boqmatch.config import AppConfig, get_config
from boqmatch.core.logging import bind_upload_context, clear_upload_context
from boqmatch.db.repository import BOQRepository
from boqmatch.flags.engine import detect_outliers
from boqmatch.ingestion.llm_extractor import (
    AlternateExtractor,
    LLMExtractor,
    record_section,
    record_to_fields,
)
from boqmatch.ingestion.row_parser import RowParser
from boqmatch.ingestion.sheets import Sheet, segment_sheets
from boqmatch.matching.matcher import MaterialMatcher
from boqmatch.models import ColumnMapping, ExtractedItem, MasterMaterial, MaterialCategory
from boqmatch.pipeline.rate_learning import MasterRateLearner, plan_master_updates
from boqmatch.pipeline.types import ExtractionPath, ProcessingResult, ProcessingStatus
from boqmatch.reporting.rate_tracker import RateAggregator

logger = logging.getLogger(__name__)

ColumnMappings = Mapping[str, ColumnMapping | dict[str, Any]]


def normalize_mappings(column_mappings: ColumnMappings | None) -> dict[str, ColumnMapping]:
    """Accept ColumnMapping objects or raw wizard dicts keyed by sheet name."""
    if not column_mappings:
        return {}
    return {
        name: m if isinstance(m, ColumnMapping) else ColumnMapping.model_validate(m)
        for name, m in column_mappings.items()
    }


class BOQProcessor:
    """Orchestrates extraction, matching, anomaly detection and persistence."""

    def __init__(
        self,
        repository: BOQRepository,
        config: AppConfig | None = None,
        extractor: AlternateExtractor | None = None,
        parser: RowParser | None = None,
    ):
        """Initialize processor.

        Args:
            repository: Persistence for uploads, items and catalog updates
            config: Application config (environment singleton if omitted)
            extractor: Optional alternate extractor for unmapped sheets
            parser: Row parser (built from config if omitted)
        """
        self.repository = repository
        self.config = config or get_config()
        self.extractor = extractor
        self.parser = parser or RowParser(
            units=UnitStandardizer(self.config.ingestion.unit_synonyms_path),
            supply_share=self.config.ingestion.supply_share,
            header_scan_lines=self.config.ingestion.header_scan_lines,
        )
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def submit(
        self,
        upload_id: UUID,
        content: str,
        column_mappings: ColumnMappings | None = None,
    ) -> asyncio.Task[ProcessingResult]:
        """Mark the upload processing and continue in a background task.

        Returns as soon as the status is written; callers poll the upload
        record for completion.
        """
        await self.repository.mark_processing(upload_id)
        task = asyncio.create_task(
            self.run(upload_id, content, column_mappings, mark_processing=False)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def process(
        self,
        upload_id: UUID,
        content: str,
        column_mappings: ColumnMappings | None = None,
    ) -> ProcessingResult:
        """Process an upload in the foreground (CLI, worker)."""
        return await self.run(upload_id, content, column_mappings, mark_processing=True)

    async def run(
        self,
        upload_id: UUID,
        content: str,
        column_mappings: ColumnMappings | None = None,
        mark_processing: bool = True,
    ) -> ProcessingResult:
        """Execute the full processing sequence for one upload.

        Args:
            upload_id: Upload being processed
            content: Combined sheet-marker text
            column_mappings: Per-sheet column mappings keyed by sheet name
            mark_processing: Write the processing status first

        Returns:
            ProcessingResult (FAILED status instead of raising)
        """
        started = time.monotonic()
        bind_upload_context(upload_id)
        result = ProcessingResult(upload_id=upload_id, status=ProcessingStatus.SUCCESS)

        try:
            if mark_processing:
                await self.repository.mark_processing(upload_id)

            materials, categories = await self.repository.fetch_reference_data()
            logger.info(f"Loaded {len(materials)} materials and {len(categories)} categories")

            items, sheet_paths = await self.extract_items(
                content, normalize_mappings(column_mappings), materials, categories
            )
            result.sheet_paths = {name: path.value for name, path in sheet_paths.items()}

            self.annotate(items, materials, categories)

            RateAggregator().add_all(items).log_summary()

            await self.repository.replace_items(
                upload_id, items, chunk_size=self.config.ingestion.insert_chunk_size
            )

            updates = plan_master_updates(
                items,
                {m.id: m for m in materials},
                min_confidence=self.config.matching.learning_min_confidence,
                supply_share=self.config.ingestion.supply_share,
            )
            master_updates = await MasterRateLearner(self.repository).apply(updates)

            result.total_items = len(items)
            result.matched_items = sum(1 for i in items if i.matched_material_id is not None)
            result.new_items = result.total_items - result.matched_items
            result.outlier_items = sum(1 for i in items if i.is_outlier)
            result.master_updates = master_updates

            await self.repository.mark_completed(
                upload_id,
                total_items=result.total_items,
                matched_items=result.matched_items,
                master_updates=master_updates,
            )
            result.message = (
                f"{result.total_items} items, {result.matched_items} matched, "
                f"{result.outlier_items} outliers, {master_updates} master updates"
            )
            logger.info(f"Processing completed: {result.message}")

        except Exception as e:
            logger.exception(f"Processing failed for upload {upload_id}: {e}")
            result.status = ProcessingStatus.FAILED
            result.message = str(e) or e.__class__.__name__
            await self._record_failure(upload_id, result.message)

        finally:
            result.duration_seconds = time.monotonic() - started
            clear_upload_context()

        return result

    async def _record_failure(self, upload_id: UUID, message: str) -> None:
        try:
            await self.repository.mark_failed(upload_id, message)
        except Exception as e:
            logger.error(f"Could not record failed status for upload {upload_id}: {e}")

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def extract_items(
        self,
        content: str,
        column_mappings: Mapping[str, ColumnMapping],
        materials: Sequence[MasterMaterial],
        categories: Sequence[MaterialCategory],
    ) -> tuple[list[ExtractedItem], dict[str, ExtractionPath]]:
        """Extract items from every sheet in document order.

        Row numbers continue across sheets without gaps.

        Returns:
            (items, extraction path per sheet name)
        """
        items: list[ExtractedItem] = []
        paths: dict[str, ExtractionPath] = {}

        for sheet in segment_sheets(content):
            next_row = len(items) + 1
            mapping = column_mappings.get(sheet.name)

            if mapping is not None:
                sheet_items = self.parser.parse_mapped(sheet, mapping, start_row=next_row)
                path = ExtractionPath.MAPPED
            else:
                sheet_items = await self._extract_with_fallback(
                    sheet, next_row, materials, categories
                )
                path = ExtractionPath.LLM if sheet_items is not None else ExtractionPath.HEURISTIC
                if sheet_items is None:
                    sheet_items = self.parser.parse_heuristic(sheet, start_row=next_row)

            logger.info(f"Sheet '{sheet.name}' ({path.value}): {len(sheet_items)} items")
            items.extend(sheet_items)
            paths[sheet.name] = path

        return items, paths

    async def _extract_with_fallback(
        self,
        sheet: Sheet,
        start_row: int,
        materials: Sequence[MasterMaterial],
        categories: Sequence[MaterialCategory],
    ) -> list[ExtractedItem] | None:
        """Try the alternate extractor; None means use the heuristic parser."""
        if self.extractor is None:
            return None

        try:
            records = await self.extractor.extract(sheet, materials, categories)
        except Exception as e:
            logger.warning(f"Alternate extraction failed for '{sheet.name}', using heuristic parser: {e}")
            return None

        sheet_items: list[ExtractedItem] = []
        for record in records:
            item = self.parser.build_item(
                record_to_fields(record),
                sheet=sheet,
                row_number=start_row + len(sheet_items),
                section=record_section(record),
            )
            if item:
                item.raw_data = {"source": ExtractionPath.LLM.value, "record": record}
                sheet_items.append(item)

        if not sheet_items:
            logger.warning(f"No usable records from alternate extractor for '{sheet.name}'")
            return None
        return sheet_items

    def annotate(
        self,
        items: Sequence[ExtractedItem],
        materials: Sequence[MasterMaterial],
        categories: Sequence[MaterialCategory],
    ) -> None:
        """Attach match results and anomaly flags to every item in place."""
        matcher = MaterialMatcher(
            materials, categories, match_threshold=self.config.matching.match_threshold
        )
        by_id = {m.id: m for m in materials}

        for item in items:
            outcome = matcher.match(item.item_description)
            item.apply_match(
                outcome.material_id,
                outcome.confidence,
                category_id=outcome.category_id,
                category_name=outcome.category_name,
                threshold=self.config.matching.match_threshold,
            )

            master = by_id.get(item.matched_material_id) if item.matched_material_id else None
            flags = detect_outliers(item, master, item.match_confidence, self.config.outliers)
            item.is_rate_only = item.is_rate_only or flags.is_rate_only
            item.is_outlier = flags.is_outlier
            item.outlier_reason = flags.outlier_reason
            item.math_validated = flags.math_validated
            if flags.is_outlier:
                item.add_note(f"OUTLIER: {flags.outlier_reason}")


def build_processor(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    config: AppConfig | None = None,
    use_llm: bool = True,
) -> BOQProcessor:
    """Convenience constructor wiring the default repository and extractor.

    Args:
        session_factory: Session factory (global one if omitted)
        config: Application config (environment singleton if omitted)
        use_llm: Enable the LLM extractor when an API key is configured
    """
    from boqmatch.db.connection import get_session_factory

    cfg = config or get_config()
    repository = BOQRepository(session_factory or get_session_factory())
    extractor = LLMExtractor(cfg.llm) if use_llm and cfg.llm.enabled else None
    return BOQProcessor(repository, config=cfg, extractor=extractor)
