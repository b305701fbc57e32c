"""Persistence operations for BOQ processing runs.

Every method runs in its own short transaction so that one failed insert
chunk cannot poison the rest of the run's writes.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boqmatch.core.exceptions import (
    CatalogUpdateError,
    PersistenceError,
    ReferenceDataError,
    UploadNotFoundError,
)
from boqmatch.db.models import (
    BOQExtractedItemModel,
    BOQUploadModel,
    MasterMaterialModel,
    MaterialCategoryModel,
)
from boqmatch.models import (
    ExtractedItem,
    MasterMaterial,
    MaterialCategory,
    UploadRecord,
    UploadStatus,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_upload_record(row: BOQUploadModel) -> UploadRecord:
    return UploadRecord(
        id=row.id,
        file_name=row.file_name,
        status=UploadStatus(row.status),
        extraction_started_at=row.extraction_started_at,
        extraction_completed_at=row.extraction_completed_at,
        error_message=row.error_message,
        total_items_extracted=row.total_items_extracted,
        items_matched_to_master=row.items_matched_to_master,
        items_added_to_master=row.items_added_to_master,
    )


def _item_to_model(upload_id: UUID, item: ExtractedItem) -> BOQExtractedItemModel:
    return BOQExtractedItemModel(
        upload_id=upload_id,
        row_number=item.row_number,
        bill_number=item.bill_number,
        bill_name=item.bill_name,
        section_code=item.section_code,
        section_name=item.section_name,
        item_code=item.item_code,
        item_description=item.item_description,
        unit=item.unit,
        quantity=item.quantity,
        supply_rate=item.supply_rate,
        install_rate=item.install_rate,
        total_rate=item.total_rate,
        amount=item.amount,
        calculated_total=item.calculated_total,
        matched_material_id=item.matched_material_id,
        match_confidence=item.match_confidence,
        suggested_category_id=item.suggested_category_id,
        suggested_category_name=item.suggested_category_name,
        is_new_item=item.is_new_item,
        is_rate_only=item.is_rate_only,
        is_outlier=item.is_outlier,
        outlier_reason=item.outlier_reason,
        math_validated=item.math_validated,
        review_status=item.review_status.value,
        extraction_notes=item.extraction_notes,
        raw_data=item.raw_data,
    )


def _is_empty(column):
    return or_(column.is_(None), column == 0)


class BOQRepository:
    """Upload status, extracted items and guarded catalog updates."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize repository.

        Args:
            session_factory: Factory producing AsyncSession instances
        """
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Upload status
    # ------------------------------------------------------------------

    async def create_upload(self, file_name: str) -> UploadRecord:
        async with self.session_factory() as session, session.begin():
            upload = BOQUploadModel(
                id=uuid4(),
                file_name=file_name,
                status=UploadStatus.PENDING.value,
                total_items_extracted=0,
                items_matched_to_master=0,
                items_added_to_master=0,
            )
            session.add(upload)
            await session.flush()
            return _to_upload_record(upload)

    async def get_upload(self, upload_id: UUID) -> UploadRecord | None:
        async with self.session_factory() as session:
            upload = await session.get(BOQUploadModel, upload_id)
            return _to_upload_record(upload) if upload else None

    async def _set_status(self, upload_id: UUID, **values) -> None:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(BOQUploadModel).where(BOQUploadModel.id == upload_id).values(**values)
            )
            if result.rowcount == 0:
                raise UploadNotFoundError(f"Upload {upload_id} not found")

    async def mark_processing(self, upload_id: UUID) -> None:
        await self._set_status(
            upload_id,
            status=UploadStatus.PROCESSING.value,
            extraction_started_at=_now(),
            extraction_completed_at=None,
            error_message=None,
        )

    async def mark_completed(
        self, upload_id: UUID, total_items: int, matched_items: int, master_updates: int
    ) -> None:
        await self._set_status(
            upload_id,
            status=UploadStatus.COMPLETED.value,
            extraction_completed_at=_now(),
            total_items_extracted=total_items,
            items_matched_to_master=matched_items,
            items_added_to_master=master_updates,
        )

    async def mark_failed(self, upload_id: UUID, message: str) -> None:
        await self._set_status(
            upload_id,
            status=UploadStatus.FAILED.value,
            extraction_completed_at=_now(),
            error_message=message,
        )

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    async def fetch_reference_data(self) -> tuple[list[MasterMaterial], list[MaterialCategory]]:
        """Load active master materials and categories.

        Raises:
            ReferenceDataError: If either query fails
        """
        try:
            async with self.session_factory() as session:
                material_rows = (
                    await session.execute(
                        select(MasterMaterialModel)
                        .where(MasterMaterialModel.is_active.is_(True))
                        .order_by(MasterMaterialModel.material_code)
                    )
                ).scalars().all()
                category_rows = (
                    await session.execute(
                        select(MaterialCategoryModel)
                        .where(MaterialCategoryModel.is_active.is_(True))
                        .order_by(MaterialCategoryModel.category_code)
                    )
                ).scalars().all()
        except SQLAlchemyError as e:
            raise ReferenceDataError(f"Failed to fetch reference data: {e}") from e

        materials = [
            MasterMaterial(
                id=row.id,
                code=row.material_code,
                name=row.material_name,
                category_id=row.category_id,
                unit=row.unit,
                standard_supply_cost=row.standard_supply_cost,
                standard_install_cost=row.standard_install_cost,
            )
            for row in material_rows
        ]
        categories = [
            MaterialCategory(
                id=row.id,
                code=row.category_code,
                name=row.category_name,
                parent_id=row.parent_category_id,
            )
            for row in category_rows
        ]
        return materials, categories

    # ------------------------------------------------------------------
    # Extracted items
    # ------------------------------------------------------------------

    async def delete_items(self, upload_id: UUID) -> int:
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    delete(BOQExtractedItemModel).where(BOQExtractedItemModel.upload_id == upload_id)
                )
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to clear previous items: {e}") from e

    async def _insert_chunk(self, upload_id: UUID, chunk: Sequence[ExtractedItem]) -> None:
        async with self.session_factory() as session, session.begin():
            session.add_all(_item_to_model(upload_id, item) for item in chunk)

    async def replace_items(
        self, upload_id: UUID, items: Sequence[ExtractedItem], chunk_size: int = 100
    ) -> int:
        """Delete prior items for the upload, then insert in chunks.

        Every chunk is attempted even if an earlier one fails.

        Returns:
            Number of inserted items

        Raises:
            PersistenceError: If the delete or any chunk failed
        """
        await self.delete_items(upload_id)

        inserted = 0
        failed_chunks: list[int] = []
        errors: list[str] = []
        for chunk_index, start in enumerate(range(0, len(items), chunk_size)):
            chunk = items[start : start + chunk_size]
            try:
                await self._insert_chunk(upload_id, chunk)
                inserted += len(chunk)
            except SQLAlchemyError as e:
                logger.error(f"Insert chunk {chunk_index} ({len(chunk)} items) failed: {e}")
                failed_chunks.append(chunk_index)
                errors.append(str(e))

        if failed_chunks:
            raise PersistenceError(
                f"{len(failed_chunks)} of {-(-len(items) // chunk_size)} insert chunks failed: "
                f"{errors[0]}",
                failed_chunks=failed_chunks,
            )
        return inserted

    async def list_items(self, upload_id: UUID) -> list[BOQExtractedItemModel]:
        async with self.session_factory() as session:
            rows = await session.execute(
                select(BOQExtractedItemModel)
                .where(BOQExtractedItemModel.upload_id == upload_id)
                .order_by(BOQExtractedItemModel.row_number)
            )
            return list(rows.scalars().all())

    async def count_items(self, upload_id: UUID) -> int:
        async with self.session_factory() as session:
            return (
                await session.execute(
                    select(func.count())
                    .select_from(BOQExtractedItemModel)
                    .where(BOQExtractedItemModel.upload_id == upload_id)
                )
            ).scalar_one()

    # ------------------------------------------------------------------
    # Guarded catalog learning
    # ------------------------------------------------------------------

    async def fill_master_rates(
        self,
        material_id: UUID,
        supply_cost: float | None = None,
        install_cost: float | None = None,
        unit: str | None = None,
    ) -> bool:
        """Fill empty master rates/unit in one combined, guarded UPDATE.

        Each column is only written if it is currently NULL or zero (empty
        string for unit), so concurrent runs converge on the first writer.

        Returns:
            True if a row changed

        Raises:
            CatalogUpdateError: If the update statement fails
        """
        m = MasterMaterialModel
        values: dict = {}
        guards = []

        if supply_cost:
            values["standard_supply_cost"] = case(
                (_is_empty(m.standard_supply_cost), supply_cost), else_=m.standard_supply_cost
            )
            guards.append(_is_empty(m.standard_supply_cost))
        if install_cost:
            values["standard_install_cost"] = case(
                (_is_empty(m.standard_install_cost), install_cost), else_=m.standard_install_cost
            )
            guards.append(_is_empty(m.standard_install_cost))
        if unit:
            unit_empty = or_(m.unit.is_(None), m.unit == "")
            values["unit"] = case((unit_empty, unit), else_=m.unit)
            guards.append(unit_empty)

        if not values:
            return False
        values["updated_at"] = _now()

        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    update(m)
                    .where(m.id == material_id, or_(*guards))
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            raise CatalogUpdateError(f"Master update for {material_id} failed: {e}") from e
