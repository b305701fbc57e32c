"""SQLAlchemy async database models for BOQMatch.

Catalog tables (material_categories, master_materials) are owned by the price
book maintainers; this engine only reads them and fills empty standard rates.
Upload and extracted-item tables are owned by this engine.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

RATE = Numeric(14, 2, asdecimal=False)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class MaterialCategoryModel(Base):
    """Category in the master catalog hierarchy."""

    __tablename__ = "material_categories"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    category_code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    category_name: Mapped[str] = mapped_column(Text, nullable=False)
    parent_category_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("material_categories.id")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class MasterMaterialModel(Base):
    """Canonical catalog entry with standard supply/install costs."""

    __tablename__ = "master_materials"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    material_code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    material_name: Mapped[str] = mapped_column(Text, nullable=False)
    category_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("material_categories.id"), index=True
    )
    unit: Mapped[str | None] = mapped_column(Text)
    standard_supply_cost: Mapped[float | None] = mapped_column(RATE)
    standard_install_cost: Mapped[float | None] = mapped_column(RATE)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (Index("idx_master_materials_active", "is_active"),)


class BOQUploadModel(Base):
    """Upload status record polled by callers."""

    __tablename__ = "boq_uploads"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    extraction_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    extraction_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[str | None] = mapped_column(Text)
    total_items_extracted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items_matched_to_master: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items_added_to_master: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="check_upload_status",
        ),
    )


class BOQExtractedItemModel(Base):
    """One extracted BOQ line item with match and anomaly annotations."""

    __tablename__ = "boq_extracted_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    upload_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("boq_uploads.id", ondelete="CASCADE"), nullable=False
    )
    row_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # Provenance
    bill_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    bill_name: Mapped[str | None] = mapped_column(Text)
    section_code: Mapped[str | None] = mapped_column(Text)
    section_name: Mapped[str | None] = mapped_column(Text)
    item_code: Mapped[str | None] = mapped_column(Text)
    item_description: Mapped[str] = mapped_column(Text, nullable=False)

    # Quantities and rates
    unit: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[float | None] = mapped_column(Float)
    supply_rate: Mapped[float | None] = mapped_column(RATE)
    install_rate: Mapped[float | None] = mapped_column(RATE)
    total_rate: Mapped[float | None] = mapped_column(RATE)
    amount: Mapped[float | None] = mapped_column(RATE)
    calculated_total: Mapped[float] = mapped_column(RATE, default=0.0)

    # Matching
    matched_material_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("master_materials.id")
    )
    match_confidence: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    suggested_category_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    suggested_category_name: Mapped[str | None] = mapped_column(Text)
    is_new_item: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Anomalies
    is_rate_only: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_outlier: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    outlier_reason: Mapped[str | None] = mapped_column(Text)
    math_validated: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    review_status: Mapped[str] = mapped_column(Text, default="pending", nullable=False)
    extraction_notes: Mapped[str | None] = mapped_column(Text)
    raw_data: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_boq_items_upload_row", "upload_id", "row_number"),
        Index("idx_boq_items_material", "matched_material_id"),
        CheckConstraint(
            "matched_material_id IS NULL OR match_confidence >= 0.6",
            name="check_match_confidence",
        ),
    )
