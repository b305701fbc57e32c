"""Database layer for BOQMatch with async SQLAlchemy."""

from boqmatch.db.connection import get_session, init_db
from boqmatch.db.models import (
    Base,
    BOQExtractedItemModel,
    BOQUploadModel,
    MasterMaterialModel,
    MaterialCategoryModel,
)
from boqmatch.db.repository import BOQRepository

__all__ = [
    "Base",
    "MaterialCategoryModel",
    "MasterMaterialModel",
    "BOQUploadModel",
    "BOQExtractedItemModel",
    "BOQRepository",
    "get_session",
    "init_db",
]
