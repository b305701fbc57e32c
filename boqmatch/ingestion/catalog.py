"""Master catalog import from CSV or XLSX price books."""

from __future__ import annotations

import logging
from pathlib import Path
from uuid import uuid4

import pandas as pd
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boqmatch.canonical.rates import parse_rate
from boqmatch.canonical.units import standardize_unit
from boqmatch.db.models import MasterMaterialModel, MaterialCategoryModel

logger = logging.getLogger(__name__)


async def ingest_catalog(session: AsyncSession, file_path: Path) -> tuple[int, list[str]]:
    """Insert or update master materials from a price book.

    Expected columns:
    - Code (required, unique material code)
    - Name (required)
    - Category Code / Category Name (optional; category created if unknown)
    - Unit (optional)
    - Supply Cost / Install Cost (optional)

    Existing materials (matched by code) get their name, unit and costs
    overwritten; this is the maintainers' path, not the guarded BOQ path.

    Args:
        session: Database session
        file_path: Path to CSV or XLSX file

    Returns:
        Tuple of (success_count, error_messages)

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file format or columns are invalid
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Catalog not found: {file_path}")

    if file_path.suffix.lower() == ".csv":
        df = pd.read_csv(file_path)
    elif file_path.suffix.lower() in (".xlsx", ".xls"):
        df = pd.read_excel(file_path)
    else:
        raise ValueError(f"Unsupported file format: {file_path.suffix}")

    missing = {"Code", "Name"} - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    categories = {
        c.category_code: c
        for c in (await session.execute(select(MaterialCategoryModel))).scalars().all()
    }
    materials = {
        m.material_code: m
        for m in (await session.execute(select(MasterMaterialModel))).scalars().all()
    }

    success_count = 0
    errors: list[str] = []

    for idx, row in df.iterrows():
        code = _get_str(row, "Code")
        name = _get_str(row, "Name")
        if not code or not name:
            errors.append(f"Row {idx + 2}: missing code or name")
            continue

        category_id = None
        category_code = _get_str(row, "Category Code")
        if category_code:
            category = categories.get(category_code)
            if category is None:
                category = MaterialCategoryModel(
                    id=uuid4(),
                    category_code=category_code,
                    category_name=_get_str(row, "Category Name") or category_code,
                )
                session.add(category)
                categories[category_code] = category
            category_id = category.id

        supply = parse_rate(_get_str(row, "Supply Cost")) or None
        install = parse_rate(_get_str(row, "Install Cost")) or None
        unit = standardize_unit(_get_str(row, "Unit"))

        material = materials.get(code)
        if material is None:
            material = MasterMaterialModel(id=uuid4(), material_code=code, material_name=name)
            session.add(material)
            materials[code] = material
        material.material_name = name
        material.category_id = category_id or material.category_id
        material.unit = unit or material.unit
        material.standard_supply_cost = supply
        material.standard_install_cost = install
        material.is_active = True
        success_count += 1

    await session.flush()
    logger.info(f"Imported {success_count} catalog entries from {file_path.name}")
    return success_count, errors


def _get_str(row: pd.Series, col_name: str) -> str | None:
    """Get string value from row."""
    if col_name in row and pd.notna(row[col_name]):
        value = str(row[col_name]).strip()
        return value or None
    return None
