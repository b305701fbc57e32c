"""Pytest configuration and fixtures for BOQMatch tests.

Provides a small electrical master catalog and an in-memory database.
"""

from __future__ import annotations

from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from boqmatch.config import AppConfig, DBConfig, reset_config
from boqmatch.db.models import Base, MasterMaterialModel, MaterialCategoryModel
from boqmatch.db.repository import BOQRepository
from boqmatch.models import MasterMaterial, MaterialCategory

CABLES_ID = UUID("00000000-0000-4000-8000-00000000c001")
LIGHTING_ID = UUID("00000000-0000-4000-8000-00000000c002")
BOARDS_ID = UUID("00000000-0000-4000-8000-00000000c003")
CONTAINMENT_ID = UUID("00000000-0000-4000-8000-00000000c004")

CABLE_95_ID = UUID("00000000-0000-4000-8000-00000000a001")
CABLE_16_ID = UUID("00000000-0000-4000-8000-00000000a002")
PANEL_ID = UUID("00000000-0000-4000-8000-00000000a003")
BOARD_ID = UUID("00000000-0000-4000-8000-00000000a004")


# Two bills plus a notes sheet; the header row drives heuristic parsing
SAMPLE_BOQ = "\n".join(
    [
        "=== SHEET: Bill No. 1 - Cabling ===",
        "ELECTRICAL INSTALLATION",
        "Item\tDescription\tUnit\tQty\tRate\tAmount",
        "A\tPOWER CABLES",
        "A1\t4C 95mm XLPE SWA cable\tm\t100\t600.00\t60000.00",
        "A2\t4C 16mm XLPE cable\tm\t50\t120.00\t6000.00",
        "Total\t\t\t\t\t66000.00",
        "=== SHEET: Notes ===",
        "Tenderers shall allow for all testing",
        "=== SHEET: Bill No. 2 - Lighting ===",
        "Item\tDescription\tUnit\tQty\tRate\tAmount",
        "B1\t600x600 LED panel light\tNo\t20\t950.00\t19000.00",
        "B2\tSupply and install emergency exit sign\tNo\tRate only\t350.00\t",
    ]
)


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    for name in ("OPENAI_API_KEY", "GOOGLE_SHEETS_API_KEY", "GOOGLE_SHEETS_ACCESS_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def test_config() -> AppConfig:
    return AppConfig(db=DBConfig(url="sqlite+aiosqlite:///:memory:"))


@pytest.fixture
def sample_boq() -> str:
    return SAMPLE_BOQ


@pytest.fixture
def categories() -> list[MaterialCategory]:
    """Active material categories."""
    return [
        MaterialCategory(id=CABLES_ID, code="CB-PW", name="Power Cables"),
        MaterialCategory(id=LIGHTING_ID, code="LT", name="Lighting"),
        MaterialCategory(id=BOARDS_ID, code="DB", name="Distribution Boards"),
        MaterialCategory(id=CONTAINMENT_ID, code="CT", name="Containment Systems"),
    ]


@pytest.fixture
def materials() -> list[MasterMaterial]:
    """Master catalog; the 16mm cable has no standard rates yet."""
    return [
        MasterMaterial(
            id=CABLE_95_ID,
            code="CB-4C95",
            name="4 Core 95mm XLPE Cable",
            category_id=CABLES_ID,
            unit="M",
            standard_supply_cost=450.0,
            standard_install_cost=120.0,
        ),
        MasterMaterial(
            id=CABLE_16_ID,
            code="CB-4C16",
            name="4 Core 16mm XLPE Cable",
            category_id=CABLES_ID,
        ),
        MasterMaterial(
            id=PANEL_ID,
            code="LT-PNL-600",
            name="600x600 LED Panel Light",
            category_id=LIGHTING_ID,
            unit="NO",
            standard_supply_cost=800.0,
            standard_install_cost=200.0,
        ),
        MasterMaterial(
            id=BOARD_ID,
            code="DB-12W-TPN",
            name="12 Way TPN Distribution Board",
            category_id=BOARDS_ID,
            unit="NO",
            standard_supply_cost=6000.0,
            standard_install_cost=1500.0,
        ),
    ]


@pytest_asyncio.fixture()
async def session_factory() -> async_sessionmaker[AsyncSession]:
    """Create in-memory database for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def seeded_factory(session_factory, materials, categories):
    """In-memory database holding the sample catalog."""
    async with session_factory() as session, session.begin():
        session.add_all(
            MaterialCategoryModel(id=c.id, category_code=c.code, category_name=c.name)
            for c in categories
        )
        await session.flush()
        session.add_all(
            MasterMaterialModel(
                id=m.id,
                material_code=m.code,
                material_name=m.name,
                category_id=m.category_id,
                unit=m.unit,
                standard_supply_cost=m.standard_supply_cost,
                standard_install_cost=m.standard_install_cost,
            )
            for m in materials
        )
    return session_factory


@pytest.fixture
def repository(seeded_factory) -> BOQRepository:
    return BOQRepository(seeded_factory)
