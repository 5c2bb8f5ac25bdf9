from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from cardscience.db.database import drop_db
from cardscience.db.store import SqlDocumentStore
from cardscience.models.registry import build_registry
from cardscience.models.schema import SchemaRegistry

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def read_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    yield engine
    await drop_db(engine)
    await engine.dispose()


@pytest.fixture
async def store(async_engine) -> SqlDocumentStore:
    """A created, empty document store."""
    document_store = SqlDocumentStore(async_engine)
    await document_store.create()
    return document_store


@pytest.fixture
def registry() -> SchemaRegistry:
    return build_registry()


@pytest.fixture
def page_0_html() -> str:
    return read_fixture("gatherer_page_0.html")


@pytest.fixture
def page_1_html() -> str:
    return read_fixture("gatherer_page_1.html")


@pytest.fixture
def split_card_html() -> str:
    return read_fixture("gatherer_split_card.html")
