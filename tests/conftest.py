"""Shared fixtures: every test runs against its own SQLite catalog."""
import os
import tempfile

_scratch = tempfile.mkdtemp(prefix="tvsync-tests-")
os.environ.setdefault("DATABASE_PATH", os.path.join(_scratch, "default.db"))
os.environ.setdefault("LOGO_DIRECTORY", os.path.join(_scratch, "logos"))

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from tvsync.database import close_db, init_db, session_scope  # noqa: E402
from tests.helpers import BrokenStore  # noqa: E402
from tvsync.services.asset_fetcher import reset_logo_fetcher  # noqa: E402
from tvsync.services.catalog_store import SqlCatalogStore  # noqa: E402
from tvsync.services.sync_coordinator import reset_sync_coordinator  # noqa: E402


@pytest_asyncio.fixture
async def database(tmp_path):
    """Initialize a fresh catalog database for one test."""
    await init_db(str(tmp_path / "catalog.db"))
    yield
    await close_db()


@pytest_asyncio.fixture
async def store(database):
    """SqlCatalogStore inside a transaction committed at teardown."""
    async with session_scope() as session:
        yield SqlCatalogStore(session)


@pytest.fixture
def broken_store() -> BrokenStore:
    return BrokenStore()


@pytest.fixture(autouse=True)
def _reset_singletons():
    reset_logo_fetcher()
    reset_sync_coordinator()
    yield
    reset_logo_fetcher()
    reset_sync_coordinator()
