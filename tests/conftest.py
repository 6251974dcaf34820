import asyncio
import os
import tempfile

# settings are read on import, point them at a scratch area first
_DATA_ROOT = tempfile.mkdtemp(prefix="facility-hub-tests-")
os.environ["FACILITY_DATA_ROOT"] = _DATA_ROOT
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DATA_ROOT, 'app.db')}"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from facility_hub.database import create_all, make_session_factory


def _sqlite_url(path) -> str:
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def engine(tmp_path):
    eng = create_async_engine(_sqlite_url(tmp_path / "test.db"), poolclass=NullPool)
    asyncio.run(create_all(eng))
    yield eng
    asyncio.run(eng.dispose())


@pytest_asyncio.fixture
async def db_session(tmp_path):
    eng = create_async_engine(_sqlite_url(tmp_path / "test.db"), poolclass=NullPool)
    await create_all(eng)
    factory = make_session_factory(eng)
    async with factory() as session:
        yield session
    await eng.dispose()
