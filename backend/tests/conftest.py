import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config_engine.domain.audit import db_models as audit_db_models  # noqa: F401
from config_engine.domain.configurations import db_models as configuration_db_models  # noqa: F401
from config_engine.domain.deployments import db_models as deployment_db_models  # noqa: F401
from config_engine.domain.feature_flags import db_models as feature_flag_db_models  # noqa: F401
from config_engine.domain.snapshots import db_models as snapshot_db_models  # noqa: F401
from config_engine.infra.db import Base
from config_engine.infra.logging import clear_log_context
from config_engine.infra.repositories import in_memory_repositories, sql_repositories
from config_engine.main import create_app
from config_engine.services import build_app_services
from config_engine.settings import Settings


@pytest.fixture()
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture(scope="session")
def async_session_maker(test_engine):
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture()
def clean_database(test_engine):
    async def truncate_tables() -> None:
        async with test_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                await conn.execute(table.delete())

    asyncio.run(truncate_tables())
    yield


@pytest.fixture(autouse=True)
def reset_log_context():
    yield
    clear_log_context()


@pytest.fixture()
def memory_settings():
    return Settings(store_backend="memory", app_env="dev")


@pytest.fixture()
def services(memory_settings):
    return build_app_services(memory_settings, repositories=in_memory_repositories())


@pytest.fixture()
def sql_services(memory_settings, async_session_maker, clean_database):
    return build_app_services(memory_settings, repositories=sql_repositories(async_session_maker))


@pytest.fixture()
def client(memory_settings):
    app = create_app(memory_settings)
    with TestClient(app) as test_client:
        yield test_client
