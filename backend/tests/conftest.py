from collections.abc import Callable

import pytest

from mssql_access.client import MSSqlClient
from mssql_access.core.config import Settings
from mssql_access.core.pool import PoolManager
from tests.utils.fakes import FakeConnection


@pytest.fixture
def settings() -> Settings:
    return Settings(
        MSSQL_USER="sa",
        MSSQL_PASSWORD="Passw0rd!",
        MSSQL_DB="app",
        MSSQL_APP_NAME="mssql-access-tests",
        MSSQL_CONNECT_RETRY_INTERVAL_SEC=0,
        _env_file=None,
    )


@pytest.fixture
def conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def make_client(settings: Settings, conn: FakeConnection) -> Callable[..., MSSqlClient]:
    """Client whose pool always hands out the ``conn`` fixture."""

    def _make(**overrides) -> MSSqlClient:
        s = settings.model_copy(update=overrides) if overrides else settings
        return MSSqlClient(
            "test",
            s,
            pool_factory=lambda cfg: PoolManager(cfg, connector=lambda _: conn),
        )

    return _make
