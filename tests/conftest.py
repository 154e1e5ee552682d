"""Pytest configuration and fixtures."""

import pytest

from rbac_authority.backends.database.sqlite import SQLiteDatabase
from rbac_authority.rbac.authority import Authority


@pytest.fixture
def sample_config_dict():
    """Sample configuration dictionary for testing."""
    return {
        "tables_prefix": "auth_",
        "storage": {
            "database": {"backend": "sqlite", "path": ":memory:"},
        },
        "logging": {"level": "DEBUG", "format": "text"},
    }


@pytest.fixture
async def db():
    """Create an in-memory SQLite database."""
    database = SQLiteDatabase(path=":memory:")
    yield database
    await database.close()


@pytest.fixture
async def authority(db):
    """Create an authority with initialized schema."""
    auth = Authority(db, tables_prefix="auth_")
    await auth.initialize_schema()
    return auth
