"""
Pytest fixtures for role-based edit control tests.
"""

import json

import pytest
import pytest_asyncio

from role_control.config import Settings
from role_control.database import build_engine, build_session_maker, close_db, init_db
from role_control.kernel.identity import InMemoryIdentityDirectory
from role_control.kernel.permissions import (
    ConfigStore,
    PermissionAdminService,
    PermissionResolver,
)
from role_control.kernel.storage import InMemoryOptionBackend, SqlOptionBackend
from role_control.schemas.permissions import Identity


@pytest.fixture
def backend() -> InMemoryOptionBackend:
    """Empty in-memory option backend."""
    return InMemoryOptionBackend()


@pytest.fixture
def store(backend: InMemoryOptionBackend) -> ConfigStore:
    """ConfigStore over the in-memory backend, no configuration persisted."""
    return ConfigStore(backend)


@pytest.fixture
def resolver(store: ConfigStore) -> PermissionResolver:
    return PermissionResolver(store)


@pytest.fixture
def identities() -> list:
    """A small user base covering every default role."""
    return [
        Identity(user_id="1", display_name="Ada Admin", login="ada", email="ada@example.com", roles=["administrator"]),
        Identity(user_id="7", display_name="Eve Editor", login="eve", email="eve@example.com", roles=["editor"]),
        Identity(user_id="9", display_name="Sam Subscriber", login="sam", email="sam@example.org", roles=["subscriber"]),
        Identity(
            user_id="12",
            display_name="Mixed Roles",
            login="mixed",
            email="mixed@example.com",
            roles=["subscriber", "administrator"],
        ),
    ]


@pytest.fixture
def directory(identities) -> InMemoryIdentityDirectory:
    return InMemoryIdentityDirectory(identities)


@pytest.fixture
def admin(store: ConfigStore, resolver: PermissionResolver, directory) -> PermissionAdminService:
    return PermissionAdminService(store, resolver, directory)


@pytest.fixture
def database_url(tmp_path) -> str:
    """File-backed SQLite database unique to the test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'role_control.db'}"


@pytest_asyncio.fixture
async def sql_backend(database_url: str):
    """SqlOptionBackend over a freshly created schema."""
    engine = build_engine(database_url)
    await init_db(engine)
    yield SqlOptionBackend(build_session_maker(engine))
    await close_db(engine)


@pytest.fixture
def identity_file(tmp_path, identities) -> str:
    """Identity directory JSON file for CLI runs."""
    path = tmp_path / "identities.json"
    path.write_text(
        json.dumps({"users": [identity.model_dump() for identity in identities]}),
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture
def settings(database_url: str, identity_file: str) -> Settings:
    """Settings pointing at a temporary database and identity file."""
    return Settings(
        database_url=database_url,
        identity_file=identity_file,
        log_level="WARNING",
        environment="development",
    )
