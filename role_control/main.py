"""
Role-Based Edit Control

Wiring for the permission core: builds the option store, resolver, identity
directory and administration service from settings.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from role_control.config import Settings, get_settings
from role_control.database import build_session_maker, close_db, engine_from_settings, init_db
from role_control.errors import PersistenceError
from role_control.kernel.identity import IdentityDirectory, InMemoryIdentityDirectory
from role_control.kernel.permissions import (
    ConfigStore,
    PermissionAdminService,
    PermissionResolver,
)
from role_control.kernel.storage import SqlOptionBackend
from role_control.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class PermissionCore:
    """Everything a host or the CLI needs, sharing one ConfigStore."""

    settings: Settings
    store: ConfigStore
    resolver: PermissionResolver
    admin: PermissionAdminService
    directory: IdentityDirectory


def build_directory(settings: Settings) -> IdentityDirectory:
    if settings.identity_file:
        return InMemoryIdentityDirectory.from_file(settings.identity_file)
    return InMemoryIdentityDirectory()


def build_core(
    settings: Settings,
    store: ConfigStore,
    directory: Optional[IdentityDirectory] = None,
) -> PermissionCore:
    resolver = PermissionResolver(store)
    directory = directory or build_directory(settings)
    return PermissionCore(
        settings=settings,
        store=store,
        resolver=resolver,
        admin=PermissionAdminService(store, resolver, directory),
        directory=directory,
    )


@asynccontextmanager
async def open_core(
    settings: Optional[Settings] = None,
    directory: Optional[IdentityDirectory] = None,
) -> AsyncGenerator[PermissionCore, None]:
    """
    Open the database-backed permission core.

    Runs startup (tables, version record) and shutdown (engine disposal).
    """
    settings = settings or get_settings()
    engine: AsyncEngine = engine_from_settings(settings)

    logger.info(f"Starting {settings.project_name} v{settings.version}")
    try:
        try:
            await init_db(engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to initialize database: {e}") from e
        store = ConfigStore(
            SqlOptionBackend(build_session_maker(engine)),
            prefix=settings.option_prefix,
            capabilities=settings.capabilities,
            export_version=settings.export_version,
        )
        await store.ensure_installed(settings.version)
        yield build_core(settings, store, directory)
    finally:
        await close_db(engine)
        logger.debug("Database connections closed")
