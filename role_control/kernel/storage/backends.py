"""
Option backends: durable key-value persistence for the permission records.

The core never talks to a database directly; ConfigStore reads and writes
named options through one of these backends.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from role_control.errors import PersistenceError
from role_control.kernel.models.option import Option
from role_control.logging_config import get_logger

logger = get_logger(__name__)


class OptionBackend(ABC):
    """
    Generic persistent key-value configuration store.

    Implementations must give read-your-writes consistency within a process
    and apply every set_many/delete_many call as a single unit.
    """

    @abstractmethod
    async def get(self, name: str, default: Any = None) -> Any:
        """Return the stored value for name, or default if absent."""

    @abstractmethod
    async def set_many(self, values: Mapping[str, Any]) -> None:
        """Store all values in one unit of work."""

    @abstractmethod
    async def delete_many(self, names: Iterable[str]) -> None:
        """Delete the named options; missing names are ignored."""

    async def set(self, name: str, value: Any) -> None:
        await self.set_many({name: value})

    async def delete(self, name: str) -> None:
        await self.delete_many([name])


class InMemoryOptionBackend(OptionBackend):
    """Process-local backend. Values are deep-copied in and out."""

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._options: Dict[str, Any] = copy.deepcopy(dict(initial or {}))

    async def get(self, name: str, default: Any = None) -> Any:
        if name not in self._options:
            return default
        return copy.deepcopy(self._options[name])

    async def set_many(self, values: Mapping[str, Any]) -> None:
        staged = {name: copy.deepcopy(value) for name, value in values.items()}
        self._options.update(staged)

    async def delete_many(self, names: Iterable[str]) -> None:
        for name in names:
            self._options.pop(name, None)

    def snapshot(self) -> Dict[str, Any]:
        """Copy of everything stored (used by tests and debugging)."""
        return copy.deepcopy(self._options)


class SqlOptionBackend(OptionBackend):
    """
    Backend storing options as rows of the ``options`` table.

    Each call opens its own session; multi-value writes run inside one
    transaction so either every value lands or none does.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get(self, name: str, default: Any = None) -> Any:
        try:
            async with self.session_maker() as session:
                result = await session.execute(select(Option.value).where(Option.name == name))
                row = result.first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read option {name}: {e}")
            raise PersistenceError(f"Failed to read option '{name}'") from e

        if row is None:
            return default
        return row[0]

    async def set_many(self, values: Mapping[str, Any]) -> None:
        if not values:
            return
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    for name, value in values.items():
                        result = await session.execute(select(Option).where(Option.name == name))
                        option = result.scalar_one_or_none()
                        if option is None:
                            session.add(Option(name=name, value=copy.deepcopy(value)))
                        else:
                            option.value = copy.deepcopy(value)
        except SQLAlchemyError as e:
            logger.error(f"Failed to write options {sorted(values)}: {e}")
            raise PersistenceError(f"Failed to write options: {', '.join(sorted(values))}") from e

    async def delete_many(self, names: Iterable[str]) -> None:
        names = list(names)
        if not names:
            return
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    await session.execute(delete(Option).where(Option.name.in_(names)))
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete options {names}: {e}")
            raise PersistenceError(f"Failed to delete options: {', '.join(names)}") from e
