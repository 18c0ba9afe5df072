"""Persistence sink for job outcomes.

The queue writes through the ``Persistence`` protocol only. The SQLAlchemy
implementation updates the outcome columns of the target row; the tables
themselves belong to the application.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import column, table, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shotgen.services.errors import PersistenceError
from shotgen.services.jobs import TARGET_KINDS, JobStatus, TargetKind, TargetRef

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Generation interrupted by a service restart; please retry."


@runtime_checkable
class Persistence(Protocol):
    """Writes outcome fields into a persisted target entity."""

    async def update_entity(self, target: TargetRef, fields: dict[str, Any]) -> None:
        ...


def _table_for(kind: TargetKind):
    return table(kind.table, column("id"), *(column(name) for name in kind.columns))


class SqlAlchemyPersistence:
    """``UPDATE <table> SET <outcome columns> WHERE id = :id`` on an AsyncSession."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        kinds: Iterable[TargetKind] = TARGET_KINDS.values(),
    ) -> None:
        self._session_factory = session_factory
        self._tables = {kind.name: _table_for(kind) for kind in kinds}

    def _table(self, kind: TargetKind):
        try:
            return self._tables[kind.name]
        except KeyError:
            raise PersistenceError(f"No table registered for target kind {kind.name}") from None

    async def update_entity(self, target: TargetRef, fields: dict[str, Any]) -> None:
        tbl = self._table(target.kind)
        stmt = update(tbl).where(tbl.c.id == target.id).values(**fields)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        if result.rowcount == 0:
            raise PersistenceError(f"{target} not found")

    async def reset_interrupted(self, kind: TargetKind) -> int:
        """Fail rows left in the processing status by a previous process.

        Jobs live only in memory, so anything still marked as generating at
        startup can never finish. Returns the number of rows reset.
        """
        if kind.processing_status is None:
            return 0
        tbl = self._table(kind)
        status_col = tbl.c[kind.status_field]
        stmt = (
            update(tbl)
            .where(status_col == kind.processing_status)
            .values(**kind.failure_fields(INTERRUPTED_MESSAGE))
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()

        if result.rowcount > 0:
            logger.warning(
                "Startup recovery: reset %d %s row(s) %s → %s",
                result.rowcount, kind.name, kind.processing_status, JobStatus.FAILED.value,
            )
        return result.rowcount
