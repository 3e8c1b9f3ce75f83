"""
Base Repository

Generic SQLAlchemy 2.0 data access shared by the SQL stores (wallet,
claw / gacha catalogue and history, pity, leaderboard, mole weights).

A repository is bound to one model class and always receives the session
from its caller, so it never opens, commits or rolls back a transaction.
Stores wrap repository calls in `translate_store_errors`.

Example
-------
    games = BaseRepository(ClawMachineGameRecord, logger)
    async with DatabaseService.get_transaction() as session:
        game = await games.get(session, game_id, for_update=True)
        if game is not None:
            game.success = True
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def model_name(self) -> str:
        return self.model_class.__name__

    def _select(
        self,
        conditions: Sequence[ColumnElement[bool]],
        *,
        options: Optional[Sequence[Any]] = None,
        for_update: bool = False,
    ) -> Select[Any]:
        stmt = select(self.model_class).where(*conditions)
        if options:
            stmt = stmt.options(*options)
        if for_update:
            # Row lock; a no-op on SQLite.
            stmt = stmt.with_for_update()
        return stmt

    def _trace(self, operation: str, **fields: Any) -> None:
        self.log.debug(
            f"{self.model_name}.{operation}",
            extra={"model": self.model_name, **fields},
        )

    # ========================================================================
    # Reads
    # ========================================================================

    async def get(
        self,
        session: AsyncSession,
        id_value: Any,
        options: Optional[List[Any]] = None,
        for_update: bool = False,
    ) -> Optional[T]:
        """Row by primary key, optionally with loader options and a row lock."""
        pk = self.model_class.__mapper__.primary_key[0]  # type: ignore[attr-defined]
        stmt = self._select([pk == id_value], options=options, for_update=for_update)
        instance = (await session.execute(stmt)).scalar_one_or_none()
        self._trace("get", pk=id_value, found=instance is not None, locked=for_update)
        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        stmt = self._select(conditions, for_update=for_update)
        instance = (await session.execute(stmt)).scalars().first()
        self._trace("find_one_where", found=instance is not None, locked=for_update)
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[List[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        stmt = self._select(conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = list((await session.execute(stmt)).scalars().all())
        self._trace("find_many_where", rows=len(rows), limit=limit)
        return rows

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        total = int((await session.execute(stmt)).scalar_one())
        self._trace("count", rows=total)
        return total

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        return await self.count(session, *conditions) > 0

    # ========================================================================
    # Writes
    # ========================================================================

    def add(self, session: AsyncSession, instance: T) -> T:
        """Stage an insert; generated keys are available after `flush`."""
        session.add(instance)
        self._trace("add")
        return instance

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()
