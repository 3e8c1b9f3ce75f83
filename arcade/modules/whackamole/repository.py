"""SQL store for whack-a-mole spawn weights."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Type

from arcade.core.logging.logger import get_logger
from arcade.database.models import MoleWeightConfig
from arcade.modules.shared.base_repository import BaseRepository
from arcade.modules.shared.contracts import MoleWeight, MoleWeightStore
from arcade.modules.shared.store_errors import translate_store_errors

if TYPE_CHECKING:
    from arcade.core.database.service import DatabaseService

logger = get_logger(__name__)


def _to_weight(row: MoleWeightConfig) -> MoleWeight:
    return MoleWeight(id=row.id, mole_type=row.mole_type, weight=row.weight)


class SqlMoleWeightStore(MoleWeightStore):
    def __init__(self, database_service: Type[DatabaseService]) -> None:
        self._db = database_service
        self._configs = BaseRepository(MoleWeightConfig, logger)

    async def list_weights(self) -> List[MoleWeight]:
        with translate_store_errors("database", "list_mole_weights"):
            async with self._db.get_session() as session:
                rows = await self._configs.find_many_where(
                    session, order_by=[MoleWeightConfig.id]
                )
                return [_to_weight(r) for r in rows]

    async def set_weight(self, mole_type: str, weight: int) -> MoleWeight:
        with translate_store_errors("database", "set_mole_weight"):
            async with self._db.get_transaction() as session:
                row = await self._configs.find_one_where(
                    session, MoleWeightConfig.mole_type == mole_type, for_update=True
                )
                if row is None:
                    row = self._configs.add(
                        session, MoleWeightConfig(mole_type=mole_type, weight=weight)
                    )
                else:
                    row.weight = weight
                await self._configs.flush(session)
                return _to_weight(row)
