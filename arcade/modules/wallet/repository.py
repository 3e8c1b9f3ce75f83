"""
Wallet Repository

Purpose
-------
SQL implementation of `WalletStore` over `players` and `player_wallets`.

Design Notes
------------
- Debits use a conditional UPDATE (`... WHERE coin >= :amount`), so a
  concurrent reader never observes a negative balance and a failed debit
  leaves the row untouched.
- Unconditional adjustments lock the row (SELECT FOR UPDATE) and refuse to
  go below zero; the `coin_non_negative` check constraint backs this up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Type

from sqlalchemy import select, update

from arcade.core.logging.logger import get_logger
from arcade.database.models import Player, PlayerWallet
from arcade.modules.shared.base_repository import BaseRepository
from arcade.modules.shared.contracts import PlayerInfo, WalletSnapshot, WalletStore
from arcade.modules.shared.exceptions import InsufficientFunds, NotFoundError
from arcade.modules.shared.store_errors import translate_store_errors

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from arcade.core.database.service import DatabaseService

logger = get_logger(__name__)


class SqlWalletStore(WalletStore):
    conditional_debit = True

    def __init__(self, database_service: Type[DatabaseService]) -> None:
        self._db = database_service
        self._players = BaseRepository(Player, logger)
        self._wallets = BaseRepository(PlayerWallet, logger)

    async def get_wallet(self, player_id: int) -> WalletSnapshot:
        with translate_store_errors("database", "get_wallet"):
            async with self._db.get_session() as session:
                row = (
                    await session.execute(
                        select(Player.id, Player.username, PlayerWallet.coin, PlayerWallet.diamond)
                        .join(PlayerWallet, PlayerWallet.player_id == Player.id)
                        .where(Player.id == player_id)
                    )
                ).one_or_none()

        if row is None:
            raise NotFoundError("Player", player_id)

        return WalletSnapshot(
            player=PlayerInfo(id=row.id, username=row.username),
            coin=row.coin,
            diamond=row.diamond,
        )

    async def adjust_coin(self, player_id: int, delta: int) -> int:
        with translate_store_errors("database", "adjust_coin"):
            async with self._db.get_transaction() as session:
                wallet = await self._wallets.get(session, player_id, for_update=True)
                if wallet is None:
                    raise NotFoundError("PlayerWallet", player_id)
                if wallet.coin + delta < 0:
                    raise InsufficientFunds(player_id, -delta, wallet.coin)
                wallet.coin += delta
                balance = wallet.coin

        logger.info(
            "Coin balance adjusted",
            extra={"player_id": player_id, "delta": delta, "balance": balance},
        )
        return balance

    async def debit_coin_if_sufficient(self, player_id: int, amount: int) -> Optional[int]:
        with translate_store_errors("database", "debit_coin"):
            async with self._db.get_transaction() as session:
                result = await session.execute(
                    update(PlayerWallet)
                    .where(PlayerWallet.player_id == player_id, PlayerWallet.coin >= amount)
                    .values(coin=PlayerWallet.coin - amount)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    await self._require_wallet(session, player_id)
                    return None

                balance = (
                    await session.execute(
                        select(PlayerWallet.coin).where(PlayerWallet.player_id == player_id)
                    )
                ).scalar_one()

        logger.info(
            "Coin debited",
            extra={"player_id": player_id, "amount": amount, "balance": balance},
        )
        return balance

    async def _require_wallet(self, session: AsyncSession, player_id: int) -> None:
        if not await self._wallets.exists(session, PlayerWallet.player_id == player_id):
            raise NotFoundError("PlayerWallet", player_id)
