"""
Shared charging logic for the session orchestrators.

A charge either completes or leaves the balance unchanged:

- stores with `conditional_debit` debit atomically (`coin >= price`)
- other stores are debited unconditionally and re-credited when the new
  balance is negative, before `InsufficientFunds` is raised
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from arcade.modules.shared.base_service import BaseService
from arcade.modules.shared.exceptions import InsufficientFunds, StoreUnavailable

if TYPE_CHECKING:
    from logging import Logger

    from arcade.core.event.bus import EventBus
    from arcade.modules.shared.contracts import WalletSnapshot, WalletStore


class SessionService(BaseService):
    def __init__(
        self,
        wallet: WalletStore,
        config_manager: Any,
        event_bus: Optional[EventBus],
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._wallet = wallet

    async def get_player_info(self, player_id: int) -> WalletSnapshot:
        """
        Raises:
            ValidationError: If player_id is not positive
            NotFoundError: If the player does not exist
        """
        self.validate_ids(player_id=player_id)
        return await self._wallet.get_wallet(player_id)

    async def charge_coin(self, player_id: int, price: int) -> Optional[int]:
        """
        Debit `price` coins; returns the new balance (None for free plays).

        Raises:
            InsufficientFunds: balance is below price; balance unchanged
        """
        if price <= 0:
            return None

        if self._wallet.conditional_debit:
            balance = await self._wallet.debit_coin_if_sufficient(player_id, price)
            if balance is None:
                snapshot = await self._wallet.get_wallet(player_id)
                raise InsufficientFunds(player_id, price, snapshot.coin)
            return balance

        balance = await self._wallet.adjust_coin(player_id, -price)
        if balance < 0:
            await self._wallet.adjust_coin(player_id, price)
            self.log.info(
                "Debit reverted: balance would go negative",
                extra={"player_id": player_id, "price": price, "observed": balance},
            )
            raise InsufficientFunds(player_id, price, balance + price)
        return balance

    async def refund_coin(self, player_id: int, amount: int, reason: str) -> None:
        """Best-effort compensation after a failed session write."""
        if amount <= 0:
            return
        try:
            await self._wallet.adjust_coin(player_id, amount)
        except StoreUnavailable as exc:
            self.log_error("refund_coin", exc, player_id=player_id, amount=amount, reason=reason)
            return
        self.log.warning(
            "Coin refunded",
            extra={"player_id": player_id, "amount": amount, "reason": reason},
        )
