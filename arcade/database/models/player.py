"""
Player and PlayerWallet.
Pure schema only.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from arcade.core.database.base import Base, IdMixin, TimestampMixin


class Player(Base, IdMixin, TimestampMixin):
    """
    Base player record shared by every game.

    Schema-only:
    - username (unique)
    - wallet (one-to-one)
    """

    __tablename__ = "players"

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    wallet: Mapped["PlayerWallet"] = relationship(
        back_populates="player", uselist=False, lazy="raise"
    )


class PlayerWallet(Base, TimestampMixin):
    """
    Coin and diamond balances for a player.

    Balances are guarded by check constraints; debits go through a
    conditional UPDATE so a reader never observes a negative balance.
    """

    __tablename__ = "player_wallets"
    __table_args__ = (
        CheckConstraint("coin >= 0", name="coin_non_negative"),
        CheckConstraint("diamond >= 0", name="diamond_non_negative"),
    )

    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), primary_key=True
    )
    coin: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    diamond: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    player: Mapped[Player] = relationship(back_populates="wallet", lazy="raise")
