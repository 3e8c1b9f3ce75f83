"""
Claw game history: one record per game, item records appended on reconciliation.
Pure schema only.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from arcade.core.database.base import Base, IdMixin, TimestampMixin


class ClawMachineGameRecord(Base, IdMixin, TimestampMixin):
    """
    Game header. `id` is the game_id handed to the client.

    `success` aggregates the item records: true once any caught item is
    recorded.
    """

    __tablename__ = "claw_machine_game_records"
    __table_args__ = (Index("ix_claw_game_records_player", "player_id"),)

    claw_machine_id: Mapped[int] = mapped_column(
        ForeignKey("claw_machines.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class ClawMachineItemRecord(Base, IdMixin, TimestampMixin):
    """Append-only touched-item record for a game."""

    __tablename__ = "claw_machine_item_records"
    __table_args__ = (Index("ix_claw_item_records_game", "game_id"),)

    game_id: Mapped[int] = mapped_column(
        ForeignKey("claw_machine_game_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    catched: Mapped[bool] = mapped_column(Boolean, nullable=False)
