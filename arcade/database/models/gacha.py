"""
Gacha state and history: pity counters, pull sessions and pull history rows.
Pure schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from arcade.core.database.base import Base, IdMixin, TimestampMixin


class GachaPityState(Base, IdMixin, TimestampMixin):
    """Authoritative pity counters per (machine, player); created lazily."""

    __tablename__ = "gacha_pity_states"
    __table_args__ = (
        UniqueConstraint("gacha_machine_id", "player_id", name="uq_gacha_pity_pair"),
    )

    gacha_machine_id: Mapped[int] = mapped_column(
        ForeignKey("gacha_machines.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    super_rare_pity_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ultra_rare_pity_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class GachaPullSession(Base, IdMixin, TimestampMixin):
    """One row per pull request (pull_count is 1 or 10)."""

    __tablename__ = "gacha_pull_sessions"

    gacha_machine_id: Mapped[int] = mapped_column(
        ForeignKey("gacha_machines.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    pull_count: Mapped[int] = mapped_column(Integer, nullable=False)


class GachaPullHistory(Base, IdMixin, TimestampMixin):
    """
    One row per pulled item.

    `(session_id, pull_index)` is unique so redelivered stream messages
    never duplicate history.
    """

    __tablename__ = "gacha_pull_histories"
    __table_args__ = (
        UniqueConstraint("session_id", "pull_index", name="uq_gacha_history_slot"),
    )

    session_id: Mapped[int] = mapped_column(
        ForeignKey("gacha_pull_sessions.id", ondelete="CASCADE"), nullable=False
    )
    pull_index: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    stream_message_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
