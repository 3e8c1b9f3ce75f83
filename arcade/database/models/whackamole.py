"""
Whack-a-mole: leaderboard rows and mole spawn weights.
Pure schema only.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from arcade.core.database.base import Base, IdMixin, TimestampMixin


class LeaderboardEntry(Base, TimestampMixin):
    """
    Leaderboard row keyed by player.

    `rank` is 0 outside the materialised top N and is only written by the
    materialisation pass.
    """

    __tablename__ = "whackamole_leaderboard"
    __table_args__ = (
        Index("ix_whackamole_leaderboard_rank", "rank"),
        Index("ix_whackamole_leaderboard_score", "score"),
    )

    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), primary_key=True
    )
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class MoleWeightConfig(Base, IdMixin):
    __tablename__ = "mole_weight_configs"

    mole_type: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    weight: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
