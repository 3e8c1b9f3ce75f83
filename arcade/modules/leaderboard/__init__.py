"""Whack-a-mole leaderboard: scores, rank materialisation and queries."""

from .repository import SqlLeaderboardStore
from .service import LeaderboardMaterialiser, LeaderboardService

__all__ = ["LeaderboardMaterialiser", "LeaderboardService", "SqlLeaderboardStore"]
