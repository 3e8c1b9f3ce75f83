"""Session orchestration for claw games and gacha pulls."""

from .base import SessionService
from .claw_service import ClawGameStarted, ClawSessionService, TouchedItemRecord
from .gacha_service import GachaPullResult, GachaSessionService

__all__ = [
    "ClawGameStarted",
    "ClawSessionService",
    "GachaPullResult",
    "GachaSessionService",
    "SessionService",
    "TouchedItemRecord",
]
