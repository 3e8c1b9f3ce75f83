"""Whack-a-mole spawn weights."""

from .repository import SqlMoleWeightStore
from .service import WhackAMoleService

__all__ = ["SqlMoleWeightStore", "WhackAMoleService"]
