"""Player wallet store."""

from .repository import SqlWalletStore

__all__ = ["SqlWalletStore"]
