"""Service wiring for the arcade process."""

from arcade.core.services.container import ServiceContainer

__all__ = ["ServiceContainer"]
