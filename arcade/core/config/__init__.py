"""
Configuration layer.

- `Config` (this package): static, environment-driven settings.
- `ConfigManager` (`arcade.core.config.manager`): YAML-backed tunables read
  with dot notation. Import it from its module; the logging stack depends on
  this package, and the manager depends on logging.
"""

from arcade.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
