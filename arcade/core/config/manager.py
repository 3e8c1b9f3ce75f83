"""
ConfigManager: YAML-backed tunable configuration for the arcade backend.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable values (stream consumer
  settings, leaderboard cadence, verdict cache TTL).
- Back configuration with YAML documents shipped in the `config/` directory.

Responsibilities
----------------
- Load and deep-merge every YAML file under `config/`.
- Serve reads from an in-memory tree with hit/miss metrics.
- Allow scoped overrides (tests, operator tooling) without touching files.

Key Design Decisions
--------------------
- YAML is the single source for defaults; overrides live in memory only.
- Reads never raise: a missing key returns the supplied default.
- Falsy configured values (0, False, "") are returned as-is, never replaced by
  the default.

Dependencies
------------
- PyYAML for parsing.
- `arcade.core.config.config.Config` for the config directory location.
"""

from __future__ import annotations

import copy
import threading
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml

from arcade.core.config.config import Config
from arcade.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConfigManagerError(RuntimeError):
    """Base error for ConfigManager failures."""


class ConfigInitializationError(ConfigManagerError):
    """Raised when YAML configuration cannot be parsed."""


class ConfigManager:
    """
    Class-level configuration registry.

    Public API
    ----------
    - initialize(config_dir=None) -> Load YAML defaults
    - get(key, default=None) -> Dot-notation read
    - override(key, value) -> In-memory override
    - reset() -> Drop overrides and reload YAML
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None
    _lock = threading.Lock()

    _metrics: Dict[str, int] = {
        "gets": 0,
        "hits": 0,
        "misses": 0,
        "overrides": 0,
    }

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}

        if not config_dir.exists():
            logger.warning(
                "Config directory not found, using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return merged

        yaml_files = sorted(
            list(config_dir.rglob("*.yaml")) + list(config_dir.rglob("*.yml"))
        )

        for yaml_file in yaml_files:
            try:
                with open(yaml_file, "r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except yaml.YAMLError as exc:
                logger.error(
                    "Failed to parse YAML config",
                    extra={"file": str(yaml_file), "error": str(exc)},
                )
                raise ConfigInitializationError(
                    f"Invalid YAML in {yaml_file}: {exc}"
                ) from exc

            if not data:
                continue
            if not isinstance(data, dict):
                raise ConfigInitializationError(
                    f"Top level of {yaml_file} must be a mapping"
                )

            cls._deep_merge_dict(merged, data)
            logger.debug(
                "Loaded YAML config",
                extra={"file": str(yaml_file.relative_to(config_dir))},
            )

        logger.info(
            "YAML configuration loaded",
            extra={"yaml_count": len(yaml_files), "top_level_keys": len(merged)},
        )
        return merged

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load YAML defaults from `config_dir` (default: `Config.CONFIG_DIR`).

        Safe to call repeatedly; each call reloads the files.
        """
        directory = Path(config_dir) if config_dir is not None else Config.CONFIG_DIR
        defaults = cls._load_yaml_configs(directory)

        with cls._lock:
            cls._defaults = defaults
            cls._config_dir = directory
            cls._initialized = True

    # =========================================================================
    # READS
    # =========================================================================

    @staticmethod
    def _traverse(tree: Dict[str, Any], key: str) -> Any:
        value: Any = tree
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return _MISSING
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve config value by dot notation path.

        Example
        -------
        >>> ConfigManager.get("leaderboard.recalculate_interval_seconds", 60)
        60
        """
        if not cls._initialized:
            cls.initialize(cls._config_dir)

        cls._metrics["gets"] += 1

        with cls._lock:
            if key in cls._overrides:
                cls._metrics["hits"] += 1
                return cls._overrides[key]
            value = cls._traverse(cls._defaults, key)

        if value is _MISSING or value is None:
            cls._metrics["misses"] += 1
            return default

        cls._metrics["hits"] += 1
        return value

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Flattened dot-notation keys of the loaded tree plus overrides."""
        keys: List[str] = []

        def _walk(prefix: str, node: Any) -> None:
            if isinstance(node, dict):
                for child_key, child in node.items():
                    _walk(f"{prefix}.{child_key}" if prefix else child_key, child)
            else:
                keys.append(prefix)

        with cls._lock:
            _walk("", cls._defaults)
            keys.extend(k for k in cls._overrides if k not in keys)
        return sorted(keys)

    # =========================================================================
    # OVERRIDES
    # =========================================================================

    @classmethod
    def override(cls, key: str, value: Any) -> None:
        """Set an in-memory override that wins over YAML."""
        with cls._lock:
            cls._overrides[key] = value
            cls._metrics["overrides"] += 1
        logger.info("Config override applied", extra={"config_key": key})

    @classmethod
    def reset(cls) -> None:
        """Drop overrides and force a reload of the default YAML on next read."""
        with cls._lock:
            cls._overrides.clear()
            cls._config_dir = None
            cls._initialized = False

    @classmethod
    def get_metrics(cls) -> Dict[str, int]:
        return dict(cls._metrics)
