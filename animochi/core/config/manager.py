"""
ConfigManager: layered balance configuration for Animochi.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable economy and quest values.
- Back configuration with built-in defaults plus YAML files from `config/`.
- Keep a read-only merged view that services consult at call time.

Responsibilities
----------------
- Load and deep-merge every YAML file under the configured directory.
- Overlay explicit overrides (used by tests and by operators) on top.
- Resolve dot-notation keys such as `"economy.welcome_balance"`.

Key Design Decisions
--------------------
- Built-in defaults keep the service usable when no `config/` directory exists.
- YAML is the single source for balance values; environment variables only
  carry infrastructure settings (see `Config`).
- Instances are passed to services explicitly; there is no global manager.

Dependencies
------------
- PyYAML: parsing of `config/*.yaml`
- `animochi.core.logging.logger.get_logger`: structured logging
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Union

import yaml

from animochi.core.config.errors import ConfigInitializationError, ConfigValidationError
from animochi.core.logging.logger import get_logger

logger = get_logger(__name__)

__all__ = ["ConfigManager", "DEFAULT_CONFIG"]


# Fallbacks for a bare checkout; `config/*.yaml` normally overrides all of these.
DEFAULT_CONFIG: Dict[str, Any] = {
    "economy": {
        "welcome_balance": 3000,
        "max_transaction_amount": 10000,
        "transactions_page_size": 50,
    },
    "quests": {
        "daily_count": 3,
        "completed_history_limit": 30,
        "templates": [],
    },
}


class ConfigManager:
    """
    Layered configuration with dot-notation access.

    Precedence (lowest to highest): built-in defaults, YAML files, overrides.

    Examples
    --------
    >>> manager = ConfigManager(config_dir=Path("config"))
    >>> manager.initialize()
    >>> manager.get("economy.welcome_balance")
    3000
    """

    def __init__(
        self,
        config_dir: Optional[Union[str, Path]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir is not None else None
        self._overrides: Dict[str, Any] = dict(overrides or {})
        self._values: Dict[str, Any] = {}
        self._loaded_files: List[str] = []
        self._initialized = False

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "ConfigManager":
        """Build an initialized manager from defaults plus `values`, without YAML."""
        manager = cls(config_dir=None, overrides=values)
        manager.initialize()
        return manager

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: Mapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, Mapping) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    def _load_yaml_configs(self) -> Dict[str, Any]:
        """
        Recursively load all YAML config files from the config directory.

        Files are merged in sorted path order so the result is deterministic.
        A missing directory is not an error; a malformed file is.
        """
        merged: Dict[str, Any] = {}
        config_dir = self._config_dir

        if config_dir is None:
            return merged

        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return merged

        yaml_files = sorted(
            list(config_dir.rglob("*.yaml")) + list(config_dir.rglob("*.yml"))
        )

        for yaml_file in yaml_files:
            relative = str(yaml_file.relative_to(config_dir))
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.error(
                    "Failed to load YAML config",
                    extra={
                        "file": relative,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                raise ConfigInitializationError(
                    f"Failed to load config file {relative}"
                ) from exc

            if data is None:
                continue
            if not isinstance(data, dict):
                raise ConfigValidationError(
                    f"Config file {relative} must contain a mapping, "
                    f"got {type(data).__name__}"
                )

            self._deep_merge_dict(merged, data)
            self._loaded_files.append(relative)
            logger.debug("Loaded YAML config", extra={"file": relative})

        return merged

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    def initialize(self) -> None:
        """Load defaults, YAML files and overrides (idempotent)."""
        if self._initialized:
            return

        values: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
        self._deep_merge_dict(values, self._load_yaml_configs())
        self._deep_merge_dict(values, self._overrides)

        self._values = values
        self._initialized = True

        logger.info(
            "ConfigManager initialized",
            extra={
                "yaml_file_count": len(self._loaded_files),
                "override_keys": sorted(self._overrides),
                "top_level_keys": sorted(self._values),
            },
        )

    def reload(self) -> None:
        """Re-read YAML files; overrides are kept."""
        self._initialized = False
        self._loaded_files = []
        self.initialize()

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Examples
        --------
        >>> manager.get("quests.daily_count")
        3
        >>> manager.get("quests.missing", 7)
        7
        """
        if not self._initialized:
            logger.warning(
                "ConfigManager accessed before explicit initialization; "
                "initializing now"
            )
            self.initialize()

        value: Any = self._values
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]

        return default if value is None else value

    def get_all_keys(self) -> List[str]:
        """Return all top-level configuration keys."""
        return sorted(self._values)

    @property
    def loaded_files(self) -> List[str]:
        return list(self._loaded_files)

    def health_snapshot(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "config_dir": str(self._config_dir) if self._config_dir else None,
            "yaml_file_count": len(self._loaded_files),
            "top_level_keys": self.get_all_keys(),
        }
