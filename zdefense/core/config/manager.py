"""
ConfigManager: dot-notation access to game-balance configuration.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable balance values
  (e.g. `"progression.base_xp_per_level"`).
- Back configuration with built-in defaults overlaid by YAML files from the
  configured `config/` directory.
- Allow runtime overrides for live balance tweaks and tests.

Key Design Decisions
--------------------
- Built-in defaults < YAML files (deep-merged in sorted path order) <
  runtime overrides.
- Instance-based: one ConfigManager is built at startup and injected into
  every service. There is no module-level instance.
- A missing `config/` directory is not an error; built-in defaults apply.
- Malformed YAML files are logged and skipped.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Union

import yaml

from zdefense.core.logging.logger import get_logger

logger = get_logger(__name__)


BUILTIN_DEFAULTS: Dict[str, Any] = {
    "progression": {
        "base_xp_per_level": 1000,
    },
    "cosmetics": {
        "default_loadout_name": "Default",
    },
    "events": {
        "listener_timeout_seconds": 5.0,
    },
}

_MISSING = object()


class ConfigManager:
    """
    Game-balance configuration with YAML defaults and runtime overrides.

    Examples
    --------
    >>> config = ConfigManager(config_dir="config")
    >>> config.load()
    >>> config.get("progression.base_xp_per_level")
    1000
    >>> config.get("progression.unknown_key", 42)
    42
    """

    def __init__(
        self,
        config_dir: Optional[Union[str, Path]] = None,
        defaults: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir is not None else None
        self._values: Dict[str, Any] = copy.deepcopy(
            dict(defaults) if defaults is not None else BUILTIN_DEFAULTS
        )
        self._overrides: Dict[str, Any] = {}
        self._loaded_files: List[str] = []

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: Mapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = value

    def load(self) -> None:
        """
        Load every `*.yaml` / `*.yml` file under the config directory.

        Safe to call more than once; later calls re-apply the files on top of
        the current values.
        """
        if self._config_dir is None:
            logger.debug("No config directory set; using built-in defaults only")
            return

        if not self._config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(self._config_dir)},
            )
            return

        yaml_files = sorted(
            list(self._config_dir.rglob("*.yaml"))
            + list(self._config_dir.rglob("*.yml"))
        )

        for yaml_file in yaml_files:
            relative = str(yaml_file.relative_to(self._config_dir))
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": relative,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                self._deep_merge_dict(self._values, data)
                self._loaded_files.append(relative)
                logger.debug("Loaded YAML config", extra={"file": relative})
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={"file": relative, "root_type": type(data).__name__},
                )

        logger.info(
            "YAML configs loaded",
            extra={
                "yaml_file_count": len(self._loaded_files),
                "top_level_keys": sorted(self._values.keys()),
            },
        )

    # =========================================================================
    # READS
    # =========================================================================

    @staticmethod
    def _resolve(source: Mapping[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, Mapping) or part not in value:
                return _MISSING
            value = value[part]
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Runtime overrides win over loaded values; `default` is returned when
        the key is absent everywhere or resolves to None.
        """
        if key in self._overrides:
            return self._overrides[key]

        value = self._resolve(self._values, key)
        if value is _MISSING or value is None:
            return default
        return value

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(
                "Configuration value is not an integer, using default",
                extra={"config_key": key, "value": repr(value), "default": default},
            )
            return default

    def get_float(self, key: str, default: float) -> float:
        value = self.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(
                "Configuration value is not a number, using default",
                extra={"config_key": key, "value": repr(value), "default": default},
            )
            return default

    @property
    def loaded_files(self) -> List[str]:
        return list(self._loaded_files)

    # =========================================================================
    # OVERRIDES
    # =========================================================================

    def set_override(self, key: str, value: Any) -> None:
        """Override a single dot-notation key at runtime."""
        self._overrides[key] = value
        logger.info(
            "Configuration override applied",
            extra={"config_key": key, "value": repr(value)},
        )

    def clear_overrides(self) -> None:
        self._overrides.clear()
