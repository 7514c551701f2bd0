"""Configuration management for entity-mapper using YAML files."""

from pathlib import Path
from typing import Any

import structlog
import yaml

from entity_mapper.models import DrainOrder

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".entity-mapper"

DEFAULTS: dict[str, Any] = {
    "database.name": "entity-mapper.db",
    "database.description": "",
    "database.size": 5 * 1024 * 1024,
    "order": DrainOrder.DEPENDENCY.value,
    "models": None,
}


class Config:
    """Configuration stored in YAML files.

    Local config lives in .entity-mapper/config.yaml in the current directory,
    global config in ~/.entity-mapper/config.yaml. Lookups check the local
    file, then the global one, then the built-in defaults.
    """

    def __init__(self, use_global: bool = False, config_dir: Path | None = None) -> None:
        """Initialize configuration.

        Args:
            use_global: If True, read and write the global config only
            config_dir: Custom directory holding config.yaml (overrides use_global)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        elif use_global:
            self.config_dir = Path.home() / CONFIG_DIR_NAME
        else:
            self.config_dir = Path.cwd() / CONFIG_DIR_NAME
        self.is_global = use_global
        self.config_file = self.config_dir / "config.yaml"

        self._config: dict[str, Any] = self._load(self.config_file)
        self._global_config: dict[str, Any] = {}
        if not self.is_global:
            global_file = Path.home() / CONFIG_DIR_NAME / "config.yaml"
            if global_file != self.config_file:
                try:
                    self._global_config = self._load(global_file)
                except ValueError as e:
                    logger.warning("Failed to load global config", error=str(e))

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    @staticmethod
    def _load(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load config", path=str(path), error=str(e))
            raise ValueError(f"Failed to load config from {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        logger.debug("Config loaded", path=str(path), keys=list(data))
        return data

    def _save(self) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e
        logger.debug("Config saved", path=str(self.config_file))

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a value in local config, then global config, then the defaults."""
        if key in self._config:
            return self._config[key]
        if not self.is_global and key in self._global_config:
            return self._global_config[key]
        if default is None:
            return DEFAULTS.get(key)
        return default

    def set(self, key: str, value: Any) -> None:
        """Set a known configuration key and save the file."""
        if key not in DEFAULTS:
            raise ValueError(f"Unknown config key: {key}. Known keys: {', '.join(DEFAULTS)}")
        if key == "order":
            value = DrainOrder(value).value
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def list(self) -> dict[str, Any]:
        """Explicitly set values; local values take precedence over global ones."""
        if self.is_global:
            return self._config.copy()
        merged = self._global_config.copy()
        merged.update(self._config)
        return merged

    @property
    def database_name(self) -> str:
        return str(self.get("database.name"))

    @property
    def database_description(self) -> str:
        return str(self.get("database.description") or "")

    @property
    def database_size(self) -> int:
        return int(self.get("database.size"))

    @property
    def drain_order(self) -> DrainOrder:
        return DrainOrder(self.get("order"))


def get_config(use_global: bool = False) -> Config:
    """Get a configuration instance.

    Args:
        use_global: If True, return global config. If False, return local config with global fallback.
    """
    return Config(use_global=use_global)
