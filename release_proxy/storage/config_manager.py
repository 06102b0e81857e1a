"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from release_proxy.exceptions import ConfigurationError
from release_proxy.models.config import ServiceConfig

log = logging.getLogger(__name__)


class ConfigManager:
    """Handles all operations related to the service's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, overrides: dict[str, Any] | None = None) -> ServiceConfig:
        """
        Loads configuration from the INI file, applies overrides, and validates it.
        A missing file yields the model defaults.

        Args:
            overrides: Options provided via the command line. None values are ignored.

        Returns:
            A validated ServiceConfig object.

        Raises:
            ConfigurationError: If the config file is invalid or validation fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_from_file = self._get_config_as_dict()

        if overrides:
            config_from_file.update({k: v for k, v in overrides.items() if v is not None})

        if not config_from_file.get("store_path"):
            config_from_file["store_path"] = str(self.config_file_path.parent / "data")

        try:
            return ServiceConfig(**config_from_file)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: Settings to save; anything missing takes the model default.
        """
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}
        defaults = ServiceConfig()

        for key in ServiceConfig.get_ini_keys():
            value = settings.get(key, getattr(defaults, key))
            config["DEFAULT"][key] = self._to_ini(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the known keys of the 'DEFAULT' section into a dictionary."""
        section = self._parser["DEFAULT"]
        # Pydantic coerces the raw strings to the declared types.
        return {
            key: section[key] for key in ServiceConfig.get_ini_keys() if key in section
        }

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = ServiceConfig()
        needs_saving = False
        config_section = self._parser["DEFAULT"]

        for key in ServiceConfig.get_ini_keys():
            if key not in config_section:
                config_section[key] = self._to_ini(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving

    @staticmethod
    def _to_ini(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
