"""
Manages loading, validation, and migration of the INI settings file.
"""

import configparser
import logging
import os
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ValidationError

from swiftdrop.exceptions import ConfigurationError
from swiftdrop.models.policy import TransferSettings, UploadPolicy

log = logging.getLogger(__name__)

POLICY_SECTION = "policy"
TRANSFER_SECTION = "transfer"


def default_settings_path() -> Path:
    """Returns the per-user settings file location for the current platform."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "swiftdrop" / "settings.ini"


def _to_ini(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (set, frozenset, list, tuple)):
        return ",".join(sorted(str(v) for v in value))
    return str(value)


class SettingsStore:
    """Handles all operations related to the application's INI settings file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else default_settings_path()

    def load(
        self, overrides: Optional[Mapping[str, Any]] = None
    ) -> tuple[UploadPolicy, TransferSettings]:
        """
        Loads settings from the INI file, applies overrides, and validates them.

        A missing file yields the built-in defaults. Keys missing from an existing
        file are added to it with their default values.

        Args:
            overrides: Values that take precedence over the file, keyed by field
                name. `None` values are ignored.

        Returns:
            The validated upload policy and transfer settings.

        Raises:
            ConfigurationError: If the file cannot be parsed, an override key is
            unknown, or validation fails.
        """
        parser = self._read()
        if parser.has_section(POLICY_SECTION) or parser.has_section(TRANSFER_SECTION):
            if self._migrate_if_needed(parser):
                log.info("[yellow]Settings file was updated with new default values.[/yellow]")

        policy_data = self._section_as_dict(parser, POLICY_SECTION, UploadPolicy)
        transfer_data = self._section_as_dict(parser, TRANSFER_SECTION, TransferSettings)

        for key, value in (overrides or {}).items():
            if value is None:
                continue
            if key in UploadPolicy.get_ini_keys():
                policy_data[key] = value
            elif key in TransferSettings.get_ini_keys():
                transfer_data[key] = value
            else:
                raise ConfigurationError(f"Unknown setting '{key}'.")

        try:
            policy = UploadPolicy.model_validate(policy_data)
            transfer = TransferSettings.model_validate(transfer_data)
        except ValidationError as e:
            raise ConfigurationError(f"Settings validation failed:\n{e}") from e
        return policy, transfer

    def save(
        self, policy: UploadPolicy, transfer: Optional[TransferSettings] = None
    ) -> UploadPolicy:
        """
        Writes a complete settings file.

        When `transfer` is omitted the transfer section already on disk is kept.

        Returns:
            The policy that is now in effect.
        """
        if transfer is None:
            _, transfer = self.load()

        parser = configparser.ConfigParser(interpolation=None)
        parser[POLICY_SECTION] = {
            key: _to_ini(value) for key, value in policy.model_dump().items()
        }
        parser[TRANSFER_SECTION] = {
            key: _to_ini(value) for key, value in transfer.model_dump().items()
        }
        self._write(parser)
        log.debug(f"Settings saved to {self.path}")
        return policy

    def _read(self) -> configparser.ConfigParser:
        parser = configparser.ConfigParser(interpolation=None)
        if not self.path.is_file():
            log.debug(f"No settings file at {self.path}; using defaults.")
            return parser
        try:
            parser.read(self.path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing settings file: {e}") from e
        return parser

    def _write(self, parser: configparser.ConfigParser) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                parser.write(f)
        except OSError as e:
            raise ConfigurationError(f"Failed to save settings file: {e}") from e

    @staticmethod
    def _section_as_dict(
        parser: configparser.ConfigParser, section: str, model: type[BaseModel]
    ) -> dict[str, Any]:
        """Raw string values of known keys; pydantic does the type conversion."""
        if not parser.has_section(section):
            return {}
        known = model.get_ini_keys()
        values = {}
        for key, value in parser[section].items():
            if key in known:
                values[key] = value
            else:
                log.warning(f"Ignoring unknown setting '{key}' in [{section}].")
        return values

    def _migrate_if_needed(self, parser: configparser.ConfigParser) -> bool:
        """Adds missing default values to an existing settings file."""
        needs_saving = False
        for section, model in (
            (POLICY_SECTION, UploadPolicy),
            (TRANSFER_SECTION, TransferSettings),
        ):
            if not parser.has_section(section):
                parser.add_section(section)
            for key, field in model.model_fields.items():
                if key in parser[section]:
                    continue
                parser[section][key] = _to_ini(field.get_default())
                needs_saving = True
                log.debug(
                    f"Migrating settings: added missing key '{key}' with "
                    f"value '{parser[section][key]}'."
                )

        if needs_saving:
            try:
                self._write(parser)
            except ConfigurationError as e:
                log.error(f"Could not save migrated settings file: {e}")
                return False
        return needs_saving
