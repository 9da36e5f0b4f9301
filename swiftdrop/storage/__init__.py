"""
Storage Layer.

This package handles settings persistence: the upload policy and the transfer
settings kept in the user's INI file.
"""

from .settings_store import SettingsStore, default_settings_path

__all__ = ["SettingsStore", "default_settings_path"]
