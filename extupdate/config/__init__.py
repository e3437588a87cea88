"""Configuration for the update subsystem"""

from extupdate.config.update_settings import SettingsManager, UpdateSettings

__all__ = ["SettingsManager", "UpdateSettings"]
