"""Update Settings: configuration of the extension update subsystem"""

import json
import logging
import os
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

HOME_ENV = "EXTUPDATE_HOME"
FIRST_LAUNCH_ENV = "EXTUPDATE_FIRST_LAUNCH"
_TRUTHY = {"1", "true", "yes", "on"}


def default_home() -> Path:
    """Base directory for settings and extension state (~/.extupdate)"""
    override = os.environ.get(HOME_ENV)
    return Path(override) if override else Path.home() / ".extupdate"


@dataclass
class UpdateSettings:
    """Update Settings: paths, repository endpoint and host build"""

    extensions_dir: str = field(default_factory=lambda: str(default_home() / "extensions"))
    temp_dir: str = field(default_factory=lambda: str(default_home() / "temp"))
    action_script_path: str = field(default_factory=lambda: str(default_home() / "action_script.json"))
    broken_list_path: Optional[str] = None

    # Repository endpoint queried with action/id/build/uuid parameters
    plugins_download_url: str = "https://plugins.example.org/pluginManager"
    api_build: Optional[str] = None
    installation_uid: Optional[str] = None

    force_secure: bool = False
    timeout_seconds: int = 300
    first_launch: bool = False

    def get_extensions_dir(self) -> Path:
        return Path(self.extensions_dir)

    def get_temp_dir(self) -> Path:
        return Path(self.temp_dir)

    def get_action_script_path(self) -> Path:
        return Path(self.action_script_path)

    def is_first_launch(self) -> bool:
        """First-launch mode from settings or the EXTUPDATE_FIRST_LAUNCH variable"""
        env = os.environ.get(FIRST_LAUNCH_ENV, "")
        return self.first_launch or env.strip().lower() in _TRUTHY

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "UpdateSettings":
        """Create from dictionary, ignoring unknown keys"""
        defaults = cls()
        known = {k: v for k, v in data.items() if k in defaults.to_dict()}
        return cls(**{**defaults.to_dict(), **known})


class SettingsManager:
    """Manage update settings persistence"""

    def __init__(self, settings_path: Optional[Path] = None):
        """Initialize settings manager"""
        if settings_path:
            self.settings_path = settings_path
        else:
            # Default: ~/.extupdate/settings.json
            self.settings_path = default_home() / "settings.json"

    def load(self) -> UpdateSettings:
        """Load settings from file, falling back to defaults"""
        if not self.settings_path.exists():
            return UpdateSettings()

        try:
            with open(self.settings_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return UpdateSettings.from_dict(data)
        except (OSError, json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to load settings from {self.settings_path}: {e}")
            return UpdateSettings()

    def save(self, settings: UpdateSettings) -> None:
        """Save settings to file"""
        self.settings_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.settings_path, "w", encoding="utf-8") as f:
            json.dump(settings.to_dict(), f, indent=2)

    def ensure_installation_uid(self) -> str:
        """Return the installation id, generating and saving one if missing"""
        settings = self.load()
        if not settings.installation_uid:
            settings.installation_uid = str(uuid.uuid4())
            self.save(settings)
            logger.info(f"Generated installation id {settings.installation_uid}")
        return settings.installation_uid
