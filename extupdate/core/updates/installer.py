"""Installer for downloaded extension artifacts"""

import logging
from pathlib import Path

from extupdate.core.updates.action_log import DeferredActionLog
from extupdate.core.updates.archive import is_archive_name
from extupdate.core.updates.exceptions import InstallationError

logger = logging.getLogger(__name__)

# Default installation directory
DEFAULT_EXTENSIONS_DIR = Path.home() / ".extupdate" / "extensions"


class ExtensionInstaller:
    """Schedules installation of artifacts into the extensions directory

    Installation happens through the deferred action log: nothing inside the
    extensions directory is touched until the next controlled start.

    - zip archives are unpacked into the extensions directory, replacing the
      ``<extensions_dir>/<display name>`` directory when overwriting
    - raw packages are copied into the extensions directory under their file name
    """

    def __init__(self, action_log: DeferredActionLog, extensions_dir: Path = DEFAULT_EXTENSIONS_DIR):
        """
        Initialize installer

        Args:
            action_log: Log receiving the deferred install commands
            extensions_dir: Directory to install extensions to
        """
        self.action_log = action_log
        self.extensions_dir = extensions_dir

    def install(self, local_file: Path, display_name: str, overwrite: bool = True) -> None:
        """
        Schedule installation of local_file

        Args:
            local_file: Downloaded artifact
            display_name: Name of the installed extension directory
            overwrite: Replace an existing installation of the same name

        Raises:
            InstallationError: If the artifact is missing or the target exists without overwrite
            ActionLogError: If the commands cannot be recorded
        """
        if not local_file.is_file():
            raise InstallationError(f"Artifact not found: {local_file}")

        if is_archive_name(local_file):
            target = self.extensions_dir / display_name
            if target.exists():
                if not overwrite:
                    raise InstallationError(
                        f"Extension '{display_name}' is already installed at {target}"
                    )
                self.action_log.append_delete_command(target)
            self.action_log.append_unzip_command(local_file, self.extensions_dir)
        else:
            target = self.extensions_dir / local_file.name
            if target.exists() and not overwrite:
                raise InstallationError(
                    f"Extension '{display_name}' is already installed at {target}"
                )
            self.action_log.append_copy_command(local_file, target)

        logger.info(f"Extension {display_name} scheduled for installation: {local_file.name} -> {target}")
