"""Commit step of an update: schedule replacement and register the new artifact"""

import logging
from pathlib import Path
from typing import Optional

from extupdate.core.updates.interfaces import (
    ActionLogProtocol,
    ExtensionRegistryProtocol,
    InstallerProtocol,
)
from extupdate.core.updates.models import ExtensionDescriptor

logger = logging.getLogger(__name__)


class InstallStager:
    """Hands a staged artifact to the installer"""

    def __init__(
        self,
        action_log: ActionLogProtocol,
        installer: InstallerProtocol,
        registry: ExtensionRegistryProtocol
    ):
        self.action_log = action_log
        self.installer = installer
        self.registry = registry

    def stage(
        self,
        deferred_delete_path: Optional[Path],
        local_file: Path,
        display_name: str,
        descriptor: ExtensionDescriptor
    ) -> None:
        """
        Stage an artifact for installation

        The superseded files are never deleted in place; their removal is
        appended to the action log and happens at the next start.

        Args:
            deferred_delete_path: Location of the superseded version, if any
            local_file: Downloaded artifact
            display_name: Name used by the installer
            descriptor: Descriptor recorded as updated in this session

        Raises:
            InstallationError: If the installer refuses the artifact
            ActionLogError: If the deferred delete cannot be recorded
        """
        if deferred_delete_path is not None:
            self.action_log.append_delete_command(deferred_delete_path)

        self.installer.install(local_file, display_name, overwrite=True)
        self.registry.mark_updated(descriptor)

        logger.info(f"Extension {descriptor.id} v{descriptor.version} staged from {local_file.name}")
