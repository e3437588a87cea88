"""Collaborator interfaces used by update plans.

Plans receive these services explicitly so they can be driven against fakes
in tests and against the real registry/installer/action log in production.
"""

from pathlib import Path
from typing import Optional, Protocol

from extupdate.core.updates.models import BuildNumber, ExtensionDescriptor


class ExtensionRegistryProtocol(Protocol):
    """Protocol for the installed-extension registry."""

    def is_installed(self, extension_id: str) -> bool:
        ...

    def get_installed(self, extension_id: str) -> Optional[ExtensionDescriptor]:
        ...

    def is_incompatible(self, descriptor: ExtensionDescriptor, build: Optional[BuildNumber]) -> bool:
        """Check the descriptor's since/until range against a host build.

        Args:
            descriptor: Descriptor to check
            build: Host build; None means the registry's own host build

        Returns:
            True if the extension cannot run on that build
        """
        ...

    def is_known_broken(self, descriptor: ExtensionDescriptor) -> bool:
        ...

    def was_updated_this_session(self, extension_id: str) -> bool:
        ...

    def mark_updated(self, descriptor: ExtensionDescriptor) -> None:
        ...


class InstallerProtocol(Protocol):
    """Protocol for the component that registers a new artifact for installation."""

    def install(self, local_file: Path, display_name: str, overwrite: bool = True) -> None:
        """Install or schedule installation of an artifact.

        Raises:
            InstallationError: If the artifact cannot be installed
        """
        ...


class ActionLogProtocol(Protocol):
    """Protocol for the append-only log of actions run at next start."""

    def append_delete_command(self, path: Path) -> None:
        ...


class ManifestReaderProtocol(Protocol):
    """Protocol for reading an extension descriptor from a file or directory."""

    def read_manifest(self, path: Path) -> Optional[ExtensionDescriptor]:
        ...


class ArchiveExtractorProtocol(Protocol):
    """Protocol for unpacking a compressed archive."""

    def extract_all(self, archive_path: Path, dest_dir: Path) -> None:
        ...
