"""In-process registry of installed extensions"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from extupdate.core.updates.exceptions import IOFailure, ValidationFailure
from extupdate.core.updates.interfaces import ManifestReaderProtocol
from extupdate.core.updates.models import BuildNumber, ExtensionDescriptor
from extupdate.core.updates.versions import compare_version_numbers

logger = logging.getLogger(__name__)


class ExtensionRegistry:
    """Thread-safe registry of installed extensions

    Tracks:
    - installed descriptors, keyed by extension id
    - releases known to be broken, keyed by extension id
    - extensions updated during the current session

    Reads return snapshots; all writes go through one lock.
    """

    def __init__(
        self,
        host_build: Optional[BuildNumber] = None,
        broken: Optional[Dict[str, Iterable[str]]] = None
    ):
        """
        Args:
            host_build: Build of the running host used when no explicit bound is given
            broken: Mapping of extension id to versions known to be broken
        """
        self.host_build = host_build
        self._installed: Dict[str, ExtensionDescriptor] = {}
        self._broken: Dict[str, Set[str]] = {
            ext_id: set(versions) for ext_id, versions in (broken or {}).items()
        }
        self._updated: Dict[str, ExtensionDescriptor] = {}
        self._lock = threading.RLock()

    def register_installed(self, descriptor: ExtensionDescriptor) -> None:
        with self._lock:
            self._installed[descriptor.id] = descriptor.model_copy()
        logger.debug(f"Registered installed extension {descriptor.id} v{descriptor.version}")

    def load_installed(self, extensions_dir: Path, reader: ManifestReaderProtocol) -> List[str]:
        """
        Register every extension found under extensions_dir

        Each child directory or package file with a readable manifest is
        registered with its on-disk path.

        Returns:
            Ids of the registered extensions
        """
        if not extensions_dir.exists():
            return []

        loaded = []
        for item in sorted(extensions_dir.iterdir()):
            try:
                descriptor = reader.read_manifest(item)
            except ValidationFailure as e:
                logger.warning(f"Skipping unreadable extension {item.name}: {e}")
                continue
            if descriptor is None:
                continue
            self.register_installed(descriptor.model_copy(update={"path": item}))
            loaded.append(descriptor.id)

        logger.info(f"Loaded {len(loaded)} installed extensions from {extensions_dir}")
        return loaded

    def load_broken_list(self, path: Path) -> None:
        """
        Merge a JSON file ``{"extension.id": ["1.0", "1.1"]}`` into the broken set

        Raises:
            IOFailure: If the file cannot be read or parsed
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise IOFailure(f"Failed to load broken extension list {path}: {e}") from e

        with self._lock:
            for ext_id, versions in data.items():
                self._broken.setdefault(ext_id, set()).update(versions)
        logger.info(f"Loaded broken extension list: {len(data)} entries")

    def is_installed(self, extension_id: str) -> bool:
        with self._lock:
            return extension_id in self._installed

    def get_installed(self, extension_id: str) -> Optional[ExtensionDescriptor]:
        with self._lock:
            descriptor = self._installed.get(extension_id)
            return descriptor.model_copy() if descriptor is not None else None

    def is_known_broken(self, descriptor: ExtensionDescriptor) -> bool:
        with self._lock:
            return descriptor.version in self._broken.get(descriptor.id, set())

    def is_incompatible(self, descriptor: ExtensionDescriptor, build: Optional[BuildNumber]) -> bool:
        """
        Check a descriptor's since/until range against a host build

        Unparseable bounds are logged and treated as incompatible.
        """
        build = build or self.host_build
        if build is None:
            return False

        try:
            if descriptor.since_build:
                if build < BuildNumber.parse(descriptor.since_build):
                    return True
            if descriptor.until_build:
                if build > BuildNumber.parse(descriptor.until_build):
                    return True
        except ValueError as e:
            logger.warning(f"Extension {descriptor.id} has an invalid build range: {e}")
            return True
        return False

    def was_updated_this_session(self, extension_id: str) -> bool:
        with self._lock:
            return extension_id in self._updated

    def mark_updated(self, descriptor: ExtensionDescriptor) -> None:
        """Record that an update of descriptor.id was installed in this session"""
        with self._lock:
            previous = self._updated.get(descriptor.id)
            if previous is None or compare_version_numbers(descriptor.version, previous.version) >= 0:
                self._updated[descriptor.id] = descriptor.model_copy()
        logger.info(f"Extension {descriptor.id} v{descriptor.version} marked as updated")

    def updated_extensions(self) -> List[ExtensionDescriptor]:
        with self._lock:
            return [d.model_copy() for d in self._updated.values()]
