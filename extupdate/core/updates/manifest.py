"""Reader for extension manifest.json files"""

import json
import logging
import zipfile
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from extupdate.core.updates.archive import CORRUPT_ARCHIVE_ERRORS
from extupdate.core.updates.exceptions import ValidationFailure
from extupdate.core.updates.models import ExtensionDescriptor

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
LIB_DIR = "lib"
MAX_MANIFEST_SIZE = 100 * 1024    # 100KB


class ManifestReader:
    """Reads descriptors from raw packages and unpacked extension directories

    A raw package is a zip file carrying ``manifest.json`` at its root. An
    unpacked extension is a directory with ``manifest.json`` at its root, or
    with raw packages under ``lib/``.
    """

    def read_manifest(self, path: Path) -> Optional[ExtensionDescriptor]:
        """
        Read the descriptor stored in path

        Returns:
            The descriptor, or None if path carries no readable manifest

        Raises:
            ValidationFailure: If a package holds a manifest that cannot be decompressed
        """
        if path.is_dir():
            return self._read_directory(path)
        if path.is_file() and zipfile.is_zipfile(path):
            return self._read_package(path)
        return None

    def _read_directory(self, directory: Path) -> Optional[ExtensionDescriptor]:
        manifest_path = directory / MANIFEST_NAME
        if manifest_path.is_file():
            return self._parse(manifest_path.read_bytes(), str(manifest_path))

        lib_dir = directory / LIB_DIR
        if lib_dir.is_dir():
            for candidate in sorted(lib_dir.iterdir()):
                if candidate.is_file() and zipfile.is_zipfile(candidate):
                    descriptor = self._read_package(candidate)
                    if descriptor is not None:
                        return descriptor
        return None

    def _read_package(self, package: Path) -> Optional[ExtensionDescriptor]:
        try:
            with zipfile.ZipFile(package, 'r') as zf:
                if MANIFEST_NAME not in zf.namelist():
                    return None
                data = zf.read(MANIFEST_NAME)
        except CORRUPT_ARCHIVE_ERRORS as e:
            raise ValidationFailure(f"Corrupt package {package.name}: {e}") from e
        return self._parse(data, f"{package.name}!/{MANIFEST_NAME}")

    def _parse(self, data: bytes, source: str) -> Optional[ExtensionDescriptor]:
        if len(data) > MAX_MANIFEST_SIZE:
            logger.warning(
                f"Ignoring {source}: {len(data) / 1024:.2f}KB exceeds "
                f"{MAX_MANIFEST_SIZE / 1024}KB"
            )
            return None

        try:
            manifest_dict: Dict[str, Any] = json.loads(data)
            descriptor = ExtensionDescriptor(**manifest_dict)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError, ValidationError) as e:
            logger.error(f"Failed to load manifest {source}: {e}")
            return None

        logger.debug(f"Loaded manifest {source}: {descriptor.id} v{descriptor.version}")
        return descriptor
