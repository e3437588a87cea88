"""Recover the descriptor of a downloaded artifact without installing it"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from extupdate.core.updates.archive import ZipArchiveExtractor, is_archive_name
from extupdate.core.updates.interfaces import ArchiveExtractorProtocol, ManifestReaderProtocol
from extupdate.core.updates.manifest import ManifestReader
from extupdate.core.updates.models import ExtensionDescriptor

logger = logging.getLogger(__name__)


class DescriptorExtractor:
    """Reads the descriptor embedded in a raw package or a zip archive"""

    def __init__(
        self,
        reader: Optional[ManifestReaderProtocol] = None,
        archives: Optional[ArchiveExtractorProtocol] = None
    ):
        self.reader = reader or ManifestReader()
        self.archives = archives or ZipArchiveExtractor()

    def extract(self, local_file: Path) -> Optional[ExtensionDescriptor]:
        """
        Extract the descriptor of local_file

        Raw packages are handed to the manifest reader directly. Zip archives
        are unpacked into a throwaway directory and must hold exactly one
        top-level entry, which is then read; any other layout has no descriptor.

        Returns:
            The descriptor, or None when the artifact carries none

        Raises:
            ValidationFailure: If the archive is corrupt or unsafe
            IOFailure: If the archive cannot be unpacked
        """
        descriptor = self.reader.read_manifest(local_file)
        if descriptor is not None or not is_archive_name(local_file):
            return descriptor

        output_dir = Path(tempfile.mkdtemp(prefix="plugin_"))
        try:
            self.archives.extract_all(local_file, output_dir)
            entries = list(output_dir.iterdir())
            if len(entries) != 1:
                logger.info(
                    f"Archive {local_file.name} has {len(entries)} top-level entries, "
                    f"no descriptor read"
                )
                return None
            return self.reader.read_manifest(entries[0])
        finally:
            shutil.rmtree(output_dir, ignore_errors=True)
