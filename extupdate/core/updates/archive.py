"""Zip archive extraction with path traversal protection"""

import logging
import shutil
import zipfile
import zlib
from pathlib import Path

from extupdate.core.updates.exceptions import IOFailure, ValidationFailure

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".zip"

# Raised by zipfile for damaged, encrypted or unsupported member data
CORRUPT_ARCHIVE_ERRORS = (zipfile.BadZipFile, zlib.error, RuntimeError, NotImplementedError, EOFError)


def is_archive_name(path: Path) -> bool:
    """True when the file name marks a compressed archive rather than a raw package"""
    return path.name.lower().endswith(ARCHIVE_SUFFIX)


class ZipArchiveExtractor:
    """Extracts zip archives member by member"""

    def extract_all(self, archive_path: Path, dest_dir: Path) -> None:
        """
        Extract every member of archive_path into dest_dir

        Args:
            archive_path: Path to zip file
            dest_dir: Target directory for extraction

        Raises:
            ValidationFailure: If the archive is corrupt or a member escapes dest_dir
            IOFailure: If writing the extracted files fails
        """
        logger.info(f"Extracting {archive_path.name} to {dest_dir}")

        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            dest_dir_resolved = dest_dir.resolve()

            with zipfile.ZipFile(archive_path, 'r') as zf:
                for member in zf.namelist():
                    if '..' in Path(member).parts or Path(member).is_absolute():
                        raise ValidationFailure(f"Path traversal detected in archive: {member}")

                    target_path = dest_dir / member
                    try:
                        target_path.resolve().relative_to(dest_dir_resolved)
                    except ValueError:
                        raise ValidationFailure(f"Archive extraction would escape target directory: {member}")

                    if member.endswith('/'):
                        target_path.mkdir(parents=True, exist_ok=True)
                    else:
                        target_path.parent.mkdir(parents=True, exist_ok=True)
                        with zf.open(member) as source, open(target_path, 'wb') as target:
                            shutil.copyfileobj(source, target)

            logger.debug(f"Extraction complete: {dest_dir}")

        except CORRUPT_ARCHIVE_ERRORS as e:
            raise ValidationFailure(f"Invalid zip file {archive_path.name}: {e}") from e
        except OSError as e:
            raise IOFailure(f"Failed to extract {archive_path.name}: {e}") from e
