"""Deferred action script

Filesystem changes that must not touch files in use by the running process
are recorded here and executed once, in order, at the next controlled start.
"""

import logging
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Annotated, Dict, List, Literal, Union

from pydantic import BaseModel, Field, ValidationError

from extupdate.core.updates.archive import ZipArchiveExtractor
from extupdate.core.updates.exceptions import ActionLogError, UpdateError

logger = logging.getLogger(__name__)


class DeleteCommand(BaseModel):
    """Delete a file or directory tree"""
    kind: Literal["delete"] = "delete"
    path: Path

    def execute(self) -> None:
        if self.path.is_dir() and not self.path.is_symlink():
            shutil.rmtree(self.path)
        elif self.path.exists() or self.path.is_symlink():
            self.path.unlink()


class CopyCommand(BaseModel):
    """Copy a file into place, replacing an existing one"""
    kind: Literal["copy"] = "copy"
    source: Path
    destination: Path

    def execute(self) -> None:
        self.destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self.source, self.destination)


class UnzipCommand(BaseModel):
    """Unpack an archive into a directory"""
    kind: Literal["unzip"] = "unzip"
    archive: Path
    dest_dir: Path

    def execute(self) -> None:
        ZipArchiveExtractor().extract_all(self.archive, self.dest_dir)


ActionCommand = Annotated[
    Union[DeleteCommand, CopyCommand, UnzipCommand],
    Field(discriminator="kind"),
]


class ActionScript(BaseModel):
    """Serialized form of the script file"""
    commands: List[ActionCommand] = Field(default_factory=list)


_locks: Dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _locks_guard:
        return _locks.setdefault(key, threading.Lock())


class DeferredActionLog:
    """Append-only command log stored as JSON

    Every instance pointing at the same script file shares one lock, so
    concurrent appends from independent plans are never lost or interleaved.
    """

    def __init__(self, script_path: Path):
        self.script_path = script_path
        self._lock = _lock_for(script_path)

    def _load(self) -> ActionScript:
        if not self.script_path.exists():
            return ActionScript()
        try:
            return ActionScript.model_validate_json(self.script_path.read_bytes())
        except (OSError, ValidationError) as e:
            raise ActionLogError(f"Cannot read action script {self.script_path}: {e}") from e

    def _save(self, script: ActionScript) -> None:
        try:
            self.script_path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                prefix=self.script_path.name, suffix=".tmp", dir=self.script_path.parent
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(script.model_dump_json(indent=2))
            os.replace(temp_name, self.script_path)
        except OSError as e:
            raise ActionLogError(f"Cannot write action script {self.script_path}: {e}") from e

    def append(self, command: Union[DeleteCommand, CopyCommand, UnzipCommand]) -> None:
        """
        Append a command to the script

        Raises:
            ActionLogError: If the script cannot be read or written
        """
        with self._lock:
            script = self._load()
            script.commands.append(command)
            self._save(script)
        logger.info(f"Scheduled {command.kind} action: {command.model_dump(exclude={'kind'})}")

    def append_delete_command(self, path: Path) -> None:
        self.append(DeleteCommand(path=path))

    def append_copy_command(self, source: Path, destination: Path) -> None:
        self.append(CopyCommand(source=source, destination=destination))

    def append_unzip_command(self, archive: Path, dest_dir: Path) -> None:
        self.append(UnzipCommand(archive=archive, dest_dir=dest_dir))

    def pending(self) -> List[Union[DeleteCommand, CopyCommand, UnzipCommand]]:
        with self._lock:
            return list(self._load().commands)

    def replay(self) -> int:
        """
        Execute all recorded commands in order and remove the script

        Every command is attempted even if an earlier one fails. Nothing is
        rolled back.

        Returns:
            Number of commands executed successfully

        Raises:
            ActionLogError: If the script is unreadable or any command failed
        """
        with self._lock:
            script = self._load()
            if not script.commands:
                return 0

            logger.info(f"Replaying {len(script.commands)} deferred actions from {self.script_path}")
            failures = []
            executed = 0
            for command in script.commands:
                try:
                    command.execute()
                    executed += 1
                except (OSError, UpdateError) as e:
                    logger.error(f"Deferred {command.kind} action failed: {e}")
                    failures.append(f"{command.kind}: {e}")

            try:
                self.script_path.unlink()
            except OSError as e:
                failures.append(f"cannot remove script: {e}")
                logger.error(f"Cannot remove action script {self.script_path}: {e}")

        if failures:
            raise ActionLogError(
                f"{len(failures)} deferred actions failed: " + "; ".join(failures)
            )
        return executed
