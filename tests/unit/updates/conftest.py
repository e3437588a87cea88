from __future__ import annotations

import json
import struct
import zipfile
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from extupdate.core.updates.descriptor import DescriptorExtractor
from extupdate.core.updates.downloader import ArtifactFetcher
from extupdate.core.updates.models import BuildNumber, ExtensionDescriptor
from extupdate.core.updates.plan import UpdateServices
from extupdate.core.updates.registry import ExtensionRegistry


class RecordingInstaller:
    def __init__(self) -> None:
        self.installs: List[Tuple[Path, str, bool]] = []

    def install(self, local_file: Path, display_name: str, overwrite: bool = True) -> None:
        self.installs.append((local_file, display_name, overwrite))


class RecordingActionLog:
    def __init__(self) -> None:
        self.deleted: List[Path] = []

    def append_delete_command(self, path: Path) -> None:
        self.deleted.append(path)


def _manifest(ext_id: str, version: str, **extra: object) -> str:
    data: Dict[str, object] = {"id": ext_id, "name": ext_id, "version": version}
    data.update(extra)
    return json.dumps(data)


@pytest.fixture
def manifest_json() -> Callable[..., str]:
    return _manifest


@pytest.fixture
def make_zip() -> Callable[..., Path]:
    """Write a zip file with the given member name -> text content"""

    def _make(path: Path, members: Dict[str, str], compression: int = zipfile.ZIP_STORED) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w", compression=compression) as zf:
            for name, content in members.items():
                zf.writestr(name, content)
        return path

    return _make


@pytest.fixture
def damaged_zip(make_zip) -> Callable[..., Path]:
    """Deflated zip file whose member ``damaged`` has corrupted compressed data"""

    def _make(path: Path, members: Dict[str, str], damaged: str) -> Path:
        make_zip(path, members, compression=zipfile.ZIP_DEFLATED)
        with zipfile.ZipFile(path) as zf:
            info = zf.getinfo(damaged)
        data = bytearray(path.read_bytes())
        header = info.header_offset
        name_len, extra_len = struct.unpack("<HH", data[header + 26:header + 30])
        middle = header + 30 + name_len + extra_len + info.compress_size // 2
        for i in range(middle - 5, middle + 5):
            data[i] ^= 0xFF
        path.write_bytes(bytes(data))
        return path

    return _make


@pytest.fixture
def extension_zip_bytes(tmp_path: Path, make_zip) -> Callable[..., bytes]:
    """Bytes of an archive holding one ``<ext_id>/`` folder with a manifest"""
    counter = {"n": 0}

    def _build(ext_id: str = "foo", version: str = "1.2", **extra: object) -> bytes:
        counter["n"] += 1
        path = tmp_path / "fixtures" / f"archive{counter['n']}.zip"
        make_zip(path, {
            f"{ext_id}/manifest.json": _manifest(ext_id, version, **extra),
            f"{ext_id}/lib/code.py": "print('hello')\n",
        })
        return path.read_bytes()

    return _build


@pytest.fixture
def registry() -> ExtensionRegistry:
    return ExtensionRegistry(host_build=BuildNumber.parse("HB-3.12"))


@pytest.fixture
def installer() -> RecordingInstaller:
    return RecordingInstaller()


@pytest.fixture
def action_log() -> RecordingActionLog:
    return RecordingActionLog()


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path / "plugin-temp"


@pytest.fixture
def services(
    registry: ExtensionRegistry,
    installer: RecordingInstaller,
    action_log: RecordingActionLog,
    temp_dir: Path,
) -> UpdateServices:
    return UpdateServices(
        registry=registry,
        installer=installer,
        action_log=action_log,
        fetcher=ArtifactFetcher(timeout=5),
        extractor=DescriptorExtractor(),
        temp_dir=temp_dir,
    )


@pytest.fixture
def install(registry: ExtensionRegistry, tmp_path: Path) -> Callable[..., ExtensionDescriptor]:
    """Register an installed extension living under tmp_path/installed"""

    def _install(ext_id: str, version: str, path: Optional[Path] = None) -> ExtensionDescriptor:
        location = path or tmp_path / "installed" / ext_id
        location.mkdir(parents=True, exist_ok=True)
        descriptor = ExtensionDescriptor(id=ext_id, name=ext_id, version=version, path=location)
        registry.register_installed(descriptor)
        return descriptor

    return _install
