from __future__ import annotations

import tempfile
import zipfile
from pathlib import Path

import pytest

from extupdate.core.updates.descriptor import DescriptorExtractor
from extupdate.core.updates.exceptions import ValidationFailure


@pytest.fixture
def scratch(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Route extraction directories into a watched location"""
    root = tmp_path / "scratch"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root


def test_raw_package_is_read_directly(tmp_path: Path, make_zip, manifest_json, scratch: Path) -> None:
    package = make_zip(tmp_path / "foo-1.2.jar", {
        "manifest.json": manifest_json("foo", "1.2", description="Foo tools"),
        "foo/module.py": "",
    })

    descriptor = DescriptorExtractor().extract(package)

    assert descriptor is not None
    assert descriptor.id == "foo"
    assert descriptor.version == "1.2"
    assert descriptor.description == "Foo tools"
    assert list(scratch.iterdir()) == []


def test_archive_with_single_folder_yields_its_manifest(tmp_path: Path, make_zip, manifest_json, scratch: Path) -> None:
    archive = make_zip(tmp_path / "foo-1.2.zip", {
        "foo/manifest.json": manifest_json("foo", "1.2", depends=["bar"]),
        "foo/lib/code.py": "",
    })

    descriptor = DescriptorExtractor().extract(archive)

    assert descriptor is not None
    assert descriptor.id == "foo"
    assert descriptor.depends == ["bar"]
    assert list(scratch.iterdir()) == []


def test_archive_with_single_package_in_lib_folder(tmp_path: Path, make_zip, manifest_json, scratch: Path) -> None:
    inner = make_zip(tmp_path / "inner.jar", {"manifest.json": manifest_json("foo", "3.0")})
    archive = tmp_path / "foo.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.write(inner, "foo/lib/foo.jar")

    descriptor = DescriptorExtractor().extract(archive)

    assert descriptor is not None
    assert descriptor.version == "3.0"


def test_archive_with_two_top_level_entries_has_no_descriptor(tmp_path: Path, make_zip, manifest_json, scratch: Path) -> None:
    archive = make_zip(tmp_path / "bundle.zip", {
        "foo/manifest.json": manifest_json("foo", "1.2"),
        "bar/manifest.json": manifest_json("bar", "1.0"),
    })

    assert DescriptorExtractor().extract(archive) is None
    assert list(scratch.iterdir()) == []


def test_empty_archive_has_no_descriptor(tmp_path: Path, make_zip, scratch: Path) -> None:
    archive = make_zip(tmp_path / "empty.zip", {})

    assert DescriptorExtractor().extract(archive) is None
    assert list(scratch.iterdir()) == []


def test_non_archive_file_has_no_descriptor(tmp_path: Path) -> None:
    artifact = tmp_path / "notes.txt"
    artifact.write_text("plain text", encoding="utf-8")

    assert DescriptorExtractor().extract(artifact) is None


def test_malformed_manifest_is_treated_as_absent(tmp_path: Path, make_zip, scratch: Path) -> None:
    archive = make_zip(tmp_path / "foo.zip", {"foo/manifest.json": "{not json"})

    assert DescriptorExtractor().extract(archive) is None


def test_corrupt_archive_is_a_validation_failure(tmp_path: Path, scratch: Path) -> None:
    archive = tmp_path / "broken.zip"
    archive.write_bytes(b"definitely not a zip")

    with pytest.raises(ValidationFailure):
        DescriptorExtractor().extract(archive)
    assert list(scratch.iterdir()) == []


def test_traversal_member_is_refused(tmp_path: Path, make_zip, scratch: Path) -> None:
    archive = make_zip(tmp_path / "evil.zip", {"../escape.txt": "x"})

    with pytest.raises(ValidationFailure):
        DescriptorExtractor().extract(archive)
    assert not (scratch.parent / "escape.txt").exists()
    assert list(scratch.iterdir()) == []


def _bulky_manifest(manifest_json) -> str:
    return manifest_json("foo", "1.2", description=" ".join(str(i) for i in range(3000)))


def test_corrupt_member_data_is_a_validation_failure(tmp_path: Path, damaged_zip, manifest_json, scratch: Path) -> None:
    archive = damaged_zip(
        tmp_path / "foo-1.2.zip",
        {"foo/manifest.json": _bulky_manifest(manifest_json)},
        damaged="foo/manifest.json",
    )

    with pytest.raises(ValidationFailure):
        DescriptorExtractor().extract(archive)
    assert list(scratch.iterdir()) == []


def test_raw_package_with_corrupt_manifest_is_a_validation_failure(tmp_path: Path, damaged_zip, manifest_json) -> None:
    package = damaged_zip(
        tmp_path / "foo-1.2.jar",
        {"manifest.json": _bulky_manifest(manifest_json)},
        damaged="manifest.json",
    )

    with pytest.raises(ValidationFailure):
        DescriptorExtractor().extract(package)
