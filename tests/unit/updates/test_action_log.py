from __future__ import annotations

import threading
from pathlib import Path

import pytest

from extupdate.core.updates.action_log import CopyCommand, DeferredActionLog, DeleteCommand, UnzipCommand
from extupdate.core.updates.exceptions import ActionLogError


def test_commands_are_persisted_in_append_order(tmp_path: Path) -> None:
    script = tmp_path / "state" / "action_script.json"
    log = DeferredActionLog(script)

    log.append_delete_command(tmp_path / "old")
    log.append_copy_command(tmp_path / "new.jar", tmp_path / "ext" / "new.jar")
    log.append_unzip_command(tmp_path / "new.zip", tmp_path / "ext")

    reopened = DeferredActionLog(script).pending()

    assert [type(c) for c in reopened] == [DeleteCommand, CopyCommand, UnzipCommand]
    assert reopened[0].path == tmp_path / "old"


def test_replay_runs_commands_once_and_removes_script(tmp_path: Path, make_zip, manifest_json) -> None:
    extensions = tmp_path / "extensions"
    old = extensions / "foo"
    old.mkdir(parents=True)
    (old / "manifest.json").write_text(manifest_json("foo", "1.0"), encoding="utf-8")
    archive = make_zip(tmp_path / "temp" / "foo-1.2.zip", {"foo/manifest.json": manifest_json("foo", "1.2")})
    package = tmp_path / "temp" / "bar.jar"
    package.write_bytes(b"bar package")

    log = DeferredActionLog(tmp_path / "action_script.json")
    log.append_delete_command(old)
    log.append_unzip_command(archive, extensions)
    log.append_copy_command(package, extensions / "bar.jar")

    assert log.replay() == 3

    assert '"1.2"' in (extensions / "foo" / "manifest.json").read_text(encoding="utf-8")
    assert (extensions / "bar.jar").read_bytes() == b"bar package"
    assert not log.script_path.exists()
    assert log.replay() == 0


def test_replay_continues_after_failure_and_reports_it(tmp_path: Path) -> None:
    target = tmp_path / "gone"
    target.write_text("x", encoding="utf-8")
    log = DeferredActionLog(tmp_path / "action_script.json")
    log.append_copy_command(tmp_path / "missing.jar", tmp_path / "ext" / "missing.jar")
    log.append_delete_command(target)

    with pytest.raises(ActionLogError, match="1 deferred actions failed"):
        log.replay()

    assert not target.exists()
    assert not log.script_path.exists()


def test_concurrent_appends_are_not_lost(tmp_path: Path) -> None:
    script = tmp_path / "action_script.json"

    def worker(n: int) -> None:
        # separate instances share the per-file lock
        DeferredActionLog(script).append_delete_command(tmp_path / f"old-{n}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    paths = {c.path for c in DeferredActionLog(script).pending()}
    assert paths == {tmp_path / f"old-{n}" for n in range(20)}


def test_corrupt_script_is_reported(tmp_path: Path) -> None:
    script = tmp_path / "action_script.json"
    script.write_text("[not a script", encoding="utf-8")

    with pytest.raises(ActionLogError):
        DeferredActionLog(script).append_delete_command(tmp_path / "x")
