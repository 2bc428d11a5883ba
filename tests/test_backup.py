from pathlib import Path

import pytest

from mcpsync import paths
from mcpsync.backup import (
    BackupPolicy,
    backup_path,
    list_backups,
    read_backup,
    restore_backup,
    write_durably,
)
from mcpsync.errors import StorageError, UnsafePathError
from mcpsync.storage import LocalStorage


def _backup_files(directory):
    return sorted(p.name for p in directory.iterdir() if ".bak" in p.name)


def test_single_backup_holds_previous_content(tmp_path):
    cfg = tmp_path / "cfg.json"
    cfg.write_text("old")

    write_durably(cfg, "new", BackupPolicy(enabled=True, max_backups=1))

    assert cfg.read_text() == "new"
    assert (tmp_path / "cfg.bak").read_text() == "old"


def test_creates_parent_dirs_and_no_backup_for_new_file(tmp_path):
    cfg = tmp_path / "a" / "b" / "cfg.json"

    write_durably(cfg, "{}")

    assert cfg.read_text() == "{}"
    assert _backup_files(cfg.parent) == []


def test_rotation_keeps_max_backups(tmp_path):
    cfg = tmp_path / "cfg.json"
    policy = BackupPolicy(max_backups=3)
    contents = [f"v{i}" for i in range(1, 7)]
    for c in contents:
        write_durably(cfg, c, policy)

    assert _backup_files(tmp_path) == ["cfg.bak", "cfg.bak.1", "cfg.bak.2"]
    assert (tmp_path / "cfg.bak").read_text() == contents[-2]
    assert (tmp_path / "cfg.bak.1").read_text() == contents[-3]
    assert (tmp_path / "cfg.bak.2").read_text() == contents[-4]


def test_disabled_policy_takes_no_backup(tmp_path):
    cfg = tmp_path / "cfg.json"
    cfg.write_text("old")

    write_durably(cfg, "new", BackupPolicy(enabled=False))

    assert _backup_files(tmp_path) == []


def test_lowering_limit_prunes_old_slots(tmp_path):
    cfg = tmp_path / "cfg.json"
    for c in ("a", "b", "c", "d", "e"):
        write_durably(cfg, c, BackupPolicy(max_backups=4))
    write_durably(cfg, "f", BackupPolicy(max_backups=2))

    assert _backup_files(tmp_path) == ["cfg.bak", "cfg.bak.1"]
    assert (tmp_path / "cfg.bak").read_text() == "e"


def test_policy_clamps():
    assert BackupPolicy(max_backups=50).max_backups == 20
    assert BackupPolicy(max_backups=-1).max_backups == 0


def test_no_temp_files_left(tmp_path):
    cfg = tmp_path / "cfg.json"
    write_durably(cfg, "x")
    write_durably(cfg, "y")

    assert not [p for p in tmp_path.iterdir() if p.name.endswith(".tmp")]


def test_list_and_restore(tmp_path):
    cfg = tmp_path / "cfg.json"
    policy = BackupPolicy(max_backups=3)
    for c in ("one", "two", "three"):
        write_durably(cfg, c, policy)

    found = list_backups(cfg)

    assert [b.slot for b in found] == [0, 1]
    assert read_backup(found[1].path) == b"one"

    restore_backup(cfg, found[1].path, policy)

    assert cfg.read_text() == "one"
    assert (tmp_path / "cfg.bak").read_text() == "three"


def test_backup_path_replaces_extension(tmp_path):
    assert backup_path(tmp_path / "settings.json") == str(tmp_path / "settings.bak")
    assert backup_path(tmp_path / "settings.json", 2) == str(tmp_path / "settings.bak.2")


def test_lowering_limit_to_one_prunes_numbered_slots(tmp_path):
    cfg = tmp_path / "cfg.json"
    for c in ("a", "b", "c", "d"):
        write_durably(cfg, c, BackupPolicy(max_backups=3))
    write_durably(cfg, "e", BackupPolicy(max_backups=1))

    assert _backup_files(tmp_path) == ["cfg.bak"]
    assert [b.slot for b in list_backups(cfg)] == [0]
    assert (tmp_path / "cfg.bak").read_text() == "d"


def test_failed_temp_write_leaves_no_temp_file(tmp_path, monkeypatch):
    cfg = tmp_path / "cfg.json"
    cfg.write_text("old")

    def short_write(self, path, data):
        Path(path).write_bytes(data[:2])
        raise StorageError("IO error: no space left on device")

    monkeypatch.setattr(LocalStorage, "write", short_write)

    with pytest.raises(StorageError):
        write_durably(cfg, "new content", BackupPolicy(enabled=False))

    assert cfg.read_text() == "old"
    assert not [p for p in tmp_path.iterdir() if p.name.endswith(".tmp")]


@pytest.fixture()
def system_dir(tmp_path, monkeypatch):
    blocked = tmp_path / "sys"
    blocked.mkdir()
    monkeypatch.setattr(paths, "blocked_directories", lambda: [blocked])
    return blocked


def test_write_into_blocked_directory_is_refused(system_dir):
    cfg = system_dir / "conf.d" / "cfg.json"

    with pytest.raises(UnsafePathError, match="block"):
        write_durably(cfg, "{}")

    assert not (system_dir / "conf.d").exists()


def test_restore_into_blocked_directory_is_refused(tmp_path, monkeypatch):
    cfg = tmp_path / "sys" / "cfg.json"
    write_durably(cfg, "one")
    write_durably(cfg, "two")
    monkeypatch.setattr(paths, "blocked_directories", lambda: [tmp_path / "sys"])

    with pytest.raises(UnsafePathError):
        restore_backup(cfg, backup_path(cfg))

    assert cfg.read_text() == "two"
    assert (tmp_path / "sys" / "cfg.bak").read_text() == "one"
