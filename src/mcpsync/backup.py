# -*- coding: utf-8 -*-
"""
Crash-safe writes with rotating backups.

For a target ``cfg.json`` the backups are ``cfg.bak`` (newest), then
``cfg.bak.1``, ``cfg.bak.2`` ... (older). ``max_backups`` is the total number of
backup files kept, at most 20.
"""
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Union

from mcpsync.errors import UnsafePathError
from mcpsync.paths import PathSafety, path_safety_level
from mcpsync.storage import LocalStorage, Storage

logger = logging.getLogger(__name__)

MAX_BACKUP_SLOTS = 20


@dataclass
class BackupPolicy:
    enabled: bool = True
    max_backups: int = 1

    def __post_init__(self):
        self.max_backups = max(0, min(int(self.max_backups), MAX_BACKUP_SLOTS))


@dataclass
class BackupInfo:
    slot: int  # 0 is the bare .bak
    path: str


def backup_path(path, slot: int = 0, storage: Optional[Storage] = None) -> str:
    storage = storage or LocalStorage()
    base = storage.with_suffix(path, ".bak")
    return base if slot == 0 else f"{base}.{slot}"


def rotate_backups(path, max_backups: int, storage: Optional[Storage] = None) -> None:
    """Push existing backups one slot older and copy ``path`` into the bare ``.bak``."""
    storage = storage or LocalStorage()
    if not storage.exists(path):
        return
    max_backups = max(1, min(max_backups, MAX_BACKUP_SLOTS))
    # drop slots left over from a larger limit
    for slot in range(max_backups, MAX_BACKUP_SLOTS + 1):
        stale = backup_path(path, slot, storage)
        if not storage.exists(stale):
            break
        storage.remove(stale)
    if max_backups > 1:
        for slot in range(max_backups - 2, 0, -1):
            current = backup_path(path, slot, storage)
            if storage.exists(current):
                storage.rename(current, backup_path(path, slot + 1, storage))
        newest = backup_path(path, 0, storage)
        if storage.exists(newest):
            storage.rename(newest, backup_path(path, 1, storage))
    storage.copy(path, backup_path(path, 0, storage))
    logger.debug("backed up %s (keeping %d)", path, max_backups)


def write_durably(path, content: Union[str, bytes], policy: Optional[BackupPolicy] = None,
                  storage: Optional[Storage] = None) -> None:
    """Back up the current file, then replace it through a sibling temp file.

    Local paths under a system directory are refused before anything is touched.
    """
    storage = storage or LocalStorage()
    policy = policy or BackupPolicy()
    if storage.is_local:
        level = path_safety_level(path)
        if level is PathSafety.BLOCK:
            raise UnsafePathError(path, level)
    if isinstance(content, str):
        content = content.encode("utf-8")

    storage.makedirs(storage.parent(path))
    if policy.enabled and policy.max_backups > 0:
        rotate_backups(path, policy.max_backups, storage)

    tmp = f"{path}.{os.getpid()}.tmp"
    try:
        storage.write(tmp, content)
        storage.rename(tmp, path)
    except Exception:
        storage.remove(tmp)
        raise
    logger.debug("wrote %s (%d bytes)", path, len(content))


def list_backups(path, storage: Optional[Storage] = None) -> List[BackupInfo]:
    storage = storage or LocalStorage()
    found = []
    bare = backup_path(path, 0, storage)
    if storage.exists(bare):
        found.append(BackupInfo(0, bare))
    for slot in range(1, MAX_BACKUP_SLOTS + 1):
        numbered = backup_path(path, slot, storage)
        if not storage.exists(numbered):
            break
        found.append(BackupInfo(slot, numbered))
    return found


def read_backup(backup, storage: Optional[Storage] = None) -> bytes:
    storage = storage or LocalStorage()
    return storage.read(backup)


def restore_backup(path, backup, policy: Optional[BackupPolicy] = None,
                   storage: Optional[Storage] = None) -> None:
    storage = storage or LocalStorage()
    # read first: rotating the current file may overwrite or move the backup itself
    content = storage.read(backup)
    write_durably(path, content, policy, storage)
    logger.info("restored %s from %s", path, backup)
