# -*- coding: utf-8 -*-
"""
Path token expansion and write-safety classification.

Tokens: ``~``, ``~/...``, ``%USERPROFILE%\\...``, ``%APPDATA%\\...``.
Safety: BLOCK for system directories, SAFE for user config/data directories
and known tool directories, WARN for everything else. Both checks run on the
symlink-resolved path, and BLOCK is decided first.
"""
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional

from mcpsync.errors import PathResolutionError


class PathSafety(str, Enum):
    SAFE = "safe"
    WARN = "warn"
    BLOCK = "block"


KNOWN_TOOL_DIRS = (
    ".aider",
    ".amp",
    ".augment",
    ".claude",
    ".codex",
    ".continue",
    ".copilot",
    ".cursor",
    ".cody",
    ".droid",
    ".factory",
    ".gemini",
    ".github",
    ".kiro",
    ".mcp",
    ".opencode",
    ".qwen",
    ".qwen-code",
    ".rovodev",
    ".vscode",
)


def home_dir() -> Optional[Path]:
    try:
        return Path.home()
    except RuntimeError:
        return None


def _env_dir(name: str) -> Optional[Path]:
    value = os.environ.get(name)
    if value and os.path.isabs(value):
        return Path(value)
    return None


def config_dir(home: Optional[Path] = None) -> Optional[Path]:
    """Per-user config root: %APPDATA%, ~/Library/Application Support or $XDG_CONFIG_HOME."""
    home = home or home_dir()
    if sys.platform == "win32":
        return _env_dir("APPDATA") or (home / "AppData" / "Roaming" if home else None)
    if home is None:
        return None
    if sys.platform == "darwin":
        return home / "Library" / "Application Support"
    return _env_dir("XDG_CONFIG_HOME") or home / ".config"


def data_dir(home: Optional[Path] = None) -> Optional[Path]:
    home = home or home_dir()
    if sys.platform == "win32":
        return _env_dir("APPDATA") or (home / "AppData" / "Roaming" if home else None)
    if home is None:
        return None
    if sys.platform == "darwin":
        return home / "Library" / "Application Support"
    return _env_dir("XDG_DATA_HOME") or home / ".local" / "share"


def data_local_dir(home: Optional[Path] = None) -> Optional[Path]:
    home = home or home_dir()
    if sys.platform == "win32":
        return _env_dir("LOCALAPPDATA") or (home / "AppData" / "Local" if home else None)
    return data_dir(home)


def _join(base: Path, rest: str) -> Path:
    parts = [p for p in rest.replace("\\", "/").split("/") if p]
    return base.joinpath(*parts) if parts else base


def expand_path(raw: str, home: Optional[Path] = None) -> Optional[Path]:
    """Expand a leading path token; ``None`` when the needed directory is unknown."""
    if raw.startswith("~"):
        home = home or home_dir()
        return _join(home, raw[1:]) if home else None
    if raw.startswith("%USERPROFILE%"):
        home = home or home_dir()
        return _join(home, raw[len("%USERPROFILE%"):]) if home else None
    if raw.startswith("%APPDATA%"):
        base = config_dir(home)
        return _join(base, raw[len("%APPDATA%"):]) if base else None
    return Path(raw)


def resolve_path(raw: str, home: Optional[Path] = None) -> Path:
    path = expand_path(raw, home)
    if path is None:
        raise PathResolutionError(f"Could not expand {raw}")
    return path


def safe_directories(home: Optional[Path] = None) -> List[Path]:
    home = home or home_dir()
    dirs: List[Path] = []
    if home is not None:
        dirs.append(home / ".config")
        dirs.append(home / ".local")
        if sys.platform == "darwin":
            dirs.append(home / "Library" / "Application Support")
            dirs.append(home / "Library" / "Preferences")
        dirs.extend(home / d for d in KNOWN_TOOL_DIRS)
    for d in (config_dir(home), data_dir(home), data_local_dir(home)):
        if d is not None and d not in dirs:
            dirs.append(d)
    return dirs


def blocked_directories() -> List[Path]:
    if sys.platform == "win32":
        return [Path("C:\\Windows"), Path("C:\\Program Files"), Path("C:\\Program Files (x86)")]
    dirs = [Path(p) for p in (
        "/bin", "/sbin", "/usr/bin", "/usr/sbin", "/usr/lib", "/usr/lib64",
        "/lib", "/lib64", "/etc", "/var", "/boot", "/root",
    )]
    if sys.platform == "darwin":
        dirs.extend(Path(p) for p in ("/System", "/Library", "/private"))
    return dirs


def _canonical(path: Path) -> Path:
    # realpath resolves symlinks in the existing prefix and tolerates missing tails
    return Path(os.path.realpath(os.path.abspath(str(path))))


def is_under_any(path: Path, directories: Iterable[Path]) -> bool:
    canonical = _canonical(path)
    for d in directories:
        base = _canonical(d)
        if canonical == base or base in canonical.parents:
            return True
    return False


def path_safety_level(path, home: Optional[Path] = None,
                      blocked: Optional[Iterable[Path]] = None,
                      safe: Optional[Iterable[Path]] = None) -> PathSafety:
    path = Path(path)
    if is_under_any(path, blocked_directories() if blocked is None else blocked):
        return PathSafety.BLOCK
    if is_under_any(path, safe_directories(home) if safe is None else safe):
        return PathSafety.SAFE
    return PathSafety.WARN
