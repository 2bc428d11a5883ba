# -*- coding: utf-8 -*-
"""
mcpsync settings, kept in a TOML file so hand edits and comments survive.

  source_mode = "claude"            # or "app-managed"
  enabled_tools = ["gemini-cli", "amp"]
  central_path = "~/.mcp/config.json"

  [backup]
  enabled = true
  max_backups = 3

  [[tools]]                         # extra tools beyond the built-in catalog
  tool_id = "work-editor"
  name = "Work editor"
  config_path = "~/work/.mcp.json"
  json_path = "mcpServers"
  format = "standard"
"""
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import tomlkit
from tomlkit.exceptions import TOMLKitError

from mcpsync.backup import BackupPolicy
from mcpsync.catalog import ToolFormat, ToolInfo
from mcpsync.errors import InvalidFormatError
from mcpsync.model import SourceMode

DEFAULT_CENTRAL_PATH = "~/.mcp/config.json"


@dataclass
class Settings:
    source_mode: SourceMode = SourceMode.CLAUDE
    enabled_tools: List[str] = field(default_factory=list)
    central_path: str = DEFAULT_CENTRAL_PATH
    backup: BackupPolicy = field(default_factory=BackupPolicy)
    custom_tools: List[ToolInfo] = field(default_factory=list)

    def set_tool_enabled(self, tool_id: str, enabled: bool) -> None:
        if enabled and tool_id not in self.enabled_tools:
            self.enabled_tools.append(tool_id)
        elif not enabled:
            self.enabled_tools = [t for t in self.enabled_tools if t != tool_id]


def _load_toml(path: Path):
    if not path.exists():
        return tomlkit.document()
    with path.open("r", encoding="utf-8") as f:
        try:
            return tomlkit.parse(f.read())
        except TOMLKitError as e:
            raise InvalidFormatError(f"Invalid settings file {path}: {e}") from e


def _save_toml_atomic(path: Path, doc) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    txt = tomlkit.dumps(doc)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=str(path.parent), encoding="utf-8") as tf:
        tf.write(txt)
        tmp_name = tf.name
    os.replace(tmp_name, path)


def _parse_tool(entry) -> ToolInfo:
    try:
        literal = entry.get("literal_key")
        return ToolInfo(
            tool_id=str(entry["tool_id"]),
            name=str(entry.get("name", entry["tool_id"])),
            config_path=str(entry["config_path"]),
            json_path=str(entry.get("json_path", "mcpServers")),
            format=ToolFormat(str(entry.get("format", "standard"))),
            literal_key=None if literal is None else bool(literal),
            custom=True,
        )
    except KeyError as e:
        raise InvalidFormatError(f"[[tools]] entry is missing {e}") from e
    except ValueError as e:
        raise InvalidFormatError(f"[[tools]] entry has an unknown format: {e}") from e


def load_settings(path: Path) -> Settings:
    doc = _load_toml(path)
    try:
        mode = SourceMode(str(doc.get("source_mode", SourceMode.CLAUDE.value)))
    except ValueError as e:
        raise InvalidFormatError(f"Unknown source_mode in {path}: {doc.get('source_mode')}") from e
    backup = doc.get("backup") or {}
    if not isinstance(backup, Mapping):
        raise InvalidFormatError(f"[backup] in {path} must be a table")
    try:
        policy = BackupPolicy(
            enabled=bool(backup.get("enabled", True)),
            max_backups=int(backup.get("max_backups", 1)),
        )
    except (TypeError, ValueError) as e:
        raise InvalidFormatError(f"Invalid [backup] settings in {path}: {e}") from e
    return Settings(
        source_mode=mode,
        enabled_tools=[str(t) for t in doc.get("enabled_tools", [])],
        central_path=str(doc.get("central_path", DEFAULT_CENTRAL_PATH)),
        backup=policy,
        custom_tools=[_parse_tool(t) for t in doc.get("tools", [])],
    )


def save_settings(settings: Settings, path: Path) -> None:
    """Write the known keys back into the existing document; other keys stay as they are."""
    doc = _load_toml(path)
    doc["source_mode"] = settings.source_mode.value
    doc["enabled_tools"] = list(settings.enabled_tools)
    if settings.central_path != DEFAULT_CENTRAL_PATH or "central_path" in doc:
        doc["central_path"] = settings.central_path
    if "backup" not in doc:
        doc["backup"] = tomlkit.table()
    doc["backup"]["enabled"] = settings.backup.enabled
    doc["backup"]["max_backups"] = settings.backup.max_backups
    _save_toml_atomic(path, doc)


def update_settings(path: Path, source_mode: Optional[SourceMode] = None,
                    enable: List[str] = (), disable: List[str] = ()) -> Settings:
    settings = load_settings(path)
    if source_mode is not None:
        settings.source_mode = SourceMode(source_mode)
    for tool_id in enable:
        settings.set_tool_enabled(tool_id, True)
    for tool_id in disable:
        settings.set_tool_enabled(tool_id, False)
    save_settings(settings, path)
    return settings
