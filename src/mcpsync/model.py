# -*- coding: utf-8 -*-
"""Canonical MCP server model and the value types produced by a merge."""
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SourceMode(str, Enum):
    CLAUDE = "claude"
    APP_MANAGED = "app-managed"


class SyncStatus(str, Enum):
    SYNCED = "synced"
    OUT_OF_SYNC = "out-of-sync"
    CONFLICTS = "conflicts"
    NOT_INSTALLED = "not-installed"
    NO_MCP = "no-mcp"


class ConflictResolution(str, Enum):
    SOURCE = "source"
    TARGET = "target"
    CUSTOM = "custom"


@dataclass
class McpServer:
    """One MCP server entry, independent of the tool file it came from.

    ``extra`` keeps every key of the source object that the model does not
    understand, in source order, so writers can replay it unchanged.
    """

    name: str
    command: str = ""
    args: Optional[List[str]] = None
    env: Optional[Dict[str, str]] = None
    disabled: bool = False
    url: Optional[str] = None
    target: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.name:
            raise ValueError("server name must not be empty")

    @property
    def is_remote(self) -> bool:
        return self.url is not None

    def copy(self) -> "McpServer":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        # display shape for --json output
        out: Dict[str, Any] = {"name": self.name, "command": self.command}
        if self.args is not None:
            out["args"] = list(self.args)
        if self.env is not None:
            out["env"] = dict(self.env)
        if self.disabled:
            out["disabled"] = True
        if self.url is not None:
            out["url"] = self.url
        if self.target is not None:
            out["_target"] = self.target
        if self.extra:
            out["extra"] = copy.deepcopy(self.extra)
        return out


@dataclass
class ServerConflict:
    server_name: str
    source_server: McpServer
    target_server: McpServer
    tool_id: str


@dataclass
class MergeResult:
    tool_id: str
    added: List[McpServer] = field(default_factory=list)
    kept: List[McpServer] = field(default_factory=list)
    conflicts: List[ServerConflict] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.conflicts)


@dataclass
class SyncPreview:
    tool_id: str
    tool_name: str
    merge_result: MergeResult

    @property
    def has_changes(self) -> bool:
        return self.merge_result.has_changes


@dataclass
class ConfigPreview:
    tool_id: str
    tool_name: str
    config_path: str
    current_content: str
    preview_content: str


@dataclass
class SyncResult:
    tool_id: str
    success: bool
    message: str
    servers_written: int = 0
    conflicts: List[ServerConflict] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def conflicts_pending(self) -> bool:
        return not self.success and bool(self.conflicts)


@dataclass
class ToolStatus:
    tool_id: str
    name: str
    installed: bool
    config_path: str
    sync_status: SyncStatus
    server_count: int
    enabled: bool
