# -*- coding: utf-8 -*-
"""
Sync orchestrator: reads the source list, merges it into each tool's file
and writes the result back through ``write_durably``.

Every call re-reads the files it needs; nothing is cached between calls.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from mcpsync import central
from mcpsync.backup import write_durably
from mcpsync.catalog import CLAUDE_CODE, DEFAULT_TOOLS, ToolInfo, build_catalog, find_tool
from mcpsync.errors import InvalidFormatError, McpSyncError, PathResolutionError, UnsafePathError
from mcpsync.formats import read_tool_servers, write_tool_servers
from mcpsync.model import (
    ConfigPreview,
    McpServer,
    MergeResult,
    SourceMode,
    SyncPreview,
    SyncResult,
    SyncStatus,
    ToolStatus,
)
from mcpsync.paths import PathSafety, path_safety_level, resolve_path
from mcpsync.reconcile import compute_merge_result, final_servers, sync_status
from mcpsync.settings import Settings
from mcpsync.storage import LocalStorage, Storage

logger = logging.getLogger(__name__)


def _dumps(root: Dict[str, Any]) -> str:
    return json.dumps(root, ensure_ascii=False, indent=2) + "\n"


class McpSync:
    def __init__(self, settings: Settings, tools: Optional[Iterable[ToolInfo]] = None,
                 storage: Optional[Storage] = None, home: Optional[Path] = None):
        self.settings = settings
        self.tools = tuple(tools) if tools is not None else build_catalog(settings.custom_tools)
        self.storage = storage or LocalStorage()
        self.home = home

    # ---- lookup ----

    def get_tool(self, tool_id: str) -> ToolInfo:
        return find_tool(self.tools, tool_id)

    def config_path(self, tool: ToolInfo) -> str:
        return str(resolve_path(tool.config_path, self.home))

    def is_installed(self, tool: ToolInfo) -> bool:
        try:
            return self.storage.exists(self.config_path(tool))
        except PathResolutionError:
            return False

    def enabled_tools(self) -> List[ToolInfo]:
        enabled = set(self.settings.enabled_tools)
        return [t for t in self.tools if t.tool_id in enabled]

    def _is_source_tool(self, tool: ToolInfo) -> bool:
        return self.settings.source_mode is SourceMode.CLAUDE and tool.tool_id == CLAUDE_CODE

    # ---- reading ----

    def _load_root(self, path: str) -> Dict[str, Any]:
        if not self.storage.exists(path):
            return {}
        try:
            text = self.storage.read_text(path)
            if not text.strip():
                return {}
            root = json.loads(text)
        except ValueError as e:
            raise InvalidFormatError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(root, dict):
            raise InvalidFormatError(f"{path} is not a JSON object")
        return root

    def _read_servers(self, tool: ToolInfo) -> List[McpServer]:
        return read_tool_servers(self._load_root(self.config_path(tool)), tool)

    def read_tool_servers(self, tool_id: str) -> List[McpServer]:
        """Servers in the tool's file; a missing file is an empty list."""
        return self._read_servers(self.get_tool(tool_id))

    def source_servers(self) -> List[McpServer]:
        if self.settings.source_mode is SourceMode.APP_MANAGED:
            path = str(resolve_path(self.settings.central_path, self.home))
            return central.load_servers(path, self.storage)
        try:
            claude = self.get_tool(CLAUDE_CODE)
        except McpSyncError:
            claude = DEFAULT_TOOLS[0]
        return self._read_servers(claude)

    def _merge(self, tool: ToolInfo, source: Optional[List[McpServer]] = None) -> MergeResult:
        if source is None:
            source = self.source_servers()
        return compute_merge_result(source, self._read_servers(tool), tool.tool_id)

    # ---- status / preview ----

    def tool_statuses(self) -> List[ToolStatus]:
        source = self.source_servers()
        enabled = set(self.settings.enabled_tools)
        statuses = []
        for tool in self.tools:
            try:
                path = self.config_path(tool)
            except PathResolutionError:
                path = tool.config_path
            installed = self.is_installed(tool)
            count = 0
            if not installed:
                status = SyncStatus.NOT_INSTALLED
            else:
                try:
                    target = self._read_servers(tool)
                except InvalidFormatError as e:
                    logger.warning("%s: %s", tool.tool_id, e)
                    status = SyncStatus.NO_MCP
                else:
                    count = len(target)
                    status = sync_status(compute_merge_result(source, target, tool.tool_id))
            statuses.append(ToolStatus(
                tool_id=tool.tool_id, name=tool.name, installed=installed, config_path=path,
                sync_status=status, server_count=count, enabled=tool.tool_id in enabled,
            ))
        return statuses

    def preview_sync(self, tool_id: str) -> SyncPreview:
        tool = self.get_tool(tool_id)
        return SyncPreview(tool_id=tool.tool_id, tool_name=tool.name, merge_result=self._merge(tool))

    def preview_sync_all(self) -> List[SyncPreview]:
        source = self.source_servers()
        previews = []
        for tool in self.enabled_tools():
            if self._is_source_tool(tool) or not self.is_installed(tool):
                continue
            try:
                merge = self._merge(tool, source)
            except McpSyncError as e:
                logger.warning("skipping %s: %s", tool.tool_id, e)
                continue
            previews.append(SyncPreview(tool_id=tool.tool_id, tool_name=tool.name, merge_result=merge))
        return previews

    def _render(self, tool: ToolInfo, path: str, servers: List[McpServer]) -> Tuple[str, str]:
        root = self._load_root(path)
        current = self.storage.read_text(path) if self.storage.exists(path) else "{}"
        write_tool_servers(root, tool, servers)
        return current, _dumps(root)

    def preview_config_content(self, tool_id: str,
                               resolved: Optional[List[McpServer]] = None) -> ConfigPreview:
        """Current file text and the text a sync would write; nothing is written."""
        tool = self.get_tool(tool_id)
        path = self.config_path(tool)
        merge = self._merge(tool)
        current, preview = self._render(tool, path, final_servers(merge, resolved))
        return ConfigPreview(tool_id=tool.tool_id, tool_name=tool.name, config_path=path,
                             current_content=current, preview_content=preview)

    # ---- writing ----

    def check_path_safety(self, tool: ToolInfo, path: str, confirm_unsafe: bool = False) -> PathSafety:
        if not self.storage.is_local:
            return PathSafety.SAFE
        level = path_safety_level(path, home=self.home)
        if level is PathSafety.BLOCK:
            raise UnsafePathError(path, level)
        if level is PathSafety.WARN:
            if tool.custom and not confirm_unsafe:
                raise UnsafePathError(path, level)
            logger.warning("%s: writing outside known config directories: %s", tool.tool_id, path)
        return level

    def sync_to_tool(self, tool_id: str, resolved: Optional[List[McpServer]] = None,
                     confirm_unsafe: bool = False, source: Optional[List[McpServer]] = None) -> SyncResult:
        """Merge the source list into one tool's file.

        Conflicts with no ``resolved`` list come back as a failed result carrying
        them; with a list, conflicts it does not cover take the source copy.
        """
        tool = self.get_tool(tool_id)
        path = self.config_path(tool)
        merge = self._merge(tool, source)

        if merge.conflicts and resolved is None:
            names = ", ".join(c.server_name for c in merge.conflicts)
            return SyncResult(
                tool_id=tool.tool_id, success=False,
                message=f"Conflicts detected: {names}. Please resolve conflicts first.",
                conflicts=list(merge.conflicts),
            )
        if not merge.has_changes:
            return SyncResult(tool_id=tool.tool_id, success=True,
                              message=f"Already in sync ({len(merge.kept)} servers)")

        servers = final_servers(merge, resolved)
        self.check_path_safety(tool, path, confirm_unsafe)
        _, content = self._render(tool, path, servers)
        write_durably(path, content, self.settings.backup, self.storage)
        logger.info("synced %d servers to %s", len(servers), path)
        return SyncResult(
            tool_id=tool.tool_id, success=True,
            message=f"Synced {len(servers)} servers ({len(merge.added)} added, {len(merge.kept)} kept)",
            servers_written=len(servers),
        )

    def sync_to_all(self, confirm_unsafe: bool = False) -> List[SyncResult]:
        """Sync every enabled, installed tool; one tool failing does not stop the rest."""
        source = self.source_servers()
        results = []
        for tool in self.enabled_tools():
            if self._is_source_tool(tool):
                continue
            if not self.is_installed(tool):
                logger.debug("%s not installed, skipping", tool.tool_id)
                continue
            try:
                results.append(self.sync_to_tool(tool.tool_id, confirm_unsafe=confirm_unsafe, source=source))
            except McpSyncError as e:
                logger.warning("sync to %s failed: %s", tool.tool_id, e)
                results.append(SyncResult(tool_id=tool.tool_id, success=False, message=str(e), error=e))
        return results
