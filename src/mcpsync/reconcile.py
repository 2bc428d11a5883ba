# -*- coding: utf-8 -*-
"""Three-way classification of a source server list against a tool's list."""
from typing import Dict, Iterable, List, Mapping, Optional

from mcpsync.model import (
    ConflictResolution,
    McpServer,
    MergeResult,
    ServerConflict,
    SyncStatus,
)


def servers_equal(a: McpServer, b: McpServer) -> bool:
    """Compare what a server does; disabled, _target and extra fields do not count.

    An empty ``args`` list or ``env`` map is the same as leaving it out.
    """
    return (a.command == b.command and (a.args or None) == (b.args or None)
            and (a.env or None) == (b.env or None) and a.url == b.url)


def compute_merge_result(source: Iterable[McpServer], target: Iterable[McpServer], tool_id: str) -> MergeResult:
    source = list(source)
    target = list(target)
    by_name: Dict[str, McpServer] = {t.name: t for t in target}
    source_names = {s.name for s in source}
    result = MergeResult(tool_id=tool_id)

    for s in source:
        t = by_name.get(s.name)
        if t is None:
            result.added.append(s)
        elif servers_equal(s, t):
            # keep the tool's own copy so its extra fields and disabled flag survive
            result.kept.append(t)
        else:
            result.conflicts.append(ServerConflict(
                server_name=s.name, source_server=s, target_server=t, tool_id=tool_id,
            ))

    # servers only the tool knows about are never deleted by a sync
    for t in target:
        if t.name not in source_names:
            result.kept.append(t)
    return result


def sync_status(merge: MergeResult) -> SyncStatus:
    if merge.conflicts:
        return SyncStatus.CONFLICTS
    if merge.added:
        return SyncStatus.OUT_OF_SYNC
    return SyncStatus.SYNCED


def resolve_conflicts(conflicts: Iterable[ServerConflict],
                      choices: Mapping[str, ConflictResolution],
                      custom: Optional[Mapping[str, McpServer]] = None) -> List[McpServer]:
    """Turn per-server choices into the resolved list ``final_servers`` accepts.

    Conflicts without a choice are left out, so the default applies to them.
    """
    custom = custom or {}
    resolved = []
    for c in conflicts:
        choice = choices.get(c.server_name)
        if choice is None:
            continue
        choice = ConflictResolution(choice)
        if choice is ConflictResolution.SOURCE:
            resolved.append(c.source_server)
        elif choice is ConflictResolution.TARGET:
            resolved.append(c.target_server)
        else:
            if c.server_name not in custom:
                raise ValueError(f"no custom server supplied for {c.server_name!r}")
            server = custom[c.server_name]
            if server.name != c.server_name:
                raise ValueError(f"custom server for {c.server_name!r} is named {server.name!r}")
            resolved.append(server)
    return resolved


def final_servers(merge: MergeResult, resolved: Optional[Iterable[McpServer]] = None) -> List[McpServer]:
    """Kept + added + one entry per conflict; conflicts nobody resolved take the source copy."""
    chosen = {s.name: s for s in (resolved or [])}
    out = list(merge.kept) + list(merge.added)
    for c in merge.conflicts:
        out.append(chosen.get(c.server_name, c.source_server))
    return out
