#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MCP server config sync
Usage:
  mcpsync tools
  mcpsync status [--json]
  mcpsync list [-t TOOL] [--json]
  mcpsync source [claude|app-managed]
  mcpsync enable TOOL ... | mcpsync disable TOOL ...
  mcpsync add NAME (--from-json JSON | --from-file PATH | --command CMD [--arg A ...] [--env K=V ...] | --url URL)
  mcpsync remove NAME
  mcpsync preview [-t TOOL ...] [--content]
  mcpsync sync [-t TOOL ...] [--resolve NAME=source|target ...] [--dry-run] [--yes]
  mcpsync import PATH [--apply]          (PATH may be [user@]host[:port]:path with --ssh)
  mcpsync backups TOOL
  mcpsync restore TOOL [--slot N]
  mcpsync check PATH ...

Defaults:
  - Without -t, preview and sync cover every enabled tool.
  - The source list is ~/.claude.json, or the central ~/.mcp/config.json in app-managed mode.

Config:
  settings: ~/.mcp/mcpsync.toml
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from mcpsync import central
from mcpsync.backup import list_backups, restore_backup
from mcpsync.detect import import_config_file
from mcpsync.errors import DuplicateServerError, InvalidFormatError, McpSyncError, NotFoundError
from mcpsync.formats import StandardFormat
from mcpsync.model import ConflictResolution, McpServer, SourceMode
from mcpsync.paths import path_safety_level, resolve_path
from mcpsync.reconcile import resolve_conflicts
from mcpsync.settings import load_settings, update_settings
from mcpsync.storage import SshStorage
from mcpsync.sync import McpSync

HOME = Path.home()
SETTINGS_PATH = HOME / ".mcp" / "mcpsync.toml"


def _engine() -> McpSync:
    return McpSync(load_settings(SETTINGS_PATH), home=HOME)


def _central_path(engine: McpSync) -> str:
    return str(resolve_path(engine.settings.central_path, HOME))


def _selected_tools(engine: McpSync, names: Optional[List[str]]):
    if not names:
        return engine.enabled_tools()
    return [engine.get_tool(n) for n in names]


def _parse_pairs(items: List[str], flag: str) -> Dict[str, str]:
    out = {}
    for item in items or []:
        if "=" not in item:
            raise SystemExit(f"{flag} must be KEY=VALUE: {item}")
        k, v = item.split("=", 1)
        out[k] = v
    return out


def _describe(server: McpServer) -> str:
    if server.url:
        return f"url={server.url}"
    return " ".join([server.command] + list(server.args or []))


def cmd_tools(args):
    engine = _engine()
    enabled = set(engine.settings.enabled_tools)
    for t in engine.tools:
        installed = engine.is_installed(t)
        mark = "+" if t.tool_id in enabled else " "
        print(f"{mark} {t.tool_id}: {t.config_path} ({t.format.value}){'*' if installed else ''}")


def cmd_status(args):
    statuses = _engine().tool_statuses()
    if args.json:
        print(json.dumps([{
            "tool_id": s.tool_id,
            "name": s.name,
            "installed": s.installed,
            "config_path": s.config_path,
            "sync_status": s.sync_status.value,
            "server_count": s.server_count,
            "enabled": s.enabled,
        } for s in statuses], ensure_ascii=False, indent=2))
        return
    for s in statuses:
        flag = "enabled" if s.enabled else "-"
        print(f"{s.tool_id}\t{s.sync_status.value}\t{s.server_count}\t{flag}\t{s.config_path}")


def cmd_list(args):
    engine = _engine()
    servers = engine.read_tool_servers(args.tool) if args.tool else engine.source_servers()
    if args.json:
        print(json.dumps([s.to_dict() for s in servers], ensure_ascii=False, indent=2))
        return
    for s in servers:
        state = " (disabled)" if s.disabled else ""
        print(f"[{s.name}] {_describe(s)}{state}")


def cmd_source(args):
    if args.mode:
        settings = update_settings(SETTINGS_PATH, source_mode=SourceMode(args.mode))
        print(f"[APPLY] source_mode = {settings.source_mode.value}")
    else:
        print(load_settings(SETTINGS_PATH).source_mode.value)


def _set_enabled(tool_ids: List[str], enabled: bool):
    engine = _engine()
    for tool_id in tool_ids:
        engine.get_tool(tool_id)
    if enabled:
        settings = update_settings(SETTINGS_PATH, enable=tool_ids)
    else:
        settings = update_settings(SETTINGS_PATH, disable=tool_ids)
    print(f"enabled: {', '.join(settings.enabled_tools) or '(none)'}")


def cmd_enable(args):
    _set_enabled(args.tools, True)


def cmd_disable(args):
    _set_enabled(args.tools, False)


def _server_from_args(args) -> McpServer:
    if args.from_json or args.from_file:
        if args.from_json:
            payload = json.loads(args.from_json)
        else:
            with open(args.from_file, "r", encoding="utf-8") as f:
                payload = json.load(f)
        if not isinstance(payload, dict):
            raise InvalidFormatError("server JSON must be an object")
        return StandardFormat().parse_entry(args.name, payload)
    if args.url:
        return McpServer(name=args.name, url=args.url)
    if not args.command:
        raise SystemExit("one of --from-json, --from-file, --command or --url is required")
    env = _parse_pairs(args.env, "--env")
    return McpServer(name=args.name, command=args.command, args=args.arg or None, env=env or None)


def cmd_add(args):
    engine = _engine()
    server = _server_from_args(args)
    path = _central_path(engine)
    if args.dry_run:
        print(f"[DRY] add {server.name} -> {path}")
        return
    central.add_server(path, server, engine.settings.backup)
    print(f"[ADD] {server.name} -> {path}")
    print(f"      {_describe(server)}")


def cmd_remove(args):
    engine = _engine()
    path = _central_path(engine)
    if args.dry_run:
        print(f"[DRY] remove {args.name} -> {path}")
        return
    central.remove_server(path, args.name, engine.settings.backup)
    print(f"[DEL] {args.name} -> {path}")


def cmd_preview(args):
    engine = _engine()
    for t in _selected_tools(engine, args.tool):
        if args.content:
            p = engine.preview_config_content(t.tool_id)
            print(f"##### {p.tool_id}: {p.config_path}")
            print(p.preview_content, end="")
            continue
        merge = engine.preview_sync(t.tool_id).merge_result
        print(f"# {t.tool_id}: {len(merge.added)} added, {len(merge.kept)} kept, {len(merge.conflicts)} conflicts")
        for s in merge.added:
            print(f"  + {s.name}")
        for c in merge.conflicts:
            print(f"  ! {c.server_name}: {_describe(c.source_server)} <> {_describe(c.target_server)}")


def cmd_sync(args):
    engine = _engine()
    tools = _selected_tools(engine, args.tool)
    if not tools:
        print("No tools selected. Enable some with `mcpsync enable TOOL`.")
        return 0
    choices = {}
    for name, choice in _parse_pairs(args.resolve, "--resolve").items():
        if choice not in (ConflictResolution.SOURCE.value, ConflictResolution.TARGET.value):
            raise SystemExit(f"--resolve expects source or target: {name}={choice}")
        choices[name] = ConflictResolution(choice)
    source = engine.source_servers()
    failed = 0
    for t in tools:
        if not args.tool and not engine.is_installed(t):
            print(f"[SKIP] {t.tool_id}: not installed")
            continue
        try:
            if args.dry_run:
                merge = engine.preview_sync(t.tool_id).merge_result
                print(f"[DRY] {t.tool_id}: {len(merge.added)} to add, {len(merge.conflicts)} conflicts")
                continue
            result = engine.sync_to_tool(t.tool_id, confirm_unsafe=args.yes, source=source)
            if result.conflicts_pending and choices:
                resolved = resolve_conflicts(result.conflicts, choices)
                if len(resolved) == len(result.conflicts):
                    result = engine.sync_to_tool(t.tool_id, resolved=resolved,
                                                 confirm_unsafe=args.yes, source=source)
        except McpSyncError as e:
            print(f"[FAIL] {t.tool_id}: {e}", file=sys.stderr)
            failed += 1
            continue
        if result.conflicts_pending:
            print(f"[CONFLICT] {t.tool_id}: {result.message}")
            print("      use --resolve NAME=source|target")
            failed += 1
        elif result.servers_written:
            print(f"[APPLY] {t.tool_id}: {result.message}")
        else:
            print(f"[SKIP] {t.tool_id}: {result.message}")
    return 1 if failed else 0


def cmd_import(args):
    if args.ssh:
        storage, path = SshStorage.from_spec(args.path)
        result = import_config_file(path, storage)
    else:
        result = import_config_file(str(resolve_path(args.path, HOME)))
    print(f"# {result.source_path} ({result.detected_format.value}, {len(result.servers)} servers)")
    engine = _engine() if args.apply else None
    for s in result.servers:
        if engine is None:
            print(f"[{s.name}] {_describe(s)}")
            continue
        try:
            central.add_server(_central_path(engine), s, engine.settings.backup)
        except DuplicateServerError:
            print(f"[SKIP] already exists: {s.name}")
        else:
            print(f"[ADD] {s.name}")


def cmd_backups(args):
    engine = _engine()
    path = engine.config_path(engine.get_tool(args.tool))
    found = list_backups(path)
    if not found:
        print(f"no backups for {path}")
    for b in found:
        print(f"{b.slot}\t{b.path}")


def cmd_restore(args):
    engine = _engine()
    path = engine.config_path(engine.get_tool(args.tool))
    for b in list_backups(path):
        if b.slot == args.slot:
            restore_backup(path, b.path, engine.settings.backup)
            print(f"[APPLY] restored {path} from {b.path}")
            return
    raise NotFoundError(f"No backup in slot {args.slot} for {path}")


def cmd_check(args):
    for raw in args.paths:
        p = resolve_path(raw, HOME)
        print(f"{path_safety_level(p, home=HOME).value}\t{p}")


def build_parser():
    p = argparse.ArgumentParser(prog="mcpsync", description="Sync MCP server configs across AI coding tools")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp_tools = sub.add_parser("tools", help="list known tools (+ enabled, * installed)")
    sp_tools.set_defaults(func=cmd_tools)

    sp_status = sub.add_parser("status", help="sync status per tool")
    sp_status.add_argument("--json", action="store_true")
    sp_status.set_defaults(func=cmd_status)

    sp_list = sub.add_parser("list", help="list source servers, or one tool's servers")
    sp_list.add_argument("-t", "--tool", help="tool id")
    sp_list.add_argument("--json", action="store_true")
    sp_list.set_defaults(func=cmd_list)

    sp_source = sub.add_parser("source", help="show or set the source of truth")
    sp_source.add_argument("mode", nargs="?", choices=[m.value for m in SourceMode])
    sp_source.set_defaults(func=cmd_source)

    sp_en = sub.add_parser("enable", help="include tools in sync")
    sp_en.add_argument("tools", nargs="+", metavar="TOOL")
    sp_en.set_defaults(func=cmd_enable)

    sp_dis = sub.add_parser("disable", help="exclude tools from sync")
    sp_dis.add_argument("tools", nargs="+", metavar="TOOL")
    sp_dis.set_defaults(func=cmd_disable)

    sp_add = sub.add_parser("add", help="add a server to the central list")
    sp_add.add_argument("name", metavar="NAME")
    src = sp_add.add_mutually_exclusive_group(required=True)
    src.add_argument("-j", "--from-json", dest="from_json", help="inline JSON object")
    src.add_argument("-i", "--from-file", dest="from_file", help="JSON file path")
    src.add_argument("--command", help="program to run")
    src.add_argument("--url", help="remote server URL")
    sp_add.add_argument("--arg", action="append", default=[], help="argument (repeatable)")
    sp_add.add_argument("--env", action="append", default=[], help="KEY=VALUE (repeatable)")
    sp_add.add_argument("-n", "--dry-run", action="store_true")
    sp_add.set_defaults(func=cmd_add)

    sp_rm = sub.add_parser("remove", help="remove a server from the central list")
    sp_rm.add_argument("name", metavar="NAME")
    sp_rm.add_argument("--dry-run", action="store_true")
    sp_rm.set_defaults(func=cmd_remove)

    sp_prev = sub.add_parser("preview", help="show what a sync would change")
    sp_prev.add_argument("-t", "--tool", nargs="*", help="tool ids")
    sp_prev.add_argument("--content", action="store_true", help="print the file a sync would write")
    sp_prev.set_defaults(func=cmd_preview)

    sp_sync = sub.add_parser("sync", help="merge the source servers into tool configs")
    sp_sync.add_argument("-t", "--tool", nargs="*", help="tool ids")
    sp_sync.add_argument("-r", "--resolve", action="append", default=[], help="NAME=source|target")
    sp_sync.add_argument("--dry-run", action="store_true")
    sp_sync.add_argument("-y", "--yes", action="store_true", help="allow writes outside known config dirs")
    sp_sync.set_defaults(func=cmd_sync)

    sp_imp = sub.add_parser("import", help="detect a config file's format and show or import its servers")
    sp_imp.add_argument("path", metavar="PATH")
    sp_imp.add_argument("--ssh", action="store_true", help="PATH is [user@]host[:port]:path")
    sp_imp.add_argument("--apply", action="store_true", help="add the servers to the central list")
    sp_imp.set_defaults(func=cmd_import)

    sp_bak = sub.add_parser("backups", help="list backups of a tool's config")
    sp_bak.add_argument("tool", metavar="TOOL")
    sp_bak.set_defaults(func=cmd_backups)

    sp_res = sub.add_parser("restore", help="restore a tool's config from a backup")
    sp_res.add_argument("tool", metavar="TOOL")
    sp_res.add_argument("--slot", type=int, default=0, help="0 is the newest backup")
    sp_res.set_defaults(func=cmd_restore)

    sp_check = sub.add_parser("check", help="classify paths as safe, warn or block")
    sp_check.add_argument("paths", nargs="+", metavar="PATH")
    sp_check.set_defaults(func=cmd_check)

    return p


def main(argv=None):
    argv = argv or sys.argv[1:]
    p = build_parser()
    args = p.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return args.func(args) or 0
    except McpSyncError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
