# -*- coding: utf-8 -*-
"""
Format adapters: tool-specific JSON trees <-> list of McpServer.

- StandardFormat: {"mcpServers": {name: {command, args, env, disabled, url, _target, ...}}}
- CopilotFormat:  {"servers": {name: {command, args, env, url, ...}}}
- OpencodeFormat: {"mcp": {name: {type, command: [prog, *args], environment, url, enabled}}}
                  or the older {"mcp": {"servers": {name: {command: "prog", args, env}}}}

A container key that is absent yields an empty list; one that exists but is
not an object is an InvalidFormatError. Known fields with an unexpected JSON
type are kept in ``extra`` untouched rather than dropped.
"""
import logging
from typing import Any, Dict, List, Optional

from mcpsync.catalog import ToolFormat, ToolInfo
from mcpsync.errors import InvalidFormatError
from mcpsync.jsonpath import MISSING, get_json_path, set_json_path
from mcpsync.model import McpServer

logger = logging.getLogger(__name__)


def _string_list(value: Any) -> Optional[List[str]]:
    if isinstance(value, list) and all(isinstance(x, str) for x in value):
        return list(value)
    return None


def _string_map(value: Any, coerce: bool = False) -> Optional[Dict[str, str]]:
    if not isinstance(value, dict):
        return None
    out: Dict[str, str] = {}
    for k, v in value.items():
        if isinstance(v, str):
            out[k] = v
        elif not coerce:
            return None
        elif isinstance(v, bool):
            out[k] = "true" if v else "false"
        elif isinstance(v, (int, float)):
            out[k] = str(v)
        elif v is None:
            continue
        else:
            return None
    return out


class FormatAdapter:
    kind: ToolFormat
    default_path: str = ""

    def parse_entry(self, name: str, config: Dict[str, Any], coerce_env: bool = False) -> McpServer:
        raise NotImplementedError

    def serialize_entry(self, server: McpServer) -> Dict[str, Any]:
        raise NotImplementedError

    def parse(self, container: Dict[str, Any], coerce_env: bool = False) -> List[McpServer]:
        servers = []
        for name, config in container.items():
            if not name or not isinstance(config, dict):
                logger.warning("skipping server entry %r: not a named object", name)
                continue
            servers.append(self.parse_entry(name, config, coerce_env))
        return servers

    def serialize(self, servers: List[McpServer]) -> Dict[str, Any]:
        return {s.name: self.serialize_entry(s) for s in servers}

    def read(self, root: Any, json_path: Optional[str] = None, literal: Optional[bool] = None) -> List[McpServer]:
        path = json_path or self.default_path
        container = get_json_path(root, path, MISSING, literal=literal)
        if container is MISSING:
            return []
        if not isinstance(container, dict):
            raise InvalidFormatError(f"{path} is not an object")
        return self.parse(container)

    def write(self, root: Dict[str, Any], servers: List[McpServer], json_path: Optional[str] = None,
              literal: Optional[bool] = None) -> None:
        set_json_path(root, json_path or self.default_path, self.serialize(servers), literal=literal)


class StandardFormat(FormatAdapter):
    kind = ToolFormat.STANDARD
    default_path = "mcpServers"

    def parse_entry(self, name, config, coerce_env=False):
        server = McpServer(name=name)
        for key, value in config.items():
            if key == "command" and isinstance(value, str):
                server.command = value
            elif key == "args" and _string_list(value) is not None:
                server.args = _string_list(value)
            elif key == "env" and _string_map(value, coerce_env) is not None:
                server.env = _string_map(value, coerce_env)
            elif key == "disabled" and isinstance(value, bool):
                server.disabled = value
            elif key == "url" and isinstance(value, str):
                server.url = value
            elif key == "_target" and isinstance(value, str):
                server.target = value
            else:
                server.extra[key] = value
        return server

    def serialize_entry(self, server):
        obj: Dict[str, Any] = {}
        # URL-only servers carry no command
        if server.command:
            obj["command"] = server.command
        if server.args is not None:
            obj["args"] = list(server.args)
        if server.env is not None:
            obj["env"] = dict(server.env)
        if server.disabled:
            obj["disabled"] = True
        if server.url is not None:
            obj["url"] = server.url
        if server.target is not None:
            obj["_target"] = server.target
        for k, v in server.extra.items():
            obj.setdefault(k, v)
        return obj


class CopilotFormat(FormatAdapter):
    """Copilot keeps the Standard field set under a ``servers`` container."""

    kind = ToolFormat.COPILOT
    default_path = "servers"

    def parse_entry(self, name, config, coerce_env=False):
        server = McpServer(name=name)
        for key, value in config.items():
            if key == "command" and isinstance(value, str):
                server.command = value
            elif key == "args" and _string_list(value) is not None:
                server.args = _string_list(value)
            elif key == "env" and _string_map(value, coerce_env) is not None:
                server.env = _string_map(value, coerce_env)
            elif key == "url" and isinstance(value, str):
                server.url = value
            elif key == "disabled" and isinstance(value, bool):
                server.disabled = value
            elif key == "_target" and isinstance(value, str):
                server.target = value
            else:
                server.extra[key] = value
        return server

    def serialize_entry(self, server):
        obj: Dict[str, Any] = {}
        if server.command:
            obj["command"] = server.command
        if server.args is not None:
            obj["args"] = list(server.args)
        if server.env is not None:
            obj["env"] = dict(server.env)
        if server.url is not None:
            obj["url"] = server.url
        if server.disabled:
            obj["disabled"] = True
        if server.target is not None:
            obj["_target"] = server.target
        for k, v in server.extra.items():
            obj.setdefault(k, v)
        return obj


_OPENCODE_KEYS = ("type", "command", "args", "environment", "env", "url", "enabled", "disabled", "_target")


def _looks_like_server(value: Any) -> bool:
    return isinstance(value, dict) and any(k in value for k in ("command", "url", "type"))


class OpencodeFormat(FormatAdapter):
    kind = ToolFormat.OPENCODE
    default_path = "mcp"

    def servers_container(self, mcp: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return ``mcp["servers"]`` when the file uses the nested variant."""
        nested = mcp.get("servers")
        if isinstance(nested, dict) and not _looks_like_server(nested):
            return nested
        return None

    def read(self, root, json_path=None, literal=None):
        path = json_path or self.default_path
        mcp = get_json_path(root, path, MISSING, literal=literal)
        if mcp is MISSING:
            return []
        if not isinstance(mcp, dict):
            raise InvalidFormatError(f"{path} is not an object")
        nested = self.servers_container(mcp)
        return self.parse(nested if nested is not None else mcp)

    def write(self, root, servers, json_path=None, literal=None):
        path = json_path or self.default_path
        mcp = get_json_path(root, path, MISSING, literal=literal)
        if isinstance(mcp, dict) and self.servers_container(mcp) is not None:
            mcp["servers"] = self.serialize(servers)
            return
        set_json_path(root, path, self.serialize(servers), literal=literal)

    def parse_entry(self, name, config, coerce_env=False):
        server = McpServer(name=name)
        command = config.get("command")
        parts = _string_list(command)
        args = _string_list(config.get("args"))
        if parts:
            server.command = parts[0]
            # a separate "args": [] marks an explicit empty argument list
            server.args = parts[1:] or args
        elif isinstance(command, str):
            # older object shape: command string plus separate args
            server.command = command
            server.args = args
        elif command is not None:
            server.extra["command"] = command
        else:
            server.args = args
        if "args" in config and args is None:
            server.extra["args"] = config["args"]

        for key in ("environment", "env"):
            if key in config:
                env = _string_map(config[key], coerce_env)
                if env is None:
                    server.extra[key] = config[key]
                elif server.env is None:
                    server.env = env
        url = config.get("url")
        if isinstance(url, str):
            server.url = url
        elif url is not None:
            server.extra["url"] = url
        enabled = config.get("enabled")
        if isinstance(enabled, bool):
            server.disabled = not enabled
        elif isinstance(config.get("disabled"), bool):
            server.disabled = config["disabled"]
        target = config.get("_target")
        if isinstance(target, str):
            server.target = target
        elif target is not None:
            server.extra["_target"] = target

        for key, value in config.items():
            if key not in _OPENCODE_KEYS:
                server.extra[key] = value
        return server

    def serialize_entry(self, server):
        obj: Dict[str, Any] = {}
        if server.url is not None:
            obj["type"] = "remote"
            obj["url"] = server.url
        else:
            obj["type"] = "local"
        if server.command or server.args:
            obj["command"] = [server.command] + list(server.args or [])
        if server.args == []:
            obj["args"] = []
        if server.env is not None:
            obj["environment"] = dict(server.env)
        obj["enabled"] = not server.disabled
        if server.target is not None:
            obj["_target"] = server.target
        for k, v in server.extra.items():
            obj.setdefault(k, v)
        return obj


_ADAPTERS = {
    ToolFormat.STANDARD: StandardFormat(),
    ToolFormat.COPILOT: CopilotFormat(),
    ToolFormat.OPENCODE: OpencodeFormat(),
}


def get_adapter(kind: ToolFormat) -> FormatAdapter:
    return _ADAPTERS[ToolFormat(kind)]


def read_tool_servers(root: Any, tool: ToolInfo) -> List[McpServer]:
    return get_adapter(tool.format).read(root, tool.json_path, literal=tool.literal_key)


def write_tool_servers(root: Dict[str, Any], tool: ToolInfo, servers: List[McpServer]) -> None:
    get_adapter(tool.format).write(root, servers, tool.json_path, literal=tool.literal_key)
