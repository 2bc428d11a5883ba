# -*- coding: utf-8 -*-
"""Tools that read MCP servers and where their config files live."""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from mcpsync.errors import ToolNotSupportedError


class ToolFormat(str, Enum):
    STANDARD = "standard"  # Claude, Gemini, Amp, Droid, Qwen
    COPILOT = "copilot"    # "servers" key
    OPENCODE = "opencode"  # "mcp" key, command as array


@dataclass(frozen=True)
class ToolInfo:
    tool_id: str
    name: str
    config_path: str
    json_path: str
    format: ToolFormat
    # True: json_path is one literal key; False: dotted nested path; None: decide from the file
    literal_key: Optional[bool] = None
    custom: bool = False


CLAUDE_CODE = "claude-code"

DEFAULT_TOOLS: Tuple[ToolInfo, ...] = (
    ToolInfo(CLAUDE_CODE, "Claude Code", "~/.claude.json", "mcpServers", ToolFormat.STANDARD),
    ToolInfo("gemini-cli", "Gemini CLI", "~/.gemini/settings.json", "mcpServers", ToolFormat.STANDARD),
    ToolInfo("amp", "Amp", "~/.config/amp/settings.json", "amp.mcpServers", ToolFormat.STANDARD,
             literal_key=True),
    ToolInfo("copilot-cli", "GitHub Copilot CLI", "~/.copilot/mcp-config.json", "servers", ToolFormat.COPILOT),
    ToolInfo("opencode", "OpenCode", "~/.config/opencode/opencode.json", "mcp", ToolFormat.OPENCODE),
    ToolInfo("factory-droid", "Factory Droid CLI", "~/.factory/mcp.json", "mcpServers", ToolFormat.STANDARD),
    ToolInfo("qwen-code", "Qwen Code", "~/.qwen/settings.json", "mcpServers", ToolFormat.STANDARD),
)


def build_catalog(custom: Iterable[ToolInfo] = ()) -> Tuple[ToolInfo, ...]:
    """Built-in tools followed by user-defined ones; a custom id replaces a built-in."""
    custom = list(custom)
    overridden = {t.tool_id for t in custom}
    tools = [t for t in DEFAULT_TOOLS if t.tool_id not in overridden]
    seen = set()
    for t in custom:
        if t.tool_id in seen:
            continue
        seen.add(t.tool_id)
        tools.append(t)
    return tuple(tools)


def find_tool(tools: Iterable[ToolInfo], tool_id: str) -> ToolInfo:
    for t in tools:
        if t.tool_id == tool_id:
            return t
    raise ToolNotSupportedError(tool_id)
