# -*- coding: utf-8 -*-
"""Guess which tool wrote an arbitrary MCP config file and import its servers."""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from mcpsync.errors import InvalidFormatError, NoRecognizedFormatError
from mcpsync.formats import CopilotFormat, OpencodeFormat, StandardFormat
from mcpsync.model import McpServer
from mcpsync.storage import LocalStorage, Storage


class DetectedFormat(str, Enum):
    STANDARD = "standard"  # mcpServers
    AMP = "amp"            # literal "amp.mcpServers"
    COPILOT = "copilot"    # servers
    OPENCODE = "opencode"  # mcp.servers (or servers directly under mcp)


TRIED_KEYS = ("amp.mcpServers", "mcp.servers", "servers", "mcpServers", "mcp")


@dataclass
class ImportResult:
    source_path: str
    detected_format: DetectedFormat
    servers: List[McpServer] = field(default_factory=list)


def _load_root(content: Union[str, bytes]) -> dict:
    try:
        root = json.loads(content)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidFormatError(f"Invalid JSON: {e}") from e
    if not isinstance(root, dict):
        raise NoRecognizedFormatError(TRIED_KEYS)
    return root


def detect_format(content: Union[str, bytes]) -> Tuple[List[McpServer], DetectedFormat]:
    """Try the known shapes from most to least specific; first non-empty one wins."""
    root = _load_root(content)
    standard = StandardFormat()
    opencode = OpencodeFormat()

    amp = root.get("amp.mcpServers")
    if isinstance(amp, dict):
        servers = standard.parse(amp, coerce_env=True)
        if servers:
            return servers, DetectedFormat.AMP

    mcp = root.get("mcp")
    if isinstance(mcp, dict) and isinstance(mcp.get("servers"), dict):
        servers = opencode.parse(mcp["servers"], coerce_env=True)
        if servers:
            return servers, DetectedFormat.OPENCODE

    # "servers" only counts as Copilot when nothing claims the mcp namespace
    if "mcp" not in root and isinstance(root.get("servers"), dict):
        servers = CopilotFormat().parse(root["servers"], coerce_env=True)
        if servers:
            return servers, DetectedFormat.COPILOT

    if isinstance(root.get("mcpServers"), dict):
        servers = standard.parse(root["mcpServers"], coerce_env=True)
        if servers:
            return servers, DetectedFormat.STANDARD

    if isinstance(mcp, dict) and opencode.servers_container(mcp) is None:
        servers = opencode.parse(mcp, coerce_env=True)
        if servers:
            return servers, DetectedFormat.OPENCODE

    raise NoRecognizedFormatError(TRIED_KEYS)


def import_config_file(path: str, storage: Optional[Storage] = None) -> ImportResult:
    storage = storage or LocalStorage()
    # NotFoundError propagates: the caller asked for this specific file
    content = storage.read(path)
    servers, detected = detect_format(content)
    return ImportResult(source_path=str(path), detected_format=detected, servers=servers)
