# -*- coding: utf-8 -*-
"""
App-managed server list, kept in the central ``~/.mcp/config.json``.

The file uses the Standard shape under ``mcpServers``; other top-level keys
are left alone on every save.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from mcpsync.backup import BackupPolicy, write_durably
from mcpsync.errors import DuplicateServerError, InvalidFormatError, NotFoundError
from mcpsync.formats import StandardFormat
from mcpsync.model import McpServer
from mcpsync.storage import LocalStorage, Storage

logger = logging.getLogger(__name__)

ROOT_KEY = "mcpServers"

_adapter = StandardFormat()


def _load_root(path, storage: Storage) -> Dict[str, Any]:
    if not storage.exists(path):
        return {}
    try:
        root = json.loads(storage.read_text(path))
    except ValueError as e:
        raise InvalidFormatError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(root, dict):
        raise InvalidFormatError(f"{path} is not a JSON object")
    return root


def load_servers(path, storage: Optional[Storage] = None) -> List[McpServer]:
    storage = storage or LocalStorage()
    return _adapter.read(_load_root(path, storage), ROOT_KEY)


def save_servers(path, servers: List[McpServer], policy: Optional[BackupPolicy] = None,
                 storage: Optional[Storage] = None) -> None:
    storage = storage or LocalStorage()
    root = _load_root(path, storage)
    _adapter.write(root, servers, ROOT_KEY)
    write_durably(path, json.dumps(root, ensure_ascii=False, indent=2) + "\n", policy, storage)


def add_server(path, server: McpServer, policy: Optional[BackupPolicy] = None,
               storage: Optional[Storage] = None) -> List[McpServer]:
    servers = load_servers(path, storage)
    if any(s.name == server.name for s in servers):
        raise DuplicateServerError(f"Server with name '{server.name}' already exists")
    servers.append(server)
    save_servers(path, servers, policy, storage)
    logger.info("added %s to %s", server.name, path)
    return servers


def update_server(path, original_name: str, server: McpServer, policy: Optional[BackupPolicy] = None,
                  storage: Optional[Storage] = None) -> List[McpServer]:
    servers = load_servers(path, storage)
    index = next((i for i, s in enumerate(servers) if s.name == original_name), None)
    if index is None:
        raise NotFoundError(f"Server '{original_name}' not found")
    if server.name != original_name and any(s.name == server.name for s in servers):
        raise DuplicateServerError(f"Server with name '{server.name}' already exists")
    servers[index] = server
    save_servers(path, servers, policy, storage)
    return servers


def remove_server(path, name: str, policy: Optional[BackupPolicy] = None,
                  storage: Optional[Storage] = None) -> List[McpServer]:
    servers = load_servers(path, storage)
    remaining = [s for s in servers if s.name != name]
    if len(remaining) == len(servers):
        raise NotFoundError(f"Server '{name}' not found")
    save_servers(path, remaining, policy, storage)
    logger.info("removed %s from %s", name, path)
    return remaining
