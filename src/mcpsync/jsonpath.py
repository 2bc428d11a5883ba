# -*- coding: utf-8 -*-
"""Address a value in a JSON tree by a literal key or a dotted path.

Some tools use a key that merely looks like a path (Amp stores its servers
under the single key ``"amp.mcpServers"``), others really nest objects.
``literal`` selects the interpretation explicitly; ``None`` means the exact
key is checked first and the dotted walk is the fallback.
"""
from typing import Any, Dict, Optional

from mcpsync.errors import InvalidFormatError

MISSING = object()


def get_json_path(root: Any, path: str, default: Any = None, literal: Optional[bool] = None) -> Any:
    """Return the value at ``path`` or ``default``; never creates anything."""
    if not isinstance(root, dict):
        return default
    if literal is not False and path in root:
        return root[path]
    if literal is True:
        return default
    current = root
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def _has_dotted_sibling(root: Dict[str, Any], path: str) -> bool:
    prefix = path.split(".", 1)[0]
    return any("." in k and k.split(".", 1)[0] == prefix for k in root)


def writes_literal(root: Dict[str, Any], path: str, literal: Optional[bool] = None) -> bool:
    if literal is not None:
        return literal
    if path in root or "." not in path:
        return True
    if get_json_path(root, path, MISSING, literal=False) is not MISSING:
        return False
    return _has_dotted_sibling(root, path)


def set_json_path(root: Dict[str, Any], path: str, value: Any, literal: Optional[bool] = None) -> None:
    """Store ``value`` at ``path``, creating missing intermediate objects."""
    if not isinstance(root, dict):
        raise InvalidFormatError("config root is not a JSON object")
    if writes_literal(root, path, literal):
        root[path] = value
        return
    parts = path.split(".")
    current = root
    for i, part in enumerate(parts[:-1]):
        if part not in current:
            current[part] = {}
        elif not isinstance(current[part], dict):
            raise InvalidFormatError(f"{'.'.join(parts[:i + 1])} is not an object")
        current = current[part]
    current[parts[-1]] = value
