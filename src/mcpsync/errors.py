# -*- coding: utf-8 -*-
"""Exception hierarchy shared by every mcpsync module.

Callers branch on the class, never on the message text: a missing file
(`NotFoundError`) is usually "nothing to sync yet", while a malformed file
(`InvalidFormatError`) must be reported.
"""
from typing import Iterable


class McpSyncError(Exception):
    """Base exception for mcpsync errors."""


class NotFoundError(McpSyncError, FileNotFoundError):
    """Raised when an expected file or entry does not exist."""


class PathResolutionError(McpSyncError):
    """Raised when a path token such as ``~`` or ``%APPDATA%`` cannot be expanded."""


class InvalidFormatError(McpSyncError, ValueError):
    """Raised when a file does not parse or a container has the wrong JSON shape."""


class DuplicateServerError(InvalidFormatError):
    """Raised when a server name is already taken in the list being edited."""


class NoRecognizedFormatError(InvalidFormatError):
    """Raised by the detector when no known container key yields servers."""

    def __init__(self, tried: Iterable[str]):
        self.tried = list(tried)
        super().__init__(
            "No recognized MCP config format found. Expected one of: "
            + ", ".join(self.tried)
        )


class ToolNotSupportedError(McpSyncError, LookupError):
    """Raised for a tool id that is not in the catalog."""

    def __str__(self) -> str:
        return f"Tool not supported: {self.args[0]}" if self.args else "Tool not supported"


class StorageError(McpSyncError):
    """Raised when the underlying storage fails; carries the OS error text."""


class PermissionDeniedError(StorageError):
    """Raised when the storage refuses access to a path."""


class UnsafePathError(McpSyncError):
    """Raised when a write target is classified Block, or Warn without confirmation."""

    def __init__(self, path, level):
        self.path = path
        self.level = level
        super().__init__(f"Refusing to write {path}: path safety level is {level.value}")


class SshError(StorageError):
    retryable = False


class InvalidSshPathError(SshError, PathResolutionError):
    pass


class SshConnectionError(SshError):
    retryable = True


class SshTimeoutError(SshError):
    retryable = True


class SshAuthenticationError(SshError):
    pass


class SshCommandError(SshError):
    pass
