# -*- coding: utf-8 -*-
"""
Byte-level file access used by every reader and writer.

LocalStorage talks to the local filesystem. SshStorage shells out to the
system ``ssh`` client; reads and writes retry connection failures and
timeouts with exponential backoff, every other error aborts at once.
"""
import logging
import os
import shutil
import subprocess
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional, Tuple, TypeVar

from mcpsync.errors import (
    InvalidSshPathError,
    NotFoundError,
    PermissionDeniedError,
    SshAuthenticationError,
    SshCommandError,
    SshConnectionError,
    SshError,
    SshTimeoutError,
    StorageError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Storage(ABC):
    is_local = False
    path_type = PurePosixPath

    @abstractmethod
    def exists(self, path) -> bool: ...

    @abstractmethod
    def read(self, path) -> bytes: ...

    @abstractmethod
    def write(self, path, data: bytes) -> None: ...

    @abstractmethod
    def copy(self, src, dst) -> None: ...

    @abstractmethod
    def rename(self, src, dst) -> None: ...

    @abstractmethod
    def remove(self, path) -> None: ...

    @abstractmethod
    def makedirs(self, path) -> None: ...

    def read_text(self, path) -> str:
        return self.read(path).decode("utf-8")

    def parent(self, path) -> str:
        return str(self.path_type(str(path)).parent)

    def with_suffix(self, path, suffix: str) -> str:
        p = self.path_type(str(path))
        return str(p.with_suffix(suffix)) if p.name else str(path) + suffix


@contextmanager
def _os_errors(path):
    try:
        yield
    except FileNotFoundError as e:
        raise NotFoundError(f"File not found: {path}") from e
    except PermissionError as e:
        raise PermissionDeniedError(f"Permission denied: {path}") from e
    except OSError as e:
        raise StorageError(f"IO error on {path}: {e.strerror or e}") from e


class LocalStorage(Storage):
    is_local = True
    path_type = Path

    def exists(self, path) -> bool:
        return Path(path).exists()

    def read(self, path) -> bytes:
        with _os_errors(path):
            return Path(path).read_bytes()

    def write(self, path, data: bytes) -> None:
        with _os_errors(path):
            with open(path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())

    def copy(self, src, dst) -> None:
        with _os_errors(src):
            shutil.copy2(src, dst)

    def rename(self, src, dst) -> None:
        with _os_errors(src):
            os.replace(src, dst)

    def remove(self, path) -> None:
        with _os_errors(path):
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass

    def makedirs(self, path) -> None:
        with _os_errors(path):
            Path(path).mkdir(parents=True, exist_ok=True)


# ---- SSH ----

DEFAULT_TIMEOUT_SECS = 10
INITIAL_RETRY_DELAY = 0.5
MAX_RETRY_DELAY = 8.0
DEFAULT_ATTEMPTS = 3


@dataclass(frozen=True)
class SshConnection:
    host: str
    path: str = ""
    user: Optional[str] = None
    port: Optional[int] = None

    @classmethod
    def parse(cls, spec: str) -> "SshConnection":
        """Parse ``[user@]host[:port]:path``; IPv6 hosts go in brackets."""
        spec = spec.strip()
        if not spec:
            raise InvalidSshPathError("Empty path")
        user = None
        if "@" in spec:
            user, spec = spec.split("@", 1)
            if not user:
                raise InvalidSshPathError("User portion is empty")
        host, port, path = cls._split_host_port_path(spec)
        if not host:
            raise InvalidSshPathError("Host is empty")
        if not path:
            raise InvalidSshPathError("Path portion is empty")
        return cls(host=host, path=path, user=user, port=port)

    @staticmethod
    def _split_host_port_path(s: str) -> Tuple[str, Optional[int], str]:
        if s.startswith("["):
            end = s.find("]")
            if end < 0:
                raise InvalidSshPathError("Unclosed IPv6 bracket")
            host, rest = s[1:end], s[end + 1:]
            if not rest.startswith(":"):
                raise InvalidSshPathError("Missing ':' after IPv6 host")
            rest = rest[1:]
            if ":" in rest:
                port_str, path = rest.split(":", 1)
                try:
                    return host, int(port_str), path
                except ValueError:
                    raise InvalidSshPathError(f"Invalid port: {port_str}") from None
            return host, None, rest

        pieces = s.split(":")
        if len(pieces) == 1:
            raise InvalidSshPathError("Missing ':' separator in SSH path")
        if len(pieces) > 2 and pieces[1].isdigit() and int(pieces[1]) <= 65535:
            return pieces[0], int(pieces[1]), ":".join(pieces[2:])
        return pieces[0], None, ":".join(pieces[1:])

    @property
    def target(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    def ssh_args(self, timeout: int = DEFAULT_TIMEOUT_SECS) -> List[str]:
        args = []
        if self.port is not None:
            args += ["-p", str(self.port)]
        args += [
            "-o", "BatchMode=yes",
            "-o", "StrictHostKeyChecking=accept-new",
            "-o", f"ConnectTimeout={timeout}",
        ]
        return args

    def __str__(self) -> str:
        prefix = f"{self.user}@" if self.user else ""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is not None:
            return f"{prefix}{host}:{self.port}:{self.path}"
        return f"{prefix}{host}:{self.path}"


def classify_ssh_error(stderr: str, path: str = "") -> StorageError:
    low = stderr.lower()
    if any(s in low for s in ("connection refused", "could not resolve",
                              "connection timed out", "network is unreachable")):
        return SshConnectionError(f"Connection failed: {stderr.strip()}")
    if "timed out" in low:
        return SshTimeoutError(f"Timeout: operation exceeded {DEFAULT_TIMEOUT_SECS} seconds")
    if ("publickey" in low or "permission denied (" in low
            or "host key verification failed" in low):
        return SshAuthenticationError(f"Authentication failed: {stderr.strip()}")
    if "no such file" in low or "not found" in low:
        return NotFoundError(f"File not found: {path or stderr.strip()}")
    # the remote command itself was refused, e.g. "cat: /x: Permission denied"
    if "permission denied" in low:
        return PermissionDeniedError(f"Permission denied: {path or stderr.strip()}")
    return SshCommandError(f"Command execution failed: {stderr.strip()}")


def shell_quote(s: str) -> str:
    return "'" + s.replace("'", "'\"'\"'") + "'"


def with_retry(fn: Callable[[], T], attempts: int = DEFAULT_ATTEMPTS,
               sleep: Callable[[float], None] = time.sleep) -> T:
    delay = INITIAL_RETRY_DELAY
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except SshError as e:
            if not e.retryable or attempt == attempts:
                raise
            logger.debug("ssh attempt %d failed (%s); retrying in %.1fs", attempt, e, delay)
            sleep(delay)
            delay = min(delay * 2, MAX_RETRY_DELAY)
    raise AssertionError("unreachable")


class SshStorage(Storage):
    """Storage on a remote host; paths are POSIX paths on that host."""

    def __init__(self, connection: SshConnection, attempts: int = DEFAULT_ATTEMPTS,
                 timeout: int = DEFAULT_TIMEOUT_SECS, sleep: Callable[[float], None] = time.sleep):
        self.connection = connection
        self.attempts = attempts
        self.timeout = timeout
        self._sleep = sleep

    @classmethod
    def from_spec(cls, spec: str, **kwargs) -> Tuple["SshStorage", str]:
        conn = SshConnection.parse(spec)
        return cls(conn, **kwargs), conn.path

    def _run(self, remote_cmd: str, path: str = "", data: Optional[bytes] = None) -> bytes:
        argv = ["ssh"] + self.connection.ssh_args(self.timeout) + [self.connection.target, remote_cmd]
        try:
            proc = subprocess.run(argv, input=data, capture_output=True)
        except FileNotFoundError as e:
            raise SshCommandError("ssh client not found on PATH") from e
        if proc.returncode != 0:
            raise classify_ssh_error(proc.stderr.decode("utf-8", "replace"), path)
        return proc.stdout

    def _call(self, remote_cmd: str, path: str = "", data: Optional[bytes] = None) -> bytes:
        return with_retry(lambda: self._run(remote_cmd, path, data), self.attempts, self._sleep)

    def exists(self, path) -> bool:
        out = self._call(f"test -f {shell_quote(str(path))} && echo exists || echo missing", str(path))
        return out.strip() == b"exists"

    def read(self, path) -> bytes:
        path = str(path)
        return self._call(f"cat {shell_quote(path)}", path)

    def write(self, path, data: bytes) -> None:
        path = str(path)
        self._call(f"cat > {shell_quote(path)}", path, data)

    def copy(self, src, dst) -> None:
        self._call(f"cp {shell_quote(str(src))} {shell_quote(str(dst))}", str(src))

    def rename(self, src, dst) -> None:
        self._call(f"mv -f {shell_quote(str(src))} {shell_quote(str(dst))}", str(src))

    def remove(self, path) -> None:
        self._call(f"rm -f {shell_quote(str(path))}", str(path))

    def makedirs(self, path) -> None:
        self._call(f"mkdir -p {shell_quote(str(path))}", str(path))
