import subprocess
from types import SimpleNamespace

import pytest

from mcpsync import storage as storage_mod
from mcpsync.errors import (
    InvalidSshPathError,
    NotFoundError,
    PermissionDeniedError,
    SshAuthenticationError,
    SshConnectionError,
    SshTimeoutError,
)
from mcpsync.storage import LocalStorage, SshConnection, SshStorage, classify_ssh_error, with_retry


def test_local_read_missing_is_not_found(tmp_path):
    with pytest.raises(NotFoundError):
        LocalStorage().read(tmp_path / "missing.json")


def test_local_remove_is_idempotent(tmp_path):
    LocalStorage().remove(tmp_path / "missing.json")


def test_not_found_is_also_file_not_found(tmp_path):
    with pytest.raises(FileNotFoundError):
        LocalStorage().read(tmp_path / "missing.json")


def test_permission_error_is_mapped(tmp_path, monkeypatch):
    def deny(self):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(storage_mod.Path, "read_bytes", deny)

    with pytest.raises(PermissionDeniedError):
        LocalStorage().read(tmp_path / "x.json")


@pytest.mark.parametrize("spec, expected", [
    ("host:/etc/cfg.json", SshConnection("host", "/etc/cfg.json")),
    ("me@host:~/.claude.json", SshConnection("host", "~/.claude.json", user="me")),
    ("me@host:2222:/srv/cfg.json", SshConnection("host", "/srv/cfg.json", user="me", port=2222)),
    ("[::1]:22:/cfg.json", SshConnection("::1", "/cfg.json", port=22)),
    ("[fe80::1]:/cfg.json", SshConnection("fe80::1", "/cfg.json")),
])
def test_parse_ssh_spec(spec, expected):
    assert SshConnection.parse(spec) == expected


@pytest.mark.parametrize("spec", ["", "host", "@host:/x", "host:", "[::1/x", "[::1]/x", "[::1]:abc:/x"])
def test_parse_ssh_spec_errors(spec):
    with pytest.raises(InvalidSshPathError):
        SshConnection.parse(spec)


def test_ssh_args():
    args = SshConnection("h", "/p", port=2200).ssh_args()

    assert args[:2] == ["-p", "2200"]
    assert "BatchMode=yes" in args
    assert "StrictHostKeyChecking=accept-new" in args
    assert "ConnectTimeout=10" in args


@pytest.mark.parametrize("stderr, cls", [
    ("Permission denied (publickey).", SshAuthenticationError),
    ("me@box: Permission denied (publickey,password).", SshAuthenticationError),
    ("Host key verification failed.", SshAuthenticationError),
    ("cat: /x: Permission denied", PermissionDeniedError),
    ("bash: line 1: /x: Permission denied", PermissionDeniedError),
    ("cat: /x: No such file or directory", NotFoundError),
    ("ssh: connect to host h port 22: Connection refused", SshConnectionError),
    ("operation timed out", SshTimeoutError),
])
def test_classify_ssh_error(stderr, cls):
    assert isinstance(classify_ssh_error(stderr, "/x"), cls)


def test_retry_backs_off_on_retryable_errors():
    calls = []
    sleeps = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise SshConnectionError("Connection failed")
        return "ok"

    assert with_retry(flaky, attempts=3, sleep=sleeps.append) == "ok"
    assert sleeps == [0.5, 1.0]


def test_retry_gives_up_after_attempts():
    sleeps = []

    def down():
        raise SshTimeoutError("Timeout")

    with pytest.raises(SshTimeoutError):
        with_retry(down, attempts=3, sleep=sleeps.append)
    assert len(sleeps) == 2


def test_no_retry_for_auth_failure():
    sleeps = []

    def denied():
        raise SshAuthenticationError("Authentication failed")

    with pytest.raises(SshAuthenticationError):
        with_retry(denied, sleep=sleeps.append)
    assert sleeps == []


def test_ssh_storage_read_shells_out(monkeypatch):
    seen = []

    def fake_run(argv, input=None, capture_output=False):
        seen.append(argv)
        return SimpleNamespace(returncode=0, stdout=b'{"mcpServers": {}}', stderr=b"")

    monkeypatch.setattr(subprocess, "run", fake_run)
    st, path = SshStorage.from_spec("me@box:/home/me/.claude.json")

    assert st.read(path) == b'{"mcpServers": {}}'
    argv = seen[0]
    assert argv[0] == "ssh"
    assert "me@box" in argv
    assert argv[-1] == "cat '/home/me/.claude.json'"
    assert not st.is_local


def test_ssh_storage_retries_connection_failure(monkeypatch):
    results = [
        SimpleNamespace(returncode=255, stdout=b"", stderr=b"ssh: Could not resolve hostname box"),
        SimpleNamespace(returncode=0, stdout=b"data", stderr=b""),
    ]
    monkeypatch.setattr(subprocess, "run", lambda *a, **kw: results.pop(0))
    sleeps = []
    st = SshStorage(SshConnection("box", "/x"), sleep=sleeps.append)

    assert st.read("/x") == b"data"
    assert sleeps == [0.5]


def test_ssh_storage_missing_file(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda *a, **kw: SimpleNamespace(
        returncode=1, stdout=b"", stderr=b"cat: /x: No such file or directory"))
    sleeps = []
    st = SshStorage(SshConnection("box", "/x"), sleep=sleeps.append)

    with pytest.raises(NotFoundError):
        st.read("/x")
    assert sleeps == []


def test_remote_permission_error_is_not_retried(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda *a, **kw: SimpleNamespace(
        returncode=1, stdout=b"", stderr=b"mv: cannot move '/x': Permission denied"))
    sleeps = []
    st = SshStorage(SshConnection("box", "/x"), sleep=sleeps.append)

    with pytest.raises(PermissionDeniedError):
        st.rename("/x", "/y")
    assert sleeps == []


@pytest.mark.parametrize("op, args", [
    ("exists", ("/x",)),
    ("copy", ("/x", "/x.bak")),
    ("rename", ("/x.tmp", "/x")),
    ("remove", ("/x.tmp",)),
    ("makedirs", ("/d",)),
])
def test_ssh_storage_retries_every_operation(monkeypatch, op, args):
    results = [
        SimpleNamespace(returncode=255, stdout=b"", stderr=b"ssh: connect to host box port 22: Connection refused"),
        SimpleNamespace(returncode=0, stdout=b"exists\n", stderr=b""),
    ]
    monkeypatch.setattr(subprocess, "run", lambda *a, **kw: results.pop(0))
    sleeps = []
    st = SshStorage(SshConnection("box", "/x"), sleep=sleeps.append)

    getattr(st, op)(*args)

    assert results == []
    assert sleeps == [0.5]
