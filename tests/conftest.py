import json
from types import SimpleNamespace

import pytest

from mcpsync import cli


@pytest.fixture()
def cli_env(tmp_path, monkeypatch):
    """Provide a temporary HOME with ~/.mcp and a settings file for CLI tests."""
    home = tmp_path / "home"
    home.mkdir()
    config_dir = home / ".mcp"
    config_dir.mkdir()
    settings_path = config_dir / "mcpsync.toml"

    monkeypatch.setattr(cli, "HOME", home)
    monkeypatch.setattr(cli, "SETTINGS_PATH", settings_path)

    def write_settings(text):
        settings_path.write_text(text, encoding="utf-8")

    def write_json(rel, data):
        path = home / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        return path

    def read_json(rel):
        return json.loads((home / rel).read_text(encoding="utf-8"))

    return SimpleNamespace(
        home=home,
        config_dir=config_dir,
        settings_path=settings_path,
        write_settings=write_settings,
        write_json=write_json,
        read_json=read_json,
    )


@pytest.fixture()
def home(tmp_path):
    """A fake home directory for library-level tests."""
    h = tmp_path / "home"
    h.mkdir()
    return h
