import pytest

from mcpsync.errors import InvalidFormatError
from mcpsync.jsonpath import MISSING, get_json_path, set_json_path, writes_literal


def test_get_prefers_exact_dotted_key():
    root = {"amp.mcpServers": {"a": {}}, "amp": {"mcpServers": {"b": {}}}}

    assert get_json_path(root, "amp.mcpServers") == {"a": {}}
    assert get_json_path(root, "amp.mcpServers", literal=False) == {"b": {}}


def test_get_walks_nested_path_and_never_creates():
    root = {"mcp": {"servers": {"x": {}}}}

    assert get_json_path(root, "mcp.servers") == {"x": {}}
    assert get_json_path(root, "mcp.missing.deep", MISSING) is MISSING
    assert root == {"mcp": {"servers": {"x": {}}}}


def test_literal_true_does_not_fall_back_to_walk():
    root = {"amp": {"mcpServers": {}}}

    assert get_json_path(root, "amp.mcpServers", MISSING, literal=True) is MISSING


def test_set_creates_intermediate_objects():
    root = {"theme": "dark"}

    set_json_path(root, "foo.bar", {"s": {}})

    assert root == {"theme": "dark", "foo": {"bar": {"s": {}}}}


def test_set_uses_literal_key_next_to_dotted_sibling():
    root = {"amp.url": "https://ampcode.com"}

    assert writes_literal(root, "amp.mcpServers")
    set_json_path(root, "amp.mcpServers", {})

    assert root == {"amp.url": "https://ampcode.com", "amp.mcpServers": {}}


def test_set_ignores_dotted_sibling_with_other_prefix():
    root = {"editor.fontSize": 12}

    set_json_path(root, "amp.mcpServers", {})

    assert root["amp"] == {"mcpServers": {}}


def test_set_rejects_scalar_intermediate():
    root = {"foo": 3}

    with pytest.raises(InvalidFormatError):
        set_json_path(root, "foo.bar", {})


def test_set_prefers_existing_nested_container_over_dotted_sibling():
    root = {"foo": {"bar": {"old": 1}}, "foo.baz": 1}

    assert not writes_literal(root, "foo.bar")
    set_json_path(root, "foo.bar", {"old": 1, "new": 2})

    assert root == {"foo": {"bar": {"old": 1, "new": 2}}, "foo.baz": 1}
    assert get_json_path(root, "foo.bar") == {"old": 1, "new": 2}
