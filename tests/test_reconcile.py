import pytest

from mcpsync.model import ConflictResolution, McpServer, SyncStatus
from mcpsync.reconcile import (
    compute_merge_result,
    final_servers,
    resolve_conflicts,
    servers_equal,
    sync_status,
)


def test_differing_command_is_a_conflict():
    merge = compute_merge_result(
        [McpServer(name="a", command="x")],
        [McpServer(name="a", command="y")],
        "gemini-cli",
    )

    assert len(merge.conflicts) == 1
    assert merge.added == [] and merge.kept == []
    c = merge.conflicts[0]
    assert (c.server_name, c.tool_id) == ("a", "gemini-cli")
    assert c.source_server.command == "x" and c.target_server.command == "y"


def test_every_name_lands_in_exactly_one_bucket():
    source = [McpServer(name="new", command="n"), McpServer(name="same", command="s"),
              McpServer(name="diff", command="d1")]
    target = [McpServer(name="same", command="s"), McpServer(name="diff", command="d2"),
              McpServer(name="theirs", command="t")]

    merge = compute_merge_result(source, target, "t")

    assert [s.name for s in merge.added] == ["new"]
    assert sorted(s.name for s in merge.kept) == ["same", "theirs"]
    assert [c.server_name for c in merge.conflicts] == ["diff"]


def test_equality_ignores_disabled_target_and_extra():
    a = McpServer(name="a", command="x", env={"A": "1", "B": "2"})
    b = McpServer(name="a", command="x", env={"B": "2", "A": "1"}, disabled=True,
                  target="claude", extra={"timeout": 5})

    assert servers_equal(a, b)


def test_equality_is_order_sensitive_for_args():
    assert not servers_equal(McpServer(name="a", command="x", args=["1", "2"]),
                             McpServer(name="a", command="x", args=["2", "1"]))


def test_empty_args_and_env_equal_missing():
    a = McpServer(name="a", command="uvx", args=[], env={})
    b = McpServer(name="a", command="uvx")

    assert servers_equal(a, b)
    assert sync_status(compute_merge_result([a], [b], "opencode")) is SyncStatus.SYNCED


def test_kept_uses_target_copy():
    target = McpServer(name="a", command="x", disabled=True, extra={"timeout": 5})

    merge = compute_merge_result([McpServer(name="a", command="x")], [target], "t")

    assert merge.kept == [target]


def test_sync_status():
    src = [McpServer(name="a", command="x")]

    assert sync_status(compute_merge_result(src, src, "t")) is SyncStatus.SYNCED
    assert sync_status(compute_merge_result(src, [], "t")) is SyncStatus.OUT_OF_SYNC
    assert sync_status(compute_merge_result(
        src, [McpServer(name="a", command="y")], "t")) is SyncStatus.CONFLICTS


def test_default_resolution_is_source_wins():
    merge = compute_merge_result([McpServer(name="a", command="x")],
                                 [McpServer(name="a", command="y")], "t")

    assert [s.command for s in final_servers(merge)] == ["x"]


def test_resolution_choices():
    merge = compute_merge_result(
        [McpServer(name="a", command="x"), McpServer(name="b", command="x"), McpServer(name="c", command="x")],
        [McpServer(name="a", command="y"), McpServer(name="b", command="y"), McpServer(name="c", command="y")],
        "t",
    )
    resolved = resolve_conflicts(
        merge.conflicts,
        {"a": ConflictResolution.TARGET, "b": "custom"},
        custom={"b": McpServer(name="b", command="z")},
    )

    final = {s.name: s.command for s in final_servers(merge, resolved)}

    assert final == {"a": "y", "b": "z", "c": "x"}


def test_custom_resolution_requires_matching_server():
    merge = compute_merge_result([McpServer(name="a", command="x")],
                                 [McpServer(name="a", command="y")], "t")

    with pytest.raises(ValueError):
        resolve_conflicts(merge.conflicts, {"a": ConflictResolution.CUSTOM})
    with pytest.raises(ValueError):
        resolve_conflicts(merge.conflicts, {"a": ConflictResolution.CUSTOM},
                          custom={"a": McpServer(name="other", command="z")})


def test_empty_name_rejected():
    with pytest.raises(ValueError):
        McpServer(name="")
