import json

from clawkit.ipc import ToolResult
from clawkit.memory.extract import (
    MAX_REPLY_CHARS,
    MAX_USER_CHARS,
    build_summary,
    collect_artifacts,
    extract_actions,
    parse_action,
    trunc,
)
from clawkit.memory.types import Action
from clawkit.provider.base import ToolCallRequest


def test_trunc_short_string_is_stripped_only():
    assert trunc("  hello  ", 10) == "hello"


def test_trunc_long_string_is_cut_with_ellipsis():
    out = trunc("abcdefghij", 5)
    assert out == "abcd…"
    assert len(out) == 5


def test_trunc_counts_characters_not_bytes():
    text = "开发" * 10
    assert trunc(text, 20) == text
    assert len(trunc(text, 7)) == 7


def test_parse_bash_ok_and_err():
    args = json.dumps({"command": "ls -la"})
    ok = parse_action("bash", args, False)
    assert ok.summary == "bash: `ls -la`  [ok]"
    assert ok.is_error is False
    err = parse_action("bash", args, True)
    assert err.summary.endswith("[err]")
    assert err.is_error is True


def test_parse_bash_truncates_long_command():
    action = parse_action("bash", json.dumps({"command": "x" * 200}), False)
    inner = action.summary.split("`")[1]
    assert len(inner) == 80
    assert inner.endswith("…")


def test_parse_read_file():
    action = parse_action("read_file", json.dumps({"path": "/tmp/a.txt"}), True)
    assert action == Action(tool="read_file", summary="read /tmp/a.txt", path="/tmp/a.txt")


def test_parse_write_file_sizes():
    small = parse_action("write_file", json.dumps({"path": "/tmp/a", "content": "0123456789"}), False)
    assert small.summary == "wrote 10 B → /tmp/a"
    assert small.path == "/tmp/a"
    medium = parse_action("write_file", json.dumps({"path": "/tmp/b", "content": "y" * 2048}), False)
    assert medium.summary == "wrote 2.0 KB → /tmp/b"
    large = parse_action("write_file", json.dumps({"path": "/tmp/c", "content": "z" * (3 * 1024 * 1024)}), False)
    assert "MB" in large.summary


def test_parse_list_files():
    action = parse_action("list_files", json.dumps({"dir": "src"}), False)
    assert action.summary == "ls src"
    assert action.path == "src"


def test_parse_unknown_tool():
    action = parse_action("web_search", "{}", True)
    assert action.summary == "called web_search"
    assert action.is_error is True


def test_parse_invalid_json_yields_empty_args():
    action = parse_action("read_file", "not json", False)
    assert action.path == ""
    assert action.summary == "read "


def test_extract_actions_pairs_results():
    calls = [
        ToolCallRequest(id="1", name="bash", arguments=json.dumps({"command": "make"})),
        ToolCallRequest(id="2", name="read_file", arguments=json.dumps({"path": "a.go"})),
    ]
    results = [ToolResult(call_id="1", name="bash", output="", is_error=True)]
    actions = extract_actions(calls, results)
    assert [a.tool for a in actions] == ["bash", "read_file"]
    assert actions[0].is_error is True
    assert actions[1].is_error is False


def test_collect_artifacts_dedupes_and_filters():
    actions = [
        Action(tool="read_file", summary="", path="a"),
        Action(tool="list_files", summary="", path="dir"),
        Action(tool="write_file", summary="", path="b"),
        Action(tool="read_file", summary="", path="a"),
        Action(tool="bash", summary=""),
    ]
    assert collect_artifacts(actions) == ["a", "b"]


def test_build_summary_fields():
    actions = [Action(tool="write_file", summary="w", path="out.txt")]
    summary = build_summary(4, "  " + "u" * 500, "reply", actions, 2, False)
    assert summary.n == 4
    assert len(summary.user) == MAX_USER_CHARS
    assert summary.reply == "reply"
    assert len(summary.reply) <= MAX_REPLY_CHARS
    assert summary.files == ["out.txt"]
    assert summary.iters == 2
    assert summary.at.utcoffset().total_seconds() == 0