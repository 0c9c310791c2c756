"""Deterministic extraction of compact turn summaries from tool activity."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from clawkit.ipc import ToolResult
from clawkit.memory.types import Action, TurnSummary
from clawkit.provider.base import ToolCallRequest

MAX_USER_CHARS = 240
MAX_REPLY_CHARS = 240
MAX_CMD_CHARS = 80


def trunc(s: str, n: int) -> str:
    """Strip s and shorten it to at most n characters, ending with '…' when cut."""
    s = s.strip()
    if len(s) <= n:
        return s
    return s[: n - 1] + "…"


def _string_arg(args: Any, key: str) -> str:
    if isinstance(args, dict):
        value = args.get(key)
        if isinstance(value, str):
            return value
    return ""


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / 1024 / 1024:.1f} MB"


def parse_action(name: str, args_json: str, is_error: bool) -> Action:
    """Summarise one tool call from its arguments alone."""
    try:
        args = json.loads(args_json)
    except (ValueError, TypeError):
        args = None

    if name == "bash":
        command = _string_arg(args, "command")
        status = "err" if is_error else "ok"
        return Action(
            tool="bash",
            summary=f"bash: `{trunc(command, MAX_CMD_CHARS)}`  [{status}]",
            is_error=is_error,
        )
    if name == "read_file":
        path = _string_arg(args, "path")
        return Action(tool="read_file", summary="read " + path, path=path)
    if name == "write_file":
        path = _string_arg(args, "path")
        size = len(_string_arg(args, "content").encode("utf-8"))
        return Action(
            tool="write_file",
            summary=f"wrote {_format_size(size)} → {path}",
            path=path,
            is_error=is_error,
        )
    if name == "list_files":
        directory = _string_arg(args, "dir")
        return Action(tool="list_files", summary="ls " + directory, path=directory)
    return Action(tool=name, summary=f"called {name}", is_error=is_error)


def extract_actions(
    calls: Sequence[ToolCallRequest], results: Optional[Sequence[ToolResult]]
) -> list[Action]:
    """Build actions from tool-call requests paired with their results."""
    results = results or ()
    return [
        parse_action(
            call.name,
            call.arguments,
            results[i].is_error if i < len(results) else False,
        )
        for i, call in enumerate(calls)
    ]


def collect_artifacts(actions: Sequence[Action]) -> list[str]:
    """Ordered, de-duplicated file paths touched by read_file and write_file."""
    seen: set[str] = set()
    out: list[str] = []
    for action in actions:
        if not action.path or action.tool not in ("read_file", "write_file"):
            continue
        if action.path not in seen:
            seen.add(action.path)
            out.append(action.path)
    return out


def build_summary(
    n: int,
    user_text: str,
    reply_text: str,
    actions: Sequence[Action],
    iters: int,
    is_error: bool,
) -> TurnSummary:
    """Assemble a TurnSummary for a completed turn, stamped with the current UTC time."""
    action_list = list(actions)
    return TurnSummary(
        n=n,
        at=datetime.now(timezone.utc),
        user=trunc(user_text, MAX_USER_CHARS),
        reply=trunc(reply_text, MAX_REPLY_CHARS),
        actions=action_list,
        files=collect_artifacts(action_list),
        iters=iters,
        is_error=is_error,
    )