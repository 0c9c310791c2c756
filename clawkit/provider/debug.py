"""Decorator that writes full request/response traces to a debug file."""

from __future__ import annotations

import itertools
import json
import os
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, TextIO

from clawkit.provider.base import CompleteResult, Message, Provider, ToolDef
from clawkit.provider.context import (
    CallContext,
    ModelHint,
    hint_from_context,
    source_from_context,
)

_BAR = "═" * 72
_THIN = "─" * 68
_MAX_CONTENT = 3000
_ARGS_PREFIX = "      "


def pretty_args(raw: str) -> str:
    """Pretty-print JSON tool arguments; return raw text when it is not JSON."""
    if not raw:
        return "(no args)"
    try:
        value = json.loads(raw)
    except ValueError:
        return raw
    text = json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False)
    return text.replace("\n", "\n" + _ARGS_PREFIX)


def _clip(text: str) -> str:
    raw = text.encode("utf-8")
    if len(raw) <= _MAX_CONTENT:
        return text
    head = raw[:_MAX_CONTENT].decode("utf-8", errors="ignore")
    return head + f"\n... [截断，共 {len(raw)} 字符] ..."


def _indented(text: str, prefix: str) -> str:
    return "".join(f"{prefix}{line}\n" for line in text.split("\n"))


class DebugProvider(Provider):
    """Logs every exchange with the inner provider as a readable text block."""

    def __init__(self, inner: Provider, out: TextIO) -> None:
        self.inner = inner
        self._out = out
        self._seq = itertools.count(1)
        self._lock = threading.Lock()

    def _emit(self, text: str) -> None:
        with self._lock:
            self._out.write(text)
            self._out.flush()

    def close(self) -> None:
        """Close the trace file."""
        with self._lock:
            self._out.close()

    def _request_block(
        self,
        seq: int,
        ctx: Optional[CallContext],
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDef]],
    ) -> str:
        ts = datetime.now()
        stamp = ts.strftime("%Y-%m-%d %H:%M:%S") + f".{ts.microsecond // 1000:03d}"
        parts = [f"\n{_BAR}\n", f"  LLM 调用 #{seq}   {stamp}\n", f"{_BAR}\n"]

        if tools:
            parts.append(f"\n── 可用工具 ({len(tools)} 个) {_THIN}\n")
            for i, tool in enumerate(tools, 1):
                desc = tool.description
                if len(desc) > 80:
                    desc = desc[:77] + "..."
                parts.append(f"  [{i}] {tool.name:<30}  {desc}\n")

        parts.append(f"\n── 消息历史 ({len(messages)} 条) {_THIN}\n")
        for i, message in enumerate(messages, 1):
            role_line = message.role.upper()
            if message.name:
                role_line += f" ({message.name})"
            if message.tool_call_id:
                role_line += f" tool_call_id={message.tool_call_id}"
            parts.append(f"\n[{i}] {role_line}\n")
            if message.content:
                parts.append(_indented(_clip(message.content), "    "))
            for call in message.tool_calls:
                parts.append(f"    → TOOL_CALL  id={call.id:<36}  name={call.name}\n")
                parts.append(_indented(pretty_args(call.arguments), _ARGS_PREFIX))

        hint = hint_from_context(ctx).value or ModelHint.TASK.value
        source = source_from_context(ctx)
        source_str = f"  source={source}" if source else ""
        parts.append(f"\n── 请求发送 → 等待 LLM 响应  [hint={hint}{source_str}] {_THIN}\n")
        return "".join(parts)

    def _response_block(self, result: CompleteResult, elapsed: int) -> str:
        meta = result.model
        if meta.model_key and meta.model:
            model_str = f"  model={meta.model_key}/{meta.model}"
        elif meta.model_key or meta.model:
            model_str = f"  model={meta.model_key or meta.model}"
        else:
            model_str = ""
        usage = result.usage
        parts = [
            f"\n── ✅ 响应  stop_reason={result.stop_reason:<16}  elapsed={elapsed}ms  "
            f"tokens={usage.total_tokens}({usage.prompt_tokens}+{usage.completion_tokens})"
            f"{model_str} {_THIN}\n"
        ]
        if result.content:
            parts.append(_indented(_clip(result.content), "    "))
        for call in result.tool_calls:
            parts.append(f"\n    ▶ TOOL CALL: {call.name}  (id={call.id})\n")
            parts.append(_indented(pretty_args(call.arguments), _ARGS_PREFIX))
        parts.append(f"\n{_BAR}\n")
        return "".join(parts)

    def complete_with_tools(
        self,
        ctx: Optional[CallContext],
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDef]],
    ) -> CompleteResult:
        seq = next(self._seq)
        self._emit(self._request_block(seq, ctx, messages, tools))
        start = time.monotonic()
        try:
            result = self.inner.complete_with_tools(ctx, messages, tools)
        except Exception as err:
            elapsed = int((time.monotonic() - start) * 1000)
            self._emit(
                f"\n── ❌ 错误  elapsed={elapsed}ms {_THIN}\n    {err}\n\n{_BAR}\n"
            )
            raise
        elapsed = int((time.monotonic() - start) * 1000)
        self._emit(self._response_block(result, elapsed))
        return result


def wrap_debug(inner: Provider, file_path: str | os.PathLike[str]) -> Provider:
    """Wrap inner with trace logging appended to file_path.

    When the file cannot be opened a warning goes to stderr and inner is
    returned unchanged.
    """
    path = Path(file_path)
    try:
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    except OSError:
        pass
    try:
        fd = os.open(path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o600)
        out = os.fdopen(fd, "a", encoding="utf-8")
    except OSError as err:
        print(f"debug provider: cannot open {str(path)!r}: {err}", file=sys.stderr)
        return inner
    return DebugProvider(inner, out)