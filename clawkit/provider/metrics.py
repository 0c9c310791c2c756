"""Decorator that appends one JSONL metrics record per LLM call."""

from __future__ import annotations

import json
import os
import sys
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence, TextIO

from clawkit.provider.base import CompleteResult, Message, Provider, ToolDef
from clawkit.provider.context import (
    CallContext,
    ModelHint,
    hint_from_context,
    source_from_context,
)


@dataclass
class MetricsRecord:
    """One LLM call in structured form."""

    at: str
    hint: str
    source: str = ""
    model_key: str = ""
    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    latency_ms: int = 0
    stop_reason: str = ""
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation, omitting empty optional fields."""
        out: dict[str, Any] = {"at": self.at, "hint": self.hint}
        if self.source:
            out["source"] = self.source
        if self.model_key:
            out["model_key"] = self.model_key
        if self.model:
            out["model"] = self.model
        out.update(
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
            total_tokens=self.total_tokens,
            latency_ms=self.latency_ms,
            stop_reason=self.stop_reason,
        )
        if self.is_error:
            out["is_error"] = True
        return out


class MetricsProvider(Provider):
    """Records every call of the inner provider to a JSONL file."""

    def __init__(self, inner: Provider, out: TextIO) -> None:
        self.inner = inner
        self._out = out
        self._lock = threading.Lock()

    def close(self) -> None:
        """Close the metrics file."""
        with self._lock:
            self._out.close()

    def complete_with_tools(
        self,
        ctx: Optional[CallContext],
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDef]],
    ) -> CompleteResult:
        hint = hint_from_context(ctx).value or ModelHint.TASK.value
        at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        start = time.monotonic()
        result = CompleteResult()
        error: Optional[BaseException] = None
        try:
            result = self.inner.complete_with_tools(ctx, messages, tools)
        except Exception as exc:
            error = exc
        record = MetricsRecord(
            at=at,
            hint=hint,
            source=source_from_context(ctx),
            model_key=result.model.model_key,
            model=result.model.model,
            prompt_tokens=result.usage.prompt_tokens,
            completion_tokens=result.usage.completion_tokens,
            total_tokens=result.usage.total_tokens,
            latency_ms=int((time.monotonic() - start) * 1000),
            stop_reason=result.stop_reason,
            is_error=error is not None,
        )
        line = json.dumps(record.to_dict(), ensure_ascii=False)
        with self._lock:
            self._out.write(line + "\n")
            self._out.flush()
        if error is not None:
            raise error
        return result


def wrap_metrics(inner: Provider, file_path: str | os.PathLike[str]) -> Provider:
    """Wrap inner with JSONL metrics logging to file_path.

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
        print(f"metrics provider: cannot open {str(path)!r}: {err}", file=sys.stderr)
        return inner
    return MetricsProvider(inner, out)