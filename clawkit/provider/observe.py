"""Decorator that reports per-call usage telemetry to a context observer."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from clawkit.provider.base import CompleteResult, Message, Provider, ToolDef
from clawkit.provider.context import (
    CallContext,
    ModelHint,
    hint_from_context,
    source_from_context,
)


@dataclass
class UsageEvent:
    """One provider call as seen by a realtime observer."""

    at: str = ""
    hint: str = ""
    source: str = ""
    model_key: str = ""
    model: str = ""
    input_tokens_est: int = 0
    context_tokens_est: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    latency_ms: int = 0
    stop_reason: str = ""
    is_error: bool = False


UsageObserver = Callable[[UsageEvent], None]


def with_usage_observer(
    ctx: Optional[CallContext], observer: Optional[UsageObserver]
) -> Optional[CallContext]:
    """Return a context carrying observer; a None observer leaves ctx unchanged."""
    if observer is None:
        return ctx
    return replace(ctx if ctx is not None else CallContext(), usage_observer=observer)


def estimate_prompt_breakdown(
    messages: Sequence[Message], prompt_tokens: int
) -> tuple[int, int]:
    """Split prompt tokens into (latest user input, surrounding context) estimates."""
    if prompt_tokens <= 0:
        return 0, 0
    total_len = sum(len(m.content.strip()) for m in messages)
    last_user_len = next(
        (
            len(m.content.strip())
            for m in reversed(messages)
            if m.role == "user" and m.content.strip()
        ),
        0,
    )
    if total_len <= 0 or last_user_len <= 0:
        return 0, prompt_tokens
    input_est = math.floor(prompt_tokens * last_user_len / total_len + 0.5)
    input_est = min(max(input_est, 0), prompt_tokens)
    return input_est, prompt_tokens - input_est


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ObserveProvider(Provider):
    """Emits a UsageEvent to the context's observer after every call."""

    def __init__(self, inner: Provider) -> None:
        self.inner = inner

    def complete_with_tools(
        self,
        ctx: Optional[CallContext],
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDef]],
    ) -> CompleteResult:
        at = _utc_timestamp()
        start = time.monotonic()
        result = CompleteResult()
        error: Optional[BaseException] = None
        try:
            result = self.inner.complete_with_tools(ctx, messages, tools)
        except Exception as exc:
            error = exc
        observer = ctx.usage_observer if ctx is not None else None
        if observer is not None:
            hint = hint_from_context(ctx).value or ModelHint.TASK.value
            input_est, context_est = estimate_prompt_breakdown(
                messages, result.usage.prompt_tokens
            )
            stop_reason = result.stop_reason
            if error is not None and not stop_reason:
                stop_reason = "error"
            observer(
                UsageEvent(
                    at=at,
                    hint=hint,
                    source=source_from_context(ctx),
                    model_key=result.model.model_key,
                    model=result.model.model,
                    input_tokens_est=input_est,
                    context_tokens_est=context_est,
                    prompt_tokens=result.usage.prompt_tokens,
                    completion_tokens=result.usage.completion_tokens,
                    total_tokens=result.usage.total_tokens,
                    latency_ms=int((time.monotonic() - start) * 1000),
                    stop_reason=stop_reason,
                    is_error=error is not None,
                )
            )
        if error is not None:
            raise error
        return result


def wrap_observe(inner: Optional[Provider]) -> Optional[ObserveProvider]:
    """Wrap inner with usage-observer emission; None stays None."""
    if inner is None:
        return None
    return ObserveProvider(inner)