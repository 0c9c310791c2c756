"""Per-call context: routing hint, source label, stream callback and deadline."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional

StreamFunc = Callable[[str], None]


class ModelHint(str, Enum):
    """Capability tier requested for an LLM call."""

    DEFAULT = ""
    ROUTER = "router"
    TASK = "task"
    SUMMARY = "summary"
    THINKING = "thinking"

    def __str__(self) -> str:
        return self.value


HINT_SOURCE_AGENT_THINK = "agent/think"
HINT_SOURCE_AGENT_INJECT = "agent/inject"
HINT_SOURCE_AUTOROUTE_CLASSIFY = "autoroute/classify"
HINT_SOURCE_DISTILL_REDUCE = "distill/reduce"


def hint_source_agent_loop(i: int) -> str:
    """Source label for the i-th iteration of the agent tool loop."""
    return f"agent/loop[i={i}]"


def hint_source_distill_map(i: int, total: int) -> str:
    """Source label for map chunk i of total during distillation."""
    return f"distill/map[{i}/{total}]"


@dataclass(frozen=True)
class CallContext:
    """Immutable bag of per-call values; derive new ones with the with_* helpers."""

    hint: ModelHint = ModelHint.DEFAULT
    source: str = ""
    no_fallback: bool = False
    stream_func: Optional[StreamFunc] = None
    usage_observer: Optional[Callable[[Any], None]] = None
    deadline: Optional[float] = None

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())


def _ensure(ctx: Optional[CallContext]) -> CallContext:
    return CallContext() if ctx is None else ctx


def with_model_hint(ctx: Optional[CallContext], hint: ModelHint | str) -> CallContext:
    """Return a context carrying the given model hint."""
    return replace(_ensure(ctx), hint=ModelHint(hint))


def hint_from_context(ctx: Optional[CallContext]) -> ModelHint:
    """The hint set on ctx, or ModelHint.DEFAULT."""
    return _ensure(ctx).hint


def with_hint_source(ctx: Optional[CallContext], source: str) -> CallContext:
    """Return a context carrying a call-site source label."""
    return replace(_ensure(ctx), source=source)


def source_from_context(ctx: Optional[CallContext]) -> str:
    """The source label on ctx, or an empty string."""
    return _ensure(ctx).source


def with_no_fallback(ctx: Optional[CallContext]) -> CallContext:
    """Return a context that forbids fallback to another provider."""
    return replace(_ensure(ctx), no_fallback=True)


def no_fallback_from_context(ctx: Optional[CallContext]) -> bool:
    """Whether the no-fallback flag is set on ctx."""
    return _ensure(ctx).no_fallback


def with_stream_func(ctx: Optional[CallContext], fn: Optional[StreamFunc]) -> CallContext:
    """Return a context carrying a streaming delta callback."""
    return replace(_ensure(ctx), stream_func=fn)


def stream_func_from_context(ctx: Optional[CallContext]) -> Optional[StreamFunc]:
    """The streaming callback on ctx, or None."""
    return _ensure(ctx).stream_func


def with_timeout(ctx: Optional[CallContext], seconds: float) -> CallContext:
    """Return a context whose deadline is at most `seconds` from now."""
    base = _ensure(ctx)
    deadline = time.monotonic() + seconds
    if base.deadline is not None and base.deadline < deadline:
        deadline = base.deadline
    return replace(base, deadline=deadline)