"""Decorator that retries on a fallback provider when the primary is unavailable."""

from __future__ import annotations

from typing import Iterator, Optional, Sequence

from clawkit.provider.base import CompleteResult, Message, Provider, ToolDef
from clawkit.provider.context import CallContext, no_fallback_from_context

_FALLBACK_MARKERS = (
    "model_not_found",
    "model not found",
    "does not exist",
    "not available",
    "unavailable",
    "temporarily overloaded",
    "status 404",
    "status 429",
    "status 500",
    "status 502",
    "status 503",
    "status 504",
)


def _error_chain(err: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: Optional[BaseException] = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def should_fallback(err: Optional[BaseException]) -> bool:
    """Whether err looks like a model-unavailable failure worth retrying elsewhere."""
    if err is None:
        return False
    msg = str(err).lower()
    if "context canceled" in msg or "deadline exceeded" in msg:
        return False
    if any(marker in msg for marker in _FALLBACK_MARKERS):
        return True
    return any(isinstance(e, TimeoutError) for e in _error_chain(err))


class FallbackProvider(Provider):
    """Calls primary; on a qualifying failure, calls fallback instead."""

    def __init__(self, primary: Provider, fallback: Provider) -> None:
        self.primary = primary
        self.fallback = fallback

    def complete_with_tools(
        self,
        ctx: Optional[CallContext],
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDef]],
    ) -> CompleteResult:
        try:
            return self.primary.complete_with_tools(ctx, messages, tools)
        except Exception as err:
            if no_fallback_from_context(ctx) or not should_fallback(err):
                raise
        return self.fallback.complete_with_tools(ctx, messages, tools)


def wrap_fallback(primary: Optional[Provider], fallback: Optional[Provider]) -> Optional[Provider]:
    """Combine primary and fallback; a missing side yields the other unchanged."""
    if primary is None:
        return fallback
    if fallback is None:
        return primary
    return FallbackProvider(primary, fallback)