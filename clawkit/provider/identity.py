"""Decorator that stamps results with a logical model key."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional, Sequence

from clawkit.provider.base import CompleteResult, Message, Provider, ToolDef
from clawkit.provider.context import CallContext


class IdentityProvider(Provider):
    """Wraps a provider and fills in ModelMeta.model_key when it is empty."""

    def __init__(self, inner: Provider, model_key: str) -> None:
        self.inner = inner
        self.model_key = model_key

    def complete_with_tools(
        self,
        ctx: Optional[CallContext],
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDef]],
    ) -> CompleteResult:
        result = self.inner.complete_with_tools(ctx, messages, tools)
        if not result.model.model_key:
            result = replace(result, model=replace(result.model, model_key=self.model_key))
        return result


def wrap_identity(inner: Optional[Provider], model_key: str) -> Optional[IdentityProvider]:
    """Wrap inner with a model key; None stays None."""
    if inner is None:
        return None
    return IdentityProvider(inner, model_key)