"""Provider that dispatches each call to a model tier chosen by the context hint."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from clawkit.provider.base import CompleteResult, Message, Provider, ToolDef
from clawkit.provider.context import (
    CallContext,
    ModelHint,
    hint_from_context,
    source_from_context,
)

_log = logging.getLogger(__name__)


class RouterProvider(Provider):
    """Routes calls to the routing, task, summary or thinking tier.

    Only the task tier is required; a call for an unconfigured tier is served
    by the task tier and a warning is logged.
    """

    def __init__(
        self,
        task: Optional[Provider],
        routing: Optional[Provider] = None,
        summary: Optional[Provider] = None,
        thinking: Optional[Provider] = None,
    ) -> None:
        if task is None:
            raise ValueError("provider.router: task provider is required")
        self.task = task
        self.routing = routing
        self.summary = summary
        self.thinking = thinking

    def resolve(self, ctx: Optional[CallContext]) -> Provider:
        """Pick the provider for the hint carried by ctx."""
        hint = hint_from_context(ctx)
        tiers = {
            ModelHint.ROUTER: self.routing,
            ModelHint.SUMMARY: self.summary,
            ModelHint.THINKING: self.thinking,
        }
        if hint not in tiers:
            return self.task
        chosen = tiers[hint]
        if chosen is not None:
            return chosen
        _log.warning(
            "router: requested tier not configured, falling back to task "
            "requested_hint=%s source=%s",
            hint.value,
            source_from_context(ctx),
        )
        return self.task

    def complete(self, ctx: Optional[CallContext], messages: Sequence[Message]) -> str:
        """Route a plain completion to the selected tier."""
        return self.resolve(ctx).complete(ctx, messages)

    def complete_with_tools(
        self,
        ctx: Optional[CallContext],
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDef]],
    ) -> CompleteResult:
        return self.resolve(ctx).complete_with_tools(ctx, messages, tools)