"""Automatic per-turn model tier selection."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from clawkit.provider.base import CompleteResult, Message, Provider, ToolDef
from clawkit.provider.context import (
    HINT_SOURCE_AUTOROUTE_CLASSIFY,
    CallContext,
    ModelHint,
    hint_from_context,
    with_hint_source,
    with_model_hint,
    with_no_fallback,
    with_timeout,
)

DEFAULT_CLASSIFY_TIMEOUT = 5.0

DEFAULT_THINKING_KEYWORDS: tuple[str, ...] = (
    "帮我规划",
    "help me plan",
    "plan this out",
    "给个方案",
    "give me a plan",
    "give me a proposal",
    "分步骤",
    "step by step",
    "break it down",
    "怎么权衡",
    "how to balance",
    "how to trade off",
    "利弊",
    "pros and cons",
    "trade-offs",
    "深入分析",
    "deep analysis",
    "analyze in depth",
    "根因",
    "root cause",
    "root cause analysis",
    "重构",
    "refactor",
    "refactoring",
    "架构",
    "architecture",
    "architecture design",
)

_AUTOROUTE_SYSTEM_PROMPT = """You are a task routing classifier for an AI coding assistant.
Analyze the conversation and respond with ONLY valid JSON — no explanation, no markdown.

Route to "thinking" ONLY when the task clearly requires:
- Multi-file refactoring or large-scale code architecture design
- Deep debugging that traces through multiple interacting systems
- Complex trade-off analysis or system/API design decisions
- Performance optimization requiring deep algorithmic analysis

Route to "task" for everything else: questions, explanations, simple code, short commands, translations.

Respond ONLY with JSON using this schema:
{"tier":"task|thinking","reason_code":"short_snake_case","confidence":0.0}"""


@dataclass
class RouteDecision:
    """The tier chosen for a turn and why."""

    hint: ModelHint
    reason: str
    reason_code: str
    confidence: float


def heuristic_simple(text: str) -> bool:
    """True for messages short and plain enough to skip classification."""
    n = len(text)
    if n < 25:
        return True
    return n < 60 and not any(ch in text for ch in "\n？?")


def match_thinking_keyword(text: str, keywords: Iterable[str]) -> bool:
    """True when text contains any of the keywords, case-insensitively."""
    lower = text.lower()
    for kw in keywords:
        k = kw.lower().strip()
        if k and k in lower:
            return True
    return False


def merge_keywords(base: Iterable[str], extra: Optional[Iterable[str]]) -> list[str]:
    """Lower-cased, trimmed, de-duplicated union of base then extra."""
    seen: set[str] = set()
    out: list[str] = []
    for kw in [*base, *(extra or ())]:
        k = kw.strip().lower()
        if k and k not in seen:
            seen.add(k)
            out.append(k)
    return out


def can_handle_by_tool(text: str, tool_names: Optional[Iterable[str]]) -> bool:
    """True when text mentions any registered tool name."""
    lower = text.lower()
    return any(name.lower() in lower for name in (tool_names or ()))


def last_user_text(messages: Sequence[Message]) -> str:
    """Content of the last non-empty user message, or an empty string."""
    return next(
        (m.content for m in reversed(messages) if m.role == "user" and m.content), ""
    )


def _parse_classification(reply: str) -> Optional[dict[str, Any]]:
    clean = reply.strip()
    clean = clean.removeprefix("```json").removeprefix("```").removesuffix("```").strip()
    try:
        data = json.loads(clean)
    except ValueError:
        return None
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return None
    tier = data.get("tier") or ""
    reason_code = data.get("reason_code") or ""
    confidence = data.get("confidence") or 0
    if not isinstance(tier, str) or not isinstance(reason_code, str):
        return None
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return None
    return {"tier": tier, "reason_code": reason_code, "confidence": float(confidence)}


class AutoRouter:
    """Two-phase classifier: local heuristics, then a cheap routing-tier model."""

    def __init__(
        self,
        provider: Provider,
        extra_thinking_keywords: Optional[Iterable[str]] = None,
        classify_timeout: float = DEFAULT_CLASSIFY_TIMEOUT,
    ) -> None:
        self.provider = provider
        self.thinking_keywords = merge_keywords(
            DEFAULT_THINKING_KEYWORDS, extra_thinking_keywords
        )
        self.classify_timeout = classify_timeout

    def classify(
        self,
        ctx: Optional[CallContext],
        text: str,
        history: Optional[Sequence[Message]],
        tool_names: Optional[Sequence[str]],
    ) -> RouteDecision:
        """Choose the model tier for the latest user message."""
        if match_thinking_keyword(text, self.thinking_keywords):
            return RouteDecision(ModelHint.THINKING, "heuristic:keyword", "keyword_match", 0.99)
        if heuristic_simple(text):
            return RouteDecision(ModelHint.TASK, "heuristic:simple", "simple_message", 0.95)
        if can_handle_by_tool(text, tool_names):
            return RouteDecision(ModelHint.TASK, "heuristic:tool", "tool_match", 0.95)
        return self._llm_classify(ctx, history or ())

    def _call_with_deadline(self, ctx: CallContext, messages: list[Message]) -> str:
        box: dict[str, Any] = {}

        def run() -> None:
            try:
                box["reply"] = self.provider.complete(ctx, messages)
            except BaseException as exc:
                box["error"] = exc

        worker = threading.Thread(target=run, daemon=True)
        worker.start()
        worker.join(self.classify_timeout)
        if worker.is_alive():
            raise TimeoutError("classifier deadline exceeded")
        if "error" in box:
            raise box["error"]
        return box["reply"]

    def _llm_classify(
        self, ctx: Optional[CallContext], history: Sequence[Message]
    ) -> RouteDecision:
        recent: list[Message] = []
        for m in reversed(history):
            if len(recent) >= 3:
                break
            if m.role in ("user", "assistant") and m.content:
                recent.insert(0, m)
        messages = [Message(role="system", content=_AUTOROUTE_SYSTEM_PROMPT), *recent]

        classify_ctx = with_no_fallback(with_model_hint(ctx, ModelHint.ROUTER))
        classify_ctx = with_hint_source(classify_ctx, HINT_SOURCE_AUTOROUTE_CLASSIFY)
        classify_ctx = with_timeout(classify_ctx, self.classify_timeout)

        try:
            reply = self._call_with_deadline(classify_ctx, messages)
        except Exception:
            return RouteDecision(ModelHint.TASK, "llm:error", "classifier_error", 0.0)

        parsed = _parse_classification(reply)
        if parsed is None:
            return RouteDecision(ModelHint.TASK, "llm:parse_error", "parse_error", 0.0)
        confidence = min(max(parsed["confidence"], 0.0), 1.0)
        reason_code = parsed["reason_code"]
        if not reason_code.strip():
            reason_code = "classifier_output"
        if parsed["tier"] == "thinking":
            return RouteDecision(ModelHint.THINKING, "llm:thinking", reason_code, confidence)
        return RouteDecision(ModelHint.TASK, "llm:task", reason_code, confidence)


class AutoRouteProvider(Provider):
    """Classifies each tool-enabled call and attaches a model hint before delegating."""

    def __init__(
        self,
        inner: Provider,
        auto_router: AutoRouter,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.inner = inner
        self.auto_router = auto_router
        self.log = log
        self._tool_names: list[str] = []
        self._lock = threading.Lock()

    def set_tool_names(self, names: Iterable[str]) -> None:
        """Replace the tool names used for heuristic classification."""
        with self._lock:
            self._tool_names = list(names)

    def complete(self, ctx: Optional[CallContext], messages: Sequence[Message]) -> str:
        """Pass through without classification."""
        return self.inner.complete(ctx, messages)

    def complete_with_tools(
        self,
        ctx: Optional[CallContext],
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDef]],
    ) -> CompleteResult:
        if hint_from_context(ctx) == ModelHint.DEFAULT:
            with self._lock:
                tool_names = list(self._tool_names)
            decision = self.auto_router.classify(
                ctx, last_user_text(messages), messages, tool_names
            )
            if self.log is not None:
                self.log.info(
                    "auto-routed hint=%s reason=%s reason_code=%s confidence=%s",
                    decision.hint.value,
                    decision.reason,
                    decision.reason_code,
                    decision.confidence,
                )
            ctx = with_model_hint(ctx, decision.hint)
        return self.inner.complete_with_tools(ctx, messages, tools)


def wrap_auto_route(
    inner: Provider, router: AutoRouter, log: Optional[logging.Logger] = None
) -> AutoRouteProvider:
    """Wrap inner with automatic routing classification."""
    return AutoRouteProvider(inner, router, log)