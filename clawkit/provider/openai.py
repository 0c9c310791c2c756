"""Provider for the Chat Completions API and compatible endpoints."""

from __future__ import annotations

import json
import logging
import threading
import urllib.error
import urllib.request
from typing import Any, Iterable, Iterator, Optional, Sequence

from clawkit.provider.base import (
    CompleteResult,
    Message,
    ModelMeta,
    Provider,
    ProviderError,
    ToolCallRequest,
    ToolDef,
    Usage,
)
from clawkit.provider.context import (
    CallContext,
    StreamFunc,
    stream_func_from_context,
    with_timeout,
)

_log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 120
_PROBE_TIMEOUT_SECONDS = 8.0
_EMPTY_PARAMETERS: dict[str, Any] = {"type": "object", "properties": {}}


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _usage_from(raw: Any) -> Usage:
    data = _as_dict(raw)
    return Usage(
        prompt_tokens=int(data.get("prompt_tokens") or 0),
        completion_tokens=int(data.get("completion_tokens") or 0),
        total_tokens=int(data.get("total_tokens") or 0),
    )


def _wire_message(message: Message) -> dict[str, Any]:
    wire = message.to_dict()
    if message.role == "tool" and not message.content:
        wire["content"] = "(no output)"
        wire = {"role": wire.pop("role"), "content": wire.pop("content"), **wire}
    return wire


def _wire_tool(tool: ToolDef) -> dict[str, Any]:
    parameters = tool.parameters if tool.parameters is not None else dict(_EMPTY_PARAMETERS)
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": parameters,
        },
    }


def _cap_str(value: Optional[bool]) -> str:
    if value is None:
        return "unknown"
    return "yes" if value else "no"


class OpenAIProvider(Provider):
    """Chat Completions client with streaming and optional-feature negotiation.

    Optional request fields (stream_options, thinking) are sent optimistically;
    when the endpoint rejects one with HTTP 400 it is stripped, the result is
    remembered, and the request is retried once.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        max_tokens: int = 0,
        timeout_seconds: int = 0,
        thinking_budget: int = 0,
        stream_enabled: bool = True,
    ) -> None:
        self.base_url = base_url
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.thinking_budget = thinking_budget
        self.stream_enabled = stream_enabled
        self.timeout = float(timeout_seconds if timeout_seconds > 0 else _DEFAULT_TIMEOUT_SECONDS)
        self._caps: dict[str, Optional[bool]] = {"stream_options": None, "thinking": None}
        self._caps_lock = threading.Lock()

    # ── request construction ────────────────────────────────────────────

    def build_request(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDef]],
        want_stream: bool,
    ) -> dict[str, Any]:
        """Build the request body, including optional features not known to be unsupported."""
        with self._caps_lock:
            caps = dict(self._caps)

        request: dict[str, Any] = {
            "model": self.model,
            "messages": [_wire_message(m) for m in messages],
        }
        if self.max_tokens:
            request["max_tokens"] = self.max_tokens
        request["stream"] = want_stream
        if want_stream and caps["stream_options"] is not False:
            request["stream_options"] = {"include_usage": True}
        if tools:
            request["tools"] = [_wire_tool(t) for t in tools]
            request["tool_choice"] = "auto"
        if self.thinking_budget > 0 and caps["thinking"] is not False:
            request["thinking"] = {"type": "enabled", "budget_tokens": self.thinking_budget}
        return request

    # ── public API ──────────────────────────────────────────────────────

    def complete_with_tools(
        self,
        ctx: Optional[CallContext],
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDef]],
    ) -> CompleteResult:
        stream_fn = stream_func_from_context(ctx) if self.stream_enabled else None
        request = self.build_request(messages, tools, stream_fn is not None)
        return self._do_with_negotiation(ctx, request, stream_fn)

    def probe_capabilities(self, ctx: Optional[CallContext]) -> dict[str, Optional[bool]]:
        """Discover which optional features the endpoint accepts; return the cached result."""
        with self._caps_lock:
            all_probed = self._caps["stream_options"] is not None and (
                self.thinking_budget == 0 or self._caps["thinking"] is not None
            )
        if all_probed:
            return self._snapshot()

        request = self.build_request([Message(role="user", content="hi")], None, self.stream_enabled)
        request["max_tokens"] = 1

        def discard(_: str) -> None:
            return None

        try:
            self._do_http(with_timeout(ctx, _PROBE_TIMEOUT_SECONDS), request, discard)
        except Exception as err:
            last: Exception = err
        else:
            self._confirm_caps(request)
            caps = self._snapshot()
            _log.info(
                "openai: probe ok model=%s stream_options=%s thinking=%s",
                self.model,
                _cap_str(caps["stream_options"]),
                _cap_str(caps["thinking"]),
            )
            return caps

        while True:
            field = self._try_strip_rejected_feature(last, request)
            if field is None:
                _log.warning("openai: probe failed (non-negotiable) model=%s err=%s", self.model, last)
                return self._snapshot()
            _log.info("openai: probe — feature unsupported model=%s feature=%s", self.model, field)
            try:
                self._do_http(with_timeout(ctx, _PROBE_TIMEOUT_SECONDS), request, discard)
            except Exception as err:
                last = err
                continue
            self._confirm_caps(request)
            caps = self._snapshot()
            _log.info(
                "openai: probe ok (after negotiation) model=%s stream_options=%s thinking=%s",
                self.model,
                _cap_str(caps["stream_options"]),
                _cap_str(caps["thinking"]),
            )
            return caps

    # ── response parsing ────────────────────────────────────────────────

    def parse_json_response(self, body: bytes | str) -> CompleteResult:
        """Parse a non-streaming Chat Completions response body."""
        try:
            data = json.loads(body)
        except ValueError as err:
            raise ProviderError(f"openai: decode: {err}") from err
        if not isinstance(data, dict):
            raise ProviderError("openai: decode: response is not a JSON object")
        error = data.get("error")
        if error is not None:
            detail = _as_dict(error)
            raise ProviderError(
                f"openai: api error {detail.get('type') or ''}: {detail.get('message') or ''}"
            )
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ProviderError("openai: no choices returned")

        usage = _usage_from(data.get("usage"))
        choice = _as_dict(choices[0])
        message = _as_dict(choice.get("message"))
        finish_reason = str(choice.get("finish_reason") or "")
        tool_calls = [
            ToolCallRequest.from_dict(tc)
            for tc in message.get("tool_calls") or []
            if isinstance(tc, dict)
        ]
        meta = ModelMeta(model=self.model)
        if tool_calls:
            return CompleteResult(
                tool_calls=tool_calls, stop_reason=finish_reason, usage=usage, model=meta
            )
        content = message.get("content") or ""
        return CompleteResult(
            content=str(content) or "(done)", stop_reason=finish_reason, usage=usage, model=meta
        )

    def parse_sse(
        self, lines: Iterable[str], stream_fn: Optional[StreamFunc]
    ) -> CompleteResult:
        """Consume server-sent event lines, forwarding text deltas to stream_fn."""
        content_parts: list[str] = []
        tool_calls: list[ToolCallRequest] = []
        finish_reason = ""
        usage = Usage()

        for raw in lines:
            line = raw.rstrip("\r\n")
            if not line or line.startswith(":") or not line.startswith("data: "):
                continue
            payload = line[len("data: "):]
            if payload == "[DONE]":
                break
            try:
                chunk = json.loads(payload)
            except ValueError:
                continue
            if not isinstance(chunk, dict):
                continue

            error = chunk.get("error")
            if error is not None:
                detail = _as_dict(error)
                raise ProviderError(
                    f"openai: stream error {detail.get('type') or ''}: {detail.get('message') or ''}"
                )
            if chunk.get("usage") is not None:
                usage = _usage_from(chunk["usage"])

            choices = chunk.get("choices")
            if not isinstance(choices, list) or not choices:
                continue
            choice = _as_dict(choices[0])
            delta = _as_dict(choice.get("delta"))
            if choice.get("finish_reason") is not None:
                finish_reason = str(choice["finish_reason"])

            text = delta.get("content")
            if isinstance(text, str) and text:
                content_parts.append(text)
                if stream_fn is not None:
                    stream_fn(text)

            for fragment in delta.get("tool_calls") or []:
                if not isinstance(fragment, dict):
                    continue
                index = int(fragment.get("index") or 0)
                if index < 0:
                    continue
                while len(tool_calls) <= index:
                    tool_calls.append(ToolCallRequest(type="function"))
                call = tool_calls[index]
                function = _as_dict(fragment.get("function"))
                if fragment.get("id"):
                    call.id = str(fragment["id"])
                if function.get("name"):
                    call.name = str(function["name"])
                call.arguments += str(function.get("arguments") or "")

        meta = ModelMeta(model=self.model)
        if tool_calls:
            return CompleteResult(
                tool_calls=tool_calls, stop_reason=finish_reason, usage=usage, model=meta
            )
        content = "".join(content_parts) or "(done)"
        return CompleteResult(content=content, stop_reason=finish_reason, usage=usage, model=meta)

    # ── transport and negotiation ───────────────────────────────────────

    def _do_with_negotiation(
        self,
        ctx: Optional[CallContext],
        request: dict[str, Any],
        stream_fn: Optional[StreamFunc],
    ) -> CompleteResult:
        try:
            result = self._do_http(ctx, request, stream_fn)
        except Exception as err:
            field = self._try_strip_rejected_feature(err, request)
            if field is None:
                raise
            _log.warning(
                "openai: upstream rejected optional feature, retrying without it "
                "feature=%s model=%s base_url=%s",
                field,
                self.model,
                self.base_url,
            )
            result = self._do_http(ctx, request, stream_fn)
        self._confirm_caps(request)
        return result

    def _do_http(
        self,
        ctx: Optional[CallContext],
        request: dict[str, Any],
        stream_fn: Optional[StreamFunc],
    ) -> CompleteResult:
        body = json.dumps(request, ensure_ascii=False).encode("utf-8")
        http_request = urllib.request.Request(
            self.base_url + "/chat/completions",
            data=body,
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Authorization": "Bearer " + self.api_key,
            },
        )

        timeout = self.timeout
        remaining = ctx.remaining() if ctx is not None else None
        if remaining is not None:
            if remaining <= 0:
                raise ProviderError("openai: http: context deadline exceeded")
            timeout = min(timeout, remaining)

        try:
            response = urllib.request.urlopen(http_request, timeout=timeout)
        except urllib.error.HTTPError as err:
            try:
                raw = err.read().decode("utf-8", errors="replace")
            except OSError:
                raw = ""
            raise ProviderError(f"openai: status {err.code}: {raw}") from err
        except urllib.error.URLError as err:
            cause = err.reason if isinstance(err.reason, BaseException) else err
            raise ProviderError(f"openai: http: {err.reason}") from cause
        except OSError as err:
            raise ProviderError(f"openai: http: {err}") from err

        with response:
            if response.status != 200:
                raw = response.read().decode("utf-8", errors="replace")
                raise ProviderError(f"openai: status {response.status}: {raw}")
            content_type = response.headers.get("Content-Type", "")
            if stream_fn is not None and "text/event-stream" in content_type:
                return self.parse_sse(self._read_lines(response), stream_fn)
            try:
                raw_body = response.read()
            except OSError as err:
                raise ProviderError(f"openai: read body: {err}") from err
            return self.parse_json_response(raw_body)

    @staticmethod
    def _read_lines(response: Any) -> Iterator[str]:
        try:
            for raw in response:
                yield raw.decode("utf-8", errors="replace")
        except OSError as err:
            raise ProviderError(f"openai: stream read: {err}") from err

    def _try_strip_rejected_feature(
        self, err: BaseException, request: dict[str, Any]
    ) -> Optional[str]:
        message = str(err)
        if "status 400" not in message:
            return None
        lower = message.lower()
        if "stream_options" in request and "stream_option" in lower:
            del request["stream_options"]
            self._set_cap("stream_options", False)
            return "stream_options"
        if "thinking" in request and ("thinking" in lower or "budget_tokens" in lower):
            del request["thinking"]
            self._set_cap("thinking", False)
            return "thinking"
        return None

    def _confirm_caps(self, request: dict[str, Any]) -> None:
        with self._caps_lock:
            for name in ("stream_options", "thinking"):
                if name in request and self._caps[name] is None:
                    self._caps[name] = True

    def _set_cap(self, name: str, value: bool) -> None:
        with self._caps_lock:
            self._caps[name] = value

    def _snapshot(self) -> dict[str, Optional[bool]]:
        with self._caps_lock:
            return dict(self._caps)