"""Newline-delimited JSON frames exchanged between the daemon and CLI clients."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Iterator, Mapping, Optional, Union

from clawkit import dirs

DEFAULT_SCANNER_BUFFER = 64 * 1024
MAX_FRAME_BYTES = 1024 * 1024


class FrameTooLargeError(ValueError):
    """Raised when an incoming frame exceeds MAX_FRAME_BYTES."""


def default_socket_path() -> Path:
    """Default Unix socket path."""
    return dirs.socket_path()


def read_frames(stream: IO[Any]) -> Iterator[str]:
    """Yield newline-delimited frames from a binary or text stream.

    Trailing carriage returns are removed. Raises FrameTooLargeError when a
    frame is longer than MAX_FRAME_BYTES.
    """
    while True:
        chunk: Union[bytes, str] = stream.readline(MAX_FRAME_BYTES + 1)
        if not chunk:
            return
        newline = b"\n" if isinstance(chunk, bytes) else "\n"
        if not chunk.endswith(newline) and len(chunk) > MAX_FRAME_BYTES:
            raise FrameTooLargeError(
                f"ipc: frame exceeds {MAX_FRAME_BYTES} bytes"
            )
        line = chunk.decode("utf-8", errors="replace") if isinstance(chunk, bytes) else chunk
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        yield line


@dataclass
class ToolCall:
    """A tool invocation request sent from daemon to client."""

    id: str
    name: str
    args: Any = None


@dataclass
class ToolResult:
    """A tool execution result sent from client to daemon."""

    call_id: str
    name: str
    output: str
    is_error: bool = False


@dataclass
class LLMUsageEvent:
    """Token and latency telemetry emitted after each LLM call."""

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


@dataclass
class SessionInfo:
    """A stored conversation visible to the client."""

    name: str
    turn_count: int = 0
    active: bool = False


@dataclass
class HistoryEntry:
    """One message of conversation history sent after session selection."""

    role: str
    content: str


def _usage_to_dict(event: LLMUsageEvent) -> dict[str, Any]:
    out: dict[str, Any] = {"at": event.at}
    for key in ("hint", "source", "model_key", "model"):
        value = getattr(event, key)
        if value:
            out[key] = value
    for key in ("input_tokens_est", "context_tokens_est"):
        value = getattr(event, key)
        if value:
            out[key] = value
    out["prompt_tokens"] = event.prompt_tokens
    out["completion_tokens"] = event.completion_tokens
    out["total_tokens"] = event.total_tokens
    out["latency_ms"] = event.latency_ms
    if event.stop_reason:
        out["stop_reason"] = event.stop_reason
    if event.is_error:
        out["is_error"] = True
    return out


def _usage_from_dict(data: Mapping[str, Any]) -> LLMUsageEvent:
    return LLMUsageEvent(
        at=str(data.get("at") or ""),
        hint=str(data.get("hint") or ""),
        source=str(data.get("source") or ""),
        model_key=str(data.get("model_key") or ""),
        model=str(data.get("model") or ""),
        input_tokens_est=int(data.get("input_tokens_est") or 0),
        context_tokens_est=int(data.get("context_tokens_est") or 0),
        prompt_tokens=int(data.get("prompt_tokens") or 0),
        completion_tokens=int(data.get("completion_tokens") or 0),
        total_tokens=int(data.get("total_tokens") or 0),
        latency_ms=int(data.get("latency_ms") or 0),
        stop_reason=str(data.get("stop_reason") or ""),
        is_error=bool(data.get("is_error", False)),
    )


def _session_to_dict(info: SessionInfo) -> dict[str, Any]:
    out: dict[str, Any] = {"name": info.name, "turn_count": info.turn_count}
    if info.active:
        out["active"] = True
    return out


_TEXT_FIELDS = ("text", "cmd", "reply", "delta", "info", "error", "cwd", "session")


@dataclass
class Msg:
    """One JSON frame of the socket protocol."""

    text: str = ""
    cmd: str = ""
    reply: str = ""
    delta: str = ""
    info: str = ""
    error: str = ""
    cwd: str = ""
    session: str = ""
    sessions: list[SessionInfo] = field(default_factory=list)
    usage: Optional[LLMUsageEvent] = None
    history: list[HistoryEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation, omitting empty fields."""
        out: dict[str, Any] = {}
        for key in _TEXT_FIELDS:
            value = getattr(self, key)
            if value:
                out[key] = value
        if self.sessions:
            out["sessions"] = [_session_to_dict(s) for s in self.sessions]
        if self.usage is not None:
            out["usage"] = _usage_to_dict(self.usage)
        if self.history:
            out["history"] = [{"role": h.role, "content": h.content} for h in self.history]
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Msg":
        """Build a Msg from its JSON representation; unknown keys are ignored."""
        usage = data.get("usage")
        return cls(
            **{key: str(data.get(key) or "") for key in _TEXT_FIELDS},
            sessions=[
                SessionInfo(
                    name=str(s.get("name") or ""),
                    turn_count=int(s.get("turn_count") or 0),
                    active=bool(s.get("active", False)),
                )
                for s in data.get("sessions") or []
            ],
            usage=_usage_from_dict(usage) if isinstance(usage, Mapping) else None,
            history=[
                HistoryEntry(role=str(h.get("role") or ""), content=str(h.get("content") or ""))
                for h in data.get("history") or []
            ],
        )

    def to_json(self) -> str:
        """Encode as a compact single-line JSON frame (without newline)."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_json(cls, line: Union[str, bytes]) -> "Msg":
        """Decode a JSON frame; raises ValueError when it is not a JSON object."""
        data = json.loads(line)
        if not isinstance(data, dict):
            raise ValueError("ipc: frame is not a JSON object")
        return cls.from_dict(data)