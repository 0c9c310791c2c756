"""Core data types and the abstract LLM provider interface."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

if TYPE_CHECKING:
    from clawkit.provider.context import CallContext


class ProviderError(Exception):
    """Raised when an LLM backend fails to produce a result."""


@dataclass
class ToolCallRequest:
    """A single tool invocation emitted by the model (function-call format)."""

    id: str = ""
    name: str = ""
    arguments: str = ""
    type: str = "function"

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation of this tool call."""
        return {
            "id": self.id,
            "type": self.type,
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolCallRequest":
        """Build a tool call from its wire representation."""
        function = data.get("function") or {}
        arguments = function.get("arguments", "")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments, ensure_ascii=False)
        return cls(
            id=str(data.get("id") or ""),
            name=str(function.get("name") or ""),
            arguments=arguments or "",
            type=str(data.get("type") or ""),
        )


@dataclass
class Message:
    """A chat message: plain text, assistant tool calls, or a tool result."""

    role: str
    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    tool_call_id: str = ""
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation, omitting empty optional fields."""
        out: dict[str, Any] = {"role": self.role}
        if self.content:
            out["content"] = self.content
        if self.tool_calls:
            out["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            out["tool_call_id"] = self.tool_call_id
        if self.name:
            out["name"] = self.name
        return out


@dataclass
class ToolDef:
    """Describes a tool the model may call; parameters is a JSON Schema object."""

    name: str
    description: str = ""
    parameters: Optional[dict[str, Any]] = None


@dataclass
class ToolResult:
    """Output of a locally executed tool, sent back to the model."""

    call_id: str
    name: str
    output: str
    is_error: bool = False


@dataclass
class Usage:
    """Token consumption reported by the API for one call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ModelMeta:
    """Which model handled a call: logical config key and native model id."""

    model_key: str = ""
    model: str = ""


@dataclass
class CompleteResult:
    """Result of a completion: either text content or tool calls."""

    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    stop_reason: str = ""
    usage: Usage = field(default_factory=Usage)
    model: ModelMeta = field(default_factory=ModelMeta)


class Provider(ABC):
    """Interface every LLM backend and decorator implements."""

    def complete(self, ctx: Optional["CallContext"], messages: Sequence[Message]) -> str:
        """Plain text completion without tools."""
        return self.complete_with_tools(ctx, messages, None).content

    @abstractmethod
    def complete_with_tools(
        self,
        ctx: Optional["CallContext"],
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDef]],
    ) -> CompleteResult:
        """Send messages with tool definitions; return content or tool calls."""