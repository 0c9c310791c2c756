import pytest

from clawkit.provider.base import (
    CompleteResult,
    Message,
    Provider,
    ProviderError,
    ToolCallRequest,
    ToolDef,
)


class _EchoProvider(Provider):
    def __init__(self):
        self.seen_tools = "unset"

    def complete_with_tools(self, ctx, messages, tools):
        self.seen_tools = tools
        return CompleteResult(content=messages[-1].content, stop_reason="stop")


class _FailingProvider(Provider):
    def complete_with_tools(self, ctx, messages, tools):
        raise ProviderError("boom")


def test_message_to_dict_omits_empty_fields():
    assert Message(role="user", content="hi").to_dict() == {"role": "user", "content": "hi"}


def test_message_to_dict_includes_tool_fields():
    tc = ToolCallRequest(id="c1", name="bash", arguments='{"command":"ls"}')
    msg = Message(role="assistant", tool_calls=[tc])
    out = msg.to_dict()
    assert "content" not in out
    assert out["tool_calls"] == [tc.to_dict()]
    tool_msg = Message(role="tool", content="x", tool_call_id="c1", name="bash")
    assert tool_msg.to_dict()["tool_call_id"] == "c1"
    assert tool_msg.to_dict()["name"] == "bash"


def test_tool_call_round_trip():
    tc = ToolCallRequest(id="c9", name="read_file", arguments='{"path":"a"}')
    assert ToolCallRequest.from_dict(tc.to_dict()) == tc


def test_tool_call_wire_shape():
    tc = ToolCallRequest(id="c1", name="bash", arguments="{}")
    assert tc.to_dict()["function"] == {"name": "bash", "arguments": "{}"}
    assert tc.to_dict()["type"] == "function"


def test_tool_call_from_dict_tolerates_missing_fields():
    tc = ToolCallRequest.from_dict({})
    assert (tc.id, tc.name, tc.arguments) == ("", "", "")


def test_default_complete_delegates_to_complete_with_tools():
    p = _EchoProvider()
    assert p.complete(None, [Message(role="user", content="ping")]) == "ping"
    assert p.seen_tools is None


def test_complete_propagates_errors():
    with pytest.raises(ProviderError, match="boom"):
        _FailingProvider().complete(None, [Message(role="user", content="x")])


def test_complete_result_defaults_are_independent():
    a = CompleteResult()
    b = CompleteResult()
    a.tool_calls.append(ToolCallRequest(id="1"))
    a.usage.total_tokens = 5
    assert b.tool_calls == []
    assert b.usage.total_tokens == 0


def test_tool_def_parameters_default_none():
    assert ToolDef(name="bash").parameters is None