import json
from datetime import datetime

import pytest

from clawkit.provider.base import (
    CompleteResult,
    Message,
    ModelMeta,
    Provider,
    ProviderError,
    Usage,
)
from clawkit.provider.context import (
    ModelHint,
    hint_source_agent_loop,
    with_hint_source,
    with_model_hint,
)
from clawkit.provider.metrics import MetricsProvider, MetricsRecord, wrap_metrics


class StubProvider(Provider):
    def __init__(self, result=None, error=None):
        self.result = result or CompleteResult()
        self.error = error

    def complete_with_tools(self, ctx, messages, tools):
        if self.error is not None:
            raise self.error
        return self.result


MSGS = [Message(role="user", content="hi")]


def read_records(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_record_omits_empty_optional_fields():
    data = MetricsRecord(at="now", hint="task").to_dict()
    for key in ("source", "model_key", "model", "is_error"):
        assert key not in data
    for key in ("prompt_tokens", "completion_tokens", "total_tokens", "latency_ms", "stop_reason"):
        assert key in data


def test_record_includes_set_optional_fields():
    rec = MetricsRecord(at="now", hint="router", source="s", model_key="k", model="m", is_error=True)
    data = rec.to_dict()
    assert data["source"] == "s"
    assert data["model_key"] == "k"
    assert data["model"] == "m"
    assert data["is_error"] is True


def test_wrap_metrics_unopenable_returns_inner(tmp_path, capsys):
    inner = StubProvider()
    assert wrap_metrics(inner, tmp_path) is inner
    assert "metrics provider: cannot open" in capsys.readouterr().err


def test_successful_call_is_recorded(tmp_path):
    path = tmp_path / "logs" / "metrics.jsonl"
    result = CompleteResult(
        content="ok",
        stop_reason="stop",
        usage=Usage(prompt_tokens=10, completion_tokens=20, total_tokens=30),
        model=ModelMeta(model_key="task_model", model="gpt-4o"),
    )
    provider = wrap_metrics(StubProvider(result), path)
    assert isinstance(provider, MetricsProvider)
    ctx = with_hint_source(None, hint_source_agent_loop(0))
    got = provider.complete_with_tools(ctx, MSGS, None)
    provider.close()
    assert got == result
    [rec] = read_records(path)
    assert rec["hint"] == "task"
    assert rec["source"] == "agent/loop[i=0]"
    assert rec["model_key"] == "task_model"
    assert rec["model"] == "gpt-4o"
    assert rec["prompt_tokens"] == 10
    assert rec["total_tokens"] == 30
    assert rec["stop_reason"] == "stop"
    assert "is_error" not in rec
    datetime.strptime(rec["at"], "%Y-%m-%dT%H:%M:%SZ")


def test_failed_call_is_recorded_and_raised(tmp_path):
    path = tmp_path / "metrics.jsonl"
    provider = wrap_metrics(StubProvider(error=ProviderError("status 500")), path)
    ctx = with_model_hint(None, ModelHint.THINKING)
    with pytest.raises(ProviderError):
        provider.complete_with_tools(ctx, MSGS, None)
    provider.close()
    [rec] = read_records(path)
    assert rec["is_error"] is True
    assert rec["hint"] == "thinking"
    assert rec["total_tokens"] == 0


def test_each_call_appends_a_line(tmp_path):
    path = tmp_path / "metrics.jsonl"
    provider = wrap_metrics(StubProvider(CompleteResult(content="ok")), path)
    assert provider.complete(None, MSGS) == "ok"
    provider.complete(None, MSGS)
    provider.close()
    assert len(read_records(path)) == 2