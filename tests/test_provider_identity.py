import pytest

from clawkit.provider.base import CompleteResult, Message, ModelMeta, Provider, ProviderError
from clawkit.provider.identity import wrap_identity


class _StubProvider(Provider):
    def __init__(self, result=None, err=None):
        self.result = result or CompleteResult()
        self.err = err

    def complete_with_tools(self, ctx, messages, tools):
        if self.err is not None:
            raise self.err
        return self.result


def test_wrap_identity_sets_model_key():
    inner = _StubProvider(CompleteResult(model=ModelMeta(model="gpt-4o-mini")))
    p = wrap_identity(inner, "task_model")
    res = p.complete_with_tools(None, None, None)
    assert res.model.model_key == "task_model"
    assert res.model.model == "gpt-4o-mini"


def test_wrap_identity_keeps_existing_key():
    inner = _StubProvider(CompleteResult(model=ModelMeta(model_key="inner_key", model="m")))
    res = wrap_identity(inner, "outer_key").complete_with_tools(None, [], None)
    assert res.model.model_key == "inner_key"


def test_wrap_identity_none():
    assert wrap_identity(None, "task_model") is None


def test_complete_returns_content():
    inner = _StubProvider(CompleteResult(content="hello"))
    assert wrap_identity(inner, "k").complete(None, [Message(role="user", content="x")]) == "hello"


def test_errors_propagate():
    p = wrap_identity(_StubProvider(err=ProviderError("status 500")), "k")
    with pytest.raises(ProviderError, match="status 500"):
        p.complete_with_tools(None, [], None)