from datetime import datetime, timezone

import pytest

from clawkit.knowledge.distill import DistillError, Distiller, chunk_turns
from clawkit.knowledge.store import ExperienceStore
from clawkit.memory.store import Manager
from clawkit.memory.types import TurnSummary
from clawkit.provider.base import CompleteResult, Provider, ProviderError
from clawkit.provider.context import ModelHint


class ScriptedProvider(Provider):
    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    def complete_with_tools(self, ctx, messages, tools):
        self.calls.append((ctx, list(messages)))
        if self.error is not None:
            raise self.error
        return CompleteResult(content=self.replies.pop(0))


@pytest.fixture
def env(tmp_path):
    mem = Manager(tmp_path / "memory")
    store = ExperienceStore(tmp_path / "experiences")
    return mem, store


def _save(mem, session, *users):
    st = mem.for_session(session)
    for i, user in enumerate(users, 1):
        st.save_turn(TurnSummary(n=i, at=datetime(2024, 5, 1, tzinfo=timezone.utc), user=user))


def test_chunk_turns_sizes_and_order():
    items = list(range(25))
    chunks = chunk_turns(items, 10)
    assert [len(c) for c in chunks] == [10, 10, 5]
    assert [x for c in chunks for x in c] == items
    assert chunk_turns([], 10) == []


def test_distill_without_memory_fails(env):
    mem, store = env
    with pytest.raises(DistillError, match="没有可用的历史记忆"):
        Distiller(ScriptedProvider(), mem, store).distill(None, "docker")


def test_distill_without_relevant_turns_fails(env):
    mem, store = env
    _save(mem, "main", "hello world")
    llm = ScriptedProvider()
    with pytest.raises(DistillError, match="未找到"):
        Distiller(llm, mem, store).distill(None, "docker")
    assert llm.calls == []


def test_distill_all_none_fails(env):
    mem, store = env
    _save(mem, "main", "docker run")
    with pytest.raises(DistillError, match="提炼结果为空"):
        Distiller(ScriptedProvider(["  NONE \n"]), mem, store).distill(None, "docker")
    assert store.exists("docker") is False


def test_distill_map_error_is_wrapped(env):
    mem, store = env
    _save(mem, "main", "docker run")
    boom = ProviderError("status 500")
    with pytest.raises(DistillError, match="map batch 0") as info:
        Distiller(ScriptedProvider(error=boom), mem, store).distill(None, "docker")
    assert info.value.__cause__ is boom


def test_distill_success_saves_document(env):
    mem, store = env
    _save(mem, "main", "docker compose up", "unrelated")
    _save(mem, "work", "docker image prune")
    llm = ScriptedProvider(["- use compose", "## Tips\n- prune images"])
    messages = []
    content = Distiller(llm, mem, store).distill(None, "Docker", messages.append)

    assert content.startswith("# Docker\n\n> 最后更新: ")
    assert content.endswith("## Tips\n- prune images")
    assert store.load("Docker") == content
    assert messages[0] == "加载历史记忆…"
    assert messages[-1] == "保存经验库…"

    (map_ctx, map_msgs), (reduce_ctx, reduce_msgs) = llm.calls
    assert map_ctx.hint is ModelHint.SUMMARY
    assert map_ctx.source == "distill/map[1/1]"
    assert "docker compose up" in map_msgs[1].content
    assert "unrelated" not in map_msgs[1].content
    assert reduce_ctx.hint is ModelHint.SUMMARY
    assert reduce_ctx.source == "distill/reduce"
    assert "- use compose" in reduce_msgs[1].content
    assert "现有经验" not in reduce_msgs[1].content


def test_distill_includes_existing_experience(env):
    mem, store = env
    _save(mem, "main", "git rebase")
    store.save("git", "old knowledge")
    llm = ScriptedProvider(["- rebase often", "merged"])
    Distiller(llm, mem, store).distill(None, "git")
    reduce_user = llm.calls[1][1][1].content
    assert "现有经验" in reduce_user
    assert "old knowledge" in reduce_user
    assert store.load("git").endswith("merged")


def test_distill_batches_map_calls(env):
    mem, store = env
    _save(mem, "main", *[f"rust cargo {i}" for i in range(12)])
    llm = ScriptedProvider(["- a", "NONE", "final"])
    Distiller(llm, mem, store).distill(None, "rust")
    sources = [ctx.source for ctx, _ in llm.calls]
    assert sources == ["distill/map[1/2]", "distill/map[2/2]", "distill/reduce"]
    assert "- a" in llm.calls[2][1][1].content