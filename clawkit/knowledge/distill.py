"""Map-reduce distillation of conversation memory into experience documents."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Callable, Optional, Sequence, TypeVar

from clawkit.knowledge.score import extract_keywords, filter_relevant, format_batch_for_llm
from clawkit.knowledge.store import ExperienceStore
from clawkit.memory.store import Manager
from clawkit.memory.types import TurnSummary
from clawkit.provider.base import Message, Provider
from clawkit.provider.context import (
    HINT_SOURCE_DISTILL_REDUCE,
    CallContext,
    ModelHint,
    hint_source_distill_map,
    with_hint_source,
    with_model_hint,
)

MAX_CANDIDATES = 80
MAP_BATCH_SIZE = 10

ProgressFunc = Callable[[str], None]
T = TypeVar("T")

MAP_SYSTEM_PROMPT = """你是一个知识提炼助手。从提供的对话片段中，仅提取与指定主题直接相关的可复用经验要点。

规则：
- 仅输出与主题相关的 Markdown 无序列表（- 开头）。
- 每条要点言简意赅，去除个人隐私、一次性信息、无关内容。
- 如果该批次完全不包含与主题相关的信息，只输出一个词：NONE
- 不要输出其他任何文字、标题或解释。"""

REDUCE_SYSTEM_PROMPT = """你是一个知识整理专家。将提供的知识要点合并为一份结构化的 Markdown 经验文档。

规则：
- 使用 ## 分节，按逻辑关系分组。
- 去除重复内容，保留最具体、最有价值的表述。
- 删除一次性事实（如某次具体的错误堆栈）。
- 如有旧版经验，优先保留新版内容，但不丢失旧版中仍有价值的内容。
- 只输出 Markdown 正文，不要输出 # 一级标题（调用者统一添加）。"""


class DistillError(Exception):
    """Raised when distillation cannot produce an experience document."""


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def chunk_turns(turns: Sequence[T], size: int) -> list[list[T]]:
    """Split turns into consecutive chunks of at most size elements."""
    return [list(turns[i : i + size]) for i in range(0, len(turns), size)]


class Distiller:
    """Extracts topic knowledge from memory with the LLM and saves it to the store."""

    def __init__(self, llm: Provider, mem: Manager, store: ExperienceStore) -> None:
        self.llm = llm
        self.mem = mem
        self.store = store

    def distill(
        self,
        ctx: Optional[CallContext],
        topic: str,
        progress: Optional[ProgressFunc] = None,
    ) -> str:
        """Run the full pipeline for topic, save and return the new Markdown document."""
        report: ProgressFunc = progress or (lambda _msg: None)

        report("加载历史记忆…")
        try:
            turns = self._load_all_turns()
        except OSError as err:
            raise DistillError(f"distill: load turns: {err}") from err
        if not turns:
            raise DistillError("没有可用的历史记忆，请先与 AI 对话再提炼经验")

        report(f"关键词过滤 {len(turns)} 条记忆…")
        relevant = filter_relevant(turns, extract_keywords(topic), MAX_CANDIDATES)
        if not relevant:
            raise DistillError(f"历史记忆中未找到与 {_quote(topic)} 相关的内容，请先进行相关对话")

        map_ctx = with_model_hint(ctx, ModelHint.SUMMARY)
        chunks = chunk_turns(relevant, MAP_BATCH_SIZE)
        map_results: list[str] = []
        for i, chunk in enumerate(chunks):
            report(f"Map {i + 1}/{len(chunks)} — 提炼知识片段…")
            batch_ctx = with_hint_source(map_ctx, hint_source_distill_map(i + 1, len(chunks)))
            try:
                result = self._map_batch(batch_ctx, topic, chunk)
            except Exception as err:
                raise DistillError(f"distill: map batch {i}: {err}") from err
            if result.strip() not in ("NONE", ""):
                map_results.append(result)
        if not map_results:
            raise DistillError(f"提炼结果为空：历史对话中没有足够的与 {_quote(topic)} 相关的信息")

        report("Reduce — 整合并去重…")
        try:
            existing = self.store.load(topic)
        except OSError:
            existing = ""
        reduce_ctx = with_hint_source(
            with_model_hint(ctx, ModelHint.SUMMARY), HINT_SOURCE_DISTILL_REDUCE
        )
        try:
            final = self._reduce(reduce_ctx, topic, map_results, existing)
        except Exception as err:
            raise DistillError(f"distill: reduce: {err}") from err

        header = f"# {topic}\n\n> 最后更新: {datetime.now():%Y-%m-%d %H:%M}\n\n"
        content = header + final
        report("保存经验库…")
        try:
            self.store.save(topic, content)
        except OSError as err:
            raise DistillError(f"distill: save: {err}") from err
        return content

    def _load_all_turns(self) -> list[TurnSummary]:
        turns: list[TurnSummary] = []
        for key in self.mem.all_sessions():
            try:
                turns.extend(self.mem.for_session(key).load_recent(0))
            except OSError:
                continue
        return turns

    def _map_batch(self, ctx: CallContext, topic: str, turns: Sequence[TurnSummary]) -> str:
        user_msg = f"主题: {topic}\n\n对话片段:\n{format_batch_for_llm(turns)}"
        return self.llm.complete(
            ctx,
            [Message(role="system", content=MAP_SYSTEM_PROMPT), Message(role="user", content=user_msg)],
        )

    def _reduce(
        self, ctx: CallContext, topic: str, map_results: Sequence[str], existing: str
    ) -> str:
        parts = [f"主题: {topic}\n\n## 新提炼的要点\n\n"]
        parts.extend(f"{r}\n" for r in map_results)
        if existing:
            parts.append(f"\n## 现有经验（请在整合时参考）\n\n{existing}\n")
        return self.llm.complete(
            ctx,
            [
                Message(role="system", content=REDUCE_SYSTEM_PROMPT),
                Message(role="user", content="".join(parts)),
            ],
        )