"""Local keyword scoring used to pick memory turns relevant to a topic."""

from __future__ import annotations

from typing import Iterable, Sequence

from clawkit.memory.types import TurnSummary

SYNONYMS: dict[str, list[str]] = {
    "linux": ["kernel", "bash", "shell", "unix", "posix"],
    "docker": ["container", "compose", "image", "dockerfile"],
    "git": ["commit", "branch", "merge", "rebase", "push", "pull"],
    "python": ["pip", "venv", "django", "flask", "pytest"],
    "sql": ["database", "query", "table", "index", "postgres", "mysql"],
    "nginx": ["proxy", "upstream", "config", "server", "location"],
    "k8s": ["kubernetes", "pod", "deployment", "service", "ingress"],
    "network": ["tcp", "udp", "http", "dns", "ip", "port"],
    "c++": ["cpp", "template", "stl", "pointer", "class", "object", "编译"],
    "cpp": ["c++", "template", "stl", "pointer", "class"],
    "rust": ["cargo", "borrow", "lifetime", "trait", "unsafe"],
    "java": ["jvm", "spring", "maven", "gradle", "class"],
    "开发": ["程序", "代码", "编程", "实现", "项目"],
    "编程": ["开发", "代码", "程序", "实现"],
}

_SEPARATORS = frozenset(" \t\n\u3000")


def _is_cjk(ch: str) -> bool:
    cp = ord(ch)
    return (
        0x4E00 <= cp <= 0x9FFF
        or 0x3400 <= cp <= 0x4DBF
        or 0xF900 <= cp <= 0xFAFF
        or 0x3000 <= cp <= 0x303F
    )


def tokenize(s: str) -> list[str]:
    """Lower-case s and split it at whitespace and at ASCII/CJK boundaries."""
    tokens: list[str] = []
    current: list[str] = []
    last_cjk = False

    def flush() -> None:
        token = "".join(current).strip()
        if token:
            tokens.append(token)
        current.clear()

    for ch in s.lower():
        if ch in _SEPARATORS:
            flush()
            last_cjk = False
            continue
        cjk = _is_cjk(ch)
        if current and cjk != last_cjk:
            flush()
        current.append(ch)
        last_cjk = cjk
    flush()
    return tokens


def topic_tokens(topic: str) -> list[str]:
    """Raw topic tokens without synonyms, dropping single ASCII characters."""
    return [w for w in tokenize(topic) if not (len(w) == 1 and ord(w) < 0x80)]


def extract_keywords(topic: str) -> list[str]:
    """De-duplicated lower-case keywords for topic, including synonym expansions."""
    seen: set[str] = set()
    out: list[str] = []

    def add(word: str) -> None:
        if word not in seen:
            seen.add(word)
            out.append(word)

    for word in tokenize(topic):
        add(word)
        for synonym in SYNONYMS.get(word, ()):
            add(synonym)
    return out


def score_turn(turn: TurnSummary, keywords: Iterable[str]) -> int:
    """Total keyword occurrences across the text fields of turn."""
    parts = [turn.user, turn.reply]
    for action in turn.actions:
        parts.extend((action.tool, action.summary))
    haystack = " ".join(parts).lower()
    return sum(haystack.count(kw) for kw in keywords)


def filter_relevant(
    turns: Iterable[TurnSummary], keywords: Sequence[str], max_results: int
) -> list[TurnSummary]:
    """Turns with at least one keyword hit, most relevant first.

    At most max_results are returned; all matches when max_results <= 0.
    """
    scored = [(score_turn(t, keywords), t) for t in turns]
    scored = [item for item in scored if item[0] > 0]
    scored.sort(key=lambda item: item[0], reverse=True)
    if max_results > 0:
        scored = scored[:max_results]
    return [t for _, t in scored]


def format_batch_for_llm(turns: Iterable[TurnSummary]) -> str:
    """Render turns as compact plain text for a map prompt."""
    lines: list[str] = []
    for i, turn in enumerate(turns, 1):
        lines.append(f"\n--- Turn {i:03d} ---\n")
        lines.append(f"User: {turn.user}\n")
        if turn.reply:
            lines.append(f"Assistant: {turn.reply}\n")
        for action in turn.actions:
            lines.append(f"  Tool[{action.tool}]: {action.summary}\n")
    return "".join(lines)