"""Append-only daily JSONL persistence of turn summaries, per session."""

from __future__ import annotations

import json
import os
import shutil
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

from clawkit.memory.types import TurnSummary

PathLike = Union[str, "os.PathLike[str]"]


def _day_of(at: datetime) -> str:
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.astimezone(timezone.utc).strftime("%Y-%m-%d")


class Store:
    """Turn-summary storage for one session: one YYYY-MM-DD.jsonl file per UTC day."""

    def __init__(self, base_dir: PathLike) -> None:
        self.base_dir = Path(base_dir)
        self._lock = threading.Lock()

    def save_turn(self, turn: TurnSummary) -> None:
        """Append turn to the file of its UTC date, creating the directory if needed."""
        line = json.dumps(turn.to_dict(), ensure_ascii=False, separators=(",", ":")) + "\n"
        path = self.base_dir / f"{_day_of(turn.at)}.jsonl"
        with self._lock:
            self.base_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd = os.open(path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o600)
            with os.fdopen(fd, "a", encoding="utf-8") as handle:
                handle.write(line)

    def load_recent(self, max_turns: int) -> list[TurnSummary]:
        """Up to max_turns most recent turns, oldest first; all when max_turns <= 0."""
        try:
            entries = list(self.base_dir.iterdir())
        except FileNotFoundError:
            return []
        files = sorted(
            (e for e in entries if e.name.endswith(".jsonl") and not e.is_dir()),
            key=lambda p: str(p),
        )
        turns: list[TurnSummary] = []
        for file in files:
            try:
                text = file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            for raw in text.split("\n"):
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    data = json.loads(raw)
                    turns.append(TurnSummary() if data is None else TurnSummary.from_dict(data))
                except (ValueError, TypeError, AttributeError):
                    continue
        if max_turns > 0 and len(turns) > max_turns:
            turns = turns[-max_turns:]
        return turns

    def list_days(self) -> list[str]:
        """Sorted UTC dates for which a JSONL file exists."""
        try:
            names = [e.name for e in self.base_dir.iterdir()]
        except FileNotFoundError:
            return []
        return sorted(n[: -len(".jsonl")] for n in names if n.endswith(".jsonl"))

    def today_path(self) -> Path:
        """Path of today's JSONL file; it may not exist yet."""
        return self.base_dir / f"{_day_of(datetime.now(timezone.utc))}.jsonl"


class Manager:
    """Hands out per-session Stores under a shared base directory."""

    def __init__(self, base_dir: PathLike) -> None:
        self.base_dir = Path(base_dir)

    def safe_name(self, session_key: str) -> str:
        """Filesystem-safe directory name for session_key, blocking path traversal."""
        safe = session_key.replace(os.sep, "_")
        return safe.replace("..", "__")

    def for_session(self, session_key: str) -> Store:
        """Store for session_key; no I/O is performed."""
        return Store(self.base_dir / self.safe_name(session_key))

    def delete_session(self, session_key: str) -> None:
        """Remove all memory files of session_key; a missing session is not an error."""
        directory = self.base_dir / self.safe_name(session_key)
        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            pass

    def clear_session(self, session_key: str) -> None:
        """Delete all memory of session_key; the directory returns on the next save."""
        self.delete_session(session_key)

    def all_sessions(self) -> list[str]:
        """Sorted names of sessions that have a memory directory."""
        try:
            entries = list(self.base_dir.iterdir())
        except FileNotFoundError:
            return []
        return sorted(e.name for e in entries if e.is_dir())