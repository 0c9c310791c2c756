"""File-based store of Markdown experience documents, one per topic."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Union

PathLike = Union[str, "os.PathLike[str]"]


@dataclass
class ExperienceMeta:
    """Display metadata of one experience file."""

    topic: str
    filename: str
    size: int
    updated_at: datetime


class ExperienceStore:
    """Stores experience files as {safe_topic}.md under one directory."""

    def __init__(self, directory: PathLike) -> None:
        self.directory = Path(directory)

    def safe_name(self, topic: str) -> str:
        """Filename stem for topic: lower case, separators as '_', other punctuation dropped."""
        topic = topic.strip().strip("\"'")
        chars: list[str] = []
        for ch in topic.lower():
            if ch in " -/\\":
                chars.append("_")
            elif ch.isalpha() or ch.isdecimal() or ch in "_.":
                chars.append(ch)
        name = "".join(chars).strip("_")
        return name or "unnamed"

    def path(self, topic: str) -> Path:
        """Full file path for topic."""
        return self.directory / f"{self.safe_name(topic)}.md"

    def exists(self, topic: str) -> bool:
        """Whether an experience file for topic exists."""
        return self.path(topic).exists()

    def load(self, topic: str) -> str:
        """Markdown content for topic, or an empty string when there is none."""
        try:
            return self.path(topic).read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def save(self, topic: str, content: str) -> None:
        """Atomically write content as the experience file for topic."""
        self.directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        path = self.path(topic)
        tmp = path.with_name(path.name + ".tmp")
        fd = os.open(tmp, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        try:
            os.replace(tmp, path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def delete(self, topic: str) -> None:
        """Remove the experience file for topic; a missing file is not an error."""
        self.path(topic).unlink(missing_ok=True)

    def list_experiences(self) -> list[ExperienceMeta]:
        """Metadata of all stored experience files, sorted by topic."""
        try:
            entries = list(self.directory.iterdir())
        except FileNotFoundError:
            return []
        out: list[ExperienceMeta] = []
        for entry in entries:
            if not entry.name.endswith(".md") or entry.is_dir():
                continue
            try:
                info = entry.stat()
            except OSError:
                continue
            out.append(
                ExperienceMeta(
                    topic=entry.name[: -len(".md")],
                    filename=entry.name,
                    size=info.st_size,
                    updated_at=datetime.fromtimestamp(info.st_mtime).astimezone(),
                )
            )
        out.sort(key=lambda meta: meta.topic)
        return out