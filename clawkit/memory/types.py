"""Compact per-turn memory records and their JSON form."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_TIME_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


def _format_time(at: datetime) -> str:
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    base = (
        f"{at.year:04d}-{at.month:02d}-{at.day:02d}"
        f"T{at.hour:02d}:{at.minute:02d}:{at.second:02d}"
    )
    frac = f".{at.microsecond:06d}".rstrip("0") if at.microsecond else ""
    offset = at.utcoffset() or timedelta(0)
    total = int(offset.total_seconds())
    if total == 0:
        zone = "Z"
    else:
        sign = "+" if total > 0 else "-"
        hours, minutes = divmod(abs(total) // 60, 60)
        zone = f"{sign}{hours:02d}:{minutes:02d}"
    return base + frac + zone


def _parse_time(text: Any) -> datetime:
    match = _TIME_RE.match(text) if isinstance(text, str) else None
    if match is None:
        raise ValueError(f"memory: invalid timestamp {text!r}")
    year, month, day, hour, minute, second, frac, zone = match.groups()
    micro = int((frac or "0")[:6].ljust(6, "0"))
    if zone.upper() == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


@dataclass
class Action:
    """One tool invocation in compact, human-readable form."""

    tool: str
    summary: str
    path: str = ""
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation, omitting empty optional fields."""
        out: dict[str, Any] = {"tool": self.tool, "s": self.summary}
        if self.path:
            out["path"] = self.path
        if self.is_error:
            out["err"] = True
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Action":
        """Build an Action from its JSON representation."""
        return cls(
            tool=str(data.get("tool") or ""),
            summary=str(data.get("s") or ""),
            path=str(data.get("path") or ""),
            is_error=bool(data.get("err", False)),
        )


@dataclass
class TurnSummary:
    """The compact record written for one completed conversation turn."""

    n: int = 0
    at: datetime = field(default_factory=lambda: _ZERO_TIME)
    user: str = ""
    reply: str = ""
    actions: list[Action] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    iters: int = 0
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation, omitting empty optional fields."""
        out: dict[str, Any] = {
            "n": self.n,
            "at": _format_time(self.at),
            "user": self.user,
            "reply": self.reply,
        }
        if self.actions:
            out["actions"] = [a.to_dict() for a in self.actions]
        if self.files:
            out["files"] = list(self.files)
        if self.iters:
            out["iters"] = self.iters
        if self.is_error:
            out["err"] = True
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TurnSummary":
        """Build a TurnSummary from JSON; raises ValueError on a bad timestamp."""
        raw_at = data.get("at")
        return cls(
            n=int(data.get("n") or 0),
            at=_ZERO_TIME if raw_at is None else _parse_time(raw_at),
            user=str(data.get("user") or ""),
            reply=str(data.get("reply") or ""),
            actions=[Action.from_dict(a) for a in data.get("actions") or []],
            files=[str(f) for f in data.get("files") or []],
            iters=int(data.get("iters") or 0),
            is_error=bool(data.get("err", False)),
        )