"""Canonical filesystem locations for persistent data."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def data() -> Path:
    """Root data directory: $OPENCLAW_STATE_DIR, else ~/.claw."""
    override = os.environ.get("OPENCLAW_STATE_DIR")
    if override:
        return Path(override)
    try:
        return Path.home() / ".claw"
    except RuntimeError:
        return Path(tempfile.gettempdir()) / "claw"


def sessions() -> Path:
    """Directory of per-conversation JSON files."""
    return data() / "sessions"


def logs() -> Path:
    """Directory of daemon log files."""
    return data() / "logs"


def log_file() -> Path:
    """Main daemon log file."""
    return logs() / "claw-go.log"


def debug_log_file() -> Path:
    """LLM debug trace file."""
    return logs() / "llm_debug.log"


def metrics_file() -> Path:
    """JSONL file of LLM call metrics."""
    return logs() / "llm_metrics.jsonl"


def quota_state_file() -> Path:
    """Local LLM quota state file."""
    return logs() / "llm_quota_state.json"


def history() -> Path:
    """Interactive input history file."""
    return data() / "history"


def config_file() -> Path:
    """Default config file inside the data directory."""
    return data() / "config.yaml"


def socket_path() -> Path:
    """Default Unix socket path, preferring $XDG_RUNTIME_DIR."""
    runtime = os.environ.get("XDG_RUNTIME_DIR")
    if runtime:
        return Path(runtime) / "claw-go.sock"
    return data() / "claw-go.sock"


def memory_dir() -> Path:
    """Root of per-session memory stores."""
    return data() / "data" / "memory"


def experiences_dir() -> Path:
    """Directory of per-topic experience Markdown files."""
    return data() / "data" / "experiences"


def mkdir_all() -> None:
    """Create every data subdirectory; raises OSError on failure."""
    for directory in (sessions(), logs(), memory_dir(), experiences_dir()):
        directory.mkdir(mode=0o700, parents=True, exist_ok=True)