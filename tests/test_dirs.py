from pathlib import Path

import pytest

from clawkit import dirs


@pytest.fixture
def state_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("OPENCLAW_STATE_DIR", str(tmp_path))
    monkeypatch.delenv("XDG_RUNTIME_DIR", raising=False)
    return tmp_path


def test_data_uses_env_override(state_dir):
    assert dirs.data() == state_dir


def test_data_defaults_to_home(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENCLAW_STATE_DIR", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    assert dirs.data() == tmp_path / ".claw"


def test_layout_under_data(state_dir):
    assert dirs.sessions() == state_dir / "sessions"
    assert dirs.logs() == state_dir / "logs"
    assert dirs.history() == state_dir / "history"
    assert dirs.config_file() == state_dir / "config.yaml"
    assert dirs.memory_dir() == state_dir / "data" / "memory"
    assert dirs.experiences_dir() == state_dir / "data" / "experiences"


def test_log_files_live_in_logs(state_dir):
    for path in (dirs.log_file(), dirs.debug_log_file(), dirs.metrics_file(), dirs.quota_state_file()):
        assert path.parent == dirs.logs()
    assert dirs.log_file().name == "claw-go.log"
    assert dirs.metrics_file().name == "llm_metrics.jsonl"


def test_socket_path_prefers_runtime_dir(state_dir, tmp_path_factory, monkeypatch):
    runtime = tmp_path_factory.mktemp("run")
    monkeypatch.setenv("XDG_RUNTIME_DIR", str(runtime))
    assert dirs.socket_path() == Path(runtime) / "claw-go.sock"


def test_socket_path_falls_back_to_data(state_dir):
    assert dirs.socket_path() == state_dir / "claw-go.sock"


def test_mkdir_all_creates_directories(state_dir):
    dirs.mkdir_all()
    for directory in (dirs.sessions(), dirs.logs(), dirs.memory_dir(), dirs.experiences_dir()):
        assert directory.is_dir()
    dirs.mkdir_all()
    assert dirs.sessions().is_dir()


def test_mkdir_all_raises_when_blocked(tmp_path, monkeypatch):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    monkeypatch.setenv("OPENCLAW_STATE_DIR", str(blocker))
    with pytest.raises(OSError):
        dirs.mkdir_all()