import json
from datetime import datetime, timedelta, timezone

import pytest

from clawkit.memory.types import Action, TurnSummary


def test_action_wire_keys_and_omission():
    data = Action(tool="bash", summary="bash: `ls`  [ok]").to_dict()
    assert data == {"tool": "bash", "s": "bash: `ls`  [ok]"}


def test_action_round_trip_with_optional_fields():
    action = Action(tool="write_file", summary="wrote", path="/tmp/a.txt", is_error=True)
    data = action.to_dict()
    assert data["path"] == "/tmp/a.txt"
    assert data["err"] is True
    assert Action.from_dict(data) == action


def test_turn_summary_round_trip_through_json():
    turn = TurnSummary(
        n=3,
        at=datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc),
        user="question",
        reply="answer",
        actions=[Action(tool="read_file", summary="read x", path="x")],
        files=["x"],
        iters=2,
        is_error=True,
    )
    restored = TurnSummary.from_dict(json.loads(json.dumps(turn.to_dict())))
    assert restored == turn


def test_turn_summary_omits_empty_optional_fields():
    data = TurnSummary(n=1, user="u", reply="r").to_dict()
    for key in ("actions", "files", "iters", "err"):
        assert key not in data
    assert data["user"] == "u"
    assert data["reply"] == "r"


def test_timestamp_format_whole_seconds():
    turn = TurnSummary(at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
    assert turn.to_dict()["at"] == "2024-01-02T03:04:05Z"


def test_timestamp_fraction_trailing_zeros_trimmed():
    turn = TurnSummary(at=datetime(2024, 1, 2, 3, 4, 5, 500000, tzinfo=timezone.utc))
    assert turn.to_dict()["at"].endswith(".5Z")


def test_nanosecond_timestamp_truncated_to_microseconds():
    turn = TurnSummary.from_dict({"at": "2024-01-02T03:04:05.123456789Z"})
    assert turn.at.microsecond == 123456
    assert turn.at.utcoffset() == timedelta(0)


def test_offset_timestamp_round_trips():
    text = "2024-01-02T03:04:05+08:00"
    turn = TurnSummary.from_dict({"at": text})
    assert turn.at.utcoffset() == timedelta(hours=8)
    assert turn.to_dict()["at"] == text


def test_missing_timestamp_is_zero_time():
    assert TurnSummary.from_dict({"user": "u"}).at == TurnSummary().at


def test_bad_timestamp_raises():
    with pytest.raises(ValueError):
        TurnSummary.from_dict({"at": "yesterday"})