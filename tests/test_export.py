"""Tests for match export."""

import json

import pandas as pd
import pytest

from tacboard.export import (
    SCOREBOARD_COLUMNS,
    export_match,
    export_scoreboard_csv,
    export_to_json,
    rounds_frame,
    scoreboard_frame,
)
from tacboard.pipeline.orchestrator import parse_match


@pytest.fixture
def match(two_round_log, roster_config):
    return parse_match(two_round_log, roster_config, id_factory=lambda: "m1", date="2024-01-01")


class TestFrames:
    def test_scoreboard_frame(self, match):
        frame = scoreboard_frame(match)
        assert list(frame.columns) == SCOREBOARD_COLUMNS
        assert len(frame) == 10
        assert (frame["team"] == "us").sum() == 5
        assert (frame["kd_diff"] == frame["kills"] - frame["deaths"]).all()

    def test_rounds_frame(self, match):
        frame = rounds_frame(match)
        assert set(frame["round"]) == {1, 2}
        assert len(frame) == sum(len(r.players) for r in match.rounds)
        assert frame.groupby("round")["wpa"].sum().abs().max() == pytest.approx(0.0, abs=1e-6)


class TestExport:
    def test_json_round_trips_to_dict(self, match, tmp_path):
        path = tmp_path / "match.json"
        text = export_to_json(match, path)
        assert json.loads(path.read_text(encoding="utf-8")) == json.loads(text)
        assert json.loads(text)["id"] == "m1"

    def test_json_metadata(self, match):
        data = json.loads(export_to_json(match, include_metadata=True))
        assert data["_metadata"]["format"] == "tacboard_json"

    def test_csv(self, match, tmp_path):
        path = tmp_path / "board.csv"
        export_scoreboard_csv(match, path, delimiter=";")
        frame = pd.read_csv(path, sep=";", dtype={"steamid": str})
        assert list(frame.columns) == SCOREBOARD_COLUMNS
        assert set(frame["steamid"]) == {p.steamid for p in [*match.players, *match.enemy_players]}

    def test_format_from_suffix(self, match, tmp_path):
        export_match(match, tmp_path / "out.csv")
        assert (tmp_path / "out.csv").read_text(encoding="utf-8").startswith("team,")

    def test_unsupported_format(self, match, tmp_path):
        with pytest.raises(ValueError, match="Unsupported export format"):
            export_match(match, tmp_path / "out.xml")
