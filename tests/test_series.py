"""Tests for map ids and series lineup validation."""

import copy

import pytest

from conftest import THEM, US
from tacboard.core.config import RosterConfig, RosterEntry
from tacboard.domains.series import (
    is_roster_match,
    map_display_name,
    normalize_map_id,
    validate_series_match,
)
from tacboard.pipeline.orchestrator import parse_match


@pytest.fixture
def match(two_round_log, roster_config):
    return parse_match(two_round_log, roster_config, id_factory=lambda: "m1", date="2024-01-01")


class TestMapIds:
    @pytest.mark.parametrize(
        "raw,expected",
        [("de_mirage", "mirage"), ("DE_Dust2 ", "dust2"), ("cs_office", "office"), (None, "unknown")],
    )
    def test_normalize(self, raw, expected):
        assert normalize_map_id(raw) == expected

    def test_display_name(self):
        assert map_display_name("de_dust2") == "Dust II"
        assert map_display_name("de_custom") == "de_custom"


class TestSeries:
    """Two matches belong together when both lineups overlap."""

    def test_same_lineups(self, match):
        result = validate_series_match(match, match)
        assert result.valid
        assert not result.swap_sides

    def test_swapped_lineups(self, match):
        swapped = copy.deepcopy(match)
        object.__setattr__(swapped, "players", match.enemy_players)
        object.__setattr__(swapped, "enemy_players", match.players)
        result = validate_series_match(match, swapped)
        assert result.valid
        assert result.swap_sides

    def test_one_stand_in_allowed(self, two_round_log, roster_config, match):
        data = copy.deepcopy(two_round_log)
        for record in data["events"]:
            for key in ("user_steamid", "attacker_steamid"):
                if record.get(key) == THEM[4]:
                    record[key] = "76561198000000077"
        other = parse_match(data, roster_config, id_factory=lambda: "m2", date="2024-01-02")
        assert validate_series_match(match, other).valid

    def test_different_lineups_rejected(self, match):
        stranger = copy.deepcopy(match)
        object.__setattr__(stranger, "enemy_players", [])
        result = validate_series_match(match, stranger)
        assert not result.valid
        assert "common players" in result.error

    def test_is_roster_match(self, match):
        assert is_roster_match(match, RosterConfig(players=[RosterEntry(id="alpha1")]))
        assert is_roster_match(match, RosterConfig(players=[RosterEntry(id=US[2])]))
        assert not is_roster_match(match, RosterConfig(players=[RosterEntry(id="nobody")]))
