"""
Contract tests: Match.to_dict() must keep the persisted shape.

If one of these fails, either the model or MATCH_CONTRACT changed without
the other.
"""

import pytest

from tacboard.pipeline.contract import (
    MATCH_CONTRACT,
    PLAYER_CONTRACT,
    validate_match,
    validate_player,
    validate_round,
)
from tacboard.pipeline.orchestrator import parse_match


@pytest.fixture
def result(two_round_log, roster_config):
    match = parse_match(two_round_log, roster_config, id_factory=lambda: "m1", date="2024-01-01")
    return match.to_dict()


class TestMatchContract:
    def test_parsed_match_satisfies_contract(self, result):
        assert validate_match(result) == []

    def test_every_top_level_key_present(self, result):
        assert set(MATCH_CONTRACT) <= set(result)

    def test_players_carry_every_contract_key(self, result):
        for player in result["players"] + result["enemyPlayers"]:
            assert set(PLAYER_CONTRACT) <= set(player)

    def test_round_player_stats_keyed_by_steamid(self, result):
        for round_data in result["rounds"]:
            for sid, stats in round_data["playerStats"].items():
                assert stats["steamid"] == sid

    def test_empty_match_is_valid(self):
        match = parse_match([], id_factory=lambda: "empty", date="2024-01-01")
        assert validate_match(match.to_dict()) == []


class TestValidator:
    """The validator itself reports what is wrong and where."""

    def test_missing_key(self, result):
        del result["score"]["half2_us"]
        assert validate_match(result) == ["MISSING match.score.half2_us"]

    def test_wrong_type(self, result):
        result["players"][0]["kills"] = "3"
        errors = validate_match(result)
        assert len(errors) == 1
        assert errors[0].startswith("TYPE players[0].kills")

    def test_nested_round_errors_carry_path(self, result):
        round_data = result["rounds"][0]
        del round_data["timeline"][0]["tick"]
        assert validate_round(round_data) == ["MISSING round.timeline[0].tick"]

    def test_not_a_dict(self):
        assert validate_player([]) == ["player: expected dict, got list"]
