"""Tests for team/side resolution."""

import pytest

from tacboard.core.constants import Side
from tacboard.domains.roster import (
    RosterEvidence,
    TeamSideResolver,
    determine_starting_side,
    first_five,
    identify_roster,
    largest_team_group,
    numeric_team_majority,
    propagate_interactions,
    roster_name_match,
    steamid_loose_equal,
)
from tacboard.parsing.events import Defuse, Kill, MatchStart, Plant, RoundEnd
from tacboard.parsing.normalizer import EventNormalizer, NameResolver

TEN = [str(i) for i in range(1, 11)]


def _evidence(team_ids=None, names=None, resolver=None, active=TEN):
    return RosterEvidence(
        active=list(active),
        names=names or {},
        team_ids=team_ids or {},
        resolver=resolver or NameResolver(),
    )


class TestRosterStrategies:
    """Each strategy is a pure function of the evidence."""

    def test_roster_name_match_pulls_in_teammates(self, roster_config):
        resolver = NameResolver(roster_config.roster)
        evidence = _evidence(
            names={"1": "alpha1", "6": "bravo1"},
            team_ids={"1": 3, "2": 3, "6": 2},
            resolver=resolver,
        )
        assert roster_name_match(evidence) == {"1", "2"}

    def test_roster_name_match_without_roster(self):
        assert roster_name_match(_evidence(names={"1": "x"})) is None

    def test_numeric_team_majority_picks_lowest_full_team(self):
        team_ids = {i: (2 if int(i) <= 5 else 3) for i in TEN}
        assert numeric_team_majority(_evidence(team_ids=team_ids)) == {"1", "2", "3", "4", "5"}

    def test_numeric_team_majority_needs_ten_players(self):
        assert numeric_team_majority(_evidence(active=TEN[:9])) is None

    def test_largest_team_group(self):
        team_ids = {i: (2 if int(i) <= 6 else 3) for i in TEN}
        assert largest_team_group(_evidence(team_ids=team_ids)) == {"1", "2", "3", "4", "5", "6"}

    def test_first_five_is_sorted(self):
        assert first_five(_evidence()) == {"1", "10", "2", "3", "4"}

    def test_chain_reports_strategy(self):
        members, strategy = identify_roster(_evidence())
        assert strategy == "first_five"
        assert len(members) == 5

    def test_chain_can_come_up_empty(self):
        members, strategy = identify_roster(_evidence(active=["1", "2"]))
        assert members == set()
        assert strategy is None


class TestPropagation:
    """Kill-based membership repair."""

    def test_killer_of_friend_is_enemy(self):
        kills = [Kill(tick=1, victim="a", attacker="x")]
        friends, enemies = propagate_interactions({"a"}, kills)
        assert enemies == {"x"}

    def test_victim_of_enemy_becomes_friend_transitively(self):
        kills = [
            Kill(tick=1, victim="a", attacker="x"),
            Kill(tick=2, victim="b", attacker="x"),
        ]
        friends, enemies = propagate_interactions({"a"}, kills)
        assert friends == {"a", "b"}
        assert enemies == {"x"}

    def test_suicides_ignored(self):
        friends, enemies = propagate_interactions({"a"}, [Kill(tick=1, victim="a", attacker="a")])
        assert friends == {"a"}
        assert enemies == set()


class TestSteamIdMatching:
    def test_loose_equal_on_prefix(self):
        assert steamid_loose_equal("76561198000000001", "76561198000000099")
        assert not steamid_loose_equal("123", "124")
        assert not steamid_loose_equal(None, "1")

    def test_numeric_team_falls_back_to_listed_number(self):
        evidence = RosterEvidence(
            active=["76561198012345600"],
            names={},
            team_ids={},
            listed_team_numbers={"76561198012345678": "3"},
        )
        assert evidence.numeric_team("76561198012345600") == "3"


class TestStartingSide:
    """Weighted side evidence per half."""

    def test_defuse_means_ct(self):
        events = [Defuse(tick=10, owner="a")]
        assert determine_starting_side(events, {"a"}) == Side.CT

    def test_objective_outweighs_weapons(self):
        events = [Kill(tick=i, victim="x", attacker="a", weapon="m4a1") for i in range(5)]
        events.append(Plant(tick=20, owner="a"))
        assert determine_starting_side(events, {"a"}) == Side.T

    def test_second_half_evidence_is_inverted(self):
        events = [RoundEnd(tick=i, winner=Side.T) for i in range(12)]
        events.append(Plant(tick=100, owner="a"))
        assert determine_starting_side(events, {"a"}) == Side.CT

    def test_evidence_before_match_start_is_discarded(self):
        events = [Plant(tick=1, owner="a"), MatchStart(tick=5), Defuse(tick=10, owner="a")]
        assert determine_starting_side(events, {"a"}) == Side.CT

    def test_no_evidence_defaults_to_t(self):
        assert determine_starting_side([], {"a"}) == Side.T


class TestTeamSideResolver:
    def test_resolves_two_round_log(self, two_round_log, roster_config):
        demo = EventNormalizer().normalize(two_round_log)
        resolution = TeamSideResolver(NameResolver(roster_config.roster)).resolve(demo)

        us = {p["steamid"] for p in two_round_log["players"][:5]}
        them = {p["steamid"] for p in two_round_log["players"][5:]}
        assert resolution.roster == us
        assert resolution.enemies <= them
        assert resolution.starting_side == Side.CT
        assert resolution.strategy == "roster_name_match"

    @pytest.mark.parametrize("round_num,expected", [(1, Side.CT), (12, Side.CT), (13, Side.T)])
    def test_roster_side_swaps_after_half(self, two_round_log, roster_config, round_num, expected):
        demo = EventNormalizer().normalize(two_round_log)
        resolution = TeamSideResolver(NameResolver(roster_config.roster)).resolve(demo)
        assert resolution.roster_side(round_num) == expected
