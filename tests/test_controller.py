"""End-to-end tests for the round lifecycle, driven through parse_match."""

import copy

import pytest

from conftest import US, THEM
from tacboard.core.constants import Side
from tacboard.parsing.normalizer import DemoFormatError
from tacboard.pipeline.controller import RoundLifecycleController, RoundPhase
from tacboard.pipeline.orchestrator import parse_match


def _parse(data, config=None):
    return parse_match(data, config=config, id_factory=lambda: "m1", date="2024-01-01")


def _insert(log, *records):
    data = copy.deepcopy(log)
    data["events"].extend(records)
    return data


def _by_steamid(match, steamid):
    for player in [*match.players, *match.enemy_players]:
        if player.steamid == steamid:
            return player
    raise KeyError(steamid)


class TestTwoRoundMatch:
    """The shared two-round log, start to finish."""

    @pytest.fixture
    def match(self, two_round_log, roster_config):
        return _parse(two_round_log, roster_config)

    def test_score_and_halves(self, match):
        assert match.score.us == 1
        assert match.score.them == 1
        assert match.score.half1_us + match.score.half1_them == len(match.rounds)
        assert match.score.half2_us == match.score.half2_them == 0
        assert match.result == "TIE"

    def test_metadata(self, match):
        assert match.id == "m1"
        assert match.date == "2024-01-01"
        assert match.map_id == "mirage"
        assert match.server == "Test Server"
        assert match.starting_side == Side.CT

    def test_rounds(self, match):
        first, second = match.rounds
        assert (first.number, first.winner, first.reason) == (1, Side.CT, 7)
        assert (second.number, second.winner, second.reason) == (2, Side.T, 9)
        # Anchored on freeze end
        assert first.duration == pytest.approx(round((1510 - 100) / 64, 2))

    def test_teams_split_by_roster(self, match):
        assert {p.steamid for p in match.players} == set(US)
        assert {p.steamid for p in match.enemy_players} == set(THEM)
        assert {p.player_id for p in match.players} == {f"alpha{i}" for i in range(1, 6)}

    def test_players_sorted_by_rating(self, match):
        ratings = [p.rating for p in match.players]
        assert ratings == sorted(ratings, reverse=True)

    def test_entry_and_headshots(self, match):
        opener = _by_steamid(match, US[0])
        assert opener.entry_kills == 1
        assert opener.hs_rate == 100.0
        assert match.rounds[0].players[US[0]].entry_kill is True
        assert match.rounds[0].players[THEM[0]].entry_death is True

    def test_plant_and_defuse_flags(self, match):
        first = match.rounds[0]
        assert first.players[THEM[1]].planted is True
        assert first.players[US[1]].defused is True
        assert [e.type for e in first.timeline] == ["kill", "plant", "defuse", "round_end"]

    def test_timeline_kill_detail(self, match):
        kill = match.rounds[0].timeline[0].to_dict()
        assert kill["actor"] == US[0]
        assert kill["target"] == THEM[0]
        assert kill["weapon"] == "m4a1"
        assert kill["headshot"] is True
        for key in ("wallbang", "throughSmoke", "attackerBlind", "assister"):
            assert key in kill

    def test_last_ct_standing_lost_clutch(self, match):
        last = _by_steamid(match, US[4])
        assert last.clutches["1v5"] == {"won": 0, "lost": 1}

    def test_round_wpa_is_zero_sum(self, match):
        for match_round in match.rounds:
            total = sum(p.wpa for p in match_round.players.values())
            assert total == pytest.approx(0.0, abs=1e-6)

    def test_duels(self, match):
        assert _by_steamid(match, THEM[1]).duels[US[0]] == {"kills": 1, "deaths": 0}
        assert _by_steamid(match, US[0]).duels[THEM[1]] == {"kills": 0, "deaths": 1}


class TestDeterminism:
    def test_same_input_same_output(self, two_round_log, roster_config):
        first = _parse(two_round_log, roster_config).to_dict()
        second = _parse(copy.deepcopy(two_round_log), roster_config).to_dict()
        assert first == second

    def test_event_order_is_by_tick(self, two_round_log, roster_config):
        shuffled = copy.deepcopy(two_round_log)
        shuffled["events"].reverse()
        # Equal ticks (team events at tick 0) keep their relative order either way
        assert _parse(shuffled, roster_config).score == _parse(two_round_log, roster_config).score


class TestRoundBoundaries:
    """Garbage time, restarts and logs without markers."""

    def test_garbage_time_kill_belongs_to_finished_round(self, two_round_log, roster_config, ev):
        data = _insert(two_round_log, ev.kill(1550, US[0], THEM[2], weapon="m4a1"))
        match = _parse(data, roster_config)

        first, second = match.rounds
        assert first.players[US[0]].kills == 2
        assert first.players[THEM[2]].survived is False
        assert second.players[THEM[2]].survived is True
        assert first.winner == Side.CT

    def test_match_start_resets_accumulators(self, two_round_log, roster_config, ev):
        data = _insert(two_round_log, ev.marker("round_announce_match_start", 1590))
        match = _parse(data, roster_config)

        assert len(match.rounds) == 1
        assert match.rounds[0].number == 1
        assert match.rounds[0].winner == Side.T
        assert (match.score.us, match.score.them) == (0, 1)
        # Round-one kill wiped by the restart
        assert _by_steamid(match, US[0]).kills == 0

    def test_events_before_match_start_are_ignored(self, two_round_log, roster_config, ev):
        data = _insert(two_round_log, ev.kill(5, US[0], THEM[3]))
        match = _parse(data, roster_config)
        assert match.rounds[0].players[THEM[3]].survived is True

    def test_log_without_markers(self, ev):
        events = [
            ev.kill(500, US[0], THEM[0], attacker_team=3, victim_team=2),
            ev.round_end(1510, winner=3, reason=7),
            ev.kill(2000, THEM[1], US[0], attacker_team=2, victim_team=3),
            ev.round_end(2410, winner=2, reason=9),
        ]
        match = _parse(events)

        assert [(r.number, r.winner) for r in match.rounds] == [(1, Side.CT), (2, Side.T)]
        assert all(r.duration >= 0 for r in match.rounds)
        assert match.score.us + match.score.them == 2
        assert match.score.us == match.score.them == 1
        # Round two opens on its first kill
        assert match.rounds[1].players[US[0]].survived is False
        assert match.rounds[0].players[US[0]].survived is True

    def test_garbage_time_without_markers_stays_in_round(self, ev):
        events = [
            ev.kill(500, US[0], THEM[0], attacker_team=3, victim_team=2),
            ev.round_end(1510, winner=3, reason=7),
            ev.kill(1550, US[0], THEM[1], attacker_team=3, victim_team=2),
            ev.round_end(1600, winner=2, reason=9),
        ]
        match = _parse(events)

        first, second = match.rounds
        assert first.players[US[0]].kills == 2
        assert (first.winner, second.winner) == (Side.CT, Side.T)
        assert second.duration == 0

    def test_duplicate_round_end_ignored(self, ev):
        events = [
            ev.kill(500, US[0], THEM[0], attacker_team=3, victim_team=2),
            ev.round_end(1510, winner=3, reason=7),
            ev.round_end(1510, winner=3, reason=7),
        ]
        assert len(_parse(events).rounds) == 1

    def test_kill_only_log_with_even_numbers_goes_to_ct(self, ev):
        events = [
            ev.kill(500, US[0], THEM[0], attacker_team=3, victim_team=2),
            ev.kill(700, THEM[1], US[1], attacker_team=2, victim_team=3),
        ]
        match = _parse(events)

        (only,) = match.rounds
        assert only.winner == Side.CT
        assert only.reason is None
        assert only.duration >= 0

    def test_round_end_without_winner_is_ignored(self, two_round_log, roster_config, ev):
        data = _insert(two_round_log, ev.round_end(1000, winner=None, reason=None))
        match = _parse(data, roster_config)
        assert len(match.rounds) == 2

    def test_trailing_round_winner_inferred(self, two_round_log, roster_config, ev):
        data = _insert(
            two_round_log,
            ev.marker("round_start", 2500),
            ev.marker("round_freeze_end", 2600),
            ev.kill(2700, US[0], THEM[0], attacker_team=3, victim_team=2),
        )
        match = _parse(data, roster_config)
        assert len(match.rounds) == 3
        assert match.rounds[2].winner == Side.CT
        assert match.rounds[2].reason is None


class TestRobustness:
    def test_damage_never_exceeds_health(self, two_round_log, roster_config, ev):
        data = _insert(two_round_log, ev.hurt(490, US[0], THEM[0], 200, weapon="m4a1"))
        match = _parse(data, roster_config)
        assert match.rounds[0].players[US[0]].damage == 100

    def test_bot_victim_credits_the_killer(self, two_round_log, roster_config, ev):
        data = _insert(
            two_round_log,
            ev.hurt(590, US[0], "0", 100, weapon="m4a1"),
            ev.kill(600, US[0], "0", weapon="m4a1", attacker_team=3, victim_team=2),
            ev.hurt(650, US[0], "0", 100, weapon="m4a1"),
        )
        match = _parse(data, roster_config)

        first = match.rounds[0].players[US[0]]
        assert first.kills == 2
        assert first.damage == 260
        opener = _by_steamid(match, US[0])
        assert opener.kills == 2
        assert opener.multikills["k2"] == 1
        steamids = {p.steamid for p in [*match.players, *match.enemy_players]}
        assert "BOT" not in steamids
        assert len(steamids) == 10

    def test_inactive_players_omitted(self, two_round_log, roster_config, ev):
        spectator = "76561198000000099"
        data = _insert(two_round_log, ev.team(0, spectator, 3))
        match = _parse(data, roster_config)
        steamids = {p.steamid for p in [*match.players, *match.enemy_players]}
        assert spectator not in steamids
        assert len(steamids) == 10

    def test_unknown_shape_rejected(self):
        with pytest.raises(DemoFormatError):
            _parse({"not": "events"})

    def test_empty_log(self):
        match = _parse([])
        assert match.rounds == []
        assert match.score.us == match.score.them == 0
        assert match.map_id == "unknown"


class TestControllerPhases:
    def test_phase_transitions(self, two_round_log, roster_config):
        from tacboard.domains.roster import TeamSideResolver
        from tacboard.parsing.normalizer import EventNormalizer, NameResolver

        demo = EventNormalizer().normalize(two_round_log)
        resolution = TeamSideResolver(NameResolver(roster_config.roster)).resolve(demo)
        controller = RoundLifecycleController(resolution, demo.active, expect_match_start=True)
        assert controller.phase == RoundPhase.AWAITING_MATCH_START

        phases = []
        for event in demo.events:
            controller.handle_event(event)
            phases.append(controller.phase)

        assert RoundPhase.ROUND_ACTIVE in phases
        assert phases[-1] == RoundPhase.ROUND_PENDING_END
        controller.finish()
        assert controller.phase == RoundPhase.IDLE
        assert len(controller.rounds) == 2
