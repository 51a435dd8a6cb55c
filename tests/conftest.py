"""Shared fixtures: raw event-record builders and a two-round match log."""

from __future__ import annotations

from typing import Any

import pytest

from tacboard.core.config import RosterConfig, RosterEntry, TacboardConfig

US = [f"7656119800000000{i}" for i in range(1, 6)]
THEM = [f"7656119800000001{i}" for i in range(1, 6)]
US_NAMES = [f"alpha{i}" for i in range(1, 6)]
THEM_NAMES = [f"bravo{i}" for i in range(1, 6)]

T_NUM = 2
CT_NUM = 3


class EventFactory:
    """Builds raw demo-event records the way the demo exporter emits them."""

    US = US
    THEM = THEM

    @staticmethod
    def marker(name: str, tick: int) -> dict[str, Any]:
        return {"event_name": name, "tick": tick}

    @staticmethod
    def team(tick: int, player: str, team_num: int) -> dict[str, Any]:
        return {"event_name": "player_team", "tick": tick, "user_steamid": player, "team": team_num}

    @staticmethod
    def kill(
        tick: int,
        attacker: str | None,
        victim: str,
        *,
        weapon: str = "ak47",
        headshot: bool = False,
        attacker_team: int | None = None,
        victim_team: int | None = None,
        assister: str | None = None,
        flash: bool = False,
    ) -> dict[str, Any]:
        record: dict[str, Any] = {
            "event_name": "player_death",
            "tick": tick,
            "attacker_steamid": attacker,
            "user_steamid": victim,
            "weapon": weapon,
            "headshot": headshot,
            "assistedflash": flash,
        }
        if assister:
            record["assister_steamid"] = assister
        if attacker_team is not None:
            record["attacker_team_num"] = attacker_team
        if victim_team is not None:
            record["user_team_num"] = victim_team
        return record

    @staticmethod
    def hurt(
        tick: int, attacker: str | None, victim: str, dmg: int, weapon: str = "ak47"
    ) -> dict[str, Any]:
        return {
            "event_name": "player_hurt",
            "tick": tick,
            "attacker_steamid": attacker,
            "user_steamid": victim,
            "dmg_health": dmg,
            "weapon": weapon,
            "hitgroup": 1,
        }

    @staticmethod
    def round_end(tick: int, winner: Any = None, reason: Any = None) -> dict[str, Any]:
        return {"event_name": "round_end", "tick": tick, "winner": winner, "reason": reason}

    @staticmethod
    def purchase(tick: int, player: str, item: str) -> dict[str, Any]:
        return {"event_name": "item_purchase", "tick": tick, "user_steamid": player, "item": item}

    @staticmethod
    def object_event(name: str, tick: int, player: str) -> dict[str, Any]:
        return {"event_name": name, "tick": tick, "user_steamid": player}


@pytest.fixture
def ev() -> EventFactory:
    return EventFactory()


@pytest.fixture
def roster_config() -> TacboardConfig:
    """Roster of the five 'alpha' players."""
    config = TacboardConfig()
    config.roster = RosterConfig(players=[RosterEntry(id=name, name=name) for name in US_NAMES])
    return config


@pytest.fixture
def players_block() -> list[dict[str, Any]]:
    block = [
        {"steamid": sid, "name": name, "team_number": CT_NUM}
        for sid, name in zip(US, US_NAMES)
    ]
    block += [
        {"steamid": sid, "name": name, "team_number": T_NUM}
        for sid, name in zip(THEM, THEM_NAMES)
    ]
    return block


@pytest.fixture
def two_round_log(ev: EventFactory, players_block) -> dict[str, Any]:
    """
    Roster starts CT.

    Round 1: alpha1 opens with a headshot, bravo2 plants, alpha2 defuses
             (winner 3, reason 7).
    Round 2: the T side eliminates all five CTs (winner 2, reason 9).
    """
    events: list[dict[str, Any]] = []
    events += [ev.team(0, sid, CT_NUM) for sid in US]
    events += [ev.team(0, sid, T_NUM) for sid in THEM]
    events.append(ev.marker("round_announce_match_start", 10))
    events.append(ev.marker("round_start", 20))
    events.append(ev.marker("round_freeze_end", 100))

    events.append(ev.hurt(480, US[0], THEM[0], 60, weapon="m4a1"))
    events.append(
        ev.kill(
            500,
            US[0],
            THEM[0],
            weapon="m4a1",
            headshot=True,
            attacker_team=CT_NUM,
            victim_team=T_NUM,
        )
    )
    events.append(ev.object_event("bomb_planted", 900, THEM[1]))
    events.append(ev.object_event("bomb_defused", 1500, US[1]))
    events.append(ev.round_end(1510, winner=CT_NUM, reason=7))

    events.append(ev.marker("round_start", 1600))
    events.append(ev.marker("round_freeze_end", 1700))
    killers = [THEM[1], THEM[2], THEM[3], THEM[4], THEM[1]]
    for i, (killer, victim) in enumerate(zip(killers, US)):
        events.append(
            ev.kill(2000 + i * 100, killer, victim, attacker_team=T_NUM, victim_team=CT_NUM)
        )
    events.append(ev.round_end(2410, winner=T_NUM, reason=9))

    return {
        "meta": {"map_name": "de_mirage", "server_name": "Test Server"},
        "players": players_block,
        "events": events,
    }
