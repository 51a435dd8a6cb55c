"""
Event Normalizer

Turns a raw demo-event JSON document into typed GameEvents.

Accepted shapes:
- a bare list of event records
- ``{"meta": {...}, "players": [...], "events": [...]}``

Records are loosely structured: fields vary by ``event_name``, ids can be
numbers, numeric strings or missing, and player names may carry invisible
characters. Anything that cannot be understood is skipped, never fatal. The
only hard failure is a top-level document that is neither of the shapes above.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from tacboard.core.config import RosterConfig
from tacboard.core.constants import (
    BOT_IDENTITY,
    ITEM_DISPLAY_NAMES,
    ItemAction,
    Side,
    UtilityKind,
)
from tacboard.parsing.events import (
    Blind,
    Damage,
    Defuse,
    Detonate,
    Explode,
    FreezeEnd,
    GameEvent,
    ItemTransaction,
    Kill,
    MatchStart,
    Plant,
    RoundEnd,
    RoundStart,
    TeamChange,
    side_from_team,
)

logger = logging.getLogger(__name__)

# Zero-width characters and invisible operators that show up in player names
_INVISIBLE_CHARS = re.compile("[\u200b-\u200d\u2060-\u2064\ufeff]")

UNKNOWN_NAME = "Unknown"


class DemoFormatError(ValueError):
    """Raised when a demo document does not have a recognizable top-level shape."""


# =============================================================================
# Field helpers
# =============================================================================


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert a value to int."""
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
        return int(float(value)) if isinstance(value, str) else int(value)
    except (ValueError, TypeError, OverflowError):
        return default


def safe_str(value: Any, default: str = "") -> str:
    """Safely convert a value to string."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return default
    return str(value)


def safe_bool(value: Any, default: bool = False) -> bool:
    """Safely convert a value to bool."""
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes")
        return bool(value)
    except (ValueError, TypeError):
        return default


def safe_float(value: Any, default: float = 0.0) -> float:
    """Safely convert a value to float."""
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
        return float(value)
    except (ValueError, TypeError, OverflowError):
        return default


def normalize_identity(value: Any) -> str:
    """
    Canonical player key.

    0, "0", missing and "BOT" collapse to the BOT sentinel; everything else is
    the trimmed string form. Integral floats (ids that went through a float
    somewhere) are printed without the decimal part.
    """
    if value is None or value == 0 or value == "0" or value == BOT_IDENTITY:
        return BOT_IDENTITY
    if isinstance(value, float):
        if pd.isna(value):
            return BOT_IDENTITY
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    return text if text and text != "0" else BOT_IDENTITY


def optional_identity(value: Any) -> str | None:
    """Like normalize_identity, but None for the BOT sentinel."""
    identity = normalize_identity(value)
    return None if identity == BOT_IDENTITY else identity


def clean_weapon(value: Any) -> str:
    return safe_str(value).strip().lower().removeprefix("weapon_").removeprefix("item_")


def clean_name(raw: Any) -> str:
    """Strip invisible characters and surrounding whitespace from a display name."""
    if raw is None:
        return ""
    return _INVISIBLE_CHARS.sub("", str(raw)).strip()


class NameResolver:
    """Maps raw in-game names onto roster identities via the alias table."""

    def __init__(self, roster: RosterConfig | None = None):
        self.roster = roster or RosterConfig()
        self._aliases = {clean_name(k): v for k, v in self.roster.aliases.items()}
        self._lookup: dict[str, str] = {}
        for entry in self.roster.players:
            self._lookup[entry.id.lower()] = entry.id
            if entry.name:
                self._lookup[clean_name(entry.name).lower()] = entry.id

    def resolve(self, raw: Any) -> str:
        name = clean_name(raw)
        if not name:
            return UNKNOWN_NAME
        if name in self._aliases:
            return self._aliases[name]
        return self._lookup.get(name.lower(), name)

    def is_roster(self, raw: Any) -> bool:
        return self.resolve(raw) in self.roster.ids


# =============================================================================
# Normalized output
# =============================================================================


@dataclass
class DemoMeta:
    map_name: str = "Unknown"
    server_name: str = ""


@dataclass
class NormalizedDemo:
    """Typed events plus everything learned about the players while normalizing."""

    meta: DemoMeta
    events: list[GameEvent]
    # identity -> latest known raw name
    names: dict[str, str] = field(default_factory=dict)
    # identities that took part in gameplay, in first-seen order
    active: list[str] = field(default_factory=list)
    # identity -> team identifier from the players block or team events
    team_ids: dict[str, int | str] = field(default_factory=dict)
    # identity -> numeric team id as listed in the players block
    listed_team_numbers: dict[str, str] = field(default_factory=dict)
    dropped: Counter = field(default_factory=Counter)

    def name_of(self, identity: str) -> str:
        return self.names.get(identity, UNKNOWN_NAME)


# =============================================================================
# Normalizer
# =============================================================================

_DETONATE_KINDS = (
    ("smoke", UtilityKind.SMOKE),
    ("flash", UtilityKind.FLASH),
    ("hegrenade", UtilityKind.HE),
    ("molotov", UtilityKind.MOLOTOV),
    ("incendiary", UtilityKind.MOLOTOV),
    ("inferno", UtilityKind.MOLOTOV),
    ("decoy", UtilityKind.DECOY),
)

_ITEM_ACTIONS = {
    "item_pickup": ItemAction.PICKUP,
    "item_drop": ItemAction.DROP,
    "item_purchase": ItemAction.PURCHASE,
}

_TEAM_FIELDS = ("user_team_num", "team_num", "team")


def split_document(data: Any) -> tuple[list[Any], dict[str, Any], list[Any]]:
    """Return (events, meta, players) or raise DemoFormatError."""
    if isinstance(data, list):
        return data, {}, []
    if isinstance(data, dict) and isinstance(data.get("events"), list):
        meta = data.get("meta") if isinstance(data.get("meta"), dict) else {}
        players = data.get("players") if isinstance(data.get("players"), list) else []
        return data["events"], meta, players
    raise DemoFormatError(
        "Unrecognized demo format: expected a list of events or an object with an 'events' list"
    )


def parse_round_winner(value: Any) -> Side | None:
    """Winner from the round_end winner field (2/3 or a side string)."""
    if value is None or value == "":
        return None
    return side_from_team(value)


class EventNormalizer:
    """
    Converts raw records into GameEvents.

    A normalizer holds no state between calls to normalize(); create one per
    engine or share it freely.

    Usage:
        demo = EventNormalizer().normalize(json.loads(text))
        for event in demo.events:
            ...
    """

    def normalize(self, data: Any) -> NormalizedDemo:
        records, meta, players = split_document(data)

        demo = NormalizedDemo(
            meta=DemoMeta(
                map_name=safe_str(meta.get("map_name"), "Unknown") or "Unknown",
                server_name=safe_str(meta.get("server_name")),
            ),
            events=[],
        )
        active: dict[str, None] = {}

        for player in players:
            if isinstance(player, dict):
                self._collect_listed_player(demo, player)

        dicts = [r for r in records if isinstance(r, dict)]
        if len(dicts) != len(records):
            logger.debug(f"Skipped {len(records) - len(dicts)} non-object event records")

        # Stable sort: equal ticks keep log order
        dicts.sort(key=lambda r: safe_int(r.get("tick")))

        for record in dicts:
            self._collect_identities(demo, record, active)
            event = self._convert(record)
            if event is None:
                demo.dropped[safe_str(record.get("event_name"), "<missing>")] += 1
                continue
            demo.events.append(event)
            if isinstance(event, TeamChange):
                demo.team_ids[event.player] = event.numeric_team_id

        demo.active = list(active)

        if demo.dropped:
            logger.debug(f"Dropped events by name: {dict(demo.dropped)}")
        logger.info(
            f"Normalized {len(demo.events)} events ({sum(demo.dropped.values())} dropped), "
            f"{len(demo.active)} active players, map={demo.meta.map_name}"
        )
        return demo

    # ------------------------------------------------------------------
    # Identity collection
    # ------------------------------------------------------------------

    def _collect_listed_player(self, demo: NormalizedDemo, player: dict[str, Any]) -> None:
        identity = normalize_identity(player.get("steamid"))
        if identity == BOT_IDENTITY:
            return
        name = clean_name(player.get("name"))
        if name:
            demo.names[identity] = name
        team = player.get("team_name") or player.get("team_number")
        if team is not None and team != "":
            demo.team_ids[identity] = team
        number = player.get("team_number")
        if number is not None and str(number).strip().isdigit():
            demo.listed_team_numbers[identity] = str(number).strip()

    def _collect_identities(
        self, demo: NormalizedDemo, record: dict[str, Any], active: dict[str, None]
    ) -> None:
        for id_field, name_field in (
            ("user_steamid", "user_name"),
            ("attacker_steamid", "attacker_name"),
        ):
            if not record.get(id_field):
                continue
            identity = normalize_identity(record.get(id_field))
            if identity == BOT_IDENTITY:
                continue
            active.setdefault(identity, None)
            name = clean_name(record.get(name_field))
            if name and name != UNKNOWN_NAME:
                demo.names[identity] = name

        assister = optional_identity(record.get("assister_steamid"))
        if assister:
            name = clean_name(record.get("assister_name"))
            if name and name != UNKNOWN_NAME:
                demo.names[assister] = name

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def _convert(self, record: dict[str, Any]) -> GameEvent | None:
        name = safe_str(record.get("event_name")).strip()
        tick = safe_int(record.get("tick"))

        if name == "round_announce_match_start":
            return MatchStart(tick=tick)
        if name == "round_start":
            return RoundStart(tick=tick)
        if name == "round_freeze_end":
            return FreezeEnd(tick=tick)
        if name == "round_end":
            reason = record.get("reason")
            return RoundEnd(
                tick=tick,
                winner=parse_round_winner(record.get("winner")),
                reason=safe_int(reason) if reason not in (None, "") else None,
            )
        if name in ("player_death", "kill"):
            return self._convert_kill(record, tick)
        if name == "player_hurt":
            return self._convert_damage(record, tick)
        if name == "player_blind":
            attacker = optional_identity(record.get("attacker_steamid"))
            victim = optional_identity(record.get("user_steamid"))
            if attacker is None or victim is None:
                return None
            return Blind(
                tick=tick,
                attacker=attacker,
                victim=victim,
                duration=safe_float(record.get("blind_duration")),
            )
        if name.endswith("_detonate") or name == "inferno_startburn":
            owner = optional_identity(record.get("user_steamid"))
            kind = self._detonate_kind(name)
            if owner is None or kind is None:
                return None
            return Detonate(tick=tick, owner=owner, kind=kind)
        if name == "bomb_planted":
            owner = optional_identity(record.get("user_steamid"))
            return Plant(tick=tick, owner=owner) if owner else None
        if name == "bomb_defused":
            owner = optional_identity(record.get("user_steamid"))
            return Defuse(tick=tick, owner=owner) if owner else None
        if name == "bomb_exploded":
            return Explode(tick=tick)
        if name in ("player_team", "player_spawn"):
            return self._convert_team(record, tick)
        if name in _ITEM_ACTIONS:
            return self._convert_item(record, tick, _ITEM_ACTIONS[name])

        return None

    def _convert_kill(self, record: dict[str, Any], tick: int) -> Kill:
        return Kill(
            tick=tick,
            victim=normalize_identity(record.get("user_steamid")),
            attacker=optional_identity(record.get("attacker_steamid")),
            assister=optional_identity(record.get("assister_steamid")),
            weapon=clean_weapon(record.get("weapon")),
            headshot=safe_bool(record.get("headshot")),
            wallbang=safe_float(record.get("penetrated")) > 0,
            blind=safe_bool(record.get("attackerblind")),
            through_smoke=safe_bool(record.get("thrusmoke")),
            flash_assist=safe_bool(record.get("assistedflash")),
            attacker_side=side_from_team(record.get("attacker_team_num")),
            victim_side=side_from_team(record.get("user_team_num")),
        )

    def _convert_damage(self, record: dict[str, Any], tick: int) -> Damage:
        return Damage(
            tick=tick,
            victim=normalize_identity(record.get("user_steamid")),
            attacker=optional_identity(record.get("attacker_steamid")),
            amount_raw=max(0, safe_int(record.get("dmg_health"))),
            weapon=clean_weapon(record.get("weapon")),
            hitgroup=safe_int(record.get("hitgroup")),
            attacker_side=side_from_team(record.get("attacker_team_num")),
            victim_side=side_from_team(record.get("user_team_num")),
        )

    def _convert_team(self, record: dict[str, Any], tick: int) -> TeamChange | None:
        player = optional_identity(record.get("user_steamid"))
        if player is None:
            return None
        for team_field in _TEAM_FIELDS:
            value = record.get(team_field)
            if value is None or value == "":
                continue
            if side_from_team(value) is not None:
                return TeamChange(tick=tick, player=player, numeric_team_id=value)
        return None

    def _convert_item(
        self, record: dict[str, Any], tick: int, kind: ItemAction
    ) -> ItemTransaction | None:
        player = optional_identity(record.get("user_steamid"))
        if player is None:
            # item_purchase sometimes carries the id as plain `steamid`
            player = optional_identity(record.get("steamid"))
        if player is None:
            return None

        item = clean_weapon(record.get("item"))
        if not item:
            display = safe_str(record.get("item_name")).strip().lower()
            item = ITEM_DISPLAY_NAMES.get(display, "")
        if not item:
            return None
        return ItemTransaction(tick=tick, player=player, item=item, kind=kind)

    @staticmethod
    def _detonate_kind(name: str) -> UtilityKind | None:
        for needle, kind in _DETONATE_KINDS:
            if needle in name:
                return kind
        return None
