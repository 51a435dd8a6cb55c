"""
Series helpers

Grouping several parsed matches into one series (a Bo3 across maps, say) only
works when the same two lineups played every map. A match joins a series if at
least SERIES_LINEUP_THRESHOLD players overlap on both teams, either directly
or with the teams swapped (one stand-in allowed).
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import NamedTuple

from tacboard.core.config import RosterConfig
from tacboard.core.models import Match, PlayerMatchStats

SERIES_LINEUP_THRESHOLD = 4

MAP_DISPLAY_NAMES: dict[str, str] = {
    "mirage": "Mirage",
    "inferno": "Inferno",
    "overpass": "Overpass",
    "vertigo": "Vertigo",
    "nuke": "Nuke",
    "ancient": "Ancient",
    "anubis": "Anubis",
    "dust2": "Dust II",
    "train": "Train",
    "cache": "Cache",
    "cbble": "Cobblestone",
    "office": "Office",
    "agency": "Agency",
    "italy": "Italy",
    "assault": "Assault",
}


class SeriesValidation(NamedTuple):
    valid: bool
    swap_sides: bool
    error: str | None = None


def normalize_map_id(raw: str | None) -> str:
    """'de_mirage' -> 'mirage'. Empty input maps to 'unknown'."""
    if not raw:
        return "unknown"
    return raw.strip().lower().removeprefix("de_").removeprefix("cs_")


def map_display_name(raw: str | None) -> str:
    map_id = normalize_map_id(raw)
    return MAP_DISPLAY_NAMES.get(map_id, raw or "Unknown")


def is_roster_match(match: Match, roster: RosterConfig) -> bool:
    """True if any player of either team is in the roster, by id, name or SteamID."""
    keys = set(roster.ids) | {p.name for p in roster.players if p.name}
    return any(
        p.player_id in keys or p.steamid in keys
        for p in [*match.players, *match.enemy_players]
    )


def common_player_count(
    first: Iterable[PlayerMatchStats], second: Iterable[PlayerMatchStats]
) -> int:
    """Players present in both lists, matched by SteamID or resolved name."""
    known: set[str] = set()
    for player in second:
        if player.steamid:
            known.add(player.steamid)
        known.add(player.player_id)
    return sum(1 for p in first if (p.steamid and p.steamid in known) or p.player_id in known)


def validate_series_match(
    anchor: Match, candidate: Match, threshold: int = SERIES_LINEUP_THRESHOLD
) -> SeriesValidation:
    """
    Check whether candidate can join the series anchored on anchor.

    Returns:
        (valid, swap_sides, error). swap_sides is True when candidate has the
        two lineups in the opposite player lists.
    """
    direct_ours = common_player_count(anchor.players, candidate.players)
    direct_theirs = common_player_count(anchor.enemy_players, candidate.enemy_players)
    if direct_ours >= threshold and direct_theirs >= threshold:
        return SeriesValidation(True, False)

    cross_ours = common_player_count(anchor.players, candidate.enemy_players)
    cross_theirs = common_player_count(anchor.enemy_players, candidate.players)
    if cross_ours >= threshold and cross_theirs >= threshold:
        return SeriesValidation(True, True)

    return SeriesValidation(
        False,
        False,
        f"Lineups do not match: need at least {threshold} common players per team "
        f"(A-A: {direct_ours}, B-B: {direct_theirs}, A-B: {cross_ours}, B-A: {cross_theirs})",
    )
