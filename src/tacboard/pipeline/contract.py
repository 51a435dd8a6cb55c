"""
Tacboard Output Contract - the single source of truth.

Defines the exact JSON structure that Match.to_dict() returns. Every field
name, nesting level, and type is locked here.

Rules:
  1. Match.to_dict() MUST produce output matching MATCH_CONTRACT.
  2. Consumers (storage, UI, exports) MUST read fields using these paths.
  3. Any new field goes here FIRST, then gets wired through the models.

Validated by: tests/test_contract.py
"""

from __future__ import annotations

# ─── Top-level match shape ────────────────────────────────────────────
MATCH_CONTRACT: dict = {
    "id": str,
    "source": str,
    "date": str,
    "mapId": str,
    "serverName": str,
    "rank": str,
    "result": str,  # "WIN" / "LOSS" / "TIE"
    "startingSide": str,  # "T" / "CT"
    "score": {
        "us": int,
        "them": int,
        "half1_us": int,
        "half1_them": int,
        "half2_us": int,
        "half2_them": int,
    },
    "players": list,  # -> PLAYER_CONTRACT
    "enemyPlayers": list,  # -> PLAYER_CONTRACT
    "rounds": list,  # -> ROUND_CONTRACT
}

# ─── Per-player match totals ──────────────────────────────────────────
PLAYER_CONTRACT: dict = {
    "playerId": str,
    "steamid": str,
    "rank": str,
    "kills": int,
    "deaths": int,
    "assists": int,
    "adr": (int, float),
    "hsRate": (int, float),
    "rating": (int, float),
    "we": (int, float),
    "wpa": (int, float),
    "total_damage": int,
    "utility_count": int,
    "flash_assists": int,
    "headshots": int,
    "entry_kills": int,
    "kast": (int, float),
    "multikills": {
        "k2": int,
        "k3": int,
        "k4": int,
        "k5": int,
    },
    "duels": dict,  # opponent identity -> {"kills", "deaths"}
    "utility": {
        "smokesThrown": int,
        "flashesThrown": int,
        "enemiesBlinded": int,
        "blindDuration": (int, float),
        "heThrown": int,
        "heDamage": int,
        "molotovsThrown": int,
        "molotovDamage": int,
    },
    "clutches": {
        "1v1": {"won": int, "lost": int},
        "1v2": {"won": int, "lost": int},
        "1v3": {"won": int, "lost": int},
        "1v4": {"won": int, "lost": int},
        "1v5": {"won": int, "lost": int},
    },
    "clutchHistory": list,
    "ratingHistory": list,
    "r3_rounds_played": int,
}

# ─── Per-round shape ──────────────────────────────────────────────────
ROUND_CONTRACT: dict = {
    "round": int,
    "winner": str,
    "reason": (int, type(None)),
    "duration": (int, float),
    "playerStats": dict,  # identity -> ROUND_PLAYER_CONTRACT
    "timeline": list,
    "economy": dict,
}

ROUND_PLAYER_CONTRACT: dict = {
    "side": str,
    "kills": int,
    "deaths": int,
    "assists": int,
    "damage": int,
    "headshots": int,
    "isEntryKill": bool,
    "isEntryDeath": bool,
    "traded": bool,
    "wasTraded": bool,
    "survived": bool,
    "rating": (int, float),
    "impact": (int, float),
    "wpa": (int, float),
}

TIMELINE_CONTRACT: dict = {
    "time": (int, float),
    "tick": int,
    "type": str,
}


def validate_player(player_data: dict, errors: list[str] | None = None) -> list[str]:
    """Validate a player dict against the contract. Returns list of errors."""
    if errors is None:
        errors = []
    _validate_dict(player_data, PLAYER_CONTRACT, "player", errors)
    return errors


def validate_round(round_data: dict, errors: list[str] | None = None, path: str = "round") -> list[str]:
    """Validate one round dict, including its player stats and timeline."""
    if errors is None:
        errors = []
    _validate_dict(round_data, ROUND_CONTRACT, path, errors)
    if not isinstance(round_data, dict):
        return errors

    stats = round_data.get("playerStats", {})
    if isinstance(stats, dict):
        for sid, pdata in stats.items():
            _validate_dict(pdata, ROUND_PLAYER_CONTRACT, f"{path}.playerStats[{sid}]", errors)

    timeline = round_data.get("timeline", [])
    if isinstance(timeline, list):
        for i, entry in enumerate(timeline):
            _validate_dict(entry, TIMELINE_CONTRACT, f"{path}.timeline[{i}]", errors)
    return errors


def validate_match(result: dict) -> list[str]:
    """Validate a full Match.to_dict() result. Returns list of errors."""
    errors: list[str] = []
    _validate_dict(result, MATCH_CONTRACT, "match", errors)
    if not isinstance(result, dict):
        return errors

    for key in ("players", "enemyPlayers"):
        players = result.get(key, [])
        if isinstance(players, list):
            for i, pdata in enumerate(players):
                _validate_dict(pdata, PLAYER_CONTRACT, f"{key}[{i}]", errors)

    rounds = result.get("rounds", [])
    if isinstance(rounds, list):
        for i, rdata in enumerate(rounds):
            validate_round(rdata, errors, f"rounds[{i}]")

    return errors


def _validate_dict(data: dict, contract: dict, path: str, errors: list[str]) -> None:
    """Recursively validate data against contract schema."""
    if not isinstance(data, dict):
        errors.append(f"{path}: expected dict, got {type(data).__name__}")
        return

    for key, expected_type in contract.items():
        full_path = f"{path}.{key}"
        if key not in data:
            errors.append(f"MISSING {full_path}")
            continue

        value = data[key]

        if isinstance(expected_type, dict):
            _validate_dict(value, expected_type, full_path, errors)
        elif isinstance(expected_type, tuple):
            if not isinstance(value, expected_type):
                errors.append(
                    f"TYPE {full_path}: expected {expected_type}, "
                    f"got {type(value).__name__} = {value!r}"
                )
        elif not isinstance(value, expected_type):
            errors.append(
                f"TYPE {full_path}: expected {expected_type.__name__}, "
                f"got {type(value).__name__} = {value!r}"
            )
