"""
Export Functionality for tacboard

Provides export formats for parsed matches:
- JSON: the full Match record (what storage and the UI consume)
- CSV: one scoreboard row per player
- DataFrame: the same scoreboard as a pandas DataFrame, plus a per-round
  frame for ad-hoc analysis
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd

from tacboard import __version__
from tacboard.core.config import ExportConfig
from tacboard.core.models import Match, PlayerMatchStats

logger = logging.getLogger(__name__)

SCOREBOARD_COLUMNS = [
    "team",
    "player_id",
    "steamid",
    "kills",
    "deaths",
    "assists",
    "kd_diff",
    "adr",
    "hs_rate",
    "kast",
    "rating",
    "we",
    "wpa",
    "entry_kills",
    "utility_count",
    "flash_assists",
    "k2",
    "k3",
    "k4",
    "k5",
    "rounds_played",
]


# ============================================================================
# DataFrames
# ============================================================================


def _scoreboard_row(player: PlayerMatchStats, team: str) -> dict[str, Any]:
    return {
        "team": team,
        "player_id": player.player_id,
        "steamid": player.steamid,
        "kills": player.kills,
        "deaths": player.deaths,
        "assists": player.assists,
        "kd_diff": player.kills - player.deaths,
        "adr": player.adr,
        "hs_rate": player.hs_rate,
        "kast": player.kast,
        "rating": player.rating,
        "we": player.we,
        "wpa": round(player.wpa, 2),
        "entry_kills": player.entry_kills,
        "utility_count": player.utility_count,
        "flash_assists": player.flash_assists,
        **player.multikills,
        "rounds_played": player.rounds_played,
    }


def scoreboard_frame(match: Match) -> pd.DataFrame:
    """One row per player, roster first, each team sorted by rating."""
    rows = [_scoreboard_row(p, "us") for p in match.players]
    rows.extend(_scoreboard_row(p, "them") for p in match.enemy_players)
    return pd.DataFrame(rows, columns=SCOREBOARD_COLUMNS)


def rounds_frame(match: Match) -> pd.DataFrame:
    """One row per (round, player) with the round-level stats."""
    rows = []
    for match_round in match.rounds:
        for identity, stats in match_round.players.items():
            rows.append(
                {
                    "round": match_round.number,
                    "winner": str(match_round.winner),
                    "reason": match_round.reason,
                    "steamid": identity,
                    "side": str(stats.side),
                    "kills": stats.kills,
                    "deaths": stats.deaths,
                    "assists": stats.assists,
                    "damage": stats.damage,
                    "survived": stats.survived,
                    "kast": stats.kast,
                    "rating": stats.rating,
                    "wpa": stats.wpa,
                }
            )
    return pd.DataFrame(rows)


# ============================================================================
# JSON / CSV Export
# ============================================================================


def export_to_json(
    match: Match,
    output_path: Path | None = None,
    indent: int = 2,
    include_metadata: bool = False,
) -> str:
    """
    Export a match to JSON.

    Args:
        match: Parsed match
        output_path: Optional path to write the file
        indent: JSON indentation level
        include_metadata: Whether to add an export metadata block

    Returns:
        JSON string
    """
    export_data = match.to_dict()

    if include_metadata:
        export_data = {
            "_metadata": {
                "exported_at": datetime.now().isoformat(),
                "format": "tacboard_json",
                "version": __version__,
            },
            **export_data,
        }

    json_str = json.dumps(export_data, indent=indent, default=str)

    if output_path:
        Path(output_path).write_text(json_str, encoding="utf-8")
        logger.info(f"Exported JSON to: {output_path}")

    return json_str


def export_scoreboard_csv(
    match: Match, output_path: Path | None = None, delimiter: str = ","
) -> str:
    """Export the scoreboard to CSV. Returns the CSV text."""
    csv_str = scoreboard_frame(match).to_csv(index=False, sep=delimiter)

    if output_path:
        Path(output_path).write_text(csv_str, encoding="utf-8")
        logger.info(f"Exported scoreboard CSV to: {output_path}")

    return csv_str


def export_match(
    match: Match,
    output_path: Path,
    format: str | None = None,
    config: ExportConfig | None = None,
) -> None:
    """
    Export a match to the specified format.

    Format is detected from the file extension if not specified.

    Raises:
        ValueError: For an unsupported format
    """
    config = config or ExportConfig()
    output_path = Path(output_path)
    if format is None:
        format = output_path.suffix.lstrip(".").lower() or config.default_format

    if format == "json":
        export_to_json(match, output_path, indent=config.json_indent)
    elif format == "csv":
        export_scoreboard_csv(match, output_path, delimiter=config.csv_delimiter)
    else:
        raise ValueError(f"Unsupported export format: {format}")
