"""
Match Orchestrator - the single entry point from raw events to a Match.

Pipeline:
    raw JSON -> EventNormalizer -> TeamSideResolver -> RoundLifecycleController
             -> per-player finalization -> Match

Every call builds a fresh normalizer, resolver and controller, so any number
of files can be parsed concurrently without shared mutable state.
"""

from __future__ import annotations

import json
import logging
import random
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from tacboard.core.config import TacboardConfig
from tacboard.core.constants import BOT_IDENTITY
from tacboard.core.models import Match, PlayerMatchStats
from tacboard.domains.rating import finalize_player
from tacboard.domains.roster import TeamResolution, TeamSideResolver
from tacboard.domains.series import normalize_map_id
from tacboard.parsing.events import MatchStart
from tacboard.parsing.normalizer import DemoFormatError, EventNormalizer, NameResolver
from tacboard.pipeline.controller import RoundLifecycleController

logger = logging.getLogger(__name__)


def generate_id(prefix: str = "demo") -> str:
    """Default match id: prefix plus six random digits."""
    return f"{prefix}-{random.randint(0, 999_999):06d}"


def load_demo_file(path: Path) -> Any:
    """Read a demo-event JSON file. Undecodable content is a DemoFormatError."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DemoFormatError(f"{path.name}: not valid JSON ({e})") from e


class MatchOrchestrator:
    """
    Runs the analytics pipeline for one document at a time.

    Usage:
        orchestrator = MatchOrchestrator(config)
        match = orchestrator.parse(json.loads(text))
    """

    def __init__(
        self,
        config: TacboardConfig | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self.config = config or TacboardConfig()
        self.id_factory = id_factory or generate_id

    def parse(self, data: Any, *, date: str | None = None) -> Match:
        names = NameResolver(self.config.roster)
        demo = EventNormalizer().normalize(data)
        resolution = TeamSideResolver(names).resolve(demo)

        player_ids = {identity: names.resolve(demo.name_of(identity)) for identity in demo.active}
        controller = RoundLifecycleController(
            resolution,
            demo.active,
            player_ids=player_ids,
            config=self.config.engine,
            expect_match_start=any(isinstance(e, MatchStart) for e in demo.events),
        )
        for event in demo.events:
            controller.handle_event(event)
        controller.finish()

        players, enemies = self._split_players(controller, resolution, names, demo.name_of)
        score = controller.score()

        match = Match(
            id=self.id_factory(),
            map_id=normalize_map_id(demo.meta.map_name),
            starting_side=controller.starting_side,
            score=score,
            players=players,
            enemy_players=enemies,
            rounds=list(controller.rounds),
            date=date or datetime.now(timezone.utc).isoformat(),
            server=demo.meta.server_name,
        )
        logger.info(
            f"Parsed match {match.id} on {match.map_id}: {score.us}-{score.them} "
            f"({match.result}), {len(match.rounds)} rounds, "
            f"{len(players)} roster / {len(enemies)} opponents"
        )
        return match

    def parse_file(self, path: Path, *, date: str | None = None) -> Match:
        return self.parse(load_demo_file(path), date=date)

    def _split_players(
        self,
        controller: RoundLifecycleController,
        resolution: TeamResolution,
        names: NameResolver,
        name_of: Callable[[str], str],
    ) -> tuple[list[PlayerMatchStats], list[PlayerMatchStats]]:
        calibration = self.config.engine.rating_calibration
        players: list[PlayerMatchStats] = []
        enemies: list[PlayerMatchStats] = []

        for identity, stats in controller.match_stats.items():
            # BOT stands for every bot at once, not a player
            if identity == BOT_IDENTITY or not stats.is_active:
                continue
            finalize_player(stats, calibration)
            if resolution.is_ours(identity) or names.is_roster(name_of(identity)):
                players.append(stats)
            else:
                enemies.append(stats)

        players.sort(key=lambda p: p.rating, reverse=True)
        enemies.sort(key=lambda p: p.rating, reverse=True)
        return players, enemies


def parse_match(
    data: Any,
    config: TacboardConfig | None = None,
    id_factory: Callable[[], str] | None = None,
    date: str | None = None,
) -> Match:
    """
    Parse one raw demo-event document into a Match.

    Args:
        data: A bare list of event records or {"meta", "players", "events"}
        config: Engine tunables and roster tables (defaults if omitted)
        id_factory: Produces the match id; inject for deterministic output
        date: ISO date to stamp on the match; now (UTC) if omitted

    Raises:
        DemoFormatError: If the top-level shape is not recognized
    """
    return MatchOrchestrator(config, id_factory).parse(data, date=date)
