"""
tacboard Data Model

Every record that leaves the engine is defined here. Round-scoped stats are
mutable while a round is live and handed over to an immutable MatchRound
when the round is finalized; the controller never touches them again.

to_dict() emits the key names of the persisted match format consumed by the
scoreboard/timeline UI, which is why some keys are camelCase.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tacboard.core.constants import Side

CLUTCH_BUCKETS = ("1v1", "1v2", "1v3", "1v4", "1v5")


def empty_clutch_tallies() -> dict[str, dict[str, int]]:
    return {bucket: {"won": 0, "lost": 0} for bucket in CLUTCH_BUCKETS}


@dataclass
class UtilityStats:
    """Grenade usage for one player (per round or per match)."""

    smokes_thrown: int = 0
    flashes_thrown: int = 0
    enemies_blinded: int = 0
    blind_duration: float = 0.0  # seconds
    he_thrown: int = 0
    he_damage: int = 0
    molotovs_thrown: int = 0
    molotov_damage: int = 0

    @property
    def thrown(self) -> int:
        return self.smokes_thrown + self.flashes_thrown + self.he_thrown + self.molotovs_thrown

    def add(self, other: UtilityStats) -> None:
        self.smokes_thrown += other.smokes_thrown
        self.flashes_thrown += other.flashes_thrown
        self.enemies_blinded += other.enemies_blinded
        self.blind_duration += other.blind_duration
        self.he_thrown += other.he_thrown
        self.he_damage += other.he_damage
        self.molotovs_thrown += other.molotovs_thrown
        self.molotov_damage += other.molotov_damage

    def to_dict(self) -> dict[str, Any]:
        return {
            "smokesThrown": self.smokes_thrown,
            "flashesThrown": self.flashes_thrown,
            "enemiesBlinded": self.enemies_blinded,
            "blindDuration": round(self.blind_duration, 2),
            "heThrown": self.he_thrown,
            "heDamage": self.he_damage,
            "molotovsThrown": self.molotovs_thrown,
            "molotovDamage": self.molotov_damage,
        }


@dataclass
class PlayerRoundStats:
    """Everything one player did in one round."""

    identity: str
    side: Side
    kills: int = 0
    deaths: int = 0
    assists: int = 0
    flash_assists: int = 0
    damage: int = 0  # applied (HP-capped) damage to enemies
    headshots: int = 0

    entry_kill: bool = False
    entry_death: bool = False

    # Trade flags (traded = this player avenged a teammate)
    traded: bool = False
    was_traded: bool = False
    trade_bonus: float = 0.0
    trade_penalty: float = 0.0

    survived: bool = True
    planted: bool = False
    defused: bool = False

    # Sum of victims' round-start loadout values, for the economy term
    kill_value: int = 0

    utility: UtilityStats = field(default_factory=UtilityStats)

    # Filled at round close
    impact: float = 0.0
    rating: float = 0.0
    wpa: float = 0.0

    @property
    def kast(self) -> bool:
        return self.kills > 0 or self.assists > 0 or self.survived or self.traded or self.was_traded

    def to_dict(self) -> dict[str, Any]:
        return {
            "steamid": self.identity,
            "side": str(self.side),
            "kills": self.kills,
            "deaths": self.deaths,
            "assists": self.assists,
            "flashAssists": self.flash_assists,
            "damage": self.damage,
            "headshots": self.headshots,
            "isEntryKill": self.entry_kill,
            "isEntryDeath": self.entry_death,
            "traded": self.traded,
            "wasTraded": self.was_traded,
            "tradeBonus": round(self.trade_bonus, 4),
            "tradePenalty": round(self.trade_penalty, 4),
            "survived": self.survived,
            "planted": self.planted,
            "defused": self.defused,
            "killValue": self.kill_value,
            "utility": self.utility.to_dict(),
            "impact": round(self.impact, 4),
            "rating": round(self.rating, 3),
            "wpa": round(self.wpa, 3),
        }


@dataclass(frozen=True)
class ClutchRecord:
    """Outcome of a 1vN situation."""

    round: int
    opponent_count: int
    result: str  # "won", "saved", "lost"
    kills: int
    side: Side

    @property
    def bucket(self) -> str:
        return f"1v{min(max(self.opponent_count, 1), 5)}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.round,
            "opponentCount": self.opponent_count,
            "result": self.result,
            "kills": self.kills,
            "side": str(self.side),
        }


@dataclass
class PlayerMatchStats:
    """Match-level accumulation for one player."""

    steamid: str
    player_id: str  # resolved display name / roster id
    rank: str = "-"

    kills: int = 0
    deaths: int = 0
    assists: int = 0
    headshots: int = 0
    total_damage: int = 0
    flash_assists: int = 0
    entry_kills: int = 0
    kast_rounds: int = 0
    rounds_played: int = 0
    utility_count: int = 0

    multikills: dict[str, int] = field(
        default_factory=lambda: {"k2": 0, "k3": 0, "k4": 0, "k5": 0}
    )
    # opponent identity -> {"kills": n, "deaths": n}
    duels: dict[str, dict[str, int]] = field(default_factory=dict)
    utility: UtilityStats = field(default_factory=UtilityStats)
    clutches: dict[str, dict[str, int]] = field(default_factory=empty_clutch_tallies)
    clutch_history: list[ClutchRecord] = field(default_factory=list)

    rating_history: list[float] = field(default_factory=list)
    wpa: float = 0.0
    impact_total: float = 0.0

    # Derived in finalize()
    rating: float = 0.0
    we: float = 0.0
    adr: float = 0.0
    hs_rate: float = 0.0
    kast: float = 0.0

    @property
    def is_active(self) -> bool:
        return bool(
            self.kills or self.deaths or self.assists or self.total_damage or self.utility_count
        )

    def record_duel(self, opponent: str, *, won: bool) -> None:
        entry = self.duels.setdefault(opponent, {"kills": 0, "deaths": 0})
        entry["kills" if won else "deaths"] += 1

    def record_clutch(self, record: ClutchRecord) -> None:
        tally = self.clutches[record.bucket]
        # Saves count against the tally, the history keeps the distinction
        tally["won" if record.result == "won" else "lost"] += 1
        self.clutch_history.append(record)

    def to_dict(self) -> dict[str, Any]:
        return {
            "playerId": self.player_id,
            "steamid": self.steamid,
            "rank": self.rank,
            "kills": self.kills,
            "deaths": self.deaths,
            "assists": self.assists,
            "adr": self.adr,
            "hsRate": self.hs_rate,
            "rating": self.rating,
            "we": self.we,
            "wpa": round(self.wpa, 2),
            "total_damage": self.total_damage,
            "utility_count": self.utility_count,
            "flash_assists": self.flash_assists,
            "headshots": self.headshots,
            "entry_kills": self.entry_kills,
            "kast": self.kast,
            "multikills": dict(self.multikills),
            "duels": {k: dict(v) for k, v in self.duels.items()},
            "utility": self.utility.to_dict(),
            "clutches": {k: dict(v) for k, v in self.clutches.items()},
            "clutchHistory": [c.to_dict() for c in self.clutch_history],
            "ratingHistory": list(self.rating_history),
            "r3_rounds_played": self.rounds_played,
        }


@dataclass(frozen=True)
class TimelineEvent:
    """One replayable entry of a round timeline; time is relative to the round anchor."""

    time: float
    tick: int
    type: str
    actor: str | None = None
    target: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"time": self.time, "tick": self.tick, "type": self.type}
        if self.actor is not None:
            data["actor"] = self.actor
        if self.target is not None:
            data["target"] = self.target
        data.update(self.detail)
        return data


@dataclass(frozen=True)
class MatchRound:
    """A finalized round."""

    number: int
    winner: Side
    reason: int | None
    duration: float  # seconds, anchored to freeze end (or round start)
    players: dict[str, PlayerRoundStats]
    timeline: list[TimelineEvent]
    # side -> {"loss_bonus": int, "start_value": int}
    economy: dict[str, dict[str, int]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.number,
            "winner": str(self.winner),
            "reason": self.reason,
            "duration": self.duration,
            "playerStats": {sid: p.to_dict() for sid, p in self.players.items()},
            "timeline": [e.to_dict() for e in self.timeline],
            "economy": {side: dict(v) for side, v in self.economy.items()},
        }


@dataclass(frozen=True)
class MatchScore:
    us: int = 0
    them: int = 0
    half1_us: int = 0
    half1_them: int = 0
    half2_us: int = 0
    half2_them: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "us": self.us,
            "them": self.them,
            "half1_us": self.half1_us,
            "half1_them": self.half1_them,
            "half2_us": self.half2_us,
            "half2_them": self.half2_them,
        }


@dataclass(frozen=True)
class Match:
    """Fully reconciled output of one demo."""

    id: str
    map_id: str
    starting_side: Side
    score: MatchScore
    players: list[PlayerMatchStats]
    enemy_players: list[PlayerMatchStats]
    rounds: list[MatchRound]
    date: str
    server: str = ""
    source: str = "Demo"
    rank: str = "N/A"

    @property
    def result(self) -> str:
        if self.score.us > self.score.them:
            return "WIN"
        if self.score.us < self.score.them:
            return "LOSS"
        return "TIE"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "date": self.date,
            "mapId": self.map_id,
            "serverName": self.server,
            "rank": self.rank,
            "result": self.result,
            "startingSide": str(self.starting_side),
            "score": self.score.to_dict(),
            "players": [p.to_dict() for p in self.players],
            "enemyPlayers": [p.to_dict() for p in self.enemy_players],
            "rounds": [r.to_dict() for r in self.rounds],
        }
