"""
Round Lifecycle Controller

The state machine at the center of the engine:

    AWAITING_MATCH_START -> ROUND_ACTIVE -> ROUND_PENDING_END -> ROUND_ACTIVE (next) ...

- MatchStart clears every accumulator and replays the last freeze end if it
  fired shortly before the announcement.
- RoundStart / FreezeEnd open a round; if a round end is pending they first
  finalize it. Kills that land between RoundEnd and the next start
  ("garbage time") therefore still belong to the finished round.
- Without any start marker the first gameplay event opens the round and
  anchors its clock. Gameplay arriving more than the round restart delay
  after a pending end, or a second decided RoundEnd, closes the pending
  round and opens the next one.
- RoundEnd with no determinable winner is ignored; the round keeps going.
- The BOT sentinel is tracked like any other identity but never joins an
  alive-set, since it stands for every bot at once.

The controller owns the alive-sets, the per-round player contexts and the
persistent identity -> side map. Sub-engines are only reached through the
RoundParticipant hooks, plus a few explicit calls for values the controller
hands from one engine to another (applied damage, loadout values).
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tacboard.core.config import EngineConfig
from tacboard.core.constants import (
    BOT_IDENTITY,
    FIRE_WEAPONS,
    FREEZE_TIME_SLACK_SECONDS,
    HE_WEAPONS,
    ROUNDS_PER_HALF,
    Side,
    UtilityKind,
)
from tacboard.core.lifecycle import EventContext, RoundClose, RoundOpen, RoundParticipant
from tacboard.core.models import (
    MatchRound,
    MatchScore,
    PlayerMatchStats,
    PlayerRoundStats,
    TimelineEvent,
)
from tacboard.domains.combat import ClutchTracker, TradeDetector
from tacboard.domains.economy import InventoryTracker, LossBonusTracker
from tacboard.domains.health import HealthTracker
from tacboard.domains.rating import accumulate_round, calculate_round_rating
from tacboard.domains.roster import TeamResolution
from tacboard.domains.wpa import WPAEngine
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
    resolve_round_winner,
)

logger = logging.getLogger(__name__)


class RoundPhase(Enum):
    AWAITING_MATCH_START = "awaiting_match_start"
    IDLE = "idle"
    ROUND_ACTIVE = "round_active"
    ROUND_PENDING_END = "round_pending_end"


@dataclass(frozen=True)
class PendingRoundEnd:
    """A round end that fired but is not finalized until the next round starts."""

    winner: Side
    reason: int | None
    tick: int
    alive: Mapping[Side, frozenset[str]]


@dataclass
class _TimelineEntry:
    tick: int
    type: str
    actor: str | None = None
    target: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass
class RoundContext:
    """Everything scoped to the round that is currently open."""

    number: int
    anchor_tick: int
    anchored_by: str
    sides: dict[str, Side]
    alive: dict[Side, set[str]]
    players: dict[str, PlayerRoundStats]
    loss_bonus: dict[Side, int]
    timeline: list[_TimelineEntry] = field(default_factory=list)
    has_gameplay: bool = False
    first_kill_seen: bool = False

    def members(self, side: Side) -> list[str]:
        return sorted(i for i, s in self.sides.items() if s == side and i != BOT_IDENTITY)

    def alive_snapshot(self) -> dict[Side, frozenset[str]]:
        return {side: frozenset(ids) for side, ids in self.alive.items()}


class RoundLifecycleController:
    """
    Consumes the ordered GameEvent stream of one match.

    Usage:
        controller = RoundLifecycleController(resolution, demo.active, player_ids)
        for event in demo.events:
            controller.handle_event(event)
        controller.finish()
        controller.rounds, controller.score()
    """

    def __init__(
        self,
        resolution: TeamResolution,
        identities: Sequence[str],
        player_ids: Mapping[str, str] | None = None,
        config: EngineConfig | None = None,
        expect_match_start: bool = False,
    ):
        self.config = config or EngineConfig()
        self.resolution = resolution
        self.identities: list[str] = list(dict.fromkeys(identities))
        self.player_ids = dict(player_ids or {})

        self.health = HealthTracker()
        self.inventory = InventoryTracker()
        self.trades = TradeDetector(
            window_ticks=self.config.trade_window_ticks,
            history=self.config.recent_deaths_history,
        )
        self.clutches = ClutchTracker()
        self.wpa = WPAEngine(scaling=self.config.wpa_scaling)
        self.loss_bonus = LossBonusTracker()
        # Dispatch order matters: inventory snapshots before WPA reads values
        self.participants: tuple[RoundParticipant, ...] = (
            self.health,
            self.inventory,
            self.trades,
            self.clutches,
            self.wpa,
        )

        # Persistent across rounds (and across a match restart)
        self.side_map: dict[str, Side] = {}
        self._deferred_sides: dict[str, Side] = {}
        self.last_freeze_tick: int | None = None
        self.last_tick = 0
        self.awaiting_match_start = expect_match_start

        self._handlers = {
            MatchStart: self._on_match_start,
            RoundStart: self._on_round_start,
            FreezeEnd: self._on_freeze_end,
            RoundEnd: self._on_round_end,
            Kill: self._on_kill,
            Damage: self._on_damage,
            Blind: self._on_blind,
            Detonate: self._on_detonate,
            Plant: self._on_plant,
            Defuse: self._on_defuse,
            Explode: self._on_explode,
            TeamChange: self._on_team_change,
            ItemTransaction: self._on_item,
        }

        self.reset()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clear every match accumulator (called at construction and on MatchStart)."""
        self.round: RoundContext | None = None
        self.pending: PendingRoundEnd | None = None
        self.round_number = 1
        self.rounds: list[MatchRound] = []
        self.results: list[tuple[int, Side, Side]] = []  # (round, winner, roster side)
        self.match_stats: dict[str, PlayerMatchStats] = {}
        for participant in self.participants:
            participant.reset()
        self.loss_bonus.reset()
        for identity in self.identities:
            self._match_player(identity)

    @property
    def phase(self) -> RoundPhase:
        if self.awaiting_match_start:
            return RoundPhase.AWAITING_MATCH_START
        if self.pending is not None:
            return RoundPhase.ROUND_PENDING_END
        if self.round is not None:
            return RoundPhase.ROUND_ACTIVE
        return RoundPhase.IDLE

    def handle_event(self, event: GameEvent) -> None:
        self.last_tick = max(self.last_tick, event.tick)
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.debug(f"No handler for {type(event).__name__}")
            return
        handler(event)

    def finalize_round(self) -> MatchRound | None:
        """Finalize the pending round, if any."""
        if self.pending is None or self.round is None:
            return None
        return self._finalize_pending()

    def finish(self) -> None:
        """End of log: close whatever is still open."""
        if self.awaiting_match_start:
            logger.warning("Match start was never announced; no rounds recorded")
            return
        if self.pending is not None:
            self._finalize_pending()
        elif self.round is not None and self.round.has_gameplay:
            winner = self._infer_winner(self.round)
            logger.debug(f"Trailing round {self.round.number} closed with inferred winner {winner}")
            self.pending = PendingRoundEnd(
                winner=winner,
                reason=None,
                tick=self.last_tick,
                alive=self.round.alive_snapshot(),
            )
            self._finalize_pending()

    def score(self) -> MatchScore:
        half1_us = half1_them = half2_us = half2_them = 0
        for number, winner, roster_side in self.results:
            ours = winner == roster_side
            if number <= ROUNDS_PER_HALF:
                half1_us += ours
                half1_them += not ours
            else:
                half2_us += ours
                half2_them += not ours
        return MatchScore(
            us=half1_us + half2_us,
            them=half1_them + half2_them,
            half1_us=half1_us,
            half1_them=half1_them,
            half2_us=half2_us,
            half2_them=half2_them,
        )

    @property
    def starting_side(self) -> Side:
        if self.results:
            number, _, roster_side = self.results[0]
            return roster_side if number <= ROUNDS_PER_HALF else roster_side.opposite
        return self.resolution.starting_side

    # ------------------------------------------------------------------
    # Round open / close
    # ------------------------------------------------------------------

    def _side_for(self, identity: str, number: int) -> Side:
        side = self.side_map.get(identity)
        if side is not None:
            return side
        return self.resolution.inferred_side(identity, number)

    def _open_round(self, tick: int, anchored_by: str) -> RoundContext:
        number = self.round_number
        sides = {i: self._side_for(i, number) for i in self.identities}
        alive: dict[Side, set[str]] = {Side.T: set(), Side.CT: set()}
        for identity, side in sides.items():
            if identity != BOT_IDENTITY:
                alive[side].add(identity)

        self.round = RoundContext(
            number=number,
            anchor_tick=tick,
            anchored_by=anchored_by,
            sides=sides,
            alive=alive,
            players={i: PlayerRoundStats(identity=i, side=s) for i, s in sides.items()},
            loss_bonus={side: self.loss_bonus.get_loss_bonus(side) for side in (Side.T, Side.CT)},
        )
        opening = RoundOpen(
            number=number, tick=tick, sides=dict(sides), alive=self.round.alive_snapshot()
        )
        for participant in self.participants:
            participant.on_round_open(opening)
        self._initialize_round_economy()

        logger.debug(f"Round {number} opened at tick {tick} ({anchored_by})")
        return self.round

    def _initialize_round_economy(self) -> None:
        r = self.round
        ct_members = r.members(Side.CT)
        self.wpa.initialize_economy(
            self.inventory.team_start_value(r.members(Side.T)),
            self.inventory.team_start_value(ct_members),
            self.inventory.kit_count(ct_members),
        )

    def _finalize_pending(self) -> MatchRound:
        r, pending = self.round, self.pending
        side_swap_next = r.number == ROUNDS_PER_HALF

        closing = RoundClose(
            number=r.number,
            tick=pending.tick,
            winner=pending.winner,
            sides=dict(r.sides),
            alive=pending.alive,
            side_swap_next=side_swap_next,
            survivors=frozenset(r.alive[Side.T] | r.alive[Side.CT]),
        )
        for participant in self.participants:
            participant.on_round_close(closing)

        for identity, stats in r.players.items():
            credit = self.trades.credits.get(identity)
            if credit is not None:
                stats.traded = credit.traded
                stats.was_traded = credit.was_traded
                stats.trade_bonus = credit.trade_bonus
                stats.trade_penalty = credit.trade_penalty
            stats.wpa = self.wpa.round_credit.get(identity, 0.0)
            stats.rating, stats.impact = calculate_round_rating(
                stats, self.inventory.start_value(identity)
            )
            accumulate_round(self._match_player(identity), stats)

        for identity, record in self.clutches.records:
            self._match_player(identity).record_clutch(record)

        economy = {
            str(side): {
                "loss_bonus": r.loss_bonus[side],
                "start_value": self.inventory.team_start_value(r.members(side)),
            }
            for side in (Side.T, Side.CT)
        }

        rate = self.config.tick_rate
        match_round = MatchRound(
            number=r.number,
            winner=pending.winner,
            reason=pending.reason,
            duration=round(max(0.0, (pending.tick - r.anchor_tick) / rate), 2),
            players=dict(r.players),
            timeline=[self._relativize(entry, r.anchor_tick) for entry in r.timeline],
            economy=economy,
        )

        roster_side = self._roster_side(r)
        self.results.append((r.number, pending.winner, roster_side))
        self.rounds.append(match_round)
        self.loss_bonus.update(pending.winner)

        logger.debug(
            f"Round {r.number} finalized: {pending.winner} wins (reason {pending.reason}), "
            f"roster on {roster_side}, {len(r.timeline)} timeline events"
        )

        self.round = None
        self.pending = None
        self.round_number += 1

        if side_swap_next:
            self.side_map = {identity: side.opposite for identity, side in self.side_map.items()}
        self.side_map.update(self._deferred_sides)
        self._deferred_sides.clear()

        return match_round

    def _relativize(self, entry: _TimelineEntry, anchor_tick: int) -> TimelineEvent:
        seconds = (entry.tick - anchor_tick) / self.config.tick_rate
        return TimelineEvent(
            time=round(max(seconds, -FREEZE_TIME_SLACK_SECONDS), 2),
            tick=entry.tick,
            type=entry.type,
            actor=entry.actor,
            target=entry.target,
            detail=entry.detail,
        )

    def _roster_side(self, r: RoundContext) -> Side:
        counts = Counter(r.sides[i] for i in self.resolution.roster if i in r.sides)
        if counts[Side.T] != counts[Side.CT]:
            return Side.T if counts[Side.T] > counts[Side.CT] else Side.CT
        return self.resolution.roster_side(r.number)

    @staticmethod
    def _infer_winner(r: RoundContext) -> Side:
        t_alive, ct_alive = len(r.alive[Side.T]), len(r.alive[Side.CT])
        # Even numbers at the end means time ran out, which is a CT win
        return Side.T if t_alive > ct_alive else Side.CT

    # ------------------------------------------------------------------
    # Per-round helpers
    # ------------------------------------------------------------------

    def _match_player(self, identity: str) -> PlayerMatchStats:
        stats = self.match_stats.get(identity)
        if stats is None:
            stats = PlayerMatchStats(
                steamid=identity, player_id=self.player_ids.get(identity, identity)
            )
            self.match_stats[identity] = stats
        return stats

    def _ensure_player(self, identity: str | None) -> None:
        """Lazily add an identity never seen before (alive, on its inferred side)."""
        if identity is None:
            return
        if identity not in self.identities:
            self.identities.append(identity)
            self._match_player(identity)
        r = self.round
        if r is not None and identity not in r.sides:
            side = self._side_for(identity, r.number)
            r.sides[identity] = side
            if identity != BOT_IDENTITY:
                r.alive[side].add(identity)
            r.players[identity] = PlayerRoundStats(identity=identity, side=side)

    def _observe_side(self, identity: str | None, side: Side | None) -> None:
        if identity is None or side is None:
            return
        self.side_map[identity] = side
        r = self.round
        if r is None or identity not in r.sides or r.sides[identity] == side:
            return
        old = r.sides[identity]
        r.sides[identity] = side
        r.players[identity].side = side
        if identity in r.alive[old]:
            r.alive[old].discard(identity)
            r.alive[side].add(identity)

    def _begin_gameplay(self, event: GameEvent) -> bool:
        if self.awaiting_match_start:
            return False
        if self.pending is not None and event.tick - self.pending.tick > self._restart_ticks:
            logger.debug(
                f"Gameplay at tick {event.tick} without a start marker, "
                f"closing round {self.round.number}"
            )
            self._finalize_pending()
        if self.round is None:
            self._open_round(event.tick, "gameplay")
        self.round.has_gameplay = True
        return True

    @property
    def _restart_ticks(self) -> float:
        return self.config.round_restart_delay_seconds * self.config.tick_rate

    def _context(self, tick: int, **kwargs: Any) -> EventContext:
        r = self.round
        return EventContext(
            round_number=r.number,
            tick=tick,
            elapsed=(tick - r.anchor_tick) / self.config.tick_rate,
            sides=dict(r.sides),
            alive=r.alive_snapshot(),
            pending_end=self.pending is not None,
            **kwargs,
        )

    def _dispatch(self, event: GameEvent, ctx: EventContext) -> None:
        for participant in self.participants:
            participant.on_event(event, ctx)

    def _timeline(self, tick: int, kind: str, actor=None, target=None, **detail) -> None:
        self.round.timeline.append(
            _TimelineEntry(tick=tick, type=kind, actor=actor, target=target, detail=detail)
        )

    def _opponents(self, a: str, b: str) -> bool:
        r = self.round
        return r.sides.get(a) is not None and r.sides.get(a) != r.sides.get(b)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_match_start(self, event: MatchStart) -> None:
        self.awaiting_match_start = False
        self.reset()
        logger.info(f"Match start at tick {event.tick}")

        recovery_ticks = self.config.freeze_recovery_seconds * self.config.tick_rate
        if self.last_freeze_tick is not None and 0 <= event.tick - self.last_freeze_tick <= recovery_ticks:
            logger.debug(f"Replaying freeze end from tick {self.last_freeze_tick}")
            self._on_freeze_end(FreezeEnd(tick=self.last_freeze_tick))

    def _on_round_start(self, event: RoundStart) -> None:
        if self.awaiting_match_start:
            return
        if self.pending is not None:
            self._finalize_pending()
            self._open_round(event.tick, "round_start")
        elif self.round is None:
            self._open_round(event.tick, "round_start")
        elif not self.round.has_gameplay:
            self.round.anchor_tick = event.tick
            self.round.anchored_by = "round_start"
        else:
            logger.debug(f"round_start at tick {event.tick} inside live round {self.round.number}")

    def _on_freeze_end(self, event: FreezeEnd) -> None:
        self.last_freeze_tick = event.tick
        if self.awaiting_match_start:
            return
        if self.pending is not None:
            self._finalize_pending()
            self._open_round(event.tick, "freeze_end")
        elif self.round is None:
            self._open_round(event.tick, "freeze_end")
        else:
            self.round.anchor_tick = event.tick
            self.round.anchored_by = "freeze_end"
        self._dispatch(event, self._context(event.tick))
        self._initialize_round_economy()

    def _on_round_end(self, event: RoundEnd) -> None:
        if self.awaiting_match_start:
            return
        winner = resolve_round_winner(event)
        if winner is None:
            logger.debug(f"round_end at tick {event.tick} without a decidable winner, ignored")
            return
        if self.pending is not None:
            if event.tick == self.pending.tick:
                logger.debug(f"Duplicate round_end at tick {event.tick} ignored")
                return
            # No start marker since the last end: that round is over
            self._finalize_pending()
        if self.round is None:
            self._open_round(event.tick, "round_end")

        self.pending = PendingRoundEnd(
            winner=winner,
            reason=event.reason,
            tick=event.tick,
            alive=self.round.alive_snapshot(),
        )
        self._dispatch(event, self._context(event.tick))
        self._timeline(event.tick, "round_end", winner=str(winner), reason=event.reason)

    def _on_kill(self, event: Kill) -> None:
        if not self._begin_gameplay(event):
            return
        attacker, victim, assister = event.attacker, event.victim, event.assister
        self._observe_side(attacker, event.attacker_side)
        self._observe_side(victim, event.victim_side)
        for identity in (victim, attacker, assister):
            self._ensure_player(identity)

        r = self.round
        victim_stats = r.players[victim]
        victim_stats.deaths += 1
        victim_stats.survived = False
        for alive in r.alive.values():
            alive.discard(victim)

        if attacker and attacker != victim and self._opponents(attacker, victim):
            attacker_stats = r.players[attacker]
            attacker_stats.kills += 1
            if event.headshot:
                attacker_stats.headshots += 1
            attacker_stats.kill_value += self.inventory.start_value(victim)
            if not r.first_kill_seen:
                attacker_stats.entry_kill = True
                victim_stats.entry_death = True
                r.first_kill_seen = True
            self._match_player(attacker).record_duel(victim, won=True)
            self._match_player(victim).record_duel(attacker, won=False)

        if assister and assister not in (attacker, victim):
            assister_stats = r.players[assister]
            assister_stats.assists += 1
            if event.flash_assist:
                assister_stats.flash_assists += 1

        ctx = self._context(event.tick, victim_had_kit=self.inventory.has_kit(victim))
        self._dispatch(event, ctx)

        self._timeline(
            event.tick,
            "kill",
            actor=attacker,
            target=victim,
            weapon=event.weapon,
            headshot=event.headshot,
            wallbang=event.wallbang,
            throughSmoke=event.through_smoke,
            attackerBlind=event.blind,
            assister=assister,
        )

    def _on_damage(self, event: Damage) -> None:
        if not self._begin_gameplay(event):
            return
        attacker, victim = event.attacker, event.victim
        self._observe_side(attacker, event.attacker_side)
        self._observe_side(victim, event.victim_side)
        self._ensure_player(victim)
        self._ensure_player(attacker)

        applied = self.health.record_damage(victim, event.amount_raw)

        if attacker and attacker != victim and self._opponents(attacker, victim):
            stats = self.round.players[attacker]
            stats.damage += applied
            if event.weapon in HE_WEAPONS:
                stats.utility.he_damage += applied
            elif event.weapon in FIRE_WEAPONS:
                stats.utility.molotov_damage += applied

        self._dispatch(event, self._context(event.tick, applied_damage=applied))

    def _on_blind(self, event: Blind) -> None:
        if not self._begin_gameplay(event):
            return
        self._ensure_player(event.attacker)
        self._ensure_player(event.victim)
        if (
            event.attacker != event.victim
            and event.duration > 0
            and self._opponents(event.attacker, event.victim)
        ):
            utility = self.round.players[event.attacker].utility
            utility.enemies_blinded += 1
            utility.blind_duration += event.duration
        self._dispatch(event, self._context(event.tick))

    def _on_detonate(self, event: Detonate) -> None:
        if not self._begin_gameplay(event):
            return
        self._ensure_player(event.owner)
        utility = self.round.players[event.owner].utility
        if event.kind == UtilityKind.SMOKE:
            utility.smokes_thrown += 1
        elif event.kind == UtilityKind.FLASH:
            utility.flashes_thrown += 1
        elif event.kind == UtilityKind.HE:
            utility.he_thrown += 1
        elif event.kind == UtilityKind.MOLOTOV:
            utility.molotovs_thrown += 1
        self._dispatch(event, self._context(event.tick))
        self._timeline(event.tick, "utility", actor=event.owner, kind=str(event.kind))

    def _on_plant(self, event: Plant) -> None:
        if not self._begin_gameplay(event):
            return
        self._ensure_player(event.owner)
        self.round.players[event.owner].planted = True
        self._dispatch(event, self._context(event.tick))
        self._timeline(event.tick, "plant", actor=event.owner)

    def _on_defuse(self, event: Defuse) -> None:
        if not self._begin_gameplay(event):
            return
        self._ensure_player(event.owner)
        self.round.players[event.owner].defused = True
        self._dispatch(event, self._context(event.tick))
        self._timeline(event.tick, "defuse", actor=event.owner)

    def _on_explode(self, event: Explode) -> None:
        if self.awaiting_match_start or self.round is None:
            return
        self._dispatch(event, self._context(event.tick))
        self._timeline(event.tick, "explode")

    def _on_team_change(self, event: TeamChange) -> None:
        side = event.side
        if side is None:
            return
        if self.pending is not None:
            # Seen between rounds: belongs to the next round, after any side swap
            self._deferred_sides[event.player] = side
            return
        self._observe_side(event.player, side)

    def _on_item(self, event: ItemTransaction) -> None:
        if self.awaiting_match_start:
            return
        if self.round is None:
            self.inventory.apply(event)
            return
        self._dispatch(event, self._context(event.tick))
