"""
Win Probability Added (WPA)

Keeps a live estimate of the T side's round-win probability:

    p = matrix[T alive][CT alive]           pre-plant or post-plant table
      + economy modifier                    full weight pre-plant, 30% post-plant
      + 0.05 * (T hp - CT hp) / 500
      with pre-plant panic (cubic ramp over the last 30 s) or post-plant
      acceleration as the bomb timer runs out; a CT side without kits and
      under 10 s on the bomb is a certain T win

Every damage, kill, plant and defuse turns the before/after difference into
player credit. Each event's updates sum to zero: whatever the credited
players gain, the debited players lose. Round end distributes the remaining
gap to 0 or 1 across both sides the same way.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from tacboard.core.constants import (
    MAX_HEALTH,
    TEAM_SIZE,
    WPA_C4_TIME,
    WPA_ECON_COEFF,
    WPA_ECON_NORM,
    WPA_FLASH_ASSIST_WEIGHT,
    WPA_HEALTH_COEFF,
    WPA_KILLER_SHARE,
    WPA_MATRIX_POST,
    WPA_MATRIX_PRE,
    WPA_MIN_SWING,
    WPA_NO_KIT_DEFUSE_TIME,
    WPA_POST_PLANT_ECON_WEIGHT,
    WPA_ROUND_TIME,
    WPA_SCALING,
    WPA_TIME_PANIC,
    Side,
)
from tacboard.core.lifecycle import EventContext, RoundClose, RoundOpen, RoundParticipant
from tacboard.parsing.events import Damage, Defuse, GameEvent, Kill, Plant

logger = logging.getLogger(__name__)

FULL_TEAM_HEALTH = MAX_HEALTH * TEAM_SIZE


@dataclass(frozen=True)
class WPAUpdate:
    """One player's share of an event's probability swing, in scaled points."""

    identity: str
    delta: float
    reason: str
    prob_before: float = 0.0
    prob_after: float = 0.0


def economy_modifier(t_value: float, ct_value: float) -> float:
    """sign(T - CT) * ln(1 + |T - CT| / 5000) * 0.15"""
    diff = t_value - ct_value
    return float(np.sign(diff) * np.log1p(abs(diff) / WPA_ECON_NORM) * WPA_ECON_COEFF)


class WPAEngine(RoundParticipant):
    """
    Live round-win probability and zero-sum per-player credit.

    Usage:
        wpa = WPAEngine()
        wpa.on_round_open(opening)
        updates = wpa.handle_kill(kill, ctx)
        assert abs(sum(u.delta for u in updates)) < 1e-6
    """

    def __init__(self, scaling: float = WPA_SCALING):
        self.scaling = scaling
        self.round_credit: dict[str, float] = {}
        self.reset()

    def reset(self) -> None:
        self.t_alive = TEAM_SIZE
        self.ct_alive = TEAM_SIZE
        self.t_health = FULL_TEAM_HEALTH
        self.ct_health = FULL_TEAM_HEALTH
        self.planted = False
        self.defused = False
        self.plant_time = 0.0
        self.time_remaining = WPA_ROUND_TIME
        self.econ_mod = 0.0
        self.ct_kits = 0
        # victim -> attacker -> applied damage this round
        self.damage_taken: dict[str, dict[str, int]] = {}
        self.round_credit = {}
        self.win_prob = self.calculate_win_prob()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_round_open(self, opening: RoundOpen) -> None:
        self.reset()
        self.t_alive = len(opening.alive.get(Side.T, ()))
        self.ct_alive = len(opening.alive.get(Side.CT, ()))
        self.t_health = self.t_alive * MAX_HEALTH
        self.ct_health = self.ct_alive * MAX_HEALTH
        self.win_prob = self.calculate_win_prob()

    def initialize_economy(self, t_value: float, ct_value: float, ct_kits: int = 0) -> None:
        """Round-start equipment values; sets the economy modifier and the CT kit count."""
        self.econ_mod = economy_modifier(t_value, ct_value)
        self.ct_kits = ct_kits
        self.win_prob = self.calculate_win_prob()

    def on_event(self, event: GameEvent, ctx: EventContext) -> None:
        # Garbage time carries no win probability
        if ctx.pending_end:
            return
        if isinstance(event, Damage):
            self.commit(self.handle_damage(event, ctx))
        elif isinstance(event, Kill):
            self.commit(self.handle_kill(event, ctx))
        elif isinstance(event, Plant):
            self.commit(self.handle_objective(event.owner, "plant", ctx))
        elif isinstance(event, Defuse):
            self.commit(self.handle_objective(event.owner, "defuse", ctx))

    def on_round_close(self, closing: RoundClose) -> None:
        self.commit(
            self.finalize_round(closing.winner, closing.members(Side.T), closing.members(Side.CT))
        )

    def commit(self, updates: Sequence[WPAUpdate]) -> None:
        for update in updates:
            self.round_credit[update.identity] = (
                self.round_credit.get(update.identity, 0.0) + update.delta
            )

    # ------------------------------------------------------------------
    # Probability model
    # ------------------------------------------------------------------

    def update_round_time(self, elapsed: float) -> None:
        if self.planted:
            self.time_remaining = max(0.0, WPA_C4_TIME - (elapsed - self.plant_time))
        else:
            self.time_remaining = max(0.0, WPA_ROUND_TIME - elapsed)

    def calculate_win_prob(self) -> float:
        if self.defused:
            return 0.0

        t_idx = int(np.clip(self.t_alive, 0, TEAM_SIZE))
        ct_idx = int(np.clip(self.ct_alive, 0, TEAM_SIZE))

        if self.planted:
            p = float(WPA_MATRIX_POST[t_idx, ct_idx])
            p += self.econ_mod * WPA_POST_PLANT_ECON_WEIGHT
            if self.ct_kits <= 0 and self.time_remaining < WPA_NO_KIT_DEFUSE_TIME:
                p = 1.0
            elif self.time_remaining < WPA_C4_TIME:
                time_factor = (WPA_C4_TIME - self.time_remaining) / WPA_C4_TIME
                p += (1.0 - p) * time_factor**2 * 0.5
        else:
            p = float(WPA_MATRIX_PRE[t_idx, ct_idx]) + self.econ_mod
            if self.time_remaining < WPA_TIME_PANIC:
                panic = ((WPA_TIME_PANIC - max(0.0, self.time_remaining)) / WPA_TIME_PANIC) ** 3
                p *= 1.0 - panic

        hp_diff = self.t_health - self.ct_health
        p += WPA_HEALTH_COEFF * (hp_diff / FULL_TEAM_HEALTH)

        return float(np.clip(p, 0.0, 1.0))

    def _swing(self) -> tuple[float, float]:
        before = self.win_prob
        self.win_prob = self.calculate_win_prob()
        return before, self.win_prob

    def _sync_alive(self, ctx: EventContext) -> None:
        self.t_alive = ctx.alive_count(Side.T)
        self.ct_alive = ctx.alive_count(Side.CT)

    # ------------------------------------------------------------------
    # Event handlers (each returns a zero-sum list of updates)
    # ------------------------------------------------------------------

    def handle_damage(self, event: Damage, ctx: EventContext) -> list[WPAUpdate]:
        self.update_round_time(ctx.elapsed)
        applied = ctx.applied_damage
        attacker, victim = event.attacker, event.victim

        victim_side = ctx.side_of(victim)
        if victim_side == Side.T:
            self.t_health = max(0, self.t_health - applied)
        elif victim_side == Side.CT:
            self.ct_health = max(0, self.ct_health - applied)

        if attacker and attacker != victim and applied:
            taken = self.damage_taken.setdefault(victim, {})
            taken[attacker] = taken.get(attacker, 0) + applied

        before, after = self._swing()
        attacker_side = ctx.side_of(attacker)
        if not attacker or attacker == victim or attacker_side is None or attacker_side == victim_side:
            return []
        return self._pairwise(attacker, victim, before, after, "damage")

    def handle_kill(self, event: Kill, ctx: EventContext) -> list[WPAUpdate]:
        self.update_round_time(ctx.elapsed)
        self._sync_alive(ctx)
        victim = event.victim
        victim_side = ctx.side_of(victim)
        if victim_side == Side.CT and ctx.victim_had_kit:
            self.ct_kits = max(0, self.ct_kits - 1)

        before, after = self._swing()
        points = abs(after - before) * self.scaling
        if points < WPA_MIN_SWING or victim_side is None:
            return []

        killer = event.attacker
        enemy_side = victim_side.opposite
        shares: dict[str, float] = {}

        if killer and killer != victim and ctx.side_of(killer) == enemy_side:
            shares[killer] = points * WPA_KILLER_SHARE
            pool = points - shares[killer]

            weights: dict[str, float] = {}
            for contributor, dealt in self.damage_taken.get(victim, {}).items():
                if ctx.side_of(contributor) == enemy_side:
                    weights[contributor] = weights.get(contributor, 0.0) + dealt
            assister = event.assister
            if event.flash_assist and assister and ctx.side_of(assister) == enemy_side:
                weights[assister] = weights.get(assister, 0.0) + WPA_FLASH_ASSIST_WEIGHT

            total_weight = sum(weights.values())
            if total_weight > 0:
                for contributor, weight in weights.items():
                    shares[contributor] = shares.get(contributor, 0.0) + weight / total_weight * pool
            else:
                shares[killer] += pool
        else:
            # World kill, suicide or team kill: the victim's opponents collect
            beneficiaries = ctx.members(enemy_side)
            if not beneficiaries:
                return []
            for identity in beneficiaries:
                shares[identity] = points / len(beneficiaries)

        updates = [
            WPAUpdate(identity, share, "kill", before, after) for identity, share in shares.items()
        ]
        updates.append(WPAUpdate(victim, -points, "kill", before, after))
        return updates

    def handle_objective(self, identity: str, kind: str, ctx: EventContext) -> list[WPAUpdate]:
        self.update_round_time(ctx.elapsed)
        if kind == "plant":
            self.planted = True
            self.plant_time = ctx.elapsed
            self.time_remaining = WPA_C4_TIME
            actor_side = Side.T
        else:
            self.defused = True
            actor_side = Side.CT

        before, after = self._swing()
        t_points = (after - before) * self.scaling
        gain = t_points if actor_side == Side.T else -t_points
        losers = ctx.members(actor_side.opposite)
        if abs(gain) < WPA_MIN_SWING or not losers:
            return []

        updates = [WPAUpdate(identity, gain, kind, before, after)]
        for loser in losers:
            updates.append(WPAUpdate(loser, -gain / len(losers), kind, before, after))
        return updates

    def finalize_round(
        self, winner: Side, t_members: Sequence[str], ct_members: Sequence[str]
    ) -> list[WPAUpdate]:
        """Force the probability to 0/1 and spread the remaining gap over both sides."""
        before = self.win_prob
        target = 1.0 if winner == Side.T else 0.0
        self.win_prob = target
        delta = (target - before) * self.scaling
        if abs(delta) < WPA_MIN_SWING or not t_members or not ct_members:
            return []

        updates = [
            WPAUpdate(identity, delta / len(t_members), "round_end", before, target)
            for identity in t_members
        ]
        updates.extend(
            WPAUpdate(identity, -delta / len(ct_members), "round_end", before, target)
            for identity in ct_members
        )
        return updates

    def _pairwise(
        self, gainer: str, loser: str, before: float, after: float, reason: str
    ) -> list[WPAUpdate]:
        points = abs(after - before) * self.scaling
        if points < WPA_MIN_SWING:
            return []
        return [
            WPAUpdate(gainer, points, reason, before, after),
            WPAUpdate(loser, -points, reason, before, after),
        ]
