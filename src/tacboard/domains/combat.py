"""
Trade and Clutch Detection

Implements:
- Trade kill detection (fixed tick window, bounded recent-death history)
- Trade magnitudes: the trader's penalty and the avenged teammate's bonus
  both scale with how much damage the teammate had already dealt to the
  killer (capped at 100); the bonus also decays linearly over the window
- 1vN clutch attempts, opened the instant a side is down to one player with
  at least one opponent alive, resolved once at round close
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import StrEnum

from tacboard.core.constants import (
    MAX_HEALTH,
    RECENT_DEATHS_HISTORY,
    TRADE_WINDOW_TICKS,
    Side,
)
from tacboard.core.lifecycle import EventContext, RoundClose, RoundOpen, RoundParticipant
from tacboard.core.models import ClutchRecord
from tacboard.parsing.events import Damage, GameEvent, Kill

logger = logging.getLogger(__name__)

TRADE_PENALTY_WEIGHT = 0.15
TRADE_BONUS_WEIGHT = 0.20


class ClutchResult(StrEnum):
    """Outcome of a clutch attempt."""

    WON = "won"
    SAVED = "saved"
    LOST = "lost"


@dataclass
class RecentDeath:
    victim: str
    killer: str
    tick: int


@dataclass
class TradeCredit:
    """Trade flags and magnitudes for one player in one round."""

    traded: bool = False
    was_traded: bool = False
    trade_bonus: float = 0.0
    trade_penalty: float = 0.0


@dataclass
class ClutchAttempt:
    identity: str
    side: Side
    opponent_count: int
    kills: int = 0


class TradeDetector(RoundParticipant):
    """
    Attributes traded / was-traded flags within the trade window.

    A trade happens when A kills V and, within the window, V had killed one of
    A's teammates B. A gets traded=True and a penalty, B gets wasTraded=True
    and a bonus.
    """

    def __init__(
        self,
        window_ticks: int = TRADE_WINDOW_TICKS,
        history: int = RECENT_DEATHS_HISTORY,
    ):
        self.window_ticks = window_ticks
        self.recent_deaths: deque[RecentDeath] = deque(maxlen=history)
        self.damage_dealt: dict[tuple[str, str], int] = {}
        self.credits: dict[str, TradeCredit] = {}

    def reset(self) -> None:
        self.recent_deaths.clear()
        self.damage_dealt.clear()
        self.credits.clear()

    def on_round_open(self, opening: RoundOpen) -> None:
        self.reset()

    def on_event(self, event: GameEvent, ctx: EventContext) -> None:
        if isinstance(event, Damage):
            if event.attacker and event.attacker != event.victim and ctx.applied_damage:
                key = (event.attacker, event.victim)
                self.damage_dealt[key] = self.damage_dealt.get(key, 0) + ctx.applied_damage
        elif isinstance(event, Kill):
            self.handle_kill(event, ctx)

    def credit_for(self, identity: str) -> TradeCredit:
        return self.credits.setdefault(identity, TradeCredit())

    def handle_kill(self, kill: Kill, ctx: EventContext) -> RecentDeath | None:
        """Record a death and return the avenged death if this kill was a trade."""
        attacker, victim = kill.attacker, kill.victim
        avenged = None

        if attacker and attacker != victim:
            avenged = self._find_avenged(attacker, victim, kill.tick, ctx)
            if avenged is not None:
                dealt = min(self.damage_dealt.get((avenged.victim, victim), 0), MAX_HEALTH)
                ratio = dealt / MAX_HEALTH
                elapsed = kill.tick - avenged.tick
                decay = max(0.0, 1.0 - elapsed / self.window_ticks) if self.window_ticks else 0.0

                trader = self.credit_for(attacker)
                trader.traded = True
                trader.trade_penalty += ratio * TRADE_PENALTY_WEIGHT

                teammate = self.credit_for(avenged.victim)
                teammate.was_traded = True
                teammate.trade_bonus += ratio * TRADE_BONUS_WEIGHT * decay

                logger.debug(
                    f"Trade: {attacker} avenged {avenged.victim} on {victim} "
                    f"after {elapsed} ticks"
                )

            self.recent_deaths.append(RecentDeath(victim=victim, killer=attacker, tick=kill.tick))

        return avenged

    def _find_avenged(
        self, attacker: str, victim: str, tick: int, ctx: EventContext
    ) -> RecentDeath | None:
        attacker_side = ctx.side_of(attacker)
        for death in reversed(self.recent_deaths):
            if death.killer != victim:
                continue
            if tick - death.tick > self.window_ticks:
                continue
            if death.victim == attacker:
                continue
            if attacker_side is not None and ctx.side_of(death.victim) != attacker_side:
                continue
            return death
        return None


class ClutchTracker(RoundParticipant):
    """
    Tracks 1vN attempts for the current round.

    The opponent count is frozen when the attempt opens. Attempts are closed
    exactly once, in on_round_close, into ClutchRecords.
    """

    def __init__(self) -> None:
        self.attempts: dict[str, ClutchAttempt] = {}
        self.records: list[tuple[str, ClutchRecord]] = []

    def reset(self) -> None:
        self.attempts.clear()
        self.records.clear()

    def on_round_open(self, opening: RoundOpen) -> None:
        self.reset()

    def on_event(self, event: GameEvent, ctx: EventContext) -> None:
        if not isinstance(event, Kill):
            return
        attacker = event.attacker
        if attacker and attacker != event.victim and attacker in self.attempts:
            self.attempts[attacker].kills += 1
        if not ctx.pending_end:
            self.check_open(ctx)

    def check_open(self, ctx: EventContext) -> None:
        for side in (Side.T, Side.CT):
            mine = ctx.alive.get(side, frozenset())
            theirs = ctx.alive.get(side.opposite, frozenset())
            if len(mine) == 1 and len(theirs) >= 1:
                (survivor,) = tuple(mine)
                if survivor not in self.attempts:
                    self.attempts[survivor] = ClutchAttempt(
                        identity=survivor, side=side, opponent_count=len(theirs)
                    )
                    logger.debug(f"Clutch opened: {survivor} 1v{len(theirs)}")

    def on_round_close(self, closing: RoundClose) -> None:
        self.records = []
        for identity in sorted(self.attempts):
            attempt = self.attempts[identity]
            side = closing.sides.get(identity, attempt.side)
            if side == closing.winner:
                result = ClutchResult.WON
            elif identity in closing.alive.get(side, frozenset()):
                result = ClutchResult.SAVED
            else:
                result = ClutchResult.LOST
            self.records.append(
                (
                    identity,
                    ClutchRecord(
                        round=closing.number,
                        opponent_count=attempt.opponent_count,
                        result=result,
                        kills=attempt.kills,
                        side=side,
                    ),
                )
            )
        self.attempts.clear()
