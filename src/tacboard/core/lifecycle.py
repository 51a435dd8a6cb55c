"""
Round lifecycle contract.

The RoundLifecycleController is the only owner of cross-round state. Sub-engines
(health, inventory, trades, clutches, win probability) subclass RoundParticipant
and are driven exclusively through these hooks:

    reset()                      match (re)start, every accumulator cleared
    on_round_open(RoundOpen)     a new round begins
    on_event(event, ctx)         one typed event inside the open round
    on_round_close(RoundClose)   the round is finalized

Everything an engine needs from the controller arrives in the hook arguments;
engines never read each other's state.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from tacboard.core.constants import BOT_IDENTITY, Side
from tacboard.parsing.events import GameEvent


@dataclass(frozen=True)
class RoundOpen:
    number: int
    tick: int
    sides: Mapping[str, Side]
    alive: Mapping[Side, frozenset[str]]

    def members(self, side: Side) -> list[str]:
        return sorted(i for i, s in self.sides.items() if s == side and i != BOT_IDENTITY)


@dataclass(frozen=True)
class EventContext:
    """Controller state at the moment an event is dispatched (after alive-sets are updated)."""

    round_number: int
    tick: int
    elapsed: float  # seconds since the round anchor
    sides: Mapping[str, Side]
    alive: Mapping[Side, frozenset[str]]
    pending_end: bool = False
    # HP-capped damage for Damage events, 0 otherwise
    applied_damage: int = 0
    # Kill events: the victim was carrying a defuse kit
    victim_had_kit: bool = False

    def side_of(self, identity: str | None) -> Side | None:
        if identity is None:
            return None
        return self.sides.get(identity)

    def members(self, side: Side) -> list[str]:
        return sorted(i for i, s in self.sides.items() if s == side and i != BOT_IDENTITY)

    def alive_count(self, side: Side) -> int:
        return len(self.alive.get(side, ()))


@dataclass(frozen=True)
class RoundClose:
    number: int
    tick: int
    winner: Side
    sides: Mapping[str, Side]
    # Alive-sets as they were when the round-ending condition fired
    alive: Mapping[Side, frozenset[str]]
    # The next round is the first of the second half
    side_swap_next: bool = False
    survivors: frozenset[str] = field(default_factory=frozenset)

    def members(self, side: Side) -> list[str]:
        return sorted(i for i, s in self.sides.items() if s == side and i != BOT_IDENTITY)


class RoundParticipant:
    """Base class for sub-engines driven by the round lifecycle. All hooks default to no-ops."""

    def reset(self) -> None:
        pass

    def on_round_open(self, opening: RoundOpen) -> None:
        pass

    def on_event(self, event: GameEvent, ctx: EventContext) -> None:
        pass

    def on_round_close(self, closing: RoundClose) -> None:
        pass
