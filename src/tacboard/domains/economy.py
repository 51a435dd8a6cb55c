"""
Inventory and Economy Tracking

Approximates each player's carried equipment from item events and turns it
into loadout values:

- pickup / purchase append the item, drop removes the first matching entry
- a start snapshot is taken when the round goes live (freeze end), an end
  snapshot when the round-ending condition fires
- at side swap every inventory is cleared; otherwise only players who died
  lose their gear

CS inventory slots are not modelled. Value tracking only needs to be close
enough for the economy term of the rating and the WPA economy modifier.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from tacboard.core.constants import (
    BASE_LOSS_BONUS,
    DEFAULT_LOADOUT_VALUE,
    LOSS_BONUS_INCREMENT,
    MAX_LOSS_COUNT,
    WEAPON_VALUES,
    ItemAction,
    Side,
)
from tacboard.core.lifecycle import EventContext, RoundClose, RoundOpen, RoundParticipant
from tacboard.parsing.events import FreezeEnd, GameEvent, ItemTransaction, RoundEnd

logger = logging.getLogger(__name__)

DEFUSE_KIT = "defuser"


def calculate_value(items: Iterable[str]) -> int:
    """Sum of known item prices, floored at the default pistol value."""
    value = sum(WEAPON_VALUES.get(item, 0) for item in items)
    return max(value, DEFAULT_LOADOUT_VALUE)


def calculate_loss_bonus(loss_count: int) -> int:
    """
    Loss bonus for a given consecutive-loss counter.

    0 -> $1400, 1 -> $1900, 2 -> $2400, 3 -> $2900, 4 -> $3400
    """
    return BASE_LOSS_BONUS + min(max(loss_count, 0), MAX_LOSS_COUNT) * LOSS_BONUS_INCREMENT


class InventoryTracker(RoundParticipant):
    """
    Per-player carried-item lists and round value snapshots.

    Usage:
        inventory = InventoryTracker()
        inventory.apply(ItemTransaction(tick=10, player="A", item="ak47", kind=ItemAction.PURCHASE))
        inventory.snapshot_start(["A"])
        inventory.start_value("A")  # 2700
    """

    def __init__(self) -> None:
        self._items: dict[str, list[str]] = {}
        self._start: dict[str, int] = {}
        self._end: dict[str, int] = {}

    def reset(self) -> None:
        self._items.clear()
        self._start.clear()
        self._end.clear()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_round_open(self, opening: RoundOpen) -> None:
        self._end.clear()
        self.snapshot_start(opening.sides)

    def on_event(self, event: GameEvent, ctx: EventContext) -> None:
        if isinstance(event, ItemTransaction):
            self.apply(event)
        elif isinstance(event, FreezeEnd):
            # Buy time is over: this is the loadout the round is played with
            self.snapshot_start(ctx.sides)
        elif isinstance(event, RoundEnd):
            self.snapshot_end(ctx.sides)

    def on_round_close(self, closing: RoundClose) -> None:
        if not self._end:
            self.snapshot_end(closing.sides)
        self.handle_round_transition(closing.survivors, closing.side_swap_next)

    # ------------------------------------------------------------------
    # Inventory mutation
    # ------------------------------------------------------------------

    def apply(self, event: ItemTransaction) -> None:
        items = self._items.setdefault(event.player, [])
        if event.kind in (ItemAction.PICKUP, ItemAction.PURCHASE):
            items.append(event.item)
        elif event.kind == ItemAction.DROP:
            try:
                items.remove(event.item)
            except ValueError:
                logger.debug(f"Drop of untracked item {event.item} by {event.player}")

    def handle_round_transition(self, survivors: Iterable[str], side_swap: bool) -> None:
        """Fresh loadouts after a side swap, otherwise dead players lose their gear."""
        if side_swap:
            self._items.clear()
            return
        keep = set(survivors)
        for identity in self._items:
            if identity not in keep:
                self._items[identity] = []

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def items_of(self, identity: str) -> list[str]:
        return list(self._items.get(identity, []))

    def current_value(self, identity: str) -> int:
        return calculate_value(self._items.get(identity, []))

    def has_kit(self, identity: str) -> bool:
        return DEFUSE_KIT in self._items.get(identity, [])

    def snapshot_start(self, identities: Iterable[str]) -> None:
        tracked = set(identities) | set(self._items)
        self._start = {i: self.current_value(i) for i in sorted(tracked)}

    def snapshot_end(self, identities: Iterable[str]) -> None:
        tracked = set(identities) | set(self._items)
        self._end = {i: self.current_value(i) for i in sorted(tracked)}

    def start_value(self, identity: str) -> int:
        if identity in self._start:
            return self._start[identity]
        return self.current_value(identity)

    def end_value(self, identity: str) -> int:
        if identity in self._end:
            return self._end[identity]
        return self.current_value(identity)

    def team_start_value(self, members: Iterable[str]) -> int:
        return sum(self.start_value(i) for i in members)

    def kit_count(self, members: Iterable[str]) -> int:
        return sum(1 for i in members if self.has_kit(i))


class LossBonusTracker:
    """
    Consecutive-loss counters per side.

    The round winner's counter steps down by one (not to zero), the loser's
    steps up, both clamped to 0..MAX_LOSS_COUNT.
    """

    def __init__(self) -> None:
        self.losses: dict[Side, int] = {Side.T: 0, Side.CT: 0}

    def reset(self) -> None:
        self.losses = {Side.T: 0, Side.CT: 0}

    def update(self, winner: Side) -> None:
        loser = winner.opposite
        self.losses[winner] = max(0, self.losses[winner] - 1)
        self.losses[loser] = min(MAX_LOSS_COUNT, self.losses[loser] + 1)

    def get_loss_bonus(self, side: Side) -> int:
        return calculate_loss_bonus(self.losses[side])
