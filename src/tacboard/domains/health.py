"""Per-round remaining HP, used to cap recorded damage at the victim's real HP pool."""

from __future__ import annotations

from tacboard.core.constants import BOT_IDENTITY, MAX_HEALTH
from tacboard.core.lifecycle import EventContext, RoundOpen, RoundParticipant
from tacboard.parsing.events import GameEvent, Kill


class HealthTracker(RoundParticipant):
    """
    Tracks remaining HP per identity for the current round.

    Usage:
        health = HealthTracker()
        applied = health.record_damage("7656...", 150)  # -> 100
    """

    def __init__(self) -> None:
        self._health: dict[str, int] = {}

    def reset(self) -> None:
        self._health.clear()

    def on_round_open(self, opening: RoundOpen) -> None:
        self.reset()

    def on_event(self, event: GameEvent, ctx: EventContext) -> None:
        # Every bot shares the sentinel, so the next bot starts at full HP
        if isinstance(event, Kill) and event.victim == BOT_IDENTITY:
            self._health.pop(BOT_IDENTITY, None)

    def get_health(self, identity: str) -> int:
        return self._health.get(identity, MAX_HEALTH)

    def record_damage(self, victim: str, raw_amount: int) -> int:
        """Apply damage and return the applied amount, min(current HP, raw)."""
        current = self.get_health(victim)
        applied = max(0, min(current, raw_amount))
        self._health[victim] = max(0, current - applied)
        return applied
