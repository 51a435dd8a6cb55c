"""
Typed game events.

The normalizer turns every raw log record into exactly one of these variants
(or drops it). Everything downstream dispatches on the variant type instead of
probing raw dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass

from tacboard.core.constants import REASON_WINNER, ItemAction, Side, UtilityKind


@dataclass(frozen=True)
class GameEvent:
    """Base for all typed events."""

    tick: int


@dataclass(frozen=True)
class MatchStart(GameEvent):
    pass


@dataclass(frozen=True)
class RoundStart(GameEvent):
    pass


@dataclass(frozen=True)
class FreezeEnd(GameEvent):
    pass


@dataclass(frozen=True)
class RoundEnd(GameEvent):
    """Round end as reported by the server. winner is None when not decidable from the winner field."""

    winner: Side | None = None
    reason: int | None = None


@dataclass(frozen=True)
class Kill(GameEvent):
    victim: str
    attacker: str | None = None
    assister: str | None = None
    weapon: str = ""
    headshot: bool = False
    wallbang: bool = False
    blind: bool = False
    through_smoke: bool = False
    flash_assist: bool = False
    attacker_side: Side | None = None
    victim_side: Side | None = None


@dataclass(frozen=True)
class Damage(GameEvent):
    victim: str
    attacker: str | None = None
    amount_raw: int = 0
    weapon: str = ""
    hitgroup: int = 0
    attacker_side: Side | None = None
    victim_side: Side | None = None


@dataclass(frozen=True)
class Blind(GameEvent):
    attacker: str
    victim: str
    duration: float = 0.0


@dataclass(frozen=True)
class Detonate(GameEvent):
    owner: str
    kind: UtilityKind


@dataclass(frozen=True)
class Plant(GameEvent):
    owner: str


@dataclass(frozen=True)
class Defuse(GameEvent):
    owner: str


@dataclass(frozen=True)
class Explode(GameEvent):
    pass


@dataclass(frozen=True)
class TeamChange(GameEvent):
    """A player was seen on a team; numeric_team_id is the raw team value (2/3 or a side string)."""

    player: str
    numeric_team_id: int | str

    @property
    def side(self) -> Side | None:
        return side_from_team(self.numeric_team_id)


@dataclass(frozen=True)
class ItemTransaction(GameEvent):
    player: str
    item: str
    kind: ItemAction


def side_from_team(value: int | str | None) -> Side | None:
    """Map a team number (2/3) or side string ("T", "CT", "TERRORIST", ...) to a Side."""
    if value is None:
        return None
    text = str(value).strip().upper()
    if text in ("2", "T", "TERRORIST", "TERRORISTS"):
        return Side.T
    if text in ("3", "CT", "COUNTER-TERRORIST", "COUNTER-TERRORISTS", "COUNTERTERRORIST"):
        return Side.CT
    if "COUNTER" in text:
        return Side.CT
    if "TERRORIST" in text:
        return Side.T
    return None


def resolve_round_winner(event: RoundEnd) -> Side | None:
    """Winner of a round_end: explicit winner field first, then reason-code heuristics."""
    if event.winner is not None:
        return event.winner
    if event.reason is not None:
        return REASON_WINNER.get(event.reason)
    return None
