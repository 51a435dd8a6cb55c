"""
Team / Side Resolution

Answers two questions once per match:

1. Which identities are "ours"?
   Tried in order, first non-empty answer wins:

   =====================  ====================================================
   roster_name_match      resolved names found in the configured roster table,
                          plus everyone sharing their most common team id
   numeric_team_majority  exactly 10 active players: the lowest-numbered
                          numeric team group of exactly 5
   largest_team_group     exactly 10 active players: the largest numeric team
                          group (ties go to the lower team number)
   first_five             exactly 10 active players: first 5 identities in
                          sorted order
   =====================  ====================================================

   Membership is then repaired by propagating friend/enemy relations
   through kills (bounded fixed-point pass).

2. Which side did the roster start on?
   Weighted evidence per half: objective events by roster members weigh 100,
   side-exclusive weapons used by roster members weigh 1.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from tacboard.core.constants import (
    BOT_IDENTITY,
    OBJECTIVE_SIDE_WEIGHT,
    ROUNDS_PER_HALF,
    TEAM_SIZE,
    WEAPON_SIDE_MAP,
    WEAPON_SIDE_WEIGHT,
    Side,
)
from tacboard.parsing.events import (
    Damage,
    Defuse,
    GameEvent,
    Kill,
    MatchStart,
    Plant,
    RoundEnd,
    resolve_round_winner,
)
from tacboard.parsing.normalizer import NameResolver, NormalizedDemo

logger = logging.getLogger(__name__)

# SteamIDs that went through a float lose their last digits; this prefix is still exact
STEAMID_SAFE_PREFIX = 14

# Fixed-point bound for kill-based team propagation
MAX_PROPAGATION_ITERATIONS = 5


@dataclass
class RosterEvidence:
    """Everything the roster strategies are allowed to look at."""

    active: list[str]
    names: dict[str, str]
    team_ids: dict[str, int | str]
    listed_team_numbers: dict[str, str] = field(default_factory=dict)
    resolver: NameResolver = field(default_factory=NameResolver)

    @classmethod
    def from_demo(cls, demo: NormalizedDemo, resolver: NameResolver) -> RosterEvidence:
        return cls(
            active=list(demo.active),
            names=dict(demo.names),
            team_ids=dict(demo.team_ids),
            listed_team_numbers=dict(demo.listed_team_numbers),
            resolver=resolver,
        )

    @property
    def known(self) -> list[str]:
        """Every identity seen anywhere, active first."""
        seen = dict.fromkeys(self.active)
        seen.update(dict.fromkeys(self.names))
        seen.update(dict.fromkeys(self.team_ids))
        return list(seen)

    def numeric_team(self, identity: str) -> str | None:
        raw = self.team_ids.get(identity)
        if raw is not None:
            text = str(raw).strip()
            if text.isdigit():
                return text
        listed = self.listed_team_numbers.get(identity)
        if listed is not None:
            return listed
        for other, number in self.listed_team_numbers.items():
            if steamid_loose_equal(other, identity):
                return number
        return None

    def numeric_groups(self) -> dict[str, set[str]]:
        groups: dict[str, set[str]] = {}
        for identity in self.active:
            number = self.numeric_team(identity)
            if number is not None:
                groups.setdefault(number, set()).add(identity)
        return groups


def steamid_loose_equal(a: str | None, b: str | None) -> bool:
    """Equal, or equal on the first STEAMID_SAFE_PREFIX characters."""
    if not a or not b:
        return False
    if a == b:
        return True
    if len(a) >= STEAMID_SAFE_PREFIX and len(b) >= STEAMID_SAFE_PREFIX:
        return a[:STEAMID_SAFE_PREFIX] == b[:STEAMID_SAFE_PREFIX]
    return False


# =============================================================================
# Roster strategies: (evidence) -> members or None
# =============================================================================

RosterStrategy = Callable[[RosterEvidence], "set[str] | None"]


def roster_name_match(evidence: RosterEvidence) -> set[str] | None:
    members = {
        identity
        for identity in evidence.known
        if evidence.resolver.is_roster(evidence.names.get(identity))
    }
    if not members:
        return None

    team_counts = Counter(
        evidence.team_ids[identity] for identity in members if identity in evidence.team_ids
    )
    if team_counts:
        # most_common keeps first-inserted order on ties
        our_team, _ = team_counts.most_common(1)[0]
        members |= {i for i in evidence.known if evidence.team_ids.get(i) == our_team}
    return members


def _ten_player_groups(evidence: RosterEvidence) -> list[tuple[str, set[str]]] | None:
    if len(evidence.active) != TEAM_SIZE * 2:
        return None
    groups = evidence.numeric_groups()
    return [(key, groups[key]) for key in sorted(groups, key=int)]


def numeric_team_majority(evidence: RosterEvidence) -> set[str] | None:
    groups = _ten_player_groups(evidence)
    if not groups:
        return None
    for _, members in groups:
        if len(members) == TEAM_SIZE:
            return set(members)
    return None


def largest_team_group(evidence: RosterEvidence) -> set[str] | None:
    groups = _ten_player_groups(evidence)
    if not groups:
        return None
    best: set[str] = set()
    for _, members in groups:
        if len(members) > len(best):
            best = members
    return set(best) or None


def first_five(evidence: RosterEvidence) -> set[str] | None:
    if len(evidence.active) != TEAM_SIZE * 2:
        return None
    return set(sorted(evidence.active)[:TEAM_SIZE])


ROSTER_STRATEGIES: tuple[RosterStrategy, ...] = (
    roster_name_match,
    numeric_team_majority,
    largest_team_group,
    first_five,
)


def identify_roster(
    evidence: RosterEvidence,
    strategies: Sequence[RosterStrategy] = ROSTER_STRATEGIES,
) -> tuple[set[str], str | None]:
    """Run the strategy chain. Returns (members, name of the strategy that answered)."""
    for strategy in strategies:
        members = strategy(evidence)
        if members:
            logger.debug(f"Roster resolved by {strategy.__name__}: {len(members)} players")
            return members, strategy.__name__
    logger.info("No roster strategy matched; every player will be treated as an opponent")
    return set(), None


def propagate_interactions(
    friends: Iterable[str],
    kills: Sequence[Kill],
    max_iterations: int = MAX_PROPAGATION_ITERATIONS,
) -> tuple[set[str], set[str]]:
    """
    Repair team membership from who killed whom.

    Killer of a friend is an enemy, killer of an enemy is a friend, and the
    same for victims. Runs until nothing changes or max_iterations passes.
    """
    known_friends = set(friends)
    known_enemies: set[str] = set()

    for _ in range(max_iterations):
        changed = False
        for kill in kills:
            attacker, victim = kill.attacker, kill.victim
            if attacker is None or attacker == victim or victim == BOT_IDENTITY:
                continue
            unknown_victim = victim not in known_friends and victim not in known_enemies
            unknown_attacker = attacker not in known_friends and attacker not in known_enemies

            if attacker in known_friends and unknown_victim:
                known_enemies.add(victim)
                changed = True
            elif attacker in known_enemies and unknown_victim:
                known_friends.add(victim)
                changed = True

            if victim in known_friends and unknown_attacker:
                known_enemies.add(attacker)
                changed = True
            elif victim in known_enemies and unknown_attacker:
                known_friends.add(attacker)
                changed = True
        if not changed:
            break

    return known_friends, known_enemies


# =============================================================================
# Starting side
# =============================================================================


@dataclass
class SideEvidence:
    """Weighted side votes for the roster, per half."""

    first_half: Counter = field(default_factory=Counter)
    second_half: Counter = field(default_factory=Counter)

    def add(self, round_num: int, side: Side, weight: int) -> None:
        bucket = self.first_half if round_num <= ROUNDS_PER_HALF else self.second_half
        bucket[side] += weight

    def decide(self) -> Side:
        if self.first_half[Side.CT] != self.first_half[Side.T]:
            return Side.CT if self.first_half[Side.CT] > self.first_half[Side.T] else Side.T
        if self.second_half[Side.CT] != self.second_half[Side.T]:
            # second half majority is the opposite of where we started
            return Side.T if self.second_half[Side.CT] > self.second_half[Side.T] else Side.CT
        return Side.T


def collect_side_evidence(events: Sequence[GameEvent], roster: set[str]) -> SideEvidence:
    """Accumulate side votes; a MatchStart discards everything seen before it."""
    evidence = SideEvidence()
    round_num = 1
    started = not any(isinstance(e, MatchStart) for e in events)

    for event in events:
        if isinstance(event, MatchStart):
            evidence = SideEvidence()
            round_num = 1
            started = True
            continue
        if not started:
            continue

        if isinstance(event, RoundEnd):
            if resolve_round_winner(event) is not None:
                round_num += 1
        elif isinstance(event, Plant) and event.owner in roster:
            evidence.add(round_num, Side.T, OBJECTIVE_SIDE_WEIGHT)
        elif isinstance(event, Defuse) and event.owner in roster:
            evidence.add(round_num, Side.CT, OBJECTIVE_SIDE_WEIGHT)
        elif isinstance(event, (Kill, Damage)) and event.attacker in roster:
            side = WEAPON_SIDE_MAP.get(event.weapon)
            if side is not None:
                evidence.add(round_num, side, WEAPON_SIDE_WEIGHT)

    return evidence


def determine_starting_side(events: Sequence[GameEvent], roster: set[str]) -> Side:
    return collect_side_evidence(events, roster).decide()


# =============================================================================
# Resolver
# =============================================================================


@dataclass
class TeamResolution:
    """Result of team/side resolution for one match."""

    roster: frozenset[str]
    enemies: frozenset[str]
    starting_side: Side
    strategy: str | None = None

    def is_ours(self, identity: str) -> bool:
        return identity in self.roster

    def roster_side(self, round_num: int) -> Side:
        """Side the roster plays in a given round (single swap after ROUNDS_PER_HALF)."""
        if round_num <= ROUNDS_PER_HALF:
            return self.starting_side
        return self.starting_side.opposite

    def inferred_side(self, identity: str, round_num: int) -> Side:
        side = self.roster_side(round_num)
        return side if identity in self.roster else side.opposite


class TeamSideResolver:
    """
    Runs roster identification, interaction propagation and starting-side
    detection over a normalized demo.

    Usage:
        resolution = TeamSideResolver(NameResolver(roster)).resolve(demo)
    """

    def __init__(
        self,
        resolver: NameResolver | None = None,
        strategies: Sequence[RosterStrategy] = ROSTER_STRATEGIES,
    ):
        self.resolver = resolver or NameResolver()
        self.strategies = tuple(strategies)

    def resolve(self, demo: NormalizedDemo) -> TeamResolution:
        evidence = RosterEvidence.from_demo(demo, self.resolver)
        seeds, strategy = identify_roster(evidence, self.strategies)

        kills = [e for e in demo.events if isinstance(e, Kill)]
        friends, enemies = propagate_interactions(seeds, kills)

        starting_side = determine_starting_side(demo.events, friends)

        logger.info(
            f"Roster: {len(friends)} players via {strategy or 'none'}, "
            f"{len(enemies)} known opponents, starting side {starting_side}"
        )
        return TeamResolution(
            roster=frozenset(friends),
            enemies=frozenset(enemies),
            starting_side=starting_side,
            strategy=strategy,
        )
