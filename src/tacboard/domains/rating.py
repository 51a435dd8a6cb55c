"""
Rating Engine

Round rating (per tracked player, per round):

    kill      = kills / 0.75 * 0.25
    survival  = 0.30 if survived
    damage    = damage / 80 * 0.15
    impact    = step(kills) [+0.5 entry kill] / 1.3 * 0.25
                step: 1 kill -> 1.0, 2 -> 2.2, 3+ -> 3.5
    kast      = 0.20 if kill, assist, survived, traded or was traded
    economy   = log2(1 + killValue / (startValue + 500)) * 0.10, when killValue > 0
    trade     = tradeBonus - tradePenalty

Match rating is the mean round rating times a calibration constant (1.30).
WE = rating * 0.9 + 0.1.
"""

from __future__ import annotations

import math

from tacboard.core.models import PlayerMatchStats, PlayerRoundStats

KPR_BASELINE = 0.75
KILL_WEIGHT = 0.25
SURVIVAL_SCORE = 0.30
ADR_BASELINE = 80.0
DAMAGE_WEIGHT = 0.15
IMPACT_DIVISOR = 1.3
IMPACT_WEIGHT = 0.25
ENTRY_KILL_IMPACT = 0.5
KAST_SCORE = 0.20
ECON_BASE_INVESTMENT = 500
ECON_WEIGHT = 0.10

DEFAULT_CALIBRATION = 1.30


def impact_points(kills: int, entry_kill: bool) -> float:
    """Step table on kill count, plus the entry bonus."""
    if kills >= 3:
        points = 3.5
    elif kills == 2:
        points = 2.2
    elif kills == 1:
        points = 1.0
    else:
        points = 0.0
    if entry_kill:
        points += ENTRY_KILL_IMPACT
    return points


def economy_score(kill_value: int, start_value: int) -> float:
    if kill_value <= 0:
        return 0.0
    return math.log2(1 + kill_value / (start_value + ECON_BASE_INVESTMENT)) * ECON_WEIGHT


def calculate_round_rating(stats: PlayerRoundStats, start_value: int) -> tuple[float, float]:
    """
    Rating for one player-round.

    Returns:
        (rating rounded to 3 decimals, impact score)
    """
    score_kill = stats.kills / KPR_BASELINE * KILL_WEIGHT
    score_survival = SURVIVAL_SCORE if stats.survived else 0.0
    score_damage = stats.damage / ADR_BASELINE * DAMAGE_WEIGHT
    score_impact = impact_points(stats.kills, stats.entry_kill) / IMPACT_DIVISOR * IMPACT_WEIGHT
    score_kast = KAST_SCORE if stats.kast else 0.0
    score_econ = economy_score(stats.kill_value, start_value)
    trade_adjustment = stats.trade_bonus - stats.trade_penalty

    rating = (
        score_kill
        + score_survival
        + score_damage
        + score_impact
        + score_kast
        + score_econ
        + trade_adjustment
    )
    return round(rating, 3), score_impact


def multikill_key(kills: int) -> str | None:
    if kills < 2:
        return None
    return f"k{min(kills, 5)}"


def accumulate_round(match_stats: PlayerMatchStats, stats: PlayerRoundStats) -> None:
    """Fold one finalized player-round into the match totals."""
    match_stats.rounds_played += 1
    match_stats.kills += stats.kills
    match_stats.deaths += stats.deaths
    match_stats.assists += stats.assists
    match_stats.headshots += stats.headshots
    match_stats.total_damage += stats.damage
    match_stats.flash_assists += stats.flash_assists
    match_stats.utility_count += stats.utility.thrown
    match_stats.utility.add(stats.utility)
    if stats.entry_kill:
        match_stats.entry_kills += 1
    if stats.kast:
        match_stats.kast_rounds += 1
    key = multikill_key(stats.kills)
    if key:
        match_stats.multikills[key] += 1
    match_stats.rating_history.append(stats.rating)
    match_stats.impact_total += stats.impact
    match_stats.wpa += stats.wpa


def finalize_player(match_stats: PlayerMatchStats, calibration: float = DEFAULT_CALIBRATION) -> None:
    """Derive rating, WE, ADR, HS% and KAST% from the accumulated totals."""
    rounds = match_stats.rounds_played
    history = match_stats.rating_history

    if history:
        match_stats.rating = round(sum(history) / len(history) * calibration, 2)
        match_stats.we = round(match_stats.rating * 0.9 + 0.1, 2)
    else:
        match_stats.rating = 0.0
        match_stats.we = 0.0

    match_stats.adr = round(match_stats.total_damage / rounds, 1) if rounds else 0.0
    match_stats.kast = round(match_stats.kast_rounds / rounds * 100, 1) if rounds else 0.0

    if match_stats.kills > 0:
        match_stats.hs_rate = round(match_stats.headshots / match_stats.kills * 100, 1)
    else:
        match_stats.hs_rate = 0.0
