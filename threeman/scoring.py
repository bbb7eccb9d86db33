"""Fantasy points formula for QB/RB/WR stat lines."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Tuple

from .schemas import StatLine

PASSING_BONUS_YARDS = 300
RUSHING_BONUS_YARDS = 100
RECEIVING_BONUS_YARDS = 100
BIG_GAME_BONUS = 3


def round_points(points: float, places: int = 1) -> float:
    """Round half-up to the given number of decimal places."""
    quantum = Decimal(1).scaleb(-places)
    # str() of a 6-place round strips float noise such as 13.000000000000002
    return float(Decimal(str(round(points, 6))).quantize(quantum, rounding=ROUND_HALF_UP))


def score_stat_line(stats: StatLine) -> Tuple[float, Dict[str, float]]:
    """
    Score a skill position stat line.

    Scoring:
        - Passing yards: 0.04 points per yard (+3 for a 300+ yard game)
        - Passing TDs: 4 points each
        - Interceptions: -1 point each
        - Rushing yards: 0.1 points per yard (+3 for a 100+ yard game)
        - Rushing TDs: 6 points each
        - Receiving yards: 0.1 points per yard (+3 for a 100+ yard game)
        - Receiving TDs: 6 points each
        - Receptions: 1 point each
        - Fumbles lost: -1 point each
        - Two point conversions: 2 points each
        - Offensive fumble recovery TDs: 6 points each

    The total is rounded to one decimal place and can be negative.

    Args:
        stats: Normalized stat line for one player in one game

    Returns:
        Tuple of (points, breakdown); zero-valued categories are left out
    """
    points = 0.0
    breakdown = {}

    def add(key: str, value: float) -> None:
        nonlocal points
        if value:
            breakdown[key] = round_points(value, 2)
        points += value

    # Passing
    add('passing_yards', 0.04 * stats.passing_yards)
    add('passing_tds', 4 * stats.passing_td)
    add('interceptions', -1 * stats.interceptions)
    if stats.passing_yards >= PASSING_BONUS_YARDS:
        add('passing_bonus', BIG_GAME_BONUS)

    # Rushing
    add('rushing_yards', 0.1 * stats.rushing_yards)
    add('rushing_tds', 6 * stats.rushing_td)
    if stats.rushing_yards >= RUSHING_BONUS_YARDS:
        add('rushing_bonus', BIG_GAME_BONUS)

    # Receiving (PPR)
    add('receiving_yards', 0.1 * stats.receiving_yards)
    add('receiving_tds', 6 * stats.receiving_td)
    add('receptions', stats.receptions)
    if stats.receiving_yards >= RECEIVING_BONUS_YARDS:
        add('receiving_bonus', BIG_GAME_BONUS)

    # Other
    add('fumbles_lost', -1 * stats.fumbles_lost)
    add('two_point_conversions', 2 * stats.two_pt_conversions)
    add('fumble_recovery_tds', 6 * stats.offensive_fumble_recovery_td)

    return round_points(points), breakdown


def calculate_points(stats: StatLine) -> float:
    """Fantasy points for a stat line, without the breakdown."""
    points, _ = score_stat_line(stats)
    return points
