"""Season standings and payouts, re-derived from Score documents."""

import logging
from datetime import datetime
from typing import Callable, Optional

from .errors import InputValidationError
from .schemas import League, SeasonStanding
from .scoring import round_points
from .store import LeagueStore
from .utils import utcnow

logger = logging.getLogger('threeman.standings')


def split_payouts(league: League, ranked_totals: list[tuple[str, float]]) -> dict[str, tuple[int, float]]:
    """
    Assign ranks and payouts to participants sorted by total (highest first).

    Tied participants share the best rank of their group and split the combined
    payouts of every position the group occupies.

    Example:
        payouts 1: 1200, 2: 750, 3: 500 with totals [A 90, B 80, C 80, D 70]
        -> A rank 1 1200, B and C rank 2 625 each, D rank 4 0

    Returns:
        Dict of participant_id -> (rank, payout)
    """
    amounts = {p.rank: p.amount for p in league.payout_structure}
    placed = {}

    current_rank = 1
    i = 0
    while i < len(ranked_totals):
        current_total = ranked_totals[i][1]
        tied = []
        while i < len(ranked_totals) and ranked_totals[i][1] == current_total:
            tied.append(ranked_totals[i][0])
            i += 1

        positions = range(current_rank, current_rank + len(tied))
        pool = sum(amounts.get(p, 0) for p in positions)
        share = round_points(pool / len(tied), 2)
        for participant_id in tied:
            placed[participant_id] = (current_rank, share)

        current_rank += len(tied)

    return placed


def recompute_standings(
    store: LeagueStore,
    league_id: str,
    clock: Callable[[], datetime] = utcnow,
) -> list[SeasonStanding]:
    """
    Rebuild a league's season standings from its Score documents.

    Weeks are processed in order. The best week keeps the earliest week when two
    weeks tie. The league's stored standings are replaced wholesale.

    Args:
        store: League store
        league_id: League to recompute
        clock: Time source for updated_at

    Returns:
        Standings sorted by rank
    """
    league = store.get_league(league_id)
    if league is None:
        raise InputValidationError(f'unknown league: {league_id}')

    names = store.display_names(league_id)
    totals: dict[str, SeasonStanding] = {}

    for score in store.list_scores(league_id):
        standing = totals.get(score.participant_id)
        if standing is None:
            standing = SeasonStanding(league_id=league_id, participant_id=score.participant_id)
            totals[score.participant_id] = standing

        standing.season_total_points = round_points(
            standing.season_total_points + score.total_points, 2
        )
        standing.weeks_played += 1
        if standing.best_week is None or score.total_points > standing.best_week_points:
            standing.best_week_points = score.total_points
            standing.best_week = score.week

    ranked = sorted(
        ((pid, s.season_total_points) for pid, s in totals.items()),
        key=lambda x: (-x[1], x[0]),
    )
    placed = split_payouts(league, ranked)

    now = clock()
    standings = []
    for participant_id, _ in ranked:
        standing = totals[participant_id]
        standing.rank, standing.payout = placed[participant_id]
        standing.display_name = names.get(participant_id, participant_id)
        standing.updated_at = now
        standings.append(standing)

    store.replace_standings(league_id, standings)
    logger.info(f'Recomputed standings for {league_id}: {len(standings)} participants')
    return standings
