"""Schedule and roster synchronization from a stats provider into the store.

Games are created once; later syncs only correct kickoff and status. Players are
upserted so trades and position changes show up on the next sync.
"""

import logging
from typing import Optional

from .providers import StatsProvider
from .retry import call_with_retry, retry_settings
from .schemas import Game, LeagueConfig
from .store import LeagueStore

logger = logging.getLogger('threeman.roster_sync')


def sync_schedule(
    store: LeagueStore,
    provider: StatsProvider,
    config: LeagueConfig,
    week: Optional[int] = None,
) -> tuple[int, int]:
    """
    Load the season (or one week) schedule into the store.

    Args:
        store: League store
        provider: Stats provider
        config: League config (retry settings)
        week: Only sync this week if given

    Returns:
        Tuple of (games created, games updated)

    Raises:
        TransientProviderError: If the schedule could not be fetched
    """
    if week is None:
        fetch = provider.fetch_season_schedule
        description = 'season schedule'
    else:
        def fetch():
            return provider.fetch_week_schedule(week)
        description = f'week {week} schedule'

    schedule = call_with_retry(fetch, description=description, **retry_settings(config)).unwrap()

    created = updated = skipped = 0
    for row in schedule:
        if row.kickoff is None:
            skipped += 1
            continue

        existing = store.get_game(row.game_id)
        if existing is None:
            store.put_game(Game(**row.model_dump()))
            created += 1
        elif existing.kickoff != row.kickoff or existing.status != row.status:
            existing.kickoff = row.kickoff
            existing.status = row.status
            store.put_game(existing)
            updated += 1

    if skipped:
        logger.warning(f'Skipped {skipped} games without a kickoff time')
    logger.info(f'Synced {description}: {created} created, {updated} updated')
    return created, updated


def sync_players(store: LeagueStore, provider: StatsProvider, config: LeagueConfig) -> int:
    """
    Upsert every skill position player from the provider.

    Returns:
        Number of players written

    Raises:
        TransientProviderError: If rosters could not be fetched
    """
    players = call_with_retry(
        provider.fetch_players, description='player rosters', **retry_settings(config)
    ).unwrap()

    for player in players:
        store.put_player(player)

    logger.info(f'Synced {len(players)} players')
    return len(players)
