"""Stats provider adapters.

A provider turns an upstream data source into normalized schedule rows, player
records and per-game stat lines. Retrying is not the provider's job: callers wrap
provider calls with threeman.retry.call_with_retry.
"""

from typing import Optional, Protocol

from ..config import get_config
from ..schemas import LeagueConfig, Player, PlayerGameStats, ScheduledGame


class StatsProvider(Protocol):
    """Interface shared by every stats source."""

    def fetch_game_stats(self, game_id: str) -> list[PlayerGameStats]:
        """Stat lines for every player in a game. Empty before the game is played."""
        ...

    def fetch_week_schedule(self, week: int) -> list[ScheduledGame]:
        """Regular season games for one week."""
        ...

    def fetch_season_schedule(self) -> list[ScheduledGame]:
        """Every game of the season."""
        ...

    def fetch_players(self) -> list[Player]:
        """Skill position players (QB, RB, WR, TE) on current rosters."""
        ...


def get_provider(config: Optional[LeagueConfig] = None) -> StatsProvider:
    """Build the provider named by config.stats_provider."""
    config = config or get_config()
    if config.stats_provider == 'espn':
        from .espn import EspnStatsProvider

        return EspnStatsProvider(config.current_season, timeout=config.provider_timeout_seconds)

    from .nflverse import NflverseStatsProvider

    return NflverseStatsProvider(config.current_season)


__all__ = ['StatsProvider', 'get_provider']
