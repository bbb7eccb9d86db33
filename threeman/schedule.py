"""Schedule helpers: lock windows and team to game resolution."""

from datetime import datetime, timedelta
from typing import Iterable

from .schemas import Game, ScheduledGame
from .utils import ensure_utc


def lock_time(game: Game, lock_buffer: timedelta) -> datetime:
    """The instant a slot holding this game stops accepting changes."""
    return ensure_utc(game.kickoff) - lock_buffer


def is_locked(game: Game, now: datetime, lock_buffer: timedelta) -> bool:
    """True once now is past kickoff minus the lock buffer."""
    return ensure_utc(now) > lock_time(game, lock_buffer)


def in_lock_window(game: Game, now: datetime, lock_buffer: timedelta) -> bool:
    """
    True when the sweep should lock slots on this game.

    A game enters the window when kickoff <= now + lock_buffer. Games that kicked
    off long ago stay in the window, so a missed sweep still locks their slots.
    """
    return ensure_utc(game.kickoff) <= ensure_utc(now) + lock_buffer


def build_team_game_map(games: Iterable[ScheduledGame | Game]) -> dict[str, str]:
    """
    Map each team id to its game id for one week.

    Example:
        [ScheduledGame(game_id='2025_01_DAL_PHI', home_team_id='PHI', away_team_id='DAL')]
        -> {'PHI': '2025_01_DAL_PHI', 'DAL': '2025_01_DAL_PHI'}
    """
    team_games = {}
    for game in games:
        team_games[game.home_team_id] = game.game_id
        team_games[game.away_team_id] = game.game_id
    return team_games
