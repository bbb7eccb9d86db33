"""nflverse stats provider using nflreadpy."""

import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import polars as pl

try:
    import nflreadpy as nfl
except ImportError:
    raise ImportError("Please install nflreadpy: pip install nflreadpy")

from ..constants import ELIGIBLE_SLOTS, NFLVERSE_TIMEZONE, PLAYER_POSITIONS
from ..schemas import Player, PlayerGameStats, ScheduledGame, StatLine

logger = logging.getLogger('threeman.providers.nflverse')


def _num(row: dict, *columns: str) -> float:
    """Sum the given columns of a stats row, treating missing and null as zero."""
    return sum((row.get(col, 0) or 0) for col in columns)


def stat_line_from_row(row: dict) -> StatLine:
    """Convert an nflverse weekly player stats row into a StatLine."""
    return StatLine(
        passing_yards=_num(row, 'passing_yards'),
        passing_td=int(_num(row, 'passing_tds')),
        interceptions=int(_num(row, 'passing_interceptions') or _num(row, 'interceptions')),
        rushing_yards=_num(row, 'rushing_yards'),
        rushing_td=int(_num(row, 'rushing_tds')),
        receiving_yards=_num(row, 'receiving_yards'),
        receiving_td=int(_num(row, 'receiving_tds')),
        receptions=int(_num(row, 'receptions')),
        fumbles_lost=int(
            _num(row, 'sack_fumbles_lost', 'rushing_fumbles_lost', 'receiving_fumbles_lost')
        ),
        two_pt_conversions=int(
            _num(row, 'passing_2pt_conversions', 'rushing_2pt_conversions', 'receiving_2pt_conversions')
        ),
        offensive_fumble_recovery_td=int(_num(row, 'fumble_recovery_tds')),
    )


def kickoff_from_row(row: dict) -> Optional[datetime]:
    """Schedule gameday + gametime (US/Eastern) as a UTC datetime."""
    gameday = row.get('gameday')
    if not gameday:
        return None
    gametime = row.get('gametime') or '00:00'
    local = datetime.strptime(f'{gameday} {gametime}', '%Y-%m-%d %H:%M')
    return local.replace(tzinfo=ZoneInfo(NFLVERSE_TIMEZONE)).astimezone(timezone.utc)


def scheduled_game_from_row(row: dict) -> ScheduledGame:
    if row.get('home_score') is not None:
        status = 'final'
    else:
        status = 'scheduled'
    return ScheduledGame(
        game_id=row['game_id'],
        home_team_id=row['home_team'],
        away_team_id=row['away_team'],
        kickoff=kickoff_from_row(row),
        week=row.get('week'),
        status=status,
    )


class NflverseStatsProvider:
    """
    Fetches schedules, rosters and weekly player stats from nflverse.

    Game ids are nflverse game_ids (e.g. '2025_01_DAL_PHI') and team ids are
    nflverse abbreviations. Frames are loaded lazily and cached per instance.
    """

    def __init__(self, season: int):
        self.season = season
        self._player_stats: Optional[pl.DataFrame] = None
        self._schedules: Optional[pl.DataFrame] = None
        self._rosters: Optional[pl.DataFrame] = None

    @property
    def player_stats(self) -> pl.DataFrame:
        """Lazy load weekly player stats."""
        if self._player_stats is None:
            logger.info(f'Loading player stats for {self.season}...')
            self._player_stats = nfl.load_player_stats(seasons=self.season, summary_level='week')
        return self._player_stats

    @property
    def schedules(self) -> pl.DataFrame:
        """Lazy load schedules."""
        if self._schedules is None:
            logger.info(f'Loading schedules for {self.season}...')
            self._schedules = nfl.load_schedules(seasons=self.season)
        return self._schedules

    @property
    def rosters(self) -> pl.DataFrame:
        """Lazy load rosters."""
        if self._rosters is None:
            logger.info(f'Loading rosters for {self.season}...')
            self._rosters = nfl.load_rosters(seasons=self.season)
        return self._rosters

    def refresh(self) -> None:
        """Drop cached frames so the next call reloads from nflverse."""
        self._player_stats = None
        self._schedules = None
        self._rosters = None

    def get_game_row(self, game_id: str) -> Optional[dict]:
        games = self.schedules.filter(pl.col('game_id') == game_id)
        if games.height > 0:
            return games.row(0, named=True)
        return None

    def fetch_game_stats(self, game_id: str) -> list[PlayerGameStats]:
        game = self.get_game_row(game_id)
        if game is None:
            logger.warning(f'Game {game_id} not in {self.season} schedule')
            return []
        if game.get('home_score') is None:
            return []  # Game hasn't been played yet

        rows = self.player_stats.filter(
            (pl.col('week') == game['week'])
            & pl.col('team').is_in([game['home_team'], game['away_team']])
        )
        return [
            PlayerGameStats(
                player_id=row['player_id'],
                player_name=row.get('player_display_name') or row.get('player_name') or '',
                stats=stat_line_from_row(row),
            )
            for row in rows.iter_rows(named=True)
            if row.get('player_id')
        ]

    def fetch_week_schedule(self, week: int) -> list[ScheduledGame]:
        games = self.schedules.filter((pl.col('week') == week) & (pl.col('game_type') == 'REG'))
        return [scheduled_game_from_row(row) for row in games.iter_rows(named=True)]

    def fetch_season_schedule(self) -> list[ScheduledGame]:
        return [scheduled_game_from_row(row) for row in self.schedules.iter_rows(named=True)]

    def fetch_players(self) -> list[Player]:
        rosters = self.rosters.filter(pl.col('position').is_in(list(PLAYER_POSITIONS)))
        players = {}
        for row in rosters.iter_rows(named=True):
            player_id = row.get('gsis_id')
            name = row.get('full_name')
            if not player_id or not name or not row.get('team'):
                continue
            position = row['position']
            players[player_id] = Player(
                player_id=player_id,
                name=name,
                position=position,
                team_id=row['team'],
                eligible_slots=ELIGIBLE_SLOTS[position],
            )
        return list(players.values())
