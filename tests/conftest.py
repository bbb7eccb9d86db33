"""Shared fixtures: an in-memory league with players, games and a fake stats provider."""

from datetime import datetime, timedelta, timezone

import pytest

from threeman.schemas import (
    Game,
    LeagueConfig,
    PayoutEntry,
    Player,
    PlayerGameStats,
    ScheduledGame,
    StatLine,
)
from threeman.store import LeagueStore

LEAGUE_ID = 'L1'
SEASON = 2025
WEEK1_KICKOFF = datetime(2025, 9, 7, 17, 0, tzinfo=timezone.utc)

PLAYERS = [
    Player(player_id='qb1', name='Patrick Mahomes', position='QB', team_id='KC', eligible_slots=['QB']),
    Player(player_id='qb2', name='Josh Allen', position='QB', team_id='BUF', eligible_slots=['QB']),
    Player(player_id='rb1', name='Derrick Henry', position='RB', team_id='BAL', eligible_slots=['RB']),
    Player(player_id='rb2', name='Saquon Barkley', position='RB', team_id='PHI', eligible_slots=['RB']),
    Player(player_id='wr1', name='Justin Jefferson', position='WR', team_id='MIN', eligible_slots=['WR']),
    Player(player_id='wr2', name='CeeDee Lamb', position='WR', team_id='DAL', eligible_slots=['WR']),
    Player(player_id='te1', name='Travis Kelce', position='TE', team_id='KC', eligible_slots=[]),
]

MATCHUPS = [('KC', 'BUF'), ('BAL', 'PHI'), ('MIN', 'DAL')]


def game_id(week: int, home: str) -> str:
    """Game id for the fixture game a home team plays in a week, e.g. '2025_03_KC'."""
    return f'{SEASON}_{week:02d}_{home}'


def kickoff(week: int) -> datetime:
    return WEEK1_KICKOFF + timedelta(weeks=week - 1)


def week_schedule(week: int) -> list[ScheduledGame]:
    return [
        ScheduledGame(
            game_id=game_id(week, home),
            home_team_id=home,
            away_team_id=away,
            kickoff=kickoff(week),
            week=week,
            status='final',
        )
        for home, away in MATCHUPS
    ]


class FakeClock:
    """Settable clock passed to services in place of utcnow."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeStatsProvider:
    """
    In-memory StatsProvider.

    stats: game_id -> list of PlayerGameStats
    failing: game ids whose fetch always raises
    calls: game ids in the order fetch_game_stats was called
    """

    def __init__(self):
        self.stats: dict[str, list[PlayerGameStats]] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []
        self.schedule_error = False

    def add_stats(self, game: str, player_id: str, **stats) -> None:
        self.stats.setdefault(game, []).append(
            PlayerGameStats(player_id=player_id, stats=StatLine(**stats))
        )

    def fetch_game_stats(self, game_id: str) -> list[PlayerGameStats]:
        self.calls.append(game_id)
        if game_id in self.failing:
            raise ConnectionError(f'provider down for {game_id}')
        return list(self.stats.get(game_id, []))

    def fetch_week_schedule(self, week: int) -> list[ScheduledGame]:
        if self.schedule_error:
            raise ConnectionError('schedule unavailable')
        return week_schedule(week)

    def fetch_season_schedule(self) -> list[ScheduledGame]:
        return [game for week in range(1, 19) for game in week_schedule(week)]

    def fetch_players(self) -> list[Player]:
        return list(PLAYERS)


@pytest.fixture
def config():
    """League config with instant retries."""
    return LeagueConfig(
        current_season=SEASON,
        regular_season_weeks=18,
        lock_buffer_minutes=60,
        provider_attempts=3,
        provider_backoff_seconds=0,
        provider_timeout_seconds=5,
        fetch_workers=4,
        default_entry_fee=50,
        default_payout_structure=[
            PayoutEntry(rank=1, amount=1200),
            PayoutEntry(rank=2, amount=750),
            PayoutEntry(rank=3, amount=500),
        ],
    )


@pytest.fixture
def store(config):
    """Store with league L1 (alice, bob, carol), fixture players and weeks 1-5 of games."""
    store = LeagueStore()
    store.initialize_league(
        LEAGUE_ID,
        name='Test League',
        season=SEASON,
        members={'alice': 'Alice', 'bob': 'Bob', 'carol': 'Carol'},
        config=config,
    )
    for player in PLAYERS:
        store.put_player(player)
    for week in range(1, 6):
        for row in week_schedule(week):
            store.put_game(Game(**row.model_dump()))
    return store


@pytest.fixture
def provider():
    return FakeStatsProvider()


@pytest.fixture
def clock():
    """Clock set three hours before week 1 kickoff."""
    return FakeClock(WEEK1_KICKOFF - timedelta(hours=3))


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays = []
    return delays.append
