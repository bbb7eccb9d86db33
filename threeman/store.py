"""
Keyed in-memory store for games, players, picks, usage, scores and standings.

Every record lives in a dict keyed by its natural key. Reads return deep copies so
callers can never mutate stored state by accident. The whole store is saved to and
loaded from a single JSON snapshot file.
"""

import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from pathlib import Path
from typing import Hashable, Iterator, Optional

from .config import get_config
from .errors import UsageAlreadyRecordedError
from .schemas import (
    Game,
    League,
    LeagueConfig,
    LeagueMember,
    Pick,
    Player,
    Score,
    SeasonStanding,
    StoreSnapshot,
    UsageRecord,
    WeekRecord,
)
from .utils import load_json, save_json

logger = logging.getLogger('threeman.store')


class KeyedLocks:
    """One lock per key, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = defaultdict(threading.Lock)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks[key]
        with lock:
            yield


class LeagueStore:
    """
    Keyed maps for every persisted record type.

    Keys:
        games: game_id
        players: player_id
        leagues: league_id
        members: (league_id, participant_id)
        weeks: (league_id, week)
        picks, scores: (league_id, week, participant_id)
        usage: (league_id, season, participant_id, player_id)
        standings: league_id -> {participant_id: SeasonStanding}

    Services serialize their writes with pick_locks (per participant week) and
    week_locks (per league week). The usage map has its own lock so that
    insert_usage is an atomic create-if-absent.
    """

    def __init__(self, path: Optional[Path | str] = None):
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._usage_lock = threading.Lock()
        self.pick_locks = KeyedLocks()
        self.week_locks = KeyedLocks()

        self._games: dict[str, Game] = {}
        self._players: dict[str, Player] = {}
        self._leagues: dict[str, League] = {}
        self._members: dict[tuple[str, str], LeagueMember] = {}
        self._weeks: dict[tuple[str, int], WeekRecord] = {}
        self._picks: dict[tuple[str, int, str], Pick] = {}
        self._usage: dict[tuple[str, int, str, str], UsageRecord] = {}
        self._scores: dict[tuple[str, int, str], Score] = {}
        self._standings: dict[str, dict[str, SeasonStanding]] = {}

    # Games and players

    def get_game(self, game_id: str) -> Optional[Game]:
        with self._lock:
            game = self._games.get(game_id)
            return game.model_copy(deep=True) if game else None

    def put_game(self, game: Game) -> None:
        with self._lock:
            self._games[game.game_id] = game.model_copy(deep=True)

    def list_games(self, week: Optional[int] = None) -> list[Game]:
        with self._lock:
            games = [g for g in self._games.values() if week is None or g.week == week]
            return [g.model_copy(deep=True) for g in sorted(games, key=lambda g: g.kickoff)]

    def get_player(self, player_id: str) -> Optional[Player]:
        with self._lock:
            player = self._players.get(player_id)
            return player.model_copy(deep=True) if player else None

    def put_player(self, player: Player) -> None:
        with self._lock:
            self._players[player.player_id] = player.model_copy(deep=True)

    def list_players(self) -> list[Player]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._players.values()]

    # Leagues, members and weeks

    def get_league(self, league_id: str) -> Optional[League]:
        with self._lock:
            league = self._leagues.get(league_id)
            return league.model_copy(deep=True) if league else None

    def put_league(self, league: League) -> None:
        with self._lock:
            self._leagues[league.league_id] = league.model_copy(deep=True)

    def list_leagues(self) -> list[League]:
        with self._lock:
            return [lg.model_copy(deep=True) for lg in self._leagues.values()]

    def put_member(self, member: LeagueMember) -> None:
        with self._lock:
            self._members[(member.league_id, member.participant_id)] = member.model_copy()

    def list_members(self, league_id: str) -> list[LeagueMember]:
        with self._lock:
            return [m.model_copy() for (lid, _), m in self._members.items() if lid == league_id]

    def display_names(self, league_id: str) -> dict[str, str]:
        """participant_id -> display name, falling back to the id when blank."""
        return {m.participant_id: m.display_name or m.participant_id for m in self.list_members(league_id)}

    def get_week(self, league_id: str, week: int) -> Optional[WeekRecord]:
        with self._lock:
            record = self._weeks.get((league_id, week))
            return record.model_copy() if record else None

    def put_week(self, record: WeekRecord) -> None:
        with self._lock:
            self._weeks[(record.league_id, record.week)] = record.model_copy()

    def list_weeks(self, league_id: Optional[str] = None) -> list[WeekRecord]:
        with self._lock:
            weeks = [w for (lid, _), w in self._weeks.items() if league_id is None or lid == league_id]
            return [w.model_copy() for w in sorted(weeks, key=lambda w: (w.league_id, w.week))]

    # Picks

    def get_pick(self, league_id: str, week: int, participant_id: str) -> Optional[Pick]:
        with self._lock:
            pick = self._picks.get((league_id, week, participant_id))
            return pick.model_copy(deep=True) if pick else None

    def put_pick(self, pick: Pick) -> None:
        with self._lock:
            self._picks[(pick.league_id, pick.week, pick.participant_id)] = pick.model_copy(deep=True)

    def list_picks(self, league_id: Optional[str] = None, week: Optional[int] = None) -> list[Pick]:
        with self._lock:
            picks = [
                p
                for (lid, wk, _), p in self._picks.items()
                if (league_id is None or lid == league_id) and (week is None or wk == week)
            ]
            return [p.model_copy(deep=True) for p in picks]

    # Usage ledger storage

    def get_usage(
        self, league_id: str, season: int, participant_id: str, player_id: str
    ) -> Optional[UsageRecord]:
        with self._usage_lock:
            record = self._usage.get((league_id, season, participant_id, player_id))
            return record.model_copy() if record else None

    def insert_usage(self, record: UsageRecord) -> None:
        """
        Create a usage record if none exists for its key.

        Raises:
            UsageAlreadyRecordedError: If the key is already present (the stored record is unchanged)
        """
        key = (record.league_id, record.season, record.participant_id, record.player_id)
        with self._usage_lock:
            if key in self._usage:
                raise UsageAlreadyRecordedError(
                    f'usage already recorded for {record.participant_id}/{record.player_id} '
                    f'in week {self._usage[key].first_used_week}'
                )
            self._usage[key] = record.model_copy()

    def list_usage(
        self, league_id: str, season: int, participant_id: Optional[str] = None
    ) -> list[UsageRecord]:
        with self._usage_lock:
            records = [
                r
                for (lid, s, pid, _), r in self._usage.items()
                if lid == league_id and s == season and (participant_id is None or pid == participant_id)
            ]
            return [r.model_copy() for r in sorted(records, key=lambda r: (r.first_used_week, r.player_id))]

    # Scores and standings

    def get_score(self, league_id: str, week: int, participant_id: str) -> Optional[Score]:
        with self._lock:
            score = self._scores.get((league_id, week, participant_id))
            return score.model_copy(deep=True) if score else None

    def put_score(self, score: Score) -> None:
        with self._lock:
            self._scores[(score.league_id, score.week, score.participant_id)] = score.model_copy(deep=True)

    def list_scores(self, league_id: str, week: Optional[int] = None) -> list[Score]:
        with self._lock:
            scores = [
                s
                for (lid, wk, _), s in self._scores.items()
                if lid == league_id and (week is None or wk == week)
            ]
            return [s.model_copy(deep=True) for s in sorted(scores, key=lambda s: (s.week, s.participant_id))]

    def replace_standings(self, league_id: str, standings: list[SeasonStanding]) -> None:
        with self._lock:
            self._standings[league_id] = {s.participant_id: s.model_copy() for s in standings}

    def list_standings(self, league_id: str) -> list[SeasonStanding]:
        with self._lock:
            standings = self._standings.get(league_id, {}).values()
            return [s.model_copy() for s in sorted(standings, key=lambda s: (s.rank, s.participant_id))]

    # League bootstrap

    def initialize_league(
        self,
        league_id: str,
        name: str = '',
        season: Optional[int] = None,
        members: Optional[dict[str, str]] = None,
        config: Optional[LeagueConfig] = None,
    ) -> League:
        """
        Create a league with the configured entry fee and payouts, plus a pending
        WeekRecord for every regular season week.

        Args:
            league_id: New league id
            name: League display name
            season: Season year (default: config current_season)
            members: participant_id -> display name
            config: League config (default: get_config())

        Returns:
            The stored League
        """
        config = config or get_config()
        league = League(
            league_id=league_id,
            name=name,
            season=season or config.current_season,
            entry_fee=config.default_entry_fee,
            payout_structure=config.default_payout_structure,
        )
        with self._lock:
            self.put_league(league)
            for participant_id, display_name in (members or {}).items():
                self.put_member(
                    LeagueMember(league_id=league_id, participant_id=participant_id, display_name=display_name)
                )
            for week in range(1, config.regular_season_weeks + 1):
                if self.get_week(league_id, week) is None:
                    self.put_week(WeekRecord(league_id=league_id, week=week))

        logger.info(f'Initialized league {league_id} ({league.season}, {len(members or {})} members)')
        return league

    # Persistence

    def snapshot(self) -> StoreSnapshot:
        with self._lock, self._usage_lock:
            return StoreSnapshot(
                games=list(self._games.values()),
                players=list(self._players.values()),
                leagues=list(self._leagues.values()),
                members=list(self._members.values()),
                weeks=list(self._weeks.values()),
                picks=list(self._picks.values()),
                usage=list(self._usage.values()),
                scores=list(self._scores.values()),
                standings=[s for by_pid in self._standings.values() for s in by_pid.values()],
            ).model_copy(deep=True)

    def save(self, path: Optional[Path | str] = None) -> Path:
        """Write the store to its JSON snapshot file."""
        path = Path(path) if path else self.path
        if path is None:
            raise ValueError('No store path given')
        snapshot = self.snapshot()
        save_json(path, snapshot)
        logger.info(
            f'Saved store to {path} ({len(snapshot.picks)} picks, {len(snapshot.scores)} scores)'
        )
        return path

    @classmethod
    def load(cls, path: Path | str) -> 'LeagueStore':
        """Load a store from a JSON snapshot, or return an empty store bound to path."""
        store = cls(path)
        path = Path(path)
        if not path.exists():
            logger.info(f'No store at {path}, starting empty')
            return store

        snapshot = load_json(path, schema=StoreSnapshot)
        for game in snapshot.games:
            store.put_game(game)
        for player in snapshot.players:
            store.put_player(player)
        for league in snapshot.leagues:
            store.put_league(league)
        for member in snapshot.members:
            store.put_member(member)
        for week in snapshot.weeks:
            store.put_week(week)
        for pick in snapshot.picks:
            store.put_pick(pick)
        for record in snapshot.usage:
            store.insert_usage(record)
        for score in snapshot.scores:
            store.put_score(score)

        by_league: dict[str, list[SeasonStanding]] = defaultdict(list)
        for standing in snapshot.standings:
            by_league[standing.league_id].append(standing)
        for league_id, standings in by_league.items():
            store.replace_standings(league_id, standings)

        logger.debug(f'Loaded store from {path}')
        return store
