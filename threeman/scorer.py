"""Weekly batch scorer: picks + provider stats -> Score documents."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Iterable, Optional

from .config import get_config
from .constants import PICK_SLOTS
from .errors import InputValidationError
from .ledger import UsageLedger
from .models import ParticipantWeekResult, SlotScore, WeekScoringResult
from .providers import StatsProvider
from .retry import FetchResult, call_with_retry, retry_settings
from .schemas import League, LeagueConfig, Pick, Score, StatLine, WeekRecord
from .scoring import round_points, score_stat_line
from .store import LeagueStore
from .utils import utcnow
from .validators import validate_score

logger = logging.getLogger('threeman.scorer')


def fetch_games_stats(
    provider: StatsProvider,
    game_ids: Iterable[str],
    config: LeagueConfig,
    sleep: Optional[Callable[[float], None]] = None,
) -> dict[str, FetchResult[dict[str, StatLine]]]:
    """
    Fetch stat lines once per distinct game, in parallel.

    Each fetch goes through call_with_retry, so a failed game comes back as a
    FetchResult with ok=False instead of raising.

    Returns:
        Dict of game_id -> FetchResult wrapping {player_id: StatLine}
    """
    game_ids = sorted(set(game_ids))
    if not game_ids:
        return {}

    retry_kwargs = retry_settings(config, sleep)

    def fetch(game_id: str) -> FetchResult[dict[str, StatLine]]:
        result = call_with_retry(
            lambda: provider.fetch_game_stats(game_id),
            description=f'stats for game {game_id}',
            **retry_kwargs,
        )
        if result.ok:
            result.value = {line.player_id: line.stats for line in result.value}
        return result

    workers = min(config.fetch_workers, len(game_ids))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='game-stats') as pool:
        results = dict(zip(game_ids, pool.map(fetch, game_ids)))

    failed = [g for g, r in results.items() if not r.ok]
    logger.info(f'Fetched stats for {len(game_ids) - len(failed)}/{len(game_ids)} games')
    return results


class WeeklyScorer:
    """
    Scores a league week from locked picks.

    Re-running score_week with unchanged inputs rewrites identical Score
    documents. A game whose stats could not be fetched leaves its slots
    unscored and the week in 'scoring' so the run can be repeated. The week
    only becomes 'final' once every picked game is final in the store. Slots
    carrying a points_override keep that value instead of box-score points.
    """

    def __init__(
        self,
        store: LeagueStore,
        provider: StatsProvider,
        ledger: Optional[UsageLedger] = None,
        config: Optional[LeagueConfig] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize scorer.

        Args:
            store: League store
            provider: Stats provider used for box scores
            ledger: Usage ledger (default: one over the same store)
            config: League config (default: get_config())
            clock: Current time source
            sleep: Sleep used between retries (injectable for tests)
        """
        self.store = store
        self.provider = provider
        self.ledger = ledger or UsageLedger(store)
        self.config = config or get_config()
        self.clock = clock
        self.sleep = sleep

    def _get_league(self, league_id: str) -> League:
        league = self.store.get_league(league_id)
        if league is None:
            raise InputValidationError(f'unknown league: {league_id}')
        return league

    def _double_pick_slots(self, league: League, pick: Pick) -> set[str]:
        doubles = set()
        for slot, slot_pick in pick.slots.items():
            if not slot_pick.player_id:
                continue
            first_used = self.ledger.has_used(
                league.league_id, league.season, pick.participant_id, slot_pick.player_id
            )
            if first_used is not None and first_used != pick.week:
                doubles.add(slot)
        return doubles

    def score_pick(
        self,
        league: League,
        pick: Pick,
        game_stats: dict[str, FetchResult[dict[str, StatLine]]],
    ) -> ParticipantWeekResult:
        """
        Score one participant's pick and write the Score document.

        Args:
            league: League the pick belongs to
            pick: The participant's pick for the week
            game_stats: Prefetched stats from fetch_games_stats

        Returns:
            ParticipantWeekResult (written=False if an existing Score was kept)
        """
        result = ParticipantWeekResult(participant_id=pick.participant_id)
        doubles = self._double_pick_slots(league, pick)

        for slot in PICK_SLOTS:
            slot_pick = pick.slots[slot]
            slot_score = SlotScore(slot=slot, player_id=slot_pick.player_id, game_id=slot_pick.game_id)
            result.slots[slot] = slot_score

            if not slot_pick.player_id:
                continue

            if slot in doubles:
                slot_score.double_pick = True
                continue

            override = slot_pick.points_override
            if override is None and not slot_pick.game_id:
                continue

            self.ledger.record_first_use(
                league.league_id,
                league.season,
                pick.participant_id,
                slot_pick.player_id,
                pick.week,
                is_backfilled=pick.is_backfilled,
            )

            # Operator-entered points win over box scores
            if override is not None:
                slot_score.overridden = True
                slot_score.points = round_points(override)
                continue

            fetched = game_stats.get(slot_pick.game_id)
            if fetched is None or not fetched.ok:
                slot_score.unscored = True
                continue

            stats = fetched.value.get(slot_pick.player_id)
            if stats is not None:
                slot_score.found_in_stats = True
                slot_score.points, slot_score.breakdown = score_stat_line(stats)

        result.total_points = round_points(sum(s.points for s in result.slots.values()))
        score = Score(
            league_id=league.league_id,
            week=pick.week,
            participant_id=pick.participant_id,
            slot_points={slot: s.points for slot, s in result.slots.items()},
            total_points=result.total_points,
            double_pick_positions=result.double_pick_positions,
            unscored_positions=result.unscored_positions,
            is_backfilled=pick.is_backfilled,
        )

        result.warnings = validate_score(score)
        for warning in result.warnings:
            logger.warning(warning)

        existing = self.store.get_score(league.league_id, pick.week, pick.participant_id)
        if score.unscored_positions and existing is not None:
            logger.warning(
                f'{league.league_id} week {pick.week}: {pick.participant_id} has unscored '
                f'{score.unscored_positions}, keeping existing score {existing.total_points:.1f}'
            )
            result.written = False
        else:
            self.store.put_score(score)
        return result

    def score_week(self, league_id: str, week: int) -> WeekScoringResult:
        """
        Score every pick for a league week.

        Args:
            league_id: League id
            week: Week number

        Returns:
            WeekScoringResult with per-participant outcomes

        Raises:
            InputValidationError: Unknown league or week out of range
        """
        league = self._get_league(league_id)
        if not 1 <= week <= self.config.regular_season_weeks:
            raise InputValidationError(
                f'week must be between 1 and {self.config.regular_season_weeks}, got {week}'
            )

        with self.store.week_locks.hold((league_id, week)):
            week_record = self.store.get_week(league_id, week) or WeekRecord(league_id=league_id, week=week)
            week_record.status = 'scoring'
            self.store.put_week(week_record)

            picks = sorted(self.store.list_picks(league_id, week), key=lambda p: p.participant_id)
            logger.info(f'Scoring {league_id} week {week}: {len(picks)} picks')

            game_ids = set()
            for pick in picks:
                doubles = self._double_pick_slots(league, pick)
                for slot, slot_pick in pick.slots.items():
                    if (
                        slot_pick.player_id
                        and slot_pick.game_id
                        and slot_pick.points_override is None
                        and slot not in doubles
                    ):
                        game_ids.add(slot_pick.game_id)

            game_stats = fetch_games_stats(self.provider, game_ids, self.config, sleep=self.sleep)

            result = WeekScoringResult(league_id=league_id, week=week, games_fetched=len(game_stats))
            result.games_failed = sorted(g for g, r in game_stats.items() if not r.ok)
            result.games_unfinished = self._unfinished_games(game_ids)

            for pick in picks:
                with self.store.pick_locks.hold((league_id, week, pick.participant_id)):
                    current = self.store.get_pick(league_id, week, pick.participant_id) or pick
                    participant_result = self.score_pick(league, current, game_stats)
                result.participants.append(participant_result)

            if result.final:
                week_record.status = 'final'
                week_record.scored_at = self.clock()
                self.store.put_week(week_record)
                logger.info(f'{league_id} week {week} final: {result.scored} scores written')
            elif not result.complete:
                logger.warning(
                    f'{league_id} week {week} left in scoring: stats unavailable for {result.games_failed}'
                )
            else:
                logger.info(
                    f'{league_id} week {week} left in scoring: '
                    f'{len(result.games_unfinished)} games not final yet'
                )

        return result

    def _unfinished_games(self, game_ids: Iterable[str]) -> list[str]:
        """Picked games the store knows about that have not reached 'final'."""
        unfinished = []
        for game_id in sorted(game_ids):
            game = self.store.get_game(game_id)
            if game is not None and game.status != 'final':
                unfinished.append(game_id)
        return unfinished
