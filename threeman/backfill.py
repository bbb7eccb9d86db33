"""
Backfill reconciler for leagues that start mid-season.

An operator enables backfill for a range of past weeks, then submits each week's
picks (usually from a spreadsheet). Picks are written already locked and scored
the same way the live scorer does it, so standings come out as if the league had
run from week one. Usage records from other weeks are never touched.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from .config import get_config
from .constants import PICK_SLOTS
from .errors import InputValidationError
from .ledger import UsageLedger
from .models import (
    BackfillMemberPick,
    BackfillMemberResult,
    BackfillStatusReport,
    BackfillWeekResult,
    BackfillWeekStatus,
    WeekScoreRow,
)
from .providers import StatsProvider
from .retry import FetchResult, call_with_retry, retry_settings
from .schedule import build_team_game_map
from .schemas import League, LeagueConfig, Pick, Score, SlotPick, StatLine, WeekRecord
from .scorer import fetch_games_stats
from .scoring import round_points, score_stat_line
from .standings import recompute_standings
from .store import LeagueStore
from .utils import utcnow
from .validators import validate_backfill_request, validate_score

logger = logging.getLogger('threeman.backfill')


class BackfillService:
    """Operator-only path for entering and scoring historical weeks."""

    def __init__(
        self,
        store: LeagueStore,
        provider: StatsProvider,
        ledger: Optional[UsageLedger] = None,
        config: Optional[LeagueConfig] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Optional[Callable[[float], None]] = None,
    ):
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

    def enable_backfill(self, league_id: str, from_week: int, to_week: int) -> League:
        """
        Open weeks from_week..to_week for backfill.

        Weeks that are already final are left alone; every other week in the
        range is set to 'pending_backfill'.

        Raises:
            InputValidationError: Unknown league or invalid week range
        """
        max_week = self.config.regular_season_weeks
        if not 1 <= from_week <= to_week <= max_week:
            raise InputValidationError(
                f'Invalid week range {from_week}-{to_week}. Must be 1-{max_week} and from_week <= to_week'
            )

        league = self._get_league(league_id)
        league.backfill_enabled = True
        league.backfill_from_week = from_week
        league.backfill_to_week = to_week
        league.backfill_status = 'in_progress'
        self.store.put_league(league)

        for week in range(from_week, to_week + 1):
            with self.store.week_locks.hold((league_id, week)):
                record = self.store.get_week(league_id, week) or WeekRecord(league_id=league_id, week=week)
                if record.status == 'final':
                    continue
                record.status = 'pending_backfill'
                self.store.put_week(record)

        logger.info(f'Backfill enabled for {league_id}: weeks {from_week}-{to_week}')
        return league

    def _slot_points(
        self,
        slot: str,
        player_name: str,
        player_id: str,
        game_id: Optional[str],
        override: Optional[float],
        game_stats: dict[str, FetchResult[dict[str, StatLine]]],
        result: BackfillMemberResult,
    ) -> tuple[float, bool]:
        """Return (points, unscored) for a resolved slot, adding warnings to result."""
        if override is not None:
            return round_points(override), False

        fetched = game_stats.get(game_id)
        if fetched is None or not fetched.ok:
            error = fetched.error if fetched else 'not fetched'
            result.warnings.append(f'{slot}: Stats unavailable for game {game_id} ({error})')
            return 0.0, True

        stats = fetched.value.get(player_id)
        if stats is None:
            result.warnings.append(f'{slot}: No stats for {player_name} in game {game_id}')
            return 0.0, False

        points, _ = score_stat_line(stats)
        return points, False

    def _backfill_member(
        self,
        league: League,
        week: int,
        entry: BackfillMemberPick,
        team_games: dict[str, str],
        game_stats: dict[str, FetchResult[dict[str, StatLine]]],
        backfilled_by: str,
        result: BackfillMemberResult,
    ) -> None:
        now = self.clock()
        slots = {slot: SlotPick(locked=True) for slot in PICK_SLOTS}
        double_picks = []
        unscored = []
        first_uses = []

        for slot in PICK_SLOTS:
            result.slot_points[slot] = 0.0
            player_id = entry.player_ids.get(slot)
            if not player_id:
                continue
            override = entry.point_overrides.get(slot)

            player = self.store.get_player(player_id)
            if player is None:
                result.errors.append(f'{slot}: Player {player_id} not found')
                continue
            result.player_names[slot] = player.name

            if slot not in player.eligible_slots:
                result.errors.append(f'{slot}: {player.name} ({player.position}) not eligible for {slot}')
                continue

            game_id = team_games.get(player.team_id)
            if game_id is None:
                message = f'{slot}: No game found for {player.name} ({player.team_id}) in week {week}'
                if override is None:
                    result.errors.append(message)
                    continue
                result.warnings.append(f'{message}, using override')

            slots[slot] = SlotPick(
                player_id=player_id,
                game_id=game_id,
                locked=True,
                points_override=round_points(override) if override is not None else None,
            )
            points, slot_unscored = self._slot_points(
                slot, player.name, player_id, game_id, override, game_stats, result
            )

            first_used = self.ledger.has_used(league.league_id, league.season, entry.participant_id, player_id)
            if first_used is not None and first_used != week:
                result.warnings.append(f'{slot}: {player.name} already used in week {first_used}')
                double_picks.append(slot)
                points = 0.0
            elif first_used is None:
                first_uses.append(player_id)

            if slot_unscored and slot not in double_picks:
                unscored.append(slot)
            result.slot_points[slot] = points

        result.total_points = round_points(sum(result.slot_points.values()))
        result.double_pick_positions = double_picks

        key = (league.league_id, week, entry.participant_id)
        with self.store.pick_locks.hold(key):
            existing = self.store.get_pick(*key)
            self.store.put_pick(
                Pick(
                    league_id=league.league_id,
                    week=week,
                    participant_id=entry.participant_id,
                    slots=slots,
                    created_at=existing.created_at if existing and existing.created_at else now,
                    updated_at=now,
                    is_backfilled=True,
                    backfilled_by=backfilled_by,
                )
            )
            score = Score(
                league_id=league.league_id,
                week=week,
                participant_id=entry.participant_id,
                slot_points=dict(result.slot_points),
                total_points=result.total_points,
                double_pick_positions=double_picks,
                unscored_positions=unscored,
                is_backfilled=True,
            )
            for warning in validate_score(score):
                logger.warning(warning)
                result.warnings.append(warning)
            self.store.put_score(score)

        # Usage is recorded only once the pick it refers to is stored
        for player_id in first_uses:
            self.ledger.record_first_use(
                league.league_id, league.season, entry.participant_id, player_id, week, is_backfilled=True
            )
        result.written = True

    def backfill_week(
        self,
        league_id: str,
        week: int,
        member_picks: Iterable[BackfillMemberPick],
        backfilled_by: str,
    ) -> BackfillWeekResult:
        """
        Write and score one historical week.

        Each participant is processed independently: slot problems are reported as
        errors or warnings on that participant's result and never stop the others.
        The week ends 'final' and backfilled, and standings are recomputed.

        Args:
            league_id: League id
            week: Week number inside the enabled backfill range
            member_picks: One entry per participant
            backfilled_by: Operator id recorded on picks and the week

        Returns:
            BackfillWeekResult with per-participant results

        Raises:
            InputValidationError: Unknown league, backfill not enabled, or week outside the range
            TransientProviderError: The week's schedule could not be fetched
        """
        league = self._get_league(league_id)
        if not league.backfill_enabled:
            raise InputValidationError(f'Backfill not enabled for league {league_id}')
        if not (league.backfill_from_week or 0) <= week <= (league.backfill_to_week or 0):
            raise InputValidationError(
                f'Week {week} is outside the backfill range '
                f'{league.backfill_from_week}-{league.backfill_to_week}'
            )

        member_picks = list(member_picks)
        names = self.store.display_names(league_id)
        result = BackfillWeekResult(league_id=league_id, week=week)

        with self.store.week_locks.hold((league_id, week)):
            schedule = call_with_retry(
                lambda: self.provider.fetch_week_schedule(week),
                description=f'week {week} schedule',
                **retry_settings(self.config, self.sleep),
            ).unwrap()
            team_games = build_team_game_map(schedule)

            game_ids = set()
            for entry in member_picks:
                for slot, player_id in entry.player_ids.items():
                    player = self.store.get_player(player_id) if player_id else None
                    if player and entry.point_overrides.get(slot) is None and player.team_id in team_games:
                        game_ids.add(team_games[player.team_id])
            game_stats = fetch_games_stats(self.provider, game_ids, self.config, sleep=self.sleep)

            request_errors = validate_backfill_request(member_picks)
            for index, entry in enumerate(member_picks):
                member_result = BackfillMemberResult(
                    participant_id=entry.participant_id,
                    display_name=names.get(entry.participant_id, entry.participant_id),
                )
                result.results.append(member_result)

                if index in request_errors:
                    member_result.errors.extend(request_errors[index])
                    continue

                try:
                    self._backfill_member(
                        league, week, entry, team_games, game_stats, backfilled_by, member_result
                    )
                except Exception as e:
                    logger.exception(f'Backfill failed for {entry.participant_id} in week {week}')
                    member_result.errors.append(f'Error processing - {e}')

            record = self.store.get_week(league_id, week) or WeekRecord(league_id=league_id, week=week)
            record.status = 'final'
            record.is_backfilled = True
            record.backfilled_at = self.clock()
            record.backfilled_by = backfilled_by
            self.store.put_week(record)

        recompute_standings(self.store, league_id, clock=self.clock)

        logger.info(
            f'Backfilled {league_id} week {week}: {result.written}/{len(result.results)} written, '
            f'{result.error_count} errors, {result.warning_count} warnings'
        )
        return result

    def backfill_status(self, league_id: str) -> BackfillStatusReport:
        """Per-week backfill progress for the enabled range."""
        league = self._get_league(league_id)
        from_week = league.backfill_from_week or 1
        to_week = league.backfill_to_week or 1

        report = BackfillStatusReport(
            league_id=league_id,
            backfill_enabled=league.backfill_enabled,
            from_week=league.backfill_from_week,
            to_week=league.backfill_to_week,
            overall_status=league.backfill_status,
        )
        for record in self.store.list_weeks(league_id):
            if not from_week <= record.week <= to_week:
                continue
            report.weeks.append(
                BackfillWeekStatus(
                    week=record.week,
                    status='backfilled' if record.is_backfilled else 'not_backfilled',
                    member_count=len(self.store.list_scores(league_id, record.week)),
                    backfilled_at=record.backfilled_at.isoformat() if record.backfilled_at else None,
                    backfilled_by=record.backfilled_by,
                )
            )
        return report

    def complete_backfill(self, league_id: str, completed_by: str) -> League:
        """Close backfill, make the league active and recompute standings."""
        league = self._get_league(league_id)
        league.backfill_status = 'completed'
        league.backfill_completed_at = self.clock()
        league.backfill_completed_by = completed_by
        league.status = 'active'
        self.store.put_league(league)

        recompute_standings(self.store, league_id, clock=self.clock)
        logger.info(f'Backfill completed for {league_id} by {completed_by}')
        return league

    def week_scores(self, league_id: str, week: int) -> list[WeekScoreRow]:
        """Picks joined with scores and player names for review, highest total first."""
        self._get_league(league_id)
        names = self.store.display_names(league_id)

        rows = []
        for pick in self.store.list_picks(league_id, week):
            score = self.store.get_score(league_id, week, pick.participant_id)
            row = WeekScoreRow(
                participant_id=pick.participant_id,
                display_name=names.get(pick.participant_id, pick.participant_id),
                total_points=score.total_points if score else 0.0,
                is_backfilled=pick.is_backfilled,
            )
            for slot in PICK_SLOTS:
                player_id = pick.slots[slot].player_id
                row.player_ids[slot] = player_id
                row.slot_points[slot] = score.slot_points.get(slot, 0.0) if score else 0.0
                if player_id:
                    player = self.store.get_player(player_id)
                    row.player_names[slot] = player.name if player else player_id
            rows.append(row)

        rows.sort(key=lambda r: (-r.total_points, r.participant_id))
        return rows
