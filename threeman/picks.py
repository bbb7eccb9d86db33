"""Pick submission and the slot lock state machine."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Mapping, Optional

from .config import get_config
from .constants import PICK_SLOTS
from .errors import (
    IneligiblePlayerError,
    InputValidationError,
    PlayerAlreadyUsedError,
    RuleViolation,
    SlotLockedError,
    UnknownGameError,
    UnknownPlayerError,
)
from .ledger import UsageLedger
from .models import SubmitResult
from .schedule import in_lock_window, is_locked
from .schemas import League, LeagueConfig, Pick, SlotPick
from .store import LeagueStore
from .utils import utcnow

logger = logging.getLogger('threeman.picks')


class PickService:
    """
    Accepts weekly picks and locks them as kickoffs approach.

    A slot is Open until its game is within the lock buffer of kickoff, then
    Locked for good. There is no unlock transition.
    """

    def __init__(
        self,
        store: LeagueStore,
        ledger: Optional[UsageLedger] = None,
        config: Optional[LeagueConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.ledger = ledger or UsageLedger(store)
        self.config = config or get_config()
        self.clock = clock

    @property
    def lock_buffer(self) -> timedelta:
        return timedelta(minutes=self.config.lock_buffer_minutes)

    def _get_league(self, league_id: str) -> League:
        league = self.store.get_league(league_id)
        if league is None:
            raise InputValidationError(f'unknown league: {league_id}')
        return league

    def _check_week(self, week: int) -> None:
        if not isinstance(week, int) or not 1 <= week <= self.config.regular_season_weeks:
            raise InputValidationError(
                f'week must be between 1 and {self.config.regular_season_weeks}, got {week!r}'
            )

    def _normalize_selections(
        self, participant_id: str, slot_picks: Mapping[str, Mapping | SlotPick]
    ) -> dict[str, tuple[str, str]]:
        """
        Validate request shape and return slot -> (player_id, game_id).

        Slots given with neither a player nor a game are left out (no change).
        """
        if not participant_id or not str(participant_id).strip():
            raise InputValidationError('participant id is required')

        selections = {}
        for slot, selection in slot_picks.items():
            if slot not in PICK_SLOTS:
                raise InputValidationError(f'invalid slot: {slot}')
            if isinstance(selection, SlotPick):
                player_id, game_id = selection.player_id, selection.game_id
            elif isinstance(selection, Mapping):
                player_id, game_id = selection.get('player_id'), selection.get('game_id')
            else:
                raise InputValidationError(f'{slot}: selection must have player_id and game_id')

            if player_id is None and game_id is None:
                continue
            if not player_id or not game_id:
                raise InputValidationError(f'{slot}: both player_id and game_id are required')
            selections[slot] = (str(player_id), str(game_id))
        return selections

    def _load_pick(self, league_id: str, week: int, participant_id: str) -> Pick:
        pick = self.store.get_pick(league_id, week, participant_id)
        if pick is None:
            pick = Pick(league_id=league_id, week=week, participant_id=participant_id)
        return pick

    def _validate_slot(
        self,
        league: League,
        week: int,
        participant_id: str,
        slot: str,
        player_id: str,
        game_id: str,
        current: SlotPick,
        now: datetime,
    ) -> None:
        if current.locked:
            raise SlotLockedError('already locked')
        if current.game_id:
            current_game = self.store.get_game(current.game_id)
            if current_game and is_locked(current_game, now, self.lock_buffer):
                raise SlotLockedError('already locked')

        player = self.store.get_player(player_id)
        if player is None:
            raise UnknownPlayerError(player_id)
        if slot not in player.eligible_slots:
            raise IneligiblePlayerError(player_id, slot)

        first_used = self.ledger.has_used(league.league_id, league.season, participant_id, player_id)
        if first_used is not None and first_used != week:
            raise PlayerAlreadyUsedError(player_id, first_used)

        game = self.store.get_game(game_id)
        if game is None:
            raise UnknownGameError(game_id)
        if is_locked(game, now, self.lock_buffer):
            raise SlotLockedError('game locked')

    def _apply(
        self, league: League, pick: Pick, slot: str, player_id: str, game_id: str, now: datetime
    ) -> None:
        self._validate_slot(
            league, pick.week, pick.participant_id, slot, player_id, game_id, pick.slots[slot], now
        )

        # Ledger first, then the pick
        written = self.ledger.record_first_use(
            league.league_id, league.season, pick.participant_id, player_id, pick.week
        )
        if not written:
            first_used = self.ledger.has_used(
                league.league_id, league.season, pick.participant_id, player_id
            )
            if first_used != pick.week:
                raise PlayerAlreadyUsedError(player_id, first_used)

        pick.slots[slot] = SlotPick(player_id=player_id, game_id=game_id, locked=False)

    def submit_slot(
        self, league_id: str, week: int, participant_id: str, slot: str, player_id: str, game_id: str
    ) -> None:
        """
        Submit a single slot.

        Raises:
            InputValidationError: Bad shape, unknown player or unknown game
            RuleViolation: Slot locked, player ineligible or already used
        """
        league = self._get_league(league_id)
        self._check_week(week)
        selections = self._normalize_selections(
            participant_id, {slot: {'player_id': player_id, 'game_id': game_id}}
        )
        if not selections:
            raise InputValidationError(f'{slot}: both player_id and game_id are required')

        with self.store.pick_locks.hold((league_id, week, participant_id)):
            now = self.clock()
            pick = self._load_pick(league_id, week, participant_id)
            self._apply(league, pick, slot, player_id, game_id, now)
            self._save_pick(pick, now)

        logger.info(f'{league_id} week {week}: {participant_id} picked {player_id} at {slot}')

    def submit_picks(
        self,
        league_id: str,
        week: int,
        participant_id: str,
        slot_picks: Mapping[str, Mapping | SlotPick],
    ) -> SubmitResult:
        """
        Submit picks for any subset of slots.

        Each slot is validated in order (slot not locked, player exists, player
        eligible, player not used in another week, game exists, game not locked).
        A rejected slot is reported as "SLOT: reason" and never fails the others.

        Args:
            league_id: League id
            week: Week number
            participant_id: Participant id (trusted)
            slot_picks: slot -> {'player_id': ..., 'game_id': ...}

        Returns:
            SubmitResult with accepted slots and skip reasons

        Raises:
            InputValidationError: Unknown league, week out of range, unknown slot or missing ids
        """
        league = self._get_league(league_id)
        self._check_week(week)
        selections = self._normalize_selections(participant_id, slot_picks)

        result = SubmitResult()
        with self.store.pick_locks.hold((league_id, week, participant_id)):
            now = self.clock()
            pick = self._load_pick(league_id, week, participant_id)

            for slot in PICK_SLOTS:
                if slot not in selections:
                    continue
                player_id, game_id = selections[slot]
                try:
                    self._apply(league, pick, slot, player_id, game_id, now)
                except (RuleViolation, InputValidationError) as e:
                    result.skipped.append(f'{slot}: {e}')
                    continue
                result.accepted.append(slot)

            if result.accepted:
                self._save_pick(pick, now)

        if result.skipped:
            logger.info(
                f'{league_id} week {week}: {participant_id} skipped {"; ".join(result.skipped)}'
            )
        logger.debug(f'{league_id} week {week}: {participant_id} accepted {result.accepted}')
        return result

    def _save_pick(self, pick: Pick, now: datetime) -> None:
        if pick.created_at is None:
            pick.created_at = now
        pick.updated_at = now
        self.store.put_pick(pick)

    def sweep_locks(self, now: Optional[datetime] = None) -> int:
        """
        Lock every open slot whose game is within the lock buffer of kickoff.

        Every week is swept whatever its status, so a week scored early still
        gets its slots locked. Safe to run repeatedly.

        Returns:
            Number of slots locked by this run
        """
        now = now or self.clock()
        window = {
            game.game_id for game in self.store.list_games() if in_lock_window(game, now, self.lock_buffer)
        }
        if not window:
            return 0

        locked = 0
        for week_record in self.store.list_weeks():
            for pick in self.store.list_picks(week_record.league_id, week_record.week):
                key = (pick.league_id, pick.week, pick.participant_id)
                with self.store.pick_locks.hold(key):
                    current = self.store.get_pick(*key)
                    changed = 0
                    for slot_pick in current.slots.values():
                        if not slot_pick.locked and slot_pick.game_id in window:
                            slot_pick.locked = True
                            changed += 1
                    if changed:
                        current.updated_at = now
                        self.store.put_pick(current)
                        locked += changed

        if locked:
            logger.info(f'Lock sweep locked {locked} slots ({len(window)} games in window)')
        return locked
