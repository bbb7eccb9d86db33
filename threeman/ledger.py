"""One-and-done usage ledger: which week each participant first used each player."""

import logging
from typing import Optional

from .errors import UsageAlreadyRecordedError
from .schemas import UsageRecord
from .store import LeagueStore

logger = logging.getLogger('threeman.ledger')


class UsageLedger:
    """
    Single source of truth for one-and-done.

    Records are written once and never changed. Live submission, the weekly
    scorer and the backfill reconciler all write through record_first_use.
    """

    def __init__(self, store: LeagueStore):
        self.store = store

    def has_used(
        self, league_id: str, season: int, participant_id: str, player_id: str
    ) -> Optional[int]:
        """Return the week the player was first used, or None if never used."""
        record = self.store.get_usage(league_id, season, participant_id, player_id)
        return record.first_used_week if record else None

    def record_first_use(
        self,
        league_id: str,
        season: int,
        participant_id: str,
        player_id: str,
        week: int,
        is_backfilled: bool = False,
    ) -> bool:
        """
        Create the usage record if absent.

        Returns:
            True if the record was written, False if one already existed
        """
        record = UsageRecord(
            league_id=league_id,
            season=season,
            participant_id=participant_id,
            player_id=player_id,
            first_used_week=week,
            is_backfilled=is_backfilled,
        )
        try:
            self.store.insert_usage(record)
        except UsageAlreadyRecordedError:
            existing = self.has_used(league_id, season, participant_id, player_id)
            if existing != week:
                logger.warning(
                    f'{league_id}: {participant_id} already used {player_id} in week {existing}, '
                    f'not recording week {week}'
                )
            return False

        logger.debug(f'{league_id}: {participant_id} first used {player_id} in week {week}')
        return True

    def usage_for(self, league_id: str, season: int, participant_id: str) -> list[UsageRecord]:
        """All players a participant has used this season, oldest first."""
        return self.store.list_usage(league_id, season, participant_id)
