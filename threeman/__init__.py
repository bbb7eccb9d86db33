from .errors import (
    ThreeManError,
    InputValidationError,
    UnknownPlayerError,
    UnknownGameError,
    RuleViolation,
    SlotLockedError,
    PlayerAlreadyUsedError,
    IneligiblePlayerError,
    TransientProviderError,
    InvariantViolation,
    UsageAlreadyRecordedError,
)
from .scoring import score_stat_line, calculate_points
from .store import LeagueStore
from .ledger import UsageLedger
from .picks import PickService
from .scorer import WeeklyScorer, fetch_games_stats
from .standings import recompute_standings
from .backfill import BackfillService
from .providers import StatsProvider, get_provider
from .roster_sync import sync_schedule, sync_players
from .excel_parser import parse_backfill_workbook

__all__ = [
    # Errors
    'ThreeManError',
    'InputValidationError',
    'UnknownPlayerError',
    'UnknownGameError',
    'RuleViolation',
    'SlotLockedError',
    'PlayerAlreadyUsedError',
    'IneligiblePlayerError',
    'TransientProviderError',
    'InvariantViolation',
    'UsageAlreadyRecordedError',
    # Scoring formula
    'score_stat_line',
    'calculate_points',
    # Store and services
    'LeagueStore',
    'UsageLedger',
    'PickService',
    'WeeklyScorer',
    'fetch_games_stats',
    'recompute_standings',
    'BackfillService',
    # Providers and ingestion
    'StatsProvider',
    'get_provider',
    'sync_schedule',
    'sync_players',
    'parse_backfill_workbook',
]
