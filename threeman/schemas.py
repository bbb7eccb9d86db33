"""Pydantic schemas for persisted records and configuration."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from .constants import PICK_SLOTS

Slot = Literal['QB', 'RB', 'WR']
Position = Literal['QB', 'RB', 'WR', 'TE']
GameStatus = Literal['scheduled', 'in_progress', 'final']
WeekStatus = Literal['pending', 'pending_backfill', 'scoring', 'final']
BackfillStatus = Literal['not_started', 'in_progress', 'completed']
LeagueStatus = Literal['preseason', 'active', 'completed', 'archived']


def _check_slot_keys(v: dict) -> dict:
    for slot in v:
        if slot not in PICK_SLOTS:
            raise ValueError(f'Invalid slot: {slot}')
    return v


class StatLine(BaseModel):
    """Normalized box-score line for one player in one game."""

    passing_yards: float = 0
    passing_td: int = 0
    interceptions: int = 0
    rushing_yards: float = 0
    rushing_td: int = 0
    receiving_yards: float = 0
    receiving_td: int = 0
    receptions: int = 0
    fumbles_lost: int = 0
    two_pt_conversions: int = 0
    offensive_fumble_recovery_td: int = 0

    class Config:
        extra = 'forbid'


class PlayerGameStats(BaseModel):
    """A provider's stat line for one player, tagged with the player id."""

    player_id: str
    player_name: str = ''
    stats: StatLine = Field(default_factory=StatLine)


class ScheduledGame(BaseModel):
    """Schedule row as returned by a stats provider."""

    game_id: str
    home_team_id: str
    away_team_id: str
    home_team_name: str | None = None
    away_team_name: str | None = None
    kickoff: datetime | None = None
    week: int | None = None
    status: GameStatus = 'scheduled'


class Game(BaseModel):
    """NFL game as stored by schedule sync."""

    game_id: str = Field(..., min_length=1)
    home_team_id: str
    away_team_id: str
    home_team_name: str | None = None
    away_team_name: str | None = None
    kickoff: datetime
    week: int | None = Field(None, ge=1, le=22)
    status: GameStatus = 'scheduled'

    class Config:
        extra = 'forbid'


class Player(BaseModel):
    """NFL player as stored by roster sync."""

    player_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    position: Position
    team_id: str
    team_name: str | None = None
    eligible_slots: list[Slot] = Field(default_factory=list)

    @field_validator('eligible_slots')
    @classmethod
    def no_duplicate_slots(cls, v):
        """Ensure each slot is listed once."""
        if len(set(v)) != len(v):
            raise ValueError(f'Duplicate eligible slots: {v}')
        return v

    class Config:
        extra = 'forbid'


class SlotPick(BaseModel):
    """One slot of a weekly pick. Open until locked, then immutable."""

    player_id: str | None = None
    game_id: str | None = None
    locked: bool = False
    points_override: float | None = None  # operator-entered points, backfill only

    class Config:
        extra = 'forbid'


def _empty_slots() -> dict[str, SlotPick]:
    return {slot: SlotPick() for slot in PICK_SLOTS}


class Pick(BaseModel):
    """A participant's selections for one league week."""

    league_id: str
    week: int = Field(..., ge=1)
    participant_id: str
    slots: dict[str, SlotPick] = Field(default_factory=_empty_slots)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_backfilled: bool = False
    backfilled_by: str | None = None

    @field_validator('slots')
    @classmethod
    def validate_slots(cls, v):
        """Ensure only QB/RB/WR slots exist, filling any that are missing."""
        _check_slot_keys(v)
        for slot in PICK_SLOTS:
            v.setdefault(slot, SlotPick())
        return v

    class Config:
        extra = 'forbid'


class UsageRecord(BaseModel):
    """Write-once fact: the first week a participant used a player."""

    league_id: str
    season: int
    participant_id: str
    player_id: str
    first_used_week: int = Field(..., ge=1)
    is_backfilled: bool = False

    class Config:
        extra = 'forbid'


class Score(BaseModel):
    """A participant's scored week. Contains no timestamps so re-scoring is idempotent."""

    league_id: str
    week: int = Field(..., ge=1)
    participant_id: str
    slot_points: dict[str, float] = Field(default_factory=lambda: {s: 0.0 for s in PICK_SLOTS})
    total_points: float = 0.0
    double_pick_positions: list[Slot] = Field(default_factory=list)
    unscored_positions: list[Slot] = Field(default_factory=list)
    is_backfilled: bool = False

    @field_validator('slot_points')
    @classmethod
    def validate_slot_points(cls, v):
        """Ensure only QB/RB/WR slots are scored."""
        return _check_slot_keys(v)

    class Config:
        extra = 'forbid'


class SeasonStanding(BaseModel):
    """Season totals for one participant, derived from Score documents."""

    league_id: str
    participant_id: str
    display_name: str = ''
    season_total_points: float = 0.0
    weeks_played: int = 0
    best_week_points: float = 0.0
    best_week: int | None = None
    rank: int = 0
    payout: float = 0.0
    updated_at: datetime | None = None

    class Config:
        extra = 'forbid'


class WeekRecord(BaseModel):
    """Lifecycle status of one league week."""

    league_id: str
    week: int = Field(..., ge=1)
    status: WeekStatus = 'pending'
    is_backfilled: bool = False
    backfilled_at: datetime | None = None
    backfilled_by: str | None = None
    scored_at: datetime | None = None

    class Config:
        extra = 'forbid'


class PayoutEntry(BaseModel):
    """Prize for finishing at a rank."""

    rank: int = Field(..., ge=1)
    amount: float = Field(..., ge=0)

    class Config:
        extra = 'forbid'


class League(BaseModel):
    """League settings relevant to scoring, payouts and backfill."""

    league_id: str = Field(..., min_length=1)
    name: str = ''
    season: int
    entry_fee: float = 0
    payout_structure: list[PayoutEntry] = Field(default_factory=list)
    status: LeagueStatus = 'preseason'
    backfill_enabled: bool = False
    backfill_from_week: int | None = None
    backfill_to_week: int | None = None
    backfill_status: BackfillStatus = 'not_started'
    backfill_completed_at: datetime | None = None
    backfill_completed_by: str | None = None

    @field_validator('payout_structure')
    @classmethod
    def validate_payout_ranks(cls, v):
        """Ensure each rank is paid at most once."""
        ranks = [p.rank for p in v]
        if len(set(ranks)) != len(ranks):
            raise ValueError(f'Duplicate payout ranks: {ranks}')
        return sorted(v, key=lambda p: p.rank)

    @property
    def payout_total(self) -> float:
        return sum(p.amount for p in self.payout_structure)

    class Config:
        extra = 'forbid'


class LeagueMember(BaseModel):
    """Display-name lookup for a participant (membership itself lives elsewhere)."""

    league_id: str
    participant_id: str
    display_name: str = ''

    class Config:
        extra = 'forbid'


class StoreSnapshot(BaseModel):
    """Complete on-disk store file structure."""

    games: list[Game] = Field(default_factory=list)
    players: list[Player] = Field(default_factory=list)
    leagues: list[League] = Field(default_factory=list)
    members: list[LeagueMember] = Field(default_factory=list)
    weeks: list[WeekRecord] = Field(default_factory=list)
    picks: list[Pick] = Field(default_factory=list)
    usage: list[UsageRecord] = Field(default_factory=list)
    scores: list[Score] = Field(default_factory=list)
    standings: list[SeasonStanding] = Field(default_factory=list)

    class Config:
        extra = 'forbid'


class LeagueConfig(BaseModel):
    """League configuration settings."""

    current_season: int = Field(..., ge=2020, le=2035)
    regular_season_weeks: int = Field(18, ge=1, le=18)
    lock_buffer_minutes: int = Field(60, ge=0, le=24 * 60)
    stats_provider: Literal['nflverse', 'espn'] = 'nflverse'
    provider_attempts: int = Field(3, ge=1, le=10)
    provider_backoff_seconds: float = Field(1.0, ge=0)
    provider_timeout_seconds: float = Field(30.0, gt=0)
    fetch_workers: int = Field(8, ge=1, le=64)
    default_entry_fee: float = Field(50, ge=0)
    default_payout_structure: list[PayoutEntry] = Field(default_factory=list)

    class Config:
        extra = 'forbid'
