"""Result containers returned by the pick, scoring and backfill services."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class SubmitResult:
    """Outcome of a pick submission: accepted slots and 'SLOT: reason' skips."""
    accepted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped


@dataclass
class SlotScore:
    """Container for one slot's scoring outcome."""
    slot: str
    player_id: Optional[str] = None
    game_id: Optional[str] = None
    points: float = 0.0
    breakdown: Dict[str, float] = field(default_factory=dict)
    found_in_stats: bool = False
    overridden: bool = False
    double_pick: bool = False
    unscored: bool = False


@dataclass
class ParticipantWeekResult:
    """Scoring outcome for one participant in one week."""
    participant_id: str
    total_points: float = 0.0
    slots: Dict[str, SlotScore] = field(default_factory=dict)
    written: bool = True
    warnings: List[str] = field(default_factory=list)

    @property
    def double_pick_positions(self) -> List[str]:
        return [s for s, r in self.slots.items() if r.double_pick]

    @property
    def unscored_positions(self) -> List[str]:
        return [s for s, r in self.slots.items() if r.unscored]


@dataclass
class WeekScoringResult:
    """Aggregate outcome of score_week."""
    league_id: str
    week: int
    participants: List[ParticipantWeekResult] = field(default_factory=list)
    games_fetched: int = 0
    games_failed: List[str] = field(default_factory=list)
    games_unfinished: List[str] = field(default_factory=list)

    @property
    def scored(self) -> int:
        return sum(1 for p in self.participants if p.written)

    @property
    def complete(self) -> bool:
        return not self.games_failed

    @property
    def final(self) -> bool:
        """Every stat fetch succeeded and every picked game is over."""
        return self.complete and not self.games_unfinished


@dataclass
class BackfillMemberPick:
    """One participant's historical picks for a week, with optional manual points."""
    participant_id: str
    player_ids: Dict[str, Optional[str]] = field(default_factory=dict)
    point_overrides: Dict[str, float] = field(default_factory=dict)


@dataclass
class BackfillMemberResult:
    """Per-participant backfill outcome for operator review."""
    participant_id: str
    display_name: str = ''
    slot_points: Dict[str, float] = field(default_factory=dict)
    player_names: Dict[str, str] = field(default_factory=dict)
    total_points: float = 0.0
    double_pick_positions: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    written: bool = False


@dataclass
class BackfillWeekResult:
    """Aggregate outcome of backfill_week."""
    league_id: str
    week: int
    results: List[BackfillMemberResult] = field(default_factory=list)

    @property
    def written(self) -> int:
        return sum(1 for r in self.results if r.written)

    @property
    def error_count(self) -> int:
        return sum(len(r.errors) for r in self.results)

    @property
    def warning_count(self) -> int:
        return sum(len(r.warnings) for r in self.results)


@dataclass
class BackfillWeekStatus:
    """Progress of one week inside the backfill range."""
    week: int
    status: str
    member_count: int = 0
    backfilled_at: Optional[str] = None
    backfilled_by: Optional[str] = None


@dataclass
class BackfillStatusReport:
    """Backfill progress for a league."""
    league_id: str
    backfill_enabled: bool
    from_week: Optional[int]
    to_week: Optional[int]
    overall_status: str
    weeks: List[BackfillWeekStatus] = field(default_factory=list)


@dataclass
class WeekScoreRow:
    """Review row for a scored week (picks joined with scores and player names)."""
    participant_id: str
    display_name: str
    player_ids: Dict[str, Optional[str]] = field(default_factory=dict)
    player_names: Dict[str, str] = field(default_factory=dict)
    slot_points: Dict[str, float] = field(default_factory=dict)
    total_points: float = 0.0
    is_backfilled: bool = False
