"""Validation functions for score documents and backfill requests."""

from typing import Iterable

from .constants import PICK_SLOTS
from .models import BackfillMemberPick
from .schemas import Score

MAX_REASONABLE_SLOT_POINTS = 60
MIN_REASONABLE_SLOT_POINTS = -10


def validate_score(score: Score) -> list[str]:
    """
    Check that a Score document is internally consistent and plausible.

    Sanity checks:
    - Total equals the sum of the three slot points (within rounding)
    - Double-picked slots score zero
    - Slot points in a reasonable range (-10 to 60)

    Args:
        score: Score document about to be written

    Returns:
        List of warning messages (empty if no issues)
    """
    warnings = []
    who = f'{score.participant_id} week {score.week}'

    slot_sum = sum(score.slot_points.get(slot, 0.0) for slot in PICK_SLOTS)
    diff = abs(slot_sum - score.total_points)
    if diff > 0.05:
        warnings.append(
            f'{who} slot sum ({slot_sum:.1f}) != total ({score.total_points:.1f}) - difference: {diff:.1f}'
        )

    for slot in score.double_pick_positions:
        if score.slot_points.get(slot, 0.0) != 0:
            warnings.append(f'{who} {slot} is a double pick but scored {score.slot_points[slot]:.1f}')

    for slot, points in score.slot_points.items():
        if points > MAX_REASONABLE_SLOT_POINTS:
            warnings.append(f'{who} {slot} scored {points:.1f} pts (unusually high - check stats)')
        elif points < MIN_REASONABLE_SLOT_POINTS:
            warnings.append(f'{who} {slot} scored {points:.1f} pts (unusually low - check stats)')

    return warnings


def validate_backfill_request(member_picks: Iterable[BackfillMemberPick]) -> dict[int, list[str]]:
    """
    Check a backfill request before anything is written.

    Checks:
    - Each participant appears once (later entries are rejected)
    - Slot keys are QB/RB/WR
    - Overrides only name known slots

    Args:
        member_picks: Entries in request order

    Returns:
        Dict of entry index -> error messages, for entries that must be rejected
    """
    errors: dict[int, list[str]] = {}
    seen = set()

    for index, entry in enumerate(member_picks):
        entry_errors = []
        if not entry.participant_id:
            entry_errors.append('participant id is required')
        elif entry.participant_id in seen:
            entry_errors.append(f'{entry.participant_id} listed more than once in this request')
        seen.add(entry.participant_id)

        for slot in list(entry.player_ids) + list(entry.point_overrides):
            if slot not in PICK_SLOTS:
                entry_errors.append(f'invalid slot: {slot}')

        if entry_errors:
            errors[index] = entry_errors

    return errors
