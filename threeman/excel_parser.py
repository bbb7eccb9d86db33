"""Backfill workbook parsing utilities."""

import logging
import re
from pathlib import Path
from typing import Optional

import openpyxl

from .constants import PICK_SLOTS, TEAM_ABBREV_NORMALIZE
from .models import BackfillMemberPick
from .store import LeagueStore

logger = logging.getLogger('threeman.excel_parser')

PARTICIPANT_HEADERS = ('participant', 'participant_id', 'member', 'user')
OVERRIDE_SUFFIXES = ('override', 'points', 'pts')


def parse_player_name(cell_value: str) -> tuple[str, str]:
    """
    Parse player name from Excel format "Player Name (TEAM)" to (name, team_abbrev).

    Examples:
        "Patrick Mahomes II (KC)" -> ("Patrick Mahomes II", "KC")
        "Jalen Hurts" -> ("Jalen Hurts", "")
    """
    if not cell_value:
        return '', ''

    match = re.match(r'^(.+?)\s*\(([A-Z]{2,3})\)$', cell_value.strip())
    if match:
        return match.group(1).strip(), match.group(2)
    return cell_value.strip(), ''


def resolve_player_id(cell_value: str, store: LeagueStore) -> str:
    """
    Resolve a workbook cell to a player id.

    A cell holding a known player id is returned as is. Otherwise the cell is read
    as "Name (TEAM)" and matched against stored players by name, then team. An
    unresolved cell is returned unchanged so the backfill reports it as unknown.
    """
    value = str(cell_value).strip()
    if store.get_player(value):
        return value

    name, team = parse_player_name(value)
    team = TEAM_ABBREV_NORMALIZE.get(team, team)
    matches = [p for p in store.list_players() if p.name.lower() == name.lower()]
    if team:
        matches = [p for p in matches if p.team_id == team] or matches
    if len(matches) == 1:
        return matches[0].player_id
    if len(matches) > 1:
        logger.warning(f'Ambiguous player "{value}": {[p.player_id for p in matches]}')
    return value


def _header_columns(headers: list[Optional[str]]) -> tuple[Optional[int], dict[str, int], dict[str, int]]:
    """Map header cells to (participant column, slot columns, override columns)."""
    participant_col = None
    slot_cols: dict[str, int] = {}
    override_cols: dict[str, int] = {}

    for col, header in enumerate(headers):
        text = str(header or '').strip().lower()
        if not text:
            continue
        if text in PARTICIPANT_HEADERS:
            participant_col = col
            continue
        parts = text.split()
        slot = parts[0].upper()
        if slot not in PICK_SLOTS:
            continue
        if len(parts) == 1:
            slot_cols[slot] = col
        elif parts[-1] in OVERRIDE_SUFFIXES:
            override_cols[slot] = col

    return participant_col, slot_cols, override_cols


def parse_backfill_workbook(
    filepath: str | Path, sheet_name: str, store: LeagueStore
) -> list[BackfillMemberPick]:
    """
    Parse one week of historical picks from an operator workbook.

    The first row holds headers: a participant column, QB/RB/WR columns and
    optional "QB Override" (or "QB Points") columns. Each following row is one
    participant. Player cells may be player ids or "Name (TEAM)".

    Args:
        filepath: Path to the Excel file
        sheet_name: Name of the sheet to read (usually one sheet per week)
        store: Store used to resolve player names

    Returns:
        List of BackfillMemberPick entries in row order
    """
    wb = openpyxl.load_workbook(filepath, read_only=True, data_only=True)
    try:
        ws = wb[sheet_name]
        rows = ws.iter_rows(values_only=True)
        headers = list(next(rows, []))
        participant_col, slot_cols, override_cols = _header_columns(headers)
        if participant_col is None:
            raise ValueError(f'{sheet_name}: no participant column in headers {headers}')

        entries = []
        for row in rows:
            participant = row[participant_col] if participant_col < len(row) else None
            if participant is None or not str(participant).strip():
                continue

            entry = BackfillMemberPick(participant_id=str(participant).strip())
            for slot, col in slot_cols.items():
                value = row[col] if col < len(row) else None
                if value is not None and str(value).strip():
                    entry.player_ids[slot] = resolve_player_id(value, store)
            for slot, col in override_cols.items():
                value = row[col] if col < len(row) else None
                if value is not None and str(value).strip() != '':
                    entry.point_overrides[slot] = float(value)
            entries.append(entry)
    finally:
        wb.close()

    logger.info(f'Parsed {len(entries)} entries from {filepath} [{sheet_name}]')
    return entries
