"""Constants and mappings for the Three Man League engine."""

# Pick slots, in display order
PICK_SLOTS = ('QB', 'RB', 'WR')

# Roster positions we ingest (TE is stored but never pickable)
PLAYER_POSITIONS = ('QB', 'RB', 'WR', 'TE')

# Position -> slots the player may fill
ELIGIBLE_SLOTS = {
    'QB': ['QB'],
    'RB': ['RB'],
    'WR': ['WR'],
    'TE': [],
}

# Free-text position names seen in provider feeds
POSITION_ALIASES = {
    'QUARTERBACK': 'QB',
    'RUNNING BACK': 'RB',
    'WIDE RECEIVER': 'WR',
    'TIGHT END': 'TE',
}

# ESPN public API (no key required)
ESPN_SITE_API = 'https://site.api.espn.com/apis/site/v2/sports/football/nfl'
ESPN_USER_AGENT = 'three-man-league/1.0'

# ESPN event status -> Game.status
ESPN_STATUS_MAP = {
    'STATUS_SCHEDULED': 'scheduled',
    'STATUS_IN_PROGRESS': 'in_progress',
    'STATUS_HALFTIME': 'in_progress',
    'STATUS_END_PERIOD': 'in_progress',
    'STATUS_FINAL': 'final',
    'STATUS_FINAL_OVERTIME': 'final',
}

# nflverse schedule times are US/Eastern
NFLVERSE_TIMEZONE = 'America/New_York'

# Team abbreviations seen in spreadsheets -> nflverse format
TEAM_ABBREV_NORMALIZE = {
    'LAR': 'LA',   # Los Angeles Rams
    'JAC': 'JAX',  # Jacksonville Jaguars
}
