"""ESPN public API stats provider (no key required)."""

import logging
from datetime import datetime
from typing import Any, Optional

import requests

from ..constants import (
    ELIGIBLE_SLOTS,
    ESPN_SITE_API,
    ESPN_STATUS_MAP,
    ESPN_USER_AGENT,
    PLAYER_POSITIONS,
    POSITION_ALIASES,
)
from ..schemas import Player, PlayerGameStats, ScheduledGame, StatLine
from ..utils import ensure_utc

logger = logging.getLogger('threeman.providers.espn')

REGULAR_SEASON = 2
POSTSEASON = 3


def _stat_value(value: Any) -> float:
    """ESPN box score values are strings; '--' and blanks count as zero."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_box_score(summary: dict) -> list[PlayerGameStats]:
    """
    Parse the boxscore section of an ESPN summary response.

    Categories used: passing (YDS, TD, INT), rushing (YDS, TD),
    receiving (REC, YDS, TD) and fumbles (LOST).
    """
    lines: dict[str, dict[str, float]] = {}
    names: dict[str, str] = {}

    for team_stats in (summary.get('boxscore') or {}).get('players') or []:
        for category in team_stats.get('statistics') or []:
            name = category.get('name')
            labels = [str(label).upper() for label in category.get('labels') or []]

            for entry in category.get('athletes') or []:
                athlete = entry.get('athlete') or {}
                player_id = str(athlete.get('id', ''))
                if not player_id:
                    continue
                names.setdefault(player_id, athlete.get('displayName', ''))
                line = lines.setdefault(player_id, {})
                values = dict(zip(labels, entry.get('stats') or []))

                if name == 'passing':
                    line['passing_yards'] = _stat_value(values.get('YDS'))
                    line['passing_td'] = _stat_value(values.get('TD'))
                    line['interceptions'] = _stat_value(values.get('INT'))
                elif name == 'rushing':
                    line['rushing_yards'] = _stat_value(values.get('YDS'))
                    line['rushing_td'] = _stat_value(values.get('TD'))
                elif name == 'receiving':
                    line['receiving_yards'] = _stat_value(values.get('YDS'))
                    line['receiving_td'] = _stat_value(values.get('TD'))
                    line['receptions'] = _stat_value(values.get('REC'))
                elif name == 'fumbles':
                    line['fumbles_lost'] = _stat_value(values.get('LOST', values.get('FUM')))

    results = []
    for player_id, line in lines.items():
        stats = StatLine(
            passing_yards=line.get('passing_yards', 0),
            passing_td=int(line.get('passing_td', 0)),
            interceptions=int(line.get('interceptions', 0)),
            rushing_yards=line.get('rushing_yards', 0),
            rushing_td=int(line.get('rushing_td', 0)),
            receiving_yards=line.get('receiving_yards', 0),
            receiving_td=int(line.get('receiving_td', 0)),
            receptions=int(line.get('receptions', 0)),
            fumbles_lost=int(line.get('fumbles_lost', 0)),
        )
        results.append(PlayerGameStats(player_id=player_id, player_name=names[player_id], stats=stats))
    return results


def summary_status(summary: dict) -> str:
    competitions = (summary.get('header') or {}).get('competitions') or [{}]
    name = ((competitions[0].get('status') or {}).get('type') or {}).get('name', 'STATUS_SCHEDULED')
    return ESPN_STATUS_MAP.get(name, 'scheduled')


def parse_scoreboard(data: dict, week: Optional[int] = None) -> list[ScheduledGame]:
    """Convert ESPN scoreboard events into ScheduledGame rows."""
    games = []
    for event in data.get('events') or []:
        competitions = event.get('competitions') or []
        if not competitions:
            continue
        competitors = competitions[0].get('competitors') or []
        home = next((c for c in competitors if c.get('homeAway') == 'home'), None)
        away = next((c for c in competitors if c.get('homeAway') == 'away'), None)
        if not home or not away:
            continue

        kickoff = None
        if event.get('date'):
            kickoff = ensure_utc(datetime.fromisoformat(event['date'].replace('Z', '+00:00')))
        status_name = ((event.get('status') or {}).get('type') or {}).get('name', '')

        games.append(
            ScheduledGame(
                game_id=str(event['id']),
                home_team_id=str(home['team']['id']),
                away_team_id=str(away['team']['id']),
                home_team_name=home['team'].get('displayName'),
                away_team_name=away['team'].get('displayName'),
                kickoff=kickoff,
                week=week or (event.get('week') or {}).get('number'),
                status=ESPN_STATUS_MAP.get(status_name, 'scheduled'),
            )
        )
    return games


class EspnStatsProvider:
    """
    Fetches schedules, rosters and box scores from ESPN's site API.

    Game ids are ESPN event ids and team ids are ESPN team ids. Every request
    carries a timeout; retries are left to the caller.
    """

    def __init__(self, season: int, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.season = season
        self.timeout = timeout
        self.session = session or requests

    def _get(self, url: str, params: Optional[dict] = None) -> dict:
        response = self.session.get(
            url,
            params=params,
            headers={'Accept': 'application/json', 'User-Agent': ESPN_USER_AGENT},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def fetch_game_stats(self, game_id: str) -> list[PlayerGameStats]:
        summary = self._get(f'{ESPN_SITE_API}/summary', params={'event': game_id})
        if summary_status(summary) != 'final':
            return []
        return parse_box_score(summary)

    def fetch_week_schedule(self, week: int) -> list[ScheduledGame]:
        data = self._get(
            f'{ESPN_SITE_API}/scoreboard',
            params={'dates': self.season, 'seasontype': REGULAR_SEASON, 'week': week},
        )
        return parse_scoreboard(data, week=week)

    def fetch_season_schedule(self) -> list[ScheduledGame]:
        games = []
        for season_type in (REGULAR_SEASON, POSTSEASON):
            data = self._get(
                f'{ESPN_SITE_API}/scoreboard',
                params={'limit': 1000, 'dates': self.season, 'seasontype': season_type},
            )
            games.extend(parse_scoreboard(data))
        return games

    def fetch_teams(self) -> list[dict]:
        """All NFL teams as {'id', 'abbreviation', 'name'} dicts."""
        data = self._get(f'{ESPN_SITE_API}/teams')
        teams = []
        for sport in data.get('sports') or []:
            for league in sport.get('leagues') or []:
                for item in league.get('teams') or []:
                    team = item.get('team') or {}
                    teams.append(
                        {
                            'id': str(team.get('id')),
                            'abbreviation': team.get('abbreviation'),
                            'name': team.get('displayName'),
                        }
                    )
        return teams

    def fetch_team_players(self, team_id: str, team_name: Optional[str] = None) -> list[Player]:
        data = self._get(f'{ESPN_SITE_API}/teams/{team_id}/roster')
        players = []
        for group in data.get('athletes') or []:
            for athlete in group.get('items') or []:
                position_info = athlete.get('position') or {}
                position = position_info.get('abbreviation') or POSITION_ALIASES.get(
                    str(position_info.get('name', '')).upper(), ''
                )
                if position not in PLAYER_POSITIONS:
                    continue
                players.append(
                    Player(
                        player_id=str(athlete['id']),
                        name=athlete.get('fullName') or athlete.get('displayName'),
                        position=position,
                        team_id=team_id,
                        team_name=team_name,
                        eligible_slots=ELIGIBLE_SLOTS[position],
                    )
                )
        return players

    def fetch_players(self) -> list[Player]:
        players = []
        for team in self.fetch_teams():
            try:
                players.extend(self.fetch_team_players(team['id'], team['name']))
            except requests.RequestException as e:
                logger.error(f'Failed to fetch roster for team {team["id"]}: {e}')
        return players
