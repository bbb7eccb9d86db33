"""Integration tests for end-to-end workflows."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import openpyxl
import pytest

import autoscorer
from conftest import LEAGUE_ID, SEASON, game_id, kickoff
from threeman.backfill import BackfillService
from threeman.config import clear_config_cache, get_config
from threeman.excel_parser import parse_backfill_workbook, parse_player_name, resolve_player_id
from threeman.logging_config import setup_logging
from threeman.picks import PickService
from threeman.schemas import Player
from threeman.scorer import WeeklyScorer
from threeman.standings import recompute_standings
from threeman.store import LeagueStore


class TestLiveWeek:
    """Submit, lock, score and rank a week the way the league runs it."""

    def test_pick_lock_score_standings(self, store, provider, config, clock, no_sleep):
        """QB picked three hours out, locked by the sweep, scored at 22.4."""
        picks = PickService(store, config=config, clock=clock)
        result = picks.submit_picks(LEAGUE_ID, 1, 'alice', {'QB': {'player_id': 'qb1', 'game_id': game_id(1, 'KC')}})
        assert result.accepted == ['QB']

        clock.now = clock.now + timedelta(hours=2)
        assert picks.sweep_locks() == 1
        assert store.get_pick(LEAGUE_ID, 1, 'alice').slots['QB'].locked

        provider.add_stats(game_id(1, 'KC'), 'qb1', passing_yards=310, passing_td=2, interceptions=1)
        WeeklyScorer(store, provider, config=config, clock=clock, sleep=no_sleep).score_week(LEAGUE_ID, 1)

        score = store.get_score(LEAGUE_ID, 1, 'alice')
        assert score.slot_points['QB'] == 22.4
        assert score.total_points == 22.4

        [alice] = recompute_standings(store, LEAGUE_ID, clock=clock)
        assert alice.season_total_points == 22.4
        assert alice.weeks_played == 1
        assert alice.best_week == 1
        assert alice.rank == 1
        assert alice.payout == 1200

    def test_one_and_done_across_season(self, store, provider, config, clock, no_sleep):
        """A player used in week 1 is rejected in week 2 and week 2 scores without them."""
        picks = PickService(store, config=config, clock=clock)
        picks.submit_picks(LEAGUE_ID, 1, 'bob', {'RB': {'player_id': 'rb1', 'game_id': game_id(1, 'BAL')}})

        result = picks.submit_picks(
            LEAGUE_ID,
            2,
            'bob',
            {
                'RB': {'player_id': 'rb1', 'game_id': game_id(2, 'BAL')},
                'WR': {'player_id': 'wr1', 'game_id': game_id(2, 'MIN')},
            },
        )
        assert result.accepted == ['WR']
        assert result.skipped == ['RB: player already used in week 1']

        clock.now = kickoff(2)
        picks.sweep_locks()
        provider.add_stats(game_id(2, 'MIN'), 'wr1', receiving_yards=60, receptions=5)
        WeeklyScorer(store, provider, config=config, clock=clock, sleep=no_sleep).score_week(LEAGUE_ID, 2)
        assert store.get_score(LEAGUE_ID, 2, 'bob').total_points == 11.0

    def test_concurrent_submissions_single_usage(self, store, config, clock):
        """Two submissions of the same player for different weeks race; only one wins."""
        picks = PickService(store, config=config, clock=clock)

        def submit(week):
            return picks.submit_picks(
                LEAGUE_ID, week, 'carol', {'QB': {'player_id': 'qb2', 'game_id': game_id(week, 'KC')}}
            )

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(submit, [2, 3]))

        assert sum(len(r.accepted) for r in results) == 1
        assert len(store.list_usage(LEAGUE_ID, SEASON, 'carol')) == 1


class TestBackfillWorkbook:
    """Parse an operator workbook and backfill from it."""

    @pytest.fixture
    def workbook(self, tmp_path):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = 'Week 2'
        ws.append(['Participant', 'QB', 'RB', 'WR', 'WR Override'])
        ws.append(['alice', 'Patrick Mahomes (KC)', 'rb1', None, None])
        ws.append(['bob', 'Josh Allen', None, 'CeeDee Lamb (DAL)', 14.5])
        ws.append([None, None, None, None, None])
        path = tmp_path / 'backfill.xlsx'
        wb.save(path)
        return path

    def test_parse(self, workbook, store):
        alice, bob = parse_backfill_workbook(workbook, 'Week 2', store)
        assert alice.participant_id == 'alice'
        assert alice.player_ids == {'QB': 'qb1', 'RB': 'rb1'}
        assert bob.player_ids == {'QB': 'qb2', 'WR': 'wr2'}
        assert bob.point_overrides == {'WR': 14.5}

    def test_missing_participant_column(self, tmp_path, store):
        wb = openpyxl.Workbook()
        wb.active.title = 'Week 1'
        wb.active.append(['Name', 'QB'])
        path = tmp_path / 'bad.xlsx'
        wb.save(path)
        with pytest.raises(ValueError, match='no participant column'):
            parse_backfill_workbook(path, 'Week 1', store)

    def test_backfill_from_workbook(self, workbook, store, provider, config, clock, no_sleep):
        provider.add_stats(game_id(2, 'KC'), 'qb1', passing_yards=300)
        provider.add_stats(game_id(2, 'KC'), 'qb2', passing_yards=200)
        service = BackfillService(store, provider, config=config, clock=clock, sleep=no_sleep)
        service.enable_backfill(LEAGUE_ID, 1, 2)

        entries = parse_backfill_workbook(workbook, 'Week 2', store)
        result = service.backfill_week(LEAGUE_ID, 2, entries, backfilled_by='admin')

        totals = {r.participant_id: r.total_points for r in result.results}
        assert totals == {'alice': 15.0, 'bob': 22.5}
        standings = store.list_standings(LEAGUE_ID)
        assert [s.participant_id for s in standings] == ['bob', 'alice']


class TestPlayerNameResolution:
    def test_parse_player_name(self):
        assert parse_player_name('Patrick Mahomes II (KC)') == ('Patrick Mahomes II', 'KC')
        assert parse_player_name('Jalen Hurts') == ('Jalen Hurts', '')
        assert parse_player_name('') == ('', '')

    def test_unresolved_returned_unchanged(self, store):
        assert resolve_player_id('Tom Brady (TB)', store) == 'Tom Brady (TB)'

    def test_team_abbreviation_normalized(self, store):
        store.put_player(Player(player_id='wr7', name='Puka Nacua', position='WR', team_id='LA', eligible_slots=['WR']))
        assert resolve_player_id('Puka Nacua (LAR)', store) == 'wr7'


class TestStorePersistence:
    def test_save_and_load(self, tmp_path, store, config, clock):
        PickService(store, config=config, clock=clock).submit_picks(
            LEAGUE_ID, 1, 'alice', {'QB': {'player_id': 'qb1', 'game_id': game_id(1, 'KC')}}
        )
        path = store.save(tmp_path / 'store.json')
        assert not (tmp_path / 'store.json.tmp').exists()

        loaded = LeagueStore.load(path)
        assert loaded.snapshot() == store.snapshot()
        assert loaded.get_pick(LEAGUE_ID, 1, 'alice').slots['QB'].player_id == 'qb1'
        assert loaded.get_usage(LEAGUE_ID, SEASON, 'alice', 'qb1').first_used_week == 1

    def test_missing_file_is_empty(self, tmp_path):
        store = LeagueStore.load(tmp_path / 'nothing.json')
        assert store.list_leagues() == []
        assert store.path == tmp_path / 'nothing.json'

    def test_save_without_path(self):
        with pytest.raises(ValueError):
            LeagueStore().save()


class TestConfig:
    def test_load_config(self):
        clear_config_cache()
        config = get_config()
        assert config.current_season == 2025
        assert config.lock_buffer_minutes == 60
        assert config.default_payout_structure[0].amount == 1200

    def test_config_cached(self):
        assert get_config() is get_config()

    def test_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / 'league_config.json'
        path.write_text('{"current_season": 2026, "lock_buffer_minutes": 90}')
        monkeypatch.setenv('THREEMAN_CONFIG', str(path))
        clear_config_cache()
        try:
            assert get_config().current_season == 2026
            assert get_config().lock_buffer_minutes == 90
        finally:
            clear_config_cache()

    def test_invalid_config(self, tmp_path, monkeypatch):
        path = tmp_path / 'league_config.json'
        path.write_text('{"current_season": 2025, "lock_buffer": 60}')
        monkeypatch.setenv('THREEMAN_CONFIG', str(path))
        clear_config_cache()
        try:
            with pytest.raises(ValueError, match='does not match LeagueConfig'):
                get_config()
        finally:
            clear_config_cache()


class TestCli:
    """Run the CLI against a temporary store file."""

    @pytest.fixture(autouse=True)
    def reset_logging(self):
        yield
        logging.getLogger('threeman').handlers = []

    def run(self, store_path, *args):
        autoscorer.main(['--store', str(store_path), '--no-log-file', *args])

    def test_init_and_standings(self, tmp_path, capsys):
        store_path = tmp_path / 'store.json'
        self.run(store_path, 'init-league', 'fam', '--name', 'Family', '--member', 'u1=Alice', '--member', 'u2')

        store = LeagueStore.load(store_path)
        league = store.get_league('fam')
        assert league.name == 'Family'
        assert store.display_names('fam') == {'u1': 'Alice', 'u2': 'u2'}
        assert len(store.list_weeks('fam')) == 18

        self.run(store_path, 'standings', 'fam')
        assert 'SEASON STANDINGS' in capsys.readouterr().out

    def test_error_exits_nonzero(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            self.run(tmp_path / 'store.json', 'used-players', 'nope', 'u1')
        assert exc_info.value.code == 1
        assert 'unknown league: nope' in capsys.readouterr().out

    def test_bad_selection_rejected(self, tmp_path):
        with pytest.raises(SystemExit):
            self.run(tmp_path / 'store.json', 'submit', 'fam', '1', 'u1', '--qb', 'no-colon')


def test_setup_logging_writes_daily_file(tmp_path):
    logger = setup_logging(log_dir=tmp_path, log_to_console=False)
    try:
        logging.getLogger('threeman.picks').info('sweep ran')
        [log_file] = tmp_path.glob('threeman_*.log')
        for handler in logger.handlers:
            handler.flush()
        assert 'sweep ran' in log_file.read_text()
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
