"""Tests for the weekly batch scorer."""

from datetime import timedelta

import pytest

from conftest import LEAGUE_ID, SEASON, game_id, kickoff
from threeman.errors import InputValidationError
from threeman.ledger import UsageLedger
from threeman.picks import PickService
from threeman.schemas import Pick, SlotPick
from threeman.scorer import WeeklyScorer, fetch_games_stats


def locked_pick(participant_id, week, **slots):
    """Pick with every given slot locked; slots are slot=(player_id, home_team)."""
    return Pick(
        league_id=LEAGUE_ID,
        week=week,
        participant_id=participant_id,
        slots={
            slot: SlotPick(player_id=player_id, game_id=game_id(week, home), locked=True)
            for slot, (player_id, home) in slots.items()
        },
    )


@pytest.fixture
def scorer(store, provider, config, clock, no_sleep):
    return WeeklyScorer(store, provider, config=config, clock=clock, sleep=no_sleep)


@pytest.fixture
def week1(store, provider):
    """Alice and Bob locked into week 1 with box scores for every player."""
    store.put_pick(locked_pick('alice', 1, QB=('qb1', 'KC'), RB=('rb1', 'BAL'), WR=('wr1', 'MIN')))
    store.put_pick(locked_pick('bob', 1, QB=('qb2', 'KC'), RB=('rb2', 'BAL')))

    provider.add_stats(game_id(1, 'KC'), 'qb1', passing_yards=325, passing_td=3, interceptions=1, rushing_yards=25)
    provider.add_stats(game_id(1, 'KC'), 'qb2', passing_yards=200, passing_td=1)
    provider.add_stats(game_id(1, 'BAL'), 'rb1', rushing_yards=145, rushing_td=2, receiving_yards=22, receptions=3)
    provider.add_stats(game_id(1, 'BAL'), 'rb2', rushing_yards=40)
    provider.add_stats(game_id(1, 'MIN'), 'wr1', receiving_yards=112, receptions=8, receiving_td=1)


class TestScoreWeek:
    """Tests for score_week end to end over the in-memory store."""

    def test_scores_written(self, scorer, store, week1):
        """Test slot points and totals for each participant."""
        result = scorer.score_week(LEAGUE_ID, 1)

        assert result.complete
        assert result.scored == 2

        alice = store.get_score(LEAGUE_ID, 1, 'alice')
        assert alice.slot_points == {'QB': 29.5, 'RB': 34.7, 'WR': 28.2}
        assert alice.total_points == 92.4
        assert alice.double_pick_positions == []
        assert alice.unscored_positions == []

        bob = store.get_score(LEAGUE_ID, 1, 'bob')
        assert bob.slot_points == {'QB': 12.0, 'RB': 4.0, 'WR': 0.0}
        assert bob.total_points == 16.0

    def test_week_marked_final(self, scorer, store, clock, week1):
        scorer.score_week(LEAGUE_ID, 1)
        week = store.get_week(LEAGUE_ID, 1)
        assert week.status == 'final'
        assert week.scored_at == clock.now

    def test_records_usage(self, scorer, store, week1):
        """Test scoring records first use for picks the ledger has not seen."""
        scorer.score_week(LEAGUE_ID, 1)
        ledger = UsageLedger(store)
        assert ledger.has_used(LEAGUE_ID, SEASON, 'alice', 'wr1') == 1
        assert ledger.has_used(LEAGUE_ID, SEASON, 'bob', 'rb2') == 1

    def test_idempotent(self, scorer, store, week1):
        """Test re-scoring with unchanged inputs leaves identical documents."""
        scorer.score_week(LEAGUE_ID, 1)
        first_scores = [s.model_dump() for s in store.list_scores(LEAGUE_ID)]
        first_usage = [u.model_dump() for u in store.list_usage(LEAGUE_ID, SEASON)]

        scorer.score_week(LEAGUE_ID, 1)
        assert [s.model_dump() for s in store.list_scores(LEAGUE_ID)] == first_scores
        assert [u.model_dump() for u in store.list_usage(LEAGUE_ID, SEASON)] == first_usage

    def test_missing_player_scores_zero(self, scorer, store, provider):
        """Test a player absent from the box score scores 0 without failing the week."""
        store.put_pick(locked_pick('carol', 1, WR=('wr2', 'MIN')))
        provider.stats[game_id(1, 'MIN')] = []

        result = scorer.score_week(LEAGUE_ID, 1)
        assert result.complete
        [carol] = result.participants
        assert carol.slots['WR'].found_in_stats is False
        assert store.get_score(LEAGUE_ID, 1, 'carol').total_points == 0.0

    def test_fetches_each_game_once(self, scorer, provider, week1):
        """Test two participants sharing a game cause a single fetch."""
        scorer.score_week(LEAGUE_ID, 1)
        assert sorted(provider.calls) == sorted([game_id(1, 'KC'), game_id(1, 'BAL'), game_id(1, 'MIN')])

    def test_unknown_league(self, scorer):
        with pytest.raises(InputValidationError):
            scorer.score_week('nope', 1)

    def test_week_out_of_range(self, scorer):
        with pytest.raises(InputValidationError):
            scorer.score_week(LEAGUE_ID, 19)

    def test_no_picks(self, scorer, store, provider):
        """Test a week nobody picked is finalized without fetching anything."""
        result = scorer.score_week(LEAGUE_ID, 2)
        assert result.participants == []
        assert provider.calls == []
        assert store.get_week(LEAGUE_ID, 2).status == 'final'


class TestDoublePicks:
    """Tests for players used in an earlier week."""

    def test_week5_reuse_scores_zero(self, scorer, store, provider):
        """Test a player first used in week 3 and picked again in week 5 scores 0 there."""
        store.put_pick(locked_pick('alice', 3, QB=('qb1', 'KC')))
        provider.add_stats(game_id(3, 'KC'), 'qb1', passing_yards=250, passing_td=2)
        scorer.score_week(LEAGUE_ID, 3)

        store.put_pick(locked_pick('alice', 5, QB=('qb1', 'KC'), RB=('rb1', 'BAL')))
        provider.add_stats(game_id(5, 'KC'), 'qb1', passing_yards=400, passing_td=5)
        provider.add_stats(game_id(5, 'BAL'), 'rb1', rushing_yards=50)
        result = scorer.score_week(LEAGUE_ID, 5)

        score = store.get_score(LEAGUE_ID, 5, 'alice')
        assert score.slot_points['QB'] == 0.0
        assert score.double_pick_positions == ['QB']
        assert score.total_points == 5.0
        assert result.participants[0].double_pick_positions == ['QB']
        assert UsageLedger(store).has_used(LEAGUE_ID, SEASON, 'alice', 'qb1') == 3

    def test_double_pick_game_not_fetched(self, scorer, store, provider):
        """Test a double-picked slot does not trigger a stats fetch."""
        UsageLedger(store).record_first_use(LEAGUE_ID, SEASON, 'alice', 'qb1', 3)
        store.put_pick(locked_pick('alice', 5, QB=('qb1', 'KC')))

        scorer.score_week(LEAGUE_ID, 5)
        assert provider.calls == []

    def test_first_week_scored_normally(self, scorer, store, provider):
        """Test the week the ledger points at still scores the player."""
        UsageLedger(store).record_first_use(LEAGUE_ID, SEASON, 'alice', 'qb1', 3)
        store.put_pick(locked_pick('alice', 3, QB=('qb1', 'KC')))
        provider.add_stats(game_id(3, 'KC'), 'qb1', passing_yards=250)

        scorer.score_week(LEAGUE_ID, 3)
        score = store.get_score(LEAGUE_ID, 3, 'alice')
        assert score.slot_points['QB'] == 10.0
        assert score.double_pick_positions == []


class TestProviderFailures:
    """Tests for games whose stats cannot be fetched."""

    def test_failed_game_leaves_week_scoring(self, scorer, store, provider, week1):
        """Test slots on a failed game are unscored and the week is not finalized."""
        provider.failing.add(game_id(1, 'BAL'))

        result = scorer.score_week(LEAGUE_ID, 1)
        assert not result.complete
        assert result.games_failed == [game_id(1, 'BAL')]

        alice = store.get_score(LEAGUE_ID, 1, 'alice')
        assert alice.unscored_positions == ['RB']
        assert alice.slot_points['QB'] == 29.5
        assert alice.slot_points['RB'] == 0.0

        week = store.get_week(LEAGUE_ID, 1)
        assert week.status == 'scoring'
        assert week.scored_at is None

    def test_failed_game_retried(self, scorer, provider, config, week1):
        provider.failing.add(game_id(1, 'BAL'))
        scorer.score_week(LEAGUE_ID, 1)
        assert provider.calls.count(game_id(1, 'BAL')) == config.provider_attempts

    def test_existing_score_kept(self, scorer, store, provider, week1):
        """Test a failed re-score never overwrites a complete score with zeros."""
        scorer.score_week(LEAGUE_ID, 1)
        before = store.get_score(LEAGUE_ID, 1, 'alice')

        provider.failing.add(game_id(1, 'BAL'))
        result = scorer.score_week(LEAGUE_ID, 1)

        assert store.get_score(LEAGUE_ID, 1, 'alice') == before
        alice = next(p for p in result.participants if p.participant_id == 'alice')
        assert alice.written is False
        assert store.get_week(LEAGUE_ID, 1).status == 'scoring'

    def test_rerun_after_recovery(self, scorer, store, provider, week1):
        """Test a later run finalizes the week once the provider recovers."""
        provider.failing.add(game_id(1, 'BAL'))
        scorer.score_week(LEAGUE_ID, 1)

        provider.failing.clear()
        result = scorer.score_week(LEAGUE_ID, 1)
        assert result.complete
        assert store.get_score(LEAGUE_ID, 1, 'alice').total_points == 92.4
        assert store.get_week(LEAGUE_ID, 1).status == 'final'


class TestScoringBeforeGamesFinish:
    """Tests for score_week runs made before the week's games are over."""

    @pytest.fixture
    def early_pick(self, store, config, clock):
        """Week 1 games still scheduled and alice's QB picked three hours out."""
        for game in store.list_games(week=1):
            game.status = 'scheduled'
            store.put_game(game)
        picks = PickService(store, config=config, clock=clock)
        picks.submit_picks(LEAGUE_ID, 1, 'alice', {'QB': {'player_id': 'qb1', 'game_id': game_id(1, 'KC')}})
        return picks

    def test_week_stays_scoring(self, scorer, store, early_pick):
        result = scorer.score_week(LEAGUE_ID, 1)

        assert result.complete
        assert not result.final
        assert result.games_unfinished == [game_id(1, 'KC')]
        week = store.get_week(LEAGUE_ID, 1)
        assert week.status == 'scoring'
        assert week.scored_at is None

    def test_sweep_still_locks_after_early_score(self, scorer, store, early_pick):
        """Test an early score_week run does not stop the slot from locking."""
        scorer.score_week(LEAGUE_ID, 1)

        assert early_pick.sweep_locks(kickoff(1) - timedelta(minutes=30)) == 1
        assert store.get_pick(LEAGUE_ID, 1, 'alice').slots['QB'].locked

    def test_final_once_games_finish(self, scorer, store, provider, early_pick):
        scorer.score_week(LEAGUE_ID, 1)

        game = store.get_game(game_id(1, 'KC'))
        game.status = 'final'
        store.put_game(game)
        provider.add_stats(game_id(1, 'KC'), 'qb1', passing_yards=300)

        result = scorer.score_week(LEAGUE_ID, 1)
        assert result.final
        assert store.get_week(LEAGUE_ID, 1).status == 'final'
        assert store.get_score(LEAGUE_ID, 1, 'alice').total_points == 15.0


class TestFetchGamesStats:
    """Tests for the parallel fetch helper."""

    def test_keyed_by_player(self, provider, config, no_sleep):
        provider.add_stats('g1', 'p1', rushing_yards=10)
        results = fetch_games_stats(provider, ['g1', 'g1'], config, sleep=no_sleep)
        assert list(results) == ['g1']
        assert results['g1'].ok
        assert results['g1'].value['p1'].rushing_yards == 10
        assert provider.calls == ['g1']

    def test_failure_is_tagged(self, provider, config, no_sleep):
        provider.failing.add('g2')
        results = fetch_games_stats(provider, ['g2'], config, sleep=no_sleep)
        assert not results['g2'].ok
        assert results['g2'].error.attempts == config.provider_attempts

    def test_empty(self, provider, config):
        assert fetch_games_stats(provider, [], config) == {}
