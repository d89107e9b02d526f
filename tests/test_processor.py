"""
Tests for the GameProcessor boundary: finalization, simulation, lifecycle
and the events it emits.
"""

import random
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from models.base import get_session
from engine.status import tournament_state
from models.team import Team
from models.tournament import Game, GameStatus
from models.pool import Entry, Pool, PoolStatus, EliminationCause
from models.schemas import ProcessingResults, RoundStatus

from conftest import add_pick, add_pool, game_by_code, round_by_name, team_by_name


class TestFinalizeGame:
    """Tests for finalize_game()."""

    def game(self, factory, code="EAST_R64_1"):
        with get_session(factory) as s:
            game = game_by_code(s, code)
            return game.id, game.team1_id, game.team2_id, game.round_id

    def test_records_result_and_propagates(self, processor, bracket):
        game_id, favorite, underdog, _ = self.game(bracket)

        results = processor.finalize_game(game_id, favorite, 78, 40)

        assert results.games_completed == 1
        with get_session(bracket) as s:
            game = game_by_code(s, "EAST_R64_1")
            assert game.status == GameStatus.FINAL
            assert (game.winner_id, game.team1_score, game.team2_score) == (favorite, 78, 40)
            assert game_by_code(s, "EAST_R32_1").team1_id == favorite

    def test_counts_grading(self, processor, bracket):
        game_id, favorite, underdog, round_id = self.game(bracket)
        _, (e1, e2) = add_pool(bracket, ["alice", "bob"])
        add_pick(bracket, e1, round_id, favorite)
        add_pick(bracket, e2, round_id, underdog)

        results = processor.finalize_game(game_id, favorite)

        assert results.picks_marked_correct == 1
        assert results.picks_marked_incorrect == 1
        assert results.entries_eliminated == 1
        assert results.rounds_completed == 0

    def test_same_winner_replay_is_harmless(self, processor, bracket):
        """Re-finalizing with the same winner converges without new effects."""
        game_id, favorite, underdog, round_id = self.game(bracket)
        _, (e1,) = add_pool(bracket, ["bob"])
        add_pick(bracket, e1, round_id, underdog)

        processor.finalize_game(game_id, favorite)
        replay = processor.finalize_game(game_id, favorite)

        assert replay.games_completed == 0
        assert replay.entries_eliminated == 0
        assert replay.picks_marked_incorrect == 0

    def test_conflicting_winner_rejected(self, processor, bracket):
        game_id, favorite, underdog, _ = self.game(bracket)
        processor.finalize_game(game_id, favorite)

        with pytest.raises(RuntimeError):
            processor.finalize_game(game_id, underdog)

    def test_concurrent_finalization_keeps_first_winner(self, processor, bracket):
        """A run holding a stale game row cannot push the other team forward."""
        game_id, favorite, underdog, round_id = self.game(bracket)
        _, (e1,) = add_pool(bracket, ["alice"])
        add_pick(bracket, e1, round_id, favorite)

        with get_session(bracket) as stale_session:
            stale = stale_session.get(Game, game_id)
            assert stale.is_final is False

            processor.finalize_game(game_id, favorite)

            with pytest.raises(RuntimeError):
                processor._finalize(
                    stale_session, stale, underdog, None, None,
                    processor.clock.now(), ProcessingResults(), MagicMock(),
                )
            stale_session.rollback()

        with get_session(bracket) as s:
            assert game_by_code(s, "EAST_R64_1").winner_id == favorite
            assert game_by_code(s, "EAST_R32_1").team1_id == favorite
            assert s.get(Team, underdog).is_eliminated is True
            assert s.get(Entry, e1).is_eliminated is False

    def test_winner_must_be_playing(self, processor, bracket):
        game_id, _, _, _ = self.game(bracket)
        with get_session(bracket) as s:
            outsider = team_by_name(s, "West 1").id

        with pytest.raises(ValueError):
            processor.finalize_game(game_id, outsider)

    def test_unknown_game(self, processor):
        with pytest.raises(ValueError):
            processor.finalize_game(9999, 1)

    def test_unpopulated_game(self, processor, bracket):
        game_id, _, _, _ = self.game(bracket, "EAST_R32_1")
        with pytest.raises(ValueError):
            processor.finalize_game(game_id, 1)

    def test_last_game_completes_round(self, processor, bracket):
        """Finalizing the final game of a round counts the round and runs the sweeps."""
        with get_session(bracket) as s:
            round_id = round_by_name(s, "Round of 64 - Day 1").id
            east1 = team_by_name(s, "East 1").id
        _, (present, absent) = add_pool(bracket, ["alice", "carol"])
        add_pick(bracket, present, round_id, east1)

        results = processor.complete_round(round_id).results

        assert results.rounds_completed == 1
        assert results.missed_pick_eliminations == 1
        with get_session(bracket) as s:
            assert s.get(Entry, absent).elimination_cause == EliminationCause.MISSED_PICK


class TestEvents:
    """Signals go out after each call commits."""

    def test_elimination_and_game_signals(self, processor, bracket, event_bus):
        eliminated = MagicMock()
        finalized = MagicMock()
        event_bus.entry_eliminated.connect(eliminated)
        event_bus.game_finalized.connect(finalized)

        with get_session(bracket) as s:
            game = game_by_code(s, "EAST_R64_1")
            game_id, favorite, underdog, round_id = game.id, game.team1_id, game.team2_id, game.round_id
        _, (e1, e2) = add_pool(bracket, ["alice", "bob"])
        add_pick(bracket, e2, round_id, underdog)
        add_pick(bracket, e1, round_id, favorite)

        processor.finalize_game(game_id, favorite)

        finalized.assert_called_once()
        eliminated.assert_called_once()
        event = eliminated.call_args[0][0]
        assert event.user_id == "bob"
        assert event.cause == EliminationCause.WRONG_PICK

    def test_round_and_pool_signals(self, mini_processor, mini_bracket, event_bus):
        round_completed = MagicMock()
        pool_completed = MagicMock()
        event_bus.round_completed.connect(round_completed)
        event_bus.pool_completed.connect(pool_completed)

        with get_session(mini_bracket) as s:
            qf = round_by_name(s, "Quarterfinals").id
            mini1 = team_by_name(s, "Mini 1").id
        _, (winner, _) = add_pool(mini_bracket, ["alice", "bob"])
        add_pick(mini_bracket, winner, qf, mini1)

        mini_processor.complete_round(qf)

        round_completed.assert_called_once_with(qf)
        pool_completed.assert_called_once()
        assert pool_completed.call_args[0][0].winners[0][1] == "alice"


class TestCompleteRound:
    """Tests for simulated rounds."""

    def test_favorites_mode(self, processor, bracket):
        with get_session(bracket) as s:
            round_id = round_by_name(s, "Round of 64 - Day 1").id

        result = processor.complete_round(round_id, mode="favorites")

        assert len(result.games) == 16
        assert result.results.games_completed == 16
        assert result.results.rounds_completed == 1
        with get_session(bracket) as s:
            for sim in result.games:
                winner = s.get(Team, sim.winner_id)
                assert winner.seed <= 8

    def test_random_mode_scores(self, processor, bracket):
        with get_session(bracket) as s:
            round_id = round_by_name(s, "Round of 64 - Day 1").id

        result = processor.complete_round(round_id, mode="random", rng=random.Random(7))

        assert result.results.games_completed == 16
        for sim in result.games:
            winner_score, loser_score = (int(x) for x in sim.score.split("-"))
            assert winner_score > loser_score

    def test_defaults_to_current_round(self, processor):
        result = processor.complete_round()
        assert result.round_name == "Round of 64 - Day 1"

    def test_skips_unpopulated_games(self, processor, bracket):
        """Round of 32 games without teams are reported, not played."""
        with get_session(bracket) as s:
            round_id = round_by_name(s, "Round of 32 - Day 1").id

        result = processor.complete_round(round_id)

        assert result.games == []
        assert len(result.results.errors) == 8

    def test_unknown_mode(self, processor):
        with pytest.raises(ValueError):
            processor.complete_round(mode="chalk")


class TestLifecycleAndClock:
    """Tests for start_tournament() and clock control."""

    def test_start_tournament_activates_open_pools(self, processor, bracket):
        pool_id, _ = add_pool(bracket, ["alice"], status=PoolStatus.OPEN)
        done_id, _ = add_pool(bracket, ["bob"], status=PoolStatus.COMPLETE, name="Old")

        assert processor.start_tournament() == 1
        with get_session(bracket) as s:
            assert s.get(Pool, pool_id).status == PoolStatus.ACTIVE
            assert s.get(Pool, done_id).status == PoolStatus.COMPLETE

    def test_set_simulated_clock(self, processor, clock, event_bus):
        changed = MagicMock()
        event_bus.clock_changed.connect(changed)
        instant = datetime(2026, 3, 20, 9, 0, tzinfo=timezone.utc)

        processor.set_simulated_clock(instant)

        assert clock.now() == instant
        changed.assert_called_once_with(instant)

    def test_set_clock_for_phase(self, processor, bracket):
        with get_session(bracket) as s:
            round_id = round_by_name(s, "Round of 64 - Day 1").id

        instant = processor.set_clock_for_phase(round_id, "live")

        assert instant == datetime(2026, 3, 19, 16, 55, tzinfo=timezone.utc)
        state = processor_state(processor, bracket)
        info = next(r for r in state.rounds if r.id == round_id)
        assert info.is_deadline_passed is True
        assert info.status == RoundStatus.PRE_ROUND


def processor_state(processor, factory):
    now = processor.clock.now()
    with get_session(factory) as s:
        return tournament_state(s, now)
