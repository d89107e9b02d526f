"""
Tests for champion resolution and the tie rule.
"""

from datetime import datetime, timezone

from sqlalchemy import select

from engine.champion import resolve_champions, select_tie_winners
from models.base import get_session
from models.pool import Entry, Pool, PoolStatus, PoolWinner, EliminationCause

from conftest import add_pick, add_pool, round_by_name, team_by_name


NOW = datetime(2026, 3, 24, 0, 0, tzinfo=timezone.utc)


def mini_ids(factory):
    with get_session(factory) as s:
        rounds = {name: round_by_name(s, name).id for name in ("Quarterfinals", "Semifinals", "Final")}
        teams = {seed: team_by_name(s, f"Mini {seed}").id for seed in range(1, 9)}
    return rounds, teams


class TestSelectTieWinners:
    """Participation beats forfeiture."""

    def test_tier_one_preferred(self):
        wrong = Entry(id=1, user_id="a", elimination_cause=EliminationCause.WRONG_PICK)
        stuck = Entry(id=2, user_id="b", elimination_cause=EliminationCause.NO_AVAILABLE_PICKS)
        missed = Entry(id=3, user_id="c", elimination_cause=EliminationCause.MISSED_PICK)
        assert select_tie_winners([wrong, stuck, missed]) == [wrong, stuck]

    def test_tier_two_when_nobody_played(self):
        missed = Entry(id=3, user_id="c", elimination_cause=EliminationCause.MISSED_PICK)
        assert select_tie_winners([missed]) == [missed]

    def test_no_candidates(self):
        assert select_tie_winners([]) == []


class TestChampionResolution:
    """End-to-end resolution driven by completed rounds."""

    def test_sole_survivor_wins(self, mini_processor, mini_bracket):
        """One entry left alive takes the pool."""
        rounds, teams = mini_ids(mini_bracket)
        pool_id, (winner, loser) = add_pool(mini_bracket, ["alice", "bob"])
        add_pick(mini_bracket, winner, rounds["Quarterfinals"], teams[1])
        add_pick(mini_bracket, loser, rounds["Quarterfinals"], teams[8])

        result = mini_processor.complete_round(rounds["Quarterfinals"])

        assert result.results.pools_completed == 1
        with get_session(mini_bracket) as s:
            pool = s.get(Pool, pool_id)
            assert pool.status == PoolStatus.COMPLETE
            assert pool.winner_user_ids == ["alice"]
            assert pool.completed_at is not None

    def test_scenario_double_dead_end_co_champions(self, mini_processor, mini_bracket):
        """Both survivors run out of teams together; both are revived as co-champions."""
        rounds, teams = mini_ids(mini_bracket)
        pool_id, (e4, e5, e6) = add_pool(mini_bracket, ["erin", "frank", "gina"])
        for entry in (e4, e5):
            add_pick(mini_bracket, entry, rounds["Quarterfinals"], teams[1])
            add_pick(mini_bracket, entry, rounds["Semifinals"], teams[2])
        add_pick(mini_bracket, e6, rounds["Quarterfinals"], teams[8])

        mini_processor.complete_round(rounds["Quarterfinals"])
        result = mini_processor.complete_round(rounds["Semifinals"])

        assert result.results.no_pick_eliminations == 2
        assert result.results.pools_completed == 1
        with get_session(mini_bracket) as s:
            pool = s.get(Pool, pool_id)
            assert pool.status == PoolStatus.COMPLETE
            assert sorted(pool.winner_user_ids) == ["erin", "frank"]
            for entry_id in (e4, e5):
                row = s.get(Entry, entry_id)
                assert row.is_eliminated is False
                assert row.elimination_cause is None
                assert row.elimination_round_id is None
            assert s.get(Entry, e6).elimination_cause == EliminationCause.WRONG_PICK

    def test_wrong_pick_beats_missed_pick(self, mini_processor, mini_bracket):
        """When one entry lost on a pick and the other did not pick, only the picker wins."""
        rounds, teams = mini_ids(mini_bracket)
        pool_id, (picker, absent) = add_pool(mini_bracket, ["picker", "absent"])
        for entry in (picker, absent):
            add_pick(mini_bracket, entry, rounds["Quarterfinals"], teams[1] if entry == picker else teams[2])
        add_pick(mini_bracket, picker, rounds["Semifinals"], teams[4])

        mini_processor.complete_round(rounds["Quarterfinals"])
        mini_processor.complete_round(rounds["Semifinals"])

        with get_session(mini_bracket) as s:
            assert s.get(Pool, pool_id).winner_user_ids == ["picker"]
            assert s.get(Entry, picker).is_eliminated is False
            row = s.get(Entry, absent)
            assert row.is_eliminated is True
            assert row.elimination_cause == EliminationCause.MISSED_PICK

    def test_all_missed_are_co_champions(self, mini_processor, mini_bracket):
        """If nobody picked in the emptying round, every missed-pick entry is revived."""
        rounds, teams = mini_ids(mini_bracket)
        pool_id, entries = add_pool(mini_bracket, ["a", "b"])
        add_pick(mini_bracket, entries[0], rounds["Quarterfinals"], teams[1])
        add_pick(mini_bracket, entries[1], rounds["Quarterfinals"], teams[2])

        mini_processor.complete_round(rounds["Quarterfinals"])
        mini_processor.complete_round(rounds["Semifinals"])

        with get_session(mini_bracket) as s:
            assert sorted(s.get(Pool, pool_id).winner_user_ids) == ["a", "b"]

    def test_earlier_eliminations_never_revived(self, mini_processor, mini_bracket):
        """Only entries eliminated in the emptying round are candidates."""
        rounds, teams = mini_ids(mini_bracket)
        pool_id, (early, a, b) = add_pool(mini_bracket, ["early", "a", "b"])
        add_pick(mini_bracket, early, rounds["Quarterfinals"], teams[8])
        add_pick(mini_bracket, a, rounds["Quarterfinals"], teams[1])
        add_pick(mini_bracket, b, rounds["Quarterfinals"], teams[2])
        add_pick(mini_bracket, a, rounds["Semifinals"], teams[4])
        add_pick(mini_bracket, b, rounds["Semifinals"], teams[3])

        mini_processor.complete_round(rounds["Quarterfinals"])
        mini_processor.complete_round(rounds["Semifinals"])

        with get_session(mini_bracket) as s:
            assert sorted(s.get(Pool, pool_id).winner_user_ids) == ["a", "b"]
            assert s.get(Entry, early).is_eliminated is True
            winners = s.scalars(select(PoolWinner.entry_id).where(PoolWinner.pool_id == pool_id)).all()
            assert early not in winners

    def test_several_alive_after_final_share_title(self, mini_processor, mini_bracket):
        """When the last round ends with several survivors, all of them win."""
        rounds, teams = mini_ids(mini_bracket)
        pool_id, (a, b) = add_pool(mini_bracket, ["a", "b"])
        add_pick(mini_bracket, a, rounds["Quarterfinals"], teams[4])
        add_pick(mini_bracket, b, rounds["Quarterfinals"], teams[3])
        for entry in (a, b):
            add_pick(mini_bracket, entry, rounds["Semifinals"], teams[2])
            add_pick(mini_bracket, entry, rounds["Final"], teams[1])

        mini_processor.complete_round(rounds["Quarterfinals"])
        mini_processor.complete_round(rounds["Semifinals"])
        with get_session(mini_bracket) as s:
            assert s.get(Pool, pool_id).status == PoolStatus.ACTIVE

        mini_processor.complete_round(rounds["Final"])

        with get_session(mini_bracket) as s:
            pool = s.get(Pool, pool_id)
            assert pool.status == PoolStatus.COMPLETE
            assert sorted(pool.winner_user_ids) == ["a", "b"]

    def test_resolver_leaves_busy_pools_alone(self, mini_bracket):
        """Two entries alive mid-tournament: no action."""
        rounds, _ = mini_ids(mini_bracket)
        pool_id, _ = add_pool(mini_bracket, ["a", "b"])

        with get_session(mini_bracket) as s:
            events = resolve_champions(s, rounds["Quarterfinals"], False, NOW)

        assert events == []
        with get_session(mini_bracket) as s:
            assert s.get(Pool, pool_id).status == PoolStatus.ACTIVE
