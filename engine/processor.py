"""
Game Processor

The engine's external boundary. A scheduled result sync and the admin tool
call the same entry points:

    finalize_game -> grading -> propagation -> (round complete) sweeps -> champions

Each call runs in one session; events go out on the bus only after the
session commits.
"""

import logging
import random
from datetime import datetime
from typing import Callable, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from config import ENGINE_SETTINGS, EngineSettings
from engine.bracket import propagate_winner
from engine.champion import resolve_champions
from engine.clock import Clock, SimulatedClock, simulated_time_for_phase
from engine.grading import process_completed_game
from engine.rewind import rewind_round as rewind
from engine.status import (
    get_round_by_id, is_round_complete, next_round, tournament_state,
)
from engine.sweep import sweep_missed_picks, sweep_no_available_picks
from models.base import get_session
from models.tournament import Game, GameStatus, Round
from models.pool import Pool, PoolStatus
from models.schemas import (
    CompleteRoundResult, GameFinalizedEvent, ProcessingResults, RewindSummary,
    SimulatedGameResult,
)
from services.event_bus import EventBus

logger = logging.getLogger(__name__)


SIMULATION_MODES = ("favorites", "random")


class _Outbox:
    """Events collected during a transaction, emitted after commit."""

    def __init__(self):
        self.games: list[GameFinalizedEvent] = []
        self.eliminations = []
        self.champions = []
        self.rounds: list[int] = []


class GameProcessor:
    """
    Usage:
        processor = GameProcessor(session_factory, clock, event_bus)
        processor.start_tournament()
        results = processor.finalize_game(game_id, winner_id, 78, 40)
        processor.rewind_round(round_id)
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        clock: Optional[Clock] = None,
        event_bus: Optional[EventBus] = None,
        settings: EngineSettings = ENGINE_SETTINGS,
    ):
        self.session_factory = session_factory
        self.clock = clock if clock is not None else SimulatedClock(session_factory)
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.settings = settings

    # ============ Result Processing ============

    def finalize_game(
        self,
        game_id: int,
        winner_id: int,
        team1_score: Optional[int] = None,
        team2_score: Optional[int] = None,
    ) -> ProcessingResults:
        """
        Record a final result and run the whole pipeline.

        Re-finalizing with the same winner re-runs every step harmlessly.

        Raises:
            ValueError: unknown game, unpopulated game, or winner not playing
            RuntimeError: the game is already final with a different winner
        """
        now = self.clock.now()
        results = ProcessingResults()
        outbox = _Outbox()

        with get_session(self.session_factory) as session:
            game = session.get(Game, game_id)
            if game is None:
                raise ValueError(f"Game {game_id} not found")
            self._finalize(session, game, winner_id, team1_score, team2_score, now, results, outbox)
            self._after_round_activity(session, game.round_id, now, results, outbox)

        self._emit(outbox)
        return results

    def _finalize(
        self,
        session: Session,
        game: Game,
        winner_id: int,
        team1_score: Optional[int],
        team2_score: Optional[int],
        now: datetime,
        results: ProcessingResults,
        outbox: _Outbox,
    ) -> None:
        if not game.is_populated:
            raise ValueError(f"Game {game.id} ({game.matchup_code}) does not have both teams yet")
        if not game.has_team(winner_id):
            raise ValueError(f"Team {winner_id} is not playing in game {game.id}")
        if game.is_final and game.winner_id != winner_id:
            raise RuntimeError(
                f"Game {game.id} is already final with winner {game.winner_id}; rewind the round first"
            )

        changed = session.execute(
            update(Game)
            .where(Game.id == game.id, Game.status != GameStatus.FINAL)
            .values(
                status=GameStatus.FINAL,
                winner_id=winner_id,
                team1_score=team1_score,
                team2_score=team2_score,
            )
            .returning(Game.id)
        ).all()
        if changed:
            results.games_completed += 1
            logger.info("Game %s final: team %s wins", game.matchup_code, winner_id)

        session.refresh(game)
        if game.winner_id != winner_id:
            # Another run finalized the game after it was loaded
            raise RuntimeError(
                f"Game {game.id} was finalized concurrently with winner {game.winner_id}; "
                f"rewind the round first"
            )
        loser_id = game.loser_id

        outcome = process_completed_game(session, game.round_id, winner_id, loser_id, now)
        results.picks_marked_correct += outcome.picks_correct
        results.picks_marked_incorrect += outcome.picks_incorrect
        results.entries_eliminated += len(outcome.eliminations)
        results.future_picks_deleted += outcome.future_picks_deleted
        outbox.eliminations.extend(outcome.eliminations)

        propagate_winner(session, game.id, winner_id)

        if changed:
            outbox.games.append(GameFinalizedEvent(
                game_id=game.id, round_id=game.round_id, winner_id=winner_id, loser_id=loser_id,
            ))

    def _after_round_activity(
        self,
        session: Session,
        round_id: int,
        now: datetime,
        results: ProcessingResults,
        outbox: _Outbox,
    ) -> None:
        """Sweeps and champion resolution, once the round is fully final."""
        if not is_round_complete(session, round_id):
            logger.debug("Round %s still has games in play", round_id)
            return

        if outbox.games:
            results.rounds_completed += 1
            outbox.rounds.append(round_id)
            logger.info("Round %s complete", round_id)

        missed = sweep_missed_picks(session, round_id, now)
        results.missed_pick_eliminations += len(missed.eliminations)
        results.entries_eliminated += len(missed.eliminations)
        results.future_picks_deleted += missed.future_picks_deleted
        outbox.eliminations.extend(missed.eliminations)

        stuck = sweep_no_available_picks(session, round_id, now)
        results.no_pick_eliminations += len(stuck.eliminations)
        results.entries_eliminated += len(stuck.eliminations)
        results.future_picks_deleted += stuck.future_picks_deleted
        outbox.eliminations.extend(stuck.eliminations)

        is_final_round = next_round(session, round_id) is None
        champions = resolve_champions(session, round_id, is_final_round, now)
        results.pools_completed += len(champions)
        outbox.champions.extend(champions)

    def complete_round(
        self,
        round_id: Optional[int] = None,
        mode: str = "favorites",
        rng: Optional[random.Random] = None,
    ) -> CompleteRoundResult:
        """
        Simulate every pending game of a round, then run the sweeps.

        favorites: the better seed wins (team1 on equal seeds)
        random: coin flip
        """
        if mode not in SIMULATION_MODES:
            raise ValueError(f"Unknown mode '{mode}', expected one of {', '.join(SIMULATION_MODES)}")
        rng = rng or random.Random()
        now = self.clock.now()
        outbox = _Outbox()

        with get_session(self.session_factory) as session:
            if round_id is None:
                current = tournament_state(session, now).current_round
                if current is None:
                    raise ValueError("No rounds exist")
                round_id = current.id
            round_ = session.get(Round, round_id)
            if round_ is None:
                raise ValueError(f"Round {round_id} not found")

            result = CompleteRoundResult(round_id=round_.id, round_name=round_.name, mode=mode)
            pending = session.scalars(
                select(Game)
                .where(Game.round_id == round_.id, Game.status != GameStatus.FINAL)
                .order_by(Game.starts_at, Game.id)
            )
            for game in list(pending):
                if not game.is_populated:
                    message = f"Skipped {game.matchup_code}: teams not set"
                    logger.warning(message)
                    result.results.errors.append(message)
                    continue

                if mode == "favorites":
                    team1_wins = game.team1.seed <= game.team2.seed
                else:
                    team1_wins = rng.random() < 0.5
                winner_score = rng.randint(*self.settings.winner_score_range)
                loser_score = min(rng.randint(*self.settings.loser_score_range), winner_score - 1)
                winner_id = game.team1_id if team1_wins else game.team2_id
                scores = (winner_score, loser_score) if team1_wins else (loser_score, winner_score)

                self._finalize(session, game, winner_id, scores[0], scores[1], now, result.results, outbox)
                result.games.append(SimulatedGameResult(
                    game_id=game.id,
                    winner_id=winner_id,
                    loser_id=game.loser_id,
                    score=f"{winner_score}-{loser_score}",
                ))

            self._after_round_activity(session, round_.id, now, result.results, outbox)

        self._emit(outbox)
        logger.info("Simulated %d games in %s (%s)", len(result.games), result.round_name, mode)
        return result

    # ============ Lifecycle ============

    def start_tournament(self) -> int:
        """Open pools become active. Returns the number of pools started."""
        with get_session(self.session_factory) as session:
            started = len(session.execute(
                update(Pool)
                .where(Pool.status == PoolStatus.OPEN)
                .values(status=PoolStatus.ACTIVE)
                .returning(Pool.id)
            ).all())

        logger.info("Tournament started: %d pools active", started)
        self.event_bus.pools_activated.emit(started)
        return started

    # ============ Clock ============

    def set_simulated_clock(self, instant: Optional[datetime]) -> None:
        """Pin the engine clock to `instant`; None returns to real time."""
        if not isinstance(self.clock, SimulatedClock):
            raise RuntimeError("The configured clock cannot be simulated")
        self.clock.set(instant)
        self.event_bus.clock_changed.emit(instant)

    def set_clock_for_phase(self, round_id: int, phase: str) -> datetime:
        """Move the simulated clock so the round is in `phase`."""
        now = self.clock.now()
        with get_session(self.session_factory) as session:
            info = get_round_by_id(tournament_state(session, now), round_id)
        if info is None:
            raise ValueError(f"Round {round_id} not found")

        instant = simulated_time_for_phase(info, phase)
        self.set_simulated_clock(instant)
        return instant

    # ============ Rewind ============

    def rewind_round(self, target: Union[int, str]) -> RewindSummary:
        """Undo a round, or the whole tournament with "all"."""
        with get_session(self.session_factory) as session:
            summary = rewind(session, target)

        self.clock.invalidate()
        self.event_bus.bracket_rewound.emit(summary)
        self.event_bus.clock_changed.emit(None)
        return summary

    # ============ Events ============

    def _emit(self, outbox: _Outbox) -> None:
        for event in outbox.games:
            self.event_bus.game_finalized.emit(event)
        self.event_bus.emit_eliminations(outbox.eliminations)
        for round_id in outbox.rounds:
            self.event_bus.round_completed.emit(round_id)
        for event in outbox.champions:
            self.event_bus.pool_completed.emit(event)
            self.event_bus.emit_message("info", f"Pool {event.pool_name} complete")
