"""
Pydantic schemas for engine inputs, results, and events.
"""

import enum
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from models.tournament import GameStatus
from models.pool import EliminationCause, PoolStatus


# ============ Bracket Input Schemas ============

class TeamSeedInput(BaseModel):
    """One team of the 64-team field, as supplied to bracket generation."""
    name: str = Field(..., min_length=1, max_length=200)
    abbreviation: Optional[str] = Field(None, max_length=10)
    seed: int = Field(..., ge=1, le=16)
    region: str = Field(..., min_length=1, max_length=20)

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()


class GenerateBracketResult(BaseModel):
    """Summary of a bracket generation run."""
    teams_created: int = 0
    rounds_created: int = 0
    games_created: int = 0
    advancements_wired: int = 0


# ============ Processing Schemas ============

class ProcessingResults(BaseModel):
    """Counters accumulated across one pipeline invocation."""
    games_completed: int = 0
    picks_marked_correct: int = 0
    picks_marked_incorrect: int = 0
    entries_eliminated: int = 0
    missed_pick_eliminations: int = 0
    no_pick_eliminations: int = 0
    future_picks_deleted: int = 0
    rounds_completed: int = 0
    pools_completed: int = 0
    errors: list[str] = Field(default_factory=list)


class SimulatedGameResult(BaseModel):
    """One game decided by complete_round()."""
    game_id: int
    winner_id: int
    loser_id: int
    score: str


class CompleteRoundResult(BaseModel):
    """Result of simulating every pending game of a round."""
    round_id: int
    round_name: str
    mode: str
    games: list[SimulatedGameResult] = Field(default_factory=list)
    results: ProcessingResults = Field(default_factory=ProcessingResults)


class RewindSummary(BaseModel):
    """What a rewind undid."""
    rounds: list[str] = Field(default_factory=list)
    games_reset: int = 0
    downstream_games_cleared: int = 0
    slots_repropagated: int = 0
    teams_revived: int = 0
    picks_deleted: int = 0
    entries_revived: int = 0
    pools_reverted: int = 0


# ============ Derived Status Schemas ============

class RoundStatus(enum.Enum):
    PRE_ROUND = "pre_round"
    ROUND_LIVE = "round_live"
    ROUND_COMPLETE = "round_complete"


class TournamentStatus(enum.Enum):
    PRE_TOURNAMENT = "pre_tournament"
    TOURNAMENT_LIVE = "tournament_live"
    TOURNAMENT_COMPLETE = "tournament_complete"


class RoundInfo(BaseModel):
    """A round with its status and deadline derived from live game rows."""
    id: int
    name: str
    code: str
    date: date
    status: RoundStatus
    deadline: Optional[datetime] = None
    is_deadline_passed: bool = False
    games_scheduled: int = 0
    games_in_progress: int = 0
    games_final: int = 0
    games_total: int = 0
    first_game_at: Optional[datetime] = None
    last_game_at: Optional[datetime] = None


class TournamentState(BaseModel):
    status: TournamentStatus
    current_round: Optional[RoundInfo] = None
    rounds: list[RoundInfo] = Field(default_factory=list)


class DeadlineDisplay(BaseModel):
    deadline: datetime
    is_expired: bool
    minutes_remaining: int


# ============ Pick Schemas ============

class PickableTeam(BaseModel):
    """A team an entry could pick in a round."""
    team_id: int
    name: str
    seed: int
    region: str
    game_id: int
    starts_at: Optional[datetime] = None
    opponent_id: int
    opponent_name: str
    opponent_seed: int
    already_used: bool = False
    risk_level: str = "medium"


# ============ Standings Schemas ============

class EntryStanding(BaseModel):
    entry_id: int
    user_id: str
    label: Optional[str] = None
    is_eliminated: bool
    elimination_cause: Optional[EliminationCause] = None
    elimination_round_name: Optional[str] = None
    picks_count: int = 0
    correct_picks: int = 0
    survival_streak: int = 0
    teams_used: list[str] = Field(default_factory=list)


class PoolStandings(BaseModel):
    pool_id: int
    pool_name: str
    pool_status: PoolStatus
    total_entries: int
    alive_entries: int
    eliminated_entries: int
    winner_user_ids: list[str] = Field(default_factory=list)
    entries: list[EntryStanding] = Field(default_factory=list)


# ============ Event Schemas ============

class EliminationEvent(BaseModel):
    """Emitted once per entry the engine eliminates."""
    entry_id: int
    pool_id: int
    user_id: str
    cause: EliminationCause
    round_id: int
    round_name: str = ""
    team_id: Optional[int] = None


class ChampionEvent(BaseModel):
    """Emitted when a pool completes."""
    pool_id: int
    pool_name: str = ""
    round_id: Optional[int] = None
    winners: list[tuple[int, str]] = Field(default_factory=list)  # (entry_id, user_id)

    @property
    def is_tie(self) -> bool:
        return len(self.winners) > 1


class GameFinalizedEvent(BaseModel):
    game_id: int
    round_id: int
    winner_id: int
    loser_id: int
    status: GameStatus = GameStatus.FINAL
