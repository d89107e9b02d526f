"""
Shared fixtures: an in-memory database, a generated 64-team bracket, a
small 8-team bracket for elimination scenarios, and a simulated clock.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest
from sqlalchemy import select

from engine.bracket import REGIONS, generate_bracket
from engine.clock import SimulatedClock
from engine.processor import GameProcessor
from models.base import create_session_factory, get_session
from models.team import Team
from models.tournament import Game, GameStatus, Round
from models.pool import Entry, Pick, Pool, PoolStatus
from services.event_bus import EventBus


START_DATE = date(2026, 3, 19)
BEFORE_TOURNAMENT = datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)


def make_field() -> list[dict]:
    """64 teams named like 'East 1' ... 'Midwest 16'."""
    return [
        {"name": f"{region} {seed}", "abbreviation": f"{region[0]}{seed}", "seed": seed, "region": region}
        for region in REGIONS
        for seed in range(1, 17)
    ]


def game_by_code(session, code: str) -> Game:
    return session.scalar(select(Game).where(Game.matchup_code == code))


def team_by_name(session, name: str) -> Team:
    return session.scalar(select(Team).where(Team.name == name))


def round_by_name(session, name: str) -> Round:
    return session.scalar(select(Round).where(Round.name == name))


def add_pool(factory, users, status=PoolStatus.ACTIVE, name="Office Pool") -> tuple[int, list[int]]:
    """Create a pool with one entry per user id; returns (pool_id, entry_ids)."""
    with get_session(factory) as s:
        pool = Pool(name=name, status=status)
        s.add(pool)
        s.flush()
        entries = [Entry(pool_id=pool.id, user_id=user) for user in users]
        s.add_all(entries)
        s.flush()
        return pool.id, [e.id for e in entries]


def add_pick(factory, entry_id: int, round_id: int, team_id: int) -> int:
    with get_session(factory) as s:
        pick = Pick(entry_id=entry_id, round_id=round_id, team_id=team_id)
        s.add(pick)
        s.flush()
        return pick.id


def build_mini_bracket(session, start: date = START_DATE) -> None:
    """
    Eight teams, three rounds: Quarterfinals (4 games) -> Semifinals (2) -> Final.

    Teams are 'Mini 1' .. 'Mini 8'; quarterfinal n is played by seeds
    (1, 8), (4, 5), (3, 6), (2, 7) in that order.
    """
    teams = {seed: Team(name=f"Mini {seed}", abbreviation=f"M{seed}", seed=seed, region="East")
             for seed in range(1, 9)}
    session.add_all(teams.values())

    layout = [("Quarterfinals", "E8", 0, 4), ("Semifinals", "F4", 2, 2), ("Final", "CHIP", 4, 1)]
    stages = []
    for order, (name, code, offset, count) in enumerate(layout):
        round_ = Round(name=name, code=code, date=start + timedelta(days=offset), sort_order=order)
        session.add(round_)
        session.flush()
        tip = datetime.combine(round_.date, time(16), tzinfo=timezone.utc)
        games = [
            Game(
                round_id=round_.id,
                tournament_round=code,
                matchup_code=f"MINI_{code}_{position}",
                bracket_position=position,
                status=GameStatus.SCHEDULED,
                starts_at=tip + timedelta(minutes=30 * (position - 1)),
            )
            for position in range(1, count + 1)
        ]
        session.add_all(games)
        stages.append(games)
    session.flush()

    for position, (high, low) in enumerate([(1, 8), (4, 5), (3, 6), (2, 7)]):
        stages[0][position].team1_id = teams[high].id
        stages[0][position].team2_id = teams[low].id

    for feeders, targets in zip(stages[:-1], stages[1:]):
        for index, game in enumerate(feeders):
            game.advances_to_game_id = targets[index // 2].id
            game.advances_to_slot = 1 if index % 2 == 0 else 2
    session.flush()


@pytest.fixture
def session_factory():
    return create_session_factory("sqlite://")


@pytest.fixture
def clock(session_factory):
    clock = SimulatedClock(session_factory, ttl_seconds=0)
    clock.set(BEFORE_TOURNAMENT)
    return clock


@pytest.fixture
def bracket(session_factory):
    """Session factory over a database holding the full 64-team bracket."""
    with get_session(session_factory) as s:
        generate_bracket(s, make_field(), START_DATE)
    return session_factory


@pytest.fixture
def mini_bracket(session_factory):
    with get_session(session_factory) as s:
        build_mini_bracket(s)
    return session_factory


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def processor(bracket, clock, event_bus):
    return GameProcessor(bracket, clock, event_bus)


@pytest.fixture
def mini_processor(mini_bracket, clock, event_bus):
    return GameProcessor(mini_bracket, clock, event_bus)
