"""
Bracket Graph

Generates the full 63-game tree for a 64-team field, wires every
advancement edge, and propagates winners along those edges.

Stages: Round of 64 -> Round of 32 -> Sweet 16 -> Elite Eight -> Final Four -> Championship
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional, Union

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from config import ENGINE_SETTINGS
from models.team import Team
from models.tournament import Game, GameStatus, Round
from models.schemas import GenerateBracketResult, TeamSeedInput

logger = logging.getLogger(__name__)


STAGES = ["R64", "R32", "S16", "E8", "F4", "CHIP"]
REGION_STAGES = ["R64", "R32", "S16", "E8"]
REGIONS = ["East", "South", "West", "Midwest"]

# Seed matchups in bracket order; slot n of each region plays these seeds
R64_SEED_PAIRINGS = [(1, 16), (8, 9), (5, 12), (4, 13), (6, 11), (3, 14), (7, 10), (2, 15)]

# Which regions meet in each national semifinal
DEFAULT_F4_PAIRINGS = (("East", "West"), ("South", "Midwest"))

# (name, code, day offset from start_date, regions or None for national games)
SPLIT_DAY_ROUNDS = [
    ("Round of 64 - Day 1", "R64", 0, ["East", "South"]),
    ("Round of 64 - Day 2", "R64", 1, ["West", "Midwest"]),
    ("Round of 32 - Day 1", "R32", 2, ["East", "South"]),
    ("Round of 32 - Day 2", "R32", 3, ["West", "Midwest"]),
    ("Sweet 16 - Day 1", "S16", 7, ["South", "West"]),
    ("Sweet 16 - Day 2", "S16", 8, ["East", "Midwest"]),
    ("Elite Eight - Day 1", "E8", 9, ["South", "West"]),
    ("Elite Eight - Day 2", "E8", 10, ["East", "Midwest"]),
    ("Final Four", "F4", 16, None),
    ("Championship", "CHIP", 18, None),
]

SINGLE_DAY_ROUNDS = [
    ("Round of 64", "R64", 0, REGIONS),
    ("Round of 32", "R32", 2, REGIONS),
    ("Sweet 16", "S16", 7, REGIONS),
    ("Elite Eight", "E8", 9, REGIONS),
    ("Final Four", "F4", 16, None),
    ("Championship", "CHIP", 18, None),
]


def matchup_code(stage: str, position: int, region: Optional[str] = None) -> str:
    if region is None:
        return f"{stage}_{position}"
    return f"{region.upper()}_{stage}_{position}"


def next_slot(position: int) -> tuple[int, int]:
    """Position and slot a winner advances to within its region."""
    return math.ceil(position / 2), 1 if position % 2 == 1 else 2


def stage_index(code: str) -> int:
    try:
        return STAGES.index(code)
    except ValueError:
        raise ValueError(f"Unknown round code '{code}'") from None


# ============ Generation ============

def _validate_field(teams: Iterable[Union[TeamSeedInput, dict]]) -> list[TeamSeedInput]:
    parsed = [t if isinstance(t, TeamSeedInput) else TeamSeedInput.model_validate(t) for t in teams]
    if len(parsed) != 64:
        raise ValueError(f"Bracket needs exactly 64 teams, got {len(parsed)}")

    by_region: dict[str, list[TeamSeedInput]] = {}
    for team in parsed:
        region = team.region.strip().title()
        if region not in REGIONS:
            raise ValueError(f"Unknown region '{team.region}' for {team.name}")
        team.region = region
        by_region.setdefault(region, []).append(team)

    for region in REGIONS:
        seeds = sorted(t.seed for t in by_region.get(region, []))
        if seeds != list(range(1, 17)):
            raise ValueError(f"Region {region} must hold seeds 1-16 exactly once, got {seeds}")
    return parsed


def _validate_pairings(f4_pairings) -> None:
    flat = [region for pair in f4_pairings for region in pair]
    if len(f4_pairings) != 2 or sorted(flat) != sorted(REGIONS):
        raise ValueError(f"Final Four pairings must cover each region once: {f4_pairings}")


def generate_bracket(
    session: Session,
    teams: Iterable[Union[TeamSeedInput, dict]],
    start_date: date,
    split_days: bool = True,
    f4_pairings=DEFAULT_F4_PAIRINGS,
) -> GenerateBracketResult:
    """
    Create teams, rounds, all 63 games and their advancement edges.

    Round of 64 games get both teams now; every later game starts empty
    and is filled by propagate_winner().
    """
    field_ = _validate_field(teams)
    _validate_pairings(f4_pairings)

    if session.scalar(select(Game.id).limit(1)) is not None:
        raise ValueError("A bracket already exists; reset the database first")

    result = GenerateBracketResult()

    # Teams
    seeded: dict[tuple[str, int], Team] = {}
    for entry in field_:
        team = Team(
            name=entry.name,
            abbreviation=entry.abbreviation or entry.name[:4].upper(),
            seed=entry.seed,
            region=entry.region,
        )
        session.add(team)
        seeded[(entry.region, entry.seed)] = team
    session.flush()
    result.teams_created = len(seeded)

    # Rounds
    layout = SPLIT_DAY_ROUNDS if split_days else SINGLE_DAY_ROUNDS
    round_for: dict[tuple[str, Optional[str]], Round] = {}
    rounds_in_order: list[tuple[Round, Optional[list[str]]]] = []
    for sort_order, (name, code, offset, regions) in enumerate(layout):
        round_ = Round(name=name, code=code, date=start_date + timedelta(days=offset), sort_order=sort_order)
        session.add(round_)
        rounds_in_order.append((round_, regions))
        for region in regions or [None]:
            round_for[(code, region)] = round_
    session.flush()
    result.rounds_created = len(rounds_in_order)

    # Games
    games: dict[str, Game] = {}
    for stage in REGION_STAGES:
        count = 8 >> REGION_STAGES.index(stage)
        for region in REGIONS:
            for position in range(1, count + 1):
                game = Game(
                    round_id=round_for[(stage, region)].id,
                    tournament_round=stage,
                    matchup_code=matchup_code(stage, position, region),
                    region=region,
                    bracket_position=position,
                    status=GameStatus.SCHEDULED,
                )
                if stage == "R64":
                    high, low = R64_SEED_PAIRINGS[position - 1]
                    game.team1_id = seeded[(region, high)].id
                    game.team2_id = seeded[(region, low)].id
                games[game.matchup_code] = game
                session.add(game)

    for stage, count in (("F4", 2), ("CHIP", 1)):
        for position in range(1, count + 1):
            game = Game(
                round_id=round_for[(stage, None)].id,
                tournament_round=stage,
                matchup_code=matchup_code(stage, position),
                region=None,
                bracket_position=position,
                status=GameStatus.SCHEDULED,
            )
            games[game.matchup_code] = game
            session.add(game)
    session.flush()
    result.games_created = len(games)

    # Schedule: games of a round tip off in region order, evenly spaced
    for round_, _ in rounds_in_order:
        round_games = sorted(
            (g for g in games.values() if g.round_id == round_.id),
            key=lambda g: (REGIONS.index(g.region) if g.region else 0, g.bracket_position),
        )
        first_tip = datetime.combine(
            round_.date, time(hour=ENGINE_SETTINGS.first_tip_hour_utc), tzinfo=timezone.utc,
        )
        for index, game in enumerate(round_games):
            game.starts_at = first_tip + timedelta(minutes=index * ENGINE_SETTINGS.game_spacing_minutes)

    # Advancement edges
    for region in REGIONS:
        for stage, following in zip(REGION_STAGES[:-1], REGION_STAGES[1:]):
            count = 8 >> REGION_STAGES.index(stage)
            for position in range(1, count + 1):
                target_position, slot = next_slot(position)
                source = games[matchup_code(stage, position, region)]
                source.advances_to_game_id = games[matchup_code(following, target_position, region)].id
                source.advances_to_slot = slot
                result.advancements_wired += 1

    for index, pair in enumerate(f4_pairings, start=1):
        semifinal = games[matchup_code("F4", index)]
        for slot, region in enumerate(pair, start=1):
            regional_final = games[matchup_code("E8", 1, region)]
            regional_final.advances_to_game_id = semifinal.id
            regional_final.advances_to_slot = slot
            result.advancements_wired += 1
        semifinal.advances_to_game_id = games[matchup_code("CHIP", 1)].id
        semifinal.advances_to_slot = index
        result.advancements_wired += 1

    session.flush()
    logger.info(
        "Generated bracket: %d teams, %d rounds, %d games, %d edges",
        result.teams_created, result.rounds_created, result.games_created, result.advancements_wired,
    )
    return result


# ============ In-memory Graph ============

@dataclass
class GameNode:
    """A game as seen by graph traversal."""
    id: int
    round_id: int
    stage: str
    matchup_code: str
    region: Optional[str]
    position: int
    status: GameStatus
    team1_id: Optional[int] = None
    team2_id: Optional[int] = None
    winner_id: Optional[int] = None
    advances_to_game_id: Optional[int] = None
    advances_to_slot: Optional[int] = None
    feeders: dict[int, int] = field(default_factory=dict)  # slot -> feeder game id


class BracketGraph:
    """
    Adjacency view of the bracket, built once per request and traversed in memory.

    Usage:
        graph = BracketGraph.load(session)
        problems = graph.validate()
        graph.path_to_champion(game_id)
    """

    def __init__(self, nodes: Iterable[GameNode]):
        self.nodes: dict[int, GameNode] = {n.id: n for n in nodes}
        self.collisions: list[tuple[int, int]] = []

        for node in self.nodes.values():
            if node.advances_to_game_id is None:
                continue
            target = self.nodes.get(node.advances_to_game_id)
            if target is None:
                continue
            if node.advances_to_slot in target.feeders:
                self.collisions.append((target.id, node.advances_to_slot))
            else:
                target.feeders[node.advances_to_slot] = node.id

    @classmethod
    def load(cls, session: Session) -> "BracketGraph":
        return cls(
            GameNode(
                id=g.id,
                round_id=g.round_id,
                stage=g.tournament_round,
                matchup_code=g.matchup_code,
                region=g.region,
                position=g.bracket_position,
                status=g.status,
                team1_id=g.team1_id,
                team2_id=g.team2_id,
                winner_id=g.winner_id,
                advances_to_game_id=g.advances_to_game_id,
                advances_to_slot=g.advances_to_slot,
            )
            for g in session.scalars(select(Game))
        )

    @property
    def roots(self) -> list[GameNode]:
        return [n for n in self.nodes.values() if n.advances_to_game_id is None]

    @property
    def champion_game(self) -> Optional[GameNode]:
        roots = self.roots
        return roots[0] if len(roots) == 1 else None

    def validate(self) -> list[str]:
        """Return every forest-invariant violation; an empty list means valid."""
        problems = []

        roots = self.roots
        if len(roots) != 1:
            problems.append(f"Expected exactly one championship game, found {len(roots)}")

        for target_id, slot in self.collisions:
            problems.append(f"Game {target_id} slot {slot} has more than one feeder")

        for node in self.nodes.values():
            if node.advances_to_game_id is not None and node.advances_to_game_id not in self.nodes:
                problems.append(f"Game {node.id} advances to unknown game {node.advances_to_game_id}")
            if node.stage == "R64":
                if node.feeders:
                    problems.append(f"Round of 64 game {node.id} has feeders")
            elif sorted(node.feeders) != [1, 2]:
                problems.append(f"Game {node.id} ({node.matchup_code}) has feeder slots {sorted(node.feeders)}")

            path = self._walk_forward(node.id)
            if path is None:
                problems.append(f"Game {node.id} is on a cycle")

        return problems

    def _walk_forward(self, game_id: int) -> Optional[list[int]]:
        path = []
        current: Optional[int] = game_id
        while current is not None:
            path.append(current)
            if len(path) > len(self.nodes):
                return None
            node = self.nodes.get(current)
            current = node.advances_to_game_id if node else None
        return path

    def path_to_champion(self, game_id: int) -> list[int]:
        """Game ids from `game_id` up to the championship game, inclusive."""
        if game_id not in self.nodes:
            raise ValueError(f"Game {game_id} not found")
        path = self._walk_forward(game_id)
        if path is None:
            raise ValueError(f"Game {game_id} does not reach a championship game")
        return path

    def feeders_of(self, game_id: int) -> list[int]:
        """Feeder game ids ordered by the slot they fill."""
        node = self.nodes[game_id]
        return [node.feeders[slot] for slot in sorted(node.feeders)]

    def subtree(self, game_id: int) -> list[int]:
        """Every game whose winner can reach `game_id`, excluding itself."""
        found = []
        queue = deque(self.feeders_of(game_id))
        while queue:
            current = queue.popleft()
            found.append(current)
            queue.extend(self.feeders_of(current))
        return found

    def region_rounds(self, region: str) -> dict[str, list[GameNode]]:
        """A region's games grouped by stage, Round of 64 through Elite Eight."""
        grouped: dict[str, list[GameNode]] = {stage: [] for stage in REGION_STAGES}
        for node in self.nodes.values():
            if node.region == region and node.stage in grouped:
                grouped[node.stage].append(node)
        for nodes in grouped.values():
            nodes.sort(key=lambda n: n.position)
        return grouped

    def final_four(self) -> dict[str, list[GameNode]]:
        grouped: dict[str, list[GameNode]] = {"F4": [], "CHIP": []}
        for node in self.nodes.values():
            if node.stage in grouped:
                grouped[node.stage].append(node)
        for nodes in grouped.values():
            nodes.sort(key=lambda n: n.position)
        return grouped


# ============ Propagation ============

def _slot_attribute(slot: int) -> str:
    if slot not in (1, 2):
        raise ValueError(f"Invalid advancement slot {slot}")
    return "team1_id" if slot == 1 else "team2_id"


def propagate_winner(session: Session, game_id: int, winner_id: int) -> bool:
    """
    Write `winner_id` into the slot this game advances to.

    Returns True when a slot changed. The championship game has no edge and
    is a no-op, as is a slot that already holds the winner.
    """
    game = session.get(Game, game_id)
    if game is None:
        raise ValueError(f"Game {game_id} not found")
    if game.advances_to_game_id is None:
        logger.debug("Game %s has no advancement edge", game_id)
        return False

    attribute = _slot_attribute(game.advances_to_slot)
    column = getattr(Game, attribute)
    target = session.get(Game, game.advances_to_game_id)
    current = getattr(target, attribute)

    if current == winner_id:
        return False
    if current is not None:
        logger.warning(
            "Overwriting %s slot %s: team %s -> %s",
            target.matchup_code, game.advances_to_slot, current, winner_id,
        )

    written = session.execute(
        update(Game)
        .where(Game.id == target.id, or_(column.is_(None), column != winner_id))
        .values({attribute: winner_id})
        .returning(Game.id)
    ).all()
    if written:
        logger.info("Advanced team %s into %s slot %s", winner_id, target.matchup_code, game.advances_to_slot)
    return bool(written)


def clear_advancement_from(session: Session, round_code: str) -> tuple[int, int]:
    """
    Reset every game in the stages strictly after `round_code`.

    Slots, scores and winners are nulled and status returns to scheduled;
    game rows and start times stay. Teams that lost a cleared game are
    revived. Returns (games cleared, teams revived).
    """
    later = STAGES[stage_index(round_code) + 1:]
    if not later:
        return 0, 0

    games = list(session.scalars(select(Game).where(Game.tournament_round.in_(later))))
    losers = [g.loser_id for g in games if g.is_final and g.loser_id is not None]
    dirty = [
        g.id for g in games
        if g.team1_id is not None or g.team2_id is not None or g.status != GameStatus.SCHEDULED
    ]

    teams_revived = 0
    if losers:
        teams_revived = len(session.execute(
            update(Team)
            .where(Team.id.in_(losers), Team.is_eliminated.is_(True))
            .values(is_eliminated=False)
            .returning(Team.id)
        ).all())

    if dirty:
        session.execute(
            update(Game)
            .where(Game.id.in_(dirty))
            .values(
                team1_id=None,
                team2_id=None,
                winner_id=None,
                team1_score=None,
                team2_score=None,
                status=GameStatus.SCHEDULED,
            )
        )

    logger.info("Cleared %d games after %s, revived %d teams", len(dirty), round_code, teams_revived)
    return len(dirty), teams_revived


def repropagate(session: Session) -> int:
    """Re-walk every final game with an edge and refill its target slot."""
    filled = 0
    finals = session.scalars(
        select(Game).where(Game.status == GameStatus.FINAL, Game.advances_to_game_id.is_not(None))
    )
    for game in list(finals):
        if game.winner_id is not None and propagate_winner(session, game.id, game.winner_id):
            filled += 1
    return filled
