"""Initial schema - all SurvivorPool tables

Revision ID: 001
Revises:
Create Date: 2026-10-17

Creates all tables for the survivor pool engine:
- teams: The 64-team field
- rounds: Dated slates of games sharing a pick deadline
- games: Bracket games with their advancement edges
- pools: Survivor pools
- entries: Pool participants' bracket runs
- picks: One team per entry per round
- pool_winners: Champions and co-champions
- clock_overrides: Simulated clock singleton
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ### Teams table ###
    op.create_table(
        'teams',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('abbreviation', sa.String(10), nullable=False),
        sa.Column('seed', sa.Integer(), nullable=False),
        sa.Column('region', sa.String(20), nullable=False),
        sa.Column('is_eliminated', sa.Boolean(), server_default='0'),
        sa.CheckConstraint('seed BETWEEN 1 AND 16', name='ck_teams_seed_range'),
    )

    # ### Rounds table ###
    op.create_table(
        'rounds',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('code', sa.String(8), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
    )

    # ### Games table ###
    op.create_table(
        'games',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('rounds.id'), nullable=False),
        sa.Column('tournament_round', sa.String(8), nullable=False),
        sa.Column('matchup_code', sa.String(20), nullable=False, unique=True),
        sa.Column('region', sa.String(20), nullable=True),
        sa.Column('bracket_position', sa.Integer(), server_default='0'),
        sa.Column('team1_id', sa.Integer(), sa.ForeignKey('teams.id'), nullable=True),
        sa.Column('team2_id', sa.Integer(), sa.ForeignKey('teams.id'), nullable=True),
        sa.Column('status', sa.Enum(
            'SCHEDULED', 'IN_PROGRESS', 'FINAL',
            name='gamestatus'
        ), server_default='SCHEDULED'),
        sa.Column('winner_id', sa.Integer(), sa.ForeignKey('teams.id'), nullable=True),
        sa.Column('team1_score', sa.Integer(), nullable=True),
        sa.Column('team2_score', sa.Integer(), nullable=True),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('advances_to_game_id', sa.Integer(), sa.ForeignKey('games.id'), nullable=True),
        sa.Column('advances_to_slot', sa.Integer(), nullable=True),
        sa.UniqueConstraint('advances_to_game_id', 'advances_to_slot', name='uq_games_advancement_target'),
        sa.CheckConstraint(
            'advances_to_slot IS NULL OR advances_to_slot IN (1, 2)',
            name='ck_games_advancement_slot',
        ),
    )

    # ### Pools table ###
    op.create_table(
        'pools',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('status', sa.Enum(
            'OPEN', 'ACTIVE', 'COMPLETE',
            name='poolstatus'
        ), server_default='OPEN'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )

    # ### Entries table ###
    op.create_table(
        'entries',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('pool_id', sa.Integer(), sa.ForeignKey('pools.id'), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('label', sa.String(100), nullable=True),
        sa.Column('is_eliminated', sa.Boolean(), server_default='0'),
        sa.Column('elimination_cause', sa.Enum(
            'WRONG_PICK', 'MISSED_PICK', 'NO_AVAILABLE_PICKS',
            name='eliminationcause'
        ), nullable=True),
        sa.Column('elimination_round_id', sa.Integer(), sa.ForeignKey('rounds.id'), nullable=True),
    )

    # ### Picks table ###
    op.create_table(
        'picks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('entry_id', sa.Integer(), sa.ForeignKey('entries.id'), nullable=False),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('rounds.id'), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('teams.id'), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('entry_id', 'round_id', name='uq_picks_entry_round'),
    )

    # ### Pool winners table ###
    op.create_table(
        'pool_winners',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('pool_id', sa.Integer(), sa.ForeignKey('pools.id'), nullable=False),
        sa.Column('entry_id', sa.Integer(), sa.ForeignKey('entries.id'), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.UniqueConstraint('pool_id', 'entry_id', name='uq_pool_winners_entry'),
    )

    # ### Clock override singleton ###
    op.create_table(
        'clock_overrides',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('is_test_mode', sa.Boolean(), server_default='0'),
        sa.Column('simulated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create indexes for common queries
    op.create_index('ix_games_round_id', 'games', ['round_id'])
    op.create_index('ix_entries_pool_id', 'entries', ['pool_id'])
    op.create_index('ix_picks_round_team', 'picks', ['round_id', 'team_id'])


def downgrade() -> None:
    # Drop indexes
    op.drop_index('ix_picks_round_team', 'picks')
    op.drop_index('ix_entries_pool_id', 'entries')
    op.drop_index('ix_games_round_id', 'games')

    # Drop tables in reverse order of creation
    op.drop_table('clock_overrides')
    op.drop_table('pool_winners')
    op.drop_table('picks')
    op.drop_table('entries')
    op.drop_table('pools')
    op.drop_table('games')
    op.drop_table('rounds')
    op.drop_table('teams')
