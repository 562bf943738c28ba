"""Team sessions and post-game feedback.

Revision ID: 002_team_sessions_and_feedback
Revises: 001_initial_schema
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from qrhunt.migrations.util import get_timestamp_default, get_uuid_type


# revision identifiers, used by Alembic.
revision: str = '002_team_sessions_and_feedback'
down_revision: Union[str, None] = '001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    uuid = get_uuid_type()
    now = get_timestamp_default()

    op.create_table(
        'team_sessions',
        sa.Column('session_id', uuid, nullable=False),
        sa.Column('team_id', uuid, nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.ForeignKeyConstraint(['team_id'], ['teams.team_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('session_id'),
        sa.UniqueConstraint('token_hash'),
    )
    op.create_index('ix_team_sessions_team_id', 'team_sessions', ['team_id'], unique=False)

    op.create_table(
        'team_feedback',
        sa.Column('feedback_id', uuid, nullable=False),
        sa.Column('game_id', uuid, nullable=False),
        sa.Column('team_id', uuid, nullable=False),
        sa.Column('team_name', sa.String(length=100), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.String(length=1000), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.ForeignKeyConstraint(['game_id'], ['games.game_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['team_id'], ['teams.team_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('feedback_id'),
        sa.UniqueConstraint('game_id', 'team_id', name='uq_team_feedback_game_team'),
    )
    op.create_index('ix_team_feedback_game_id', 'team_feedback', ['game_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_team_feedback_game_id', table_name='team_feedback')
    op.drop_table('team_feedback')
    op.drop_index('ix_team_sessions_team_id', table_name='team_sessions')
    op.drop_table('team_sessions')
