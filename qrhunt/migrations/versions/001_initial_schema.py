"""Initial hunt schema: games, graph, teams, progress log and chat.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from qrhunt.migrations.util import get_timestamp_default, get_uuid_type


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    uuid = get_uuid_type()
    now = get_timestamp_default()

    op.create_table(
        'games',
        sa.Column('game_id', uuid, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('logo_url', sa.String(length=500), nullable=True),
        sa.Column('ranking_mode', sa.String(length=20), nullable=False, server_default='points'),
        sa.Column('base_points', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('time_bonus_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('time_bonus_multiplier', sa.Float(), nullable=False, server_default='1.5'),
        sa.Column('time_bonus_window_minutes', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('random_mode', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('auto_start_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('expected_team_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.PrimaryKeyConstraint('game_id'),
    )
    op.create_index('ix_games_slug', 'games', ['slug'], unique=True)

    op.create_table(
        'nodes',
        sa.Column('node_id', uuid, nullable=False),
        sa.Column('game_id', uuid, nullable=False),
        sa.Column('node_key', sa.String(length=100), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('is_start', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('activated', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('points', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('hint', sa.Text(), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.ForeignKeyConstraint(['game_id'], ['games.game_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('node_id'),
        sa.UniqueConstraint('game_id', 'node_key', name='uq_nodes_game_key'),
    )
    op.create_index('ix_nodes_game_id', 'nodes', ['game_id'], unique=False)

    op.create_table(
        'edges',
        sa.Column('edge_id', uuid, nullable=False),
        sa.Column('game_id', uuid, nullable=False),
        sa.Column('from_node_id', uuid, nullable=False),
        sa.Column('to_node_id', uuid, nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['game_id'], ['games.game_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['from_node_id'], ['nodes.node_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['to_node_id'], ['nodes.node_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('edge_id'),
        sa.UniqueConstraint('from_node_id', 'to_node_id', name='uq_edges_from_to'),
    )
    op.create_index('ix_edges_game_id', 'edges', ['game_id'], unique=False)

    op.create_table(
        'teams',
        sa.Column('team_id', uuid, nullable=False),
        sa.Column('game_id', uuid, nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('logo_url', sa.String(length=500), nullable=True),
        sa.Column('start_node_id', uuid, nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.ForeignKeyConstraint(['game_id'], ['games.game_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['start_node_id'], ['nodes.node_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('team_id'),
        sa.UniqueConstraint('game_id', 'code', name='uq_teams_game_code'),
    )
    op.create_index('ix_teams_game_id', 'teams', ['game_id'], unique=False)

    op.create_table(
        'scans',
        sa.Column('scan_id', uuid, nullable=False),
        sa.Column('game_id', uuid, nullable=False),
        sa.Column('team_id', uuid, nullable=False),
        sa.Column('node_id', uuid, nullable=False),
        sa.Column('scanned_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.Column('points_awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('client_ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.ForeignKeyConstraint(['game_id'], ['games.game_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['team_id'], ['teams.team_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['node_id'], ['nodes.node_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('scan_id'),
        sa.UniqueConstraint('team_id', 'node_id', name='uq_scans_team_node'),
    )
    op.create_index('ix_scans_game_scanned_at', 'scans', ['game_id', 'scanned_at'], unique=False)

    op.create_table(
        'hint_usages',
        sa.Column('hint_usage_id', uuid, nullable=False),
        sa.Column('game_id', uuid, nullable=False),
        sa.Column('team_id', uuid, nullable=False),
        sa.Column('node_id', uuid, nullable=False),
        sa.Column('points_deducted', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.ForeignKeyConstraint(['game_id'], ['games.game_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['team_id'], ['teams.team_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['node_id'], ['nodes.node_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('hint_usage_id'),
        sa.UniqueConstraint('team_id', 'node_id', name='uq_hint_usages_team_node'),
    )
    op.create_index('ix_hint_usages_game_id', 'hint_usages', ['game_id'], unique=False)

    op.create_table(
        'game_winners',
        sa.Column('game_id', uuid, nullable=False),
        sa.Column('team_id', uuid, nullable=False),
        sa.Column('scan_id', uuid, nullable=False),
        sa.Column('won_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.ForeignKeyConstraint(['game_id'], ['games.game_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['team_id'], ['teams.team_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['scan_id'], ['scans.scan_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('game_id'),
    )

    op.create_table(
        'chat_messages',
        sa.Column('message_id', uuid, nullable=False),
        sa.Column('game_id', uuid, nullable=False),
        sa.Column('sender_type', sa.String(length=10), nullable=False),
        sa.Column('sender_id', uuid, nullable=True),
        sa.Column('sender_name', sa.String(length=100), nullable=False),
        sa.Column('recipient_type', sa.String(length=10), nullable=False, server_default='all'),
        sa.Column('recipient_id', uuid, nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.ForeignKeyConstraint(['game_id'], ['games.game_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('message_id'),
    )
    op.create_index('ix_chat_messages_game_created', 'chat_messages', ['game_id', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_chat_messages_game_created', table_name='chat_messages')
    op.drop_table('chat_messages')
    op.drop_table('game_winners')
    op.drop_index('ix_hint_usages_game_id', table_name='hint_usages')
    op.drop_table('hint_usages')
    op.drop_index('ix_scans_game_scanned_at', table_name='scans')
    op.drop_table('scans')
    op.drop_index('ix_teams_game_id', table_name='teams')
    op.drop_table('teams')
    op.drop_index('ix_edges_game_id', table_name='edges')
    op.drop_table('edges')
    op.drop_index('ix_nodes_game_id', table_name='nodes')
    op.drop_table('nodes')
    op.drop_index('ix_games_slug', table_name='games')
    op.drop_table('games')
