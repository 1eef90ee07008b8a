"""create_progress_tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('timezone', sa.String(64), server_default='UTC', nullable=False),
        sa.Column('is_pro', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('active_challenge_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('completed_challenge_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'challenges',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(120), nullable=False),
        sa.Column('description', sa.Text(), server_default='', nullable=False),
        sa.Column('creator_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('challenge_type', sa.String(20), nullable=False),
        sa.Column('difficulty', sa.String(10), server_default='medium', nullable=False),
        sa.Column('verification_kind', sa.String(20), nullable=False),
        sa.Column('metric', sa.String(30), nullable=True),
        sa.Column('goal', sa.Float(), nullable=True),
        sa.Column('target_latitude', sa.Float(), nullable=True),
        sa.Column('target_longitude', sa.Float(), nullable=True),
        sa.Column('radius_meters', sa.Float(), nullable=True),
        sa.Column('presence_kind', sa.String(20), nullable=True),
        sa.Column('max_participants', sa.Integer(), nullable=False),
        sa.Column('participant_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('is_official', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_challenge_official', 'challenges', ['is_official'])
    op.create_index('ix_challenge_creator', 'challenges', ['creator_id'])

    op.create_table(
        'challenge_participants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('challenge_id', sa.Integer(), sa.ForeignKey('challenges.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('challenge_id', 'user_id', name='unique_participant'),
    )
    op.create_index('ix_challenge_participants_challenge_id', 'challenge_participants', ['challenge_id'])
    op.create_index('ix_challenge_participants_user_id', 'challenge_participants', ['user_id'])

    op.create_table(
        'progress_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('challenge_id', sa.Integer(), sa.ForeignKey('challenges.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('challenge_id', 'user_id', 'day', name='unique_progress_day'),
    )
    op.create_index('ix_progress_challenge_user', 'progress_entries', ['challenge_id', 'user_id'])

    op.create_table(
        'leaderboard_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('challenge_id', sa.Integer(), sa.ForeignKey('challenges.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('days_completed', sa.Integer(), server_default='0', nullable=False),
        sa.Column('current_streak', sa.Integer(), server_default='0', nullable=False),
        sa.Column('longest_streak', sa.Integer(), server_default='0', nullable=False),
        sa.Column('score', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_updated', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('challenge_id', 'user_id', name='unique_leaderboard_entry'),
    )
    op.create_index('ix_leaderboard_challenge_score', 'leaderboard_entries', ['challenge_id', 'score'])

    op.create_table(
        'challenge_completions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('challenge_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(120), nullable=False),
        sa.Column('days_completed', sa.Integer(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'challenge_id', name='unique_completion'),
    )
    op.create_index('ix_challenge_completions_user_id', 'challenge_completions', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_challenge_completions_user_id', table_name='challenge_completions')
    op.drop_table('challenge_completions')
    op.drop_index('ix_leaderboard_challenge_score', table_name='leaderboard_entries')
    op.drop_table('leaderboard_entries')
    op.drop_index('ix_progress_challenge_user', table_name='progress_entries')
    op.drop_table('progress_entries')
    op.drop_index('ix_challenge_participants_user_id', table_name='challenge_participants')
    op.drop_index('ix_challenge_participants_challenge_id', table_name='challenge_participants')
    op.drop_table('challenge_participants')
    op.drop_index('ix_challenge_creator', table_name='challenges')
    op.drop_index('ix_challenge_official', table_name='challenges')
    op.drop_table('challenges')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
