"""create player, lobby_member, game_session, move, word and word_report

Revision ID: 5c2e9a71b3d0
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a71b3d0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('display_name', sa.String(length=64), nullable=False),
        sa.Column('elo_rating', sa.Integer(), nullable=False, server_default='1200'),
        sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'lobby_member',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('lobby_id', sa.String(length=64), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['player_id'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('lobby_id', 'player_id', name='uq_lobby_member'),
    )
    op.create_index('ix_lobby_member_lobby_id', 'lobby_member', ['lobby_id'])

    op.create_table(
        'game_session',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('lobby_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('current_turn', sa.Integer(), nullable=False),
        sa.Column('player1_time', sa.BigInteger(), nullable=False),
        sa.Column('player2_time', sa.BigInteger(), nullable=False),
        sa.Column('game_started_at', sa.BigInteger(), nullable=False),
        sa.Column('last_move_at', sa.BigInteger(), nullable=True),
        sa.Column('last_tick_at', sa.BigInteger(), nullable=True),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
        sa.Column('winner_index', sa.Integer(), nullable=True),
        sa.Column('finish_reason', sa.String(length=16), nullable=True),
        sa.Column('elo_updated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('elo_delta', sa.Integer(), nullable=True),
        sa.Column('archived_at', sa.BigInteger(), nullable=True),
        sa.Column('banned_letters', sa.Text(), nullable=True),
        sa.Column('word_rules', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_session_lobby_id', 'game_session', ['lobby_id'], unique=True)

    op.create_table(
        'move',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('word', sa.String(length=64), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('is_valid', sa.Boolean(), nullable=False),
        sa.Column('rejection_reason', sa.String(length=128), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('length_score', sa.Integer(), nullable=True),
        sa.Column('leven_bonus', sa.Integer(), nullable=True),
        sa.Column('rarity_bonus', sa.Integer(), nullable=True),
        sa.Column('part_of_speech', sa.String(length=32), nullable=True),
        sa.Column('definition', sa.Text(), nullable=True),
        sa.Column('phonetics', sa.String(length=128), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['game_session.id']),
        sa.ForeignKeyConstraint(['player_id'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'word', name='uq_move_session_word'),
        sa.UniqueConstraint('session_id', 'seq', name='uq_move_session_seq'),
    )
    op.create_index('ix_move_session_id', 'move', ['session_id'])

    op.create_table(
        'word',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('word', sa.String(length=64), nullable=False),
        sa.Column('part_of_speech', sa.String(length=32), nullable=False),
        sa.Column('definitions', sa.Text(), nullable=False),
        sa.Column('phonetics', sa.String(length=128), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('word', 'part_of_speech', name='uq_word_pos'),
    )
    op.create_index('ix_word_word', 'word', ['word'])

    op.create_table(
        'word_report',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('move_id', sa.Integer(), nullable=False),
        sa.Column('reporter_id', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=64), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['move_id'], ['move.id']),
        sa.ForeignKeyConstraint(['reporter_id'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_word_report_move_id', 'word_report', ['move_id'])


def downgrade():
    op.drop_index('ix_word_report_move_id', table_name='word_report')
    op.drop_table('word_report')
    op.drop_index('ix_word_word', table_name='word')
    op.drop_table('word')
    op.drop_index('ix_move_session_id', table_name='move')
    op.drop_table('move')
    op.drop_index('ix_game_session_lobby_id', table_name='game_session')
    op.drop_table('game_session')
    op.drop_index('ix_lobby_member_lobby_id', table_name='lobby_member')
    op.drop_table('lobby_member')
    op.drop_table('player')
