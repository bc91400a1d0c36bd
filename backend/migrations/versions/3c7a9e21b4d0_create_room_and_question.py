"""create room and question tables

Revision ID: 3c7a9e21b4d0
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c7a9e21b4d0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'room' not in existing_tables:
        op.create_table(
            'room',
            sa.Column('room_id', sa.String(length=4), primary_key=True),
            sa.Column('host_id', sa.String(length=24), nullable=False, server_default=''),
            sa.Column('player_count', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('current_question', sa.Text(), nullable=True),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
            sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('draw_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.Column('updated_at', sa.Float(), nullable=False),
        )
        op.create_index('ix_room_updated_at', 'room', ['updated_at'])

    if 'question' not in existing_tables:
        op.create_table(
            'question',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('room_id', sa.String(length=4), sa.ForeignKey('room.room_id', ondelete='CASCADE'), nullable=False),
            sa.Column('text', sa.Text(), nullable=False),
            sa.Column('drawn_seq', sa.Integer(), nullable=True),
        )
        op.create_index('ix_question_room_id', 'question', ['room_id'])


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'question' in existing_tables:
        op.drop_index('ix_question_room_id', table_name='question')
        op.drop_table('question')
    if 'room' in existing_tables:
        op.drop_index('ix_room_updated_at', table_name='room')
        op.drop_table('room')
