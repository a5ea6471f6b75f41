"""create room_record table

Revision ID: 5c2e9a71d0b4
Revises:
Create Date: 2026-10-17 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a71d0b4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'room_record',
        sa.Column('code', sa.String(length=12), nullable=False),
        sa.Column('set_id', sa.String(length=128), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('code'),
    )
    with op.batch_alter_table('room_record') as batch_op:
        batch_op.create_index(batch_op.f('ix_room_record_set_id'), ['set_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_room_record_expires_at'), ['expires_at'], unique=False)


def downgrade():
    with op.batch_alter_table('room_record') as batch_op:
        batch_op.drop_index(batch_op.f('ix_room_record_expires_at'))
        batch_op.drop_index(batch_op.f('ix_room_record_set_id'))
    op.drop_table('room_record')
