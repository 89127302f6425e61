"""Add current-layout content columns to notes

Revision ID: 002_note_content_columns
Revises: 001_initial
Create Date: 2026-02-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002_note_content_columns'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Rows with a non-null content are read as the current layout;
    # older rows keep notes_column/cue_column/summary_section
    op.add_column('notes', sa.Column('content', sa.Text(), nullable=True))
    op.add_column('notes', sa.Column('summary', sa.Text(), nullable=True))
    op.add_column('notes', sa.Column('key_points', sa.JSON(), nullable=True))


def downgrade() -> None:
    op.drop_column('notes', 'key_points')
    op.drop_column('notes', 'summary')
    op.drop_column('notes', 'content')
