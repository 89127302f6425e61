"""Initial migration

Revision ID: 001_initial
Revises:
Create Date: 2026-01-31

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create study_nodes table
    op.create_table(
        'study_nodes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False, index=True),
        sa.Column('parent_id', sa.String(36), sa.ForeignKey('study_nodes.id', ondelete='CASCADE'), nullable=True, index=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('type', sa.Enum('course', 'year', 'subject', 'semester', 'custom', name='studynodetype'), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.String(32), nullable=True),
        sa.Column('icon', sa.String(64), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_pinned', sa.Boolean(), nullable=False, server_default=sa.false(), index=True),
        sa.Column('node_metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'parent_id', 'name', name='unique_name_per_parent'),
    )

    # Create jobs table
    op.create_table(
        'jobs',
        sa.Column('job_id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False, index=True),
        sa.Column('lecture_title', sa.String(255), nullable=False),
        sa.Column('course_subject', sa.String(255), nullable=True),
        sa.Column('study_node_id', sa.String(36), sa.ForeignKey('study_nodes.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('status', sa.Enum('uploading', 'processing', 'completed', 'failed', name='jobstatus'), nullable=False, index=True),
        sa.Column('audio_file_path', sa.Text(), nullable=True, index=True),
        sa.Column('pdf_file_path', sa.Text(), nullable=True),
        sa.Column('output_pdf_path', sa.Text(), nullable=True),
        sa.Column('md_file_path', sa.Text(), nullable=True),
        sa.Column('txt_file_path', sa.Text(), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('processing_metadata', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('processing_completed_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create notes table (first column layout)
    op.create_table(
        'notes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('job_id', sa.String(64), sa.ForeignKey('jobs.job_id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.String(36), nullable=False, index=True),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('course_subject', sa.String(255), nullable=True),
        sa.Column('notes_column', sa.Text(), nullable=True),
        sa.Column('cue_column', sa.Text(), nullable=True),
        sa.Column('summary_section', sa.Text(), nullable=True),
        sa.Column('transcript_text', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False, index=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('type', sa.Enum('info', 'success', 'warning', 'error', name='notificationtype'), nullable=False),
        sa.Column('category', sa.Enum('lecture', 'upload', 'system', 'general', name='notificationcategory'), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false(), index=True),
        sa.Column('related_id', sa.String(64), nullable=True),
        sa.Column('related_type', sa.String(50), nullable=True),
        sa.Column('action_url', sa.Text(), nullable=True),
        sa.Column('notification_metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create profiles table
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=True, index=True),
        sa.Column('subscription_tier', sa.Enum('free', 'student', name='subscriptiontier'), nullable=False, server_default='free'),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True, index=True),
        sa.Column('stripe_subscription_id', sa.String(255), nullable=True),
        sa.Column('subscription_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('subscription_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create usage table
    op.create_table(
        'usage',
        sa.Column('user_id', sa.String(36), primary_key=True),
        sa.Column('month_year', sa.String(7), primary_key=True),
        sa.Column('summaries_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_minutes', sa.Integer(), nullable=False, server_default='0'),
    )

    # Create indexes
    op.create_index('ix_jobs_created_at', 'jobs', ['created_at'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_notifications_created_at')
    op.drop_index('ix_jobs_created_at')
    op.drop_table('usage')
    op.drop_table('profiles')
    op.drop_table('notifications')
    op.drop_table('notes')
    op.drop_table('jobs')
    op.drop_table('study_nodes')
    op.execute('DROP TYPE IF EXISTS subscriptiontier')
    op.execute('DROP TYPE IF EXISTS notificationcategory')
    op.execute('DROP TYPE IF EXISTS notificationtype')
    op.execute('DROP TYPE IF EXISTS jobstatus')
    op.execute('DROP TYPE IF EXISTS studynodetype')
