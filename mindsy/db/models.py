"""Database models for the Mindsy notes service."""

import enum
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mindsy.db.session import Base


def _uuid() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, enum.Enum):
    """Lifecycle of a note-generation job."""

    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class StudyNodeType(str, enum.Enum):
    """Kinds of study folder."""

    COURSE = "course"
    YEAR = "year"
    SUBJECT = "subject"
    SEMESTER = "semester"
    CUSTOM = "custom"


class NotificationType(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationCategory(str, enum.Enum):
    LECTURE = "lecture"
    UPLOAD = "upload"
    SYSTEM = "system"
    GENERAL = "general"


class SubscriptionTier(str, enum.Enum):
    FREE = "free"
    STUDENT = "student"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Job(Base):
    """One user request to turn an audio recording into notes."""

    __tablename__ = "jobs"

    job_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    lecture_title: Mapped[str] = mapped_column(String(255))
    course_subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    study_node_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("study_nodes.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, values_callable=_enum_values), default=JobStatus.UPLOADING, index=True
    )

    # Source files in the uploads bucket
    audio_file_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    pdf_file_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Generated artifacts in the generated-notes bucket
    output_pdf_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    md_file_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    txt_file_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    processing_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )
    processing_completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    notes: Mapped[list["Note"]] = relationship(
        "Note", back_populates="job", cascade="all, delete-orphan", passive_deletes=True
    )
    study_node: Mapped[Optional["StudyNode"]] = relationship("StudyNode")


class Note(Base):
    """Generated content for a job.

    The table carries two column generations. Older rows only fill the
    ``*_column``/``*_section``/``transcript_text`` fields; newer rows fill
    ``content``/``summary``/``key_points``. Read rows through
    :func:`mindsy.services.note_records.to_canonical_note`.
    """

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    job_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("jobs.job_id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    course_subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Legacy layout
    notes_column: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cue_column: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary_section: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transcript_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Current layout
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    key_points: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )

    job: Mapped["Job"] = relationship("Job", back_populates="notes")


class StudyNode(Base):
    """A user-defined folder in the study hierarchy."""

    __tablename__ = "study_nodes"
    __table_args__ = (UniqueConstraint("user_id", "parent_id", "name", name="unique_name_per_parent"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("study_nodes.id", ondelete="CASCADE"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(Text)
    type: Mapped[StudyNodeType] = mapped_column(Enum(StudyNodeType, values_callable=_enum_values))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    node_metadata: Mapped[Optional[dict]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )

    children: Mapped[list["StudyNode"]] = relationship(
        "StudyNode", cascade="all, delete-orphan", passive_deletes=True
    )


class Notification(Base):
    """User-facing event record."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, values_callable=_enum_values), default=NotificationType.INFO
    )
    category: Mapped[NotificationCategory] = mapped_column(
        Enum(NotificationCategory, values_callable=_enum_values),
        default=NotificationCategory.GENERAL,
    )
    read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    related_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    related_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    action_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notification_metadata: Mapped[Optional[dict]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )


class Profile(Base):
    """Billing state mirrored from the payment provider."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    subscription_tier: Mapped[SubscriptionTier] = mapped_column(
        Enum(SubscriptionTier, values_callable=_enum_values), default=SubscriptionTier.FREE
    )
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    subscription_period_start: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    subscription_period_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )


class Usage(Base):
    """Monthly usage counters per user."""

    __tablename__ = "usage"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    month_year: Mapped[str] = mapped_column(String(7), primary_key=True)  # YYYY-MM
    summaries_count: Mapped[int] = mapped_column(Integer, default=0)
    total_minutes: Mapped[int] = mapped_column(Integer, default=0)
