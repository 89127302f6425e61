"""Job management service."""

import logging
import math
import re
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Literal, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mindsy.config import get_settings
from mindsy.db.models import Job, JobStatus, Note, StudyNode
from mindsy.services.note_records import to_canonical_note

settings = get_settings()
logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

StatusFilter = Literal["all", "completed", "processing", "failed"]

_STATUS_FILTERS: dict[str, tuple[JobStatus, ...]] = {
    "all": tuple(JobStatus),
    "completed": (JobStatus.COMPLETED,),
    "processing": (JobStatus.PROCESSING, JobStatus.UPLOADING),
    "failed": (JobStatus.FAILED,),
}

_ID_ALPHABET = string.ascii_lowercase + string.digits


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_job_id() -> str:
    """Job ids look like ``job_<epoch ms>_<13 random chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(13))
    return f"job_{now_ms()}_{suffix}"


def sanitize_title(title: str) -> str:
    """Make a title safe for object keys: anything outside [A-Za-z0-9] becomes ``_``."""
    return re.sub(r"[^A-Za-z0-9]", "_", title)


def estimate_duration_minutes(transcript: str, supplied: Optional[float] = None) -> int:
    """Lecture length in minutes.

    A positive caller-supplied value wins. Otherwise the length is estimated
    from the transcript word count at a fixed speaking rate, never below 1.
    """
    if supplied is not None and supplied > 0:
        return int(round(supplied)) or 1
    word_count = len(transcript.split())
    return max(1, math.ceil(word_count / settings.words_per_minute))


def artifact_paths(user_id: str, lecture_title: str, timestamp_ms: Optional[int] = None) -> dict[str, str]:
    """Object keys in the generated-notes bucket for a job's outputs."""
    base = f"{user_id}/{timestamp_ms or now_ms()}_{sanitize_title(lecture_title)}"
    return {
        "pdf": f"{base}.pdf",
        "markdown": f"{base}.md",
        "transcript": f"{base}.txt",
    }


class JobService:
    """Service for querying and updating jobs."""

    async def create_job(
        self,
        db: AsyncSession,
        user_id: str,
        lecture_title: str,
        audio_file_path: str,
        course_subject: Optional[str] = None,
        study_node_id: Optional[str] = None,
        pdf_file_path: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        processing_mode: str = "enhance",
    ) -> Job:
        """Register a job for an uploaded file. It starts in ``uploading``."""
        job = Job(
            job_id=generate_job_id(),
            user_id=user_id,
            lecture_title=lecture_title.strip(),
            course_subject=(course_subject or "").strip() or None,
            study_node_id=study_node_id or None,
            status=JobStatus.UPLOADING,
            audio_file_path=audio_file_path,
            pdf_file_path=pdf_file_path,
            duration_minutes=duration_minutes,
            processing_metadata={
                "processing_mode": processing_mode,
                "created_via_api": True,
            },
        )
        db.add(job)
        await db.flush()
        await db.refresh(job)
        return job

    async def get_job(
        self,
        db: AsyncSession,
        job_id: str,
        user_id: Optional[str] = None,
        include_notes: bool = False,
    ) -> Optional[Job]:
        """Get a job by ID, optionally restricted to one owner."""
        query = select(Job).where(Job.job_id == job_id)

        if user_id:
            query = query.where(Job.user_id == user_id)

        if include_notes:
            query = query.options(selectinload(Job.notes), selectinload(Job.study_node))

        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def find_latest_for_audio(
        self, db: AsyncSession, user_id: str, audio_file_path: str
    ) -> Optional[Job]:
        """Most recent job the user registered for an uploaded audio file."""
        result = await db.execute(
            select(Job)
            .where(Job.user_id == user_id, Job.audio_file_path == audio_file_path)
            .order_by(Job.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_jobs(
        self,
        db: AsyncSession,
        user_id: str,
        status: StatusFilter = "all",
        study_node_ids: Optional[list[str]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Job], int]:
        """
        List a user's jobs, newest first.

        Returns:
            Tuple of (jobs, total_count)
        """
        query = select(Job).where(
            Job.user_id == user_id,
            Job.status.in_(_STATUS_FILTERS.get(status, _STATUS_FILTERS["all"])),
        )

        if study_node_ids is not None:
            query = query.where(Job.study_node_id.in_(study_node_ids))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await db.execute(count_query)).scalar() or 0

        query = query.order_by(Job.created_at.desc()).offset(offset).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def update_job(self, db: AsyncSession, job: Job, **fields) -> Job:
        """Apply field updates to a loaded job."""
        for key, value in fields.items():
            setattr(job, key, value)
        job.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return job

    async def update_job_status(
        self,
        db: AsyncSession,
        job_id: str,
        status: JobStatus,
        error_message: Optional[str] = None,
        **fields,
    ):
        """Update job status. Terminal statuses also stamp ``processing_completed_at``."""
        update_data = {"status": status, "updated_at": datetime.now(timezone.utc), **fields}

        if error_message is not None:
            update_data["error_message"] = error_message
        if status in (JobStatus.COMPLETED, JobStatus.FAILED):
            update_data["processing_completed_at"] = datetime.now(timezone.utc)

        await db.execute(update(Job).where(Job.job_id == job_id).values(**update_data))

    async def move_jobs(
        self,
        db: AsyncSession,
        user_id: str,
        job_ids: list[str],
        study_node_id: Optional[str],
    ) -> int:
        """Assign a batch of the user's jobs to a study node (or to none)."""
        result = await db.execute(
            update(Job)
            .where(Job.user_id == user_id, Job.job_id.in_(job_ids))
            .values(study_node_id=study_node_id, updated_at=datetime.now(timezone.utc))
        )
        return result.rowcount or 0

    async def search(
        self,
        db: AsyncSession,
        user_id: str,
        query: str,
        search_type: Literal["all", "title", "content"] = "all",
    ) -> dict:
        """Case-insensitive substring search over titles, note bodies and folders."""
        query = query.strip()
        if not query:
            return {"notes": [], "content_matches": [], "folders": [], "total": 0}

        # autoescape keeps % and _ literal
        needle = query.lower()
        title_matches: list[Job] = []
        content_matches: list[dict] = []

        if search_type in ("all", "title"):
            result = await db.execute(
                select(Job)
                .where(
                    Job.user_id == user_id,
                    Job.status.in_((JobStatus.COMPLETED, JobStatus.PROCESSING)),
                    or_(
                        func.lower(Job.lecture_title).contains(needle, autoescape=True),
                        func.lower(Job.course_subject).contains(needle, autoescape=True),
                    ),
                )
                .order_by(Job.created_at.desc())
                .limit(20)
            )
            title_matches = list(result.scalars().all())

        if search_type in ("all", "content"):
            result = await db.execute(
                select(Note)
                .where(
                    Note.user_id == user_id,
                    or_(
                        func.lower(Note.content).contains(needle, autoescape=True),
                        func.lower(Note.notes_column).contains(needle, autoescape=True),
                        func.lower(Note.summary_section).contains(needle, autoescape=True),
                        func.lower(Note.summary).contains(needle, autoescape=True),
                    ),
                )
                .order_by(Note.created_at.desc())
                .limit(20)
            )
            for note in result.scalars().all():
                canonical = to_canonical_note(note)
                content_matches.append(
                    {
                        "job_id": note.job_id,
                        "title": note.title,
                        "snippet": _snippet(canonical.markdown, query),
                    }
                )

        result = await db.execute(
            select(StudyNode)
            .where(StudyNode.user_id == user_id, func.lower(StudyNode.name).contains(needle, autoescape=True))
            .limit(10)
        )
        folders = [
            {"id": n.id, "name": n.name, "type": n.type.value, "parent_id": n.parent_id}
            for n in result.scalars().all()
        ]

        notes = [self.job_to_dict(j) for j in title_matches]
        return {
            "notes": notes,
            "content_matches": content_matches,
            "folders": folders,
            "total": len(notes) + len(content_matches) + len(folders),
        }

    def job_to_dict(self, job: Job) -> dict:
        """Serialize a job row for API responses."""
        return {
            "job_id": job.job_id,
            "lecture_title": job.lecture_title,
            "course_subject": job.course_subject,
            "study_node_id": job.study_node_id,
            "status": job.status.value,
            "audio_file_path": job.audio_file_path,
            "pdf_file_path": job.pdf_file_path,
            "output_pdf_path": job.output_pdf_path,
            "md_file_path": job.md_file_path,
            "txt_file_path": job.txt_file_path,
            "duration_minutes": job.duration_minutes,
            "processing_metadata": job.processing_metadata,
            "error_message": job.error_message,
            "created_at": job.created_at.isoformat() if job.created_at else None,
            "updated_at": job.updated_at.isoformat() if job.updated_at else None,
            "processing_completed_at": (
                job.processing_completed_at.isoformat() if job.processing_completed_at else None
            ),
        }


def _snippet(text: str, query: str, radius: int = 80) -> str:
    index = text.lower().find(query.lower())
    if index < 0:
        return text[: radius * 2]
    start = max(0, index - radius)
    return text[start : index + len(query) + radius]


# Singleton instance
job_service = JobService()
