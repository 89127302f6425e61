"""Audio-to-notes pipeline: transcribe, generate, render, store."""

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from mindsy.config import get_settings
from mindsy.db.models import JobStatus, Note, Usage
from mindsy.services.job_service import (
    artifact_paths,
    estimate_duration_minutes,
    job_service,
    now_ms,
)
from mindsy.services.note_generation import NoteGenerator, NotesInput
from mindsy.services.note_records import parse_content_intelligently
from mindsy.services.notifications import notification_service
from mindsy.services.pdf_renderer import PdfRenderer, markdown_to_html
from mindsy.services.pdf_text import extract_pdf_text
from mindsy.services.storage import StorageService
from mindsy.services.study_nodes import StudyNodeNotFound, study_node_service
from mindsy.services.transcription import TranscriptionClient

settings = get_settings()
logger = logging.getLogger(__name__)


class JobNotFound(LookupError):
    """No job is registered for the uploaded file."""


class PipelineFailed(RuntimeError):
    """A critical step failed; the job has been marked failed."""

    def __init__(self, job_id: str, message: str):
        super().__init__(message)
        self.job_id = job_id


@dataclass
class GenerateOptions:
    """Inputs for one pipeline run."""

    audio_file_path: str
    lecture_title: str
    pdf_file_path: Optional[str] = None
    course_subject: Optional[str] = None
    processing_mode: str = "enhance"
    study_node_id: Optional[str] = None
    duration_minutes: Optional[float] = None


@dataclass
class PipelineSteps:
    """Which best-effort steps actually went through.

    Critical steps (signed URL, transcription, generation, rendering, PDF
    upload) are not listed: if any of them fails the run raises.
    """

    markdown_upload: bool = False
    transcript_upload: bool = False
    note_record: bool = False
    job_update: bool = False
    usage_update: bool = False
    notification: bool = False


@dataclass
class PipelineOutcome:
    job_id: str
    pdf_path: str
    markdown_path: Optional[str]
    transcript_path: Optional[str]
    duration_minutes: int
    processing_time: int
    steps: PipelineSteps = field(default_factory=PipelineSteps)

    def to_response(self) -> dict:
        return {
            "jobId": self.job_id,
            "status": JobStatus.COMPLETED.value,
            "message": "Cornell notes generated successfully",
            "files": {
                "pdf": self.pdf_path,
                "markdown": self.markdown_path,
                "transcript": self.transcript_path,
            },
            "durationMinutes": self.duration_minutes,
            "processingTime": self.processing_time,
            "steps": asdict(self.steps),
        }


class NotesPipeline:
    """Runs the generate flow for one request, strictly in sequence."""

    def __init__(
        self,
        storage: StorageService,
        transcriber: TranscriptionClient,
        generator: NoteGenerator,
        renderer: PdfRenderer,
    ):
        self.storage = storage
        self.transcriber = transcriber
        self.generator = generator
        self.renderer = renderer

    async def run(self, db: AsyncSession, user_id: str, options: GenerateOptions) -> PipelineOutcome:
        """
        Execute the pipeline for the caller's most recent job on ``audio_file_path``.

        Raises:
            JobNotFound: no job registered for the file; nothing is written.
            PipelineFailed: a critical step failed; the job is now ``failed``.
        """
        job = await job_service.find_latest_for_audio(db, user_id, options.audio_file_path)
        if job is None:
            raise JobNotFound("No processing job found for this file")

        job_id = job.job_id
        stored_duration = job.duration_minutes
        started = time.monotonic()
        logger.info(f"Starting pipeline for job {job_id}")

        await self._mark_processing(db, job_id)

        try:
            outcome = await self._run_critical(db, user_id, job_id, stored_duration, options)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"Pipeline failed for job {job_id}: {message}")
            await self._mark_failed(db, job_id, message)
            await notification_service.notify_job_finished(
                db, user_id, job_id, options.lecture_title, error=message
            )
            raise PipelineFailed(job_id, message) from e

        outcome.steps.notification = await notification_service.notify_job_finished(
            db, user_id, job_id, options.lecture_title
        )
        outcome.processing_time = int(round(time.monotonic() - started))
        logger.info(f"Pipeline finished for job {job_id} in {outcome.processing_time}s: {outcome.steps}")
        return outcome

    async def _mark_processing(self, db: AsyncSession, job_id: str):
        try:
            await job_service.update_job_status(db, job_id, JobStatus.PROCESSING)
            await db.commit()
        except Exception as e:
            logger.warning(f"Could not mark job {job_id} as processing: {e}")
            await db.rollback()

    async def _mark_failed(self, db: AsyncSession, job_id: str, message: str):
        try:
            await job_service.update_job_status(
                db, job_id, JobStatus.FAILED, error_message=message
            )
            await db.commit()
        except Exception as e:
            logger.error(f"Could not mark job {job_id} as failed: {e}")
            await db.rollback()

    async def _run_critical(
        self,
        db: AsyncSession,
        user_id: str,
        job_id: str,
        stored_duration: Optional[int],
        options: GenerateOptions,
    ) -> PipelineOutcome:
        audio_url = await self.storage.signed_url(
            self.storage.uploads_bucket, options.audio_file_path, settings.signed_url_expiry_seconds
        )

        transcription = await self.transcriber.transcribe(audio_url)
        if not transcription.success:
            raise RuntimeError(f"Transcription failed: {transcription.error}")
        transcript = transcription.data.text
        detected_language = transcription.data.detected_language
        pdf_text = await self._supplementary_text(options.pdf_file_path)

        supplied = options.duration_minutes if options.duration_minutes else stored_duration
        duration = estimate_duration_minutes(transcript, supplied)

        format_mode = "clean-document" if options.processing_mode == "store" else "cornell-notes"
        notes = await self.generator.generate(
            NotesInput(
                lecture_title=options.lecture_title,
                transcript=transcript,
                pdf_text=pdf_text,
                course_subject=options.course_subject,
                format_mode=format_mode,
                detected_language=detected_language,
            )
        )
        if not notes.success:
            raise RuntimeError(f"AI note generation failed: {notes.error}")
        markdown = notes.notes

        html_content = markdown_to_html(markdown, options.lecture_title)
        pdf = await self.renderer.render_html(html_content, generate_bookmarks=True)
        if not pdf.success:
            raise RuntimeError(f"PDF generation failed: {pdf.error}")

        paths = artifact_paths(user_id, options.lecture_title, now_ms())
        bucket = self.storage.generated_bucket
        try:
            await self.storage.upload_bytes(bucket, paths["pdf"], pdf.pdf, "application/pdf")
        except Exception as e:
            raise RuntimeError(f"PDF upload failed: {e}") from e

        # Everything below is best-effort
        steps = PipelineSteps()
        steps.markdown_upload = await self._try_upload(
            bucket, paths["markdown"], markdown.encode("utf-8"), "text/markdown"
        )
        steps.transcript_upload = await self._try_upload(
            bucket, paths["transcript"], transcript.encode("utf-8"), "text/plain"
        )

        steps.note_record = await self._insert_note(
            db, job_id, user_id, options, markdown, transcript
        )
        folder = await self._owned_folder(db, user_id, options.study_node_id)
        steps.job_update = await self._complete_job(
            db,
            job_id,
            **({"study_node_id": folder} if folder else {}),
            output_pdf_path=paths["pdf"],
            md_file_path=paths["markdown"] if steps.markdown_upload else None,
            txt_file_path=paths["transcript"] if steps.transcript_upload else None,
            duration_minutes=duration,
            processing_metadata={
                "processing_mode": options.processing_mode,
                "detected_language": detected_language,
                "pdf_text_extracted": pdf_text is not None if options.pdf_file_path else None,
                "word_count": len(transcript.split()),
            },
        )
        steps.usage_update = await self._record_usage(db, user_id, duration)

        return PipelineOutcome(
            job_id=job_id,
            pdf_path=paths["pdf"],
            markdown_path=paths["markdown"] if steps.markdown_upload else None,
            transcript_path=paths["transcript"] if steps.transcript_upload else None,
            duration_minutes=duration,
            processing_time=0,
            steps=steps,
        )

    async def _supplementary_text(self, pdf_file_path: Optional[str]) -> Optional[str]:
        """Text of the optional slide deck. Failures only drop the supplement."""
        if not pdf_file_path:
            return None
        try:
            content = await self.storage.download(self.storage.uploads_bucket, pdf_file_path)
            text = await run_in_threadpool(extract_pdf_text, content)
        except Exception as e:
            logger.warning(f"Supplementary PDF {pdf_file_path} skipped, continuing with audio only: {e}")
            return None
        logger.info(f"Extracted {len(text)} characters from {pdf_file_path}")
        return text or None

    async def _owned_folder(
        self, db: AsyncSession, user_id: str, study_node_id: Optional[str]
    ) -> Optional[str]:
        if not study_node_id:
            return None
        try:
            node = await study_node_service.get_node(db, user_id, study_node_id)
        except StudyNodeNotFound:
            logger.warning(f"Ignoring unknown study node {study_node_id}")
            return None
        return node.id

    async def _try_upload(self, bucket: str, path: str, content: bytes, content_type: str) -> bool:
        try:
            await self.storage.upload_bytes(bucket, path, content, content_type)
            return True
        except Exception as e:
            logger.warning(f"Upload of {path} failed: {e}")
            return False

    async def _insert_note(
        self,
        db: AsyncSession,
        job_id: str,
        user_id: str,
        options: GenerateOptions,
        markdown: str,
        transcript: str,
    ) -> bool:
        parsed = parse_content_intelligently(markdown)
        try:
            db.add(
                Note(
                    job_id=job_id,
                    user_id=user_id,
                    title=options.lecture_title,
                    course_subject=options.course_subject,
                    content=markdown,
                    summary=parsed.summary,
                    key_points=parsed.key_points,
                    transcript_text=transcript,
                )
            )
            await db.commit()
            return True
        except Exception as e:
            logger.warning(f"Note record creation failed for job {job_id}: {e}")
            await db.rollback()
            return False

    async def _complete_job(self, db: AsyncSession, job_id: str, **fields) -> bool:
        try:
            await job_service.update_job_status(db, job_id, JobStatus.COMPLETED, **fields)
            await db.commit()
            return True
        except Exception as e:
            logger.warning(f"Job status update failed for job {job_id}: {e}")
            await db.rollback()
            return False

    async def _record_usage(self, db: AsyncSession, user_id: str, minutes: int) -> bool:
        month_year = datetime.now(timezone.utc).strftime("%Y-%m")
        try:
            usage = await db.get(Usage, (user_id, month_year))
            if usage is None:
                db.add(
                    Usage(
                        user_id=user_id,
                        month_year=month_year,
                        summaries_count=1,
                        total_minutes=minutes,
                    )
                )
            else:
                usage.summaries_count += 1
                usage.total_minutes += minutes
            await db.commit()
            return True
        except Exception as e:
            logger.warning(f"Usage update failed for {user_id}: {e}")
            await db.rollback()
            return False
