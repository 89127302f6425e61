"""Note generation pipeline route."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from mindsy.api.deps import (
    get_note_generator,
    get_pdf_renderer,
    get_storage_service,
    get_transcription_client,
)
from mindsy.auth.security import AuthenticatedUser, require_user
from mindsy.db.session import get_db
from mindsy.middleware.rate_limit import rate_limit_generate
from mindsy.schemas.schemas import GenerateRequest
from mindsy.services.note_generation import NoteGenerator
from mindsy.services.pdf_renderer import PdfRenderer
from mindsy.services.pipeline import GenerateOptions, JobNotFound, NotesPipeline, PipelineFailed
from mindsy.services.storage import StorageService
from mindsy.services.transcription import TranscriptionClient

router = APIRouter(prefix="/api", tags=["Generate"])


@router.post(
    "/generate",
    summary="Generate notes for an uploaded recording",
    description=(
        "Transcribe the uploaded audio, generate Cornell notes, render them to PDF "
        "and store the artifacts. Runs synchronously."
    ),
)
@rate_limit_generate()
async def generate_notes(
    request: Request,
    body: GenerateRequest,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
    storage: StorageService = Depends(get_storage_service),
    transcriber: TranscriptionClient = Depends(get_transcription_client),
    generator: NoteGenerator = Depends(get_note_generator),
    renderer: PdfRenderer = Depends(get_pdf_renderer),
):
    """
    Run the full pipeline for the caller's most recent job on ``audioFilePath``.

    - **audioFilePath**: path of the uploaded audio (required)
    - **lectureTitle**: title for the notes (required)
    - **processingMode**: ``enhance`` for Cornell notes, ``store`` for light formatting
    """
    pipeline = NotesPipeline(storage, transcriber, generator, renderer)
    options = GenerateOptions(
        audio_file_path=body.audio_file_path,
        lecture_title=body.lecture_title,
        pdf_file_path=body.pdf_file_path,
        course_subject=body.course_subject,
        processing_mode=body.processing_mode,
        study_node_id=body.study_node_id,
        duration_minutes=body.duration_minutes,
    )

    try:
        outcome = await pipeline.run(db, user.id, options)
    except JobNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PipelineFailed as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return {"data": outcome.to_response()}
