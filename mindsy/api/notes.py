"""Notes (jobs) dashboard API routes."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mindsy.api.deps import get_pdf_renderer, get_storage_service
from mindsy.auth.security import AuthenticatedUser, require_user
from mindsy.db.models import Job, Note
from mindsy.db.session import get_db
from mindsy.middleware.rate_limit import rate_limit_general, rate_limit_generate
from mindsy.schemas.schemas import (
    ContentUpdate,
    MoveNotesRequest,
    NoteCreate,
    NoteUpdate,
    RegeneratePdfRequest,
)
from mindsy.services.job_service import MAX_PAGE_SIZE, job_service
from mindsy.services.note_records import note_fields_for_content, to_canonical_note
from mindsy.services.pdf_renderer import PdfRenderer
from mindsy.services.storage import StorageService
from mindsy.services.study_nodes import StudyNodeNotFound, node_to_dict, study_node_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])


async def _owned_job(db: AsyncSession, job_id: str, user: AuthenticatedUser) -> Job:
    """Load a job, telling "absent" (404) apart from "someone else's" (403)."""
    job = await job_service.get_job(db, job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    if job.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized to access this content",
        )
    return job


async def _latest_note(db: AsyncSession, job_id: str, user_id: str) -> Optional[Note]:
    result = await db.execute(
        select(Note)
        .where(Note.job_id == job_id, Note.user_id == user_id)
        .order_by(Note.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _check_folder(db: AsyncSession, user_id: str, study_node_id: Optional[str]):
    if study_node_id is None:
        return
    try:
        await study_node_service.get_node(db, user_id, study_node_id)
    except StudyNodeNotFound:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Study node not found"
        )


@router.get(
    "",
    summary="List notes",
    description="Paginated list of the caller's jobs, newest first.",
)
async def list_notes(
    study_node_id: Optional[str] = Query(None, description="Only jobs filed in this study node"),
    status_filter: Literal["all", "completed", "processing", "failed"] = Query(
        "all", alias="status", description="processing also matches uploading"
    ),
    limit: int = Query(20, ge=1, description="Page size (capped at 100)"),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    limit = min(limit, MAX_PAGE_SIZE)
    jobs, total = await job_service.list_jobs(
        db,
        user.id,
        status=status_filter,
        study_node_ids=[study_node_id] if study_node_id else None,
        limit=limit,
        offset=offset,
    )
    return {
        "data": {
            "notes": [job_service.job_to_dict(j) for j in jobs],
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "hasMore": total > offset + limit,
            },
        }
    }


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Register an upload",
    description="Create a job for a file already uploaded to storage.",
)
async def create_note(
    body: NoteCreate,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    await _check_folder(db, user.id, body.study_node_id)
    job = await job_service.create_job(
        db,
        user_id=user.id,
        lecture_title=body.lecture_title,
        audio_file_path=body.audio_file_path,
        course_subject=body.course_subject,
        study_node_id=body.study_node_id,
        pdf_file_path=body.pdf_file_path,
        duration_minutes=body.duration_minutes,
        processing_mode=body.processing_mode,
    )
    await db.commit()
    logger.info(f"Created job {job.job_id} for {user.id}")

    return {
        "data": {
            "job_id": job.job_id,
            "message": "Note job created successfully",
            "note": job_service.job_to_dict(job),
        }
    }


@router.get(
    "/search",
    summary="Search notes",
    description="Case-insensitive substring search over titles, note content and folder names.",
)
@rate_limit_general()
async def search_notes(
    request: Request,
    q: str = Query("", description="Search text"),
    search_type: Literal["all", "title", "content"] = Query("all", alias="type"),
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    results = await job_service.search(db, user.id, q, search_type)
    return {"data": {"results": results}}


@router.get(
    "/by-study-node",
    summary="Notes in a study node",
    description="Jobs filed in a study node, optionally including every descendant folder.",
)
async def notes_by_study_node(
    study_node_id: str = Query(...),
    include_descendants: bool = Query(False),
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    try:
        node = await study_node_service.get_node(db, user.id, study_node_id)
    except StudyNodeNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    if include_descendants:
        node_ids = await study_node_service.subtree_ids(db, user.id, study_node_id)
    else:
        node_ids = [study_node_id]

    limit = min(limit, MAX_PAGE_SIZE)
    jobs, total = await job_service.list_jobs(
        db, user.id, study_node_ids=node_ids, limit=limit, offset=offset
    )
    return {
        "data": {
            "study_node": node_to_dict(node),
            "notes": [job_service.job_to_dict(j) for j in jobs],
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "hasMore": total > offset + limit,
            },
        }
    }


@router.patch(
    "/move",
    summary="Move notes",
    description="File a batch of jobs under a study node, or unfile them with a null target.",
)
async def move_notes(
    body: MoveNotesRequest,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    await _check_folder(db, user.id, body.study_node_id)
    moved = await job_service.move_jobs(db, user.id, body.job_ids, body.study_node_id)
    await db.commit()
    return {"data": {"moved": moved, "study_node_id": body.study_node_id}}


@router.get(
    "/{job_id}",
    summary="Get note details",
    description="Job metadata, its notes in canonical form and its study node.",
)
async def get_note(
    job_id: str,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    job = await job_service.get_job(db, job_id, user.id, include_notes=True)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")

    data = job_service.job_to_dict(job)
    data["notes"] = [to_canonical_note(n).to_dict() for n in job.notes]
    data["study_node"] = node_to_dict(job.study_node) if job.study_node else None
    return {"data": data}


@router.put(
    "/{job_id}",
    summary="Update note details",
)
async def update_note(
    job_id: str,
    body: NoteUpdate,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    job = await job_service.get_job(db, job_id, user.id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")

    fields = body.model_dump(exclude_unset=True)
    if "lecture_title" in fields and fields["lecture_title"] is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="lecture_title cannot be null"
        )
    if fields.get("study_node_id"):
        await _check_folder(db, user.id, fields["study_node_id"])

    await job_service.update_job(db, job, **fields)
    await db.commit()
    return {"data": job_service.job_to_dict(job)}


@router.delete(
    "/{job_id}",
    summary="Delete a note",
    description="Delete the job, its notes and its stored files.",
)
async def delete_note(
    job_id: str,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
    storage: StorageService = Depends(get_storage_service),
):
    job = await job_service.get_job(db, job_id, user.id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")

    generated = [job.output_pdf_path, job.md_file_path, job.txt_file_path]
    uploads = [job.audio_file_path, job.pdf_file_path]

    await db.execute(delete(Note).where(Note.job_id == job_id))
    await db.delete(job)
    await db.commit()

    for bucket, paths in ((storage.generated_bucket, generated), (storage.uploads_bucket, uploads)):
        try:
            await storage.delete_objects(bucket, paths)
        except Exception as e:
            logger.warning(f"Could not delete files of job {job_id} from {bucket}: {e}")

    return {"data": {"message": "Note deleted successfully", "job_id": job_id}}


@router.get(
    "/{job_id}/content",
    summary="Get note Markdown",
)
async def get_note_content(
    job_id: str,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    await _owned_job(db, job_id, user)
    note = await _latest_note(db, job_id, user.id)
    if note is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")

    canonical = to_canonical_note(note)
    return {
        "data": {
            "content": canonical.markdown,
            "format": "md",
            "updatedAt": canonical.updated_at.isoformat() if canonical.updated_at else None,
        }
    }


@router.put(
    "/{job_id}/content",
    summary="Replace note Markdown",
    description="Store the Markdown body verbatim; a later GET returns it unchanged.",
)
async def put_note_content(
    job_id: str,
    body: ContentUpdate,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    job = await _owned_job(db, job_id, user)
    note = await _latest_note(db, job_id, user.id)
    fields = note_fields_for_content(body.content)

    if note is None:
        note = Note(job_id=job_id, user_id=user.id, title=job.lecture_title, **fields)
        db.add(note)
    else:
        for key, value in fields.items():
            setattr(note, key, value)
    await db.commit()

    return {"data": {"message": "Content updated successfully", "jobId": job_id}}


@router.post(
    "/{job_id}/regenerate-pdf",
    summary="Re-render the PDF",
    description="Render edited Markdown to PDF and overwrite the job's stored PDF.",
)
@rate_limit_generate()
async def regenerate_pdf(
    request: Request,
    job_id: str,
    body: RegeneratePdfRequest,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
    storage: StorageService = Depends(get_storage_service),
    renderer: PdfRenderer = Depends(get_pdf_renderer),
):
    job = await _owned_job(db, job_id, user)

    result = await renderer.render_markdown(
        body.markdown, title=body.title or job.lecture_title, generate_bookmarks=True
    )
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"PDF generation failed: {result.error}",
        )

    pdf_path = job.output_pdf_path or f"{user.id}/summaries/{job_id}_notes.pdf"
    try:
        await storage.upload_bytes(storage.generated_bucket, pdf_path, result.pdf, "application/pdf")
    except Exception as e:
        logger.error(f"PDF upload failed for job {job_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to upload PDF"
        )

    if job.output_pdf_path != pdf_path:
        await job_service.update_job(db, job, output_pdf_path=pdf_path)
        await db.commit()

    note_updated = False
    try:
        note = await _latest_note(db, job_id, user.id)
        if note is not None:
            for key, value in note_fields_for_content(body.markdown).items():
                setattr(note, key, value)
            await db.commit()
            note_updated = True
    except Exception as e:
        logger.warning(f"Could not update note content for job {job_id}: {e}")
        await db.rollback()

    return {
        "data": {
            "message": "PDF regenerated successfully",
            "pdfPath": pdf_path,
            "noteUpdated": note_updated,
        }
    }
