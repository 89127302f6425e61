"""Tests for the generate pipeline endpoint."""

import fitz
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mindsy.db.models import Job, JobStatus, Note, Notification, Usage
from mindsy.services.job_service import job_service

AUDIO_PATH = "user-1/recordings/lecture.mp3"
SLIDES_PATH = "user-1/recordings/slides.pdf"


async def _register_job(db: AsyncSession, user_id: str, **kwargs) -> Job:
    job = await job_service.create_job(
        db,
        user_id=user_id,
        lecture_title=kwargs.pop("lecture_title", "Intro to Biology"),
        audio_file_path=kwargs.pop("audio_file_path", AUDIO_PATH),
        **kwargs,
    )
    await db.commit()
    return job


async def _reload(db: AsyncSession, job_id: str) -> Job:
    db.expire_all()
    result = await db.execute(select(Job).where(Job.job_id == job_id))
    return result.scalar_one()


def _body(**overrides) -> dict:
    body = {"audioFilePath": AUDIO_PATH, "lectureTitle": "Intro to Biology"}
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_generate_completes_job(client: AsyncClient, auth_headers: dict, db_session, storage, user_id):
    job = await _register_job(db_session, user_id)

    response = await client.post("/api/generate", headers=auth_headers, json=_body())
    assert response.status_code == 200
    data = response.json()["data"]

    assert data["jobId"] == job.job_id
    assert data["status"] == "completed"
    files = data["files"]
    assert files["pdf"].endswith("_Intro_to_Biology.pdf")
    assert files["markdown"].endswith(".md")
    assert files["transcript"].endswith(".txt")
    assert all(path.startswith(f"{user_id}/") for path in files.values())
    assert all(data["steps"].values())

    stored = {path for _, path in storage.objects}
    assert stored == set(files.values())

    job = await _reload(db_session, job.job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.output_pdf_path == files["pdf"]
    assert job.md_file_path == files["markdown"]
    assert job.txt_file_path == files["transcript"]
    assert job.processing_completed_at is not None

    note = (await db_session.execute(select(Note).where(Note.job_id == job.job_id))).scalar_one()
    assert note.content.startswith("## Table of Contents")
    assert note.transcript_text


@pytest.mark.asyncio
async def test_generate_records_usage_and_notification(
    client: AsyncClient, auth_headers: dict, db_session, user_id
):
    await _register_job(db_session, user_id)

    response = await client.post("/api/generate", headers=auth_headers, json=_body())
    assert response.status_code == 200

    usage = (await db_session.execute(select(Usage).where(Usage.user_id == user_id))).scalar_one()
    assert usage.summaries_count == 1
    assert usage.total_minutes == response.json()["data"]["durationMinutes"]

    count = await db_session.execute(
        select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
    )
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_generate_estimates_duration_from_transcript(
    client: AsyncClient, auth_headers: dict, db_session, transcriber, user_id
):
    transcriber.text = " ".join(["word"] * 300)
    await _register_job(db_session, user_id)

    response = await client.post("/api/generate", headers=auth_headers, json=_body())
    assert response.json()["data"]["durationMinutes"] == 2


@pytest.mark.asyncio
async def test_generate_prefers_supplied_duration(
    client: AsyncClient, auth_headers: dict, db_session, user_id
):
    await _register_job(db_session, user_id)

    response = await client.post(
        "/api/generate", headers=auth_headers, json=_body(durationMinutes=42.4)
    )
    assert response.json()["data"]["durationMinutes"] == 42


@pytest.mark.asyncio
async def test_generate_without_job_is_404(client: AsyncClient, auth_headers: dict, db_session, storage, transcriber):
    response = await client.post("/api/generate", headers=auth_headers, json=_body())
    assert response.status_code == 404
    assert response.json() == {"error": "No processing job found for this file"}

    assert storage.objects == {}
    assert transcriber.calls == []
    notes = await db_session.execute(select(func.count()).select_from(Note))
    assert notes.scalar() == 0


@pytest.mark.asyncio
async def test_generate_ignores_other_users_job(
    client: AsyncClient, other_headers: dict, db_session, user_id
):
    await _register_job(db_session, user_id)

    response = await client.post("/api/generate", headers=other_headers, json=_body())
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_generation_failure_marks_job_failed(
    client: AsyncClient, auth_headers: dict, db_session, storage, generator, user_id
):
    generator.error = "model unavailable"
    job = await _register_job(db_session, user_id)

    response = await client.post("/api/generate", headers=auth_headers, json=_body())
    assert response.status_code == 500
    assert "AI note generation failed" in response.json()["error"]

    job = await _reload(db_session, job.job_id)
    assert job.status == JobStatus.FAILED
    assert "model unavailable" in job.error_message
    assert storage.objects == {}

    notes = await db_session.execute(select(func.count()).select_from(Note))
    assert notes.scalar() == 0


@pytest.mark.asyncio
async def test_transcription_failure_marks_job_failed(
    client: AsyncClient, auth_headers: dict, db_session, transcriber, generator, user_id
):
    transcriber.error = "worker crashed"
    job = await _register_job(db_session, user_id)

    response = await client.post("/api/generate", headers=auth_headers, json=_body())
    assert response.status_code == 500
    assert generator.inputs == []

    job = await _reload(db_session, job.job_id)
    assert job.status == JobStatus.FAILED
    assert "Transcription failed" in job.error_message


@pytest.mark.asyncio
async def test_pdf_upload_failure_is_critical(
    client: AsyncClient, auth_headers: dict, db_session, storage, user_id
):
    storage.fail_suffixes = (".pdf",)
    job = await _register_job(db_session, user_id)

    response = await client.post("/api/generate", headers=auth_headers, json=_body())
    assert response.status_code == 500

    job = await _reload(db_session, job.job_id)
    assert job.status == JobStatus.FAILED


@pytest.mark.asyncio
async def test_secondary_upload_failure_is_reported_in_steps(
    client: AsyncClient, auth_headers: dict, db_session, storage, user_id
):
    storage.fail_suffixes = (".md",)
    job = await _register_job(db_session, user_id)

    response = await client.post("/api/generate", headers=auth_headers, json=_body())
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["steps"]["markdown_upload"] is False
    assert data["steps"]["transcript_upload"] is True
    assert data["files"]["markdown"] is None

    job = await _reload(db_session, job.job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.md_file_path is None


@pytest.mark.asyncio
async def test_store_mode_uses_clean_document_format(
    client: AsyncClient, auth_headers: dict, db_session, generator, user_id
):
    await _register_job(db_session, user_id)

    response = await client.post(
        "/api/generate", headers=auth_headers, json=_body(processingMode="store")
    )
    assert response.status_code == 200
    assert generator.inputs[0].format_mode == "clean-document"


@pytest.mark.asyncio
async def test_generate_files_note_in_owned_study_node(
    client: AsyncClient, auth_headers: dict, db_session, user_id
):
    created = await client.post(
        "/api/studies/nodes", headers=auth_headers, json={"name": "Biology", "type": "course"}
    )
    node_id = created.json()["data"]["node"]["id"]
    job = await _register_job(db_session, user_id)

    response = await client.post(
        "/api/generate", headers=auth_headers, json=_body(studyNodeId=node_id)
    )
    assert response.status_code == 200

    job = await _reload(db_session, job.job_id)
    assert job.study_node_id == node_id


def _slides_pdf(text: str) -> bytes:
    document = fitz.open()
    document.new_page().insert_text((72, 72), text)
    content = document.tobytes()
    document.close()
    return content


@pytest.mark.asyncio
async def test_generate_passes_detected_language(
    client: AsyncClient, auth_headers: dict, db_session, generator, user_id
):
    job = await _register_job(db_session, user_id)

    response = await client.post("/api/generate", headers=auth_headers, json=_body())
    assert response.status_code == 200
    assert generator.inputs[0].detected_language == "en"

    job = await _reload(db_session, job.job_id)
    assert job.processing_metadata["detected_language"] == "en"


@pytest.mark.asyncio
async def test_generate_sends_supplementary_pdf_text(
    client: AsyncClient, auth_headers: dict, db_session, storage, generator, user_id
):
    storage.objects[(storage.uploads_bucket, SLIDES_PATH)] = _slides_pdf("Chloroplast diagram")
    job = await _register_job(db_session, user_id)

    response = await client.post("/api/generate", headers=auth_headers, json=_body(pdfFilePath=SLIDES_PATH))
    assert response.status_code == 200
    assert "Chloroplast diagram" in generator.inputs[0].pdf_text

    job = await _reload(db_session, job.job_id)
    assert job.processing_metadata["pdf_text_extracted"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize("stored", [b"not a pdf at all", None])
async def test_unreadable_supplementary_pdf_is_not_fatal(
    client: AsyncClient, auth_headers: dict, db_session, storage, generator, user_id, stored
):
    if stored is not None:
        storage.objects[(storage.uploads_bucket, SLIDES_PATH)] = stored
    job = await _register_job(db_session, user_id)

    response = await client.post("/api/generate", headers=auth_headers, json=_body(pdfFilePath=SLIDES_PATH))
    assert response.status_code == 200
    assert generator.inputs[0].pdf_text is None
    assert generator.inputs[0].transcript

    job = await _reload(db_session, job.job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.processing_metadata["pdf_text_extracted"] is False
