"""Tests for the notes dashboard endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from mindsy.db.models import JobStatus, Note
from mindsy.services.job_service import job_service


async def _job(db: AsyncSession, user_id: str, title: str = "Cell Biology", status=None, **kwargs):
    job = await job_service.create_job(
        db,
        user_id=user_id,
        lecture_title=title,
        audio_file_path=kwargs.pop("audio_file_path", f"{user_id}/audio/{title}.mp3"),
        **kwargs,
    )
    if status is not None:
        await job_service.update_job(db, job, status=status)
    await db.commit()
    return job


async def _note(db: AsyncSession, job, **columns) -> Note:
    note = Note(job_id=job.job_id, user_id=job.user_id, title=job.lecture_title, **columns)
    db.add(note)
    await db.commit()
    return note


@pytest.mark.asyncio
async def test_create_note_job(client: AsyncClient, auth_headers: dict):
    response = await client.post(
        "/api/notes",
        headers=auth_headers,
        json={"lecture_title": "  Genetics  ", "audio_file_path": "user-1/a.mp3"},
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["job_id"].startswith("job_")
    assert data["note"]["status"] == "uploading"
    assert data["note"]["lecture_title"] == "Genetics"


@pytest.mark.asyncio
async def test_create_note_rejects_unknown_folder(client: AsyncClient, auth_headers: dict):
    response = await client.post(
        "/api/notes",
        headers=auth_headers,
        json={"lecture_title": "Genetics", "audio_file_path": "a.mp3", "study_node_id": "nope"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_filters_by_status(client: AsyncClient, auth_headers: dict, db_session, user_id, other_user_id):
    await _job(db_session, user_id, "Done", status=JobStatus.COMPLETED)
    await _job(db_session, user_id, "Running", status=JobStatus.PROCESSING)
    await _job(db_session, user_id, "Uploading")
    await _job(db_session, user_id, "Broken", status=JobStatus.FAILED)
    await _job(db_session, other_user_id, "Someone else", status=JobStatus.COMPLETED)

    response = await client.get("/api/notes", headers=auth_headers, params={"status": "processing"})
    titles = {n["lecture_title"] for n in response.json()["data"]["notes"]}
    assert titles == {"Running", "Uploading"}

    response = await client.get("/api/notes", headers=auth_headers, params={"status": "completed"})
    assert [n["lecture_title"] for n in response.json()["data"]["notes"]] == ["Done"]

    response = await client.get("/api/notes", headers=auth_headers)
    data = response.json()["data"]
    assert data["pagination"]["total"] == 4
    assert data["pagination"]["hasMore"] is False


@pytest.mark.asyncio
async def test_list_caps_page_size(client: AsyncClient, auth_headers: dict):
    response = await client.get("/api/notes", headers=auth_headers, params={"limit": 1000})
    assert response.json()["data"]["pagination"]["limit"] == 100


@pytest.mark.asyncio
async def test_get_note_returns_canonical_notes(client: AsyncClient, auth_headers: dict, db_session, user_id):
    job = await _job(db_session, user_id, status=JobStatus.COMPLETED)
    await _note(
        db_session,
        job,
        notes_column="# Mitosis\nCells divide into two identical daughter cells during mitosis.",
        summary_section="Cells divide.",
    )

    response = await client.get(f"/api/notes/{job.job_id}", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["job_id"] == job.job_id
    assert data["study_node"] is None
    note = data["notes"][0]
    assert note["schema_version"] == "legacy"
    assert note["summary"] == "Cells divide."
    assert note["markdown"].startswith("# Mitosis")


@pytest.mark.asyncio
async def test_get_other_users_note_is_404(client: AsyncClient, other_headers: dict, db_session, user_id):
    job = await _job(db_session, user_id)

    response = await client.get(f"/api/notes/{job.job_id}", headers=other_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_note_metadata(client: AsyncClient, auth_headers: dict, db_session, user_id):
    job = await _job(db_session, user_id)

    response = await client.put(
        f"/api/notes/{job.job_id}",
        headers=auth_headers,
        json={"course_subject": "BIO 101"},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["course_subject"] == "BIO 101"
    assert data["lecture_title"] == "Cell Biology"


@pytest.mark.asyncio
async def test_update_note_rejects_blank_title(client: AsyncClient, auth_headers: dict, db_session, user_id):
    job = await _job(db_session, user_id)

    response = await client.put(f"/api/notes/{job.job_id}", headers=auth_headers, json={"lecture_title": "  "})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_then_get_is_404(client: AsyncClient, auth_headers: dict, db_session, storage, user_id):
    job = await _job(db_session, user_id, status=JobStatus.COMPLETED)
    await job_service.update_job(db_session, job, output_pdf_path=f"{user_id}/1_Cell_Biology.pdf")
    await db_session.commit()
    await _note(db_session, job, content="# Cells")

    response = await client.delete(f"/api/notes/{job.job_id}", headers=auth_headers)
    assert response.status_code == 200

    response = await client.get(f"/api/notes/{job.job_id}", headers=auth_headers)
    assert response.status_code == 404
    assert (storage.generated_bucket, f"{user_id}/1_Cell_Biology.pdf") in storage.deleted


@pytest.mark.asyncio
async def test_content_roundtrip_is_byte_exact(client: AsyncClient, auth_headers: dict, db_session, user_id):
    job = await _job(db_session, user_id, status=JobStatus.COMPLETED)
    await _note(db_session, job, notes_column="old legacy body", cue_column="- Old cue question")
    content = "# Edited  \n\n*   keep  trailing spaces   \n\n<!-- NEW_PAGE -->\n\nÜnïcode ✓\n"

    response = await client.put(
        f"/api/notes/{job.job_id}/content", headers=auth_headers, json={"content": content}
    )
    assert response.status_code == 200

    response = await client.get(f"/api/notes/{job.job_id}/content", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["content"] == content
    assert response.json()["data"]["format"] == "md"


@pytest.mark.asyncio
async def test_put_content_creates_missing_note(client: AsyncClient, auth_headers: dict, db_session, user_id):
    job = await _job(db_session, user_id)

    response = await client.get(f"/api/notes/{job.job_id}/content", headers=auth_headers)
    assert response.status_code == 404

    await client.put(f"/api/notes/{job.job_id}/content", headers=auth_headers, json={"content": "# New"})
    response = await client.get(f"/api/notes/{job.job_id}/content", headers=auth_headers)
    assert response.json()["data"]["content"] == "# New"


@pytest.mark.asyncio
async def test_content_of_other_users_job_is_403(client: AsyncClient, other_headers: dict, db_session, user_id):
    job = await _job(db_session, user_id)
    await _note(db_session, job, content="# Private")

    response = await client.get(f"/api/notes/{job.job_id}/content", headers=other_headers)
    assert response.status_code == 403

    response = await client.put(
        f"/api/notes/{job.job_id}/content", headers=other_headers, json={"content": "# Mine now"}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_content_of_missing_job_is_404(client: AsyncClient, auth_headers: dict):
    response = await client.get("/api/notes/job_0_missing/content", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_empty_content_is_rejected(client: AsyncClient, auth_headers: dict, db_session, user_id):
    job = await _job(db_session, user_id)

    response = await client.put(f"/api/notes/{job.job_id}/content", headers=auth_headers, json={"content": ""})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_regenerate_pdf_overwrites_stored_pdf(
    client: AsyncClient, auth_headers: dict, db_session, storage, renderer, user_id
):
    job = await _job(db_session, user_id, status=JobStatus.COMPLETED)
    await _note(db_session, job, content="# Old")

    response = await client.post(
        f"/api/notes/{job.job_id}/regenerate-pdf",
        headers=auth_headers,
        json={"markdown": "# Rewritten notes"},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["pdfPath"] == f"{user_id}/summaries/{job.job_id}_notes.pdf"
    assert data["noteUpdated"] is True
    assert storage.objects[(storage.generated_bucket, data["pdfPath"])] == b"%PDF-1.4 fake"

    response = await client.get(f"/api/notes/{job.job_id}/content", headers=auth_headers)
    assert response.json()["data"]["content"] == "# Rewritten notes"


@pytest.mark.asyncio
async def test_regenerate_pdf_render_failure(client: AsyncClient, auth_headers: dict, db_session, storage, renderer, user_id):
    job = await _job(db_session, user_id, status=JobStatus.COMPLETED)
    renderer.error = "gotenberg down"

    response = await client.post(
        f"/api/notes/{job.job_id}/regenerate-pdf", headers=auth_headers, json={"markdown": "# x"}
    )
    assert response.status_code == 500
    assert storage.objects == {}


@pytest.mark.asyncio
async def test_search_titles_content_and_folders(client: AsyncClient, auth_headers: dict, db_session, user_id):
    titled = await _job(db_session, user_id, "Quantum Mechanics", status=JobStatus.COMPLETED)
    other = await _job(db_session, user_id, "History", status=JobStatus.COMPLETED)
    await _note(db_session, other, content="The quantum revolution changed physics forever.")
    await client.post("/api/studies/nodes", headers=auth_headers, json={"name": "Quantum", "type": "subject"})

    response = await client.get("/api/notes/search", headers=auth_headers, params={"q": "QUANTUM"})
    assert response.status_code == 200
    results = response.json()["data"]["results"]
    assert [n["job_id"] for n in results["notes"]] == [titled.job_id]
    assert results["content_matches"][0]["job_id"] == other.job_id
    assert "quantum" in results["content_matches"][0]["snippet"].lower()
    assert [f["name"] for f in results["folders"]] == ["Quantum"]
    assert results["total"] == 3


@pytest.mark.asyncio
async def test_empty_search_returns_nothing(client: AsyncClient, auth_headers: dict):
    response = await client.get("/api/notes/search", headers=auth_headers, params={"q": "  "})
    assert response.json()["data"]["results"]["total"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("query, expected_title", [("_", "Lab_Report"), ("%", "100% Effort")])
async def test_search_treats_wildcards_literally(
    client: AsyncClient, auth_headers: dict, db_session, user_id, query, expected_title
):
    for title in ("Biology", "Lab_Report", "100% Effort"):
        job = await _job(db_session, user_id, title, status=JobStatus.COMPLETED)
        await _note(db_session, job, content=f"Notes for {title}")
    await client.post("/api/studies/nodes", headers=auth_headers, json={"name": "Misc", "type": "custom"})

    response = await client.get("/api/notes/search", headers=auth_headers, params={"q": query})
    results = response.json()["data"]["results"]
    assert [n["lecture_title"] for n in results["notes"]] == [expected_title]
    assert [m["title"] for m in results["content_matches"]] == [expected_title]
    assert results["folders"] == []


@pytest.mark.asyncio
async def test_move_and_list_by_study_node(client: AsyncClient, auth_headers: dict, db_session, user_id):
    parent = (await client.post(
        "/api/studies/nodes", headers=auth_headers, json={"name": "Year 1", "type": "year"}
    )).json()["data"]["node"]
    child = (await client.post(
        "/api/studies/nodes",
        headers=auth_headers,
        json={"name": "Chemistry", "type": "subject", "parent_id": parent["id"]},
    )).json()["data"]["node"]
    first = await _job(db_session, user_id, "Atoms")
    second = await _job(db_session, user_id, "Bonds")

    response = await client.patch(
        "/api/notes/move",
        headers=auth_headers,
        json={"job_ids": [first.job_id, second.job_id], "study_node_id": child["id"]},
    )
    assert response.json()["data"]["moved"] == 2

    response = await client.get(
        "/api/notes/by-study-node", headers=auth_headers, params={"study_node_id": parent["id"]}
    )
    assert response.json()["data"]["notes"] == []

    response = await client.get(
        "/api/notes/by-study-node",
        headers=auth_headers,
        params={"study_node_id": parent["id"], "include_descendants": True},
    )
    data = response.json()["data"]
    assert data["study_node"]["name"] == "Year 1"
    assert {n["lecture_title"] for n in data["notes"]} == {"Atoms", "Bonds"}
