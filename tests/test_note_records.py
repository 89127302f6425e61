"""Tests for reading note rows of either column layout."""

from mindsy.db.models import Note
from mindsy.services.note_records import (
    NO_CONTENT,
    NO_SUMMARY,
    CurrentNoteRecord,
    LegacyNoteRecord,
    classify_note_row,
    note_fields_for_content,
    parse_content_intelligently,
    to_canonical_note,
)

LECTURE = """# Photosynthesis
Plants convert light energy into chemical energy inside their chloroplasts.
## Key Points
- Chlorophyll absorbs mostly red and blue light
- Oxygen is released as a by-product of the reaction
## Summary
Photosynthesis turns light into stored chemical energy for the plant.
"""


def _row(**columns) -> Note:
    return Note(id="note-1", job_id="job_1_abc", user_id="user-1", title="Botany", **columns)


def test_parser_splits_sections():
    parsed = parse_content_intelligently(LECTURE)

    assert parsed.key_points == [
        "Chlorophyll absorbs mostly red and blue light",
        "Oxygen is released as a by-product of the reaction",
    ]
    assert "Photosynthesis turns light into stored chemical energy" in parsed.summary
    assert parsed.questions == ["What is photosynthesis?"]
    assert "chloroplasts" in parsed.clean_content


def test_parser_keeps_question_lines():
    parsed = parse_content_intelligently("# Review\nWhy do leaves change colour in autumn?\nBecause of pigments.")
    assert parsed.questions == ["Why do leaves change colour in autumn?"]


def test_parser_handles_empty_content():
    parsed = parse_content_intelligently("")
    assert parsed.summary == NO_CONTENT
    assert parsed.key_points == []


def test_row_with_content_is_current():
    record = classify_note_row(_row(content="# Notes", notes_column="ignored"))
    assert isinstance(record, CurrentNoteRecord)
    assert record.kind == "current"


def test_row_without_content_is_legacy():
    record = classify_note_row(_row(notes_column="# Notes"))
    assert isinstance(record, LegacyNoteRecord)
    assert record.kind == "legacy"


def test_empty_string_content_is_still_current():
    assert classify_note_row(_row(content="", notes_column="# Old")).kind == "current"


def test_legacy_row_uses_cue_column_and_summary_section():
    note = to_canonical_note(
        _row(
            notes_column=LECTURE,
            cue_column="- What pigment absorbs light?\n- Where does it happen?",
            summary_section="Light becomes sugar.",
            transcript_text="raw words",
        )
    )

    assert note.schema_version == "legacy"
    assert note.markdown == LECTURE
    assert note.summary == "Light becomes sugar."
    assert note.key_points[:2] == ["What pigment absorbs light?", "Where does it happen?"]
    assert note.transcript == "raw words"


def test_legacy_placeholder_summary_is_replaced():
    note = to_canonical_note(_row(notes_column=LECTURE, summary_section=NO_SUMMARY))
    assert "Photosynthesis turns light" in note.summary


def test_legacy_row_with_only_transcript():
    note = to_canonical_note(_row(transcript_text="Just the words that were spoken in the room today."))
    assert note.markdown == "Just the words that were spoken in the room today."


def test_current_row_prefers_stored_fields():
    note = to_canonical_note(_row(content=LECTURE, summary="Stored summary", key_points=["Stored point"]))

    assert note.schema_version == "current"
    assert note.markdown == LECTURE
    assert note.summary == "Stored summary"
    assert note.key_points == ["Stored point"]


def test_current_row_derives_missing_fields():
    note = to_canonical_note(_row(content=LECTURE))
    assert note.key_points[0] == "Chlorophyll absorbs mostly red and blue light"
    assert note.summary != NO_SUMMARY


def test_note_fields_for_content_keeps_markdown_verbatim():
    fields = note_fields_for_content(LECTURE + "   \n")
    assert fields["content"] == LECTURE + "   \n"
    assert fields["key_points"]
