"""Reading note rows written under either column layout.

Rows in ``notes`` come in two generations:

* legacy rows keep the generated Markdown in ``notes_column`` (or only a
  ``transcript_text``), with optional ``cue_column`` and ``summary_section``;
* current rows keep it in ``content`` together with ``summary`` and a
  ``key_points`` list.

:func:`to_canonical_note` is the only place that knows about the
difference. Everything else works on :class:`CanonicalNote`.
"""

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Literal, Optional, Union

from mindsy.db.models import Note

NO_SUMMARY = "No summary available"
NO_CONTENT = "No content available"

_BULLET = re.compile(r"^[-•*]\s+")
_NUMBERED = re.compile(r"^\d+\.\s+")
_LETTERED = re.compile(r"^[a-zA-Z]\.\s+")
_UNDERLINE = re.compile(r"^[-=]{3,}$")
_ALL_CAPS = re.compile(r"^[A-Z][^a-z]*$")


# ============== Raw record shapes ==============


@dataclass
class LegacyNoteRecord:
    kind: Literal["legacy"]
    notes_column: Optional[str]
    cue_column: Optional[str]
    summary_section: Optional[str]
    transcript_text: Optional[str]


@dataclass
class CurrentNoteRecord:
    kind: Literal["current"]
    content: str
    summary: Optional[str]
    key_points: list[str]
    transcript_text: Optional[str]


RawNoteRecord = Union[LegacyNoteRecord, CurrentNoteRecord]


@dataclass
class CanonicalNote:
    """One note, independent of how its row was written."""

    id: str
    job_id: str
    user_id: str
    title: Optional[str]
    markdown: str
    summary: str
    key_points: list[str]
    questions: list[str]
    transcript: Optional[str]
    schema_version: Literal["legacy", "current"]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ParsedContent:
    """Structure recovered from free-form lecture Markdown or text."""

    questions: list[str] = field(default_factory=list)
    summary: str = ""
    key_points: list[str] = field(default_factory=list)
    clean_content: str = ""


# ============== Content parsing ==============


def _clean_text(text: str) -> str:
    text = re.sub(r"^#+\s*", "", text)
    text = re.sub(r"^\d+\.\s*", "", text)
    text = re.sub(r"^[-•*]\s*", "", text)
    return re.sub(r"\s+", " ", text).strip()


def _extract_bullets(section: str) -> list[str]:
    bullets = []
    for line in section.split("\n"):
        if _BULLET.match(line) or _NUMBERED.match(line):
            point = _clean_text(_NUMBERED.sub("", _BULLET.sub("", line)))
            if len(point) > 10:
                bullets.append(point)
    return bullets


def _summary_from_sentences(content: str) -> str:
    sentences = [s for s in re.split(r"[.!?]+", content) if len(s.strip()) > 20][:3]
    return ". ".join(sentences).strip() + "."


def _questions_from_headers(content: str) -> list[str]:
    questions = []
    for line in content.split("\n"):
        if line.startswith("#") or _ALL_CAPS.match(line):
            header = _clean_text(re.sub(r"^#+\s*", "", line))
            if len(header) > 5:
                questions.append(f"What is {header.lower()}?")
    return questions[:5]


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def parse_content_intelligently(content: Optional[str]) -> ParsedContent:
    """Split lecture content into questions, summary, key points and body.

    Sections are delimited by Markdown headings, underlined headings or ALL
    CAPS lines. Sections whose heading mentions a summary, conclusion or
    takeaway feed the summary; sections mentioning key/important points feed
    the key points; everything else is kept as body text.
    """
    if not content:
        return ParsedContent(
            questions=[], summary=NO_CONTENT, key_points=[], clean_content=NO_CONTENT
        )

    lines = [line.strip() for line in content.split("\n") if line.strip()]

    questions: list[str] = []
    key_points: list[str] = []
    summary = ""
    body_sections: list[str] = []

    current = ""
    in_summary = False
    in_key_points = False

    def close_section(section: str):
        nonlocal summary
        if not section:
            return
        if in_summary:
            summary += section + "\n"
        elif in_key_points:
            key_points.extend(_extract_bullets(section))
        else:
            body_sections.append(section)

    for i, line in enumerate(lines):
        next_line = lines[i + 1] if i + 1 < len(lines) else ""
        lowered = line.lower()
        is_header = (
            line.startswith("#")
            or bool(_UNDERLINE.match(next_line))
            or bool(_ALL_CAPS.match(line))
        )

        if is_header:
            close_section(current)
            current = line + "\n"
            in_summary = any(
                word in lowered for word in ("summary", "conclusion", "takeaway")
            )
            in_key_points = any(
                word in lowered for word in ("key", "important", "main points", "highlights")
            )
            if "?" in line or "question" in lowered:
                questions.append(_clean_text(line))
            continue

        current += line + "\n"
        if "?" in line:
            questions.append(_clean_text(line))
        if _BULLET.match(line) or _NUMBERED.match(line) or _LETTERED.match(line):
            point = _clean_text(_LETTERED.sub("", _NUMBERED.sub("", _BULLET.sub("", line))))
            if len(point) > 10:
                key_points.append(point)

    close_section(current)

    body = "\n".join(body_sections)
    if not summary.strip():
        summary = _summary_from_sentences(body)
    if not questions:
        questions.extend(_questions_from_headers(body))

    clean_content = "\n\n".join(body_sections).strip()
    return ParsedContent(
        questions=[q for q in _unique(questions) if len(q) > 10][:10],
        summary=summary.strip() or "Summary not available",
        key_points=[p for p in _unique(key_points) if len(p) > 10][:15],
        clean_content=clean_content or content,
    )


# ============== Row adapter ==============


def classify_note_row(note: Note) -> RawNoteRecord:
    """Tag a row as legacy or current. A non-null ``content`` makes it current."""
    if note.content is not None:
        return CurrentNoteRecord(
            kind="current",
            content=note.content,
            summary=note.summary,
            key_points=list(note.key_points or []),
            transcript_text=note.transcript_text,
        )
    return LegacyNoteRecord(
        kind="legacy",
        notes_column=note.notes_column,
        cue_column=note.cue_column,
        summary_section=note.summary_section,
        transcript_text=note.transcript_text,
    )


def _cue_points(cue_column: Optional[str]) -> list[str]:
    if not cue_column or not cue_column.strip():
        return []
    points = [_BULLET.sub("", line.strip()).strip() for line in cue_column.split("\n")]
    return [p for p in points if len(p) > 5]


def _from_legacy(record: LegacyNoteRecord) -> tuple[str, str, list[str], list[str]]:
    markdown = record.notes_column or record.transcript_text or ""
    parsed = parse_content_intelligently(markdown)

    summary = parsed.summary
    if record.summary_section and record.summary_section.strip() not in ("", NO_SUMMARY):
        summary = record.summary_section

    key_points = parsed.questions or parsed.key_points
    cues = _cue_points(record.cue_column)
    if cues:
        key_points = _unique(cues + key_points)[:10]

    return markdown, summary, key_points, parsed.questions


def _from_current(record: CurrentNoteRecord) -> tuple[str, str, list[str], list[str]]:
    parsed = parse_content_intelligently(record.content)
    summary = record.summary or parsed.summary
    key_points = record.key_points or parsed.key_points
    return record.content, summary, key_points, parsed.questions


def to_canonical_note(note: Note) -> CanonicalNote:
    """Map a ``notes`` row of either generation onto :class:`CanonicalNote`."""
    record = classify_note_row(note)
    if isinstance(record, CurrentNoteRecord):
        markdown, summary, key_points, questions = _from_current(record)
    else:
        markdown, summary, key_points, questions = _from_legacy(record)

    return CanonicalNote(
        id=note.id,
        job_id=note.job_id,
        user_id=note.user_id,
        title=note.title,
        markdown=markdown,
        summary=summary or NO_SUMMARY,
        key_points=key_points,
        questions=questions,
        transcript=record.transcript_text,
        schema_version=record.kind,
        created_at=note.created_at,
        updated_at=note.updated_at or note.created_at,
    )


def note_fields_for_content(markdown: str) -> dict:
    """Column values to persist for a Markdown body in the current layout."""
    parsed = parse_content_intelligently(markdown)
    return {
        "content": markdown,
        "summary": parsed.summary,
        "key_points": parsed.key_points,
    }
