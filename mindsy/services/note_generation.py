"""Cornell-style note generation through the OpenAI chat completions API."""

import logging
import re
from dataclasses import dataclass
from typing import Literal, Optional

import openai
from openai import AsyncOpenAI

from mindsy.config import get_settings
from mindsy.services.languages import LANGUAGE_TERMS, terms_for

settings = get_settings()
logger = logging.getLogger(__name__)

FormatMode = Literal["cornell-notes", "clean-document"]

CORNELL_SYSTEM_PROMPT = (
    "You are an expert academic note-taker who creates high-quality Mindsy Notes. "
    "Your notes are well-structured, comprehensive, and help students study effectively. "
    "You create content that flows directly from cue column to detailed notes without "
    "intermediate sections."
)

CLEAN_DOCUMENT_SYSTEM_PROMPT = (
    "You are a professional document formatter specializing in cleaning and structuring "
    "text while preserving all original content. You excel at fixing spacing issues, "
    "removing artifacts, and creating beautiful readable documents."
)

CORNELL_PROMPT = """You are a world-class academic assistant and instructional designer. Your mission is to create a comprehensive, standalone study guide from the provided lecture content. The output must be perfectly structured in Markdown.
The entire document you generate, including all headings, the table of contents, cues, notes, and the summary, MUST be in the same language as the content you are given (language code: {language}).

Relevance filtering rules:
- Focus only on educational content related to the core topic. Include explanations, examples, scientific references, and practical applications.
- Exclude personal anecdotes, off-topic remarks and self-promotion that carry no educational value.

Step-by-step instructions:

1.  **{terms.table_of_contents}:** Generate a bulleted list of the main topics and sub-topics covered in the lecture, in chronological order.

2.  **Mindsy Notes:**
    *   **{terms.cue_column}:** Exam-style questions that test understanding of key concepts. Bold important terms. Keep each question concise.
    *   **{terms.detailed_notes}:** For each cue, write detailed notes that flow directly from it. Use bullet points, sub-bullets and bold text. Explain every concept as if teaching someone who missed the lecture.

3.  **{terms.comprehensive_summary}:** After the detailed notes, insert the page break marker "<!-- NEW_PAGE -->" and write a standalone, multi-paragraph expository summary that defines key terms and explains how the ideas connect.

---

**Lecture Title:** {lecture_title}
{course_line}
{source_text}

---

REQUIRED OUTPUT FORMAT:

## {terms.table_of_contents}
*   Topic 1
*   Topic 2

---

## Mindsy Notes

### {terms.cue_column}
*   Question 1
*   Question 2

<!-- NEW_PAGE -->

### {terms.detailed_notes}
#### Cue 1
*   ...

<!-- NEW_PAGE -->

## {terms.comprehensive_summary}
"""

CLEAN_DOCUMENT_PROMPT = """You are a professional document formatter. Take the raw text below and format it into a well-structured Markdown document while preserving ALL original content.

Rules:
- Do not remove, summarize, or change any information.
- Keep the author's exact wording.
- Use "{lecture_title}" as the H1 heading.
- Replace stray plus signs used as spaces with spaces, and fix broken spacing.
- Add H2/H3 headings for natural sections and convert informal lists to Markdown lists.
- Keep the language of the source text ({language}).

Content to process:
{source_text}
"""

_NOTE_TAKING_AREA = [
    re.compile(r"###?\s*Note[-\s]*Taking\s*Area\s*", re.IGNORECASE),
    re.compile(r"###?\s*Área\s*de\s*Toma\s*de\s*Notas\s*", re.IGNORECASE),
    re.compile(r"###?\s*Zone\s*de\s*Prise\s*de\s*Notes\s*", re.IGNORECASE),
    re.compile(r"\*\*Note[-\s]*Taking\s*Area\*\*", re.IGNORECASE),
    re.compile(r"\*\*Área\s*de\s*Toma\s*de\s*Notas\*\*", re.IGNORECASE),
    re.compile(r"\*\*Zone\s*de\s*Prise\s*de\s*Notes\*\*", re.IGNORECASE),
]
_CUE_HEADINGS = ["Cue Column"] + [t.cue_column for t in LANGUAGE_TERMS.values()]
_CUE_SECTION = re.compile(
    r"(### (?:" + "|".join(re.escape(h) for h in _CUE_HEADINGS) + r")[\s\S]*?)(?=### |$)"
)
_BULLET = re.compile(r"^\s*[-*+]\s*", re.MULTILINE)
_LONG_CUE = re.compile(r"\*\s+(.{100,})")


@dataclass
class NotesInput:
    """What the model is asked to turn into notes."""

    lecture_title: str
    transcript: Optional[str] = None
    pdf_text: Optional[str] = None
    course_subject: Optional[str] = None
    format_mode: FormatMode = "cornell-notes"
    detected_language: Optional[str] = None


@dataclass
class NotesResult:
    """Outcome of one generation call."""

    success: bool
    notes: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


def _split_long_cue(match: re.Match) -> str:
    item = match.group(1)
    split_at = item.find("?")
    if 20 < split_at < 80:
        return f"*   {item[:split_at + 1]}\n*   {item[split_at + 1:].strip()}"
    return match.group(0)


def format_cue_column(content: str) -> str:
    """Normalize bullets in the cue section, whatever language its heading is in."""
    match = _CUE_SECTION.search(content)
    if not match:
        return content

    section = _BULLET.sub("*   ", match.group(1))
    section = _LONG_CUE.sub(_split_long_cue, section)
    return content[: match.start()] + section + content[match.end():]


def postprocess_notes(content: str) -> str:
    """Strip stray section headings and tidy blank lines in model output."""
    if not content:
        return content

    for pattern in _NOTE_TAKING_AREA:
        content = pattern.sub("", content)
    content = re.sub(r"\n\n\n+", "\n\n", content)
    content = content.replace("\n---\n", "\n\n---\n\n")
    return format_cue_column(content).strip()


def build_prompt(notes_input: NotesInput) -> tuple[str, str]:
    """Return the (system, user) prompt pair for a request.

    Headings follow the detected language, or a guess from the source text.
    """
    if notes_input.format_mode == "clean-document":
        source = notes_input.pdf_text or notes_input.transcript or ""
        language, _ = terms_for(source, notes_input.detected_language)
        return CLEAN_DOCUMENT_SYSTEM_PROMPT, CLEAN_DOCUMENT_PROMPT.format(
            lecture_title=notes_input.lecture_title,
            source_text=source,
            language=language,
        )

    language, terms = terms_for(
        notes_input.transcript or notes_input.pdf_text, notes_input.detected_language
    )

    parts = []
    if notes_input.transcript:
        parts.append(f"**Transcript:**\n{notes_input.transcript}")
    if notes_input.pdf_text:
        parts.append(f"**Document Text:**\n{notes_input.pdf_text}")
    course_line = (
        f"**Course:** {notes_input.course_subject}" if notes_input.course_subject else ""
    )
    return CORNELL_SYSTEM_PROMPT, CORNELL_PROMPT.format(
        lecture_title=notes_input.lecture_title,
        course_line=course_line,
        source_text="\n\n".join(parts),
        language=language,
        terms=terms,
    )


class NoteGenerator:
    """Generates Markdown notes from a transcript and/or document text."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self._client = client
        self.model = model or settings.openai_model

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy initialization of the OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=settings.openai_api_key)
        return self._client

    async def generate(self, notes_input: NotesInput) -> NotesResult:
        """Generate notes. Never raises; failures come back as a result."""
        has_transcript = bool(notes_input.transcript and notes_input.transcript.strip())
        has_pdf_text = bool(notes_input.pdf_text and notes_input.pdf_text.strip())
        if not has_transcript and not has_pdf_text:
            return NotesResult(
                success=False,
                error="Either transcript (for audio) or pdf_text (for documents) is required",
                error_code="INVALID_INPUT",
            )

        system_prompt, user_prompt = build_prompt(notes_input)

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_completion_tokens=settings.openai_max_completion_tokens,
            )
        except openai.AuthenticationError:
            return NotesResult(
                success=False,
                error="OpenAI authentication failed - check API key",
                error_code="AUTHENTICATION_ERROR",
            )
        except openai.RateLimitError:
            return NotesResult(
                success=False,
                error="OpenAI rate limit exceeded - please try again later",
                error_code="RATE_LIMIT_ERROR",
            )
        except openai.OpenAIError as e:
            logger.error(f"OpenAI API error: {e}")
            return NotesResult(
                success=False, error=f"OpenAI API error: {e}", error_code="OPENAI_API_ERROR"
            )

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            return NotesResult(
                success=False,
                error="OpenAI API returned empty response",
                error_code="EMPTY_RESPONSE",
            )

        return NotesResult(success=True, notes=postprocess_notes(content))
