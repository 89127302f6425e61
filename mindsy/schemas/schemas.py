"""Pydantic schemas for request/response validation."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

StudyNodeTypeName = Literal["course", "year", "subject", "semester", "custom"]
NotificationTypeName = Literal["info", "success", "warning", "error"]
NotificationCategoryName = Literal["lecture", "upload", "system", "general"]


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


# ============== Pipeline Schemas ==============


class GenerateRequest(BaseModel):
    """Body of ``POST /api/generate``. Field names follow the web client (camelCase)."""

    model_config = ConfigDict(populate_by_name=True)

    audio_file_path: str = Field(..., alias="audioFilePath", description="Path of the uploaded audio in the uploads bucket")
    lecture_title: str = Field(..., alias="lectureTitle", description="Title used for the notes and file names")
    pdf_file_path: Optional[str] = Field(None, alias="pdfFilePath", description="Optional slides uploaded alongside the audio")
    course_subject: Optional[str] = Field(None, alias="courseSubject")
    processing_mode: Literal["enhance", "store"] = Field("enhance", alias="processingMode")
    study_node_id: Optional[str] = Field(None, alias="studyNodeId")
    duration_minutes: Optional[float] = Field(None, alias="durationMinutes", description="Duration measured by the client")

    @field_validator("audio_file_path", "lecture_title")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)


# ============== Note Schemas ==============


class NoteCreate(BaseModel):
    """Register an uploaded file as a new job."""

    lecture_title: str = Field(..., max_length=255)
    audio_file_path: str
    course_subject: Optional[str] = Field(None, max_length=255)
    study_node_id: Optional[str] = None
    pdf_file_path: Optional[str] = None
    processing_mode: Literal["enhance", "store"] = "enhance"
    duration_minutes: Optional[int] = Field(None, ge=0)

    @field_validator("lecture_title", "audio_file_path")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)


class NoteUpdate(BaseModel):
    """Partial update of a job's metadata. Only sent fields are applied."""

    lecture_title: Optional[str] = Field(None, min_length=1, max_length=255)
    course_subject: Optional[str] = Field(None, max_length=255)
    study_node_id: Optional[str] = None

    @field_validator("lecture_title")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _strip_required(v)


class ContentUpdate(BaseModel):
    content: str = Field(..., min_length=1, description="Markdown body, stored verbatim")
    format: Literal["md"] = "md"


class RegeneratePdfRequest(BaseModel):
    markdown: str = Field(..., min_length=1)
    title: Optional[str] = None


class MoveNotesRequest(BaseModel):
    job_ids: list[str] = Field(..., min_length=1, max_length=500)
    study_node_id: Optional[str] = Field(None, description="Target folder, or null to unfile")


# ============== Study Node Schemas ==============


class StudyNodeCreate(BaseModel):
    name: str = Field(..., max_length=255)
    type: StudyNodeTypeName
    parent_id: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=32)
    icon: Optional[str] = Field(None, max_length=64)
    sort_order: int = 0
    metadata: Optional[dict] = None

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)


class StudyNodeUpdate(BaseModel):
    """Partial update. ``parent_id`` may be set to null to move a node to the root."""

    id: str
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[StudyNodeTypeName] = None
    description: Optional[str] = None
    is_pinned: Optional[bool] = None
    color: Optional[str] = Field(None, max_length=32)
    icon: Optional[str] = Field(None, max_length=64)
    sort_order: Optional[int] = None
    parent_id: Optional[str] = None
    metadata: Optional[dict] = None

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _strip_required(v)


# ============== Notification Schemas ==============


class NotificationCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    message: Optional[str] = None
    type: NotificationTypeName = "info"
    category: NotificationCategoryName = "general"
    related_id: Optional[str] = None
    related_type: Optional[str] = Field(None, max_length=50)
    action_url: Optional[str] = None
    metadata: Optional[dict] = None


# ============== Health & Misc Schemas ==============


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    redis: str
    storage: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
