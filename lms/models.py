import json
import logging
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from pydantic import ValidationError as SchemaError, field_validator
from sqlmodel import SQLModel, Field

from lms.errors import PayloadError

# Client-side data models for API payloads. None of these are tables; the
# backend owns persistence. Unknown fields in API JSON are ignored.

logger = logging.getLogger(__name__)

ROLES = ("student", "instructor", "admin")
COURSE_STATUSES = ("draft", "pending", "approved", "rejected", "published")
CONTENT_TYPES = ("video", "text")
SUBMISSION_TYPES = ("text", "file", "both")


def now_utc():
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """API timestamps without an offset are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class User(SQLModel):
    id: Optional[int] = None
    name: Optional[str] = None
    email: str = ""
    role: str = Field(default="student")  # student|instructor|admin
    created_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email


class Course(SQLModel):
    id: Optional[int] = None
    title: str = ""
    description: Optional[str] = None
    category: Optional[str] = None
    level: Optional[str] = None
    status: str = Field(default="draft")
    instructor_id: Optional[int] = None
    instructor_name: Optional[str] = None
    rejection_reason: Optional[str] = None
    thumbnail: Optional[str] = None
    price: float = 0  # payments are out of scope
    created_at: Optional[datetime] = None


class LessonAttachment(SQLModel):
    name: str = ""
    url: str = ""
    type: Optional[str] = None
    size: Optional[int] = None

    @classmethod
    def from_upload(cls, payload: Dict[str, Any]) -> "LessonAttachment":
        """Build from a /files/upload answer; field names vary by storage backend."""
        return cls(
            name=payload.get("fileName") or payload.get("originalName") or payload.get("name") or "",
            url=payload.get("fileUrl") or payload.get("url") or "",
            type=payload.get("fileType") or payload.get("mimeType") or payload.get("type"),
            size=payload.get("fileSize") or payload.get("size"),
        )


class Lesson(SQLModel):
    id: Optional[int] = None
    module_id: Optional[int] = None
    title: str = ""
    content_type: str = Field(default="text")  # video|text
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[int] = None  # minutes
    order: int = 0
    attachments: List[LessonAttachment] = Field(default_factory=list)
    is_completed: bool = False

    @field_validator("attachments", mode="before")
    @classmethod
    def _attachments_from_urls(cls, value):
        if isinstance(value, str):
            value = json.loads(value) if value.strip() else []
        if not value:
            return []
        # older lessons list bare URLs
        return [
            {"name": item.rstrip("/").rsplit("/", 1)[-1], "url": item} if isinstance(item, str) else item
            for item in value
        ]


class Module(SQLModel):
    id: Optional[int] = None
    course_id: Optional[int] = None
    title: str = ""
    description: Optional[str] = None
    order: int = 0
    lessons: List[Lesson] = Field(default_factory=list)

    def ordered_lessons(self) -> List[Lesson]:
        return sorted(self.lessons, key=lambda l: (l.order, l.id or 0))


class Question(SQLModel):
    id: Optional[int] = None
    question_text: str = ""
    options: Any = None  # JSON string or list
    correct_answer: Any = None
    points: float = 1

    def option_list(self) -> List[str]:
        raw = self.options
        if raw is None or raw == "":
            return []
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                # legacy rows store a plain comma separated list
                return [o.strip() for o in raw.split(",") if o.strip()]
        return [str(o) for o in raw]


class Quiz(SQLModel):
    id: Optional[int] = None
    course_id: Optional[int] = None
    lesson_id: Optional[int] = None
    title: str = ""
    description: Optional[str] = None
    questions: List[Question] = Field(default_factory=list)
    time_limit: Optional[int] = None  # minutes
    passing_score: Optional[float] = None  # percent
    allow_multiple_attempts: bool = False
    max_attempts: Optional[int] = None
    total_points: Optional[float] = None
    is_published: bool = False

    @property
    def points_total(self) -> float:
        if self.total_points:
            return self.total_points
        return sum(q.points or 0 for q in self.questions)


class QuizAttempt(SQLModel):
    id: Optional[int] = None
    quiz_id: Optional[int] = None
    user_id: Optional[int] = None
    answers: Dict[str, Any] = Field(default_factory=dict)
    score: float = 0
    time_taken: Optional[int] = None  # seconds
    passed: Optional[bool] = None
    submitted_at: Optional[datetime] = None

    @field_validator("answers", mode="before")
    @classmethod
    def _answers_from_json(cls, value):
        # some endpoints return the answer map JSON encoded
        if isinstance(value, str):
            return json.loads(value) if value.strip() else {}
        return value or {}


class Assignment(SQLModel):
    id: Optional[int] = None
    course_id: Optional[int] = None
    lesson_id: Optional[int] = None
    title: str = ""
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    points: float = 100
    submission_type: str = Field(default="both")  # text|file|both
    is_published: bool = False


class Submission(SQLModel):
    id: Optional[int] = None
    assignment_id: Optional[int] = None
    student_id: Optional[int] = None
    student_name: Optional[str] = None
    text_submission: Optional[str] = None
    file_url: Optional[str] = None
    grade: Optional[float] = None
    feedback: Optional[str] = None
    status: Optional[str] = None  # submitted|graded|late|draft
    submitted_at: Optional[datetime] = None


class Enrollment(SQLModel):
    id: Optional[int] = None
    course_id: Optional[int] = None
    user_id: Optional[int] = None
    progress: float = 0  # percent
    enrolled_at: Optional[datetime] = None
    course: Optional[Course] = None


class Notification(SQLModel):
    id: Optional[int] = None
    title: str = ""
    message: Optional[str] = None
    is_read: bool = False
    created_at: Optional[datetime] = None


class Review(SQLModel):
    id: Optional[int] = None
    course_id: Optional[int] = None
    user_name: Optional[str] = None
    rating: int = 5
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


def parse(model, payload):
    """Validate one API object, or a list of them, into model instances.

    A payload that does not fit the model raises PayloadError, so pages show
    it like any other API failure.
    """
    if payload is None:
        return None
    try:
        if isinstance(payload, list):
            return [model.model_validate(item) for item in payload]
        return model.model_validate(payload)
    except SchemaError as e:
        logger.warning("Unexpected %s payload: %s", model.__name__, e)
        raise PayloadError(f"The server sent {model.__name__.lower()} data this page cannot read") from e
