import re
from typing import Any, Callable, Dict, List, Optional

from lms.errors import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8
TITLE_MAX = 200


def required(value) -> bool:
    if isinstance(value, str):
        return value.strip() != ""
    return value is not None


def email(value) -> bool:
    return bool(value) and bool(EMAIL_RE.match(str(value).strip()))


def max_length(n: int):
    return lambda value: not value or len(value) <= n


def url(value) -> bool:
    return not value or bool(re.match(r"^https?://.+", str(value)))


class FormValidator:
    """Collects per-field rules and checks a form dict against them.

    A rule is (predicate, message); predicates receive the field value and
    the whole form so cross-field checks (password confirmation) fit too.
    """

    def __init__(self):
        self.rules: Dict[str, List[tuple]] = {}

    def add_rule(self, field: str, predicate: Callable[..., bool], message: str) -> "FormValidator":
        self.rules.setdefault(field, []).append((predicate, message))
        return self

    def errors(self, data: Dict[str, Any]) -> Dict[str, List[str]]:
        found: Dict[str, List[str]] = {}
        for field, rules in self.rules.items():
            value = data.get(field)
            for predicate, message in rules:
                if not predicate(value, data):
                    found.setdefault(field, []).append(message)
        return found

    def validate(self, data: Dict[str, Any]):
        found = self.errors(data)
        if found:
            raise ValidationError(found)


def _only(check):
    return lambda value, data: check(value)


def signup_validator() -> FormValidator:
    return (
        FormValidator()
        .add_rule("name", _only(required), "Name is required")
        .add_rule("email", _only(required), "Email is required")
        .add_rule("email", lambda v, d: not required(v) or email(v), "Please enter a valid email address")
        .add_rule("password", _only(required), "Password is required")
        .add_rule(
            "password",
            lambda v, d: not required(v) or len(v) >= MIN_PASSWORD_LENGTH,
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        )
        .add_rule("confirm_password", _only(required), "Please confirm your password")
        .add_rule(
            "confirm_password",
            lambda v, d: not required(v) or v == d.get("password"),
            "Passwords do not match",
        )
    )


def login_validator() -> FormValidator:
    return (
        FormValidator()
        .add_rule("email", _only(required), "Email is required")
        .add_rule("email", lambda v, d: not required(v) or email(v), "Please enter a valid email address")
        .add_rule("password", _only(required), "Password is required")
    )


def course_errors(data: Dict[str, Any], status: str = "pending") -> Dict[str, List[str]]:
    """Title is always needed; the rest only when the course goes to review."""
    validator = (
        FormValidator()
        .add_rule("title", _only(required), "Course title is required")
        .add_rule("title", _only(max_length(TITLE_MAX)), f"Title must be at most {TITLE_MAX} characters")
    )
    if status != "draft":
        (validator
         .add_rule("description", _only(required), "Course description is required")
         .add_rule("category", _only(required), "Category is required")
         .add_rule("level", _only(required), "Difficulty level is required"))
    return validator.errors(data)


def to_id(value) -> Optional[int]:
    """Positive integer id from a query param or session slot, else None."""
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def is_valid_course_id(course_id) -> bool:
    return to_id(course_id) is not None


def lesson_errors(data: Dict[str, Any], video_upload: bool = False) -> Dict[str, List[str]]:
    """An uploaded video file stands in for the video URL."""
    validator = (
        FormValidator()
        .add_rule("title", _only(required), "Lesson title is required")
        .add_rule("video_url", _only(url), "Video URL must start with http:// or https://")
    )
    if data.get("content_type") == "video":
        if not video_upload:
            validator.add_rule("video_url", _only(required), "Video lessons need a video URL or an uploaded video")
    else:
        validator.add_rule("content", _only(required), "Text lessons need content")
    return validator.errors(data)


def question_errors(data: Dict[str, Any]) -> Dict[str, List[str]]:
    options = [o for o in (data.get("options") or []) if required(o)]
    return (
        FormValidator()
        .add_rule("question_text", _only(required), "Question text is required")
        .add_rule("options", lambda v, d: len(options) >= 2, "Provide at least two options")
        .add_rule(
            "correct_answer",
            lambda v, d: v in options,
            "The correct answer must be one of the options",
        )
        .add_rule("points", lambda v, d: v is not None and v > 0, "Points must be greater than zero")
        .errors(data)
    )


def quiz_errors(data: Dict[str, Any]) -> Dict[str, List[str]]:
    return (
        FormValidator()
        .add_rule("title", _only(required), "Quiz title is required")
        .add_rule("time_limit", lambda v, d: v is None or v > 0, "Time limit must be positive")
        .add_rule(
            "passing_score",
            lambda v, d: v is None or 0 <= v <= 100,
            "Passing score must be between 0 and 100",
        )
        .add_rule("max_attempts", lambda v, d: v is None or v >= 1, "Max attempts must be at least 1")
        .errors(data)
    )


def assignment_errors(data: Dict[str, Any]) -> Dict[str, List[str]]:
    return (
        FormValidator()
        .add_rule("title", _only(required), "Assignment title is required")
        .add_rule("points", lambda v, d: v is not None and v > 0, "Points must be greater than zero")
        .add_rule("submission_type", lambda v, d: v in ("text", "file", "both"), "Pick a submission type")
        .errors(data)
    )
