"""Assignment submission and grading rules.

Late status is never stored: it is derived from submitted_at and the
assignment's due date whenever a submission is shown.
"""
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from lms.errors import ValidationError
from lms.models import Assignment, Submission, as_utc, now_utc

SUBMISSION_FILTERS = ("all", "graded", "ungraded", "late")


def validate_grade(raw: Any, points: float) -> float:
    """Parse a grade typed by the instructor; it must lie in [0, points]."""
    try:
        grade = float(str(raw).strip())
    except (TypeError, ValueError):
        raise ValidationError({"grade": ["Please enter a valid grade"]})
    if not math.isfinite(grade) or grade < 0 or grade > points:
        raise ValidationError({"grade": [f"Grade must be between 0 and {points:g}"]})
    return grade


def is_late(submission: Submission, assignment: Assignment) -> bool:
    due = as_utc(assignment.due_date)
    submitted = as_utc(submission.submitted_at)
    if due is None or submitted is None:
        return False
    return submitted > due


def is_overdue(assignment: Assignment, now: Optional[datetime] = None) -> bool:
    due = as_utc(assignment.due_date)
    if due is None:
        return False
    return (as_utc(now) or now_utc()) > due


def submission_status(submission: Optional[Submission], assignment: Assignment) -> str:
    if submission is None:
        return "Not Submitted"
    if submission.status == "draft":
        return "Draft"
    if submission.grade is not None or submission.status == "graded":
        return "Graded"
    if is_late(submission, assignment):
        return "Late Submission"
    return "Submitted"


def can_submit(assignment: Assignment, existing: Optional[Submission],
               now: Optional[datetime] = None) -> bool:
    if existing is not None and existing.status != "draft":
        return False
    return not is_overdue(assignment, now)


def validate_submission(assignment: Assignment, text: Optional[str], file=None):
    has_text = bool(text and text.strip())
    kind = assignment.submission_type
    errors: Dict[str, List[str]] = {}
    if kind == "text" and not has_text:
        errors["text"] = ["Please enter your answer"]
    elif kind == "file" and file is None:
        errors["file"] = ["Please attach a file"]
    elif not has_text and file is None:
        errors["text"] = ["Please provide either text submission or upload a file"]
    if errors:
        raise ValidationError(errors)


def filter_submissions(subs: Iterable[Submission], assignment: Assignment,
                       which: str = "all") -> List[Submission]:
    subs = list(subs)
    if which == "graded":
        return [s for s in subs if s.grade is not None]
    if which == "ungraded":
        return [s for s in subs if s.grade is None]
    if which == "late":
        return [s for s in subs if is_late(s, assignment)]
    return subs


def grading_stats(subs: Iterable[Submission], assignment: Assignment) -> Dict[str, Any]:
    subs = list(subs)
    grades = [s.grade for s in subs if s.grade is not None]
    return {
        "total": len(subs),
        "graded": len(grades),
        "ungraded": len(subs) - len(grades),
        "late": sum(1 for s in subs if is_late(s, assignment)),
        "average": round(sum(grades) / len(grades), 1) if grades else None,
    }
