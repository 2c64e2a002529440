"""Course catalog filtering and the approval workflow.

    draft --submit--> pending --approve--> approved <--publish/unpublish--> published
                         |  ^
                    reject  resubmit
                         v  |
                       rejected
"""
from typing import Dict, Iterable, List, Optional

from lms.models import Course

APPROVAL_ACTIONS = {"approve": "approved", "reject": "rejected"}

STATUS_LABELS = {
    "draft": "Draft",
    "pending": "Pending Review",
    "approved": "Approved",
    "rejected": "Rejected",
    "published": "Published",
}

STATUS_MESSAGES = {
    "draft": "This course is a draft and is only visible to you.",
    "pending": "Your course is under review by our admin team.",
    "approved": "Your course is live and available to students!",
    "published": "Your course is live and available to students!",
    "rejected": "Your course needs revisions before it can be approved.",
}

LEVELS = ("Beginner", "Intermediate", "Advanced")


class TransitionError(ValueError):
    pass


def approval_target(course: Course, action: str) -> str:
    """Status a moderation action leads to; only pending courses qualify."""
    if action not in APPROVAL_ACTIONS:
        raise TransitionError(f"Unknown action {action!r}")
    if course.status != "pending":
        raise TransitionError(
            f"Only pending courses can be {APPROVAL_ACTIONS[action]} (status is {course.status})"
        )
    return APPROVAL_ACTIONS[action]


def can_toggle_publish(course: Course) -> bool:
    return course.status in ("approved", "published")


def can_resubmit(course: Course) -> bool:
    return course.status in ("rejected", "draft")


def status_label(status: Optional[str]) -> str:
    return STATUS_LABELS.get(status or "", STATUS_LABELS["pending"])


def status_message(status: Optional[str]) -> str:
    return STATUS_MESSAGES.get(status or "", "")


def group_by_status(courses: Iterable[Course]) -> Dict[str, List[Course]]:
    groups: Dict[str, List[Course]] = {s: [] for s in STATUS_LABELS}
    for c in courses:
        groups.setdefault(c.status, []).append(c)
    return groups


def filter_catalog(courses: Iterable[Course], search: str = "", category: Optional[str] = None,
                   level: Optional[str] = None) -> List[Course]:
    term = (search or "").strip().lower()
    out = []
    for c in courses:
        if term:
            haystack = " ".join(filter(None, (c.title, c.description, c.instructor_name))).lower()
            if term not in haystack:
                continue
        if category and category != "all" and (c.category or "") != category:
            continue
        if level and level != "all" and (c.level or "Beginner").lower() != level.lower():
            continue
        out.append(c)
    return out


def categories(courses: Iterable[Course]) -> List[str]:
    return sorted({c.category for c in courses if c.category})
