"""Named queries and mutations over the API facade.

Each query reads through the session QueryCache under a stable key; each
mutation calls the API, invalidates the keys whose data it changed and
returns a MutationResult the page turns into a toast.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional

from lms.api import LmsApi
from lms.courses import APPROVAL_ACTIONS
from lms.errors import ApiError, PayloadError
from lms.models import (
    Assignment, Course, Enrollment, LessonAttachment, Module, Notification, Quiz,
    QuizAttempt, Review, Submission, User, as_utc, parse,
)
from lms.query_cache import QueryCache

logger = logging.getLogger(__name__)

MINUTE = 60
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class Keys:
    AUTH = ("auth",)
    USERS = ("users",)
    COURSES = ("courses",)
    MODULES = ("modules",)
    LESSONS = ("lessons",)
    ENROLLMENTS = ("enrollments",)
    QUIZZES = ("quizzes",)
    ASSIGNMENTS = ("assignments",)
    NOTIFICATIONS = ("notifications",)
    REVIEWS = ("reviews",)
    FILES = ("files",)


@dataclass
class MutationResult:
    ok: bool
    message: str
    data: Any = None
    error: Optional[Exception] = None


def run_mutation(cache: QueryCache, action: Callable[[], Any], *, invalidate: Iterable = (),
                 success: str = "Saved", failure: str = "Request failed") -> MutationResult:
    try:
        data = action()
    except ApiError as e:
        logger.warning("%s: %s", failure, e.message)
        return MutationResult(False, e.message or failure, error=e)
    for key in invalidate:
        cache.invalidate(key)
    return MutationResult(True, success, data=data)


# ---------------------------------------------------------------- users

def users(api: LmsApi, cache: QueryCache, params: Optional[dict] = None):
    params = params or {}
    return cache.fetch(
        (*Keys.USERS, params),
        lambda: parse(User, api.users.list(params) or []),
        stale_time=2 * MINUTE,
    )


def update_profile(api: LmsApi, cache: QueryCache, data: dict) -> MutationResult:
    return run_mutation(
        cache, lambda: api.users.update_profile(data),
        invalidate=[Keys.AUTH, Keys.USERS],
        success="Profile updated",
        failure="Failed to update profile",
    )


def update_user_role(api: LmsApi, cache: QueryCache, user_id, role: str) -> MutationResult:
    return run_mutation(
        cache, lambda: api.users.update_role(user_id, role),
        invalidate=[Keys.USERS],
        success="User role updated successfully!",
        failure="Failed to update user role",
    )


def delete_user(api: LmsApi, cache: QueryCache, user_id) -> MutationResult:
    return run_mutation(
        cache, lambda: api.users.delete(user_id),
        invalidate=[Keys.USERS],
        success="User deleted successfully!",
        failure="Failed to delete user",
    )


# -------------------------------------------------------------- courses

def approved_courses(api: LmsApi, cache: QueryCache, params: Optional[dict] = None):
    params = params or {}
    return cache.fetch(
        (*Keys.COURSES, "approved", params),
        lambda: parse(Course, api.courses.approved(params) or []),
        stale_time=2 * MINUTE,
    )


def course(api: LmsApi, cache: QueryCache, course_id):
    return cache.fetch(
        (*Keys.COURSES, course_id),
        lambda: parse(Course, api.courses.get(course_id)),
        enabled=bool(course_id),
    )


def enrolled_courses(api: LmsApi, cache: QueryCache):
    return cache.fetch(
        (*Keys.COURSES, "enrolled"),
        lambda: parse(Course, api.courses.enrolled() or []),
        enabled=api.client.tokens.has_token(),
    ) or []


def instructor_courses(api: LmsApi, cache: QueryCache):
    return cache.fetch(
        (*Keys.COURSES, "instructor"),
        lambda: parse(Course, api.courses.instructor() or []),
    )


def pending_courses(api: LmsApi, cache: QueryCache, enabled: bool = True):
    return cache.fetch(
        (*Keys.COURSES, "pending"),
        lambda: parse(Course, api.courses.pending() or []),
        enabled=enabled,
    ) or []


def rejected_courses(api: LmsApi, cache: QueryCache):
    return cache.fetch(
        (*Keys.COURSES, "rejected"),
        lambda: parse(Course, api.courses.rejected() or []),
    )


def create_course(api: LmsApi, cache: QueryCache, data: dict) -> MutationResult:
    return run_mutation(
        cache, lambda: parse(Course, api.courses.create(data)),
        invalidate=[Keys.COURSES],
        success="Course created successfully!",
        failure="Failed to create course",
    )


def update_course(api: LmsApi, cache: QueryCache, course_id, data: dict) -> MutationResult:
    return run_mutation(
        cache, lambda: parse(Course, api.courses.update(course_id, data)),
        invalidate=[Keys.COURSES],
        success="Course updated successfully!",
        failure="Failed to update course",
    )


def resubmit_course(api: LmsApi, cache: QueryCache, course_id) -> MutationResult:
    return run_mutation(
        cache, lambda: parse(Course, api.courses.update(course_id, {"status": "pending"})),
        invalidate=[Keys.COURSES],
        success="Course resubmitted for review",
        failure="Failed to resubmit course",
    )


def delete_course(api: LmsApi, cache: QueryCache, course_id) -> MutationResult:
    return run_mutation(
        cache, lambda: api.courses.delete(course_id),
        invalidate=[Keys.COURSES],
        success="Course deleted",
        failure="Failed to delete course",
    )


def set_course_published(api: LmsApi, cache: QueryCache, course_id, publish: bool) -> MutationResult:
    action = api.courses.publish if publish else api.courses.unpublish
    return run_mutation(
        cache, lambda: action(course_id),
        invalidate=[Keys.COURSES],
        success="Course published!" if publish else "Course unpublished",
        failure="Failed to change course visibility",
    )


def approve_course(api: LmsApi, cache: QueryCache, course_id, action: str,
                   rejection_reason: Optional[str] = None) -> MutationResult:
    return run_mutation(
        cache, lambda: api.courses.approve(course_id, action, rejection_reason),
        invalidate=[Keys.COURSES, (*Keys.COURSES, "pending")],
        success=f"Course {APPROVAL_ACTIONS.get(action, action)} successfully!",
        failure="Failed to process course approval",
    )


# ----------------------------------------------------------- enrollments

def enrollments(api: LmsApi, cache: QueryCache):
    return cache.fetch(Keys.ENROLLMENTS, lambda: parse(Enrollment, api.enrollments.list() or []))


def enrollment_progress(api: LmsApi, cache: QueryCache, course_id):
    return cache.fetch(
        (*Keys.ENROLLMENTS, "progress", course_id),
        lambda: api.enrollments.progress(course_id),
        enabled=bool(course_id),
    )


def enroll(api: LmsApi, cache: QueryCache, course_id) -> MutationResult:
    return run_mutation(
        cache, lambda: api.enrollments.enroll(course_id),
        invalidate=[Keys.ENROLLMENTS, (*Keys.COURSES, "enrolled"), (*Keys.COURSES, "approved")],
        success="Successfully enrolled in course!",
        failure="Failed to enroll in course",
    )


def unenroll(api: LmsApi, cache: QueryCache, course_id) -> MutationResult:
    return run_mutation(
        cache, lambda: api.enrollments.unenroll(course_id),
        invalidate=[Keys.ENROLLMENTS, (*Keys.COURSES, "enrolled")],
        success="Successfully unenrolled from course",
        failure="Failed to unenroll from course",
    )


# ------------------------------------------------------ modules / lessons

def modules(api: LmsApi, cache: QueryCache, course_id):
    loaded = cache.fetch(
        (*Keys.MODULES, course_id),
        lambda: parse(Module, api.modules.for_course(course_id) or []),
        enabled=bool(course_id),
    ) or []
    return sorted(loaded, key=lambda m: (m.order, m.id or 0))


def save_module(api: LmsApi, cache: QueryCache, data: dict, module_id=None) -> MutationResult:
    if module_id:
        action = lambda: api.modules.update(module_id, data)
    else:
        action = lambda: api.modules.create(data)
    return run_mutation(
        cache, action,
        invalidate=[Keys.MODULES, Keys.LESSONS],
        success="Module saved",
        failure="Failed to save module",
    )


def delete_module(api: LmsApi, cache: QueryCache, module_id) -> MutationResult:
    return run_mutation(
        cache, lambda: api.modules.delete(module_id),
        invalidate=[Keys.MODULES, Keys.LESSONS],
        success="Module deleted",
        failure="Failed to delete module",
    )


def save_lesson(api: LmsApi, cache: QueryCache, data: dict, lesson_id=None) -> MutationResult:
    if lesson_id:
        action = lambda: api.lessons.update(lesson_id, data)
    else:
        action = lambda: api.lessons.create(data)
    return run_mutation(
        cache, action,
        invalidate=[Keys.MODULES, Keys.LESSONS],
        success="Lesson saved",
        failure="Failed to save lesson",
    )


def delete_lesson(api: LmsApi, cache: QueryCache, lesson_id) -> MutationResult:
    return run_mutation(
        cache, lambda: api.lessons.delete(lesson_id),
        invalidate=[Keys.MODULES, Keys.LESSONS],
        success="Lesson deleted",
        failure="Failed to delete lesson",
    )


def mark_lesson_complete(api: LmsApi, cache: QueryCache, lesson_id) -> MutationResult:
    return run_mutation(
        cache, lambda: api.lessons.mark_complete(lesson_id),
        invalidate=[Keys.LESSONS, Keys.MODULES, Keys.ENROLLMENTS],
        success="Lesson marked as complete!",
        failure="Failed to update lesson progress",
    )


# -------------------------------------------------------------- quizzes

def quiz(api: LmsApi, cache: QueryCache, quiz_id):
    return cache.fetch(
        (*Keys.QUIZZES, quiz_id),
        lambda: parse(Quiz, api.quizzes.get(quiz_id)),
        enabled=bool(quiz_id),
    )


def course_quizzes(api: LmsApi, cache: QueryCache, course_id):
    return cache.fetch(
        (*Keys.QUIZZES, "course", course_id),
        lambda: parse(Quiz, api.quizzes.for_course(course_id) or []),
        enabled=bool(course_id),
    ) or []


def quiz_attempts(api: LmsApi, cache: QueryCache, quiz_id):
    """Attempts of the signed-in user, newest first."""
    attempts = cache.fetch(
        (*Keys.QUIZZES, quiz_id, "attempts"),
        lambda: parse(QuizAttempt, api.quizzes.attempts(quiz_id) or []),
        stale_time=0,
        enabled=bool(quiz_id),
    ) or []
    return sorted(attempts, key=lambda a: as_utc(a.submitted_at) or _EPOCH, reverse=True)


def quiz_statistics(api: LmsApi, cache: QueryCache, quiz_id):
    return cache.fetch(
        (*Keys.QUIZZES, quiz_id, "statistics"),
        lambda: api.quizzes.statistics(quiz_id) or {},
        stale_time=MINUTE,
        enabled=bool(quiz_id),
    ) or {}


def save_quiz(api: LmsApi, cache: QueryCache, data: dict, quiz_id=None) -> MutationResult:
    if quiz_id:
        action = lambda: parse(Quiz, api.quizzes.update(quiz_id, data))
    else:
        action = lambda: parse(Quiz, api.quizzes.create(data))
    return run_mutation(
        cache, action,
        invalidate=[Keys.QUIZZES],
        success="Quiz saved",
        failure="Failed to save quiz",
    )


def delete_quiz(api: LmsApi, cache: QueryCache, quiz_id) -> MutationResult:
    return run_mutation(
        cache, lambda: api.quizzes.delete(quiz_id),
        invalidate=[Keys.QUIZZES],
        success="Quiz deleted",
        failure="Failed to delete quiz",
    )


def set_quiz_published(api: LmsApi, cache: QueryCache, quiz_id, publish: bool) -> MutationResult:
    action = api.quizzes.publish if publish else api.quizzes.unpublish
    return run_mutation(
        cache, lambda: action(quiz_id),
        invalidate=[Keys.QUIZZES],
        success="Quiz published" if publish else "Quiz unpublished",
        failure="Failed to change quiz visibility",
    )


def add_question(api: LmsApi, cache: QueryCache, quiz_id, data: dict) -> MutationResult:
    return run_mutation(
        cache, lambda: api.quizzes.add_question(quiz_id, data),
        invalidate=[Keys.QUIZZES],
        success="Question added",
        failure="Failed to add question",
    )


def delete_question(api: LmsApi, cache: QueryCache, question_id) -> MutationResult:
    return run_mutation(
        cache, lambda: api.quizzes.delete_question(question_id),
        invalidate=[Keys.QUIZZES],
        success="Question deleted",
        failure="Failed to delete question",
    )


def submit_quiz(api: LmsApi, cache: QueryCache, quiz_id, answers: dict, time_taken: int):
    """Used by QuizSession; raises so the session can return to in-progress."""
    result = api.quizzes.submit(quiz_id, answers, time_taken)
    cache.invalidate(Keys.QUIZZES)
    return result


# ---------------------------------------------------------- assignments

def assignment(api: LmsApi, cache: QueryCache, assignment_id):
    return cache.fetch(
        (*Keys.ASSIGNMENTS, assignment_id),
        lambda: parse(Assignment, api.assignments.get(assignment_id)),
        enabled=bool(assignment_id),
    )


def course_assignments(api: LmsApi, cache: QueryCache, course_id):
    return cache.fetch(
        (*Keys.ASSIGNMENTS, {"courseId": course_id}),
        lambda: parse(Assignment, api.assignments.for_course(course_id) or []),
        enabled=bool(course_id),
    ) or []


def due_soon_assignments(api: LmsApi, cache: QueryCache):
    return cache.fetch(
        (*Keys.ASSIGNMENTS, "due-soon"),
        lambda: parse(Assignment, api.assignments.due_soon() or []),
    ) or []


def submissions(api: LmsApi, cache: QueryCache, assignment_id):
    return cache.fetch(
        (*Keys.ASSIGNMENTS, assignment_id, "submissions"),
        lambda: parse(Submission, api.assignments.submissions(assignment_id) or []),
        stale_time=0,
        enabled=bool(assignment_id),
    ) or []


def save_assignment(api: LmsApi, cache: QueryCache, data: dict, assignment_id=None) -> MutationResult:
    if assignment_id:
        action = lambda: api.assignments.update(assignment_id, data)
    else:
        action = lambda: api.assignments.create(data)
    return run_mutation(
        cache, action,
        invalidate=[Keys.ASSIGNMENTS],
        success="Assignment saved",
        failure="Failed to save assignment",
    )


def delete_assignment(api: LmsApi, cache: QueryCache, assignment_id) -> MutationResult:
    return run_mutation(
        cache, lambda: api.assignments.delete(assignment_id),
        invalidate=[Keys.ASSIGNMENTS],
        success="Assignment deleted",
        failure="Failed to delete assignment",
    )


def submit_assignment(api: LmsApi, cache: QueryCache, assignment_id, text=None, file=None) -> MutationResult:
    return run_mutation(
        cache, lambda: api.assignments.submit(assignment_id, text=text, file=file),
        invalidate=[Keys.ASSIGNMENTS],
        success="Assignment submitted successfully!",
        failure="Failed to submit assignment",
    )


def grade_submission(api: LmsApi, cache: QueryCache, submission_id, grade: float,
                     feedback: str = "") -> MutationResult:
    return run_mutation(
        cache, lambda: api.assignments.grade(submission_id, grade, feedback),
        invalidate=[Keys.ASSIGNMENTS],
        success="Grade saved successfully",
        failure="Failed to save grade",
    )


# ---------------------------------------------------- notifications etc.

def notifications(api: LmsApi, cache: QueryCache):
    return cache.fetch(
        Keys.NOTIFICATIONS,
        lambda: parse(Notification, api.notifications.list() or []),
        stale_time=30,
    ) or []


def mark_notification_read(api: LmsApi, cache: QueryCache, notification_id=None) -> MutationResult:
    if notification_id is None:
        action = api.notifications.mark_all_read
    else:
        action = lambda: api.notifications.mark_read(notification_id)
    return run_mutation(
        cache, action,
        invalidate=[Keys.NOTIFICATIONS],
        success="Notifications updated",
        failure="Failed to update notifications",
    )


def reviews(api: LmsApi, cache: QueryCache, course_id):
    return cache.fetch(
        (*Keys.REVIEWS, course_id),
        lambda: parse(Review, api.reviews.for_course(course_id) or []),
        enabled=bool(course_id),
    ) or []


def create_review(api: LmsApi, cache: QueryCache, data: dict) -> MutationResult:
    return run_mutation(
        cache, lambda: api.reviews.create(data),
        invalidate=[Keys.REVIEWS],
        success="Review submitted successfully!",
        failure="Failed to submit review",
    )


def allowed_file_types(api: LmsApi, cache: QueryCache):
    return cache.fetch((*Keys.FILES, "allowed-types"), api.files.allowed_types) or []


def _uploaded(item) -> LessonAttachment:
    attachment = LessonAttachment.from_upload(item) if isinstance(item, dict) else None
    if attachment is None or not attachment.url:
        raise PayloadError("Upload finished but the server returned no file URL")
    return attachment


def upload_file(api: LmsApi, file) -> LessonAttachment:
    """Upload one (filename, reader, content_type) tuple. Raises ApiError."""
    payload = api.files.upload(file)
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    return _uploaded(payload)


def upload_files(api: LmsApi, files: list) -> List[LessonAttachment]:
    payload = api.files.upload_many(files)
    if isinstance(payload, dict):
        payload = payload.get("files") or [payload]
    attachments = [_uploaded(item) for item in payload or []]
    if len(attachments) != len(files):
        raise PayloadError("Upload finished but the server did not return every file URL")
    return attachments
