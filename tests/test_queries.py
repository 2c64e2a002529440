import io
import json

import httpx
import pytest

from conftest import fail, ok
from lms import auth, queries
from lms.errors import ApiError
from lms.models import Course


def test_mutation_invalidates_related_queries(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/courses/enrolled", ok([]), ok([{"id": 4, "title": "Go"}]))
    backend.add("GET", "/enrollments", ok([]))
    backend.add("POST", "/enrollments", ok({"id": 1}))

    assert queries.enrolled_courses(api, cache) == []
    queries.enrollments(api, cache)
    result = queries.enroll(api, cache, 4)

    assert result.ok
    assert result.message == "Successfully enrolled in course!"
    enrolled = queries.enrolled_courses(api, cache)
    assert [c.title for c in enrolled] == ["Go"]
    assert len(backend.calls("GET", "/courses/enrolled")) == 2


def test_failed_mutation_returns_message_and_keeps_cache(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/courses/approved", ok([{"id": 1, "title": "A"}]))
    backend.add("POST", "/enrollments", fail(400, "Already enrolled"))

    queries.approved_courses(api, cache)
    result = queries.enroll(api, cache, 1)

    assert not result.ok
    assert result.message == "Already enrolled"
    queries.approved_courses(api, cache)
    assert len(backend.calls("GET", "/courses/approved")) == 1


def test_enrolled_courses_disabled_without_token(api, cache, backend):
    assert queries.enrolled_courses(api, cache) == []
    assert backend.requests == []


def test_queries_parse_models(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/courses/3", ok({"id": 3, "title": "Rust", "status": "approved", "extra": 1}))

    course = queries.course(api, cache, 3)

    assert isinstance(course, Course)
    assert course.status == "approved"


def test_modules_sorted_by_order(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/modules/course/2", ok([
        {"id": 10, "title": "Second", "order": 2},
        {"id": 11, "title": "First", "order": 1},
    ]))

    assert [m.title for m in queries.modules(api, cache, 2)] == ["First", "Second"]


def test_quiz_attempts_newest_first_and_never_cached(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/quizzes/5/attempts", ok([
        {"id": 1, "score": 1, "submitted_at": "2026-01-01T10:00:00"},
        {"id": 2, "score": 2, "submitted_at": "2026-01-02T10:00:00+00:00"},
        {"id": 3, "score": 0, "submitted_at": None},
    ]))

    attempts = queries.quiz_attempts(api, cache, 5)
    queries.quiz_attempts(api, cache, 5)

    assert [a.id for a in attempts] == [2, 1, 3]
    assert len(backend.calls("GET", "/quizzes/5/attempts")) == 2


def test_submit_quiz_invalidates_quiz_queries(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/quizzes/5", ok({"id": 5, "title": "Q"}))
    backend.add("POST", "/quizzes/5/submit", ok({"score": 1}))

    queries.quiz(api, cache, 5)
    assert queries.submit_quiz(api, cache, 5, {"1": "A"}, 30) == {"score": 1}
    queries.quiz(api, cache, 5)

    assert len(backend.calls("GET", "/quizzes/5")) == 2


def test_submit_quiz_raises_on_failure(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("POST", "/quizzes/5/submit", fail(503, "busy"))

    with pytest.raises(ApiError) as exc:
        queries.submit_quiz(api, cache, 5, {}, 1)
    assert exc.value.status == 503
    assert len(backend.calls("POST", "/quizzes/5/submit")) == 1


def test_approve_course_message_and_pending_refresh(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/courses/pending", ok([{"id": 8, "status": "pending"}]), ok([]))
    backend.add("PUT", "/courses/8/approve", ok({}))

    assert len(queries.pending_courses(api, cache)) == 1
    result = queries.approve_course(api, cache, 8, "reject", "Too short")

    assert result.message == "Course rejected successfully!"
    assert queries.pending_courses(api, cache) == []


def test_query_retries_network_errors(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/notifications", httpx.ConnectError("flaky"), ok([{"id": 1, "title": "Hi"}]))

    inbox = queries.notifications(api, cache)

    assert [n.title for n in inbox] == ["Hi"]
    assert len(backend.calls("GET", "/notifications")) == 2


def test_mark_all_notifications_read(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("PUT", "/notifications/read-all", ok({}))

    assert queries.mark_notification_read(api, cache).ok
    assert backend.requests[0].url.path == "/api/notifications/read-all"


def test_modules_with_attachment_objects_load(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/modules/course/1", ok([{
        "id": 1, "title": "Intro", "lessons": [{
            "id": 5, "title": "Welcome",
            "attachments": [
                {"name": "notes.pdf", "url": "https://cdn.test/notes.pdf", "type": "application/pdf", "size": 2048},
                "https://cdn.test/legacy/slides.pptx",
            ],
        }],
    }]))

    (module,) = queries.modules(api, cache, 1)

    notes, slides = module.lessons[0].attachments
    assert (notes.name, notes.size) == ("notes.pdf", 2048)
    assert (slides.name, slides.url) == ("slides.pptx", "https://cdn.test/legacy/slides.pptx")


def test_malformed_payload_is_an_api_error_and_not_retried(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/modules/course/1", ok([{"id": 1, "lessons": [{"attachments": [42]}]}]))

    with pytest.raises(ApiError) as exc:
        queries.modules(api, cache, 1)

    assert "cannot read" in exc.value.message
    assert len(backend.calls("GET", "/modules/course/1")) == 1


def test_upload_file_returns_attachment(api, backend, tokens):
    tokens.save("t")
    backend.add("POST", "/files/upload", ok({
        "fileName": "intro.mp4", "fileUrl": "https://cdn.test/intro.mp4",
        "fileType": "video/mp4", "fileSize": 1000,
    }))

    video = queries.upload_file(api, ("intro.mp4", io.BytesIO(b"\x00" * 1000), "video/mp4"))

    assert video.url == "https://cdn.test/intro.mp4"
    assert video.type == "video/mp4"


def test_upload_files_needs_a_url_per_file(api, backend, tokens):
    tokens.save("t")
    files = [("a.txt", io.BytesIO(b"a"), "text/plain"), ("b.txt", io.BytesIO(b"b"), "text/plain")]
    backend.add("POST", "/files/upload-multiple",
                ok([{"originalName": "a.txt", "url": "https://cdn.test/a.txt"},
                    {"originalName": "b.txt", "url": "https://cdn.test/b.txt"}]),
                ok([{"originalName": "a.txt", "url": "https://cdn.test/a.txt"}]))

    assert [a.name for a in queries.upload_files(api, files)] == ["a.txt", "b.txt"]
    with pytest.raises(ApiError):
        queries.upload_files(api, files)


def test_quiz_statistics_cached_per_quiz(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/quizzes/4/statistics", ok({"totalAttempts": 3}))

    assert queries.quiz_statistics(api, cache, 4) == {"totalAttempts": 3}
    queries.quiz_statistics(api, cache, 4)

    assert len(backend.calls("GET", "/quizzes/4/statistics")) == 1


def test_profile_update_refreshes_current_user(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/auth/profile", ok({"user": {"id": 1, "name": "Ann"}}),
                ok({"user": {"id": 1, "name": "Ann Lee"}}))
    backend.add("PUT", "/users/profile", ok({"id": 1, "name": "Ann Lee"}))

    assert auth.current_user(api, cache).name == "Ann"
    result = queries.update_profile(api, cache, {"name": "Ann Lee"})

    assert result.ok
    assert json.loads(backend.calls("PUT", "/users/profile")[0].content) == {"name": "Ann Lee"}
    assert auth.current_user(api, cache).name == "Ann Lee"


def test_delete_course_invalidates_instructor_list(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/courses/instructor", ok([{"id": 2, "status": "draft"}]), ok([]))
    backend.add("DELETE", "/courses/2", ok(None))

    queries.instructor_courses(api, cache)
    assert queries.delete_course(api, cache, 2).ok
    assert queries.instructor_courses(api, cache) == []
