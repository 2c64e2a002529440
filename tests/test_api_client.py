import io
import json

import httpx
import pytest

from conftest import fail, ok
from lms.errors import ApiError, AuthError, NetworkError


def test_bearer_token_attached(api, backend, tokens):
    tokens.save("abc", "r1")
    backend.add("GET", "/courses/approved", ok([{"id": 1, "title": "Python"}]))

    data = api.courses.approved()

    assert data == [{"id": 1, "title": "Python"}]
    assert backend.requests[0].headers["Authorization"] == "Bearer abc"


def test_login_and_register_skip_bearer(api, backend, tokens):
    tokens.save("stale", "r1")
    backend.add("POST", "/auth/login", ok({"user": {"id": 1}, "tokens": {"access": "a"}}))
    backend.add("POST", "/auth/register", ok({"user": {"id": 2}}))

    api.auth.login("a@b.co", "password1")
    api.auth.register("Ann", "a@b.co", "password1", "student")

    for request in backend.requests:
        assert "Authorization" not in request.headers
    assert json.loads(backend.requests[1].content)["role"] == "student"


def test_unwraps_envelope_and_empty_body(api, backend):
    backend.add("GET", "/courses/5", ok({"id": 5}))
    backend.add("DELETE", "/courses/5", lambda request: httpx.Response(204))

    assert api.courses.get(5) == {"id": 5}
    assert api.courses.delete(5) is None


def test_success_false_envelope_raises(api, backend):
    backend.add("GET", "/courses/approved", (200, {"success": False, "message": "Nope"}))

    with pytest.raises(ApiError) as exc:
        api.courses.approved()
    assert exc.value.message == "Nope"


def test_401_refreshes_once_and_retries(api, backend, tokens, logouts):
    tokens.save("old", "refresh-1")
    backend.add("GET", "/courses/enrolled", fail(401, "Token expired"), ok([{"id": 3}]))
    backend.add("POST", "/auth/refresh", ok({"tokens": {"access": "new", "refresh": "refresh-2"}}))

    data = api.courses.enrolled()

    assert data == [{"id": 3}]
    attempts = backend.calls("GET", "/courses/enrolled")
    assert len(attempts) == 2
    assert attempts[1].headers["Authorization"] == "Bearer new"
    refresh_calls = backend.calls("POST", "/auth/refresh")
    assert len(refresh_calls) == 1
    assert json.loads(refresh_calls[0].content) == {"refresh_token": "refresh-1"}
    assert tokens.access_token == "new"
    assert tokens.refresh_token == "refresh-2"
    assert logouts == []


def test_refresh_failure_logs_out(api, backend, tokens, logouts):
    tokens.save("old", "refresh-1")
    backend.add("GET", "/auth/profile", fail(401, "Token expired"))
    backend.add("POST", "/auth/refresh", fail(401, "Refresh token invalid"))

    with pytest.raises(AuthError):
        api.auth.profile()

    assert not tokens.has_token()
    assert tokens.refresh_token is None
    assert logouts == [True]
    assert len(backend.calls("GET", "/auth/profile")) == 1


def test_second_401_after_refresh_logs_out(api, backend, tokens, logouts):
    tokens.save("old", "refresh-1")
    backend.add("GET", "/users", fail(401, "Still expired"))
    backend.add("POST", "/auth/refresh", ok({"tokens": {"access": "new"}}))

    with pytest.raises(AuthError):
        api.users.list()

    assert len(backend.calls("GET", "/users")) == 2
    assert len(backend.calls("POST", "/auth/refresh")) == 1
    assert not tokens.has_token()
    assert logouts == [True]


def test_401_without_refresh_token_logs_out_immediately(api, backend, tokens, logouts):
    tokens.save("old")
    backend.add("GET", "/notifications", fail(401))

    with pytest.raises(AuthError):
        api.notifications.list()

    assert backend.calls("POST", "/auth/refresh") == []
    assert logouts == [True]


def test_bad_login_is_not_refreshed(api, backend, tokens):
    tokens.save("keep", "r")
    backend.add("POST", "/auth/login", fail(401, "Invalid credentials"))

    with pytest.raises(AuthError) as exc:
        api.auth.login("a@b.co", "wrong-password")

    assert exc.value.message == "Invalid credentials"
    assert backend.calls("POST", "/auth/refresh") == []
    assert tokens.access_token == "keep"


def test_server_errors_carry_status_and_message(api, backend):
    backend.add("GET", "/quizzes/9", fail(500, "Database down"))
    backend.add("GET", "/quizzes/10", (404, {"detail": "Quiz not found"}))

    with pytest.raises(ApiError) as server:
        api.quizzes.get(9)
    with pytest.raises(ApiError) as missing:
        api.quizzes.get(10)

    assert server.value.status == 500
    assert server.value.message == "Database down"
    assert server.value.retryable
    assert missing.value.message == "Quiz not found"
    assert not missing.value.retryable


def test_connection_failure_is_network_error(api, backend):
    backend.add("GET", "/courses/approved", httpx.ConnectError("connection refused"))

    with pytest.raises(NetworkError) as exc:
        api.courses.approved()
    assert exc.value.status is None
    assert exc.value.retryable


def test_timeout_is_network_error(api, backend):
    backend.add("GET", "/courses/approved", httpx.ReadTimeout("too slow"))

    with pytest.raises(NetworkError):
        api.courses.approved()


def test_quiz_submit_payload(api, backend, tokens):
    tokens.save("t")
    backend.add("POST", "/quizzes/7/submit", ok({"score": 3}))

    result = api.quizzes.submit(7, {"1": "A", "2": "C"}, 95)

    assert result == {"score": 3}
    body = json.loads(backend.requests[0].content)
    assert body == {"answers": {"1": "A", "2": "C"}, "time_taken": 95}


def test_approve_sends_reason_only_when_given(api, backend, tokens):
    tokens.save("t")
    backend.add("PUT", "/courses/4/approve", ok({}))

    api.courses.approve(4, "approve")
    api.courses.approve(4, "reject", "Needs more lessons")

    first, second = (json.loads(r.content) for r in backend.requests)
    assert first == {"action": "approve"}
    assert second == {"action": "reject", "rejection_reason": "Needs more lessons"}


def test_assignment_submission_is_multipart_and_rewound_on_retry(api, backend, tokens):
    tokens.save("old", "r")
    backend.add("POST", "/assignments/3/submit", fail(401), ok({"id": 11}))
    backend.add("POST", "/auth/refresh", ok({"tokens": {"access": "new"}}))
    upload = io.BytesIO(b"%PDF-1.4 essay")

    result = api.assignments.submit(3, text="My essay", file=("essay.pdf", upload, "application/pdf"))

    assert result == {"id": 11}
    first, second = backend.calls("POST", "/assignments/3/submit")
    for request in (first, second):
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="file_submission"; filename="essay.pdf"' in request.content
        assert b"%PDF-1.4 essay" in request.content
        assert b"My essay" in request.content


def test_reviews_use_course_query_param(api, backend):
    backend.add("GET", "/reviews", ok([]))

    api.reviews.for_course(12)

    assert backend.requests[0].url.params["courseId"] == "12"


def test_allowed_types_reads_extension_list(api, backend):
    backend.add("GET", "/files/allowed-types", ok({"allowedExtensions": [".pdf", ".zip"]}))

    assert api.files.allowed_types() == [".pdf", ".zip"]


@pytest.mark.parametrize(
    "call, method, path",
    [
        (lambda api: api.users.update_profile({"name": "A"}), "PUT", "/users/profile"),
        (lambda api: api.lessons.mark_complete(8), "POST", "/lessons/8/complete"),
        (lambda api: api.quizzes.statistics(4), "GET", "/quizzes/4/statistics"),
        (lambda api: api.assignments.due_soon(), "GET", "/assignments/due-soon"),
        (lambda api: api.notifications.mark_all_read(), "PUT", "/notifications/read-all"),
        (lambda api: api.users.update_role(3, "admin"), "PUT", "/users/3/role"),
    ],
)
def test_endpoint_paths(api, backend, call, method, path):
    backend.add(method, path, ok({}))

    call(api)

    assert backend.calls(method, path)


def test_upload_many_sends_each_file_under_files(api, backend):
    backend.add("POST", "/files/upload-multiple", ok([]))

    api.files.upload_many([("a.txt", io.BytesIO(b"one"), "text/plain"),
                           ("b.txt", io.BytesIO(b"two"), "text/plain")])

    body = backend.requests[0].content
    assert body.count(b'name="files"') == 2
