import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from lms.config import API_URL, API_TIMEOUT
from lms.errors import ApiError, AuthError, NetworkError
from lms.token_store import TokenStore

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"
_NO_BEARER = ("/auth/login", "/auth/register")


def _is_auth_request(path: str) -> bool:
    return any(p in path for p in _NO_BEARER)


def _unwrap(response: httpx.Response) -> Any:
    """Return the payload of a {success, data, message} envelope."""
    if response.status_code == 204 or not response.content:
        return None
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        if body.get("success") is False:
            raise ApiError(
                body.get("message") or "Request failed",
                status=response.status_code,
                data=body,
            )
        if "data" in body:
            return body["data"]
    return body


def _rewind(files):
    if not files:
        return
    values = files.values() if isinstance(files, dict) else [v for _, v in files]
    for value in values:
        handle = value[1] if isinstance(value, tuple) else value
        if hasattr(handle, "seek"):
            handle.seek(0)


class ApiClient:
    """HTTP facade for the LMS REST backend.

    Attaches the bearer token to every request except login/register. A 401
    triggers one silent token refresh followed by one retry of the original
    request; when that fails the stored tokens are cleared and AuthError is
    raised.
    """

    def __init__(
        self,
        tokens: TokenStore,
        base_url: str = API_URL,
        timeout: float = API_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        on_logout: Optional[Callable[[], None]] = None,
    ):
        self.tokens = tokens
        self.on_logout = on_logout
        self._http = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def request(self, method: str, path: str, *, params=None, json=None, data=None, files=None,
                _retry: bool = True) -> Any:
        headers = {}
        if not _is_auth_request(path):
            token = self.tokens.access_token
            if token:
                headers["Authorization"] = f"Bearer {token}"

        try:
            response = self._http.request(
                method, path, params=params, json=json, data=data, files=files, headers=headers
            )
        except httpx.TimeoutException as e:
            raise NetworkError("The server took too long to respond") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Could not reach the server: {e}") from e

        if response.status_code == 401 and not _is_auth_request(path) and path != REFRESH_PATH:
            if _retry and self._refresh():
                _rewind(files)
                return self.request(
                    method, path, params=params, json=json, data=data, files=files, _retry=False
                )
            self._hard_logout()
            raise ApiError.from_response(response)

        if response.is_error:
            raise ApiError.from_response(response)
        return _unwrap(response)

    def get(self, path: str, **kwargs) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> Any:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs) -> Any:
        return self.request("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs) -> Any:
        return self.request("DELETE", path, **kwargs)

    def _refresh(self) -> bool:
        refresh = self.tokens.refresh_token
        if not refresh:
            return False
        try:
            response = self._http.post(REFRESH_PATH, json={"refresh_token": refresh})
        except httpx.HTTPError:
            logger.warning("Token refresh request failed", exc_info=True)
            return False
        if response.is_error:
            logger.info("Token refresh rejected with status %s", response.status_code)
            return False
        try:
            payload = _unwrap(response) or {}
        except ApiError:
            return False
        issued = payload.get("tokens", payload) if isinstance(payload, dict) else {}
        access = issued.get("access") or issued.get("access_token")
        if not access:
            return False
        self.tokens.save(access, issued.get("refresh") or issued.get("refresh_token"))
        return True

    def _hard_logout(self):
        logger.info("Session expired, clearing stored tokens")
        self.tokens.clear()
        if self.on_logout:
            self.on_logout()


class _Resource:
    def __init__(self, client: ApiClient):
        self.client = client


class AuthAPI(_Resource):
    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self.client.post("/auth/login", json={"email": email, "password": password})

    def register(self, name: str, email: str, password: str, role: str = "student"):
        return self.client.post(
            "/auth/register",
            json={"name": name, "email": email, "password": password, "role": role},
        )

    def logout(self):
        return self.client.post("/auth/logout")

    def profile(self) -> Dict[str, Any]:
        data = self.client.get("/auth/profile") or {}
        return data.get("user", data) if isinstance(data, dict) else data


class UserAPI(_Resource):
    def list(self, params: Optional[dict] = None):
        return self.client.get("/users", params=params)

    def update_role(self, user_id, role: str):
        return self.client.put(f"/users/{user_id}/role", json={"role": role})

    def delete(self, user_id):
        return self.client.delete(f"/users/{user_id}")

    def update_profile(self, data: dict):
        return self.client.put("/users/profile", json=data)


class CourseAPI(_Resource):
    def approved(self, params: Optional[dict] = None):
        return self.client.get("/courses/approved", params=params)

    def get(self, course_id):
        return self.client.get(f"/courses/{course_id}")

    def create(self, data: dict):
        return self.client.post("/courses", json=data)

    def update(self, course_id, data: dict):
        return self.client.put(f"/courses/{course_id}", json=data)

    def delete(self, course_id):
        return self.client.delete(f"/courses/{course_id}")

    def enrolled(self):
        return self.client.get("/courses/enrolled")

    def instructor(self):
        return self.client.get("/courses/instructor")

    def publish(self, course_id):
        return self.client.put(f"/courses/{course_id}/publish")

    def unpublish(self, course_id):
        return self.client.put(f"/courses/{course_id}/unpublish")

    def approve(self, course_id, action: str, rejection_reason: Optional[str] = None):
        payload = {"action": action}
        if rejection_reason:
            payload["rejection_reason"] = rejection_reason
        return self.client.put(f"/courses/{course_id}/approve", json=payload)

    def pending(self):
        return self.client.get("/courses/pending")

    def rejected(self):
        return self.client.get("/courses/rejected")


class ModuleAPI(_Resource):
    def for_course(self, course_id):
        return self.client.get(f"/modules/course/{course_id}")

    def create(self, data: dict):
        return self.client.post("/modules", json=data)

    def update(self, module_id, data: dict):
        return self.client.put(f"/modules/{module_id}", json=data)

    def delete(self, module_id):
        return self.client.delete(f"/modules/{module_id}")


class LessonAPI(_Resource):
    def create(self, data: dict):
        return self.client.post("/lessons", json=data)

    def update(self, lesson_id, data: dict):
        return self.client.put(f"/lessons/{lesson_id}", json=data)

    def delete(self, lesson_id):
        return self.client.delete(f"/lessons/{lesson_id}")

    def mark_complete(self, lesson_id):
        return self.client.post(f"/lessons/{lesson_id}/complete")


class EnrollmentAPI(_Resource):
    def enroll(self, course_id):
        return self.client.post("/enrollments", json={"course_id": course_id})

    def unenroll(self, course_id):
        return self.client.delete(f"/enrollments/{course_id}")

    def list(self):
        return self.client.get("/enrollments")

    def progress(self, course_id):
        return self.client.get(f"/enrollments/{course_id}/progress")


class QuizAPI(_Resource):
    def get(self, quiz_id):
        return self.client.get(f"/quizzes/{quiz_id}")

    def for_course(self, course_id):
        return self.client.get(f"/quizzes/course/{course_id}")

    def create(self, data: dict):
        return self.client.post("/quizzes", json=data)

    def update(self, quiz_id, data: dict):
        return self.client.put(f"/quizzes/{quiz_id}", json=data)

    def delete(self, quiz_id):
        return self.client.delete(f"/quizzes/{quiz_id}")

    def publish(self, quiz_id):
        return self.client.put(f"/quizzes/{quiz_id}/publish")

    def unpublish(self, quiz_id):
        return self.client.put(f"/quizzes/{quiz_id}/unpublish")

    def add_question(self, quiz_id, data: dict):
        return self.client.post(f"/quizzes/{quiz_id}/questions", json=data)

    def delete_question(self, question_id):
        return self.client.delete(f"/quizzes/questions/{question_id}")

    def submit(self, quiz_id, answers: Dict[str, str], time_taken: int):
        return self.client.post(
            f"/quizzes/{quiz_id}/submit",
            json={"answers": answers, "time_taken": time_taken},
        )

    def attempts(self, quiz_id):
        return self.client.get(f"/quizzes/{quiz_id}/attempts")

    def statistics(self, quiz_id):
        return self.client.get(f"/quizzes/{quiz_id}/statistics")


class AssignmentAPI(_Resource):
    def get(self, assignment_id):
        return self.client.get(f"/assignments/{assignment_id}")

    def for_course(self, course_id):
        return self.client.get(f"/assignments/course/{course_id}")

    def create(self, data: dict):
        return self.client.post("/assignments", json=data)

    def update(self, assignment_id, data: dict):
        return self.client.put(f"/assignments/{assignment_id}", json=data)

    def delete(self, assignment_id):
        return self.client.delete(f"/assignments/{assignment_id}")

    def submit(self, assignment_id, text: Optional[str] = None, file=None):
        """Multipart submission; file is a (filename, fileobj, content_type) tuple."""
        form = {"assignment_id": str(assignment_id)}
        if text:
            form["text_submission"] = text
        files = {"file_submission": file} if file is not None else None
        return self.client.post(f"/assignments/{assignment_id}/submit", data=form, files=files)

    def submissions(self, assignment_id):
        return self.client.get(f"/assignments/{assignment_id}/submissions")

    def grade(self, submission_id, grade: float, feedback: str = ""):
        return self.client.put(
            f"/assignments/submissions/{submission_id}/grade",
            json={"grade": grade, "feedback": feedback},
        )

    def due_soon(self):
        return self.client.get("/assignments/due-soon")


class NotificationAPI(_Resource):
    def list(self):
        return self.client.get("/notifications")

    def mark_read(self, notification_id):
        return self.client.put(f"/notifications/{notification_id}/read")

    def mark_all_read(self):
        return self.client.put("/notifications/read-all")


class ReviewAPI(_Resource):
    def for_course(self, course_id):
        return self.client.get("/reviews", params={"courseId": course_id})

    def create(self, data: dict):
        return self.client.post("/reviews", json=data)


class FileAPI(_Resource):
    def allowed_types(self) -> List[str]:
        data = self.client.get("/files/allowed-types") or {}
        if isinstance(data, dict):
            return list(data.get("allowedExtensions") or [])
        return list(data)

    def upload(self, file):
        return self.client.post("/files/upload", files={"file": file})

    def upload_many(self, files: list):
        return self.client.post("/files/upload-multiple", files=[("files", f) for f in files])


class LmsApi:
    """All resource groups over one authenticated client."""

    def __init__(self, client: ApiClient):
        self.client = client
        self.auth = AuthAPI(client)
        self.users = UserAPI(client)
        self.courses = CourseAPI(client)
        self.modules = ModuleAPI(client)
        self.lessons = LessonAPI(client)
        self.enrollments = EnrollmentAPI(client)
        self.quizzes = QuizAPI(client)
        self.assignments = AssignmentAPI(client)
        self.notifications = NotificationAPI(client)
        self.reviews = ReviewAPI(client)
        self.files = FileAPI(client)
