from typing import Any, Dict, List, Optional


class ValidationError(ValueError):
    """Client-side form validation failure.

    errors maps a field name to the list of messages for that field.
    """

    def __init__(self, errors: Dict[str, List[str]], message: Optional[str] = None):
        self.errors = errors
        super().__init__(message or first_message(errors) or "Invalid input")


def first_message(errors: Dict[str, List[str]]) -> Optional[str]:
    for messages in errors.values():
        if messages:
            return messages[0]
    return None


class ApiError(Exception):
    def __init__(self, message: str, status: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.data = data

    @property
    def retryable(self) -> bool:
        return self.status is None or self.status >= 500

    @classmethod
    def from_response(cls, response) -> "ApiError":
        try:
            body = response.json()
        except ValueError:
            body = None
        message = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("detail")
        if not message:
            message = f"Request failed with status {response.status_code}"
        error_cls = AuthError if response.status_code == 401 else ApiError
        return error_cls(message, status=response.status_code, data=body)


class NetworkError(ApiError):
    """No response was received (timeout, refused connection, DNS)."""


class AuthError(ApiError):
    pass


class PayloadError(ApiError):
    """The server answered, but not with the shape the client expects."""

    @property
    def retryable(self) -> bool:
        return False


class QuizStateError(Exception):
    pass
