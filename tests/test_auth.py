import pytest

from conftest import fail, ok
from lms import auth
from lms.errors import ApiError, ValidationError
from lms.models import User
from lms.queries import Keys


def test_anonymous_without_token_makes_no_request(api, cache, backend):
    assert auth.current_user(api, cache) is None
    assert backend.requests == []


def test_current_user_is_cached(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/auth/profile", ok({"user": {"id": 1, "email": "a@b.co", "role": "admin"}}))

    first = auth.current_user(api, cache)
    second = auth.current_user(api, cache)

    assert first.role == "admin"
    assert second.id == 1
    assert len(backend.calls("GET", "/auth/profile")) == 1


def test_profile_failure_is_not_retried_and_leaves_visitor_anonymous(api, cache, backend, tokens):
    tokens.save("t")
    backend.add("GET", "/auth/profile", fail(500, "boom"))

    assert auth.current_user(api, cache) is None
    assert len(backend.calls("GET", "/auth/profile")) == 1


def test_login_stores_tokens_and_seeds_profile(api, cache, backend, tokens):
    cache.set_data(("courses", "enrolled"), ["someone else's"])
    backend.add("POST", "/auth/login", ok({
        "user": {"id": 5, "email": "s@x.io", "role": "student", "name": "Sam"},
        "tokens": {"access": "acc", "refresh": "ref"},
    }))

    user = auth.login(api, cache, "s@x.io ", "password1")

    assert user.display_name == "Sam"
    assert tokens.access_token == "acc"
    assert tokens.refresh_token == "ref"
    assert ("courses", "enrolled") not in cache
    assert auth.current_user(api, cache).id == 5
    assert len(backend.requests) == 1


def test_login_validates_before_calling_server(api, cache, backend):
    with pytest.raises(ValidationError):
        auth.login(api, cache, "nope", "")
    assert backend.requests == []


def test_login_without_tokens_in_response_fails(api, cache, backend, tokens):
    backend.add("POST", "/auth/login", ok({"user": {"id": 1}}))

    with pytest.raises(ApiError):
        auth.login(api, cache, "a@b.co", "password1")
    assert not tokens.has_token()


def test_register_limits_self_service_roles(api, backend):
    backend.add("POST", "/auth/register", ok({"user": {"id": 9}}))

    auth.register(api, "Eve", "eve@x.io", "password1", "password1", role="admin")

    assert b'"role":"student"' in backend.requests[0].content.replace(b" ", b"")


def test_logout_clears_local_state_even_if_server_fails(api, cache, backend, tokens):
    tokens.save("t", "r")
    cache.set_data(Keys.AUTH, {"id": 1})
    backend.add("POST", "/auth/logout", fail(500, "down"))

    auth.logout(api, cache)

    assert not tokens.has_token()
    assert Keys.AUTH not in cache


def test_oauth_tokens_load_profile(api, cache, backend, tokens):
    backend.add("GET", "/auth/profile", ok({"id": 2, "email": "i@x.io", "role": "instructor"}))

    user = auth.accept_oauth_tokens(api, cache, "acc", "ref")

    assert user.role == "instructor"
    assert backend.requests[0].headers["Authorization"] == "Bearer acc"
    assert auth.home_page_for(user) == "pages/7_Instructor_Panel.py"


@pytest.mark.parametrize(
    "role,page",
    [("student", "pages/6_Student_Dashboard.py"), ("admin", "pages/9_Admin_Panel.py"),
     ("guest", "app.py")],
)
def test_home_page_by_role(role, page):
    assert auth.home_page_for(User(role=role)) == page
    assert auth.home_page_for(None) == "app.py"
