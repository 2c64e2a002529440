import pytest

from lms import guards
from lms.guards import Access, check_access
from lms.models import User


class _Stopped(Exception):
    pass


class _FakeStreamlit:
    def __init__(self):
        self.session_state = type("State", (), {})()
        self.messages = []

    def info(self, text):
        self.messages.append(("info", text))

    def error(self, text):
        self.messages.append(("error", text))

    def page_link(self, page, **_kwargs):
        self.messages.append(("link", page))

    def stop(self):
        raise _Stopped()


@pytest.fixture
def fake_st(monkeypatch):
    fake = _FakeStreamlit()
    monkeypatch.setattr(guards, "st", fake)
    return fake


def test_check_access():
    student = User(id=1, role="student")
    assert check_access(None) is Access.LOGIN
    assert check_access(None, ["admin"]) is Access.LOGIN
    assert check_access(student) is Access.ALLOW
    assert check_access(student, ["student", "admin"]) is Access.ALLOW
    assert check_access(student, ["admin"]) is Access.UNAUTHORIZED


def test_require_auth_remembers_page_and_stops(fake_st):
    with pytest.raises(_Stopped):
        guards.require_auth(None, page="pages/3_Quiz.py")

    assert fake_st.session_state.redirect_after_login == "pages/3_Quiz.py"
    assert fake_st.messages[0][0] == "info"


def test_require_role_blocks_wrong_role(fake_st):
    with pytest.raises(_Stopped):
        guards.require_role(User(role="student"), "admin")

    assert fake_st.messages[0][0] == "error"
    assert ("link", "app.py") in fake_st.messages


def test_require_role_allows_matching_role(fake_st):
    admin = User(id=1, role="admin")
    assert guards.require_role(admin, "admin") is admin
    assert fake_st.messages == []
