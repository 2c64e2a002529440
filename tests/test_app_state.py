import pytest

from lms import app_state


class _State(dict):
    __getattr__ = dict.__getitem__
    __setattr__ = dict.__setitem__


@pytest.fixture
def session_state(monkeypatch):
    state = _State(quiz_sessions={})
    monkeypatch.setattr(app_state.st, "session_state", state)
    return state


def test_quiz_session_shared_between_url_and_slot_ids(session_state):
    from_url = app_state.get_quiz_session("7")
    from_slot = app_state.get_quiz_session(7)

    assert from_url is from_slot
    assert list(session_state.quiz_sessions) == [7]

    app_state.drop_quiz_session("7")
    assert session_state.quiz_sessions == {}
