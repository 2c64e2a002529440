import logging

import streamlit as st

from lms.api import ApiClient, LmsApi
from lms.logging_config import setup_logging
from lms.query_cache import QueryCache
from lms.quiz_session import QuizSession
from lms.token_store import TokenStore
from lms.validation import to_id

logger = logging.getLogger(__name__)


def init_app():
    setup_logging()

    # per-browser token storage, the session's equivalent of localStorage
    if "token_storage" not in st.session_state:
        st.session_state.token_storage = {}

    if "tokens" not in st.session_state:
        st.session_state.tokens = TokenStore(st.session_state.token_storage)

    if "query_cache" not in st.session_state:
        st.session_state.query_cache = QueryCache()

    if "api" not in st.session_state:
        client = ApiClient(st.session_state.tokens, on_logout=on_logout)
        st.session_state.api = LmsApi(client)

    if "quiz_sessions" not in st.session_state:
        st.session_state.quiz_sessions = {}

    # navigation slots, set before st.switch_page
    for slot in (
        "selected_course_id",
        "selected_quiz_id",
        "selected_assignment_id",
        "quiz_result",
        "redirect_after_login",
    ):
        if slot not in st.session_state:
            st.session_state[slot] = None


def get_api() -> LmsApi:
    return st.session_state.api


def get_cache() -> QueryCache:
    return st.session_state.query_cache


def on_logout():
    """Called by the API client after a failed token refresh."""
    logger.info("Clearing session after forced logout")
    st.session_state.query_cache.clear()
    st.session_state.quiz_sessions = {}
    st.session_state.logged_out_notice = True


def get_quiz_session(quiz_id) -> QuizSession:
    """One session per quiz; "7" from the URL and 7 from a slot are the same quiz."""
    quiz_id = to_id(quiz_id)
    sessions = st.session_state.quiz_sessions
    if quiz_id not in sessions:
        sessions[quiz_id] = QuizSession(quiz_id)
    return sessions[quiz_id]


def drop_quiz_session(quiz_id):
    st.session_state.quiz_sessions.pop(to_id(quiz_id), None)


def open_page(page: str, **slots):
    """Fill navigation slots and switch to another page."""
    for key, value in slots.items():
        st.session_state[key] = value
    st.switch_page(page)
