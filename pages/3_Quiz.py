import logging

import streamlit as st

from lms import auth, queries
from lms.app_state import (
    init_app, get_api, get_cache, get_quiz_session, drop_quiz_session,
)
from lms.errors import ApiError, QuizStateError
from lms.guards import require_auth
from lms.quiz_results import format_clock, is_low_time
from lms.quiz_session import QuizPhase, attempts_left
from lms.ui import apply_global_styles, hero, render_sidebar
from lms.validation import to_id

logger = logging.getLogger(__name__)

st.set_page_config(page_title="Quiz", page_icon="📝", layout="wide")

init_app()
apply_global_styles()
api, cache = get_api(), get_cache()
user = auth.current_user(api, cache)
render_sidebar(user)
require_auth(user, page="pages/3_Quiz.py")

quiz_id = to_id(st.query_params.get("id") or st.session_state.selected_quiz_id)
if quiz_id is None:
    st.info("Pick a quiz from one of your courses.")
    st.page_link("pages/6_Student_Dashboard.py", label="My learning", icon="🎓")
    st.stop()
st.session_state.selected_quiz_id = quiz_id

session = get_quiz_session(quiz_id)


def send_answers(answers, time_taken):
    return queries.submit_quiz(api, cache, quiz_id, answers, time_taken)


def go_to_results():
    st.session_state.quiz_result = session.navigation_state()
    drop_quiz_session(quiz_id)
    st.switch_page("pages/4_Quiz_Results.py")


def back_link():
    if st.session_state.selected_course_id:
        st.page_link("pages/2_Course_Player.py", label="Back to course", icon="⬅️")
    else:
        st.page_link("pages/6_Student_Dashboard.py", label="My learning", icon="🎓")


# ---------------------------------------------------------------- loading

if session.phase is QuizPhase.LOADING:
    with st.spinner("Loading quiz..."):
        try:
            quiz = queries.quiz(api, cache, quiz_id)
            attempts = queries.quiz_attempts(api, cache, quiz_id) if quiz else []
        except ApiError as e:
            if e.status == 404:
                quiz, attempts = None, []
            else:
                logger.exception("Quiz %s load failed", quiz_id)
                st.error(f"Could not load the quiz: {e.message}")
                if st.button("Try again"):
                    st.rerun()
                st.stop()
    session.load(quiz, len(attempts))

if session.phase is QuizPhase.NOT_FOUND:
    drop_quiz_session(quiz_id)
    st.warning("Quiz not found.")
    back_link()
    st.stop()

if session.phase is QuizPhase.COMPLETED:
    go_to_results()

quiz = session.quiz
hero(quiz.title, quiz.description or "")

# ------------------------------------------------------------ not started

if session.phase is QuizPhase.NOT_STARTED:
    col1, col2, col3 = st.columns(3)
    col1.metric("Questions", len(session.questions))
    col2.metric("Time limit", f"{quiz.time_limit} min" if quiz.time_limit else "None")
    col3.metric("Passing score", f"{quiz.passing_score:g}%" if quiz.passing_score is not None else "-")

    left = attempts_left(quiz, session.attempt_count)
    if session.attempt_count:
        st.caption(
            f"Attempts used: {session.attempt_count}"
            + ("" if left is None else f" · remaining: {left}")
        )

    if not session.questions:
        st.info("This quiz has no questions yet.")
    elif session.can_start:
        if quiz.time_limit:
            st.warning(
                f"You will have {quiz.time_limit} minutes. The quiz is submitted "
                "automatically when the time runs out."
            )
        if st.button("Start quiz", type="primary"):
            try:
                session.start()
            except QuizStateError as e:
                st.error(str(e))
            else:
                st.rerun()
    else:
        st.info("You have already completed this quiz and no more attempts are allowed.")
        if st.button("View my last result"):
            st.session_state.quiz_result = None
            st.switch_page("pages/4_Quiz_Results.py")
    back_link()
    st.stop()

# ------------------------------------------------------------ in progress


def report_submit_error(e: ApiError):
    logger.exception("Quiz %s submission failed", quiz_id)
    st.toast(f"Failed to submit quiz: {e.message}", icon="⚠️")


@st.fragment(run_every=1 if session.timer_active else None)
def countdown_panel():
    if session.phase is QuizPhase.IN_PROGRESS:
        try:
            session.tick(send_answers)
        except ApiError as e:
            report_submit_error(e)
            st.rerun(scope="app")
        if session.phase is QuizPhase.COMPLETED:
            st.rerun(scope="app")

    remaining = session.time_remaining()
    css = "timer timer-low" if is_low_time(remaining) else "timer"
    st.markdown(
        f'<div class="{css}">⏱ {format_clock(remaining)}</div>',
        unsafe_allow_html=True,
    )
    if session.expired:
        st.caption("Time is up.")


if session.countdown is not None:
    countdown_panel()

st.progress(
    session.progress / 100,
    text=f"{session.answered_count} of {len(session.questions)} answered",
)

# question jump grid
grid = st.columns(min(10, len(session.questions)))
for i, question in enumerate(session.questions):
    mark = "✓" if session.answer_for(question) is not None else ""
    label = f"{i + 1}{mark}"
    if grid[i % len(grid)].button(
        label,
        key=f"jump_{quiz_id}_{i}",
        type="primary" if i == session.index else "secondary",
        use_container_width=True,
    ):
        session.go_to(i)
        st.rerun()

question = session.current_question
st.markdown(f"### Question {session.index + 1} of {len(session.questions)}")
st.markdown(question.question_text)
st.caption(f"{question.points:g} point(s)")

options = question.option_list()
current = session.answer_for(question)
widget_key = f"answer_{quiz_id}_{question.id}"


def record_answer(question_id, key):
    session.answer(question_id, st.session_state[key])


st.radio(
    "Choose an answer",
    options,
    index=options.index(current) if current in options else None,
    key=widget_key,
    on_change=record_answer,
    args=(question.id, widget_key),
)

if session.error:
    st.error(session.error)

prev_col, next_col, submit_col = st.columns(3)
with prev_col:
    if st.button("Previous", disabled=session.index == 0, use_container_width=True):
        session.previous()
        st.rerun()
with next_col:
    last = session.index >= len(session.questions) - 1
    if st.button("Next", disabled=last, use_container_width=True):
        session.next()
        st.rerun()
with submit_col:
    if st.button("Submit quiz", type="primary", disabled=not session.can_submit,
                 use_container_width=True):
        with st.spinner("Submitting quiz..."):
            try:
                session.submit(send_answers)
            except QuizStateError as e:
                st.warning(str(e))
            except ApiError as e:
                report_submit_error(e)
        if session.phase is QuizPhase.COMPLETED:
            st.toast("Quiz submitted successfully!", icon="✅")
            go_to_results()

if not session.complete and not session.expired:
    st.caption("Answer every question to enable submission.")
