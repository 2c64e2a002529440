import logging

import streamlit as st

from lms import auth, queries
from lms.app_state import init_app, get_api, get_cache, open_page
from lms.errors import ApiError
from lms.guards import require_auth
from lms.models import Quiz, QuizAttempt, parse
from lms.quiz_results import format_clock, grade_label, is_passed, score_percentage
from lms.quiz_session import can_attempt
from lms.ui import apply_global_styles, hero, render_sidebar
from lms.validation import to_id

logger = logging.getLogger(__name__)

st.set_page_config(page_title="Quiz results", page_icon="🏁", layout="wide")

init_app()
apply_global_styles()
api, cache = get_api(), get_cache()
user = auth.current_user(api, cache)
render_sidebar(user)
require_auth(user, page="pages/4_Quiz_Results.py")

state = st.session_state.quiz_result or {}
quiz_id = to_id(state.get("quiz_id") or st.session_state.selected_quiz_id)
if quiz_id is None:
    st.info("No quiz result to show.")
    st.stop()

try:
    attempts = queries.quiz_attempts(api, cache, quiz_id)
    if state.get("quiz"):
        quiz = Quiz.model_validate(state["quiz"])
    else:
        # page reloaded: fall back to the quiz and the latest attempt
        quiz = queries.quiz(api, cache, quiz_id)
except ApiError as e:
    logger.exception("Quiz results load failed")
    st.error(f"Could not load quiz results: {e.message}")
    st.stop()

result = None
if state.get("result"):
    result = parse(QuizAttempt, state["result"])
elif attempts:
    result = attempts[0]

if quiz is None or result is None:
    st.warning("No results found for this quiz.")
    st.stop()

total = quiz.points_total
percentage = score_percentage(result.score, total)
passed = is_passed(percentage, quiz.passing_score)

hero(f"{quiz.title} - Results", quiz.description or "")

col1, col2, col3, col4 = st.columns(4)
col1.metric("Score", f"{result.score:g}/{total:g}", f"{percentage}%")
col2.metric("Grade", grade_label(percentage))
col3.metric(
    "Time taken",
    format_clock(result.time_taken or 0),
    f"of {quiz.time_limit} min" if quiz.time_limit else None,
    delta_color="off",
)
col4.metric(
    "Submitted",
    result.submitted_at.strftime("%Y-%m-%d %H:%M") if result.submitted_at else "-",
)

if passed:
    st.success("Congratulations! You passed this quiz.")
else:
    st.error("You did not reach the passing score this time.")
if quiz.passing_score is not None:
    st.caption(f"Passing score: {quiz.passing_score:g}%")

if result.answers and quiz.questions:
    st.subheader("Answer review")
    for i, question in enumerate(quiz.questions, start=1):
        given = result.answers.get(str(question.id))
        correct = question.correct_answer
        with st.container(border=True):
            st.markdown(f"**{i}. {question.question_text}**")
            if correct is None:
                st.write(f"Your answer: {given if given is not None else '(no answer)'}")
                continue
            ok = given is not None and str(given) == str(correct)
            icon = "✅" if ok else "❌"
            st.write(f"{icon} Your answer: {given if given is not None else '(no answer)'}")
            if not ok:
                st.caption(f"Correct answer: {correct}")

left, right = st.columns(2)
with left:
    if quiz.course_id and st.button("Back to course", use_container_width=True):
        open_page("pages/2_Course_Player.py", selected_course_id=quiz.course_id, quiz_result=None)
with right:
    if can_attempt(quiz, len(attempts)) and st.button(
        "Retake quiz", type="primary", use_container_width=True
    ):
        open_page("pages/3_Quiz.py", selected_quiz_id=quiz.id, quiz_result=None)
