import logging

import pandas as pd
import streamlit as st

from lms import auth, queries
from lms.app_state import init_app, get_api, get_cache
from lms.errors import ApiError, ValidationError
from lms.grading import (
    SUBMISSION_FILTERS, filter_submissions, grading_stats, is_late, submission_status, validate_grade,
)
from lms.guards import require_role
from lms.ui import apply_global_styles, hero, notify, render_sidebar

logger = logging.getLogger(__name__)

st.set_page_config(page_title="Grading", page_icon="📝", layout="wide")

init_app()
apply_global_styles()
api, cache = get_api(), get_cache()
user = auth.current_user(api, cache)
render_sidebar(user)
require_role(user, "instructor", page="pages/8_Assignment_Grading.py")

hero("Assignment grading", "Review submissions, enter grades and leave feedback.")

try:
    my_courses = queries.instructor_courses(api, cache) or []
    all_assignments = [
        a for c in my_courses for a in queries.course_assignments(api, cache, c.id)
    ]
except ApiError as e:
    logger.exception("Grading page load failed")
    st.error(f"Could not load your assignments: {e.message}")
    st.stop()

if not all_assignments:
    st.info("None of your courses has assignments yet.")
    st.stop()

ids = [a.id for a in all_assignments]
selected = st.session_state.selected_assignment_id
assignment = st.selectbox(
    "Assignment",
    all_assignments,
    index=ids.index(selected) if selected in ids else 0,
    format_func=lambda a: a.title,
)
st.session_state.selected_assignment_id = assignment.id

try:
    subs = queries.submissions(api, cache, assignment.id)
except ApiError as e:
    logger.exception("Submissions load failed")
    st.error(f"Failed to load submissions: {e.message}")
    st.stop()

stats = grading_stats(subs, assignment)
col1, col2, col3, col4, col5 = st.columns(5)
col1.metric("Total", stats["total"])
col2.metric("Graded", stats["graded"])
col3.metric("Ungraded", stats["ungraded"])
col4.metric("Late", stats["late"])
col5.metric("Average grade", "-" if stats["average"] is None else f"{stats['average']}")

which = st.radio("Show", SUBMISSION_FILTERS, horizontal=True, format_func=str.capitalize)
shown = filter_submissions(subs, assignment, which)

if not shown:
    st.info("No submissions match this filter.")
    st.stop()

table = pd.DataFrame(
    [
        {
            "Student": s.student_name or f"#{s.student_id}",
            "Submitted": s.submitted_at,
            "Status": submission_status(s, assignment),
            "Grade": s.grade,
        }
        for s in shown
    ]
)
st.dataframe(table, hide_index=True, use_container_width=True)

st.subheader("Grade a submission")
submission = st.selectbox(
    "Submission",
    shown,
    format_func=lambda s: f"{s.student_name or s.student_id} - {submission_status(s, assignment)}",
)

with st.container(border=True):
    if is_late(submission, assignment):
        st.warning("This submission was handed in after the due date.")
    if submission.text_submission:
        st.markdown("**Text submission**")
        st.write(submission.text_submission)
    if submission.file_url:
        st.markdown(f"📎 [Download file]({submission.file_url})")

    with st.form(f"grade_{submission.id}"):
        raw_grade = st.text_input(
            f"Grade (0 - {assignment.points:g})",
            value="" if submission.grade is None else f"{submission.grade:g}",
        )
        feedback = st.text_area("Feedback", value=submission.feedback or "")
        if st.form_submit_button("Save grade", type="primary"):
            try:
                grade = validate_grade(raw_grade, assignment.points)
            except ValidationError as e:
                st.error(str(e))
            else:
                result = queries.grade_submission(api, cache, submission.id, grade, feedback)
                notify(result)
                if result.ok:
                    st.rerun()
