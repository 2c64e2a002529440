import logging

import streamlit as st

from lms import auth, queries
from lms.app_state import init_app, get_api, get_cache
from lms.errors import ApiError, ValidationError
from lms.grading import can_submit, is_overdue, submission_status, validate_submission
from lms.guards import require_role
from lms.ui import apply_global_styles, hero, notify, render_sidebar, show_field_errors
from lms.uploads import as_upload, format_file_size, validate_files

logger = logging.getLogger(__name__)

st.set_page_config(page_title="Assignment", page_icon="🗂️", layout="wide")

init_app()
apply_global_styles()
api, cache = get_api(), get_cache()
user = auth.current_user(api, cache)
render_sidebar(user)
require_role(user, "student", page="pages/5_Assignment.py")

assignment_id = st.query_params.get("id") or st.session_state.selected_assignment_id
if not assignment_id:
    st.info("Pick an assignment from one of your courses.")
    st.stop()

try:
    assignment = queries.assignment(api, cache, assignment_id)
    mine = queries.submissions(api, cache, assignment_id)
except ApiError as e:
    logger.exception("Assignment %s load failed", assignment_id)
    st.error(f"Failed to load assignment: {e.message}")
    st.stop()

if assignment is None:
    st.warning("Assignment not found.")
    st.stop()

submission = mine[0] if mine else None
status = submission_status(submission, assignment)

hero(assignment.title, assignment.description or "")

col1, col2, col3 = st.columns(3)
col1.metric("Points", f"{assignment.points:g}")
col2.metric(
    "Due",
    assignment.due_date.strftime("%Y-%m-%d %H:%M") if assignment.due_date else "No due date",
)
col3.metric("Status", status)

if submission is not None:
    with st.container(border=True):
        st.markdown("**Your submission**")
        if submission.submitted_at:
            st.caption(f"Submitted {submission.submitted_at.strftime('%Y-%m-%d %H:%M')}")
        if submission.text_submission:
            st.write(submission.text_submission)
        if submission.file_url:
            st.markdown(f"📎 [Download submitted file]({submission.file_url})")
        if submission.grade is not None:
            st.success(f"Grade: {submission.grade:g} / {assignment.points:g}")
            if submission.feedback:
                st.info(f"Feedback: {submission.feedback}")

if not can_submit(assignment, submission):
    if is_overdue(assignment) and submission is None:
        st.error("This assignment is overdue and no longer accepts submissions.")
    st.stop()

st.subheader("Submit your work")
text = ""
if assignment.submission_type in ("text", "both"):
    text = st.text_area(
        "Your answer",
        value=submission.text_submission if submission and submission.text_submission else "",
        height=220,
    )

uploaded = None
if assignment.submission_type in ("file", "both"):
    try:
        server_types = queries.allowed_file_types(api, cache)
    except ApiError:
        logger.warning("Could not load allowed file types", exc_info=True)
        server_types = []
    uploaded = st.file_uploader(
        "Attach a file",
        type=[t.lstrip(".") for t in server_types] or None,
    )
    if uploaded is not None:
        st.caption(f"{uploaded.name} · {format_file_size(uploaded.size)}")

if st.button("Submit assignment", type="primary"):
    try:
        validate_submission(assignment, text, uploaded)
        if uploaded is not None:
            validate_files([uploaded], server_allowed=server_types)
    except ValidationError as e:
        show_field_errors(e)
        st.stop()

    file = None
    if uploaded is not None:
        bar = st.progress(0, text="Uploading...")
        file = as_upload(uploaded, callback=lambda p: bar.progress(p, text=f"Uploading... {p}%"))
    result = queries.submit_assignment(api, cache, assignment.id, text=text or None, file=file)
    notify(result)
    if result.ok:
        st.rerun()
