import logging

import altair as alt
import pandas as pd
import streamlit as st

from lms import auth, queries
from lms.app_state import init_app, get_api, get_cache
from lms.courses import TransitionError, approval_target
from lms.errors import ApiError
from lms.guards import require_role
from lms.models import ROLES
from lms.ui import apply_global_styles, hero, notify, render_sidebar

logger = logging.getLogger(__name__)

st.set_page_config(page_title="Admin panel", page_icon="🛡️", layout="wide")

init_app()
apply_global_styles()
api, cache = get_api(), get_cache()
user = auth.current_user(api, cache)
render_sidebar(user)
require_role(user, "admin", page="pages/9_Admin_Panel.py")

hero("Admin panel", "Manage users and review submitted courses.")

tab_users, tab_pending, tab_rejected = st.tabs(["Users", "Pending courses", "Rejected courses"])


def moderate(course, action, reason=None):
    try:
        approval_target(course, action)
    except TransitionError as e:
        st.error(str(e))
        return
    result = queries.approve_course(api, cache, course.id, action, reason)
    notify(result)
    if result.ok:
        st.rerun()


with tab_users:
    try:
        all_users = queries.users(api, cache) or []
    except ApiError as e:
        logger.exception("User list load failed")
        st.error(f"Could not load users: {e.message}")
        all_users = []

    if all_users:
        df = pd.DataFrame(
            [
                {"Name": u.display_name, "Email": u.email, "Role": u.role, "Joined": u.created_at}
                for u in all_users
            ]
        )
        col_table, col_chart = st.columns([3, 2])
        with col_table:
            st.dataframe(df, hide_index=True, use_container_width=True)
        with col_chart:
            counts = df.groupby("Role").size().reset_index(name="Users")
            chart = alt.Chart(counts).mark_bar(color="#4cc9f0").encode(
                x=alt.X("Role:N", title="Role", sort=list(ROLES)),
                y=alt.Y("Users:Q", title="Users"),
                tooltip=[alt.Tooltip("Role:N"), alt.Tooltip("Users:Q")],
            ).properties(height=240).configure_view(
                fill="#0b1220",
                stroke=None,
            ).configure_axis(
                labelColor="#c9d1d9",
                titleColor="#c9d1d9",
                gridColor="#1f2a3a",
                domainColor="#1f2a3a",
            )
            st.altair_chart(chart, use_container_width=True)

        st.subheader("Manage user")
        target = st.selectbox(
            "User",
            all_users,
            format_func=lambda u: f"{u.display_name} <{u.email}>",
        )
        col_role, col_delete = st.columns(2)
        with col_role:
            new_role = st.selectbox("Role", ROLES, index=ROLES.index(target.role) if target.role in ROLES else 0)
            if st.button("Update role", disabled=new_role == target.role):
                result = queries.update_user_role(api, cache, target.id, new_role)
                notify(result)
                if result.ok:
                    st.rerun()
        with col_delete:
            st.warning("Deleting a user cannot be undone.")
            confirm = st.checkbox("I understand", key=f"confirm_delete_{target.id}")
            if st.button("Delete user", disabled=not confirm or target.id == user.id):
                result = queries.delete_user(api, cache, target.id)
                notify(result)
                if result.ok:
                    st.rerun()
    else:
        st.info("No users found.")

with tab_pending:
    try:
        pending = queries.pending_courses(api, cache)
    except ApiError as e:
        logger.exception("Pending courses load failed")
        st.error(f"Could not load pending courses: {e.message}")
        pending = []

    if not pending:
        st.info("No courses waiting for review.")
    for course in pending:
        with st.container(border=True):
            st.markdown(f"**{course.title}**")
            st.caption(
                f"{course.category or 'Uncategorized'} · {course.level or '-'}"
                + (f" · by {course.instructor_name}" if course.instructor_name else "")
            )
            st.write(course.description or "No description available")
            col_ok, col_reason, col_no = st.columns([1, 3, 1])
            with col_ok:
                if st.button("Approve", key=f"approve_{course.id}", type="primary"):
                    moderate(course, "approve")
            with col_reason:
                reason = st.text_input(
                    "Rejection reason",
                    key=f"reason_{course.id}",
                    placeholder="Explain what needs to change",
                    label_visibility="collapsed",
                )
            with col_no:
                if st.button("Reject", key=f"reject_{course.id}"):
                    if not reason.strip():
                        st.error("Please provide a reason for rejection")
                    else:
                        moderate(course, "reject", reason.strip())

with tab_rejected:
    try:
        rejected = queries.rejected_courses(api, cache) or []
    except ApiError as e:
        logger.exception("Rejected courses load failed")
        st.error(f"Could not load rejected courses: {e.message}")
        rejected = []

    if not rejected:
        st.info("No rejected courses")
    for course in rejected:
        with st.container(border=True):
            st.markdown(f"**{course.title}**")
            if course.rejection_reason:
                st.caption(f"Reason: {course.rejection_reason}")
