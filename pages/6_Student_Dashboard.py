import logging

import pandas as pd
import streamlit as st

from lms import auth, queries
from lms.app_state import init_app, get_api, get_cache, open_page
from lms.errors import ApiError
from lms.guards import require_role
from lms.ui import apply_global_styles, hero, notify, render_sidebar

logger = logging.getLogger(__name__)

st.set_page_config(page_title="My learning", page_icon="🎓", layout="wide")

init_app()
apply_global_styles()
api, cache = get_api(), get_cache()
user = auth.current_user(api, cache)
render_sidebar(user)
require_role(user, "student", page="pages/6_Student_Dashboard.py")

hero(f"Welcome, {user.display_name}", "Track your learning progress and manage your courses.")

try:
    my_enrollments = queries.enrollments(api, cache) or []
    due_soon = queries.due_soon_assignments(api, cache)
    inbox = queries.notifications(api, cache)
except ApiError as e:
    logger.exception("Dashboard load failed")
    st.error(f"Could not load your dashboard: {e.message}")
    st.stop()

completed = sum(1 for e in my_enrollments if e.progress >= 100)
average = sum(e.progress for e in my_enrollments) / len(my_enrollments) if my_enrollments else 0
unread = sum(1 for n in inbox if not n.is_read)

col1, col2, col3, col4 = st.columns(4)
col1.metric("Enrolled courses", len(my_enrollments))
col2.metric("Completed", completed)
col3.metric("Average progress", f"{average:.0f}%")
col4.metric("Unread notifications", unread)

tab_courses, tab_assignments, tab_notifications = st.tabs(
    ["My courses", "Assignments", "Notifications"]
)

with tab_courses:
    if not my_enrollments:
        st.info("You are not enrolled in any course yet.")
        st.page_link("pages/1_Course_Catalog.py", label="Browse courses", icon="📚")
    for enrollment in my_enrollments:
        course = enrollment.course
        title = course.title if course else f"Course #{enrollment.course_id}"
        with st.container(border=True):
            left, right = st.columns([4, 1])
            with left:
                st.markdown(f"**{title}**")
                st.progress(
                    min(100, int(enrollment.progress)) / 100,
                    text=f"{enrollment.progress:.0f}% complete",
                )
            with right:
                if st.button("Continue", key=f"continue_{enrollment.id}", use_container_width=True):
                    open_page("pages/2_Course_Player.py", selected_course_id=enrollment.course_id)

with tab_assignments:
    if not due_soon:
        st.info("No upcoming assignments.")
    else:
        table = pd.DataFrame(
            [
                {
                    "Assignment": a.title,
                    "Due": a.due_date,
                    "Points": a.points,
                }
                for a in due_soon
            ]
        )
        st.dataframe(table, hide_index=True, use_container_width=True)
        picked = st.selectbox(
            "Open assignment",
            due_soon,
            format_func=lambda a: a.title,
            index=None,
            placeholder="Select an assignment",
        )
        if picked is not None:
            open_page("pages/5_Assignment.py", selected_assignment_id=picked.id)

with tab_notifications:
    if unread and st.button("Mark all as read"):
        result = queries.mark_notification_read(api, cache)
        notify(result)
        if result.ok:
            st.rerun()
    if not inbox:
        st.info("No notifications yet")
    for n in inbox:
        with st.container(border=True):
            head, action = st.columns([5, 1])
            with head:
                st.markdown(f"**{n.title}**" + ("" if n.is_read else " 🔵"))
                if n.created_at:
                    st.caption(n.created_at.strftime("%Y-%m-%d"))
                if n.message:
                    st.write(n.message)
            with action:
                if not n.is_read and st.button("Read", key=f"read_{n.id}"):
                    result = queries.mark_notification_read(api, cache, n.id)
                    notify(result)
                    if result.ok:
                        st.rerun()
