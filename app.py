import logging

import streamlit as st

from lms import auth, queries
from lms.app_state import init_app, get_api, get_cache, open_page
from lms.errors import ApiError
from lms.ui import apply_global_styles, hero, render_sidebar

logger = logging.getLogger(__name__)

st.set_page_config(page_title="LMS", page_icon="📚", layout="wide", initial_sidebar_state="expanded")

init_app()
apply_global_styles()
api, cache = get_api(), get_cache()


def _handle_oauth_return():
    """The backend's Google callback redirects here with tokens in the query string."""
    params = st.query_params
    access = params.get("accessToken") or params.get("access_token")
    if not access:
        if params.get("error"):
            st.error("Google sign-in failed. Please try again.")
            st.query_params.clear()
        return
    refresh = params.get("refreshToken") or params.get("refresh_token")
    st.query_params.clear()
    user = auth.accept_oauth_tokens(api, cache, access, refresh)
    if user is None:
        st.error("Signed in, but your profile could not be loaded.")
        return
    st.toast("Successfully signed in with Google!", icon="✅")
    st.switch_page(auth.home_page_for(user))


_handle_oauth_return()
user = auth.current_user(api, cache)
render_sidebar(user)

hero(
    "Learning Management System",
    "Browse courses, follow lessons, take quizzes and hand in assignments.",
)

if user is None:
    st.info("Sign in from the sidebar to enroll in courses and track your progress.")
else:
    st.markdown(f"### Welcome back, {user.display_name}")
    home = auth.home_page_for(user)
    if home != auth.DEFAULT_HOME:
        st.page_link(home, label="Go to your dashboard", icon="➡️")

st.subheader("Featured courses")
try:
    courses = queries.approved_courses(api, cache) or []
except ApiError as e:
    logger.exception("Could not load courses")
    st.error(f"Could not load courses: {e.message}")
    courses = []

if not courses:
    st.caption("No courses available yet.")
else:
    cols = st.columns(3)
    for i, course in enumerate(courses[:6]):
        with cols[i % 3]:
            with st.container(border=True):
                st.markdown(f"**{course.title}**")
                st.caption(f"{course.category or 'Uncategorized'} · {course.level or 'Beginner'}")
                st.write((course.description or "")[:140])
                if st.button("View course", key=f"home_course_{course.id}"):
                    open_page("pages/2_Course_Player.py", selected_course_id=course.id)

st.page_link("pages/1_Course_Catalog.py", label="Browse the full catalog", icon="📚")
