import logging

import streamlit as st

from lms import auth, queries
from lms.app_state import init_app, get_api, get_cache, open_page
from lms.courses import LEVELS, categories, filter_catalog
from lms.errors import ApiError
from lms.ui import apply_global_styles, hero, notify, render_sidebar

logger = logging.getLogger(__name__)

st.set_page_config(page_title="Course catalog", page_icon="📚", layout="wide")

init_app()
apply_global_styles()
api, cache = get_api(), get_cache()
user = auth.current_user(api, cache)
render_sidebar(user)

hero("Course catalog", "Find a course and start learning.")

try:
    courses = queries.approved_courses(api, cache) or []
except ApiError as e:
    logger.exception("Catalog load failed")
    st.error(f"Could not load courses: {e.message}")
    st.stop()

enrolled_ids = set()
if user is not None and user.role == "student":
    try:
        enrolled_ids = {c.id for c in queries.enrolled_courses(api, cache)}
    except ApiError:
        logger.warning("Could not load enrolled courses", exc_info=True)

col1, col2, col3 = st.columns([3, 1, 1])
with col1:
    search = st.text_input(
        "Search",
        placeholder="Search courses, instructors, or topics...",
        key="catalog_search",
    )
with col2:
    category = st.selectbox("Category", ["all"] + categories(courses), key="catalog_category")
with col3:
    level = st.selectbox("Level", ["all"] + list(LEVELS), key="catalog_level")

shown = filter_catalog(courses, search=search, category=category, level=level)
st.caption(f"{len(shown)} of {len(courses)} courses")

if not shown:
    st.info("No courses match your filters.")

for course in shown:
    with st.container(border=True):
        left, right = st.columns([4, 1])
        with left:
            st.markdown(f"#### {course.title}")
            st.caption(
                f"{course.category or 'Uncategorized'} · {course.level or 'Beginner'}"
                + (f" · by {course.instructor_name}" if course.instructor_name else "")
            )
            st.write(course.description or "No description available")
        with right:
            if st.button("Open", key=f"open_{course.id}", use_container_width=True):
                open_page("pages/2_Course_Player.py", selected_course_id=course.id)
            if user is not None and user.role == "student":
                if course.id in enrolled_ids:
                    st.success("Enrolled")
                    if st.button("Unenroll", key=f"unenroll_{course.id}", use_container_width=True):
                        result = queries.unenroll(api, cache, course.id)
                        notify(result)
                        if result.ok:
                            st.rerun()
                elif st.button("Enroll", key=f"enroll_{course.id}", type="primary",
                               use_container_width=True):
                    result = queries.enroll(api, cache, course.id)
                    notify(result)
                    if result.ok:
                        st.rerun()
            elif user is None:
                st.caption("Sign in to enroll")
