import logging

import streamlit as st

from lms import auth, queries
from lms.app_state import init_app, get_api, get_cache, open_page
from lms.errors import ApiError
from lms.grading import is_overdue
from lms.ui import apply_global_styles, hero, notify, render_sidebar
from lms.uploads import format_file_size
from lms.validation import is_valid_course_id

logger = logging.getLogger(__name__)

st.set_page_config(page_title="Course", page_icon="🎬", layout="wide")

init_app()
apply_global_styles()
api, cache = get_api(), get_cache()
user = auth.current_user(api, cache)
render_sidebar(user)

course_id = st.query_params.get("id") or st.session_state.selected_course_id
if not is_valid_course_id(course_id):
    st.session_state.selected_course_id = None
    st.switch_page("pages/1_Course_Catalog.py")
course_id = int(course_id)
st.session_state.selected_course_id = course_id

try:
    course = queries.course(api, cache, course_id)
except ApiError as e:
    logger.exception("Course %s load failed", course_id)
    st.error(f"Could not load the course: {e.message}")
    st.page_link("pages/1_Course_Catalog.py", label="Back to catalog", icon="📚")
    st.stop()

if course is None:
    st.warning("Course not found.")
    st.page_link("pages/1_Course_Catalog.py", label="Back to catalog", icon="📚")
    st.stop()

hero(course.title, course.description or "")

is_student = user is not None and user.role == "student"
enrolled = False
if is_student:
    try:
        enrolled = any(c.id == course_id for c in queries.enrolled_courses(api, cache))
    except ApiError:
        logger.warning("Could not check enrollment", exc_info=True)

if is_student and enrolled:
    try:
        progress = queries.enrollment_progress(api, cache, course_id) or {}
    except ApiError:
        progress = {}
    percent = float(progress.get("progress", 0) if isinstance(progress, dict) else 0)
    st.progress(min(100, int(percent)) / 100, text=f"Course progress: {percent:.0f}%")
elif is_student:
    if st.button("Enroll in this course", type="primary"):
        result = queries.enroll(api, cache, course_id)
        notify(result)
        if result.ok:
            st.rerun()
elif user is None:
    st.info("Sign in as a student to enroll and track progress.")

tab_lessons, tab_quizzes, tab_assignments, tab_reviews = st.tabs(
    ["Lessons", "Quizzes", "Assignments", "Reviews"]
)

with tab_lessons:
    try:
        course_modules = queries.modules(api, cache, course_id)
    except ApiError as e:
        logger.exception("Modules load failed")
        st.error(f"Could not load lessons: {e.message}")
        course_modules = []

    if not course_modules:
        st.info("This course has no lessons yet.")

    for module in course_modules:
        with st.expander(f"{module.title}", expanded=module is course_modules[0]):
            if module.description:
                st.caption(module.description)
            for lesson in module.ordered_lessons():
                done = "✅ " if lesson.is_completed else ""
                st.markdown(f"**{done}{lesson.title}**"
                            + (f" · {lesson.duration} min" if lesson.duration else ""))
                if lesson.content_type == "video" and lesson.video_url:
                    st.video(lesson.video_url)
                if lesson.content:
                    st.markdown(lesson.content)
                for attachment in lesson.attachments:
                    size = f" ({format_file_size(attachment.size)})" if attachment.size else ""
                    st.markdown(f"📎 [{attachment.name or attachment.url}]({attachment.url}){size}")
                if enrolled and not lesson.is_completed:
                    if st.button("Mark as complete", key=f"complete_{lesson.id}"):
                        result = queries.mark_lesson_complete(api, cache, lesson.id)
                        notify(result)
                        if result.ok:
                            st.rerun()
                st.divider()

with tab_quizzes:
    try:
        quizzes = [q for q in queries.course_quizzes(api, cache, course_id) if q.is_published]
    except ApiError as e:
        logger.exception("Quizzes load failed")
        st.error(f"Could not load quizzes: {e.message}")
        quizzes = []
    if not quizzes:
        st.info("No quizzes for this course yet.")
    for quiz in quizzes:
        with st.container(border=True):
            st.markdown(f"**{quiz.title}**")
            details = [f"{len(quiz.questions)} questions"]
            if quiz.time_limit:
                details.append(f"{quiz.time_limit} min")
            if quiz.passing_score is not None:
                details.append(f"pass at {quiz.passing_score:g}%")
            st.caption(" · ".join(details))
            if enrolled and st.button("Open quiz", key=f"quiz_{quiz.id}"):
                open_page("pages/3_Quiz.py", selected_quiz_id=quiz.id)

with tab_assignments:
    try:
        assignments = [a for a in queries.course_assignments(api, cache, course_id) if a.is_published]
    except ApiError as e:
        logger.exception("Assignments load failed")
        st.error(f"Could not load assignments: {e.message}")
        assignments = []
    if not assignments:
        st.info("No assignments for this course yet.")
    for assignment in assignments:
        with st.container(border=True):
            st.markdown(f"**{assignment.title}**")
            due = assignment.due_date.strftime("%Y-%m-%d %H:%M") if assignment.due_date else "no due date"
            st.caption(f"{assignment.points:g} points · due {due}"
                       + (" · overdue" if is_overdue(assignment) else ""))
            if enrolled and st.button("Open assignment", key=f"assignment_{assignment.id}"):
                open_page("pages/5_Assignment.py", selected_assignment_id=assignment.id)

with tab_reviews:
    try:
        course_reviews = queries.reviews(api, cache, course_id)
    except ApiError as e:
        logger.warning("Reviews load failed: %s", e.message)
        course_reviews = []
    if course_reviews:
        avg = sum(r.rating for r in course_reviews) / len(course_reviews)
        st.markdown(f"**{avg:.1f} / 5** from {len(course_reviews)} reviews")
    for review in course_reviews:
        st.markdown(f"{'⭐' * review.rating} **{review.user_name or 'Student'}**")
        if review.comment:
            st.write(review.comment)

    if enrolled:
        with st.form("review_form", clear_on_submit=True):
            rating = st.slider("Rating", 1, 5, 5)
            comment = st.text_area("Comment")
            if st.form_submit_button("Submit review"):
                notify(queries.create_review(
                    api, cache, {"course_id": course_id, "rating": rating, "comment": comment}
                ))
