import logging
from datetime import datetime, time as dtime

import streamlit as st

from lms import auth, queries
from lms.app_state import init_app, get_api, get_cache, open_page
from lms.courses import (
    LEVELS, can_resubmit, can_toggle_publish, group_by_status, status_label, status_message,
)
from lms.errors import ApiError
from lms.guards import require_role
from lms.models import CONTENT_TYPES, SUBMISSION_TYPES
from lms.quiz_results import statistics_summary
from lms.ui import apply_global_styles, badge, hero, notify, render_sidebar
from lms.uploads import (
    ATTACHMENT_MAX_BYTES, VIDEO_MAX_BYTES, as_upload, format_file_size, lesson_file_errors,
)
from lms.validation import (
    assignment_errors, course_errors, lesson_errors, question_errors, quiz_errors,
)

logger = logging.getLogger(__name__)

st.set_page_config(page_title="Instructor panel", page_icon="🧑‍🏫", layout="wide")

init_app()
apply_global_styles()
api, cache = get_api(), get_cache()
user = auth.current_user(api, cache)
render_sidebar(user)
require_role(user, "instructor", page="pages/7_Instructor_Panel.py")

hero("Instructor panel", "Create courses, manage their content and follow the review status.")

try:
    my_courses = queries.instructor_courses(api, cache) or []
except ApiError as e:
    logger.exception("Instructor courses load failed")
    st.error(f"Could not load your courses: {e.message}")
    st.stop()


def show_errors(errors):
    for messages in errors.values():
        for message in messages:
            st.error(message)


def apply(result, rerun=True):
    notify(result)
    if result.ok and rerun:
        st.rerun()


def upload_with_progress(files):
    """Upload Streamlit files with one progress bar each; attachments in order."""
    bars = [st.progress(0, text=f"Uploading {f.name}") for f in files]
    readers = [
        as_upload(f, callback=lambda p, bar=bar, name=f.name: bar.progress(p, text=f"Uploading {name}... {p}%"))
        for f, bar in zip(files, bars)
    ]
    if len(readers) == 1:
        return [queries.upload_file(api, readers[0])]
    return queries.upload_files(api, readers)


def lesson_form(module, lesson=None):
    """Add a lesson to module, or edit lesson when given."""
    key = f"lesson_{lesson.id}" if lesson else f"add_lesson_{module.id}"
    kept = []
    with st.form(key, clear_on_submit=lesson is None):
        st.markdown("**Edit lesson**" if lesson else "**New lesson**")
        lesson_title = st.text_input(
            "Lesson title", value=lesson.title if lesson else "", key=f"{key}_title"
        )
        current_type = CONTENT_TYPES[0]
        if lesson and lesson.content_type in CONTENT_TYPES:
            current_type = lesson.content_type
        content_type = st.selectbox(
            "Type", CONTENT_TYPES, index=CONTENT_TYPES.index(current_type), key=f"{key}_type"
        )
        video_url = st.text_input(
            "Video URL", value=(lesson.video_url or "") if lesson else "", key=f"{key}_url"
        )
        video_file = st.file_uploader(
            f"...or upload an MP4 video (max {format_file_size(VIDEO_MAX_BYTES)})",
            type=["mp4"], key=f"{key}_video",
        )
        content = st.text_area(
            "Content (markdown)", value=(lesson.content or "") if lesson else "", key=f"{key}_content"
        )
        duration = st.number_input(
            "Duration (min)", min_value=0, value=(lesson.duration or 0) if lesson else 0, key=f"{key}_duration"
        )
        if lesson and lesson.attachments:
            names = [a.name or a.url for a in lesson.attachments]
            keep = st.multiselect("Keep attachments", names, default=names, key=f"{key}_keep")
            kept = [a for a, name in zip(lesson.attachments, names) if name in keep]
        new_files = st.file_uploader(
            f"Attachments (max {format_file_size(ATTACHMENT_MAX_BYTES)} each)",
            accept_multiple_files=True, key=f"{key}_files",
        ) or []
        submitted = st.form_submit_button("Save lesson" if lesson else "Add lesson")

    if not submitted:
        return
    data = {
        "module_id": module.id,
        "title": lesson_title.strip(),
        "content_type": content_type,
        "video_url": video_url.strip() or None,
        "content": content,
        "duration": int(duration) or None,
        "order": lesson.order if lesson else len(module.lessons) + 1,
    }
    try:
        server_types = queries.allowed_file_types(api, cache) if new_files else []
    except ApiError as e:
        logger.warning("Allowed file types unavailable: %s", e.message)
        server_types = []
    problems = {
        **lesson_errors(data, video_upload=video_file is not None),
        **lesson_file_errors(video_file, new_files, server_types),
    }
    if problems:
        show_errors(problems)
        return

    try:
        if video_file is not None:
            data["video_url"] = upload_with_progress([video_file])[0].url
        uploaded = upload_with_progress(new_files) if new_files else []
    except ApiError as e:
        logger.exception("Lesson file upload failed")
        st.error(f"Upload failed: {e.message}")
        return
    data["attachments"] = [a.model_dump() for a in kept + uploaded]
    apply(queries.save_lesson(api, cache, data, lesson.id if lesson else None))


tab_courses, tab_add, tab_content = st.tabs(["My courses", "Add course", "Course content"])

# ------------------------------------------------------------- my courses

with tab_courses:
    groups = group_by_status(my_courses)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total", len(my_courses))
    col2.metric("Pending review", len(groups["pending"]))
    col3.metric("Live", len(groups["approved"]) + len(groups["published"]))
    col4.metric("Rejected", len(groups["rejected"]))

    if not my_courses:
        st.info("You have not created any course yet.")

    for status, courses in groups.items():
        if not courses:
            continue
        st.subheader(status_label(status))
        for course in courses:
            with st.container(border=True):
                st.markdown(
                    f"**{course.title}** {badge(status_label(course.status), course.status)}",
                    unsafe_allow_html=True,
                )
                st.caption(f"{course.category or 'Uncategorized'} · {course.level or '-'}")
                st.write(status_message(course.status))
                if course.rejection_reason:
                    st.error(f"Feedback from admin: {course.rejection_reason}")

                col_a, col_b, col_c = st.columns(3)
                with col_a:
                    if st.button("Manage content", key=f"manage_{course.id}"):
                        st.session_state.selected_course_id = course.id
                        st.toast("Open the Course content tab to edit this course.")
                with col_b:
                    if can_toggle_publish(course):
                        publishing = course.status != "published"
                        if st.button("Publish" if publishing else "Unpublish", key=f"pub_{course.id}"):
                            apply(queries.set_course_published(api, cache, course.id, publishing))
                    elif can_resubmit(course):
                        label = "Resubmit for review" if course.status == "rejected" else "Submit for review"
                        if st.button(label, key=f"resubmit_{course.id}"):
                            problems = course_errors(course.model_dump(), status="pending")
                            if problems:
                                show_errors(problems)
                            else:
                                apply(queries.resubmit_course(api, cache, course.id))
                with col_c:
                    if course.status in ("approved", "published") and st.button(
                        "View live course", key=f"live_{course.id}"
                    ):
                        open_page("pages/2_Course_Player.py", selected_course_id=course.id)
                    elif course.status in ("draft", "rejected") and st.button(
                        "Delete course", key=f"cdel_{course.id}"
                    ):
                        apply(queries.delete_course(api, cache, course.id))
                with st.expander("Edit details"):
                    with st.form(f"edit_course_{course.id}"):
                        new_title = st.text_input("Title", value=course.title)
                        new_description = st.text_area("Description", value=course.description or "")
                        new_category = st.text_input("Category", value=course.category or "")
                        current_level = course.level if course.level in LEVELS else LEVELS[0]
                        new_level = st.selectbox("Level", LEVELS, index=LEVELS.index(current_level))
                        saved = st.form_submit_button("Save changes")
                    if saved:
                        data = {
                            "title": new_title.strip(),
                            "description": new_description.strip(),
                            "category": new_category.strip(),
                            "level": new_level,
                        }
                        problems = course_errors(data, status=course.status)
                        if problems:
                            show_errors(problems)
                        else:
                            apply(queries.update_course(api, cache, course.id, data))

# ------------------------------------------------------------- add course

with tab_add:
    with st.form("add_course"):
        title = st.text_input("Title")
        description = st.text_area("Description")
        category = st.text_input("Category")
        level = st.selectbox("Level", LEVELS)
        thumbnail = st.text_input("Thumbnail URL (optional)")
        col_draft, col_submit = st.columns(2)
        save_draft = col_draft.form_submit_button("Save as draft")
        submit_review = col_submit.form_submit_button("Submit for review", type="primary")

    if save_draft or submit_review:
        status = "pending" if submit_review else "draft"
        data = {
            "title": title.strip(),
            "description": description.strip(),
            "category": category.strip(),
            "level": level,
            "thumbnail": thumbnail.strip() or None,
            "status": status,
        }
        problems = course_errors(data, status=status)
        if problems:
            show_errors(problems)
        else:
            result = queries.create_course(api, cache, data)
            notify(result)
            if result.ok and result.data is not None:
                st.session_state.selected_course_id = result.data.id

# ---------------------------------------------------------- course content

with tab_content:
    if not my_courses:
        st.info("Create a course first.")
        st.stop()

    ids = [c.id for c in my_courses]
    selected = st.session_state.selected_course_id
    course = st.selectbox(
        "Course",
        my_courses,
        index=ids.index(selected) if selected in ids else 0,
        format_func=lambda c: f"{c.title} ({status_label(c.status)})",
    )
    st.session_state.selected_course_id = course.id

    sub_modules, sub_quizzes, sub_assignments = st.tabs(["Modules & lessons", "Quizzes", "Assignments"])

    with sub_modules:
        try:
            course_modules = queries.modules(api, cache, course.id)
        except ApiError as e:
            logger.exception("Modules load failed")
            st.error(f"Could not load modules: {e.message}")
            course_modules = []

        with st.form("add_module", clear_on_submit=True):
            st.markdown("**New module**")
            module_title = st.text_input("Module title")
            module_description = st.text_area("Module description", height=80)
            if st.form_submit_button("Add module"):
                if not module_title.strip():
                    st.error("Module title is required")
                else:
                    apply(queries.save_module(api, cache, {
                        "course_id": course.id,
                        "title": module_title.strip(),
                        "description": module_description.strip(),
                        "order": len(course_modules) + 1,
                    }))

        for module in course_modules:
            with st.expander(f"{module.order}. {module.title}"):
                for lesson in module.ordered_lessons():
                    row, edit, remove = st.columns([6, 1, 1])
                    attached = f" · 📎 {len(lesson.attachments)}" if lesson.attachments else ""
                    row.write(f"{lesson.order}. {lesson.title} ({lesson.content_type}){attached}")
                    if edit.toggle("✏️", key=f"edit_lesson_{lesson.id}", help="Edit lesson"):
                        lesson_form(module, lesson)
                    if remove.button("🗑", key=f"del_lesson_{lesson.id}", help="Delete lesson"):
                        apply(queries.delete_lesson(api, cache, lesson.id))

                lesson_form(module)

                if st.button("Delete module", key=f"del_module_{module.id}"):
                    apply(queries.delete_module(api, cache, module.id))

    with sub_quizzes:
        try:
            quizzes = queries.course_quizzes(api, cache, course.id)
        except ApiError as e:
            logger.exception("Quizzes load failed")
            st.error(f"Could not load quizzes: {e.message}")
            quizzes = []

        with st.form("add_quiz", clear_on_submit=True):
            st.markdown("**New quiz**")
            quiz_title = st.text_input("Quiz title")
            quiz_description = st.text_area("Quiz description", height=80)
            col1, col2, col3 = st.columns(3)
            time_limit = col1.number_input("Time limit (min, 0 = none)", min_value=0, value=0)
            passing = col2.number_input("Passing score (%)", min_value=0, max_value=100, value=60)
            max_attempts = col3.number_input("Max attempts (0 = unlimited)", min_value=0, value=1)
            multiple = st.checkbox("Allow multiple attempts")
            if st.form_submit_button("Create quiz"):
                data = {
                    "course_id": course.id,
                    "title": quiz_title.strip(),
                    "description": quiz_description.strip(),
                    "time_limit": int(time_limit) or None,
                    "passing_score": passing,
                    "allow_multiple_attempts": multiple,
                    "max_attempts": int(max_attempts) or None,
                }
                problems = quiz_errors(data)
                if problems:
                    show_errors(problems)
                else:
                    apply(queries.save_quiz(api, cache, data))

        for quiz in quizzes:
            state = "Published" if quiz.is_published else "Draft"
            with st.expander(f"{quiz.title} - {state} ({len(quiz.questions)} questions)"):
                col_a, col_b = st.columns(2)
                with col_a:
                    if st.button("Unpublish" if quiz.is_published else "Publish", key=f"qpub_{quiz.id}"):
                        apply(queries.set_quiz_published(api, cache, quiz.id, not quiz.is_published))
                with col_b:
                    if st.button("Delete quiz", key=f"qdel_{quiz.id}"):
                        apply(queries.delete_quiz(api, cache, quiz.id))

                if st.toggle("Show statistics", key=f"qstats_{quiz.id}"):
                    try:
                        rows = statistics_summary(queries.quiz_statistics(api, cache, quiz.id))
                    except ApiError as e:
                        logger.exception("Quiz statistics load failed")
                        st.error(f"Could not load statistics: {e.message}")
                        rows = None
                    if rows:
                        for column, (label, value) in zip(st.columns(len(rows)), rows):
                            column.metric(label, value)
                    elif rows is not None:
                        st.caption("No attempts yet.")

                for i, question in enumerate(quiz.questions, start=1):
                    row, remove = st.columns([6, 1])
                    row.write(f"{i}. {question.question_text} [{question.points:g} pts]")
                    row.caption(" | ".join(question.option_list()) + f"  → {question.correct_answer}")
                    if remove.button("🗑", key=f"del_q_{question.id}", help="Delete question"):
                        apply(queries.delete_question(api, cache, question.id))

                with st.form(f"add_question_{quiz.id}", clear_on_submit=True):
                    st.markdown("**New question**")
                    text = st.text_area("Question", height=80)
                    raw_options = st.text_area("Options (one per line)", height=100)
                    correct = st.text_input("Correct answer (must match an option)")
                    points = st.number_input("Points", min_value=0.0, value=1.0, step=0.5)
                    if st.form_submit_button("Add question"):
                        options = [o.strip() for o in raw_options.splitlines() if o.strip()]
                        data = {
                            "question_text": text.strip(),
                            "options": options,
                            "correct_answer": correct.strip(),
                            "points": points,
                        }
                        problems = question_errors(data)
                        if problems:
                            show_errors(problems)
                        else:
                            apply(queries.add_question(api, cache, quiz.id, data))

    with sub_assignments:
        try:
            assignments = queries.course_assignments(api, cache, course.id)
        except ApiError as e:
            logger.exception("Assignments load failed")
            st.error(f"Could not load assignments: {e.message}")
            assignments = []

        with st.form("add_assignment", clear_on_submit=True):
            st.markdown("**New assignment**")
            a_title = st.text_input("Assignment title")
            a_description = st.text_area("Instructions")
            col1, col2, col3 = st.columns(3)
            a_points = col1.number_input("Points", min_value=1, value=100)
            a_date = col2.date_input("Due date", value=None)
            a_type = col3.selectbox("Submission type", SUBMISSION_TYPES, index=2)
            if st.form_submit_button("Create assignment"):
                data = {
                    "course_id": course.id,
                    "title": a_title.strip(),
                    "description": a_description.strip(),
                    "points": a_points,
                    "submission_type": a_type,
                    "due_date": datetime.combine(a_date, dtime(23, 59)).isoformat() if a_date else None,
                }
                problems = assignment_errors(data)
                if problems:
                    show_errors(problems)
                else:
                    apply(queries.save_assignment(api, cache, data))

        for assignment in assignments:
            state = "Published" if assignment.is_published else "Draft"
            with st.expander(f"{assignment.title} - {state}"):
                due = assignment.due_date.strftime("%Y-%m-%d %H:%M") if assignment.due_date else "no due date"
                st.caption(f"{assignment.points:g} points · due {due} · {assignment.submission_type}")
                col_a, col_b, col_c = st.columns(3)
                with col_a:
                    if st.button("Grade submissions", key=f"grade_{assignment.id}"):
                        open_page("pages/8_Assignment_Grading.py", selected_assignment_id=assignment.id)
                with col_b:
                    if st.button("Unpublish" if assignment.is_published else "Publish",
                                 key=f"apub_{assignment.id}"):
                        apply(queries.save_assignment(
                            api, cache, {"is_published": not assignment.is_published}, assignment.id
                        ))
                with col_c:
                    if st.button("Delete", key=f"adel_{assignment.id}"):
                        apply(queries.delete_assignment(api, cache, assignment.id))
