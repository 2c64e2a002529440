from datetime import timezone

import pytest

from lms.errors import PayloadError
from lms.models import (
    Course, Lesson, LessonAttachment, Module, Question, Quiz, QuizAttempt, User, as_utc, parse,
)


def test_parse_single_list_and_none():
    assert parse(Course, None) is None
    assert parse(Course, {"id": 1, "title": "A"}).title == "A"
    assert [c.id for c in parse(Course, [{"id": 1}, {"id": 2}])] == [1, 2]


def test_unknown_fields_ignored_and_price_defaults_to_free():
    course = parse(Course, {"id": 1, "title": "A", "category_name": "x"})
    assert course.price == 0


def test_question_options_from_json_list_or_csv():
    assert Question(options='["A", "B"]').option_list() == ["A", "B"]
    assert Question(options=["A", 2]).option_list() == ["A", "2"]
    assert Question(options="red, green ,blue").option_list() == ["red", "green", "blue"]
    assert Question(options=None).option_list() == []


def test_attempt_answers_accept_json_string():
    attempt = parse(QuizAttempt, {"id": 1, "answers": '{"3": "B"}', "score": 2})
    assert attempt.answers == {"3": "B"}
    assert parse(QuizAttempt, {"id": 2, "answers": None}).answers == {}


def test_api_timestamps_are_utc_aware():
    attempt = parse(QuizAttempt, {"submitted_at": "2026-02-01T08:30:00"})
    aware = as_utc(attempt.submitted_at)
    assert aware.tzinfo == timezone.utc
    assert aware.hour == 8
    assert as_utc(None) is None


def test_module_lessons_ordered():
    module = Module(lessons=[{"id": 2, "order": 2}, {"id": 1, "order": 1}])
    assert [l.id for l in module.ordered_lessons()] == [1, 2]


def test_display_name_falls_back_to_email():
    assert User(email="a@b.co").display_name == "a@b.co"
    assert User(email="a@b.co", name="Ann").display_name == "Ann"


def test_lesson_attachments_from_json_string():
    lesson = Lesson(attachments='[{"name": "a.pdf", "url": "https://cdn.test/a.pdf"}]')
    assert lesson.attachments[0].name == "a.pdf"
    assert Lesson(attachments=None).attachments == []


def test_attachment_from_upload_answer():
    stored = LessonAttachment.from_upload({"originalName": "x.zip", "url": "https://cdn.test/x.zip", "size": 9})
    assert (stored.name, stored.url, stored.size) == ("x.zip", "https://cdn.test/x.zip", 9)


def test_parse_rejects_payload_that_does_not_fit():
    with pytest.raises(PayloadError) as exc:
        parse(Quiz, {"id": 1, "questions": "not a list"})
    assert not exc.value.retryable
