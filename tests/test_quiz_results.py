import pytest

from lms.models import Question, Quiz
from lms.quiz_results import (
    format_clock, grade_label, is_low_time, is_passed, score_percentage, statistics_summary,
)


@pytest.mark.parametrize(
    "percentage,label",
    [(100, "Excellent"), (90, "Excellent"), (89, "Good"), (70, "Satisfactory"),
     (60, "Needs Improvement"), (59, "Poor"), (0, "Poor")],
)
def test_grade_label_bands(percentage, label):
    assert grade_label(percentage) == label


def test_score_percentage_rounds_and_handles_zero_total():
    assert score_percentage(2, 3) == 67
    assert score_percentage(7, 7) == 100
    assert score_percentage(5, 0) == 0


def test_passing_without_threshold():
    assert is_passed(10, None)
    assert is_passed(70, 70)
    assert not is_passed(69, 70)


def test_format_clock():
    assert format_clock(605) == "10:05"
    assert format_clock(59) == "0:59"
    assert format_clock(0) == "0:00"
    assert format_clock(-3) == "0:00"
    assert format_clock(None) == "--:--"


def test_low_time_under_five_minutes():
    assert is_low_time(299)
    assert not is_low_time(300)
    assert not is_low_time(None)


def test_points_total_prefers_declared_total():
    questions = [Question(id=1, points=2), Question(id=2, points=3)]
    assert Quiz(questions=questions).points_total == 5
    assert Quiz(questions=questions, total_points=10).points_total == 10


def test_statistics_summary_keeps_known_fields():
    rows = statistics_summary({"total_attempts": 12, "averageScore": 71.26, "passRate": 58, "other": 1})
    assert rows == [("Attempts", "12"), ("Average score", "71.3"), ("Pass rate", "58%")]
    assert statistics_summary({}) == []
