from typing import Any, Dict, List, Optional, Tuple

GRADE_BANDS = (
    (90, "Excellent"),
    (80, "Good"),
    (70, "Satisfactory"),
    (60, "Needs Improvement"),
)


def score_percentage(score: float, total_points: float) -> int:
    if not total_points:
        return 0
    return round(score / total_points * 100)


def is_passed(percentage: float, passing_score: Optional[float]) -> bool:
    if passing_score is None:
        return True
    return percentage >= passing_score


def grade_label(percentage: float) -> str:
    for threshold, label in GRADE_BANDS:
        if percentage >= threshold:
            return label
    return "Poor"


def format_clock(seconds: Optional[int]) -> str:
    """Seconds as M:SS, e.g. 605 -> '10:05'."""
    if seconds is None:
        return "--:--"
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def is_low_time(seconds: Optional[int], threshold: int = 300) -> bool:
    return seconds is not None and seconds < threshold


STATISTIC_FIELDS = (
    ("Attempts", ("totalAttempts", "total_attempts")),
    ("Students", ("uniqueStudents", "unique_students")),
    ("Average score", ("averageScore", "average_score")),
    ("Highest score", ("highestScore", "highest_score")),
    ("Pass rate", ("passRate", "pass_rate")),
)


def statistics_summary(stats: Dict[str, Any]) -> List[Tuple[str, str]]:
    """Metric rows for the fields a statistics payload actually carries."""
    rows = []
    for label, keys in STATISTIC_FIELDS:
        value = next((stats[k] for k in keys if stats.get(k) is not None), None)
        if value is None:
            continue
        if isinstance(value, float):
            value = f"{value:.1f}"
        if label == "Pass rate":
            value = f"{value}%"
        rows.append((label, str(value)))
    return rows
