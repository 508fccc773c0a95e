"""
Analytics derivations over the store.

Every function here is pure: it takes the store (or a list of feedback)
and returns fresh view models. Nothing is cached and nothing is written
back, so callers can simply recompute after any change.

Score mapping used throughout:

    fully -> 100, partial -> 60, confused -> 20

All percentages are rounded half up (60.5 -> 61), computed exactly on
integers so no float artefacts creep in.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional, Sequence

from lectureintel.model import (
    Course,
    CourseComparison,
    CourseHealth,
    DailyMetric,
    Feedback,
    FeedbackCategory,
    HourlyActivity,
    SummaryStats,
    TopicDifficulty,
)
from lectureintel.storage import Store, parse_timestamp, utc_now


UNDERSTANDING_SCORES = {"fully": 100, "partial": 60, "confused": 20}

DATE_RANGES = {"7d": 7, "14d": 14, "30d": 30, "90d": 90}

FIRST_HOUR = 8
LAST_HOUR = 18

TOP_TOPICS = 10

COMPARED_COURSES = 3

CATEGORY_LABELS = (
    ("fully", "Fully Understood"),
    ("partial", "Partially Understood"),
    ("confused", "Needs Review"),
)


def _ratio_half_up(numer: int, denom: int) -> int:
    # round(numer / denom) with halves rounded up, for non-negative integers
    return (2 * numer + denom) // (2 * denom)


def understanding_score(level: str) -> int:
    """
    Map an understanding level to its score. Raises KeyError for unknown levels.
    """
    return UNDERSTANDING_SCORES[level]


def average_understanding(feedback: Sequence[Feedback]) -> int:
    """
    Mean mapped score of the given feedback, 0 if there is none.
    """
    if not feedback:
        return 0
    total = sum(understanding_score(f.understanding_level) for f in feedback)
    return _ratio_half_up(total, len(feedback))


def course_health(course_id: str, feedback: Iterable[Feedback]) -> int:
    """
    Health percentage of one course: mean understanding over its feedback.
    A course without feedback (or an unknown course) has health 0.
    """
    return average_understanding([f for f in feedback if f.course_id == course_id])


def _scope_courses(store: Store, course_ids: Optional[Iterable[str]]) -> list[Course]:
    if course_ids is None:
        return list(store.courses)
    wanted = set(course_ids)
    return [c for c in store.courses if c.id in wanted]


def scoped_feedback(store: Store, course_ids: Optional[Iterable[str]] = None) -> list[Feedback]:
    if course_ids is None:
        return list(store.feedback)
    wanted = set(course_ids)
    return [f for f in store.feedback if f.course_id in wanted]


def course_health_table(store: Store, course_ids: Optional[Iterable[str]] = None) -> list[CourseHealth]:
    """
    One health row per course, healthiest first.
    """
    rows: list[CourseHealth] = []
    for course in _scope_courses(store, course_ids):
        enrolled = sum(1 for s in store.students if course.id in s.enrolled_courses)
        rows.append(
            CourseHealth(
                course_id=course.id,
                course_code=course.code,
                course_name=course.name,
                health_pct=course_health(course.id, store.feedback),
                students=enrolled,
            )
        )
    rows.sort(key=lambda r: r.health_pct, reverse=True)
    return rows


def course_engagement(store: Store, course_id: str) -> int:
    """
    Share of expected feedback actually received: one per student per completed lecture.
    """
    course = store.get_course(course_id)
    if course is None or not course.students:
        return 0
    completed = [lec for lec in store.course_lectures(course_id) if lec.status == "completed"]
    if not completed:
        return 0
    received = len(store.course_feedback(course_id))
    return _ratio_half_up(100 * received, len(completed) * len(course.students))


def parse_range(value: int | str) -> int:
    """
    Accept 7/14/30/90 or '7d'/'14d'/'30d'/'90d'.
    """
    if isinstance(value, str):
        key = value.strip().lower()
        if key in DATE_RANGES:
            return DATE_RANGES[key]
        if key.isdigit():
            value = int(key)
        else:
            raise ValueError(f"Invalid date range: {value!r}")
    if value not in DATE_RANGES.values():
        raise ValueError(f"Invalid date range: {value!r} (use 7, 14, 30 or 90 days)")
    return value


def _today(now: Optional[datetime]) -> date:
    current = now or utc_now()
    if current.tzinfo is not None:
        current = current.astimezone(timezone.utc)
    return current.date()


def daily_metrics(feedback: Sequence[Feedback], days: int | str, now: Optional[datetime] = None) -> list[DailyMetric]:
    """
    One bucket per calendar day, oldest first, ending today.

    Every day of the window is present even without feedback, so the
    series always has exactly `days` entries. A feedback falls into a day
    when its timestamp text starts with that day's YYYY-MM-DD.
    """
    n = parse_range(days)
    today = _today(now)

    metrics: list[DailyMetric] = []
    for offset in range(n - 1, -1, -1):
        day = today - timedelta(days=offset)
        prefix = day.isoformat()
        day_feedback = [f for f in feedback if f.timestamp.startswith(prefix)]
        count = len(day_feedback)
        metrics.append(
            DailyMetric(
                date=prefix,
                label=f"{day.strftime('%b')} {day.day}",
                understanding=average_understanding(day_feedback),
                engagement=min(100, count * 10),
                feedback=count,
                confused=sum(1 for f in day_feedback if f.understanding_level == "confused"),
            )
        )
    return metrics


def hour_label(hour: int) -> str:
    if hour < 12:
        return f"{hour} AM"
    if hour == 12:
        return "12 PM"
    return f"{hour - 12} PM"


def hourly_activity(feedback: Iterable[Feedback]) -> list[HourlyActivity]:
    """
    Feedback counts for each clock hour from 8 AM to 6 PM inclusive.
    The hour is read as written in the timestamp (no timezone conversion).
    """
    per_hour: dict[int, list[Feedback]] = {}
    for f in feedback:
        dt = parse_timestamp(f.timestamp)
        if dt is not None:
            per_hour.setdefault(dt.hour, []).append(f)

    rows: list[HourlyActivity] = []
    for h in range(FIRST_HOUR, LAST_HOUR + 1):
        bucket = per_hour.get(h, [])
        rows.append(
            HourlyActivity(
                hour=h,
                label=hour_label(h),
                understanding=average_understanding(bucket),
                feedback=len(bucket),
                engagement=min(100, len(bucket) * 5),
            )
        )
    return rows


def topic_difficulty(
    feedback: Iterable[Feedback], courses: Optional[Iterable[Course]] = None, limit: int = TOP_TOPICS
) -> list[TopicDifficulty]:
    """
    Rank topics by average rating, hardest first.

    Ratings (1..5) are averaged per topic and scaled to a percentage
    (avg * 20). Topics nobody rated do not appear.
    """
    ratings: dict[str, list[int]] = {}
    topic_course: dict[str, str] = {}
    for f in feedback:
        for tr in f.topic_ratings:
            ratings.setdefault(tr.topic_id, []).append(tr.rating)
            topic_course.setdefault(tr.topic_id, f.course_id)

    code_by_id = {c.id: c.code for c in (courses or [])}

    rows: list[TopicDifficulty] = []
    for topic, scores in ratings.items():
        understanding = _ratio_half_up(20 * sum(scores), len(scores))
        rows.append(
            TopicDifficulty(
                topic=topic,
                course=code_by_id.get(topic_course[topic]) or "N/A",
                understanding=understanding,
                feedback_count=len(scores),
                confusion_rate=100 - understanding,
            )
        )

    rows.sort(key=lambda r: r.understanding)
    return rows[:limit]


def feedback_categories(feedback: Sequence[Feedback]) -> list[FeedbackCategory]:
    """
    Count feedback per understanding level. Levels with no feedback are omitted.
    """
    total = len(feedback)
    if total == 0:
        return []
    counts = Counter(f.understanding_level for f in feedback)
    return [
        FeedbackCategory(
            category=label,
            level=level,
            count=counts[level],
            percentage=_ratio_half_up(100 * counts[level], total),
        )
        for level, label in CATEGORY_LABELS
        if counts[level] > 0
    ]


def summary_stats(store: Store, course_ids: Optional[Iterable[str]] = None) -> SummaryStats:
    ids = None if course_ids is None else list(course_ids)
    courses = _scope_courses(store, ids)
    feedback = scoped_feedback(store, ids)

    if not feedback:
        return SummaryStats(
            avg_understanding=0,
            total_feedback=0,
            active_students=0,
            confused_students=0,
            priority_course=courses[0].code if courses else "N/A",
            priority_action="No data yet",
        )

    health = course_health_table(store, [c.id for c in courses])
    lowest = health[-1] if health else None

    return SummaryStats(
        avg_understanding=average_understanding(feedback),
        total_feedback=len(feedback),
        active_students=len({f.student_id for f in feedback}),
        confused_students=len({f.student_id for f in feedback if f.understanding_level == "confused"}),
        priority_course=lowest.course_code if lowest else "N/A",
        priority_action=f"Review {lowest.course_name}" if lowest else "No action needed",
    )


def course_comparison(
    store: Store, course_ids: Optional[Iterable[str]] = None, limit: int = COMPARED_COURSES
) -> list[CourseComparison]:
    """
    Side-by-side scores for the first `limit` courses in store order.

    feedback is the volume score min(100, count * 5), not the raw count.
    """
    rows: list[CourseComparison] = []
    for course in _scope_courses(store, course_ids)[:limit]:
        course_feedback = store.course_feedback(course.id)
        rows.append(
            CourseComparison(
                course_id=course.id,
                course_code=course.code,
                understanding=average_understanding(course_feedback),
                engagement=course_engagement(store, course.id),
                feedback=min(100, len(course_feedback) * 5),
            )
        )
    return rows
