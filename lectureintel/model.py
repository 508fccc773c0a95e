"""
Central data model definitions used across the project.

This module defines the canonical structure of the stored entities
(Course, Lecture, Feedback, Student) and of the view models that the
analytics and feedback modules derive from them, so that:
- all modules share the same field names
- the JSON store, the CSV export and the terminal dashboard agree on shapes
- invalid understanding levels and topic ratings are rejected in one place
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional, List


UNDERSTANDING_LEVELS = ("fully", "partial", "confused")
LECTURE_STATUSES = ("scheduled", "live", "completed")


def _str(x: Any) -> str:
    return "" if x is None else str(x)


def _str_list(x: Any) -> List[str]:
    if not isinstance(x, list):
        return []
    return [str(v) for v in x if v is not None]


@dataclass
class Course:
    """
    Represents one course owned by a professor.

    `students` and `lectures` keep the order in which ids were added.
    """

    id: str
    code: str
    name: str
    department: str = ""
    semester: str = ""
    students: List[str] = field(default_factory=list)
    lectures: List[str] = field(default_factory=list)
    created_at: str = ""
    professor_id: Optional[str] = None
    credits: int = 0
    enrollment_code: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Course":
        return cls(
            id=_str(data.get("id")),
            code=_str(data.get("code")),
            name=_str(data.get("name")),
            department=_str(data.get("department")),
            semester=_str(data.get("semester")),
            students=_str_list(data.get("students")),
            lectures=_str_list(data.get("lectures")),
            created_at=_str(data.get("created_at")),
            professor_id=data.get("professor_id") or None,
            credits=int(data.get("credits") or 0),
            enrollment_code=_str(data.get("enrollment_code")),
        )


@dataclass
class Lecture:
    id: str
    course_id: str
    title: str
    date: str = ""
    status: str = "scheduled"
    topics: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.status not in LECTURE_STATUSES:
            raise ValueError(f"Invalid lecture status: {self.status!r}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Lecture":
        return cls(
            id=_str(data.get("id")),
            course_id=_str(data.get("course_id")),
            title=_str(data.get("title")),
            date=_str(data.get("date")),
            status=_str(data.get("status")) or "scheduled",
            topics=_str_list(data.get("topics")),
        )


@dataclass
class TopicRating:
    topic_id: str
    rating: int

    def __post_init__(self) -> None:
        if isinstance(self.rating, bool) or not isinstance(self.rating, int) or not 1 <= self.rating <= 5:
            raise ValueError(f"Topic rating must be an integer 1..5, got {self.rating!r}")


@dataclass
class Feedback:
    """
    One student's feedback on one lecture.

    Feedback is append-only. Whether it is "resolved" is derived later
    from the understanding level and never stored.
    """

    id: str
    student_id: str
    course_id: str
    lecture_id: str
    understanding_level: str
    timestamp: str
    comments: str = ""
    topic_ratings: List[TopicRating] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.understanding_level not in UNDERSTANDING_LEVELS:
            raise ValueError(f"Unknown understanding level: {self.understanding_level!r}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Feedback":
        ratings_raw = data.get("topic_ratings") or []
        ratings = [
            TopicRating(topic_id=_str(r.get("topic_id")), rating=r.get("rating"))
            for r in ratings_raw
            if isinstance(r, dict)
        ]
        return cls(
            id=_str(data.get("id")),
            student_id=_str(data.get("student_id")),
            course_id=_str(data.get("course_id")),
            lecture_id=_str(data.get("lecture_id")),
            understanding_level=_str(data.get("understanding_level")),
            timestamp=_str(data.get("timestamp")),
            comments=_str(data.get("comments")),
            topic_ratings=ratings,
        )


@dataclass
class Student:
    id: str
    name: str
    roll_number: str = ""
    enrolled_courses: List[str] = field(default_factory=list)
    email: str = ""
    department: str = ""
    created_at: str = ""
    last_active_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Student":
        return cls(
            id=_str(data.get("id")),
            name=_str(data.get("name")),
            roll_number=_str(data.get("roll_number")),
            enrolled_courses=_str_list(data.get("enrolled_courses")),
            email=_str(data.get("email")),
            department=_str(data.get("department")),
            created_at=_str(data.get("created_at")),
            last_active_at=_str(data.get("last_active_at")),
        )


# ---------------------------------------------------------------------------
# View models
# ---------------------------------------------------------------------------


@dataclass
class CourseHealth:
    course_id: str
    course_code: str
    course_name: str
    health_pct: int
    students: int


@dataclass
class DailyMetric:
    date: str
    label: str
    understanding: int
    engagement: int
    feedback: int
    confused: int


@dataclass
class HourlyActivity:
    hour: int
    label: str
    understanding: int
    feedback: int
    engagement: int


@dataclass
class CourseComparison:
    course_id: str
    course_code: str
    understanding: int
    engagement: int
    feedback: int


@dataclass
class TopicDifficulty:
    topic: str
    course: str
    understanding: int
    feedback_count: int
    confusion_rate: int


@dataclass
class FeedbackCategory:
    category: str
    level: str
    count: int
    percentage: int


@dataclass
class SummaryStats:
    avg_understanding: int
    total_feedback: int
    active_students: int
    confused_students: int
    priority_course: str
    priority_action: str


@dataclass
class FeedbackItem:
    """
    Flat, display-ready feedback record with all references resolved.
    """

    id: str
    lecture_id: str
    lecture_title: str
    course_id: str
    course_code: str
    student_id: str
    student_name: str
    student_rollno: str
    rating: int
    comment: str
    timestamp: str
    resolved: bool
    read: bool
    category: str


@dataclass
class FeedbackStats:
    total: int
    today: int
    unread: int
    unresolved: int
    avg_rating: float
    low_rating: int
    categories: dict[str, int]
