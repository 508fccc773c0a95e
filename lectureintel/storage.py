"""
Persistent storage for courses, lectures, students and feedback.

This module manages the file:

    <data_dir>/lis_store.json

The Store is a plain state container: every derivation in analytics.py and
feedback.py receives it (or lists taken from it) as an argument, there is
no ambient global store.

File format (schema version 2):

    {
      "version": 2,
      "courses": [...], "lectures": [...], "students": [...],
      "feedback": [...], "read_feedback_ids": [...]
    }

Version 1 is the layout the browser client persisted
({"state": {...camelCase keys...}, "version": 0}); it is migrated on load.
"""

from __future__ import annotations

import json
import logging
import random
import re
import string
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from lectureintel.model import (
    LECTURE_STATUSES,
    Course,
    Feedback,
    Lecture,
    Student,
    TopicRating,
)
from lectureintel.settings import settings


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2
STORE_FILENAME = "lis_store.json"

COURSE_UPDATABLE_FIELDS = ("code", "name", "department", "semester", "credits")


class UnknownEntityError(KeyError):
    """Raised when an action refers to a course, lecture or student that does not exist."""


class CourseValidationError(ValueError):
    """Raised when course data is incomplete (code and name are required)."""


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def parse_timestamp(ts: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp ('Z' suffix allowed).
    Returns None for empty or invalid input.
    """
    text = (ts or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _as_utc(dt: datetime) -> datetime:
    # naive timestamps are treated as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _generate_id() -> str:
    return uuid.uuid4().hex[:12]


def _generate_enrollment_code(rng: random.Random) -> str:
    return "".join(rng.choices(string.ascii_uppercase + string.digits, k=6))


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@dataclass
class Store:
    courses: list[Course] = field(default_factory=list)
    lectures: list[Lecture] = field(default_factory=list)
    students: list[Student] = field(default_factory=list)
    feedback: list[Feedback] = field(default_factory=list)
    read_feedback_ids: set[str] = field(default_factory=set)

    # -- lookups ------------------------------------------------------------

    def get_course(self, course_id: str) -> Optional[Course]:
        return next((c for c in self.courses if c.id == course_id), None)

    def find_course(self, key: str) -> Optional[Course]:
        """
        Find a course by id or by code (case-insensitive).
        """
        k = (key or "").strip()
        if not k:
            return None
        course = self.get_course(k)
        if course is not None:
            return course
        folded = k.casefold()
        return next((c for c in self.courses if c.code.casefold() == folded), None)

    def get_lecture(self, lecture_id: str) -> Optional[Lecture]:
        return next((lec for lec in self.lectures if lec.id == lecture_id), None)

    def get_student(self, student_id: str) -> Optional[Student]:
        return next((s for s in self.students if s.id == student_id), None)

    def _require_course(self, course_id: str) -> Course:
        course = self.get_course(course_id)
        if course is None:
            raise UnknownEntityError(f"Unknown course: {course_id}")
        return course

    def _require_student(self, student_id: str) -> Student:
        student = self.get_student(student_id)
        if student is None:
            raise UnknownEntityError(f"Unknown student: {student_id}")
        return student

    # -- getters ------------------------------------------------------------

    def professor_courses(self, professor_id: Optional[str]) -> list[Course]:
        if not professor_id:
            return list(self.courses)
        return [c for c in self.courses if c.professor_id == professor_id]

    def course_lectures(self, course_id: str) -> list[Lecture]:
        return [lec for lec in self.lectures if lec.course_id == course_id]

    def course_feedback(self, course_id: str) -> list[Feedback]:
        return [f for f in self.feedback if f.course_id == course_id]

    def course_students(self, course_id: str) -> list[Student]:
        course = self.get_course(course_id)
        if course is None:
            return []
        enrolled = set(course.students)
        return [s for s in self.students if s.id in enrolled]

    def student_courses(self, student_id: str) -> list[Course]:
        student = self.get_student(student_id)
        if student is None:
            return []
        enrolled = set(student.enrolled_courses)
        return [c for c in self.courses if c.id in enrolled]

    def _students_by_activity(
        self, course_id: str, cutoff: datetime, active: bool
    ) -> list[Student]:
        out: list[Student] = []
        for s in self.course_students(course_id):
            last = parse_timestamp(s.last_active_at)
            # no recorded activity counts as inactive
            is_active = last is not None and _as_utc(last) >= cutoff
            if is_active == active:
                out.append(s)
        return out

    def active_students(self, course_id: str, hours: int = 24, now: Optional[datetime] = None) -> list[Student]:
        cutoff = _as_utc(now or utc_now()) - timedelta(hours=hours)
        return self._students_by_activity(course_id, cutoff, active=True)

    def silent_students(self, course_id: str, days: int = 7, now: Optional[datetime] = None) -> list[Student]:
        """
        Enrolled students with no activity within the last `days` days.
        """
        cutoff = _as_utc(now or utc_now()) - timedelta(days=days)
        return self._students_by_activity(course_id, cutoff, active=False)

    def pending_feedback(self, student_id: str) -> list[Lecture]:
        """
        Completed lectures of the student's courses that they have not rated yet.
        """
        student = self.get_student(student_id)
        if student is None:
            return []
        enrolled = set(student.enrolled_courses)
        done = {f.lecture_id for f in self.feedback if f.student_id == student_id}
        return [
            lec
            for lec in self.lectures
            if lec.course_id in enrolled and lec.status == "completed" and lec.id not in done
        ]

    # -- course actions -----------------------------------------------------

    def create_course(
        self,
        code: str,
        name: str,
        semester: str = "",
        department: str = "",
        credits: int = 0,
        professor_id: Optional[str] = None,
        now: Optional[datetime] = None,
        rng: Optional[random.Random] = None,
    ) -> Course:
        code = (code or "").strip()
        name = (name or "").strip()
        if not code or not name:
            raise CourseValidationError("Please fill in all required fields (code and name)")

        rng = rng or random.Random()
        taken = {c.enrollment_code for c in self.courses}
        enrollment_code = _generate_enrollment_code(rng)
        while enrollment_code in taken:
            enrollment_code = _generate_enrollment_code(rng)

        course = Course(
            id=_generate_id(),
            code=code,
            name=name,
            department=(department or "").strip(),
            semester=(semester or "").strip(),
            created_at=to_iso(now or utc_now()),
            professor_id=professor_id,
            credits=int(credits or 0),
            enrollment_code=enrollment_code,
        )
        self.courses.append(course)
        logger.info("Created course %s (%s)", course.code, course.id)
        return course

    def update_course(self, course_id: str, **updates: Any) -> Course:
        course = self._require_course(course_id)
        unknown = set(updates) - set(COURSE_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update course fields: {', '.join(sorted(unknown))}")
        for key in ("code", "name"):
            if key in updates and not str(updates[key] or "").strip():
                raise CourseValidationError(f"Course {key} must not be empty")
        for key, value in updates.items():
            setattr(course, key, int(value or 0) if key == "credits" else str(value).strip())
        return course

    def delete_course(self, course_id: str) -> bool:
        """
        Delete a course together with its lectures and feedback.
        Returns False if the course does not exist.
        """
        if self.get_course(course_id) is None:
            return False

        removed_feedback = {f.id for f in self.feedback if f.course_id == course_id}
        self.courses = [c for c in self.courses if c.id != course_id]
        self.lectures = [lec for lec in self.lectures if lec.course_id != course_id]
        self.feedback = [f for f in self.feedback if f.course_id != course_id]
        self.read_feedback_ids -= removed_feedback
        for s in self.students:
            if course_id in s.enrolled_courses:
                s.enrolled_courses = [cid for cid in s.enrolled_courses if cid != course_id]

        logger.info("Deleted course %s (%d feedback removed)", course_id, len(removed_feedback))
        return True

    # -- student actions ----------------------------------------------------

    def register_student(
        self,
        name: str,
        email: str = "",
        roll_number: str = "",
        department: str = "",
        now: Optional[datetime] = None,
    ) -> Student:
        email = (email or "").strip().lower()
        if email:
            existing = next((s for s in self.students if s.email == email), None)
            if existing is not None:
                return existing

        stamp = to_iso(now or utc_now())
        student = Student(
            id=_generate_id(),
            name=(name or "").strip(),
            roll_number=(roll_number or "").strip(),
            email=email,
            department=(department or "").strip(),
            created_at=stamp,
            last_active_at=stamp,
        )
        self.students.append(student)
        return student

    def _link(self, course: Course, student: Student) -> None:
        if student.id not in course.students:
            course.students.append(student.id)
        if course.id not in student.enrolled_courses:
            student.enrolled_courses.append(course.id)

    def enroll_student(
        self,
        course_id: str,
        name: str,
        email: str = "",
        roll_number: str = "",
        department: str = "",
        now: Optional[datetime] = None,
    ) -> Student:
        """
        Enrol a student into a course, registering them first if needed
        (an existing student with the same email is reused).
        """
        course = self._require_course(course_id)
        student = self.register_student(name, email, roll_number, department, now=now)
        self._link(course, student)
        return student

    def enroll_by_code(self, student_id: str, enrollment_code: str) -> Course:
        student = self._require_student(student_id)
        code = (enrollment_code or "").strip().upper()
        course = next((c for c in self.courses if c.enrollment_code == code), None)
        if course is None:
            raise UnknownEntityError("Invalid enrollment code")
        if student.id in course.students:
            raise ValueError("Already enrolled in this course")
        self._link(course, student)
        return course

    def remove_student(self, course_id: str, student_id: str) -> None:
        course = self._require_course(course_id)
        course.students = [sid for sid in course.students if sid != student_id]
        student = self.get_student(student_id)
        if student is not None:
            student.enrolled_courses = [cid for cid in student.enrolled_courses if cid != course_id]

    def touch_student(self, student_id: str, now: Optional[datetime] = None) -> None:
        student = self.get_student(student_id)
        if student is not None:
            student.last_active_at = to_iso(now or utc_now())

    # -- lecture actions ----------------------------------------------------

    def create_lecture(
        self,
        course_id: str,
        title: str,
        date: str = "",
        topics: Optional[Iterable[str]] = None,
        status: str = "scheduled",
    ) -> Lecture:
        course = self._require_course(course_id)
        lecture = Lecture(
            id=_generate_id(),
            course_id=course.id,
            title=(title or "").strip(),
            date=date,
            status=status,
            topics=[t for t in (topics or []) if t],
        )
        self.lectures.append(lecture)
        course.lectures.append(lecture.id)
        return lecture

    def set_lecture_status(self, lecture_id: str, status: str) -> Lecture:
        if status not in LECTURE_STATUSES:
            raise ValueError(f"Invalid lecture status: {status!r}")
        lecture = self.get_lecture(lecture_id)
        if lecture is None:
            raise UnknownEntityError(f"Unknown lecture: {lecture_id}")
        lecture.status = status
        return lecture

    # -- feedback actions ---------------------------------------------------

    def submit_feedback(
        self,
        lecture_id: str,
        student_id: str,
        understanding_level: str,
        comments: str = "",
        topic_ratings: Optional[Iterable[TopicRating | tuple[str, int]]] = None,
        now: Optional[datetime] = None,
    ) -> Feedback:
        """
        Record feedback for a lecture. The course is taken from the lecture.
        """
        lecture = self.get_lecture(lecture_id)
        if lecture is None:
            raise UnknownEntityError(f"Unknown lecture: {lecture_id}")

        ratings: list[TopicRating] = []
        for r in topic_ratings or []:
            ratings.append(r if isinstance(r, TopicRating) else TopicRating(topic_id=str(r[0]), rating=r[1]))

        when = now or utc_now()
        feedback = Feedback(
            id=_generate_id(),
            student_id=student_id,
            course_id=lecture.course_id,
            lecture_id=lecture.id,
            understanding_level=understanding_level,
            timestamp=to_iso(when),
            comments=(comments or "").strip(),
            topic_ratings=ratings,
        )
        self.feedback.append(feedback)
        self.touch_student(student_id, now=when)
        return feedback

    def mark_read(self, feedback_ids: Iterable[str]) -> int:
        known = {f.id for f in self.feedback}
        new = {fid for fid in feedback_ids if fid in known} - self.read_feedback_ids
        self.read_feedback_ids |= new
        return len(new)

    def reset(self) -> None:
        self.courses = []
        self.lectures = []
        self.students = []
        self.feedback = []
        self.read_feedback_ids = set()

    # -- serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": SCHEMA_VERSION,
            "courses": [c.to_dict() for c in self.courses],
            "lectures": [lec.to_dict() for lec in self.lectures],
            "students": [s.to_dict() for s in self.students],
            "feedback": [f.to_dict() for f in self.feedback],
            "read_feedback_ids": sorted(self.read_feedback_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Store":
        store = cls()
        store.courses = _load_records(data.get("courses"), Course.from_dict, "course")
        store.lectures = _load_records(data.get("lectures"), Lecture.from_dict, "lecture")
        store.students = _load_records(data.get("students"), Student.from_dict, "student")
        store.feedback = _load_records(data.get("feedback"), Feedback.from_dict, "feedback")
        ids = data.get("read_feedback_ids", [])
        store.read_feedback_ids = {str(x) for x in ids} if isinstance(ids, list) else set()
        return store


def _load_records(raw: Any, factory: Callable[[dict[str, Any]], Any], kind: str) -> list[Any]:
    """
    Build entities from raw dicts, skipping (and logging) records that fail validation.
    """
    if not isinstance(raw, list):
        return []
    out: list[Any] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            out.append(factory(item))
        except (ValueError, TypeError) as exc:
            logger.warning("Skipping invalid %s record %r: %s", kind, item.get("id"), exc)
    return out


# ---------------------------------------------------------------------------
# Schema migration
# ---------------------------------------------------------------------------


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def _snake_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {_snake(str(k)): _snake_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_snake_keys(v) for v in value]
    return value


def _migrate_v1(data: dict[str, Any]) -> dict[str, Any]:
    state = data.get("state")
    if not isinstance(state, dict):
        state = {}
    state = _snake_keys(state)
    return {
        "version": 2,
        "courses": state.get("courses", []),
        "lectures": state.get("lectures", []),
        "students": state.get("students", []),
        "feedback": state.get("feedback", []),
        "read_feedback_ids": [],
    }


MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    1: _migrate_v1,
}


def _detect_version(data: dict[str, Any]) -> int:
    if "state" in data:
        return 1
    try:
        return int(data.get("version", 1))
    except (TypeError, ValueError):
        return 0


def migrate(data: dict[str, Any]) -> dict[str, Any]:
    """
    Upgrade a raw store dict to SCHEMA_VERSION.
    Raises ValueError for unknown or newer versions.
    """
    version = _detect_version(data)
    if version > SCHEMA_VERSION:
        raise ValueError(f"Store schema version {version} is newer than supported {SCHEMA_VERSION}")
    while version < SCHEMA_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            raise ValueError(f"No migration from store schema version {version}")
        data = step(data)
        version = _detect_version(data)
    return data


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def _default_store_path() -> Path:
    """
    Return the default store path inside the configured data directory.

    Using a function instead of a constant makes testing easier,
    because tests can override the path.
    """
    return settings.resolved_data_dir() / STORE_FILENAME


def load_store(path: str | Path | None = None) -> Store:
    """
    Load the store from disk.

    A missing file yields an empty store (first run). A corrupt or
    unsupported file also yields an empty store, with a warning.
    """
    store_path = Path(path) if path is not None else _default_store_path()
    if not store_path.exists():
        return Store()

    try:
        data = json.loads(store_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.warning("Could not read store %s: %s", store_path, exc)
        return Store()

    if not isinstance(data, dict):
        logger.warning("Store %s does not contain a JSON object", store_path)
        return Store()

    try:
        data = migrate(data)
    except ValueError as exc:
        logger.warning("Could not migrate store %s: %s", store_path, exc)
        return Store()

    return Store.from_dict(data)


def save_store(store: Store, path: str | Path | None = None) -> Path:
    """
    Save the store as JSON. Creates parent directories if needed.
    """
    store_path = Path(path) if path is not None else _default_store_path()
    store_path.parent.mkdir(parents=True, exist_ok=True)
    store_path.write_text(json.dumps(store.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    return store_path
