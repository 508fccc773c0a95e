"""
Unit tests for the store: actions, getters and JSON persistence.

Storage contract:
- Missing/corrupt file -> empty store
- Version 1 (browser camelCase layout) is migrated on load
- Newer schema versions are refused rather than misread
- Records with unknown understanding levels are skipped
"""

import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from lectureintel.model import Feedback
from lectureintel.storage import (
    SCHEMA_VERSION,
    CourseValidationError,
    Store,
    UnknownEntityError,
    load_store,
    migrate,
    save_store,
)


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class TestStoreActions(unittest.TestCase):
    def test_create_course_requires_code_and_name(self) -> None:
        store = Store()
        with self.assertRaises(CourseValidationError):
            store.create_course("", "Algorithms")
        with self.assertRaises(CourseValidationError):
            store.create_course("CS301", "   ")
        self.assertEqual(store.courses, [])

    def test_create_course_fills_defaults(self) -> None:
        store = Store()
        course = store.create_course(" CS301 ", "Algorithms", semester="Spring 2026", now=NOW)
        self.assertEqual(course.code, "CS301")
        self.assertEqual(course.created_at, "2026-03-10T12:00:00Z")
        self.assertEqual(len(course.enrollment_code), 6)
        self.assertIs(store.find_course("cs301"), course)
        self.assertIs(store.find_course(course.id), course)

    def test_update_course(self) -> None:
        store = Store()
        course = store.create_course("CS301", "Algorithms")
        store.update_course(course.id, name="Advanced Algorithms", credits="4")
        self.assertEqual(course.name, "Advanced Algorithms")
        self.assertEqual(course.credits, 4)
        with self.assertRaises(CourseValidationError):
            store.update_course(course.id, code="")
        with self.assertRaises(ValueError):
            store.update_course(course.id, id="other")
        with self.assertRaises(UnknownEntityError):
            store.update_course("missing", name="x")

    def test_enroll_reuses_student_by_email(self) -> None:
        store = Store()
        a = store.create_course("A1", "Alpha")
        b = store.create_course("B1", "Beta")
        s1 = store.enroll_student(a.id, "Ann", email="Ann@Uni.edu")
        s2 = store.enroll_student(b.id, "Ann", email="ann@uni.edu")
        self.assertIs(s1, s2)
        self.assertEqual(s1.enrolled_courses, [a.id, b.id])
        self.assertEqual(len(store.students), 1)
        with self.assertRaises(UnknownEntityError):
            store.enroll_student("missing", "Bob")

    def test_enroll_by_code(self) -> None:
        store = Store()
        course = store.create_course("A1", "Alpha")
        student = store.register_student("Ann", email="ann@uni.edu")
        self.assertIs(store.enroll_by_code(student.id, course.enrollment_code.lower()), course)
        self.assertIn(student.id, course.students)
        with self.assertRaises(ValueError):
            store.enroll_by_code(student.id, course.enrollment_code)
        with self.assertRaises(UnknownEntityError):
            store.enroll_by_code(student.id, "NOPE00")

    def test_submit_feedback_uses_lecture_course_and_touches_student(self) -> None:
        store = Store()
        course = store.create_course("A1", "Alpha")
        student = store.enroll_student(course.id, "Ann", now=NOW - timedelta(days=30))
        lecture = store.create_lecture(course.id, "Intro", status="completed")
        fb = store.submit_feedback(lecture.id, student.id, "partial", "ok", [("t1", 4)], now=NOW)
        self.assertEqual(fb.course_id, course.id)
        self.assertEqual(fb.topic_ratings[0].rating, 4)
        self.assertEqual(student.last_active_at, "2026-03-10T12:00:00Z")
        with self.assertRaises(UnknownEntityError):
            store.submit_feedback("missing", student.id, "fully")
        with self.assertRaises(ValueError):
            store.submit_feedback(lecture.id, student.id, "meh")
        with self.assertRaises(ValueError):
            store.submit_feedback(lecture.id, student.id, "fully", topic_ratings=[("t1", 6)])

    def test_pending_feedback(self) -> None:
        store = Store()
        course = store.create_course("A1", "Alpha")
        student = store.enroll_student(course.id, "Ann")
        done = store.create_lecture(course.id, "One", status="completed")
        todo = store.create_lecture(course.id, "Two", status="completed")
        store.create_lecture(course.id, "Three")
        store.submit_feedback(done.id, student.id, "fully")
        self.assertEqual([lec.id for lec in store.pending_feedback(student.id)], [todo.id])

    def test_delete_course_cascades(self) -> None:
        store = Store()
        keep = store.create_course("K1", "Keep")
        gone = store.create_course("G1", "Gone")
        student = store.enroll_student(gone.id, "Ann", email="ann@x.edu")
        store.enroll_student(keep.id, "Ann", email="ann@x.edu")
        lec_gone = store.create_lecture(gone.id, "L")
        lec_keep = store.create_lecture(keep.id, "L")
        f_gone = store.submit_feedback(lec_gone.id, student.id, "fully")
        store.submit_feedback(lec_keep.id, student.id, "fully")
        store.mark_read([f_gone.id])

        self.assertTrue(store.delete_course(gone.id))
        self.assertEqual([c.id for c in store.courses], [keep.id])
        self.assertEqual([lec.id for lec in store.lectures], [lec_keep.id])
        self.assertEqual(len(store.feedback), 1)
        self.assertEqual(store.read_feedback_ids, set())
        self.assertEqual(student.enrolled_courses, [keep.id])
        self.assertFalse(store.delete_course(gone.id))

    def test_silent_and_active_students(self) -> None:
        store = Store()
        course = store.create_course("A1", "Alpha")
        recent = store.enroll_student(course.id, "Ann", email="a@x", now=NOW - timedelta(hours=2))
        old = store.enroll_student(course.id, "Ben", email="b@x", now=NOW - timedelta(days=10))
        never = store.enroll_student(course.id, "Cy", email="c@x")
        never.last_active_at = ""
        silent = {s.id for s in store.silent_students(course.id, days=7, now=NOW)}
        self.assertEqual(silent, {old.id, never.id})
        active = {s.id for s in store.active_students(course.id, hours=24, now=NOW)}
        self.assertEqual(active, {recent.id})
        self.assertEqual(store.silent_students("missing", now=NOW), [])


class TestPersistence(unittest.TestCase):
    def test_load_missing_file_returns_empty(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            store = load_store(Path(d) / "missing.json")
            self.assertEqual(store.courses, [])
            self.assertEqual(store.feedback, [])

    def test_load_corrupt_file_returns_empty(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "store.json"
            p.write_text("{not json", encoding="utf-8")
            with self.assertLogs("lectureintel.storage", level="WARNING"):
                store = load_store(p)
            self.assertEqual(store.courses, [])

    def test_save_and_load_roundtrip(self) -> None:
        store = Store()
        course = store.create_course("A1", "Alpha", now=NOW)
        student = store.enroll_student(course.id, "Ann", email="ann@uni.edu", now=NOW)
        lecture = store.create_lecture(course.id, "Intro", topics=["sets"], status="completed")
        fb = store.submit_feedback(lecture.id, student.id, "confused", "lost", [("sets", 2)], now=NOW)
        store.mark_read([fb.id])

        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "nested" / "store.json"
            save_store(store, p)
            data = json.loads(p.read_text(encoding="utf-8"))
            self.assertEqual(data["version"], SCHEMA_VERSION)

            loaded = load_store(p)
            self.assertEqual(loaded.courses, store.courses)
            self.assertEqual(loaded.lectures, store.lectures)
            self.assertEqual(loaded.students, store.students)
            self.assertEqual(loaded.feedback, store.feedback)
            self.assertEqual(loaded.read_feedback_ids, {fb.id})

    def test_invalid_level_is_skipped_on_load(self) -> None:
        good = Feedback("f1", "s1", "c1", "l1", "fully", "2026-03-10T09:00:00Z").to_dict()
        bad = dict(good, id="f2", understanding_level="meh")
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "store.json"
            p.write_text(json.dumps({"version": 2, "feedback": [good, bad]}), encoding="utf-8")
            with self.assertLogs("lectureintel.storage", level="WARNING") as logs:
                store = load_store(p)
            self.assertEqual([f.id for f in store.feedback], ["f1"])
            self.assertIn("f2", "\n".join(logs.output))

    def test_migrates_browser_layout(self) -> None:
        legacy = {
            "version": 0,
            "state": {
                "courses": [
                    {
                        "id": "c1",
                        "code": "CS301",
                        "name": "DSA",
                        "professorId": "p1",
                        "enrollmentCode": "DSA2026",
                        "students": ["s1"],
                        "lectures": ["l1"],
                        "assessments": [],
                        "createdAt": "2026-01-01T00:00:00Z",
                    }
                ],
                "lectures": [{"id": "l1", "courseId": "c1", "title": "Trees", "status": "completed", "duration": 60}],
                "students": [
                    {"id": "s1", "name": "Ann", "rollNumber": "R1", "enrolledCourses": ["c1"], "lastActiveAt": "x"}
                ],
                "feedback": [
                    {
                        "id": "f1",
                        "lectureId": "l1",
                        "studentId": "s1",
                        "courseId": "c1",
                        "understandingLevel": "partial",
                        "topicRatings": [{"topicId": "trees", "rating": 3}],
                        "comments": "ok",
                        "timestamp": "2026-03-10T09:00:00.000Z",
                    }
                ],
            },
        }
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "store.json"
            p.write_text(json.dumps(legacy), encoding="utf-8")
            store = load_store(p)

        self.assertEqual(store.courses[0].professor_id, "p1")
        self.assertEqual(store.courses[0].enrollment_code, "DSA2026")
        self.assertEqual(store.lectures[0].course_id, "c1")
        self.assertEqual(store.students[0].roll_number, "R1")
        self.assertEqual(store.feedback[0].understanding_level, "partial")
        self.assertEqual(store.feedback[0].topic_ratings[0].topic_id, "trees")

    def test_newer_version_is_refused(self) -> None:
        with self.assertRaises(ValueError):
            migrate({"version": SCHEMA_VERSION + 1})
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "store.json"
            p.write_text(json.dumps({"version": SCHEMA_VERSION + 1, "courses": [{"id": "c1"}]}), encoding="utf-8")
            with self.assertLogs("lectureintel.storage", level="WARNING"):
                store = load_store(p)
            self.assertEqual(store.courses, [])


if __name__ == "__main__":
    unittest.main()
