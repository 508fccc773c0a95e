import io
import unittest

from rich.console import Console

from lectureintel import dashboard
from lectureintel.analytics import course_comparison, course_health_table, hourly_activity, topic_difficulty
from lectureintel.feedback import FeedbackView
from lectureintel.insights import fallback_insights
from lectureintel.model import CourseHealth, FeedbackItem, SummaryStats
from lectureintel.storage import Store
from lectureintel.weather import Weather


def capture() -> tuple[Console, io.StringIO]:
    buf = io.StringIO()
    return Console(file=buf, width=160, color_system=None), buf


class TestDashboard(unittest.TestCase):
    def test_empty_health_hints_at_seed(self) -> None:
        con, buf = capture()
        dashboard.render_course_health([], con=con)
        self.assertIn("lis seed", buf.getvalue())

    def test_health_row(self) -> None:
        con, buf = capture()
        dashboard.render_course_health([CourseHealth("c1", "CS301", "DSA", 60, 12)], con=con)
        text = buf.getvalue()
        self.assertIn("CS301", text)
        self.assertIn("60%", text)

    def test_bracketed_course_name_is_printed_verbatim(self) -> None:
        store = Store()
        store.create_course("CS1 [/x]", "Intro [/b] Programming")
        con, buf = capture()
        dashboard.render_course_health(course_health_table(store), con=con)
        dashboard.render_courses(store.courses, con=con)
        dashboard.render_comparison(course_comparison(store), con=con)
        text = buf.getvalue()
        self.assertIn("Intro [/b] Programming", text)
        self.assertIn("CS1 [/x]", text)

    def test_bracketed_topic_is_printed_verbatim(self) -> None:
        store = Store()
        course = store.create_course("CS1", "Intro")
        student = store.enroll_student(course.id, "Ann [/i]", email="ann@x.edu", roll_number="[R1]")
        lecture = store.create_lecture(course.id, "Arrays", status="completed")
        store.submit_feedback(lecture.id, student.id, "partial", topic_ratings=[("Arrays [/x]", 3)])
        con, buf = capture()
        dashboard.render_topics(topic_difficulty(store.feedback, store.courses), con=con)
        dashboard.render_students(store.students, title="CS1 [/u] silent", con=con)
        text = buf.getvalue()
        self.assertIn("Arrays [/x]", text)
        self.assertIn("Ann [/i]", text)
        self.assertIn("CS1 [/u] silent", text)

    def test_bracketed_priority_in_summary(self) -> None:
        stats = SummaryStats(60, 3, 2, 1, "CS1 [/x]", "Review Intro [/b]")
        con, buf = capture()
        dashboard.render_summary(stats, [], con=con)
        self.assertIn("Priority: CS1 [/x] (Review Intro [/b])", buf.getvalue())

    def test_hourly_shows_understanding(self) -> None:
        con, buf = capture()
        dashboard.render_hourly(hourly_activity([]), con=con)
        self.assertIn("Understanding", buf.getvalue())

    def test_feedback_comment_with_brackets_is_printed_verbatim(self) -> None:
        item = FeedbackItem(
            id="f1",
            lecture_id="l1",
            lecture_title="Trees",
            course_id="c1",
            course_code="CS301",
            student_id="s1",
            student_name="Ann",
            student_rollno="R1",
            rating=1,
            comment="[bold] is not a style here",
            timestamp="2026-03-10T09:00:00Z",
            resolved=False,
            read=False,
            category="general",
        )
        con, buf = capture()
        dashboard.render_feedback(FeedbackView([item], page_size=5), con=con)
        self.assertIn("[bold] is not a style here", buf.getvalue())

    def test_fallback_insights_are_flagged(self) -> None:
        con, buf = capture()
        dashboard.render_ai_insights(fallback_insights(), con=con)
        text = buf.getvalue()
        self.assertIn("AI service unavailable", text)
        self.assertIn("Provide practice problems", text)

    def test_weather_line(self) -> None:
        con, buf = capture()
        dashboard.render_weather(Weather(28, "rainy", "R", "Vadodara", 81, 30, simulated=True), con=con)
        self.assertIn("Vadodara: 28°C, rainy", buf.getvalue())
        self.assertIn("(simulated)", buf.getvalue())


if __name__ == "__main__":
    unittest.main()
