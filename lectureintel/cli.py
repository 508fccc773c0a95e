"""
CLI (Command Line Interface).

Terminal dashboard over the lecture feedback store, e.g.:

    lis seed
    lis health
    lis daily --range 30d --course CS301
    lis topics
    lis compare
    lis feedback --search trees --filter low-rating --sort oldest
    lis export feedback.csv --filter unresolved
    lis insights --course CS301 --ai

Global options:
    --store PATH       use another store file (default: <data_dir>/lis_store.json)
    --professor ID     limit everything to one professor's courses
    --verbose          debug logging

Exit codes: 0 on success, 1 on invalid input.
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from lectureintel import dashboard
from lectureintel.analytics import (
    DATE_RANGES,
    course_comparison,
    course_health_table,
    daily_metrics,
    feedback_categories,
    hourly_activity,
    scoped_feedback,
    summary_stats,
    topic_difficulty,
)
from lectureintel.export_csv import default_export_name, export_feedback_to_csv
from lectureintel.feedback import FILTERS, SORTS, FeedbackView, flatten_feedback
from lectureintel.insights import InsightSession, local_insights, revision_plan_text
from lectureintel.model import UNDERSTANDING_LEVELS, LECTURE_STATUSES
from lectureintel.seed import seed_demo_data
from lectureintel.settings import settings
from lectureintel.storage import (
    CourseValidationError,
    Store,
    UnknownEntityError,
    load_store,
    save_store,
    utc_now,
)
from lectureintel.weather import WeatherService


logger = logging.getLogger(__name__)


class _ScopeError(Exception):
    pass


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _scope(store: Store, args: argparse.Namespace) -> Optional[list[str]]:
    """
    Course ids the command should look at, or None for all courses.
    """
    course_key = getattr(args, "course", None)
    if course_key:
        course = store.find_course(course_key)
        if course is None:
            raise _ScopeError(f"Unknown course: {course_key}")
        return [course.id]
    if args.professor:
        return [c.id for c in store.professor_courses(args.professor)]
    return None


def _feedback_view(store: Store, args: argparse.Namespace, course_ids: Optional[list[str]]) -> FeedbackView:
    view = FeedbackView(flatten_feedback(store, course_ids))
    view.set_search(args.search or "")
    view.set_filter(args.filter)
    view.set_sort(args.sort)
    return view


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_seed(args: argparse.Namespace, store: Store) -> int:
    professor = args.professor or "prof-demo"
    if not seed_demo_data(store, professor):
        print(f"Professor {professor} already has courses; nothing seeded.")
        return 0
    save_store(store, args.store)
    print(f"Seeded {len(store.courses)} courses, {len(store.students)} students, {len(store.feedback)} feedback.")
    return 0


def _cmd_courses(args: argparse.Namespace, store: Store) -> int:
    dashboard.render_courses(store.professor_courses(args.professor))
    return 0


def _cmd_health(args: argparse.Namespace, store: Store) -> int:
    dashboard.render_course_health(course_health_table(store, _scope(store, args)))
    return 0


def _cmd_create_course(args: argparse.Namespace, store: Store) -> int:
    try:
        course = store.create_course(
            code=args.code,
            name=args.name,
            semester=args.semester,
            department=args.department,
            credits=args.credits,
            professor_id=args.professor,
        )
    except CourseValidationError as exc:
        print(str(exc))
        return 1
    save_store(store, args.store)
    print(f"Created {course.code} (id {course.id}, join code {course.enrollment_code})")
    return 0


def _cmd_delete_course(args: argparse.Namespace, store: Store) -> int:
    course = store.find_course(args.course)
    if course is None:
        print(f"Unknown course: {args.course}")
        return 1
    store.delete_course(course.id)
    save_store(store, args.store)
    print(f"Deleted {course.code}")
    return 0


def _cmd_enroll(args: argparse.Namespace, store: Store) -> int:
    course = store.find_course(args.course)
    if course is None:
        print(f"Unknown course: {args.course}")
        return 1
    if not (args.name or "").strip():
        print("Please provide a student name.")
        return 1
    student = store.enroll_student(course.id, args.name, email=args.email, roll_number=args.roll)
    save_store(store, args.store)
    print(f"Enrolled {student.name} (id {student.id}) in {course.code}")
    return 0


def _cmd_lecture(args: argparse.Namespace, store: Store) -> int:
    course = store.find_course(args.course)
    if course is None:
        print(f"Unknown course: {args.course}")
        return 1
    lecture = store.create_lecture(course.id, args.title, date=args.date, topics=args.topic, status=args.status)
    save_store(store, args.store)
    print(f"Created lecture {lecture.title!r} (id {lecture.id}) in {course.code}")
    return 0


def _parse_topic_rating(text: str) -> tuple[str, int]:
    topic, sep, rating = text.rpartition("=")
    if not sep or not topic.strip():
        raise ValueError(f"Topic rating must look like TOPIC=RATING, got {text!r}")
    return topic.strip(), int(rating)


def _cmd_submit(args: argparse.Namespace, store: Store) -> int:
    try:
        ratings = [_parse_topic_rating(t) for t in args.topic or []]
        fb = store.submit_feedback(args.lecture, args.student, args.level, comments=args.comment, topic_ratings=ratings)
    except (UnknownEntityError, ValueError) as exc:
        print(str(exc).strip("'\""))
        return 1
    save_store(store, args.store)
    print(f"Recorded feedback {fb.id}")
    return 0


def _cmd_summary(args: argparse.Namespace, store: Store) -> int:
    ids = _scope(store, args)
    dashboard.render_summary(summary_stats(store, ids), feedback_categories(scoped_feedback(store, ids)))
    return 0


def _cmd_daily(args: argparse.Namespace, store: Store) -> int:
    dashboard.render_daily(daily_metrics(scoped_feedback(store, _scope(store, args)), args.range))
    return 0


def _cmd_hourly(args: argparse.Namespace, store: Store) -> int:
    dashboard.render_hourly(hourly_activity(scoped_feedback(store, _scope(store, args))))
    return 0


def _cmd_topics(args: argparse.Namespace, store: Store) -> int:
    dashboard.render_topics(topic_difficulty(scoped_feedback(store, _scope(store, args)), store.courses))
    return 0


def _cmd_compare(args: argparse.Namespace, store: Store) -> int:
    dashboard.render_comparison(course_comparison(store, _scope(store, args)))
    return 0


def _cmd_feedback(args: argparse.Namespace, store: Store) -> int:
    if args.pages < 1:
        print("--pages must be at least 1")
        return 1
    view = _feedback_view(store, args, _scope(store, args))
    for _ in range(args.pages - 1):
        if not view.load_more():
            break
    dashboard.render_feedback(view)
    return 0


def _cmd_export(args: argparse.Namespace, store: Store) -> int:
    view = _feedback_view(store, args, _scope(store, args))
    out_path = (args.out or "").strip() or default_export_name(utc_now().date())
    try:
        n = export_feedback_to_csv(view.filtered, out_path)
    except OSError as exc:
        print(f"Could not write {out_path}: {exc}")
        return 1
    print(f"Exported {n} feedback rows to: {out_path}")
    return 0


def _cmd_silent(args: argparse.Namespace, store: Store) -> int:
    ids = _scope(store, args)
    courses = store.courses if ids is None else [c for c in store.courses if c.id in ids]
    for course in courses:
        dashboard.render_students(
            store.silent_students(course.id, days=args.days),
            title=f"{course.code}: silent for {args.days}+ days",
        )
    return 0


def _cmd_insights(args: argparse.Namespace, store: Store) -> int:
    if not args.ai:
        dashboard.render_local_insights(local_insights(store, args.professor))
        return 0

    course = store.find_course(args.course or "")
    if course is None:
        print("Please provide --course for AI insights.")
        return 1
    items = flatten_feedback(store, [course.id])
    session = InsightSession()
    insights = session.refresh(course.name, len(course.lectures), items)
    dashboard.render_ai_insights(insights)
    if args.plan:
        try:
            with open(args.plan, "w", encoding="utf-8") as fh:
                fh.write(revision_plan_text(course.name, insights))
        except OSError as exc:
            print(f"Could not write {args.plan}: {exc}")
            return 1
        print(f"Revision plan written to: {args.plan}")
    return 0


def _cmd_weather(args: argparse.Namespace, store: Store) -> int:
    dashboard.render_weather(WeatherService().current(args.city))
    return 0


COMMANDS = {
    "seed": _cmd_seed,
    "courses": _cmd_courses,
    "health": _cmd_health,
    "create-course": _cmd_create_course,
    "delete-course": _cmd_delete_course,
    "enroll": _cmd_enroll,
    "lecture": _cmd_lecture,
    "submit": _cmd_submit,
    "summary": _cmd_summary,
    "daily": _cmd_daily,
    "hourly": _cmd_hourly,
    "topics": _cmd_topics,
    "compare": _cmd_compare,
    "feedback": _cmd_feedback,
    "export": _cmd_export,
    "silent": _cmd_silent,
    "insights": _cmd_insights,
    "weather": _cmd_weather,
}


def _add_query_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--course", type=str, help="Course id or code")
    p.add_argument("--search", type=str, default="", help="Search lecture, course, student, comment")
    p.add_argument("--filter", choices=FILTERS, default="all")
    p.add_argument("--sort", choices=SORTS, default="newest")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="lis", description="Lecture Intelligence System CLI")
    parser.add_argument("--store", type=str, default=None, help="Path to the store JSON file")
    parser.add_argument("--professor", type=str, default=None, help="Limit to this professor's courses")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed", help="Create demo courses, students and feedback")
    sub.add_parser("courses", help="List courses")

    p = sub.add_parser("health", help="Course health table")
    p.add_argument("--course", type=str, help="Course id or code")

    p = sub.add_parser("create-course", help="Create a course")
    p.add_argument("--code", type=str, default="", help="Course code (e.g. CS101)")
    p.add_argument("--name", type=str, default="", help="Course name")
    p.add_argument("--semester", type=str, default="Spring 2026")
    p.add_argument("--department", type=str, default="")
    p.add_argument("--credits", type=int, default=0)

    p = sub.add_parser("delete-course", help="Delete a course with its lectures and feedback")
    p.add_argument("course", type=str, help="Course id or code")

    p = sub.add_parser("enroll", help="Enrol a student into a course")
    p.add_argument("course", type=str, help="Course id or code")
    p.add_argument("--name", type=str, required=True)
    p.add_argument("--email", type=str, default="")
    p.add_argument("--roll", type=str, default="", help="Roll number")

    p = sub.add_parser("lecture", help="Add a lecture to a course")
    p.add_argument("course", type=str, help="Course id or code")
    p.add_argument("--title", type=str, required=True)
    p.add_argument("--date", type=str, default="")
    p.add_argument("--topic", action="append", help="Topic covered (repeatable)")
    p.add_argument("--status", choices=LECTURE_STATUSES, default="scheduled")

    p = sub.add_parser("submit", help="Submit feedback for a lecture")
    p.add_argument("lecture", type=str, help="Lecture id")
    p.add_argument("student", type=str, help="Student id")
    p.add_argument("level", choices=UNDERSTANDING_LEVELS)
    p.add_argument("--comment", type=str, default="")
    p.add_argument("--topic", action="append", help="Topic rating TOPIC=1..5 (repeatable)")

    p = sub.add_parser("summary", help="Overall understanding summary")
    p.add_argument("--course", type=str, help="Course id or code")

    p = sub.add_parser("daily", help="Daily understanding and engagement")
    p.add_argument("--range", choices=sorted(DATE_RANGES, key=DATE_RANGES.get), default="14d")
    p.add_argument("--course", type=str, help="Course id or code")

    p = sub.add_parser("hourly", help="Feedback activity by hour (8 AM - 6 PM)")
    p.add_argument("--course", type=str, help="Course id or code")

    p = sub.add_parser("topics", help="Hardest topics by rating")
    p.add_argument("--course", type=str, help="Course id or code")

    p = sub.add_parser("compare", help="Compare the first three courses side by side")
    p.add_argument("--course", type=str, help="Course id or code")

    p = sub.add_parser("feedback", help="Search, filter and sort feedback")
    _add_query_args(p)
    p.add_argument("--pages", type=int, default=1, help="Number of pages to show")

    p = sub.add_parser("export", help="Export filtered feedback to CSV")
    p.add_argument("out", type=str, nargs="?", default="", help="Output file (default feedback-export-<date>.csv)")
    _add_query_args(p)

    p = sub.add_parser("silent", help="Students without recent activity")
    p.add_argument("--course", type=str, help="Course id or code")
    p.add_argument("--days", type=int, default=7)

    p = sub.add_parser("insights", help="Teaching insights")
    p.add_argument("--course", type=str, help="Course id or code")
    p.add_argument("--ai", action="store_true", help="Ask the AI service (needs OPENAI_API_KEY)")
    p.add_argument("--plan", type=str, default="", help="Also write a revision plan text file")

    p = sub.add_parser("weather", help="Current weather")
    p.add_argument("--city", type=str, default=None)

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    store = load_store(args.store)
    handler = COMMANDS.get(args.command)
    if handler is None:
        raise SystemExit(2)

    try:
        code = handler(args, store)
    except _ScopeError as exc:
        print(str(exc))
        code = 1
    raise SystemExit(code)
