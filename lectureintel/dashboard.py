"""
Terminal rendering of the view models with rich tables.

Nothing here computes anything: each render_* function takes ready-made
view models and prints them.
"""

from __future__ import annotations

from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from lectureintel.feedback import FeedbackView
from lectureintel.insights import Insights, LocalInsight
from lectureintel.model import (
    Course,
    CourseComparison,
    CourseHealth,
    DailyMetric,
    FeedbackCategory,
    HourlyActivity,
    Student,
    SummaryStats,
    TopicDifficulty,
)
from lectureintel.weather import Weather


console = Console()

KIND_STYLES = {"critical": "bold red", "warning": "yellow", "success": "green", "info": "cyan"}


def _health_style(pct: int) -> str:
    if pct >= 75:
        return "green"
    if pct >= 50:
        return "yellow"
    return "red"


def _bar(value: int, width: int = 20) -> str:
    filled = round(max(0, min(100, value)) * width / 100)
    return "█" * filled + "·" * (width - filled)


def _out(con: Optional[Console]) -> Console:
    return con if con is not None else console


def render_course_health(rows: Sequence[CourseHealth], con: Optional[Console] = None) -> None:
    c = _out(con)
    if not rows:
        c.print("No courses yet. Create one with [bold]lis create-course[/] or run [bold]lis seed[/].")
        return
    table = Table(title="Course health", box=box.SIMPLE)
    table.add_column("Code", style="bold cyan")
    table.add_column("Course")
    table.add_column("Students", justify="right")
    table.add_column("Health", justify="right")
    table.add_column("")
    for r in rows:
        style = _health_style(r.health_pct)
        table.add_row(
            escape(r.course_code),
            escape(r.course_name),
            str(r.students),
            f"[{style}]{r.health_pct}%[/]",
            _bar(r.health_pct),
        )
    c.print(table)


def render_courses(courses: Sequence[Course], con: Optional[Console] = None) -> None:
    table = Table(title="Courses", box=box.SIMPLE)
    table.add_column("ID")
    table.add_column("Code", style="bold cyan")
    table.add_column("Name")
    table.add_column("Semester")
    table.add_column("Join code", style="magenta")
    table.add_column("Lectures", justify="right")
    for course in courses:
        table.add_row(
            course.id,
            escape(course.code),
            escape(course.name),
            escape(course.semester),
            course.enrollment_code,
            str(len(course.lectures)),
        )
    _out(con).print(table)


def render_summary(
    stats: SummaryStats, categories: Sequence[FeedbackCategory], con: Optional[Console] = None
) -> None:
    c = _out(con)
    c.print(f"Average understanding: [bold]{stats.avg_understanding}%[/]")
    c.print(f"Feedback: {stats.total_feedback} | Active students: {stats.active_students}"
            f" | Confused students: {stats.confused_students}")
    c.print(f"Priority: [bold]{escape(stats.priority_course)}[/] ({escape(stats.priority_action)})")
    if categories:
        table = Table(title="Understanding breakdown", box=box.SIMPLE)
        table.add_column("Category")
        table.add_column("Count", justify="right")
        table.add_column("%", justify="right")
        for cat in categories:
            table.add_row(cat.category, str(cat.count), str(cat.percentage))
        c.print(table)


def render_daily(metrics: Sequence[DailyMetric], con: Optional[Console] = None) -> None:
    table = Table(title=f"Daily metrics ({len(metrics)} days)", box=box.SIMPLE)
    table.add_column("Date")
    table.add_column("Feedback", justify="right")
    table.add_column("Understanding", justify="right")
    table.add_column("Engagement", justify="right")
    table.add_column("Confused", justify="right")
    for m in metrics:
        table.add_row(m.label, str(m.feedback), f"{m.understanding}%", f"{m.engagement}%", str(m.confused))
    _out(con).print(table)


def render_hourly(rows: Sequence[HourlyActivity], con: Optional[Console] = None) -> None:
    table = Table(title="Feedback by hour", box=box.SIMPLE)
    table.add_column("Hour", justify="right")
    table.add_column("Feedback", justify="right")
    table.add_column("Understanding", justify="right")
    table.add_column("Engagement")
    for r in rows:
        table.add_row(r.label, str(r.feedback), f"{r.understanding}%", _bar(r.engagement, width=10))
    _out(con).print(table)


def render_topics(rows: Sequence[TopicDifficulty], con: Optional[Console] = None) -> None:
    c = _out(con)
    if not rows:
        c.print("No topic ratings yet.")
        return
    table = Table(title="Hardest topics", box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Topic", style="bold")
    table.add_column("Course", style="cyan")
    table.add_column("Understanding", justify="right")
    table.add_column("Confusion", justify="right")
    table.add_column("Ratings", justify="right")
    for i, r in enumerate(rows, start=1):
        table.add_row(
            str(i),
            escape(r.topic),
            escape(r.course),
            f"{r.understanding}%",
            f"[red]{r.confusion_rate}%[/]",
            str(r.feedback_count),
        )
    c.print(table)


def render_comparison(rows: Sequence[CourseComparison], con: Optional[Console] = None) -> None:
    c = _out(con)
    if not rows:
        c.print("No courses to compare.")
        return
    table = Table(title="Course comparison", box=box.SIMPLE)
    table.add_column("Metric", style="bold")
    for r in rows:
        table.add_column(escape(r.course_code), justify="right", style="cyan")
    for label, attr in (("Understanding", "understanding"), ("Engagement", "engagement"), ("Feedback", "feedback")):
        table.add_row(label, *(f"{getattr(r, attr)}%" for r in rows))
    c.print(table)


def render_feedback(view: FeedbackView, con: Optional[Console] = None) -> None:
    c = _out(con)
    items = view.visible
    if not items:
        c.print("No feedback matches.")
        return
    table = Table(title=f"Feedback ({len(items)} of {view.filtered_count})", box=box.SIMPLE)
    table.add_column("Date")
    table.add_column("Course", style="cyan")
    table.add_column("Lecture")
    table.add_column("Student")
    table.add_column("Rating", justify="right")
    table.add_column("Comment")
    for it in items:
        rating_style = "red" if it.rating <= 2 else ("green" if it.rating >= 4 else "yellow")
        table.add_row(
            it.timestamp[:16].replace("T", " "),
            escape(it.course_code),
            escape(it.lecture_title),
            escape(it.student_name),
            f"[{rating_style}]{it.rating}[/]",
            escape(it.comment),
        )
    c.print(table)
    if view.has_more:
        c.print(f"... {view.filtered_count - len(items)} more (use --pages to show more)")


def render_students(students: Sequence[Student], title: str, con: Optional[Console] = None) -> None:
    c = _out(con)
    if not students:
        c.print(f"{escape(title)}: none.")
        return
    table = Table(title=escape(title), box=box.SIMPLE)
    table.add_column("Name", style="bold")
    table.add_column("Roll no.")
    table.add_column("Email")
    table.add_column("Last active")
    for s in students:
        table.add_row(escape(s.name), escape(s.roll_number), escape(s.email), s.last_active_at or "never")
    c.print(table)


def render_local_insights(rows: Sequence[LocalInsight], con: Optional[Console] = None) -> None:
    c = _out(con)
    if not rows:
        c.print("No insights yet.")
        return
    for r in rows:
        style = KIND_STYLES.get(r.kind, "")
        c.print(f"[{style}]{r.kind.upper()}[/] {escape(r.title)}: {escape(r.description)}")


def render_ai_insights(insights: Insights, con: Optional[Console] = None) -> None:
    c = _out(con)
    if insights.fallback:
        c.print("[yellow]AI service unavailable, showing general recommendations.[/]")
    if insights.top_confusing_topics:
        table = Table(title="Top confusing topics", box=box.SIMPLE)
        table.add_column("Topic")
        table.add_column("Confusion", justify="right")
        table.add_column("Priority")
        for t in insights.top_confusing_topics:
            table.add_row(escape(t.name), f"{t.confusion_pct}%", t.priority)
        c.print(table)
    for r in insights.revision_plan:
        c.print(f"- [bold]{escape(r.lecture)}[/] ({r.priority}): {escape(r.recommendation)}")
    for s in insights.silent_students:
        c.print(f"- {escape(s)}")
    for tip in insights.teaching_insights:
        c.print(f"* {escape(tip)}")


def render_weather(w: Weather, con: Optional[Console] = None) -> None:
    note = " (simulated)" if w.simulated else ""
    _out(con).print(
        f"{w.icon} {escape(w.city)}: {w.temp}°C, {w.condition}, feels like {w.feels_like}°C, humidity {w.humidity}%{note}"
    )
