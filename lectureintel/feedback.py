"""
Feedback list pipeline: flatten -> search -> filter -> sort -> paginate.

flatten_feedback() resolves every reference (lecture, course, student)
into a display-ready FeedbackItem. Dangling references never raise,
they show up as placeholder labels instead.

FeedbackView keeps the list state of one screen (search text, filter,
sort, page, selection). Pages are revealed cumulatively; changing the
search, filter or sort starts again from page 1.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from lectureintel.model import FeedbackItem, FeedbackStats
from lectureintel.settings import settings
from lectureintel.storage import Store, parse_timestamp, utc_now


logger = logging.getLogger(__name__)

RATING_BY_LEVEL = {"fully": 5, "partial": 3, "confused": 1}

FILTERS = ("all", "unread", "unresolved", "low-rating", "high-rating", "today", "pace", "examples", "clarity")
SORTS = ("newest", "oldest", "rating-high", "rating-low", "course")

# first matching group wins
CATEGORY_KEYWORDS = (
    ("pace", ("pace", "fast", "slow")),
    ("examples", ("example", "practice")),
    ("clarity", ("clear", "confus", "understand")),
)

IDLE = "idle"
LOADING_MORE = "loading-more"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def categorize_comment(text: str) -> str:
    lower = (text or "").lower()
    for category, words in CATEGORY_KEYWORDS:
        if any(w in lower for w in words):
            return category
    return "general"


def flatten_feedback(store: Store, course_ids: Optional[Iterable[str]] = None) -> list[FeedbackItem]:
    lectures = {lec.id: lec for lec in store.lectures}
    courses = {c.id: c for c in store.courses}
    students = {s.id: s for s in store.students}
    wanted = set(course_ids) if course_ids is not None else None

    items: list[FeedbackItem] = []
    for f in store.feedback:
        if wanted is not None and f.course_id not in wanted:
            continue
        lecture = lectures.get(f.lecture_id)
        course = courses.get(f.course_id)
        student = students.get(f.student_id)
        items.append(
            FeedbackItem(
                id=f.id,
                lecture_id=f.lecture_id,
                lecture_title=lecture.title if lecture and lecture.title else "Unknown Lecture",
                course_id=f.course_id,
                course_code=course.code if course and course.code else "N/A",
                student_id=f.student_id,
                student_name=student.name if student and student.name else "Anonymous",
                student_rollno=student.roll_number if student and student.roll_number else "N/A",
                rating=RATING_BY_LEVEL[f.understanding_level],
                comment=f.comments,
                timestamp=f.timestamp,
                resolved=f.understanding_level != "confused",
                read=f.id in store.read_feedback_ids,
                category=categorize_comment(f.comments),
            )
        )
    return items


def search_feedback(items: list[FeedbackItem], text: str) -> list[FeedbackItem]:
    """
    Case-insensitive substring search over lecture title, course code,
    student name and comment. Blank text keeps everything.
    """
    query = (text or "").strip().lower()
    if not query:
        return list(items)
    return [
        it
        for it in items
        if query in it.lecture_title.lower()
        or query in it.course_code.lower()
        or query in it.student_name.lower()
        or query in it.comment.lower()
    ]


def _today_prefix(today: Optional[date]) -> str:
    return (today or utc_now().date()).isoformat()


def filter_feedback(items: list[FeedbackItem], name: str, today: Optional[date] = None) -> list[FeedbackItem]:
    if name not in FILTERS:
        raise ValueError(f"Unknown filter: {name!r}")

    if name == "all":
        return list(items)
    if name == "unread":
        return [it for it in items if not it.read]
    if name == "unresolved":
        return [it for it in items if not it.resolved]
    if name == "low-rating":
        return [it for it in items if it.rating <= 2]
    if name == "high-rating":
        return [it for it in items if it.rating >= 4]
    if name == "today":
        prefix = _today_prefix(today)
        return [it for it in items if it.timestamp.startswith(prefix)]
    return [it for it in items if it.category == name]


def _time_key(item: FeedbackItem) -> datetime:
    dt = parse_timestamp(item.timestamp)
    if dt is None:
        return _EPOCH
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def sort_feedback(items: list[FeedbackItem], name: str) -> list[FeedbackItem]:
    """
    Stable sort; items that compare equal keep their original order.
    """
    if name == "newest":
        return sorted(items, key=_time_key, reverse=True)
    if name == "oldest":
        return sorted(items, key=_time_key)
    if name == "rating-high":
        return sorted(items, key=lambda it: it.rating, reverse=True)
    if name == "rating-low":
        return sorted(items, key=lambda it: it.rating)
    if name == "course":
        return sorted(items, key=lambda it: it.course_code.casefold())
    raise ValueError(f"Unknown sort: {name!r}")


@dataclass
class FeedbackQuery:
    search: str = ""
    filter: str = "all"
    sort: str = "newest"


def apply_query(items: list[FeedbackItem], query: FeedbackQuery, today: Optional[date] = None) -> list[FeedbackItem]:
    result = search_feedback(items, query.search)
    result = filter_feedback(result, query.filter, today=today)
    return sort_feedback(result, query.sort)


def feedback_stats(items: list[FeedbackItem], today: Optional[date] = None) -> FeedbackStats:
    total = len(items)
    categories = {name: sum(1 for it in items if it.category == name) for name, _ in CATEGORY_KEYWORDS}
    if total == 0:
        return FeedbackStats(
            total=0, today=0, unread=0, unresolved=0, avg_rating=0.0, low_rating=0, categories=categories
        )

    prefix = _today_prefix(today)
    rating_sum = sum(it.rating for it in items)
    return FeedbackStats(
        total=total,
        today=sum(1 for it in items if it.timestamp.startswith(prefix)),
        unread=sum(1 for it in items if not it.read),
        unresolved=sum(1 for it in items if not it.resolved),
        # one decimal, half up
        avg_rating=((20 * rating_sum + total) // (2 * total)) / 10,
        low_rating=sum(1 for it in items if it.rating <= 2),
        categories=categories,
    )


@dataclass
class FeedbackView:
    """
    List state for one feedback screen.

    `visible` only ever grows while the query stays the same;
    `filtered` is the complete result and is what gets exported.
    """

    items: list[FeedbackItem]
    page_size: int = field(default_factory=lambda: settings.page_size)
    today: Optional[date] = None
    query: FeedbackQuery = field(default_factory=FeedbackQuery)
    page: int = 1
    state: str = IDLE
    selected: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._refresh()

    def _refresh(self) -> None:
        self._filtered = apply_query(self.items, self.query, today=self.today)

    def _requery(self, **changes: str) -> None:
        for key, value in changes.items():
            setattr(self.query, key, value)
        self.page = 1
        self._refresh()

    def set_search(self, text: str) -> None:
        self._requery(search=text or "")

    def set_filter(self, name: str) -> None:
        if name not in FILTERS:
            raise ValueError(f"Unknown filter: {name!r}")
        self._requery(filter=name)

    def set_sort(self, name: str) -> None:
        if name not in SORTS:
            raise ValueError(f"Unknown sort: {name!r}")
        self._requery(sort=name)

    def replace_items(self, items: list[FeedbackItem]) -> None:
        """
        Swap in a fresh snapshot (e.g. after the store changed) keeping query and page.
        """
        self.items = items
        self._refresh()

    @property
    def filtered(self) -> list[FeedbackItem]:
        return list(self._filtered)

    @property
    def filtered_count(self) -> int:
        return len(self._filtered)

    @property
    def visible(self) -> list[FeedbackItem]:
        return self._filtered[: self.page * self.page_size]

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < len(self._filtered)

    def load_more(self) -> bool:
        """
        Reveal the next page. Returns False when everything is already visible.
        """
        if not self.has_more:
            return False
        # everything is already in memory, so loading never actually blocks
        self.state = LOADING_MORE
        self.page += 1
        self.state = IDLE
        logger.debug("Feedback view now shows page %d of %d items", self.page, len(self._filtered))
        return True

    # -- selection ------------------------------------------------------------

    def toggle_select(self, feedback_id: str) -> None:
        if feedback_id in self.selected:
            self.selected.discard(feedback_id)
        else:
            self.selected.add(feedback_id)

    def select_all(self) -> None:
        """
        Select every visible item, or clear the selection if all are already selected.
        """
        visible_ids = {it.id for it in self.visible}
        if visible_ids and self.selected == visible_ids:
            self.selected = set()
        else:
            self.selected = visible_ids

    def clear_selection(self) -> None:
        self.selected = set()

    def mark_selected_read(self, store: Store) -> int:
        changed = store.mark_read(self.selected)
        ids = set(self.selected)
        for it in self.items:
            if it.id in ids:
                it.read = True
        self.clear_selection()
        self._refresh()
        return changed
