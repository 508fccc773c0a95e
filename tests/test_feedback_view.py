"""
Tests for the feedback list pipeline (flatten, search, filter, sort, paginate).
"""

import unittest
from datetime import date

from lectureintel.feedback import (
    FeedbackQuery,
    FeedbackView,
    apply_query,
    categorize_comment,
    feedback_stats,
    filter_feedback,
    flatten_feedback,
    search_feedback,
    sort_feedback,
)
from lectureintel.model import Course, Feedback, Lecture, Student
from lectureintel.storage import Store


TODAY = date(2026, 3, 10)


def make_store() -> Store:
    store = Store(
        courses=[Course(id="c1", code="CS301", name="DSA"), Course(id="c2", code="cs101", name="Intro")],
        lectures=[Lecture(id="l1", course_id="c1", title="Binary Trees"), Lecture(id="l2", course_id="c2", title="Loops")],
        students=[Student(id="s1", name="Alice Johnson", roll_number="R1"), Student(id="s2", name="Bob Smith")],
    )
    rows = [
        ("f1", "s1", "c1", "l1", "fully", "2026-03-10T09:00:00Z", "Great examples"),
        ("f2", "s2", "c1", "l1", "confused", "2026-03-08T09:00:00Z", "Too fast, lost track"),
        ("f3", "s1", "c2", "l2", "partial", "2026-03-09T09:00:00Z", "Somewhat unclear"),
        ("f4", "ghost", "c9", "l9", "confused", "2026-03-07T09:00:00Z", ""),
    ]
    for fid, sid, cid, lid, level, ts, comment in rows:
        store.feedback.append(
            Feedback(
                id=fid,
                student_id=sid,
                course_id=cid,
                lecture_id=lid,
                understanding_level=level,
                timestamp=ts,
                comments=comment,
            )
        )
    return store


class TestFlatten(unittest.TestCase):
    def test_resolves_references_and_derives_flags(self) -> None:
        items = {it.id: it for it in flatten_feedback(make_store())}
        self.assertEqual(items["f1"].lecture_title, "Binary Trees")
        self.assertEqual(items["f1"].course_code, "CS301")
        self.assertEqual(items["f1"].student_name, "Alice Johnson")
        self.assertEqual(items["f1"].rating, 5)
        self.assertTrue(items["f1"].resolved)
        self.assertEqual(items["f2"].rating, 1)
        self.assertFalse(items["f2"].resolved)
        self.assertEqual(items["f3"].rating, 3)

    def test_dangling_references_get_placeholders(self) -> None:
        items = {it.id: it for it in flatten_feedback(make_store())}
        ghost = items["f4"]
        self.assertEqual(ghost.lecture_title, "Unknown Lecture")
        self.assertEqual(ghost.course_code, "N/A")
        self.assertEqual(ghost.student_name, "Anonymous")
        self.assertEqual(ghost.student_rollno, "N/A")

    def test_course_scope(self) -> None:
        items = flatten_feedback(make_store(), ["c1"])
        self.assertEqual({it.id for it in items}, {"f1", "f2"})

    def test_categories(self) -> None:
        self.assertEqual(categorize_comment("The pace was too slow"), "pace")
        self.assertEqual(categorize_comment("More EXAMPLES please"), "examples")
        self.assertEqual(categorize_comment("I am confused"), "clarity")
        self.assertEqual(categorize_comment("ok"), "general")


class TestSearchFilterSort(unittest.TestCase):
    def setUp(self) -> None:
        self.items = flatten_feedback(make_store())

    def test_search_matches_any_field(self) -> None:
        self.assertEqual([it.id for it in search_feedback(self.items, "TREES")], ["f1", "f2"])
        self.assertEqual([it.id for it in search_feedback(self.items, "bob")], ["f2"])
        self.assertEqual([it.id for it in search_feedback(self.items, "cs101")], ["f3"])
        self.assertEqual([it.id for it in search_feedback(self.items, "unclear")], ["f3"])
        self.assertEqual(search_feedback(self.items, "zzz"), [])

    def test_empty_search_restores_list(self) -> None:
        query = FeedbackQuery(search="alice", filter="all", sort="oldest")
        narrowed = apply_query(self.items, query, today=TODAY)
        self.assertEqual(len(narrowed), 2)
        query.search = ""
        self.assertEqual(
            [it.id for it in apply_query(self.items, query, today=TODAY)],
            [it.id for it in sort_feedback(self.items, "oldest")],
        )

    def test_filters(self) -> None:
        ids = lambda name: {it.id for it in filter_feedback(self.items, name, today=TODAY)}  # noqa: E731
        self.assertEqual(ids("all"), {"f1", "f2", "f3", "f4"})
        self.assertEqual(ids("unresolved"), {"f2", "f4"})
        self.assertEqual(ids("low-rating"), {"f2", "f4"})
        self.assertEqual(ids("high-rating"), {"f1"})
        self.assertEqual(ids("today"), {"f1"})
        self.assertEqual(ids("unread"), {"f1", "f2", "f3", "f4"})
        self.assertEqual(ids("pace"), {"f2"})
        self.assertEqual(ids("examples"), {"f1"})
        self.assertEqual(ids("clarity"), {"f3"})
        with self.assertRaises(ValueError):
            filter_feedback(self.items, "nope")

    def test_sorts(self) -> None:
        order = lambda name: [it.id for it in sort_feedback(self.items, name)]  # noqa: E731
        self.assertEqual(order("newest"), ["f1", "f3", "f2", "f4"])
        self.assertEqual(order("oldest"), ["f4", "f2", "f3", "f1"])
        self.assertEqual(order("rating-high"), ["f1", "f3", "f2", "f4"])
        # stable: equal ratings keep input order
        self.assertEqual(order("rating-low"), ["f2", "f4", "f3", "f1"])
        self.assertEqual(order("course"), ["f3", "f1", "f2", "f4"])
        with self.assertRaises(ValueError):
            sort_feedback(self.items, "nope")

    def test_stats(self) -> None:
        stats = feedback_stats(self.items, today=TODAY)
        self.assertEqual(stats.total, 4)
        self.assertEqual(stats.today, 1)
        self.assertEqual(stats.unresolved, 2)
        self.assertEqual(stats.low_rating, 2)
        # (5 + 1 + 3 + 1) / 4 = 2.5
        self.assertEqual(stats.avg_rating, 2.5)
        self.assertEqual(stats.categories, {"pace": 1, "examples": 1, "clarity": 1})
        self.assertEqual(feedback_stats([]).total, 0)


class TestFeedbackView(unittest.TestCase):
    def make_items(self, n: int):
        store = Store(courses=[Course(id="c1", code="CS301", name="DSA")])
        for i in range(n):
            store.feedback.append(
                Feedback(
                    id=f"f{i:02d}",
                    student_id="s",
                    course_id="c1",
                    lecture_id="l",
                    understanding_level="fully" if i % 2 else "confused",
                    timestamp=f"2026-03-{1 + i % 28:02d}T09:00:00Z",
                )
            )
        return store, flatten_feedback(store)

    def test_pages_grow_monotonically(self) -> None:
        _, items = self.make_items(45)
        view = FeedbackView(items, page_size=20)
        self.assertEqual(len(view.visible), 20)
        self.assertTrue(view.has_more)
        self.assertTrue(view.load_more())
        self.assertEqual(len(view.visible), 40)
        self.assertTrue(view.load_more())
        self.assertEqual(len(view.visible), 45)
        self.assertFalse(view.has_more)
        self.assertFalse(view.load_more())
        self.assertEqual(view.page, 3)
        self.assertEqual(view.state, "idle")

    def test_query_change_resets_page(self) -> None:
        _, items = self.make_items(45)
        view = FeedbackView(items, page_size=10)
        view.load_more()
        view.load_more()
        self.assertEqual(view.page, 3)
        view.set_filter("unresolved")
        self.assertEqual(view.page, 1)
        self.assertEqual(view.filtered_count, 23)
        self.assertEqual(len(view.visible), 10)
        view.load_more()
        view.set_sort("oldest")
        self.assertEqual(view.page, 1)
        view.load_more()
        view.set_search("")
        self.assertEqual(view.page, 1)

    def test_filtered_is_full_list_not_page(self) -> None:
        _, items = self.make_items(45)
        view = FeedbackView(items, page_size=5)
        self.assertEqual(len(view.filtered), 45)
        self.assertEqual(len(view.visible), 5)

    def test_rejects_unknown_filter_and_sort(self) -> None:
        _, items = self.make_items(3)
        view = FeedbackView(items, page_size=5)
        with self.assertRaises(ValueError):
            view.set_filter("bogus")
        with self.assertRaises(ValueError):
            view.set_sort("bogus")

    def test_selection_and_mark_read(self) -> None:
        store, items = self.make_items(6)
        view = FeedbackView(items, page_size=4)
        view.select_all()
        self.assertEqual(len(view.selected), 4)
        view.select_all()
        self.assertEqual(view.selected, set())
        view.toggle_select("f00")
        view.toggle_select("f01")
        view.toggle_select("f01")
        self.assertEqual(view.selected, {"f00"})
        self.assertEqual(view.mark_selected_read(store), 1)
        self.assertIn("f00", store.read_feedback_ids)
        self.assertEqual(view.selected, set())
        view.set_filter("unread")
        self.assertNotIn("f00", {it.id for it in view.filtered})
        self.assertEqual(view.filtered_count, 5)


if __name__ == "__main__":
    unittest.main()
