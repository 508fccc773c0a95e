"""
CSV export of the feedback list.

We export exactly the list we are given, which should be the full
filtered list of a FeedbackView and not only the visible pages.

Comments go through the csv module's quoting, so commas, quotes and
line breaks survive a round trip through any spreadsheet.
"""

from __future__ import annotations

import csv
from datetime import date
from pathlib import Path
from typing import Iterable

from lectureintel.model import FeedbackItem


HEADER = ["ID", "Lecture", "Course", "Student", "Rating", "Comment", "Date", "Resolved"]


def default_export_name(today: date) -> str:
    return f"feedback-export-{today.isoformat()}.csv"


def _row(item: FeedbackItem) -> list[str]:
    return [
        item.id,
        item.lecture_title,
        item.course_code,
        item.student_name,
        str(item.rating),
        item.comment,
        item.timestamp,
        "Yes" if item.resolved else "No",
    ]


def export_feedback_to_csv(items: Iterable[FeedbackItem], out_path: str | Path) -> int:
    """
    Export feedback items to a CSV file. Returns number of exported rows.
    """
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with out.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerow(HEADER)
        for item in items:
            writer.writerow(_row(item))
            count += 1

    return count
