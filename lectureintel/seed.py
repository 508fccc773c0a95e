"""
Demo data for trying out the dashboard.

seed_demo_data() fills a store with three courses, twelve students and
two weeks of completed lectures with feedback. It only uses the public
Store actions, so everything it creates is consistent.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Optional

from lectureintel.storage import Store, utc_now


STUDENT_NAMES = [
    "Alice Johnson", "Bob Smith", "Carol Williams", "David Brown",
    "Emma Davis", "Frank Miller", "Grace Wilson", "Henry Moore",
    "Isabella Taylor", "Jack Anderson", "Kate Thomas", "Liam Jackson",
]

COURSES = [
    ("CS301", "Data Structures & Algorithms", 4, ["Arrays", "Linked Lists", "Trees", "Graphs", "Dynamic Programming"]),
    ("CS201", "Object Oriented Programming", 3, ["Classes", "Inheritance", "Polymorphism", "Interfaces"]),
    ("CS401", "Machine Learning", 4, ["Regression", "Gradient Descent", "Neural Networks", "Regularization"]),
]

COMMENTS = {
    "fully": ["Great lecture, very clear", "Loved the examples", ""],
    "partial": ["Pace was a bit fast", "Need more practice problems", "Some parts were unclear"],
    "confused": ["Totally confused by the proofs", "Too fast, could not follow", "Did not understand the last part"],
}

LEVEL_WEIGHTS = (("fully", 5), ("partial", 3), ("confused", 2))
RATING_BY_LEVEL = {"fully": (4, 5), "partial": (3, 4), "confused": (1, 2)}


def seed_demo_data(
    store: Store,
    professor_id: str = "prof-demo",
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> bool:
    """
    Seed demo courses for `professor_id`. Returns False (and changes
    nothing) if that professor already owns a course.
    """
    if any(c.professor_id == professor_id for c in store.courses):
        return False

    rng = rng or random.Random(2026)
    now = now or utc_now()
    levels = [lvl for lvl, _ in LEVEL_WEIGHTS]
    weights = [w for _, w in LEVEL_WEIGHTS]

    courses = [
        store.create_course(
            code=code,
            name=name,
            semester="Spring 2026",
            department="Computer Science",
            credits=credits,
            professor_id=professor_id,
            now=now - timedelta(days=60),
            rng=rng,
        )
        for code, name, credits, _ in COURSES
    ]

    for i, name in enumerate(STUDENT_NAMES):
        email = name.lower().replace(" ", ".") + "@university.edu"
        roll = f"2024CS{i + 1:03d}"
        targets = courses[:2] if i < 8 else courses[1:]
        for course in targets:
            store.enroll_student(course.id, name, email=email, roll_number=roll, now=now - timedelta(days=30))

    for course, (_, _, _, topics) in zip(courses, COURSES):
        for n, topic in enumerate(topics):
            held = now - timedelta(days=2 * (len(topics) - n), hours=rng.randint(0, 3))
            lecture = store.create_lecture(
                course.id,
                title=f"Lecture {n + 1}: {topic}",
                date=held.date().isoformat(),
                topics=[topic],
                status="completed",
            )
            for student_id in list(course.students):
                if rng.random() < 0.25:
                    continue
                level = rng.choices(levels, weights=weights)[0]
                low, high = RATING_BY_LEVEL[level]
                submitted = held.replace(hour=rng.randint(8, 18), minute=rng.randint(0, 59))
                store.submit_feedback(
                    lecture.id,
                    student_id,
                    level,
                    comments=rng.choice(COMMENTS[level]),
                    topic_ratings=[(topic, rng.randint(low, high))],
                    now=submitted,
                )

    return True
