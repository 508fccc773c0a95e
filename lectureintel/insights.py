"""
Teaching insights.

Two sources:
- request_insights(): asks an OpenAI-compatible chat-completion endpoint to
  analyse the feedback and answer with a fixed JSON schema. Any failure
  (no key, network error, non-200, unparsable reply) is logged and the
  built-in fallback insights are returned instead. Callers never see an
  exception from here.
- local_insights(): rule-based alerts computed from the store, no network.

InsightSession guards against out-of-order replies: only the result of
the most recent request is kept.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional

import requests

from lectureintel.analytics import course_engagement
from lectureintel.model import FeedbackItem
from lectureintel.request_tokens import RequestTokens
from lectureintel.settings import settings
from lectureintel.storage import Store, utc_now


logger = logging.getLogger(__name__)

PRIORITIES = ("HIGH", "MEDIUM", "LOW")

SYSTEM_PROMPT = (
    "You are an expert educational analyst. Analyze student feedback and provide "
    "actionable insights for professors. Always respond with valid JSON."
)

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class ConfusingTopic:
    name: str
    confusion_pct: int
    priority: str


@dataclass
class RevisionItem:
    lecture: str
    priority: str
    recommendation: str


@dataclass
class Insights:
    top_confusing_topics: list[ConfusingTopic] = field(default_factory=list)
    revision_plan: list[RevisionItem] = field(default_factory=list)
    silent_students: list[str] = field(default_factory=list)
    teaching_insights: list[str] = field(default_factory=list)
    fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Insights":
        """
        Build from the model's JSON answer. Raises ValueError if the shape is wrong.
        """
        if not isinstance(data, dict):
            raise ValueError("Insights payload is not an object")
        try:
            topics = [
                ConfusingTopic(
                    name=str(t["name"]),
                    confusion_pct=int(t["confusion_pct"]),
                    priority=_priority(t.get("priority")),
                )
                for t in data.get("top_confusing_topics", [])
            ]
            plan = [
                RevisionItem(
                    lecture=str(r["lecture"]),
                    priority=_priority(r.get("priority")),
                    recommendation=str(r["recommendation"]),
                )
                for r in data.get("revision_plan", [])
            ]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Insights payload has wrong shape: {exc}") from exc

        silent = data.get("silent_students", [])
        tips = data.get("teaching_insights", [])
        if not isinstance(silent, list) or not isinstance(tips, list):
            raise ValueError("silent_students and teaching_insights must be lists")

        return cls(
            top_confusing_topics=topics,
            revision_plan=plan,
            silent_students=[str(s) for s in silent],
            teaching_insights=[str(s) for s in tips],
        )


def _priority(value: Any) -> str:
    p = str(value or "").strip().upper()
    return p if p in PRIORITIES else "MEDIUM"


def fallback_insights() -> Insights:
    return Insights(
        top_confusing_topics=[ConfusingTopic(name="Complex topics need review", confusion_pct=45, priority="HIGH")],
        revision_plan=[
            RevisionItem(
                lecture="Recent lectures",
                priority="HIGH",
                recommendation="Review challenging concepts with examples",
            )
        ],
        silent_students=["Consider checking in with students who provided no feedback"],
        teaching_insights=[
            "Add more interactive examples",
            "Provide practice problems",
            "Encourage student questions",
        ],
        fallback=True,
    )


def feedback_payload(items: Iterable[FeedbackItem]) -> list[dict[str, Any]]:
    # student identities are left out of the prompt
    return [
        {
            "lecture": it.lecture_title,
            "course": it.course_code,
            "rating": it.rating,
            "category": it.category,
            "comment": it.comment,
            "timestamp": it.timestamp,
        }
        for it in items
    ]


def build_prompt(course_name: str, lecture_count: int, items: list[FeedbackItem]) -> str:
    data = json.dumps(feedback_payload(items), indent=2, ensure_ascii=False)
    return (
        f'Analyze feedback for "{course_name}" - {lecture_count} lectures, {len(items)} responses:\n\n'
        f"FEEDBACK DATA: {data}\n\n"
        "Provide JSON output with this structure:\n"
        "{\n"
        '  "top_confusing_topics": [{"name": "Topic", "confusion_pct": 78, "priority": "HIGH"}],\n'
        '  "revision_plan": [{"lecture": "Lec X", "priority": "HIGH", "recommendation": "Description"}],\n'
        '  "silent_students": ["Student patterns"],\n'
        '  "teaching_insights": ["Insight 1", "Insight 2"]\n'
        "}"
    )


def extract_json(content: str) -> dict[str, Any]:
    """
    Pull the JSON object out of a reply that may be wrapped in markdown fences.
    """
    match = _JSON_BLOCK.search(content or "")
    if not match:
        raise ValueError("Could not find JSON in response")
    return json.loads(match.group(0))


def request_insights(
    course_name: str,
    lecture_count: int,
    items: list[FeedbackItem],
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Insights:
    key = api_key or settings.openai_api_key
    if not key:
        logger.warning("OPENAI_API_KEY is not configured; using fallback insights")
        return fallback_insights()

    payload = {
        "model": model or settings.openai_model,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(course_name, lecture_count, items)},
        ],
        "temperature": 0.7,
        "max_tokens": 1000,
    }
    headers = {"Content-Type": "application/json", "Authorization": f"Bearer {key}"}

    try:
        resp = requests.post(
            url or settings.openai_base_url,
            json=payload,
            headers=headers,
            timeout=timeout if timeout is not None else settings.ai_timeout,
        )
    except requests.RequestException as exc:
        logger.warning("AI insight request failed: %s", exc)
        return fallback_insights()

    if resp.status_code != 200:
        logger.warning("AI insight request returned HTTP %s: %s", resp.status_code, resp.text[:200])
        return fallback_insights()

    try:
        content = resp.json()["choices"][0]["message"]["content"]
        return Insights.from_dict(extract_json(content))
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        logger.warning("Could not parse AI insight response: %s", exc)
        return fallback_insights()


def revision_plan_text(course_name: str, insights: Insights, today: Optional[date] = None) -> str:
    day = today or utc_now().date()
    lines = [f"REVISION PLAN: {course_name}", f"Generated: {day.isoformat()}", "", "TOP CONFUSING TOPICS:"]
    lines += [f"- {t.name} ({t.confusion_pct}%) [{t.priority}]" for t in insights.top_confusing_topics]
    lines += ["", "REVISION RECOMMENDATIONS:"]
    lines += [f"- {r.lecture}: {r.recommendation}" for r in insights.revision_plan]
    lines += ["", "TEACHING INSIGHTS:"]
    lines += [f"- {i}" for i in insights.teaching_insights]
    return "\n".join(lines) + "\n"


class InsightSession:
    """
    Latest AI insights for one screen.

    Use begin() before sending a request and apply() with the returned
    token when it completes; replies to superseded requests are dropped.
    """

    def __init__(self, fetch: Callable[..., Insights] = request_insights) -> None:
        self._fetch = fetch
        self._tokens = RequestTokens()
        self.current: Optional[Insights] = None

    def begin(self) -> int:
        return self._tokens.issue()

    def apply(self, token: int, result: Insights) -> bool:
        if not self._tokens.is_current(token):
            logger.debug("Dropping insights for superseded request %d", token)
            return False
        self.current = result
        return True

    def cancel(self) -> None:
        self._tokens.cancel()

    def refresh(self, course_name: str, lecture_count: int, items: list[FeedbackItem], **kwargs: Any) -> Insights:
        token = self.begin()
        result = self._fetch(course_name, lecture_count, items, **kwargs)
        self.apply(token, result)
        return result


# ---------------------------------------------------------------------------
# Rule-based insights
# ---------------------------------------------------------------------------


@dataclass
class LocalInsight:
    id: str
    kind: str  # critical | warning | success | info
    priority: int
    title: str
    description: str
    category: str
    metric_value: int
    metric_label: str
    course_code: Optional[str] = None


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def local_insights(
    store: Store, professor_id: Optional[str] = None, silent_days: int = 7, now: Optional[datetime] = None
) -> list[LocalInsight]:
    courses = store.professor_courses(professor_id)
    course_ids = {c.id for c in courses}
    out: list[LocalInsight] = []

    silent_ids: set[str] = set()
    for c in courses:
        silent_ids |= {s.id for s in store.silent_students(c.id, days=silent_days, now=now)}
    if silent_ids:
        n = len(silent_ids)
        out.append(
            LocalInsight(
                id="insight-silent",
                kind="critical",
                priority=len(out) + 1,
                title=f"{_plural(n, 'Silent Student')} Detected",
                description=(
                    f"No participation from {_plural(n, 'student')} in the last {silent_days} days. "
                    "Consider sending a nudge or scheduling office hours."
                ),
                category="silent",
                metric_value=n,
                metric_label="Silent Students",
            )
        )

    feedback_count = sum(1 for f in store.feedback if f.course_id in course_ids)
    if feedback_count:
        out.append(
            LocalInsight(
                id="insight-feedback",
                kind="info",
                priority=len(out) + 1,
                title=_plural(feedback_count, "Feedback Item"),
                description=f"You have {_plural(feedback_count, 'student feedback submission')} to review.",
                category="feedback",
                metric_value=feedback_count,
                metric_label="Feedback",
            )
        )

    for c in courses:
        engagement = course_engagement(store, c.id)
        label = c.code or c.name
        if engagement >= 80:
            out.append(
                LocalInsight(
                    id=f"insight-course-success-{c.id}",
                    kind="success",
                    priority=len(out) + 1,
                    title=f"{label} - High Engagement",
                    description=f"This course has {engagement}% engagement rate.",
                    category="engagement",
                    metric_value=engagement,
                    metric_label="Engagement",
                    course_code=c.code,
                )
            )
        elif 0 < engagement < 50:
            out.append(
                LocalInsight(
                    id=f"insight-course-warning-{c.id}",
                    kind="warning",
                    priority=len(out) + 1,
                    title=f"{label} - Low Engagement",
                    description=f"This course has only {engagement}% engagement. Consider reviewing content.",
                    category="engagement",
                    metric_value=engagement,
                    metric_label="Engagement",
                    course_code=c.code,
                )
            )

    return out
