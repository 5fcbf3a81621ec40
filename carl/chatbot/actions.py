# chatbot/actions.py

"""
Intent dispatch: fetch from the LMS and format a chat reply.

`dispatch()` returns None when it cannot act on an intent, which tells the
pipeline to try the next resolver. LMS errors are NOT caught here; the
pipeline converts them into the generic connectivity reply.
"""

from __future__ import annotations

import asyncio
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from carl.chatbot.dates import DateRange, filter_by_date_range
from carl.chatbot.intent_schema import AnalysisRequest, ChatData, ChatResponse, Intent
from carl.chatbot.llm_client import LLMClient
from carl.chatbot.llm_intent import perform_analysis
from carl.chatbot.nlu_rules import filter_courses
from carl.lms.models import (
    LMSDataSource,
    SimpleAssignment,
    SimpleCourse,
    SimpleGradedAssignment,
    SimpleTodoItem,
    to_json,
)

CONNECTION_ERROR = "I'm having trouble connecting to Canvas right now. Please try again later."

HELP_MESSAGE_BASIC = """I can help you track your assignments. Try asking:

• "What's due this week?"
• "Do I have any missing assignments?"
• "What are my grades?"
• "What's due tomorrow?"
• "What's missing for January?"
• "What's due in spring 2026?"

I understand dates like: today, tomorrow, this week, next month, January, spring, fall, 2026, etc.

I cannot help with actual homework. That's not my function."""

HELP_MESSAGE_ENHANCED = """I can help you track your assignments. Try asking:

• "What's due this week?"
• "Do I have any missing assignments?"
• "What are my grades?"
• "What percentage of my work is missing?"
• "Which class am I doing worst in?"
• "How many assignments am I missing in math?"

I understand dates like: today, tomorrow, this week, next month, January, spring, fall, 2026, etc.

I can also answer analytical questions about your assignments and grades.

I cannot help with actual homework. That's not my function."""

GREETING_RESPONSES = [
    "Hello. I am C.A.R.L., your Canvas Assignment Reminder Liaison. How can I help you track your assignments?",
    "Greetings. I'm here to help you stay on top of your schoolwork. What would you like to know?",
    "Hello. I'm ready to assist with assignment tracking. What do you need?",
]

UNKNOWN_RESPONSES = [
    "I'm not sure I understand. I can help you check grades, find missing assignments, or see what's due soon.",
    "My capabilities are limited to assignment tracking. Try asking about what's due or your grades.",
    "I don't follow. Would you like to know about upcoming assignments or your current grades?",
]

# keyword intents that only make sense as an LLM analysis question
ANALYSIS_FALLBACK = {"percentage": "percentage", "priority": "summary", "risk": "comparison"}


# ---------------------------
# Formatting
# ---------------------------


def _time(d: datetime) -> str:
    return d.strftime("%I:%M %p").lstrip("0")


def format_date(d: Optional[datetime], now: Optional[datetime] = None) -> str:
    if d is None:
        return "No due date"
    now = now or datetime.now()
    if d.date() == now.date():
        return f"Today at {_time(d)}"
    if d.date() == (now + timedelta(days=1)).date():
        return f"Tomorrow at {_time(d)}"
    return f"{d.strftime('%a, %b')} {d.day}, {_time(d)}"


def _context(date_range: Optional[DateRange], default: str = "") -> str:
    return f" for {date_range.description}" if date_range else default


def _plural(n: int) -> str:
    return "" if n == 1 else "s"


def format_grades(courses: Sequence[SimpleCourse]) -> ChatResponse:
    if not courses:
        return ChatResponse(message="I don't see any active courses.")
    lines = []
    for c in courses:
        score = f" ({c.score:.1f}%)" if c.score is not None else ""
        lines.append(f"• {c.name}: {c.grade or 'N/A'}{score}")
    return ChatResponse(
        message="Here are your current grades:\n\n" + "\n".join(lines),
        data=ChatData(type="courses", items=[to_json(c) for c in courses]),
    )


def format_missing(assignments: Sequence[SimpleAssignment], date_range: Optional[DateRange] = None) -> ChatResponse:
    ctx = _context(date_range)
    if not assignments:
        return ChatResponse(message=f"Good news - I don't see any missing assignments{ctx}.")
    lines = []
    for a in assignments:
        due = f"(was due {format_date(a.due_at)})" if a.due_at else ""
        lines.append(f"• {a.name} - {a.course_name} {due}".rstrip())
    warning = "\n\n⚠️ That's quite a few. You might want to prioritize these." if len(assignments) >= 3 else ""
    n = len(assignments)
    return ChatResponse(
        message=f"You have {n} missing assignment{_plural(n)}{ctx}:\n\n" + "\n".join(lines) + warning,
        data=ChatData(type="assignments", items=[to_json(a) for a in assignments]),
    )


def format_due(items: Sequence[SimpleTodoItem], date_range: Optional[DateRange] = None) -> ChatResponse:
    pending = [i for i in items if not i.submitted]
    ctx = _context(date_range, default=" in the next week")
    if not pending:
        return ChatResponse(message=f"You're all caught up! Nothing due{ctx}.")
    lines = []
    for i in pending:
        points = f" ({i.points_possible:g} pts)" if i.points_possible else ""
        lines.append(f"• {i.title} - {i.course_name}{points}\n  Due: {format_date(i.due_at)}")
    return ChatResponse(
        message=f"Here's what's coming up{ctx}:\n\n" + "\n\n".join(lines),
        data=ChatData(type="todo", items=[to_json(i) for i in pending]),
    )


@dataclass
class ProblemAssignment:
    id: int
    name: str
    course_name: str
    course_id: int
    due_at: Optional[datetime]
    points_possible: Optional[float]
    status: str
    score: Optional[float] = None
    percentage: Optional[float] = None
    url: str = ""


def combine_problems(
    missing: Sequence[SimpleAssignment],
    zeros: Sequence[SimpleGradedAssignment],
) -> List[ProblemAssignment]:
    """Zeros first (they carry a score), then missing items not already listed; newest due first."""
    zero_ids = {z.id for z in zeros}
    problems = [
        ProblemAssignment(z.id, z.name, z.course_name, z.course_id, z.due_at, z.points_possible,
                          "zero", z.score, z.percentage, z.url)
        for z in zeros
    ] + [
        ProblemAssignment(m.id, m.name, m.course_name, m.course_id, m.due_at, m.points_possible,
                          "missing", url=m.url)
        for m in missing
        if m.id not in zero_ids
    ]
    problems.sort(key=lambda p: p.due_at or datetime.min, reverse=True)
    return problems


def format_zeros(
    missing: Sequence[SimpleAssignment],
    zeros: Sequence[SimpleGradedAssignment],
    date_range: Optional[DateRange] = None,
) -> ChatResponse:
    ctx = _context(date_range)
    problems = combine_problems(missing, zeros)
    if not problems:
        return ChatResponse(message=f"Good news - I don't see any zeros or missing assignments{ctx}.")

    lines = []
    for p in problems:
        due = f"(due {format_date(p.due_at)})" if p.due_at else ""
        if p.status == "zero":
            score = f"{p.score:g}/{p.points_possible:g}"
            lines.append(f"• {p.name} - {p.course_name}\n  ❌ Graded: {score} ({p.percentage:g}%) {due}".rstrip())
        else:
            lines.append(f"• {p.name} - {p.course_name}\n  ⚠️ Missing/Not submitted {due}".rstrip())

    zero_count = sum(1 for p in problems if p.status == "zero")
    summary = []
    if zero_count:
        summary.append(f"{zero_count} graded as zero")
    if len(problems) - zero_count:
        summary.append(f"{len(problems) - zero_count} missing")

    n = len(problems)
    return ChatResponse(
        message=f"Found {n} problem assignment{_plural(n)}{ctx} ({', '.join(summary)}):\n\n" + "\n\n".join(lines),
        data=ChatData(type="assignments", items=[to_json(p) for p in problems]),
    )


def help_message(llm_available: bool) -> str:
    return HELP_MESSAGE_ENHANCED if llm_available else HELP_MESSAGE_BASIC


# ---------------------------
# Fetching
# ---------------------------


async def fetch_missing(lms: LMSDataSource) -> List[SimpleAssignment]:
    """Canvas-flagged missing plus unsubmitted past-due, deduped by id."""
    flagged, unsubmitted = await asyncio.gather(lms.missing_assignments(), lms.unsubmitted_past_due())
    seen = {m.id for m in flagged}
    return list(flagged) + [u for u in unsubmitted if u.id not in seen]


async def fetch_due(lms: LMSDataSource, date_range: Optional[DateRange]) -> List[SimpleTodoItem]:
    if date_range is None:
        return await lms.due_within(7)
    days = math.ceil((date_range.end - datetime.now()).total_seconds() / 86400)
    items = await lms.due_within(max(days, 30))
    return filter_by_date_range(items, date_range)


# ---------------------------
# Dispatch
# ---------------------------


async def dispatch(
    intent: Intent,
    lms: LMSDataSource,
    date_range: Optional[DateRange] = None,
    llm: Optional[LLMClient] = None,
    rng: Optional[random.Random] = None,
) -> Optional[ChatResponse]:
    """
    Act on a resolved intent. `date_range` is the already-merged range
    (LLM's own first, then the pipeline's extraction).
    """
    rng = rng or random
    kind = intent.type

    if kind == "grades":
        return format_grades(await lms.courses_with_grades())

    if kind == "course_grades":
        courses = filter_courses(await lms.courses_with_grades(), intent.course_filter)
        if not courses:
            return ChatResponse(message=f"I couldn't find a {intent.course_filter} class in your schedule.")
        return format_grades(courses)

    if kind == "missing":
        missing = filter_by_date_range(await fetch_missing(lms), date_range)
        return format_missing(missing, date_range)

    if kind == "zeros":
        missing, zeros = await asyncio.gather(fetch_missing(lms), lms.zero_grade_assignments())
        return format_zeros(
            filter_by_date_range(missing, date_range),
            filter_by_date_range(zeros, date_range),
            date_range,
        )

    if kind == "due_soon":
        return format_due(await fetch_due(lms, date_range), date_range)

    if kind in ANALYSIS_FALLBACK and llm is not None:
        intent = Intent(
            type="analysis",
            analysis=AnalysisRequest(ANALYSIS_FALLBACK[kind], intent.raw),
            raw=intent.raw,
        )
        kind = "analysis"

    if kind == "analysis":
        if intent.analysis is None or llm is None:
            return None
        courses, missing, upcoming = await asyncio.gather(
            lms.courses_with_grades(), fetch_missing(lms), lms.due_within(30)
        )
        answer = await perform_analysis(intent.analysis, llm, courses, missing, upcoming)
        return ChatResponse(message=answer)

    if kind == "help":
        return ChatResponse(message=help_message(llm is not None))

    if kind == "greeting":
        return ChatResponse(message=intent.response or rng.choice(GREETING_RESPONSES))

    return None


def unknown_response(rng: Optional[random.Random] = None) -> ChatResponse:
    return ChatResponse(message=(rng or random).choice(UNKNOWN_RESPONSES))
