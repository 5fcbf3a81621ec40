# chatbot/intent.py
from __future__ import annotations

import re
from typing import Optional

from carl.chatbot.dates import extract_date_range
from carl.chatbot.intent_schema import Intent, IntentType
from carl.chatbot.nlu_rules import extract_course_filter

# Order matters: the first rule that fires wins. "what percentage is missing"
# must be a percentage question, and "how am I doing in math" a per-course one.

PERCENT_TOKENS = ("percent", "%", "how much")
PERCENT_SUBJECTS = ("missing", "incomplete", "done")

COURSE_GRADE_TOKENS = ("how", "doing", "grade")

GRADE_TOKENS = ("grade", "score", "how am i doing", "my classes")

MISSING_TOKENS = ("missing", "overdue", "late", "haven't submitted", "forgot")

ZERO_TOKENS = ("zero", " 0 ", "low grade", "bombed")
ZERO_PATTERN = re.compile(r"\b0\b")

PRIORITY_TOKENS = (
    "work on first",
    "prioritize",
    "priority",
    "what should i do",
    "most important",
    "focus on",
    "start with",
)

RISK_TOKENS = ("at risk", "gonna fail", "going to fail", "in danger", "in trouble")
RISK_CONTEXT = ("class", "course", "any")

DUE_TOKENS = (
    "due",
    "upcoming",
    "this week",
    "tomorrow",
    "today",
    "what's left",
    "to do",
    "todo",
)

HELP_TOKENS = ("help", "what can you", "how do i")

GREETING_PATTERN = re.compile(r"^(hi|hello|hey|sup|yo|greetings)", re.I)


def _any(t: str, tokens) -> bool:
    return any(tok in t for tok in tokens)


def classify(text: str, course_filter: Optional[str] = None) -> IntentType:
    t = text.lower().strip()

    if _any(t, PERCENT_TOKENS) and _any(t, PERCENT_SUBJECTS):
        return "percentage"
    if _any(t, COURSE_GRADE_TOKENS) and course_filter:
        return "course_grades"
    if _any(t, GRADE_TOKENS):
        return "grades"
    if _any(t, MISSING_TOKENS):
        return "missing"
    if _any(t, ZERO_TOKENS) or ZERO_PATTERN.search(t):
        return "zeros"
    if _any(t, PRIORITY_TOKENS):
        return "priority"
    if _any(t, RISK_TOKENS) or ("fail" in t and _any(t, RISK_CONTEXT)):
        return "risk"
    if _any(t, DUE_TOKENS):
        return "due_soon"
    if _any(t, HELP_TOKENS):
        return "help"
    if GREETING_PATTERN.match(t):
        return "greeting"
    return "unknown"


def parse(user_text: str) -> Intent:
    course_filter = extract_course_filter(user_text)
    return Intent(
        type=classify(user_text, course_filter),
        date_range=extract_date_range(user_text),
        course_filter=course_filter,
        raw=user_text,
    )
