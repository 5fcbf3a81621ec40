# chatbot/guardrails.py

"""
Homework-request detection.

Catches requests to *do* the work (write the essay, solve the problem, give the
answer) before any intent parsing or LLM call sees the message. Over-blocking
is acceptable here; letting a real request through is not.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

HOMEWORK_PATTERNS: Tuple[re.Pattern, ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        # writing
        r"write\s+(my|a|an|the)?\s*(essay|paper|paragraph|response|report|summary)",
        r"help\s+(me\s+)?(write|compose|draft)",
        # solving
        r"solve\s+(this|the|my)?\s*(problem|equation|question|math)",
        r"what\s+is\s+the\s+(answer|solution)",
        r"calculate\s+(this|the)",
        # answers
        r"answer\s+(this|the|my)?\s*(question|quiz|test)",
        r"(give|tell)\s+me\s+the\s+answer",
        # "explain how to solve ..." is still doing the homework
        r"explain\s+(how\s+to\s+)?(solve|answer|do|write)",
        r"how\s+do\s+(i|you)\s+(solve|answer|write)",
        # generic
        r"do\s+(my|this)\s+(homework|assignment|work)",
        r"finish\s+(my|this)\s+(homework|assignment|essay)",
        r"essay\s+(about|on)\b",
    )
)


@dataclass(frozen=True)
class HomeworkCheck:
    blocked: bool
    matched_pattern: Optional[str] = None


def detect_homework_intent(text: str) -> HomeworkCheck:
    """Return which pattern (if any) flagged the message."""
    for pattern in HOMEWORK_PATTERNS:
        if pattern.search(text or ""):
            return HomeworkCheck(blocked=True, matched_pattern=pattern.pattern)
    return HomeworkCheck(blocked=False)


def is_homework_request(text: str) -> bool:
    return detect_homework_intent(text).blocked
