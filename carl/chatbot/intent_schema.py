# chatbot/intent_schema.py

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional, Union, get_args

from pydantic import BaseModel

from carl.chatbot.dates import DateRange

# Intents the LLM is allowed to produce.
LLMIntentType = Literal[
    "grades",
    "missing",
    "zeros",
    "due_soon",
    "analysis",
    "help",
    "greeting",
    "blocked",
    "unknown",
]

# The keyword classifier additionally recognises these.
IntentType = Literal[
    "grades",
    "course_grades",
    "missing",
    "zeros",
    "due_soon",
    "percentage",
    "priority",
    "risk",
    "analysis",
    "help",
    "greeting",
    "blocked",
    "unknown",
]

AnalysisType = Literal["percentage", "comparison", "summary", "count"]

LLM_INTENTS = frozenset(get_args(LLMIntentType))
INTENT_TYPES = frozenset(get_args(IntentType))
ANALYSIS_TYPES = frozenset(get_args(AnalysisType))


@dataclass(frozen=True)
class AnalysisRequest:
    type: AnalysisType
    question: str


@dataclass(frozen=True)
class Intent:
    """
    Standard shape for a parsed user message.

    Both the keyword classifier and the LLM resolver return this, so the
    dispatcher in actions.py never has to care where it came from.
    """

    # What kind of question is this?
    type: IntentType = "unknown"

    # Optional date scope, e.g. "tomorrow", "spring 2026"
    date_range: Optional[DateRange] = None

    # Canonical subject tag ("math", "science", ...) for per-course questions
    course_filter: Optional[str] = None

    # Only set for the "analysis" intent
    analysis: Optional[AnalysisRequest] = None

    # Pre-formed reply; only used for greeting / help / blocked
    response: Optional[str] = None

    # The original message text
    raw: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "date_range": self.date_range.to_dict() if self.date_range else None,
            "course_filter": self.course_filter,
            "analysis": (
                {"type": self.analysis.type, "question": self.analysis.question}
                if self.analysis
                else None
            ),
            "response": self.response,
            "raw": self.raw,
        }


@dataclass(frozen=True)
class Resolved:
    intent: Intent


@dataclass(frozen=True)
class Deferred:
    """The NLU step had nothing useful; use the keyword classifier instead."""

    reason: str = ""


ResolutionOutcome = Union[Resolved, Deferred]


# ---------------------------
# Chat replies (HTTP + CLI)
# ---------------------------


class ChatData(BaseModel):
    type: Literal["courses", "assignments", "todo"]
    items: List[dict]


class ChatResponse(BaseModel):
    message: str
    data: Optional[ChatData] = None
    lockedOut: Optional[bool] = None
    error: Optional[bool] = None
