import random
from datetime import datetime, timedelta

import pytest

from carl.chatbot.escalation import EscalationTracker
from carl.chatbot.llm_client import LLMError
from carl.chatbot.pipeline import ChatPipeline
from carl.lms.models import (
    SimpleAssignment,
    SimpleCourse,
    SimpleGradedAssignment,
    SimpleTodoItem,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeLMS:
    """In-memory LMS that records which queries were made."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []
        now = datetime.now()
        self.courses = [
            SimpleCourse(1, "P6-Math 8-HARRIS", "MATH8", "B+", 88.4),
            SimpleCourse(2, "Biology", "BIO1", "A", 95.0),
            SimpleCourse(3, "Band", "MUS2", None, None),
        ]
        self.missing = [
            SimpleAssignment(10, "Worksheet 4", "P6-Math 8-HARRIS", 1, now - timedelta(days=2), 10),
        ]
        self.unsubmitted = [
            # duplicate of a flagged one, plus a new one
            SimpleAssignment(10, "Worksheet 4", "P6-Math 8-HARRIS", 1, now - timedelta(days=2), 10),
            SimpleAssignment(11, "Lab report", "Biology", 2, now - timedelta(days=40), 20),
        ]
        self.todo = [
            SimpleTodoItem(20, "Chapter 5 quiz", "Biology", 2, now + timedelta(hours=1), 15),
            SimpleTodoItem(21, "Scales", "Band", 3, now + timedelta(hours=2), None, submitted=True),
        ]
        self.zeros = [
            SimpleGradedAssignment(30, "Unit test", "P6-Math 8-HARRIS", 1, now - timedelta(days=5), 50, 0, 0.0),
        ]

    def _record(self, name):
        self.calls.append(name)
        if self.fail:
            raise ConnectionError("canvas is down")

    async def courses_with_grades(self):
        self._record("courses_with_grades")
        return list(self.courses)

    async def missing_assignments(self):
        self._record("missing_assignments")
        return list(self.missing)

    async def unsubmitted_past_due(self):
        self._record("unsubmitted_past_due")
        return list(self.unsubmitted)

    async def due_within(self, days=7):
        self._record(f"due_within:{days}")
        return list(self.todo)

    async def zero_grade_assignments(self):
        self._record("zero_grade_assignments")
        return list(self.zeros)

    async def close(self):
        pass


class StubLLM:
    """Stands in for LLMClient: returns canned replies, or raises."""

    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.model = "stub-model"
        self.messages = []

    async def chat(self, messages):
        self.messages.append(messages)
        if self.error is not None:
            raise self.error
        if not self.replies:
            raise LLMError("no more canned replies")
        return self.replies.pop(0)

    async def close(self):
        pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return EscalationTracker(clock=clock, rng=random.Random(42))


@pytest.fixture
def lms():
    return FakeLMS()


@pytest.fixture
def pipeline(lms, tracker):
    return ChatPipeline(lms, escalation=tracker, rng=random.Random(7))
