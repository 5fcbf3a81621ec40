# lms/models.py

"""
Simplified LMS records and the read-only data source the chat pipeline uses.

Dates are naive local datetimes so they compare directly with the ranges
produced by chatbot.dates.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import List, Optional, Protocol


@dataclass
class SimpleCourse:
    id: int
    name: str
    code: str
    grade: Optional[str] = None
    score: Optional[float] = None


@dataclass
class SimpleAssignment:
    id: int
    name: str
    course_name: str
    course_id: int
    due_at: Optional[datetime] = None
    points_possible: Optional[float] = None
    submitted: bool = False
    missing: bool = True
    url: str = ""


@dataclass
class SimpleTodoItem:
    id: int
    title: str
    course_name: str
    course_id: Optional[int] = None
    due_at: Optional[datetime] = None
    points_possible: Optional[float] = None
    submitted: bool = False
    graded: bool = False
    missing: bool = False
    type: str = "assignment"
    url: str = ""


@dataclass
class SimpleGradedAssignment:
    id: int
    name: str
    course_name: str
    course_id: int
    due_at: Optional[datetime] = None
    points_possible: Optional[float] = None
    score: Optional[float] = None
    percentage: Optional[float] = None
    url: str = ""


def to_json(record) -> dict:
    """asdict() with datetimes rendered as ISO strings."""
    out = asdict(record)
    for key, value in out.items():
        if isinstance(value, datetime):
            out[key] = value.isoformat()
    return out


class LMSDataSource(Protocol):
    async def courses_with_grades(self) -> List[SimpleCourse]: ...

    async def missing_assignments(self) -> List[SimpleAssignment]: ...

    async def unsubmitted_past_due(self) -> List[SimpleAssignment]: ...

    async def due_within(self, days: int = 7) -> List[SimpleTodoItem]: ...

    async def zero_grade_assignments(self) -> List[SimpleGradedAssignment]: ...
