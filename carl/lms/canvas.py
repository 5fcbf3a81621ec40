# lms/canvas.py

"""
Canvas LMS client and the simplified facade the chatbot reads from.

CanvasClient handles auth, `key[]` array params and Link-header pagination.
CanvasLMS turns raw Canvas JSON into the small records in lms.models.
All calls are single-attempt with a timeout; errors surface as CanvasError
and the chat layer turns them into a "having trouble connecting" reply.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx

from carl.chatbot.config import Settings
from carl.lms.models import (
    SimpleAssignment,
    SimpleCourse,
    SimpleGradedAssignment,
    SimpleTodoItem,
)

log = logging.getLogger("lms.canvas")

Params = Dict[str, Any]

# graded at or below this percentage counts as a "zero"
ZERO_THRESHOLD_PERCENT = 10.0


class CanvasError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CanvasConfigError(CanvasError):
    pass


def parse_canvas_time(value: Optional[str]) -> Optional[datetime]:
    """Canvas sends UTC ISO-8601 ("2026-01-15T05:59:59Z"); convert to naive local time."""
    if not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def _encode_params(params: Optional[Params]) -> List[tuple]:
    # lists become repeated key[] entries: include[]=a&include[]=b
    out = []
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            out.extend((f"{key}[]", str(v)) for v in value)
        elif isinstance(value, bool):
            out.append((key, "true" if value else "false"))
        else:
            out.append((key, str(value)))
    return out


class CanvasClient:
    def __init__(
        self,
        base_url: str,
        api_token: str,
        per_page: int = 100,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self._http = httpx.AsyncClient(
            base_url=f"{self.base_url}/api/v1",
            headers={
                "Authorization": f"Bearer {api_token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.is_success:
            return
        message = f"Canvas API error: {resp.status_code} {resp.reason_phrase}"
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            if body.get("message"):
                message = body["message"]
            elif body.get("errors"):
                errors = body["errors"]
                if isinstance(errors, list):
                    message = ", ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
        raise CanvasError(message, status_code=resp.status_code)

    async def get(self, path: str, params: Optional[Params] = None) -> Any:
        try:
            resp = await self._http.get(path, params=_encode_params(params))
        except httpx.HTTPError as e:
            raise CanvasError(f"Canvas request failed: {e}") from e
        self._raise_for_status(resp)
        return resp.json()

    async def get_all(
        self,
        path: str,
        params: Optional[Params] = None,
        limit: Optional[int] = None,
    ) -> List[Any]:
        """Follow rel="next" links until the last page (or `limit` items)."""
        query = _encode_params(params) + [("per_page", str(self.per_page))]
        results: List[Any] = []
        url: Optional[str] = path
        while url:
            try:
                resp = await self._http.get(url, params=query)
            except httpx.HTTPError as e:
                raise CanvasError(f"Canvas request failed: {e}") from e
            self._raise_for_status(resp)
            results.extend(resp.json())
            if limit and len(results) >= limit:
                return results[:limit]
            url = resp.links.get("next", {}).get("url")
            # the next link already carries the full query string
            query = None
        return results


def _find_enrollment(course: Dict, student_id: str) -> Optional[Dict]:
    for e in course.get("enrollments") or []:
        if student_id == "self":
            if e.get("type") in ("student", "observer", "StudentEnrollment", "ObserverEnrollment"):
                return e
        elif str(e.get("user_id")) == student_id or str((e.get("observed_user") or {}).get("id")) == student_id:
            return e
    return None


def _course_grades(enrollment: Optional[Dict]):
    if not enrollment:
        return None, None
    grades = enrollment.get("grades") or {}
    grade = grades.get("current_grade") or enrollment.get("computed_current_grade")
    score = grades.get("current_score")
    if score is None:
        score = enrollment.get("computed_current_score")
    return grade, score


class CanvasLMS:
    """Read-only facade over the handful of Canvas queries the chatbot needs."""

    def __init__(self, client: CanvasClient, student_id: str = "self"):
        self.client = client
        self.student_id = student_id

    @classmethod
    def from_settings(cls, settings: Settings) -> "CanvasLMS":
        if not settings.canvas_api_token:
            raise CanvasConfigError(
                "CANVAS_API_TOKEN is required. Set it in .env or as an environment variable.\n"
                "Generate a token at: Canvas > Account > Settings > Approved Integrations > New Access Token"
            )
        if not settings.canvas_base_url:
            raise CanvasConfigError(
                "CANVAS_BASE_URL is required. Set it in .env or as an environment variable.\n"
                "Example: https://yourschool.instructure.com"
            )
        client = CanvasClient(
            settings.canvas_base_url,
            settings.canvas_api_token,
            timeout=settings.canvas_timeout,
        )
        return cls(client, student_id=settings.canvas_student_id)

    async def close(self) -> None:
        await self.client.close()

    async def _active_courses(self, include: Optional[List[str]] = None) -> List[Dict]:
        return await self.client.get_all(
            "/courses",
            {"enrollment_state": "active", "state": ["available"], "include": include},
        )

    async def courses_with_grades(self) -> List[SimpleCourse]:
        courses = await self._active_courses(include=["enrollments", "total_scores", "term"])
        out = []
        for c in courses:
            grade, score = _course_grades(_find_enrollment(c, self.student_id))
            out.append(
                SimpleCourse(
                    id=c["id"],
                    name=c.get("name", ""),
                    code=c.get("course_code", ""),
                    grade=grade,
                    score=score,
                )
            )
        return out

    async def missing_assignments(self) -> List[SimpleAssignment]:
        """Assignments Canvas itself has flagged as missing."""
        items = await self.client.get_all(
            f"/users/{self.student_id}/missing_submissions",
            {"include": ["course"]},
        )
        return [
            SimpleAssignment(
                id=item["id"],
                name=item.get("name", ""),
                course_name=(item.get("course") or {}).get("name") or f"Course {item.get('course_id')}",
                course_id=item.get("course_id"),
                due_at=parse_canvas_time(item.get("due_at")),
                points_possible=item.get("points_possible"),
                url=item.get("html_url", ""),
            )
            for item in items
        ]

    async def _unsubmitted_for_course(self, course_id: int, now: datetime) -> List[Dict]:
        assignments = await self.client.get_all(
            f"/courses/{course_id}/assignments",
            {"include": ["submission"], "order_by": "due_at"},
        )
        out = []
        for a in assignments:
            due = parse_canvas_time(a.get("due_at"))
            if due is None or due >= now:
                continue
            submission = a.get("submission") or {}
            if not submission.get("submitted_at"):
                out.append(a)
        return out

    async def unsubmitted_past_due(self) -> List[SimpleAssignment]:
        """
        Past-due assignments with no submission. Catches items Canvas
        hasn't flagged as missing yet. Courses we can't read are skipped.
        """
        courses = await self._active_courses()
        names = {c["id"]: c.get("name", "") for c in courses}
        now = datetime.now()
        per_course = await asyncio.gather(
            *(self._unsubmitted_for_course(cid, now) for cid in names),
            return_exceptions=True,
        )
        out = []
        for cid, result in zip(names, per_course):
            if isinstance(result, CanvasError):
                log.debug("skipping course %s: %s", cid, result)
                continue
            if isinstance(result, BaseException):
                raise result
            for a in result:
                out.append(
                    SimpleAssignment(
                        id=a["id"],
                        name=a.get("name", ""),
                        course_name=names.get(cid) or f"Course {cid}",
                        course_id=cid,
                        due_at=parse_canvas_time(a.get("due_at")),
                        points_possible=a.get("points_possible"),
                        url=a.get("html_url", ""),
                    )
                )
        out.sort(key=lambda a: a.due_at or datetime.min, reverse=True)
        return out

    async def due_within(self, days: int = 7) -> List[SimpleTodoItem]:
        """Planner items (assignments and quizzes) due between today and today + days."""
        today = datetime.now().date()
        params: Params = {
            "start_date": today.isoformat(),
            "end_date": (today + timedelta(days=days)).isoformat(),
        }
        # observers must name the student and the courses to look in
        if self.student_id != "self":
            params["observed_user_id"] = self.student_id
            params["context_codes"] = [f"course_{c['id']}" for c in await self._active_courses()]

        items = await self.client.get_all("/planner/items", params)
        out = []
        for item in items:
            if item.get("plannable_type") not in ("assignment", "quiz"):
                continue
            plannable = item.get("plannable") or {}
            subs = item.get("submissions") or {}
            out.append(
                SimpleTodoItem(
                    id=item.get("plannable_id"),
                    title=plannable.get("title", ""),
                    course_name=item.get("context_name", ""),
                    course_id=item.get("course_id"),
                    due_at=parse_canvas_time(plannable.get("due_at")),
                    points_possible=plannable.get("points_possible"),
                    submitted=bool(subs.get("submitted")),
                    graded=bool(subs.get("graded")),
                    missing=bool(subs.get("missing")),
                    type=item.get("plannable_type"),
                    url=item.get("html_url", ""),
                )
            )
        out.sort(key=lambda i: i.due_at or datetime.max)
        return out

    async def _zeros_for_course(self, course: Dict) -> List[SimpleGradedAssignment]:
        submissions = await self.client.get_all(
            f"/courses/{course['id']}/students/submissions",
            {"student_ids": [self.student_id], "include": ["assignment"], "workflow_state": "graded"},
        )
        out = []
        for sub in submissions:
            assignment = sub.get("assignment") or {}
            score = sub.get("score")
            points = assignment.get("points_possible")
            if score is None or not points:
                continue
            pct = score / points * 100
            if pct > ZERO_THRESHOLD_PERCENT:
                continue
            out.append(
                SimpleGradedAssignment(
                    id=assignment.get("id", sub.get("assignment_id")),
                    name=assignment.get("name", ""),
                    course_name=course.get("name", ""),
                    course_id=course["id"],
                    due_at=parse_canvas_time(assignment.get("due_at")),
                    points_possible=points,
                    score=score,
                    percentage=round(pct, 1),
                    url=assignment.get("html_url", ""),
                )
            )
        return out

    async def zero_grade_assignments(self) -> List[SimpleGradedAssignment]:
        courses = await self._active_courses()
        per_course = await asyncio.gather(
            *(self._zeros_for_course(c) for c in courses),
            return_exceptions=True,
        )
        out = []
        for course, result in zip(courses, per_course):
            if isinstance(result, CanvasError):
                log.debug("skipping course %s: %s", course["id"], result)
                continue
            if isinstance(result, BaseException):
                raise result
            out.extend(result)
        return out


class UnconfiguredLMS:
    """Stand-in when Canvas credentials are missing: chat still works, LMS queries fail."""

    def __init__(self, reason: str):
        self.reason = reason

    def _fail(self):
        raise CanvasConfigError(self.reason)

    async def courses_with_grades(self):
        self._fail()

    async def missing_assignments(self):
        self._fail()

    async def unsubmitted_past_due(self):
        self._fail()

    async def due_within(self, days: int = 7):
        self._fail()

    async def zero_grade_assignments(self):
        self._fail()

    async def close(self) -> None:
        pass
