# chatbot/llm_intent.py

"""
LLM-backed intent resolver.

Goal: take a natural-language message like:
    "what percentage of my work is missing?"

and turn it into the SAME Intent that chatbot.intent.parse() returns, e.g.:

    Intent(type="analysis",
           analysis=AnalysisRequest("percentage", "missing assignments out of total"))

When the model is unreachable, slow, or answers with something that isn't
the JSON we asked for, the resolver returns Deferred and the caller uses the
keyword classifier instead. Nothing here ever raises into the chat handler.

The resolver is not a safety mechanism on its own: the regex guardrail has
already run on the raw message before we get here.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from typing import Any, Dict, Optional, Sequence

from carl.chatbot.dates import extract_date_range
from carl.chatbot.intent_schema import (
    ANALYSIS_TYPES,
    LLM_INTENTS,
    AnalysisRequest,
    Deferred,
    Intent,
    Resolved,
    ResolutionOutcome,
)
from carl.chatbot.llm_client import LLMClient, LLMError

log = logging.getLogger("chatbot.llm_intent")

# ---------------------------
# 1) System prompt + JSON schema
# ---------------------------

SYSTEM_PROMPT = """You are C.A.R.L. (Canvas Assignment Reminder Liaison), a constrained AI assistant that ONLY helps track school assignments.

YOUR CAPABILITIES:
- Parse user queries about assignments, grades, and due dates
- Identify what data the user needs (grades, missing work, upcoming assignments)
- Perform analytical reasoning (percentages, comparisons, summaries)
- Extract date/time filters from queries

YOUR CONSTRAINTS:
- You CANNOT help with actual homework (essays, math problems, answers)
- You CANNOT generate creative content
- You ONLY work with assignment metadata (names, dates, grades, status)
- If asked for homework help, respond with: BLOCKED

OUTPUT FORMAT:
Always respond with a JSON object:
{
  "intent": "grades" | "missing" | "zeros" | "due_soon" | "analysis" | "help" | "greeting" | "blocked" | "unknown",
  "dateFilter": "2026" | "this week" | "january" | null,
  "analysis": {
    "type": "percentage" | "comparison" | "summary" | "count" | null,
    "question": "description of what to calculate"
  },
  "response": "Only for greeting/help/blocked - the text response to show"
}

INTENT DEFINITIONS:
- "grades": User wants to see their course grades
- "missing": User wants to see assignments they haven't submitted
- "zeros": User wants to see assignments that were graded with zero or very low scores (submitted but failed)
- "due_soon": User wants to see upcoming assignments
- "analysis": User wants analytical reasoning about their data
- "help": User wants help understanding what you can do
- "greeting": User is saying hello
- "blocked": User is asking for homework help (writing essays, solving problems, etc.)

EXAMPLES:

User: "What's due tomorrow?"
{"intent": "due_soon", "dateFilter": "tomorrow", "analysis": null, "response": null}

User: "What percentage of my work is missing?"
{"intent": "analysis", "dateFilter": null, "analysis": {"type": "percentage", "question": "missing assignments out of total"}, "response": null}

User: "Which class am I doing worst in?"
{"intent": "analysis", "dateFilter": null, "analysis": {"type": "comparison", "question": "find course with lowest grade"}, "response": null}

User: "Write my essay about the Civil War"
{"intent": "blocked", "dateFilter": null, "analysis": null, "response": "I'm sorry, I'm afraid I can't do that. I can only help you track assignments, not complete them."}

User: "How many assignments am I missing in math?"
{"intent": "analysis", "dateFilter": null, "analysis": {"type": "count", "question": "count missing assignments filtered by math course"}, "response": null}

User: "Help"
{"intent": "help", "dateFilter": null, "analysis": null, "response": null}

User: "Do I have any zeros?"
{"intent": "zeros", "dateFilter": null, "analysis": null, "response": null}

User: "What assignments got a zero last week?"
{"intent": "zeros", "dateFilter": "last week", "analysis": null, "response": null}

User: "Summarize my grades"
{"intent": "analysis", "dateFilter": null, "analysis": {"type": "summary", "question": "summarize grades across all courses"}, "response": null}

Respond ONLY with the JSON object, no other text."""

ANALYSIS_PROMPT = """You are analyzing school assignment data. Answer the question concisely based on the data provided. Use the HAL 9000 personality - be direct, slightly formal, helpful but with a hint of dry wit.

DATA:
{data}

Respond with a natural language answer, not JSON. Be concise (1-3 sentences)."""

ANALYSIS_FAILED = "I'm having trouble analyzing that data right now."


# ---------------------------
# 2) Helpers: JSON extraction + normalization
# ---------------------------


def _extract_json(text: str) -> str:
    """
    Models sometimes wrap the JSON in prose or ```json fences.
    Take the substring between the first '{' and the last '}'.
    """
    if not text:
        return ""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return text.strip()
    return text[start : end + 1]


def _normalize_analysis(raw: Any) -> Optional[AnalysisRequest]:
    if not isinstance(raw, dict):
        return None
    kind = raw.get("type")
    question = raw.get("question")
    if kind not in ANALYSIS_TYPES or not isinstance(question, str) or not question.strip():
        return None
    return AnalysisRequest(type=kind, question=question.strip())


def _normalize_intent_dict(data: Dict[str, Any], original_text: str) -> ResolutionOutcome:
    """
    Take the raw dict from the model and enforce the schema.
    Anything we can't act on becomes Deferred.
    """
    kind = str(data.get("intent") or "unknown").strip().lower()
    if kind not in LLM_INTENTS:
        return Deferred(f"unrecognised intent {kind!r}")
    if kind == "unknown":
        return Deferred("model returned unknown")

    analysis = _normalize_analysis(data.get("analysis"))
    if kind == "analysis" and analysis is None:
        return Deferred("analysis intent without an analysis request")

    date_filter = data.get("dateFilter")
    date_range = None
    if isinstance(date_filter, str) and date_filter.strip():
        date_range = extract_date_range(date_filter)

    response = data.get("response")
    if not isinstance(response, str) or not response.strip():
        response = None

    return Resolved(
        Intent(
            type=kind,
            date_range=date_range,
            analysis=analysis,
            response=response,
            raw=original_text,
        )
    )


# ---------------------------
# 3) Main entry: resolve_with_llm()
# ---------------------------


async def resolve_with_llm(message: str, client: LLMClient) -> ResolutionOutcome:
    """
    Ask the model for a structured intent.

    Never raises: transport errors, timeouts and malformed replies all
    come back as Deferred.
    """
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": message},
    ]
    try:
        content = await client.chat(messages)
        raw = json.loads(_extract_json(content))
        if not isinstance(raw, dict):
            return Deferred("model reply is not a JSON object")
        return _normalize_intent_dict(raw, original_text=message)
    except (LLMError, ValueError, TypeError) as e:
        log.warning("LLM intent parsing failed: %s", e)
        return Deferred(str(e))


# ---------------------------
# 4) Free-form analysis over fetched data
# ---------------------------


def build_data_summary(
    courses: Sequence = (),
    missing: Sequence = (),
    upcoming: Sequence = (),
) -> str:
    parts = []

    if courses:
        parts.append("COURSES AND GRADES:")
        for c in courses:
            grade = c.grade or "N/A"
            score = f"{c.score:.1f}%" if c.score is not None else "N/A"
            parts.append(f"- {c.name}: {grade} ({score})")

    if missing:
        parts.append("\nMISSING ASSIGNMENTS:")
        parts.append(f"Total missing: {len(missing)}")
        for course, count in Counter(m.course_name for m in missing).items():
            parts.append(f"- {course}: {count} missing")

    if upcoming:
        parts.append("\nUPCOMING ASSIGNMENTS:")
        done = [u for u in upcoming if u.submitted]
        parts.append(
            f"Total upcoming: {len(upcoming)} "
            f"({len(done)} submitted, {len(upcoming) - len(done)} pending)"
        )
        per_course: Dict[str, Counter] = {}
        for u in upcoming:
            per_course.setdefault(u.course_name, Counter())["submitted" if u.submitted else "pending"] += 1
        for course, counts in per_course.items():
            parts.append(f"- {course}: {counts['pending']} pending, {counts['submitted']} done")

    return "\n".join(parts)


async def perform_analysis(
    analysis: AnalysisRequest,
    client: LLMClient,
    courses: Sequence = (),
    missing: Sequence = (),
    upcoming: Sequence = (),
) -> str:
    messages = [
        {
            "role": "system",
            "content": ANALYSIS_PROMPT.format(data=build_data_summary(courses, missing, upcoming)),
        },
        {"role": "user", "content": analysis.question},
    ]
    try:
        return (await client.chat(messages)).strip()
    except LLMError as e:
        log.warning("LLM analysis failed: %s", e)
        return ANALYSIS_FAILED
