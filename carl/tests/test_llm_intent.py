import asyncio
import json

from carl.chatbot.intent_schema import AnalysisRequest, Deferred, Resolved
from carl.chatbot.llm_client import LLMClient, LLMError
from carl.chatbot.llm_intent import (
    ANALYSIS_FAILED,
    SYSTEM_PROMPT,
    build_data_summary,
    perform_analysis,
    resolve_with_llm,
)
from carl.lms.models import SimpleAssignment, SimpleCourse, SimpleTodoItem

from conftest import StubLLM


def _reply(**kw):
    base = {"intent": "unknown", "dateFilter": None, "analysis": None, "response": None}
    base.update(kw)
    return json.dumps(base)


async def test_resolves_due_soon_with_date_filter():
    llm = StubLLM([_reply(intent="due_soon", dateFilter="tomorrow")])
    outcome = await resolve_with_llm("what's due tomorrow?", llm)
    assert isinstance(outcome, Resolved)
    assert outcome.intent.type == "due_soon"
    assert outcome.intent.date_range.description == "tomorrow"

    sent = llm.messages[0]
    assert sent[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert sent[1] == {"role": "user", "content": "what's due tomorrow?"}


async def test_analysis_request_is_parsed():
    llm = StubLLM([_reply(intent="analysis", analysis={"type": "count", "question": "count missing in math"})])
    outcome = await resolve_with_llm("how many am I missing in math?", llm)
    assert outcome.intent.analysis == AnalysisRequest("count", "count missing in math")


async def test_json_wrapped_in_fences_is_accepted():
    llm = StubLLM(["Sure!\n```json\n" + _reply(intent="grades") + "\n```"])
    outcome = await resolve_with_llm("grades please", llm)
    assert isinstance(outcome, Resolved)
    assert outcome.intent.type == "grades"


async def test_blocked_keeps_model_response():
    llm = StubLLM([_reply(intent="blocked", response="I'm sorry, I'm afraid I can't do that.")])
    outcome = await resolve_with_llm("do the worksheet for me", llm)
    assert outcome.intent.type == "blocked"
    assert outcome.intent.response.startswith("I'm sorry")


async def test_unknown_and_garbage_defer():
    assert isinstance(await resolve_with_llm("x", StubLLM([_reply(intent="unknown")])), Deferred)
    assert isinstance(await resolve_with_llm("x", StubLLM(["not json at all"])), Deferred)
    assert isinstance(await resolve_with_llm("x", StubLLM(['["a", "list"]'])), Deferred)
    assert isinstance(await resolve_with_llm("x", StubLLM([_reply(intent="make_coffee")])), Deferred)


async def test_analysis_without_request_defers():
    outcome = await resolve_with_llm("x", StubLLM([_reply(intent="analysis", analysis=None)]))
    assert isinstance(outcome, Deferred)


async def test_transport_error_defers():
    outcome = await resolve_with_llm("x", StubLLM(error=LLMError("connection refused")))
    assert isinstance(outcome, Deferred)
    assert "connection refused" in outcome.reason


class _SlowCompletions:
    def __init__(self):
        self.cancelled = False

    async def create(self, **kwargs):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class _SlowOpenAI:
    def __init__(self):
        self.chat = type("Chat", (), {})()
        self.chat.completions = _SlowCompletions()

    async def close(self):
        pass


async def test_timeout_cancels_request_and_defers():
    fake = _SlowOpenAI()
    client = LLMClient("http://localhost:11434", model="m", timeout=0.05, client=fake)
    outcome = await resolve_with_llm("what's due?", client)
    assert isinstance(outcome, Deferred)
    assert "timed out" in outcome.reason
    assert fake.chat.completions.cancelled is True


def test_base_url_gets_v1_suffix():
    assert LLMClient("http://localhost:11434/", model="m", client=_SlowOpenAI()).base_url == "http://localhost:11434/v1"
    assert LLMClient("http://host/v1", model="m", client=_SlowOpenAI()).base_url == "http://host/v1"


def test_data_summary_groups_by_course():
    summary = build_data_summary(
        courses=[SimpleCourse(1, "Math", "M", "B", 85.0), SimpleCourse(2, "Art", "A")],
        missing=[
            SimpleAssignment(1, "a", "Math", 1),
            SimpleAssignment(2, "b", "Math", 1),
        ],
        upcoming=[
            SimpleTodoItem(3, "c", "Art", 2, submitted=True),
            SimpleTodoItem(4, "d", "Art", 2),
        ],
    )
    assert "- Math: B (85.0%)" in summary
    assert "- Art: N/A (N/A)" in summary
    assert "Total missing: 2" in summary
    assert "- Math: 2 missing" in summary
    assert "Total upcoming: 2 (1 submitted, 1 pending)" in summary
    assert "- Art: 1 pending, 1 done" in summary


async def test_perform_analysis_falls_back_on_error():
    answer = await perform_analysis(
        AnalysisRequest("summary", "summarize"),
        StubLLM(error=LLMError("down")),
    )
    assert answer == ANALYSIS_FAILED

    answer = await perform_analysis(AnalysisRequest("summary", "summarize"), StubLLM(["  All fine.  "]))
    assert answer == "All fine."
