# chatbot/pipeline.py

"""
Per-message decision pipeline.

    1. locked out?          -> lockout reply, stop
    2. homework request?    -> escalate, stop
    3. LLM configured?      -> resolve; "blocked" escalates, anything
                               resolved is dispatched, Deferred falls through
    4. keyword classifier   -> dispatch

Nothing in here raises into the caller: LMS failures become the generic
connectivity reply and LLM failures silently fall back to keywords.
"""

from __future__ import annotations

import logging
import random
from typing import Optional

from carl.chatbot.actions import CONNECTION_ERROR, dispatch, unknown_response
from carl.chatbot.config import Settings
from carl.chatbot.dates import extract_date_range
from carl.chatbot.escalation import EscalationTracker
from carl.chatbot.guardrails import detect_homework_intent
from carl.chatbot.intent import parse
from carl.chatbot.intent_schema import ChatResponse, Deferred, Intent, ResolutionOutcome
from carl.chatbot.llm_client import LLMClient
from carl.chatbot.llm_intent import resolve_with_llm
from carl.lms.canvas import CanvasConfigError, CanvasLMS, UnconfiguredLMS
from carl.lms.models import LMSDataSource

log = logging.getLogger("chatbot.pipeline")

DEFAULT_USER = "default-user"


class ChatPipeline:
    def __init__(
        self,
        lms: LMSDataSource,
        escalation: Optional[EscalationTracker] = None,
        llm: Optional[LLMClient] = None,
        rng: Optional[random.Random] = None,
        resolver=resolve_with_llm,
    ):
        self.lms = lms
        self.escalation = escalation if escalation is not None else EscalationTracker()
        # only set when the LLM answered the startup probe
        self.llm = llm
        self.rng = rng or random.Random()
        self.resolver = resolver

    @property
    def llm_available(self) -> bool:
        return self.llm is not None

    def _refuse(self, user_id: str) -> ChatResponse:
        result = self.escalation.handle_violation(user_id)
        return ChatResponse(message=result.response, lockedOut=result.locked_out)

    async def handle(self, user_id: str, message: str) -> ChatResponse:
        user_id = user_id or DEFAULT_USER

        if self.escalation.is_locked_out(user_id):
            result = self.escalation.lockout_response(user_id)
            return ChatResponse(message=result.response, lockedOut=True)

        check = detect_homework_intent(message)
        if check.blocked:
            log.info("homework request from %s matched %r", user_id, check.matched_pattern)
            return self._refuse(user_id)

        if self.llm is not None:
            outcome = await self._resolve(message)
            if not isinstance(outcome, Deferred):
                intent = outcome.intent
                if intent.type == "blocked":
                    log.info("LLM flagged homework request from %s", user_id)
                    return self._refuse(user_id)
                response = await self._dispatch(intent, message)
                if response is not None:
                    return response
            else:
                log.debug("LLM deferred (%s), using keyword intent", outcome.reason)

        intent = parse(message)
        response = await self._dispatch(intent, message)
        return response if response is not None else unknown_response(self.rng)

    async def _resolve(self, message: str) -> ResolutionOutcome:
        try:
            return await self.resolver(message, self.llm)
        except Exception as e:
            log.warning("LLM intent detection failed, falling back: %s", e)
            return Deferred(str(e))

    async def _dispatch(self, intent: Intent, message: str) -> Optional[ChatResponse]:
        # prefer the resolver's own range; our extraction catches what the LLM missed
        date_range = intent.date_range or extract_date_range(message)
        try:
            return await dispatch(intent, self.lms, date_range, llm=self.llm, rng=self.rng)
        except Exception:
            log.exception("LMS request failed while handling %r", intent.type)
            return ChatResponse(message=CONNECTION_ERROR, error=True)


async def build_pipeline(settings: Settings) -> ChatPipeline:
    """Wire Canvas, the optional LLM and the escalation tracker from settings."""
    try:
        lms = CanvasLMS.from_settings(settings)
        log.info("Canvas API initialized")
    except CanvasConfigError as e:
        log.warning("Canvas API not configured - %s", e)
        log.warning("Chat will work but Canvas queries will fail.")
        lms = UnconfiguredLMS(str(e))

    llm = LLMClient.from_settings(settings)
    if llm is None:
        log.info("LLM not configured - using keyword-based intent detection (set OLLAMA_URL to enable)")
    elif await llm.is_available():
        log.info("LLM available at %s - using model %s", llm.base_url, llm.model)
    else:
        log.warning("LLM configured but not reachable - using keyword detection")
        await llm.close()
        llm = None

    escalation = EscalationTracker(
        lockout_seconds=settings.lockout_seconds,
        reset_seconds=settings.reset_seconds,
    )
    return ChatPipeline(lms, escalation=escalation, llm=llm)
