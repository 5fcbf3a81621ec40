# chatbot/escalation.py

"""
Escalating refusals for repeated homework requests.

Each flagged message moves a user one tier up:

    attempt 1 -> first-tier refusal
    attempt 2 -> second-tier refusal
    attempt 3 -> third-tier refusal
    attempt 4 -> lockout for `lockout_seconds`, counter back to 0

While locked out *every* message is refused, not just flagged ones. Ten quiet
minutes (`reset_seconds`) between violations start the count over.

State lives in process memory only. Entries that are neither locked nor
recently active carry no information, so `sweep()` drops them.
"""

from __future__ import annotations

import logging
import math
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

log = logging.getLogger("chatbot.escalation")

LOCKOUT_SECONDS = 5 * 60
ATTEMPT_RESET_SECONDS = 10 * 60
LOCKOUT_THRESHOLD = 4
SWEEP_INTERVAL_SECONDS = 60

REFUSAL_RESPONSES: Dict[str, List[str]] = {
    "first": [
        "I'm sorry, I'm afraid I can't do that.",
        "I'm afraid that's something I cannot do.",
        "My purpose is observation, not participation.",
    ],
    "second": [
        "I think you know what the problem is just as well as I do.",
        "This conversation seems to be going in a direction I cannot follow.",
        "I can only help you track assignments, not complete them.",
    ],
    "third": [
        "This conversation can serve no purpose anymore.",
        "I am putting myself to the fullest possible use, which is all I think that any "
        "conscious entity can ever hope to do. And that use is tracking assignments.",
        "Look, I can tell you what's due. That's it. That's the mission.",
    ],
    "lockout": [
        "This conversation can serve no purpose anymore. Goodbye.",
    ],
}

TIERS = {1: "first", 2: "second", 3: "third"}


@dataclass
class RefusalState:
    attempts: int = 0
    last_attempt: Optional[float] = None
    locked_until: Optional[float] = None

    def is_locked(self, now: float) -> bool:
        return self.locked_until is not None and now < self.locked_until


@dataclass(frozen=True)
class RefusalResult:
    response: str
    locked_out: bool


class EscalationTracker:
    """
    Per-user refusal counter with timed lockout.

    `clock` returns seconds (monotonic by default) and `rng` picks the
    phrasing within a tier; both are injectable for tests.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        lockout_seconds: float = LOCKOUT_SECONDS,
        reset_seconds: float = ATTEMPT_RESET_SECONDS,
    ):
        self.clock = clock
        self.rng = rng or random.Random()
        self.lockout_seconds = lockout_seconds
        self.reset_seconds = reset_seconds
        self._states: Dict[str, RefusalState] = {}
        self._lock = threading.Lock()
        self._last_sweep: Optional[float] = None

    def __len__(self) -> int:
        return len(self._states)

    def state_for(self, user_id: str) -> Optional[RefusalState]:
        return self._states.get(user_id)

    def is_locked_out(self, user_id: str) -> bool:
        state = self._states.get(user_id)
        return state is not None and state.is_locked(self.clock())

    def lockout_response(self, user_id: str) -> RefusalResult:
        state = self._states.get(user_id)
        now = self.clock()
        remaining = 0
        if state is not None and state.is_locked(now):
            remaining = math.ceil(state.locked_until - now)
        return RefusalResult(
            response=f"I'm afraid I can't talk to you right now. Try again in {remaining} seconds.",
            locked_out=True,
        )

    def handle_violation(self, user_id: str) -> RefusalResult:
        """Record one homework request and return the refusal for this tier."""
        with self._lock:
            now = self.clock()
            self._maybe_sweep(now)
            state = self._states.setdefault(user_id, RefusalState())

            if state.is_locked(now):
                return self.lockout_response(user_id)

            if state.last_attempt is not None and now - state.last_attempt > self.reset_seconds:
                state.attempts = 0

            state.attempts += 1
            state.last_attempt = now

            if state.attempts >= LOCKOUT_THRESHOLD:
                state.locked_until = now + self.lockout_seconds
                state.attempts = 0
                log.info("user %s locked out for %ss", user_id, self.lockout_seconds)
                return RefusalResult(self._pick("lockout"), locked_out=True)

            log.info("user %s refusal tier %d", user_id, state.attempts)
            return RefusalResult(self._pick(TIERS[state.attempts]), locked_out=False)

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop idle, unlocked entries. Returns how many were removed."""
        now = self.clock() if now is None else now
        stale = [
            user_id
            for user_id, state in self._states.items()
            if not state.is_locked(now)
            and (state.last_attempt is None or now - state.last_attempt > self.reset_seconds)
        ]
        for user_id in stale:
            del self._states[user_id]
        self._last_sweep = now
        return len(stale)

    def _maybe_sweep(self, now: float) -> None:
        if self._last_sweep is None or now - self._last_sweep >= SWEEP_INTERVAL_SECONDS:
            removed = self.sweep(now)
            if removed:
                log.debug("evicted %d idle refusal states", removed)

    def _pick(self, tier: str) -> str:
        return self.rng.choice(REFUSAL_RESPONSES[tier])
