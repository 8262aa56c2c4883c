"""Live call sessions, keyed by call id.

The session table is the only state shared between calls. Turns for one call
run one at a time under that call's lock; unrelated calls never wait on each
other. Sessions idle longer than the TTL are treated as gone on the next
access, and ``sweep_expired()`` can be run periodically to reclaim them.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, TypeVar

from templeline import prompts
from templeline.errors import DuplicateSession, UnknownSession
from templeline.session import CallState, new_call_state

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 30 * 60

T = TypeVar("T")


class SessionManager:
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_S,
        on_destroy: list[Callable[[CallState], None]] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._on_destroy = list(on_destroy or [])
        self._clock = clock
        self._sessions: dict[str, CallState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, call_id: str) -> bool:
        return call_id in self._sessions and not self._expired(self._sessions[call_id])

    def _expired(self, state: CallState) -> bool:
        return self._clock() - state.last_activity >= self.ttl_seconds

    def create(self, call_id: str) -> CallState:
        existing = self._sessions.get(call_id)
        if existing is not None:
            if not self._expired(existing):
                raise DuplicateSession(call_id)
            self.destroy(call_id, reason="expired")

        state = new_call_state(call_id, prompts.PERSONA, prompts.GREETING)
        state.created_at = state.last_activity = self._clock()
        self._sessions[call_id] = state
        logger.info("Session created for call %s (%d live)", call_id, len(self._sessions))
        return state

    def get(self, call_id: str) -> CallState:
        state = self._sessions.get(call_id)
        if state is None:
            raise UnknownSession(call_id)
        if self._expired(state):
            self.destroy(call_id, reason="expired")
            raise UnknownSession(call_id)
        return state

    def destroy(self, call_id: str, reason: str = "ended") -> CallState | None:
        state = self._sessions.pop(call_id, None)
        self._locks.pop(call_id, None)
        task = self._tasks.pop(call_id, None)
        if task is not None and not task.done():
            logger.info("Abandoning in-flight turn for call %s", call_id)
            task.cancel()
        if state is None:
            return None

        logger.info("Session destroyed for call %s (%s)", call_id, reason)
        for hook in self._on_destroy:
            try:
                hook(state)
            except Exception:
                logger.exception("Session teardown hook failed for call %s", call_id)
        return state

    def sweep_expired(self) -> list[str]:
        expired = [call_id for call_id, state in self._sessions.items() if self._expired(state)]
        for call_id in expired:
            self.destroy(call_id, reason="expired")
        return expired

    async def run_turn(self, call_id: str, turn: Callable[[CallState], Awaitable[T]]) -> T:
        """Run ``turn`` against the call's state, one turn per call at a time.

        If the session is destroyed while the turn is in flight, the turn is
        cancelled and UnknownSession is raised.
        """
        self.get(call_id)
        lock = self._locks.setdefault(call_id, asyncio.Lock())
        async with lock:
            state = self.get(call_id)
            task = asyncio.create_task(turn(state))
            self._tasks[call_id] = task
            try:
                result = await task
            except asyncio.CancelledError:
                if call_id not in self._sessions:
                    raise UnknownSession(call_id) from None
                raise
            finally:
                if self._tasks.get(call_id) is task:
                    del self._tasks[call_id]
            state.last_activity = self._clock()
            return result
