import logging
from dataclasses import dataclass
from enum import Enum

from templeline import prompts
from templeline.capabilities import (
    BookingSink,
    EscalationSignal,
    FieldExtraction,
    LanguageModel,
    ModelResult,
    TextReply,
)
from templeline.errors import ModelUnavailable, StorageError
from templeline.escalation import EscalationAction, EscalationPolicy
from templeline.extraction import (
    BOOKING_FUNCTION_SCHEMA,
    BookingDraft,
    is_complete,
    merge,
    missing_fields,
    missing_fields_question,
)
from templeline.session import CallState, Role
from templeline.states import DialoguePhase
from templeline.transcript import MAX_HISTORY_TURNS, model_messages

logger = logging.getLogger(__name__)


class Directive(Enum):
    SPEAK = "speak"
    TRANSFER = "transfer"
    HANGUP = "hangup"


@dataclass
class TurnResult:
    assistant_text: str
    next_state: CallState
    directive: Directive = Directive.SPEAK


def _transition(state: CallState, phase: DialoguePhase):
    if state.phase != phase:
        logger.info("[%s] %s -> %s", state.call_id, state.phase.value, phase.value)
    state.phase = phase


class DialogueEngine:
    """Runs one conversational turn of a call at a time.

    Each non-empty utterance adds exactly one caller turn to the transcript
    and at most one assistant turn. Whatever the model does (answers, fills
    booking fields, asks for a human, or fails) the turn ends with something
    to say or a transfer/hangup directive.
    """

    def __init__(
        self,
        model: LanguageModel,
        bookings: BookingSink,
        policy: EscalationPolicy | None = None,
        max_history: int = MAX_HISTORY_TURNS,
    ):
        self.model = model
        self.bookings = bookings
        self.policy = policy or EscalationPolicy()
        self.max_history = max_history

    async def process_turn(self, state: CallState, utterance: str | None) -> TurnResult:
        if state.phase.is_terminal:
            logger.warning("[%s] Turn received after call ended", state.call_id)
            return TurnResult("", state, Directive.HANGUP)

        text = (utterance or "").strip()
        if not text:
            # Re-prompt without a model call or a transcript entry
            return TurnResult(prompts.CLARIFY, state, Directive.SPEAK)

        state.turn_count += 1
        logger.info("[%s] Caller: %s", state.phase.value, text)
        state.append(Role.USER, text)

        try:
            result = await self.model.converse(
                model_messages(state, self.max_history), BOOKING_FUNCTION_SCHEMA
            )
        except ModelUnavailable as e:
            logger.error("[%s] Model unavailable, escalating: %s", state.call_id, e)
            result = EscalationSignal()

        return await self._apply(state, result)

    async def _apply(self, state: CallState, result: ModelResult) -> TurnResult:
        if isinstance(result, FieldExtraction):
            return await self._collect_booking(state, result.fields)
        if isinstance(result, TextReply):
            return self._reply(state, result.text, DialoguePhase.ACTIVE)
        return self.escalate(state)

    def _reply(
        self,
        state: CallState,
        text: str,
        phase: DialoguePhase,
        directive: Directive = Directive.SPEAK,
    ) -> TurnResult:
        _transition(state, phase)
        state.append(Role.ASSISTANT, text)
        logger.info("[%s] Agent: %s", state.phase.value, text)
        return TurnResult(text, state, directive)

    async def _collect_booking(self, state: CallState, extracted: BookingDraft) -> TurnResult:
        state.draft = merge(state.draft, extracted)

        if not is_complete(state.draft):
            logger.info("[%s] Booking fields missing: %s", state.call_id, ", ".join(missing_fields(state.draft)))
            return self._reply(
                state,
                missing_fields_question(state.draft),
                DialoguePhase.AWAITING_BOOKING_FIELDS,
            )

        try:
            await self.bookings.save(state.draft)
        except StorageError as e:
            # Keep the draft so the caller is never told of a booking that didn't happen
            logger.error("[%s] Booking save failed, draft kept: %s", state.call_id, e)
            return self._reply(state, prompts.BOOKING_SAVE_FAILED, DialoguePhase.ACTIVE)

        state.draft = BookingDraft()
        return self._reply(state, prompts.BOOKING_CONFIRMED, DialoguePhase.ACTIVE)

    def escalate(self, state: CallState) -> TurnResult:
        decision = self.policy.decide(state)
        if decision.action == EscalationAction.DECLINE:
            logger.warning(
                "[%s] Transfer declined after %d attempts", state.call_id, decision.next_attempts
            )
            return self._reply(state, prompts.TRANSFER_DECLINED, DialoguePhase.ENDED, Directive.HANGUP)

        logger.info(
            "Call transfer initiated for call %s (attempt %d)", state.call_id, decision.next_attempts
        )
        return self._reply(state, prompts.TRANSFER_HOLD, DialoguePhase.TRANSFERRING, Directive.TRANSFER)

    def handle_transfer_outcome(self, state: CallState, completed: bool) -> TurnResult:
        """Apply the telephony layer's report on an operator transfer."""
        if state.phase.is_terminal:
            return TurnResult("", state, Directive.HANGUP)
        if state.phase != DialoguePhase.TRANSFERRING:
            logger.warning("[%s] Transfer outcome received in phase %s", state.call_id, state.phase.value)
        if completed:
            logger.info("Call successfully transferred to manager for call %s", state.call_id)
            _transition(state, DialoguePhase.ENDED)
            return TurnResult("", state, Directive.HANGUP)

        logger.info("Manager transfer failed for call %s", state.call_id)
        return self._reply(state, prompts.TRANSFER_FAILED, DialoguePhase.ACTIVE)
