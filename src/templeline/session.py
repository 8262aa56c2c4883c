import time
from dataclasses import dataclass, field
from enum import Enum

from templeline.extraction import BookingDraft
from templeline.states import DialoguePhase

# Hard cap on the stored transcript; the system turn is always kept.
MAX_TRANSCRIPT_TURNS = 200


class Role(Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"


@dataclass(frozen=True)
class Turn:
    role: Role
    text: str
    timestamp: float = field(default_factory=time.time)
    phase: str = ""


@dataclass
class CallState:
    call_id: str
    phase: DialoguePhase = DialoguePhase.GREETING
    transcript: list[Turn] = field(default_factory=list)
    draft: BookingDraft = field(default_factory=BookingDraft)
    transfer_attempts: int = 0

    # Metadata
    turn_count: int = 0
    created_at: float = field(default_factory=time.monotonic)
    last_activity: float = field(default_factory=time.monotonic)

    def append(self, role: Role, text: str) -> Turn:
        turn = Turn(role=role, text=text, phase=self.phase.value)
        self.transcript.append(turn)
        if len(self.transcript) > MAX_TRANSCRIPT_TURNS:
            # Keep the system instruction at index 0
            del self.transcript[1]
        return turn


def new_call_state(call_id: str, system_prompt: str, greeting: str) -> CallState:
    """Fresh state for an inbound call: system instruction followed by the greeting."""
    state = CallState(call_id=call_id)
    state.append(Role.SYSTEM, system_prompt)
    state.append(Role.ASSISTANT, greeting)
    return state
