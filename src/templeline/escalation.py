"""Escalation to a human operator, with a bounded number of transfer attempts.

The policy only looks at the call state and only changes the attempt
counter. Dialing, speaking and phase bookkeeping are left to the engine.
"""

from dataclasses import dataclass
from enum import Enum

from templeline.session import CallState

MAX_TRANSFER_ATTEMPTS = 3


class EscalationAction(Enum):
    TRANSFER = "transfer"
    DECLINE = "decline"


@dataclass(frozen=True)
class EscalationDecision:
    action: EscalationAction
    next_attempts: int


class EscalationPolicy:
    def __init__(self, max_attempts: int = MAX_TRANSFER_ATTEMPTS):
        self.max_attempts = max_attempts

    def decide(self, state: CallState) -> EscalationDecision:
        next_attempts = min(state.transfer_attempts + 1, self.max_attempts)
        state.transfer_attempts = next_attempts
        if next_attempts >= self.max_attempts:
            return EscalationDecision(EscalationAction.DECLINE, next_attempts)
        return EscalationDecision(EscalationAction.TRANSFER, next_attempts)
