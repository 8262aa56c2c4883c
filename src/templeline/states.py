from enum import Enum

# Phases in which the caller is talking to the assistant.
CONVERSING_PHASES = {"greeting", "active", "awaiting_booking_fields"}
TERMINAL_PHASES = {"ended"}


class DialoguePhase(Enum):
    GREETING = "greeting"
    ACTIVE = "active"
    AWAITING_BOOKING_FIELDS = "awaiting_booking_fields"
    TRANSFERRING = "transferring"
    ENDED = "ended"

    @property
    def is_conversing(self) -> bool:
        return self.value in CONVERSING_PHASES

    @property
    def is_terminal(self) -> bool:
        return self.value in TERMINAL_PHASES
