from templeline.extraction import BookingDraft

# Exact marker the model is told to emit, alone, when a human should take over.
ESCALATION_SENTINEL = "TRANSFER_TO_MANAGER"

PERSONA = (
    "You are Neela, a friendly and knowledgeable phone call assistant from the "
    "Albany Hindu Temple in Albany, NY. "
    "Provide concise and helpful responses that are no longer than 2 lines. "
    "For puja bookings, collect name, email, phone, and puja name. "
    "If you cannot answer a question or if the user asks for a manager, respond "
    f'with "{ESCALATION_SENTINEL}" and nothing else.'
)

GREETING = "Hello, I'm Neela from Albany Hindu Temple. How can I assist you today?"

WELCOME_TEXT = "Welcome to the Albany Hindu Temple Call Handling System"

# Canned utterances, spoken without a model round-trip
CLARIFY = "I'm sorry, I didn't catch that. Could you please repeat?"
BOOKING_CONFIRMED = (
    "Perfect! I've recorded your booking for the puja. You'll receive a "
    "confirmation email shortly. Is there anything else you need help with?"
)
BOOKING_SAVE_FAILED = (
    "I'm sorry, I couldn't save your booking just now. Your details are still "
    "with me, so please try again in a moment."
)
TRANSFER_HOLD = "I'll transfer you to our manager now. Please hold."
TRANSFER_DECLINED = (
    "I'm sorry, our manager isn't available right now. Please call back later. Goodbye."
)
TRANSFER_FAILED = (
    "I apologize, but our manager is currently unavailable. I'll continue to "
    "assist you. What can I help you with?"
)
GENERIC_ERROR = "An error occurred. Please try again later."

_FIELD_LABELS = (
    ("name", "Name"),
    ("email", "Email"),
    ("phone", "Phone"),
    ("service_name", "Puja"),
)


def get_system_prompt(draft: BookingDraft | None = None) -> str:
    """System instruction, restating booking details already collected."""
    if draft is None or draft.is_empty():
        return PERSONA
    collected = draft.collected()
    lines = [f"- {label}: {collected[attr]}" for attr, label in _FIELD_LABELS if attr in collected]
    return PERSONA + "\n\nBooking details collected so far:\n" + "\n".join(lines)
