"""Booking field extraction: turning model-supplied values into a booking draft.

The language model is offered ``BOOKING_FUNCTION_SCHEMA``. Whenever it calls
the function, the arguments it passes are normalized here and merged into the
draft held on the call state. Merging is pure: the same extraction applied
twice leaves the draft as it was after the first application.
"""

from dataclasses import dataclass, fields, replace

from templeline.validation import (
    validate_email,
    validate_name,
    validate_phone,
    validate_service_name,
)

BOOKING_FUNCTION_NAME = "collectBookingInformation"

BOOKING_FUNCTION_SCHEMA = {
    "name": BOOKING_FUNCTION_NAME,
    "description": "Collect booking information for temple puja services",
    "parameters": {
        "type": "object",
        "properties": {
            "name": {
                "type": "string",
                "description": "The name of the person making the booking",
            },
            "email": {
                "type": "string",
                "description": "Email address for booking confirmation",
            },
            "phone": {
                "type": "string",
                "description": "Phone number of the person making the booking",
            },
            "pujaName": {
                "type": "string",
                "description": "Name of the puja being booked",
            },
        },
    },
}

# Function argument name -> draft attribute
ARGUMENT_FIELDS = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "pujaName": "service_name",
}

# Fixed order in which missing fields are asked for, with their spoken phrasing.
FIELD_PROMPTS = (
    ("name", "your name"),
    ("email", "your email address"),
    ("phone", "your phone number"),
    ("service_name", "which puja you'd like to book"),
)

_NORMALIZERS = {
    "name": validate_name,
    "email": validate_email,
    "phone": validate_phone,
    "service_name": validate_service_name,
}


@dataclass(frozen=True)
class BookingDraft:
    name: str = ""
    email: str = ""
    phone: str = ""
    service_name: str = ""

    def collected(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self) if _present(getattr(self, f.name))}

    def is_empty(self) -> bool:
        return not self.collected()


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


def normalize_arguments(arguments: dict) -> BookingDraft:
    """Build a partial draft from raw function-call arguments.

    Unknown keys are ignored. Values that fail validation come back empty so
    they never overwrite something the caller already gave us.
    """
    values = {}
    for arg, attr in ARGUMENT_FIELDS.items():
        raw = arguments.get(arg)
        if not isinstance(raw, str):
            continue
        values[attr] = _NORMALIZERS[attr](raw)
    return BookingDraft(**values)


def merge(draft: BookingDraft, extracted: BookingDraft) -> BookingDraft:
    updates = {attr: value for attr, value in extracted.collected().items()}
    return replace(draft, **updates)


def is_complete(draft: BookingDraft) -> bool:
    return all(_present(getattr(draft, attr)) for attr, _ in FIELD_PROMPTS)


def missing_fields(draft: BookingDraft) -> list[str]:
    return [attr for attr, _ in FIELD_PROMPTS if not _present(getattr(draft, attr))]


def missing_fields_question(draft: BookingDraft) -> str:
    """Single question asking for every missing field, in fixed order."""
    phrases = dict(FIELD_PROMPTS)
    missing = [phrases[attr] for attr in missing_fields(draft)]
    if len(missing) == 1:
        return f"Could you please provide {missing[0]}?"
    return f"I'll help you with the booking. Could you please provide {', '.join(missing)}?"
