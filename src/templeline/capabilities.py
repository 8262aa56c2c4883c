"""Interfaces of the collaborators the dialogue engine drives.

Model replies cross this boundary as tagged results, so nothing past the model
adapter ever compares natural-language output against the escalation marker.
"""

from dataclasses import dataclass
from typing import Protocol, Union

from templeline.extraction import BookingDraft


@dataclass(frozen=True)
class TextReply:
    text: str


@dataclass(frozen=True)
class EscalationSignal:
    pass


@dataclass(frozen=True)
class FieldExtraction:
    fields: BookingDraft


ModelResult = Union[TextReply, EscalationSignal, FieldExtraction]


@dataclass(frozen=True)
class AudioClip:
    clip_id: str
    call_id: str
    media_type: str = "audio/mpeg"


class LanguageModel(Protocol):
    async def converse(self, messages: list[dict], function_schema: dict) -> ModelResult:
        """Raises ModelUnavailable."""
        ...


class TextToSpeech(Protocol):
    async def synthesize(self, call_id: str, text: str) -> AudioClip | None:
        """None means: let the telephony layer speak the text itself."""
        ...


class BookingSink(Protocol):
    async def save(self, draft: BookingDraft) -> None:
        """Raises StorageError."""
        ...


class Telephony(Protocol):
    """What the engine needs from the call leg: speak, listen, dial, hang up."""

    def speak(self, audio: AudioClip | str) -> None: ...

    def gather_speech(self) -> None: ...

    def dial(self, number: str, timeout_seconds: int) -> None: ...

    def hangup(self) -> None: ...
