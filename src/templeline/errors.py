class TemplelineError(Exception):
    """Base class for errors raised by the call-handling core."""


class ModelUnavailable(TemplelineError):
    """The language model failed, timed out, or returned something unusable."""


class SynthesisUnavailable(TemplelineError):
    """Text-to-speech failed. Always recovered by falling back to <Say>."""


class DuplicateSession(TemplelineError):
    def __init__(self, call_id: str):
        super().__init__(f"Session already live for call {call_id}")
        self.call_id = call_id


class UnknownSession(TemplelineError):
    def __init__(self, call_id: str):
        super().__init__(f"No live session for call {call_id}")
        self.call_id = call_id


class StorageError(TemplelineError):
    """The booking could not be persisted."""
