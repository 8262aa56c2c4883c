"""TwiML rendering of the engine's directives.

Twilio drives the call through webhooks: every response is a TwiML document
telling it what to say next and where to post the caller's reply.
"""

from twilio.twiml.voice_response import VoiceResponse

from templeline.capabilities import AudioClip

GATHER_PATH = "/gather"
PROCESS_SPEECH_PATH = "/process_speech"
DIAL_STATUS_PATH = "/handle-dial-status"
AUDIO_PATH = "/stream_audio"

# Twilio DialCallStatus / CallStatus values that mean the leg is over.
TERMINAL_CALL_STATUSES = {"completed", "busy", "failed", "no-answer", "canceled"}


class TwimlCall:
    """Builds one TwiML response; implements the Telephony surface."""

    def __init__(self, base_url: str = "", language: str = "en-US"):
        self.base_url = base_url.rstrip("/")
        self.language = language
        self.response = VoiceResponse()

    def audio_url(self, clip: AudioClip) -> str:
        return f"{self.base_url}{AUDIO_PATH}/{clip.clip_id}"

    def speak(self, audio: AudioClip | str) -> None:
        if isinstance(audio, AudioClip):
            self.response.play(self.audio_url(audio))
        elif audio:
            self.response.say(audio)

    def gather_speech(self) -> None:
        """Listen for the caller's reply; silence is posted too, as an empty SpeechResult."""
        self.response.gather(
            input="speech",
            action=PROCESS_SPEECH_PATH,
            method="POST",
            speech_timeout="auto",
            language=self.language,
            action_on_empty_result=True,
        )

    def continue_conversation(self) -> None:
        self.response.redirect(GATHER_PATH, method="POST")

    def dial(self, number: str, timeout_seconds: int) -> None:
        dial = self.response.dial(action=DIAL_STATUS_PATH, method="POST", timeout=timeout_seconds)
        dial.number(number)

    def hangup(self) -> None:
        self.response.hangup()

    def to_xml(self) -> str:
        return str(self.response)
