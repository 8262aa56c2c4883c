"""Speech synthesis with a fallback to the telephony provider's own voice.

ElevenLabs renders each utterance to an MP3 clip held by ``AudioStore``
until Twilio fetches it. Any synthesis failure (error, timeout, open circuit)
makes ``synthesize()`` return None, and the caller hears the same text through
TwiML ``<Say>`` instead. Clips are deleted once streamed, when streaming fails,
and when their call is torn down.
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import AsyncIterator

import httpx

from templeline.capabilities import AudioClip
from templeline.circuit_breaker import CircuitBreaker
from templeline.errors import SynthesisUnavailable

logger = logging.getLogger(__name__)

ELEVENLABS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
DEFAULT_VOICE_ID = "cgSgspJ2msm6clMCkdW9"
CHUNK_SIZE = 16 * 1024


class AudioStore:
    """Owns synthesized clips on disk, keyed by clip id and grouped per call."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._clips: dict[str, AudioClip] = {}

    def _path(self, clip_id: str) -> Path:
        return self.directory / f"{clip_id}.mp3"

    def put(self, call_id: str, audio: bytes) -> AudioClip:
        clip = AudioClip(clip_id=uuid.uuid4().hex, call_id=call_id)
        self._path(clip.clip_id).write_bytes(audio)
        self._clips[clip.clip_id] = clip
        return clip

    def __contains__(self, clip_id: str) -> bool:
        return clip_id in self._clips

    def clips_for(self, call_id: str) -> list[AudioClip]:
        return [clip for clip in self._clips.values() if clip.call_id == call_id]

    async def stream(self, clip_id: str) -> AsyncIterator[bytes]:
        """Yield the clip's bytes, releasing it afterwards whatever happens."""
        if clip_id not in self._clips:
            raise KeyError(clip_id)
        try:
            with self._path(clip_id).open("rb") as f:
                while chunk := f.read(CHUNK_SIZE):
                    yield chunk
        finally:
            self.release(clip_id)

    def release(self, clip_id: str) -> None:
        clip = self._clips.pop(clip_id, None)
        if clip is None:
            return
        try:
            self._path(clip_id).unlink(missing_ok=True)
            logger.debug("Audio clip %s released for call %s", clip_id, clip.call_id)
        except OSError as e:
            logger.error("Failed to clean up audio clip %s for call %s - Error: %s", clip_id, clip.call_id, e)

    def release_call(self, call_id: str) -> None:
        for clip in self.clips_for(call_id):
            self.release(clip.clip_id)


class ElevenLabsTTS:
    def __init__(
        self,
        api_key: str,
        store: AudioStore,
        voice_id: str = DEFAULT_VOICE_ID,
        model_id: str = "eleven_turbo_v2_5",
        timeout: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.store = store
        self.voice_id = voice_id
        self.model_id = model_id
        self.timeout = timeout
        self._circuit = CircuitBreaker(
            failure_threshold=3,
            cooldown_seconds=60.0,
            label="ElevenLabs TTS",
        )
        self._client = client or httpx.AsyncClient(
            headers={
                "xi-api-key": api_key,
                "Accept": "audio/mpeg",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    @property
    def circuit_state(self) -> str:
        return self._circuit.state

    async def close(self):
        await self._client.aclose()

    async def synthesize(self, call_id: str, text: str) -> AudioClip | None:
        try:
            audio = await self._render(text)
        except SynthesisUnavailable as e:
            logger.warning("Text-to-speech unavailable for call %s, falling back to <Say>: %s", call_id, e)
            return None
        try:
            return self.store.put(call_id, audio)
        except OSError as e:
            logger.error("Failed to store audio clip for call %s, falling back to <Say>: %s", call_id, e)
            return None

    async def _render(self, text: str) -> bytes:
        if not self._circuit.should_try():
            raise SynthesisUnavailable("circuit breaker open")
        try:
            resp = await asyncio.wait_for(
                self._client.post(
                    ELEVENLABS_URL.format(voice_id=self.voice_id),
                    json={
                        "text": text,
                        "model_id": self.model_id,
                        "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
                    },
                ),
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except asyncio.TimeoutError as e:
            self._circuit.record_failure()
            raise SynthesisUnavailable(f"timed out after {self.timeout:.1f}s") from e
        except httpx.HTTPError as e:
            self._circuit.record_failure()
            raise SynthesisUnavailable(str(e)) from e
        if not resp.content:
            self._circuit.record_failure()
            raise SynthesisUnavailable("empty audio")
        self._circuit.record_success()
        return resp.content
