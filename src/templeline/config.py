"""Startup configuration.

Checks that required environment variables are set before the server accepts
calls, so a missing key fails loudly at boot instead of dropping a caller
mid-conversation.
"""

import logging
import os
import sys
from dataclasses import dataclass

logger = logging.getLogger(__name__)

REQUIRED_VARS = [
    "OPENAI_API_KEY",
    "MANAGER_PHONE",
]

OPTIONAL_VARS = [
    "ELEVEN_LABS_API_KEY",
    "ELEVEN_LABS_VOICE_ID",
    "OPENAI_MODEL",
    "BOOKING_BACKEND_URL",
    "BOOKING_API_KEY",
    "BASE_URL",
    "LOG_LEVEL",
]


def validate_config() -> None:
    """Exit with a clear error if a required variable is missing or empty.

    Missing optional variables are only logged.
    """
    missing = [var for var in REQUIRED_VARS if not os.getenv(var)]

    if missing:
        print(
            f"\nFATAL: Missing required environment variables:\n"
            f"  {', '.join(missing)}\n"
            f"\nSet them in .env (local) or in the deployment environment.\n",
            file=sys.stderr,
        )
        sys.exit(1)

    for var in OPTIONAL_VARS:
        if not os.getenv(var):
            logger.warning("Optional env var %s is not set", var)


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = ""
    openai_model: str = "gpt-4"
    eleven_labs_api_key: str = ""
    eleven_labs_voice_id: str = "cgSgspJ2msm6clMCkdW9"
    manager_phone: str = ""
    booking_backend_url: str = ""
    booking_api_key: str = ""
    base_url: str = ""
    audio_dir: str = "audio"
    session_ttl_s: float = 30 * 60
    model_timeout_s: float = 10.0
    tts_timeout_s: float = 8.0
    dial_timeout_s: int = 20
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4"),
            eleven_labs_api_key=os.getenv("ELEVEN_LABS_API_KEY", ""),
            eleven_labs_voice_id=os.getenv("ELEVEN_LABS_VOICE_ID", "cgSgspJ2msm6clMCkdW9"),
            manager_phone=os.getenv("MANAGER_PHONE", ""),
            booking_backend_url=os.getenv("BOOKING_BACKEND_URL", ""),
            booking_api_key=os.getenv("BOOKING_API_KEY", ""),
            base_url=os.getenv("BASE_URL", ""),
            audio_dir=os.getenv("AUDIO_DIR", "audio"),
            session_ttl_s=float(os.getenv("SESSION_TTL_S", 30 * 60)),
            model_timeout_s=float(os.getenv("MODEL_TIMEOUT_S", "10")),
            tts_timeout_s=float(os.getenv("TTS_TIMEOUT_S", "8")),
            dial_timeout_s=int(os.getenv("DIAL_TIMEOUT_S", "20")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
