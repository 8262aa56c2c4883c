import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Form, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from templeline import prompts
from templeline.booking_sink import HttpBookingSink, LoggingBookingSink
from templeline.capabilities import TextToSpeech
from templeline.config import Settings, validate_config
from templeline.errors import DuplicateSession, UnknownSession
from templeline.llm import OpenAIChatModel
from templeline.session import CallState
from templeline.sessions import SessionManager
from templeline.state_machine import DialogueEngine, Directive, TurnResult
from templeline.telephony import TERMINAL_CALL_STATUSES, TwimlCall
from templeline.transcript import to_timestamped_dump
from templeline.tts import AudioStore, ElevenLabsTTS

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SWEEP_INTERVAL_S = 60.0


@dataclass
class CallServices:
    sessions: SessionManager
    engine: DialogueEngine
    manager_phone: str
    tts: TextToSpeech | None = None
    audio: AudioStore | None = None
    base_url: str = ""
    dial_timeout_s: int = 20
    closeables: list = field(default_factory=list)


def log_transcript(state: CallState) -> None:
    logger.info("Call transcript: %s", json.dumps(to_timestamped_dump(state)))


def build_services(settings: Settings) -> CallServices:
    """Wire the production collaborators from settings."""
    model = OpenAIChatModel(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.model_timeout_s,
    )
    if settings.booking_backend_url:
        bookings = HttpBookingSink(settings.booking_backend_url, api_key=settings.booking_api_key)
    else:
        logger.warning("BOOKING_BACKEND_URL not set, bookings will only be logged")
        bookings = LoggingBookingSink()

    audio = None
    tts = None
    if settings.eleven_labs_api_key:
        audio = AudioStore(settings.audio_dir)
        tts = ElevenLabsTTS(
            api_key=settings.eleven_labs_api_key,
            store=audio,
            voice_id=settings.eleven_labs_voice_id,
            timeout=settings.tts_timeout_s,
        )
    else:
        logger.warning("ELEVEN_LABS_API_KEY not set, using Twilio <Say> for all speech")

    hooks = [log_transcript]
    if audio is not None:
        hooks.append(lambda state: audio.release_call(state.call_id))

    return CallServices(
        sessions=SessionManager(ttl_seconds=settings.session_ttl_s, on_destroy=hooks),
        engine=DialogueEngine(model=model, bookings=bookings),
        manager_phone=settings.manager_phone,
        tts=tts,
        audio=audio,
        base_url=settings.base_url,
        dial_timeout_s=settings.dial_timeout_s,
        closeables=[c for c in (model, bookings, tts) if c is not None],
    )


async def _sweep_forever(sessions: SessionManager):
    while True:
        await asyncio.sleep(SWEEP_INTERVAL_S)
        expired = sessions.sweep_expired()
        if expired:
            logger.info("Swept %d expired sessions", len(expired))


def create_app(services: CallServices | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            validate_config()
            app.state.services = build_services(Settings.from_env())
        sweeper = asyncio.create_task(_sweep_forever(app.state.services.sessions))
        logger.info("Temple call handling system ready")
        yield
        sweeper.cancel()
        for closeable in app.state.services.closeables:
            await closeable.close()

    app = FastAPI(title="Temple Call Handling System", lifespan=lifespan)
    app.state.services = services
    _register_routes(app)
    return app


def _twiml(call: TwimlCall) -> Response:
    return Response(content=call.to_xml(), media_type="text/xml")


def _new_call(request: Request, services: CallServices) -> TwimlCall:
    base_url = services.base_url or str(request.base_url)
    return TwimlCall(base_url=base_url)


async def _speak(services: CallServices, call: TwimlCall, call_id: str, text: str):
    clip = None
    if services.tts is not None and text:
        clip = await services.tts.synthesize(call_id, text)
    call.speak(clip or text)


def _fail(call: TwimlCall) -> Response:
    call.speak(prompts.GENERIC_ERROR)
    call.hangup()
    return _twiml(call)


async def _render(services: CallServices, call: TwimlCall, call_id: str, result: TurnResult) -> Response:
    await _speak(services, call, call_id, result.assistant_text)
    if result.directive == Directive.TRANSFER:
        call.dial(services.manager_phone, services.dial_timeout_s)
    elif result.directive == Directive.HANGUP:
        call.hangup()
        services.sessions.destroy(call_id)
    else:
        call.continue_conversation()
    return _twiml(call)


def _register_routes(app: FastAPI):
    @app.get("/")
    async def index():
        return PlainTextResponse(prompts.WELCOME_TEXT)

    @app.get("/health")
    async def health():
        return PlainTextResponse("ok")

    @app.post("/voice")
    async def voice(request: Request, CallSid: str = Form("")):
        services: CallServices = request.app.state.services
        call = _new_call(request, services)
        try:
            services.sessions.create(CallSid)
        except DuplicateSession as e:
            logger.error("Voice endpoint error for call %s - Error: %s", CallSid, e)
            return _fail(call)
        try:
            await _speak(services, call, CallSid, prompts.GREETING)
        except Exception:
            logger.exception("Voice endpoint error for call %s", CallSid)
            services.sessions.destroy(CallSid, reason="error")
            return _fail(_new_call(request, services))
        call.continue_conversation()
        return _twiml(call)

    @app.post("/gather")
    async def gather(request: Request):
        services: CallServices = request.app.state.services
        call = _new_call(request, services)
        call.gather_speech()
        return _twiml(call)

    @app.post("/process_speech")
    async def process_speech(
        request: Request,
        CallSid: str = Form(""),
        SpeechResult: str = Form(""),
    ):
        services: CallServices = request.app.state.services
        call = _new_call(request, services)
        engine = services.engine
        try:
            result = await services.sessions.run_turn(
                CallSid, lambda state: engine.process_turn(state, SpeechResult)
            )
            return await _render(services, call, CallSid, result)
        except UnknownSession as e:
            logger.error("Speech processing error for call %s - Error: %s", CallSid, e)
        except Exception:
            logger.exception("Speech processing error for call %s", CallSid)
            services.sessions.destroy(CallSid, reason="error")
        return _fail(call)

    @app.post("/handle-dial-status")
    async def handle_dial_status(
        request: Request,
        CallSid: str = Form(""),
        DialCallStatus: str = Form(""),
    ):
        services: CallServices = request.app.state.services
        call = _new_call(request, services)
        engine = services.engine
        completed = DialCallStatus == "completed"
        if not completed:
            logger.info("Manager transfer for call %s ended with status %s", CallSid, DialCallStatus)

        async def outcome(state: CallState) -> TurnResult:
            return engine.handle_transfer_outcome(state, completed)

        try:
            result = await services.sessions.run_turn(CallSid, outcome)
            return await _render(services, call, CallSid, result)
        except UnknownSession as e:
            logger.error("Dial status handling error for call %s - Error: %s", CallSid, e)
        except Exception:
            logger.exception("Dial status handling error for call %s", CallSid)
            services.sessions.destroy(CallSid, reason="error")
        return _fail(call)

    @app.post("/call-status")
    async def call_status(
        request: Request,
        CallSid: str = Form(""),
        CallStatus: str = Form(""),
    ):
        services: CallServices = request.app.state.services
        if CallStatus in TERMINAL_CALL_STATUSES:
            services.sessions.destroy(CallSid, reason=f"call {CallStatus}")
        return Response(status_code=204)

    @app.get("/stream_audio/{clip_id}")
    async def stream_audio(request: Request, clip_id: str):
        services: CallServices = request.app.state.services
        if services.audio is None or clip_id not in services.audio:
            logger.error("Audio file not found for clip %s", clip_id)
            return PlainTextResponse("Audio file not found", status_code=404)
        return StreamingResponse(services.audio.stream(clip_id), media_type="audio/mpeg")


app = create_app()


def main():
    port = int(os.getenv("PORT", "5000"))
    uvicorn.run("templeline.bot:app", host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
