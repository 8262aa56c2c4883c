import asyncio
import json
import logging

import httpx

from templeline.capabilities import EscalationSignal, FieldExtraction, ModelResult, TextReply
from templeline.circuit_breaker import CircuitBreaker
from templeline.errors import ModelUnavailable
from templeline.extraction import BOOKING_FUNCTION_NAME, normalize_arguments
from templeline.prompts import ESCALATION_SENTINEL

logger = logging.getLogger(__name__)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIChatModel:
    """Chat-completions client offering the booking function to the model.

    Every failure mode (transport error, non-2xx, timeout, open circuit,
    unparseable reply) is raised as ModelUnavailable so the engine can route
    the caller to a human.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4",
        timeout: float = 10.0,
        max_tokens: int = 150,
        temperature: float = 0.7,
        client: httpx.AsyncClient | None = None,
    ):
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._circuit = CircuitBreaker(
            failure_threshold=3,
            cooldown_seconds=30.0,
            label="OpenAI",
        )
        self._client = client or httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    @property
    def circuit_state(self) -> str:
        return self._circuit.state

    async def close(self):
        await self._client.aclose()

    async def converse(self, messages: list[dict], function_schema: dict) -> ModelResult:
        if not self._circuit.should_try():
            raise ModelUnavailable("OpenAI circuit breaker open")
        try:
            message = await asyncio.wait_for(
                self._complete(messages, function_schema), timeout=self.timeout
            )
            result = parse_message(message)
        except asyncio.TimeoutError as e:
            self._circuit.record_failure()
            logger.error("GPT response timed out after %.1fs", self.timeout)
            raise ModelUnavailable("model timed out") from e
        except ModelUnavailable:
            self._circuit.record_failure()
            raise
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            self._circuit.record_failure()
            logger.error("GPT response generation failed - Error: %s", e)
            raise ModelUnavailable(str(e)) from e
        self._circuit.record_success()
        return result

    async def _complete(self, messages: list[dict], function_schema: dict) -> dict:
        resp = await self._client.post(
            OPENAI_URL,
            json={
                "model": self.model,
                "messages": messages,
                "functions": [function_schema],
                "function_call": "auto",
                "max_tokens": self.max_tokens,
                "temperature": self.temperature,
            },
        )
        resp.raise_for_status()
        return resp.json()["choices"][0]["message"]


def parse_message(message: dict) -> ModelResult:
    """Map one chat-completions message onto a tagged model result."""
    call = message.get("function_call")
    if call is None and message.get("tool_calls"):
        call = message["tool_calls"][0].get("function")
    if call:
        if call.get("name") != BOOKING_FUNCTION_NAME:
            raise ModelUnavailable(f"unexpected function call {call.get('name')!r}")
        arguments = json.loads(call.get("arguments") or "{}")
        if not isinstance(arguments, dict):
            raise ModelUnavailable("function arguments are not an object")
        return FieldExtraction(normalize_arguments(arguments))

    content = (message.get("content") or "").strip()
    if not content:
        raise ModelUnavailable("empty reply")
    if content == ESCALATION_SENTINEL:
        return EscalationSignal()
    return TextReply(content)
