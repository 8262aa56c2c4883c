import logging

import httpx

from templeline.circuit_breaker import CircuitBreaker
from templeline.errors import StorageError
from templeline.extraction import BookingDraft

logger = logging.getLogger(__name__)


def booking_payload(draft: BookingDraft) -> dict:
    return {
        "name": draft.name,
        "email": draft.email,
        "phone": draft.phone,
        "pujaName": draft.service_name,
    }


class HttpBookingSink:
    """Persists completed bookings through the bookings backend.

    Wrapped in a circuit breaker: after 3 consecutive failures the backend is
    skipped for 60s and saves fail immediately with StorageError, so the
    caller hears an apology instead of waiting on a dead service.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._circuit = CircuitBreaker(
            failure_threshold=3,
            cooldown_seconds=60.0,
            label="booking backend",
        )
        if client is not None:
            self._client = client
        else:
            headers = {"Content-Type": "application/json"}
            if api_key:
                headers["X-API-Key"] = api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=timeout,
            )

    @property
    def circuit_state(self) -> str:
        return self._circuit.state

    async def close(self):
        await self._client.aclose()

    async def save(self, draft: BookingDraft) -> None:
        if not self._circuit.should_try():
            logger.warning("Booking backend circuit breaker open, rejecting booking for %s", draft.name)
            raise StorageError("booking backend unavailable")
        try:
            resp = await self._client.post("/bookings", json=booking_payload(draft))
            resp.raise_for_status()
        except httpx.HTTPError as e:
            self._circuit.record_failure()
            logger.error("Failed to create booking for %s - Error: %s", draft.name, e)
            raise StorageError(str(e)) from e
        self._circuit.record_success()
        logger.info("New booking created - Puja: %s, Customer: %s", draft.service_name, draft.name)


class LoggingBookingSink:
    """Used when no bookings backend is configured: records bookings in the log only."""

    async def save(self, draft: BookingDraft) -> None:
        logger.info("Booking received (no backend configured): %s", booking_payload(draft))

    async def close(self):
        pass
