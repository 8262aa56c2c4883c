import json

import httpx
import pytest
import respx

from templeline.booking_sink import HttpBookingSink, LoggingBookingSink
from templeline.errors import StorageError
from templeline.extraction import BookingDraft

BASE_URL = "https://bookings.example.com"

DRAFT = BookingDraft(
    name="Priya Raman",
    email="priya@example.com",
    phone="5185550123",
    service_name="Ganesh Puja",
)


class TestHttpBookingSink:
    @pytest.mark.asyncio
    async def test_posts_booking(self):
        with respx.mock:
            sink = HttpBookingSink(base_url=BASE_URL, api_key="test-key-123")
            route = respx.post(f"{BASE_URL}/bookings").mock(
                return_value=httpx.Response(201, json={"id": "b_1"})
            )
            await sink.save(DRAFT)
            assert route.called
            req = route.calls[0].request
            assert req.headers.get("x-api-key") == "test-key-123"
            assert json.loads(req.content) == {
                "name": "Priya Raman",
                "email": "priya@example.com",
                "phone": "5185550123",
                "pujaName": "Ganesh Puja",
            }

    @pytest.mark.asyncio
    async def test_no_api_key_still_works(self):
        with respx.mock:
            sink = HttpBookingSink(base_url=BASE_URL + "/")
            route = respx.post(f"{BASE_URL}/bookings").mock(return_value=httpx.Response(200))
            await sink.save(DRAFT)
            assert "x-api-key" not in route.calls[0].request.headers

    @pytest.mark.asyncio
    async def test_server_error_raises_storage_error(self):
        with respx.mock:
            sink = HttpBookingSink(base_url=BASE_URL)
            respx.post(f"{BASE_URL}/bookings").mock(return_value=httpx.Response(500))
            with pytest.raises(StorageError):
                await sink.save(DRAFT)

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self):
        with respx.mock:
            sink = HttpBookingSink(base_url=BASE_URL)
            route = respx.post(f"{BASE_URL}/bookings").mock(side_effect=httpx.ConnectError("down"))
            for _ in range(4):
                with pytest.raises(StorageError):
                    await sink.save(DRAFT)
            assert route.call_count == 3
            assert sink.circuit_state == "open"


@pytest.mark.asyncio
async def test_logging_sink_accepts_bookings(caplog):
    caplog.set_level("INFO")
    await LoggingBookingSink().save(DRAFT)
    assert "Ganesh Puja" in caplog.text
