import json

import httpx
import pytest
import respx

from templeline.capabilities import EscalationSignal, FieldExtraction, TextReply
from templeline.errors import ModelUnavailable
from templeline.extraction import BOOKING_FUNCTION_SCHEMA, BookingDraft
from templeline.llm import OPENAI_URL, OpenAIChatModel, parse_message

MESSAGES = [
    {"role": "system", "content": "You are Neela."},
    {"role": "user", "content": "I want to book a puja"},
]


def completion(message: dict) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": message}]})


class TestParseMessage:
    def test_plain_text(self):
        assert parse_message({"content": " Namaste! "}) == TextReply("Namaste!")

    def test_exact_sentinel_escalates(self):
        assert parse_message({"content": "TRANSFER_TO_MANAGER"}) == EscalationSignal()

    def test_sentinel_inside_sentence_is_text(self):
        result = parse_message({"content": "Sure, TRANSFER_TO_MANAGER now."})
        assert isinstance(result, TextReply)

    def test_function_call_extracts_fields(self):
        result = parse_message({
            "content": None,
            "function_call": {
                "name": "collectBookingInformation",
                "arguments": json.dumps({"name": "Priya", "pujaName": "Ganesh Puja"}),
            },
        })
        assert result == FieldExtraction(BookingDraft(name="Priya", service_name="Ganesh Puja"))

    def test_tool_call_form_is_accepted(self):
        result = parse_message({
            "content": None,
            "tool_calls": [{"function": {
                "name": "collectBookingInformation",
                "arguments": json.dumps({"email": "priya@example.com"}),
            }}],
        })
        assert result == FieldExtraction(BookingDraft(email="priya@example.com"))

    def test_unknown_function_is_malformed(self):
        with pytest.raises(ModelUnavailable):
            parse_message({"function_call": {"name": "deleteEverything", "arguments": "{}"}})

    def test_empty_reply_is_malformed(self):
        with pytest.raises(ModelUnavailable):
            parse_message({"content": ""})


class TestOpenAIChatModel:
    @respx.mock
    @pytest.mark.asyncio
    async def test_sends_functions_and_settings(self):
        route = respx.post(OPENAI_URL).mock(return_value=completion({"content": "Namaste!"}))
        model = OpenAIChatModel(api_key="test-key")

        result = await model.converse(MESSAGES, BOOKING_FUNCTION_SCHEMA)

        assert result == TextReply("Namaste!")
        request = route.calls[0].request
        assert request.headers["authorization"] == "Bearer test-key"
        body = json.loads(request.content)
        assert body["model"] == "gpt-4"
        assert body["functions"] == [BOOKING_FUNCTION_SCHEMA]
        assert body["function_call"] == "auto"
        assert body["max_tokens"] == 150
        assert body["messages"] == MESSAGES

    @respx.mock
    @pytest.mark.asyncio
    async def test_http_error_is_model_unavailable(self):
        respx.post(OPENAI_URL).mock(return_value=httpx.Response(500))
        model = OpenAIChatModel(api_key="test-key")
        with pytest.raises(ModelUnavailable):
            await model.converse(MESSAGES, BOOKING_FUNCTION_SCHEMA)

    @respx.mock
    @pytest.mark.asyncio
    async def test_bad_json_arguments_is_model_unavailable(self):
        respx.post(OPENAI_URL).mock(return_value=completion({
            "function_call": {"name": "collectBookingInformation", "arguments": "{not json"},
        }))
        model = OpenAIChatModel(api_key="test-key")
        with pytest.raises(ModelUnavailable):
            await model.converse(MESSAGES, BOOKING_FUNCTION_SCHEMA)

    @respx.mock
    @pytest.mark.asyncio
    async def test_timeout_is_model_unavailable(self):
        respx.post(OPENAI_URL).mock(side_effect=httpx.ReadTimeout("slow"))
        model = OpenAIChatModel(api_key="test-key", timeout=0.5)
        with pytest.raises(ModelUnavailable):
            await model.converse(MESSAGES, BOOKING_FUNCTION_SCHEMA)

    @respx.mock
    @pytest.mark.asyncio
    async def test_circuit_opens_after_repeated_failures(self):
        route = respx.post(OPENAI_URL).mock(return_value=httpx.Response(503))
        model = OpenAIChatModel(api_key="test-key")
        for _ in range(3):
            with pytest.raises(ModelUnavailable):
                await model.converse(MESSAGES, BOOKING_FUNCTION_SCHEMA)
        assert model.circuit_state == "open"

        with pytest.raises(ModelUnavailable):
            await model.converse(MESSAGES, BOOKING_FUNCTION_SCHEMA)
        assert route.call_count == 3
