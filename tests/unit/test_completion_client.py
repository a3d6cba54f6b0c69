"""Unit tests for the completion backend client."""

import json

import httpx
import pytest

from callbot_core.exceptions import ParseError, UpstreamFaultError
from callbot_core.llm.base import CompletionResponse, FrameType, ModelPrompt, parse_stream_line
from callbot_core.llm.client import CompletionClient


STREAM_LINES = [
    'data: {"choices":[{"text":"Hel"}]}',
    'data: {"choices":[{"text":"lo"}]}',
    "data: [DONE]",
]


def make_client(settings, handler, **kwargs) -> CompletionClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CompletionClient(settings, http_client=http_client, **kwargs)


def sse_body(lines) -> bytes:
    return ("\n".join(lines) + "\n").encode()


class TestCompletionResponse:
    """Tests for blocking response parsing."""

    def test_parse_first_choice(self):
        """Test the first choice's text is returned verbatim."""
        body = '{"choices":[{"text":"Seattle is a city","index":0,"finish_reason":"stop"}]}'

        response = CompletionResponse.parse(body)

        assert response.text == "Seattle is a city"
        assert response.choices[0].finish_reason == "stop"

    def test_empty_choices_raise(self):
        with pytest.raises(ParseError):
            CompletionResponse.parse('{"choices":[]}')

    def test_missing_choices_raise(self):
        with pytest.raises(ParseError):
            CompletionResponse.parse('{"id":"cmpl-1"}')

    def test_not_json_raises(self):
        with pytest.raises(ParseError) as exc_info:
            CompletionResponse.parse("<html>bad gateway</html>")

        assert exc_info.value.code == "PARSE_ERROR"
        assert exc_info.value.payload == "<html>bad gateway</html>"

    def test_choice_without_text_raises(self):
        with pytest.raises(ParseError):
            CompletionResponse.parse('{"choices":[{"index":0}]}')

    def test_prompt_payload_fields(self):
        payload = ModelPrompt(prompt="hi", stream=True, stop="").to_payload()

        assert set(payload) == {"prompt", "max_tokens", "temperature", "top_p", "n", "stream", "logprobs", "stop"}
        assert payload["stream"] is True


class TestStreamParsing:
    """Tests for event-stream line decoding."""

    def test_non_data_lines_skipped(self):
        """Test blank and keep-alive lines are not frames."""
        assert parse_stream_line("") is None
        assert parse_stream_line(": keep-alive") is None
        assert parse_stream_line("event: ping") is None

    def test_done_sentinel(self):
        frame = parse_stream_line("data: [DONE]")

        assert frame.type == FrameType.DONE
        assert frame.is_done

    def test_delta(self):
        frame = parse_stream_line('data: {"id":"c1","object":"text_completion","choices":[{"text":"Hel"}]}')

        assert frame.type == FrameType.DELTA
        assert frame.text == "Hel"

    def test_malformed_data_line_raises(self):
        with pytest.raises(ParseError):
            parse_stream_line("data: {not json")

    def test_non_object_data_line_raises(self):
        with pytest.raises(ParseError):
            parse_stream_line('data: ["Hel"]')

    def test_null_text_is_empty_delta(self):
        """Test a finish frame with null text decodes as an empty delta."""
        frame = parse_stream_line('data: {"choices":[{"text":null,"finish_reason":"stop"}]}')

        assert frame.type == FrameType.DELTA
        assert frame.text == ""

    def test_empty_choices_is_empty_delta(self):
        frame = parse_stream_line('data: {"id":"c1","choices":[]}')

        assert frame.type == FrameType.DELTA
        assert frame.text == ""

    def test_non_string_text_raises(self):
        with pytest.raises(ParseError):
            parse_stream_line('data: {"choices":[{"text":42}]}')


class TestStreamingCompletion:
    """Tests for complete_streaming over a mocked event stream."""

    @pytest.mark.asyncio
    async def test_heartbeats_between_frames(self, settings):
        """Test blank and keep-alive lines do not end the stream."""
        body = sse_body(["", STREAM_LINES[0], ": ping", "", STREAM_LINES[1], STREAM_LINES[2]])
        client = make_client(settings, lambda request: httpx.Response(200, content=body))

        assert await client.complete_streaming("hi") == "Hello"

    @pytest.mark.asyncio
    async def test_lines_after_done_not_decoded(self, settings):
        """Test nothing after the sentinel is read, even a malformed line."""
        body = sse_body(STREAM_LINES + ['data: {"choices":[{"text":"!!"}]}', "data: {not json"])
        client = make_client(settings, lambda request: httpx.Response(200, content=body))

        assert await client.complete_streaming("hi") == "Hello"

    @pytest.mark.asyncio
    async def test_finish_frame_with_null_text(self, settings):
        """Test a null-text finish frame keeps the collected answer."""
        body = sse_body(
            [
                STREAM_LINES[0],
                STREAM_LINES[1],
                'data: {"choices":[{"text":null,"finish_reason":"stop"}]}',
                "data: [DONE]",
            ]
        )
        client = make_client(settings, lambda request: httpx.Response(200, content=body))

        assert await client.complete_streaming("hi") == "Hello"

    @pytest.mark.asyncio
    async def test_prelude_frame_without_choices(self, settings):
        body = sse_body(['data: {"id":"c1","object":"text_completion","choices":[]}'] + STREAM_LINES)
        client = make_client(settings, lambda request: httpx.Response(200, content=body))

        assert await client.complete_streaming("hi") == "Hello"

    @pytest.mark.asyncio
    async def test_only_done_is_empty_text(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200, content=sse_body(["data: [DONE]"])))

        assert await client.complete_streaming("hi") == ""

    @pytest.mark.asyncio
    async def test_malformed_data_line_raises(self, settings):
        body = sse_body([STREAM_LINES[0], "data: {not json", STREAM_LINES[2]])
        client = make_client(settings, lambda request: httpx.Response(200, content=body))

        with pytest.raises(ParseError):
            await client.complete_streaming("hi")

    @pytest.mark.asyncio
    async def test_truncated_after_first_frame(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200, content=sse_body(STREAM_LINES[:1])))

        assert await client.complete_streaming("hi") == "Hel"


class TestCompletionClient:
    """Tests for CompletionClient requests."""

    @pytest.mark.asyncio
    async def test_complete_sends_headers_and_body(self, settings):
        """Test the request carries the bearer token and model selector."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"choices": [{"text": "Seattle is a city", "index": 0, "finish_reason": "stop"}]},
            )

        client = make_client(settings, handler)

        text = await client.complete("What is Seattle?")

        assert text == "Seattle is a city"
        assert seen["url"] == settings.completion_endpoint
        assert seen["headers"]["authorization"] == "Bearer test-token"
        assert seen["headers"]["x-modeltype"] == "text-davinci-003"
        assert seen["body"]["prompt"] == "What is Seattle?"
        assert seen["body"]["stream"] is False
        assert seen["body"]["max_tokens"] == 500
        assert seen["body"]["temperature"] == 0.6

    @pytest.mark.asyncio
    async def test_explicit_token_and_model(self, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["headers"] = request.headers
            return httpx.Response(200, json={"choices": [{"text": "ok"}]})

        client = make_client(settings, handler)

        await client.complete("hi", model="gpt-35-turbo", token="per-call")

        assert seen["headers"]["authorization"] == "Bearer per-call"
        assert seen["headers"]["x-modeltype"] == "gpt-35-turbo"

    @pytest.mark.asyncio
    async def test_async_token_provider(self, settings):
        seen = {}

        async def provider() -> str:
            return "from-provider"

        def handler(request: httpx.Request) -> httpx.Response:
            seen["authorization"] = request.headers["authorization"]
            return httpx.Response(200, json={"choices": [{"text": "ok"}]})

        client = make_client(settings, handler, token_provider=provider)

        await client.complete("hi")

        assert seen["authorization"] == "Bearer from-provider"

    @pytest.mark.asyncio
    async def test_upstream_error(self, settings):
        """Test a non-2xx status raises UpstreamFaultError."""
        client = make_client(settings, lambda request: httpx.Response(503, text="overloaded"))

        with pytest.raises(UpstreamFaultError) as exc_info:
            await client.complete("hi")

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_empty_choices_raise(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200, json={"choices": []}))

        with pytest.raises(ParseError):
            await client.complete("hi")

    @pytest.mark.asyncio
    async def test_complete_streaming(self, settings):
        """Test a streamed response is accumulated until the sentinel."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                content=sse_body(["", STREAM_LINES[0], "", STREAM_LINES[1], "", STREAM_LINES[2]]),
                headers={"content-type": "text/event-stream"},
            )

        client = make_client(settings, handler)

        text = await client.complete_streaming("hi")

        assert text == "Hello"
        assert seen["body"]["stream"] is True

    @pytest.mark.asyncio
    async def test_stream_yields_frames(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200, content=sse_body(STREAM_LINES)))

        frames = [frame async for frame in client.stream("hi")]

        assert [f.text for f in frames] == ["Hel", "lo", ""]
        assert frames[-1].is_done

    @pytest.mark.asyncio
    async def test_streaming_truncated_returns_partial(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200, content=sse_body(STREAM_LINES[:2])))

        assert await client.complete_streaming("hi") == "Hello"

    @pytest.mark.asyncio
    async def test_streaming_without_data_raises(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200, content=b": keep-alive\n\n"))

        with pytest.raises(ParseError):
            await client.complete_streaming("hi")

    @pytest.mark.asyncio
    async def test_streaming_upstream_error(self, settings):
        client = make_client(settings, lambda request: httpx.Response(401, text="unauthorized"))

        with pytest.raises(UpstreamFaultError) as exc_info:
            await client.complete_streaming("hi")

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_statistics(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200, json={"choices": [{"text": "ok"}]}))

        await client.complete("hi")
        stats = client.get_statistics()

        assert stats["total_requests"] == 1
        assert stats["model"] == "text-davinci-003"
