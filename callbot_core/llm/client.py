"""Completion backend client with blocking and streamed requests."""

import inspect
import time
from typing import AsyncIterator, Awaitable, Callable

import httpx
import structlog

from callbot_core.config import Settings, get_settings
from callbot_core.exceptions import ParseError, UpstreamFaultError
from callbot_core.llm.base import CompletionResponse, ModelPrompt, StreamFrame, parse_stream_line


logger = structlog.get_logger()

TokenProvider = Callable[[], str | Awaitable[str]]


class CompletionClient:
    """
    Client for the text-completion backend.

    Every request carries a bearer credential and an X-ModelType header
    naming the model variant. Credentials are not acquired here: pass a
    token per call, a token provider, or configure completion_token.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        token_provider: TokenProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._token_provider = token_provider
        self._client = http_client
        self._owns_client = http_client is None

        # Statistics
        self._total_requests = 0
        self._total_latency = 0.0

    async def connect(self) -> None:
        """Initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._settings.completion_timeout_seconds),
            )
            self._owns_client = True

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def build_prompt(self, prompt: str, stream: bool = False) -> ModelPrompt:
        s = self._settings
        return ModelPrompt(
            prompt=prompt,
            max_tokens=s.completion_max_tokens,
            temperature=s.completion_temperature,
            top_p=s.completion_top_p,
            n=s.completion_n,
            stream=stream,
            logprobs=None,
            stop=s.completion_stop,
        )

    async def _resolve_token(self, token: str | None) -> str:
        if token:
            return token
        if self._token_provider is not None:
            value = self._token_provider()
            if inspect.isawaitable(value):
                value = await value
            return value
        return self._settings.completion_token

    async def _headers(self, model: str | None, token: str | None) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {await self._resolve_token(token)}",
            "X-ModelType": model or self._settings.completion_model,
            "Content-Type": "application/json",
        }

    async def complete(self, prompt: str, model: str | None = None, token: str | None = None) -> str:
        """
        Send a prompt and wait for the whole response.

        Returns:
            Text of the first choice

        Raises:
            UpstreamFaultError: backend answered with a non-2xx status
            ParseError: body is malformed or has no choices
        """
        await self.connect()
        start_time = time.perf_counter()
        self._total_requests += 1

        body = self.build_prompt(prompt, stream=False).to_payload()
        headers = await self._headers(model, token)

        logger.debug("completion_request", model=headers["X-ModelType"], prompt_length=len(prompt))

        response = await self._client.post(self._settings.completion_endpoint, json=body, headers=headers)
        if response.is_error:
            logger.error("completion_error", status=response.status_code, body=response.text[:200])
            raise UpstreamFaultError(
                f"Completion backend returned {response.status_code}",
                status_code=response.status_code,
                details={"body": response.text[:500]},
            )

        text = CompletionResponse.parse(response.text).text

        latency_ms = (time.perf_counter() - start_time) * 1000
        self._total_latency += latency_ms
        logger.debug("completion_complete", latency_ms=round(latency_ms, 2), text_length=len(text))
        return text

    async def stream(
        self,
        prompt: str,
        model: str | None = None,
        token: str | None = None,
    ) -> AsyncIterator[StreamFrame]:
        """
        Send a prompt and yield frames as they arrive.

        Lines without the data prefix are skipped. The final frame is a
        done frame when the backend sends the sentinel.
        """
        await self.connect()
        self._total_requests += 1

        body = self.build_prompt(prompt, stream=True).to_payload()
        headers = await self._headers(model, token)

        logger.debug("completion_stream_request", model=headers["X-ModelType"], prompt_length=len(prompt))

        async with self._client.stream(
            "POST",
            self._settings.completion_endpoint,
            json=body,
            headers=headers,
        ) as response:
            if response.is_error:
                await response.aread()
                logger.error("completion_stream_error", status=response.status_code)
                raise UpstreamFaultError(
                    f"Completion backend returned {response.status_code}",
                    status_code=response.status_code,
                    details={"body": response.text[:500]},
                )

            async for line in response.aiter_lines():
                frame = parse_stream_line(line)
                if frame is None:
                    continue
                yield frame
                if frame.is_done:
                    logger.debug("completion_stream_done")
                    return

    async def complete_streaming(self, prompt: str, model: str | None = None, token: str | None = None) -> str:
        """
        Stream a completion and return all deltas joined together.

        A stream cut off before the sentinel still returns the text
        received so far.

        Raises:
            ParseError: no text and no sentinel were received, or a data
                line was malformed
        """
        parts: list[str] = []
        finished = False
        async for frame in self.stream(prompt, model=model, token=token):
            if frame.is_done:
                finished = True
            else:
                parts.append(frame.text)

        if not finished:
            if not parts:
                raise ParseError("Completion stream ended without any data")
            logger.warning("completion_stream_truncated", chunks=len(parts))
        return "".join(parts)

    def get_statistics(self) -> dict[str, float | int]:
        """Get client statistics."""
        return {
            "model": self._settings.completion_model,
            "total_requests": self._total_requests,
            "average_latency_ms": round(
                self._total_latency / max(1, self._total_requests), 2
            ),
        }
