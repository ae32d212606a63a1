"""
Ollama Model Gateway for Activo.

Talks to a local Ollama server over its /api/chat endpoint using httpx.

Streaming policy:
    Whenever tools are offered, the request is sent with stream=false,
    even if the gateway prefers streaming. Incremental (NDJSON) delivery
    is only used for tool-free requests.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Sequence

import httpx

from activo.utils.cancellation import CancellationToken, OperationCancelledError
from activo.utils.channel import Channel
from activo.utils.json_parser import parse_tool_arguments

from .base import (
    GatewayConnectionError,
    GatewayError,
    GatewayResponseError,
    MalformedResponseError,
    Message,
    StreamEvent,
    ToolCall,
)

if TYPE_CHECKING:
    from activo.config.schemas import OllamaSettings
    from activo.tools.base import Tool

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"


class OllamaGateway:
    """
    Model gateway backed by an Ollama server.

    The HTTP client is created once (or injected) and reused for every
    round trip; close it with aclose() or use the gateway as an async
    context manager.

    Example:
        async with OllamaGateway(model="qwen2.5-coder:7b") as gateway:
            reply = await gateway.complete([Message.user("Hello")])
            print(reply.content)
    """

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:11434",
        model: str = "mistral:latest",
        context_length: int = 4096,
        keep_alive: int = 1800,
        timeout: float = 300.0,
        prefer_streaming: bool = True,
        channel_size: int = 32,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the gateway.

        Args:
            base_url: Ollama server URL
            model: Model used for chat requests
            context_length: Context window passed as options.num_ctx
            keep_alive: Seconds the server keeps the model loaded
            timeout: HTTP timeout in seconds
            prefer_streaming: Stream tool-free requests incrementally
            channel_size: Capacity of the event channel returned by stream()
            client: Optional preconfigured httpx client (not closed by aclose)
        """
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._context_length = context_length
        self._keep_alive = keep_alive
        self._timeout = timeout
        self._prefer_streaming = prefer_streaming
        self._channel_size = channel_size
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(
        cls,
        settings: "OllamaSettings",
        *,
        prefer_streaming: bool = True,
        channel_size: int = 32,
        client: httpx.AsyncClient | None = None,
    ) -> "OllamaGateway":
        """Build a gateway from OllamaSettings."""
        return cls(
            base_url=settings.base_url,
            model=settings.model,
            context_length=settings.context_length,
            keep_alive=settings.keep_alive,
            timeout=settings.timeout,
            prefer_streaming=prefer_streaming,
            channel_size=channel_size,
            client=client,
        )

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model

    @model.setter
    def model(self, value: str) -> None:
        self._model = value

    @property
    def context_length(self) -> int:
        return self._context_length

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
            )
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this gateway created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OllamaGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ==================== Server ====================

    async def is_connected(self) -> bool:
        """Check that the server answers on /api/tags."""
        try:
            response = await self._get_client().get("/api/tags")
            return response.is_success
        except httpx.HTTPError as e:
            logger.debug(f"[ollama] Connection check failed: {e}")
            return False

    async def list_models(self) -> list[str]:
        """
        List models installed on the server.

        Raises:
            GatewayError: If the request fails
        """
        response = await self._request("GET", "/api/tags")
        data = self._decode(response)
        return [m.get("name", "") for m in data.get("models", []) if isinstance(m, dict)]

    async def embed(self, text: str, model: str | None = None) -> list[float]:
        """Generate an embedding vector for `text`."""
        response = await self._request(
            "POST",
            "/api/embeddings",
            json={"model": model or DEFAULT_EMBEDDING_MODEL, "prompt": text},
        )
        data = self._decode(response)
        embedding = data.get("embedding")
        if not isinstance(embedding, list):
            raise MalformedResponseError("Embedding response has no 'embedding' list")
        return embedding

    async def embed_batch(self, texts: Sequence[str], model: str | None = None) -> list[list[float]]:
        """Embed several texts sequentially."""
        return [await self.embed(text, model) for text in texts]

    # ==================== Chat ====================

    def _build_payload(
        self,
        messages: Sequence[Message],
        tools: Sequence["Tool"] | None,
        stream: bool,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [m.to_wire() for m in messages],
            "stream": stream,
            "options": {"num_ctx": self._context_length},
            "keep_alive": self._keep_alive,
        }
        if tools:
            payload["tools"] = [tool.to_llm_schema() for tool in tools]
        return payload

    async def complete(
        self,
        messages: list[Message],
        tools: Sequence["Tool"] | None = None,
        cancel: CancellationToken | None = None,
    ) -> Message:
        """
        Run a single-shot (non-streaming) chat completion.

        Returns:
            Assistant message. If the model requested tool calls, they are
            returned in order and the content is empty.

        Raises:
            GatewayError: On transport, status or decoding failures
            OperationCancelledError: If `cancel` fires first
        """
        payload = self._build_payload(messages, tools, stream=False)
        logger.debug(
            f"[ollama] POST /api/chat model={self._model} "
            f"messages={len(messages)} tools={len(tools or ())} stream=False"
        )
        response = await self._request("POST", "/api/chat", json=payload, cancel=cancel)
        return self._parse_response(self._decode(response))

    def stream(
        self,
        messages: list[Message],
        tools: Sequence["Tool"] | None = None,
        cancel: CancellationToken | None = None,
    ) -> Channel[StreamEvent]:
        """
        Start one round trip and return its event channel.

        Failures are delivered as a single ERROR event. Cancellation ends
        the channel without further events; callers check their token.
        """
        use_streaming = self._prefer_streaming and not tools

        async def produce(channel: Channel[StreamEvent]) -> None:
            try:
                if use_streaming:
                    await self._stream_chat(channel, messages, cancel)
                else:
                    await self._single_shot(channel, messages, tools, cancel)
            except OperationCancelledError:
                logger.info("[ollama] Request cancelled")
            except GatewayError as e:
                logger.warning(f"[ollama] Round trip failed: {e}")
                await channel.send(StreamEvent.failure(str(e)))

        return Channel.start(produce, maxsize=self._channel_size, name="ollama-chat")

    async def _single_shot(
        self,
        channel: Channel[StreamEvent],
        messages: list[Message],
        tools: Sequence["Tool"] | None,
        cancel: CancellationToken | None,
    ) -> None:
        reply = await self.complete(messages, tools, cancel)
        if reply.tool_calls:
            for call in reply.tool_calls:
                await channel.send(StreamEvent.call(call))
        elif reply.content:
            await channel.send(StreamEvent.content_chunk(reply.content))
        await channel.send(StreamEvent.done())

    async def _stream_chat(
        self,
        channel: Channel[StreamEvent],
        messages: list[Message],
        cancel: CancellationToken | None,
    ) -> None:
        payload = self._build_payload(messages, None, stream=True)
        logger.debug(
            f"[ollama] POST /api/chat model={self._model} messages={len(messages)} stream=True"
        )
        client = self._get_client()
        request = client.build_request("POST", "/api/chat", json=payload)

        try:
            response = await self._guard(client.send(request, stream=True), cancel)
        except httpx.HTTPError as e:
            raise self._map_transport_error(e) from e

        try:
            if not response.is_success:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise GatewayResponseError(
                    f"Ollama error: {body}",
                    status_code=response.status_code,
                    response_body=body,
                )

            done_sent = False
            buffer = ""
            chunks = response.aiter_text()
            while True:
                if cancel is not None and cancel.cancelled:
                    return
                try:
                    chunk = await self._guard(anext(chunks), cancel)
                except StopAsyncIteration:
                    break
                except httpx.HTTPError as e:
                    raise self._map_transport_error(e) from e

                buffer += chunk
                *lines, buffer = buffer.split("\n")
                for line in lines:
                    done_sent = await self._emit_line(channel, line) or done_sent

            if buffer.strip():
                done_sent = await self._emit_line(channel, buffer) or done_sent
            if not done_sent:
                await channel.send(StreamEvent.done())
        finally:
            await response.aclose()

    async def _emit_line(self, channel: Channel[StreamEvent], line: str) -> bool:
        """Parse one NDJSON line and push its events. Returns True on the done marker."""
        if not line.strip():
            return False
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"[ollama] Skipping malformed stream line: {line[:100]}")
            return False
        if not isinstance(data, dict):
            return False

        if data.get("error"):
            raise GatewayResponseError(f"Ollama error: {data['error']}")

        message = data.get("message")
        if isinstance(message, dict) and message.get("content"):
            await channel.send(StreamEvent.content_chunk(message["content"]))

        if data.get("done"):
            await channel.send(StreamEvent.done())
            return True
        return False

    # ==================== HTTP helpers ====================

    @staticmethod
    async def _guard(awaitable, cancel: CancellationToken | None):
        if cancel is None:
            return await awaitable
        return await cancel.guard(awaitable)

    def _map_transport_error(self, error: httpx.HTTPError) -> GatewayError:
        if isinstance(error, httpx.TimeoutException):
            return GatewayConnectionError(f"Request to Ollama timed out: {error}")
        return GatewayConnectionError(f"Cannot connect to Ollama at {self._base_url}: {error}")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        cancel: CancellationToken | None = None,
    ) -> httpx.Response:
        """
        Execute a single HTTP request and check its status.

        Raises:
            GatewayConnectionError: On timeouts and network errors
            GatewayResponseError: On non-2xx responses
        """
        client = self._get_client()
        try:
            response = await self._guard(client.request(method, path, json=json), cancel)
        except httpx.HTTPError as e:
            raise self._map_transport_error(e) from e

        if not response.is_success:
            body = response.text
            raise GatewayResponseError(
                f"Ollama error: {body}",
                status_code=response.status_code,
                response_body=body,
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Invalid JSON from Ollama: {e}", response_body=response.text[:500]
            ) from e
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"Expected a JSON object from Ollama, got {type(data).__name__}"
            )
        return data

    @staticmethod
    def _parse_response(data: dict[str, Any]) -> Message:
        """Turn a /api/chat response object into an assistant message."""
        if data.get("error"):
            raise GatewayResponseError(f"Ollama error: {data['error']}")

        message = data.get("message")
        if not isinstance(message, dict):
            raise MalformedResponseError("Ollama response has no 'message' object")

        calls: list[ToolCall] = []
        for raw in message.get("tool_calls") or []:
            function = raw.get("function") if isinstance(raw, dict) else None
            if not isinstance(function, dict) or not function.get("name"):
                logger.warning(f"[ollama] Ignoring malformed tool call: {raw!r}")
                continue
            calls.append(
                ToolCall(
                    name=function["name"],
                    arguments=parse_tool_arguments(function.get("arguments")),
                )
            )

        if calls:
            return Message.assistant("", calls)
        return Message.assistant(message.get("content") or "")

    def __repr__(self) -> str:
        return f"OllamaGateway(base_url='{self._base_url}', model='{self._model}')"
