"""HTTP client for the Ollama chat backend."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from .config import ModelOptions
from .utils import normalize_base_url

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """The backend could not be reached, refused the request, or its body became unreadable.

    ``stream_chat`` raises it before handing out any data; the byte iterator
    raises it only when the connection breaks mid-body.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def build_request(
    messages: List[Dict[str, Any]],
    model: str,
    options: Optional[ModelOptions] = None,
    think: Optional[bool] = None,
    tools: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Build the JSON body for ``POST /api/chat``.

    Args:
        messages: Conversation as ``{role, content}`` dictionaries
        model: Backend model identifier
        options: Sampling options for the model
        think: Enables or disables the model's thinking trace when given
        tools: Function schemas to advertise

    Returns:
        Request body with ``stream`` always set to true
    """
    body: Dict[str, Any] = {"model": model, "messages": messages, "stream": True}
    if think is not None:
        body["think"] = think
    if options is not None:
        body["options"] = options.to_wire()
    if tools:
        body["tools"] = tools
    return body


async def _with_first_block(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    yield first
    try:
        async for block in rest:
            yield block
    except httpx.HTTPError as e:
        raise BackendError(f"Failed to read backend response: {e}") from e


class OllamaClient:
    """Thin wrapper around ``httpx.AsyncClient`` for the chat endpoint.

    Supports the async context manager protocol:
        async with OllamaClient(base_url) as client:
            async with client.stream_chat(body) as blocks:
                ...
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = normalize_base_url(base_url)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, read=None),
            transport=transport,
        )

    @asynccontextmanager
    async def stream_chat(self, body: Dict[str, Any]) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open a streaming chat request and yield its raw byte blocks.

        Raises:
            BackendError: On connection failure, a non-2xx status or an empty body

        Leaving the context closes the upstream response, also when the
        consumer stops early or is cancelled.
        """
        request = self._client.build_request("POST", "/api/chat", json=body)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Backend request failed: {e}")
            raise BackendError(f"Failed to reach backend at {self.base_url}: {e}") from e

        try:
            if not response.is_success:
                text = (await response.aread()).decode("utf-8", errors="replace")
                logger.error(
                    "Backend rejected request",
                    extra={
                        "structured": {
                            "log_type": "backend_error",
                            "status": response.status_code,
                            "content": text,
                        }
                    },
                )
                raise BackendError(
                    text or f"Backend returned HTTP {response.status_code}",
                    status_code=response.status_code,
                )

            blocks = response.aiter_bytes()
            first = b""
            try:
                async for block in blocks:
                    if block:
                        first = block
                        break
            except httpx.HTTPError as e:
                raise BackendError(f"Failed to read backend response: {e}") from e
            if not first:
                raise BackendError("Backend returned an empty response body")

            yield _with_first_block(first, blocks)
        finally:
            await response.aclose()

    async def list_models(self) -> List[str]:
        """Names of the models installed on the backend."""
        try:
            response = await self._client.get("/api/tags")
        except httpx.HTTPError as e:
            raise BackendError(f"Failed to reach backend at {self.base_url}: {e}") from e
        if not response.is_success:
            raise BackendError(response.text, status_code=response.status_code)
        return [m["name"] for m in response.json().get("models", []) if "name" in m]

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
