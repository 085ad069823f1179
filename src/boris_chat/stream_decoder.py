"""
Incremental decoder for the backend's newline-delimited JSON stream.

Every line is one JSON record shaped like
``{"message": {"role", "content", "thinking"?, "tool_calls"?}, "done": bool, "error"?: str}``.
Records are validated here and turned into a closed set of chunk types, so
nothing untyped reaches the sequencer.
"""

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, NamedTuple, Optional, Union

logger = logging.getLogger(__name__)


class ContentDelta(NamedTuple):
    text: str


class ReasoningDelta(NamedTuple):
    text: str


class ToolCallRequest(NamedTuple):
    name: str
    arguments: Dict[str, Any]


class Done(NamedTuple):
    reason: Optional[str] = None


class StreamError(NamedTuple):
    message: str


class Unparseable(NamedTuple):
    line: str


StreamChunk = Union[ContentDelta, ReasoningDelta, ToolCallRequest, Done, StreamError, Unparseable]


def _parse_tool_call(raw: Any) -> Optional[ToolCallRequest]:
    function = raw.get("function") if isinstance(raw, dict) else None
    if not isinstance(function, dict) or not isinstance(function.get("name"), str):
        return None
    arguments = function.get("arguments") or {}
    if isinstance(arguments, str):
        # Some models emit arguments as a JSON string instead of an object
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError:
            return None
    if not isinstance(arguments, dict):
        return None
    return ToolCallRequest(name=function["name"], arguments=arguments)


def parse_line(line: str) -> List[StreamChunk]:
    """Classify one complete line of the backend stream.

    Args:
        line: A single line without its terminating newline

    Returns:
        Chunks carried by the line, in the order they should be consumed.
        Blank lines produce nothing. An ``error`` field short-circuits
        everything else on the line.
    """
    line = line.strip()
    if not line:
        return []

    try:
        record = json.loads(line)
    except json.JSONDecodeError:
        return [Unparseable(line)]
    if not isinstance(record, dict):
        return [Unparseable(line)]

    error = record.get("error")
    if error:
        return [StreamError(str(error))]

    chunks: List[StreamChunk] = []
    message = record.get("message")
    if isinstance(message, dict):
        thinking = message.get("thinking")
        if isinstance(thinking, str) and thinking:
            chunks.append(ReasoningDelta(thinking))

        content = message.get("content")
        if isinstance(content, str) and content:
            chunks.append(ContentDelta(content))

        raw_calls = message.get("tool_calls") or []
        if not isinstance(raw_calls, list):
            logger.warning(f"Ignoring malformed tool_calls field: {raw_calls!r}")
            raw_calls = []
        for raw_call in raw_calls:
            call = _parse_tool_call(raw_call)
            if call is None:
                logger.warning(f"Ignoring malformed tool call: {raw_call!r}")
                continue
            chunks.append(call)

    if record.get("done") is True:
        reason = record.get("done_reason")
        chunks.append(Done(reason if isinstance(reason, str) else None))

    return chunks


class StreamDecoder:
    """Lazy, forward-only view of a backend byte stream as ``StreamChunk`` values.

    Usage:
        decoder = StreamDecoder(response.aiter_bytes())
        async for chunk in decoder:
            ...
        if decoder.truncated:
            ...  # upstream closed without a done/error record

    Reads may end mid-line, so unterminated text is carried over to the next
    read. Iteration stops after ``Done`` or ``StreamError``. If the upstream
    ends without either, the trailing partial line is parsed and iteration
    ends normally with ``truncated`` set.
    """

    def __init__(self, source: AsyncIterable[Union[bytes, str]]):
        self._source = source
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._iterator: Optional[AsyncIterator[StreamChunk]] = None
        self.closed = False
        self.finished = False
        self.truncated = False

    def __aiter__(self) -> AsyncIterator[StreamChunk]:
        if self._iterator is not None:
            raise RuntimeError("StreamDecoder can only be iterated once")
        self._iterator = self._iterate()
        return self._iterator

    def _feed(self, data: Union[bytes, str]) -> List[str]:
        if isinstance(data, bytes):
            data = self._utf8.decode(data)
        self._buffer += data
        *lines, self._buffer = self._buffer.split("\n")
        return lines

    def _emit(self, line: str) -> List[StreamChunk]:
        chunks = []
        for chunk in parse_line(line):
            if isinstance(chunk, Unparseable):
                logger.warning(
                    "Skipping unparseable stream line",
                    extra={"structured": {"log_type": "decode_error", "line": chunk.line}},
                )
            chunks.append(chunk)
            if isinstance(chunk, (Done, StreamError)):
                self.finished = True
                break
        return chunks

    async def _iterate(self) -> AsyncIterator[StreamChunk]:
        try:
            async for data in self._source:
                if self.closed:
                    return
                for line in self._feed(data):
                    for chunk in self._emit(line):
                        yield chunk
                    if self.finished:
                        return

            if self.closed:
                return
            tail = self._buffer + self._utf8.decode(b"", final=True)
            self._buffer = ""
            for chunk in self._emit(tail):
                yield chunk
            if not self.finished:
                self.truncated = True
                self.finished = True
        finally:
            self._buffer = ""

    async def aclose(self) -> None:
        """Stop decoding, drop buffered text and close the source if it can be closed."""
        self.closed = True
        self._buffer = ""
        if self._iterator is not None:
            await self._iterator.aclose()
        close = getattr(self._source, "aclose", None)
        if close is not None:
            await close()
