"""Streaming framer that recovers JSON-RPC values from arbitrarily chunked data.

The framer never emits a partially received value. Text before the first ``{``
or ``[`` is discarded as noise, spans that fail to decode or classify are dropped,
and an unbalanced span stays buffered until more data arrives.
"""

from __future__ import annotations

import codecs
import json
from dataclasses import dataclass

from loguru import logger

from codex_mcp_proxy.protocol.messages import Message, decode_payload

_CLOSERS = {"{": "}", "[": "]"}
_PREVIEW_CHARS = 200


def _preview(text: str) -> str:
    text = text.strip()
    if len(text) > _PREVIEW_CHARS:
        return text[:_PREVIEW_CHARS] + "..."
    return text


@dataclass(slots=True)
class _ScanState:
    """Resumable bracket scan over the span starting at buffer offset 0."""

    open_char: str
    close_char: str
    pos: int = 0
    depth: int = 0
    in_string: bool = False
    escape: bool = False

    def advance(self, text: str) -> int:
        """Scan new characters; return the index of the balancing bracket or -1."""
        for i in range(self.pos, len(text)):
            char = text[i]
            if self.escape:
                self.escape = False
                continue
            if self.in_string:
                if char == "\\":
                    self.escape = True
                elif char == '"':
                    self.in_string = False
                continue
            if char == '"':
                self.in_string = True
            elif char == self.open_char:
                self.depth += 1
            elif char == self.close_char:
                self.depth -= 1
                if self.depth == 0:
                    self.pos = i + 1
                    return i
        self.pos = len(text)
        return -1


class StreamFramer:
    """Per-direction framing state. One instance per byte stream, never shared."""

    def __init__(self, name: str = "stream"):
        self.name = name
        self._buffer = ""
        self._scan: _ScanState | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """Buffered text not yet framed into a value."""
        return self._buffer

    def parse(self, chunk: bytes | str) -> list[Message]:
        """Append a chunk and return every message completed by it, in order."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        if chunk:
            self._buffer += chunk
        messages: list[Message] = []
        while True:
            span = self._next_span()
            if span is None:
                break
            decoded = self._decode_span(span)
            if decoded:
                messages.extend(decoded)
        return messages

    def clear(self) -> None:
        self._buffer = ""
        self._scan = None
        self._decoder.reset()

    def _next_span(self) -> str | None:
        if self._scan is None:
            start = self._find_value_start()
            if start < 0:
                if self._buffer.strip():
                    logger.debug("[{}] discarding non-protocol output: {}", self.name, _preview(self._buffer))
                self._buffer = ""
                return None
            if start > 0:
                noise = self._buffer[:start]
                if noise.strip():
                    logger.debug("[{}] discarding non-protocol output: {}", self.name, _preview(noise))
                self._buffer = self._buffer[start:]
            open_char = self._buffer[0]
            self._scan = _ScanState(open_char=open_char, close_char=_CLOSERS[open_char])

        end = self._scan.advance(self._buffer)
        if end < 0:
            return None
        span = self._buffer[: end + 1]
        self._buffer = self._buffer[end + 1 :]
        self._scan = None
        return span

    def _find_value_start(self) -> int:
        positions = [i for i in (self._buffer.find("{"), self._buffer.find("[")) if i >= 0]
        return min(positions) if positions else -1

    def _decode_span(self, span: str) -> list[Message] | None:
        try:
            payload = json.loads(span)
        except json.JSONDecodeError:
            logger.debug("[{}] dropping undecodable value: {}", self.name, _preview(span))
            return None
        messages = decode_payload(payload)
        if messages is None:
            logger.debug("[{}] dropping non JSON-RPC value: {}", self.name, _preview(span))
        return messages
