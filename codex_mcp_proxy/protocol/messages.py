"""JSON-RPC 2.0 message variants with validating decoders.

Decoded values are classified by explicit constructors: ``Request.from_payload``
and ``Response.from_payload`` return the typed value or ``None``. Each value keeps
the original mapping in ``raw`` so relaying re-serializes exactly what was received.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

JSONRPC_VERSION = "2.0"

RequestId = Union[str, int, float, None]


def _is_rpc_object(obj: Any) -> bool:
    return isinstance(obj, dict) and obj.get("jsonrpc") == JSONRPC_VERSION


def _valid_id(obj: dict[str, Any]) -> bool:
    if "id" not in obj:
        return True
    value = obj["id"]
    if value is None or isinstance(value, str):
        return True
    # bool is an int subclass but never a valid id
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True, slots=True)
class Request:
    """Request or notification (a request without an ``id`` member)."""

    raw: dict[str, Any]

    @classmethod
    def from_payload(cls, obj: Any) -> Request | None:
        if not _is_rpc_object(obj):
            return None
        if not isinstance(obj.get("method"), str):
            return None
        if not _valid_id(obj):
            return None
        return cls(raw=obj)

    @property
    def method(self) -> str:
        return self.raw["method"]

    @property
    def id(self) -> RequestId:
        return self.raw.get("id")

    @property
    def params(self) -> Any:
        return self.raw.get("params")

    @property
    def has_id(self) -> bool:
        return "id" in self.raw

    @property
    def is_notification(self) -> bool:
        return "id" not in self.raw


@dataclass(frozen=True, slots=True)
class Response:
    """Result or error reply correlated to a request by ``id``."""

    raw: dict[str, Any]

    @classmethod
    def from_payload(cls, obj: Any) -> Response | None:
        if not _is_rpc_object(obj):
            return None
        if "method" in obj:
            return None
        if "result" not in obj and "error" not in obj:
            return None
        if not _valid_id(obj):
            return None
        return cls(raw=obj)

    @property
    def id(self) -> RequestId:
        return self.raw.get("id")

    @property
    def result(self) -> Any:
        return self.raw.get("result")

    @property
    def error(self) -> Any:
        return self.raw.get("error")

    @property
    def is_error(self) -> bool:
        return "error" in self.raw


Message = Union[Request, Response]


def decode_message(obj: Any) -> Message | None:
    """Classify one decoded JSON value, trying Request then Response."""
    return Request.from_payload(obj) or Response.from_payload(obj)


def decode_batch(obj: Any) -> list[Message] | None:
    """Decode a non-empty array whose every element is a valid message."""
    if not isinstance(obj, list) or not obj:
        return None
    messages: list[Message] = []
    for item in obj:
        message = decode_message(item)
        if message is None:
            return None
        messages.append(message)
    return messages


def decode_payload(obj: Any) -> list[Message] | None:
    """Decode a top-level value into its messages; batches expand in order."""
    if isinstance(obj, list):
        return decode_batch(obj)
    message = decode_message(obj)
    return [message] if message is not None else None


def serialize_message(payload: Message | dict[str, Any]) -> bytes:
    """Encode one message as newline-terminated compact JSON."""
    if isinstance(payload, (Request, Response)):
        payload = payload.raw
    text = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return (text + "\n").encode("utf-8")
