"""JSON-RPC message model and stream framing."""

from codex_mcp_proxy.protocol.framer import StreamFramer
from codex_mcp_proxy.protocol.messages import (
    JSONRPC_VERSION,
    Message,
    Request,
    RequestId,
    Response,
    decode_batch,
    decode_message,
    decode_payload,
    serialize_message,
)

__all__ = [
    "JSONRPC_VERSION",
    "Message",
    "Request",
    "RequestId",
    "Response",
    "StreamFramer",
    "decode_batch",
    "decode_message",
    "decode_payload",
    "serialize_message",
]
