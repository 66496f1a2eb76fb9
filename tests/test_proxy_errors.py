from codex_mcp_proxy.protocol.messages import Request
from codex_mcp_proxy.proxy.errors import (
    ErrorCodes,
    create_error_response,
    create_upstream_connection_lost_error,
    create_upstream_send_failed_error,
    create_upstream_unavailable_error,
)


def _req(**extra):
    return Request.from_payload({"jsonrpc": "2.0", "method": "tools/call", **extra})


def test_unavailable_error_shape():
    reply = create_upstream_unavailable_error(_req(id=42))
    assert reply["jsonrpc"] == "2.0"
    assert reply["id"] == 42
    error = reply["error"]
    assert error["code"] == -32603
    assert error["message"] == "Codex service is not available"
    assert error["data"]["method"] == "tools/call"
    assert error["data"]["retryable"] is True
    assert error["data"]["detail"]
    assert error["data"]["suggestion"]


def test_connection_lost_is_not_retryable():
    reply = create_upstream_connection_lost_error(_req(id="a"))
    assert reply["error"]["code"] == ErrorCodes.UPSTREAM_CONNECTION_LOST
    assert reply["error"]["message"] == "Connection to Codex service was lost"
    assert reply["error"]["data"]["retryable"] is False


def test_send_failed_is_retryable():
    reply = create_upstream_send_failed_error(_req(id=1))
    assert reply["error"]["message"] == "Failed to send request to Codex"
    assert reply["error"]["data"]["retryable"] is True


def test_backend_name_is_substituted():
    reply = create_upstream_unavailable_error(_req(id=1), backend_name="Agent")
    assert reply["error"]["message"] == "Agent service is not available"
    assert "Agent" in reply["error"]["data"]["detail"]


def test_notifications_get_no_error_reply():
    assert create_upstream_unavailable_error(_req()) is None
    assert create_error_response(_req(), -32002, "Resource not found") is None


def test_null_id_is_echoed():
    reply = create_upstream_send_failed_error(_req(id=None))
    assert "id" in reply and reply["id"] is None


def test_plain_error_without_data():
    reply = create_error_response(_req(id=3), -32002, "Resource not found")
    assert reply["error"] == {"code": -32002, "message": "Resource not found"}
