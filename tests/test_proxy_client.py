import asyncio
import io

import pytest

from codex_mcp_proxy.proxy.client import StdioClientTransport
from codex_mcp_proxy.proxy.events import EventKind, ProxyEvent


async def _next(events: asyncio.Queue, kind: EventKind) -> ProxyEvent:
    while True:
        event = await asyncio.wait_for(events.get(), 5)
        if event.kind is kind:
            return event


@pytest.mark.asyncio
async def test_reads_stdin_until_eof_then_reports_close():
    events: asyncio.Queue = asyncio.Queue()
    payload = b'{"jsonrpc":"2.0","id":1,"method":"ping"}\n'
    transport = StdioClientTransport(events.put_nowait, stdin=io.BytesIO(payload), stdout=io.BytesIO())
    transport.start(asyncio.get_running_loop())

    received = b""
    while True:
        event = await asyncio.wait_for(events.get(), 5)
        if event.kind is EventKind.CLIENT_CLOSED:
            break
        assert event.kind is EventKind.CLIENT_DATA
        received += event.data
    assert received == payload
    transport.close()


@pytest.mark.asyncio
async def test_queued_writes_are_flushed_on_close():
    stdout = io.BytesIO()
    transport = StdioClientTransport(lambda _event: None, stdin=io.BytesIO(), stdout=stdout)
    transport.start(asyncio.get_running_loop())
    transport.write(b'{"a":1}\n')
    transport.write(b'{"b":2}\n')
    transport.close()
    assert stdout.getvalue() == b'{"a":1}\n{"b":2}\n'


@pytest.mark.asyncio
async def test_stalled_client_does_not_block_writer_caller(blocking_stdout):
    stdout = blocking_stdout
    transport = StdioClientTransport(lambda _event: None, stdin=io.BytesIO(), stdout=stdout)
    transport.start(asyncio.get_running_loop())
    for _ in range(100):
        transport.write(b"x" * 1024)
    assert stdout.getvalue() == b""
    stdout.release.set()
    transport.close()
    assert len(stdout.getvalue()) == 100 * 1024


def test_writes_after_close_are_dropped():
    stdout = io.BytesIO()
    transport = StdioClientTransport(lambda _event: None, stdin=io.BytesIO(), stdout=stdout)
    transport.close()
    transport.write(b"x\n")
    assert stdout.getvalue() == b""


@pytest.mark.asyncio
async def test_broken_stdout_is_reported_as_event():
    events: asyncio.Queue = asyncio.Queue()
    stdout = io.BytesIO()
    stdout.close()
    transport = StdioClientTransport(events.put_nowait, stdin=io.BytesIO(), stdout=stdout)
    transport.start(asyncio.get_running_loop())
    transport.write(b"x\n")
    event = await _next(events, EventKind.CLIENT_WRITE_FAILED)
    assert isinstance(event.error, ValueError)
    transport.close()
