import json
import random

from codex_mcp_proxy.protocol.framer import StreamFramer
from codex_mcp_proxy.protocol.messages import Request, Response


def _raw(messages):
    return [m.raw for m in messages]


SEQUENCE = [
    {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "2024-11-05"}},
    {"jsonrpc": "2.0", "method": "notifications/initialized"},
    {"jsonrpc": "2.0", "id": "two", "method": "tools/call", "params": {"code": "if (a) { b[0] = \"}\"; }"}},
    {"jsonrpc": "2.0", "id": 3, "result": {"text": "naïve ☃ 你好 [x] {y}"}},
]


def test_single_message():
    framer = StreamFramer()
    messages = framer.parse('{"jsonrpc":"2.0","id":1,"method":"tools/list"}')
    assert len(messages) == 1
    assert isinstance(messages[0], Request)
    assert messages[0].method == "tools/list"
    assert framer.pending == ""


def test_empty_chunks_yield_nothing():
    framer = StreamFramer()
    assert framer.parse("") == []
    assert framer.parse(b"") == []


def test_chunk_boundary_invariance_at_every_byte_offset():
    data = b"".join(json.dumps(m, ensure_ascii=False).encode("utf-8") + b"\n" for m in SEQUENCE)
    for cut in range(1, len(data)):
        framer = StreamFramer()
        out = framer.parse(data[:cut]) + framer.parse(data[cut:])
        assert _raw(out) == SEQUENCE, f"split at {cut}"


def test_random_multi_split_preserves_order():
    data = b"".join(json.dumps(m, ensure_ascii=False).encode("utf-8") for m in SEQUENCE * 5)
    rng = random.Random(42)
    for _ in range(20):
        cuts = sorted(rng.sample(range(1, len(data)), 12))
        pieces = [data[i:j] for i, j in zip([0, *cuts], [*cuts, len(data)])]
        framer = StreamFramer()
        out = []
        for piece in pieces:
            out.extend(framer.parse(piece))
        assert _raw(out) == SEQUENCE * 5


def test_braces_and_escaped_quotes_inside_strings():
    payload = {"jsonrpc": "2.0", "id": 9, "method": "x", "params": {"s": 'a { [ \\" } ] "quoted" \\\\'}}
    text = json.dumps(payload)
    assert '\\"' in text
    framer = StreamFramer()
    first = framer.parse(text[: text.index("quoted")])
    assert first == []
    rest = framer.parse(text[text.index("quoted"):])
    assert _raw(rest) == [payload]


def test_noise_before_value_is_discarded():
    msg = {"jsonrpc": "2.0", "id": 1, "method": "ping"}
    plain = StreamFramer().parse(json.dumps(msg))
    noisy = StreamFramer().parse("Starting server...\nready: ok\n" + json.dumps(msg))
    assert _raw(noisy) == _raw(plain) == [msg]


def test_buffer_without_any_bracket_is_dropped():
    framer = StreamFramer()
    assert framer.parse("just some log output\n") == []
    assert framer.pending == ""


def test_concatenated_and_whitespace_separated_values():
    a = {"jsonrpc": "2.0", "id": 1, "method": "a"}
    b = {"jsonrpc": "2.0", "id": 2, "method": "b"}
    framer = StreamFramer()
    assert _raw(framer.parse(json.dumps(a) + json.dumps(b))) == [a, b]
    assert _raw(framer.parse(json.dumps(a) + " \n\t " + json.dumps(b))) == [a, b]


def test_incomplete_value_is_retained_until_complete():
    framer = StreamFramer()
    assert framer.parse('{"jsonrpc":"2.0","id":1,') == []
    assert framer.pending == '{"jsonrpc":"2.0","id":1,'
    out = framer.parse('"method":"x"}')
    assert len(out) == 1 and out[0].method == "x"


def test_invalid_json_span_is_dropped_and_framing_continues():
    good = {"jsonrpc": "2.0", "id": 2, "method": "ok"}
    framer = StreamFramer()
    out = framer.parse("{not json}" + json.dumps(good))
    assert _raw(out) == [good]


def test_wrong_shape_is_dropped():
    good = {"jsonrpc": "2.0", "id": 2, "result": {}}
    framer = StreamFramer()
    out = framer.parse('{"hello": "world"}[1, 2]' + json.dumps(good))
    assert len(out) == 1
    assert isinstance(out[0], Response)


def test_batch_expands_in_array_order():
    batch = [
        {"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
        {"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": {"x": [1, {"y": 2}]}},
    ]
    framer = StreamFramer()
    out = framer.parse(json.dumps(batch))
    assert _raw(out) == batch


def test_batch_with_invalid_element_is_dropped_entirely():
    framer = StreamFramer()
    out = framer.parse('[{"jsonrpc":"2.0","id":1,"method":"a"},{"nope":true}]')
    assert out == []


def test_bracket_log_prefix_does_not_swallow_message():
    msg = {"jsonrpc": "2.0", "id": 1, "result": {}}
    framer = StreamFramer()
    out = framer.parse("[INFO] booting\n" + json.dumps(msg))
    assert _raw(out) == [msg]


def test_multibyte_character_split_across_byte_chunks():
    msg = {"jsonrpc": "2.0", "id": 1, "result": {"text": "☃"}}
    data = json.dumps(msg, ensure_ascii=False).encode("utf-8")
    cut = data.index("☃".encode("utf-8")) + 1
    framer = StreamFramer()
    assert framer.parse(data[:cut]) == []
    assert _raw(framer.parse(data[cut:])) == [msg]


def test_clear_resets_partial_state():
    framer = StreamFramer()
    framer.parse('{"jsonrpc":"2.0","id":1,"method":"x", "s": "{')
    framer.clear()
    assert framer.pending == ""
    msg = {"jsonrpc": "2.0", "id": 2, "method": "y"}
    assert _raw(framer.parse(json.dumps(msg))) == [msg]
