# tests/test_decoders.py
import json
import pytest

from recipe_gateway.providers.decoders import JSONArrayDecoder, LineDecoder, SSEDecoder
from recipe_gateway.providers.factory import get_adapter


def _frames(decoder, chunks):
    out = []
    for c in chunks:
        out.extend(decoder.feed(c))
    out.extend(decoder.flush())
    return out


def _contents(provider_id, chunks):
    # decoder + frame parser of a real adapter, the same pair generate_recipe uses
    frames = get_adapter(provider_id).frames
    decoder = frames.decoder()
    texts = [frames.parse(f) for f in _frames(decoder, chunks)]
    return [t for t in texts if t]


def _openai_body():
    events = [{"choices": [{"delta": {"content": t}}]} for t in ["Arroz ", "con ", "piña 🍍"]]
    return ("".join(f"data: {json.dumps(e, ensure_ascii=False)}\n\n" for e in events) + "data: [DONE]\n\n").encode()


def _anthropic_body():
    events = [
        ("message_start", {"type": "message_start", "message": {"id": "m1"}}),
        ("content_block_delta", {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Paella "}}),
        ("ping", {"type": "ping"}),
        ("content_block_delta", {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "valenciana ñ"}}),
        ("message_stop", {"type": "message_stop"}),
    ]
    return "".join(f"event: {n}\ndata: {json.dumps(e, ensure_ascii=False)}\n\n" for n, e in events).encode()


def _google_body():
    items = [{"candidates": [{"content": {"parts": [{"text": t}], "role": "model"}}]} for t in ["Tortilla ", "de {patatas}", " \"española\""]]
    return ("[" + ",\r\n".join(json.dumps(i, ensure_ascii=False) for i in items) + "]").encode()


def _huggingface_body():
    lines = [
        {"token": {"id": 1, "text": "Gazpacho", "special": False}},
        {"token": {"id": 2, "text": " andaluz", "special": False}},
        {"token": {"id": 3, "text": "</s>", "special": True}, "generated_text": "Gazpacho andaluz"},
    ]
    return "".join(f"data:{json.dumps(line)}\n\n" for line in lines).encode()


STREAMS = {
    "groq": (_openai_body, ["Arroz ", "con ", "piña 🍍"]),
    "openrouter": (_openai_body, ["Arroz ", "con ", "piña 🍍"]),
    "anthropic": (_anthropic_body, ["Paella ", "valenciana ñ"]),
    "google": (_google_body, ["Tortilla ", "de {patatas}", " \"española\""]),
    "huggingface": (_huggingface_body, ["Gazpacho", " andaluz"]),
}


@pytest.mark.parametrize("provider_id", sorted(STREAMS))
def test_unsplit_stream_yields_expected_chunks(provider_id):
    # Tests each vendor family's decoder + parser on a whole body delivered in one read.
    body, expected = STREAMS[provider_id]
    assert _contents(provider_id, [body()]) == expected


@pytest.mark.parametrize("provider_id", sorted(STREAMS))
def test_split_anywhere_matches_unsplit(provider_id):
    # Tests that splitting the byte stream at every possible position (including
    # inside multi-byte UTF-8 sequences and mid-line) never changes the output.
    data = STREAMS[provider_id][0]()
    whole = _contents(provider_id, [data])
    for cut in range(1, len(data)):
        assert _contents(provider_id, [data[:cut], data[cut:]]) == whole, f"split at byte {cut}"


@pytest.mark.parametrize("provider_id", sorted(STREAMS))
def test_byte_by_byte_matches_unsplit(provider_id):
    data = STREAMS[provider_id][0]()
    whole = _contents(provider_id, [data])
    assert _contents(provider_id, [data[i:i + 1] for i in range(len(data))]) == whole


def test_sse_keeps_only_data_payloads():
    # Tests that comments, event/id lines, empty data and [DONE] are dropped,
    # and that the space after "data:" is optional.
    body = b": keep-alive\nevent: delta\nid: 7\ndata: {\"a\":1}\ndata:{\"b\":2}\ndata: \ndata: [DONE]\n"
    assert _frames(SSEDecoder(), [body]) == ['{"a":1}', '{"b":2}']


def test_sse_flush_emits_unterminated_last_line():
    d = SSEDecoder()
    assert d.feed(b"data: tail") == []
    assert d.flush() == ["tail"]


def test_line_decoder_handles_crlf_and_blank_lines():
    assert _frames(LineDecoder(), [b"one\r\n\r\ntwo\r", b"\nthree"]) == ["one", "two", "three"]


def test_json_array_braces_inside_strings():
    # Tests that brackets and escaped quotes inside string values don't end an element early.
    body = b'[{"t": "a } ] [ { b"},\n{"t": "quote \\" and \\\\"}]'
    frames = _frames(JSONArrayDecoder(), [body])
    assert [json.loads(f)["t"] for f in frames] == ["a } ] [ { b", 'quote " and \\']


def test_json_array_accepts_newline_separated_objects():
    assert _frames(JSONArrayDecoder(), [b'{"x":1}\n{"x":2}\n']) == ['{"x":1}', '{"x":2}']


def test_json_array_drops_incomplete_element_on_flush(caplog_debug):
    d = JSONArrayDecoder()
    assert d.feed(b'[{"x":1},{"x":') == ['{"x":1}']
    assert d.flush() == []
    assert "incomplete JSON element" in caplog_debug.text


def test_str_input_bypasses_utf8_decoding():
    assert _frames(LineDecoder(), ["ñandú\n"]) == ["ñandú"]
