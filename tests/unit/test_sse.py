import logging
from unittest.mock import MagicMock

import httpx
import pytest

from ssestream._errors import DecoderClosedError
from ssestream._sse import Decoder, Event, iter_events_from_text


class FailingStream(httpx.SyncByteStream):
    """Yields the given chunks, then fails like a dropped connection."""

    def __init__(self, *chunks: bytes) -> None:
        self._chunks = chunks

    def __iter__(self):
        yield from self._chunks
        raise httpx.ReadError("connection reset by peer")


def make_decoder(body: bytes) -> Decoder:
    return Decoder(httpx.Response(200, content=body, headers={"content-type": "text/event-stream"}))


def read_all(decoder: Decoder) -> list[Event]:
    events: list[Event] = []
    while True:
        evt = decoder.read_event()
        if evt is None:
            return events
        events.append(evt)


def test_iter_events_from_text() -> None:
    text = "data: {\"a\":1}\n\n\ndata: [DONE]\n\n"
    events = list(iter_events_from_text(text))
    assert events[0].data == "{\"a\":1}"
    assert events[1].data == "[DONE]"


def test_single_frame_with_all_fields() -> None:
    decoder = make_decoder(b"id: 7\nevent: message\ndata: hello\n\n")

    assert read_all(decoder) == [Event(id="7", event="message", data="hello")]


def test_multiple_data_lines_are_joined_with_newline() -> None:
    decoder = make_decoder(b"data: a\ndata: b\ndata: c\n\n")

    assert read_all(decoder)[0].data == "a\nb\nc"


def test_empty_first_data_line_does_not_add_leading_newline() -> None:
    events = list(iter_events_from_text("data:\ndata: b\n\n"))

    assert events == [Event(data="b")]


def test_blank_lines_without_fields_are_noops() -> None:
    decoder = make_decoder(b"\n\n\ndata: x\n\n\n\n")

    assert read_all(decoder) == [Event(data="x")]


def test_comments_do_not_touch_fields() -> None:
    body = b": keep-alive\ndata: a\n: in the middle\ndata: b\n:\n\n"
    decoder = make_decoder(body)

    assert read_all(decoder) == [Event(data="a\nb")]


def test_comment_only_frame_emits_nothing() -> None:
    assert list(iter_events_from_text(": ping\n\n: ping\n\n")) == []


def test_event_and_id_last_write_wins() -> None:
    events = list(iter_events_from_text("event: a\nevent: b\nid: 1\nid: 2\ndata: x\n\n"))

    assert events == [Event(id="2", event="b", data="x")]


@pytest.mark.parametrize("retry_line", ["retry: 3000", "retry: soon", "retry:"])
def test_retry_is_ignored(retry_line: str) -> None:
    events = list(iter_events_from_text(f"{retry_line}\ndata: x\n\n"))

    assert events == [Event(data="x")]
    assert events[0].retry == 0


def test_retry_only_frame_emits_nothing() -> None:
    assert list(iter_events_from_text("retry: 10\n\n")) == []


def test_unknown_fields_and_colonless_lines_are_ignored() -> None:
    events = list(iter_events_from_text("foo: bar\nnonsense\ndata: x\n\n"))

    assert events == [Event(data="x")]


def test_value_keeps_everything_after_first_colon() -> None:
    events = list(iter_events_from_text("data: {\"url\": \"http://x\"}\n\n"))

    assert events[0].data == "{\"url\": \"http://x\"}"


def test_field_name_and_value_are_stripped() -> None:
    events = list(iter_events_from_text("  data  :   padded   \n\n"))

    assert events == [Event(data="padded")]


def test_id_only_frame_is_emitted() -> None:
    assert list(iter_events_from_text("id: 42\n\n")) == [Event(id="42")]


def test_crlf_line_endings() -> None:
    decoder = make_decoder(b"id: 1\r\ndata: x\r\n\r\nid: 2\r\ndata: y\r\n\r\n")

    assert [e.id for e in read_all(decoder)] == ["1", "2"]


def test_trailing_unterminated_frame_is_dropped(caplog) -> None:
    caplog.set_level(logging.DEBUG)
    decoder = make_decoder(b"data: first\n\ndata: second")

    assert read_all(decoder) == [Event(data="first")]
    assert "dropping the unterminated frame" in caplog.text


def test_empty_body_is_end_of_input() -> None:
    decoder = make_decoder(b"")

    assert decoder.read_event() is None
    # Exhaustion is sticky.
    assert decoder.read_event() is None


def test_utf8_split_across_chunks_is_decoded() -> None:
    response = MagicMock()
    response.iter_bytes.return_value = [b"data: \xc3", b"\xa9t\xc3\xa9\n", b"\n"]

    decoder = Decoder(response)

    assert decoder.read_event() == Event(data="été")


def test_read_failure_propagates_and_is_terminal() -> None:
    response = httpx.Response(200, stream=FailingStream(b"data: ok\n\n", b"data: partial\n"))
    decoder = Decoder(response)

    assert decoder.read_event() == Event(data="ok")
    with pytest.raises(httpx.ReadError):
        decoder.read_event()
    with pytest.raises(DecoderClosedError):
        decoder.read_event()


def test_from_response_none() -> None:
    assert Decoder.from_response(None) is None


def test_close_releases_response() -> None:
    response = httpx.Response(200, content=b"data: x\n\n")
    decoder = Decoder(response)

    decoder.close()

    assert response.is_closed
    with pytest.raises(DecoderClosedError) as exc:
        decoder.read_event()
    assert "scanner is nil" in str(exc.value)


@pytest.mark.parametrize("separator", ["\u2028", "\u2029", "\x0c", "\x0b", "\x1c", "\x85"])
def test_unicode_line_separators_stay_inside_data(separator: str) -> None:
    payload = f'{{"text": "a{separator}b"}}'
    decoder = make_decoder(f"data: {payload}\n\n".encode("utf-8"))

    assert read_all(decoder) == [Event(data=payload)]


def test_form_feed_inside_data_from_text() -> None:
    events = list(iter_events_from_text('data: {"text":"x\x0cy"}\n\n'))

    assert events == [Event(data='{"text":"x\x0cy"}')]


def test_crlf_split_across_chunks() -> None:
    response = MagicMock()
    response.iter_bytes.return_value = [b"data: a\r", b"\ndata: b\r", b"\n\r", b"\n"]

    decoder = Decoder(response)

    assert read_all(decoder) == [Event(data="a\nb")]


def test_bare_cr_line_endings() -> None:
    assert list(iter_events_from_text("id: 1\rdata: x\r\r")) == [Event(id="1", data="x")]


def test_line_split_across_many_chunks() -> None:
    body = b'data: {"x": 12345}\n\n'
    response = MagicMock()
    response.iter_bytes.return_value = [body[i:i + 3] for i in range(0, len(body), 3)]

    decoder = Decoder(response)

    assert read_all(decoder) == [Event(data='{"x": 12345}')]
