import asyncio
import json

import pytest

from rxbridge.core.exceptions import MalformedFrameException, ResourceNotFoundException, exception_from_error
from rxbridge.rpc.frames import (
    ErrorPayload,
    RequestFrame,
    ResponseFrame,
    ToolResult,
    decode_frame,
    encode_frame,
    read_frame_line,
)


def test_encoded_frame_is_one_line_even_with_newlines_in_text():
    data = encode_frame(ResponseFrame(id=3, result=ToolResult.text("line one\nline two")))

    assert data.endswith(b"\n")
    assert data.count(b"\n") == 1
    assert json.loads(data)["result"]["content"] == [{"type": "text", "text": "line one\nline two"}]


def test_uncorrelated_error_keeps_explicit_null_id():
    error = ErrorPayload.from_exception(MalformedFrameException(msg="bad"))
    decoded = json.loads(encode_frame(ResponseFrame(id=None, error=error)))

    assert decoded["id"] is None
    assert "result" not in decoded
    assert decoded["error"]["slug"] == "malformed_frame"


def test_request_frame_defaults_args():
    frame = decode_frame(b'{"type": "request", "id": "abc", "tool": "get_all_patients"}')
    assert isinstance(frame, RequestFrame)
    assert frame.args == {}


@pytest.mark.parametrize("line", [
    b"\xff\xfe",
    b"[1, 2, 3]",
    b'{"type": "notification", "id": 1}',
    b'{"type": "request", "id": 1, "tool": "x", "args": "not-a-map"}',
])
def test_bad_frames_raise_malformed(line):
    with pytest.raises(MalformedFrameException):
        decode_frame(line)


def test_error_payload_rebuilds_typed_exception():
    payload = ErrorPayload.from_exception(ResourceNotFoundException(msg="Patient not found", details={"patient_id": "x"}))
    exc = exception_from_error(payload.model_dump())

    assert isinstance(exc, ResourceNotFoundException)
    assert exc.details == {"patient_id": "x"}


def test_unknown_error_slug_keeps_code():
    exc = exception_from_error({"code": 418, "slug": "teapot", "message": "short and stout"})
    assert (exc.code, exc.slug, exc.msg) == (418, "teapot", "short and stout")


@pytest.mark.asyncio
async def test_read_frame_line_drops_oversized_line_and_stays_aligned():
    reader = asyncio.StreamReader(limit=64)
    reader.feed_data(b"a" * 200 + b"\n" + b'{"type": "request", "id": 1, "tool": "t"}\n' + b"tail")
    reader.feed_eof()

    with pytest.raises(MalformedFrameException) as exc_info:
        await read_frame_line(reader)
    assert exc_info.value.details["bytes"] == 201

    assert isinstance(decode_frame(await read_frame_line(reader)), RequestFrame)
    assert await read_frame_line(reader) == b"tail"
    assert await read_frame_line(reader) == b""
