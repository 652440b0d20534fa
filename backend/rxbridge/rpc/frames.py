"""
协议帧 (Wire Frames)

One JSON object per line on the duplex stream:

    {"type": "capabilities", "server": {...}, "tools": [...]}
    {"type": "request", "id": 1, "tool": "get_patient_by_id", "args": {...}}
    {"type": "response", "id": 1, "result": {"content": [{"type": "text", "text": "..."}]}}
    {"type": "response", "id": 1, "error": {"code": 404, "slug": "...", "message": "...", "details": {}}}
"""

import asyncio
import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from rxbridge.core.exceptions import AppException, MalformedFrameException

RequestId = Union[int, str]


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    content: List[TextBlock]

    @classmethod
    def text(cls, text: str) -> "ToolResult":
        return cls(content=[TextBlock(text=text)])

    @property
    def first_text(self) -> str:
        return self.content[0].text if self.content else ""


class ErrorPayload(BaseModel):
    code: int
    slug: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: AppException) -> "ErrorPayload":
        return cls(**exc.to_dict())


class ToolDescriptor(BaseModel):
    name: str
    description: str
    input_schema: Dict[str, Any]


class ServerInfo(BaseModel):
    name: str
    version: str


class CapabilitiesFrame(BaseModel):
    type: Literal["capabilities"] = "capabilities"
    server: ServerInfo
    tools: List[ToolDescriptor]


class RequestFrame(BaseModel):
    type: Literal["request"] = "request"
    id: RequestId
    tool: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ResponseFrame(BaseModel):
    type: Literal["response"] = "response"
    id: Optional[RequestId] = None
    result: Optional[ToolResult] = None
    error: Optional[ErrorPayload] = None


Frame = Annotated[Union[CapabilitiesFrame, RequestFrame, ResponseFrame], Field(discriminator="type")]
_frame_adapter = TypeAdapter(Frame)


def encode_frame(frame: BaseModel) -> bytes:
    """Serialize one frame as a UTF-8 JSON line (no embedded newlines)."""
    data = frame.model_dump(mode="json", exclude_none=True)
    if isinstance(frame, ResponseFrame):
        # uncorrelated errors still carry an explicit "id": null
        data.setdefault("id", None)
    return json.dumps(data, ensure_ascii=False).encode("utf-8") + b"\n"


def decode_frame(line: bytes) -> Frame:
    """
    Parse one line into a typed frame.

    Raises MalformedFrameException with the request id (when one could be
    recovered) in `details`, so the server can still correlate its reply.
    """
    try:
        raw = json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedFrameException(msg=f"Frame is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise MalformedFrameException(msg="Frame must be a JSON object")
    try:
        return _frame_adapter.validate_python(raw)
    except ValidationError as e:
        recovered_id = raw.get("id") if isinstance(raw.get("id"), (int, str)) else None
        raise MalformedFrameException(
            msg="Frame does not match any known frame type",
            details={"id": recovered_id, "errors": e.errors(include_url=False, include_context=False)},
        ) from e


async def read_frame_line(reader: asyncio.StreamReader) -> bytes:
    """
    Next newline-terminated line from the stream, or b"" at EOF.

    A line longer than the reader limit is dropped whole, up to and including
    its newline, and reported as MalformedFrameException; the stream stays
    aligned on the following frame.
    """
    try:
        return await reader.readuntil(b"\n")
    except asyncio.IncompleteReadError as e:
        return e.partial
    except asyncio.LimitOverrunError as e:
        dropped = await _discard_line(reader, e.consumed)
        raise MalformedFrameException(
            msg=f"Frame too large: {dropped} bytes exceeds the stream limit",
            details={"bytes": dropped},
        ) from e


async def _discard_line(reader: asyncio.StreamReader, consumed: int) -> int:
    dropped = 0
    while True:
        # consumed bytes are already buffered; the newline may still be in flight
        await reader.readexactly(consumed)
        dropped += consumed
        try:
            tail = await reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            return dropped + len(e.partial)
        except asyncio.LimitOverrunError as e:
            consumed = e.consumed
            continue
        return dropped + len(tail)
