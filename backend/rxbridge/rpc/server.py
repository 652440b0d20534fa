"""
RPC Server

Speaks newline-delimited JSON frames over a duplex stream (stdin/stdout in
`server-mode`). Every request is dispatched in its own task, so a slow handler
never holds up the read loop or other responses; replies are correlated by id
and may leave in any order.
"""

import asyncio
import sys
import uuid
from enum import Enum
from typing import Optional, Protocol, Set

import structlog

from rxbridge.core.config import settings
from rxbridge.core.exceptions import AppException, MalformedFrameException, UpstreamFailureException
from rxbridge.rpc.catalog import ToolCatalog
from rxbridge.rpc.frames import (
    CapabilitiesFrame,
    ErrorPayload,
    RequestFrame,
    ResponseFrame,
    ServerInfo,
    decode_frame,
    encode_frame,
    read_frame_line,
)

logger = structlog.get_logger(__name__)


class ServerState(str, Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    DISPATCHING = "dispatching"
    CLOSED = "closed"


class FrameWriter(Protocol):
    def write(self, data: bytes) -> None:
        ...

    async def drain(self) -> None:
        ...


class RPCServer:
    def __init__(self, catalog: ToolCatalog, name: str = None, version: str = None):
        self.catalog = catalog
        self.info = ServerInfo(name=name or settings.PROJECT_NAME, version=version or settings.VERSION)
        self._writer: Optional[FrameWriter] = None
        self._write_lock = asyncio.Lock()
        self._inflight: Set[asyncio.Task] = set()
        self._connected = False
        self._closed = False

    @property
    def state(self) -> ServerState:
        if self._closed:
            return ServerState.CLOSED
        if not self._connected:
            return ServerState.IDLE
        return ServerState.DISPATCHING if self._inflight else ServerState.CONNECTED

    async def serve(self, reader: asyncio.StreamReader, writer: FrameWriter) -> None:
        """Advertise the catalog, then serve frames until the stream closes."""
        self._writer = writer
        self._connected = True
        logger.info("rpc.connected", tools=self.catalog.names)
        await self._send(CapabilitiesFrame(server=self.info, tools=self.catalog.descriptors()))

        try:
            while True:
                try:
                    line = await read_frame_line(reader)
                except MalformedFrameException as e:
                    logger.warning("rpc.malformed_frame", error=e.msg)
                    await self._send_error(None, e)
                    continue
                if not line:
                    break
                if not line.strip():
                    continue
                self._dispatch(line)
        finally:
            if self._inflight:
                await asyncio.gather(*self._inflight, return_exceptions=True)
            self._closed = True
            logger.info("rpc.closed")

    def _dispatch(self, line: bytes) -> None:
        task = asyncio.create_task(self._handle(line))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _handle(self, line: bytes) -> None:
        try:
            frame = decode_frame(line)
        except MalformedFrameException as e:
            logger.warning("rpc.malformed_frame", error=e.msg)
            await self._send_error(e.details.get("id"), e)
            return

        if not isinstance(frame, RequestFrame):
            err = MalformedFrameException(msg=f"Server only accepts request frames, got '{frame.type}'")
            await self._send_error(getattr(frame, "id", None), err)
            return

        # 每个请求独立的 request_id 上下文 (task-local)
        structlog.contextvars.bind_contextvars(rpc_id=frame.id, trace_id=uuid.uuid4().hex[:12])
        logger.info("rpc.request", tool=frame.tool)
        try:
            result = await self.catalog.invoke(frame.tool, frame.args)
        except AppException as e:
            logger.warning("tool.error", tool=frame.tool, slug=e.slug, error=e.msg)
            await self._send_error(frame.id, e)
            return
        except Exception as e:
            logger.error("tool.error", tool=frame.tool, error=str(e), error_type=type(e).__name__, exc_info=True)
            await self._send_error(frame.id, UpstreamFailureException(msg=f"{type(e).__name__}: {e}"))
            return
        await self._send(ResponseFrame(id=frame.id, result=result))

    async def _send_error(self, request_id, exc: AppException) -> None:
        await self._send(ResponseFrame(id=request_id, error=ErrorPayload.from_exception(exc)))

    async def _send(self, frame) -> None:
        data = encode_frame(frame)
        async with self._write_lock:
            try:
                self._writer.write(data)
                await self._writer.drain()
            except ConnectionError as e:
                # peer went away; the read loop will see EOF
                logger.warning("rpc.write_failed", error=str(e))


async def open_stdio_streams(limit: int):
    """Wrap this process's stdin/stdout as an asyncio reader/writer pair."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=limit)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    transport, protocol = await loop.connect_write_pipe(asyncio.streams.FlowControlMixin, sys.stdout)
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)
    return reader, writer


async def run_stdio_server(catalog: ToolCatalog) -> None:
    reader, writer = await open_stdio_streams(settings.RPC_MAX_FRAME_BYTES)
    server = RPCServer(catalog)
    try:
        await server.serve(reader, writer)
    finally:
        writer.close()
