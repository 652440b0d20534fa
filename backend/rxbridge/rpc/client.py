"""
RPC Client

Spawns the server as a child process, waits for its capabilities frame, and
multiplexes tool calls over the child's stdin/stdout. Request-once, fail-fast:
no retries and no reconnection.
"""

import asyncio
import itertools
from typing import Any, Dict, List, Optional

import structlog

from rxbridge.core.config import settings
from rxbridge.core.exceptions import (
    AppException,
    MalformedFrameException,
    StartupFailureException,
    UpstreamFailureException,
    exception_from_error,
)
from rxbridge.core.utils.timeout import bounded
from rxbridge.rpc.frames import (
    CapabilitiesFrame,
    RequestFrame,
    ResponseFrame,
    ToolResult,
    decode_frame,
    encode_frame,
    read_frame_line,
)

logger = structlog.get_logger(__name__)


class RPCClient:
    # seconds to wait after closing stdin, then again after SIGTERM, before SIGKILL
    shutdown_grace_s = 2.0

    def __init__(
        self,
        argv: Optional[List[str]] = None,
        *,
        handshake_timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
        max_frame_bytes: Optional[int] = None,
    ):
        self.argv = argv or settings.SERVER_ARGV
        self.handshake_timeout = handshake_timeout or settings.HANDSHAKE_TIMEOUT_S
        self.env = env
        self.cwd = cwd
        self.max_frame_bytes = max_frame_bytes or settings.RPC_MAX_FRAME_BYTES
        # child pid and exit status, kept after close() for inspection
        self.pid: Optional[int] = None
        self.returncode: Optional[int] = None
        self.capabilities: Optional[CapabilitiesFrame] = None
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._pending: Dict[Any, asyncio.Future] = {}
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "RPCClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def tool_names(self) -> List[str]:
        return [t.name for t in self.capabilities.tools] if self.capabilities else []

    async def start(self) -> CapabilitiesFrame:
        logger.info("rpc_client.spawn", argv=self.argv)
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                env=self.env,
                cwd=self.cwd,
                limit=self.max_frame_bytes,
            )
        except OSError as e:
            raise StartupFailureException(
                msg=f"Could not start server process: {e}",
                details={"argv": self.argv},
            ) from e
        self.pid = self._proc.pid

        try:
            self.capabilities = await bounded(self._read_capabilities(), self.handshake_timeout, "handshake")
        except AppException:
            await self.close()
            raise

        logger.info("rpc_client.connected", server=self.capabilities.server.name, tools=self.tool_names)
        self._reader_task = asyncio.create_task(self._read_loop(self._proc.stdout))
        return self.capabilities

    async def _read_capabilities(self) -> CapabilitiesFrame:
        try:
            line = await read_frame_line(self._proc.stdout)
            if not line:
                returncode = await self._proc.wait()
                raise StartupFailureException(
                    msg="Server process exited before the handshake",
                    details={"returncode": returncode},
                )
            frame = decode_frame(line)
        except MalformedFrameException as e:
            raise StartupFailureException(msg=f"Server sent an unreadable handshake: {e.msg}") from e
        if not isinstance(frame, CapabilitiesFrame):
            raise StartupFailureException(msg=f"Expected a capabilities frame, got '{frame.type}'")
        return frame

    async def _read_loop(self, stdout: asyncio.StreamReader) -> None:
        try:
            while True:
                try:
                    line = await read_frame_line(stdout)
                except MalformedFrameException as e:
                    # the dropped frame cannot be correlated, so every waiting call fails with it
                    logger.warning("rpc_client.frame_too_large", error=e.msg, pending=len(self._pending))
                    self._fail_pending(e)
                    continue
                if not line:
                    break
                try:
                    frame = decode_frame(line)
                except AppException as e:
                    logger.warning("rpc_client.bad_frame", error=e.msg)
                    continue
                if not isinstance(frame, ResponseFrame):
                    continue
                future = self._pending.pop(frame.id, None)
                if future is None:
                    logger.warning("rpc_client.uncorrelated_response", id=frame.id, error=frame.error)
                    continue
                if not future.done():
                    future.set_result(frame)
        finally:
            self._fail_pending(UpstreamFailureException(msg="Server closed the stream"))

    def _fail_pending(self, exc: AppException) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(exc)

    async def call_tool(self, name: str, args: Optional[Dict[str, Any]] = None) -> ToolResult:
        if self._proc is None or self._reader_task is None or self._reader_task.done():
            raise StartupFailureException(msg="Client is not connected")

        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        logger.info("rpc_client.call", tool=name, id=request_id)
        try:
            self._proc.stdin.write(encode_frame(RequestFrame(id=request_id, tool=name, args=args or {})))
            await self._proc.stdin.drain()
        except ConnectionError as e:
            self._pending.pop(request_id, None)
            raise UpstreamFailureException(msg=f"Server stream is closed: {e}") from e

        response: ResponseFrame = await future
        if response.error is not None:
            raise exception_from_error(response.error.model_dump())
        return response.result

    async def close(self) -> None:
        """Close the stream and make sure the child is gone."""
        proc, self._proc = self._proc, None
        if proc is not None:
            if proc.stdin is not None and not proc.stdin.is_closing():
                proc.stdin.close()
            if proc.returncode is None:
                try:
                    await asyncio.wait_for(proc.wait(), timeout=self.shutdown_grace_s)
                except asyncio.TimeoutError:
                    proc.terminate()
                    try:
                        await asyncio.wait_for(proc.wait(), timeout=self.shutdown_grace_s)
                    except asyncio.TimeoutError:
                        proc.kill()
                        await proc.wait()
            self.returncode = proc.returncode
            logger.info("rpc_client.closed", returncode=proc.returncode)

        if self._reader_task is not None:
            await asyncio.gather(self._reader_task, return_exceptions=True)
            self._reader_task = None
