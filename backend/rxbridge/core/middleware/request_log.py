import time
import uuid
import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger("request_logger")


class RequestLogMiddleware(BaseHTTPMiddleware):
    """
    请求日志中间件 (Request Logging Middleware)
    确保每个请求都有 Request ID，并绑定到 Structlog 上下文。
    """
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)

        if response.status_code >= 400:
            logger.warning(
                "request_failed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_s=time.time() - start_time
            )
        response.headers["X-Request-ID"] = request_id
        return response
