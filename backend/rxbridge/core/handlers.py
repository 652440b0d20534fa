from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from rxbridge.core.exceptions import AppException

logger = structlog.get_logger(__name__)


async def app_exception_handler(request: Request, exc: AppException):
    """
    处理自定义业务异常 (same envelope as RPC error frames)
    """
    if exc.code >= 500:
        logger.error("app_exception", slug=exc.slug, error=exc.msg, path=request.url.path)
    return JSONResponse(status_code=exc.code, content={"error": exc.to_dict()})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    处理 Pydantic 校验异常 (422)
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": 422,
                "slug": "validation_error",
                "message": "Input validation failed",
                "details": {"errors": jsonable_encoder(exc.errors())}
            }
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    处理 FastAPI/Starlette 内置 HTTP 异常 (404, 405 etc)
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.status_code,
                "slug": "http_error",
                "message": exc.detail,
                "details": {}
            }
        }
    )
