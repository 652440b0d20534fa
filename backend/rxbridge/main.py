from contextlib import asynccontextmanager
import time

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from rxbridge.api.v1.api import api_router
from rxbridge.core.config import settings
from rxbridge.core.exceptions import AppException
from rxbridge.core.handlers import app_exception_handler, http_exception_handler, validation_exception_handler
from rxbridge.core.logging.setup import setup_logging
from rxbridge.core.middleware.request_log import RequestLogMiddleware
from rxbridge.db.session import close_db, init_models

# 1. 初始化全局日志系统 (Setup Global Logging)
setup_logging("rxbridge-api.log")
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    logger.info("api.startup", database=settings.DATABASE_URL.split("://", 1)[0])
    yield
    await close_db()
    logger.info("api.shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan
)

app.add_middleware(RequestLogMiddleware)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)

# CORS Pattern (Allow all for Dev)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/health")
async def health_check():
    """
    健康检查接口 (Health Check)
    """
    return {
        "status": "ok",
        "project": settings.PROJECT_NAME,
        "timestamp": time.time()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
