import sys
import logging
import structlog
import logging.handlers
import os
from rxbridge.core.config import settings


def setup_logging(log_file_name: str = "rxbridge.log"):
    """
    配置全局日志系统 (Global Logging Setup)
    集成 Structlog 和 Standard Logging，JSON 日志写入文件，控制台日志写 stderr。

    stdout 在 server-mode 下承载协议帧，任何日志都不能写到 stdout。
    """
    # 1. 确定日志级别
    log_level = logging.DEBUG if settings.DEBUG else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    common_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        *common_processors,
    ]
    # stdlib foreign_pre_chain 中 logger 可能为 None，不能放 filter_by_level
    foreign_pre_chain = [
        structlog.contextvars.merge_contextvars,
        *common_processors,
    ]

    # 2. Console Handler -> stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.WARNING)
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
            foreign_pre_chain=foreign_pre_chain,
        )
    )
    has_console_handler = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in root_logger.handlers
    )
    if not has_console_handler:
        root_logger.addHandler(console_handler)

    # 3. File Handler (JSON)
    log_file_path = None
    if settings.LOG_TO_FILE:
        log_file_path = os.path.join(settings.LOG_DIR, log_file_name)
        file_handler = logging.handlers.TimedRotatingFileHandler(
            filename=log_file_path,
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(ensure_ascii=False),
                foreign_pre_chain=foreign_pre_chain,
            )
        )
        has_file_handler = any(isinstance(h, logging.handlers.TimedRotatingFileHandler) for h in root_logger.handlers)
        if not has_file_handler:
            root_logger.addHandler(file_handler)

    # 4. 配置 Structlog 核心
    structlog.configure(
        processors=processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger("logging_setup")
    logger.info("global_logging_initialized", log_file=log_file_path)
