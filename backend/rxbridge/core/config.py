from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import os
import shlex
import sys
import logging
from dotenv import load_dotenv

# 项目根目录绝对路径（统一路径管理）
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

# override=False，优先使用系统环境变量，根目录 .env 仅作为默认值
ROOT_ENV_FILE = os.path.join(PROJECT_ROOT, ".env")
load_dotenv(ROOT_ENV_FILE, override=False)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    系统全局配置类 (Global Settings)
    读取 .env 文件或环境变量，管理 RPC server / client / HTTP API 的所有配置项。
    """
    model_config = SettingsConfigDict(extra="ignore")

    PROJECT_NAME: str = "prescription-rpc"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"

    # Expose PROJECT_ROOT
    PROJECT_ROOT: str = PROJECT_ROOT

    # DATABASE (async SQLAlchemy URL)
    DATABASE_URL: str = "sqlite+aiosqlite:///./prescriptions.db"

    # LLM (any OpenAI-compatible endpoint)
    OPENAI_API_KEY: str = ""
    OPENAI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    MODEL_NAME: str = "gemini-1.5-flash"
    TEMPERATURE: float = 0.0
    LLM_TIMEOUT_S: float = 60.0

    # RPC
    HANDSHAKE_TIMEOUT_S: float = 30.0
    RPC_MAX_FRAME_BYTES: int = 16 * 1024 * 1024
    # Empty means "<current python> -m rxbridge server-mode"
    SERVER_COMMAND: str = ""

    # Flat prescription history log, shared by every patient
    HISTORY_LOG_PATH: str = "past_prescriptions.txt"

    DEBUG: bool = False
    LOG_TO_FILE: bool = True

    # PATHS (Centralized)
    @property
    def LOG_DIR(self) -> str:
        dir_path = os.path.join(self.PROJECT_ROOT, "logs")
        os.makedirs(dir_path, exist_ok=True)
        return dir_path

    @property
    def SERVER_ARGV(self) -> List[str]:
        if self.SERVER_COMMAND.strip():
            return shlex.split(self.SERVER_COMMAND)
        return [sys.executable, "-m", "rxbridge", "server-mode"]

    def missing_keys(self) -> List[str]:
        """命令行模式启动前必须配置的项"""
        required = {
            "OPENAI_API_KEY": self.OPENAI_API_KEY,
            "DATABASE_URL": self.DATABASE_URL,
        }
        return [key for key, value in required.items() if not str(value).strip()]

    @staticmethod
    def _mask_key(key: str) -> str:
        if not key or len(key) < 10:
            return "***"
        return f"{key[:6]}...{key[-4:]}"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.OPENAI_API_KEY:
            logger.debug("OPENAI_API_KEY configured: %s (len=%d)", self._mask_key(self.OPENAI_API_KEY), len(self.OPENAI_API_KEY))


settings = Settings()
