"""
LLM Gateway

A single capability, `complete(prompt) -> text`. The tool catalog and the
command-line orchestrator receive it by injection so tests can pass a
deterministic stub.
"""

from typing import Optional, Protocol

import structlog
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from rxbridge.core.config import settings
from rxbridge.core.exceptions import AppException, UpstreamFailureException
from rxbridge.core.utils.timeout import bounded

logger = structlog.get_logger(__name__)


class CompletionGateway(Protocol):
    async def complete(self, prompt: str) -> str:
        ...


def _translate_openai_error(e: Exception) -> str:
    """将 OpenAI 兼容接口的错误转换为易读提示"""
    code = getattr(e, "status_code", None)
    if code == 401:
        return f"Authentication failed (401), check OPENAI_API_KEY ({e})"
    if code == 403:
        return f"Access denied (403) ({e})"
    if code == 404:
        return f"Model not found (404), check MODEL_NAME ({e})"
    if code == 429:
        return f"Rate limited (429) ({e})"
    if code is not None and code >= 500:
        return f"Provider unavailable ({code}) ({e})"
    return f"Completion request failed: {e}"


class ChatCompletionGateway:
    """OpenAI-compatible chat completion via langchain-openai"""

    def __init__(self, llm: ChatOpenAI, timeout_s: float):
        self._llm = llm
        self._timeout_s = timeout_s

    @classmethod
    def from_settings(cls, timeout_s: Optional[float] = None) -> "ChatCompletionGateway":
        llm = ChatOpenAI(
            model=settings.MODEL_NAME,
            # 占位 key: 让鉴权错误在调用时暴露, 而不是在构造时
            api_key=settings.OPENAI_API_KEY or "sk-no-key-configured",
            base_url=settings.OPENAI_API_BASE,
            temperature=settings.TEMPERATURE,
            max_retries=0,
        )
        return cls(llm, timeout_s or settings.LLM_TIMEOUT_S)

    async def complete(self, prompt: str) -> str:
        logger.info("llm.complete", model=getattr(self._llm, "model_name", None), prompt_chars=len(prompt))
        try:
            message = await bounded(
                self._llm.ainvoke([HumanMessage(content=prompt)]),
                self._timeout_s,
                "llm_completion",
            )
        except AppException:
            raise
        except Exception as e:
            logger.error("llm.complete_failed", error=str(e), error_type=type(e).__name__)
            raise UpstreamFailureException(msg=_translate_openai_error(e)) from e

        content = message.content
        if isinstance(content, list):
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block) for block in content
            )
        return (content or "").strip()
