import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage

from rxbridge.core.exceptions import TimeoutException, UpstreamFailureException
from rxbridge.core.llm.gateway import ChatCompletionGateway


def _gateway(ainvoke: AsyncMock, timeout_s: float = 5.0) -> ChatCompletionGateway:
    llm = MagicMock()
    llm.ainvoke = ainvoke
    return ChatCompletionGateway(llm, timeout_s)


@pytest.mark.asyncio
async def test_complete_returns_stripped_text():
    ainvoke = AsyncMock(return_value=AIMessage(content="  Amlodipine 5 mg once daily\n"))
    gateway = _gateway(ainvoke)

    text = await gateway.complete("prompt text")

    assert text == "Amlodipine 5 mg once daily"
    sent = ainvoke.await_args.args[0]
    assert sent[0].content == "prompt text"


@pytest.mark.asyncio
async def test_content_blocks_are_joined():
    ainvoke = AsyncMock(return_value=AIMessage(content=[{"type": "text", "text": "Part A. "}, {"type": "text", "text": "Part B."}]))
    assert await _gateway(ainvoke).complete("p") == "Part A. Part B."


@pytest.mark.asyncio
async def test_provider_error_becomes_upstream_failure():
    class AuthError(Exception):
        status_code = 401

    gateway = _gateway(AsyncMock(side_effect=AuthError("bad key")))

    with pytest.raises(UpstreamFailureException) as exc_info:
        await gateway.complete("p")
    assert "Authentication failed" in exc_info.value.msg


@pytest.mark.asyncio
async def test_slow_completion_times_out():
    async def hang(*args, **kwargs):
        await asyncio.sleep(10)

    gateway = _gateway(AsyncMock(side_effect=hang), timeout_s=0.05)

    with pytest.raises(TimeoutException) as exc_info:
        await gateway.complete("p")
    assert exc_info.value.details["operation"] == "llm_completion"
