from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError, APIStatusError

from stepwise.openrouter import OpenRouterModel
from stepwise.retry import is_retryable_error


def fake_client(content, prompt_tokens=3, completion_tokens=2):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
            usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
            model="anthropic/claude-3.5-haiku-20241022",
        )
    )
    return client


@pytest.mark.asyncio
async def test_model_call_maps_response():
    client = fake_client("  Thought: hi\nAction: noop  ")
    model = OpenRouterModel("anthropic/claude-3.5-haiku", client=client)

    response = await model([{"role": "user", "content": "go"}])

    assert response.text == "Thought: hi\nAction: noop"
    assert response.usage.input_tokens == 3
    assert response.usage.output_tokens == 2
    # the ledger keys on the requested id so rate lookups stay stable
    assert response.model == "anthropic/claude-3.5-haiku"
    client.chat.completions.create.assert_awaited_once_with(
        model="anthropic/claude-3.5-haiku",
        messages=[{"role": "user", "content": "go"}],
    )


@pytest.mark.asyncio
async def test_empty_content_becomes_empty_text():
    model = OpenRouterModel("m", client=fake_client(None))
    response = await model([])
    assert response.text == ""


def test_openai_errors_are_classified():
    request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")

    assert is_retryable_error(APIConnectionError(request=request)) is True

    overloaded = httpx.Response(503, request=request)
    assert is_retryable_error(APIStatusError("overloaded", response=overloaded, body=None)) is True

    unauthorized = httpx.Response(401, request=request)
    assert is_retryable_error(APIStatusError("bad key", response=unauthorized, body=None)) is False
