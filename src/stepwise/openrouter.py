# openrouter.py
# OpenAI-compatible model collaborator (OpenRouter by default).
# Satisfies the model-call contract: async (messages) -> ModelResponse.
# Errors are left to propagate; retry.is_retryable_error classifies them.

import os

from openai import AsyncOpenAI

from stepwise.models import ModelResponse, TokenUsage

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterModel:
    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str = OPENROUTER_BASE_URL,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(
            base_url=base_url,
            api_key=api_key or os.getenv("OPENROUTER_API_KEY"),
        )

    async def __call__(self, messages: list[dict]) -> ModelResponse:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
        )
        usage = response.usage
        return ModelResponse(
            text=(response.choices[0].message.content or "").strip(),
            usage=TokenUsage(
                input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            ),
            model=self.model,
        )
