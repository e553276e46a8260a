"""
Prompt executor - the single boundary around the generative model.

Orchestration code calls execute(template, variables) and gets text back.
It never builds SDK requests itself, so tests substitute any object with an
async execute() (an AsyncMock, or a scripted fake) without patching openai.

Timeouts and the single retry are applied by the caller through
call_upstream(); this class makes exactly one request per execute().
"""

from __future__ import annotations

import logging
from typing import Any

from openai import AsyncOpenAI

from case_context_engine.observability.attributes import (
    GEN_AI_COMPLETION,
    GEN_AI_PROMPT,
    GEN_AI_USAGE_INPUT_TOKENS,
    GEN_AI_USAGE_OUTPUT_TOKENS,
    generation_attributes,
)
from case_context_engine.observability.config import get_config
from case_context_engine.observability.tracer import get_tracer

logger = logging.getLogger(__name__)


def render(template: str, variables: dict[str, Any]) -> str:
    """Render a prompt template. Missing variables raise KeyError."""
    return template.format(**variables)


class OpenAIPromptExecutor:
    """
    PromptExecutor backed by OpenAI chat completions.

    One AsyncOpenAI client per executor, injected or created on first use
    (ingestion-only runs never need a key) and released with close().
    """

    def __init__(
        self,
        model: str = "gpt-4-turbo-preview",
        temperature: float = 0.7,
        api_key: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        self.temperature = temperature
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def execute(self, template: str, variables: dict[str, Any]) -> str:
        prompt = render(template, variables)
        tracer = get_tracer()

        with tracer.start_span(
            "llm.chat",
            attributes=generation_attributes(self.model, self.temperature),
        ) as span:
            response = await self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
            text = response.choices[0].message.content or ""

            if response.usage is not None:
                span.set_attribute(GEN_AI_USAGE_INPUT_TOKENS, response.usage.prompt_tokens)
                span.set_attribute(GEN_AI_USAGE_OUTPUT_TOKENS, response.usage.completion_tokens)
            if get_config().capture_content:
                span.set_attribute(GEN_AI_PROMPT, prompt)
                span.set_attribute(GEN_AI_COMPLETION, text)
            span.set_status("ok")

        logger.debug("Generated %d chars with %s", len(text), self.model)
        return text

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


def get_prompt_executor(
    model: str = "gpt-4-turbo-preview",
    temperature: float = 0.7,
    api_key: str | None = None,
) -> OpenAIPromptExecutor:
    """Factory for the production prompt executor."""
    return OpenAIPromptExecutor(model=model, temperature=temperature, api_key=api_key)
