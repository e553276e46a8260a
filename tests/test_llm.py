"""
Unit Tests for the Prompt Executor and Prompt Formatting

STAFF ENGINEER PATTERNS:
------------------------
1. Inject a mocked AsyncOpenAI client; never patch the openai module
2. Prompt formatting is pure and asserted on exact text
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from case_context_engine.core.protocols import PromptExecutor
from case_context_engine.llm import prompts
from case_context_engine.llm.executor import OpenAIPromptExecutor, get_prompt_executor, render
from case_context_engine.retrieval.document import DocumentMetadata, EntityType, VectorizedDocument


@pytest.fixture
def client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="A concise summary."))],
            usage=SimpleNamespace(prompt_tokens=120, completion_tokens=30),
        )
    )
    client.close = AsyncMock()
    return client


class TestOpenAIPromptExecutor:

    async def test_execute_renders_and_calls_model(self, client):
        executor = OpenAIPromptExecutor(model="gpt-4o-mini", temperature=0.2, client=client)

        text = await executor.execute(
            prompts.CASE_SUMMARY_TEMPLATE, {"query": "school", "documents": "Document 1: ..."}
        )

        assert text == "A concise summary."
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.2
        assert 'relevant to the query: "school"' in kwargs["messages"][0]["content"]

    async def test_none_content_is_empty_string(self, client):
        client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=None))], usage=None
        )
        executor = OpenAIPromptExecutor(client=client)

        assert await executor.execute("{x}", {"x": "y"}) == ""

    async def test_missing_variable_raises_before_call(self, client):
        executor = OpenAIPromptExecutor(client=client)

        with pytest.raises(KeyError):
            await executor.execute(prompts.CASE_SUMMARY_TEMPLATE, {"query": "q"})
        client.chat.completions.create.assert_not_called()

    async def test_close(self, client):
        executor = OpenAIPromptExecutor(client=client)
        await executor.close()
        client.close.assert_awaited_once()

    async def test_close_without_client_is_noop(self):
        await get_prompt_executor().close()

    def test_satisfies_protocol(self, client):
        assert isinstance(OpenAIPromptExecutor(client=client), PromptExecutor)


class TestPromptFormatting:

    def test_render(self):
        assert render("Hello {name}", {"name": "Dana"}) == "Hello Dana"

    def test_format_documents(self):
        doc = VectorizedDocument(
            id="d1",
            content="Home visit went well.",
            metadata=DocumentMetadata(
                type=EntityType.REVIEW,
                timestamp=datetime(2024, 3, 1, tzinfo=timezone.utc),
            ),
        )

        text = prompts.format_documents([doc])

        assert text == (
            "Document 1:\nHome visit went well.\n"
            "Type: review\n"
            "Date: 2024-03-01T00:00:00+00:00"
        )

    def test_format_no_documents(self):
        assert prompts.format_documents([]) == "No documents available."

    def test_json_examples_survive_formatting(self):
        text = render(
            prompts.RECOMMENDATIONS_TEMPLATE,
            prompts.recommendation_variables([], "", None),
        )
        assert '"recommendations": [' in text
        assert "No summary available." in text

    def test_scenario_and_evaluation_templates_render(self):
        scenario = render(prompts.SCENARIO_TEMPLATE, {"context": "ctx"})
        evaluation = render(
            prompts.EVALUATION_TEMPLATE,
            {"context": "ctx", "scenario": "s", "response": "r", "expected_elements": "[]"},
        )
        assert '"expectedElements": [' in scenario
        assert '"areasForImprovement"' in evaluation
