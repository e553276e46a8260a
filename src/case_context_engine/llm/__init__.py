"""
LLM module - prompt templates and the generative model boundary.
"""

from case_context_engine.core.protocols import PromptExecutor
from case_context_engine.llm.executor import (
    OpenAIPromptExecutor,
    get_prompt_executor,
    render,
)

__all__ = [
    "PromptExecutor",
    "OpenAIPromptExecutor",
    "get_prompt_executor",
    "render",
]
