"""
Semantic Conventions for Span Attributes

Attribute keys follow the OpenTelemetry GenAI conventions for model calls
plus a custom `case_context` namespace for retrieval and synthesis.

Reference: https://opentelemetry.io/docs/specs/semconv/gen-ai/
"""

# ---------------------------------------------------------------------------
# GENAI NAMESPACE (OTel standard)
# ---------------------------------------------------------------------------

GEN_AI_SYSTEM = "gen_ai.system"  # "openai"
GEN_AI_OPERATION = "gen_ai.operation.name"  # "chat", "embeddings"
GEN_AI_REQUEST_MODEL = "gen_ai.request.model"
GEN_AI_REQUEST_TEMPERATURE = "gen_ai.request.temperature"

GEN_AI_USAGE_INPUT_TOKENS = "gen_ai.usage.input_tokens"
GEN_AI_USAGE_OUTPUT_TOKENS = "gen_ai.usage.output_tokens"

# Only set when TRACING_CAPTURE_CONTENT is on
GEN_AI_PROMPT = "gen_ai.prompt"
GEN_AI_COMPLETION = "gen_ai.completion"


# ---------------------------------------------------------------------------
# CASE CONTEXT NAMESPACE (custom)
# ---------------------------------------------------------------------------

CASE_ID = "case_context.case_id"
PROVIDER_ID = "case_context.provider_id"
DOCUMENT_TYPE = "case_context.document.type"
DOCUMENT_ID = "case_context.document.id"

# Search
SEARCH_LIMIT = "case_context.search.limit"
SEARCH_THRESHOLD = "case_context.search.threshold"
SEARCH_COLLECTIONS = "case_context.search.collections"
SEARCH_RESULT_COUNT = "case_context.search.result_count"

# Context
CONTEXT_SOURCE = "case_context.context.source"  # "vector" | "record"
CONTEXT_DOCUMENT_COUNT = "case_context.context.document_count"

# Synthesis
SYNTHESIS_HAS_RUBRIC = "case_context.synthesis.has_rubric"
SYNTHESIS_RUBRIC_SECTIONS = "case_context.synthesis.rubric_sections"
SYNTHESIS_RECOMMENDATION_COUNT = "case_context.synthesis.recommendation_count"
SYNTHESIS_REPARSED = "case_context.synthesis.reparsed"

# Simulation
SIMULATION_ACTION = "case_context.simulation.action"
SIMULATION_SCORE = "case_context.simulation.score"

# Chat
CHAT_CASE_COUNT = "case_context.chat.case_count"


# ---------------------------------------------------------------------------
# HELPER FUNCTIONS
# ---------------------------------------------------------------------------


def search_attributes(
    limit: int,
    threshold: float | None = None,
    case_id: str | None = None,
    provider_id: str | None = None,
) -> dict:
    """Create attributes dict for a similarity search span."""
    attrs = {SEARCH_LIMIT: limit}
    if threshold is not None:
        attrs[SEARCH_THRESHOLD] = threshold
    if case_id:
        attrs[CASE_ID] = case_id
    if provider_id:
        attrs[PROVIDER_ID] = provider_id
    return attrs


def vectorize_attributes(document_type: str, case_id: str | None = None) -> dict:
    """Create attributes dict for a vectorization span."""
    attrs = {DOCUMENT_TYPE: document_type}
    if case_id:
        attrs[CASE_ID] = case_id
    return attrs


def synthesis_attributes(target_id: str, rubric_sections: int | None = None) -> dict:
    """Create attributes dict for a recommendation synthesis span."""
    attrs = {
        CASE_ID: target_id,
        SYNTHESIS_HAS_RUBRIC: rubric_sections is not None,
    }
    if rubric_sections is not None:
        attrs[SYNTHESIS_RUBRIC_SECTIONS] = rubric_sections
    return attrs


def generation_attributes(
    model: str,
    temperature: float,
    input_tokens: int | None = None,
    output_tokens: int | None = None,
) -> dict:
    """Create attributes dict for a chat completion span."""
    attrs = {
        GEN_AI_SYSTEM: "openai",
        GEN_AI_OPERATION: "chat",
        GEN_AI_REQUEST_MODEL: model,
        GEN_AI_REQUEST_TEMPERATURE: temperature,
    }
    if input_tokens is not None:
        attrs[GEN_AI_USAGE_INPUT_TOKENS] = input_tokens
    if output_tokens is not None:
        attrs[GEN_AI_USAGE_OUTPUT_TOKENS] = output_tokens
    return attrs
