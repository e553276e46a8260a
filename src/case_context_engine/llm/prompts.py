"""
Prompt templates - externalized for versioning and testing.

Templates are plain `str.format` strings rendered by the PromptExecutor.
Literal JSON braces in the examples are doubled so format() leaves them
alone. The formatting helpers below are pure functions: same inputs, same
prompt text, no API calls.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from case_context_engine.retrieval.document import VectorizedDocument
    from case_context_engine.schemas.context import CaseContext
    from case_context_engine.schemas.recommendations import Rubric


# ---------------------------------------------------------------------------
# CONTEXT SUMMARY
# ---------------------------------------------------------------------------

CASE_SUMMARY_TEMPLATE = """Based on the following case documents, provide a concise summary relevant to the query: "{query}"

Documents:
{documents}

Provide a summary that:
1. Highlights key points relevant to the query
2. Identifies patterns or trends
3. Notes any concerns or areas needing attention
4. Suggests potential next steps"""

PROVIDER_SUMMARY_TEMPLATE = """Based on the following documents about a case worker and their caseload, provide a concise summary relevant to the query: "{query}"

Documents:
{documents}

Provide a summary that:
1. Highlights the provider's strengths and recurring practices
2. Identifies patterns across their cases
3. Notes any concerns or areas needing attention
4. Suggests coaching focus areas"""


# ---------------------------------------------------------------------------
# RECOMMENDATIONS
# ---------------------------------------------------------------------------

RUBRIC_INSTRUCTIONS_TEMPLATE = """
Evaluation Rubric:
Name: {name}
Content:
{content}

REQUIRED: You MUST include a rubric_evaluation recommendation that evaluates the provider against this rubric.
The rubric_evaluation must be the FIRST recommendation in the array.

The rubric has exactly {section_count} section(s):
{section_list}

For the rubric evaluation:
1. Provide exactly one "sections" entry per rubric section listed above, using the section names as given
2. For each section, provide:
   - A numerical grade (0-100)
   - Specific evidence from the provider's performance
   - Areas for improvement
3. End with an overall grade (0-100) in "overallGrade"
"""

RECOMMENDATIONS_TEMPLATE = """Based on the following case context, generate specific recommendations for the caseworker.

Case Summary:
{summary}

Recent Documents:
{documents}
{rubric_instructions}
Generate recommendations that:
1. If a rubric is provided, FIRST evaluate the provider against the rubric criteria (REQUIRED)
2. Suggest specific approaches or strategies
3. Identify relevant resources or services
4. Highlight potential concerns or warnings
5. Include confidence levels and sources

Return ONLY a JSON object with the following structure, no markdown formatting or additional text:
{{
  "recommendations": [
    {{
      "type": "rubric_evaluation" | "approach" | "resource" | "warning",
      "title": "string",
      "description": "string",
      "confidence": number (0-1),
      "source": "string",
      "sections": [
        {{
          "name": "string",
          "grade": number (0-100),
          "evidence": "string",
          "improvements": "string"
        }}
      ],
      "overallGrade": number (0-100)
    }}
  ]
}}
Only rubric_evaluation entries carry "sections" and "overallGrade"."""


# ---------------------------------------------------------------------------
# SIMULATION
# ---------------------------------------------------------------------------

SCENARIO_TEMPLATE = """Based on the following case context, generate a realistic scenario that you need to respond to.
The scenario should be challenging and require critical thinking.

Case Context:
{context}

Generate a scenario that:
1. Is realistic and based on the case context
2. Presents a challenging situation
3. Requires you to make a decision or take action
4. Uses actual names from the case
5. Addresses you directly as "you"
6. Focuses on the immediate situation without repeating known case details

Return ONLY a JSON object in this format, with no markdown formatting or additional text:
{{
  "scenario": "The scenario description",
  "expectedElements": [
    "Key element 1 that should be in the response",
    "Key element 2 that should be in the response",
    "Key element 3 that should be in the response"
  ]
}}"""

EVALUATION_TEMPLATE = """Evaluate the response to the scenario based on the case context and expected elements.

Case Context:
{context}

Scenario:
{scenario}

Response:
{response}

Expected Elements:
{expected_elements}

Evaluate the response on:
1. Completeness (did they address all key aspects?)
2. Appropriateness (is the response suitable for the situation?)
3. Professionalism (is the response professional and ethical?)
4. Critical Thinking (did they consider all factors?)
5. Alignment with Case Goals (does it support the case objectives?)
6. Child Safety and Well-being (did they prioritize safety?)
7. Caregiver Support (did they consider family needs and challenges?)

Return ONLY a JSON object in this format, with no markdown formatting or additional text:
{{
  "score": number (0-100),
  "feedback": "Detailed feedback on the response",
  "strengths": ["Strength 1", "Strength 2"],
  "areasForImprovement": ["Area 1", "Area 2"],
  "missingElements": ["Missing element 1", "Missing element 2"]
}}"""


# ---------------------------------------------------------------------------
# PROVIDER CHAT
# ---------------------------------------------------------------------------

CHAT_TEMPLATE = """You are a helpful assistant for child welfare case workers. You have access to the following context about the provider's entire caseload:

Provider Summary:
{summary}

Provider's Cases:
{case_contexts}

Provider Documents:
{documents}

The provider asks: {message}

Provide a thoughtful, informed response that:
1. Considers patterns and insights across their entire caseload
2. Offers practical, actionable advice for managing multiple cases
3. Maintains a professional and supportive tone
4. Focuses on child safety and well-being
5. Considers cultural sensitivity and family strengths
6. Takes into account the provider's experience and previous interactions
7. Helps identify opportunities for cross-case learning and improvement
8. Suggests strategies that could be applied across cases

Response:"""


# ---------------------------------------------------------------------------
# FORMATTING HELPERS
# ---------------------------------------------------------------------------


def format_documents(documents: Iterable[VectorizedDocument]) -> str:
    """Render documents as numbered blocks with type and date."""
    blocks = [
        f"Document {i}:\n{doc.content}\n"
        f"Type: {doc.metadata.type.value}\n"
        f"Date: {doc.metadata.timestamp.isoformat()}"
        for i, doc in enumerate(documents, start=1)
    ]
    return "\n\n".join(blocks) if blocks else "No documents available."


def format_rubric_instructions(rubric: Rubric | None) -> str:
    """Rubric block for the recommendations prompt, or "" without a rubric."""
    if rubric is None:
        return ""
    sections = rubric.sections()
    return RUBRIC_INSTRUCTIONS_TEMPLATE.format(
        name=rubric.name,
        content=rubric.content,
        section_count=len(sections),
        section_list="\n".join(f"- {name}" for name in sections),
    )


def recommendation_variables(
    documents: list[VectorizedDocument],
    summary: str,
    rubric: Rubric | None = None,
) -> dict[str, Any]:
    """Variables for RECOMMENDATIONS_TEMPLATE."""
    return {
        "summary": summary or "No summary available.",
        "documents": format_documents(documents),
        "rubric_instructions": format_rubric_instructions(rubric),
    }


def format_case_contexts(cases: Iterable[tuple[str, CaseContext]]) -> str:
    """Render (case label, context) pairs for CHAT_TEMPLATE."""
    blocks = [
        f"Case: {label}\nSummary: {context.summary}\n"
        f"Context: {' '.join(doc.content for doc in context.documents)}"
        for label, context in cases
    ]
    return "\n\n".join(blocks) if blocks else "No cases assigned."
