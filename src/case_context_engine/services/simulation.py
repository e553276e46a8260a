"""
Two-phase simulation protocol.

A provider practises on one of their cases:

    AWAITING_SCENARIO --generate()--> SCENARIO_GENERATED --evaluate()--> EVALUATED

generate() needs a case with an assigned worker, builds case context and
asks the model for a scenario plus the elements a good response contains.
evaluate() grades the provider's free-text response against them.

A failed transition leaves the session where it was. Nothing is retried
beyond the single upstream retry in call_upstream().

run_simulation() is the stateless request/response form: "evaluate"
requests carry the scenario back, and the session is resumed from it.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError

from case_context_engine.core.errors import (
    CaseNotFoundError,
    InvalidSimulationStateError,
    MalformedModelOutputError,
    NoAssignedWorkerError,
    RequestValidationError,
    UpstreamGenerationError,
)
from case_context_engine.core.resilience import call_upstream
from case_context_engine.llm.prompts import EVALUATION_TEMPLATE, SCENARIO_TEMPLATE
from case_context_engine.observability.attributes import (
    CASE_ID,
    PROVIDER_ID,
    SIMULATION_ACTION,
    SIMULATION_SCORE,
)
from case_context_engine.observability.tracer import get_tracer
from case_context_engine.records.store import CASES, PROVIDERS
from case_context_engine.schemas.base import CamelModel
from case_context_engine.schemas.simulation import (
    Scenario,
    SimulationEvaluation,
    SimulationRequest,
)
from case_context_engine.services.recommendations import outermost_object, strip_code_fences
from case_context_engine.services.rendering import render_case_query

if TYPE_CHECKING:
    from case_context_engine.core.config import EngineConfig
    from case_context_engine.core.protocols import PromptExecutor, RecordStore
    from case_context_engine.schemas.context import CaseContext
    from case_context_engine.services.context import ContextAssembler

logger = logging.getLogger(__name__)

CONTEXT_LIMIT = 5
CONTEXT_THRESHOLD = 0.8

M = TypeVar("M", bound=CamelModel)


class SimulationState(str, Enum):
    AWAITING_SCENARIO = "awaiting_scenario"
    SCENARIO_GENERATED = "scenario_generated"
    EVALUATED = "evaluated"


def parse_model_json(model_cls: type[M], raw: str) -> M:
    """Fence-strip and validate, with one outermost-object re-parse."""
    cleaned = strip_code_fences(raw)
    for candidate in (cleaned, outermost_object(cleaned)):
        if candidate is None:
            continue
        try:
            return model_cls.model_validate_json(candidate)
        except ValidationError:
            continue
    logger.debug("Unparseable %s output: %r", model_cls.__name__, raw)
    raise MalformedModelOutputError(
        f"Model output does not match the {model_cls.__name__} schema", raw_text=raw
    )


class SimulationSession:
    """One case, one scenario, one evaluation."""

    def __init__(
        self,
        case_id: str,
        provider_id: str | None,
        context: ContextAssembler,
        executor: PromptExecutor,
        records: RecordStore,
        config: EngineConfig,
    ):
        self.case_id = case_id
        self.provider_id = provider_id
        self.state = SimulationState.AWAITING_SCENARIO
        self.scenario: Scenario | None = None
        self.evaluation: SimulationEvaluation | None = None
        self.provider: dict[str, Any] | None = None
        self.context: CaseContext | None = None
        self._context = context
        self._executor = executor
        self._records = records
        self._config = config

    # -----------------------------------------------------------------------
    # Preparation
    # -----------------------------------------------------------------------

    async def _prepare(self) -> None:
        """Load case, resolve the assigned worker and build context."""
        case = await self._records.read(CASES, self.case_id)
        if case is None:
            raise CaseNotFoundError(self.case_id)

        worker = case.get("assignedWorker") or {}
        worker_id = worker.get("id")
        if not worker_id:
            raise NoAssignedWorkerError(self.case_id)

        if self.provider_id and self.provider_id != worker_id:
            logger.info(
                "Simulation for case %s requested by %s; assigned worker is %s",
                self.case_id, self.provider_id, worker_id,
            )

        provider = await self._records.read(PROVIDERS, worker_id)
        if provider is None:
            provider = {
                "id": worker_id,
                "providerName": worker.get("name"),
                "email": worker.get("email"),
                "contact": worker.get("contact"),
            }

        context = await self._context.get_context(
            self.case_id,
            render_case_query(case),
            limit=CONTEXT_LIMIT,
            threshold=CONTEXT_THRESHOLD,
        )
        self.provider = provider
        self.context = context

    def _context_text(self) -> str:
        assert self.context is not None
        return "\n\n".join(doc.content for doc in self.context.documents)

    async def _generate_json(self, template: str, variables: dict[str, Any], operation: str) -> str:
        return await call_upstream(
            self._executor.execute,
            template,
            variables,
            operation=operation,
            error_cls=UpstreamGenerationError,
            timeout_s=self._config.upstream_timeout_s,
            backoff_s=self._config.retry_backoff_s,
        )

    # -----------------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------------

    def resume(self, scenario: Scenario) -> None:
        """Continue from a scenario generated earlier (stateless callers)."""
        if self.state is not SimulationState.AWAITING_SCENARIO:
            raise InvalidSimulationStateError(f"Cannot resume a session in state {self.state.value}")
        self.scenario = scenario
        self.state = SimulationState.SCENARIO_GENERATED

    async def generate(self) -> Scenario:
        """
        Produce a scenario for the case.

        Raises:
            InvalidSimulationStateError: a scenario already exists
            CaseNotFoundError / NoAssignedWorkerError: nothing to simulate
            UpstreamGenerationError / MalformedModelOutputError: model failure
        """
        if self.state is not SimulationState.AWAITING_SCENARIO:
            raise InvalidSimulationStateError(
                f"generate() requires {SimulationState.AWAITING_SCENARIO.value}, "
                f"session is {self.state.value}"
            )

        tracer = get_tracer()
        with tracer.start_span(
            "simulation.generate",
            attributes={SIMULATION_ACTION: "generate", CASE_ID: self.case_id},
        ) as span:
            await self._prepare()
            span.set_attribute(PROVIDER_ID, str(self.provider["id"]))

            raw = await self._generate_json(
                SCENARIO_TEMPLATE, {"context": self._context_text()}, "scenario generation"
            )
            scenario = parse_model_json(Scenario, raw)
            span.set_status("ok")

        self.scenario = scenario
        self.state = SimulationState.SCENARIO_GENERATED
        logger.info("Generated scenario for case %s", self.case_id)
        return scenario

    async def evaluate(
        self,
        response: str,
        expected_elements: list[str] | None = None,
    ) -> SimulationEvaluation:
        """
        Grade the provider's response to the current scenario.

        Args:
            response: The provider's free-text answer
            expected_elements: Overrides the scenario's list when given

        Raises:
            InvalidSimulationStateError: no scenario, or already evaluated
            RequestValidationError: empty response
        """
        if self.state is not SimulationState.SCENARIO_GENERATED or self.scenario is None:
            raise InvalidSimulationStateError(
                f"evaluate() requires {SimulationState.SCENARIO_GENERATED.value}, "
                f"session is {self.state.value}"
            )
        if not response or not response.strip():
            raise RequestValidationError("A response is required", missing=["response"])

        elements = expected_elements if expected_elements is not None else self.scenario.expected_elements

        tracer = get_tracer()
        with tracer.start_span(
            "simulation.evaluate",
            attributes={SIMULATION_ACTION: "evaluate", CASE_ID: self.case_id},
        ) as span:
            if self.context is None:
                await self._prepare()

            raw = await self._generate_json(
                EVALUATION_TEMPLATE,
                {
                    "context": self._context_text(),
                    "scenario": self.scenario.scenario,
                    "response": response,
                    "expected_elements": json.dumps(elements),
                },
                "response evaluation",
            )
            evaluation = parse_model_json(SimulationEvaluation, raw)
            span.set_attribute(SIMULATION_SCORE, evaluation.score)
            span.set_status("ok")

        self.evaluation = evaluation
        self.state = SimulationState.EVALUATED
        logger.info("Evaluated simulation for case %s: score %.0f", self.case_id, evaluation.score)
        return evaluation


class SimulationService:
    def __init__(
        self,
        context: ContextAssembler,
        executor: PromptExecutor,
        records: RecordStore,
        config: EngineConfig,
    ):
        self._context = context
        self._executor = executor
        self._records = records
        self._config = config

    def session(self, case_id: str, provider_id: str | None = None) -> SimulationSession:
        return SimulationSession(
            case_id, provider_id, self._context, self._executor, self._records, self._config
        )

    async def run_simulation(
        self,
        request: SimulationRequest | dict[str, Any],
    ) -> Scenario | SimulationEvaluation:
        """
        Stateless entry point: {providerId, caseId, action, scenario?, response?, expectedElements?}.

        Raises:
            RequestValidationError: missing fields or unknown action
        """
        if not isinstance(request, SimulationRequest):
            request = SimulationRequest.from_payload(request)

        session = self.session(request.case_id, request.provider_id)
        if request.action == "generate":
            return await session.generate()

        if not request.scenario:
            raise RequestValidationError("evaluate requires a scenario", missing=["scenario"])
        session.resume(Scenario(scenario=request.scenario, expected_elements=request.expected_elements))
        return await session.evaluate(request.response or "", request.expected_elements)
