from __future__ import annotations

import time
from typing import Any, AsyncGenerator, Sequence
from uuid import uuid4

from loguru import logger

from nutrigen.agents.model_invoker import InvocationResult, ModelInvoker
from nutrigen.config import settings
from nutrigen.models.events import SSEEvent
from nutrigen.models.research import (
    AspectResult,
    AspectStatus,
    PipelineState,
    PlanResult,
    ResearchData,
    ResearchMode,
    ResearchPlan,
    ResearchSynthesis,
    SynthesisResult,
    TaskCategory,
)
from nutrigen.services import logger as log_service
from nutrigen.services import streaming
from nutrigen.services.error_handler import create_error_message, error_text
from nutrigen.services.formatter import format_aspect_result, format_content, format_synthesis
from nutrigen.services.performance import ModelSelector
from nutrigen.services.response_cache import ResponseStore, build_key
from nutrigen.services.routing import determine_research_mode, route_aspect
from nutrigen.services.task_group import gather_settled
from nutrigen.services.validator import validate_results, validate_subagents, validate_synthesis


NO_PLAN_MESSAGE = "No se pudieron generar aspectos de investigación"
NO_VALID_RESULTS_MESSAGE = "No hay resultados válidos para sintetizar"
INVALID_SYNTHESIS_MESSAGE = "Síntesis inválida"
BATCH_FAILURE_CONTENT = (
    "❌ Error: No se pudo analizar este aspecto. "
    "El servicio de IA no está disponible o falló."
)


class PipelineStageError(RuntimeError):
    """A pipeline stage produced nothing usable."""


def _normalize_aspects(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    cleaned: list[str] = []
    seen: set[str] = set()
    for item in raw:
        if not isinstance(item, str):
            continue
        aspect = " ".join(item.split())
        if not aspect or aspect.lower() in seen:
            continue
        seen.add(aspect.lower())
        cleaned.append(aspect)
    return cleaned


def _chunks(items: Sequence[str], size: int) -> list[list[str]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def _evidence_level(score: Any) -> str:
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return "Alta"
    percent = score * 100 if score <= 1 else score
    return f"Alta (Confianza: {percent:.0f}%)"


class ResearchOrchestrator:
    """Drives one nutrigenomics research query end to end.

    Flow:
      1. Plan: ask the planner model for 5-7 research aspects
      2. Analyze: run aspects in fixed-size batches, concurrently inside a batch
      3. Validate: keep completed results with confidence above 0.5
      4. Synthesize: one clinical synthesis call over the valid results

    ``research`` yields SSE events for every step. One instance serves one
    query; build a new one for the next query.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        *,
        cache: ResponseStore,
        tracker: ModelSelector,
        batch_size: int | None = None,
    ):
        self.invoker = invoker
        self.cache = cache
        self.tracker = tracker
        self.batch_size = max(int(batch_size or settings.research_batch_size), 1)
        self.state = PipelineState.IDLE
        self.plan: ResearchPlan | None = None
        self.results: list[AspectResult] = []
        self.synthesis: ResearchSynthesis | None = None
        self.error: BaseException | None = None

    async def _run_task(
        self,
        task: TaskCategory,
        payload: dict[str, Any],
        genotype_id: int | None = None,
    ) -> InvocationResult:
        model = self.tracker.best_model_for(task)
        key = build_key(task, payload, model)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Cache hit for {task.value} ({model})")
            return cached

        result = await self.invoker.invoke(task, payload, model)
        self.cache.set(
            key,
            result,
            model_id=result.meta.model,
            confidence=result.confidence,
            genotype_scoped=genotype_id is not None,
            genotype_id=genotype_id,
        )
        return result

    async def create_plan(
        self,
        query: str,
        mode: ResearchMode,
        genotype_id: int | None = None,
    ) -> PlanResult:
        try:
            result = await self._run_task(
                TaskCategory.PLANNING,
                {"query": query, "genotype_id": genotype_id},
                genotype_id,
            )
        except Exception as exc:
            logger.error(f"Planning failed: {error_text(exc)}")
            return PlanResult(success=False, error=exc)

        aspects = _normalize_aspects(result.items)
        if not validate_subagents(aspects):
            return PlanResult(success=False, error=PipelineStageError(NO_PLAN_MESSAGE))
        return PlanResult(success=True, plan=ResearchPlan(subagents=tuple(aspects), research_mode=mode))

    async def _analyze_aspect(self, aspect: str, query: str, genotype_id: int | None) -> AspectResult:
        task = route_aspect(aspect)
        payload = {
            "aspect": aspect,
            "main_topic": query,
            "topic": query,
            "genotype_id": genotype_id,
        }
        result = await self._run_task(task, payload, genotype_id)

        if result.fields:
            content = format_aspect_result(result.fields) or format_content(result.fields)
        elif result.items is not None:
            content = format_content(result.items)
        else:
            content = format_content(result.content)
        if not content.strip():
            content = f"Análisis de {aspect} completado exitosamente."

        return AspectResult(
            aspect=aspect,
            content=content,
            status=AspectStatus.COMPLETED,
            confidence=result.confidence,
        )

    async def _run_batch(
        self,
        batch: Sequence[str],
        query: str,
        genotype_id: int | None,
    ) -> list[AspectResult]:
        outcomes = await gather_settled(
            self._analyze_aspect(aspect, query, genotype_id) for aspect in batch
        )
        results: list[AspectResult] = []
        for aspect, outcome in zip(batch, outcomes):
            if outcome.ok:
                results.append(outcome.value)
                continue
            logger.warning(f"Analysis of '{aspect}' failed: {error_text(outcome.error)}")
            results.append(
                AspectResult(
                    aspect=aspect,
                    content=BATCH_FAILURE_CONTENT,
                    status=AspectStatus.ERROR,
                    confidence=0.0,
                )
            )
        return results

    async def execute_batch_analysis(
        self,
        aspects: Sequence[str],
        query: str,
        batch_size: int | None = None,
        genotype_id: int | None = None,
    ) -> list[AspectResult]:
        """Analyze every aspect; one result per aspect, in input order."""
        size = max(int(batch_size or self.batch_size), 1)
        results: list[AspectResult] = []
        for batch in _chunks(aspects, size):
            results.extend(await self._run_batch(batch, query, genotype_id))
        return results

    async def synthesize_report(
        self,
        query: str,
        results: Sequence[AspectResult],
        genotype_id: int | None = None,
    ) -> SynthesisResult:
        validation = validate_results(results)
        if not validation.is_valid:
            return SynthesisResult(success=False, error=PipelineStageError(NO_VALID_RESULTS_MESSAGE))

        research_data = [
            ResearchData(title=r.aspect, content=r.content).to_prompt_dict()
            for r in validation.valid_results
        ]
        try:
            result = await self._run_task(
                TaskCategory.CLINICAL_SYNTHESIS,
                {"topic": query, "research_data": research_data, "genotype_id": genotype_id},
                genotype_id,
            )
        except Exception as exc:
            logger.error(f"Synthesis failed: {error_text(exc)}")
            return SynthesisResult(success=False, error=exc)

        if not validate_synthesis(result.fields):
            return SynthesisResult(success=False, error=PipelineStageError(INVALID_SYNTHESIS_MESSAGE))

        formatted = format_synthesis(result.fields)
        return SynthesisResult(
            success=True,
            synthesis=ResearchSynthesis(
                summary=formatted.summary,
                recommendations=tuple(formatted.recommendations),
                evidence_level=_evidence_level(result.fields.get("confidenceScore")),
            ),
        )

    def _fail(self, run_id: str, stage: str, error: BaseException | None, context: str) -> SSEEvent:
        self.state = PipelineState.FAILED
        self.error = error
        log_service.log_research_step(run_id, stage, "failed", {"error": error_text(error)})
        return streaming.error(create_error_message(error, context), stage=stage)

    async def research(
        self,
        query: str,
        mode: ResearchMode | str | None = None,
        genotype_id: int | None = None,
    ) -> AsyncGenerator[SSEEvent, None]:
        """Execute the full research pipeline, yielding SSE events throughout."""
        run_id = uuid4().hex
        started_at = time.monotonic()
        try:
            research_mode = ResearchMode(mode) if mode else determine_research_mode(query)

            # Stage 1: plan
            self.state = PipelineState.PLANNING
            log_service.log_research_step(run_id, "planning", "started", {"query": query, "mode": research_mode.value})
            yield streaming.agent_started("planner", query=query)
            plan_result = await self.create_plan(query, research_mode, genotype_id)
            if not plan_result.success or plan_result.plan is None:
                yield self._fail(run_id, "planning", plan_result.error, "No se pudo crear el plan de investigación")
                return
            self.plan = plan_result.plan
            yield streaming.plan_created(query, self.plan)

            # Stage 2: batched analysis
            self.state = PipelineState.ANALYZING
            log_service.log_research_step(run_id, "analysis", "started", {"aspects": len(self.plan.subagents)})
            step = 0
            for batch in _chunks(self.plan.subagents, self.batch_size):
                for offset, aspect in enumerate(batch):
                    yield streaming.agent_started("analysis", step=step + offset, aspect=aspect)
                batch_results = await self._run_batch(batch, query, genotype_id)
                for offset, result in enumerate(batch_results):
                    yield streaming.aspect_completed(step + offset, result)
                self.results.extend(batch_results)
                step += len(batch)

            # Stage 3: synthesis
            self.state = PipelineState.SYNTHESIZING
            valid_count = len(validate_results(self.results).valid_results)
            log_service.log_research_step(run_id, "synthesis", "started", {"valid_results": valid_count})
            yield streaming.synthesis_started(valid_count)
            synthesis_result = await self.synthesize_report(query, self.results, genotype_id)
            if not synthesis_result.success or synthesis_result.synthesis is None:
                yield self._fail(run_id, "synthesis", synthesis_result.error, "No se pudo generar la síntesis clínica")
                return

            self.synthesis = synthesis_result.synthesis
            self.state = PipelineState.DONE
            runtime_ms = int((time.monotonic() - started_at) * 1000)
            log_service.log_research_step(run_id, "research", "completed", {"runtime_ms": runtime_ms})
            yield streaming.research_complete(self.synthesis, self.results, runtime_ms=runtime_ms)

        except Exception as e:
            logger.exception(f"Research failed with error: {e}")
            yield self._fail(run_id, "research", e, "La investigación falló")
