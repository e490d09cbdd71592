from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Sequence

from loguru import logger

from nutrigen.config import settings
from nutrigen.llm_client import client as llm_client
from nutrigen.models.research import TaskCategory, strategy_for
from nutrigen.services import logger as log_service
from nutrigen.services.error_handler import ErrorKind, classify_error, error_text
from nutrigen.services.performance import ModelSelector
from nutrigen.services.prompt_store import build_task_prompt


BASE_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95
LONG_RESPONSE_CHARS = 1000

# Each matching group adds 0.1 to the base confidence.
CONFIDENCE_SIGNALS: tuple[tuple[str, ...], ...] = (
    ("snp", "polimorfismo"),
    ("metabolismo", "enzima"),
    ("epigenético", "metilación"),
    ("estudio", "evidencia"),
    ("recomendación", "clínico"),
)


class ModelInvocationError(RuntimeError):
    """Every candidate model failed for one task."""

    def __init__(self, task: TaskCategory, attempted: Sequence[str], last_error: BaseException | None):
        self.task = task
        self.attempted = list(attempted)
        self.last_error = last_error
        detail = error_text(last_error) if last_error is not None else "sin respuesta"
        super().__init__(
            f"Todos los modelos fallaron para {task.value} "
            f"(intentados: {', '.join(self.attempted)}): {detail}"
        )


@dataclass(frozen=True, slots=True)
class ParsedResponse:
    kind: Literal["structured", "text"]
    value: Any


@dataclass(frozen=True, slots=True)
class InvocationMeta:
    model: str
    requested_model: str
    latency_ms: int
    confidence: float
    task: TaskCategory

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "requested_model": self.requested_model,
            "latency_ms": self.latency_ms,
            "confidence": self.confidence,
            "task": self.task.value,
        }


@dataclass(slots=True)
class InvocationResult:
    content: str
    parsed: ParsedResponse
    confidence: float
    meta: InvocationMeta
    fields: dict[str, Any] = field(default_factory=dict)
    items: list[Any] | None = None


def strip_code_fence(text: str) -> str:
    """Remove one surrounding ```/```json fence, if present."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    body = stripped[3:]
    newline = body.find("\n")
    if newline >= 0 and not body[:newline].strip().startswith(("{", "[")):
        body = body[newline + 1 :]
    if body.rstrip().endswith("```"):
        body = body.rstrip()[:-3]
    return body.strip()


def parse_response(text: str) -> ParsedResponse:
    cleaned = strip_code_fence(text)
    if cleaned[:1] in ("{", "["):
        try:
            value = json.loads(cleaned)
        except (ValueError, RecursionError):
            return ParsedResponse(kind="text", value=cleaned)
        if isinstance(value, (dict, list)):
            return ParsedResponse(kind="structured", value=value)
    return ParsedResponse(kind="text", value=cleaned)


def score_confidence(text: str) -> float:
    lowered = text.lower()
    score = BASE_CONFIDENCE
    for keywords in CONFIDENCE_SIGNALS:
        if any(keyword in lowered for keyword in keywords):
            score += 0.1
    if len(text) > LONG_RESPONSE_CHARS:
        score += 0.1
    return round(min(score, MAX_CONFIDENCE), 4)


def _candidate_models(preferred: str, chain: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(m for m in (preferred, *chain) if m))


class ModelInvoker:
    """Runs one task prompt against Gemini, walking the fallback chain.

    Only model-unavailable errors move on to the next candidate. Quota,
    auth and network failures propagate to the caller immediately.
    """

    def __init__(
        self,
        client: Any = None,
        tracker: ModelSelector | None = None,
        fallback_chain: Sequence[str] | None = None,
    ):
        self.client = client
        self.tracker = tracker
        self.fallback_chain = list(
            fallback_chain if fallback_chain is not None else settings.model_fallback_list
        )

    def _record(self, model: str, task: TaskCategory, success: bool, latency_ms: int, confidence: float) -> None:
        if self.tracker is not None:
            self.tracker.record_outcome(model, task, success, latency_ms, confidence)

    def _build_result(
        self,
        task: TaskCategory,
        text: str,
        model: str,
        requested_model: str,
        latency_ms: int,
    ) -> InvocationResult:
        confidence = score_confidence(text)
        meta = InvocationMeta(
            model=model,
            requested_model=requested_model,
            latency_ms=latency_ms,
            confidence=confidence,
            task=task,
        )
        parsed = parse_response(text)

        if parsed.kind == "structured" and isinstance(parsed.value, list):
            return InvocationResult(
                content="",
                parsed=parsed,
                confidence=confidence,
                meta=meta,
                items=parsed.value,
            )
        if parsed.kind == "structured":
            fields = dict(parsed.value)
            fields["_meta"] = meta.to_dict()
            content = parsed.value.get("content")
            return InvocationResult(
                content=content if isinstance(content, str) else "",
                parsed=parsed,
                confidence=confidence,
                meta=meta,
                fields=fields,
            )

        if task is TaskCategory.PLANNING:
            logger.warning(f"Planning response from {model} was not JSON; returning raw text")
        return InvocationResult(content=parsed.value, parsed=parsed, confidence=confidence, meta=meta)

    async def invoke(
        self,
        task: TaskCategory,
        payload: Mapping[str, Any],
        preferred_model: str | None = None,
    ) -> InvocationResult:
        strategy = strategy_for(task)
        requested = preferred_model or strategy.primary_model
        candidates = _candidate_models(requested, self.fallback_chain)
        active_client = self.client or llm_client()

        attempted: list[str] = []
        last_error: BaseException | None = None
        for model in candidates:
            attempted.append(model)
            prompt = build_task_prompt(task, payload, model)
            t0 = time.monotonic()
            try:
                response = await active_client.generate(
                    model=model,
                    prompt=prompt,
                    temperature=strategy.temperature,
                    top_k=strategy.top_k,
                    top_p=strategy.top_p,
                    max_output_tokens=strategy.max_output_tokens,
                )
            except Exception as exc:
                elapsed_ms = int((time.monotonic() - t0) * 1000)
                self._record(model, task, False, elapsed_ms, 0.0)
                log_service.log_llm_call(
                    model=model,
                    caller=task.value.lower(),
                    duration_ms=elapsed_ms,
                    status="error",
                    error=error_text(exc),
                    requested_model=requested,
                )
                if classify_error(exc) is not ErrorKind.MODEL_UNAVAILABLE:
                    raise
                logger.warning(f"Model {model} unavailable for {task.value}, trying next candidate")
                last_error = exc
                continue

            elapsed_ms = int((time.monotonic() - t0) * 1000)
            result = self._build_result(task, response.text or "", model, requested, elapsed_ms)
            self._record(model, task, True, elapsed_ms, result.confidence)
            usage = getattr(response, "usage", None)
            log_service.log_llm_call(
                model=model,
                caller=task.value.lower(),
                input_tokens=getattr(usage, "input_tokens", 0) if usage else 0,
                output_tokens=getattr(usage, "output_tokens", 0) if usage else 0,
                duration_ms=elapsed_ms,
                requested_model=requested,
            )
            return result

        raise ModelInvocationError(task, attempted, last_error)
