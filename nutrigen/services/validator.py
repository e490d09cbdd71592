from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from nutrigen.models.research import AspectResult, AspectStatus

MIN_RESULT_CONFIDENCE = 0.5


@dataclass(slots=True)
class ResultsValidation:
    is_valid: bool
    valid_results: list[AspectResult] = field(default_factory=list)
    has_errors: bool = False


@dataclass(slots=True)
class ReportReadiness:
    can_generate: bool
    reason: str | None = None


def validate_subagents(subagents: Sequence[str] | None) -> bool:
    return bool(subagents)


def validate_results(results: Sequence[AspectResult]) -> ResultsValidation:
    valid = [
        r for r in results
        if r.status is AspectStatus.COMPLETED and r.confidence > MIN_RESULT_CONFIDENCE
    ]
    return ResultsValidation(
        is_valid=bool(valid),
        valid_results=valid,
        has_errors=any(r.status is AspectStatus.ERROR for r in results),
    )


def _has_text_or_items(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    return False


def validate_synthesis(synthesis: Mapping[str, Any] | None) -> bool:
    if not synthesis or not isinstance(synthesis, Mapping):
        return False
    return _has_text_or_items(synthesis.get("summary")) and _has_text_or_items(
        synthesis.get("clinicalRecommendations")
    )


def can_generate_report(
    subagents: Sequence[str] | None,
    results: Sequence[AspectResult],
    synthesis: Mapping[str, Any] | None,
) -> ReportReadiness:
    if not validate_subagents(subagents):
        return ReportReadiness(False, "No hay aspectos de investigación válidos")
    if not validate_results(results).is_valid:
        return ReportReadiness(False, "No hay resultados válidos de análisis")
    if not validate_synthesis(synthesis):
        return ReportReadiness(False, "No se pudo generar síntesis clínica")
    return ReportReadiness(True)
