from __future__ import annotations

from nutrigen.models.research import AspectResult, AspectStatus
from nutrigen.services.validator import (
    can_generate_report,
    validate_results,
    validate_subagents,
    validate_synthesis,
)

GOOD = AspectResult("Genética", "ok", AspectStatus.COMPLETED, 0.8)
BORDERLINE = AspectResult("Metabolismo", "ok", AspectStatus.COMPLETED, 0.5)
FAILED = AspectResult("Epigenética", "err", AspectStatus.ERROR, 0.0)


def test_validate_subagents():
    assert validate_subagents(["a"])
    assert not validate_subagents([])
    assert not validate_subagents(None)


def test_validate_results_requires_confidence_above_half():
    validation = validate_results([GOOD, BORDERLINE, FAILED])

    assert validation.is_valid
    assert validation.valid_results == [GOOD]
    assert validation.has_errors


def test_validate_results_with_nothing_valid():
    validation = validate_results([BORDERLINE])
    assert not validation.is_valid
    assert not validation.has_errors


def test_validate_synthesis_needs_summary_and_recommendations():
    assert not validate_synthesis({"summary": "x", "clinicalRecommendations": []})
    assert validate_synthesis({"summary": "x", "clinicalRecommendations": ["a"]})
    assert validate_synthesis({"summary": ["x"], "clinicalRecommendations": "a"})
    assert not validate_synthesis({"summary": "  ", "clinicalRecommendations": ["a"]})
    assert not validate_synthesis(None)


def test_can_generate_report_short_circuits_in_order():
    synthesis = {"summary": "x", "clinicalRecommendations": ["a"]}

    assert can_generate_report([], [GOOD], synthesis).reason == "No hay aspectos de investigación válidos"
    assert can_generate_report(["a"], [FAILED], synthesis).reason == "No hay resultados válidos de análisis"
    assert can_generate_report(["a"], [GOOD], {}).reason == "No se pudo generar síntesis clínica"

    ready = can_generate_report(["a"], [GOOD], synthesis)
    assert ready.can_generate
    assert ready.reason is None
