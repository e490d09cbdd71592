from __future__ import annotations

import pytest

from nutrigen.models.research import TaskCategory
from nutrigen.services.prompt_store import build_task_prompt, clear_prompt_cache, render_prompt


def test_render_prompt_substitutes_template_values():
    prompt = render_prompt("research.planning", query="MTHFR y folato")
    assert '"MTHFR y folato"' in prompt
    assert "array JSON" in prompt


def test_render_prompt_raises_for_unknown_key():
    with pytest.raises(KeyError):
        render_prompt("missing.prompt.key")


def test_render_prompt_names_missing_value():
    with pytest.raises(KeyError, match="query"):
        render_prompt("research.planning")


def test_clear_prompt_cache_reloads_catalog():
    first = render_prompt("research.planning", query="a")
    clear_prompt_cache()
    assert render_prompt("research.planning", query="a") == first


def test_analysis_prompt_requests_markdown_headings():
    prompt = build_task_prompt(
        TaskCategory.GENETIC_ANALYSIS,
        {"aspect": "Genética de MTHFR", "main_topic": "folato"},
        "gemini-2.0-flash",
    )
    assert "## Análisis Genético Completo" in prompt
    assert "## Genes y Polimorfismos Analizados" in prompt
    assert "## Referencias" in prompt
    assert "INSTRUCCIONES ESPECÍFICAS" not in prompt


def test_synthesis_prompt_embeds_research_data_as_json():
    prompt = build_task_prompt(
        TaskCategory.CLINICAL_SYNTHESIS,
        {"topic": "MTHFR", "research_data": [{"title": "Genética", "content": "C677T"}]},
    )
    assert '"title": "Genética"' in prompt
    assert '"clinicalRecommendations"' in prompt


def test_genotype_context_and_model_addendum_are_appended():
    prompt = build_task_prompt(
        TaskCategory.PLANNING,
        {"query": "MTHFR", "genotype_id": 1},
        "gemini-2.0-pro",
    )
    assert "CONTEXTO DEL GENOTIPO 1 (Hunter)" in prompt
    assert "RAZONAMIENTO NUTRIGENÓMICO" in prompt


def test_unknown_genotype_adds_no_context():
    prompt = build_task_prompt(TaskCategory.PLANNING, {"query": "MTHFR", "genotype_id": 99})
    assert "CONTEXTO DEL GENOTIPO" not in prompt
