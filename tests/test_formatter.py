from __future__ import annotations

import json

from nutrigen.services.formatter import (
    format_aspect_result,
    format_content,
    format_synthesis,
)


def test_plain_text_is_returned_verbatim_and_idempotent():
    text = "## Análisis Genético Completo\n\nEl gen MTHFR..."
    once = format_content(text)
    assert once == text
    assert format_content(once) == once


def test_invalid_json_looking_text_is_returned_verbatim():
    assert format_content("{not json") == "{not json"
    assert format_content("[1] Smith et al.") == "[1] Smith et al."


def test_deeply_nested_json_text_is_returned_verbatim():
    parses = "[" * 600 + "]" * 600
    too_deep_to_parse = "[" * 5000 + "]" * 5000
    assert format_content(parses) == parses
    assert format_content(too_deep_to_parse) == too_deep_to_parse


def test_string_list_is_joined_with_blank_lines():
    assert format_content(json.dumps(["uno", "dos"])) == "uno\n\ndos"


def test_mixed_list_is_numbered():
    assert format_content(["texto", {"content": "objeto"}]) == "1. texto\n\n2. objeto"


def test_mapping_puts_priority_fields_first_and_labels_the_rest():
    raw = {
        "sources": ["PMID 1"],
        "content": "Contenido principal",
        "_meta": {"model": "x"},
        "confidenceScore": 0.8,
    }
    out = format_content(raw)

    assert out.startswith("Contenido principal")
    assert "**Referencias:**\nPMID 1" in out
    assert "**Nivel de Confianza:** 0.8" in out
    assert "_meta" not in out


def test_format_content_handles_empty_and_scalars():
    assert format_content(None) == ""
    assert format_content("") == ""
    assert format_content(7) == "7"


def test_format_aspect_result_renders_genes_and_references():
    out = format_aspect_result(
        {
            "content": "Resumen",
            "geneAnalysis": [{"gene": "MTHFR", "polymorphism": "C677T"}],
            "clinicalApplications": ["Metilfolato"],
            "sources": [{"title": "Estudio", "uri": "https://example.org"}, "Libro"],
        }
    )

    assert "### MTHFR" in out
    assert "**Polimorfismo:** C677T" in out
    assert "## Aplicaciones Clínicas" in out
    assert "1. Estudio - https://example.org" in out
    assert "2. Libro" in out


def test_format_synthesis_prefers_report_and_appends_sections():
    formatted = format_synthesis(
        {
            "summary": ["punto"],
            "report": "# Reporte completo",
            "geneticProfile": "perfil",
            "clinicalRecommendations": '["a", "b"]',
        }
    )

    assert formatted.summary.startswith("# Reporte completo")
    assert "## Perfil Genético Integrado\n\nperfil" in formatted.summary
    assert "punto" not in formatted.summary
    assert formatted.recommendations == ["a", "b"]


def test_format_synthesis_of_empty_input():
    formatted = format_synthesis(None)
    assert formatted.summary == ""
    assert formatted.recommendations == []
