"""Turn heterogeneous model output (Markdown, JSON objects, JSON arrays) into
display-ready Markdown text.

Every function here is total: unrecognised shapes fall back to ``str(x)``
and nothing raises on malformed input.
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

PRIORITY_FIELDS: tuple[str, ...] = (
    "content",
    "summary",
    "report",
    "geneticProfile",
    "metabolicAnalysis",
    "epigeneticFactors",
    "clinicalRecommendations",
    "description",
    "text",
)

FIELD_LABELS: dict[str, str] = {
    "content": "Contenido",
    "summary": "Resumen",
    "report": "Reporte",
    "geneticProfile": "Perfil Genético",
    "metabolicAnalysis": "Análisis Metabólico",
    "epigeneticFactors": "Factores Epigenéticos",
    "clinicalRecommendations": "Recomendaciones Clínicas",
    "geneAnalysis": "Análisis Genético",
    "metabolicInsights": "Insights Metabólicos",
    "epigeneticFindings": "Hallazgos Epigenéticos",
    "clinicalApplications": "Aplicaciones Clínicas",
    "sources": "Referencias",
    "confidenceLevel": "Nivel de Confianza",
    "confidenceScore": "Nivel de Confianza",
    "evidenceLevel": "Nivel de Evidencia",
}

INTERNAL_FIELDS = frozenset({"_meta"})

GENE_DETAIL_LABELS: tuple[tuple[str, str], ...] = (
    ("polymorphism", "Polimorfismo"),
    ("function", "Función"),
    ("impact", "Impacto"),
    ("alleleFrequency", "Frecuencia Alélica"),
    ("clinicalSignificance", "Significado Clínico"),
)

NUMBERED_SECTIONS: tuple[tuple[str, str], ...] = (
    ("metabolicInsights", "Insights Metabólicos"),
    ("epigeneticFindings", "Hallazgos Epigenéticos"),
    ("clinicalApplications", "Aplicaciones Clínicas"),
)

SYNTHESIS_SECTIONS: tuple[tuple[str, str], ...] = (
    ("geneticProfile", "Perfil Genético Integrado"),
    ("metabolicAnalysis", "Análisis Metabólico Conjunto"),
    ("epigeneticFactors", "Factores Epigenéticos"),
)


@dataclass(slots=True)
class FormattedSynthesis:
    summary: str = ""
    recommendations: list[str] = field(default_factory=list)


def field_label(key: str) -> str:
    if key in FIELD_LABELS:
        return FIELD_LABELS[key]
    return key[:1].upper() + key[1:]


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "Sí" if value else "No"
    return str(value)


def _format_list(items: list[Any] | tuple[Any, ...]) -> str:
    if not items:
        return ""
    if all(isinstance(item, str) for item in items):
        return "\n\n".join(items)

    parts: list[str] = []
    for index, item in enumerate(items, 1):
        text = item if isinstance(item, str) else _format_structured(item)
        if text:
            parts.append(f"{index}. {text}")
    return "\n\n".join(parts)


def _format_mapping(obj: Mapping[str, Any]) -> str:
    lines: list[str] = []

    for key in PRIORITY_FIELDS:
        value = obj.get(key)
        if isinstance(value, str):
            if value.strip():
                lines.append(value)
        elif isinstance(value, (list, tuple, Mapping)):
            text = _format_structured(value)
            if text:
                lines.append(text)

    for key, value in obj.items():
        if key in PRIORITY_FIELDS or key in INTERNAL_FIELDS or value is None:
            continue
        label = field_label(str(key))
        if isinstance(value, str):
            if value.strip():
                lines.append(f"**{label}:** {value}")
        elif isinstance(value, (list, tuple)):
            if value:
                lines.append(f"**{label}:**\n{_format_list(value)}")
        elif isinstance(value, Mapping):
            lines.append(f"**{label}:**\n{_format_mapping(value)}")
        else:
            lines.append(f"**{label}:** {_scalar_text(value)}")

    return "\n\n".join(lines)


def _format_structured(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return _format_list(value)
    if isinstance(value, Mapping):
        return _format_mapping(value)
    return _scalar_text(value)


def _looks_like_json(text: str) -> bool:
    stripped = text.strip()
    return stripped.startswith("{") or stripped.startswith("[")


def _render(value: Any, fallback: str) -> str:
    # Deeply nested input can exhaust the recursion limit.
    try:
        return _format_structured(value)
    except Exception:
        return fallback


def format_content(raw: Any) -> str:
    """Render any model output shape as Markdown text."""
    if raw is None or raw == "":
        return ""
    if not isinstance(raw, str):
        return _render(raw, str(raw))
    if not _looks_like_json(raw):
        return raw
    try:
        parsed = json.loads(raw)
    except (ValueError, RecursionError):
        return raw
    if isinstance(parsed, (list, Mapping)):
        return _render(parsed, raw)
    return raw


def _numbered(items: list[Any]) -> list[str]:
    return [f"{index}. {format_content(item)}" for index, item in enumerate(items, 1)]


def format_aspect_result(result: Any) -> str:
    """Assemble one analysis result (content, gene tables, references) as Markdown."""
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    if not isinstance(result, Mapping):
        return str(result)

    parts: list[str] = []
    if result.get("content"):
        parts.append(format_content(result["content"]))

    genes = result.get("geneAnalysis")
    if isinstance(genes, list) and genes:
        parts.append("## Análisis Genético\n")
        for index, gene in enumerate(genes, 1):
            if not isinstance(gene, Mapping):
                continue
            parts.append(f"### {gene.get('gene') or f'Gen {index}'}")
            for key, label in GENE_DETAIL_LABELS:
                if gene.get(key):
                    parts.append(f"**{label}:** {gene[key]}")
            parts.append("")

    for key, title in NUMBERED_SECTIONS:
        items = result.get(key)
        if isinstance(items, list) and items:
            parts.append(f"## {title}\n")
            parts.extend(_numbered(items))
            parts.append("")

    sources = result.get("sources")
    if isinstance(sources, list) and sources:
        parts.append("## Referencias\n")
        for index, source in enumerate(sources, 1):
            if isinstance(source, Mapping) and source.get("title"):
                uri = f" - {source['uri']}" if source.get("uri") else ""
                parts.append(f"{index}. {source['title']}{uri}")
            elif isinstance(source, str):
                parts.append(f"{index}. {source}")

    return "\n".join(parts)


def _recommendation_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [item if isinstance(item, str) else format_content(item) for item in value]
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return [value]
        if isinstance(parsed, list):
            return [item if isinstance(item, str) else format_content(item) for item in parsed]
        return [value]
    return [format_content(value)]


def format_synthesis(synthesis: Mapping[str, Any] | None) -> FormattedSynthesis:
    """Extract display summary and recommendations from a synthesis object."""
    if not synthesis:
        return FormattedSynthesis()

    summary = ""
    raw_summary = synthesis.get("summary")
    if isinstance(raw_summary, list):
        summary = "\n\n".join(format_content(item) for item in raw_summary)
    elif raw_summary:
        summary = format_content(raw_summary)

    recommendations: list[str] = []
    if synthesis.get("clinicalRecommendations"):
        recommendations = _recommendation_list(synthesis["clinicalRecommendations"])

    # A full Markdown report, when present, replaces the bullet summary.
    report = synthesis.get("report")
    if report:
        summary = report if isinstance(report, str) else format_content(report)

    sections = [
        f"## {title}\n\n{format_content(synthesis[key])}"
        for key, title in SYNTHESIS_SECTIONS
        if synthesis.get(key)
    ]
    if sections:
        summary = summary + "\n\n" + "\n\n".join(sections)

    return FormattedSynthesis(summary=summary, recommendations=recommendations)
