from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any, Mapping

from nutrigen.models.research import TaskCategory
from nutrigen.services.genotypes import genotype_context

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"
_catalog_cache: dict[str, Any] | None = None
_catalog_mtime_ns: int | None = None

TASK_PROMPT_KEYS: dict[TaskCategory, str] = {
    TaskCategory.PLANNING: "research.planning",
    TaskCategory.GENETIC_ANALYSIS: "research.genetic_analysis",
    TaskCategory.METABOLIC_RESEARCH: "research.metabolic_research",
    TaskCategory.EPIGENETIC_STUDY: "research.epigenetic_study",
    TaskCategory.LITERATURE_REVIEW: "research.literature_review",
    TaskCategory.CLINICAL_SYNTHESIS: "research.clinical_synthesis",
}

MODEL_ADDENDA: dict[str, str] = {
    "gemini-1.5-pro": "model_addenda.deep_context",
    "gemini-2.0-pro": "model_addenda.medical_reasoning",
}


def _load_catalog() -> dict[str, Any]:
    global _catalog_cache, _catalog_mtime_ns
    mtime_ns = PROMPTS_PATH.stat().st_mtime_ns
    if _catalog_cache is not None and _catalog_mtime_ns == mtime_ns:
        return _catalog_cache

    payload = json.loads(PROMPTS_PATH.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Prompt catalog must be a JSON object.")
    _catalog_cache = payload
    _catalog_mtime_ns = mtime_ns
    return payload


def _resolve_prompt_entry(key: str) -> str:
    node: Any = _load_catalog()
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(f"Prompt key not found: {key}")
        node = node[part]
    if not isinstance(node, str):
        raise TypeError(f"Prompt key must map to a string: {key}")
    return node


def render_prompt(key: str, **values: Any) -> str:
    template = Template(_resolve_prompt_entry(key))
    try:
        return template.substitute(**values)
    except KeyError as exc:
        missing = str(exc.args[0])
        raise KeyError(f"Missing template value '{missing}' for prompt '{key}'") from exc


def clear_prompt_cache() -> None:
    global _catalog_cache, _catalog_mtime_ns
    _catalog_cache = None
    _catalog_mtime_ns = None


def _task_values(task: TaskCategory, payload: Mapping[str, Any]) -> dict[str, Any]:
    query = payload.get("query") or payload.get("main_topic") or payload.get("topic") or ""
    if task is TaskCategory.PLANNING:
        return {"query": query}
    if task is TaskCategory.LITERATURE_REVIEW:
        return {"topic": payload.get("topic") or query}
    if task is TaskCategory.CLINICAL_SYNTHESIS:
        research_data = payload.get("research_data") or []
        return {
            "topic": payload.get("topic") or query,
            "research_data": json.dumps(research_data, ensure_ascii=False, indent=2),
        }
    return {
        "aspect": payload.get("aspect") or query,
        "main_topic": payload.get("main_topic") or query,
    }


def build_task_prompt(task: TaskCategory, payload: Mapping[str, Any], model: str | None = None) -> str:
    """Render the complete prompt for one task category.

    ``payload`` keys by task:
      PLANNING: query, genotype_id
      GENETIC_ANALYSIS / METABOLIC_RESEARCH / EPIGENETIC_STUDY: aspect, main_topic, genotype_id
      LITERATURE_REVIEW: topic
      CLINICAL_SYNTHESIS: topic, research_data (list of dicts)
    """
    prompt = render_prompt(TASK_PROMPT_KEYS[task], **_task_values(task, payload))

    context = genotype_context(payload.get("genotype_id"))
    if context:
        prompt += render_prompt("research.genotype_block", genotype_context=context)

    addendum_key = MODEL_ADDENDA.get(model or "")
    if addendum_key:
        prompt += render_prompt(addendum_key)
    return prompt
