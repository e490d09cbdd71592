from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Sequence

from loguru import logger

from nutrigen.config import settings
from nutrigen.llm_client import client as llm_client
from nutrigen.models.history import GeneratedPrompt, PatientCase, TargetPlatform
from nutrigen.services import logger as log_service
from nutrigen.services.error_handler import (
    ErrorKind,
    classify_error,
    create_error_message,
    error_text,
)
from nutrigen.services.genotypes import get_genotype
from nutrigen.services.prompt_store import render_prompt


MIN_PROMPT_CHARS = 100
GENERATOR_TEMPERATURE = 0.7
GENERATOR_TOP_K = 40
GENERATOR_TOP_P = 0.95
GENERATOR_MAX_TOKENS = 8192
TRANSIENT_STATUS_MARKERS = ("429", "500", "502", "503", "504")

PLATFORMS: dict[str, tuple[str, str]] = {
    "gemini-deep-research": ("Gemini Deep Research", "prompt_generator.gemini_deep_research"),
    "claude": ("Claude", "prompt_generator.claude"),
}

BMI_CATEGORIES: tuple[tuple[float, str], ...] = (
    (18.5, "Bajo peso"),
    (25.0, "Peso normal"),
    (30.0, "Sobrepeso"),
    (35.0, "Obesidad grado I"),
    (40.0, "Obesidad grado II"),
)

# (attribute, label) pairs rendered in this order when present.
CLINICAL_SECTIONS: tuple[tuple[str, str], ...] = (
    ("medical_history", "Historia médica"),
    ("symptoms", "Síntomas actuales"),
    ("current_medications", "Medicamentos actuales"),
    ("allergies", "Alergias"),
    ("chronic_conditions", "Condiciones crónicas"),
    ("family_history", "Antecedentes familiares"),
    ("lab_results", "Resultados de laboratorio"),
    ("current_diet", "Dieta actual"),
    ("dietary_restrictions", "Restricciones dietéticas"),
    ("research_focus", "Enfoque de la investigación"),
    ("specific_questions", "Preguntas específicas"),
)


class PromptTooShortError(ValueError):
    """The model answered with an empty or truncated prompt."""


@dataclass(slots=True)
class PromptGenerationResult:
    success: bool
    prompt: GeneratedPrompt | None = None
    error: str | None = None


def calculate_bmi(height_cm: Any, weight_kg: Any) -> float | None:
    try:
        height = float(height_cm)
        weight = float(weight_kg)
    except (TypeError, ValueError):
        return None
    if height <= 0 or weight <= 0:
        return None
    return round(weight / (height / 100) ** 2, 1)


def bmi_category(bmi: float) -> str:
    for upper, label in BMI_CATEGORIES:
        if bmi < upper:
            return label
    return "Obesidad grado III"


def case_summary(case: PatientCase) -> str:
    parts = [case.patient_name]
    if case.age is not None:
        parts.append(f"{case.age} años")
    if case.sex:
        parts.append(case.sex)
    summary = ", ".join(parts)
    if case.genotype_id is not None:
        genotype = get_genotype(case.genotype_id)
        name = case.genotype_name or (genotype.name if genotype else "")
        summary += f" - Genotipo {case.genotype_id}" + (f" ({name})" if name else "")
    return summary


def patient_context(case: PatientCase) -> str:
    lines = [f"**Paciente:** {case.patient_name}"]
    if case.age is not None:
        lines.append(f"**Edad:** {case.age} años")
    if case.sex:
        lines.append(f"**Sexo:** {case.sex}")
    if case.height_cm:
        lines.append(f"**Altura:** {case.height_cm} cm")
    if case.weight_kg:
        lines.append(f"**Peso:** {case.weight_kg} kg")

    bmi = case.bmi if case.bmi is not None else calculate_bmi(case.height_cm, case.weight_kg)
    if bmi is not None:
        lines.append(f"**IMC:** {bmi} ({bmi_category(bmi)})")
    if case.body_composition:
        lines.append(f"**Composición corporal:** {case.body_composition}")

    genotype = get_genotype(case.genotype_id)
    if genotype is not None:
        lines.extend(
            [
                "",
                f"**Genotipo:** {genotype.id} - {case.genotype_name or genotype.name}",
                f"- Esencia: {genotype.essence}",
                f"- Superalimentos: {', '.join(genotype.superfoods)}",
                f"- Alimentos a evitar: {', '.join(genotype.toxins)}",
            ]
        )

    for attr, label in CLINICAL_SECTIONS:
        value = getattr(case, attr)
        if value:
            lines.extend(["", f"**{label}:**", value])
    return "\n".join(lines)


def build_meta_prompt(case: PatientCase, platform: TargetPlatform) -> str:
    platform_name, instructions_key = PLATFORMS[platform]
    return render_prompt(
        "prompt_generator.meta_prompt",
        platform_name=platform_name,
        platform_instructions=render_prompt(instructions_key),
        patient_context=patient_context(case),
    )


def _is_transient(error: BaseException) -> bool:
    if classify_error(error) is ErrorKind.NETWORK_FAILURE:
        return True
    text = error_text(error)
    return any(marker in text for marker in TRANSIENT_STATUS_MARKERS)


async def _generate_with_fallback(active_client: Any, prompt: str, models: Sequence[str]) -> str:
    last_error: BaseException | None = None
    for model in models:
        t0 = time.monotonic()
        try:
            response = await active_client.generate(
                model=model,
                prompt=prompt,
                temperature=GENERATOR_TEMPERATURE,
                top_k=GENERATOR_TOP_K,
                top_p=GENERATOR_TOP_P,
                max_output_tokens=GENERATOR_MAX_TOKENS,
            )
        except Exception as exc:
            elapsed_ms = int((time.monotonic() - t0) * 1000)
            log_service.log_llm_call(
                model=model,
                caller="prompt_generator",
                duration_ms=elapsed_ms,
                status="error",
                error=error_text(exc),
            )
            if classify_error(exc) is not ErrorKind.MODEL_UNAVAILABLE:
                raise
            last_error = exc
            continue

        elapsed_ms = int((time.monotonic() - t0) * 1000)
        usage = getattr(response, "usage", None)
        log_service.log_llm_call(
            model=model,
            caller="prompt_generator",
            input_tokens=getattr(usage, "input_tokens", 0) if usage else 0,
            output_tokens=getattr(usage, "output_tokens", 0) if usage else 0,
            duration_ms=elapsed_ms,
        )
        return (response.text or "").strip()

    raise RuntimeError(
        f"Ningún modelo disponible para generar el prompt ({', '.join(models)}): "
        f"{error_text(last_error)}"
    )


async def generate_research_prompt(
    case: PatientCase,
    platform: TargetPlatform,
    *,
    client: Any = None,
    models: Sequence[str] | None = None,
    max_retries: int | None = None,
    retry_delay_s: float | None = None,
) -> PromptGenerationResult:
    """Ask Gemini to write a self-contained research prompt for ``case``."""
    if platform not in PLATFORMS:
        return PromptGenerationResult(success=False, error=f"Plataforma no soportada: {platform}")

    candidates = list(models if models is not None else settings.prompt_generator_model_list)
    attempts = max(int(max_retries if max_retries is not None else settings.prompt_generator_max_retries), 1)
    delay = float(retry_delay_s if retry_delay_s is not None else settings.prompt_generator_retry_delay_s)

    try:
        active_client = client or llm_client()
        meta_prompt = build_meta_prompt(case, platform)
        text = ""
        for attempt in range(1, attempts + 1):
            try:
                text = await _generate_with_fallback(active_client, meta_prompt, candidates)
                break
            except Exception as exc:
                if attempt >= attempts or not _is_transient(exc):
                    raise
                wait_s = delay * 2 ** (attempt - 1)
                logger.warning(
                    f"Prompt generation attempt {attempt}/{attempts} failed ({error_text(exc)}); "
                    f"retrying in {wait_s:.1f}s"
                )
                await asyncio.sleep(wait_s)

        if len(text) < MIN_PROMPT_CHARS:
            raise PromptTooShortError("La IA generó un prompt demasiado corto o vacío")
    except Exception as e:
        log_service.log_event(
            event_type="prompt_generation_failed",
            message="Research prompt generation failed",
            error=error_text(e),
            case_id=case.id,
            platform=platform,
        )
        return PromptGenerationResult(
            success=False,
            error=create_error_message(e, "No se pudo generar el prompt de investigación"),
        )

    return PromptGenerationResult(
        success=True,
        prompt=GeneratedPrompt(
            case_id=case.id,
            prompt_text=text,
            target_platform=platform,
            patient_summary=case_summary(case),
        ),
    )
