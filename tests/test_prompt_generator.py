from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nutrigen.agents.prompt_generator import (
    bmi_category,
    build_meta_prompt,
    calculate_bmi,
    case_summary,
    generate_research_prompt,
)
from nutrigen.llm_client import GenerationResponse
from nutrigen.models.history import PatientCase

LONG_PROMPT = "Realiza una investigación nutrigenómica exhaustiva del siguiente caso. " * 5


@pytest.fixture
def case():
    return PatientCase(
        patient_name="Ana",
        age=34,
        sex="Femenino",
        height_cm=165,
        weight_kg=70,
        genotype_id=2,
        symptoms="Fatiga crónica",
    )


def make_client(handler):
    client = MagicMock()
    client.generate = AsyncMock(side_effect=handler)
    return client


@pytest.mark.parametrize(
    ("bmi", "label"),
    [
        (17.0, "Bajo peso"),
        (22.0, "Peso normal"),
        (27.5, "Sobrepeso"),
        (32.0, "Obesidad grado I"),
        (37.0, "Obesidad grado II"),
        (45.0, "Obesidad grado III"),
    ],
)
def test_bmi_category(bmi, label):
    assert bmi_category(bmi) == label


def test_calculate_bmi():
    assert calculate_bmi(165, 70) == 25.7
    assert calculate_bmi(0, 70) is None
    assert calculate_bmi(None, 70) is None
    assert calculate_bmi("abc", 70) is None


def test_case_summary(case):
    assert case_summary(case) == "Ana, 34 años, Femenino - Genotipo 2 (Gatherer)"


def test_meta_prompt_includes_patient_data_and_platform(case):
    prompt = build_meta_prompt(case, "claude")

    assert "**Paciente:** Ana" in prompt
    assert "**IMC:** 25.7 (Sobrepeso)" in prompt
    assert "**Genotipo:** 2 - Gatherer" in prompt
    assert "Fatiga crónica" in prompt
    assert "optimizado para **Claude**" in prompt


@pytest.mark.asyncio
async def test_generate_research_prompt_success(case):
    client = make_client(lambda **kwargs: GenerationResponse(text=f"  {LONG_PROMPT}  "))

    result = await generate_research_prompt(
        case, "gemini-deep-research", client=client, models=["gemini-1.5-flash"]
    )

    assert result.success
    assert result.prompt.case_id == case.id
    assert result.prompt.prompt_text == LONG_PROMPT.strip()
    assert result.prompt.target_platform == "gemini-deep-research"
    assert client.generate.await_args.kwargs["temperature"] == 0.7


@pytest.mark.asyncio
async def test_short_prompt_is_a_failure(case):
    client = make_client(lambda **kwargs: GenerationResponse(text="Muy corto"))

    result = await generate_research_prompt(case, "claude", client=client, models=["m"])

    assert not result.success
    assert "demasiado corto" in result.error


@pytest.mark.asyncio
async def test_falls_back_to_next_model_when_not_found(case):
    async def handler(*, model, **kwargs):
        if model == "gemini-2.0-flash-exp":
            raise RuntimeError("404 model not found")
        return GenerationResponse(text=LONG_PROMPT)

    client = make_client(handler)
    result = await generate_research_prompt(
        case, "claude", client=client, models=["gemini-2.0-flash-exp", "gemini-1.5-flash"]
    )

    assert result.success
    assert [c.kwargs["model"] for c in client.generate.await_args_list] == [
        "gemini-2.0-flash-exp",
        "gemini-1.5-flash",
    ]


@pytest.mark.asyncio
async def test_transient_errors_are_retried(case):
    calls = {"n": 0}

    def handler(**kwargs):
        calls["n"] += 1
        if calls["n"] < 3:
            raise RuntimeError("503 Service Unavailable")
        return GenerationResponse(text=LONG_PROMPT)

    result = await generate_research_prompt(
        case, "claude", client=make_client(handler), models=["m"], max_retries=3, retry_delay_s=0
    )

    assert result.success
    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_auth_errors_are_not_retried(case):
    client = make_client(RuntimeError("401 API key not valid"))

    result = await generate_research_prompt(
        case, "claude", client=client, models=["m"], max_retries=3, retry_delay_s=0
    )

    assert not result.success
    assert client.generate.await_count == 1
    assert "Error de autenticación" in result.error


@pytest.mark.asyncio
async def test_unsupported_platform(case):
    result = await generate_research_prompt(case, "chatgpt", client=MagicMock())
    assert not result.success
    assert "Plataforma no soportada" in result.error


@pytest.mark.asyncio
async def test_retry_waits_back_off_exponentially(case):
    client = make_client(RuntimeError("503 Service Unavailable"))

    with patch("nutrigen.agents.prompt_generator.asyncio.sleep", new_callable=AsyncMock) as sleep:
        result = await generate_research_prompt(
            case, "claude", client=client, models=["m"], max_retries=4, retry_delay_s=0.5
        )

    assert not result.success
    assert client.generate.await_count == 4
    assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0, 2.0]
