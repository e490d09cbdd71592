from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from nutrigen.models.history import GeneratedPrompt, PatientCase, TargetPlatform
from nutrigen.models.research import ResearchMode


# --- Requests ---


class ResearchRequest(BaseModel):
    query: str = Field(min_length=1)
    mode: ResearchMode | None = None
    genotype_id: int | None = None


class PromptRequest(BaseModel):
    target_platform: TargetPlatform = "gemini-deep-research"


# --- Responses ---


class ModelInfo(BaseModel):
    task: str
    primary_model: str
    fallback_model: str
    reason: str
    max_output_tokens: int
    temperature: float
    research_depth: str


class ModelsResponse(BaseModel):
    models: list[ModelInfo]


class ResearchStatsResponse(BaseModel):
    cache: dict[str, int]
    models: list[dict[str, Any]]


class CacheSweepResponse(BaseModel):
    removed: int


class CaseDetailResponse(BaseModel):
    case: PatientCase
    prompts: list[GeneratedPrompt]


class ImportResponse(BaseModel):
    cases: int
    prompts: int
