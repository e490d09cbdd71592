from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

TargetPlatform = Literal["gemini-deep-research", "claude"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


def _as_utc(value: datetime) -> datetime:
    """Imported files may carry naive timestamps; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PatientCase(BaseModel):
    """Clinical case a research prompt is generated for."""

    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    # Demographics and anthropometry
    patient_name: str
    age: int | None = None
    sex: str | None = None
    height_cm: float | None = None
    weight_kg: float | None = None
    bmi: float | None = None
    body_composition: str | None = None

    # Genotype
    genotype_id: int | None = None
    genotype_name: str | None = None

    # Clinical history
    medical_history: str | None = None
    symptoms: str | None = None
    current_medications: str | None = None
    allergies: str | None = None
    chronic_conditions: str | None = None
    family_history: str | None = None
    lab_results: str | None = None

    # Diet
    current_diet: str | None = None
    dietary_restrictions: str | None = None

    # Research goals
    research_focus: str | None = None
    specific_questions: str | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def timestamps_as_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class GeneratedPrompt(BaseModel):
    id: str = Field(default_factory=_new_id)
    case_id: str
    created_at: datetime = Field(default_factory=_now)
    prompt_text: str
    target_platform: TargetPlatform
    patient_summary: str

    @field_validator("created_at")
    @classmethod
    def timestamps_as_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class ResearchHistory(BaseModel):
    cases: list[PatientCase] = Field(default_factory=list)
    prompts: list[GeneratedPrompt] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=_now)

    @field_validator("last_updated")
    @classmethod
    def timestamps_as_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)
