from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal


class TaskCategory(str, Enum):
    PLANNING = "PLANNING"
    GENETIC_ANALYSIS = "GENETIC_ANALYSIS"
    METABOLIC_RESEARCH = "METABOLIC_RESEARCH"
    EPIGENETIC_STUDY = "EPIGENETIC_STUDY"
    CLINICAL_SYNTHESIS = "CLINICAL_SYNTHESIS"
    LITERATURE_REVIEW = "LITERATURE_REVIEW"


class ResearchMode(str, Enum):
    DEPTH_FIRST = "depth-first"
    BREADTH_FIRST = "breadth-first"


class AspectStatus(str, Enum):
    COMPLETED = "completed"
    ERROR = "error"


class PipelineState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    ANALYZING = "analyzing"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


ResearchDepth = Literal["shallow", "medium", "deep", "comprehensive"]


@dataclass(frozen=True, slots=True)
class TaskStrategy:
    """Model choice and generation settings for one task category."""

    primary_model: str
    fallback_model: str
    reason: str
    max_output_tokens: int
    temperature: float
    research_depth: ResearchDepth
    top_k: int = 40
    top_p: float = 0.95


TASK_STRATEGIES: MappingProxyType[TaskCategory, TaskStrategy] = MappingProxyType(
    {
        TaskCategory.PLANNING: TaskStrategy(
            primary_model="gemini-2.0-flash-exp",
            fallback_model="gemini-2.0-flash",
            reason="Planificación rápida de investigación nutrigenómica",
            max_output_tokens=4096,
            temperature=0.3,
            research_depth="medium",
        ),
        TaskCategory.GENETIC_ANALYSIS: TaskStrategy(
            primary_model="gemini-1.5-pro",
            fallback_model="gemini-2.0-pro",
            reason="Análisis genético profundo con contexto extenso",
            max_output_tokens=16384,
            temperature=0.1,
            research_depth="deep",
        ),
        TaskCategory.METABOLIC_RESEARCH: TaskStrategy(
            primary_model="gemini-2.0-pro",
            fallback_model="gemini-1.5-pro",
            reason="Investigación metabólica con razonamiento avanzado",
            max_output_tokens=12288,
            temperature=0.2,
            research_depth="deep",
        ),
        TaskCategory.EPIGENETIC_STUDY: TaskStrategy(
            primary_model="gemini-1.5-pro",
            fallback_model="gemini-2.0-pro",
            reason="Análisis epigenético con máximo contexto",
            max_output_tokens=16384,
            temperature=0.15,
            research_depth="comprehensive",
        ),
        TaskCategory.CLINICAL_SYNTHESIS: TaskStrategy(
            primary_model="gemini-2.0-pro",
            fallback_model="gemini-1.5-flash",
            reason="Síntesis clínica con razonamiento médico",
            max_output_tokens=8192,
            temperature=0.2,
            research_depth="deep",
        ),
        TaskCategory.LITERATURE_REVIEW: TaskStrategy(
            primary_model="gemini-2.0-flash-exp",
            fallback_model="gemini-1.5-flash",
            reason="Revisión rápida de literatura actualizada",
            max_output_tokens=6144,
            temperature=0.4,
            research_depth="medium",
        ),
    }
)


def strategy_for(task: TaskCategory) -> TaskStrategy:
    return TASK_STRATEGIES[task]


@dataclass(frozen=True, slots=True)
class ResearchPlan:
    """Aspects proposed by the planning stage for one query."""

    subagents: tuple[str, ...]
    research_mode: ResearchMode


@dataclass(frozen=True, slots=True)
class AspectResult:
    aspect: str
    content: str
    status: AspectStatus
    confidence: float

    @property
    def is_completed(self) -> bool:
        return self.status is AspectStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "aspect": self.aspect,
            "content": self.content,
            "status": self.status.value,
            "confidence": self.confidence,
        }


@dataclass(frozen=True, slots=True)
class ResearchSynthesis:
    summary: str
    recommendations: tuple[str, ...]
    evidence_level: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "recommendations": list(self.recommendations),
            "evidence_level": self.evidence_level,
        }


@dataclass(slots=True)
class PlanResult:
    success: bool
    plan: ResearchPlan | None = None
    error: BaseException | None = None


@dataclass(slots=True)
class SynthesisResult:
    success: bool
    synthesis: ResearchSynthesis | None = None
    error: BaseException | None = None


@dataclass(slots=True)
class ResearchData:
    """One validated aspect re-packaged for the synthesis prompt."""

    title: str
    content: str
    sources: list[Any] = field(default_factory=list)
    gene_analysis: list[Any] = field(default_factory=list)
    metabolic_pathways: list[Any] = field(default_factory=list)
    epigenetic_factors: list[Any] = field(default_factory=list)
    clinical_recommendations: list[Any] = field(default_factory=list)

    def to_prompt_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "sources": self.sources,
            "geneAnalysis": self.gene_analysis,
            "metabolicPathways": self.metabolic_pathways,
            "epigeneticFactors": self.epigenetic_factors,
            "clinicalRecommendations": self.clinical_recommendations,
        }
