from __future__ import annotations

from nutrigen.models.research import ResearchMode, TaskCategory

# Aspect names come from the planner, so matching is best-effort.
# Rows are checked in order; matching is case-sensitive on the display name.
ASPECT_ROUTES: tuple[tuple[TaskCategory, tuple[str, ...]], ...] = (
    (TaskCategory.GENETIC_ANALYSIS, ("Genética", "Molecular", "Polimorfismo")),
    (TaskCategory.METABOLIC_RESEARCH, ("Metabolismo", "Metabólico")),
    (TaskCategory.EPIGENETIC_STUDY, ("Epigenética", "Epigenético")),
    (TaskCategory.LITERATURE_REVIEW, ("Literatura", "Revisión")),
)

DEFAULT_ASPECT_ROUTE = TaskCategory.GENETIC_ANALYSIS

DEPTH_FIRST_KEYWORDS: tuple[str, ...] = (
    "caso clínico",
    "paciente",
    "polimorfismo",
    "variante",
    "gen",
    "mthfr",
    "apoe",
    "cyp2c9",
    "vkorc1",
)


def route_aspect(aspect: str) -> TaskCategory:
    """Pick the analysis category for a planner-generated aspect name."""
    for category, keywords in ASPECT_ROUTES:
        if any(keyword in aspect for keyword in keywords):
            return category
    return DEFAULT_ASPECT_ROUTE


def determine_research_mode(query: str) -> ResearchMode:
    lowered = query.lower()
    if any(keyword in lowered for keyword in DEPTH_FIRST_KEYWORDS):
        return ResearchMode.DEPTH_FIRST
    return ResearchMode.BREADTH_FIRST
