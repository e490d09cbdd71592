from __future__ import annotations

from typing import Any

from nutrigen.models.events import EventType, SSEEvent
from nutrigen.models.research import AspectResult, ResearchPlan, ResearchSynthesis


def plan_created(query: str, plan: ResearchPlan) -> SSEEvent:
    return SSEEvent(
        event=EventType.PLAN_CREATED,
        data={
            "query": query,
            "research_mode": plan.research_mode.value,
            "steps": list(plan.subagents),
        },
    )


def agent_started(agent: str, step: int | None = None, **kwargs: Any) -> SSEEvent:
    data: dict[str, Any] = {"agent": agent}
    if step is not None:
        data["step"] = step
    data.update(kwargs)
    return SSEEvent(event=EventType.AGENT_STARTED, data=data)


def agent_completed(agent: str, **kwargs: Any) -> SSEEvent:
    return SSEEvent(event=EventType.AGENT_COMPLETED, data={"agent": agent, **kwargs})


def aspect_completed(step: int, result: AspectResult) -> SSEEvent:
    return agent_completed(
        "analysis",
        step=step,
        success=result.is_completed,
        **result.to_dict(),
    )


def synthesis_started(valid_results: int) -> SSEEvent:
    return SSEEvent(event=EventType.SYNTHESIS_STARTED, data={"valid_results": valid_results})


def research_complete(
    synthesis: ResearchSynthesis,
    results: list[AspectResult],
    runtime_ms: int | None = None,
) -> SSEEvent:
    data: dict[str, Any] = {
        "report": synthesis.summary,
        "recommendations": list(synthesis.recommendations),
        "evidence_level": synthesis.evidence_level,
        "results": [r.to_dict() for r in results],
    }
    if runtime_ms is not None:
        data["runtime_ms"] = runtime_ms
    return SSEEvent(event=EventType.RESEARCH_COMPLETE, data=data)


def error(message: str, stage: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if stage:
        data["stage"] = stage
    return SSEEvent(event=EventType.ERROR, data=data)
