"""Tests for pipeline event construction and the settle-all task group."""
import asyncio
import json

import pytest

from nutrigen.models.events import EventType, SSEEvent
from nutrigen.models.research import (
    AspectResult,
    AspectStatus,
    ResearchMode,
    ResearchPlan,
    ResearchSynthesis,
)
from nutrigen.services import streaming
from nutrigen.services.task_group import gather_settled


class TestEventStructure:
    def test_plan_created_event(self):
        plan = ResearchPlan(subagents=("Genética", "Metabolismo"), research_mode=ResearchMode.DEPTH_FIRST)
        event = streaming.plan_created("MTHFR", plan)

        assert event.event == EventType.PLAN_CREATED
        assert event.data == {
            "query": "MTHFR",
            "research_mode": "depth-first",
            "steps": ["Genética", "Metabolismo"],
        }

    def test_aspect_completed_event(self):
        result = AspectResult("Genética", "contenido", AspectStatus.ERROR, 0.0)
        event = streaming.aspect_completed(2, result)

        assert event.event == EventType.AGENT_COMPLETED
        assert event.data["agent"] == "analysis"
        assert event.data["step"] == 2
        assert event.data["success"] is False
        assert event.data["status"] == "error"

    def test_research_complete_event(self):
        synthesis = ResearchSynthesis("Resumen", ("Rec 1",), "Alta")
        results = [AspectResult("Genética", "ok", AspectStatus.COMPLETED, 0.8)]
        event = streaming.research_complete(synthesis, results, runtime_ms=1200)

        assert event.data["report"] == "Resumen"
        assert event.data["recommendations"] == ["Rec 1"]
        assert event.data["results"][0]["aspect"] == "Genética"
        assert event.data["runtime_ms"] == 1200

    def test_error_event_with_stage(self):
        event = streaming.error("falló", stage="planning")
        assert event.data == {"message": "falló", "stage": "planning"}

    def test_sse_format_keeps_unicode(self):
        frame = SSEEvent(event=EventType.ERROR, data={"message": "Síntesis inválida"}).format()
        assert frame.startswith("event: error\n")
        assert json.loads(frame.split("data: ", 1)[1]) == {"message": "Síntesis inválida"}
        assert "Síntesis" in frame


class TestGatherSettled:
    @pytest.mark.asyncio
    async def test_outcomes_preserve_input_order(self):
        async def work(delay: float, fail: bool = False):
            await asyncio.sleep(delay)
            if fail:
                raise ValueError("boom")
            return delay

        outcomes = await gather_settled([work(0.03), work(0.01, fail=True), work(0.02)])

        assert [o.ok for o in outcomes] == [True, False, True]
        assert outcomes[0].value == 0.03
        assert isinstance(outcomes[1].error, ValueError)
        assert outcomes[2].value == 0.02

    @pytest.mark.asyncio
    async def test_empty_input(self):
        assert await gather_settled([]) == []
