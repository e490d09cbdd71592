from __future__ import annotations

import json as _json

from fastapi import APIRouter, HTTPException
from sse_starlette.sse import EventSourceResponse

from nutrigen.api.deps import build_orchestrator, get_cache, get_tracker
from nutrigen.llm_client import MissingApiKeyError
from nutrigen.models.schemas import CacheSweepResponse, ResearchRequest, ResearchStatsResponse
from nutrigen.services import logger as log_service
from nutrigen.services import streaming

router = APIRouter(prefix="/api/research", tags=["research"])


@router.post("/stream")
async def stream_research(request: ResearchRequest):
    """SSE endpoint that streams research progress events."""
    try:
        orchestrator = build_orchestrator()
    except MissingApiKeyError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    async def event_generator():
        log_service.log_event(
            event_type="research_started",
            message="Research started",
            query=request.query[:100],
            mode=request.mode.value if request.mode else None,
            genotype_id=request.genotype_id,
        )
        try:
            async for event in orchestrator.research(
                request.query, mode=request.mode, genotype_id=request.genotype_id
            ):
                yield {
                    "event": event.event.value,
                    "data": _json.dumps(event.data, ensure_ascii=False),
                }
        except Exception as e:
            log_service.log_event(
                event_type="stream_error",
                message="Unhandled error in research stream",
                error=str(e),
            )
            error_event = streaming.error("La transmisión de la investigación falló inesperadamente.")
            yield {
                "event": error_event.event.value,
                "data": _json.dumps(error_event.data, ensure_ascii=False),
            }

        log_service.log_event(
            event_type="research_finished",
            message="Research finished",
            state=orchestrator.state.value,
        )

    return EventSourceResponse(event_generator())


@router.get("/stats", response_model=ResearchStatsResponse)
async def research_stats():
    return ResearchStatsResponse(cache=get_cache().stats(), models=get_tracker().snapshot())


@router.delete("/cache", response_model=CacheSweepResponse)
async def sweep_cache():
    """Drop expired cache entries."""
    return CacheSweepResponse(removed=get_cache().sweep_expired())
