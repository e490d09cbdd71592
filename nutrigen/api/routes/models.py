from __future__ import annotations

from fastapi import APIRouter

from nutrigen.api.deps import get_task_strategies
from nutrigen.models.schemas import ModelInfo, ModelsResponse

router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("", response_model=ModelsResponse)
async def list_models():
    """List the Gemini model strategy used for each research task."""
    return ModelsResponse(models=[ModelInfo(**s) for s in get_task_strategies()])
