from __future__ import annotations

from nutrigen.agents.model_invoker import ModelInvoker
from nutrigen.agents.orchestrator import ResearchOrchestrator
from nutrigen.llm_client import client as llm_client
from nutrigen.models.research import TASK_STRATEGIES
from nutrigen.services.history_store import HistoryStore
from nutrigen.services.performance import PerformanceTracker
from nutrigen.services.response_cache import ResponseCache

_cache: ResponseCache | None = None
_tracker: PerformanceTracker | None = None
_history: HistoryStore | None = None


def get_cache() -> ResponseCache:
    """Process-wide response cache, shared by every research run."""
    global _cache
    if _cache is None:
        _cache = ResponseCache()
    return _cache


def get_tracker() -> PerformanceTracker:
    global _tracker
    if _tracker is None:
        _tracker = PerformanceTracker()
    return _tracker


def get_history_store() -> HistoryStore:
    global _history
    if _history is None:
        _history = HistoryStore()
    return _history


def build_orchestrator() -> ResearchOrchestrator:
    """Fresh orchestrator per query, sharing the cache and tracker."""
    tracker = get_tracker()
    invoker = ModelInvoker(llm_client(), tracker)
    return ResearchOrchestrator(invoker, cache=get_cache(), tracker=tracker)


def get_task_strategies() -> list[dict[str, str | int | float]]:
    """Return the model strategy configured for each research task."""
    return [
        {
            "task": task.value,
            "primary_model": strategy.primary_model,
            "fallback_model": strategy.fallback_model,
            "reason": strategy.reason,
            "max_output_tokens": strategy.max_output_tokens,
            "temperature": strategy.temperature,
            "research_depth": strategy.research_depth,
        }
        for task, strategy in TASK_STRATEGIES.items()
    ]
