from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from nutrigen.models.research import TaskCategory, strategy_for

SMOOTHING_KEEP = 0.9
SPECIALIZATION_BONUS = 1.2


class ModelSelector(Protocol):
    def record_outcome(
        self,
        model_id: str,
        task: TaskCategory,
        success: bool,
        latency_ms: float,
        confidence: float = 0.0,
    ) -> None: ...

    def best_model_for(self, task: TaskCategory) -> str: ...


@dataclass(slots=True)
class ModelPerformanceRecord:
    model_id: str
    success_count: int = 0
    error_count: int = 0
    avg_latency_ms: float = 0.0
    avg_confidence: float = 0.0
    total_requests: int = 0
    last_used_at: float = 0.0
    tasks_seen: set[TaskCategory] = field(default_factory=set)

    @property
    def success_rate(self) -> float:
        return self.success_count / max(self.total_requests, 1)

    def score_for(self, task: TaskCategory) -> float:
        bonus = SPECIALIZATION_BONUS if task in self.tasks_seen else 1.0
        return self.success_rate * self.avg_confidence * bonus

    def to_dict(self) -> dict[str, Any]:
        return {
            "model_id": self.model_id,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "avg_latency_ms": round(self.avg_latency_ms, 2),
            "avg_confidence": round(self.avg_confidence, 4),
            "total_requests": self.total_requests,
            "last_used_at": self.last_used_at,
            "tasks_seen": sorted(t.value for t in self.tasks_seen),
        }


class PerformanceTracker:
    """Rolling per-model outcome statistics used to pick models per task."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._records: dict[str, ModelPerformanceRecord] = {}

    def record_outcome(
        self,
        model_id: str,
        task: TaskCategory,
        success: bool,
        latency_ms: float,
        confidence: float = 0.0,
    ) -> None:
        record = self._records.get(model_id)
        if record is None:
            record = ModelPerformanceRecord(model_id=model_id)
            self._records[model_id] = record

        record.total_requests += 1
        record.last_used_at = self._clock()
        if success:
            record.success_count += 1
            record.avg_confidence = (
                record.avg_confidence * SMOOTHING_KEEP + confidence * (1 - SMOOTHING_KEEP)
            )
        else:
            record.error_count += 1
        record.avg_latency_ms = (
            record.avg_latency_ms * SMOOTHING_KEEP + latency_ms * (1 - SMOOTHING_KEEP)
        )
        record.tasks_seen.add(task)

    def best_model_for(self, task: TaskCategory) -> str:
        strategy = strategy_for(task)
        primary, fallback = strategy.primary_model, strategy.fallback_model
        primary_record = self._records.get(primary)
        fallback_record = self._records.get(fallback)

        if primary_record is None:
            return fallback if fallback_record is not None else primary
        if fallback_record is None:
            return primary
        if fallback_record.score_for(task) > primary_record.score_for(task):
            return fallback
        return primary

    def get(self, model_id: str) -> ModelPerformanceRecord | None:
        return self._records.get(model_id)

    def snapshot(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self._records.values()]
