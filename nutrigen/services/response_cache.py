from __future__ import annotations

import json
import time
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Callable, Mapping, Protocol

from nutrigen.config import settings
from nutrigen.models.research import TaskCategory

CACHE_VERSION = 1


class ResponseStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(
        self,
        key: str,
        value: Any,
        model_id: str,
        confidence: float = 0.8,
        genotype_scoped: bool = False,
        genotype_id: int | None = None,
    ) -> None: ...


@dataclass(slots=True)
class CacheEntry:
    key: str
    value: Any
    created_at: float
    model_id: str
    confidence: float
    genotype_scoped: bool
    genotype_id: int | None = None


def _normalize(value: Any) -> Any:
    if isinstance(value, str):
        return " ".join(value.split()).casefold()
    if isinstance(value, Mapping):
        return {str(k): _normalize(v) for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def build_key(task: TaskCategory, inputs: Mapping[str, Any], model_id: str) -> str:
    """Deterministic key for (task, normalized inputs, requested model)."""
    genotype_id = inputs.get("genotype_id")
    material = json.dumps(
        {
            "v": CACHE_VERSION,
            "task": task.value,
            "inputs": _normalize({k: v for k, v in inputs.items() if k != "genotype_id"}),
        },
        sort_keys=True,
        ensure_ascii=True,
    )
    digest = sha256(material.encode("utf-8")).hexdigest()[:32]
    return f"{task.value.lower()}:{digest}:genotype:{genotype_id}:{model_id}"


class ResponseCache:
    """In-memory response cache with a fixed time-to-live.

    ``get`` skips stale entries without evicting them; call ``sweep_expired``
    to actually drop them.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = float(
            ttl_seconds if ttl_seconds is not None else settings.response_cache_ttl_seconds
        )
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def _is_live(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at < self.ttl_seconds

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None or not self._is_live(entry, self._clock()):
            return None
        return entry.value

    def set(
        self,
        key: str,
        value: Any,
        model_id: str,
        confidence: float = 0.8,
        genotype_scoped: bool = False,
        genotype_id: int | None = None,
    ) -> None:
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            created_at=self._clock(),
            model_id=model_id,
            confidence=confidence,
            genotype_scoped=genotype_scoped,
            genotype_id=genotype_id,
        )

    def sweep_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not self._is_live(entry, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def entries_for_genotype(self, genotype_id: int) -> list[CacheEntry]:
        now = self._clock()
        return [
            entry
            for entry in self._entries.values()
            if entry.genotype_scoped
            and entry.genotype_id == genotype_id
            and self._is_live(entry, now)
        ]

    def stats(self) -> dict[str, int]:
        now = self._clock()
        live = sum(1 for entry in self._entries.values() if self._is_live(entry, now))
        return {
            "entries": len(self._entries),
            "live": live,
            "expired": len(self._entries) - live,
        }
