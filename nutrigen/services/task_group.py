from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Generic, Iterable, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class Settled(Generic[T]):
    """Outcome of one awaited task: either a value or the error it raised."""

    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_settled(awaitables: Iterable[Awaitable[T]]) -> list[Settled[T]]:
    """Await everything concurrently; never raises for member failures.

    Results are returned in input order. Cancellation of the caller still
    propagates.
    """
    raw = await asyncio.gather(*awaitables, return_exceptions=True)
    settled: list[Settled[T]] = []
    for item in raw:
        if isinstance(item, asyncio.CancelledError):
            raise item
        if isinstance(item, BaseException):
            settled.append(Settled(error=item))
        else:
            settled.append(Settled(value=item))
    return settled
