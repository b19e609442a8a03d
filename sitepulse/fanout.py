"""Concurrent fan-out of independent requests with per-branch outcomes."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from typing import Generic, Hashable, Optional, TypeVar

from sitepulse.errors import SitePulseError

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


@dataclass
class BranchOutcome(Generic[T]):
    """Result of one fan-out branch: a value or the error that ended it."""

    key: Hashable
    value: Optional[T] = None
    error: Optional[SitePulseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_outcomes(branches: Mapping[K, Awaitable[T]]) -> dict[K, BranchOutcome[T]]:
    """Run every branch concurrently and wait for all of them.

    A ``SitePulseError`` in one branch is captured in its outcome and does
    not cancel the others. Any other exception is a bug and propagates.
    The returned dict follows the key order of *branches*.
    """
    outcomes: dict[K, BranchOutcome[T]] = {}

    async def _run(key: K, awaitable: Awaitable[T]) -> None:
        try:
            outcomes[key] = BranchOutcome(key, value=await awaitable)
        except SitePulseError as exc:
            outcomes[key] = BranchOutcome(key, error=exc)

    async with asyncio.TaskGroup() as group:
        for key, awaitable in branches.items():
            group.create_task(_run(key, awaitable))

    return {key: outcomes[key] for key in branches}
