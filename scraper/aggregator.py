import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from scraper.models import Item
from scraper.paginator import RegionResult

log = logging.getLogger(__name__)

RegionPipeline = Callable[[str], Awaitable[RegionResult]]


@dataclass
class AggregateResult:
    items: list[Item]
    total: int
    url: str | None
    regions: list[RegionResult] = field(default_factory=list)
    failed_regions: list[str] = field(default_factory=list)


def interleave(ranked_lists: list[list[Item]]) -> list[Item]:
    """Merge ranked lists round-robin by rank, keeping the first item seen per id."""
    seen_ids: set[str] = set()
    merged: list[Item] = []
    depth = max((len(items) for items in ranked_lists), default=0)
    for rank in range(depth):
        for items in ranked_lists:
            if rank >= len(items):
                continue
            item = items[rank]
            if item.id:
                if item.id in seen_ids:
                    continue
                seen_ids.add(item.id)
            merged.append(item)
    return merged


class RegionAggregator:
    """Runs one single-region pipeline per state and merges what succeeds.

    ``max_parallel`` caps how many region pipelines run at once; ``None``
    starts them all together.
    """

    def __init__(self, pipeline: RegionPipeline, max_parallel: int | None = None):
        self.pipeline = pipeline
        self.max_parallel = max_parallel

    async def _run(self, state: str, semaphore: asyncio.Semaphore | None) -> RegionResult:
        if semaphore is None:
            return await self.pipeline(state)
        async with semaphore:
            return await self.pipeline(state)

    async def gather(self, states: list[str]) -> AggregateResult:
        semaphore = asyncio.Semaphore(self.max_parallel) if self.max_parallel else None
        outcomes = await asyncio.gather(
            *(self._run(state, semaphore) for state in states),
            return_exceptions=True,
        )

        succeeded: list[RegionResult] = []
        failed: list[str] = []
        for state, outcome in zip(states, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                log.warning(f"Region {state} failed: {outcome}")
                failed.append(state)
                continue
            succeeded.append(outcome)

        merged = interleave([r.items for r in succeeded])
        log.info(
            f"Merged {len(merged)} unique items from {len(succeeded)}/{len(states)} regions"
        )
        return AggregateResult(
            items=merged,
            total=sum(r.total or 0 for r in succeeded),
            url=succeeded[0].url if succeeded else None,
            regions=succeeded,
            failed_regions=failed,
        )
