from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Sequence, Tuple

from ..models import FetchErrorKind, FetchOutcome, TileCoords

logger = logging.getLogger(__name__)

TileFetcher = Callable[[TileCoords], Awaitable[FetchOutcome]]
ProgressCallback = Callable[[FetchOutcome], Any]


class FetchScheduler:
    """Run one fetch per tile with at most ``concurrency_limit`` in flight.

    Every submitted tile yields exactly one :class:`FetchOutcome`, returned in
    submission order. A failing tile never cancels the rest of the batch and
    nothing is retried.
    """

    def __init__(self, concurrency_limit: int) -> None:
        if concurrency_limit < 1:
            raise ValueError("concurrency limit must be at least 1")
        self.concurrency_limit = concurrency_limit

    async def run_all(
        self,
        tiles: Sequence[TileCoords],
        fetch: TileFetcher,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> List[FetchOutcome]:
        semaphore = asyncio.Semaphore(self.concurrency_limit)

        async def bound_fetch(tile: TileCoords) -> FetchOutcome:
            async with semaphore:
                try:
                    outcome = await fetch(tile)
                except Exception as exc:
                    logger.exception("Task error for tile %s,%s: %s", tile.row, tile.col, exc)
                    outcome = FetchOutcome.failure(
                        tile, FetchErrorKind.UNEXPECTED, f"Task error: {exc}"
                    )
            if progress_callback is not None:
                try:
                    result = progress_callback(outcome)
                    if inspect.isawaitable(result):
                        await result
                except Exception as exc:
                    logger.exception(
                        "Progress callback failed for tile %s,%s: %s", tile.row, tile.col, exc
                    )
            return outcome

        tasks = [asyncio.ensure_future(bound_fetch(tile)) for tile in tiles]
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))


async def run_all(
    tiles: Sequence[TileCoords],
    fetch: TileFetcher,
    concurrency_limit: int,
    *,
    progress_callback: ProgressCallback | None = None,
) -> List[FetchOutcome]:
    scheduler = FetchScheduler(concurrency_limit)
    return await scheduler.run_all(tiles, fetch, progress_callback=progress_callback)


def count_outcomes(outcomes: Sequence[FetchOutcome]) -> Tuple[int, int]:
    """Return ``(successes, failures)``."""

    successes = sum(1 for outcome in outcomes if outcome.ok)
    return successes, len(outcomes) - successes
