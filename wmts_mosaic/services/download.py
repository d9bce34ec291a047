from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import httpx

from ..config import DEFAULT_SCHEME, TILES_DIRNAME, TilingScheme
from ..models import BoundingBox, DownloadSummary, TileCoords
from .client import TileClient
from .grid import expand_bbox
from .mosaic import MosaicDescriptorError, MosaicDescriptorWriter
from .scheduler import FetchScheduler, ProgressCallback, count_outcomes

logger = logging.getLogger(__name__)


def _client_limits(concurrency: int) -> httpx.Limits:
    # The pool must admit every task the scheduler lets through.
    return httpx.Limits(max_connections=concurrency, max_keepalive_connections=concurrency)


async def download_bbox(
    bbox: BoundingBox,
    output_dir: Path,
    *,
    concurrency: int,
    timeout_ms: int,
    scheme: TilingScheme = DEFAULT_SCHEME,
    progress_callback: ProgressCallback | None = None,
) -> DownloadSummary:
    """Download every tile covering ``bbox`` and describe them in a VRT mosaic.

    Individual tile failures and a refused descriptor are reported on the
    returned summary instead of being raised.
    """

    return await download_tiles(
        expand_bbox(bbox, scheme),
        output_dir,
        concurrency=concurrency,
        timeout_ms=timeout_ms,
        scheme=scheme,
        progress_callback=progress_callback,
    )


async def download_tiles(
    tiles: Sequence[TileCoords],
    output_dir: Path,
    *,
    concurrency: int,
    timeout_ms: int,
    scheme: TilingScheme = DEFAULT_SCHEME,
    progress_callback: ProgressCallback | None = None,
) -> DownloadSummary:
    """Fetch an already expanded tile list and write its VRT mosaic."""

    scheduler = FetchScheduler(concurrency)
    tiles = list(tiles)
    if not tiles:
        logger.info("No tiles found in the specified bounding box!")
        return DownloadSummary()

    logger.info("Preparing to download %d tiles...", len(tiles))
    tiles_dir = output_dir / TILES_DIRNAME
    tiles_dir.mkdir(parents=True, exist_ok=True)

    async with httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_ms / 1000.0), limits=_client_limits(concurrency)
    ) as client:
        tile_client = TileClient(client, tiles_dir, scheme)
        outcomes = await scheduler.run_all(
            tiles, tile_client.fetch, progress_callback=progress_callback
        )

    success_count, failure_count = count_outcomes(outcomes)
    summary = DownloadSummary(
        tiles=tiles,
        outcomes=outcomes,
        success_count=success_count,
        failure_count=failure_count,
    )
    for failure in summary.failures:
        logger.warning("Error downloading tile: %s", failure.reason)
    logger.info("Successfully downloaded: %d tiles", success_count)
    logger.info("Failed downloads: %d tiles", failure_count)

    downloaded = {outcome.tile.address for outcome in outcomes if outcome.ok}
    writer = MosaicDescriptorWriter(output_dir, scheme)
    try:
        summary.descriptor_path = writer.write(tiles, success_count, downloaded=downloaded)
    except MosaicDescriptorError as exc:
        logger.warning("Error creating VRT file: %s", exc)
        summary.descriptor_error = str(exc)

    return summary
