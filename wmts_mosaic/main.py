from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
import sys
from pathlib import Path
from typing import List, Sequence

from pydantic import ValidationError
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .config import (
    DEFAULT_OUTPUT_DIR,
    DEFAULT_SCHEME,
    DESCRIPTOR_FILENAME,
    DownloadSettings,
    TilingScheme,
    default_concurrency,
    default_timeout_ms,
    log_level_name,
)
from .models import BoundingBox, DownloadSummary, FetchOutcome
from .services.download import download_tiles
from .services.grid import expand_bbox

logger = logging.getLogger(__name__)


def _parse_bbox(raw: str) -> BoundingBox:
    try:
        return BoundingBox.parse(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wmts-mosaic",
        description="Download tiles from IGN WMTS server with concurrent requests",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    get = commands.add_parser("get", help="Download the tiles covering a bounding box")
    get.add_argument(
        "-b",
        "--bbox",
        required=True,
        type=_parse_bbox,
        help="Bounding box coordinates in Lambert 93 (minX,minY,maxX,maxY)",
    )
    get.add_argument(
        "-o",
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help="Output directory for downloaded tiles",
    )
    get.add_argument(
        "-c",
        "--concurrent",
        type=int,
        default=default_concurrency(),
        help="Maximum concurrent downloads",
    )
    get.add_argument(
        "-t",
        "--timeout",
        type=int,
        default=default_timeout_ms(),
        help="Request timeout in milliseconds",
    )
    return parser


def prepare_output(settings: DownloadSettings) -> None:
    """Start every run from an empty tiles directory and no descriptor."""

    tiles_dir = settings.tiles_dir
    if tiles_dir.exists():
        shutil.rmtree(tiles_dir)
    (settings.output_dir / DESCRIPTOR_FILENAME).unlink(missing_ok=True)
    tiles_dir.mkdir(parents=True, exist_ok=True)


async def run_get(
    settings: DownloadSettings, scheme: TilingScheme = DEFAULT_SCHEME
) -> DownloadSummary:
    tiles = expand_bbox(settings.bbox, scheme)
    with tqdm(
        total=len(tiles), desc="Downloading tiles", unit="tile", disable=not tiles
    ) as bar, logging_redirect_tqdm():

        def advance(outcome: FetchOutcome) -> None:
            bar.update(1)

        return await download_tiles(
            tiles,
            settings.output_dir,
            scheme=scheme,
            concurrency=settings.concurrency,
            timeout_ms=settings.timeout_ms,
            progress_callback=advance,
        )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=log_level_name(), format="%(levelname)s: %(message)s")

    try:
        settings = DownloadSettings(
            bbox=args.bbox,
            output_dir=args.output,
            concurrency=args.concurrent,
            timeout_ms=args.timeout,
        )
    except ValidationError as exc:
        messages: List[str] = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        parser.error("; ".join(messages))

    prepare_output(settings)
    summary = asyncio.run(run_get(settings))
    if summary.descriptor_path is not None:
        logger.info("VRT file created successfully")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
