from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, Field

from .models import BoundingBox

WMTS_BASE_URL = "https://data.geopf.fr/wmts"
WMTS_LAYER = "HR.ORTHOIMAGERY.ORTHOPHOTOS"
WMTS_STYLE = "normal"
WMTS_IMAGE_FORMAT = "image/jpeg"
WMTS_TILE_MATRIX_SET = "PM_6_19"
WMTS_ZOOM_LEVEL = 19

# 20 cm per pixel at zoom level 19.
PIXEL_SIZE_METERS = 0.2
TILE_SIZE_PIXELS = 256
LAMBERT93_CRS = "EPSG:2154"

# Tile (195404, 275651) is known to sit at (1223232.7321, 6075925.1150) in Lambert 93.
REFERENCE_X = 1223232.7321
REFERENCE_Y = 6075925.1150
REFERENCE_ROW = 195404
REFERENCE_COL = 275651

TILES_DIRNAME = "tiles"
DESCRIPTOR_FILENAME = "mosaic.vrt"

DEFAULT_OUTPUT_DIR = Path("tiles")
DEFAULT_CONCURRENCY = 32
DEFAULT_TIMEOUT_MS = 10000

CONCURRENCY_ENV = "WMTS_MOSAIC_CONCURRENCY"
TIMEOUT_ENV = "WMTS_MOSAIC_TIMEOUT_MS"
LOG_LEVEL_ENV = "LOG_LEVEL"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class TilingScheme:
    """Fixed tile grid of the remote service, anchored on one known tile."""

    reference_x: float = REFERENCE_X
    reference_y: float = REFERENCE_Y
    reference_row: int = REFERENCE_ROW
    reference_col: int = REFERENCE_COL
    resolution: float = PIXEL_SIZE_METERS
    tile_size: int = TILE_SIZE_PIXELS
    zoom: int = WMTS_ZOOM_LEVEL
    crs: str = LAMBERT93_CRS
    base_url: str = WMTS_BASE_URL
    layer: str = WMTS_LAYER
    style: str = WMTS_STYLE
    image_format: str = WMTS_IMAGE_FORMAT
    tile_matrix_set: str = WMTS_TILE_MATRIX_SET

    @property
    def tile_span(self) -> float:
        """Real-world side length of one tile."""

        return self.tile_size * self.resolution


DEFAULT_SCHEME = TilingScheme()


class DownloadSettings(BaseModel):
    """Validated inputs of a download run."""

    bbox: BoundingBox
    output_dir: Path = DEFAULT_OUTPUT_DIR
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)

    @property
    def tiles_dir(self) -> Path:
        return self.output_dir / TILES_DIRNAME


def _positive_int_from_env(name: str, default: int) -> int:
    raw_value = os.getenv(name, "").strip()
    if not raw_value:
        return default
    try:
        value = int(raw_value)
    except ValueError:
        return default
    return value if value > 0 else default


def default_concurrency() -> int:
    return _positive_int_from_env(CONCURRENCY_ENV, DEFAULT_CONCURRENCY)


def default_timeout_ms() -> int:
    return _positive_int_from_env(TIMEOUT_ENV, DEFAULT_TIMEOUT_MS)


def log_level_name() -> str:
    name = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    if name in LOG_LEVELS:
        return name
    return "INFO"
