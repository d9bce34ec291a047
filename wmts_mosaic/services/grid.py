from __future__ import annotations

import logging
import math
from typing import List, Tuple

from ..config import DEFAULT_SCHEME, TilingScheme
from ..models import BoundingBox, TileCoords

logger = logging.getLogger(__name__)


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class CoordinateMapper:
    """Snap projected coordinates onto the tile grid of a :class:`TilingScheme`."""

    def __init__(self, scheme: TilingScheme = DEFAULT_SCHEME) -> None:
        self.scheme = scheme

    @property
    def tile_span(self) -> float:
        return self.scheme.tile_span

    def point_to_cell(self, x: float, y: float) -> Tuple[int, int, float, float]:
        """Return ``(row, col, tile_x, tile_y)`` for the cell nearest to ``(x, y)``.

        Offsets from the reference point are rounded to whole tiles. The row axis
        grows downward while Y grows upward, hence the negated Y offset. The
        returned top-left corner is rebuilt from the integer offsets so every
        tile lands on the exact grid whatever the input precision.
        """

        scheme = self.scheme
        span = scheme.tile_span
        dx = x - scheme.reference_x
        dy = y - scheme.reference_y

        col_offset = _round_half_away(dx / span)
        row_offset = _round_half_away(-dy / span)

        row = scheme.reference_row + row_offset
        col = scheme.reference_col + col_offset
        tile_x = scheme.reference_x + col_offset * span
        tile_y = scheme.reference_y - row_offset * span
        return row, col, tile_x, tile_y

    def cell_origin(self, row: int, col: int) -> Tuple[float, float]:
        scheme = self.scheme
        span = scheme.tile_span
        tile_x = scheme.reference_x + (col - scheme.reference_col) * span
        tile_y = scheme.reference_y - (row - scheme.reference_row) * span
        return tile_x, tile_y


class GridBuilder:
    """Expand a bounding box into every tile cell it touches."""

    def __init__(self, mapper: CoordinateMapper | None = None) -> None:
        self.mapper = mapper or CoordinateMapper()

    def cell_range(self, bbox: BoundingBox) -> Tuple[int, int, int, int]:
        row1, col1, _, _ = self.mapper.point_to_cell(bbox.min_x, bbox.min_y)
        row2, col2, _, _ = self.mapper.point_to_cell(bbox.max_x, bbox.max_y)
        return min(row1, row2), max(row1, row2), min(col1, col2), max(col1, col2)

    def expand(self, bbox: BoundingBox) -> List[TileCoords]:
        """Return the tiles covering ``bbox`` in row-major order."""

        first_row, max_row, first_col, max_col = self.cell_range(bbox)
        # Negative indices fall outside the server's tile matrix.
        min_row = max(first_row, 0)
        min_col = max(first_col, 0)
        if min_row > max_row or min_col > max_col:
            logger.info("Bounding box %s does not intersect the tile matrix", bbox)
            return []

        logger.info(
            "Tile ranges: Row %s to %s, Col %s to %s", min_row, max_row, min_col, max_col
        )

        span = self.mapper.tile_span
        # Offsets from the snapped corner land exactly on grid corners.
        _, _, origin_x, origin_y = self.mapper.point_to_cell(*bbox.top_left)
        tiles: List[TileCoords] = []
        for row in range(min_row, max_row + 1):
            for col in range(min_col, max_col + 1):
                _, _, x, y = self.mapper.point_to_cell(
                    origin_x + (col - first_col) * span,
                    origin_y - (row - first_row) * span,
                )
                tiles.append(TileCoords(row=row, col=col, x=x, y=y))
        return tiles


def expand_bbox(bbox: BoundingBox, scheme: TilingScheme = DEFAULT_SCHEME) -> List[TileCoords]:
    return GridBuilder(CoordinateMapper(scheme)).expand(bbox)
