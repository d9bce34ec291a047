from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

TILE_FILENAME_TEMPLATE = "tile_{row}_{col}.jpeg"


@dataclass(frozen=True)
class BoundingBox:
    """Rectangle in the projected coordinate system of the tiling scheme."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def __post_init__(self) -> None:
        coords = (self.min_x, self.min_y, self.max_x, self.max_y)
        if not all(math.isfinite(value) for value in coords):
            raise ValueError("bbox coordinates must be finite numbers")

    @classmethod
    def parse(cls, raw: str) -> "BoundingBox":
        """Parse ``minX,minY,maxX,maxY`` as typed on the command line."""

        tokens = [token.strip() for token in raw.split(",")]
        if len(tokens) != 4:
            raise ValueError("bbox must have exactly 4 coordinates")
        try:
            min_x, min_y, max_x, max_y = (float(token) for token in tokens)
        except ValueError as exc:
            raise ValueError(f"bbox coordinates must be numbers: {raw!r}") from exc
        return cls(min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y)

    @property
    def top_left(self) -> Tuple[float, float]:
        return min(self.min_x, self.max_x), max(self.min_y, self.max_y)


@dataclass(frozen=True)
class TileAddress:
    row: int
    col: int


@dataclass(frozen=True)
class TileCoords:
    """A grid cell plus the real-world coordinate of its top-left corner."""

    row: int
    col: int
    x: float
    y: float

    @property
    def address(self) -> TileAddress:
        return TileAddress(row=self.row, col=self.col)

    @property
    def filename(self) -> str:
        return TILE_FILENAME_TEMPLATE.format(row=self.row, col=self.col)


class FetchErrorKind(str, Enum):
    """Reasons a single tile could not be retrieved."""

    HTTP_STATUS = "http_status"
    TRANSPORT = "transport"
    WRITE = "write"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class FetchOutcome:
    tile: TileCoords
    path: Optional[Path] = None
    bytes_written: int = 0
    error: Optional[FetchErrorKind] = None
    status_code: Optional[int] = None
    reason: str = ""

    @classmethod
    def success(cls, tile: TileCoords, path: Path, bytes_written: int) -> "FetchOutcome":
        return cls(tile=tile, path=path, bytes_written=bytes_written)

    @classmethod
    def failure(
        cls,
        tile: TileCoords,
        error: FetchErrorKind,
        reason: str,
        *,
        status_code: Optional[int] = None,
    ) -> "FetchOutcome":
        return cls(tile=tile, error=error, status_code=status_code, reason=reason)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DownloadSummary:
    """Result of one bounding-box download run."""

    tiles: List[TileCoords] = field(default_factory=list)
    outcomes: List[FetchOutcome] = field(default_factory=list)
    success_count: int = 0
    failure_count: int = 0
    descriptor_path: Optional[Path] = None
    descriptor_error: Optional[str] = None

    @property
    def failures(self) -> List[FetchOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]
