from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict

import httpx

from ..config import DEFAULT_SCHEME, TilingScheme
from ..models import FetchErrorKind, FetchOutcome, TileCoords

logger = logging.getLogger(__name__)


class TileDownloadError(Exception):
    """Raised when a WMTS tile cannot be downloaded."""

    def __init__(
        self, message: str, *, kind: FetchErrorKind, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class TileClient:
    """Fetch single tiles from a WMTS ``GetTile`` endpoint and store them on disk."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        tiles_dir: Path,
        scheme: TilingScheme = DEFAULT_SCHEME,
    ) -> None:
        self.client = client
        self.tiles_dir = tiles_dir
        self.scheme = scheme

    def build_params(self, tile: TileCoords) -> Dict[str, str]:
        scheme = self.scheme
        return {
            "SERVICE": "WMTS",
            "REQUEST": "GetTile",
            "VERSION": "1.0.0",
            "LAYER": scheme.layer,
            "STYLE": scheme.style,
            "FORMAT": scheme.image_format,
            "TILEMATRIXSET": scheme.tile_matrix_set,
            "TILEMATRIX": str(scheme.zoom),
            "TILEROW": str(tile.row),
            "TILECOL": str(tile.col),
        }

    def tile_path(self, tile: TileCoords) -> Path:
        return self.tiles_dir / tile.filename

    async def download(self, tile: TileCoords) -> bytes:
        try:
            response = await self.client.get(self.scheme.base_url, params=self.build_params(tile))
        except httpx.RequestError as exc:
            detail = str(exc) or type(exc).__name__
            raise TileDownloadError(
                f"Failed to download tile {tile.row},{tile.col}: {detail}",
                kind=FetchErrorKind.TRANSPORT,
            ) from exc

        if not response.is_success:
            raise TileDownloadError(
                f"Failed to download tile {tile.row},{tile.col}: "
                f"{response.status_code} {_short_error_detail(response.reason_phrase)}",
                kind=FetchErrorKind.HTTP_STATUS,
                status_code=response.status_code,
            )
        return response.content

    async def fetch(self, tile: TileCoords) -> FetchOutcome:
        try:
            content = await self.download(tile)
        except TileDownloadError as exc:
            logger.warning("WMTS tile request failed: %s", exc)
            return FetchOutcome.failure(
                tile, exc.kind, str(exc), status_code=exc.status_code
            )

        path = self.tile_path(tile)
        try:
            path.write_bytes(content)
        except OSError as exc:
            logger.warning("Failed to write tile %s,%s to %s: %s", tile.row, tile.col, path, exc)
            return FetchOutcome.failure(
                tile, FetchErrorKind.WRITE, f"Failed to write tile {tile.row},{tile.col}: {exc}"
            )

        logger.debug("Stored tile %s,%s (%d bytes)", tile.row, tile.col, len(content))
        return FetchOutcome.success(tile, path, len(content))


def _short_error_detail(detail: str) -> str:
    detail = (detail or "").strip()
    if len(detail) > 160:
        return f"{detail[:157]}..."
    return detail or "(no detail)"
