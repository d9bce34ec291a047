from __future__ import annotations

import logging
from pathlib import Path
from typing import AbstractSet, Sequence, Tuple
import xml.etree.ElementTree as ET

from ..config import DEFAULT_SCHEME, DESCRIPTOR_FILENAME, TILES_DIRNAME, TilingScheme
from ..models import TileAddress, TileCoords

logger = logging.getLogger(__name__)

BAND_COLORS: Tuple[str, ...] = ("Red", "Green", "Blue")


class MosaicDescriptorError(Exception):
    """Raised when the VRT mosaic descriptor cannot be produced."""


class MosaicDescriptorWriter:
    """Emit a GDAL VRT placing every tile file at its pixel offset.

    The canvas is ``len(tiles) * tile_size`` on each axis and is not clipped
    to the requested area. Destination offsets are absolute grid positions
    (``col * tile_size``, ``row * tile_size``), which the geotransform anchors
    on cell (0, 0) of the tiling scheme.
    """

    def __init__(self, output_dir: Path, scheme: TilingScheme = DEFAULT_SCHEME) -> None:
        self.output_dir = output_dir
        self.scheme = scheme

    @property
    def path(self) -> Path:
        return self.output_dir / DESCRIPTOR_FILENAME

    def write(
        self,
        tiles: Sequence[TileCoords],
        success_count: int,
        *,
        downloaded: AbstractSet[TileAddress] | None = None,
    ) -> Path:
        """Write the descriptor and return its path.

        When ``downloaded`` is given only those tiles are referenced; otherwise
        every tile is listed whether or not its file exists.
        """

        if success_count <= 0:
            raise MosaicDescriptorError("No tiles were successfully downloaded")

        sources = list(tiles)
        if downloaded is not None:
            sources = [tile for tile in sources if tile.address in downloaded]

        document = self.render(tiles, sources)
        try:
            self.path.write_text(document, encoding="utf-8")
        except OSError as exc:
            raise MosaicDescriptorError(f"Unable to write {self.path}: {exc}") from exc

        logger.info("Wrote VRT mosaic %s referencing %d tiles", self.path, len(sources))
        return self.path

    def render(self, tiles: Sequence[TileCoords], sources: Sequence[TileCoords]) -> str:
        tile_size = self.scheme.tile_size
        canvas = str(len(tiles) * tile_size)
        root = ET.Element("VRTDataset", rasterXSize=canvas, rasterYSize=canvas)
        ET.SubElement(root, "SRS").text = self.scheme.crs
        ET.SubElement(root, "GeoTransform").text = self._geotransform()

        for band, color in enumerate(BAND_COLORS, start=1):
            band_element = ET.SubElement(
                root, "VRTRasterBand", dataType="Byte", band=str(band)
            )
            ET.SubElement(band_element, "ColorInterp").text = color
            for tile in sources:
                self._append_source(band_element, tile, band)

        ET.indent(root, space="  ")
        return ET.tostring(root, encoding="unicode") + "\n"

    def _append_source(self, band_element: ET.Element, tile: TileCoords, band: int) -> None:
        size = str(self.scheme.tile_size)
        source = ET.SubElement(band_element, "SimpleSource")
        filename = ET.SubElement(source, "SourceFilename", relativeToVRT="1")
        filename.text = f"{TILES_DIRNAME}/{tile.filename}"
        ET.SubElement(source, "SourceBand").text = str(band)
        ET.SubElement(source, "SrcRect", xOff="0", yOff="0", xSize=size, ySize=size)
        ET.SubElement(
            source,
            "DstRect",
            xOff=str(tile.col * self.scheme.tile_size),
            yOff=str(tile.row * self.scheme.tile_size),
            xSize=size,
            ySize=size,
        )

    def _geotransform(self) -> str:
        scheme = self.scheme
        origin_x = scheme.reference_x - scheme.reference_col * scheme.tile_span
        origin_y = scheme.reference_y + scheme.reference_row * scheme.tile_span
        values = (origin_x, scheme.resolution, 0.0, origin_y, 0.0, -scheme.resolution)
        return ", ".join(repr(float(value)) for value in values)
