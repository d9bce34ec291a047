"""Service utilities exposed by the ``wmts_mosaic.services`` package."""

from .client import TileClient, TileDownloadError
from .download import download_bbox, download_tiles
from .grid import CoordinateMapper, GridBuilder, expand_bbox
from .mosaic import MosaicDescriptorError, MosaicDescriptorWriter
from .scheduler import FetchScheduler, count_outcomes, run_all

__all__ = [
    "CoordinateMapper",
    "FetchScheduler",
    "GridBuilder",
    "MosaicDescriptorError",
    "MosaicDescriptorWriter",
    "TileClient",
    "TileDownloadError",
    "count_outcomes",
    "download_bbox",
    "download_tiles",
    "expand_bbox",
    "run_all",
]
