import xml.etree.ElementTree as ET

import pytest

from wmts_mosaic.config import TilingScheme
from wmts_mosaic.models import TileAddress, TileCoords
from wmts_mosaic.services.mosaic import MosaicDescriptorError, MosaicDescriptorWriter

TILES = [
    TileCoords(row=195404, col=275651, x=0.0, y=0.0),
    TileCoords(row=195404, col=275652, x=51.2, y=0.0),
    TileCoords(row=195405, col=275651, x=0.0, y=-51.2),
    TileCoords(row=195405, col=275652, x=51.2, y=-51.2),
]


def _sources(root: ET.Element) -> list[ET.Element]:
    return root.findall("./VRTRasterBand/SimpleSource")


def test_zero_successes_refuse_without_creating_a_file(tmp_path):
    writer = MosaicDescriptorWriter(tmp_path)

    with pytest.raises(MosaicDescriptorError) as exc:
        writer.write(TILES, 0)

    assert "No tiles were successfully downloaded" in str(exc.value)
    assert not (tmp_path / "mosaic.vrt").exists()


def test_descriptor_layout(tmp_path):
    path = MosaicDescriptorWriter(tmp_path).write(TILES, len(TILES))

    assert path == tmp_path / "mosaic.vrt"
    root = ET.parse(path).getroot()
    assert root.tag == "VRTDataset"
    assert root.get("rasterXSize") == str(len(TILES) * 256)
    assert root.get("rasterYSize") == str(len(TILES) * 256)
    assert root.findtext("SRS") == "EPSG:2154"

    bands = root.findall("VRTRasterBand")
    assert [band.get("band") for band in bands] == ["1", "2", "3"]
    assert [band.findtext("ColorInterp") for band in bands] == ["Red", "Green", "Blue"]
    assert all(band.get("dataType") == "Byte" for band in bands)
    assert len(_sources(root)) == 3 * len(TILES)


def test_sources_are_placed_at_grid_offsets(tmp_path):
    path = MosaicDescriptorWriter(tmp_path).write(TILES, 1)

    band = ET.parse(path).getroot().find("VRTRasterBand")
    sources = band.findall("SimpleSource")
    assert [source.findtext("SourceFilename") for source in sources] == [
        f"tiles/tile_{tile.row}_{tile.col}.jpeg" for tile in TILES
    ]
    first = sources[0]
    assert first.find("SourceFilename").get("relativeToVRT") == "1"
    assert first.findtext("SourceBand") == "1"
    assert first.find("SrcRect").attrib == {"xOff": "0", "yOff": "0", "xSize": "256", "ySize": "256"}
    assert first.find("DstRect").attrib == {
        "xOff": str(275651 * 256),
        "yOff": str(195404 * 256),
        "xSize": "256",
        "ySize": "256",
    }


def test_geotransform_is_anchored_on_the_first_cell(tmp_path):
    scheme = TilingScheme(
        reference_x=0.0, reference_y=0.0, reference_row=100, reference_col=200,
        resolution=1.0, tile_size=10, crs="EPSG:3857",
    )
    tiles = [TileCoords(row=100, col=200, x=0.0, y=0.0)]

    path = MosaicDescriptorWriter(tmp_path, scheme).write(tiles, 1)

    root = ET.parse(path).getroot()
    assert root.findtext("SRS") == "EPSG:3857"
    values = [float(value) for value in root.findtext("GeoTransform").split(",")]
    assert values == [-2000.0, 1.0, 0.0, 1000.0, 0.0, -1.0]
    dst = root.find("./VRTRasterBand/SimpleSource/DstRect")
    # Pixel offset times resolution lands back on the tile's top-left corner.
    assert values[0] + int(dst.get("xOff")) * values[1] == tiles[0].x
    assert values[3] + int(dst.get("yOff")) * values[5] == tiles[0].y


def test_failed_tiles_are_left_out_when_downloads_are_known(tmp_path):
    downloaded = {TILES[0].address, TileAddress(row=195405, col=275652)}

    path = MosaicDescriptorWriter(tmp_path).write(TILES, len(downloaded), downloaded=downloaded)

    root = ET.parse(path).getroot()
    names = {source.findtext("SourceFilename") for source in _sources(root)}
    assert names == {"tiles/tile_195404_275651.jpeg", "tiles/tile_195405_275652.jpeg"}
    assert len(_sources(root)) == 3 * len(downloaded)
    assert root.get("rasterXSize") == str(len(TILES) * 256)


def test_every_tile_is_listed_without_download_information(tmp_path):
    path = MosaicDescriptorWriter(tmp_path).write(TILES, 1)

    root = ET.parse(path).getroot()
    assert len(_sources(root)) == 3 * len(TILES)
    assert not (tmp_path / "tiles").exists()


def test_existing_descriptor_is_overwritten(tmp_path):
    (tmp_path / "mosaic.vrt").write_text("stale")

    MosaicDescriptorWriter(tmp_path).write(TILES[:1], 1)

    assert ET.parse(tmp_path / "mosaic.vrt").getroot().get("rasterXSize") == "256"


def test_io_errors_are_reported_as_descriptor_errors(tmp_path):
    writer = MosaicDescriptorWriter(tmp_path / "does-not-exist")

    with pytest.raises(MosaicDescriptorError):
        writer.write(TILES, 2)
