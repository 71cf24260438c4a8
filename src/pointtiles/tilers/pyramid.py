"""Slippy Tile Pyramid Generator for Point Features.

This module rasterizes point features into transparent RGBA slippy map
tiles. Every tile in the rectangle covering the dataset is produced at each
requested zoom level, including tiles without any features, and written to
``{output_root}/{zoom}/{x}/{y}.png``.

Each tile is rendered only from the shared, immutable feature list and grid,
and each (zoom, x, y) maps to its own file, so tiles are independent of each
other. Features are drawn in input order: a later feature overwrites an
earlier one on the same pixel.
"""
import errno
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
from PIL import Image
from tqdm import tqdm

from .. import config
from ..geodesy import GeodeticBoundingBox, GeodeticCoordinate
from ..palette import RGBA, CategoryPalette
from ..sources import FeatureProblem, FeatureSource, PointFeature, load_features
from ..tiling import OutOfProjectableRange, Tile, TileGrid
from ..utils import vprint

# Errors that will hit every remaining tile as well
SYSTEMIC_ERRNOS = {errno.ENOSPC, errno.EROFS, getattr(errno, "EDQUOT", errno.ENOSPC)}


class PyramidError(RuntimeError):
    """Raised when tile generation cannot continue at all."""


class TileRaster:
    """RGBA pixel buffer bound to one tile, transparent until drawn on.

    Parameters
    ----------
    tile : Tile
        The tile this raster renders.
    """

    def __init__(self, tile: Tile):
        self.tile = tile
        size = tile.grid.tile_size
        self.pixels = np.zeros((size, size, 4), dtype=np.uint8)

    def draw_point(self, coord: GeodeticCoordinate, color: RGBA) -> bool:
        """Set the pixel under ``coord``. Returns False if it is off the tile."""
        offset, found = self.tile.pixel_position(coord)
        if not found:
            return False
        self.pixels[offset.row, offset.column] = color
        return True


class PngSink:
    """Encode RGBA pixel buffers as PNG files."""

    suffix = ".png"

    def write(self, pixels: np.ndarray, path: Path):
        Image.fromarray(pixels).save(path, format="PNG")


@dataclass(frozen=True)
class TileProblem:
    """A tile that could not be written, and why."""

    zoom: int
    x: int
    y: int
    reason: str

    def __str__(self):
        return f"tile {self.zoom}/{self.x}/{self.y}: {self.reason}"


@dataclass
class BuildReport:
    """Outcome of a pyramid generation run."""

    written: List[Path] = field(default_factory=list)
    skipped_tiles: List[TileProblem] = field(default_factory=list)
    skipped_zooms: Dict[int, str] = field(default_factory=dict)
    skipped_features: List[FeatureProblem] = field(default_factory=list)

    def summary(self) -> str:
        lines = [f"{len(self.written)} tiles written, "
                 f"{len(self.skipped_tiles)} tiles skipped, "
                 f"{len(self.skipped_features)} features skipped"]
        for zoom, reason in self.skipped_zooms.items():
            lines.append(f"  zoom {zoom}: {reason}")
        lines.extend(f"  {problem}" for problem in self.skipped_tiles)
        lines.extend(f"  {problem}" for problem in self.skipped_features)
        return "\n".join(lines)


class PyramidBuilder:
    """Generate a tile pyramid from point features.

    Parameters
    ----------
    output_root : str or pathlib.Path
        Directory receiving the ``{zoom}/{x}/{y}`` tree.
    grid : TileGrid, optional
        Tile grid shared by every tile of the run, by default 256 px tiles.
    sink : PngSink, optional
        Image encoder, by default PNG.
    progress : bool, optional
        Show a progress bar per zoom level, by default True.
    """

    def __init__(self, output_root, grid: Optional[TileGrid] = None,
                 sink: Optional[PngSink] = None, progress=True):
        self.output_root = Path(output_root)
        self.grid = grid or TileGrid()
        self.sink = sink or PngSink()
        self.progress = progress

    def tile_path(self, tile: Tile) -> Path:
        zoom, x, y = tile.path_parts()
        return self.output_root / str(zoom) / str(x) / f"{y}{self.sink.suffix}"

    def render_tile(self, tile: Tile, features: Iterable[PointFeature]) -> TileRaster:
        raster = TileRaster(tile)
        for feature in features:
            raster.draw_point(feature.position, feature.color)
        return raster

    def build(self, features: Sequence[PointFeature], zoom_levels: Sequence[int],
              bounds: Optional[GeodeticBoundingBox] = None) -> BuildReport:
        """Render and write every tile covering ``bounds`` at each zoom.

        Parameters
        ----------
        features : sequence of PointFeature
            Features to draw, in draw order.
        zoom_levels : sequence of int
            Zoom levels to generate.
        bounds : GeodeticBoundingBox, optional
            Area to cover. Defaults to the box around the features.

        Returns
        -------
        BuildReport

        Raises
        ------
        PyramidError
            If there is nothing to cover, the output root cannot be created,
            or the file system fails in a way that affects every tile.
        """
        features = list(features)
        if bounds is None:
            if not features:
                raise PyramidError("No features and no bounds to generate tiles for")
            bounds = GeodeticBoundingBox.of(f.position for f in features)
        try:
            self.output_root.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise PyramidError(f"Cannot create output directory {self.output_root}: {err}") from err

        vprint(f"Processing {len(features)} features within {bounds}")
        report = BuildReport()
        for zoom in zoom_levels:
            vprint(f"Generating tiles for zoom level {zoom}")
            try:
                tiles = list(self.grid.tiles_covering(bounds, zoom))
            except OutOfProjectableRange as err:
                print(f"Skipping zoom level {zoom}: {err}")
                report.skipped_zooms[zoom] = str(err)
                continue
            vprint(f"Total tiles to generate: {len(tiles)}", level=1)

            for tile in tqdm(tiles, desc=f"Zoom {zoom}", unit="tile", disable=not self.progress):
                self._write_tile(tile, features, report)
            vprint(f"Completed zoom level {zoom}")
        return report

    def _write_tile(self, tile: Tile, features: List[PointFeature], report: BuildReport):
        raster = self.render_tile(tile, features)
        path = self.tile_path(tile)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self.sink.write(raster.pixels, path)
        except OSError as err:
            if err.errno in SYSTEMIC_ERRNOS:
                raise PyramidError(f"Error generating tile {tile}: {err}") from err
            zoom, x, y = tile.path_parts()
            print(f"Error generating tile {zoom}/{x}/{y}: {err}")
            report.skipped_tiles.append(TileProblem(zoom, x, y, str(err)))
            return
        report.written.append(path)

    def build_from_source(self, source: FeatureSource, zoom_levels: Sequence[int],
                          palette: Optional[CategoryPalette] = None,
                          category_field="KKOD", encoding="cp1252") -> BuildReport:
        """Load features from ``source`` and build the pyramid over its bounds.

        Records that cannot be loaded are skipped and listed in the report.
        """
        kwargs = {} if palette is None else {"palette": palette}
        features, problems = load_features(source, category_field=category_field,
                                           encoding=encoding, **kwargs)
        try:
            bounds = source.geodetic_bounds()
        except ValueError as err:
            raise PyramidError(f"Cannot determine dataset bounds: {err}") from err
        report = self.build(features, zoom_levels, bounds=bounds)
        report.skipped_features.extend(problems)
        return report


def point_tiles(source: FeatureSource, tile_base, zoom_levels=None,
                palette: Optional[CategoryPalette] = None, category_field=None,
                encoding=None, tile_size=None, verbose=True) -> BuildReport:
    """Generate slippy map tiles for a feature source using the settings.

    Parameters
    ----------
    source : FeatureSource
        Point features to draw.
    tile_base : str or pathlib.Path
        Base output directory for generated tiles.
    zoom_levels : list of int, optional
        Zoom levels. If None, uses settings.
    palette : CategoryPalette, optional
        Category colors. If None, built from settings.
    category_field : str, optional
        Category attribute. If None, uses settings.
    encoding : str, optional
        Legacy attribute encoding. If None, uses settings.
    tile_size : int, optional
        Tile width/height in pixels. If None, uses settings.
    verbose : bool, optional
        Whether to show progress bars, by default True.

    Returns
    -------
    BuildReport
    """
    if palette is None:
        palette = CategoryPalette(config.get("category_colors"), config.get("default_color"))
    builder = PyramidBuilder(tile_base,
                             grid=TileGrid(int(tile_size or config.get("tile_size"))),
                             progress=verbose)
    return builder.build_from_source(source,
                                     zoom_levels or config.get("zoom_levels"),
                                     palette=palette,
                                     category_field=category_field or config.get("category_field"),
                                     encoding=encoding or config.get("encoding"))
