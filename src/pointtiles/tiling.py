"""Slippy-map (XYZ) tile indexing on the Web Mercator grid.

At zoom ``z`` the world is cut into ``2**z`` by ``2**z`` square tiles.
Tile ``(0, 0)`` is the north-west corner, ``x`` grows eastward and ``y``
grows southward. Within a tile, pixels are addressed from the top-left.
"""
import math
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple

from .geodesy import GeodeticBoundingBox, GeodeticCoordinate

EARTH_CIRCUMFERENCE = 40_075_016.686  # meters at equator
TILE_SIZE = 256

# Grid axis and the geodetic quantity it is derived from.
GRID_AXES = (("x", "longitude"), ("y", "latitude"))


class OutOfProjectableRange(ValueError):
    """Raised when a coordinate has no address on the tile grid."""


@dataclass(frozen=True)
class TileGridAddress:
    """Position on the tile grid in tile units.

    ``x`` is the column (from longitude), ``y`` is the row (from latitude).
    Integer values address whole tiles, fractional values address points
    inside a tile.
    """

    x: float
    y: float

    def offset(self, dx: float, dy: float) -> "TileGridAddress":
        return TileGridAddress(self.x + dx, self.y + dy)


@dataclass(frozen=True)
class PixelOffset:
    """Pixel inside a tile raster, origin at the top-left corner."""

    column: int
    row: int


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class TileGrid:
    """Web Mercator tile grid with square tiles of ``tile_size`` pixels."""

    tile_size: int = TILE_SIZE

    def fractional_address(self, coord: GeodeticCoordinate, zoom: int) -> TileGridAddress:
        """Un-floored grid address of a coordinate. May be non-finite."""
        if not coord.is_finite():
            return TileGridAddress(math.nan, math.nan)
        n = 2 ** zoom
        lat_rad = math.radians(coord.latitude)
        x = n / 360 * (coord.longitude + 180)
        y = n / 2 * (1 - math.asinh(math.tan(lat_rad)) / math.pi)
        return TileGridAddress(x, y)

    def address(self, coord: GeodeticCoordinate, zoom: int) -> TileGridAddress:
        """Integer address of the tile containing ``coord`` at ``zoom``.

        Raises
        ------
        OutOfProjectableRange
            If the coordinate does not land on a tile in ``[0, 2**zoom)``,
            e.g. at the poles or with non-finite input.
        """
        fractional = self.fractional_address(coord, zoom)
        if not (math.isfinite(fractional.x) and math.isfinite(fractional.y)):
            raise OutOfProjectableRange(f"{coord} has no tile address at zoom {zoom}")
        x = math.floor(fractional.x)
        y = math.floor(fractional.y)
        n = 2 ** zoom
        if not (0 <= x < n and 0 <= y < n):
            raise OutOfProjectableRange(
                f"{coord} maps to tile {x}/{y} outside the zoom {zoom} grid")
        return TileGridAddress(x, y)

    def northwest_corner(self, address: TileGridAddress, zoom: int) -> GeodeticCoordinate:
        """Geodetic coordinate of a (possibly fractional) grid address."""
        n = 2 ** zoom
        lat_rad = math.atan(math.sinh(math.pi * (1 - 2 * address.y / n)))
        return GeodeticCoordinate(latitude=math.degrees(lat_rad),
                                  longitude=address.x / n * 360 - 180)

    def tile_center(self, address: TileGridAddress, zoom: int) -> GeodeticCoordinate:
        return self.northwest_corner(address.offset(0.5, 0.5), zoom)

    def tile(self, address: TileGridAddress, zoom: int) -> "Tile":
        return Tile(center=self.tile_center(address, zoom), zoom=zoom, grid=self)

    def tiles_covering(self, box: GeodeticBoundingBox, zoom: int) -> Iterator["Tile"]:
        """All tiles in the rectangle spanned by the corners of ``box``.

        Tiles are yielded row by row, north to south and west to east.
        Tiles without any data in them are included.
        """
        northwest = self.address(box.northwest, zoom)
        southeast = self.address(box.southeast, zoom)
        for y in range(int(northwest.y), int(southeast.y) + 1):
            for x in range(int(northwest.x), int(southeast.x) + 1):
                yield self.tile(TileGridAddress(x, y), zoom)


@dataclass(frozen=True)
class Tile:
    """A single tile, identified by its center coordinate and zoom.

    Everything else (address, boundaries, resolution) is derived on demand.
    """

    center: GeodeticCoordinate
    zoom: int
    grid: TileGrid = field(default_factory=TileGrid, repr=False)

    def __str__(self):
        zoom, x, y = self.path_parts()
        return f"{zoom}/{x}/{y}"

    @property
    def address(self) -> TileGridAddress:
        return self.grid.address(self.center, self.zoom)

    def path_parts(self) -> Tuple[int, int, int]:
        address = self.address
        return self.zoom, int(address.x), int(address.y)

    def boundaries(self) -> GeodeticBoundingBox:
        address = self.address
        northwest = self.grid.northwest_corner(address, self.zoom)
        southeast = self.grid.northwest_corner(address.offset(1, 1), self.zoom)
        return GeodeticBoundingBox.from_corners(northwest, southeast)

    def meters_per_tile(self) -> float:
        """Ground width of the tile, flat-earth approximated at its center."""
        scale = 2 ** self.zoom
        return EARTH_CIRCUMFERENCE * math.cos(math.radians(self.center.latitude)) / scale

    def meters_per_pixel(self) -> float:
        return self.meters_per_tile() / self.grid.tile_size

    def pixel_position(self, coord: GeodeticCoordinate) -> Tuple[Optional[PixelOffset], bool]:
        """Pixel that ``coord`` falls on, and whether it is inside the tile.

        Returns ``(None, False)`` when ``coord`` is outside the tile
        boundaries. North is row 0. Coordinates exactly on the south or east
        edge land on the last row or column.
        """
        box = self.boundaries()
        if not box.contains(coord):
            return None, False
        size = self.grid.tile_size
        row = _round_half_up(size - size / (box.north - box.south) * (coord.latitude - box.south))
        column = _round_half_up(size / (box.east - box.west) * (coord.longitude - box.west))
        return PixelOffset(column=min(column, size - 1), row=min(row, size - 1)), True
