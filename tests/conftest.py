"""Shared pytest fixtures for pointtiles tests."""

import tempfile
from pathlib import Path

import pytest

from pointtiles.geodesy import GeodeticCoordinate
from pointtiles.palette import DEFAULT_PALETTE
from pointtiles.sources import PointFeature
from pointtiles.tiling import Tile, TileGrid


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def grid():
    """Provide the standard 256 px tile grid."""
    return TileGrid(256)


@pytest.fixture
def stockholm_tile(grid):
    """Provide a tile centered south of Stockholm at zoom 7."""
    return Tile(center=GeodeticCoordinate(58.960351, 18.314639), zoom=7, grid=grid)


@pytest.fixture
def sample_features():
    """Provide three point features with the reserved and a default category."""
    points = [
        ("0", 58.957488, 18.292103, "355"),
        ("1", 59.326855, 18.071839, "351"),
        ("2", 58.873208, 17.880177, "other"),
    ]
    return [
        PointFeature(key=key,
                     position=GeodeticCoordinate(lat, lon),
                     category=category,
                     color=DEFAULT_PALETTE.color_for(category),
                     attributes={"KKOD": category})
        for key, lat, lon, category in points
    ]
