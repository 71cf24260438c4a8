"""Tile generation for map visualization.

This package contains modules for generating slippy map tile pyramids
from point feature data.
"""

from .pyramid import PyramidBuilder, point_tiles
