"""Point feature slippy map tiles.

Inverse-projects point features from national grid systems, cuts them into
Web Mercator XYZ tiles and renders one PNG per tile for a range of zoom
levels.
"""
from .geodesy import (SWEREF99_TM, EllipsoidProjection, GeodeticBoundingBox,
                      GeodeticCoordinate, ProjectedMeters)
from .tiling import (OutOfProjectableRange, PixelOffset, Tile, TileGrid,
                     TileGridAddress)
from .palette import CategoryPalette
from .sources import AttributeDecodeError, PointFeature, load_features
from .tilers.pyramid import BuildReport, PyramidBuilder, PyramidError

__version__ = "0.1.0"
