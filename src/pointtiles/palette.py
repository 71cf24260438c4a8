"""Category to draw-color lookup used when rasterizing point features."""
from typing import Mapping, Optional, Tuple

from matplotlib.colors import to_rgba

RGBA = Tuple[int, int, int, int]


def to_rgba8(color) -> RGBA:
    """Convert any matplotlib color spec to an 8-bit RGBA tuple.

    Parameters
    ----------
    color : str or tuple
        Named color, hex string or float/int tuple. Integer tuples are taken
        as already being 8-bit channels.

    Returns
    -------
    tuple of int
        (r, g, b, a) in 0..255.
    """
    if isinstance(color, (tuple, list)) and all(isinstance(c, int) for c in color):
        channels = tuple(color) + (255,) * (4 - len(color))
        return tuple(int(c) for c in channels[:4])
    return tuple(int(round(c * 255)) for c in to_rgba(color))


class CategoryPalette:
    """Explicit category to color mapping with a declared default.

    Unknown categories fall through to ``default`` instead of failing.

    Parameters
    ----------
    colors : mapping of str to color
        Draw color per category value.
    default : color
        Color for every other category.
    """

    def __init__(self, colors: Optional[Mapping] = None, default="#0000ff"):
        self.colors = {str(key): to_rgba8(value) for key, value in (colors or {}).items()}
        self.default = to_rgba8(default)

    def color_for(self, category) -> RGBA:
        return self.colors.get(str(category), self.default)

    def __repr__(self):
        return f"CategoryPalette({self.colors!r}, default={self.default!r})"


DEFAULT_PALETTE = CategoryPalette({"355": "#ff0000", "351": "#00ff00"}, default="#0000ff")
