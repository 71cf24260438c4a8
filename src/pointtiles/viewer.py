"""Viewer page for a generated tile pyramid.

Renders a small Leaflet page showing the tiles on top of an OpenStreetMap
base layer, centered on the tiles found under the tile root.
"""
import pathlib
from typing import List, Optional, Tuple

from jinja2 import Template

from .tiling import TileGrid, TileGridAddress

TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{{ title }}</title>
  <link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css">
  <script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
  <style>html, body, #map { height: 100%; margin: 0; }</style>
</head>
<body>
  <div id="map"></div>
  <script>
    const map = L.map("map").setView([{{ center[0] }}, {{ center[1] }}], {{ zoom }});
    L.tileLayer("https://tile.openstreetmap.org/{z}/{x}/{y}.png", {
      maxZoom: 19,
      attribution: "&copy; OpenStreetMap contributors"
    }).addTo(map);
    L.tileLayer({{ tile_url | tojson }}, {
      minZoom: {{ min_zoom }},
      maxNativeZoom: {{ max_zoom }},
      maxZoom: 19
    }).addTo(map);
  </script>
</body>
</html>
"""


def available_zooms(tile_root) -> List[int]:
    """Zoom levels that have a directory under ``tile_root``."""
    root = pathlib.Path(tile_root)
    if not root.is_dir():
        return []
    return sorted(int(p.name) for p in root.iterdir() if p.is_dir() and p.name.isdigit())


def tiles_center(tile_root, zoom: int, grid: Optional[TileGrid] = None) -> Optional[Tuple[float, float]]:
    """Mean (lat, lon) of the tile centers at ``zoom``, or None if there are none."""
    grid = grid or TileGrid()
    centers = []
    for png in pathlib.Path(tile_root, str(zoom)).glob("*/*.png"):
        if not (png.parent.name.isdigit() and png.stem.isdigit()):
            continue
        address = TileGridAddress(int(png.parent.name), int(png.stem))
        centers.append(grid.tile_center(address, zoom))
    if not centers:
        return None
    return (sum(c.latitude for c in centers) / len(centers),
            sum(c.longitude for c in centers) / len(centers))


def render_index(tile_root, tile_url="/tiles/{z}/{x}/{y}.png", title="Point tiles"):
    """Render the viewer page for the tiles under ``tile_root``.

    Parameters
    ----------
    tile_root : str or pathlib.Path
        Directory holding the ``{zoom}/{x}/{y}.png`` tree.
    tile_url : str, optional
        URL template the page requests tiles from.
    title : str, optional
        Page title.

    Returns
    -------
    str
        HTML document.
    """
    zooms = available_zooms(tile_root)
    min_zoom, max_zoom = (zooms[0], zooms[-1]) if zooms else (0, 19)
    center = tiles_center(tile_root, min_zoom) if zooms else None
    template = Template(TEMPLATE)
    return template.render(title=title,
                           center=center or (0.0, 0.0),
                           zoom=min_zoom if center else 2,
                           min_zoom=min_zoom,
                           max_zoom=max_zoom,
                           tile_url=tile_url)


def generate_file(tile_root, config_file_path="./", **kwargs):
    """Write the viewer page as ``index.html`` in ``config_file_path``.

    Returns
    -------
    pathlib.Path
        Path of the written file.
    """
    output_path = pathlib.Path(config_file_path) / "index.html"
    with open(output_path, "w", encoding="utf-8") as fp:
        fp.write(render_index(tile_root, **kwargs))
    return output_path
