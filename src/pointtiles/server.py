"""HTTP server for a generated tile pyramid.

Serves ``GET /tiles/{zoom}/{x}/{y}.png`` straight from the tile root and a
viewer page on ``GET /``. Malformed tile paths are answered with a plain
404, never with a server error.
"""
import pathlib
from dataclasses import dataclass

import uvicorn
from fastapi import FastAPI
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse

from . import config
from .utils import vprint
from .viewer import render_index

# Allowed tile file extensions and their media types
VALID_SUFFIXES = {".png": "image/png"}


class TilePathError(ValueError):
    """Raised when a request path does not name a tile."""


@dataclass(frozen=True)
class TilePath:
    """Tile file addressed by a request path."""

    base: pathlib.Path
    zoom: int
    x: int
    y: int
    suffix: str

    @property
    def path(self) -> pathlib.Path:
        return pathlib.Path(self.base) / str(self.zoom) / str(self.x) / f"{self.y}{self.suffix}"

    def __str__(self):
        return str(self.path)


def _parse_index(label, text):
    if not (text.isascii() and text.isdigit()):
        raise TilePathError(f"invalid {label}: {text!r}")
    return int(text)


def parse_tile_path(base, request_path: str) -> TilePath:
    """Parse the ``{zoom}/{x}/{y}.{ext}`` tail of a request path.

    Parameters
    ----------
    base : str or pathlib.Path
        Tile root the returned path is relative to.
    request_path : str
        URL path, e.g. ``/tiles/8/141/75.png``.

    Returns
    -------
    TilePath

    Raises
    ------
    TilePathError
        If the extension is not allowed or a segment is not a
        non-negative integer.
    """
    segments = request_path.split("/")
    if len(segments) < 3:
        raise TilePathError(f"not a tile path: {request_path!r}")
    zoom, x, name = segments[-3:]

    suffix = pathlib.PurePosixPath(name).suffix.lower()
    if suffix not in VALID_SUFFIXES:
        raise TilePathError(f"invalid filetype: {suffix!r}")
    y = name.split(".", 1)[0]

    errors = []
    values = {}
    for label, text in (("zoom", zoom), ("x", x), ("y", y)):
        try:
            values[label] = _parse_index(label, text)
        except TilePathError as err:
            errors.append(str(err))
    if errors:
        raise TilePathError("; ".join(errors))
    return TilePath(base=pathlib.Path(base), suffix=suffix, **values)


def create_app(tile_root=None) -> FastAPI:
    """Build the tile server application.

    Parameters
    ----------
    tile_root : str or pathlib.Path, optional
        Directory with the ``{zoom}/{x}/{y}.png`` tree. If None, uses
        settings.
    """
    tile_root = pathlib.Path(tile_root or config.get("tile_dir"))
    app = FastAPI(title="pointtiles tile server")
    app.state.tile_root = tile_root

    @app.get("/", response_class=HTMLResponse)
    def index():
        return HTMLResponse(render_index(tile_root))

    @app.get("/tiles/{tile_path:path}")
    def tile(tile_path: str):
        try:
            tp = parse_tile_path(tile_root, tile_path)
        except TilePathError as err:
            vprint(f"Rejected tile request {tile_path!r}: {err}")
            return PlainTextResponse("Not found", status_code=404)
        if not tp.path.is_file():
            return PlainTextResponse("Not found", status_code=404)
        return FileResponse(tp.path, media_type=VALID_SUFFIXES[tp.suffix])

    return app


def serve(tile_root=None, host=None, port=None):
    """Serve the tile root until interrupted."""
    uvicorn.run(create_app(tile_root),
                host=host or config.get("host"),
                port=int(port or config.get("port")))
