"""Command-line interface for pointtiles.

This module provides CLI commands for generating point feature tile
pyramids and serving them, using the Typer framework.
"""
import pathlib
from typing import List, Optional

import typer

from . import config, server, utils
from .geodesy import EllipsoidProjection
from .sources import CSVFeatureSource, FeatureSource, GeoJSONFeatureSource
from .tilers.pyramid import PyramidError, point_tiles

app = typer.Typer(help="Draw point features as slippy map tiles and serve them to a web map.")


def _change_env(env):
    if env != "DEFAULT":
        config.change_env(env)


def open_source(path: pathlib.Path, crs=None, geodetic=False,
                x_column="x", y_column="y", sep=",") -> FeatureSource:
    """Pick a feature source for ``path`` based on its extension.

    GeoJSON files are always WGS84. Delimited text files are projected with
    ``crs`` (default from settings) unless ``geodetic`` is set.
    """
    if path.suffix.lower() in (".geojson", ".json"):
        return GeoJSONFeatureSource(path)
    projection = None if geodetic else EllipsoidProjection.from_crs(crs or config.get("crs"))
    return CSVFeatureSource(path, x_column=x_column, y_column=y_column,
                            projection=projection, sep=sep)


@app.command()
def build(
    source: pathlib.Path = typer.Argument(..., exists=True, dir_okay=False,
                                          help="GeoJSON or CSV file with point features."),
    zoom: Optional[List[int]] = typer.Option(None, "--zoom", "-z", help="Zoom level, repeatable."),
    out: Optional[pathlib.Path] = typer.Option(None, "--out", "-o", help="Tile output directory."),
    crs: Optional[str] = typer.Option(None, help="Transverse Mercator CRS of the CSV x/y columns."),
    geodetic: bool = typer.Option(False, "--geodetic", help="CSV x/y columns are lon/lat."),
    x_column: str = typer.Option("x", help="CSV column with easting or longitude."),
    y_column: str = typer.Option("y", help="CSV column with northing or latitude."),
    sep: str = typer.Option(",", help="CSV field delimiter."),
    category_field: Optional[str] = typer.Option(None, help="Attribute selecting the draw color."),
    encoding: Optional[str] = typer.Option(None, help="Legacy encoding of CSV attributes."),
    tile_size: Optional[int] = typer.Option(None, help="Tile size in pixels."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    env: str = typer.Option("DEFAULT", help="Settings environment."),
):
    """Generate a tile pyramid from point features."""
    _change_env(env)
    utils.VERBOSE = verbose
    try:
        feature_source = open_source(source, crs=crs, geodetic=geodetic,
                                     x_column=x_column, y_column=y_column, sep=sep)
    except ValueError as err:
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(code=1)

    tile_base = out or pathlib.Path(config.get("tile_dir"))
    try:
        report = point_tiles(feature_source, tile_base,
                             zoom_levels=list(zoom) if zoom else None,
                             category_field=category_field,
                             encoding=encoding,
                             tile_size=tile_size,
                             verbose=verbose)
    except (PyramidError, ValueError) as err:
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(code=1)
    typer.echo(report.summary())


@app.command()
def serve(
    tiles: Optional[pathlib.Path] = typer.Option(None, "--tiles", "-t",
                                                 help="Path to the directory containing tile files."),
    host: Optional[str] = typer.Option(None, help="Listen address."),
    port: Optional[int] = typer.Option(None, help="Listen port."),
    env: str = typer.Option("DEFAULT", help="Settings environment."),
):
    """Serve a tile directory and its viewer page over HTTP."""
    _change_env(env)
    tiles = tiles or pathlib.Path(config.get("tile_dir"))
    host = host or config.get("host")
    port = port or config.get("port")
    typer.echo(f"Serving {tiles} on http://{host}:{port}/")
    server.serve(tiles, host=host, port=port)


if __name__ == "__main__":
    app()
