"""Point feature sources.

A source yields raw records: a position in its native coordinate system
(planar meters of a projected system, or geodetic degrees) and attribute
values that may still be undecoded bytes in a legacy encoding. The
``load_features`` function turns those records into geodetic
``PointFeature`` objects ready for rendering, skipping and reporting the
records that cannot be used.
"""
import json
import pathlib
from dataclasses import dataclass, field
from typing import Iterator, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .geodesy import (EllipsoidProjection, GeodeticBoundingBox,
                      GeodeticCoordinate, ProjectedMeters)
from .palette import DEFAULT_PALETTE, RGBA, CategoryPalette
from .utils import vprint

NativePosition = Union[ProjectedMeters, GeodeticCoordinate]
NativeBounds = Tuple[float, float, float, float]


class AttributeDecodeError(ValueError):
    """Raised when an attribute value is not valid text in the source encoding."""

    def __init__(self, name, value, encoding):
        self.name = name
        self.value = value
        self.encoding = encoding
        super().__init__(f"attribute {name!r} value {value!r} is not valid {encoding}")


@dataclass(frozen=True)
class FeatureRecord:
    """Undecoded feature as read from a source."""

    key: str
    position: NativePosition
    attributes: Mapping[str, Union[bytes, str]] = field(default_factory=dict)


@dataclass(frozen=True)
class PointFeature:
    """Geodetic point feature with decoded attributes and its draw color."""

    key: str
    position: GeodeticCoordinate
    category: Optional[str]
    color: RGBA
    attributes: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FeatureProblem:
    """A source record that was skipped, and why."""

    key: str
    reason: str

    def __str__(self):
        return f"feature {self.key}: {self.reason}"


def _native_xy(position: NativePosition) -> Tuple[float, float]:
    if isinstance(position, ProjectedMeters):
        return position.easting, position.northing
    return position.longitude, position.latitude


class FeatureSource:
    """Base class for point feature sources.

    Attributes
    ----------
    projection : EllipsoidProjection or None
        Projection of the native positions, ``None`` if they are geodetic.
    """

    projection: Optional[EllipsoidProjection] = None

    def records(self) -> Iterator[FeatureRecord]:
        raise NotImplementedError

    def native_bounds(self) -> NativeBounds:
        """Native bounding box as ``(min_x, min_y, max_x, max_y)``.

        ``x`` is easting or longitude, ``y`` is northing or latitude.
        """
        xy = np.array([_native_xy(r.position) for r in self.records()], dtype=np.float64)
        if xy.size == 0:
            raise ValueError("Source has no records")
        min_x, min_y = np.nanmin(xy, axis=0)
        max_x, max_y = np.nanmax(xy, axis=0)
        return float(min_x), float(min_y), float(max_x), float(max_y)

    def geodetic_bounds(self) -> GeodeticBoundingBox:
        """Geodetic box enclosing the native bounds.

        For projected sources all four corners are inverse-projected, since
        the meridians are not parallel to the grid axes.
        """
        min_x, min_y, max_x, max_y = self.native_bounds()
        if self.projection is None:
            return GeodeticBoundingBox(north=max_y, east=max_x, south=min_y, west=min_x)
        lats, lons = self.projection.inverse(np.array([min_x, min_x, max_x, max_x]),
                                             np.array([max_y, min_y, max_y, min_y]))
        return GeodeticBoundingBox(north=float(lats.max()), east=float(lons.max()),
                                   south=float(lats.min()), west=float(lons.min()))


class InMemoryFeatureSource(FeatureSource):
    """Source over an already materialized list of records."""

    def __init__(self, records, projection: Optional[EllipsoidProjection] = None):
        self._records = list(records)
        self.projection = projection

    def records(self) -> Iterator[FeatureRecord]:
        return iter(self._records)


class GeoJSONFeatureSource(FeatureSource):
    """Point features from a GeoJSON FeatureCollection in WGS84.

    Non-point geometries are ignored.
    """

    def __init__(self, path):
        self.path = pathlib.Path(path)

    def records(self) -> Iterator[FeatureRecord]:
        with open(self.path, "r", encoding="utf-8") as fp:
            collection = json.load(fp)
        for idx, feature in enumerate(collection.get("features", [])):
            geometry = feature.get("geometry") or {}
            if geometry.get("type") != "Point":
                vprint(f"Skipping non-point feature {idx}", level=1)
                continue
            lon, lat = geometry["coordinates"][:2]
            properties = feature.get("properties") or {}
            yield FeatureRecord(
                key=str(feature.get("id", idx)),
                position=GeodeticCoordinate(latitude=float(lat), longitude=float(lon)),
                attributes={k: "" if v is None else str(v) for k, v in properties.items()})


class CSVFeatureSource(FeatureSource):
    """Point features from a delimited text file.

    The file is read byte-transparently; attribute values are handed on as
    bytes so that each feature can be decoded (and rejected) on its own.

    Parameters
    ----------
    path : str or pathlib.Path
        Input file.
    x_column : str, optional
        Column holding easting (projected) or longitude, by default "x".
    y_column : str, optional
        Column holding northing (projected) or latitude, by default "y".
    projection : EllipsoidProjection, optional
        Projection of the x/y columns. If None they are geodetic degrees.
    sep : str, optional
        Field delimiter, by default ",".
    """

    def __init__(self, path, x_column="x", y_column="y",
                 projection: Optional[EllipsoidProjection] = None, sep=","):
        self.path = pathlib.Path(path)
        self.x_column = x_column
        self.y_column = y_column
        self.projection = projection
        self.sep = sep
        self._frame = None

    @property
    def frame(self) -> pd.DataFrame:
        if self._frame is None:
            # latin-1 maps every byte to one code point, so it round-trips
            self._frame = pd.read_csv(self.path, sep=self.sep, dtype=str,
                                      encoding="latin-1", keep_default_na=False)
            missing = {self.x_column, self.y_column} - set(self._frame.columns)
            if missing:
                raise ValueError(f"{self.path} has no column(s) {sorted(missing)}")
        return self._frame

    def _coordinates(self) -> Tuple[np.ndarray, np.ndarray]:
        xs = pd.to_numeric(self.frame[self.x_column], errors="coerce").to_numpy(np.float64)
        ys = pd.to_numeric(self.frame[self.y_column], errors="coerce").to_numpy(np.float64)
        return xs, ys

    def native_bounds(self) -> NativeBounds:
        xs, ys = self._coordinates()
        if xs.size == 0:
            raise ValueError(f"{self.path} has no records")
        return (float(np.nanmin(xs)), float(np.nanmin(ys)),
                float(np.nanmax(xs)), float(np.nanmax(ys)))

    def records(self) -> Iterator[FeatureRecord]:
        xs, ys = self._coordinates()
        columns = [c for c in self.frame.columns if c not in (self.x_column, self.y_column)]
        values = {name: self.frame[name].to_numpy() for name in columns}
        for row_num, (x, y) in enumerate(zip(xs, ys)):
            if self.projection is None:
                position = GeodeticCoordinate(latitude=float(y), longitude=float(x))
            else:
                position = ProjectedMeters(easting=float(x), northing=float(y))
            attributes = {name: values[name][row_num].encode("latin-1") for name in columns}
            yield FeatureRecord(key=str(row_num), position=position, attributes=attributes)


def decode_attributes(raw: Mapping[str, Union[bytes, str]], encoding="cp1252") -> dict:
    """Decode attribute values to text.

    Parameters
    ----------
    raw : mapping
        Attribute name to bytes (decoded with ``encoding``) or str (kept).
    encoding : str, optional
        Legacy encoding of the byte values, by default "cp1252".

    Returns
    -------
    dict
        Attribute name to text.

    Raises
    ------
    AttributeDecodeError
        If a value contains bytes that are undefined in ``encoding``.
    """
    decoded = {}
    for name, value in raw.items():
        if isinstance(value, bytes):
            try:
                value = value.decode(encoding)
            except UnicodeDecodeError as err:
                raise AttributeDecodeError(name, value, encoding) from err
        decoded[name] = value
    return decoded


def load_features(source: FeatureSource, palette: CategoryPalette = DEFAULT_PALETTE,
                  category_field="KKOD", encoding="cp1252"
                  ) -> Tuple[List[PointFeature], List[FeatureProblem]]:
    """Materialize the features of a source in input order.

    Records whose attributes cannot be decoded, or whose position does not
    inverse-project to a finite coordinate, are skipped and reported.

    Parameters
    ----------
    source : FeatureSource
        Where to read records from.
    palette : CategoryPalette, optional
        Maps the category attribute to a draw color.
    category_field : str, optional
        Attribute holding the category, by default "KKOD".
    encoding : str, optional
        Legacy encoding of byte attributes, by default "cp1252".

    Returns
    -------
    tuple of list
        (features, problems)
    """
    features = []
    problems = []
    for record in source.records():
        try:
            attributes = decode_attributes(record.attributes, encoding)
        except AttributeDecodeError as err:
            problems.append(FeatureProblem(record.key, str(err)))
            vprint(f"Skipping feature {record.key}: {err}", level=1)
            continue

        position = record.position
        if isinstance(position, ProjectedMeters):
            if source.projection is None:
                raise ValueError(f"Feature {record.key} is projected but the source has no projection")
            position = source.projection.to_coordinate(position)
        if not position.is_finite():
            problems.append(FeatureProblem(record.key, "coordinate out of projectable range"))
            vprint(f"Skipping feature {record.key}: non-finite position", level=1)
            continue

        category = attributes.get(category_field)
        features.append(PointFeature(key=record.key,
                                     position=position,
                                     category=category,
                                     color=palette.color_for(category),
                                     attributes=attributes))
    return features, problems
