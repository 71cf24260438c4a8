"""Geodetic coordinates and the inverse Transverse Mercator projection.

Geodetic coordinates are expressed in degrees on the WGS84 ellipsoid
(EPSG:4326). Planar coordinates from national grid systems such as
SWEREF99 TM are turned back into latitude/longitude with Krüger's series
expansion of the ellipsoidal Transverse Mercator projection.

References
----------
https://www.lantmateriet.se/sv/geodata/gps-geodesi-och-swepos/Om-geodesi/Formelsamling/
https://www.trafiklab.se/sv/docs/using-trafiklab-data/combining-data/converting-sweref99-to-wgs84/
"""
import math
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np
from pyproj import CRS
from pyproj.exceptions import CRSError


@dataclass(frozen=True)
class GeodeticCoordinate:
    """A point on the reference ellipsoid, in degrees."""

    latitude: float
    longitude: float

    def __str__(self):
        return f"{self.latitude:.6f}N {self.longitude:.6f}E"

    def is_finite(self) -> bool:
        return math.isfinite(self.latitude) and math.isfinite(self.longitude)


@dataclass(frozen=True)
class ProjectedMeters:
    """Easting/northing pair in the linear unit of a projected system."""

    easting: float
    northing: float

    def __str__(self):
        return f"N {self.northing:.1f}, E {self.easting:.1f}"


@dataclass(frozen=True)
class GeodeticBoundingBox:
    """Axis-aligned box in degrees. All four edges are inclusive."""

    north: float
    east: float
    south: float
    west: float

    @classmethod
    def from_corners(cls, northwest: GeodeticCoordinate,
                     southeast: GeodeticCoordinate) -> "GeodeticBoundingBox":
        return cls(north=northwest.latitude, east=southeast.longitude,
                   south=southeast.latitude, west=northwest.longitude)

    @classmethod
    def of(cls, coords: Iterable[GeodeticCoordinate]) -> "GeodeticBoundingBox":
        """Smallest box enclosing a non-empty collection of coordinates."""
        coords = list(coords)
        if not coords:
            raise ValueError("Cannot compute the bounding box of no coordinates")
        lats = [c.latitude for c in coords]
        lons = [c.longitude for c in coords]
        return cls(north=max(lats), east=max(lons), south=min(lats), west=min(lons))

    @property
    def northwest(self) -> GeodeticCoordinate:
        return GeodeticCoordinate(self.north, self.west)

    @property
    def southeast(self) -> GeodeticCoordinate:
        return GeodeticCoordinate(self.south, self.east)

    def contains(self, coord: GeodeticCoordinate) -> bool:
        return (self.south <= coord.latitude <= self.north and
                self.west <= coord.longitude <= self.east)

    def __str__(self):
        return (f"{self.north:.6f}N(max) {self.east:.6f}E(max) "
                f"{self.south:.6f}N(min) {self.west:.6f}E(min)")


def _series(x: float, a: float, b: float, c: float, d: float) -> float:
    return a * x + b * x**2 + c * x**3 + d * x**4


@dataclass(frozen=True)
class EllipsoidProjection:
    """Ellipsoidal Transverse Mercator (Gauss-Krüger) reference system.

    Parameters
    ----------
    axis : float
        Semi-major axis of the ellipsoid in meters.
    flattening : float
        Flattening of the ellipsoid.
    central_meridian : float
        Longitude of the central meridian in degrees.
    scale : float
        Scale factor along the central meridian.
    false_northing : float
        Northing offset in meters.
    false_easting : float
        Easting offset in meters.
    """

    axis: float
    flattening: float
    central_meridian: float
    scale: float
    false_northing: float
    false_easting: float

    @classmethod
    def from_crs(cls, crs) -> "EllipsoidProjection":
        """Read the projection parameters of a Transverse Mercator CRS.

        Parameters
        ----------
        crs : str, int or pyproj.CRS
            Anything accepted by ``pyproj.CRS.from_user_input``, e.g.
            ``"EPSG:3006"`` or ``32633``.

        Returns
        -------
        EllipsoidProjection

        Raises
        ------
        ValueError
            If the CRS is unknown, or not a Transverse Mercator projection
            with its natural origin on the equator.
        """
        try:
            crs = CRS.from_user_input(crs)
        except CRSError as err:
            raise ValueError(f"Unknown CRS {crs!r}: {err}") from err
        operation = crs.coordinate_operation
        if operation is None or operation.method_name != "Transverse Mercator":
            raise ValueError(f"{crs.name} is not a Transverse Mercator projection")
        params = {param.name: param.value for param in operation.params}
        if params.get("Latitude of natural origin", 0.0) != 0.0:
            raise ValueError(f"{crs.name} has its natural origin off the equator")
        ellipsoid = crs.ellipsoid
        return cls(axis=ellipsoid.semi_major_metre,
                   flattening=1.0 / ellipsoid.inverse_flattening,
                   central_meridian=params["Longitude of natural origin"],
                   scale=params["Scale factor at natural origin"],
                   false_northing=params["False northing"],
                   false_easting=params["False easting"])

    @property
    def third_flattening(self) -> float:
        return self.flattening / (2 - self.flattening)

    @property
    def eccentricity_squared(self) -> float:
        return self.flattening * (2 - self.flattening)

    @property
    def rectifying_radius(self) -> float:
        n = self.third_flattening
        return self.axis / (1 + n) * (1 + n**2 / 4 + n**4 / 64)

    def inverse(self, easting, northing) -> Tuple[np.ndarray, np.ndarray]:
        """Inverse-project eastings/northings to latitudes/longitudes.

        Works on scalars and numpy arrays alike. No range validation is
        done: out-of-domain input gives meaningless but defined output, and
        non-finite input gives non-finite output.

        Parameters
        ----------
        easting : float or numpy.ndarray
            Easting in meters.
        northing : float or numpy.ndarray
            Northing in meters.

        Returns
        -------
        tuple of numpy.ndarray
            (latitude, longitude) in degrees.
        """
        n = self.third_flattening
        scaled_radius = self.scale * self.rectifying_radius
        easting = np.asarray(easting, dtype=np.float64)
        northing = np.asarray(northing, dtype=np.float64)

        with np.errstate(invalid="ignore", over="ignore", divide="ignore"):
            xi = (northing - self.false_northing) / scaled_radius
            eta = (easting - self.false_easting) / scaled_radius

            xi_prime = xi.copy()
            eta_prime = eta.copy()
            for k, delta in enumerate(_deltas(n), start=1):
                xi_prime = xi_prime - delta * np.sin(2*k*xi) * np.cosh(2*k*eta)
                eta_prime = eta_prime - delta * np.cos(2*k*xi) * np.sinh(2*k*eta)

            latitude = self._latitude(xi_prime, eta_prime)
            longitude = (math.radians(self.central_meridian) +
                         np.arctan(np.sinh(eta_prime) / np.cos(xi_prime)))
        return np.degrees(latitude), np.degrees(longitude)

    def to_coordinate(self, point: ProjectedMeters) -> GeodeticCoordinate:
        """Inverse-project a single planar point."""
        latitude, longitude = self.inverse(point.easting, point.northing)
        return GeodeticCoordinate(float(latitude), float(longitude))

    def _latitude(self, xi_prime, eta_prime):
        e2 = self.eccentricity_squared
        a_star = _series(e2, 1, 1, 1, 1)
        b_star = _series(e2, 0, 7, 17, 30) / -6
        c_star = _series(e2, 0, 0, 224, 889) / 120
        d_star = _series(e2, 0, 0, 0, 4279) / -1260

        phi_star = np.arcsin(np.sin(xi_prime) / np.cosh(eta_prime))
        sin_phi = np.sin(phi_star)
        return phi_star + sin_phi * np.cos(phi_star) * (
            a_star +
            b_star * sin_phi**2 +
            c_star * sin_phi**4 +
            d_star * sin_phi**6)


def _deltas(n: float) -> Tuple[float, float, float, float]:
    """Correction coefficients delta_1..delta_4 of the inverse series."""
    return (_series(n, 1/2, -2/3, 37/96, -1/360),
            _series(n, 0, 1/48, 1/15, -437/1440),
            _series(n, 0, 0, 17/480, -37/840),
            _series(n, 0, 0, 0, 4397/161_280))


SWEREF99_TM = EllipsoidProjection(axis=6_378_137,
                                  flattening=1.0 / 298.257222101,
                                  central_meridian=15,
                                  scale=0.9996,
                                  false_northing=0,
                                  false_easting=5e5)
