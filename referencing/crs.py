"""
Coordinate Reference Systems.

A coordinate reference system (CRS) is a coordinate system bound to a geodetic
datum: geographic (latitude, longitude on an ellipsoid), projected (easting,
northing produced by a map projection of a geographic CRS) or geocentric
(X, Y, Z from the ellipsoid centre).

All CRS objects are immutable and hashable, so they can be used as keys of the
coordinate operation cache.

The module also defines a few hard-coded CRS:

    WGS84        (latitude, longitude) in degrees, EPSG:4326 axis order
    WGS84_λφ     (longitude, latitude) in degrees
    WGS84_3D     (latitude, longitude, ellipsoidal height)
    GEOCENTRIC   WGS 84 geocentric (X, Y, Z) in metres
    SPHERE       (longitude, latitude) on the GRS 1980 authalic sphere
    SPHERE_φλ    (latitude, longitude) on the GRS 1980 authalic sphere
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Mapping, Tuple, Union

from geospatial.coordinate_models import (
    Ellipsoid,
    GeodeticDatum,
    SPHERE_DATUM,
    WGS84_DATUM,
)
from referencing.coordinate_system import (
    CartesianCS,
    CoordinateSystem,
    EllipsoidalCS,
    EASTING_AXIS,
    NORTHING_AXIS,
    ELLIPSOIDAL_HEIGHT_AXIS,
    GEOCENTRIC_X_AXIS,
    GEOCENTRIC_Y_AXIS,
    GEOCENTRIC_Z_AXIS,
    LATITUDE_AXIS,
    LONGITUDE_AXIS,
)


@dataclass(frozen=True)
class CoordinateReferenceSystem(ABC):
    """Base class of coordinate reference systems."""
    name: str

    @property
    @abstractmethod
    def coordinate_system(self) -> CoordinateSystem:
        """Axes of the coordinates in this CRS."""

    @property
    @abstractmethod
    def datum(self) -> GeodeticDatum:
        """Geodetic datum, directly or through the base CRS."""

    @property
    def dimension(self) -> int:
        return self.coordinate_system.dimension

    @property
    def ellipsoid(self) -> Ellipsoid:
        return self.datum.ellipsoid

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class GeographicCRS(CoordinateReferenceSystem):
    """Latitude and longitude (and optionally ellipsoidal height) on an ellipsoid.

    Attributes
    ----------
    geodetic_datum : GeodeticDatum
        The ellipsoid and prime meridian.
    cs : EllipsoidalCS
        Axis order, directions and units.
    """
    geodetic_datum: GeodeticDatum = WGS84_DATUM
    cs: EllipsoidalCS = None

    def __post_init__(self):
        if not isinstance(self.cs, EllipsoidalCS):
            raise ValueError(f"A geographic CRS needs an ellipsoidal coordinate system, got {self.cs!r}")

    @property
    def coordinate_system(self) -> EllipsoidalCS:
        return self.cs

    @property
    def datum(self) -> GeodeticDatum:
        return self.geodetic_datum

    def normalized(self) -> 'GeographicCRS':
        """Same datum with (latitude°, longitude°[, height m]) axes."""
        cs = self.cs.normalized()
        if cs == self.cs:
            return self
        return GeographicCRS(self.name, self.geodetic_datum, cs)

    def to_2d(self) -> 'GeographicCRS':
        """Same CRS without the height axis."""
        if self.dimension == 2:
            return self
        axes = tuple(a for a in self.cs.axes if a.direction is not ELLIPSOIDAL_HEIGHT_AXIS.direction)
        return GeographicCRS(self.name, self.geodetic_datum, EllipsoidalCS(self.cs.name, axes))


@dataclass(frozen=True)
class Conversion:
    """A map projection: operation method name and parameter values.

    Parameters are stored as a sorted tuple of (name, value) pairs so that the
    conversion is hashable; use `parameter_values` to get them as a dict.
    """
    method: str
    parameters: Tuple[Tuple[str, float], ...] = field(default_factory=tuple)

    def __post_init__(self):
        items = self.parameters.items() if isinstance(self.parameters, Mapping) else self.parameters
        object.__setattr__(self, "parameters", tuple(sorted((str(k), float(v)) for k, v in items)))

    @property
    def parameter_values(self) -> Dict[str, float]:
        return dict(self.parameters)


@dataclass(frozen=True)
class ProjectedCRS(CoordinateReferenceSystem):
    """Easting and northing produced by a map projection of a geographic CRS.

    Attributes
    ----------
    base_crs : GeographicCRS
        The CRS of the coordinates before projection.
    conversion : Conversion
        The map projection.
    cs : CartesianCS
        Axis order, directions and units of the projected coordinates.
    """
    base_crs: GeographicCRS = None
    conversion: Conversion = None
    cs: CartesianCS = None

    def __post_init__(self):
        if not isinstance(self.base_crs, GeographicCRS):
            raise ValueError("A projected CRS needs a geographic base CRS")
        if not isinstance(self.conversion, Conversion):
            raise ValueError("A projected CRS needs a conversion")
        if not isinstance(self.cs, CartesianCS) or self.cs.dimension != 2:
            raise ValueError("A projected CRS needs a two-dimensional Cartesian coordinate system")

    @property
    def coordinate_system(self) -> CartesianCS:
        return self.cs

    @property
    def datum(self) -> GeodeticDatum:
        return self.base_crs.datum


@dataclass(frozen=True)
class GeocentricCRS(CoordinateReferenceSystem):
    """Cartesian (X, Y, Z) coordinates from the centre of the ellipsoid."""
    geodetic_datum: GeodeticDatum = WGS84_DATUM
    cs: CartesianCS = None

    def __post_init__(self):
        if not isinstance(self.cs, CartesianCS) or self.cs.dimension != 3:
            raise ValueError("A geocentric CRS needs a three-dimensional Cartesian coordinate system")

    @property
    def coordinate_system(self) -> CartesianCS:
        return self.cs

    @property
    def datum(self) -> GeodeticDatum:
        return self.geodetic_datum


CRS = Union[GeographicCRS, ProjectedCRS, GeocentricCRS]

LATITUDE_LONGITUDE_CS = EllipsoidalCS("Ellipsoidal CS: North (°), East (°)", (LATITUDE_AXIS, LONGITUDE_AXIS))
LONGITUDE_LATITUDE_CS = EllipsoidalCS("Ellipsoidal CS: East (°), North (°)", (LONGITUDE_AXIS, LATITUDE_AXIS))
LATITUDE_LONGITUDE_HEIGHT_CS = EllipsoidalCS(
    "Ellipsoidal CS: North (°), East (°), Up (m)", (LATITUDE_AXIS, LONGITUDE_AXIS, ELLIPSOIDAL_HEIGHT_AXIS)
)
PROJECTED_CS = CartesianCS("Cartesian CS: East (m), North (m)", (EASTING_AXIS, NORTHING_AXIS))
GEOCENTRIC_CS = CartesianCS("Cartesian CS: geocentric X, Y, Z (m)",
                            (GEOCENTRIC_X_AXIS, GEOCENTRIC_Y_AXIS, GEOCENTRIC_Z_AXIS))

WGS84 = GeographicCRS("WGS 84", WGS84_DATUM, LATITUDE_LONGITUDE_CS)
WGS84_λφ = GeographicCRS("WGS 84 (λ,φ)", WGS84_DATUM, LONGITUDE_LATITUDE_CS)
WGS84_3D = GeographicCRS("WGS 84 (3D)", WGS84_DATUM, LATITUDE_LONGITUDE_HEIGHT_CS)
GEOCENTRIC = GeocentricCRS("WGS 84 (geocentric)", WGS84_DATUM, GEOCENTRIC_CS)
SPHERE = GeographicCRS("Unspecified datum based upon the GRS 1980 Authalic Sphere", SPHERE_DATUM,
                       LONGITUDE_LATITUDE_CS)
SPHERE_φλ = GeographicCRS("Unspecified datum based upon the GRS 1980 Authalic Sphere (φ,λ)", SPHERE_DATUM,
                          LATITUDE_LONGITUDE_CS)
