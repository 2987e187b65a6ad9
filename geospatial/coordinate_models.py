"""
Geodetic Datum Models and Ellipsoid Formulas.

This module defines the reference ellipsoid, prime meridian and geodetic datum
value types, the formulas derived from the ellipsoid parameters, and the
conversion between geographic and geocentric (ECEF) coordinates.

Scientific Context
------------------
Domain: Geodesy, Earth geometry
Model: Oblate ellipsoid of revolution (sphere as the special case f = 0)

The ellipsoid is defined by its semi-major axis and inverse flattening, which
are the defining parameters of most geodetic datums (WGS 84, GRS 1980). For
ellipsoids historically defined by both axis lengths (Clarke 1866), the inverse
flattening is derived from them.

References
----------
- NIMA TR8350.2: WGS84 parameters
- Torge, W. (2001). Geodesy (3rd ed.). de Gruyter.
- IOGP Publication 373-7-2 (Geomatics Guidance Note 7, part 2)
- Bowring, B.R. (1976). Transformation from spatial to geographical
  coordinates. Survey Review, 23(181), 323-327.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union
import math
import numpy as np
from numpy.typing import NDArray

from common.constants import GeodeticConstants, ANGULAR_TOLERANCE
from common.logging_config import get_logger
from geospatial.datum_shift import BursaWolfParameters
from transform.math_transform import MathTransform

logger = get_logger(__name__)

ArrayLike = Union[float, NDArray[np.float64]]


# =============================================================================
# Axis formulas
# =============================================================================

def get_authalic_radius(a: float, b: float) -> float:
    """Radius of the sphere having the same surface as the ellipsoid (a, b).

    Notes
    -----
    R² = (a² + b² · atanh(e) / e) / 2

    For GRS 1980 this gives 6 371 007 m (EPSG:7048).
    """
    if a == b:
        return a
    f = 1 - b / a
    e = math.sqrt(2 * f - f * f)
    return math.sqrt(0.5 * (a * a + b * b * math.atanh(e) / e))


def get_semi_minor(a: float, inverse_flattening: float) -> float:
    """Semi-minor axis from the semi-major axis and inverse flattening."""
    if math.isinf(inverse_flattening):
        return a
    return a * (1 - 1 / inverse_flattening)


def get_inverse_flattening(a: float, b: float) -> float:
    """Inverse flattening a / (a - b); infinite for a sphere."""
    if a == b:
        return math.inf
    return a / (a - b)


@dataclass(frozen=True)
class Ellipsoid:
    """A reference ellipsoid of revolution.

    Attributes
    ----------
    name : str
        Identifier for the ellipsoid.
    semi_major_axis : float
        Equatorial radius in metres.
    inverse_flattening : float
        1/f = a / (a - b). Infinite for a sphere.

    Derived Parameters
    ------------------
    b : float
        Semi-minor axis (polar radius) in metres.
    f : float
        Flattening: f = (a - b) / a
    e2 : float
        First eccentricity squared: e² = (a² - b²) / a²
    ep2 : float
        Second eccentricity squared: e'² = (a² - b²) / b²
    """
    name: str
    semi_major_axis: float
    inverse_flattening: float

    def __post_init__(self):
        """Validate ellipsoid parameters."""
        a = self.semi_major_axis
        if not (math.isfinite(a) and a > 0):
            raise ValueError(f"Semi-major axis must be positive and finite, got {a}")
        ivf = self.inverse_flattening
        if math.isnan(ivf) or ivf <= 1:
            raise ValueError(f"Inverse flattening must be greater than 1 (or infinite), got {ivf}")

    @classmethod
    def create_flattened_sphere(cls, name: str, semi_major_axis: float, inverse_flattening: float) -> 'Ellipsoid':
        """Create an ellipsoid from its semi-major axis and inverse flattening.

        An inverse flattening of zero denotes a sphere, as in the EPSG dataset.
        """
        if inverse_flattening == 0:
            inverse_flattening = math.inf
        return cls(name, float(semi_major_axis), float(inverse_flattening))

    @classmethod
    def create_ellipsoid(cls, name: str, semi_major_axis: float, semi_minor_axis: float) -> 'Ellipsoid':
        """Create an ellipsoid from its two axis lengths."""
        if not (math.isfinite(semi_minor_axis) and semi_minor_axis > 0):
            raise ValueError(f"Semi-minor axis must be positive and finite, got {semi_minor_axis}")
        if semi_minor_axis > semi_major_axis:
            raise ValueError(
                f"Semi-minor axis ({semi_minor_axis}) can not be greater than semi-major axis ({semi_major_axis})"
            )
        return cls(name, float(semi_major_axis), get_inverse_flattening(semi_major_axis, semi_minor_axis))

    @classmethod
    def create_sphere(cls, name: str, radius: float) -> 'Ellipsoid':
        return cls(name, float(radius), math.inf)

    @property
    def a(self) -> float:
        """Semi-major axis in metres."""
        return self.semi_major_axis

    @property
    def f(self) -> float:
        """Flattening."""
        return 1.0 / self.inverse_flattening

    @property
    def b(self) -> float:
        """Semi-minor axis in metres."""
        return get_semi_minor(self.semi_major_axis, self.inverse_flattening)

    @property
    def e2(self) -> float:
        """First eccentricity squared."""
        return self.f * (2 - self.f)

    @property
    def ep2(self) -> float:
        """Second eccentricity squared."""
        return self.e2 / (1 - self.e2)

    @property
    def n(self) -> float:
        """Third flattening: n = (a - b) / (a + b)."""
        return self.f / (2 - self.f)

    semi_minor_axis = b
    flattening = f
    eccentricity_squared = e2

    @property
    def eccentricity(self) -> float:
        return math.sqrt(self.e2)

    @property
    def is_sphere(self) -> bool:
        return math.isinf(self.inverse_flattening)

    @property
    def authalic_radius(self) -> float:
        """Radius of the sphere having the same surface as this ellipsoid."""
        return get_authalic_radius(self.semi_major_axis, self.b)


@dataclass(frozen=True)
class PrimeMeridian:
    """Origin of longitudes.

    Attributes
    ----------
    name : str
        Identifier, e.g. 'Greenwich' or 'Paris'.
    greenwich_longitude : float
        Longitude of this meridian relative to Greenwich, in degrees.
    """
    name: str
    greenwich_longitude: float = 0.0


@dataclass(frozen=True)
class GeodeticDatum:
    """Ellipsoid and prime meridian, with the optional shift to WGS 84.

    Two datums are considered the same when they have the same name and
    ellipsoid; a datum shift is only needed between different datums.
    """
    name: str
    ellipsoid: Ellipsoid
    prime_meridian: PrimeMeridian = PrimeMeridian("Greenwich")
    to_wgs84: Optional[BursaWolfParameters] = None


GREENWICH = PrimeMeridian("Greenwich", 0.0)

WGS84_ELLIPSOID = Ellipsoid(
    name="WGS 84",
    semi_major_axis=GeodeticConstants.WGS84_SEMI_MAJOR_AXIS.value,
    inverse_flattening=GeodeticConstants.WGS84_INVERSE_FLATTENING.value
)

GRS80_ELLIPSOID = Ellipsoid(
    name="GRS 1980",
    semi_major_axis=GeodeticConstants.GRS80_SEMI_MAJOR_AXIS.value,
    inverse_flattening=GeodeticConstants.GRS80_INVERSE_FLATTENING.value
)

CLARKE1866_ELLIPSOID = Ellipsoid.create_ellipsoid(
    "Clarke 1866",
    GeodeticConstants.CLARKE1866_SEMI_MAJOR_AXIS.value,
    GeodeticConstants.CLARKE1866_SEMI_MINOR_AXIS.value
)

INTERNATIONAL1924_ELLIPSOID = Ellipsoid(
    name="International 1924",
    semi_major_axis=GeodeticConstants.INTERNATIONAL1924_SEMI_MAJOR_AXIS.value,
    inverse_flattening=GeodeticConstants.INTERNATIONAL1924_INVERSE_FLATTENING.value
)

AUTHALIC_SPHERE = Ellipsoid.create_sphere(
    "GRS 1980 Authalic Sphere", GeodeticConstants.AUTHALIC_RADIUS.value
)

WGS84_DATUM = GeodeticDatum("World Geodetic System 1984", WGS84_ELLIPSOID, GREENWICH,
                            to_wgs84=BursaWolfParameters())
SPHERE_DATUM = GeodeticDatum("Not specified (based on GRS 1980 Authalic Sphere)", AUTHALIC_SPHERE, GREENWICH)


# =============================================================================
# Formulas
# =============================================================================

def is_pole_to_pole(phi1: float, phi2: float) -> bool:
    """Whether the two latitudes (degrees) are the two opposite poles."""
    return abs(phi1 - phi2) >= 180 and abs(phi1 + phi2) <= ANGULAR_TOLERANCE


def scale_compared_to_earth(ellipsoid: Ellipsoid) -> float:
    """Ratio of the ellipsoid size to the WGS 84 ellipsoid size."""
    return ellipsoid.semi_major_axis / GeodeticConstants.WGS84_SEMI_MAJOR_AXIS.value


def radius_of_curvature_meridian(
    latitude_rad: ArrayLike,
    ellipsoid: Ellipsoid = WGS84_ELLIPSOID
) -> ArrayLike:
    """Compute the radius of curvature in the meridian plane.

    This is the radius of curvature for north-south motion along
    a meridian (line of constant longitude).

    Parameters
    ----------
    latitude_rad : float or array
        Geodetic latitude in radians.
    ellipsoid : Ellipsoid
        Reference ellipsoid (default: WGS84).

    Returns
    -------
    float or array
        Radius of curvature M in metres.

    Notes
    -----
    M = a(1 - e²) / (1 - e² sin²φ)^(3/2)

    At the equator (φ=0): M ≈ 6,335,439 m
    At the poles (φ=±90°): M ≈ 6,399,594 m
    """
    sin_lat = np.sin(latitude_rad)
    denominator = (1 - ellipsoid.e2 * sin_lat**2) ** 1.5
    return ellipsoid.a * (1 - ellipsoid.e2) / denominator


def radius_of_curvature_prime_vertical(
    latitude_rad: ArrayLike,
    ellipsoid: Ellipsoid = WGS84_ELLIPSOID
) -> ArrayLike:
    """Compute the radius of curvature in the prime vertical.

    This is the radius of curvature for east-west motion along
    a parallel (line of constant latitude).

    Notes
    -----
    N = a / (1 - e² sin²φ)^(1/2)

    At the equator (φ=0): N = a ≈ 6,378,137 m
    At the poles (φ=±90°): N ≈ 6,399,594 m
    """
    sin_lat = np.sin(latitude_rad)
    denominator = np.sqrt(1 - ellipsoid.e2 * sin_lat**2)
    return ellipsoid.a / denominator


def radius_of_conformal_sphere(ellipsoid: Ellipsoid, latitude_rad: ArrayLike) -> ArrayLike:
    """Radius of the conformal sphere at the given latitude: √(M·N)."""
    sin_lat = np.sin(latitude_rad)
    return ellipsoid.a * np.sqrt(1 - ellipsoid.e2) / (1 - ellipsoid.e2 * sin_lat**2)


def get_radius(ellipsoid: Ellipsoid, latitude_rad: ArrayLike) -> ArrayLike:
    """Geocentric radius: distance from the ellipsoid centre to the surface at the given latitude."""
    a, b = ellipsoid.a, ellipsoid.b
    cos_lat = np.cos(latitude_rad)
    sin_lat = np.sin(latitude_rad)
    numerator = (a * a * cos_lat)**2 + (b * b * sin_lat)**2
    denominator = (a * cos_lat)**2 + (b * sin_lat)**2
    return np.sqrt(numerator / denominator)


def meridian_arc_length(latitude_rad: ArrayLike, ellipsoid: Ellipsoid = WGS84_ELLIPSOID) -> ArrayLike:
    """Distance along the meridian from the equator to the given latitude.

    Notes
    -----
    Helmert's series in the third flattening n, truncated after n⁴:

    M = a/(1+n) [(1 + n²/4 + n⁴/64) φ - (3n/2 - 3n³/16) sin 2φ
                 + (15n²/16 - 15n⁴/64) sin 4φ - (35n³/48) sin 6φ + (315n⁴/512) sin 8φ]

    The error is below 0.1 mm for Earth ellipsoids.
    """
    n = ellipsoid.n
    n2, n3, n4 = n * n, n**3, n**4
    phi = np.asarray(latitude_rad, dtype=np.float64)
    result = ellipsoid.a / (1 + n) * (
        (1 + n2 / 4 + n4 / 64) * phi
        - (1.5 * n - 3 * n3 / 16) * np.sin(2 * phi)
        + (15 * n2 / 16 - 15 * n4 / 64) * np.sin(4 * phi)
        - (35 * n3 / 48) * np.sin(6 * phi)
        + (315 * n4 / 512) * np.sin(8 * phi)
    )
    return float(result) if result.ndim == 0 else result


def isometric_latitude(latitude_rad: ArrayLike, eccentricity: float) -> ArrayLike:
    """Isometric latitude ψ = atanh(sin φ) - e · atanh(e · sin φ).

    Infinite at the poles.
    """
    sin_lat = np.sin(latitude_rad)
    with np.errstate(divide='ignore'):
        return np.arctanh(sin_lat) - eccentricity * np.arctanh(eccentricity * sin_lat)


# =============================================================================
# Geocentric conversion
# =============================================================================

def geodetic_to_ecef(
    latitude_rad: ArrayLike,
    longitude_rad: ArrayLike,
    altitude_m: ArrayLike = 0.0,
    ellipsoid: Ellipsoid = WGS84_ELLIPSOID
) -> Tuple[ArrayLike, ArrayLike, ArrayLike]:
    """Convert geodetic coordinates to Earth-Centered Earth-Fixed (ECEF).

    Parameters
    ----------
    latitude_rad : float or array
        Geodetic latitude in radians.
    longitude_rad : float or array
        Geodetic longitude in radians.
    altitude_m : float or array
        Height above ellipsoid in metres.
    ellipsoid : Ellipsoid
        Reference ellipsoid (default: WGS84).

    Returns
    -------
    Tuple
        (X, Y, Z) coordinates in metres in ECEF frame.

    Notes
    -----
    The ECEF frame has:
    - Origin at the ellipsoid centre
    - X-axis through the prime meridian (0° longitude) at equator
    - Y-axis through 90°E at equator
    - Z-axis through the North Pole
    """
    sin_lat = np.sin(latitude_rad)
    cos_lat = np.cos(latitude_rad)
    sin_lon = np.sin(longitude_rad)
    cos_lon = np.cos(longitude_rad)

    N = radius_of_curvature_prime_vertical(latitude_rad, ellipsoid)

    X = (N + altitude_m) * cos_lat * cos_lon
    Y = (N + altitude_m) * cos_lat * sin_lon
    Z = (N * (1 - ellipsoid.e2) + altitude_m) * sin_lat

    return X, Y, Z


def ecef_to_geodetic(
    X: ArrayLike,
    Y: ArrayLike,
    Z: ArrayLike,
    ellipsoid: Ellipsoid = WGS84_ELLIPSOID,
    max_iterations: int = 10,
    tolerance: float = 1e-12
) -> Tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    """Convert ECEF coordinates to geodetic (latitude, longitude, altitude).

    Uses Bowring's iterative method, vectorized over arrays of points.

    Parameters
    ----------
    X, Y, Z : float or array
        ECEF coordinates in metres.
    ellipsoid : Ellipsoid
        Reference ellipsoid (default: WGS84).
    max_iterations : int
        Maximum iterations for convergence.
    tolerance : float
        Convergence tolerance in radians.

    Returns
    -------
    Tuple
        (latitude_rad, longitude_rad, altitude_m)

    Notes
    -----
    Bowring's method typically converges in 2-3 iterations for
    points on or near Earth's surface.
    """
    X = np.asarray(X, dtype=np.float64)
    Y = np.asarray(Y, dtype=np.float64)
    Z = np.asarray(Z, dtype=np.float64)

    longitude_rad = np.arctan2(Y, X)

    # Distance from Z-axis
    p = np.hypot(X, Y)

    # Initial approximation; exact at the poles (p = 0)
    latitude_rad = np.arctan2(Z, p * (1 - ellipsoid.e2))

    residual = 0.0
    for iteration in range(1, max_iterations + 1):
        sin_lat = np.sin(latitude_rad)
        N = radius_of_curvature_prime_vertical(latitude_rad, ellipsoid)
        latitude_new = np.arctan2(Z + ellipsoid.e2 * N * sin_lat, p)
        change = np.abs(latitude_new - latitude_rad)
        latitude_rad = latitude_new
        residual = float(np.max(change, initial=0.0, where=np.isfinite(change)))
        if residual < tolerance:
            break
    else:
        logger.warning(
            f"Geocentric to geographic conversion did not converge after {max_iterations} "
            f"iterations (residual {residual:.3e} rad)"
        )

    # Compute altitude
    sin_lat = np.sin(latitude_rad)
    cos_lat = np.cos(latitude_rad)
    N = radius_of_curvature_prime_vertical(latitude_rad, ellipsoid)

    with np.errstate(divide='ignore', invalid='ignore'):
        altitude_m = np.where(
            np.abs(cos_lat) > 1e-10,
            p / cos_lat - N,
            np.abs(Z) / np.abs(sin_lat) - N * (1 - ellipsoid.e2)
        )

    return latitude_rad, longitude_rad, altitude_m


class GeocentricConversion(MathTransform):
    """Geographic (latitude°, longitude°[, height m]) to geocentric (X, Y, Z) metres.

    Parameters
    ----------
    ellipsoid : Ellipsoid
        The ellipsoid of the geodetic datum.
    with_height : bool
        Whether source points have a third ordinate (ellipsoidal height).
        Two-dimensional points are on the ellipsoid surface.
    """

    def __init__(self, ellipsoid: Ellipsoid, with_height: bool = True):
        super().__init__()
        self.ellipsoid = ellipsoid
        self.with_height = with_height

    @property
    def source_dimensions(self) -> int:
        return 3 if self.with_height else 2

    @property
    def target_dimensions(self) -> int:
        return 3

    def _transform_array(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        lat = np.radians(points[:, 0])
        lon = np.radians(points[:, 1])
        h = points[:, 2] if self.with_height else 0.0
        X, Y, Z = geodetic_to_ecef(lat, lon, h, self.ellipsoid)
        return np.column_stack([X, Y, Z])

    def _create_inverse(self) -> MathTransform:
        return GeographicConversion(self.ellipsoid, self.with_height)

    def __eq__(self, other) -> bool:
        if not isinstance(other, GeocentricConversion):
            return NotImplemented
        return type(self) is type(other) and (self.ellipsoid, self.with_height) == (other.ellipsoid, other.with_height)

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.ellipsoid, self.with_height))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.ellipsoid.name}, {self.source_dimensions}D → {self.target_dimensions}D)"


class GeographicConversion(GeocentricConversion):
    """Geocentric (X, Y, Z) metres to geographic (latitude°, longitude°[, height m])."""

    @property
    def source_dimensions(self) -> int:
        return 3

    @property
    def target_dimensions(self) -> int:
        return 3 if self.with_height else 2

    def _transform_array(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        lat, lon, h = ecef_to_geodetic(points[:, 0], points[:, 1], points[:, 2], self.ellipsoid)
        columns = [np.degrees(lat), np.degrees(lon)]
        if self.with_height:
            columns.append(h)
        return np.column_stack(columns)

    def _create_inverse(self) -> MathTransform:
        return GeocentricConversion(self.ellipsoid, self.with_height)
