"""
Geodetic Calculator: Direct and Inverse Geodesic Problems.

The calculator holds a start point, an end point, the azimuths at both ends
and the geodesic distance between them. Setting some of these properties and
reading the others solves one of the two classical problems:

- Direct problem: from the start point, a starting azimuth and a distance,
  find the end point and the ending azimuth.
- Inverse problem: from the start and end points, find the azimuths and the
  distance.

Properties are computed lazily when requested and cached until an input
changes. Positions can be given and returned in any CRS (the "position CRS")
for which the coordinate operation finder can build a transform to the
geographic CRS of the same datum.

Spherical vs Ellipsoidal Formulas
---------------------------------
`GeodeticCalculator` uses closed-form great-circle formulas on the authalic
sphere; this is exact when the datum ellipsoid is a sphere and can be off by
up to 0.5% on the WGS 84 ellipsoid. `EllipsoidalGeodeticCalculator` uses
Vincenty's iterative formulas, accurate to better than a millimetre, except
for nearly antipodal points where the inverse iteration may not converge.
`GeodeticCalculator.create` picks the right implementation for a CRS.

Conventions
-----------
- Latitudes and longitudes are in degrees, distances in metres.
- Azimuths are in degrees clockwise from north, in the range (-180, 180].
- The ending azimuth is the direction of travel at the end point, not the
  azimuth back to the start point.

Thread Safety
-------------
A calculator is a mutable object and is not thread-safe. Use one instance
per thread.

References
----------
- Vincenty, T. (1975). Direct and inverse solutions of geodesics on the
  ellipsoid with application of nested equations. Survey Review, 23(176).
- Karney, C.F.F. (2013). Algorithms for geodesics. Journal of Geodesy, 87(1).
"""

from dataclasses import asdict, dataclass
from enum import Flag, auto
from typing import Optional, Sequence, Tuple, Union
import math

import pint

from common.constants import ANGULAR_TOLERANCE
from common.errors import CalculatorStateError, GeodesicError
from common.logging_config import AuditLogger, get_logger
from common.types import DirectPosition
from common.units import to_magnitude
from geodesy.geodesic_path import GeodesicPath
from geospatial.coordinate_models import (
    isometric_latitude,
    meridian_arc_length,
    radius_of_curvature_prime_vertical,
)
from referencing.crs import (
    CoordinateReferenceSystem,
    GeocentricCRS,
    GeographicCRS,
    ProjectedCRS,
    LATITUDE_LONGITUDE_CS,
)
from referencing.operations import CoordinateOperationFinder

logger = get_logger(__name__)

Distance = Union[float, pint.Quantity]


@dataclass(frozen=True)
class CalculatorConfig:
    """Configuration of the geodetic calculator.

    Attributes
    ----------
    max_iterations : int
        Hard cap on iterations of the ellipsoidal solvers.
    convergence_threshold : float
        Convergence threshold of the ellipsoidal solvers, in radians.
    max_subdivision_depth : int
        Maximal number of bisections of a segment when discretizing paths.
    path_max_points : int
        Maximal number of points in a discretized path or circle.
    """
    max_iterations: int = 100
    convergence_threshold: float = 1e-12
    max_subdivision_depth: int = 24
    path_max_points: int = 65536

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if not self.convergence_threshold > 0:
            raise ValueError(f"convergence_threshold must be positive, got {self.convergence_threshold}")
        if self.max_subdivision_depth < 0:
            raise ValueError(f"max_subdivision_depth must be non-negative, got {self.max_subdivision_depth}")
        if self.path_max_points < 2:
            raise ValueError(f"path_max_points must be at least 2, got {self.path_max_points}")


class _Validity(Flag):
    """Which properties of the calculator hold valid values."""
    NONE = 0
    START_POINT = auto()
    END_POINT = auto()
    STARTING_AZIMUTH = auto()
    ENDING_AZIMUTH = auto()
    GEODESIC_DISTANCE = auto()
    RHUMBLINE = auto()


def _normalize_azimuth(degrees: float) -> float:
    """Wrap an azimuth in degrees to (-180, 180]."""
    azimuth = math.remainder(degrees, 360.0)
    if azimuth <= -180.0:
        azimuth += 360.0
    return azimuth


def _check_latitude(latitude: float) -> float:
    if not math.isfinite(latitude) or abs(latitude) > 90.0 + ANGULAR_TOLERANCE:
        raise ValueError(f"Latitude must be a finite value in [-90, 90], got {latitude}")
    return max(-90.0, min(90.0, latitude))


def _check_finite(name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")
    return value


def _geographic_crs_of(crs: CoordinateReferenceSystem) -> GeographicCRS:
    """Two-dimensional (latitude, longitude) CRS of the datum of `crs`."""
    if isinstance(crs, GeographicCRS):
        return crs.to_2d().normalized()
    if isinstance(crs, ProjectedCRS):
        return crs.base_crs.to_2d().normalized()
    if isinstance(crs, GeocentricCRS):
        return GeographicCRS(crs.datum.name, crs.datum, LATITUDE_LONGITUDE_CS)
    raise ValueError(f"Unsupported CRS type: {type(crs).__name__}")


class GeodeticCalculator:
    """Direct and inverse geodesic problems on a sphere.

    Use `GeodeticCalculator.create(crs)` rather than the constructor: it
    returns an `EllipsoidalGeodeticCalculator` when the datum ellipsoid is not
    a sphere.

    Parameters
    ----------
    crs : CoordinateReferenceSystem
        CRS of the positions given to and returned by the calculator.
    finder : CoordinateOperationFinder, optional
        Finder used for the transforms between `crs` and its geographic CRS.
    config : CalculatorConfig, optional
        Solver and discretization limits.
    audit : AuditLogger, optional
        Receives convergence records of iterative solvers.

    Examples
    --------
    >>> calc = GeodeticCalculator.create(SPHERE_φλ)
    >>> calc.set_start_geographic_point(-33.0, -71.6)   # Valparaíso
    >>> calc.set_end_geographic_point(31.4, 121.8)      # Shanghai
    >>> round(calc.get_starting_azimuth(), 2)
    -94.41
    >>> round(calc.get_geodesic_distance() / 1000)
    18743
    """

    def __init__(
        self,
        crs: CoordinateReferenceSystem,
        finder: Optional[CoordinateOperationFinder] = None,
        config: Optional[CalculatorConfig] = None,
        audit: Optional[AuditLogger] = None
    ):
        self._finder = finder if finder is not None else CoordinateOperationFinder()
        self.config = config if config is not None else CalculatorConfig()
        self._audit = audit
        self._position_crs = crs
        self._geographic_crs = _geographic_crs_of(crs)
        self.ellipsoid = crs.ellipsoid
        self.radius = self.ellipsoid.authalic_radius
        self._to_user = self._finder.find_transform(self._geographic_crs, crs)
        self._from_user = self._finder.find_transform(crs, self._geographic_crs)

        # Angles in radians, distances in metres.
        self._phi1 = self._lam1 = math.nan
        self._phi2 = self._lam2 = math.nan
        self._alpha1 = self._alpha2 = math.nan
        self._distance = math.nan
        self._rhumb_length = self._rhumb_azimuth = math.nan
        self._validity = _Validity.NONE

    @classmethod
    def create(
        cls,
        crs: CoordinateReferenceSystem,
        finder: Optional[CoordinateOperationFinder] = None,
        config: Optional[CalculatorConfig] = None,
        audit: Optional[AuditLogger] = None
    ) -> 'GeodeticCalculator':
        """Create a calculator for positions in the given CRS.

        Returns
        -------
        GeodeticCalculator
            A spherical calculator if the ellipsoid of `crs` is a sphere,
            an `EllipsoidalGeodeticCalculator` otherwise.
        """
        if crs.ellipsoid.is_sphere:
            return GeodeticCalculator(crs, finder, config, audit)
        return EllipsoidalGeodeticCalculator(crs, finder, config, audit)

    # -------------------------------------------------------------------------
    # CRS
    # -------------------------------------------------------------------------

    def get_position_crs(self) -> CoordinateReferenceSystem:
        """CRS of the positions accepted and returned by `*_point` methods."""
        return self._position_crs

    def get_geographic_crs(self) -> GeographicCRS:
        """The (latitude, longitude) CRS of `*_geographic_point` methods."""
        return self._geographic_crs

    def get_distance_unit(self) -> str:
        return "metre"

    def config_summary(self) -> dict:
        """Configuration as a dictionary, for `AuditLogger.run_context`."""
        return {"calculator": type(self).__name__, "ellipsoid": self.ellipsoid.name, **asdict(self.config)}

    # -------------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------------

    def _is_valid(self, flags: _Validity) -> bool:
        return (self._validity & flags) == flags

    def set_start_geographic_point(self, latitude: float, longitude: float) -> None:
        """Set the start point in degrees. All other properties are discarded."""
        latitude = _check_latitude(float(latitude))
        longitude = _check_finite("Longitude", longitude)
        self._phi1 = math.radians(latitude)
        self._lam1 = math.radians(longitude)
        self._validity = _Validity.START_POINT

    def set_end_geographic_point(self, latitude: float, longitude: float) -> None:
        """Set the end point in degrees. Azimuths and distance will be recomputed."""
        latitude = _check_latitude(float(latitude))
        longitude = _check_finite("Longitude", longitude)
        self._phi2 = math.radians(latitude)
        self._lam2 = math.radians(longitude)
        self._validity = (self._validity & _Validity.START_POINT) | _Validity.END_POINT

    def set_start_point(self, position: Union[DirectPosition, Sequence[float]]) -> None:
        """Set the start point from coordinates in the position CRS.

        A `DirectPosition` with another CRS is transformed first.
        """
        latitude, longitude = self._to_geographic(position)
        self.set_start_geographic_point(latitude, longitude)

    def set_end_point(self, position: Union[DirectPosition, Sequence[float]]) -> None:
        """Set the end point from coordinates in the position CRS."""
        latitude, longitude = self._to_geographic(position)
        self.set_end_geographic_point(latitude, longitude)

    def set_starting_azimuth(self, azimuth: float) -> None:
        """Set the direction of departure in degrees clockwise from north.

        The end point will be computed from the geodesic distance.
        """
        azimuth = _check_finite("Azimuth", azimuth)
        self._alpha1 = math.radians(_normalize_azimuth(azimuth))
        self._validity = ((self._validity & (_Validity.START_POINT | _Validity.GEODESIC_DISTANCE))
                          | _Validity.STARTING_AZIMUTH)

    def set_geodesic_distance(self, distance: Distance) -> None:
        """Set the distance to travel, in metres or as a pint length quantity.

        The end point will be computed from the starting azimuth.
        """
        distance = _check_finite("Distance", to_magnitude(distance, "metre"))
        if distance < 0:
            raise ValueError(f"Distance must be non-negative, got {distance}")
        self._distance = distance
        self._validity = ((self._validity & (_Validity.START_POINT | _Validity.STARTING_AZIMUTH))
                          | _Validity.GEODESIC_DISTANCE)

    def move_to_end_point(self) -> None:
        """Make the current end point and ending azimuth the new start point and starting azimuth.

        The end point, ending azimuth and distance are discarded. This allows
        a path to be built by successive legs.
        """
        if not self._is_valid(_Validity.END_POINT):
            self._compute_end_point()
        if not self._is_valid(_Validity.ENDING_AZIMUTH):
            self._compute_distance()
        self._phi1, self._lam1 = self._phi2, self._lam2
        self._alpha1 = self._alpha2
        self._validity = _Validity.START_POINT | _Validity.STARTING_AZIMUTH

    # -------------------------------------------------------------------------
    # Outputs
    # -------------------------------------------------------------------------

    def get_start_point(self) -> DirectPosition:
        """The start point in the position CRS."""
        if not self._is_valid(_Validity.START_POINT):
            raise CalculatorStateError("The start point has not been specified")
        return self._to_position(self._phi1, self._lam1)

    def get_end_point(self) -> DirectPosition:
        """The end point in the position CRS, computed by the direct problem if needed."""
        if not self._is_valid(_Validity.END_POINT):
            self._compute_end_point()
        return self._to_position(self._phi2, self._lam2)

    def get_starting_azimuth(self) -> float:
        """Azimuth at the start point in degrees, computed by the inverse problem if needed."""
        if not self._is_valid(_Validity.STARTING_AZIMUTH):
            self._compute_distance()
        return _normalize_azimuth(math.degrees(self._alpha1))

    def get_ending_azimuth(self) -> float:
        """Direction of travel at the end point in degrees."""
        if not self._is_valid(_Validity.ENDING_AZIMUTH):
            if self._is_valid(_Validity.END_POINT):
                self._compute_distance()
            else:
                self._compute_end_point()
        return _normalize_azimuth(math.degrees(self._alpha2))

    def get_geodesic_distance(self) -> float:
        """Length of the geodesic in metres, computed by the inverse problem if needed."""
        if not self._is_valid(_Validity.GEODESIC_DISTANCE):
            self._compute_distance()
        return self._distance

    def get_rhumbline_length(self) -> float:
        """Length in metres of the rhumb line (loxodrome) from start to end point.

        The rhumb line crosses all meridians at the same angle. It is never
        shorter than the geodesic.
        """
        if not self._is_valid(_Validity.RHUMBLINE):
            self._compute_rhumb_line()
        return self._rhumb_length

    def get_constant_azimuth(self) -> float:
        """Azimuth of the rhumb line from start to end point, in degrees."""
        if not self._is_valid(_Validity.RHUMBLINE):
            self._compute_rhumb_line()
        return _normalize_azimuth(math.degrees(self._rhumb_azimuth))

    def create_geodesic_path_2d(self, resolution: Distance) -> GeodesicPath:
        """Points along the geodesic from start to end point, in the position CRS.

        Parameters
        ----------
        resolution : float or pint.Quantity
            Maximal distance in metres between the straight segments joining
            the points and the geodesic. Infinity gives only the two end points.

        Returns
        -------
        GeodesicPath
            A lazy iterable of (x, y) tuples. Longitudes are unwrapped, so a
            path crossing the anti-meridian has longitudes beyond ±180°.
        """
        if not self._is_valid(_Validity.END_POINT):
            self._compute_end_point()
        if not self._is_valid(_Validity.STARTING_AZIMUTH | _Validity.GEODESIC_DISTANCE):
            self._compute_distance()
        phi1, lam1, alpha1 = self._phi1, self._lam1, self._alpha1

        def curve(distance: float) -> Tuple[float, float]:
            phi, lam, _ = self._solve_direct(phi1, lam1, alpha1, distance)
            return math.degrees(phi), math.degrees(lam)

        return self._path(curve, (0.0, self._distance), resolution)

    def create_circular_region_2d(self, resolution: Distance) -> GeodesicPath:
        """Closed ring of points at the geodesic distance around the start point.

        Parameters
        ----------
        resolution : float or pint.Quantity
            Maximal distance in metres between the straight segments joining
            the points and the geodesic circle.

        Returns
        -------
        GeodesicPath
            A lazy iterable of (x, y) tuples whose first and last points are
            the same.
        """
        if not self._is_valid(_Validity.START_POINT):
            raise CalculatorStateError("The start point has not been specified")
        if not self._is_valid(_Validity.GEODESIC_DISTANCE):
            self._compute_distance()
        phi1, lam1, distance = self._phi1, self._lam1, self._distance

        def curve(azimuth: float) -> Tuple[float, float]:
            phi, lam, _ = self._solve_direct(phi1, lam1, math.radians(azimuth), distance)
            return math.degrees(phi), math.degrees(lam)

        return self._path(curve, (-180.0, -90.0, 0.0, 90.0, 180.0), resolution)

    def _path(self, curve, knots, resolution: Distance) -> GeodesicPath:
        return GeodesicPath(
            curve, knots, self._to_user, self._from_user,
            resolution=to_magnitude(resolution, "metre"),
            radius=self.radius,
            max_depth=self.config.max_subdivision_depth,
            max_points=self.config.path_max_points
        )

    # -------------------------------------------------------------------------
    # Computations
    # -------------------------------------------------------------------------

    def _require(self, flags: _Validity, message: str) -> None:
        if not self._is_valid(flags):
            raise CalculatorStateError(message)

    def _compute_end_point(self) -> None:
        """Solve the direct problem from start point, starting azimuth and distance."""
        self._require(_Validity.START_POINT | _Validity.STARTING_AZIMUTH | _Validity.GEODESIC_DISTANCE,
                      "The end point can not be computed: start point, starting azimuth "
                      "or geodesic distance is missing")
        phi2, lam2, alpha2 = self._solve_direct(self._phi1, self._lam1, self._alpha1, self._distance)
        self._phi2 = phi2
        self._lam2 = math.remainder(lam2, 2 * math.pi)
        self._alpha2 = alpha2
        self._validity |= _Validity.END_POINT | _Validity.ENDING_AZIMUTH

    def _compute_distance(self) -> None:
        """Solve the inverse problem from start and end points."""
        self._require(_Validity.START_POINT | _Validity.END_POINT,
                      "The geodesic can not be computed: start point or end point is missing")
        alpha1, alpha2, distance = self._solve_inverse(self._phi1, self._lam1, self._phi2, self._lam2)
        self._alpha1, self._alpha2, self._distance = alpha1, alpha2, distance
        self._validity |= _Validity.STARTING_AZIMUTH | _Validity.ENDING_AZIMUTH | _Validity.GEODESIC_DISTANCE

    def _compute_rhumb_line(self) -> None:
        if not self._is_valid(_Validity.END_POINT):
            self._compute_end_point()
        self._require(_Validity.START_POINT, "The start point has not been specified")
        self._rhumb_length, self._rhumb_azimuth = self._solve_rhumb(self._phi1, self._lam1,
                                                                    self._phi2, self._lam2)
        self._validity |= _Validity.RHUMBLINE

    def _solve_direct(self, phi1: float, lam1: float, alpha1: float, distance: float) -> Tuple[float, float, float]:
        """End point (φ₂, λ₂) and ending azimuth α₂, all in radians.

        λ₂ is λ₁ plus a difference in [-π, π]; it is not wrapped.
        """
        delta = distance / self.radius
        sin_phi1, cos_phi1 = math.sin(phi1), math.cos(phi1)
        sin_a1, cos_a1 = math.sin(alpha1), math.cos(alpha1)
        sin_d, cos_d = math.sin(delta), math.cos(delta)
        sin_phi2 = sin_phi1 * cos_d + cos_phi1 * sin_d * cos_a1
        phi2 = math.asin(max(-1.0, min(1.0, sin_phi2)))
        lam2 = lam1 + math.atan2(sin_a1 * sin_d * cos_phi1, cos_d - sin_phi1 * sin_phi2)
        alpha2 = math.atan2(sin_a1 * cos_phi1, cos_phi1 * cos_d * cos_a1 - sin_phi1 * sin_d)
        return phi2, lam2, alpha2

    def _solve_inverse(self, phi1: float, lam1: float, phi2: float, lam2: float) -> Tuple[float, float, float]:
        """Starting azimuth, ending azimuth (radians) and distance (metres)."""
        d_lam = lam2 - lam1
        sin_phi1, cos_phi1 = math.sin(phi1), math.cos(phi1)
        sin_phi2, cos_phi2 = math.sin(phi2), math.cos(phi2)
        sin_dl, cos_dl = math.sin(d_lam), math.cos(d_lam)
        # Terms of the spherical triangle (pole, start, end).
        y1 = cos_phi2 * sin_dl
        x1 = cos_phi1 * sin_phi2 - sin_phi1 * cos_phi2 * cos_dl
        alpha1 = math.atan2(y1, x1)
        alpha2 = math.atan2(cos_phi1 * sin_dl, -sin_phi1 * cos_phi2 + cos_phi1 * sin_phi2 * cos_dl)
        central_angle = math.atan2(math.hypot(y1, x1), sin_phi1 * sin_phi2 + cos_phi1 * cos_phi2 * cos_dl)
        return alpha1, alpha2, central_angle * self.radius

    def _solve_rhumb(self, phi1: float, lam1: float, phi2: float, lam2: float) -> Tuple[float, float]:
        """Length (metres) and constant azimuth (radians) of the rhumb line on the sphere."""
        d_lam = math.remainder(lam2 - lam1, 2 * math.pi)
        d_phi = phi2 - phi1
        d_psi = float(isometric_latitude(phi2, 0.0) - isometric_latitude(phi1, 0.0))
        azimuth = math.atan2(d_lam, d_psi)
        if abs(d_psi) > 1e-12:
            q = d_phi / d_psi
        else:
            q = math.cos(phi1)
        return self.radius * math.hypot(d_phi, q * d_lam), azimuth

    # -------------------------------------------------------------------------
    # Coordinate conversions
    # -------------------------------------------------------------------------

    def _to_geographic(self, position: Union[DirectPosition, Sequence[float]]) -> Tuple[float, float]:
        crs = getattr(position, "crs", None)
        if crs is not None and crs != self._position_crs:
            transform = self._finder.find_transform(crs, self._geographic_crs)
        else:
            transform = self._from_user
        latitude, longitude = transform.transform_point(tuple(position))[:2]
        return latitude, longitude

    def _to_position(self, phi: float, lam: float) -> DirectPosition:
        coordinates = self._to_user.transform_point((math.degrees(phi), math.degrees(lam)))
        return DirectPosition(coordinates, self._position_crs)

    def _report(self, solver: str, iterations: int, residual: float, context: dict) -> None:
        """Send a convergence record to the audit logger, if any."""
        if self._audit is not None:
            self._audit.log_convergence(solver, iterations, residual,
                                        self.config.convergence_threshold, context)

    def __str__(self) -> str:
        def angle(flag: _Validity, value: float) -> str:
            return f"{_normalize_azimuth(math.degrees(value)):.6f}°" if self._is_valid(flag) else "(not computed)"

        def point(flag: _Validity, phi: float, lam: float) -> str:
            if not self._is_valid(flag):
                return "(not specified)"
            return f"{math.degrees(phi):.9f}°, {math.degrees(lam):.9f}°"

        distance = (f"{self._distance:.3f} m" if self._is_valid(_Validity.GEODESIC_DISTANCE)
                    else "(not computed)")
        lines = [
            f"{type(self).__name__}[\"{self.ellipsoid.name}\"]",
            f"  Position CRS:       {self._position_crs}",
            f"  Start point (φ, λ): {point(_Validity.START_POINT, self._phi1, self._lam1)}",
            f"  Starting azimuth:   {angle(_Validity.STARTING_AZIMUTH, self._alpha1)}",
            f"  End point (φ, λ):   {point(_Validity.END_POINT, self._phi2, self._lam2)}",
            f"  Ending azimuth:     {angle(_Validity.ENDING_AZIMUTH, self._alpha2)}",
            f"  Geodesic distance:  {distance}",
        ]
        return "\n".join(lines)


class EllipsoidalGeodeticCalculator(GeodeticCalculator):
    """Direct and inverse geodesic problems on an ellipsoid, with Vincenty's formulas.

    The inverse problem iterates on the longitude difference λ on the
    auxiliary sphere. For nearly antipodal points the iteration may not
    converge, or λ may exceed π; both cases raise `GeodesicError`, and a
    non-converged record is sent to the audit logger.
    """

    def __init__(
        self,
        crs: CoordinateReferenceSystem,
        finder: Optional[CoordinateOperationFinder] = None,
        config: Optional[CalculatorConfig] = None,
        audit: Optional[AuditLogger] = None
    ):
        super().__init__(crs, finder, config, audit)
        self._a = self.ellipsoid.a
        self._b = self.ellipsoid.b
        self._f = self.ellipsoid.f

    def _series_coefficients(self, cos2_alpha: float) -> Tuple[float, float]:
        """Vincenty's A and B coefficients for the given cos²α."""
        u2 = cos2_alpha * (self._a**2 - self._b**2) / self._b**2
        A = 1 + u2 / 16384 * (4096 + u2 * (-768 + u2 * (320 - 175 * u2)))
        B = u2 / 1024 * (256 + u2 * (-128 + u2 * (74 - 47 * u2)))
        return A, B

    @staticmethod
    def _delta_sigma(B: float, sin_s: float, cos_s: float, cos_2sm: float) -> float:
        return B * sin_s * (cos_2sm + B / 4 * (cos_s * (-1 + 2 * cos_2sm**2)
                                              - B / 6 * cos_2sm * (-3 + 4 * sin_s**2) * (-3 + 4 * cos_2sm**2)))

    def _solve_direct(self, phi1: float, lam1: float, alpha1: float, distance: float) -> Tuple[float, float, float]:
        f, b = self._f, self._b
        sin_a1, cos_a1 = math.sin(alpha1), math.cos(alpha1)
        U1 = math.atan2((1 - f) * math.sin(phi1), math.cos(phi1))
        sin_u1, cos_u1 = math.sin(U1), math.cos(U1)
        sigma1 = math.atan2(sin_u1, cos_u1 * cos_a1)
        sin_alpha = cos_u1 * sin_a1
        cos2_alpha = 1 - sin_alpha**2
        A, B = self._series_coefficients(cos2_alpha)

        sigma = distance / (b * A)
        residual = math.inf
        for iteration in range(1, self.config.max_iterations + 1):
            cos_2sm = math.cos(2 * sigma1 + sigma)
            sin_s, cos_s = math.sin(sigma), math.cos(sigma)
            previous = sigma
            sigma = distance / (b * A) + self._delta_sigma(B, sin_s, cos_s, cos_2sm)
            residual = abs(sigma - previous)
            if residual <= self.config.convergence_threshold:
                break
        else:
            start = (math.degrees(phi1), math.degrees(lam1))
            self._report("vincenty_direct", iteration, residual,
                         {"start": start, "azimuth": math.degrees(alpha1), "distance": distance})
            raise GeodesicError(
                f"Direct geodesic from {start} with azimuth {math.degrees(alpha1):.6f}° "
                f"and distance {distance} m did not converge after {iteration} iterations",
                start=start, iterations=iteration
            )
        logger.debug(f"Vincenty direct converged in {iteration} iterations")

        cos_2sm = math.cos(2 * sigma1 + sigma)
        sin_s, cos_s = math.sin(sigma), math.cos(sigma)
        x = sin_u1 * sin_s - cos_u1 * cos_s * cos_a1
        phi2 = math.atan2(sin_u1 * cos_s + cos_u1 * sin_s * cos_a1, (1 - f) * math.hypot(sin_alpha, x))
        lam = math.atan2(sin_s * sin_a1, cos_u1 * cos_s - sin_u1 * sin_s * cos_a1)
        C = f / 16 * cos2_alpha * (4 + f * (4 - 3 * cos2_alpha))
        L = lam - (1 - C) * f * sin_alpha * (sigma + C * sin_s * (cos_2sm + C * cos_s * (-1 + 2 * cos_2sm**2)))
        alpha2 = math.atan2(sin_alpha, -x)
        return phi2, lam1 + L, alpha2

    def _solve_inverse(self, phi1: float, lam1: float, phi2: float, lam2: float) -> Tuple[float, float, float]:
        f, b = self._f, self._b
        L = math.remainder(lam2 - lam1, 2 * math.pi)
        U1 = math.atan2((1 - f) * math.sin(phi1), math.cos(phi1))
        U2 = math.atan2((1 - f) * math.sin(phi2), math.cos(phi2))
        sin_u1, cos_u1 = math.sin(U1), math.cos(U1)
        sin_u2, cos_u2 = math.sin(U2), math.cos(U2)
        start = (math.degrees(phi1), math.degrees(lam1))
        end = (math.degrees(phi2), math.degrees(lam2))

        lam = L
        residual = math.inf
        for iteration in range(1, self.config.max_iterations + 1):
            sin_l, cos_l = math.sin(lam), math.cos(lam)
            sin_s = math.hypot(cos_u2 * sin_l, cos_u1 * sin_u2 - sin_u1 * cos_u2 * cos_l)
            if sin_s == 0:
                # Coincident points.
                return 0.0, 0.0, 0.0
            cos_s = sin_u1 * sin_u2 + cos_u1 * cos_u2 * cos_l
            sigma = math.atan2(sin_s, cos_s)
            sin_alpha = cos_u1 * cos_u2 * sin_l / sin_s
            cos2_alpha = 1 - sin_alpha**2
            # On the equator cos²α = 0 and the midpoint term vanishes.
            cos_2sm = cos_s - 2 * sin_u1 * sin_u2 / cos2_alpha if cos2_alpha != 0 else 0.0
            C = f / 16 * cos2_alpha * (4 + f * (4 - 3 * cos2_alpha))
            previous = lam
            lam = L + (1 - C) * f * sin_alpha * (
                sigma + C * sin_s * (cos_2sm + C * cos_s * (-1 + 2 * cos_2sm**2))
            )
            residual = abs(lam - previous)
            if abs(lam) > math.pi:
                self._report("vincenty_inverse", iteration, residual, {"start": start, "end": end})
                raise GeodesicError(
                    f"Geodesic from {start} to {end} can not be computed: points are nearly antipodal "
                    f"(longitude on auxiliary sphere exceeds π after {iteration} iterations)",
                    start=start, end=end, iterations=iteration
                )
            if residual <= self.config.convergence_threshold:
                break
        else:
            self._report("vincenty_inverse", iteration, residual, {"start": start, "end": end})
            raise GeodesicError(
                f"Geodesic from {start} to {end} did not converge after {iteration} iterations",
                start=start, end=end, iterations=iteration
            )
        logger.debug(f"Vincenty inverse converged in {iteration} iterations")
        self._report("vincenty_inverse", iteration, residual, {"start": start, "end": end})

        A, B = self._series_coefficients(cos2_alpha)
        distance = b * A * (sigma - self._delta_sigma(B, sin_s, cos_s, cos_2sm))
        sin_l, cos_l = math.sin(lam), math.cos(lam)
        alpha1 = math.atan2(cos_u2 * sin_l, cos_u1 * sin_u2 - sin_u1 * cos_u2 * cos_l)
        alpha2 = math.atan2(cos_u1 * sin_l, -sin_u1 * cos_u2 + cos_u1 * sin_u2 * cos_l)
        return alpha1, alpha2, distance

    def _solve_rhumb(self, phi1: float, lam1: float, phi2: float, lam2: float) -> Tuple[float, float]:
        """Rhumb line on the ellipsoid, from isometric latitudes and meridian arc lengths."""
        ellipsoid = self.ellipsoid
        d_lam = math.remainder(lam2 - lam1, 2 * math.pi)
        d_psi = float(isometric_latitude(phi2, ellipsoid.eccentricity)
                      - isometric_latitude(phi1, ellipsoid.eccentricity))
        azimuth = math.atan2(d_lam, d_psi)
        cos_az = math.cos(azimuth)
        if abs(cos_az) < 1e-12:
            # Along a parallel.
            phi = (phi1 + phi2) / 2
            length = abs(d_lam) * float(radius_of_curvature_prime_vertical(phi, ellipsoid)) * math.cos(phi)
        else:
            d_m = meridian_arc_length(phi2, ellipsoid) - meridian_arc_length(phi1, ellipsoid)
            length = abs(d_m / cos_az)
        return length, azimuth
