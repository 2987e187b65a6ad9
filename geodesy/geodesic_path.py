"""
Discretization of Geodesics and Geodesic Circles.

A geodesic is a curve, but consumers (renderers, GIS exporters) need a
sequence of points. `GeodesicPath` samples a curve parameterized by a scalar
(distance along a geodesic, or azimuth around a circle) and bisects each
segment until the straight chord between two consecutive points, drawn in the
user CRS, stays within a given distance of the curve.

The deviation of a chord is measured at its midpoint: the chord midpoint is
converted back to geographic coordinates and compared with the curve point at
the middle parameter value, using the great-circle distance on the authalic
sphere of the ellipsoid.
"""

from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, Tuple
import math
import numpy as np
from numpy.typing import NDArray

from common.logging_config import get_logger
from common.types import Envelope2D
from transform.math_transform import MathTransform

logger = get_logger(__name__)


@dataclass
class _Sample:
    """A curve point in geographic degrees and in user CRS coordinates."""
    parameter: float
    latitude: float
    longitude: float
    position: Tuple[float, ...]


def great_circle_distance(
    lat1_deg: float,
    lon1_deg: float,
    lat2_deg: float,
    lon2_deg: float,
    radius: float
) -> float:
    """Great-circle distance between two points on a sphere of the given radius.

    Uses the haversine formula, which is well conditioned for the small
    distances this module compares.
    """
    phi1, phi2 = math.radians(lat1_deg), math.radians(lat2_deg)
    d_phi = phi2 - phi1
    d_lam = math.radians(lon2_deg - lon1_deg)
    h = math.sin(d_phi / 2)**2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2)**2
    return 2 * radius * math.asin(min(1.0, math.sqrt(h)))


def unwrap_longitude(longitude: float, reference: float) -> float:
    """Add a multiple of 360° to `longitude` to bring it within 180° of `reference`."""
    return longitude + 360.0 * round((reference - longitude) / 360.0)


class GeodesicPath:
    """Lazy, restartable sequence of (x, y) user CRS points along a curve.

    Parameters
    ----------
    curve : callable
        Function from a parameter value to geographic (latitude, longitude)
        in degrees.
    knots : sequence of float
        Parameter values which are always emitted, in increasing order. The
        first and last knots are the ends of the path.
    to_user : MathTransform
        Transform from geographic (latitude°, longitude°) to the user CRS.
    from_user : MathTransform
        Inverse of `to_user`.
    resolution : float
        Maximal deviation in metres between a chord and the curve. Infinity
        means that only the knots are emitted.
    radius : float
        Radius of the sphere used for measuring deviations, in metres.
    max_depth : int
        Maximal number of bisections of a segment between two knots.
    max_points : int
        Maximal number of points emitted.

    Notes
    -----
    Longitudes are unwrapped before the transform to the user CRS: a path
    crossing the anti-meridian continues beyond ±180° instead of jumping to
    the other side of the map.

    Each call to `iter()` restarts the computation from the first knot, so
    the path can be traversed any number of times. Points are computed on
    demand.
    """

    def __init__(
        self,
        curve: Callable[[float], Tuple[float, float]],
        knots: Sequence[float],
        to_user: MathTransform,
        from_user: MathTransform,
        resolution: float,
        radius: float,
        max_depth: int = 24,
        max_points: int = 65536
    ):
        if len(knots) < 2:
            raise ValueError(f"A path needs at least 2 knots, got {len(knots)}")
        if not resolution > 0:
            raise ValueError(f"Resolution must be positive, got {resolution}")
        self._curve = curve
        self._knots = tuple(float(k) for k in knots)
        self._to_user = to_user
        self._from_user = from_user
        self.resolution = float(resolution)
        self._radius = radius
        self._max_depth = max_depth
        self._max_points = max_points

    def _sample(self, parameter: float, reference_longitude: Optional[float]) -> _Sample:
        latitude, longitude = self._curve(parameter)
        if reference_longitude is not None:
            longitude = unwrap_longitude(longitude, reference_longitude)
        position = self._to_user.transform_point((latitude, longitude))
        return _Sample(parameter, latitude, longitude, position)

    def _deviation(self, left: _Sample, right: _Sample, middle: _Sample) -> float:
        """Distance in metres between the chord midpoint and the curve midpoint."""
        chord = [(a + b) / 2 for a, b in zip(left.position, right.position)]
        latitude, longitude = self._from_user.transform_point(chord)[:2]
        return great_circle_distance(latitude, longitude, middle.latitude, middle.longitude, self._radius)

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        left = self._sample(self._knots[0], None)
        yield left.position[:2]
        emitted = 1
        for knot in self._knots[1:]:
            # Pending right ends of segments, nearest on top, with their bisection depth.
            stack: List[Tuple[_Sample, int]] = [(self._sample(knot, left.longitude), 0)]
            while stack:
                right, depth = stack[-1]
                if depth < self._max_depth and emitted + len(stack) < self._max_points:
                    middle = self._sample((left.parameter + right.parameter) / 2, left.longitude)
                    if self._deviation(left, right, middle) > self.resolution:
                        stack[-1] = (right, depth + 1)
                        stack.append((middle, depth + 1))
                        continue
                stack.pop()
                yield right.position[:2]
                emitted += 1
                left = right
        logger.debug(f"Emitted {emitted} points at resolution {self.resolution} m")

    def to_array(self) -> NDArray[np.float64]:
        """All points as an (N, 2) array."""
        return np.array(list(self), dtype=np.float64).reshape(-1, 2)

    def envelope(self) -> Envelope2D:
        """Bounding box of all points, in user CRS units."""
        return Envelope2D.from_points(self)
