"""
Coordinate Operation Resolution.

`CoordinateOperationFinder` builds the transform between two coordinate
reference systems by chaining three parts:

1. source CRS → normalized geographic coordinates of the source datum
   (latitude°, longitude° from Greenwich[, height m]): axis swap and unit
   conversion, prime meridian offset, inverse map projection or inverse
   geocentric conversion;
2. datum shift when the datums differ, through geocentric coordinates and the
   Bursa-Wolf parameters of both datums relative to WGS 84;
3. normalized geographic coordinates of the target datum → target CRS (the
   inverse of part 1 for the target).

Consecutive linear steps are merged by concatenation, so for example a pure
axis swap between two geographic CRS of the same datum results in a single
matrix.

Thread Safety
-------------
The finder is stateless apart from its cache. `OperationCache` guards its
dictionary with a lock; two threads asking for the same uncached pair may both
compute the operation, and both get equivalent results.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Tuple
import math
import threading

from common.errors import OperationNotFoundError
from common.logging_config import get_logger
from geospatial.coordinate_models import GeocentricConversion, GeodeticDatum
from geospatial.transform_factory import MathTransformFactory
from referencing.coordinate_system import swap_and_scale_axes
from referencing.crs import (
    CoordinateReferenceSystem,
    GeocentricCRS,
    GeographicCRS,
    ProjectedCRS,
    GEOCENTRIC_CS,
    PROJECTED_CS,
)
from transform import math_transforms
from transform.matrix import Matrix
from transform.math_transform import MathTransform

logger = get_logger(__name__)


@dataclass(frozen=True)
class CoordinateOperation:
    """A transform between two CRS, with its provenance.

    Attributes
    ----------
    name : str
        Human-readable description.
    source_crs, target_crs : CoordinateReferenceSystem
        The CRS of input and output coordinates.
    transform : MathTransform
        The transform to apply.
    accuracy : float
        Estimated positional accuracy in metres (0 for exact conversions).
    """
    name: str
    source_crs: CoordinateReferenceSystem
    target_crs: CoordinateReferenceSystem
    transform: MathTransform
    accuracy: float = 0.0

    def inverse(self) -> 'CoordinateOperation':
        return CoordinateOperation(
            name=f"Inverse of {self.name}",
            source_crs=self.target_crs,
            target_crs=self.source_crs,
            transform=self.transform.inverse(),
            accuracy=self.accuracy
        )


class OperationCache:
    """Thread-safe cache of coordinate operations keyed by (source, target) CRS.

    Parameters
    ----------
    maxsize : int, optional
        Maximum number of entries. The least recently used entry is evicted
        when the cache is full. None means unbounded.
    """

    def __init__(self, maxsize: Optional[int] = 256):
        if maxsize is not None and maxsize <= 0:
            raise ValueError(f"Cache size must be positive, got {maxsize}")
        self.maxsize = maxsize
        self._entries: 'OrderedDict[Tuple[CoordinateReferenceSystem, CoordinateReferenceSystem], CoordinateOperation]' = OrderedDict()
        self._lock = threading.Lock()

    def get(self, source: CoordinateReferenceSystem, target: CoordinateReferenceSystem) -> Optional[CoordinateOperation]:
        key = (source, target)
        with self._lock:
            operation = self._entries.get(key)
            if operation is not None:
                self._entries.move_to_end(key)
        if operation is None:
            logger.debug(f"Operation cache miss: {source} → {target}")
        else:
            logger.debug(f"Operation cache hit: {source} → {target}")
        return operation

    def put(self, operation: CoordinateOperation) -> CoordinateOperation:
        """Store an operation, returning the one already cached for the same pair if any."""
        key = (operation.source_crs, operation.target_crs)
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                return existing
            self._entries[key] = operation
            if self.maxsize is not None and len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)
        return operation

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CoordinateOperationFinder:
    """Finds coordinate operations between pairs of CRS.

    Parameters
    ----------
    factory : MathTransformFactory, optional
        Factory used for map projections. A new one is created if omitted.
    cache : OperationCache, optional
        Cache shared with other finders. A private cache is created if omitted.

    Examples
    --------
    >>> finder = CoordinateOperationFinder()
    >>> op = finder.create_operation(WGS84, WGS84_λφ)
    >>> op.transform.transform_point((-33.0, -71.6))
    (-71.6, -33.0)
    """

    def __init__(self, factory: Optional[MathTransformFactory] = None, cache: Optional[OperationCache] = None):
        self.factory = factory if factory is not None else MathTransformFactory()
        self.cache = cache if cache is not None else OperationCache()

    def create_operation(
        self,
        source_crs: CoordinateReferenceSystem,
        target_crs: CoordinateReferenceSystem
    ) -> CoordinateOperation:
        """Return the coordinate operation from `source_crs` to `target_crs`.

        Raises
        ------
        OperationNotFoundError
            If the datums differ and one of them has no shift to WGS 84, or if a
            projection method is not supported.
        """
        cached = self.cache.get(source_crs, target_crs)
        if cached is not None:
            return cached
        operation = self._build(source_crs, target_crs)
        return self.cache.put(operation)

    def find_transform(self, source_crs: CoordinateReferenceSystem, target_crs: CoordinateReferenceSystem) -> MathTransform:
        """Shortcut for `create_operation(source_crs, target_crs).transform`."""
        return self.create_operation(source_crs, target_crs).transform

    def _build(self, source_crs: CoordinateReferenceSystem, target_crs: CoordinateReferenceSystem) -> CoordinateOperation:
        name = f"{source_crs} → {target_crs}"
        if source_crs == target_crs:
            return CoordinateOperation(name, source_crs, target_crs,
                                       math_transforms.identity(source_crs.dimension))
        try:
            to_source_normalized, source_dim = self._to_normalized(source_crs)
            to_target_normalized, target_dim = self._to_normalized(target_crs)
            shift, accuracy = self._datum_shift(source_crs.datum, target_crs.datum, source_dim, target_dim)
        except OperationNotFoundError as e:
            raise OperationNotFoundError(
                f"No coordinate operation from '{source_crs}' to '{target_crs}': {e}",
                source_crs=source_crs.name, target_crs=target_crs.name
            ) from e
        transform = math_transforms.concatenate(to_source_normalized, shift, to_target_normalized.inverse())
        logger.debug(f"Built operation {name} with {len(math_transforms.get_steps(transform))} steps")
        return CoordinateOperation(name, source_crs, target_crs, transform, accuracy)

    def _to_normalized(self, crs: CoordinateReferenceSystem) -> Tuple[MathTransform, int]:
        """Transform from `crs` to normalized geographic coordinates of its datum, and their dimension."""
        if isinstance(crs, GeographicCRS):
            normalized_cs = crs.coordinate_system.normalized()
            swap = math_transforms.linear(swap_and_scale_axes(crs.coordinate_system, normalized_cs))
            return (math_transforms.concatenate(swap, _prime_meridian_shift(crs.datum, crs.dimension)),
                    crs.dimension)
        if isinstance(crs, ProjectedCRS):
            swap = math_transforms.linear(swap_and_scale_axes(crs.coordinate_system, PROJECTED_CS))
            projection = self.factory.create_parameterized(
                crs.conversion.method, crs.base_crs.ellipsoid, crs.conversion.parameter_values
            )
            return (math_transforms.concatenate(swap, projection.inverse(), _prime_meridian_shift(crs.datum, 2)),
                    2)
        if isinstance(crs, GeocentricCRS):
            swap = math_transforms.linear(swap_and_scale_axes(crs.coordinate_system, GEOCENTRIC_CS))
            to_geographic = GeocentricConversion(crs.ellipsoid, with_height=True).inverse()
            return (math_transforms.concatenate(swap, to_geographic, _prime_meridian_shift(crs.datum, 3)),
                    3)
        raise OperationNotFoundError(f"Unsupported CRS type: {type(crs).__name__}")

    def _datum_shift(
        self,
        source: GeodeticDatum,
        target: GeodeticDatum,
        source_dim: int,
        target_dim: int
    ) -> Tuple[MathTransform, float]:
        """Transform between normalized geographic coordinates of two datums, and its accuracy."""
        if source == target or (source.ellipsoid == target.ellipsoid and source.to_wgs84 is not None
                                and source.to_wgs84 == target.to_wgs84):
            return _change_dimension(source_dim, target_dim), 0.0
        if source.to_wgs84 is None or target.to_wgs84 is None:
            missing = source if source.to_wgs84 is None else target
            raise OperationNotFoundError(f"datum '{missing.name}' has no Bursa-Wolf parameters to WGS 84")
        with_height = source_dim == 3 and target_dim == 3
        to_geocentric = GeocentricConversion(source.ellipsoid, with_height=source_dim == 3)
        if target.ellipsoid == source.ellipsoid and source_dim == target_dim:
            to_geographic = to_geocentric.inverse()
        else:
            to_geographic = GeocentricConversion(target.ellipsoid, with_height=target_dim == 3).inverse()
        helmert = math_transforms.concatenate(
            math_transforms.linear(source.to_wgs84.to_matrix()),
            math_transforms.linear(target.to_wgs84.to_matrix().inverse())
        )
        accuracy = 0.0 if source.to_wgs84.is_identity() and target.to_wgs84.is_identity() else 1.0
        if not with_height and source_dim == 3:
            logger.debug("Ellipsoidal height is dropped by the datum shift")
        return math_transforms.concatenate(to_geocentric, helmert, to_geographic), accuracy


def _prime_meridian_shift(datum: GeodeticDatum, dimension: int) -> MathTransform:
    """Add the Greenwich longitude of the prime meridian to the longitude ordinate."""
    offset = datum.prime_meridian.greenwich_longitude
    if offset == 0 or math.isnan(offset):
        return math_transforms.identity(dimension)
    vector = [0.0] * dimension
    vector[1] = offset
    return math_transforms.translation(*vector)


def _change_dimension(source_dim: int, target_dim: int) -> MathTransform:
    """Add a zero height or drop the height ordinate."""
    if source_dim == target_dim:
        return math_transforms.identity(source_dim)
    matrix = Matrix.from_array([[1.0 if (i == j and i < 2) or (i == target_dim and j == source_dim) else 0.0
                                 for j in range(source_dim + 1)]
                                for i in range(target_dim + 1)])
    return math_transforms.linear(matrix)
