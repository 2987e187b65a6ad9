"""
Exception taxonomy for the referencing engine.

Every failure of a matrix operation, coordinate transform, operation search or
geodesic computation is reported by one of the exceptions below. They are
per-call failures: the caller decides whether to recover (for example by falling
back on spherical formulas after a `GeodesicError`).

    ReferencingError
    ├── MismatchedDimensionError   operand shapes do not agree
    ├── TransformError
    │   ├── NoninvertibleTransformError
    │   ├── ProjectionError
    │   └── GeodesicError
    ├── OperationNotFoundError
    └── CalculatorStateError
"""

from typing import Optional, Sequence


class ReferencingError(Exception):
    """Base class of all errors raised by this package."""


class MismatchedDimensionError(ReferencingError, ValueError):
    """Raised when matrix or transform dimensions are incompatible.

    This is always a programming error and is never retried.

    Attributes
    ----------
    expected : int, optional
        The dimension that was required.
    actual : int, optional
        The dimension that was given.
    """

    def __init__(self, message: str, expected: Optional[int] = None, actual: Optional[int] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class TransformError(ReferencingError):
    """Raised when coordinates can not be transformed."""


class NoninvertibleTransformError(TransformError):
    """Raised when the inverse of a transform or matrix does not exist.

    Callers can recover by treating this as "no inverse available".
    """


class ProjectionError(TransformError):
    """Raised when an iterative map projection formula does not converge."""


class GeodesicError(TransformError):
    """Raised when the geodesic between two points can not be computed.

    This happens mostly with nearly antipodal points, where the iterative
    ellipsoidal solver does not converge within its iteration cap.

    Attributes
    ----------
    start : tuple of float, optional
        Start point as (latitude, longitude) in degrees.
    end : tuple of float, optional
        End point as (latitude, longitude) in degrees.
    iterations : int, optional
        Number of iterations executed before giving up.
    """

    def __init__(
        self,
        message: str,
        start: Optional[Sequence[float]] = None,
        end: Optional[Sequence[float]] = None,
        iterations: Optional[int] = None
    ):
        super().__init__(message)
        self.start = tuple(start) if start is not None else None
        self.end = tuple(end) if end is not None else None
        self.iterations = iterations


class OperationNotFoundError(ReferencingError):
    """Raised when no coordinate operation exists between two CRS.

    Attributes
    ----------
    source_crs : str, optional
        Name of the source coordinate reference system.
    target_crs : str, optional
        Name of the target coordinate reference system.
    """

    def __init__(self, message: str, source_crs: Optional[str] = None, target_crs: Optional[str] = None):
        super().__init__(message)
        self.source_crs = source_crs
        self.target_crs = target_crs


class CalculatorStateError(ReferencingError, RuntimeError):
    """Raised when a geodetic calculator property is requested before its inputs are known."""
