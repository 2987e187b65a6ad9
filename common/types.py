"""
Shared Value Types for the Referencing Engine.

This module defines small immutable value types exchanged between packages:
positions tagged with their coordinate reference system and two-dimensional
envelopes.

Design Rationale
----------------
A position without its CRS is ambiguous: (45, 10) may be (latitude, longitude)
or (longitude, latitude), in degrees or grads. `DirectPosition` keeps the CRS
next to the coordinate tuple so that consumers never need to guess.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional, Tuple
import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class DirectPosition:
    """A position in a coordinate reference system.

    Attributes
    ----------
    coordinates : tuple of float
        Ordinate values, in the axis order and units of `crs`.
    crs : CoordinateReferenceSystem, optional
        The coordinate reference system, or None if unknown.

    Examples
    --------
    >>> p = DirectPosition((-33.0, -71.6))
    >>> p[0], p.dimension
    (-33.0, 2)
    """
    coordinates: Tuple[float, ...]
    crs: Optional[Any] = None

    def __post_init__(self):
        """Store the coordinates as a tuple of floats."""
        object.__setattr__(self, "coordinates", tuple(float(c) for c in self.coordinates))

    @property
    def dimension(self) -> int:
        """Number of ordinates."""
        return len(self.coordinates)

    def get_ordinate(self, dimension: int) -> float:
        """Return the ordinate at the given dimension."""
        return self.coordinates[dimension]

    def __getitem__(self, index: int) -> float:
        return self.coordinates[index]

    def __len__(self) -> int:
        return len(self.coordinates)

    def __iter__(self) -> Iterator[float]:
        return iter(self.coordinates)

    def __str__(self) -> str:
        return "POINT(" + " ".join(f"{c:.12g}" for c in self.coordinates) + ")"


@dataclass(frozen=True)
class Envelope2D:
    """Axis-aligned rectangle in a two-dimensional coordinate space.

    Attributes
    ----------
    min_x, min_y, max_x, max_y : float
        Bounds in the units of the first and second axis.
    """
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_points(cls, points: Iterable[Tuple[float, float]]) -> 'Envelope2D':
        """Compute the bounding box of a sequence of (x, y) points.

        Raises
        ------
        ValueError
            If the sequence is empty.
        """
        array = np.asarray(list(points), dtype=np.float64)
        if array.size == 0:
            raise ValueError("Can not compute the envelope of an empty sequence of points")
        lower = array.min(axis=0)
        upper = array.max(axis=0)
        return cls(float(lower[0]), float(lower[1]), float(upper[0]), float(upper[1]))

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center_x(self) -> float:
        return 0.5 * (self.min_x + self.max_x)

    @property
    def center_y(self) -> float:
        return 0.5 * (self.min_y + self.max_y)

    def contains(self, x: float, y: float) -> bool:
        """Whether the given point is inside this envelope (borders inclusive)."""
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y


# Type aliases for array types
CoordinateArray = NDArray[np.float64]  # Shape: (N, dimension)
