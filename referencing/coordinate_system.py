"""
Coordinate Systems and Axes.

A coordinate system is an ordered list of axes, each with a direction and a
unit. Two coordinate systems describing the same space in a different axis
order or with different units are related by an affine transform computed by
`swap_and_scale_axes`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple
import numpy as np

from common.units import conversion_factor, is_angular, is_linear
from referencing.axis_directions import AxisDirection, AxisDirections
from referencing.direction_along_meridian import DirectionAlongMeridian
from transform.matrix import Matrix


@dataclass(frozen=True)
class CoordinateSystemAxis:
    """An axis of a coordinate system.

    Attributes
    ----------
    name : str
        Axis name, e.g. 'Geodetic latitude' or 'Easting'.
    abbreviation : str
        Short name, e.g. 'φ' or 'E'.
    direction : AxisDirection
        Direction of increasing values.
    unit : str
        Unit of measure, e.g. 'degree' or 'metre'.
    """
    name: str
    abbreviation: str
    direction: AxisDirection
    unit: str

    def __str__(self) -> str:
        return f"{self.name} ({self.abbreviation}) {self.direction} [{self.unit}]"


LATITUDE_AXIS = CoordinateSystemAxis("Geodetic latitude", "φ", AxisDirection.NORTH, "degree")
LONGITUDE_AXIS = CoordinateSystemAxis("Geodetic longitude", "λ", AxisDirection.EAST, "degree")
ELLIPSOIDAL_HEIGHT_AXIS = CoordinateSystemAxis("Ellipsoidal height", "h", AxisDirection.UP, "metre")
EASTING_AXIS = CoordinateSystemAxis("Easting", "E", AxisDirection.EAST, "metre")
NORTHING_AXIS = CoordinateSystemAxis("Northing", "N", AxisDirection.NORTH, "metre")
GEOCENTRIC_X_AXIS = CoordinateSystemAxis("Geocentric X", "X", AxisDirection.GEOCENTRIC_X, "metre")
GEOCENTRIC_Y_AXIS = CoordinateSystemAxis("Geocentric Y", "Y", AxisDirection.GEOCENTRIC_Y, "metre")
GEOCENTRIC_Z_AXIS = CoordinateSystemAxis("Geocentric Z", "Z", AxisDirection.GEOCENTRIC_Z, "metre")


def _direction_vector(direction: AxisDirection) -> Optional[Tuple[float, float, float]]:
    """Unit vector of a direction in a local (east, north, up) or geocentric frame."""
    if AxisDirections.is_compass(direction):
        # Compass directions are 22.5° apart, clockwise from north.
        theta = np.radians(22.5 * (direction.ordinal - AxisDirection.NORTH.ordinal))
        return (float(np.sin(theta)), float(np.cos(theta)), 0.0)
    vectors = {
        "UP": (0.0, 0.0, 1.0), "DOWN": (0.0, 0.0, -1.0),
        "GEOCENTRIC_X": (1.0, 0.0, 0.0), "GEOCENTRIC_Y": (0.0, 1.0, 0.0), "GEOCENTRIC_Z": (0.0, 0.0, 1.0),
    }
    return vectors.get(direction.name)


@dataclass(frozen=True)
class CoordinateSystem(ABC):
    """An ordered sequence of axes."""
    name: str
    axes: Tuple[CoordinateSystemAxis, ...]

    def __post_init__(self):
        object.__setattr__(self, "axes", tuple(self.axes))
        if not self.axes:
            raise ValueError("A coordinate system needs at least one axis")

    @property
    def dimension(self) -> int:
        return len(self.axes)

    @property
    def directions(self) -> List[AxisDirection]:
        return [axis.direction for axis in self.axes]

    def get_axis(self, index: int) -> CoordinateSystemAxis:
        return self.axes[index]

    def is_right_handed(self) -> bool:
        """Whether the axes form a right-handed system.

        Two-dimensional systems are right-handed when the second axis is 90°
        counterclockwise from the first, e.g. (east, north). Three-dimensional
        systems additionally need the third axis to complete a positive basis,
        e.g. (east, north, up) or (X, Y, Z).
        """
        directions = self.directions
        if len(directions) == 2:
            angle = AxisDirections.angle_for_compass(directions[0], directions[1])
            if angle is None:
                angle = AxisDirections.angle_for_along_meridian(directions[0], directions[1])
            return angle is not None and angle > 0
        if len(directions) == 3:
            vectors = [_direction_vector(d) for d in directions]
            if any(v is None for v in vectors):
                return False
            return bool(np.linalg.det(np.array(vectors)) > 0.5)
        return False

    @abstractmethod
    def normalized(self) -> 'CoordinateSystem':
        """Return the coordinate system with conventional axis order, directions and units."""

    def __str__(self) -> str:
        return f"{type(self).__name__}[\"{self.name}\": " + ", ".join(a.abbreviation for a in self.axes) + "]"


@dataclass(frozen=True)
class EllipsoidalCS(CoordinateSystem):
    """Latitude, longitude and optional ellipsoidal height, in any order and units."""

    def __post_init__(self):
        super().__post_init__()
        if self.dimension not in (2, 3):
            raise ValueError(f"An ellipsoidal coordinate system has 2 or 3 axes, got {self.dimension}")
        for axis in self.axes:
            vertical = AxisDirections.absolute(axis.direction) is AxisDirection.UP
            if vertical and not is_linear(axis.unit):
                raise ValueError(f"Height axis must have a linear unit, got '{axis.unit}'")
            if not vertical and not is_angular(axis.unit):
                raise ValueError(f"Axis '{axis.name}' must have an angular unit, got '{axis.unit}'")

    @property
    def has_height(self) -> bool:
        return self.dimension == 3

    def normalized(self) -> 'EllipsoidalCS':
        """(latitude north, longitude east[, height up]) in degrees and metres."""
        axes = [LATITUDE_AXIS, LONGITUDE_AXIS]
        if self.has_height:
            axes.append(ELLIPSOIDAL_HEIGHT_AXIS)
        return EllipsoidalCS("Ellipsoidal CS: North (°), East (°)" + (", Up (m)" if self.has_height else ""),
                             tuple(axes))


@dataclass(frozen=True)
class CartesianCS(CoordinateSystem):
    """Easting/northing, geocentric or polar Cartesian axes with linear units."""

    def __post_init__(self):
        super().__post_init__()
        for axis in self.axes:
            if not is_linear(axis.unit):
                raise ValueError(f"Cartesian axis '{axis.name}' must have a linear unit, got '{axis.unit}'")

    def normalized(self) -> 'CartesianCS':
        """Axes in (east, north, up) or (X, Y, Z) order, positive directions, metres.

        Axes pointing along meridians keep their direction and are sorted by
        `DirectionAlongMeridian` ordering.
        """
        along = [DirectionAlongMeridian.parse(a.direction.identifier) for a in self.axes]
        if all(d is not None for d in along):
            ordered = sorted(zip(along, self.axes), key=lambda pair: pair[0])
            axes = tuple(replace(axis, unit="metre") for _, axis in ordered)
        else:
            def rank(axis: CoordinateSystemAxis) -> int:
                direction = AxisDirections.absolute(axis.direction)
                order = {"EAST": 0, "NORTH": 1, "UP": 2, "GEOCENTRIC_X": 0, "GEOCENTRIC_Y": 1, "GEOCENTRIC_Z": 2}
                return order.get(direction.name, 10 + direction.ordinal)
            axes = tuple(
                replace(axis, direction=AxisDirections.absolute(axis.direction), unit="metre")
                for axis in sorted(self.axes, key=rank)
            )
        return CartesianCS(self.name + " (normalized)", axes)


def swap_and_scale_axes(source_cs: CoordinateSystem, target_cs: CoordinateSystem) -> Matrix:
    """Matrix converting coordinates from `source_cs` to `target_cs`.

    The matrix reorders axes, reverses opposite directions (south to north)
    and converts units. A vertical axis present only in the target receives 0;
    an axis present only in the source is dropped.

    Raises
    ------
    ValueError
        If a target axis has no colinear source axis and is not vertical, or if
        units are incompatible.
    """
    source_dirs = source_cs.directions
    num_row = target_cs.dimension + 1
    num_col = source_cs.dimension + 1
    elements = np.zeros((num_row, num_col), dtype=np.float64)
    elements[-1, -1] = 1.0
    for i, target_axis in enumerate(target_cs.axes):
        j = _find_source_axis(source_dirs, target_axis.direction)
        if j < 0:
            if AxisDirections.absolute(target_axis.direction) is AxisDirection.UP:
                continue
            raise ValueError(
                f"No axis of {source_cs} is colinear with target axis '{target_axis.name}' "
                f"({target_axis.direction})"
            )
        source_axis = source_cs.axes[j]
        factor = conversion_factor(source_axis.unit, target_axis.unit)
        if source_axis.direction is not target_axis.direction:
            factor = -factor
        elements[i, j] = factor
    return Matrix.from_array(elements)


def _find_source_axis(source_dirs: List[AxisDirection], direction: AxisDirection) -> int:
    for j, candidate in enumerate(source_dirs):
        if candidate is direction:
            return j
    if AxisDirections.is_compass(direction) or AxisDirections.opposite(direction) is not None:
        return AxisDirections.index_of_colinear(source_dirs, direction)
    return -1
