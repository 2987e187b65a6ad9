"""
Axis directions defined relative to a meridian.

Polar coordinate systems in the EPSG dataset use axis directions such as
"South along 90°E" or "North along 0°": the axis points north or south, along
the meridian at the given longitude. This module parses those names, computes
angles between them and orders them so that the axes of a right-handed
coordinate system are sorted in the conventional order.
"""

from dataclasses import dataclass
from functools import total_ordering
from typing import Optional
import math
import re
import threading
import weakref

from referencing.axis_directions import AxisDirection, AxisDirections

_EPSG_PATTERN = re.compile(
    r"(\S+)\s+along\s+([-\d.]+)(?:\s+deg|\s*°)\s*(\S+)?",
    re.IGNORECASE
)

_BASE_DIRECTIONS = (AxisDirection.NORTH, AxisDirection.SOUTH, AxisDirection.EAST, AxisDirection.WEST)

# Parsed instances by name. Entries disappear when no longer referenced elsewhere.
_cache: 'weakref.WeakValueDictionary[str, DirectionAlongMeridian]' = weakref.WeakValueDictionary()
_cache_lock = threading.Lock()


@total_ordering
@dataclass(frozen=True, eq=False)
class DirectionAlongMeridian:
    """A direction of the form "<North|South> along <meridian>".

    Attributes
    ----------
    base_direction : AxisDirection
        NORTH or SOUTH.
    meridian : float
        Longitude of the meridian in degrees, in [-180, 180]. Negative values
        are west of Greenwich.

    Examples
    --------
    >>> d = DirectionAlongMeridian.parse("South along 90 deg East")
    >>> d.base_direction, d.meridian
    (AxisDirection.SOUTH, 90.0)
    >>> str(d)
    'South along 90°E'
    """
    base_direction: AxisDirection
    meridian: float

    def __post_init__(self):
        if AxisDirections.absolute(self.base_direction) is not AxisDirection.NORTH:
            raise ValueError(f"Base direction must be NORTH or SOUTH, got {self.base_direction!r}")
        if not (-180 <= self.meridian <= 180):
            raise ValueError(f"Meridian must be in the [-180 … 180]° range, got {self.meridian}")

    @classmethod
    def parse(cls, name: str) -> Optional['DirectionAlongMeridian']:
        """Parse a direction name such as "North along 90°E".

        Returns None if the name does not have the expected form, if the base
        direction is not north or south, if the meridian is outside
        [-180, 180] or if the suffix is neither east nor west.
        """
        with _cache_lock:
            cached = _cache.get(name)
        if cached is not None:
            return cached
        match = _EPSG_PATTERN.fullmatch(name.strip())
        if match is None:
            return None
        base = AxisDirections.find(match.group(1), _BASE_DIRECTIONS)
        if base is None or AxisDirections.absolute(base) is not AxisDirection.NORTH:
            return None
        try:
            meridian = float(match.group(2))
        except ValueError:
            return None
        if not (-180 <= meridian <= 180):
            return None
        suffix = match.group(3)
        if suffix is not None:
            sign = AxisDirections.find(suffix, _BASE_DIRECTIONS)
            if sign is None or AxisDirections.absolute(sign) is not AxisDirection.EAST:
                return None
            if sign is not AxisDirection.EAST:
                meridian = -meridian
        parsed = cls(base, meridian)
        with _cache_lock:
            return _cache.setdefault(name, parsed)

    @property
    def direction(self) -> AxisDirection:
        """The axis direction code for this direction, created if needed."""
        return AxisDirection.value_of(str(self), create=True)

    def get_angle(self, other: 'DirectionAlongMeridian') -> float:
        """Angle in degrees from this direction to the other one.

        The difference of meridians is wrapped to (-180, 180] and its sign is
        reversed for south-pointing directions. Returns NaN if the base
        directions differ.
        """
        if self.base_direction is not other.base_direction:
            return math.nan
        angle = self.meridian - other.meridian
        if angle <= -180:
            angle += 360
        elif angle > 180:
            angle -= 360
        if AxisDirections.is_opposite(self.base_direction) and angle != 180:
            angle = -angle
        return angle

    def __eq__(self, other) -> bool:
        if not isinstance(other, DirectionAlongMeridian):
            return NotImplemented
        return self.base_direction is other.base_direction and self.meridian == other.meridian

    def __hash__(self) -> int:
        return hash((self.base_direction.ordinal, self.meridian))

    def __lt__(self, other: 'DirectionAlongMeridian') -> bool:
        if not isinstance(other, DirectionAlongMeridian):
            return NotImplemented
        if self.base_direction is not other.base_direction:
            return self.base_direction < other.base_direction
        return self.get_angle(other) > 0

    def __str__(self) -> str:
        magnitude = abs(self.meridian)
        text = f"{self.base_direction.name.capitalize()} along "
        text += str(int(magnitude)) if magnitude == int(magnitude) else repr(magnitude)
        text += "°"
        if magnitude not in (0, 180):
            text += "W" if self.meridian < 0 else "E"
        return text
