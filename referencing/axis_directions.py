"""
Axis Directions.

`AxisDirection` is an extensible code list: it has a fixed set of members
(NORTH, EAST, UP, GEOCENTRIC_X, ...) and new codes can be created on demand
for directions such as "South along 90°E" found in polar coordinate systems.
Codes are compared by identity and ordered by their declaration ordinal.

`AxisDirections` gathers the utility functions working on those codes.
"""

from typing import Dict, List, Optional, Sequence
import re
import threading

from common.logging_config import get_logger

logger = get_logger(__name__)


def _key(name: str) -> str:
    return re.sub(r"[\s_\-]+", "_", name.strip()).upper()


class AxisDirection:
    """A direction of a coordinate system axis.

    Instances are unique per name: use `AxisDirection.value_of` rather than
    the constructor. Equality is identity, ordering follows the declaration
    ordinal (codes created on demand come after all predefined ones).

    Attributes
    ----------
    name : str
        Upper-case code name, e.g. 'NORTH' or 'SOUTH_ALONG_90°E'.
    identifier : str
        Human-readable name, e.g. 'north' or 'South along 90°E'.
    ordinal : int
        Declaration order.
    """

    __slots__ = ("name", "identifier", "ordinal", "__weakref__")

    _registry: Dict[str, 'AxisDirection'] = {}
    _lock = threading.Lock()

    def __init__(self, name: str, identifier: str, ordinal: int):
        self.name = name
        self.identifier = identifier
        self.ordinal = ordinal

    @classmethod
    def _define(cls, identifier: str) -> 'AxisDirection':
        key = _key(identifier)
        code = cls(key, identifier, len(cls._registry))
        cls._registry[key] = code
        return code

    @classmethod
    def value_of(cls, name: str, create: bool = False) -> Optional['AxisDirection']:
        """Return the code of the given name, optionally creating it.

        Lookup ignores case and treats spaces, dashes and underscores alike.
        Returns None when the code does not exist and `create` is False.
        """
        key = _key(name)
        with cls._lock:
            code = cls._registry.get(key)
            if code is None and create:
                code = cls._define(name.strip())
                logger.debug(f"Created axis direction code '{code.identifier}'")
            return code

    @classmethod
    def values(cls) -> List['AxisDirection']:
        """All codes, predefined and created, in ordinal order."""
        with cls._lock:
            return sorted(cls._registry.values(), key=lambda c: c.ordinal)

    def __lt__(self, other: 'AxisDirection') -> bool:
        if not isinstance(other, AxisDirection):
            return NotImplemented
        return self.ordinal < other.ordinal

    def __reduce__(self):
        return (AxisDirection.value_of, (self.identifier, True))

    def __repr__(self) -> str:
        return f"AxisDirection.{self.name}"

    def __str__(self) -> str:
        return self.identifier


_PREDEFINED = (
    "other",
    "north", "north-north-east", "north-east", "east-north-east",
    "east", "east-south-east", "south-east", "south-south-east",
    "south", "south-south-west", "south-west", "west-south-west",
    "west", "west-north-west", "north-west", "north-north-west",
    "up", "down",
    "geocentric X", "geocentric Y", "geocentric Z",
    "future", "past",
    "column positive", "column negative",
    "row positive", "row negative",
    "display right", "display left", "display up", "display down",
)

for _identifier in _PREDEFINED:
    setattr(AxisDirection, _key(_identifier), AxisDirection._define(_identifier))
del _identifier

# Number of compass directions, from NORTH to NORTH_NORTH_WEST.
COMPASS_COUNT = 16

_OPPOSITE_PAIRS = (
    ("UP", "DOWN"),
    ("FUTURE", "PAST"),
    ("COLUMN_POSITIVE", "COLUMN_NEGATIVE"),
    ("ROW_POSITIVE", "ROW_NEGATIVE"),
    ("DISPLAY_RIGHT", "DISPLAY_LEFT"),
    ("DISPLAY_UP", "DISPLAY_DOWN"),
)


class AxisDirections:
    """Utility functions on `AxisDirection` codes."""

    @staticmethod
    def _compass_index(direction: AxisDirection) -> Optional[int]:
        index = direction.ordinal - AxisDirection.NORTH.ordinal
        return index if 0 <= index < COMPASS_COUNT else None

    @staticmethod
    def is_compass(direction: AxisDirection) -> bool:
        """Whether the direction is one of the 16 compass directions."""
        return AxisDirections._compass_index(direction) is not None

    @staticmethod
    def opposite(direction: AxisDirection) -> Optional[AxisDirection]:
        """Return the opposite direction, or None if there is none (e.g. GEOCENTRIC_X)."""
        index = AxisDirections._compass_index(direction)
        if index is not None:
            return AxisDirection.values()[AxisDirection.NORTH.ordinal + (index + COMPASS_COUNT // 2) % COMPASS_COUNT]
        for first, second in _OPPOSITE_PAIRS:
            if direction.name == first:
                return getattr(AxisDirection, second)
            if direction.name == second:
                return getattr(AxisDirection, first)
        return None

    @staticmethod
    def absolute(direction: AxisDirection) -> AxisDirection:
        """Return the "positive" direction of the pair (e.g. NORTH for SOUTH)."""
        opposite = AxisDirections.opposite(direction)
        if opposite is not None and opposite.ordinal < direction.ordinal:
            return opposite
        return direction

    @staticmethod
    def is_opposite(direction: AxisDirection) -> bool:
        """Whether the direction points in the "negative" sense of its pair (SOUTH, WEST, DOWN, ...)."""
        return AxisDirections.absolute(direction) is not direction

    @staticmethod
    def abbreviation(direction: AxisDirection) -> str:
        """Initials of the words of the direction name, e.g. 'NE' for NORTH_EAST."""
        return "".join(word[0] for word in direction.name.split("_") if word)

    @staticmethod
    def find(name: str, candidates: Sequence[AxisDirection]) -> Optional[AxisDirection]:
        """Find the direction matching the given name or abbreviation among the candidates.

        Comparison ignores case and separators. 'E' and 'East' both match EAST.
        """
        key = _key(name)
        for candidate in candidates:
            if candidate.name == key:
                return candidate
        compact = key.replace("_", "")
        for candidate in candidates:
            if AxisDirections.abbreviation(candidate) == compact:
                return candidate
        return None

    @staticmethod
    def angle_for_compass(source: AxisDirection, target: AxisDirection) -> Optional[float]:
        """Arithmetic angle in degrees from `source` to `target` compass directions.

        Positive angles are counterclockwise, so the angle from EAST to NORTH is
        +90°. Returns None if either direction is not a compass direction.
        """
        src = AxisDirections._compass_index(source)
        tgt = AxisDirections._compass_index(target)
        if src is None or tgt is None:
            return None
        steps = src - tgt
        if steps < -COMPASS_COUNT // 2:
            steps += COMPASS_COUNT
        elif steps > COMPASS_COUNT // 2:
            steps -= COMPASS_COUNT
        return steps * (360.0 / COMPASS_COUNT)

    @staticmethod
    def angle_for_along_meridian(source: AxisDirection, target: AxisDirection) -> Optional[float]:
        """Angle in degrees between two "along meridian" directions.

        Returns None if either direction is not of the form "North along 90°E",
        and NaN if the base directions differ.
        """
        from referencing.direction_along_meridian import DirectionAlongMeridian
        src = DirectionAlongMeridian.parse(source.identifier)
        tgt = DirectionAlongMeridian.parse(target.identifier)
        if src is None or tgt is None:
            return None
        return src.get_angle(tgt)

    @staticmethod
    def index_of_colinear(directions: Sequence[AxisDirection], direction: AxisDirection) -> int:
        """Index of the first direction colinear with `direction`, or -1 if none."""
        wanted = AxisDirections.absolute(direction)
        for i, candidate in enumerate(directions):
            if AxisDirections.absolute(candidate) is wanted:
                return i
        return -1
