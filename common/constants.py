"""
Geodetic Constants for the Referencing Engine.

This module provides the defining constants of the reference ellipsoids and
the numerical tolerances used throughout the system. All constants carry their
uncertainty, SI unit and authoritative source.

References
----------
- WGS84 parameters: NIMA TR8350.2, Third Edition, 2000
- GRS 1980: Moritz, H. (2000). Geodetic Reference System 1980. J. Geodesy 74.
- IOGP Publication 373-7-2 (Geomatics Guidance Note 7, part 2)
"""

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class Constant:
    """A physical constant with uncertainty and provenance.

    Attributes
    ----------
    value : float
        The nominal value of the constant.
    uncertainty : float
        The standard uncertainty (1-sigma) of the constant.
    unit : str
        The SI unit of the constant.
    source : str
        Reference for the constant value.
    description : str
        Human-readable description of the constant.
    """
    value: float
    uncertainty: float
    unit: str
    source: str
    description: str


class GeodeticConstants:
    """Registry of geodetic constants used throughout the system.

    Reference Ellipsoids
    --------------------
    Defining parameters (semi-major axis and inverse flattening) of the
    ellipsoids that are hard-coded in this package. Other parameters are
    derived by `geospatial.coordinate_models.Ellipsoid`.

    Tolerances
    ----------
    Thresholds used when comparing computed coordinates. The angular
    tolerance is the linear one converted to degrees of arc using the
    nautical mile, which is one minute of latitude.
    """

    # =========================================================================
    # WGS84 Ellipsoid Parameters
    # Reference: NIMA TR8350.2, Third Edition, 2000
    # =========================================================================

    WGS84_SEMI_MAJOR_AXIS: Final[Constant] = Constant(
        value=6_378_137.0,
        uncertainty=0.0,  # Defined exactly
        unit="m",
        source="WGS84, NIMA TR8350.2",
        description="Semi-major axis (equatorial radius) of WGS84 ellipsoid"
    )

    WGS84_INVERSE_FLATTENING: Final[Constant] = Constant(
        value=298.257223563,
        uncertainty=0.0,  # Defined exactly
        unit="dimensionless",
        source="WGS84, NIMA TR8350.2",
        description="Inverse flattening of WGS84 ellipsoid: 1/f = a / (a - b)"
    )

    GRS80_SEMI_MAJOR_AXIS: Final[Constant] = Constant(
        value=6_378_137.0,
        uncertainty=0.0,
        unit="m",
        source="GRS 1980, EPSG:7019",
        description="Semi-major axis of the GRS 1980 ellipsoid"
    )

    GRS80_INVERSE_FLATTENING: Final[Constant] = Constant(
        value=298.257222101,
        uncertainty=0.0,
        unit="dimensionless",
        source="GRS 1980, EPSG:7019",
        description="Inverse flattening of the GRS 1980 ellipsoid"
    )

    CLARKE1866_SEMI_MAJOR_AXIS: Final[Constant] = Constant(
        value=6_378_206.4,
        uncertainty=0.0,
        unit="m",
        source="Clarke 1866, EPSG:7008",
        description="Semi-major axis of the Clarke 1866 ellipsoid"
    )

    CLARKE1866_SEMI_MINOR_AXIS: Final[Constant] = Constant(
        value=6_356_583.8,
        uncertainty=0.0,
        unit="m",
        source="Clarke 1866, EPSG:7008",
        description="Semi-minor axis of the Clarke 1866 ellipsoid (defining parameter)"
    )

    INTERNATIONAL1924_SEMI_MAJOR_AXIS: Final[Constant] = Constant(
        value=6_378_388.0,
        uncertainty=0.0,
        unit="m",
        source="International 1924, EPSG:7022",
        description="Semi-major axis of the International 1924 ellipsoid"
    )

    INTERNATIONAL1924_INVERSE_FLATTENING: Final[Constant] = Constant(
        value=297.0,
        uncertainty=0.0,
        unit="dimensionless",
        source="International 1924, EPSG:7022",
        description="Inverse flattening of the International 1924 ellipsoid"
    )

    AUTHALIC_RADIUS: Final[Constant] = Constant(
        value=6_371_007.0,
        uncertainty=0.5,
        unit="m",
        source="GRS 1980 Authalic Sphere, EPSG:7048",
        description="Radius of the sphere having the same surface as GRS 1980"
    )

    EARTH_MEAN_RADIUS: Final[Constant] = Constant(
        value=6_371_008.8,
        uncertainty=0.1,
        unit="m",
        source="IUGG mean radius",
        description="Mean radius of Earth (for reference only, not for calculations)"
    )

    NAUTICAL_MILE: Final[Constant] = Constant(
        value=1852.0,
        uncertainty=0.0,  # Defined exactly
        unit="m",
        source="IEEE/ASTM SI 10-2016",
        description="Length of one nautical mile, about one minute of latitude"
    )

    # =========================================================================
    # Numerical tolerances
    # =========================================================================

    LINEAR_TOLERANCE: Final[Constant] = Constant(
        value=0.01,
        uncertainty=0.0,
        unit="m",
        source="Convention of this package",
        description="Default tolerance threshold for comparing coordinates in metres"
    )

    ANGULAR_TOLERANCE: Final[Constant] = Constant(
        value=0.01 / (1852.0 * 60),
        uncertainty=0.0,
        unit="degree",
        source="Convention of this package",
        description="LINEAR_TOLERANCE converted to degrees of arc on the Earth"
    )

    MATRIX_TOLERANCE: Final[Constant] = Constant(
        value=1e-12,
        uncertainty=0.0,
        unit="dimensionless",
        source="Convention of this package",
        description="Relative tolerance for matrix comparisons and singularity checks"
    )


# Short aliases, used by numerical code where attribute access is noisy.
LINEAR_TOLERANCE: Final[float] = GeodeticConstants.LINEAR_TOLERANCE.value
ANGULAR_TOLERANCE: Final[float] = GeodeticConstants.ANGULAR_TOLERANCE.value
MATRIX_TOLERANCE: Final[float] = GeodeticConstants.MATRIX_TOLERANCE.value
