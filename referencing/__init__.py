"""
Referencing module: axis directions, coordinate systems, CRS and coordinate operations.

This module provides:
- Axis direction codes and "along meridian" directions of polar systems
- Ellipsoidal and Cartesian coordinate systems with axis swap/scale matrices
- Geographic, projected and geocentric CRS, with hard-coded WGS 84 and sphere CRS
- The coordinate operation finder and its cache
- Conversion of pyproj CRS definitions
"""

from referencing.axis_directions import AxisDirection, AxisDirections
from referencing.direction_along_meridian import DirectionAlongMeridian
from referencing.coordinate_system import (
    CoordinateSystemAxis,
    CoordinateSystem,
    EllipsoidalCS,
    CartesianCS,
    swap_and_scale_axes,
)
from referencing.crs import (
    CoordinateReferenceSystem,
    GeographicCRS,
    ProjectedCRS,
    GeocentricCRS,
    Conversion,
    WGS84,
    WGS84_λφ,
    WGS84_3D,
    GEOCENTRIC,
    SPHERE,
    SPHERE_φλ,
)
from referencing.operations import CoordinateOperation, CoordinateOperationFinder, OperationCache

__all__ = [
    "AxisDirection",
    "AxisDirections",
    "DirectionAlongMeridian",
    "CoordinateSystemAxis",
    "CoordinateSystem",
    "EllipsoidalCS",
    "CartesianCS",
    "swap_and_scale_axes",
    "CoordinateReferenceSystem",
    "GeographicCRS",
    "ProjectedCRS",
    "GeocentricCRS",
    "Conversion",
    "WGS84",
    "WGS84_λφ",
    "WGS84_3D",
    "GEOCENTRIC",
    "SPHERE",
    "SPHERE_φλ",
    "CoordinateOperation",
    "CoordinateOperationFinder",
    "OperationCache",
]
