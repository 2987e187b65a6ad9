"""
Geodesy module for geodesic computations between positions.

This module provides:
- The direct and inverse geodesic problems on a sphere and on an ellipsoid
- Rhumb line lengths and azimuths
- Discretization of geodesics and geodesic circles into point sequences
"""

from geodesy.geodetic_calculator import (
    CalculatorConfig,
    GeodeticCalculator,
    EllipsoidalGeodeticCalculator,
)
from geodesy.geodesic_path import GeodesicPath

__all__ = [
    "CalculatorConfig",
    "GeodeticCalculator",
    "EllipsoidalGeodeticCalculator",
    "GeodesicPath",
]
