"""
Geospatial module for geodetic datums, ellipsoid formulas and map projections.

This module provides:
- Reference ellipsoids, prime meridians and geodetic datums
- Ellipsoid formulas (radii of curvature, meridian arc, authalic radius)
- Geographic to geocentric conversion
- Bursa-Wolf datum shifts
- Parameterized map projections (Mercator, Transverse Mercator, Lambert conic)
"""

from geospatial.coordinate_models import (
    Ellipsoid,
    PrimeMeridian,
    GeodeticDatum,
    GeocentricConversion,
    GeographicConversion,
    WGS84_ELLIPSOID,
    GRS80_ELLIPSOID,
    CLARKE1866_ELLIPSOID,
    INTERNATIONAL1924_ELLIPSOID,
    AUTHALIC_SPHERE,
    WGS84_DATUM,
    SPHERE_DATUM,
    GREENWICH,
)
from geospatial.datum_shift import BursaWolfParameters
from geospatial.projections import (
    NormalizedProjection,
    Mercator,
    PseudoMercator,
    TransverseMercator,
    LambertConicConformal,
)
from geospatial.transform_factory import MathTransformFactory

__all__ = [
    "Ellipsoid",
    "PrimeMeridian",
    "GeodeticDatum",
    "GeocentricConversion",
    "GeographicConversion",
    "WGS84_ELLIPSOID",
    "GRS80_ELLIPSOID",
    "CLARKE1866_ELLIPSOID",
    "INTERNATIONAL1924_ELLIPSOID",
    "AUTHALIC_SPHERE",
    "WGS84_DATUM",
    "SPHERE_DATUM",
    "GREENWICH",
    "BursaWolfParameters",
    "NormalizedProjection",
    "Mercator",
    "PseudoMercator",
    "TransverseMercator",
    "LambertConicConformal",
    "MathTransformFactory",
]
