"""
Bridge to pyproj CRS definitions.

Converts `pyproj.CRS` objects (or anything `pyproj.CRS.from_user_input`
accepts: EPSG codes, WKT, PROJ strings) into the CRS types of this package,
so that definitions from the PROJ database can be used with the coordinate
operation finder and the geodetic calculator.

Only the ellipsoid, prime meridian, axes and, for projected CRS, the map
projection parameters are read. Datum shifts are read from the `towgs84`
parameters of the bound CRS when present.

Example Usage
-------------
>>> from referencing.pyproj_bridge import crs_from_pyproj
>>> utm31 = crs_from_pyproj("EPSG:32631")
>>> utm31.conversion.method
'Transverse Mercator'
"""

from typing import Any, Dict, Optional, Tuple
import math

from pyproj import CRS

from common.logging_config import get_logger
from common.units import conversion_factor
from geospatial.coordinate_models import (
    Ellipsoid,
    GeodeticDatum,
    PrimeMeridian,
    WGS84_DATUM,
    WGS84_ELLIPSOID,
)
from geospatial.datum_shift import BursaWolfParameters
from geospatial.transform_factory import DEFAULT_METHODS, PARAMETER_NAMES
from referencing.axis_directions import AxisDirection
from referencing.coordinate_system import CartesianCS, CoordinateSystemAxis, EllipsoidalCS
from referencing.crs import Conversion, GeocentricCRS, GeographicCRS, ProjectedCRS

logger = get_logger(__name__)

# PROJ axis direction names mapped to axis direction codes.
_DIRECTIONS: Dict[str, str] = {
    "north": "NORTH",
    "south": "SOUTH",
    "east": "EAST",
    "west": "WEST",
    "up": "UP",
    "down": "DOWN",
    "geocentricx": "GEOCENTRIC_X",
    "geocentricy": "GEOCENTRIC_Y",
    "geocentricz": "GEOCENTRIC_Z",
}

_SUPPORTED_METHODS = {name.lower(): name for name in DEFAULT_METHODS}


def crs_from_pyproj(crs_like: Any) -> GeographicCRS:
    """Create a CRS of this package from a pyproj CRS or any pyproj user input.

    Returns
    -------
    GeographicCRS, ProjectedCRS or GeocentricCRS

    Raises
    ------
    ValueError
        If the CRS type, an axis direction or the projection method is not
        supported.
    """
    crs = crs_like if isinstance(crs_like, CRS) else CRS.from_user_input(crs_like)
    towgs84 = _bursa_wolf(crs)
    if crs.is_bound:
        crs = crs.source_crs
    name = crs.name
    if crs.is_projected:
        base = _geographic(crs.geodetic_crs, towgs84)
        conversion = _conversion(crs)
        cs = CartesianCS(f"{name} CS", tuple(_axis(a) for a in crs.axis_info))
        result = ProjectedCRS(name, base, conversion, cs)
    elif crs.is_geocentric:
        cs = CartesianCS(f"{name} CS", tuple(_axis(a) for a in crs.axis_info))
        result = GeocentricCRS(name, _datum(crs, towgs84), cs)
    elif crs.is_geographic:
        result = _geographic(crs, towgs84)
    else:
        raise ValueError(f"Unsupported CRS type: {crs.type_name}")
    logger.debug(f"Converted pyproj CRS '{name}' to {type(result).__name__}")
    return result


def _geographic(crs: CRS, towgs84: Optional[BursaWolfParameters]) -> GeographicCRS:
    cs = EllipsoidalCS(f"{crs.name} CS", tuple(_axis(a) for a in crs.axis_info))
    return GeographicCRS(crs.name, _datum(crs, towgs84), cs)


def _datum(crs: CRS, towgs84: Optional[BursaWolfParameters]) -> GeodeticDatum:
    ellipsoid = crs.ellipsoid
    if ellipsoid is None:
        raise ValueError(f"CRS '{crs.name}' has no ellipsoid")
    if ellipsoid.inverse_flattening and math.isfinite(ellipsoid.inverse_flattening):
        model = Ellipsoid.create_flattened_sphere(ellipsoid.name, ellipsoid.semi_major_metre,
                                                  ellipsoid.inverse_flattening)
    else:
        model = Ellipsoid.create_ellipsoid(ellipsoid.name, ellipsoid.semi_major_metre,
                                           ellipsoid.semi_minor_metre)
    meridian = crs.prime_meridian
    longitude = 0.0
    if meridian is not None:
        longitude = meridian.longitude * conversion_factor(meridian.unit_name, "degree")
    datum_name = crs.datum.name if crs.datum is not None else crs.name
    if _is_wgs84(datum_name) and model == WGS84_ELLIPSOID and longitude == 0:
        return WGS84_DATUM
    return GeodeticDatum(datum_name, model,
                         PrimeMeridian(meridian.name if meridian else "Greenwich", longitude), towgs84)


def _is_wgs84(datum_name: str) -> bool:
    key = datum_name.replace(" ", "").lower()
    if key.endswith("ensemble"):
        key = key[:-len("ensemble")]
    return key in ("worldgeodeticsystem1984", "wgs84")


def _bursa_wolf(crs: CRS) -> Optional[BursaWolfParameters]:
    """Read the Helmert parameters of a bound CRS, if any."""
    if not crs.is_bound or crs.coordinate_operation is None:
        return None
    values = [p.value for p in crs.coordinate_operation.params]
    method = crs.coordinate_operation.method_name.lower()
    if len(values) == 3:
        return BursaWolfParameters(*values)
    if len(values) == 7:
        if "coordinate frame" in method:
            return BursaWolfParameters.from_coordinate_frame(*values)
        return BursaWolfParameters(*values)
    logger.warning(f"Ignoring datum shift '{crs.coordinate_operation.name}' with {len(values)} parameters")
    return None


def _axis(info) -> CoordinateSystemAxis:
    key = info.direction.replace(" ", "").replace("_", "").lower()
    code = _DIRECTIONS.get(key)
    direction = getattr(AxisDirection, code) if code else AxisDirection.value_of(info.direction)
    if direction is None:
        raise ValueError(f"Unsupported axis direction: '{info.direction}'")
    unit = info.unit_name or "unity"
    return CoordinateSystemAxis(info.name, info.abbrev, direction, unit)


def _conversion(crs: CRS) -> Conversion:
    operation = crs.coordinate_operation
    method = _SUPPORTED_METHODS.get(operation.method_name.lower())
    if method is None:
        raise ValueError(f"Unsupported projection method: '{operation.method_name}'")
    parameters = dict(_parameter(p) for p in operation.params)
    return Conversion(method, parameters)


def _parameter(param) -> Tuple[str, float]:
    key = PARAMETER_NAMES.get(param.name.lower())
    if key is None:
        raise ValueError(f"Unsupported projection parameter: '{param.name}'")
    value = param.value
    if param.unit_category == "angular":
        value *= conversion_factor(param.unit_name, "degree")
    elif param.unit_category == "linear":
        value *= conversion_factor(param.unit_name, "metre")
    return key, value
