"""
Factory of Parameterized Coordinate Transforms.

`MathTransformFactory` builds map projections from an operation method name,
an ellipsoid and a set of parameter values, as the chain

    normalize (linear) → kernel → denormalize (linear)

Method names and parameter names follow the EPSG dataset. Parameter values are
in degrees for angles and metres for lengths; names may be given either in
their EPSG spelling ("False easting") or as the snake_case keys used here
("false_easting").

Each factory instance owns its method registry; additional methods can be
added with `register` without affecting other instances.

Example Usage
-------------
>>> from geospatial.coordinate_models import WGS84_ELLIPSOID
>>> factory = MathTransformFactory()
>>> utm31 = factory.create_parameterized(
...     "Transverse Mercator", WGS84_ELLIPSOID,
...     {"central_meridian": 3, "scale_factor": 0.9996, "false_easting": 500000})
>>> easting, northing = utm31.transform_point((45.0, 3.0))
>>> round(easting, 3)
500000.0
"""

from typing import Callable, Dict, List, Mapping, Optional, Tuple
import math

from common.errors import OperationNotFoundError
from common.logging_config import get_logger
from geospatial.coordinate_models import Ellipsoid, GeocentricConversion
from geospatial.projections import (
    LambertConicConformal,
    Mercator,
    PseudoMercator,
    TransverseMercator,
    lambert_m,
)
from transform import math_transforms
from transform.matrix import Matrix
from transform.math_transform import MathTransform

logger = get_logger(__name__)

ProjectionSteps = Tuple[MathTransform, MathTransform, MathTransform]
ProjectionBuilder = Callable[[Ellipsoid, Mapping[str, float]], ProjectionSteps]


# EPSG parameter names mapped to the keys used by the projection builders.
PARAMETER_NAMES: Dict[str, str] = {
    "latitude of natural origin": "latitude_of_origin",
    "latitude of false origin": "latitude_of_origin",
    "latitude of projection centre": "latitude_of_origin",
    "longitude of natural origin": "central_meridian",
    "longitude of false origin": "central_meridian",
    "longitude of origin": "central_meridian",
    "longitude of projection centre": "central_meridian",
    "scale factor at natural origin": "scale_factor",
    "false easting": "false_easting",
    "easting at false origin": "false_easting",
    "false northing": "false_northing",
    "northing at false origin": "false_northing",
    "latitude of 1st standard parallel": "standard_parallel_1",
    "latitude of 2nd standard parallel": "standard_parallel_2",
}

PARAMETER_DEFAULTS: Dict[str, float] = {
    "latitude_of_origin": 0.0,
    "central_meridian": 0.0,
    "scale_factor": 1.0,
    "false_easting": 0.0,
    "false_northing": 0.0,
    "standard_parallel_1": 0.0,
    "standard_parallel_2": 0.0,
}


def normalize_parameters(parameters: Mapping[str, float]) -> Dict[str, float]:
    """Map EPSG parameter names to builder keys and fill in defaults.

    Raises
    ------
    ValueError
        If a parameter name is not recognized or a value is not finite.
    """
    values = dict(PARAMETER_DEFAULTS)
    for name, value in parameters.items():
        key = name.strip()
        key = PARAMETER_NAMES.get(key.lower(), key)
        if key not in PARAMETER_DEFAULTS:
            raise ValueError(f"Unknown projection parameter: '{name}'")
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"Parameter '{name}' must be finite, got {value}")
        values[key] = value
    return values


def _normalize(central_meridian: float) -> MathTransform:
    """(latitude°, longitude°) → (φ, λ - λ0) radians."""
    r = math.pi / 180
    return math_transforms.linear(Matrix(3, 3, [r, 0, 0,
                                                0, r, -central_meridian * r,
                                                0, 0, 1]))


def _denormalize(scale: float, false_easting: float, false_northing: float) -> MathTransform:
    """(x, y) on the unit ellipsoid → (easting, northing) metres."""
    return math_transforms.linear(Matrix(3, 3, [scale, 0, false_easting,
                                                0, scale, false_northing,
                                                0, 0, 1]))


def _mercator_variant_a(ellipsoid: Ellipsoid, p: Mapping[str, float]) -> ProjectionSteps:
    if p["latitude_of_origin"] != 0:
        raise ValueError("Mercator (variant A) requires a latitude of natural origin of 0°")
    scale = ellipsoid.a * p["scale_factor"]
    return (_normalize(p["central_meridian"]),
            Mercator(ellipsoid.eccentricity),
            _denormalize(scale, p["false_easting"], p["false_northing"]))


def _mercator_variant_b(ellipsoid: Ellipsoid, p: Mapping[str, float]) -> ProjectionSteps:
    k0 = float(lambert_m(math.radians(p["standard_parallel_1"]), ellipsoid.eccentricity))
    return (_normalize(p["central_meridian"]),
            Mercator(ellipsoid.eccentricity),
            _denormalize(ellipsoid.a * k0, p["false_easting"], p["false_northing"]))


def _pseudo_mercator(ellipsoid: Ellipsoid, p: Mapping[str, float]) -> ProjectionSteps:
    return (_normalize(p["central_meridian"]),
            PseudoMercator(),
            _denormalize(ellipsoid.a, p["false_easting"], p["false_northing"]))


def _transverse_mercator(ellipsoid: Ellipsoid, p: Mapping[str, float]) -> ProjectionSteps:
    kernel = TransverseMercator(ellipsoid.eccentricity)
    scale = ellipsoid.a * p["scale_factor"]
    origin = kernel.meridian_distance(math.radians(p["latitude_of_origin"]))
    return (_normalize(p["central_meridian"]),
            kernel,
            _denormalize(scale, p["false_easting"], p["false_northing"] - scale * origin))


def _lambert_1sp(ellipsoid: Ellipsoid, p: Mapping[str, float]) -> ProjectionSteps:
    phi0 = math.radians(p["latitude_of_origin"])
    kernel = LambertConicConformal.from_natural_origin(ellipsoid.eccentricity, phi0)
    scale = ellipsoid.a * p["scale_factor"]
    return (_normalize(p["central_meridian"]),
            kernel,
            _denormalize(scale, p["false_easting"], p["false_northing"] + scale * kernel.rho(phi0)))


def _lambert_2sp(ellipsoid: Ellipsoid, p: Mapping[str, float]) -> ProjectionSteps:
    kernel = LambertConicConformal.from_standard_parallels(
        ellipsoid.eccentricity,
        math.radians(p["standard_parallel_1"]),
        math.radians(p["standard_parallel_2"])
    )
    rho_origin = kernel.rho(math.radians(p["latitude_of_origin"]))
    return (_normalize(p["central_meridian"]),
            kernel,
            _denormalize(ellipsoid.a, p["false_easting"], p["false_northing"] + ellipsoid.a * rho_origin))


def _equidistant_cylindrical(ellipsoid: Ellipsoid, p: Mapping[str, float]) -> ProjectionSteps:
    # Linear in (φ, λ): the kernel only swaps the ordinates to (λ, φ).
    swap = math_transforms.linear(Matrix(3, 3, [0, 1, 0,
                                                1, 0, 0,
                                                0, 0, 1]))
    a = ellipsoid.a
    cos_phi1 = math.cos(math.radians(p["standard_parallel_1"]))
    denormalize = math_transforms.linear(Matrix(3, 3, [
        a * cos_phi1, 0, p["false_easting"],
        0, a, p["false_northing"] - a * math.radians(p["latitude_of_origin"]),
        0, 0, 1]))
    return _normalize(p["central_meridian"]), swap, denormalize


DEFAULT_METHODS: Dict[str, ProjectionBuilder] = {
    "Mercator (variant A)": _mercator_variant_a,
    "Mercator (1SP)": _mercator_variant_a,
    "Mercator (variant B)": _mercator_variant_b,
    "Mercator (2SP)": _mercator_variant_b,
    "Popular Visualisation Pseudo Mercator": _pseudo_mercator,
    "Transverse Mercator": _transverse_mercator,
    "Lambert Conic Conformal (1SP)": _lambert_1sp,
    "Lambert Conic Conformal (2SP)": _lambert_2sp,
    "Equidistant Cylindrical (Spherical)": _equidistant_cylindrical,
}


class MathTransformFactory:
    """Creates parameterized transforms from operation method names.

    Parameters
    ----------
    methods : mapping, optional
        Projection builders by EPSG method name. Defaults to the methods
        implemented in `geospatial.projections`.

    Notes
    -----
    Method lookup is case-insensitive. Registering methods while other threads
    create transforms from the same factory is not supported; register
    everything before sharing the factory.
    """

    def __init__(self, methods: Optional[Mapping[str, ProjectionBuilder]] = None):
        self._methods: Dict[str, Tuple[str, ProjectionBuilder]] = {}
        for name, builder in (DEFAULT_METHODS if methods is None else methods).items():
            self.register(name, builder)

    def register(self, name: str, builder: ProjectionBuilder) -> None:
        """Add or replace an operation method."""
        self._methods[name.strip().lower()] = (name, builder)

    def available_methods(self) -> List[str]:
        """Names of all registered operation methods."""
        return sorted(name for name, _ in self._methods.values())

    def is_supported(self, method: str) -> bool:
        return method.strip().lower() in self._methods

    def create_parameterized(
        self,
        method: str,
        ellipsoid: Ellipsoid,
        parameters: Mapping[str, float]
    ) -> MathTransform:
        """Create the transform from geographic (latitude°, longitude°) to projected (E, N) metres.

        Parameters
        ----------
        method : str
            EPSG operation method name, e.g. 'Transverse Mercator'.
        ellipsoid : Ellipsoid
            Ellipsoid of the base geographic CRS.
        parameters : mapping
            Parameter values by name.

        Raises
        ------
        OperationNotFoundError
            If the method is not registered.
        ValueError
            If a parameter is unknown or invalid.
        """
        entry = self._methods.get(method.strip().lower())
        if entry is None:
            raise OperationNotFoundError(f"No operation method named '{method}'")
        name, builder = entry
        values = normalize_parameters(parameters)
        normalize, kernel, denormalize = builder(ellipsoid, values)
        transform = math_transforms.concatenate(normalize, kernel, denormalize)
        logger.debug(f"Created {name} on {ellipsoid.name}: {len(math_transforms.get_steps(transform))} steps")
        return transform

    def create_geocentric(self, ellipsoid: Ellipsoid, with_height: bool = True) -> MathTransform:
        """Geographic (latitude°, longitude°[, h]) to geocentric (X, Y, Z) conversion."""
        return GeocentricConversion(ellipsoid, with_height)

    def create_affine(self, matrix: Matrix) -> MathTransform:
        return math_transforms.linear(matrix)

    def create_concatenated(self, *transforms: MathTransform) -> MathTransform:
        if len(transforms) == 1:
            return transforms[0]
        result = transforms[0]
        for tr in transforms[1:]:
            result = math_transforms.concatenate(result, tr)
        return result

