"""
Map Projection Kernels.

Each map projection is split into three steps, following the approach of the
IOGP guidance note:

    normalize (linear)  →  kernel (non-linear)  →  denormalize (linear)

The normalize step converts (latitude°, longitude°) to (φ, λ - λ0) in radians.
The kernel works on an ellipsoid of semi-major axis 1 and only depends on the
eccentricity and on the shape parameters of the projection (standard parallels).
The denormalize step applies the semi-major axis, scale factor and false
easting/northing. Keeping all linear operations out of the kernel lets
concatenation merge them with axis swaps and unit conversions of the
surrounding coordinate systems.

Kernel input is (φ, λ) in radians; kernel output is (x, y) on the unit
ellipsoid, x towards east and y towards north.

Domain
------
Points outside the projection domain (Mercator at the poles, Lambert conic at
the pole opposite to the cone apex) produce infinite or NaN values instead of
raising. Inverse projections which fail to converge raise `ProjectionError`.

References
----------
- IOGP Publication 373-7-2, Geomatics Guidance Note 7 part 2 (2019).
- Snyder, J.P. (1987). Map Projections - A Working Manual. USGS Prof. Paper 1395.
- Krüger, L. (1912). Konforme Abbildung des Erdellipsoids in der Ebene.
"""

from abc import abstractmethod
from typing import Sequence, Tuple
import math
import numpy as np
from numpy.typing import NDArray

from common.errors import ProjectionError
from common.logging_config import get_logger
from geospatial.coordinate_models import isometric_latitude
from transform.matrix import Matrix
from transform.math_transform import MathTransform

logger = get_logger(__name__)

# Iteration cap and convergence threshold (radians) of inverse projections.
MAXIMUM_ITERATIONS = 15
ITERATION_TOLERANCE = 1e-14


class NormalizedProjection(MathTransform):
    """Base class of projection kernels on a unit ellipsoid.

    Parameters
    ----------
    eccentricity : float
        Eccentricity of the ellipsoid (0 for a sphere).
    """

    name: str = "Normalized projection"

    def __init__(self, eccentricity: float):
        super().__init__()
        self.eccentricity = float(eccentricity)

    @property
    def source_dimensions(self) -> int:
        return 2

    @property
    def target_dimensions(self) -> int:
        return 2

    def _transform_array(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        x, y = self.project(points[:, 0], points[:, 1])
        return np.column_stack([x, y])

    @abstractmethod
    def project(self, phi: NDArray[np.float64], lam: NDArray[np.float64]) -> Tuple[NDArray, NDArray]:
        """Project (φ, λ) radians to (x, y) on the unit ellipsoid."""

    @abstractmethod
    def unproject(self, x: NDArray[np.float64], y: NDArray[np.float64]) -> Tuple[NDArray, NDArray]:
        """Inverse of `project`: (x, y) to (φ, λ) radians."""

    def _create_inverse(self) -> MathTransform:
        return InverseProjection(self)

    def _parameters(self) -> Tuple[float, ...]:
        return (self.eccentricity,)

    def __eq__(self, other) -> bool:
        if not isinstance(other, NormalizedProjection):
            return NotImplemented
        return type(self) is type(other) and self._parameters() == other._parameters()

    def __hash__(self) -> int:
        return hash((type(self).__name__,) + self._parameters())

    def __repr__(self) -> str:
        return f"{type(self).__name__}{self._parameters()}"


class InverseProjection(MathTransform):
    """Inverse of a projection kernel: (x, y) to (φ, λ) radians."""

    def __init__(self, kernel: NormalizedProjection):
        super().__init__()
        self.kernel = kernel

    @property
    def source_dimensions(self) -> int:
        return 2

    @property
    def target_dimensions(self) -> int:
        return 2

    def _transform_array(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        phi, lam = self.kernel.unproject(points[:, 0], points[:, 1])
        return np.column_stack([phi, lam])

    def _create_inverse(self) -> MathTransform:
        return self.kernel

    def __eq__(self, other) -> bool:
        if not isinstance(other, InverseProjection):
            return NotImplemented
        return self.kernel == other.kernel

    def __hash__(self) -> int:
        return hash(("inverse", self.kernel))

    def __repr__(self) -> str:
        return f"Inverse({self.kernel!r})"


def _latitude_from_t(t: NDArray[np.float64], e: float, method: str) -> NDArray[np.float64]:
    """Solve φ = π/2 - 2 atan(t · ((1 - e sin φ) / (1 + e sin φ))^(e/2)) for φ.

    This is the inverse of the isometric latitude, shared by the Mercator
    and Lambert conic conformal projections.
    """
    phi = np.pi / 2 - 2 * np.arctan(t)
    if e == 0:
        return phi
    half_e = 0.5 * e
    for _ in range(MAXIMUM_ITERATIONS):
        e_sin = e * np.sin(phi)
        updated = np.pi / 2 - 2 * np.arctan(t * ((1 - e_sin) / (1 + e_sin)) ** half_e)
        change = np.abs(updated - phi)
        phi = updated
        if not np.any(change > ITERATION_TOLERANCE):
            return phi
    logger.warning(f"{method}: inverse projection did not converge after {MAXIMUM_ITERATIONS} iterations")
    raise ProjectionError(
        f"{method}: latitude did not converge after {MAXIMUM_ITERATIONS} iterations "
        f"(largest residual {float(np.nanmax(change)):.3e} rad)"
    )


class Mercator(NormalizedProjection):
    """Mercator projection kernel (variants A and B).

    x = λ, y = ψ(φ) where ψ is the isometric latitude. Variants differ only
    in the scale factor, applied by the denormalize step.

    Notes
    -----
    Infinite at the poles.
    """

    name = "Mercator"

    def project(self, phi, lam):
        return lam.copy(), isometric_latitude(phi, self.eccentricity)

    def unproject(self, x, y):
        t = np.exp(-y)
        return _latitude_from_t(t, self.eccentricity, self.name), x.copy()

    def derivative(self, point: Sequence[float]) -> Matrix:
        """Analytic Jacobian [[∂x/∂φ, ∂x/∂λ], [∂y/∂φ, ∂y/∂λ]]."""
        phi = float(point[0])
        e2 = self.eccentricity ** 2
        sin_phi = math.sin(phi)
        dy_dphi = (1 - e2) / ((1 - e2 * sin_phi * sin_phi) * math.cos(phi))
        return Matrix(2, 2, [0.0, 1.0, dy_dphi, 0.0])


class PseudoMercator(Mercator):
    """Popular Visualisation Pseudo Mercator: spherical formulas on the ellipsoid semi-major axis."""

    name = "Popular Visualisation Pseudo Mercator"

    def __init__(self, eccentricity: float = 0.0):
        super().__init__(0.0)

    def unproject(self, x, y):
        return np.arctan(np.sinh(y)), x.copy()


class TransverseMercator(NormalizedProjection):
    """Transverse Mercator kernel using Krüger's series in the third flattening n.

    The kernel output is (B·η, B·ξ) where B = (1 + n²/4 + n⁴/64) / (1 + n)
    is the rectifying radius of the unit ellipsoid, so that the denormalize
    step only needs the semi-major axis, scale factor and false origin.

    Notes
    -----
    Accurate to better than a millimetre within 4° of the central meridian,
    and to a few millimetres up to about 30°. Valid for |λ - λ0| < 90°.
    """

    name = "Transverse Mercator"

    def __init__(self, eccentricity: float):
        super().__init__(eccentricity)
        e2 = self.eccentricity ** 2
        f = 1 - math.sqrt(1 - e2)
        n = f / (2 - f)
        n2, n3, n4 = n * n, n**3, n**4
        self.n = n
        self.rectifying_radius = (1 + n2 / 4 + n4 / 64) / (1 + n)
        self._forward_coefficients = (
            n / 2 - 2 * n2 / 3 + 5 * n3 / 16 + 41 * n4 / 180,
            13 * n2 / 48 - 3 * n3 / 5 + 557 * n4 / 1440,
            61 * n3 / 240 - 103 * n4 / 140,
            49561 * n4 / 161280,
        )
        self._inverse_coefficients = (
            n / 2 - 2 * n2 / 3 + 37 * n3 / 96 - n4 / 360,
            n2 / 48 + n3 / 15 - 437 * n4 / 1440,
            17 * n3 / 480 - 37 * n4 / 840,
            4397 * n4 / 161280,
        )

    def _conformal_latitude(self, phi):
        e = self.eccentricity
        with np.errstate(divide='ignore', invalid='ignore'):
            Q = np.arcsinh(np.tan(phi)) - e * np.arctanh(e * np.sin(phi))
        return np.arctan(np.sinh(Q))

    def meridian_distance(self, phi: float) -> float:
        """Value of the kernel y ordinate on the central meridian at latitude φ."""
        xi0 = self._conformal_latitude(np.float64(phi))
        xi = xi0 + sum(h * np.sin(2 * k * xi0) for k, h in enumerate(self._forward_coefficients, start=1))
        return float(self.rectifying_radius * xi)

    def project(self, phi, lam):
        beta = self._conformal_latitude(phi)
        with np.errstate(divide='ignore', invalid='ignore'):
            eta0 = np.arctanh(np.cos(beta) * np.sin(lam))
            xi0 = np.arcsin(np.clip(np.sin(beta) * np.cosh(eta0), -1.0, 1.0))
        xi = xi0.copy()
        eta = eta0.copy()
        for k, h in enumerate(self._forward_coefficients, start=1):
            xi += h * np.sin(2 * k * xi0) * np.cosh(2 * k * eta0)
            eta += h * np.cos(2 * k * xi0) * np.sinh(2 * k * eta0)
        return self.rectifying_radius * eta, self.rectifying_radius * xi

    def unproject(self, x, y):
        eta1 = x / self.rectifying_radius
        xi1 = y / self.rectifying_radius
        xi0 = xi1.copy()
        eta0 = eta1.copy()
        for k, h in enumerate(self._inverse_coefficients, start=1):
            xi0 -= h * np.sin(2 * k * xi1) * np.cosh(2 * k * eta1)
            eta0 -= h * np.cos(2 * k * xi1) * np.sinh(2 * k * eta1)
        beta = np.arcsin(np.clip(np.sin(xi0) / np.cosh(eta0), -1.0, 1.0))
        with np.errstate(divide='ignore', invalid='ignore'):
            lam = np.arcsin(np.clip(np.tanh(eta0) / np.cos(beta), -1.0, 1.0))
        q_prime = np.arcsinh(np.tan(beta))
        e = self.eccentricity
        q = q_prime.copy()
        for _ in range(MAXIMUM_ITERATIONS):
            updated = q_prime + e * np.arctanh(e * np.tanh(q))
            change = np.abs(updated - q)
            q = updated
            if not np.any(change > ITERATION_TOLERANCE):
                break
        else:
            raise ProjectionError(
                f"{self.name}: latitude did not converge after {MAXIMUM_ITERATIONS} iterations"
            )
        return np.arctan(np.sinh(q)), lam


class LambertConicConformal(NormalizedProjection):
    """Lambert Conic Conformal kernel (1SP and 2SP variants).

    ρ = F · t(φ)^n,  θ = n · λ,  x = ρ sin θ,  y = -ρ cos θ

    where t(φ) = tan(π/4 - φ/2) / ((1 - e sin φ) / (1 + e sin φ))^(e/2).
    The denormalize step adds ρ(φ0) to y so that the false origin maps to
    the false northing.

    Parameters
    ----------
    eccentricity : float
        Eccentricity of the ellipsoid.
    n : float
        Cone constant; negative for cones with apex towards the south pole.
    F : float
        Scale constant of the cone.
    """

    name = "Lambert Conic Conformal"

    def __init__(self, eccentricity: float, n: float, F: float):
        super().__init__(eccentricity)
        if n == 0 or not math.isfinite(n):
            raise ValueError(f"Cone constant must be finite and non-zero, got {n}")
        self.n = float(n)
        self.F = float(F)

    @classmethod
    def from_standard_parallels(cls, eccentricity: float, phi1: float, phi2: float) -> 'LambertConicConformal':
        """Create the kernel of the two standard parallels variant (angles in radians)."""
        m1, m2 = lambert_m(phi1, eccentricity), lambert_m(phi2, eccentricity)
        t1, t2 = lambert_t(phi1, eccentricity), lambert_t(phi2, eccentricity)
        if abs(phi1 - phi2) < 1e-12:
            n = math.sin(phi1)
        else:
            n = (math.log(m1) - math.log(m2)) / (math.log(t1) - math.log(t2))
        return cls(eccentricity, n, m1 / (n * t1 ** n))

    @classmethod
    def from_natural_origin(cls, eccentricity: float, phi0: float) -> 'LambertConicConformal':
        """Create the kernel of the one standard parallel variant (angle in radians)."""
        n = math.sin(phi0)
        return cls(eccentricity, n, lambert_m(phi0, eccentricity) / (n * lambert_t(phi0, eccentricity) ** n))

    def rho(self, phi: float) -> float:
        """Radius of the parallel at latitude φ on the unit ellipsoid."""
        return self.F * lambert_t(phi, self.eccentricity) ** self.n

    def _parameters(self) -> Tuple[float, ...]:
        return (self.eccentricity, self.n, self.F)

    def project(self, phi, lam):
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            rho = self.F * lambert_t(phi, self.eccentricity) ** self.n
        theta = self.n * lam
        return rho * np.sin(theta), -rho * np.cos(theta)

    def unproject(self, x, y):
        sign = math.copysign(1.0, self.n)
        rho = sign * np.hypot(x, y)
        theta = np.arctan2(sign * x, -sign * y)
        with np.errstate(divide='ignore', invalid='ignore'):
            t = (rho / self.F) ** (1 / self.n)
        return _latitude_from_t(t, self.eccentricity, self.name), theta / self.n


def lambert_m(phi, e: float):
    """m = cos φ / √(1 - e² sin² φ)."""
    sin_phi = np.sin(phi)
    return np.cos(phi) / np.sqrt(1 - e * e * sin_phi * sin_phi)


def lambert_t(phi, e: float):
    """t = tan(π/4 - φ/2) / ((1 - e sin φ) / (1 + e sin φ))^(e/2)."""
    e_sin = e * np.sin(phi)
    return np.tan(np.pi / 4 - 0.5 * np.asarray(phi)) / ((1 - e_sin) / (1 + e_sin)) ** (0.5 * e)
