"""Tests for geospatial.projections and geospatial.transform_factory.

Projected coordinates are compared with pyproj and with the worked examples
of IOGP Guidance Note 7-2.
"""

import math

import numpy as np
import pytest
from pyproj import CRS, Transformer

from common.errors import OperationNotFoundError
from geospatial.coordinate_models import (
    AUTHALIC_SPHERE,
    CLARKE1866_ELLIPSOID,
    GRS80_ELLIPSOID,
    WGS84_ELLIPSOID,
    Ellipsoid,
)
from geospatial.projections import (
    LambertConicConformal,
    Mercator,
    TransverseMercator,
    lambert_m,
)
from geospatial.transform_factory import MathTransformFactory, normalize_parameters
from transform import math_transforms

UTM31 = {
    "Latitude of natural origin": 0,
    "Longitude of natural origin": 3,
    "Scale factor at natural origin": 0.9996,
    "False easting": 500000,
    "False northing": 0,
}

LAMBERT93 = {
    "Latitude of false origin": 46.5,
    "Longitude of false origin": 3,
    "Latitude of 1st standard parallel": 49,
    "Latitude of 2nd standard parallel": 44,
    "Easting at false origin": 700000,
    "Northing at false origin": 6600000,
}


@pytest.fixture
def factory():
    return MathTransformFactory()


def _compare(transform, transformer, lat, lon, tolerance):
    expected = np.column_stack(transformer.transform(lat, lon))
    actual = transform.transform_points(np.column_stack([lat, lon]))
    np.testing.assert_allclose(actual, expected, atol=tolerance)
    back = transform.inverse().transform_points(actual)
    np.testing.assert_allclose(back, np.column_stack([lat, lon]), atol=1e-9)


class TestTransverseMercator:

    def test_central_meridian(self, factory):
        utm = factory.create_parameterized("Transverse Mercator", WGS84_ELLIPSOID, UTM31)
        easting, northing = utm.transform_point((0, 3))
        assert easting == pytest.approx(500000, abs=1e-6)
        assert northing == pytest.approx(0, abs=1e-6)

    def test_three_steps(self, factory):
        utm = factory.create_parameterized("Transverse Mercator", WGS84_ELLIPSOID, UTM31)
        steps = math_transforms.get_steps(utm)
        assert len(steps) == 3
        assert isinstance(steps[1], TransverseMercator)

    def test_against_pyproj(self, factory, rng):
        utm = factory.create_parameterized("Transverse Mercator", WGS84_ELLIPSOID, UTM31)
        transformer = Transformer.from_crs("EPSG:4326", "EPSG:32631")
        lat = rng.uniform(-80, 84, 200)
        lon = rng.uniform(0, 6, 200)
        _compare(utm, transformer, lat, lon, 0.01)

    def test_latitude_of_origin(self, factory):
        # British National Grid, EPSG guidance example (OSGB 1936 / British National Grid).
        airy = Ellipsoid.create_flattened_sphere("Airy 1830", 6377563.396, 299.3249646)
        bng = factory.create_parameterized("Transverse Mercator", airy, {
            "Latitude of natural origin": 49,
            "Longitude of natural origin": -2,
            "Scale factor at natural origin": 0.9996012717,
            "False easting": 400000,
            "False northing": -100000,
        })
        easting, northing = bng.transform_point((50.5, 0.5))
        assert easting == pytest.approx(577274.99, abs=0.01)
        assert northing == pytest.approx(69740.50, abs=0.01)

    def test_meridian_distance_at_equator(self):
        assert TransverseMercator(WGS84_ELLIPSOID.eccentricity).meridian_distance(0.0) == 0.0


class TestMercator:

    def test_variant_a_against_pyproj(self, factory, rng):
        mercator = factory.create_parameterized("Mercator (variant A)", WGS84_ELLIPSOID, {
            "Longitude of natural origin": 0,
            "Scale factor at natural origin": 1,
        })
        transformer = Transformer.from_crs("EPSG:4326", "EPSG:3395")
        lat = rng.uniform(-85, 85, 200)
        lon = rng.uniform(-180, 180, 200)
        _compare(mercator, transformer, lat, lon, 1e-4)

    def test_variant_b(self, factory):
        krassowsky = Ellipsoid.create_flattened_sphere("Krassowsky 1940", 6378245, 298.3)
        mercator = factory.create_parameterized("Mercator (variant B)", krassowsky, {
            "Latitude of 1st standard parallel": 42,
            "Longitude of natural origin": 51,
        })
        easting, northing = mercator.transform_point((53, 53))
        assert easting == pytest.approx(165704.29, abs=0.01)
        assert northing == pytest.approx(5171848.07, abs=0.01)

    def test_pseudo_mercator_against_pyproj(self, factory, rng):
        mercator = factory.create_parameterized("Popular Visualisation Pseudo Mercator", WGS84_ELLIPSOID, {})
        transformer = Transformer.from_crs("EPSG:4326", "EPSG:3857")
        lat = rng.uniform(-85, 85, 200)
        lon = rng.uniform(-180, 180, 200)
        _compare(mercator, transformer, lat, lon, 1e-4)

    def test_alias(self, factory):
        a = factory.create_parameterized("Mercator (1SP)", WGS84_ELLIPSOID, {})
        b = factory.create_parameterized("mercator (variant a)", WGS84_ELLIPSOID, {})
        assert a.transform_point((45, 10)) == b.transform_point((45, 10))

    def test_pole_is_infinite(self, factory):
        mercator = factory.create_parameterized("Mercator (variant A)", WGS84_ELLIPSOID, {})
        assert math.isinf(mercator.transform_point((90, 0))[1])

    def test_analytic_derivative(self):
        kernel = Mercator(WGS84_ELLIPSOID.eccentricity)
        point = (math.radians(40), math.radians(10))
        analytic = kernel.derivative(point).to_array()
        numeric = super(Mercator, kernel).derivative(point).to_array()
        np.testing.assert_allclose(analytic, numeric, atol=1e-7)

    def test_variant_a_requires_equator_origin(self, factory):
        with pytest.raises(ValueError):
            factory.create_parameterized("Mercator (variant A)", WGS84_ELLIPSOID,
                                         {"Latitude of natural origin": 10})


class TestLambertConicConformal:

    def test_2sp_against_pyproj(self, factory, rng):
        lambert = factory.create_parameterized("Lambert Conic Conformal (2SP)", GRS80_ELLIPSOID, LAMBERT93)
        transformer = Transformer.from_crs(CRS("EPSG:2154").geodetic_crs, CRS("EPSG:2154"))
        lat = rng.uniform(41, 51, 200)
        lon = rng.uniform(-5, 10, 200)
        _compare(lambert, transformer, lat, lon, 1e-3)

    def test_false_origin(self, factory):
        lambert = factory.create_parameterized("Lambert Conic Conformal (2SP)", GRS80_ELLIPSOID, LAMBERT93)
        assert lambert.transform_point((46.5, 3)) == pytest.approx((700000, 6600000), abs=1e-6)

    def test_1sp(self, factory):
        # JAD69 / Jamaica National Grid
        lambert = factory.create_parameterized("Lambert Conic Conformal (1SP)", CLARKE1866_ELLIPSOID, {
            "Latitude of natural origin": 18,
            "Longitude of natural origin": -77,
            "Scale factor at natural origin": 1,
            "False easting": 250000,
            "False northing": 150000,
        })
        lat = 17 + 55 / 60 + 55.80 / 3600
        lon = -(76 + 56 / 60 + 37.26 / 3600)
        easting, northing = lambert.transform_point((lat, lon))
        assert easting == pytest.approx(255966.58, abs=0.01)
        assert northing == pytest.approx(142493.51, abs=0.01)
        assert lambert.inverse().transform_point((easting, northing)) == pytest.approx((lat, lon), abs=1e-9)

    def test_tangent_cone(self):
        e = WGS84_ELLIPSOID.eccentricity
        secant = LambertConicConformal.from_standard_parallels(e, math.radians(45), math.radians(45))
        tangent = LambertConicConformal.from_natural_origin(e, math.radians(45))
        assert secant.n == pytest.approx(tangent.n)
        assert secant.F == pytest.approx(tangent.F)

    def test_southern_cone(self):
        e = WGS84_ELLIPSOID.eccentricity
        kernel = LambertConicConformal.from_standard_parallels(e, math.radians(-30), math.radians(-40))
        assert kernel.n < 0
        phi = np.radians([-35.0, -20.0])
        lam = np.radians([5.0, -10.0])
        x, y = kernel.project(phi, lam)
        back_phi, back_lam = kernel.unproject(x, y)
        np.testing.assert_allclose(back_phi, phi, atol=1e-12)
        np.testing.assert_allclose(back_lam, lam, atol=1e-12)

    def test_invalid_cone_constant(self):
        with pytest.raises(ValueError):
            LambertConicConformal(0.0, 0.0, 1.0)

    def test_scale_is_one_on_standard_parallel(self):
        e = GRS80_ELLIPSOID.eccentricity
        kernel = LambertConicConformal.from_standard_parallels(e, math.radians(49), math.radians(44))
        phi = math.radians(49)
        # Scale factor k = n ρ / m
        k = kernel.n * kernel.rho(phi) / float(lambert_m(phi, e))
        assert k == pytest.approx(1.0, abs=1e-12)


class TestEquidistantCylindrical:

    def test_spherical(self, factory):
        transform = factory.create_parameterized("Equidistant Cylindrical (Spherical)", AUTHALIC_SPHERE, {
            "Latitude of 1st standard parallel": 0,
            "Longitude of natural origin": 0,
        })
        assert math_transforms.get_matrix(transform) is not None
        x, y = transform.transform_point((10, 20))
        r = AUTHALIC_SPHERE.a
        assert x == pytest.approx(r * math.radians(20))
        assert y == pytest.approx(r * math.radians(10))


class TestFactory:

    def test_unknown_method(self, factory):
        with pytest.raises(OperationNotFoundError):
            factory.create_parameterized("Azimuthal Equidistant", WGS84_ELLIPSOID, {})

    def test_unknown_parameter(self, factory):
        with pytest.raises(ValueError):
            factory.create_parameterized("Transverse Mercator", WGS84_ELLIPSOID, {"Azimuth": 10})

    def test_non_finite_parameter(self):
        with pytest.raises(ValueError):
            normalize_parameters({"False easting": math.nan})

    def test_normalize_parameters(self):
        values = normalize_parameters({"Scale factor at natural origin": 0.9996, "central_meridian": 3})
        assert values["scale_factor"] == 0.9996
        assert values["central_meridian"] == 3
        assert values["false_northing"] == 0

    def test_methods(self, factory):
        assert factory.is_supported(" transverse mercator ")
        assert "Lambert Conic Conformal (2SP)" in factory.available_methods()

    def test_register(self, factory):
        def builder(ellipsoid, p):
            identity = math_transforms.identity(2)
            return identity, identity, math_transforms.scale(2, 2)
        factory.register("Doubling", builder)
        assert factory.create_parameterized("doubling", WGS84_ELLIPSOID, {}).transform_point((1, 2)) == (2, 4)

    def test_geocentric(self, factory):
        x, y, z = factory.create_geocentric(WGS84_ELLIPSOID, with_height=False).transform_point((0, 0))
        assert x == pytest.approx(WGS84_ELLIPSOID.a)
