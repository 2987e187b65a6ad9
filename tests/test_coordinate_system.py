"""Tests for referencing.coordinate_system and referencing.crs."""

import math

import numpy as np
import pytest

from geospatial.coordinate_models import WGS84_DATUM
from referencing.axis_directions import AxisDirection
from referencing.coordinate_system import (
    EASTING_AXIS,
    LATITUDE_AXIS,
    LONGITUDE_AXIS,
    NORTHING_AXIS,
    CartesianCS,
    CoordinateSystem,
    CoordinateSystemAxis,
    EllipsoidalCS,
    swap_and_scale_axes,
)
from referencing.crs import (
    GEOCENTRIC_CS,
    LATITUDE_LONGITUDE_CS,
    LATITUDE_LONGITUDE_HEIGHT_CS,
    LONGITUDE_LATITUDE_CS,
    PROJECTED_CS,
    WGS84,
    WGS84_3D,
    WGS84_λφ,
    Conversion,
    CoordinateReferenceSystem,
    GeocentricCRS,
    GeographicCRS,
    ProjectedCRS,
)


def _ups_north_cs():
    east = AxisDirection.value_of("South along 90°E", create=True)
    north = AxisDirection.value_of("South along 180°E", create=True)
    return CartesianCS("UPS North", (
        CoordinateSystemAxis("Easting", "E", east, "metre"),
        CoordinateSystemAxis("Northing", "N", north, "metre"),
    ))


class TestRightHanded:

    def test_compass_axes(self):
        assert PROJECTED_CS.is_right_handed()
        assert LONGITUDE_LATITUDE_CS.is_right_handed()
        assert not LATITUDE_LONGITUDE_CS.is_right_handed()

    def test_three_dimensional(self):
        assert GEOCENTRIC_CS.is_right_handed()
        assert not LATITUDE_LONGITUDE_HEIGHT_CS.is_right_handed()

    def test_along_meridian_axes(self):
        assert _ups_north_cs().is_right_handed()
        swapped = CartesianCS("Swapped", tuple(reversed(_ups_north_cs().axes)))
        assert not swapped.is_right_handed()

    def test_normalized_along_meridian_axes(self):
        swapped = CartesianCS("Swapped", tuple(reversed(_ups_north_cs().axes)))
        normalized = swapped.normalized()
        assert [str(d) for d in normalized.directions] == ["South along 90°E", "South along 180°E"]


class TestCoordinateSystem:

    def test_ellipsoidal_units_are_checked(self):
        with pytest.raises(ValueError):
            EllipsoidalCS("Bad", (CoordinateSystemAxis("Latitude", "φ", AxisDirection.NORTH, "metre"),
                                  LONGITUDE_AXIS))
        with pytest.raises(ValueError):
            EllipsoidalCS("Bad", (LATITUDE_AXIS,))

    def test_cartesian_units_are_checked(self):
        with pytest.raises(ValueError):
            CartesianCS("Bad", (CoordinateSystemAxis("Easting", "E", AxisDirection.EAST, "degree"),
                                NORTHING_AXIS))

    def test_ellipsoidal_normalized(self):
        assert LONGITUDE_LATITUDE_CS.normalized() == LATITUDE_LONGITUDE_CS
        assert LATITUDE_LONGITUDE_HEIGHT_CS.normalized().has_height

    def test_cartesian_normalized(self):
        cs = CartesianCS("Westing, southing (ft)", (
            CoordinateSystemAxis("Southing", "S", AxisDirection.SOUTH, "foot"),
            CoordinateSystemAxis("Westing", "W", AxisDirection.WEST, "foot"),
        ))
        normalized = cs.normalized()
        assert normalized.directions == [AxisDirection.EAST, AxisDirection.NORTH]
        assert all(axis.unit == "metre" for axis in normalized.axes)

    def test_base_class_is_abstract(self):
        with pytest.raises(TypeError):
            CoordinateSystem("Plain", (LATITUDE_AXIS, LONGITUDE_AXIS))


class TestSwapAndScale:

    def test_swap(self):
        matrix = swap_and_scale_axes(LONGITUDE_LATITUDE_CS, LATITUDE_LONGITUDE_CS)
        assert matrix.to_array().tolist() == [[0, 1, 0], [1, 0, 0], [0, 0, 1]]

    def test_identity(self):
        assert swap_and_scale_axes(PROJECTED_CS, PROJECTED_CS).is_identity()

    def test_radians(self):
        cs = EllipsoidalCS("Radians", (
            CoordinateSystemAxis("Longitude", "λ", AxisDirection.EAST, "radian"),
            CoordinateSystemAxis("Latitude", "φ", AxisDirection.NORTH, "radian"),
        ))
        matrix = swap_and_scale_axes(cs, LATITUDE_LONGITUDE_CS)
        assert matrix.get_element(0, 1) == pytest.approx(180 / math.pi)
        assert matrix.get_element(1, 0) == pytest.approx(180 / math.pi)
        assert matrix.get_element(0, 0) == 0

    def test_opposite_directions_and_feet(self):
        cs = CartesianCS("Westing, southing (ft)", (
            CoordinateSystemAxis("Westing", "W", AxisDirection.WEST, "foot"),
            CoordinateSystemAxis("Southing", "S", AxisDirection.SOUTH, "foot"),
        ))
        matrix = swap_and_scale_axes(cs, PROJECTED_CS).to_array()
        np.testing.assert_allclose(matrix, [[-0.3048, 0, 0], [0, -0.3048, 0], [0, 0, 1]], rtol=1e-15)

    def test_add_and_drop_height(self):
        add = swap_and_scale_axes(LATITUDE_LONGITUDE_CS, LATITUDE_LONGITUDE_HEIGHT_CS)
        assert add.to_array().tolist() == [[1, 0, 0], [0, 1, 0], [0, 0, 0], [0, 0, 1]]
        drop = swap_and_scale_axes(LATITUDE_LONGITUDE_HEIGHT_CS, LONGITUDE_LATITUDE_CS)
        assert drop.to_array().tolist() == [[0, 1, 0, 0], [1, 0, 0, 0], [0, 0, 0, 1]]

    def test_missing_axis(self):
        with pytest.raises(ValueError):
            swap_and_scale_axes(LATITUDE_LONGITUDE_CS, GEOCENTRIC_CS)


class TestCRS:

    def test_base_class_is_abstract(self):
        with pytest.raises(TypeError):
            CoordinateReferenceSystem("Engineering")

    def test_dimension_and_datum(self):
        assert WGS84.dimension == 2
        assert WGS84_3D.dimension == 3
        assert WGS84.ellipsoid is WGS84_DATUM.ellipsoid

    def test_normalized(self):
        assert WGS84.normalized() is WGS84
        normalized = WGS84_λφ.normalized()
        assert normalized.coordinate_system == LATITUDE_LONGITUDE_CS
        assert normalized.datum == WGS84_λφ.datum

    def test_to_2d(self):
        assert WGS84.to_2d() is WGS84
        flat = WGS84_3D.to_2d()
        assert flat.dimension == 2
        assert flat.coordinate_system.directions == [AxisDirection.NORTH, AxisDirection.EAST]

    def test_hashable(self):
        assert len({WGS84, WGS84_λφ, GeographicCRS("WGS 84", WGS84_DATUM, LATITUDE_LONGITUDE_CS)}) == 2

    def test_conversion_parameters(self):
        conversion = Conversion("Transverse Mercator", {"scale_factor": 0.9996, "central_meridian": 3})
        assert conversion.parameters == (("central_meridian", 3.0), ("scale_factor", 0.9996))
        assert conversion.parameter_values["scale_factor"] == 0.9996
        assert hash(conversion) == hash(Conversion("Transverse Mercator", conversion.parameters))

    def test_validation(self):
        with pytest.raises(ValueError):
            GeographicCRS("Bad", WGS84_DATUM, PROJECTED_CS)
        with pytest.raises(ValueError):
            ProjectedCRS("Bad", WGS84, Conversion("Mercator (variant A)"), GEOCENTRIC_CS)
        with pytest.raises(ValueError):
            GeocentricCRS("Bad", WGS84_DATUM, PROJECTED_CS)
        projected = ProjectedCRS("Good", WGS84, Conversion("Mercator (variant A)"),
                                 CartesianCS("EN", (EASTING_AXIS, NORTHING_AXIS)))
        assert projected.datum is WGS84_DATUM
        assert str(projected) == "Good"
