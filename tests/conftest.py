"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from common.logging_config import AuditLogger
from geodesy.geodetic_calculator import GeodeticCalculator
from geospatial.transform_factory import MathTransformFactory
from referencing.crs import SPHERE, SPHERE_φλ, WGS84
from referencing.operations import CoordinateOperationFinder, OperationCache


@pytest.fixture
def rng():
    """Random generator with a fixed seed, so failures are reproducible."""
    return np.random.default_rng(20191118)


@pytest.fixture
def finder():
    """Coordinate operation finder with a private cache."""
    return CoordinateOperationFinder(MathTransformFactory(), OperationCache(maxsize=64))


@pytest.fixture
def audit():
    return AuditLogger("test_audit")


@pytest.fixture
def sphere_calculator(finder):
    """Spherical calculator with (latitude, longitude) positions."""
    return GeodeticCalculator.create(SPHERE_φλ, finder)


@pytest.fixture
def sphere_calculator_xy(finder):
    """Spherical calculator with (longitude, latitude) positions."""
    return GeodeticCalculator.create(SPHERE, finder)


@pytest.fixture
def ellipsoid_calculator(finder, audit):
    """Vincenty calculator on WGS 84 with (latitude, longitude) positions."""
    return GeodeticCalculator.create(WGS84, finder, audit=audit)
