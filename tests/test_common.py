"""Tests for the common package: units, value types, errors and audit trail."""

import json

import pint
import pytest

from common.constants import ANGULAR_TOLERANCE, LINEAR_TOLERANCE, GeodeticConstants
from common.errors import (
    CalculatorStateError,
    GeodesicError,
    MismatchedDimensionError,
    NoninvertibleTransformError,
    OperationNotFoundError,
    ReferencingError,
    TransformError,
)
from common.logging_config import AuditLogger
from common.types import DirectPosition, Envelope2D
from common.units import Q_, UnitRegistry, conversion_factor, is_angular, is_linear, to_magnitude


class TestUnits:

    def test_conversion_factor(self):
        assert conversion_factor("foot", "metre") == pytest.approx(0.3048, rel=1e-15)
        assert conversion_factor("US survey foot", "metre") == pytest.approx(1200 / 3937, rel=1e-15)
        assert conversion_factor("grad", "degree") == pytest.approx(0.9, rel=1e-15)
        assert conversion_factor("metre", "metre") == 1.0

    def test_incompatible_units(self):
        with pytest.raises(ValueError):
            conversion_factor("metre", "degree")

    def test_unit_kinds(self):
        assert is_angular("degree")
        assert is_angular("radian")
        assert not is_angular("unity")
        assert not is_angular("metre")
        assert is_linear("metre")
        assert is_linear("ftUS")
        assert not is_linear("degree")

    def test_to_magnitude(self):
        assert to_magnitude(12.5, "metre") == 12.5
        assert to_magnitude(Q_(2, "km"), "metre") == pytest.approx(2000)
        assert to_magnitude(Q_(90, "degree"), "grad") == pytest.approx(100)
        with pytest.raises(ValueError):
            to_magnitude(Q_(1, "second"), "metre")

    def test_validate_dimensionality(self):
        units = UnitRegistry()
        assert units.validate_dimensionality(units.quantity(3, "foot"), "[length]")
        assert units.validate_dimensionality(units.quantity(3, "ftUS"), "[length]")
        assert units.validate_dimensionality(units.quantity(2, "km") / units.quantity(1, "hour"), "[length] / [time]")
        with pytest.raises(pint.DimensionalityError):
            units.validate_dimensionality(units.quantity(3, "foot"), "[time]")


class TestConstants:

    def test_tolerances(self):
        assert LINEAR_TOLERANCE == GeodeticConstants.LINEAR_TOLERANCE.value
        # One centimetre on the Earth, in degrees of arc.
        assert ANGULAR_TOLERANCE * 60 * GeodeticConstants.NAUTICAL_MILE.value == pytest.approx(LINEAR_TOLERANCE)


class TestTypes:

    def test_direct_position(self):
        position = DirectPosition([-33, -71.6], crs="dummy")
        assert position.coordinates == (-33.0, -71.6)
        assert position.dimension == 2
        assert position.get_ordinate(1) == -71.6
        assert list(position) == [-33.0, -71.6]
        assert str(position) == "POINT(-33 -71.6)"

    def test_envelope(self):
        envelope = Envelope2D.from_points([(1, 5), (3, -2), (-1, 0)])
        assert (envelope.min_x, envelope.min_y, envelope.max_x, envelope.max_y) == (-1, -2, 3, 5)
        assert envelope.width == 4
        assert envelope.height == 7
        assert envelope.center_x == 1
        assert envelope.contains(3, 5)
        assert not envelope.contains(3.5, 0)

    def test_empty_envelope(self):
        with pytest.raises(ValueError):
            Envelope2D.from_points([])


class TestErrors:

    def test_hierarchy(self):
        assert issubclass(MismatchedDimensionError, ValueError)
        assert issubclass(MismatchedDimensionError, ReferencingError)
        assert issubclass(NoninvertibleTransformError, TransformError)
        assert issubclass(GeodesicError, TransformError)
        assert issubclass(CalculatorStateError, RuntimeError)

    def test_attributes(self):
        error = OperationNotFoundError("no path", source_crs="A", target_crs="B")
        assert (error.source_crs, error.target_crs) == ("A", "B")
        error = GeodesicError("failed", start=[0, 0], end=[0.5, 179.5], iterations=100)
        assert error.start == (0, 0)
        assert error.iterations == 100


class TestAuditLogger:

    def test_run_summary(self):
        audit = AuditLogger("test_audit")
        with audit.run_context("run_1", {"max_iterations": 100}) as run:
            audit.log_convergence("vincenty_inverse", 4, 1e-14, 1e-12)
            audit.log_convergence("vincenty_inverse", 100, 1e-6, 1e-12, {"start": (0, 0)})
            audit.log_convergence("vincenty_direct", 3, 0.0, 1e-12)
        assert len(run.config_hash) == 16
        summary = audit.get_run_summary("run_1")
        assert summary["total_executions"] == 3
        assert summary["total_failures"] == 1
        assert summary["solvers"]["vincenty_inverse"] == {"executions": 2, "max_iterations": 100, "failures": 1}
        assert summary["end_time"] is not None

    def test_records_outside_of_run(self):
        audit = AuditLogger("test_audit")
        record = audit.log_convergence("vincenty_inverse", 4, 1e-14, 1e-12)
        assert record.converged
        with pytest.raises(KeyError):
            audit.get_run_summary("missing")

    def test_config_hash_is_deterministic(self):
        audit = AuditLogger("test_audit")
        with audit.run_context("a", {"x": 1, "y": 2}) as first:
            pass
        with audit.run_context("b", {"y": 2, "x": 1}) as second:
            pass
        assert first.config_hash == second.config_hash

    def test_export(self, tmp_path):
        audit = AuditLogger("test_audit")
        with audit.run_context("export"):
            audit.log_convergence("vincenty_inverse", 5, 1e-13, 1e-12, {"end": (1.0, 2.0)})
        output = tmp_path / "audit" / "export.json"
        audit.export_run_artifacts("export", output)
        artifacts = json.loads(output.read_text())
        assert artifacts["run_id"] == "export"
        assert artifacts["convergence_records"][0]["solver"] == "vincenty_inverse"
        assert artifacts["convergence_records"][0]["converged"] is True
