"""
Common utilities and infrastructure for the geodetic referencing engine.

This package provides foundational components used across all modules:
- Geodetic constants and tolerances with provenance
- Unit registry and conversion factors (pint)
- Shared value types (positions, envelopes)
- Exception taxonomy
- Logging and audit trail infrastructure
"""

from common.constants import GeodeticConstants, LINEAR_TOLERANCE, ANGULAR_TOLERANCE
from common.units import UnitRegistry, conversion_factor, to_magnitude
from common.types import DirectPosition, Envelope2D
from common.errors import (
    ReferencingError,
    MismatchedDimensionError,
    TransformError,
    NoninvertibleTransformError,
    ProjectionError,
    GeodesicError,
    OperationNotFoundError,
    CalculatorStateError,
)
from common.logging_config import get_logger, AuditLogger

__all__ = [
    "GeodeticConstants",
    "LINEAR_TOLERANCE",
    "ANGULAR_TOLERANCE",
    "UnitRegistry",
    "conversion_factor",
    "to_magnitude",
    "DirectPosition",
    "Envelope2D",
    "ReferencingError",
    "MismatchedDimensionError",
    "TransformError",
    "NoninvertibleTransformError",
    "ProjectionError",
    "GeodesicError",
    "OperationNotFoundError",
    "CalculatorStateError",
    "get_logger",
    "AuditLogger",
]
