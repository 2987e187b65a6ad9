"""
Matrix and coordinate transform primitives.

This package provides:
- `Matrix` / `Matrices`: small dense matrices in homogeneous coordinates
- `MathTransform` and its linear, concatenated and pass-through variants
- `math_transforms`: helper functions building and inspecting transforms
"""

from transform.matrix import Matrix, Matrices
from transform.math_transform import (
    MathTransform,
    LinearTransform,
    IdentityTransform,
    ConcatenatedTransform,
    PassThroughTransform,
)
from transform import math_transforms

__all__ = [
    "Matrix",
    "Matrices",
    "MathTransform",
    "LinearTransform",
    "IdentityTransform",
    "ConcatenatedTransform",
    "PassThroughTransform",
    "math_transforms",
]
