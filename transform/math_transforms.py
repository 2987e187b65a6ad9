"""
Convenience functions for creating and inspecting `MathTransform` instances.
"""

from typing import List, Optional, Sequence
import numpy as np

from common.errors import MismatchedDimensionError
from transform.matrix import Matrix, Matrices
from transform.math_transform import (
    MathTransform,
    LinearTransform,
    IdentityTransform,
    ConcatenatedTransform,
    PassThroughTransform,
)


def identity(dimension: int) -> LinearTransform:
    """Return the identity transform of the given dimension."""
    return IdentityTransform(dimension)


def linear(matrix: Matrix) -> LinearTransform:
    """Return a transform defined by a matrix in homogeneous coordinates."""
    if matrix.is_identity():
        return IdentityTransform(matrix.num_row - 1)
    return LinearTransform(matrix)


def linear_1d(scale: float, offset: float) -> LinearTransform:
    """Return the one-dimensional transform `y = x × scale + offset`."""
    return linear(Matrix(2, 2, [scale, offset, 0.0, 1.0]))


def translation(*vector: float) -> LinearTransform:
    """Return a transform adding the given vector to each point."""
    matrix = Matrices.create_affine(np.eye(len(vector)), vector)
    return linear(matrix)


def uniform_translation(dimension: int, offset: float) -> LinearTransform:
    """Return a transform adding the same offset to all ordinates."""
    return translation(*([offset] * dimension))


def scale(*factors: float) -> LinearTransform:
    """Return a transform multiplying each ordinate by the corresponding factor."""
    matrix = Matrices.create_affine(np.diag(factors), [0.0] * len(factors))
    return linear(matrix)


def pass_through(first_affected: int, sub_transform: MathTransform, num_trailing: int) -> MathTransform:
    """Return a transform applying `sub_transform` to a slice of the ordinates.

    Linear sub-transforms are expanded into a single larger matrix.
    """
    if first_affected == 0 and num_trailing == 0:
        return sub_transform
    if isinstance(sub_transform, LinearTransform):
        sub = sub_transform.matrix.to_array()
        src = first_affected + sub_transform.source_dimensions + num_trailing
        tgt = first_affected + sub_transform.target_dimensions + num_trailing
        elements = np.zeros((tgt + 1, src + 1), dtype=np.float64)
        for i in range(first_affected):
            elements[i, i] = 1.0
        rows = slice(first_affected, first_affected + sub_transform.target_dimensions)
        cols = slice(first_affected, first_affected + sub_transform.source_dimensions)
        elements[rows, cols] = sub[:-1, :-1]
        elements[rows, src] = sub[:-1, -1]
        for i in range(num_trailing):
            elements[rows.stop + i, cols.stop + i] = 1.0
        elements[tgt, src] = 1.0
        return linear(Matrix.from_array(elements))
    return PassThroughTransform(first_affected, sub_transform, num_trailing)


def compound(*components: MathTransform) -> MathTransform:
    """Return a transform applying each component to its own slice of the ordinates.

    The source ordinates are the concatenation of the components' source
    ordinates, in order.
    """
    if not components:
        raise ValueError("At least one component is required")
    total = sum(c.source_dimensions for c in components)
    result: Optional[MathTransform] = None
    lower = 0
    upper = total
    for component in components:
        upper -= component.source_dimensions
        step = pass_through(lower, component, upper)
        result = step if result is None else concatenate(result, step)
        lower += component.target_dimensions
    return result


def concatenate(tr1: MathTransform, tr2: MathTransform, tr3: Optional[MathTransform] = None) -> MathTransform:
    """Concatenate two or three transforms.

    Raises
    ------
    MismatchedDimensionError
        If consecutive transforms have incompatible dimensions.
    """
    if tr3 is None:
        return ConcatenatedTransform.create(tr1, tr2)
    return ConcatenatedTransform.create(tr1, tr2, tr3)


def get_steps(tr: MathTransform) -> List[MathTransform]:
    """Return the list of steps of a transform (a single step if not concatenated)."""
    if isinstance(tr, ConcatenatedTransform):
        return list(tr.steps)
    if tr.is_identity() and isinstance(tr, LinearTransform):
        return []
    return [tr]


def get_matrix(tr: MathTransform, position: Optional[Sequence[float]] = None) -> Optional[Matrix]:
    """Return the matrix of a linear transform, or of its affine approximation at a position.

    Returns None when the transform is not linear and no position is given.
    """
    if isinstance(tr, LinearTransform):
        return tr.matrix
    if position is None:
        return None
    return tangent(tr, position)


def tangent(tr: MathTransform, position: Sequence[float]) -> Matrix:
    """Return the affine transform approximating `tr` in the vicinity of `position`.

    The result maps `position` to `tr(position)` exactly, with the derivative
    of `tr` at that point as the linear part.
    """
    point = np.asarray(position, dtype=np.float64)
    if point.size != tr.source_dimensions:
        raise MismatchedDimensionError(
            f"Expected a position of dimension {tr.source_dimensions}, got {point.size}",
            expected=tr.source_dimensions, actual=point.size
        )
    jacobian = tr.derivative(point).to_array()
    image = np.asarray(tr.transform_point(point), dtype=np.float64)
    return Matrices.create_affine(jacobian, image - jacobian @ point)
