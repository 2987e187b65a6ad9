"""
Coordinate Transform Abstraction.

A `MathTransform` maps coordinate tuples of `source_dimensions` ordinates to
tuples of `target_dimensions` ordinates. Concrete transforms implement a single
vectorized method, `_transform_array`, operating on an (N, source_dimensions)
numpy array; the point, batch and streaming APIs are all derived from it.

Variants
--------
- `LinearTransform`: affine or projective transform given by a matrix.
- `IdentityTransform`: linear transform with an identity matrix.
- `ConcatenatedTransform`: ordered list of steps applied in sequence.
- `PassThroughTransform`: sub-transform applied to a slice of the ordinates.

Map projection kernels and the geocentric conversion live in the
`geospatial` package and subclass `MathTransform` directly.

Notes
-----
Transforms are immutable. The inverse is computed lazily and cached; the cache
is written at most once with an equivalent value, so concurrent first calls are
harmless.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Iterator, List, MutableSequence, Optional, Sequence, Tuple
import numpy as np
from numpy.typing import NDArray

from common.constants import MATRIX_TOLERANCE
from common.errors import MismatchedDimensionError, NoninvertibleTransformError
from transform.matrix import Matrix


class MathTransform(ABC):
    """Base class of all coordinate transforms."""

    def __init__(self):
        self._inverse: Optional['MathTransform'] = None

    @property
    @abstractmethod
    def source_dimensions(self) -> int:
        """Number of ordinates of input points."""

    @property
    @abstractmethod
    def target_dimensions(self) -> int:
        """Number of ordinates of output points."""

    def is_identity(self) -> bool:
        return False

    @abstractmethod
    def _transform_array(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        """Transform an (N, source_dimensions) array into a new (N, target_dimensions) array.

        Implementations must not modify `points`.
        """

    def transform_points(self, points) -> NDArray[np.float64]:
        """Transform an array of points.

        Parameters
        ----------
        points : array_like
            Shape (N, source_dimensions).

        Returns
        -------
        NDArray
            Shape (N, target_dimensions).
        """
        array = np.asarray(points, dtype=np.float64)
        if array.ndim == 1:
            array = array.reshape(1, -1)
        if array.ndim != 2 or array.shape[1] != self.source_dimensions:
            raise MismatchedDimensionError(
                f"Expected points of dimension {self.source_dimensions}, got array of shape {array.shape}",
                expected=self.source_dimensions,
                actual=array.shape[-1] if array.ndim else 0
            )
        if array.shape[0] == 0:
            return np.empty((0, self.target_dimensions), dtype=np.float64)
        return self._transform_array(array)

    def transform_point(self, point: Sequence[float]) -> Tuple[float, ...]:
        """Transform a single point and return the result as a tuple."""
        if len(point) != self.source_dimensions:
            raise MismatchedDimensionError(
                f"Expected a point of dimension {self.source_dimensions}, got {len(point)}",
                expected=self.source_dimensions, actual=len(point)
            )
        result = self._transform_array(np.asarray([point], dtype=np.float64))
        return tuple(float(v) for v in result[0])

    def transform(
        self,
        src_pts: Sequence[float],
        src_off: int,
        dst_pts: MutableSequence[float],
        dst_off: int,
        num_pts: int
    ) -> None:
        """Transform `num_pts` points packed in a flat array.

        Source and destination may be the same array, with overlapping
        ranges: the source values are copied before any result is written.

        Parameters
        ----------
        src_pts : sequence of float
            Flat source coordinates (x0, y0, x1, y1, ...).
        src_off : int
            Index of the first ordinate of the first source point.
        dst_pts : mutable sequence of float
            Flat destination array (numpy array or list).
        dst_off : int
            Index where to write the first ordinate of the first result.
        num_pts : int
            Number of points to transform.
        """
        if num_pts <= 0:
            return
        src_dim, tgt_dim = self.source_dimensions, self.target_dimensions
        flat = np.asarray(src_pts, dtype=np.float64)
        source = flat[src_off:src_off + num_pts * src_dim]
        if source.size != num_pts * src_dim:
            raise MismatchedDimensionError(
                f"Source array too short for {num_pts} points of dimension {src_dim}",
                expected=num_pts * src_dim, actual=source.size
            )
        result = self._transform_array(source.reshape(num_pts, src_dim).copy())
        end = dst_off + num_pts * tgt_dim
        if isinstance(dst_pts, np.ndarray):
            dst_pts[dst_off:end] = result.ravel()
        else:
            dst_pts[dst_off:end] = result.ravel().tolist()

    def transform_iter(self, points: Iterable[Sequence[float]]) -> Iterator[Tuple[float, ...]]:
        """Lazily transform a stream of points."""
        for point in points:
            yield self.transform_point(point)

    def inverse(self) -> 'MathTransform':
        """Return the inverse transform.

        Raises
        ------
        NoninvertibleTransformError
            If this transform has no inverse.
        """
        if self._inverse is None:
            inverse = self._create_inverse()
            if inverse is not self and isinstance(inverse, MathTransform) and inverse._inverse is None:
                inverse._inverse = self
            self._inverse = inverse
        return self._inverse

    def _create_inverse(self) -> 'MathTransform':
        raise NoninvertibleTransformError(f"{type(self).__name__} is not invertible")

    def derivative(self, point: Sequence[float]) -> Matrix:
        """Return the Jacobian matrix at the given point.

        The default implementation uses central finite differences.
        """
        x = np.asarray(point, dtype=np.float64)
        if x.shape != (self.source_dimensions,):
            raise MismatchedDimensionError(
                f"Expected a point of dimension {self.source_dimensions}, got {x.size}",
                expected=self.source_dimensions, actual=x.size
            )
        steps = 1e-7 * np.maximum(1.0, np.abs(x))
        probes = np.repeat(x[np.newaxis, :], 2 * x.size, axis=0)
        for i, h in enumerate(steps):
            probes[2 * i, i] += h
            probes[2 * i + 1, i] -= h
        values = self._transform_array(probes)
        jacobian = (values[0::2] - values[1::2]) / (2 * steps[:, np.newaxis])
        return Matrix.from_array(jacobian.T)

    def equals(self, other: 'MathTransform', tolerance: float = MATRIX_TOLERANCE) -> bool:
        """Compare with another transform, ignoring rounding differences where possible."""
        return self == other

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.source_dimensions}D → {self.target_dimensions}D)"


class LinearTransform(MathTransform):
    """Affine or projective transform defined by a (M+1) × (N+1) matrix.

    Parameters
    ----------
    matrix : Matrix
        The transform matrix in homogeneous coordinates. It is copied.
    """

    def __init__(self, matrix: Matrix):
        super().__init__()
        self._matrix = matrix.copy()
        self._elements = self._matrix.to_array()
        self._affine = self._matrix.is_affine()

    @property
    def source_dimensions(self) -> int:
        return self._matrix.num_col - 1

    @property
    def target_dimensions(self) -> int:
        return self._matrix.num_row - 1

    @property
    def matrix(self) -> Matrix:
        """A copy of the matrix of this transform."""
        return self._matrix.copy()

    def is_identity(self) -> bool:
        return self._matrix.is_identity()

    def is_affine(self) -> bool:
        return self._affine

    def _transform_array(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        linear = self._elements[:-1, :-1]
        translation = self._elements[:-1, -1]
        result = points @ linear.T + translation
        if not self._affine:
            w = points @ self._elements[-1, :-1] + self._elements[-1, -1]
            result = result / w[:, np.newaxis]
        return result

    def derivative(self, point: Sequence[float]) -> Matrix:
        if self._affine:
            return Matrix.from_array(self._elements[:-1, :-1])
        x = np.asarray(point, dtype=np.float64)
        w = self._elements[-1, :-1] @ x + self._elements[-1, -1]
        y = self._elements[:-1, :-1] @ x + self._elements[:-1, -1]
        jacobian = (self._elements[:-1, :-1] * w - np.outer(y, self._elements[-1, :-1])) / (w * w)
        return Matrix.from_array(jacobian)

    def _create_inverse(self) -> MathTransform:
        if self.is_identity():
            return self
        return LinearTransform(self._matrix.inverse())

    def equals(self, other: MathTransform, tolerance: float = MATRIX_TOLERANCE) -> bool:
        return isinstance(other, LinearTransform) and self._matrix.equals(other._matrix, tolerance)

    def __eq__(self, other) -> bool:
        if not isinstance(other, LinearTransform):
            return NotImplemented
        return self._matrix == other._matrix

    def __hash__(self) -> int:
        return hash((self._elements.shape, self._elements.tobytes()))

    def __repr__(self) -> str:
        return f"LinearTransform({self._elements.tolist()})"


class IdentityTransform(LinearTransform):
    """The identity transform in a given number of dimensions."""

    def __init__(self, dimension: int):
        super().__init__(Matrix(dimension + 1, dimension + 1))

    def is_identity(self) -> bool:
        return True

    def _transform_array(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        return points.copy()

    def _create_inverse(self) -> MathTransform:
        return self


class ConcatenatedTransform(MathTransform):
    """A sequence of transforms applied one after the other.

    Instances should be created with `ConcatenatedTransform.create` or
    `transform.math_transforms.concatenate`, which flatten nested
    concatenations and simplify the resulting list of steps.
    """

    def __init__(self, steps: Sequence[MathTransform]):
        super().__init__()
        if len(steps) < 2:
            raise ValueError("A concatenated transform needs at least two steps")
        for previous, step in zip(steps, steps[1:]):
            _check_chain(previous, step)
        self._steps: Tuple[MathTransform, ...] = tuple(steps)

    @classmethod
    def create(cls, *transforms: MathTransform) -> MathTransform:
        """Concatenate the given transforms, simplifying where possible.

        Nested concatenations are flattened, identity steps are dropped,
        adjacent linear steps are merged into a single matrix product and a
        step directly followed by its own inverse cancels out.

        Raises
        ------
        MismatchedDimensionError
            If the target dimension of a transform differs from the source
            dimension of the next one.
        """
        if not transforms:
            raise ValueError("At least one transform is required")
        for previous, step in zip(transforms, transforms[1:]):
            _check_chain(previous, step)
        steps: List[MathTransform] = []
        for tr in transforms:
            for step in _flatten(tr):
                _append_step(steps, step)
        if not steps:
            return IdentityTransform(transforms[0].source_dimensions)
        if len(steps) == 1:
            return steps[0]
        return cls(steps)

    @property
    def steps(self) -> Tuple[MathTransform, ...]:
        return self._steps

    @property
    def source_dimensions(self) -> int:
        return self._steps[0].source_dimensions

    @property
    def target_dimensions(self) -> int:
        return self._steps[-1].target_dimensions

    def is_identity(self) -> bool:
        return False

    def _transform_array(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        for step in self._steps:
            points = step._transform_array(points)
        return points

    def derivative(self, point: Sequence[float]) -> Matrix:
        position = np.asarray(point, dtype=np.float64)
        jacobian: Optional[Matrix] = None
        for step in self._steps:
            d = step.derivative(position)
            jacobian = d if jacobian is None else d.multiply(jacobian)
            position = step._transform_array(position.reshape(1, -1))[0]
        return jacobian

    def _create_inverse(self) -> MathTransform:
        return ConcatenatedTransform.create(*[step.inverse() for step in reversed(self._steps)])

    def equals(self, other: MathTransform, tolerance: float = MATRIX_TOLERANCE) -> bool:
        if not isinstance(other, ConcatenatedTransform) or len(other._steps) != len(self._steps):
            return False
        return all(a.equals(b, tolerance) for a, b in zip(self._steps, other._steps))

    def __eq__(self, other) -> bool:
        if not isinstance(other, ConcatenatedTransform):
            return NotImplemented
        return self._steps == other._steps

    def __hash__(self) -> int:
        return hash(self._steps)

    def __repr__(self) -> str:
        inner = ",\n  ".join(repr(step) for step in self._steps)
        return f"ConcatenatedTransform(\n  {inner})"


def _check_chain(first: MathTransform, second: MathTransform) -> None:
    if first.target_dimensions != second.source_dimensions:
        raise MismatchedDimensionError(
            f"Can not concatenate a transform with {first.target_dimensions} target dimensions "
            f"and a transform with {second.source_dimensions} source dimensions",
            expected=first.target_dimensions, actual=second.source_dimensions
        )


def _flatten(tr: MathTransform) -> Iterator[MathTransform]:
    if isinstance(tr, ConcatenatedTransform):
        for step in tr.steps:
            yield from _flatten(step)
    else:
        yield tr


def _append_step(steps: List[MathTransform], step: MathTransform) -> None:
    """Append a step to a flattened chain, simplifying with the last step."""
    if step.is_identity() and step.source_dimensions == step.target_dimensions:
        return
    if steps:
        last = steps[-1]
        if last._inverse is step or step._inverse is last:
            # Only a step that keeps every ordinate is undone by its inverse.
            if last.source_dimensions <= last.target_dimensions:
                steps.pop()
                return
        if isinstance(last, LinearTransform) and isinstance(step, LinearTransform):
            steps.pop()
            merged = LinearTransform(step._matrix.multiply(last._matrix))
            if not merged.is_identity():
                _append_step(steps, merged)
            return
    steps.append(step)


class PassThroughTransform(MathTransform):
    """Apply a sub-transform to a contiguous slice of the ordinates.

    Parameters
    ----------
    first_affected : int
        Number of leading ordinates passed through unchanged.
    sub_transform : MathTransform
        The transform applied to the affected ordinates.
    num_trailing : int
        Number of trailing ordinates passed through unchanged.

    Examples
    --------
    Apply a 2D projection to (φ, λ) while keeping the height:

    >>> PassThroughTransform(0, projection, 1)   # doctest: +SKIP
    """

    def __init__(self, first_affected: int, sub_transform: MathTransform, num_trailing: int):
        super().__init__()
        if first_affected < 0 or num_trailing < 0:
            raise ValueError("Number of pass-through ordinates can not be negative")
        self._first = first_affected
        self._sub = sub_transform
        self._trailing = num_trailing

    @property
    def first_affected_ordinate(self) -> int:
        return self._first

    @property
    def sub_transform(self) -> MathTransform:
        return self._sub

    @property
    def num_trailing_ordinates(self) -> int:
        return self._trailing

    @property
    def source_dimensions(self) -> int:
        return self._first + self._sub.source_dimensions + self._trailing

    @property
    def target_dimensions(self) -> int:
        return self._first + self._sub.target_dimensions + self._trailing

    def is_identity(self) -> bool:
        return self._sub.is_identity()

    def _transform_array(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        end = self._first + self._sub.source_dimensions
        middle = self._sub._transform_array(points[:, self._first:end])
        return np.hstack([points[:, :self._first], middle, points[:, end:]])

    def derivative(self, point: Sequence[float]) -> Matrix:
        x = np.asarray(point, dtype=np.float64)
        sub_src = self._sub.source_dimensions
        sub_tgt = self._sub.target_dimensions
        sub = self._sub.derivative(x[self._first:self._first + sub_src]).to_array()
        jacobian = np.zeros((self.target_dimensions, self.source_dimensions), dtype=np.float64)
        for i in range(self._first):
            jacobian[i, i] = 1.0
        jacobian[self._first:self._first + sub_tgt, self._first:self._first + sub_src] = sub
        for i in range(self._trailing):
            jacobian[self._first + sub_tgt + i, self._first + sub_src + i] = 1.0
        return Matrix.from_array(jacobian)

    def _create_inverse(self) -> MathTransform:
        return PassThroughTransform(self._first, self._sub.inverse(), self._trailing)

    def equals(self, other: MathTransform, tolerance: float = MATRIX_TOLERANCE) -> bool:
        return (isinstance(other, PassThroughTransform)
                and other._first == self._first and other._trailing == self._trailing
                and self._sub.equals(other._sub, tolerance))

    def __eq__(self, other) -> bool:
        if not isinstance(other, PassThroughTransform):
            return NotImplemented
        return (self._first, self._sub, self._trailing) == (other._first, other._sub, other._trailing)

    def __hash__(self) -> int:
        return hash((self._first, self._sub, self._trailing))
