"""
Dense Matrices for Coordinate Transform Composition.

This module provides the small dense matrices used to represent affine and
projective coordinate transforms. A transform from N to M dimensions is
represented by a (M+1) × (N+1) matrix in homogeneous coordinates; the last row
is [0 … 0 1] for affine transforms.

Numerical Context
-----------------
Transforms are frequently reconstructed through different algorithmic paths
(parsing a definition versus composing steps programmatically), so two matrices
describing the same transform rarely agree to the last bit. Comparisons are
therefore done with a combined absolute and relative tolerance, and singularity
is detected with a scaled pivot threshold rather than an exact zero test.

References
----------
- Golub, G.H. & Van Loan, C.F. (2013). Matrix Computations (4th ed.), §3.4.
"""

from typing import Iterable, Optional, Sequence, Tuple
import numpy as np
from numpy.typing import NDArray

from common.constants import MATRIX_TOLERANCE
from common.errors import MismatchedDimensionError, NoninvertibleTransformError


class Matrix:
    """A matrix of double-precision values with fixed dimensions.

    Parameters
    ----------
    num_row, num_col : int
        Matrix size. Fixed for the lifetime of the matrix.
    elements : sequence of float, optional
        Row-major elements. If omitted, the matrix is initialized to identity
        (ones on the diagonal, even for non-square matrices).

    Examples
    --------
    >>> m = Matrix(3, 3, [2, 0, 10,
    ...                   0, 2, 20,
    ...                   0, 0, 1])
    >>> m.inverse().get_element(0, 2)
    -5.0
    """

    __slots__ = ("_elements",)

    def __init__(self, num_row: int, num_col: int, elements: Optional[Iterable[float]] = None):
        if num_row <= 0 or num_col <= 0:
            raise ValueError(f"Matrix size must be positive, got {num_row}×{num_col}")
        if elements is None:
            self._elements = np.eye(num_row, num_col, dtype=np.float64)
        else:
            array = np.asarray(list(elements), dtype=np.float64)
            if array.size != num_row * num_col:
                raise MismatchedDimensionError(
                    f"Expected {num_row * num_col} elements for a {num_row}×{num_col} matrix, "
                    f"got {array.size}",
                    expected=num_row * num_col, actual=array.size
                )
            self._elements = array.reshape(num_row, num_col)

    @classmethod
    def from_array(cls, array: NDArray[np.float64]) -> 'Matrix':
        """Create a matrix from a two-dimensional array (the array is copied)."""
        array = np.array(array, dtype=np.float64, copy=True)
        if array.ndim != 2:
            raise ValueError(f"Expected a two-dimensional array, got {array.ndim} dimensions")
        matrix = cls(array.shape[0], array.shape[1])
        matrix._elements = array
        return matrix

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]]) -> 'Matrix':
        """Create a matrix from a sequence of rows."""
        return cls.from_array(np.asarray(rows, dtype=np.float64))

    @property
    def num_row(self) -> int:
        return self._elements.shape[0]

    @property
    def num_col(self) -> int:
        return self._elements.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return self._elements.shape

    def get_element(self, row: int, column: int) -> float:
        return float(self._elements[row, column])

    def set_element(self, row: int, column: int, value: float) -> None:
        self._elements[row, column] = value

    def to_array(self) -> NDArray[np.float64]:
        """Return a copy of the elements as a numpy array."""
        return self._elements.copy()

    def copy(self) -> 'Matrix':
        return Matrix.from_array(self._elements)

    def is_square(self) -> bool:
        return self.num_row == self.num_col

    def is_identity(self, tolerance: float = 0.0) -> bool:
        """Whether this matrix is square with ones on the diagonal and zeros elsewhere."""
        if not self.is_square():
            return False
        return bool(np.all(np.abs(self._elements - np.eye(self.num_row)) <= tolerance))

    def is_affine(self) -> bool:
        """Whether the last row is [0 … 0 1]."""
        last = self._elements[-1]
        return bool(last[-1] == 1 and np.all(last[:-1] == 0))

    def transpose(self) -> 'Matrix':
        return Matrix.from_array(self._elements.T)

    def multiply(self, other: 'Matrix') -> 'Matrix':
        """Return the matrix product `self × other`.

        Raises
        ------
        MismatchedDimensionError
            If the number of columns of this matrix differs from the number of
            rows of `other`.
        """
        if self.num_col != other.num_row:
            raise MismatchedDimensionError(
                f"Can not multiply a {self.num_row}×{self.num_col} matrix "
                f"by a {other.num_row}×{other.num_col} matrix",
                expected=self.num_col, actual=other.num_row
            )
        return Matrix.from_array(self._elements @ other._elements)

    def __matmul__(self, other: 'Matrix') -> 'Matrix':
        return self.multiply(other)

    def inverse(self, tolerance: float = MATRIX_TOLERANCE) -> 'Matrix':
        """Return the inverse of this matrix.

        Square matrices are inverted by Gauss-Jordan elimination with scaled
        partial pivoting. Non-square affine matrices (transforms adding or
        dropping dimensions) are inverted through the pseudo-inverse of their
        linear part when that part has full rank.

        Parameters
        ----------
        tolerance : float
            Relative threshold below which a pivot is considered zero.

        Raises
        ------
        NoninvertibleTransformError
            If the matrix is singular (within tolerance) or non-square and not
            invertible on its range.
        """
        if self.is_square():
            return Matrix.from_array(_gauss_jordan_inverse(self._elements, tolerance))
        if not self.is_affine():
            raise NoninvertibleTransformError(
                f"Non-square {self.num_row}×{self.num_col} matrix is not affine and can not be inverted"
            )
        linear = self._elements[:-1, :-1]
        translation = self._elements[:-1, -1]
        if np.linalg.matrix_rank(linear) != min(linear.shape):
            raise NoninvertibleTransformError(
                f"Non-square {self.num_row}×{self.num_col} matrix is rank-deficient"
            )
        pseudo = np.linalg.pinv(linear)
        result = np.zeros((self.num_col, self.num_row), dtype=np.float64)
        result[:-1, :-1] = pseudo
        result[:-1, -1] = -pseudo @ translation
        result[-1, -1] = 1.0
        # Values like 1e-17 are rounding noise of the pseudo-inverse.
        result[np.abs(result) < 1e-15] = 0.0
        return Matrix.from_array(result)

    def equals(self, other: 'Matrix', tolerance: float = MATRIX_TOLERANCE) -> bool:
        """Compare with another matrix using absolute and relative tolerance."""
        if not isinstance(other, Matrix) or self.shape != other.shape:
            return False
        return bool(np.allclose(self._elements, other._elements,
                                rtol=tolerance, atol=tolerance, equal_nan=True))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self._elements, other._elements))

    __hash__ = None  # Mutable

    def __repr__(self) -> str:
        rows = "\n".join("  [" + ", ".join(f"{v:.12g}" for v in row) + "]" for row in self._elements)
        return f"Matrix({self.num_row}×{self.num_col})\n{rows}"


def _gauss_jordan_inverse(a: NDArray[np.float64], tolerance: float) -> NDArray[np.float64]:
    """Invert a square matrix by Gauss-Jordan elimination with scaled partial pivoting."""
    n = a.shape[0]
    if not np.all(np.isfinite(a)):
        raise NoninvertibleTransformError("Matrix contains NaN or infinite values")
    work = np.hstack([a.astype(np.float64), np.eye(n, dtype=np.float64)])
    scale = np.max(np.abs(a), axis=1)
    if np.any(scale == 0):
        raise NoninvertibleTransformError("Matrix has a row of zeros and is singular")
    for col in range(n):
        candidates = np.abs(work[col:, col]) / scale[col:]
        pivot = col + int(np.argmax(candidates))
        if candidates[pivot - col] <= tolerance:
            raise NoninvertibleTransformError(
                f"Matrix is singular: pivot {work[pivot, col]:.3e} in column {col} is below tolerance"
            )
        if pivot != col:
            work[[col, pivot]] = work[[pivot, col]]
            scale[[col, pivot]] = scale[[pivot, col]]
        work[col] /= work[col, col]
        factors = work[:, col].copy()
        factors[col] = 0.0
        work -= np.outer(factors, work[col])
    return work[:, n:]


class Matrices:
    """Factory methods for common matrices."""

    @staticmethod
    def create_identity(size: int) -> Matrix:
        return Matrix(size, size)

    @staticmethod
    def create_diagonal(num_row: int, num_col: int) -> Matrix:
        """Matrix with ones on the diagonal; for non-square sizes, the last row is [0 … 0 1]."""
        matrix = Matrix(num_row, num_col)
        if num_row != num_col:
            matrix.set_element(min(num_row, num_col) - 1, min(num_row, num_col) - 1, 0.0)
            matrix.set_element(num_row - 1, num_col - 1, 1.0)
        return matrix

    @staticmethod
    def create_zero(num_row: int, num_col: int) -> Matrix:
        return Matrix(num_row, num_col, [0.0] * (num_row * num_col))

    @staticmethod
    def create_affine(linear: NDArray[np.float64], translation: Sequence[float]) -> Matrix:
        """Build the homogeneous matrix of `x ↦ linear · x + translation`."""
        linear = np.asarray(linear, dtype=np.float64)
        rows, cols = linear.shape
        elements = np.zeros((rows + 1, cols + 1), dtype=np.float64)
        elements[:rows, :cols] = linear
        elements[:rows, cols] = translation
        elements[rows, cols] = 1.0
        return Matrix.from_array(elements)
