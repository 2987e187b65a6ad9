"""Tests for transform.matrix."""

import numpy as np
import pytest

from common.errors import MismatchedDimensionError, NoninvertibleTransformError
from transform.matrix import Matrix, Matrices


class TestMatrix:

    def test_default_is_identity(self):
        m = Matrix(3, 3)
        assert m.is_identity()
        assert m.is_affine()
        assert m.shape == (3, 3)

    def test_wrong_element_count(self):
        with pytest.raises(MismatchedDimensionError):
            Matrix(2, 2, [1, 2, 3])

    def test_multiply(self):
        a = Matrix.from_rows([[1, 2], [3, 4]])
        b = Matrix.from_rows([[0, 1], [1, 0]])
        assert (a @ b).to_array().tolist() == [[2, 1], [4, 3]]

    def test_multiply_mismatched(self):
        with pytest.raises(MismatchedDimensionError) as info:
            Matrix(3, 3).multiply(Matrix(4, 4))
        assert info.value.expected == 3
        assert info.value.actual == 4

    def test_inverse_of_affine(self):
        m = Matrix(3, 3, [2, 0, 10,
                          0, 4, 20,
                          0, 0, 1])
        inverse = m.inverse()
        assert inverse.get_element(0, 0) == pytest.approx(0.5)
        assert inverse.get_element(0, 2) == pytest.approx(-5.0)
        assert inverse.get_element(1, 2) == pytest.approx(-5.0)
        assert (m @ inverse).is_identity(1e-12)

    def test_inverse_random(self, rng):
        for _ in range(20):
            elements = rng.uniform(-10, 10, size=(4, 4))
            m = Matrix.from_array(elements)
            product = m.multiply(m.inverse())
            assert product.equals(Matrix(4, 4), 1e-9)

    def test_inverse_needs_pivoting(self):
        m = Matrix.from_rows([[0, 1, 0], [1, 0, 0], [0, 0, 1]])
        assert m.inverse() == m

    def test_singular(self):
        m = Matrix.from_rows([[1, 2, 0], [2, 4, 0], [0, 0, 1]])
        with pytest.raises(NoninvertibleTransformError):
            m.inverse()

    def test_non_square_affine_inverse(self):
        # (x, y) → (x, y, 0): adds a dimension.
        m = Matrix.from_rows([[1, 0, 0], [0, 1, 0], [0, 0, 0], [0, 0, 1]])
        inverse = m.inverse()
        assert inverse.shape == (3, 4)
        assert inverse.to_array().tolist() == [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 0, 1]]

    def test_non_square_not_affine(self):
        with pytest.raises(NoninvertibleTransformError):
            Matrix.from_rows([[1, 0, 0], [0, 1, 1]]).inverse()

    def test_equals_with_tolerance(self):
        a = Matrix(2, 2, [1, 0, 0, 1])
        b = Matrix(2, 2, [1 + 1e-14, 0, 0, 1])
        assert a != b
        assert a.equals(b)
        assert not a.equals(Matrix(2, 2, [1.1, 0, 0, 1]))

    def test_to_array_is_a_copy(self):
        m = Matrix(2, 2)
        array = m.to_array()
        array[0, 0] = 5
        assert m.get_element(0, 0) == 1

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(Matrix(2, 2))


class TestMatrices:

    def test_create_affine(self):
        m = Matrices.create_affine(np.diag([2.0, 3.0]), [5.0, 7.0])
        assert m.to_array().tolist() == [[2, 0, 5], [0, 3, 7], [0, 0, 1]]
        assert m.is_affine()

    def test_create_diagonal_non_square(self):
        m = Matrices.create_diagonal(3, 4)
        assert m.is_affine()
        assert m.get_element(0, 0) == 1
        assert m.get_element(1, 1) == 1
        assert m.get_element(2, 2) == 0
        assert m.get_element(2, 3) == 1

    def test_create_zero(self):
        assert not Matrices.create_zero(2, 2).to_array().any()
