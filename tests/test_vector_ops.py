"""
Tests for the vector helpers every scoring component builds on.
"""

import numpy as np
import pytest

from vibefilter.vectors import cosine, cosine_many, ensure_unit, is_unit, l2_normalize, mean


def test_cosine_is_plain_dot_product():
    """Cosine of unit vectors is their dot product; no norm division happens."""
    a = np.array([0.6, 0.8], dtype=np.float32)
    b = np.array([1.0, 0.0], dtype=np.float32)
    assert cosine(a, b) == pytest.approx(0.6)
    assert cosine([2.0, 0.0], [3.0, 0.0]) == pytest.approx(6.0)


def test_cosine_uses_common_prefix():
    assert cosine([1.0, 0.0, 5.0], [0.5, 0.5]) == pytest.approx(0.5)
    assert cosine([], [1.0]) == 0.0


def test_mean_requires_equal_lengths():
    np.testing.assert_allclose(mean([[1.0, 3.0], [3.0, 5.0]]), [2.0, 4.0])
    with pytest.raises(ValueError):
        mean([[1.0, 2.0], [1.0]])
    with pytest.raises(ValueError):
        mean([])


def test_l2_normalize_and_zero_vector():
    normalized = l2_normalize([3.0, 4.0])
    np.testing.assert_allclose(normalized, [0.6, 0.8], rtol=1e-6)
    assert is_unit(normalized)
    zero = l2_normalize([0.0, 0.0])
    assert np.all(np.isfinite(zero))
    np.testing.assert_array_equal(zero, [0.0, 0.0])


def test_ensure_unit_renormalizes_drifted_vectors():
    drifted = np.array([0.0, 1.01], dtype=np.float32)
    assert not is_unit(drifted)
    assert is_unit(ensure_unit(drifted))
    exact = np.array([0.0, 1.0], dtype=np.float32)
    assert ensure_unit(exact) is not None


def test_cosine_many_checks_dimensions():
    matrix = np.eye(3, dtype=np.float32)
    np.testing.assert_allclose(cosine_many(matrix, np.array([1.0, 0.0, 0.0])), [1.0, 0.0, 0.0])
    assert cosine_many(np.zeros((0, 3)), np.ones(3)).shape == (0,)
    with pytest.raises(ValueError):
        cosine_many(matrix, np.ones(2))
