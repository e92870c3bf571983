import numpy as np
import pytest

from leedpy.core import matrix
from leedpy.core.errors import DimensionMismatch, InvalidInputMatrix, SingularMatrix


def _random_complex(n: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.normal(size=(n, n)) + 1j * rng.normal(size=(n, n)) + n * np.eye(n)


def test_invert_gives_identity_product() -> None:
    a = _random_complex(6)
    a_inv = matrix.invert(a)
    assert np.allclose(matrix.multiply(a, a_inv), np.eye(6), atol=1e-12)
    assert np.allclose(matrix.invert(a_inv), a, atol=1e-10)


def test_invert_singular_raises() -> None:
    a = np.zeros((3, 3), dtype=complex)
    with pytest.raises(SingularMatrix):
        matrix.invert(a)


def test_multiply_shape_mismatch_names_both_shapes() -> None:
    with pytest.raises(DimensionMismatch, match=r"\(2, 3\).*\(2, 3\)"):
        matrix.multiply(np.ones((2, 3)), np.ones((2, 3)))


def test_multiply_with_diagonal_vectors() -> None:
    a = _random_complex(4, seed=1)
    d = np.array([1.0, 2.0, 3.0, 4.0j])
    assert np.allclose(matrix.multiply(d, a), np.diag(d) @ a)
    assert np.allclose(matrix.multiply(a, d), a @ np.diag(d))


def test_allocate_reuses_fitting_buffer() -> None:
    buf = np.ones((3, 4), dtype=np.complex128)
    out = matrix.allocate(3, 4, out=buf)
    assert out is buf
    assert np.all(out == 0.0)
    other = matrix.allocate(3, 4, kind="real", out=buf)
    assert other is not buf
    assert other.dtype == np.float64


def test_allocate_rejects_non_positive_sizes() -> None:
    with pytest.raises(DimensionMismatch):
        matrix.allocate(0, 3)


@pytest.mark.parametrize("split", [1, 4, 5, 9])
def test_partitioned_inverse_matches_full_inverse(split: int) -> None:
    a = _random_complex(9, seed=split)
    assert np.allclose(matrix.partitioned_inverse(a, split), matrix.invert(a), atol=1e-12)


def test_partitioned_inverse_rejects_bad_split() -> None:
    with pytest.raises(DimensionMismatch):
        matrix.partitioned_inverse(np.eye(4), 5)


def test_insert_places_block_and_checks_bounds() -> None:
    dst = np.zeros((4, 4), dtype=complex)
    block = np.full((2, 2), 1.0 + 1.0j)
    matrix.insert(dst, block, 1, 2)
    assert np.all(dst[1:3, 2:4] == block)
    assert np.count_nonzero(dst) == 4
    with pytest.raises(DimensionMismatch):
        matrix.insert(dst, block, 3, 3)


def test_check_rejects_invalid_handles() -> None:
    matrix.check(None)
    matrix.check(np.eye(2))
    with pytest.raises(InvalidInputMatrix):
        matrix.check([[1.0, 0.0], [0.0, 1.0]])
    with pytest.raises(InvalidInputMatrix):
        matrix.check(np.ones(3))
    with pytest.raises(InvalidInputMatrix):
        matrix.check(np.array([[np.nan]]))


def test_transposes() -> None:
    a = _random_complex(3, seed=2)
    assert np.allclose(matrix.transpose(a), a.T)
    assert np.allclose(matrix.conjugate_transpose(a), a.conj().T)
    assert np.allclose(matrix.copy(a), a)
