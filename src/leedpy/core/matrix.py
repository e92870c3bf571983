"""Dense real/complex matrix kernel used by the scattering engine."""

from __future__ import annotations

import numpy as np
from scipy.linalg import LinAlgError, inv

from .errors import AllocationError, DimensionMismatch, InvalidInputMatrix, SingularMatrix


Array = np.ndarray

_DTYPES = {"real": np.float64, "complex": np.complex128}


def _resolve_dtype(kind: str) -> type:
    try:
        return _DTYPES[kind.strip().lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown matrix kind '{kind}'. Expected one of: real, complex.") from exc


def _fits(out: Array | None, shape: tuple[int, ...], dtype: type) -> bool:
    return isinstance(out, np.ndarray) and out.shape == shape and out.dtype == dtype


def allocate(rows: int, cols: int, kind: str = "complex", out: Array | None = None) -> Array:
    """Return a zero-filled ``rows x cols`` matrix.

    ``out`` is reused (and zeroed) when it already has the requested shape and
    kind; otherwise a fresh buffer is allocated.
    """

    if int(rows) <= 0 or int(cols) <= 0:
        raise DimensionMismatch(f"Matrix dimensions must be positive (got {rows} x {cols}).")
    dtype = _resolve_dtype(kind)
    shape = (int(rows), int(cols))
    if _fits(out, shape, dtype):
        out.fill(0.0)
        return out
    try:
        return np.zeros(shape, dtype=dtype)
    except MemoryError as exc:
        raise AllocationError(f"Could not allocate a {rows} x {cols} {kind} matrix.") from exc


def copy(src: Array, out: Array | None = None) -> Array:
    src = np.asarray(src)
    if _fits(out, src.shape, src.dtype.type):
        np.copyto(out, src)
        return out
    return src.copy()


def check(mat: Array | None) -> None:
    """Validate a matrix handle passed in for reuse."""

    if mat is None:
        return
    if not isinstance(mat, np.ndarray):
        raise InvalidInputMatrix(f"Expected a numpy array, got {type(mat).__name__}.")
    if mat.ndim != 2 or mat.size == 0:
        raise InvalidInputMatrix(f"Expected a non-empty 2D matrix, got shape {mat.shape}.")
    if not np.issubdtype(mat.dtype, np.number):
        raise InvalidInputMatrix(f"Matrix must be numeric, got dtype {mat.dtype}.")
    if not np.all(np.isfinite(mat)):
        raise InvalidInputMatrix("Matrix contains non-finite entries.")


def multiply(a: Array, b: Array, out: Array | None = None) -> Array:
    """Dense product ``a @ b``.

    One-dimensional operands are treated as diagonal matrices, i.e. a row
    scaling when on the left and a column scaling when on the right.
    """

    a = np.asarray(a)
    b = np.asarray(b)
    if a.ndim == 1 and b.ndim == 1:
        if a.shape != b.shape:
            raise DimensionMismatch(f"Cannot multiply diagonals of length {a.size} and {b.size}.")
        return a * b
    if a.ndim == 1:
        if a.shape[0] != b.shape[0]:
            raise DimensionMismatch(f"Cannot multiply diagonal ({a.size}) with matrix {b.shape}.")
        return a[:, None] * b
    if b.ndim == 1:
        if a.shape[1] != b.shape[0]:
            raise DimensionMismatch(f"Cannot multiply matrix {a.shape} with diagonal ({b.size}).")
        return a * b[None, :]
    if a.shape[1] != b.shape[0]:
        raise DimensionMismatch(f"Cannot multiply matrices of shape {a.shape} and {b.shape}.")
    dtype = np.result_type(a, b)
    if _fits(out, (a.shape[0], b.shape[1]), dtype.type) and out is not a and out is not b:
        return np.matmul(a, b, out=out)
    return a @ b


def transpose(a: Array) -> Array:
    return np.ascontiguousarray(np.asarray(a).T)


def conjugate_transpose(a: Array) -> Array:
    return np.ascontiguousarray(np.asarray(a).conj().T)


def invert(a: Array) -> Array:
    """Return the inverse of a square matrix via LU decomposition."""

    a = np.asarray(a)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise DimensionMismatch(f"Only square matrices can be inverted (got shape {a.shape}).")
    try:
        with np.errstate(over="raise", invalid="raise", divide="raise"):
            res = inv(a, check_finite=True)
    except (LinAlgError, FloatingPointError, ValueError) as exc:
        raise SingularMatrix(f"Matrix inversion failed for a {a.shape[0]} x {a.shape[1]} matrix.") from exc
    if not np.all(np.isfinite(res)):
        raise SingularMatrix("Matrix inversion produced non-finite values.")
    return res


def insert(dst: Array, block: Array, row: int, col: int) -> Array:
    """Copy ``block`` into ``dst`` with its upper-left corner at ``(row, col)``."""

    block = np.asarray(block)
    if block.ndim != 2:
        raise DimensionMismatch(f"Inserted block must be 2D (got shape {block.shape}).")
    r1 = int(row) + block.shape[0]
    c1 = int(col) + block.shape[1]
    if row < 0 or col < 0 or r1 > dst.shape[0] or c1 > dst.shape[1]:
        raise DimensionMismatch(
            f"Block of shape {block.shape} at ({row}, {col}) does not fit into matrix {dst.shape}."
        )
    dst[row:r1, col:c1] = block
    return dst


def partitioned_inverse(a: Array, split: int) -> Array:
    """Invert ``a`` by partitioning it at ``split`` rows/cols.

    With ``a = [[A, B], [C, D]]`` and ``A`` of size ``split``, the inverse is
    assembled from ``inv(A)`` and the inverse of the Schur complement
    ``S = D - C inv(A) B``. If ``split`` covers the whole matrix the plain
    inverse is returned.
    """

    a = np.asarray(a)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise DimensionMismatch(f"Only square matrices can be inverted (got shape {a.shape}).")
    n = a.shape[0]
    split = int(split)
    if split <= 0 or split > n:
        raise DimensionMismatch(f"Partition boundary must lie in [1, {n}] (got {split}).")
    if split == n:
        return invert(a)

    a11 = a[:split, :split]
    a12 = a[:split, split:]
    a21 = a[split:, :split]
    a22 = a[split:, split:]

    a11_inv = invert(a11)
    a11_inv_a12 = a11_inv @ a12
    a21_a11_inv = a21 @ a11_inv
    schur_inv = invert(a22 - a21 @ a11_inv_a12)

    res = np.empty((n, n), dtype=np.result_type(a, np.complex128))
    res[split:, split:] = schur_inv
    res[:split, split:] = -a11_inv_a12 @ schur_inv
    res[split:, :split] = -schur_inv @ a21_a11_inv
    res[:split, :split] = a11_inv + a11_inv_a12 @ schur_inv @ a21_a11_inv
    return res
