"""Non-diagonal thermal t-matrix from the cumulant expansion.

Implements the anisotropic vibration treatment of P. de Andres and
D. A. King (TMAT), section 2.4: the zero-temperature t-matrix is dressed by
the series

    T(n) = -kappa^2 / n * sum_a u_a^2 (Ma Ma T(n-1) + T(n-1) Ma Ma - 2 Ma T(n-1) Ma)

where ``Ma`` represents multiplication by the direction cosine ``n_a`` in
the (l, m) basis.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from .errors import NonConvergence
from .harmonics import gaunt, lm_arrays, n_channels
from .types import GEO_TOLERANCE

if TYPE_CHECKING:
    from .context import LeedContext


Array = np.ndarray

logger = logging.getLogger(__name__)

NITER = 1000
CONV_TEST = 1e-6
_ZERO = 1e-12


@dataclass(frozen=True)
class DirectionalOperators:
    """Ma and Ma*Ma for a = x, y, z, truncated to ``(l_max+1)**2`` channels."""

    l_max: int
    m: tuple[Array, Array, Array]
    mm: tuple[Array, Array, Array]


def _gaunt_matrix(l_max: int, mu: int) -> Array:
    """G[L, L'] = integral(Y*_L Y_{1 mu} Y_L')."""

    ls, ms = lm_arrays(l_max)
    n = ls.size
    mat = np.zeros((n, n))
    for i in range(n):
        l, m = int(ls[i]), int(ms[i])
        for j in range(n):
            lp, mp = int(ls[j]), int(ms[j])
            if abs(l - lp) != 1 or mp + mu != m:
                continue
            mat[i, j] = (-1) ** m * gaunt(l, -m, 1, mu, lp, mp)
    return mat


def directional_operators(l_max: int) -> DirectionalOperators:
    """Build the three direction-cosine operators for cutoff ``l_max``.

    The squares are formed in the ``l_max + 1`` basis before truncation so
    that ``Ma Ma`` is exact on the retained channels.
    """

    l_big = l_max + 1
    g_m = _gaunt_matrix(l_big, -1)
    g_0 = _gaunt_matrix(l_big, 0)
    g_p = _gaunt_matrix(l_big, 1)

    c_xy = math.sqrt(2.0 * math.pi / 3.0)
    big = (
        (c_xy * (g_m - g_p)).astype(np.complex128),
        (1j * c_xy * (g_m + g_p)).astype(np.complex128),
        (math.sqrt(4.0 * math.pi / 3.0) * g_0).astype(np.complex128),
    )
    n = n_channels(l_max)
    m = tuple(op[:n, :n].copy() for op in big)
    mm = tuple((op @ op)[:n, :n] for op in big)
    logger.debug("Built cumulant directional operators for l_max = %d.", l_max)
    return DirectionalOperators(l_max=l_max, m=m, mm=mm)


def _relative_change(t_n: Array, t_acc: Array) -> tuple[float, float]:
    re_acc = t_acc.real
    im_acc = t_acc.imag
    mask_r = np.abs(re_acc) > _ZERO
    mask_i = np.abs(im_acc) > _ZERO
    relerr_r = float(np.sum(np.abs(t_n.real[mask_r] / re_acc[mask_r])))
    relerr_i = float(np.sum(np.abs(t_n.imag[mask_i] / im_acc[mask_i])))
    return relerr_r, relerr_i


def cumulant_tmatrix(
    ctx: LeedContext,
    tl0: Array,
    ux: float,
    uy: float,
    uz: float,
    energy: float,
    l_max_t: int,
    l_max_0: int | None = None,
    return_info: bool = False,
) -> Array | tuple[Array, dict[str, Any]]:
    """Temperature-dependent non-diagonal t-matrix.

    ``tl0`` holds ``sin(delta_l) exp(i delta_l)`` for ``l = 0..l_max_0``,
    ``ux``/``uy``/``uz`` are RMS displacements [Bohr] and ``energy`` is the
    real part of the energy [Hartree]. The returned matrix has
    ``(l_max_t+1)**2`` rows in natural (l, m) order and reduces to
    ``diag(t_l)`` for zero displacements.
    """

    tl0 = np.asarray(tl0, dtype=np.complex128)
    if l_max_0 is None:
        l_max_0 = tl0.size - 1
    if l_max_0 > l_max_t:
        logger.warning("Input phase shifts are only used up to l_max = %d.", l_max_t)
        l_max_0 = l_max_t
    elif l_max_0 < l_max_t:
        logger.warning(
            "Input phase shifts exist only up to l_max = %d; higher l up to %d are set to zero.",
            l_max_0,
            l_max_t,
        )

    kappa = math.sqrt(2.0 * float(energy))
    ls, _ = lm_arrays(l_max_t)
    t_diag = np.zeros(ls.size, dtype=np.complex128)
    used = ls <= l_max_0
    t_diag[used] = -tl0[ls[used]] / kappa
    t_n = np.diag(t_diag)

    if ux < GEO_TOLERANCE and uy < GEO_TOLERANCE and uz < GEO_TOLERANCE:
        result = -kappa * t_n
        if return_info:
            return result, {"n_iter": 0, "relerr": (0.0, 0.0)}
        return result

    ops = ctx.cumulant_operators(l_max_t)
    u2 = (ux * ux, uy * uy, uz * uz)
    t_acc = t_n.copy()
    conv_test = CONV_TEST * ls.size * ls.size
    relerr = (2.0 * conv_test, 2.0 * conv_test)

    i_iter = 1
    while i_iter < NITER and (relerr[0] > conv_test or relerr[1] > conv_test):
        try:
            with np.errstate(over="raise", invalid="raise"):
                step = np.zeros_like(t_n)
                for u2_a, m_a, mm_a in zip(u2, ops.m, ops.mm):
                    if u2_a == 0.0:
                        continue
                    step += u2_a * (mm_a @ t_n + t_n @ mm_a - 2.0 * (m_a @ t_n @ m_a))
                t_n = (-kappa * kappa / i_iter) * step
                t_acc = t_acc + t_n
        except FloatingPointError as exc:
            raise NonConvergence(f"Cumulant expansion overflowed after {i_iter} iterations.") from exc
        if not np.all(np.isfinite(t_acc)):
            raise NonConvergence(f"Cumulant expansion produced non-finite values after {i_iter} iterations.")
        relerr = _relative_change(t_n, t_acc)
        logger.debug(
            "Cumulant iteration %d: relative errors (%.3e, %.3e) <> %.3e", i_iter, relerr[0], relerr[1], conv_test
        )
        i_iter += 1

    if i_iter >= NITER:
        raise NonConvergence(f"No convergence of the cumulant expansion after {NITER} iterations.")

    result = -kappa * t_acc
    if return_info:
        return result, {"n_iter": i_iter - 1, "relerr": relerr}
    return result
