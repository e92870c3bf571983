"""Layer doubling: diffraction matrices of two stacked (super)layers."""

from __future__ import annotations

import logging

import numpy as np

from . import matrix
from .errors import NonConvergence
from .types import BeamList, LayerMatrices


Array = np.ndarray

logger = logging.getLogger(__name__)


def propagators(beams: BeamList, v: Array) -> tuple[Array, Array]:
    """Plane-wave propagators across the gap vector ``v`` from layer a to layer b.

    ``P+ = exp(i (kx vx + ky vy + kz vz))`` and
    ``P- = exp(i (-kx vx - ky vy + kz vz))``, one element per beam.
    """

    v = np.asarray(v, dtype=float)
    if v.shape != (3,):
        raise ValueError(f"Interlayer vector must be a 3-vector (got shape {v.shape}).")
    if v[2] <= 0.0:
        raise ValueError(f"Layer b must lie above layer a: v_z must be positive (got {v[2]}).")
    k_par_v = beams.kx * v[0] + beams.ky * v[1]
    kz_v = beams.kz * v[2]
    return np.exp(1j * (k_par_v + kz_v)), np.exp(1j * (kz_v - k_par_v))


def _identity_like(a: Array) -> Array:
    return np.eye(a.shape[0], dtype=np.complex128)


def combine_rpm(rpm_a: Array, b: LayerMatrices, beams: BeamList, v: Array) -> Array:
    """Reflection matrix R+- of layer a covered by layer b.

    Rpm_ab = Rpm_b + Tpp_b P+ Rpm_a P- (I - Rmp_b P+ Rpm_a P-)^-1 Tmm_b
    """

    p_plus, p_minus = propagators(beams, v)
    if rpm_a.shape != b.rpm.shape:
        raise ValueError(f"Reflection matrix shapes differ: {rpm_a.shape} vs. {b.rpm.shape}.")

    ra_pm = matrix.multiply(rpm_a, p_minus)
    rb_mp = matrix.multiply(b.rmp, p_plus)
    loop = matrix.invert(_identity_like(rpm_a) - matrix.multiply(rb_mp, ra_pm))
    aux = matrix.multiply(ra_pm, matrix.multiply(loop, b.tmm))
    return b.rpm + matrix.multiply(matrix.multiply(b.tpp, p_plus), aux)


def combine_layers(a: LayerMatrices, b: LayerMatrices, beams: BeamList, v: Array) -> LayerMatrices:
    """All four diffraction matrices of layer a (below) and layer b (above).

    The result refers to the bottom reference point of ``a`` and the top
    reference point of ``b``.
    """

    p_plus, p_minus = propagators(beams, v)
    if a.n_beams != b.n_beams:
        raise ValueError(f"Layer matrices have different beam counts: {a.n_beams} vs. {b.n_beams}.")

    eye = _identity_like(a.tpp)
    ra_pm = matrix.multiply(a.rpm, p_minus)
    rb_mp = matrix.multiply(b.rmp, p_plus)

    # (I - Rpm_a P- Rmp_b P+)^-1 and (I - Rmp_b P+ Rpm_a P-)^-1
    up = matrix.invert(eye - matrix.multiply(ra_pm, rb_mp))
    down = matrix.invert(eye - matrix.multiply(rb_mp, ra_pm))

    tb_pp = matrix.multiply(b.tpp, p_plus)
    ta_mm = matrix.multiply(a.tmm, p_minus)

    tpp = matrix.multiply(tb_pp, matrix.multiply(up, a.tpp))
    tmm = matrix.multiply(ta_mm, matrix.multiply(down, b.tmm))
    rpm = b.rpm + matrix.multiply(tb_pp, matrix.multiply(ra_pm, matrix.multiply(down, b.tmm)))
    rmp = a.rmp + matrix.multiply(ta_mm, matrix.multiply(rb_mp, matrix.multiply(up, a.tpp)))
    return LayerMatrices(tpp=tpp, tmm=tmm, rpm=rpm, rmp=rmp)


def bulk_reflection(
    layer_matrices: LayerMatrices,
    beams: BeamList,
    v: Array,
    tol: float = 1e-6,
    maxiter: int = 40,
) -> LayerMatrices:
    """Semi-infinite bulk by repeated doubling of one bulk layer.

    ``v`` is the gap vector between the top reference point of a bulk layer
    and the bottom reference point of the copy above it. Each pass doubles
    the number of layers; the top reference point stays on the uppermost
    layer, so ``v`` is the same in every pass.
    """

    if tol <= 0.0:
        raise ValueError(f"tol must be positive (got {tol}).")
    if maxiter <= 0:
        raise ValueError(f"maxiter must be positive (got {maxiter}).")

    stack = layer_matrices
    delta = float("inf")
    for i_iter in range(1, maxiter + 1):
        doubled = combine_layers(stack, stack, beams, v)
        delta = float(np.max(np.abs(doubled.rpm - stack.rpm)))
        logger.debug("Bulk doubling %d (%d layers): max |dRpm| = %.3e", i_iter, 2**i_iter, delta)
        stack = doubled
        if delta < tol:
            break
    else:
        raise NonConvergence(f"Bulk layer doubling did not converge in {maxiter} passes (last change {delta:.3e}).")
    return stack
