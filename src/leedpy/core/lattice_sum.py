"""Ewald-truncated lattice sums of outgoing spherical waves.

The sums run over the 2D Bravais lattice ``p = n1*a1 + n2*a2`` of a layer,
shifted by an interlayer vector ``d``, and are truncated at the radius where
the damped spherical wave has decayed below ``epsilon``.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from .harmonics import hankel1, lm_arrays, ylm
from .types import GEO_TOLERANCE, SurfaceLattice


Array = np.ndarray

logger = logging.getLogger(__name__)

R_MAX_WARNING = 1000.0


def cutoff_radius(k: complex, epsilon: float) -> float:
    """Radius beyond which the damped spherical waves are neglected."""

    k_i = float(np.imag(k))
    if k_i <= 0.0:
        raise ValueError(f"Lattice sums require a damped wave vector, Im(k) > 0 (got {k_i}).")
    if epsilon < 1.0:
        r_max = -math.log(epsilon) / k_i
    else:
        r_max = float(epsilon)
    if r_max > R_MAX_WARNING:
        logger.warning(
            "Lattice sum cutoff radius %.1f Bohr is very large (Im(k) = %.3e); convergence will be slow.",
            r_max,
            k_i,
        )
    return r_max


def _lattice_points(lattice: SurfaceLattice, d: Array, r_max: float) -> Array:
    """Integer pairs (n1, n2) for which ``|d + n1*a1 + n2*a2| < r_max`` is possible."""

    basis = lattice.super_basis
    a1, a2 = basis[0], basis[1]
    d_par = d[:2]
    r2 = r_max * r_max

    f1 = float(a1 @ a1)
    f2 = float(a2 @ a2)
    f12 = float(a1 @ a2)
    f1d = float(a1 @ d_par)
    f2d = float(a2 @ d_par)
    fd = float(d @ d)

    # n1 range from the discriminant of the quadratic form in n2
    fa = f12 * f12 - f1 * f2
    fb = f12 * f2d - f1d * f2
    fc = f2d * f2d - f2 * fd + f2 * r2
    disc = max(fb * fb - fa * fc, 0.0)
    roots = ((-fb + math.sqrt(disc)) / fa, (-fb - math.sqrt(disc)) / fa)
    n1_min = int(math.floor(min(roots)))
    n1_max = int(math.ceil(max(roots)))

    chunks = []
    for n1 in range(n1_min, n1_max + 1):
        fb_n = n1 * f12 + f2d
        fc_n = f1 * n1 * n1 + 2.0 * f1d * n1 + fd - r2
        disc_n = fb_n * fb_n - f2 * fc_n
        if disc_n < 0.0:
            continue
        sq = math.sqrt(disc_n)
        n2_min = int(math.floor((-fb_n - sq) / f2))
        n2_max = int(math.ceil((-fb_n + sq) / f2))
        n2 = np.arange(n2_min, n2_max + 1)
        chunks.append(np.column_stack([np.full(n2.size, n1), n2]))
    if not chunks:
        return np.zeros((0, 2), dtype=int)
    return np.vstack(chunks)


def _accumulate(
    k: complex,
    k_in: Array,
    lattice: SurfaceLattice,
    d: Array,
    l_max: int,
    epsilon: float,
) -> tuple[Array, Array]:
    r_max = cutoff_radius(k, epsilon)
    ns = _lattice_points(lattice, d, r_max)
    basis = lattice.super_basis

    p_par = ns @ basis
    r = np.zeros((ns.shape[0], 3))
    r[:, :2] = p_par + d[:2]
    r[:, 2] = d[2]
    r2 = np.einsum("ij,ij->i", r, r)
    keep = (r2 < r_max * r_max) & (r2 > GEO_TOLERANCE)
    r = r[keep]
    p_par = p_par[keep]

    ls, ms = lm_arrays(l_max)
    n = ls.size
    if r.shape[0] == 0:
        logger.debug("Lattice sum cutoff %.3f Bohr encloses no lattice points.", r_max)
        zeros = np.zeros(n, dtype=np.complex128)
        return zeros, zeros.copy()

    r_abs = np.sqrt(r2[keep])
    cos_theta = r[:, 2] / r_abs
    phi = np.arctan2(r[:, 1], r[:, 0])

    y = ylm(l_max, cos_theta, phi)
    h = hankel1(l_max, k * r_abs)
    kp = p_par @ np.asarray(k_in, dtype=float)
    phase_p = np.exp(-1j * kp)
    phase_m = np.exp(1j * kp)

    pref = -8.0 * np.pi * k * (1j) ** (np.arange(l_max + 1) + 1)
    radial = h[ls] * pref[ls][:, None]
    sum_p = np.einsum("pn,np,p->n", y, radial, phase_p)
    sum_m = np.einsum("pn,np,p->n", y, radial, phase_m)

    logger.debug("Lattice sum over %d points (r_max = %.2f Bohr, l_max = %d).", r.shape[0], r_max, l_max)
    return sum_p * (-1.0) ** (ls + ms), sum_m * (-1.0) ** ms


def lattice_sum_between_layers(
    k: complex,
    k_in: Array,
    lattice: SurfaceLattice,
    d: Array,
    l_max: int,
    epsilon: float,
) -> tuple[Array, Array]:
    """Lattice sums for the interlayer vector ``+d`` and ``-d``.

    Returns ``(Llm_p, Llm_m)``, both of length ``(l_max+1)**2`` in natural
    order. ``Llm_m`` for ``d`` equals ``Llm_p`` for ``-d``; it is obtained
    from the same lattice points through ``Y_lm(-r) = (-1)^l Y_lm(r)``.
    """

    d = np.asarray(d, dtype=float)
    if d.shape != (3,):
        raise ValueError(f"Interlayer vector must be a 3-vector (got shape {d.shape}).")
    return _accumulate(complex(k), np.asarray(k_in, dtype=float), lattice, d, l_max, epsilon)


def lattice_sum_same_layer(
    k: complex,
    k_in: Array,
    lattice: SurfaceLattice,
    l_max: int,
    epsilon: float,
) -> Array:
    """Lattice sum within a single Bravais layer (origin excluded)."""

    llm_p, _ = _accumulate(complex(k), np.asarray(k_in, dtype=float), lattice, np.zeros(3), l_max, epsilon)
    return llm_p
