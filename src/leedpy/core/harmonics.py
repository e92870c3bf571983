"""Spherical harmonics, spherical Hankel functions and Gaunt coefficients.

Angular momentum channels are stored in natural order with the 0-based
index ``l * (l + 1) + m``. Spherical harmonics follow the Condon-Shortley
phase convention and accept complex ``cos(theta)`` so that evanescent beam
directions can be handled.
"""

from __future__ import annotations

import math
from functools import lru_cache

import numpy as np


Array = np.ndarray


def lm_index(l: int, m: int) -> int:
    return l * (l + 1) + m


def n_channels(l_max: int) -> int:
    return (l_max + 1) * (l_max + 1)


@lru_cache(maxsize=None)
def lm_arrays(l_max: int) -> tuple[Array, Array]:
    """Return the ``l`` and ``m`` quantum numbers of every channel up to ``l_max``."""

    ls = np.concatenate([np.full(2 * l + 1, l, dtype=int) for l in range(l_max + 1)])
    ms = np.concatenate([np.arange(-l, l + 1, dtype=int) for l in range(l_max + 1)])
    ls.setflags(write=False)
    ms.setflags(write=False)
    return ls, ms


@lru_cache(maxsize=None)
def _normalisation(l_max: int) -> Array:
    norm = np.zeros((l_max + 1, l_max + 1))
    for l in range(l_max + 1):
        for m in range(l + 1):
            log_ratio = math.lgamma(l - m + 1) - math.lgamma(l + m + 1)
            norm[l, m] = math.sqrt((2 * l + 1) / (4.0 * math.pi) * math.exp(log_ratio))
    return norm


def _legendre(l_max: int, x: Array) -> Array:
    """Associated Legendre functions P_l^m(x), 0 <= m <= l, with Condon-Shortley phase."""

    x = np.asarray(x, dtype=np.complex128)
    s = np.sqrt(1.0 - x * x)
    p = np.zeros((l_max + 1, l_max + 1) + x.shape, dtype=np.complex128)
    p[0, 0] = 1.0
    for m in range(1, l_max + 1):
        p[m, m] = -(2 * m - 1) * s * p[m - 1, m - 1]
    for m in range(0, l_max):
        p[m + 1, m] = (2 * m + 1) * x * p[m, m]
    for m in range(0, l_max + 1):
        for l in range(m + 2, l_max + 1):
            p[l, m] = ((2 * l - 1) * x * p[l - 1, m] - (l + m - 1) * p[l - 2, m]) / (l - m)
    return p


def ylm(l_max: int, cos_theta: Array | complex, phi: Array | float) -> Array:
    """Spherical harmonics Y_lm for all channels up to ``l_max``.

    Returns an array of shape ``cos_theta.shape + ((l_max+1)**2,)``. For
    complex ``cos_theta`` the negative-m functions are continued analytically
    as ``Y_{l,-m} = (-1)^m N_lm P_l^m exp(-i m phi)``.
    """

    x = np.asarray(cos_theta, dtype=np.complex128)
    ph = np.broadcast_to(np.asarray(phi, dtype=float), x.shape)
    p = _legendre(l_max, x)
    norm = _normalisation(l_max)
    out = np.zeros(x.shape + (n_channels(l_max),), dtype=np.complex128)
    for l in range(l_max + 1):
        for m in range(l + 1):
            base = norm[l, m] * p[l, m]
            out[..., lm_index(l, m)] = base * np.exp(1j * m * ph)
            if m > 0:
                out[..., lm_index(l, -m)] = (-1) ** m * base * np.exp(-1j * m * ph)
    return out


def ylm_conjugate(l_max: int, cos_theta: Array | complex, phi: Array | float) -> Array:
    """Analytic continuation of conj(Y_lm): ``(-1)^m Y_{l,-m}``."""

    y = ylm(l_max, cos_theta, phi)
    ls, ms = lm_arrays(l_max)
    flip = ls * (ls + 1) - ms
    return ((-1.0) ** ms) * y[..., flip]


def hankel1(l_max: int, z: Array | complex) -> Array:
    """Spherical Hankel functions of the first kind h_l(z), ``l = 0..l_max``.

    Uses upward recurrence, which is stable for h_l. Returns shape
    ``(l_max + 1,) + z.shape``.
    """

    z = np.asarray(z, dtype=np.complex128)
    h = np.zeros((l_max + 1,) + z.shape, dtype=np.complex128)
    ez = np.exp(1j * z)
    h[0] = -1j * ez / z
    if l_max >= 1:
        h[1] = -ez * (z + 1j) / (z * z)
    for l in range(1, l_max):
        h[l + 1] = (2 * l + 1) / z * h[l] - h[l - 1]
    return h


@lru_cache(maxsize=None)
def wigner_3j(j1: int, j2: int, j3: int, m1: int, m2: int, m3: int) -> float:
    """Wigner 3j symbol for integer arguments (Racah formula)."""

    if m1 + m2 + m3 != 0:
        return 0.0
    if abs(m1) > j1 or abs(m2) > j2 or abs(m3) > j3:
        return 0.0
    if j3 < abs(j1 - j2) or j3 > j1 + j2:
        return 0.0
    if m1 == 0 and m2 == 0 and m3 == 0 and (j1 + j2 + j3) % 2 == 1:
        return 0.0

    f = math.factorial
    tri = f(j1 + j2 - j3) * f(j1 - j2 + j3) * f(-j1 + j2 + j3) / f(j1 + j2 + j3 + 1)
    pre = f(j1 + m1) * f(j1 - m1) * f(j2 + m2) * f(j2 - m2) * f(j3 + m3) * f(j3 - m3)

    k_min = max(0, j2 - j3 - m1, j1 - j3 + m2)
    k_max = min(j1 + j2 - j3, j1 - m1, j2 + m2)
    total = 0.0
    for k in range(k_min, k_max + 1):
        den = (
            f(k)
            * f(j3 - j2 + k + m1)
            * f(j3 - j1 + k - m2)
            * f(j1 + j2 - j3 - k)
            * f(j1 - k - m1)
            * f(j2 - k + m2)
        )
        total += (-1) ** k / den
    sign = (-1) ** (j1 - j2 - m3)
    return float(sign * math.sqrt(tri * pre) * total)


@lru_cache(maxsize=None)
def gaunt(l1: int, m1: int, l2: int, m2: int, l3: int, m3: int) -> float:
    """Integral of Y_{l1 m1} Y_{l2 m2} Y_{l3 m3} over the unit sphere."""

    if m1 + m2 + m3 != 0:
        return 0.0
    w0 = wigner_3j(l1, l2, l3, 0, 0, 0)
    if w0 == 0.0:
        return 0.0
    pref = math.sqrt((2 * l1 + 1) * (2 * l2 + 1) * (2 * l3 + 1) / (4.0 * math.pi))
    return pref * w0 * wigner_3j(l1, l2, l3, m1, m2, m3)


def coupling_tensor(l_max: int) -> Array:
    """Tensor C[L', L, L''] turning a lattice sum into a propagator matrix.

    ``X[L', L] = sum_L'' C[L', L, L''] * Llm[L'']`` with
    ``C = i^(l'-l) (-1)^l'' * integral(Y_L Y*_L' Y_{l'',-m''})``.
    Lattice sums must extend to ``2 * l_max``.
    """

    n = n_channels(l_max)
    ls, ms = lm_arrays(l_max)
    tensor = np.zeros((n, n, n_channels(2 * l_max)), dtype=np.complex128)
    for ip in range(n):
        lp, mp = int(ls[ip]), int(ms[ip])
        for i in range(n):
            l, m = int(ls[i]), int(ms[i])
            m2 = m - mp
            phase = (1j) ** (lp - l)
            for l2 in range(abs(l - lp), l + lp + 1):
                if abs(m2) > l2 or (l + lp + l2) % 2 == 1:
                    continue
                # integral(Y_L Y*_L' Y_{l2,-m2}) with Y*_L' = (-1)^m' Y_{l',-m'}
                value = (-1) ** mp * gaunt(l, m, lp, -mp, l2, -m2)
                if value != 0.0:
                    tensor[ip, i, lm_index(l2, m2)] = phase * (-1) ** l2 * value
    tensor.setflags(write=False)
    return tensor
