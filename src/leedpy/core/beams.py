"""Diffracted-beam enumeration and energy-dependent beam selection."""

from __future__ import annotations

import logging
import math

import numpy as np

from .types import K_TOLERANCE, Beam, BeamList, SurfaceLattice


Array = np.ndarray

logger = logging.getLogger(__name__)


def incident_k_parallel(energy: float, theta: float, phi: float) -> Array:
    """Parallel wave vector of the incident beam at vacuum energy ``energy`` [Hartree]."""

    k_abs = math.sin(theta) * math.sqrt(2.0 * float(energy))
    return np.array([k_abs * math.cos(phi), k_abs * math.sin(phi)])


def _beam_sets(lattice: SurfaceLattice, tol: float = K_TOLERANCE) -> list[tuple[Array, Array]]:
    """Fractional offsets of the superstructure beam sets.

    Each set is represented once inside the unit diamond spanned by the 1x1
    reciprocal vectors. Returns ``(indices, k_offset)`` pairs with the (0, 0)
    set first.
    """

    n_set = int(round(lattice.rel_area_sup))
    m_recip = lattice.m_recip
    recip = lattice.reciprocal

    found: list[Array] = []
    for n1 in range(-n_set, n_set + 1):
        for n2 in range(-n_set, n_set + 1):
            ind = np.array([n1, n2], dtype=float) @ m_recip
            # fold into [0, 1); inv() leaves noise of order 1e-17 around integers
            ind = ind - np.floor(ind + tol)
            ind[np.abs(ind) < tol] = 0.0
            if math.hypot(ind[0], ind[1]) <= tol:
                continue
            if any(np.all(np.abs(ind - prev) < tol) for prev in found):
                continue
            found.append(ind)

    offsets = [(ind, ind @ recip) for ind in found]
    offsets.sort(key=lambda item: (round(float(item[1] @ item[1]) / tol), item[0][0], item[0][1]))
    sets = [(np.zeros(2), np.zeros(2))] + offsets

    if len(sets) != n_set:
        logger.warning("Wrong number of beam sets found: %d, expected %d.", len(sets), n_set)
    for i_set, (ind, k_off) in enumerate(sets):
        logger.debug("Beam set %d: (%5.2f, %5.2f) k = (%5.2f, %5.2f)", i_set, ind[0], ind[1], k_off[0], k_off[1])
    return sets


def _order_beams(beams: list[Beam]) -> list[Beam]:
    """Ascending ``k_par``; within a ``K_TOLERANCE`` band by ``ind1`` then ``ind2``."""

    by_kpar = sorted(beams, key=lambda b: b.k_par)
    ordered: list[Beam] = []
    band: list[Beam] = []
    for beam in by_kpar:
        if band and beam.k_par - band[0].k_par >= K_TOLERANCE:
            ordered.extend(sorted(band, key=lambda b: (b.ind1, b.ind2)))
            band = []
        band.append(beam)
    ordered.extend(sorted(band, key=lambda b: (b.ind1, b.ind2)))
    return ordered


def generate_beams(
    energy_max: float,
    lattice: SurfaceLattice,
    theta: float,
    phi: float,
    vr: float,
    epsilon: float,
) -> BeamList:
    """Enumerate every beam that can propagate between layers up to ``energy_max``.

    ``energy_max`` and ``vr`` are in Hartree, angles in radians. The returned
    list is globally ordered by ascending parallel momentum, ties broken by
    the first then the second beam index, so the specular (0, 0) beam is
    always first.
    """

    eng = float(energy_max) - float(vr)
    if eng <= 0.0:
        raise ValueError(f"Energy inside the crystal must be positive (got {eng:.4f} H).")
    decay = math.log(epsilon) / lattice.dmin
    k_max_2 = decay * decay + 2.0 * eng
    k_max = math.sqrt(k_max_2)

    estimate = 2 + int(lattice.rel_area_sup * lattice.area * k_max_2 / (math.pi * math.pi))
    logger.debug("E_max = %.4f H, k_max = %.3f, estimated number of beams %d.", eng, k_max, estimate)

    k_in = incident_k_parallel(eng, theta, phi)
    k_in_abs = float(np.hypot(k_in[0], k_in[1]))
    g1, g2 = lattice.reciprocal
    a1 = float(np.hypot(*g1))
    a2 = float(np.hypot(*g2))
    cos_part = abs(float(g1 @ g2)) / a1
    sin_part = abs(float(g1[0] * g2[1] - g1[1] * g2[0])) / a1
    n2_max = 2 + int(k_max / sin_part + k_in_abs / a2)
    n1_max = 2 + int(k_max / a1 + n2_max * cos_part / a1 + k_in_abs / a1)
    logger.debug("Beam index bounds n1_max = %d, n2_max = %d.", n1_max, n2_max)

    n1, n2 = np.meshgrid(np.arange(-n1_max, n1_max + 1), np.arange(-n2_max, n2_max + 1), indexing="ij")
    n1 = n1.ravel()
    n2 = n2.ravel()
    g_base = np.outer(n1, g1) + np.outer(n2, g2)

    akz = 1.0 / lattice.area
    beams: list[Beam] = []
    for i_set, (ind_off, k_off) in enumerate(_beam_sets(lattice)):
        g = g_base + k_off
        k_full = g + k_in
        keep = np.einsum("ij,ij->i", k_full, k_full) <= k_max_2
        for idx in np.flatnonzero(keep):
            g_vec = g[idx].copy()
            beams.append(
                Beam(
                    ind1=float(n1[idx] + ind_off[0]),
                    ind2=float(n2[idx] + ind_off[1]),
                    set_id=i_set,
                    g=g_vec,
                    k_par=float(g_vec @ g_vec),
                    akz=complex(akz),
                    kx=float(g_vec[0]),
                    ky=float(g_vec[1]),
                )
            )

    ordered = _order_beams(beams)
    logger.debug("Generated %d beams.", len(ordered))
    return BeamList(beams=tuple(ordered), k_in=k_in)


def select_beams(
    beams: BeamList,
    energy: complex,
    epsilon: float,
    dmin: float,
    k_in: Array,
) -> BeamList:
    """Active beams at the complex inner energy ``energy`` [Hartree].

    Filters ``beams`` with the cutoff at the current energy and fills in the
    energy-dependent wave-vector components. The generation order is kept, so
    ``k_par`` (|g|^2) stays the ordering key and |g + k_in|^2 goes to
    ``k_par_total``.
    """

    energy = complex(energy)
    k_in = np.asarray(k_in, dtype=float)
    decay = math.log(epsilon) / dmin
    k_max_2 = decay * decay + 2.0 * energy.real
    k_abs = np.sqrt(2.0 * energy)

    selected: list[Beam] = []
    for beam in beams:
        kx = float(beam.g[0] + k_in[0])
        ky = float(beam.g[1] + k_in[1])
        k_par_total = kx * kx + ky * ky
        if k_par_total > k_max_2:
            continue
        kz = np.sqrt(2.0 * energy - k_par_total)
        if kz.imag < 0.0:
            kz = -kz
        selected.append(
            Beam(
                ind1=beam.ind1,
                ind2=beam.ind2,
                set_id=beam.set_id,
                g=beam.g,
                k_par=beam.k_par,
                akz=complex(beam.akz / kz),
                kx=kx,
                ky=ky,
                kz=complex(kz),
                k=complex(k_abs),
                cos_theta=complex(kz / k_abs),
                phi=math.atan2(ky, kx),
                k_par_total=k_par_total,
            )
        )

    logger.debug(
        "Selected %d of %d beams at E = (%.4f, %.4f) H.", len(selected), len(beams), energy.real, energy.imag
    )
    return BeamList(beams=tuple(selected), k_in=k_in)
